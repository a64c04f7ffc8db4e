import pytest

from civicfix.models import Worker


def test_list_workers_shows_active_assignments(client, factory, citizen):
    _, worker_user = factory.worker(name='Kiran')
    issue_id = factory.issue(citizen, status='in_progress', assigned_to=worker_user)
    factory.issue(citizen, status='completed', assigned_to=worker_user)

    body = client.get('/workers', headers=factory.headers(citizen)).get_json()

    assert body['total'] == 1
    assert body['workers'][0]['user']['name'] == 'Kiran'
    assert [i['id'] for i in body['workers'][0]['assignedIssues']] == [issue_id]


def test_available_excludes_workers_holding_issues(client, factory, citizen):
    free, _ = factory.worker(name='Free')
    _, held_user = factory.worker(name='Held')
    factory.worker(name='Offline', status='offline')
    factory.issue(citizen, status='accepted', assigned_to=held_user)

    body = client.get('/workers/available', headers=factory.headers(citizen)).get_json()

    assert [w['id'] for w in body['workers']] == [free]


def test_private_fields_hidden_from_listing(client, factory, citizen):
    worker_id, _ = factory.worker(upi_id='kiran@ybl')
    body = client.get(f'/workers/{worker_id}', headers=factory.headers(citizen)).get_json()
    assert 'bankAccount' not in body
    assert 'panCard' not in body


def test_filters(client, factory, citizen):
    roads, _ = factory.worker(tags=['Roads', 'lighting'])
    water, _ = factory.worker(tags=['water'], status='busy')
    headers = factory.headers(citizen)

    by_tag = client.get('/workers/by-tag?tag=roads', headers=headers).get_json()
    assert [w['id'] for w in by_tag['workers']] == [roads]

    by_status = client.get('/workers/by-status?status=busy', headers=headers).get_json()
    assert [w['id'] for w in by_status['workers']] == [water]

    by_role = client.get('/workers/by-role?role=worker', headers=headers).get_json()
    assert sorted(w['id'] for w in by_role['workers']) == sorted([roads, water])


@pytest.mark.parametrize('path', [
    '/workers/by-tag',
    '/workers/by-status',
    '/workers/by-status?status=sleeping',
    '/workers/by-role',
    '/workers/by-location',
    '/workers/by-issue',
])
def test_filters_validate_arguments(client, factory, citizen, path):
    assert client.get(path, headers=factory.headers(citizen)).status_code == 400


def test_by_location_is_case_insensitive(client, factory, admin):
    worker_id, worker_user = factory.worker()
    client.put(f'/workers/{worker_id}', json={'location': 'Indiranagar, Bengaluru'},
               headers=factory.headers(worker_user))

    body = client.get('/workers/by-location?location=bengaluru', headers=factory.headers(admin)).get_json()

    assert [w['id'] for w in body['workers']] == [worker_id]


def test_by_issue_matches_category(client, factory, citizen):
    lighting, _ = factory.worker(tags=['lighting'], status='busy')
    factory.worker(tags=['roads'], status='offline')
    issue_id = factory.issue(citizen, category='lighting')

    body = client.get(f'/workers/by-issue?issueId={issue_id}', headers=factory.headers(citizen)).get_json()

    assert body['issueId'] == issue_id
    assert [w['id'] for w in body['workers']] == [lighting]


def test_worker_updates_own_profile(client, factory):
    worker_id, worker_user = factory.worker()

    resp = client.put(f'/workers/{worker_id}', json={
        'tags': ['roads', 'drainage'],
        'upiId': '9876543210@paytm',
        'status': 'offline',
        'organizationName': 'Ward 12 Works',
    }, headers=factory.headers(worker_user))

    assert resp.status_code == 200
    body = resp.get_json()
    assert body['upiId'] == '9876543210@paytm'
    assert body['organizationName'] == 'Ward 12 Works'
    worker = factory.get(Worker, worker_id)
    assert worker.tags == ['roads', 'drainage']
    assert worker.status == 'offline'


@pytest.mark.parametrize('payload', [
    {'upiId': 'not-a-upi'},
    {'status': 'sleeping'},
    {'type': 'robot'},
    {'tags': 'roads'},
])
def test_profile_update_validation(client, factory, payload):
    worker_id, worker_user = factory.worker()
    resp = client.put(f'/workers/{worker_id}', json=payload, headers=factory.headers(worker_user))
    assert resp.status_code == 400
    assert factory.get(Worker, worker_id).upi_id == 'worker@okaxis'


def test_other_worker_cannot_update_profile(client, factory):
    worker_id, _ = factory.worker()
    _, other_user = factory.worker()
    resp = client.put(f'/workers/{worker_id}', json={'status': 'offline'}, headers=factory.headers(other_user))
    assert resp.status_code == 403


def test_delete_worker(client, factory, admin):
    worker_id, worker_user = factory.worker()

    assert client.delete(f'/workers/{worker_id}', headers=factory.headers(worker_user)).status_code == 403

    resp = client.delete(f'/workers/{worker_id}', headers=factory.headers(admin))
    assert resp.status_code == 200
    assert factory.get(Worker, worker_id) is None
    assert client.delete(f'/workers/{worker_id}', headers=factory.headers(admin)).status_code == 404


def test_delete_worker_with_active_issue(client, factory, admin, citizen):
    worker_id, worker_user = factory.worker()
    issue_id = factory.issue(citizen, status='assigned', assigned_to=worker_user)

    resp = client.delete(f'/workers/{worker_id}', headers=factory.headers(admin))

    assert resp.status_code == 400
    assert [i['id'] for i in resp.get_json()['activeIssues']] == [issue_id]
    assert factory.get(Worker, worker_id) is not None


def test_delete_worker_with_payment_history(client, factory, admin, citizen):
    worker_id, worker_user = factory.worker()
    issue_id = factory.issue(citizen, status='completed', assigned_to=worker_user, amount=250)
    factory.review(issue_id, worker_id, admin, 5)
    factory.payment(issue_id, worker_id, 250, status='completed')

    resp = client.delete(f'/workers/{worker_id}', headers=factory.headers(admin))

    assert resp.status_code == 400
    assert resp.get_json() == {
        'error': 'Cannot delete worker with payment or review history',
        'payments': 1,
        'reviews': 1,
    }
    assert factory.get(Worker, worker_id) is not None
