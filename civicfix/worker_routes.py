# civicfix/worker_routes.py
import logging

from flask import Blueprint, jsonify, request

from . import get_repos
from .assignment import assign, auto_assign, free_workers, workers_for_issue
from .errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .events import publish_event, ISSUE_ASSIGNED
from .helpers import (
    auth_required, admin_required, get_json_body, page_args, page_response, parse_int,
)
from .models import Worker, WORKER_STATUSES, WORKER_TYPES, USER_ROLES
from .upi import validate_upi_id

logger = logging.getLogger(__name__)

workers = Blueprint('workers', __name__)

# JSON field -> column for profile updates
PROFILE_FIELDS = {
    'description': 'description',
    'tags': 'tags',
    'location': 'location',
    'status': 'status',
    'phone': 'phone',
    'organizationName': 'organization_name',
    'type': 'type',
    'upiId': 'upi_id',
    'bankAccount': 'bank_account',
    'panCard': 'pan_card',
}


def _serialize(worker):
    data = worker.to_dict()
    data['assignedIssues'] = [
        {'id': i.id, 'title': i.title, 'status': i.status}
        for i in get_repos().issues.active_for_assignee(worker.user_id)
    ]
    return data


def _required_arg(name):
    value = request.args.get(name)
    if not value:
        raise ValidationError(f'{name.capitalize()} parameter is required')
    return value


def _validate_profile(data):
    if 'status' in data and data['status'] not in WORKER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(WORKER_STATUSES)}")
    if 'type' in data and data['type'] not in WORKER_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(WORKER_TYPES)}")
    if 'tags' in data:
        tags = data['tags']
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise ValidationError('tags must be a list of strings')
    if data.get('upiId') and not validate_upi_id(data['upiId']):
        raise ValidationError('Invalid UPI ID format')


@workers.route('', methods=['GET'])
@auth_required
def list_workers(principal):
    page, limit = page_args()
    result = get_repos().workers.list(page=page, limit=limit)
    return jsonify(page_response('workers', result, _serialize))


@workers.route('/available', methods=['GET'])
@auth_required
def available_workers(principal):
    return jsonify({'workers': [_serialize(w) for w in free_workers(get_repos())]})


@workers.route('/by-role', methods=['GET'])
@auth_required
def workers_by_role(principal):
    role = _required_arg('role')
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")
    return jsonify({'workers': [w.to_dict() for w in get_repos().workers.by_role(role)]})


@workers.route('/by-status', methods=['GET'])
@auth_required
def workers_by_status(principal):
    status = _required_arg('status')
    if status not in WORKER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(WORKER_STATUSES)}")
    return jsonify({'workers': [w.to_dict() for w in get_repos().workers.by_status(status)]})


@workers.route('/by-tag', methods=['GET'])
@auth_required
def workers_by_tag(principal):
    tag = _required_arg('tag')
    found = get_repos().workers.with_any_tag([tag])
    return jsonify({'workers': [w.to_dict() for w in found], 'tag': tag})


@workers.route('/by-location', methods=['GET'])
@auth_required
def workers_by_location(principal):
    location = _required_arg('location')
    found = get_repos().workers.by_location(location)
    return jsonify({'workers': [w.to_dict() for w in found], 'location': location})


@workers.route('/by-issue', methods=['GET'])
@auth_required
def workers_by_issue(principal):
    issue_id = parse_int(request.args.get('issueId'), 'issueId')
    if issue_id is None:
        raise ValidationError('issueId parameter is required')
    issue, tags, found = workers_for_issue(get_repos(), issue_id)
    return jsonify({'workers': [w.to_dict() for w in found], 'issueId': issue.id, 'matchedTags': tags})


@workers.route('/<int:worker_id>', methods=['GET'])
@auth_required
def get_worker(worker_id, principal):
    worker = get_repos().workers.get(worker_id)
    if not worker:
        raise NotFoundError('Worker not found')
    return jsonify(_serialize(worker))


@workers.route('/<int:worker_id>', methods=['PUT'])
@auth_required
def update_worker(worker_id, principal):
    """Only the worker themselves or an admin may edit a profile."""
    data = get_json_body()
    repos = get_repos()
    with repos.transaction():
        worker = repos.workers.get(worker_id)
        if not worker:
            raise NotFoundError('Worker not found')
        if worker.user_id != principal.id and not principal.is_admin:
            raise AuthorizationError('Forbidden')
        _validate_profile(data)
        for field, column in PROFILE_FIELDS.items():
            if field in data:
                setattr(worker, column, data[field])

    return jsonify(worker.to_dict(include_private=True))


@workers.route('/<int:worker_id>', methods=['DELETE'])
@admin_required
def delete_worker(worker_id, principal):
    repos = get_repos()
    with repos.transaction():
        worker = repos.workers.get(worker_id)
        if not worker:
            raise NotFoundError('Worker not found')
        active = repos.issues.active_for_assignee(worker.user_id)
        if active:
            raise ConflictError(
                'Cannot delete worker with active assignments',
                activeIssues=[{'id': i.id, 'title': i.title, 'status': i.status} for i in active],
            )
        if worker.payments or worker.reviews:
            raise ConflictError(
                'Cannot delete worker with payment or review history',
                payments=len(worker.payments),
                reviews=len(worker.reviews),
            )
        repos.workers.delete(worker)

    logger.info("Worker %s deleted by admin %s", worker_id, principal.id)
    return jsonify({'message': 'Worker deleted successfully'})


# --- Assignment (admin only) ---

@workers.route('/<int:worker_id>/assign', methods=['POST'])
@admin_required
def assign_to_worker(worker_id, principal):
    issue_id = parse_int(get_json_body().get('issueId'), 'issueId')
    if issue_id is None:
        raise ValidationError('issueId is required')
    issue = assign(get_repos(), worker_id, issue_id)
    publish_event(ISSUE_ASSIGNED, issue.to_dict())
    return jsonify(issue.to_dict())


@workers.route('/auto-assign', methods=['POST'])
@admin_required
def auto_assign_worker(principal):
    issue_id = parse_int(get_json_body().get('issueId'), 'issueId')
    if issue_id is None:
        raise ValidationError('issueId is required')
    issue, worker = auto_assign(get_repos(), issue_id)
    publish_event(ISSUE_ASSIGNED, issue.to_dict())
    return jsonify({
        'message': 'Worker assigned successfully',
        'worker': {'id': worker.id, 'name': worker.name, 'userId': worker.user_id},
        'issue': issue.to_dict(),
    })
