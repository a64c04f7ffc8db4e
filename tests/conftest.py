import itertools
from decimal import Decimal

import pytest
from werkzeug.security import generate_password_hash

from civicfix import create_app
from civicfix.auth import issue_token
from civicfix.config import TestConfig
from civicfix.models import db, User, Worker, Issue, Review, Payment

PASSWORD = 'secret-pass'


class Factory:
    """Creates rows in their own app context and hands back ids.

    Requests made through the test client push a fresh app context, so
    nothing created here stays attached to a request's session.
    """

    def __init__(self, app):
        self.app = app
        self._seq = itertools.count(1)

    def user(self, role='citizen', name=None, email=None):
        n = next(self._seq)
        with self.app.app_context():
            user = User(
                name=name or f'{role.title()} {n}',
                email=email or f'{role}{n}@example.com',
                password_hash=generate_password_hash(PASSWORD),
                role=role,
            )
            db.session.add(user)
            db.session.commit()
            return user.id

    def worker(self, name=None, tags=('roads',), status='available', total_jobs=0,
               rating=None, upi_id='worker@okaxis'):
        """Returns (worker_id, user_id)."""
        user_id = self.user(role='worker', name=name)
        with self.app.app_context():
            worker = Worker(
                user_id=user_id,
                tags=list(tags),
                status=status,
                total_jobs=total_jobs,
                rating=rating,
                upi_id=upi_id,
            )
            db.session.add(worker)
            db.session.commit()
            return worker.id, user_id

    def issue(self, created_by, category='roads', status='pending', assigned_to=None,
              amount=None, title='Pothole on Main Street'):
        with self.app.app_context():
            issue = Issue(
                title=title,
                description='Large pothole near the bus stop',
                category=category,
                location='Main Street',
                created_by=created_by,
                status=status,
                assigned_to=assigned_to,
                amount=Decimal(str(amount)) if amount is not None else None,
            )
            db.session.add(issue)
            db.session.commit()
            return issue.id

    def review(self, issue_id, worker_id, reviewer_id, rating):
        with self.app.app_context():
            review = Review(issue_id=issue_id, worker_id=worker_id, reviewer_id=reviewer_id,
                            rating=rating, status='approved')
            db.session.add(review)
            db.session.commit()
            return review.id

    def payment(self, issue_id, worker_id, amount, status='pending'):
        with self.app.app_context():
            payment = Payment(issue_id=issue_id, worker_id=worker_id,
                              amount=Decimal(str(amount)), status=status)
            db.session.add(payment)
            db.session.commit()
            return payment.id

    def headers(self, user_id):
        with self.app.app_context():
            token = issue_token(db.session.get(User, user_id))
        return {'Authorization': f'Bearer {token}'}

    def get(self, model, pk):
        """Fresh read of a row; attributes are loaded before the context closes."""
        with self.app.app_context():
            obj = db.session.get(model, pk)
            if obj is not None:
                db.session.refresh(obj)
                db.session.expunge(obj)
            return obj


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def factory(app):
    return Factory(app)


@pytest.fixture
def admin(factory):
    return factory.user(role='admin', name='Admin')


@pytest.fixture
def citizen(factory):
    return factory.user(role='citizen', name='Asha Citizen')
