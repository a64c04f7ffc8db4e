# civicfix/repositories.py
"""Typed data access for each entity.

The assignment and workflow code only talks to these classes, never to
``db.session`` directly. ``Repositories.transaction()`` commits a workflow
step as a whole or rolls all of it back.
"""
from contextlib import contextmanager
from typing import Iterable, List, Optional, Set

from .models import (
    db, User, Issue, Worker, Payment, Review,
    ACTIVE_ISSUE_STATUSES, OPEN_PAYMENT_STATUSES,
)

MAX_PAGE_SIZE = 50


class Page:
    """One page of a listing query."""

    def __init__(self, items, total, page, limit):
        self.items = items
        self.total = total
        self.page = page
        self.limit = limit


def _paginate(query, page: int, limit: int) -> Page:
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    page = max(1, page)
    result = query.paginate(page=page, per_page=limit, error_out=False)
    return Page(result.items, result.total, page, limit)


class UserRepository:
    def get(self, user_id: int) -> Optional[User]:
        return db.session.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        return User.query.filter_by(email=email.lower()).first()

    def add(self, user: User) -> User:
        db.session.add(user)
        db.session.flush()
        return user

    def list(self, page: int = 1, limit: int = 10, role: Optional[str] = None) -> Page:
        query = User.query
        if role:
            query = query.filter_by(role=role)
        return _paginate(query.order_by(User.id.desc()), page, limit)

    def count(self, role: Optional[str] = None) -> int:
        query = User.query
        if role:
            query = query.filter_by(role=role)
        return query.count()


class IssueRepository:
    def get(self, issue_id: int) -> Optional[Issue]:
        return db.session.get(Issue, issue_id)

    def add(self, issue: Issue) -> Issue:
        db.session.add(issue)
        db.session.flush()
        return issue

    def list(self, page: int = 1, limit: int = 10, created_by: Optional[int] = None,
             assigned_to: Optional[int] = None, status: Optional[str] = None) -> Page:
        query = Issue.query
        if created_by is not None:
            query = query.filter_by(created_by=created_by)
        if assigned_to is not None:
            query = query.filter_by(assigned_to=assigned_to)
        if status:
            query = query.filter_by(status=status)
        return _paginate(query.order_by(Issue.created_at.desc(), Issue.id.desc()), page, limit)

    def active_for_assignee(self, user_id: int) -> List[Issue]:
        return Issue.query.filter(
            Issue.assigned_to == user_id,
            Issue.status.in_(ACTIVE_ISSUE_STATUSES),
        ).all()

    def busy_assignee_ids(self, user_ids: Iterable[int]) -> Set[int]:
        """User ids, out of ``user_ids``, that hold at least one active issue."""
        user_ids = list(user_ids)
        if not user_ids:
            return set()
        rows = db.session.query(Issue.assigned_to).filter(
            Issue.assigned_to.in_(user_ids),
            Issue.status.in_(ACTIVE_ISSUE_STATUSES),
        ).distinct().all()
        return {row[0] for row in rows}

    def count_by_status(self):
        rows = db.session.query(Issue.status, db.func.count(Issue.id)).group_by(Issue.status).all()
        return {status: count for status, count in rows}


class WorkerRepository:
    def get(self, worker_id: int) -> Optional[Worker]:
        return db.session.get(Worker, worker_id)

    def get_by_user(self, user_id: Optional[int]) -> Optional[Worker]:
        if user_id is None:
            return None
        return Worker.query.filter_by(user_id=user_id).first()

    def add(self, worker: Worker) -> Worker:
        db.session.add(worker)
        db.session.flush()
        return worker

    def delete(self, worker: Worker) -> None:
        db.session.delete(worker)

    def list(self, page: int = 1, limit: int = 10) -> Page:
        return _paginate(Worker.query.order_by(Worker.created_at.desc(), Worker.id.desc()), page, limit)

    def available(self, lock: bool = False) -> List[Worker]:
        query = Worker.query.filter_by(status='available').order_by(Worker.id)
        if lock:
            query = query.with_for_update()
        return query.all()

    def by_status(self, status: str) -> List[Worker]:
        return Worker.query.filter_by(status=status).order_by(Worker.id).all()

    def by_role(self, role: str) -> List[Worker]:
        return Worker.query.join(User, Worker.user_id == User.id).filter(User.role == role).order_by(Worker.id).all()

    def by_location(self, location: str) -> List[Worker]:
        return Worker.query.filter(Worker.location.ilike(f'%{location}%')).order_by(Worker.id).all()

    def with_any_tag(self, tags: Iterable[str]) -> List[Worker]:
        # Tags live in a JSON column, so the intersection is computed here
        wanted = {tag.lower() for tag in tags}
        return [w for w in Worker.query.order_by(Worker.id).all()
                if wanted.intersection(t.lower() for t in (w.tags or []))]


class PaymentRepository:
    def get(self, payment_id: int) -> Optional[Payment]:
        return db.session.get(Payment, payment_id)

    def add(self, payment: Payment) -> Payment:
        db.session.add(payment)
        db.session.flush()
        return payment

    def open_for_issue(self, issue_id: int) -> Optional[Payment]:
        return Payment.query.filter(
            Payment.issue_id == issue_id,
            Payment.status.in_(OPEN_PAYMENT_STATUSES),
        ).first()

    def pending(self) -> List[Payment]:
        return Payment.query.filter_by(status='pending').order_by(Payment.created_at.asc(), Payment.id.asc()).all()

    def list(self, page: int = 1, limit: int = 10, status: Optional[str] = None,
             worker_id: Optional[int] = None) -> Page:
        query = Payment.query
        if status:
            query = query.filter_by(status=status)
        if worker_id is not None:
            query = query.filter_by(worker_id=worker_id)
        return _paginate(query.order_by(Payment.created_at.desc(), Payment.id.desc()), page, limit)


class ReviewRepository:
    def get_by_issue(self, issue_id: int) -> Optional[Review]:
        return Review.query.filter_by(issue_id=issue_id).first()

    def add(self, review: Review) -> Review:
        db.session.add(review)
        db.session.flush()
        return review

    def approved_ratings(self, worker_id: int) -> List[int]:
        rows = db.session.query(Review.rating).filter(
            Review.worker_id == worker_id,
            Review.status == 'approved',
        ).all()
        return [row[0] for row in rows]

    def list(self, page: int = 1, limit: int = 10, worker_id: Optional[int] = None,
             status: Optional[str] = None) -> Page:
        query = Review.query
        if worker_id is not None:
            query = query.filter_by(worker_id=worker_id)
        if status:
            query = query.filter_by(status=status)
        return _paginate(query.order_by(Review.reviewed_at.desc(), Review.id.desc()), page, limit)


class Repositories:
    """The repository bundle handed to the assignment and workflow engines."""

    def __init__(self):
        self.users = UserRepository()
        self.issues = IssueRepository()
        self.workers = WorkerRepository()
        self.payments = PaymentRepository()
        self.reviews = ReviewRepository()

    @contextmanager
    def transaction(self):
        try:
            yield self
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
