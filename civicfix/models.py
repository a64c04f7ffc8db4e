# civicfix/models.py
from flask_sqlalchemy import SQLAlchemy
from datetime import datetime, timezone
from flask_login import UserMixin
from decimal import Decimal

db = SQLAlchemy()

USER_ROLES = ('citizen', 'worker', 'admin')
ISSUE_STATUSES = ('pending', 'assigned', 'accepted', 'in_progress', 'completed', 'rejected')
# Issues that keep a worker occupied
ACTIVE_ISSUE_STATUSES = ('assigned', 'accepted', 'in_progress')
WORKER_STATUSES = ('available', 'busy', 'offline', 'on_leave')
WORKER_TYPES = ('individual', 'organization')
PAYMENT_STATUSES = ('pending', 'completed')
# Payments that block a new payment for the same issue
OPEN_PAYMENT_STATUSES = ('pending', 'completed')


def utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return float(value) if value is not None else None


class User(db.Model, UserMixin):
    """A citizen, worker or admin account."""
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='citizen', server_default='citizen')
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    created_issues = db.relationship(
        'Issue',
        backref='creator',
        lazy=True,
        foreign_keys='Issue.created_by',
    )
    worker_profile = db.relationship('Worker', backref='user', uselist=False, lazy=True)

    def __repr__(self):
        return f'<User {self.email}>'

    @property
    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def to_summary(self):
        return {'id': self.id, 'name': self.name, 'email': self.email}


class Issue(db.Model):
    """A civic issue reported by a citizen."""
    __tablename__ = 'issues'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(100), nullable=False)
    location = db.Column(db.String(255), nullable=False)
    photo = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(20), default='pending', server_default='pending', nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    # The worker's *user* id, not the worker profile id
    assigned_to = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    amount = db.Column(db.Numeric(10, 2), nullable=True)
    completion_notes = db.Column(db.Text, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    assignee = db.relationship('User', foreign_keys=[assigned_to], lazy=True)
    review = db.relationship('Review', backref='issue', uselist=False, lazy=True)
    payments = db.relationship('Payment', backref='issue', lazy=True)

    def __repr__(self):
        return f'<Issue {self.id} - {self.title[:20]}>'

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'location': self.location,
            'photo': self.photo,
            'status': self.status,
            'createdBy': self.created_by,
            'assignedTo': self.assigned_to,
            'amount': _money(self.amount),
            'completionNotes': self.completion_notes,
            'completedAt': _iso(self.completed_at),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class Worker(db.Model):
    """A worker profile, one per user with the worker role."""
    __tablename__ = 'workers'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)
    location = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='available', server_default='available')
    type = db.Column(db.String(20), nullable=False, default='individual', server_default='individual')
    organization_name = db.Column(db.String(150), nullable=True)
    phone = db.Column(db.String(30), nullable=True)
    upi_id = db.Column(db.String(320), nullable=True)
    bank_account = db.Column(db.String(50), nullable=True)
    pan_card = db.Column(db.String(20), nullable=True)
    rating = db.Column(db.Float, nullable=True)
    total_jobs = db.Column(db.Integer, nullable=False, default=0, server_default='0')
    total_earnings = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal('0.00'), server_default='0.00')
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    payments = db.relationship('Payment', backref='worker', lazy=True)
    reviews = db.relationship('Review', backref='worker', lazy=True)

    def __repr__(self):
        return f'<Worker {self.id} (user {self.user_id})>'

    @property
    def name(self):
        return self.user.name if self.user else None

    def to_dict(self, include_private=False):
        data = {
            'id': self.id,
            'userId': self.user_id,
            'user': self.user.to_summary() if self.user else None,
            'description': self.description,
            'tags': list(self.tags or []),
            'location': self.location,
            'status': self.status,
            'type': self.type,
            'organizationName': self.organization_name,
            'phone': self.phone,
            'upiId': self.upi_id,
            'rating': self.rating,
            'totalJobs': self.total_jobs,
            'totalEarnings': _money(self.total_earnings),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
        if include_private:
            data['bankAccount'] = self.bank_account
            data['panCard'] = self.pan_card
        return data


class Payment(db.Model):
    """A payout owed to a worker for a completed issue."""
    __tablename__ = 'payments'
    id = db.Column(db.Integer, primary_key=True)
    issue_id = db.Column(db.Integer, db.ForeignKey('issues.id'), nullable=False, index=True)
    worker_id = db.Column(db.Integer, db.ForeignKey('workers.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default='INR', server_default='INR')
    status = db.Column(db.String(20), nullable=False, default='pending', server_default='pending')
    transaction_id = db.Column(db.String(120), nullable=True)
    screenshot_url = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    processed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f'<Payment {self.id} - {self.status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'issueId': self.issue_id,
            'workerId': self.worker_id,
            'amount': _money(self.amount),
            'currency': self.currency,
            'status': self.status,
            'transactionId': self.transaction_id,
            'screenshotUrl': self.screenshot_url,
            'notes': self.notes,
            'processedBy': self.processed_by,
            'processedAt': _iso(self.processed_at),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


class Review(db.Model):
    """An admin's review of a completed issue."""
    __tablename__ = 'reviews'
    id = db.Column(db.Integer, primary_key=True)
    issue_id = db.Column(db.Integer, db.ForeignKey('issues.id'), unique=True, nullable=False)
    worker_id = db.Column(db.Integer, db.ForeignKey('workers.id'), nullable=False, index=True)
    reviewer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='approved', server_default='approved')
    reviewed_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    reviewer = db.relationship('User', foreign_keys=[reviewer_id], lazy=True)

    def __repr__(self):
        return f'<Review issue={self.issue_id} rating={self.rating}>'

    def to_dict(self):
        return {
            'id': self.id,
            'issueId': self.issue_id,
            'workerId': self.worker_id,
            'reviewerId': self.reviewer_id,
            'rating': self.rating,
            'comment': self.comment,
            'status': self.status,
            'reviewedAt': _iso(self.reviewed_at),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
