# civicfix/workflow.py
"""Issue completion, admin review and worker payout.

An assigned worker accepts, starts and completes an issue. An admin then
reviews it, which feeds the worker's rating, and opens a pending payment. The
admin pays through a UPI app outside this system and marks the payment
completed, which credits the worker's earnings.

Every step runs in a single transaction.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from .errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .models import Payment, Review, utcnow
from .upi import generate_upi_link, get_all_provider_links, get_provider_from_upi_id, validate_upi_id

logger = logging.getLogger(__name__)

APPROVE_NEXT_STEPS = [
    'Click any UPI link to open your UPI app',
    'Complete the payment',
    'Update payment status using POST /payments/:paymentId/complete',
]
CREATE_PAYMENT_NEXT_STEPS = [
    'Click the UPI link to open your UPI app',
    'Complete the payment',
    'Update payment status using /payments/:paymentId/complete',
]


def _get_issue(repos, issue_id):
    issue = repos.issues.get(issue_id)
    if not issue:
        raise NotFoundError('Issue not found')
    return issue


def _assigned_worker(repos, issue):
    return repos.workers.get_by_user(issue.assigned_to)


def _require_assigned_worker(repos, issue, principal, action):
    worker = _assigned_worker(repos, issue)
    if not worker or worker.user_id != principal.id:
        raise AuthorizationError(f'Only assigned worker can {action}')
    return worker


def _require_admin(principal):
    if not principal.is_admin:
        raise AuthorizationError('Admin access required')


def _validate_rating(rating):
    if (isinstance(rating, bool) or not isinstance(rating, (int, float))
            or not 1 <= rating <= 5 or int(rating) != rating):
        raise ValidationError('Rating must be a whole number from 1 to 5')
    return int(rating)


def _validate_amount(amount):
    if amount is not None and amount < 0:
        raise ValidationError('Amount cannot be negative')
    return amount


def payment_note(issue):
    return f"Payment for issue: {issue.title}"


def upi_params(worker, amount, issue, currency='INR'):
    return {
        'upi_id': worker.upi_id,
        'name': worker.name,
        'amount': amount,
        'currency': currency,
        'note': payment_note(issue),
    }


def average_rating(ratings):
    """Mean rating, rounded half-up to one decimal. None for no ratings."""
    if not ratings:
        return None
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def recompute_worker_rating(repos, worker):
    worker.rating = average_rating(repos.reviews.approved_ratings(worker.id))
    return worker.rating


def _transition(repos, issue_id, principal, expected, new_status, action):
    with repos.transaction():
        issue = _get_issue(repos, issue_id)
        _require_assigned_worker(repos, issue, principal, action)
        if issue.status != expected:
            raise ConflictError(
                f'Issue must be {expected.replace("_", " ")} to {action}',
                currentStatus=issue.status,
            )
        issue.status = new_status
    logger.info("Issue #%s moved to %s by user %s", issue.id, new_status, principal.id)
    return issue


def accept_issue(repos, issue_id, principal):
    return _transition(repos, issue_id, principal, 'assigned', 'accepted', 'accept')


def start_issue(repos, issue_id, principal):
    return _transition(repos, issue_id, principal, 'accepted', 'in_progress', 'start work')


def mark_as_completed(repos, issue_id, principal, completion_notes=None, amount=None):
    """Worker closes an in-progress issue and becomes available again."""
    _validate_amount(amount)
    with repos.transaction():
        issue = _get_issue(repos, issue_id)
        worker = _require_assigned_worker(repos, issue, principal, 'mark as completed')
        if issue.status != 'in_progress':
            raise ConflictError(
                'Issue must be in progress to mark as completed',
                currentStatus=issue.status,
            )

        issue.status = 'completed'
        issue.completed_at = utcnow()
        if completion_notes:
            issue.completion_notes = completion_notes
        issue.amount = amount or issue.amount or Decimal('0')
        worker.status = 'available'

    logger.info("Issue #%s completed by worker %s", issue.id, worker.id)
    return issue


def _upsert_review(repos, issue, worker, principal, rating, comment):
    review = repos.reviews.get_by_issue(issue.id)
    if review:
        review.rating = rating
        review.comment = comment
        review.status = 'approved'
        review.reviewed_at = utcnow()
    else:
        review = repos.reviews.add(Review(
            issue_id=issue.id,
            worker_id=worker.id,
            reviewer_id=principal.id,
            rating=rating,
            comment=comment,
            status='approved',
            reviewed_at=utcnow(),
        ))
    recompute_worker_rating(repos, worker)
    return review


def _require_no_open_payment(repos, issue):
    existing = repos.payments.open_for_issue(issue.id)
    if existing:
        raise ConflictError('Payment already exists', paymentId=existing.id)


def approve_and_pay(repos, issue_id, principal, rating=None, comment=None, amount=None, currency='INR'):
    """Admin sign-off: optional review, then a pending payment and UPI links.

    Returns a dict with ``issue``, ``worker``, ``review``, ``payment`` and
    ``upi_links``. The payment is only created for a positive amount.
    """
    _require_admin(principal)
    _validate_amount(amount)
    with repos.transaction():
        issue = _get_issue(repos, issue_id)
        if issue.status != 'completed':
            raise ConflictError('Issue must be completed first', currentStatus=issue.status)
        worker = _assigned_worker(repos, issue)
        if not worker:
            raise ValidationError('Issue has no assigned worker')

        review = None
        if rating is not None:
            review = _upsert_review(repos, issue, worker, principal, _validate_rating(rating), comment)

        payment_amount = amount or issue.amount or Decimal('0')
        payment = None
        upi_links = None
        if payment_amount > 0:
            _require_no_open_payment(repos, issue)
            payment = repos.payments.add(Payment(
                issue_id=issue.id,
                worker_id=worker.id,
                amount=payment_amount,
                currency=currency,
                status='pending',
                processed_by=principal.id,
            ))
            if worker.upi_id:
                upi_links = get_all_provider_links(upi_params(worker, payment_amount, issue, currency))

    logger.info(
        "Issue #%s approved by admin %s (rating=%s, payment=%s)",
        issue.id, principal.id, rating, payment.id if payment else None,
    )
    return {
        'issue': issue,
        'worker': worker,
        'review': review,
        'payment': payment,
        'upi_links': upi_links,
    }


def create_review(repos, principal, issue_id, rating, comment=None):
    _require_admin(principal)
    if not issue_id or rating is None:
        raise ValidationError('issueId and rating are required')
    rating = _validate_rating(rating)

    with repos.transaction():
        issue = _get_issue(repos, issue_id)
        if issue.status != 'completed':
            raise ConflictError('Issue must be completed before review', currentStatus=issue.status)
        worker = _assigned_worker(repos, issue)
        if not worker:
            raise ValidationError('Issue has no assigned worker')
        review = _upsert_review(repos, issue, worker, principal, rating, comment)

    logger.info("Review for issue #%s saved, worker %s rating now %s", issue.id, worker.id, worker.rating)
    return review


def create_payment(repos, principal, issue_id, amount, currency='INR'):
    """Opens a payment for a completed, reviewed issue. Returns (payment, upi_link)."""
    _require_admin(principal)
    if not issue_id or not amount or amount <= 0:
        raise ValidationError('Valid issueId and amount are required')

    with repos.transaction():
        issue = _get_issue(repos, issue_id)
        if issue.status != 'completed':
            raise ConflictError('Issue must be completed before payment', currentStatus=issue.status)
        worker = _assigned_worker(repos, issue)
        if not worker:
            raise ValidationError('Issue has no assigned worker')
        if not worker.upi_id:
            raise ValidationError(
                'Worker UPI ID not set. Please update worker profile with UPI ID.',
                workerId=worker.id,
            )
        review = repos.reviews.get_by_issue(issue.id)
        if not review or review.status != 'approved':
            raise ValidationError('Issue must be reviewed and approved before payment')
        _require_no_open_payment(repos, issue)

        payment = repos.payments.add(Payment(
            issue_id=issue.id,
            worker_id=worker.id,
            amount=amount,
            currency=currency,
            status='pending',
            processed_by=principal.id,
        ))
        upi_link = generate_upi_link(**upi_params(worker, amount, issue, currency))

    logger.info("Payment %s of %s opened for issue #%s", payment.id, amount, issue.id)
    return payment, upi_link


def mark_payment_complete(repos, principal, payment_id, transaction_id=None, screenshot_url=None, notes=None):
    """Records a UPI payment made outside the system and credits the worker."""
    _require_admin(principal)
    with repos.transaction():
        payment = repos.payments.get(payment_id)
        if not payment:
            raise NotFoundError('Payment not found')
        if payment.status == 'completed':
            raise ConflictError('Payment already completed')

        payment.status = 'completed'
        payment.transaction_id = transaction_id or None
        payment.screenshot_url = screenshot_url or None
        payment.notes = notes or None
        payment.processed_by = principal.id
        payment.processed_at = utcnow()

        worker = payment.worker
        worker.total_earnings = (worker.total_earnings or Decimal('0')) + payment.amount

    logger.info("Payment %s completed, worker %s earned %s", payment.id, worker.id, payment.amount)
    return payment


def get_payment(repos, payment_id):
    """Returns (payment, upi_link); the link is only set while payment is pending."""
    payment = repos.payments.get(payment_id)
    if not payment:
        raise NotFoundError('Payment not found')
    upi_link = None
    if payment.status == 'pending' and payment.worker.upi_id:
        upi_link = generate_upi_link(**upi_params(payment.worker, payment.amount, payment.issue, payment.currency))
    return payment, upi_link


def payment_upi_links(repos, payment_id):
    payment = repos.payments.get(payment_id)
    if not payment:
        raise NotFoundError('Payment not found')
    if payment.status == 'completed':
        raise ConflictError('Payment already completed')
    worker = payment.worker
    if not worker.upi_id:
        raise ValidationError('Worker UPI ID not set', workerId=worker.id)
    if not validate_upi_id(worker.upi_id):
        raise ValidationError('Invalid UPI ID format')

    return {
        'payment': payment,
        'worker': worker,
        'provider': get_provider_from_upi_id(worker.upi_id) or 'Unknown',
        'upi_links': get_all_provider_links(upi_params(worker, payment.amount, payment.issue, payment.currency)),
    }


def pending_payments(repos):
    """Pending payments oldest first, each with its UPI links, plus the total owed."""
    payments = repos.payments.pending()
    entries = []
    for payment in payments:
        links = None
        if payment.worker.upi_id:
            links = get_all_provider_links(upi_params(payment.worker, payment.amount, payment.issue, payment.currency))
        entries.append((payment, links))
    total = sum((p.amount for p in payments), Decimal('0'))
    return total, entries
