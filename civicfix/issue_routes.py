# civicfix/issue_routes.py
import logging

from flask import Blueprint, current_app, jsonify, request

from . import get_repos
from . import workflow
from .errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from .events import publish_event, ISSUE_CREATED, ISSUE_UPDATED, ISSUE_COMPLETED
from .helpers import auth_required, admin_required, get_json_body, page_args, page_response, parse_amount
from .models import Issue, ISSUE_STATUSES

logger = logging.getLogger(__name__)

issues = Blueprint('issues', __name__)

REQUIRED_FIELDS = ('title', 'description', 'category', 'location')
# Fields the reporting citizen may change while the issue is still pending
OWNER_EDITABLE = ('title', 'description', 'category', 'location', 'photo')


def _get_visible_issue(issue_id, principal):
    issue = get_repos().issues.get(issue_id)
    if not issue:
        raise NotFoundError('Issue not found')
    if not (principal.is_admin or issue.created_by == principal.id or issue.assigned_to == principal.id):
        raise AuthorizationError('You do not have access to this issue')
    return issue


@issues.route('', methods=['POST'])
@auth_required
def create_issue(principal):
    data = get_json_body()
    missing = [field for field in REQUIRED_FIELDS if not data.get(field)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(REQUIRED_FIELDS)}", missing=missing)

    repos = get_repos()
    with repos.transaction():
        issue = repos.issues.add(Issue(
            title=data['title'],
            description=data['description'],
            category=data['category'],
            location=data['location'],
            photo=data.get('photo'),
            created_by=principal.id,
            status='pending',
        ))

    logger.info("Issue #%s reported by user %s", issue.id, principal.id)
    publish_event(ISSUE_CREATED, issue.to_dict())
    return jsonify(issue.to_dict()), 201


@issues.route('', methods=['GET'])
@auth_required
def list_issues(principal):
    """Citizens see their own issues, workers their assigned ones, admins all."""
    page, limit = page_args()
    filters = {}
    if principal.is_admin:
        filters['status'] = request.args.get('status')
    elif principal.is_worker:
        filters['assigned_to'] = principal.id
    else:
        filters['created_by'] = principal.id
    result = get_repos().issues.list(page=page, limit=limit, **filters)
    return jsonify(page_response('issues', result, Issue.to_dict))


@issues.route('/<int:issue_id>', methods=['GET'])
@auth_required
def get_issue(issue_id, principal):
    return jsonify(_get_visible_issue(issue_id, principal).to_dict())


@issues.route('/<int:issue_id>', methods=['PUT'])
@auth_required
def edit_issue(issue_id, principal):
    """Owner may edit descriptive fields while pending; admins may edit any field."""
    data = get_json_body()
    repos = get_repos()
    with repos.transaction():
        issue = repos.issues.get(issue_id)
        if not issue:
            raise NotFoundError('Issue not found')

        if principal.is_admin:
            if 'status' in data and data['status'] not in ISSUE_STATUSES:
                raise ValidationError(f"status must be one of: {', '.join(ISSUE_STATUSES)}")
            if 'amount' in data:
                issue.amount = parse_amount(data['amount'])
            if data.get('status'):
                issue.status = data['status']
        elif issue.created_by == principal.id:
            if issue.status != 'pending':
                raise ConflictError('Issue can no longer be edited once assigned', currentStatus=issue.status)
        else:
            raise AuthorizationError('You can only update your own issues')

        for field in OWNER_EDITABLE:
            if data.get(field) is not None:
                setattr(issue, field, data[field])

    publish_event(ISSUE_UPDATED, issue.to_dict())
    return jsonify(issue.to_dict())


# --- Completion flow ---

@issues.route('/<int:issue_id>/accept', methods=['POST'])
@auth_required
def accept_issue(issue_id, principal):
    issue = workflow.accept_issue(get_repos(), issue_id, principal)
    publish_event(ISSUE_UPDATED, issue.to_dict())
    return jsonify({'message': 'Issue accepted', 'issue': issue.to_dict()})


@issues.route('/<int:issue_id>/start', methods=['POST'])
@auth_required
def start_issue(issue_id, principal):
    issue = workflow.start_issue(get_repos(), issue_id, principal)
    publish_event(ISSUE_UPDATED, issue.to_dict())
    return jsonify({'message': 'Work started on issue', 'issue': issue.to_dict()})


@issues.route('/<int:issue_id>/complete', methods=['POST'])
@auth_required
def complete_issue(issue_id, principal):
    data = get_json_body()
    issue = workflow.mark_as_completed(
        get_repos(), issue_id, principal,
        completion_notes=data.get('completionNotes'),
        amount=parse_amount(data.get('amount')),
    )
    publish_event(ISSUE_COMPLETED, issue.to_dict())
    return jsonify({
        'message': 'Issue marked as completed. Awaiting admin review.',
        'issue': issue.to_dict(),
    })


@issues.route('/<int:issue_id>/approve-and-pay', methods=['POST'])
@admin_required
def approve_and_pay(issue_id, principal):
    data = get_json_body()
    result = workflow.approve_and_pay(
        get_repos(), issue_id, principal,
        rating=data.get('rating'),
        comment=data.get('comment'),
        amount=parse_amount(data.get('amount')),
        currency=current_app.config['PAYMENT_CURRENCY'],
    )
    payment = result['payment']
    review = result['review']
    if payment:
        message = 'Issue approved. Payment record created. Use UPI links to make payment.'
    else:
        message = 'Issue approved. No payment created because the amount is zero.'
    return jsonify({
        'message': message,
        'issue': result['issue'].to_dict(),
        'review': review.to_dict() if review else None,
        'payment': payment.to_dict() if payment else None,
        'upiLinks': result['upi_links'],
        'nextSteps': workflow.APPROVE_NEXT_STEPS if payment else [],
    })
