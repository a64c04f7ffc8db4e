# civicfix/payment_routes.py
from flask import Blueprint, current_app, jsonify, request

from . import get_repos
from . import workflow
from .events import publish_event, PAYMENT_COMPLETED
from .helpers import (
    auth_required, admin_required, get_json_body, page_args, page_response, parse_amount, parse_int,
)

payments = Blueprint('payments', __name__)

UPI_INSTRUCTIONS = (
    'Click any link to open your UPI app with pre-filled details. '
    'After payment, update the payment status manually.'
)


def _with_context(payment):
    data = payment.to_dict()
    data['issue'] = {'id': payment.issue.id, 'title': payment.issue.title, 'status': payment.issue.status}
    data['worker'] = {'id': payment.worker.id, 'name': payment.worker.name, 'upiId': payment.worker.upi_id}
    return data


# --- Authenticated users ---

@payments.route('/<int:payment_id>', methods=['GET'])
@auth_required
def get_payment(payment_id, principal):
    payment, upi_link = workflow.get_payment(get_repos(), payment_id)
    return jsonify({'payment': _with_context(payment), 'upiLink': upi_link})


@payments.route('/<int:payment_id>/upi-links', methods=['GET'])
@auth_required
def get_upi_links(payment_id, principal):
    result = workflow.payment_upi_links(get_repos(), payment_id)
    payment = result['payment']
    worker = result['worker']
    return jsonify({
        'payment': {'id': payment.id, 'amount': float(payment.amount), 'status': payment.status},
        'worker': {'name': worker.name, 'upiId': worker.upi_id, 'provider': result['provider']},
        'upiLinks': result['upi_links'],
        'instructions': UPI_INSTRUCTIONS,
    })


# --- Admin only ---

@payments.route('/create', methods=['POST'])
@admin_required
def create_payment(principal):
    data = get_json_body()
    payment, upi_link = workflow.create_payment(
        get_repos(), principal,
        issue_id=parse_int(data.get('issueId'), 'issueId'),
        amount=parse_amount(data.get('amount')),
        currency=current_app.config['PAYMENT_CURRENCY'],
    )
    return jsonify({
        'message': 'Payment record created. Use UPI link to make payment.',
        'payment': _with_context(payment),
        'upiLink': upi_link,
        'nextSteps': workflow.CREATE_PAYMENT_NEXT_STEPS,
    })


@payments.route('/<int:payment_id>/complete', methods=['POST'])
@admin_required
def complete_payment(payment_id, principal):
    data = get_json_body()
    payment = workflow.mark_payment_complete(
        get_repos(), principal, payment_id,
        transaction_id=data.get('transactionId'),
        screenshot_url=data.get('screenshotUrl'),
        notes=data.get('notes'),
    )
    publish_event(PAYMENT_COMPLETED, payment.to_dict())
    return jsonify({'message': 'Payment marked as completed', 'payment': payment.to_dict()})


@payments.route('/pending', methods=['GET'])
@admin_required
def pending_payments(principal):
    total, entries = workflow.pending_payments(get_repos())
    items = []
    for payment, links in entries:
        data = _with_context(payment)
        data['upiLinks'] = links
        items.append(data)
    return jsonify({'totalPending': float(total), 'count': len(items), 'payments': items})


@payments.route('', methods=['GET'])
@admin_required
def list_payments(principal):
    page, limit = page_args()
    result = get_repos().payments.list(
        page=page,
        limit=limit,
        status=request.args.get('status'),
        worker_id=parse_int(request.args.get('workerId'), 'workerId'),
    )
    return jsonify(page_response('payments', result, _with_context))
