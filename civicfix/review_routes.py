# civicfix/review_routes.py
from flask import Blueprint, jsonify, request

from . import get_repos
from . import workflow
from .errors import NotFoundError
from .helpers import admin_required, get_json_body, page_args, page_response, parse_int

reviews = Blueprint('reviews', __name__)


def _with_context(review):
    data = review.to_dict()
    data['issue'] = {'id': review.issue.id, 'title': review.issue.title, 'status': review.issue.status}
    data['reviewer'] = review.reviewer.to_summary() if review.reviewer else None
    data['worker'] = {'id': review.worker.id, 'name': review.worker.name} if review.worker else None
    return data


@reviews.route('', methods=['POST'])
@admin_required
def create_review(principal):
    data = get_json_body()
    review = workflow.create_review(
        get_repos(), principal,
        issue_id=parse_int(data.get('issueId'), 'issueId'),
        rating=data.get('rating'),
        comment=data.get('comment'),
    )
    return jsonify({'message': 'Review created successfully', 'review': review.to_dict()})


@reviews.route('/issue/<int:issue_id>', methods=['GET'])
@admin_required
def get_review_by_issue(issue_id, principal):
    review = get_repos().reviews.get_by_issue(issue_id)
    if not review:
        raise NotFoundError('Review not found')
    return jsonify({'review': _with_context(review)})


@reviews.route('', methods=['GET'])
@admin_required
def list_reviews(principal):
    page, limit = page_args()
    result = get_repos().reviews.list(
        page=page,
        limit=limit,
        worker_id=parse_int(request.args.get('workerId'), 'workerId'),
        status=request.args.get('status'),
    )
    return jsonify(page_response('reviews', result, _with_context))
