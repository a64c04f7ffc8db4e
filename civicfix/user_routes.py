# civicfix/user_routes.py
from flask import Blueprint, jsonify, request

from . import get_repos
from .errors import ConflictError, NotFoundError, ValidationError
from .helpers import admin_required, get_json_body, page_args, page_response
from .models import User

users = Blueprint('users', __name__)


@users.route('', methods=['GET'])
@admin_required
def list_users(principal):
    page, limit = page_args()
    result = get_repos().users.list(page=page, limit=limit, role=request.args.get('role'))
    return jsonify(page_response('users', result, User.to_dict))


@users.route('/<int:user_id>', methods=['GET'])
@admin_required
def get_user(user_id, principal):
    user = get_repos().users.get(user_id)
    if not user:
        raise NotFoundError('User not found')
    return jsonify(user.to_dict())


@users.route('/<int:user_id>', methods=['PUT'])
@admin_required
def update_user(user_id, principal):
    """Admins may correct a user's name or email. Roles never change here."""
    data = get_json_body()
    repos = get_repos()
    with repos.transaction():
        user = repos.users.get(user_id)
        if not user:
            raise NotFoundError('User not found')
        if 'role' in data and data['role'] != user.role:
            raise ValidationError('User role cannot be changed')
        if data.get('name'):
            user.name = data['name'].strip()
        if data.get('email'):
            email = data['email'].strip().lower()
            existing = repos.users.get_by_email(email)
            if existing and existing.id != user.id:
                raise ConflictError('Email already registered')
            user.email = email
    return jsonify(user.to_dict())
