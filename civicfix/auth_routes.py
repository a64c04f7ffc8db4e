# civicfix/auth_routes.py
import logging

from flask import Blueprint, jsonify
from werkzeug.security import check_password_hash, generate_password_hash

from . import get_repos
from .auth import issue_token
from .errors import AuthenticationError, ConflictError, ValidationError
from .events import publish_event, USER_REGISTERED
from .helpers import auth_required, get_json_body
from .models import User, Worker

logger = logging.getLogger(__name__)

# Create a Blueprint for authentication
auth = Blueprint('auth', __name__)

# Admins are only created from the CLI (flask create-admin)
SELF_SERVICE_ROLES = ('citizen', 'worker')


@auth.route('/register', methods=['POST'])
def register():
    """Creates a citizen or worker account and returns a bearer token.

    A worker account also gets an empty worker profile.
    """
    data = get_json_body()
    name = (data.get('name') or '').strip()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    role = data.get('role') or 'citizen'

    if not name or not email or not password:
        raise ValidationError('Missing required fields: name, email, password')
    if '@' not in email:
        raise ValidationError('Invalid email address')
    if role not in SELF_SERVICE_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(SELF_SERVICE_ROLES)}")

    repos = get_repos()
    with repos.transaction():
        if repos.users.get_by_email(email):
            raise ConflictError('Email already registered')
        user = repos.users.add(User(
            name=name,
            email=email,
            password_hash=generate_password_hash(password),
            role=role,
        ))
        if role == 'worker':
            repos.workers.add(Worker(user_id=user.id, tags=[]))

    logger.info("Registered %s %s", role, user.email)
    publish_event(USER_REGISTERED, {'id': user.id, 'email': user.email, 'role': user.role})
    return jsonify({'token': issue_token(user), 'user': user.to_dict()}), 201


@auth.route('/login', methods=['POST'])
def login():
    data = get_json_body()
    email = (data.get('email') or '').strip().lower()
    password = data.get('password') or ''
    if not email or not password:
        raise ValidationError('email and password are required')

    user = get_repos().users.get_by_email(email)
    if not user or not check_password_hash(user.password_hash, password):
        raise AuthenticationError('Invalid credentials')
    return jsonify({'token': issue_token(user), 'user': user.to_dict()})


@auth.route('/me', methods=['GET'])
@auth_required
def me(principal):
    user = get_repos().users.get(principal.id)
    data = user.to_dict()
    if user.worker_profile:
        data['worker'] = user.worker_profile.to_dict(include_private=True)
    return jsonify(data)


@auth.route('/logout', methods=['POST'])
@auth_required
def logout(principal):
    # Tokens are stateless; the client simply discards it
    return jsonify({'message': 'Logged out successfully'})
