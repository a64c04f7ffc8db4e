# civicfix/auth.py
import logging
from dataclasses import dataclass

from flask import current_app, jsonify
from flask_login import LoginManager
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

from .models import db, User

logger = logging.getLogger(__name__)

TOKEN_SALT = 'auth-token'

login_manager = LoginManager()


@dataclass(frozen=True)
class Principal:
    """The authenticated caller, passed explicitly into every workflow call."""
    id: int
    email: str
    role: str

    @property
    def is_admin(self):
        return self.role == 'admin'

    @property
    def is_worker(self):
        return self.role == 'worker'

    @classmethod
    def from_user(cls, user):
        return cls(id=user.id, email=user.email, role=user.role)


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def issue_token(user):
    return _serializer().dumps({'id': user.id, 'email': user.email, 'role': user.role})


def read_token(token):
    """Returns the token payload, or None if it is forged or expired."""
    try:
        return _serializer().loads(token, max_age=current_app.config['TOKEN_MAX_AGE'])
    except SignatureExpired:
        logger.info("Rejected expired token")
    except BadSignature:
        logger.info("Rejected token with a bad signature")
    return None


@login_manager.request_loader
def load_user_from_request(request):
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    data = read_token(token.strip())
    if not data or 'id' not in data:
        return None
    return db.session.get(User, data['id'])


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Authentication required'}), 401
