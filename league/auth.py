"""
Bearer credentials.

A credential is a Fernet token wrapping the user id, keyed from SECRET_KEY.
Flask-Login resolves it on every request through ``load_user_from_request``.
"""
import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from flask import current_app
from flask_login import LoginManager

from .errors import AuthenticationError
from .models import db, User

logger = logging.getLogger(__name__)

login_manager = LoginManager()


def get_encryption_key(secret_key: str) -> bytes:
    """Derive a Fernet key from the app SECRET_KEY."""
    return base64.urlsafe_b64encode(hashlib.sha256(secret_key.encode()).digest())


def _fernet() -> Fernet:
    return Fernet(get_encryption_key(current_app.config['SECRET_KEY']))


def issue_token(user: User) -> str:
    return _fernet().encrypt(user.id.encode()).decode()


def resolve_token(token: str) -> Optional[str]:
    """Return the user id inside ``token``, or None if it is invalid or expired."""
    if not token:
        return None
    try:
        ttl = current_app.config.get('TOKEN_TTL_SECONDS')
        return _fernet().decrypt(token.encode(), ttl=ttl).decode()
    except (InvalidToken, UnicodeError):
        return None


def bearer_token(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


@login_manager.request_loader
def load_user_from_request(request) -> Optional[User]:
    user_id = resolve_token(bearer_token(request.headers.get('Authorization')))
    if user_id is None:
        return None
    return db.session.get(User, user_id)


@login_manager.unauthorized_handler
def unauthorized():
    logger.warning("Rejected request without a valid bearer credential")
    raise AuthenticationError('Missing or invalid bearer token')
