import logging
from typing import Optional, Tuple

from .auth import issue_token
from .base_service import BaseService
from .codes import new_id
from .errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from .models import db, non_negative_int, User, DATE_PATTERN

logger = logging.getLogger(__name__)


def normalize_email(email) -> str:
    return (email or '').strip().lower()


class IdentityDirectory(BaseService):
    """
    Registered users and their credentials.

    Login is by email plus birthdate; the birthdate is compared as an exact
    string and acts as the only secret.
    """

    def register(self, email: str, name: str, birthdate: str) -> Tuple[User, str]:
        """Create a user and return it with a fresh bearer token."""
        email = normalize_email(email)
        name = (name or '').strip() if isinstance(name, str) else ''

        missing = [field for field, value in (('email', email), ('name', name), ('birthdate', birthdate))
                   if not value]
        if missing:
            raise ValidationError('Missing required fields', detail={'fields': missing})
        if '@' not in email:
            raise ValidationError('Email address is not valid')
        if not isinstance(birthdate, str) or not DATE_PATTERN.match(birthdate):
            raise ValidationError('birthdate must look like YYYY-MM-DD')

        if self.find_by_email(email):
            raise ConflictError('A user with this email already exists')

        user = User(id=new_id('user'), email=email, name=name, birthdate=birthdate)
        db.session.add(user)
        self._commit('register user')

        logger.info(f"Registered user {user.id}")
        return user, issue_token(user)

    def login(self, email: str, birthdate: str) -> Tuple[User, str]:
        user = self.find_by_email(normalize_email(email))
        if user is None or not birthdate or user.birthdate != birthdate:
            logger.warning("Rejected login attempt")
            raise AuthenticationError('Invalid email or birthdate')
        return user, issue_token(user)

    def find_by_email(self, email: str) -> Optional[User]:
        return User.query.filter_by(email=email).first()

    def get_user(self, user_id: str) -> User:
        user = db.session.get(User, user_id) if user_id else None
        if user is None:
            raise NotFoundError('User not found')
        return user

    def update_profile(self, user: User, fields: dict) -> User:
        """Apply profile changes. Email and birthdate are not editable here."""
        unknown = sorted(set(fields) - set(User.PROFILE_FIELDS))
        if unknown:
            raise ValidationError('Unknown profile fields', detail={'fields': unknown})

        if 'name' in fields:
            name = fields['name']
            if not isinstance(name, str) or not name.strip():
                raise ValidationError('Name cannot be empty')
            fields = dict(fields, name=name.strip())
        if fields.get('age') is not None:
            fields = dict(fields, age=non_negative_int(fields['age'], 'age'))

        for field, value in fields.items():
            setattr(user, field, value)
        self._commit('update profile')
        return user
