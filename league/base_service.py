"""
Base service for the league domain.

Services load one aggregate, call one method on it and commit once. The
helpers here cover the shared parts: the commit itself, mapping database
failures onto the error taxonomy, and invite code allocation.
"""
import logging
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from .codes import generate_invite_code
from .errors import ConflictError, InternalError
from .models import db

logger = logging.getLogger(__name__)

INVITE_CODE_ATTEMPTS = 5


class BaseService:

    def _commit(self, operation: str):
        """Commit the session, rolling back and raising a ServiceError on failure."""
        try:
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            logger.warning(f"[{self.__class__.__name__}] Stale write rejected during {operation}")
            raise ConflictError('The record was changed by another request, reload and retry')
        except IntegrityError as e:
            db.session.rollback()
            logger.warning(f"[{self.__class__.__name__}] Integrity error during {operation}: {e.orig}")
            raise ConflictError('The change conflicts with an existing record')
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception(f"[{self.__class__.__name__}] Commit failed during {operation}")
            raise InternalError(f'Failed to {operation}')

    def _allocate_invite_code(self, length: int, taken: Callable[[str], bool]) -> str:
        """Draw random codes until one is unused."""
        for _ in range(INVITE_CODE_ATTEMPTS):
            code = generate_invite_code(length)
            if not taken(code):
                return code
        raise InternalError('Could not allocate a unique invite code')
