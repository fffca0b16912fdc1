"""
Unit-of-work helper shared by the write services.

Commits on success. On failure it rolls back; typed ComandaError exceptions are
re-raised unchanged, unique-constraint violations become a ConflictError and any
other storage error becomes a generic InternalError (detail goes to the log only).
"""
import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from comanda.exceptions import ComandaError, ConflictError, InternalError

logger = logging.getLogger(__name__)


@contextmanager
def transaction(session, action: str, conflict_message: str = 'La operación entra en conflicto con datos existentes'):
    try:
        yield session
        session.commit()
    except ComandaError:
        session.rollback()
        raise
    except IntegrityError as e:
        session.rollback()
        logger.warning(f"[DB] integrity error during {action}: {e.orig}")
        raise ConflictError(conflict_message)
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"[DB] storage error during {action}")
        raise InternalError()
    except Exception:
        session.rollback()
        raise
