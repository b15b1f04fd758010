import logging
from contextlib import contextmanager

from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from app.core.errors import FatalStoreError, TransientStoreError
from app.database.session import SessionLocal

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (OperationalError, DisconnectionError, InterfaceError, PoolTimeoutError)


def classify_store_error(exc: SQLAlchemyError):
    if isinstance(exc, _TRANSIENT_ERRORS):
        return TransientStoreError(str(exc))
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return TransientStoreError(str(exc))
    return FatalStoreError(str(exc))


@contextmanager
def transaction(session_factory=None):
    """Yield a session whose work commits on success and rolls back on any error.

    SQLAlchemy failures are re-raised as TransientStoreError or FatalStoreError;
    every other exception propagates unchanged after the rollback.
    """
    factory = session_factory or SessionLocal
    db = factory()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise classify_store_error(exc) from exc
    except BaseException:
        db.rollback()
        raise
    finally:
        db.close()


def with_transaction(fn, session_factory=None):
    with transaction(session_factory) as db:
        return fn(db)


__all__ = ["classify_store_error", "transaction", "with_transaction"]
