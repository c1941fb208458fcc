# backend/core/database_retry.py

import asyncio
import logging
from functools import wraps
from typing import Optional, Set

from sqlalchemy.exc import (
    DataError,
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from .config import settings
from .error_handling import TransientBackendError

logger = logging.getLogger(__name__)

# Database error codes that indicate transient conditions
TRANSIENT_ERROR_CODES: Set[str] = {
    # PostgreSQL
    "08000",  # connection_exception
    "08003",  # connection_does_not_exist
    "08006",  # connection_failure
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available
    "57014",  # query_canceled (statement timeout)
    "57P01",  # admin_shutdown
    # SQLite (for testing)
    "database is locked",
    "database table is locked",
    "unable to open database file",
}


def is_transient_error(error: Exception) -> bool:
    """
    Check whether an exception raised at the persistence boundary is transient.

    Connection failures, pool exhaustion, timeouts, lock waits and
    serialization failures are transient. Integrity and data errors are not.
    """
    if isinstance(
        error,
        (OperationalError, InterfaceError, PoolTimeoutError, asyncio.TimeoutError, ConnectionError),
    ):
        return True

    if isinstance(error, DBAPIError):
        if error.connection_invalidated:
            return True
        orig = getattr(error, "orig", None)
        pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        if pgcode:
            return pgcode in TRANSIENT_ERROR_CODES
        error_str = str(orig).lower() if orig is not None else str(error).lower()
        return any(code in error_str for code in TRANSIENT_ERROR_CODES)

    return False


def with_read_retry(max_retries: Optional[int] = None):
    """
    Decorator for idempotent reads on service methods that hold ``self.db``.

    A transient failure rolls back the session and retries the read. Once
    retries are exhausted the failure surfaces as TransientBackendError.
    Never apply this to writes: retrying a point debit could spend twice.

    Example:
        @with_read_retry()
        async def get_reward(self, restaurant_id, reward_id):
            ...
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            retries = settings.read_retry_attempts if max_retries is None else max_retries

            for attempt in range(retries + 1):
                try:
                    return await func(self, *args, **kwargs)
                except Exception as e:
                    if not is_transient_error(e):
                        raise

                    await self.db.rollback()

                    if attempt == retries:
                        logger.error(
                            f"Read {func.__name__} failed after {attempt + 1} attempt(s): {str(e)}"
                        )
                        raise TransientBackendError(
                            details={"operation": func.__name__}
                        ) from e

                    logger.warning(
                        f"Transient database error in {func.__name__} on attempt "
                        f"{attempt + 1}/{retries + 1}, retrying. Error: {str(e)}"
                    )

        return wrapper

    return decorator


def _is_backend_failure(error: Exception) -> bool:
    if isinstance(error, (IntegrityError, DataError)):
        return False
    return isinstance(error, (SQLAlchemyError, asyncio.TimeoutError, ConnectionError))


class WriteTransaction:
    """
    Context manager for a single all-or-nothing write.

    Commits on a clean exit. Any exception rolls the session back, so an
    abandoned or failed call leaves nothing behind. Backend failures
    surface as TransientBackendError and are never retried.

    Example:
        async with WriteTransaction(self.db, "redeem_reward"):
            await self.db.execute(debit)
            self.db.add(redemption)
    """

    def __init__(self, session, operation: str):
        self.session = session
        self.operation = operation

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_val is None:
            try:
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                self._raise_backend_error(e)
            return False

        await self.session.rollback()

        if _is_backend_failure(exc_val):
            self._raise_backend_error(exc_val)

        # Domain errors, constraint violations and cancellation propagate unchanged
        return False

    def _raise_backend_error(self, error: Exception):
        logger.error(f"Write {self.operation} failed and was rolled back: {str(error)}")
        if _is_backend_failure(error):
            raise TransientBackendError(details={"operation": self.operation}) from error
        raise error
