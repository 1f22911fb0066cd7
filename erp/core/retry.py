"""
Bounded retry for transient database failures.

Only connection-level errors are retried; anything else propagates on the
first attempt. Each retry rolls the session back first, so the decorated
coroutine must be a complete unit of work.
"""
import asyncio
import functools
import random

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from erp.core.config import settings
from erp.error_handlers import TransientStoreError
from erp.logging_config import get_logger

logger = get_logger("retry")


def is_transient(exc: BaseException) -> bool:
    """Connection drops, timeouts and server restarts."""
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return False


def backoff_delay(attempt: int, base: float, cap: float) -> float:
    """Capped exponential backoff with jitter; attempt starts at 1."""
    delay = min(cap, base * (2 ** (attempt - 1)))
    return delay * random.uniform(0.5, 1.0)


def transient_retry(func):
    """
    Retry a service method on transient store errors.

    The method's owner must expose ``self.session`` (an AsyncSession).
    """

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        attempts = max(1, settings.db_retry_attempts + 1)
        for attempt in range(1, attempts + 1):
            try:
                return await func(self, *args, **kwargs)
            except (OperationalError, InterfaceError, DBAPIError) as exc:
                if not is_transient(exc):
                    raise
                await self.session.rollback()
                if attempt == attempts:
                    logger.error(
                        "%s failed after %d attempts: %s", func.__name__, attempt, exc
                    )
                    raise TransientStoreError(str(exc.orig or exc), attempts=attempt) from exc
                wait = backoff_delay(attempt, settings.db_retry_base_delay, settings.db_retry_max_delay)
                logger.warning(
                    "Transient database error in %s, retrying in %.2fs (attempt %d/%d)",
                    func.__name__, wait, attempt, attempts - 1
                )
                await asyncio.sleep(wait)

    return wrapper
