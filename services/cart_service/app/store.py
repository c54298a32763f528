"""Transactional access to the cart aggregate with retry on write conflicts."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .errors import TransactionConflictError
from .metrics import CART_TRANSACTION_CONFLICTS_TOTAL, CART_TRANSACTION_RETRIES_TOTAL
from .repository import CartRepository

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
TransactionBody = Callable[[CartRepository], Awaitable[T]]

# A stale version column and a lost race on the one-active-cart index both
# mean another writer got there first.
_CONFLICTS = (StaleDataError, IntegrityError)


def _conflict_reason(exc: BaseException | None) -> str:
    if isinstance(exc, StaleDataError):
        return "stale_version"
    if isinstance(exc, IntegrityError):
        return "unique_violation"
    return "unknown"


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = _conflict_reason(exc)
    CART_TRANSACTION_RETRIES_TOTAL.labels(reason=reason).inc()
    _LOGGER.warning(
        "Cart transaction conflict (%s) on attempt %s; retrying",
        reason,
        retry_state.attempt_number,
    )


class CartStore:
    """Runs cart read/modify/write bodies atomically.

    Every attempt gets its own session and database transaction. When the commit
    loses a race, the body is run again from scratch against fresh reads, so a
    body must do all of its reading and writing through the repository it is
    handed and keep side effects out.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        max_attempts: int = 5,
        backoff_seconds: float = 0.02,
    ) -> None:
        self._session_factory = session_factory
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def _attempt(self, body: TransactionBody[T]) -> T:
        async with self._session_factory() as session:
            async with session.begin():
                return await body(CartRepository(session))

    async def transaction(self, body: TransactionBody[T]) -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff_seconds, max=self._backoff_seconds * 10),
            retry=retry_if_exception_type(_CONFLICTS),
            before_sleep=_log_retry,
            reraise=False,
        )
        try:
            return await retrying(self._attempt, body)
        except RetryError as exc:
            CART_TRANSACTION_CONFLICTS_TOTAL.inc()
            _LOGGER.error("Cart transaction gave up after %s attempts", self._max_attempts)
            raise TransactionConflictError(self._max_attempts) from exc.last_attempt.exception()

    async def read(self, body: TransactionBody[T]) -> T:
        """Run a read-only body; nothing is committed."""

        async with self._session_factory() as session:
            return await body(CartRepository(session))
