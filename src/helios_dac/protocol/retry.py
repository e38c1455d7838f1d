"""Bounded retry policy shared by every control exchange.

Usage::

    policy = RetryPolicy(max_attempts=3, retry_on=(ProtocolError,))
    version = await policy.run(query_firmware)
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry an async attempt a fixed number of times.

    Attributes:
        max_attempts: Total attempts including the first.
        retry_on: Exception types that consume an attempt and retry.
        give_up_on: Exception types never retried, even if they subclass
            something in ``retry_on``.
        retry_if: Predicate on a successful result; True means the result
            is a retryable condition (e.g. device busy). When attempts run
            out on such a result, the last result is returned.
    """

    max_attempts: int
    retry_on: tuple[type[BaseException], ...] = ()
    give_up_on: tuple[type[BaseException], ...] = ()
    retry_if: Callable[[Any], bool] | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    async def run(self, attempt: Callable[[], Awaitable[T]], label: str = "exchange") -> T:
        last_exc: BaseException | None = None
        result: Any = None
        for n in range(1, self.max_attempts + 1):
            try:
                result = await attempt()
            except self.give_up_on:
                raise
            except self.retry_on as exc:
                last_exc = exc
                logger.debug("%s attempt %d/%d failed: %s", label, n, self.max_attempts, exc)
                continue
            if self.retry_if is not None and self.retry_if(result):
                last_exc = None
                continue
            return result

        if last_exc is not None:
            logger.debug("%s gave up after %d attempts", label, self.max_attempts)
            raise last_exc
        return result
