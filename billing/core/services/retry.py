"""Bounded retry primitives shared by provider calls and payment lookups.

A ``RetryPolicy`` fixes the attempt budget and the delay between attempts.
``retry_until`` polls a coroutine until it yields a value, the budget runs
out, or the caller's ``CancellationToken`` fires; the last two both end in
``None`` rather than an exception.

Usage::

    policy = RetryPolicy(max_attempts=5, base_delay=2.0, multiplier=1.0, jitter=0.0)
    invoice = await retry_until(lookup_invoice, policy, token=token)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import random
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff for a retried operation.

    With ``multiplier=1.0`` and ``jitter=0.0`` the delay is fixed at
    ``base_delay``; otherwise it grows exponentially up to ``max_delay`` and
    is spread by +/- ``jitter``.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")

    def compute_delay(self, attempt: int) -> float:
        """
        Compute the wait after a failed attempt.

        Args:
            attempt (int): The attempt that just failed (1-based).

        Returns:
            float: Seconds to wait before the next attempt.
        """
        base = min(self.base_delay * (self.multiplier ** (attempt - 1)), self.max_delay)
        if not self.jitter:
            return base
        return base * random.uniform(1 - self.jitter, 1 + self.jitter)


class CancellationToken:
    """Cooperative cancellation for retry waits."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self, timeout: float) -> bool:
        """
        Wait up to ``timeout`` seconds.

        Returns:
            bool: True if the token was cancelled before the timeout elapsed.
        """
        if self._event.is_set():
            return True
        if timeout <= 0:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True


async def retry_until(
    operation: Callable[[int], Awaitable[T | None]],
    policy: RetryPolicy,
    *,
    token: CancellationToken | None = None,
    retry_on: tuple[type[BaseException], ...] = (),
    logger: logging.Logger | None = None,
    description: str = "operation",
) -> T | None:
    """
    Call ``operation`` until it returns a value or the attempt budget runs out.

    Args:
        operation: Coroutine function taking the 1-based attempt number. A
            ``None`` result means "not available yet".
        policy: Attempt budget and delays.
        token: Optional cancellation token; a cancelled wait ends the loop.
        retry_on: Exception types treated like a ``None`` result. Anything
            else propagates immediately.
        logger: Logger for per-attempt diagnostics.
        description: Label used in log messages.

    Returns:
        The first non-None result, or None when attempts are exhausted or the
        wait was cancelled.
    """
    token = token or CancellationToken()

    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = await operation(attempt)
        except retry_on as exc:
            if logger:
                logger.warning(
                    f"{description} failed; attempt {attempt}/{policy.max_attempts}; "
                    f"error={exc.__class__.__name__}: {exc}"
                )
            result = None

        if result is not None:
            return result

        if attempt == policy.max_attempts:
            break

        wait = policy.compute_delay(attempt)
        if logger:
            logger.info(
                f"{description} not ready; attempt {attempt}/{policy.max_attempts}; "
                f"wait={wait:.1f}s"
            )
        if await token.wait(wait):
            if logger:
                logger.warning(f"{description} interrupted after attempt {attempt}")
            return None

    if logger:
        logger.warning(
            f"{description} gave up after {policy.max_attempts} attempts"
        )
    return None


__all__ = [
    "CancellationToken",
    "RetryPolicy",
    "retry_until",
]
