"""Bounded retry policy for collaborator calls."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

T = TypeVar("T")


class RetryExhausted(Exception):
    """Every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"gave up after {attempts} attempts: {last_error}")


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-delay retry with a hard cap on attempts.

    Only exceptions accepted by ``is_retryable`` trigger another attempt;
    anything else propagates from :meth:`run` unchanged.
    """

    max_attempts: int = 3
    delay: float = 1.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        is_retryable: Callable[[BaseException], bool],
        on_retry: Callable[[int, BaseException], None] | None = None,
    ) -> T:
        """Call ``operation`` until it succeeds or attempts run out."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except Exception as exc:
                if not is_retryable(exc):
                    raise
                if attempt == self.max_attempts:
                    raise RetryExhausted(attempt, exc) from exc
                if on_retry is not None:
                    on_retry(attempt, exc)
                await self.sleep(self.delay)

        raise AssertionError("unreachable")
