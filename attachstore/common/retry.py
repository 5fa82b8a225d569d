"""Bounded retry with deterministic exponential backoff.

The wait before retry ``n`` (1-based) is ``base_wait * backoff_exponent ** (n - 1)``.
There is no jitter, so a given policy always produces the same schedule.

The retried callable must be safe to run again; rewinding streams or
rebuilding requests is its job, not the executor's.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Final, TypeVar

from attachstore.common.config import ConfigError
from attachstore.common.logging import WarningSink, emit_warning
from attachstore.infra.observability.metrics import RETRIES

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How many times to try and how long to wait in between."""

    max_tries: int = 3
    base_wait: float = 0.25
    backoff_exponent: float = 2

    def __post_init__(self) -> None:
        if self.max_tries < 1:
            raise ValueError("max_tries must be at least 1")
        if self.base_wait < 0:
            raise ValueError("base_wait must not be negative")

    def wait_for(self, attempt: int) -> float:
        """Return the sleep that follows failed attempt number ``attempt``."""
        return self.base_wait * self.backoff_exponent ** (attempt - 1)

    def schedule(self) -> list[float]:
        """List every wait this policy can produce, in order."""
        return [self.wait_for(attempt) for attempt in range(1, self.max_tries)]


DEFAULT_RETRY_POLICY: Final[RetryPolicy] = RetryPolicy()


class RetryExecutor:
    """Runs a callable until it succeeds or the policy is exhausted."""

    def __init__(
        self,
        *,
        warn: WarningSink = emit_warning,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._warn = warn
        self._sleep = sleep

    def run(
        self,
        name: str,
        operation: Callable[[], T],
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        *,
        operation_kind: str = "other",
    ) -> T:
        """Call ``operation`` up to ``policy.max_tries`` times.

        Args:
            name: Human-readable description used in warnings.
            operation: Zero-argument callable to run.
            policy: Retry bounds and backoff.
            operation_kind: Low-cardinality label for the retry metric.

        Returns:
            Whatever ``operation`` returns on its first successful call.

        Raises:
            ConfigError: Immediately, without retrying.
            Exception: The failure of the final attempt, unchanged.
        """
        attempt = 0
        wait = policy.base_wait
        while True:
            attempt += 1
            try:
                return operation()
            except ConfigError:
                # Configuration errors are fatal.
                raise
            except Exception as exc:
                if attempt >= policy.max_tries:
                    raise
                self._warn(f"{name} failed due to {exc} (try {attempt})")
                RETRIES.labels(operation=operation_kind).inc()
                logger.debug("Retrying %s in %.3fs", name, wait, extra={"attempt": attempt})
                self._sleep(wait)
                wait = wait * policy.backoff_exponent
