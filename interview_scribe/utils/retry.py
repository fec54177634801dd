from __future__ import annotations

import json
import logging
import random
import re
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from interview_scribe.contracts.errors import IncompleteResponseError, ProviderRetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

# Status tokens must stand alone; a ".json" suffix in a path is not a decode error.
_TRANSIENT_MESSAGE_RE = re.compile(
    r"\b(?:429|500|503)\b"
    r"|internal server error"
    r"|resource[ _]exhausted"
    r"|\bunavailable\b"
    r"|(?<![\w./])json\b",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay_s: float = 2.0
    max_jitter_s: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)
    rand: Callable[[], float] = field(default=random.random, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if self.base_delay_s < 0:
            raise ValueError("base_delay_s must be >= 0")
        if self.max_jitter_s < 0:
            raise ValueError("max_jitter_s must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Backoff before the attempt following ``attempt`` (1-based)."""
        return self.base_delay_s * (2 ** (attempt - 1)) + self.rand() * self.max_jitter_s


def _status_codes(exc: BaseException) -> list[int]:
    codes: list[int] = []
    for attr in ("status_code", "code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            codes.append(value)
        elif isinstance(value, str) and value.isdigit():
            codes.append(int(value))
    return codes


def is_transient_error(exc: BaseException) -> bool:
    """Return True for rate limits, unavailable/server errors and malformed responses."""
    if isinstance(exc, (IncompleteResponseError, json.JSONDecodeError)):
        return True
    if any(code in TRANSIENT_STATUS_CODES for code in _status_codes(exc)):
        return True
    return _TRANSIENT_MESSAGE_RE.search(str(exc)) is not None


def call_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy | None = None,
    *,
    description: str = "provider call",
) -> T:
    """
    Run ``operation`` until it succeeds, retrying transient failures with exponential backoff.
    Non-transient errors propagate unchanged on the attempt that raised them.
    """
    policy = policy or RetryPolicy()
    last_error: Exception | None = None
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return operation()
        except Exception as exc:
            if not is_transient_error(exc):
                raise
            last_error = exc
            if attempt >= policy.max_attempts:
                break
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                description,
                attempt,
                policy.max_attempts,
                exc,
                delay,
            )
            policy.sleep(delay)

    message = f"{description}: provider resource exhausted after {policy.max_attempts} attempts"
    raise ProviderRetryExhaustedError(message) from last_error


__all__ = [
    "RetryPolicy",
    "TRANSIENT_STATUS_CODES",
    "call_with_retry",
    "is_transient_error",
]
