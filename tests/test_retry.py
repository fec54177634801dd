from __future__ import annotations

import json
import unittest

from interview_scribe.contracts.errors import (
    IncompleteResponseError,
    InputValidationError,
    ProviderRetryExhaustedError,
)
from interview_scribe.utils.retry import RetryPolicy, call_with_retry, is_transient_error


class _StatusError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None, code: object = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class _Flaky:
    def __init__(self, failures: list[Exception], result: str = "ok") -> None:
        self._failures = list(failures)
        self._result = result
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self._failures:
            raise self._failures.pop(0)
        return self._result


def _policy(max_attempts: int = 5, sleeps: list[float] | None = None) -> RetryPolicy:
    recorded = sleeps if sleeps is not None else []
    return RetryPolicy(
        max_attempts=max_attempts,
        base_delay_s=2.0,
        max_jitter_s=1.0,
        sleep=recorded.append,
        rand=lambda: 0.5,
    )


class TransientClassificationTests(unittest.TestCase):
    def test_status_codes_are_transient(self) -> None:
        for code in (429, 500, 502, 503, 504):
            self.assertTrue(is_transient_error(_StatusError("boom", status_code=code)), code)
        self.assertTrue(is_transient_error(_StatusError("boom", code="503")))
        self.assertFalse(is_transient_error(_StatusError("bad request", status_code=400)))

    def test_message_signatures_are_transient(self) -> None:
        for message in (
            "429 Too Many Requests",
            "Internal Server Error",
            "Resource exhausted",
            "RESOURCE_EXHAUSTED: quota",
            "service UNAVAILABLE",
            "Unexpected token in JSON",
        ):
            self.assertTrue(is_transient_error(RuntimeError(message)), message)

    def test_decode_and_incomplete_errors_are_transient(self) -> None:
        try:
            json.loads("{not json")
        except json.JSONDecodeError as exc:
            self.assertTrue(is_transient_error(exc))
        self.assertTrue(is_transient_error(IncompleteResponseError("")))

    def test_other_errors_are_not_transient(self) -> None:
        self.assertFalse(is_transient_error(ValueError("invalid api key")))
        self.assertFalse(is_transient_error(RuntimeError("")))

    def test_status_tokens_inside_other_words_are_not_transient(self) -> None:
        for message in (
            "file is 5000 bytes over the limit",
            "request id 14290 rejected",
            "media not found: /tmp/run/transcript.json",
            "invalid field json_schema",
        ):
            self.assertFalse(is_transient_error(RuntimeError(message)), message)
        self.assertTrue(is_transient_error(RuntimeError("HTTP 503: backend busy")))


class CallWithRetryTests(unittest.TestCase):
    def test_recovers_after_transient_failures_with_exponential_backoff(self) -> None:
        sleeps: list[float] = []
        operation = _Flaky([RuntimeError("503 unavailable"), RuntimeError("429")])

        result = call_with_retry(operation, _policy(sleeps=sleeps))

        self.assertEqual(result, "ok")
        self.assertEqual(operation.calls, 3)
        self.assertEqual(sleeps, [2.5, 4.5])

    def test_non_transient_error_propagates_on_first_attempt(self) -> None:
        sleeps: list[float] = []
        operation = _Flaky([InputValidationError("bad input")])

        with self.assertRaises(InputValidationError):
            call_with_retry(operation, _policy(sleeps=sleeps))

        self.assertEqual(operation.calls, 1)
        self.assertEqual(sleeps, [])

    def test_exhaustion_raises_resource_exhausted_chained_to_last_error(self) -> None:
        sleeps: list[float] = []
        last = RuntimeError("503 again")
        operation = _Flaky([RuntimeError("503"), RuntimeError("503"), last])

        with self.assertRaises(ProviderRetryExhaustedError) as ctx:
            call_with_retry(operation, _policy(max_attempts=3, sleeps=sleeps), description="upload")

        self.assertEqual(operation.calls, 3)
        self.assertIn("resource exhausted", str(ctx.exception))
        self.assertIs(ctx.exception.__cause__, last)
        self.assertEqual(len(sleeps), 2)

    def test_total_sleep_is_bounded_by_backoff_schedule(self) -> None:
        sleeps: list[float] = []
        policy = RetryPolicy(max_attempts=5, base_delay_s=2.0, max_jitter_s=1.0, sleep=sleeps.append, rand=lambda: 1.0)
        operation = _Flaky([RuntimeError("429")] * 5)

        with self.assertRaises(ProviderRetryExhaustedError):
            call_with_retry(operation, policy)

        bound = sum(2.0 * 2 ** (n - 1) + 1.0 for n in range(1, 5))
        self.assertLessEqual(sum(sleeps), bound)
        self.assertEqual(len(sleeps), 4)

    def test_policy_rejects_invalid_values(self) -> None:
        with self.assertRaises(ValueError):
            RetryPolicy(max_attempts=0)
        with self.assertRaises(ValueError):
            RetryPolicy(base_delay_s=-1.0)


if __name__ == "__main__":
    unittest.main()
