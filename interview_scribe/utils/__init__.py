"""Utility package for workflow helpers."""

from __future__ import annotations

from .hashing import sha256_file, sha256_text
from .time import format_offset, now_unix_s
from .retry import RetryPolicy, call_with_retry, is_transient_error

__all__ = [
    "sha256_file",
    "sha256_text",
    "now_unix_s",
    "format_offset",
    "RetryPolicy",
    "call_with_retry",
    "is_transient_error",
]
