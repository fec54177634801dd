from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol

from interview_scribe.contracts.artifacts import TimedSegment
from interview_scribe.contracts.errors import InputValidationError, ProviderResponseError
from interview_scribe.utils.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_BYTES = 24 * 1024 * 1024


class _OpenAITranscriptionsAPI(Protocol):
    def create(self, **kwargs: Any) -> Any: ...


class _OpenAIAudioAPI(Protocol):
    transcriptions: _OpenAITranscriptionsAPI


class OpenAIClientLike(Protocol):
    audio: _OpenAIAudioAPI


def _field(obj: Any, name: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    if hasattr(obj, name):
        return getattr(obj, name)
    model_dump = getattr(obj, "model_dump", None)
    if callable(model_dump):
        dumped = model_dump()
        if isinstance(dumped, dict):
            return dumped.get(name, default)
    return default


def _float_or_none(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _normalize_segments(raw_segments: Any) -> list[TimedSegment]:
    if raw_segments in (None, ""):
        return []
    if not isinstance(raw_segments, list):
        raise ProviderResponseError("OpenAI transcription 'segments' must be a list when provided")

    segments: list[TimedSegment] = []
    for raw in raw_segments:
        text = _coerce_text(_field(raw, "text"))
        if not text:
            continue
        segments.append(
            TimedSegment(
                text=text,
                start_s=_float_or_none(_field(raw, "start")),
                end_s=_float_or_none(_field(raw, "end")),
            )
        )
    return segments


def build_whisper_prompt(speaker_count: int, interviewer_name: str) -> str:
    interviewer = interviewer_name.strip() or "unknown"
    return (
        f"Conversation with {speaker_count} speakers. Interviewer: {interviewer}. "
        "Transcribe exactly what is said."
    )


class OpenAISegmentTranscriber:
    """Single-speaker provider: segment-level transcription with start offsets, no diarization."""

    def __init__(
        self,
        client: OpenAIClientLike,
        *,
        model: str = "whisper-1",
        language: str | None = "ko",
        max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        if not model:
            raise ValueError("model is required")
        if max_file_bytes <= 0:
            raise ValueError("max_file_bytes must be > 0")
        self._client = client
        self._model = model
        self._language = language
        self.max_file_bytes = max_file_bytes
        self._retry_policy = retry_policy or RetryPolicy()

    @property
    def model(self) -> str:
        return self._model

    def transcribe_segments(
        self,
        path: Path,
        *,
        speaker_count: int,
        interviewer_name: str,
    ) -> list[TimedSegment]:
        path = Path(path)
        if not path.is_file():
            raise InputValidationError(f"local media file not found: {path}")
        size = path.stat().st_size
        if size > self.max_file_bytes:
            raise InputValidationError(
                f"local media file is {size} bytes, above the {self.max_file_bytes} byte limit"
            )

        logger.info("Starting OpenAI segment transcription of %s with %s", path.name, self._model)
        response = call_with_retry(
            lambda: self._create(path, speaker_count=speaker_count, interviewer_name=interviewer_name),
            self._retry_policy,
            description=f"OpenAI transcription of {path.name}",
        )

        segments = _normalize_segments(_field(response, "segments"))
        if not segments:
            text = _coerce_text(_field(response, "text"))
            if text:
                segments = [TimedSegment(text=text, start_s=0.0)]
        if not segments:
            raise ProviderResponseError("OpenAI transcription response missing text")

        logger.info("OpenAI transcription complete: %d segments", len(segments))
        return segments

    def _create(self, path: Path, *, speaker_count: int, interviewer_name: str) -> Any:
        request_kwargs: dict[str, Any] = {
            "model": self._model,
            "response_format": "verbose_json",
            "timestamp_granularities": ["segment"],
            "prompt": build_whisper_prompt(speaker_count, interviewer_name),
        }
        if self._language:
            request_kwargs["language"] = self._language

        with path.open("rb") as fh:
            return self._client.audio.transcriptions.create(file=fh, **request_kwargs)


__all__ = [
    "DEFAULT_MAX_FILE_BYTES",
    "OpenAIClientLike",
    "OpenAISegmentTranscriber",
    "build_whisper_prompt",
]
