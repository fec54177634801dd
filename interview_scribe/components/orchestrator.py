from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from interview_scribe.adapters.transcription import DiarizingProvider, SegmentProvider
from interview_scribe.components.json_normalizer import TEXT_FIELDS, speaker_label, strip_code_fences
from interview_scribe.components.prompts import load_transcription_prompt
from interview_scribe.components.speaker_count import count_distinct_speakers
from interview_scribe.contracts.artifacts import RawTranscriptionResult, StagedFile, TranscriptionRequest
from interview_scribe.contracts.errors import (
    DiarizationValidationError,
    InputValidationError,
    MediaProcessingError,
    ProviderResponseError,
    TranscriptionFailedError,
)
from interview_scribe.contracts.manifest import Manifest, StepRecord
from interview_scribe.utils.hashing import sha256_text
from interview_scribe.utils.time import format_offset, now_unix_s

logger = logging.getLogger(__name__)

STRATEGY_STEP_PREFIX = "strategy:"


@dataclass(frozen=True, slots=True)
class OrchestratorConfig:
    poll_interval_s: float = 10.0
    poll_timeout_s: float | None = None
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)
    clock: Callable[[], float] = field(default=now_unix_s, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.poll_interval_s < 0:
            raise ValueError("poll_interval_s must be >= 0")
        if self.poll_timeout_s is not None and self.poll_timeout_s <= 0:
            raise ValueError("poll_timeout_s must be > 0 when set")


@dataclass(frozen=True, slots=True)
class TranscriptionContext:
    request: TranscriptionRequest
    primary: DiarizingProvider
    secondary: SegmentProvider | None = None
    file_uri: str | None = None
    local_file: Path | None = None

    def require_file_uri(self) -> str:
        if not self.file_uri:
            raise InputValidationError("media is not available to the primary provider (staging failed)")
        return self.file_uri


@dataclass(frozen=True, slots=True)
class TranscriptionStrategy:
    name: str
    run: Callable[[TranscriptionContext], RawTranscriptionResult]
    skip_reason: Callable[[TranscriptionContext], str | None] = lambda _ctx: None


def _text_key(item: dict[str, Any]) -> str:
    return next((name for name in TEXT_FIELDS if isinstance(item.get(name), str)), "text")


def _text_of(item: dict[str, Any]) -> str:
    value = item.get(_text_key(item))
    return value if isinstance(value, str) else ""


def merge_consecutive_speakers(items: list[Any]) -> list[dict[str, Any]]:
    """Collapse adjacent entries that share a speaker label, joining their text with a newline."""
    merged: list[dict[str, Any]] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        label = speaker_label(item)
        previous = merged[-1] if merged else None
        # Entries without a speaker label are never merged.
        if previous is not None and label is not None and speaker_label(previous) == label:
            key = _text_key(previous)
            previous[key] = f"{_text_of(previous)}\n{_text_of(item)}".strip()
            continue
        merged.append(dict(item))
    return merged


def decode_structured_output(raw: str) -> list[Any]:
    try:
        data = json.loads(strip_code_fences(raw))
    except (ValueError, RecursionError) as exc:
        raise ProviderResponseError(f"structured output is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise ProviderResponseError("structured output is not a JSON array")
    return data


def format_timed_segments(segments: list[Any]) -> str:
    lines = [
        f"Speaker {format_offset(segment.start_s or 0.0)}: {segment.text.strip()}"
        for segment in segments
        if segment.text.strip()
    ]
    return "\n\n".join(lines)


def _skip_unless_multi_speaker(ctx: TranscriptionContext) -> str | None:
    if ctx.request.speaker_count > 1:
        return None
    return "single speaker requested"


def run_diarized_json(ctx: TranscriptionContext) -> RawTranscriptionResult:
    request = ctx.request
    raw = ctx.primary.transcribe(
        ctx.require_file_uri(),
        request.media.mime_type,
        speaker_count=request.speaker_count,
        interviewer_name=request.interviewer_name_hint,
        output_mode="json",
        tier="pro",
    )
    merged = merge_consecutive_speakers(decode_structured_output(raw))
    if not merged:
        raise ProviderResponseError("structured output contained no segments")
    result = json.dumps(merged, ensure_ascii=False, indent=2)

    found = count_distinct_speakers(result)
    logger.info("Diarized output has %d distinct speakers (requested %d)", found, request.speaker_count)
    if found < request.speaker_count:
        raise DiarizationValidationError(
            f"diarization failed: found {found} speakers, requested {request.speaker_count}",
            requested=request.speaker_count,
            found=found,
        )
    return RawTranscriptionResult(
        raw=result,
        mode="json",
        strategy="diarized_json",
        prompt_sha256=load_transcription_prompt("json").prompt_hash,
    )


def _skip_unless_single_speaker_file(ctx: TranscriptionContext) -> str | None:
    if ctx.request.speaker_count != 1:
        return "multi-speaker request; single-speaker provider cannot diarize"
    if ctx.secondary is None:
        return "single-speaker provider not configured"
    if ctx.local_file is None:
        return "no local media file"
    size = ctx.local_file.stat().st_size
    if size > ctx.secondary.max_file_bytes:
        return f"local media file too large ({size / 1024 / 1024:.2f} MB)"
    return None


def run_single_speaker_segments(ctx: TranscriptionContext) -> RawTranscriptionResult:
    if ctx.secondary is None or ctx.local_file is None:
        raise InputValidationError("single-speaker strategy requires a provider and a local file")
    segments = ctx.secondary.transcribe_segments(
        ctx.local_file,
        speaker_count=ctx.request.speaker_count,
        interviewer_name=ctx.request.interviewer_name_hint,
    )
    text = format_timed_segments(segments)
    if not text.strip():
        raise ProviderResponseError("single-speaker provider returned an empty transcript")
    return RawTranscriptionResult(raw=text, mode="text", strategy="single_speaker_segments")


def run_delimited_text_fallback(ctx: TranscriptionContext) -> RawTranscriptionResult:
    request = ctx.request
    raw = ctx.primary.transcribe(
        ctx.require_file_uri(),
        request.media.mime_type,
        speaker_count=request.speaker_count,
        interviewer_name=request.interviewer_name_hint,
        output_mode="text",
        tier="pro" if request.speaker_count > 1 else "flash",
    )
    if not raw or not raw.strip():
        raise ProviderResponseError("primary provider returned an empty transcript")

    found = count_distinct_speakers(raw)
    if found < request.speaker_count:
        logger.warning(
            "Accepting fallback transcript with %d distinct speakers (requested %d)",
            found,
            request.speaker_count,
        )
    else:
        logger.info("Fallback transcript has %d distinct speakers", found)
    return RawTranscriptionResult(
        raw=raw,
        mode="text",
        strategy="delimited_text_fallback",
        prompt_sha256=load_transcription_prompt("text").prompt_hash,
    )


DEFAULT_STRATEGIES: tuple[TranscriptionStrategy, ...] = (
    TranscriptionStrategy(
        name="diarized_json",
        run=run_diarized_json,
        skip_reason=_skip_unless_multi_speaker,
    ),
    TranscriptionStrategy(
        name="single_speaker_segments",
        run=run_single_speaker_segments,
        skip_reason=_skip_unless_single_speaker_file,
    ),
    TranscriptionStrategy(
        name="delimited_text_fallback",
        run=run_delimited_text_fallback,
    ),
)


def run_strategies(
    strategies: tuple[TranscriptionStrategy, ...],
    ctx: TranscriptionContext,
    manifest: Manifest,
) -> RawTranscriptionResult:
    """Run strategies in order; return the first accepted result or raise one aggregated error."""
    errors: dict[str, str] = {}
    for strategy in strategies:
        step = manifest.ensure_step(f"{STRATEGY_STEP_PREFIX}{strategy.name}")
        step.start()
        reason = strategy.skip_reason(ctx)
        if reason is not None:
            logger.info("Skipping strategy %s: %s", strategy.name, reason)
            step.skip(reason)
            continue

        logger.info("Attempting strategy %s", strategy.name)
        try:
            result = strategy.run(ctx)
        except Exception as exc:
            logger.error("Strategy %s failed: %s", strategy.name, exc)
            errors[strategy.name] = f"{type(exc).__name__}: {exc}"
            _fail_step(step, exc)
            continue

        found = count_distinct_speakers(result.raw)
        meta: dict[str, Any] = {"mode": result.mode, "distinct_speakers": found, "raw_sha256": sha256_text(result.raw)}
        if result.prompt_sha256:
            meta["prompt_sha256"] = result.prompt_sha256
        step.finish(status="success", meta=meta)
        if found < ctx.request.speaker_count:
            warning = f"{strategy.name}: accepted {found} distinct speakers, requested {ctx.request.speaker_count}"
            step.warnings.append(warning)
            manifest.warnings.append(warning)
        manifest.artifacts.selected_strategy = strategy.name
        manifest.artifacts.raw_mode = result.mode
        manifest.artifacts.distinct_speakers_found = found
        logger.info("Strategy %s accepted", strategy.name)
        return result

    lines = ["All transcription attempts failed."]
    lines.extend(f"- {name}: {message}" for name, message in errors.items())
    message = "\n".join(lines)
    manifest.errors.append(message)
    raise TranscriptionFailedError(message, errors=errors)


def _fail_step(step: StepRecord, exc: Exception) -> None:
    meta: dict[str, Any] = {}
    if isinstance(exc, DiarizationValidationError):
        meta = {"requested_speakers": exc.requested, "distinct_speakers": exc.found}
    step.finish(
        status="failed",
        error={"type": type(exc).__name__, "message": str(exc)},
        error_type=type(exc).__name__,
        meta=meta or None,
    )


class TranscriptionOrchestrator:
    """Stages media with the primary provider, then runs the fallback strategies in order."""

    def __init__(
        self,
        primary: DiarizingProvider,
        secondary: SegmentProvider | None = None,
        *,
        config: OrchestratorConfig | None = None,
        strategies: tuple[TranscriptionStrategy, ...] = DEFAULT_STRATEGIES,
    ) -> None:
        if not strategies:
            raise ValueError("at least one strategy is required")
        self._primary = primary
        self._secondary = secondary
        self._config = config or OrchestratorConfig()
        self._strategies = strategies

    @property
    def strategies(self) -> tuple[TranscriptionStrategy, ...]:
        return self._strategies

    def transcribe(self, request: TranscriptionRequest, *, manifest: Manifest | None = None) -> RawTranscriptionResult:
        manifest = manifest if manifest is not None else Manifest()
        media = request.media
        manifest.artifacts.media_location = media.location
        manifest.artifacts.media_mime_type = media.mime_type
        manifest.artifacts.speaker_count = request.speaker_count
        manifest.artifacts.interviewer_name_hint = request.interviewer_name_hint

        local_file = media.local_file()
        if local_file is not None:
            manifest.artifacts.local_file_path = str(local_file)
        logger.info(
            "Transcription start: speakers=%d mime_type=%s strategy=%s",
            request.speaker_count,
            media.mime_type,
            "multi-speaker" if request.speaker_count > 1 else "single-speaker",
        )

        file_uri = self._stage(request, local_file, manifest)
        ctx = TranscriptionContext(
            request=request,
            primary=self._primary,
            secondary=self._secondary,
            file_uri=file_uri,
            local_file=local_file,
        )
        return run_strategies(self._strategies, ctx, manifest)

    def _stage(self, request: TranscriptionRequest, local_file: Path | None, manifest: Manifest) -> str | None:
        media = request.media
        step = manifest.ensure_step("stage")
        step.start()
        if media.is_remote or local_file is None:
            step.skip("remote media" if media.is_remote else "no local media file")
            return media.location if media.is_remote else None

        try:
            staged = self._primary.stage_file(local_file, media.mime_type)
            step.meta["staged_file_name"] = staged.name
            staged = self.wait_until_ready(staged)
        except MediaProcessingError as exc:
            step.finish(status="failed", error={"type": type(exc).__name__, "message": str(exc)}, error_type=type(exc).__name__)
            manifest.errors.append(f"stage: {exc}")
            raise
        except Exception as exc:
            # Strategies that need the staged file will fail and be aggregated.
            logger.error("Upload failed, continuing without a staged file: %s", exc)
            step.finish(status="failed", error={"type": type(exc).__name__, "message": str(exc)}, error_type=type(exc).__name__)
            manifest.warnings.append(f"stage: {exc}")
            return None

        manifest.artifacts.staged_file_name = staged.name
        manifest.artifacts.staged_file_uri = staged.uri
        step.finish(status="success", meta={"staged_file_uri": staged.uri})
        logger.info("File %s is ready at %s", staged.name, staged.uri)
        return staged.uri

    def wait_until_ready(self, staged: StagedFile) -> StagedFile:
        """Poll the provider until the staged file is ready; no deadline unless poll_timeout_s is set."""
        started = self._config.clock()
        current = staged
        while current.state == "processing":
            if self._config.poll_timeout_s is not None and self._config.clock() - started >= self._config.poll_timeout_s:
                raise MediaProcessingError(
                    f"media processing did not finish within {self._config.poll_timeout_s:.0f}s: {staged.name}"
                )
            logger.debug("Waiting for %s to finish processing", staged.name)
            self._config.sleep(self._config.poll_interval_s)
            current = self._primary.get_file(staged.name)

        if current.state == "failed":
            raise MediaProcessingError(f"media processing failed: {staged.name}")
        return current


__all__ = [
    "DEFAULT_STRATEGIES",
    "OrchestratorConfig",
    "TranscriptionContext",
    "TranscriptionOrchestrator",
    "TranscriptionStrategy",
    "decode_structured_output",
    "format_timed_segments",
    "merge_consecutive_speakers",
    "run_strategies",
]
