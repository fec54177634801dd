from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, NoReturn, Protocol
from uuid import uuid4
import json
import logging
import traceback as tb

from interview_scribe.components.segmentation import parse_transcript
from interview_scribe.contracts.artifacts import CanonicalTranscript, RawTranscriptionResult, TranscriptionRequest
from interview_scribe.contracts.errors import InputValidationError, PipelineError
from interview_scribe.contracts.manifest import Manifest, StepRecord
from interview_scribe.pipeline.io import (
    PipelinePaths,
    build_pipeline_paths,
    manifest_path_ref,
    persist_manifest,
    write_text_file,
)
from interview_scribe.utils.hashing import sha256_file

logger = logging.getLogger(__name__)


class Transcriber(Protocol):
    def transcribe(self, request: TranscriptionRequest, *, manifest: Manifest | None = None) -> RawTranscriptionResult:
        """Return the accepted raw transcription, recording staging and strategy steps on ``manifest``."""


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    output_dir: Path
    orchestrator: Transcriber
    title: str | None = None
    include_error_traceback: bool = False
    run_id: str | None = None


@dataclass(frozen=True, slots=True)
class PipelineResult:
    manifest: Manifest
    paths: PipelinePaths
    raw: RawTranscriptionResult
    transcript: CanonicalTranscript


def run(request: TranscriptionRequest, config: PipelineConfig) -> PipelineResult:
    paths = build_pipeline_paths(config.output_dir)
    manifest = Manifest(run_id=config.run_id or uuid4().hex)
    media = request.media

    def fail_step(step: StepRecord, exc: Exception, *, step_context: dict[str, Any] | None = None) -> NoReturn:
        error_context = {
            "step": step.name,
            "media_location": media.location,
            "run_dir": str(paths.run_dir),
            "step_context": _json_safe(step_context or {}),
        }
        error_payload: dict[str, Any] = {
            "type": type(exc).__name__,
            "message": str(exc),
            "context": error_context,
        }
        if config.include_error_traceback:
            error_payload["traceback"] = "".join(tb.format_exception(type(exc), exc, exc.__traceback__))

        step.finish(
            status="failed",
            error=error_payload,
            error_type=type(exc).__name__,
            meta={"context": _json_safe(step_context or {})},
        )
        manifest.errors.append(f"{step.name}: {type(exc).__name__}: {exc}")
        if paths.run_dir.is_dir():
            persist_manifest(manifest, paths.manifest_path)
        logger.error("Pipeline failed at step %s: %s", step.name, exc)

        if isinstance(exc, PipelineError):
            raise exc
        raise PipelineError(f"pipeline failed at step '{step.name}': {exc}") from exc

    def complete_step(step: StepRecord, *, step_context: dict[str, Any] | None = None, artifacts: dict[str, Any] | None = None) -> None:
        meta: dict[str, Any] = {}
        if step_context:
            meta["context"] = _json_safe(step_context)
        if artifacts:
            meta["artifacts"] = _json_safe(artifacts)
        step.finish(status="success", meta=meta or None)
        persist_manifest(manifest, paths.manifest_path)

    def start_step(name: str, *, step_context: dict[str, Any] | None = None) -> StepRecord:
        step = manifest.ensure_step(name)
        step.start()
        if step_context:
            step.meta["context"] = _json_safe(step_context)
        return step

    # 1. validate
    validate_context = {"output_dir": str(paths.run_dir), "media_location": media.location}
    step = start_step("validate", step_context=validate_context)
    try:
        if not media.location:
            raise InputValidationError("media location is required")
        if paths.run_dir.exists() and not paths.run_dir.is_dir():
            raise InputValidationError(f"output_dir is not a directory: {paths.run_dir}")
        local_file = media.local_file()
        if not media.is_remote and local_file is None:
            raise InputValidationError(f"media not found: {media.location}")

        paths.run_dir.mkdir(parents=True, exist_ok=True)
        if local_file is not None:
            manifest.artifacts.media_sha256 = sha256_file(local_file)

        complete_step(
            step,
            step_context=validate_context,
            artifacts={"media_sha256": manifest.artifacts.media_sha256},
        )
    except Exception as exc:
        fail_step(step, exc, step_context=validate_context)

    # 2. transcribe (staging and strategy attempts are recorded by the orchestrator)
    transcribe_context = {
        "orchestrator": type(config.orchestrator).__name__,
        "speaker_count": request.speaker_count,
    }
    step = start_step("transcribe", step_context=transcribe_context)
    try:
        raw = config.orchestrator.transcribe(request, manifest=manifest)
        complete_step(
            step,
            step_context=transcribe_context,
            artifacts={
                "selected_strategy": manifest.artifacts.selected_strategy or raw.strategy,
                "raw_mode": raw.mode,
            },
        )
    except Exception as exc:
        fail_step(step, exc, step_context=transcribe_context)

    # 3. parse
    parse_context = {"title": config.title}
    step = start_step("parse", step_context=parse_context)
    try:
        transcript = parse_transcript(raw.raw, config.title)
        manifest.artifacts.transcript_title = transcript.title
        manifest.artifacts.segments_count = len(transcript.segments)
        manifest.artifacts.headers_count = len(transcript.headers)

        complete_step(
            step,
            step_context=parse_context,
            artifacts={
                "segments_count": manifest.artifacts.segments_count,
                "headers_count": manifest.artifacts.headers_count,
                "speakers": transcript.speakers,
                "roster": [asdict(info) for info in transcript.roster(request.interviewer_name_hint)],
            },
        )
    except Exception as exc:
        fail_step(step, exc, step_context=parse_context)

    # 4. write outputs
    write_context = {
        "raw_transcript_path": str(paths.raw_transcript_path),
        "transcript_path": str(paths.transcript_path),
    }
    step = start_step("write_outputs", step_context=write_context)
    try:
        write_text_file(paths.raw_transcript_path, raw.raw.rstrip() + "\n")
        manifest.artifacts.raw_transcript_path = manifest_path_ref(paths.raw_transcript_path, base_dir=paths.run_dir)
        manifest.artifacts.raw_transcript_sha256 = sha256_file(paths.raw_transcript_path)

        write_text_file(paths.transcript_path, render_transcript_json(transcript))
        manifest.artifacts.transcript_path = manifest_path_ref(paths.transcript_path, base_dir=paths.run_dir)
        manifest.artifacts.transcript_sha256 = sha256_file(paths.transcript_path)

        complete_step(
            step,
            step_context=write_context,
            artifacts={
                "raw_transcript_path": manifest.artifacts.raw_transcript_path,
                "raw_transcript_sha256": manifest.artifacts.raw_transcript_sha256,
                "transcript_path": manifest.artifacts.transcript_path,
                "transcript_sha256": manifest.artifacts.transcript_sha256,
            },
        )
    except Exception as exc:
        fail_step(step, exc, step_context=write_context)

    logger.info(
        "Pipeline finished: strategy=%s segments=%d run_dir=%s",
        manifest.artifacts.selected_strategy,
        len(transcript.segments),
        paths.run_dir,
    )
    return PipelineResult(manifest=manifest, paths=paths, raw=raw, transcript=transcript)


def render_transcript_json(transcript: CanonicalTranscript) -> str:
    return json.dumps(transcript.to_dict(), indent=2, ensure_ascii=False) + "\n"


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    return repr(value)


__all__ = [
    "PipelineConfig",
    "PipelineResult",
    "Transcriber",
    "render_transcript_json",
    "run",
]
