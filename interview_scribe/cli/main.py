from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence, TypeAlias

from interview_scribe.adapters.gemini_transcription import GeminiTranscriptionAdapter
from interview_scribe.adapters.openai_transcription import OpenAISegmentTranscriber
from interview_scribe.components.orchestrator import OrchestratorConfig, TranscriptionOrchestrator
from interview_scribe.components.segmentation import parse_transcript
from interview_scribe.config import Settings, load_settings
from interview_scribe.contracts.artifacts import MediaReference, TranscriptionRequest
from interview_scribe.pipeline.io import write_text_file
from interview_scribe.pipeline.transcription_pipeline import PipelineConfig, render_transcript_json, run as run_pipeline
from interview_scribe.utils.retry import RetryPolicy

logger = logging.getLogger(__name__)

Argv: TypeAlias = Sequence[str]

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True, slots=True)
class CliRunResult:
    manifest_path: Path
    output_dir: Path
    strategy: str


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid int value: {value}") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be > 0")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="interview-scribe",
        description="Transcribe interviews with speaker attribution and parse raw transcripts.",
    )
    parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS, default="INFO", help="Logging level.")
    parser.add_argument("--env-file", type=Path, default=None, help="Dotenv file (defaults to .env.local).")
    subparsers = parser.add_subparsers(dest="command", required=True)

    transcribe = subparsers.add_parser("transcribe", help="Transcribe media and write transcript artifacts.")
    transcribe.add_argument("--media", required=True, help="Local media path or remote URI.")
    transcribe.add_argument("--mime-type", required=True, help="Media MIME type (e.g. audio/mpeg).")
    transcribe.add_argument("--speakers", type=_positive_int, default=2, help="Expected number of speakers.")
    transcribe.add_argument("--interviewer", default="", help="Interviewer name hint.")
    transcribe.add_argument("--output-dir", type=Path, required=True, help="Output artifacts directory.")
    transcribe.add_argument("--local-file", type=Path, default=None, help="Local copy of remote media.")
    transcribe.add_argument("--title", default=None, help="Transcript title.")
    transcribe.add_argument("--run-id", default=None, help="Optional deterministic run identifier.")
    transcribe.add_argument(
        "--include-error-traceback",
        action="store_true",
        help="Persist traceback details in manifest step errors.",
    )

    parse = subparsers.add_parser("parse", help="Parse an existing raw transcript into canonical JSON.")
    parse.add_argument("--input", dest="input_path", type=Path, required=True, help="Raw transcript file.")
    parse.add_argument("--title", default=None, help="Transcript title.")
    parse.add_argument("--output", type=Path, default=None, help="Output JSON path (stdout when omitted).")
    return parser


def parse_args(argv: Argv | None = None) -> argparse.Namespace:
    return build_parser().parse_args(list(argv) if argv is not None else None)


def build_request(args: argparse.Namespace) -> TranscriptionRequest:
    return TranscriptionRequest(
        media=MediaReference(
            location=str(args.media),
            mime_type=args.mime_type,
            local_path=Path(args.local_file) if args.local_file is not None else None,
        ),
        speaker_count=int(args.speakers),
        interviewer_name_hint=args.interviewer or "",
    )


def build_pipeline_config(args: argparse.Namespace, *, orchestrator: Any) -> PipelineConfig:
    return PipelineConfig(
        output_dir=Path(args.output_dir),
        orchestrator=orchestrator,
        title=args.title,
        include_error_traceback=bool(args.include_error_traceback),
        run_id=args.run_id,
    )


def _load_gemini_client(api_key: str) -> Any:
    from google import genai

    return genai.Client(api_key=api_key)


def _load_openai_client(api_key: str) -> Any:
    from openai import OpenAI

    return OpenAI(api_key=api_key)


def build_orchestrator(settings: Settings) -> TranscriptionOrchestrator:
    retry_policy = RetryPolicy(max_attempts=settings.max_retries, base_delay_s=settings.base_delay_s)
    primary = GeminiTranscriptionAdapter(
        _load_gemini_client(settings.require_google_api_key()),
        retry_policy=retry_policy,
    )
    secondary = None
    if settings.openai_api_key:
        secondary = OpenAISegmentTranscriber(
            _load_openai_client(settings.openai_api_key),
            language=settings.language,
            max_file_bytes=settings.secondary_max_file_bytes,
            retry_policy=retry_policy,
        )
    else:
        logger.info("OPENAI_API_KEY not set; single-speaker provider disabled")
    return TranscriptionOrchestrator(
        primary,
        secondary,
        config=OrchestratorConfig(
            poll_interval_s=settings.poll_interval_s,
            poll_timeout_s=settings.poll_timeout_s,
        ),
    )


def run_transcribe(args: argparse.Namespace, settings: Settings) -> CliRunResult:
    request = build_request(args)
    config = build_pipeline_config(args, orchestrator=build_orchestrator(settings))
    result = run_pipeline(request, config)
    return CliRunResult(
        manifest_path=result.paths.manifest_path,
        output_dir=result.paths.run_dir,
        strategy=result.raw.strategy,
    )


def run_parse(args: argparse.Namespace) -> str:
    input_path = Path(args.input_path)
    raw = input_path.read_text(encoding="utf-8")
    payload = render_transcript_json(parse_transcript(raw, args.title))
    if args.output is not None:
        write_text_file(Path(args.output), payload)
    return payload


def main(argv: Argv | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        if args.command == "parse":
            payload = run_parse(args)
            if args.output is None:
                sys.stdout.write(payload)
            else:
                print(f"transcript_path={args.output}")
            return 0

        result = run_transcribe(args, load_settings(env_file=args.env_file))
    except Exception as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(f"manifest_path={result.manifest_path}")
    print(f"output_dir={result.output_dir}")
    print(f"strategy={result.strategy}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
