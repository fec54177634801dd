from __future__ import annotations

import json
from pathlib import Path

import pytest

from interview_scribe.cli import main as cli
from interview_scribe.config import Settings
from interview_scribe.contracts.errors import ConfigError
from interview_scribe.pipeline.transcription_pipeline import PipelineConfig


def test_parse_args_maps_transcribe_flags() -> None:
    args = cli.parse_args(
        [
            "--log-level",
            "debug",
            "transcribe",
            "--media",
            "gs://bucket/interview.mp3",
            "--mime-type",
            "audio/mpeg",
            "--speakers",
            "3",
            "--interviewer",
            "Kim",
            "--output-dir",
            "outputs",
            "--local-file",
            "interview.mp3",
            "--title",
            "Round 1",
        ]
    )

    assert args.command == "transcribe"
    assert args.log_level == "DEBUG"
    assert args.media == "gs://bucket/interview.mp3"
    assert args.speakers == 3
    assert args.output_dir == Path("outputs")
    assert args.local_file == Path("interview.mp3")

    request = cli.build_request(args)
    assert request.speaker_count == 3
    assert request.interviewer_name_hint == "Kim"
    assert request.media.is_remote
    assert request.media.local_path == Path("interview.mp3")


def test_build_pipeline_config_maps_pipeline_fields() -> None:
    args = cli.parse_args(
        [
            "transcribe",
            "--media",
            "a.mp3",
            "--mime-type",
            "audio/mpeg",
            "--output-dir",
            "outputs",
            "--run-id",
            "run-42",
            "--include-error-traceback",
        ]
    )
    orchestrator = object()

    config = cli.build_pipeline_config(args, orchestrator=orchestrator)

    assert isinstance(config, PipelineConfig)
    assert config.output_dir == Path("outputs")
    assert config.orchestrator is orchestrator
    assert config.title is None
    assert config.run_id == "run-42"
    assert config.include_error_traceback is True
    assert args.speakers == 2


@pytest.mark.parametrize("value", ["0", "-1", "two"])
def test_speakers_must_be_positive_int(value: str) -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["transcribe", "--media", "a.mp3", "--mime-type", "audio/mpeg", "--output-dir", "o", "--speakers", value])


def test_parse_subcommand_writes_canonical_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "raw.txt"
    source.write_text("Alice 0:01 Hi\nBob 0:03 Hello", encoding="utf-8")
    output = tmp_path / "out" / "transcript.json"

    exit_code = cli.main(["parse", "--input", str(source), "--title", "Notes", "--output", str(output)])

    assert exit_code == 0
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["title"] == "Notes"
    assert [segment["speaker"] for segment in payload["segments"]] == ["Alice", "Bob"]
    assert "transcript_path=" in capsys.readouterr().out


def test_parse_subcommand_prints_to_stdout(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "raw.txt"
    source.write_text("plain notes", encoding="utf-8")

    assert cli.main(["parse", "--input", str(source)]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["segments"][0]["speaker"] == "System"


def test_main_reports_errors_on_stderr(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["parse", "--input", str(tmp_path / "missing.txt")])

    assert exit_code == 1
    assert capsys.readouterr().err.startswith("error: ")


def test_build_orchestrator_requires_google_api_key() -> None:
    with pytest.raises(ConfigError):
        cli.build_orchestrator(Settings())


def test_transcribe_runs_pipeline_with_built_orchestrator(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    captured: dict[str, object] = {}

    def fake_run(request, config):  # type: ignore[no-untyped-def]
        captured["request"] = request
        captured["config"] = config

        class _Paths:
            manifest_path = tmp_path / "manifest.json"
            run_dir = tmp_path

        class _Raw:
            strategy = "delimited_text_fallback"

        class _Result:
            paths = _Paths()
            raw = _Raw()

        return _Result()

    monkeypatch.setattr(cli, "run_pipeline", fake_run)
    monkeypatch.setattr(cli, "build_orchestrator", lambda settings: "orchestrator")
    monkeypatch.setattr(cli, "load_settings", lambda env_file=None: Settings(google_api_key="k"))

    exit_code = cli.main(
        ["transcribe", "--media", "gs://b/a.mp3", "--mime-type", "audio/mpeg", "--output-dir", str(tmp_path)]
    )

    assert exit_code == 0
    assert captured["config"].orchestrator == "orchestrator"  # type: ignore[attr-defined]
    assert captured["request"].speaker_count == 2  # type: ignore[attr-defined]
