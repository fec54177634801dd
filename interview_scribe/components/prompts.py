from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from string import Template

from interview_scribe.contracts.artifacts import OutputMode
from interview_scribe.contracts.errors import InputValidationError
from interview_scribe.utils.hashing import sha256_file


PROMPTS_DIR = Path(__file__).resolve().parents[1] / "prompts"

PROMPT_FILENAMES: dict[str, str] = {
    "json": "diarized_json.md",
    "text": "delimited_text.md",
}


@dataclass(frozen=True, slots=True)
class LoadedTranscriptionPrompt:
    path: Path
    text: str
    prompt_hash: str

    def render(self, *, speaker_count: int, interviewer_name: str) -> str:
        return Template(self.text).safe_substitute(
            speaker_count=speaker_count,
            interviewer_name=interviewer_name.strip() or "Speaker 1",
        ).strip()


def prompt_path_for(mode: OutputMode, prompts_dir: Path = PROMPTS_DIR) -> Path:
    try:
        filename = PROMPT_FILENAMES[mode]
    except KeyError as exc:
        raise InputValidationError(f"unknown output mode: {mode}") from exc
    return Path(prompts_dir) / filename


def load_transcription_prompt(mode: OutputMode, prompts_dir: Path = PROMPTS_DIR) -> LoadedTranscriptionPrompt:
    path = prompt_path_for(mode, prompts_dir)
    if not path.exists():
        raise InputValidationError(f"transcription prompt not found: {path}")
    if not path.is_file():
        raise InputValidationError(f"transcription prompt is not a file: {path}")

    prompt_text = path.read_text(encoding="utf-8")
    if not prompt_text.strip():
        raise InputValidationError(f"transcription prompt is empty: {path}")

    return LoadedTranscriptionPrompt(
        path=path,
        text=prompt_text,
        prompt_hash=sha256_file(path),
    )


__all__ = [
    "PROMPTS_DIR",
    "LoadedTranscriptionPrompt",
    "load_transcription_prompt",
    "prompt_path_for",
]
