from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Literal

from .errors import ContractError
from interview_scribe.utils.time import now_unix_s

StepStatus = Literal["pending", "skipped", "success", "failed"]


@dataclass(slots=True)
class StepRecord:
    name: str
    status: StepStatus = "pending"
    started_at_s: float | None = None
    ended_at_s: float | None = None
    duration_ms: int | None = None
    attempts: int = 0
    meta: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    error: str | dict[str, Any] | None = None
    error_type: str | None = None

    def start(self, *, at_s: float | None = None) -> None:
        self.started_at_s = now_unix_s() if at_s is None else at_s
        self.status = "pending"
        self.attempts += 1

    def finish(
        self,
        *,
        status: StepStatus,
        at_s: float | None = None,
        error: str | dict[str, Any] | None = None,
        error_type: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        self.ended_at_s = now_unix_s() if at_s is None else at_s
        self.status = status
        self.error = error
        self.error_type = error_type
        if meta:
            self.meta.update(meta)
        self.duration_ms = self.compute_duration_ms()

    def skip(self, reason: str, *, at_s: float | None = None) -> None:
        self.finish(status="skipped", at_s=at_s, meta={"reason": reason})

    def compute_duration_ms(self) -> int | None:
        if self.started_at_s is None or self.ended_at_s is None:
            return None
        return max(0, int(round((self.ended_at_s - self.started_at_s) * 1000)))


@dataclass(slots=True)
class TranscriptionRefs:
    """
    Persistable references describing one transcription run.
    Keep these as paths/strings/metadata, not large blobs.
    """

    media_location: str | None = None
    media_mime_type: str | None = None
    media_sha256: str | None = None
    local_file_path: str | None = None
    speaker_count: int | None = None
    interviewer_name_hint: str | None = None

    staged_file_name: str | None = None
    staged_file_uri: str | None = None

    selected_strategy: str | None = None
    raw_mode: str | None = None
    distinct_speakers_found: int | None = None

    raw_transcript_path: str | None = None
    raw_transcript_sha256: str | None = None
    transcript_path: str | None = None
    transcript_sha256: str | None = None
    transcript_title: str | None = None
    segments_count: int | None = None
    headers_count: int | None = None


@dataclass(slots=True)
class Manifest:
    """
    Persistable run ledger: one step per staging action and per attempted strategy.
    """

    version: str = "1"
    run_id: str | None = None
    created_at_s: float | None = None
    updated_at_s: float | None = None
    artifacts: TranscriptionRefs = field(default_factory=TranscriptionRefs)
    steps: dict[str, StepRecord] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def ensure_step(self, name: str) -> StepRecord:
        if name not in self.steps:
            self.steps[name] = StepRecord(name=name)
        return self.steps[name]

    def touch(self, *, at_s: float | None = None) -> None:
        ts = now_unix_s() if at_s is None else at_s
        if self.created_at_s is None:
            self.created_at_s = ts
        self.updated_at_s = ts

    def step_names(self, *, prefix: str = "") -> list[str]:
        return [name for name in self.steps if name.startswith(prefix)]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Manifest":
        try:
            artifacts = TranscriptionRefs(**(data.get("artifacts") or {}))
            steps_raw = data.get("steps") or {}
            steps: dict[str, StepRecord] = {}
            for step_name, step_data in steps_raw.items():
                if "name" not in step_data:
                    step_data = {"name": step_name, **step_data}
                step = StepRecord(**step_data)
                step.duration_ms = step.compute_duration_ms() if step.duration_ms is None else step.duration_ms
                steps[step_name] = step

            return cls(
                version=str(data.get("version", "1")),
                run_id=data.get("run_id"),
                created_at_s=data.get("created_at_s"),
                updated_at_s=data.get("updated_at_s"),
                artifacts=artifacts,
                steps=steps,
                warnings=list(data.get("warnings") or []),
                errors=list(data.get("errors") or []),
            )
        except TypeError as exc:
            raise ContractError(f"Invalid manifest shape: {exc}") from exc

    def write_json(self, path: Path) -> None:
        self.touch()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2, sort_keys=True, ensure_ascii=False), encoding="utf-8")

    @classmethod
    def read_json(cls, path: Path) -> "Manifest":
        data = json.loads(path.read_text(encoding="utf-8"))
        return cls.from_dict(data)
