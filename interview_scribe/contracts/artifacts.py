from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Literal

from .errors import InputValidationError

OutputMode = Literal["json", "text"]
FileState = Literal["processing", "ready", "failed"]
SpeakerRole = Literal["interviewer", "participant"]

_REMOTE_PREFIXES = ("http://", "https://", "gs://")


@dataclass(frozen=True, slots=True)
class MediaReference:
    location: str
    mime_type: str
    local_path: Path | None = None

    @property
    def is_remote(self) -> bool:
        return self.location.startswith(_REMOTE_PREFIXES)

    def local_file(self) -> Path | None:
        """Return the best local copy of the media, if one exists on disk."""
        candidates: list[Path] = []
        if self.local_path is not None:
            candidates.append(Path(self.local_path))
        if not self.is_remote and self.location:
            candidates.append(Path(self.location))
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None


@dataclass(frozen=True, slots=True)
class TranscriptionRequest:
    media: MediaReference
    speaker_count: int = 2
    interviewer_name_hint: str = ""

    def __post_init__(self) -> None:
        if isinstance(self.speaker_count, bool) or not isinstance(self.speaker_count, int):
            raise InputValidationError("speaker_count must be an integer")
        if self.speaker_count < 1:
            raise InputValidationError("speaker_count must be >= 1")
        if not self.media.mime_type:
            raise InputValidationError("media.mime_type is required")


@dataclass(frozen=True, slots=True)
class RawTranscriptionResult:
    raw: str
    mode: OutputMode
    strategy: str = ""
    prompt_sha256: str | None = None


@dataclass(frozen=True, slots=True)
class StagedFile:
    name: str
    uri: str
    mime_type: str
    state: FileState


@dataclass(frozen=True, slots=True)
class SpeakerInfo:
    id: str
    name: str
    role: SpeakerRole


@dataclass(frozen=True, slots=True)
class TimedSegment:
    text: str
    start_s: float | None = None
    end_s: float | None = None


@dataclass(frozen=True, slots=True)
class TranscriptSegment:
    id: str
    speaker: str
    timestamp: str
    text: str


@dataclass(frozen=True, slots=True)
class CanonicalTranscript:
    title: str
    headers: list[str] = field(default_factory=list)
    segments: list[TranscriptSegment] = field(default_factory=list)
    raw_content: str = ""

    @property
    def speakers(self) -> list[str]:
        seen: list[str] = []
        for segment in self.segments:
            if segment.speaker not in seen:
                seen.append(segment.speaker)
        return seen

    def roster(self, interviewer_name: str = "") -> list[SpeakerInfo]:
        """
        Seed speaker metadata from the segments in first-appearance order.

        The first speaker (or a literal "Speaker 1") takes the interviewer name
        hint when one is given. The first speaker, and any label mentioning
        "interviewer", gets the interviewer role; everyone else is a participant.
        """
        hint = interviewer_name.strip()
        roster: list[SpeakerInfo] = []
        for index, label in enumerate(self.speakers):
            name = hint if hint and (index == 0 or label == "Speaker 1") else label
            role: SpeakerRole = "interviewer" if index == 0 or "interviewer" in label.lower() else "participant"
            roster.append(SpeakerInfo(id=label, name=name, role=role))
        return roster

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
