from __future__ import annotations

from pathlib import Path
from typing import Literal, Protocol

from interview_scribe.contracts.artifacts import OutputMode, StagedFile, TimedSegment

ModelTier = Literal["pro", "flash"]


class DiarizingProvider(Protocol):
    """Primary provider boundary: file staging plus speaker-attributed transcription."""

    def stage_file(self, path: Path, mime_type: str) -> StagedFile:
        """Upload a local file and return its staged handle."""

    def get_file(self, name: str) -> StagedFile:
        """Return the current processing state of a staged file."""

    def transcribe(
        self,
        file_uri: str,
        mime_type: str,
        *,
        speaker_count: int,
        interviewer_name: str,
        output_mode: OutputMode,
        tier: ModelTier,
    ) -> str:
        """Return provider-native transcript text (JSON array or delimited text)."""


class SegmentProvider(Protocol):
    """Secondary provider boundary: time-stamped segments without speaker attribution."""

    max_file_bytes: int

    def transcribe_segments(
        self,
        path: Path,
        *,
        speaker_count: int,
        interviewer_name: str,
    ) -> list[TimedSegment]:
        """Return non-empty time-stamped segments for a local file."""


__all__ = ["DiarizingProvider", "ModelTier", "SegmentProvider"]
