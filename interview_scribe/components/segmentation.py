"""Transcript segmentation parser.

Turns arbitrary raw transcript text into a CanonicalTranscript. Layers, first
success wins:

1. Structured content: whole-input JSON, then the outermost bracketed region.
2. Line heuristics: a prioritized tuple of parsing rules, each of which may
   consume a line (metadata, speaker turns, continuations, orphans).
3. Absolute fallback: a single "System" segment holding the raw content.

Parsing never raises on string input.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

from interview_scribe.components.json_normalizer import (
    DEFAULT_TIMESTAMP,
    coerce_segments,
    normalize_segments_json,
)
from interview_scribe.contracts.artifacts import CanonicalTranscript, TranscriptSegment

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Transcript"
ORPHAN_SPEAKER = "Transcript"
FALLBACK_SPEAKER = "System"
SIMPLE_NAME_MAX_LENGTH = 20

SEGMENT_CONTAINER_KEYS = ("segments", "transcript")

METADATA_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^\d{4}년"),
    re.compile(r"^\d{4}[-./]\d{1,2}[-./]\d{1,2}\b"),
    re.compile(r"^\d{2}\.\d{2}\.\d{2}"),
    re.compile(r"^\d+분 \d+초"),
    re.compile(r"^\d+시간"),
    re.compile(r"^\d{1,2}:\d{2}(?::\d{2})?$"),
    re.compile(r"^녹음녹화"),
    re.compile(r"^recording", re.IGNORECASE),
)

# "나리 3:30예.네 감사합니다" - time token glued to the utterance.
IMMEDIATE_TIMESTAMP_RE = re.compile(
    r"^(?P<speaker>[^\d\s].*?)\s+(?P<timestamp>\d{1,2}:\d{2})(?!:\d)(?P<text>.*)$"
)
# "Speaker 1 [00:05]: text", "Lenny (00:00:36): text", "Name, 0:05 - text"
GENERAL_TURN_RE = re.compile(
    r"^(?P<speaker>[^\d\s].*?)(?:\s+|:\s*|,\s*)[(\[]?(?P<timestamp>\d{1,2}:\d{2}(?::\d{2})?)[)\]]?"
    r"\s*(?::|-)?\s*(?P<text>.*)$"
)
SIMPLE_NAME_RE = re.compile(r"^(?P<speaker>[^:\[\]{}\"'<>]+):\s*(?P<text>.*)$")

_LEADING_PUNCTUATION_RE = re.compile(r"^[:\s()]+")
_TRAILING_PUNCTUATION_RE = re.compile(r"[\s:,()\[\]]+$")


def clean_speaker_name(value: str) -> str:
    return _TRAILING_PUNCTUATION_RE.sub("", value.strip()).strip()


def is_metadata_line(line: str) -> bool:
    return any(pattern.search(line) for pattern in METADATA_PATTERNS)


@dataclass(slots=True)
class ParseState:
    headers: list[str] = field(default_factory=list)
    segments: list[TranscriptSegment] = field(default_factory=list)
    speaker: str = ""
    timestamp: str = ""
    buffer: list[str] = field(default_factory=list)

    def flush(self) -> None:
        text = "\n".join(self.buffer).strip()
        if self.speaker and text:
            self.segments.append(
                TranscriptSegment(
                    id=f"seg-{len(self.segments)}",
                    speaker=self.speaker,
                    timestamp=self.timestamp or DEFAULT_TIMESTAMP,
                    text=text,
                )
            )
        self.buffer = []

    def start_turn(self, speaker: str, timestamp: str, text: str) -> None:
        self.flush()
        self.speaker = speaker
        self.timestamp = timestamp
        if text:
            self.buffer.append(text)


class ParsingRule(Protocol):
    name: str

    def try_match(self, line: str, state: ParseState) -> bool:
        """Consume ``line`` into ``state`` and return True, or leave state untouched and return False."""


@dataclass(frozen=True, slots=True)
class MetadataRule:
    name: str = "metadata"

    def try_match(self, line: str, state: ParseState) -> bool:
        if not is_metadata_line(line):
            return False
        state.headers.append(line)
        return True


@dataclass(frozen=True, slots=True)
class TimestampedTurnRule:
    name: str
    pattern: re.Pattern[str]

    def try_match(self, line: str, state: ParseState) -> bool:
        match = self.pattern.match(line)
        if match is None:
            return False
        raw_speaker = match.group("speaker")
        # "Name: we met at 10:30" is a plain turn whose text mentions a time.
        if ":" in raw_speaker.rstrip(" :"):
            return False
        speaker = clean_speaker_name(raw_speaker)
        if not speaker:
            return False
        text = _LEADING_PUNCTUATION_RE.sub("", match.group("text") or "").strip()
        state.start_turn(speaker, match.group("timestamp").strip(), text)
        return True


@dataclass(frozen=True, slots=True)
class SimpleNameRule:
    name: str = "simple_name"
    max_name_length: int = SIMPLE_NAME_MAX_LENGTH

    def try_match(self, line: str, state: ParseState) -> bool:
        match = SIMPLE_NAME_RE.match(line)
        if match is None:
            return False
        speaker = clean_speaker_name(match.group("speaker"))
        text = match.group("text").strip()
        if not speaker or len(speaker) >= self.max_name_length:
            return False
        if text.startswith("//"):
            return False
        state.start_turn(speaker, state.timestamp or DEFAULT_TIMESTAMP, text)
        return True


@dataclass(frozen=True, slots=True)
class ContinuationRule:
    name: str = "continuation"

    def try_match(self, line: str, state: ParseState) -> bool:
        if not state.speaker:
            return False
        state.buffer.append(line)
        return True


@dataclass(frozen=True, slots=True)
class OrphanRule:
    name: str = "orphan"

    def try_match(self, line: str, state: ParseState) -> bool:
        logger.warning("Line does not match a speaker pattern: %s", line[:50])
        state.headers.append(line)
        state.speaker = ORPHAN_SPEAKER
        state.timestamp = DEFAULT_TIMESTAMP
        return True


DEFAULT_RULES: tuple[ParsingRule, ...] = (
    MetadataRule(),
    TimestampedTurnRule(name="immediate_timestamp", pattern=IMMEDIATE_TIMESTAMP_RE),
    TimestampedTurnRule(name="general_turn", pattern=GENERAL_TURN_RE),
    SimpleNameRule(),
    ContinuationRule(),
    OrphanRule(),
)


def _structured_candidates(text: str) -> list[str]:
    candidates: list[str] = []
    for opener, closer in (("[", "]"), ("{", "}")):
        start = text.find(opener)
        end = text.rfind(closer)
        if start != -1 and end > start:
            candidates.append(text[start : end + 1])
    return candidates


def _structured_items(parsed: Any) -> list[Any] | None:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in SEGMENT_CONTAINER_KEYS:
            value = parsed.get(key)
            if isinstance(value, list):
                return value
    return None


def sniff_structured_segments(raw_content: str) -> list[TranscriptSegment] | None:
    normalized = normalize_segments_json(raw_content)
    if normalized:
        return normalized

    for candidate in _structured_candidates(raw_content.strip()):
        try:
            parsed = json.loads(candidate)
        except (ValueError, RecursionError):
            logger.debug("Structured candidate is not valid JSON, trying next layer")
            continue
        items = _structured_items(parsed)
        if not items:
            continue
        segments = coerce_segments(items)
        if segments:
            return segments
    return None


def parse_lines(raw_content: str, rules: tuple[ParsingRule, ...] = DEFAULT_RULES) -> ParseState:
    state = ParseState()
    for line in raw_content.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        for rule in rules:
            if rule.try_match(stripped, state):
                break
    state.flush()
    return state


def parse_transcript(
    raw_content: str,
    title: str | None = None,
    *,
    rules: tuple[ParsingRule, ...] = DEFAULT_RULES,
) -> CanonicalTranscript:
    """Parse raw transcript text into canonical segments; never destructive, never raising."""
    raw_content = raw_content or ""
    resolved_title = title or DEFAULT_TITLE
    if not raw_content:
        return CanonicalTranscript(title=resolved_title, headers=[], segments=[], raw_content=raw_content)

    structured = sniff_structured_segments(raw_content)
    if structured:
        return CanonicalTranscript(title=resolved_title, headers=[], segments=structured, raw_content=raw_content)

    state = parse_lines(raw_content, rules)
    segments = state.segments
    if not segments:
        logger.warning("No speaker patterns detected; keeping raw content as a single %s segment", FALLBACK_SPEAKER)
        segments = [
            TranscriptSegment(
                id="seg-0",
                speaker=FALLBACK_SPEAKER,
                timestamp=DEFAULT_TIMESTAMP,
                text=raw_content.strip() or raw_content,
            )
        ]
    elif len({segment.speaker for segment in segments}) == 1:
        logger.info("All %d segments were attributed to %s", len(segments), segments[0].speaker)

    return CanonicalTranscript(
        title=resolved_title,
        headers=list(state.headers),
        segments=list(segments),
        raw_content=raw_content,
    )


__all__ = [
    "DEFAULT_RULES",
    "FALLBACK_SPEAKER",
    "ContinuationRule",
    "MetadataRule",
    "OrphanRule",
    "ParseState",
    "ParsingRule",
    "SimpleNameRule",
    "TimestampedTurnRule",
    "clean_speaker_name",
    "is_metadata_line",
    "parse_lines",
    "parse_transcript",
    "sniff_structured_segments",
]
