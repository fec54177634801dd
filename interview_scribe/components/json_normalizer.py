from __future__ import annotations

import json
import logging
import re
from typing import Any

from interview_scribe.contracts.artifacts import TranscriptSegment
from interview_scribe.utils.time import format_offset

logger = logging.getLogger(__name__)

SPEAKER_FIELDS = ("speaker", "role")
TIMESTAMP_FIELDS = ("timestamp", "time", "start")
TEXT_FIELDS = ("text", "content", "message")
DEFAULT_TIMESTAMP = "00:00"

_CODE_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE_RE.sub("", text).strip()


def _first_present(item: dict[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = item.get(name)
        if value is None or isinstance(value, bool):
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def speaker_label(item: dict[str, Any]) -> str | None:
    """Return the stripped speaker label of a structured element, or None when it has none."""
    value = _first_present(item, SPEAKER_FIELDS)
    return str(value).strip() if value is not None else None


def _coerce_timestamp(value: Any) -> str:
    if value is None:
        return DEFAULT_TIMESTAMP
    if isinstance(value, (int, float)):
        return format_offset(value)
    return str(value).strip() or DEFAULT_TIMESTAMP


def coerce_segment(item: Any, *, position: int, segment_id: str) -> TranscriptSegment | None:
    """Map one heterogeneous structured element onto a canonical segment, or None without text."""
    if not isinstance(item, dict):
        return None
    text = _first_present(item, TEXT_FIELDS)
    if not isinstance(text, str) or not text.strip():
        return None
    speaker = speaker_label(item)
    return TranscriptSegment(
        id=segment_id,
        speaker=speaker if speaker is not None else f"Speaker {position + 1}",
        timestamp=_coerce_timestamp(_first_present(item, TIMESTAMP_FIELDS)),
        text=text.strip(),
    )


def coerce_segments(items: list[Any]) -> list[TranscriptSegment]:
    segments: list[TranscriptSegment] = []
    for position, item in enumerate(items):
        segment = coerce_segment(item, position=position, segment_id=f"seg-{len(segments)}")
        if segment is not None:
            segments.append(segment)
    return segments


def normalize_segments_json(raw: str) -> list[TranscriptSegment] | None:
    """
    Parse provider JSON (optionally fenced in markdown) into canonical segments.
    Returns None, never an empty list, when nothing usable remains.
    """
    if not raw or not raw.strip():
        return None
    try:
        parsed = json.loads(strip_code_fences(raw))
    except (ValueError, RecursionError) as exc:
        logger.debug("Structured transcript is not valid JSON: %s", exc)
        return None

    if not isinstance(parsed, list):
        logger.warning("Structured transcript is not a JSON array (got %s)", type(parsed).__name__)
        return None

    segments = coerce_segments(parsed)
    if not segments:
        return None
    return segments


__all__ = [
    "DEFAULT_TIMESTAMP",
    "coerce_segment",
    "coerce_segments",
    "normalize_segments_json",
    "speaker_label",
    "strip_code_fences",
]
