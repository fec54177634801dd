from __future__ import annotations

import json
import re

from interview_scribe.components.json_normalizer import SPEAKER_FIELDS, strip_code_fences

SPEAKER_LABEL_WORDS = ("Speaker", "화자", "참여자", "질문자", "면접관", "응답자")

_JSON_SPEAKER_RE = re.compile(r'"speaker"\s*:\s*"([^"]+)"', re.IGNORECASE)
# "Speaker 00:05: ..." carries a timestamp, not a speaker number.
_TEXT_SPEAKER_RE = re.compile(
    r"(" + "|".join(SPEAKER_LABEL_WORDS) + r")\s*(\d+)(?!\d|:\d)",
    re.IGNORECASE,
)


def _speakers_from_array(raw: str) -> set[str] | None:
    try:
        parsed = json.loads(strip_code_fences(raw))
    except (ValueError, RecursionError):
        return None
    if not isinstance(parsed, list):
        return None
    speakers: set[str] = set()
    for item in parsed:
        if not isinstance(item, dict):
            continue
        for name in SPEAKER_FIELDS:
            value = item.get(name)
            if value is not None and str(value).strip():
                speakers.add(str(value).strip().casefold())
                break
    return speakers


def count_distinct_speakers(raw: str) -> int:
    """
    Count distinct speaker identifiers in a raw provider result.

    Array-shaped input is read field by field; free text is scanned for
    ``Speaker N``-style labels (and Korean equivalents). Content without any
    recognizable label counts as one speaker; blank input counts as zero.
    """
    if not raw or not raw.strip():
        return 0

    if strip_code_fences(raw).startswith("["):
        speakers = _speakers_from_array(raw)
        if speakers:
            return len(speakers)

    field_matches = _JSON_SPEAKER_RE.findall(raw)
    if field_matches:
        return len({value.strip().casefold() for value in field_matches})

    label_matches = _TEXT_SPEAKER_RE.findall(raw)
    if label_matches:
        return len({f"{word.casefold()} {int(number)}" for word, number in label_matches})

    return 1


__all__ = ["SPEAKER_LABEL_WORDS", "count_distinct_speakers"]
