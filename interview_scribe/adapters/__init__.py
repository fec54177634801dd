from __future__ import annotations

from .gemini_transcription import GeminiClientLike, GeminiModelResolver, GeminiTranscriptionAdapter
from .openai_transcription import OpenAIClientLike, OpenAISegmentTranscriber
from .transcription import DiarizingProvider, ModelTier, SegmentProvider

__all__ = [
    "DiarizingProvider",
    "SegmentProvider",
    "ModelTier",
    "GeminiClientLike",
    "GeminiModelResolver",
    "GeminiTranscriptionAdapter",
    "OpenAIClientLike",
    "OpenAISegmentTranscriber",
]
