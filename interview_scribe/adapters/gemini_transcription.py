from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Iterable, Protocol

from google.genai import types

from interview_scribe.adapters.transcription import ModelTier
from interview_scribe.components.prompts import LoadedTranscriptionPrompt, load_transcription_prompt
from interview_scribe.contracts.artifacts import FileState, OutputMode, StagedFile
from interview_scribe.contracts.errors import IncompleteResponseError, ProviderResponseError
from interview_scribe.utils.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

MODEL_PRIORITY: dict[str, tuple[str, ...]] = {
    "pro": (
        "gemini-2.5-pro",
        "gemini-2.0-pro-exp",
        "gemini-1.5-pro",
        "gemini-1.5-pro-001",
        "gemini-pro",
        "gemini-2.0-flash",
    ),
    "flash": (
        "gemini-2.0-flash",
        "gemini-2.0-flash-001",
        "gemini-2.5-flash",
        "gemini-1.5-flash",
        "gemini-1.5-flash-001",
    ),
}

DEFAULT_MODELS: dict[str, str] = {
    "pro": "gemini-1.5-pro",
    "flash": "gemini-2.0-flash",
}

TIER_TEMPERATURE: dict[str, float] = {
    "pro": 0.1,
    "flash": 0.0,
}

_SAFETY_CATEGORIES = (
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
)

_PROVIDER_STATES: dict[str, FileState] = {
    "ACTIVE": "ready",
    "FAILED": "failed",
}

# Speaker labels glued to the previous utterance ("...thanks. Speaker 2 [00:10]: ...").
_INLINE_SPEAKER_RE = re.compile(r"([^\n])[ \t]*((?:Speaker|화자)\s*\d)")
_BRACKETED_TIME_RE = re.compile(r"\[(\d{1,2}:\d{2}(?::\d{2})?)\]")


class _GeminiModelsAPI(Protocol):
    def list(self, **kwargs: Any) -> Iterable[Any]: ...

    def generate_content(self, **kwargs: Any) -> Any: ...


class _GeminiFilesAPI(Protocol):
    def upload(self, **kwargs: Any) -> Any: ...

    def get(self, **kwargs: Any) -> Any: ...


class GeminiClientLike(Protocol):
    models: _GeminiModelsAPI
    files: _GeminiFilesAPI


def clean_delimited_text(text: str) -> str:
    """Put every speaker label on its own line and unbracket ``[MM:SS]`` timestamps."""
    cleaned = _INLINE_SPEAKER_RE.sub(r"\1\n\2", text)
    return _BRACKETED_TIME_RE.sub(r"\1", cleaned)


def safety_settings() -> list[types.SafetySetting]:
    return [
        types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.BLOCK_NONE)
        for category in _SAFETY_CATEGORIES
    ]


def _state_name(state: Any) -> str:
    name = getattr(state, "name", None)
    if isinstance(name, str):
        return name.upper()
    return str(state or "").upper()


def _to_staged_file(file: Any, *, fallback_mime_type: str = "") -> StagedFile:
    name = getattr(file, "name", None)
    if not name:
        raise ProviderResponseError("Gemini file response missing name")
    return StagedFile(
        name=str(name),
        uri=str(getattr(file, "uri", None) or ""),
        mime_type=str(getattr(file, "mime_type", None) or fallback_mime_type),
        state=_PROVIDER_STATES.get(_state_name(getattr(file, "state", None)), "processing"),
    )


class GeminiModelResolver:
    """Picks the best available model per quality tier and memoizes the answer."""

    def __init__(self, client: GeminiClientLike, *, bypass_cache: bool = False) -> None:
        self._client = client
        self._bypass_cache = bypass_cache
        self._cache: dict[str, str] = {}

    def resolve(self, tier: ModelTier) -> str:
        if tier not in MODEL_PRIORITY:
            raise ValueError(f"unknown model tier: {tier}")
        if not self._bypass_cache and tier in self._cache:
            return self._cache[tier]

        try:
            available = self._list_generate_models()
        except Exception as exc:  # provider listing errors vary by transport
            logger.error("Failed to list Gemini models, using %s: %s", DEFAULT_MODELS[tier], exc)
            return DEFAULT_MODELS[tier]

        selected = next((name for name in MODEL_PRIORITY[tier] if name in available), None)
        if selected is None:
            if not available:
                logger.warning("No generate-capable Gemini models listed, using %s", DEFAULT_MODELS[tier])
                return DEFAULT_MODELS[tier]
            selected = available[0]
            logger.info("Selected fallback Gemini model (%s): %s", tier, selected)
        else:
            logger.info("Selected best Gemini model (%s): %s", tier, selected)

        if not self._bypass_cache:
            self._cache[tier] = selected
        return selected

    def _list_generate_models(self) -> list[str]:
        names: list[str] = []
        for model in self._client.models.list():
            actions = getattr(model, "supported_actions", None)
            if actions is not None and "generateContent" not in actions:
                continue
            name = str(getattr(model, "name", "") or "")
            if name.startswith("models/"):
                name = name[len("models/"):]
            if name:
                names.append(name)
        return names


class GeminiTranscriptionAdapter:
    """Primary provider: multimodal Gemini transcription with native diarization."""

    def __init__(
        self,
        client: GeminiClientLike,
        *,
        retry_policy: RetryPolicy | None = None,
        model_resolver: GeminiModelResolver | None = None,
        top_p: float = 0.8,
        top_k: int = 40,
    ) -> None:
        self._client = client
        self._retry_policy = retry_policy or RetryPolicy()
        self._models = model_resolver or GeminiModelResolver(client)
        self._top_p = top_p
        self._top_k = top_k
        self._prompts: dict[str, LoadedTranscriptionPrompt] = {}

    def stage_file(self, path: Path, mime_type: str) -> StagedFile:
        path = Path(path)
        uploaded = call_with_retry(
            lambda: self._client.files.upload(
                file=str(path),
                config=types.UploadFileConfig(mime_type=mime_type, display_name=path.name),
            ),
            self._retry_policy,
            description=f"Gemini upload of {path.name}",
        )
        staged = _to_staged_file(uploaded, fallback_mime_type=mime_type)
        logger.info("Uploaded %s as %s", path.name, staged.name)
        return staged

    def get_file(self, name: str) -> StagedFile:
        file = call_with_retry(
            lambda: self._client.files.get(name=name),
            self._retry_policy,
            description=f"Gemini file status {name}",
        )
        return _to_staged_file(file)

    def generation_config(self, tier: ModelTier, output_mode: OutputMode) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=TIER_TEMPERATURE[tier],
            top_p=self._top_p,
            top_k=self._top_k,
            safety_settings=safety_settings(),
            response_mime_type="application/json" if output_mode == "json" else "text/plain",
        )

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
        model = self._models.resolve(tier)
        prompt = self._prompt(output_mode).render(
            speaker_count=speaker_count,
            interviewer_name=interviewer_name,
        )
        config = self.generation_config(tier, output_mode)

        def _generate() -> str:
            response = self._client.models.generate_content(
                model=model,
                contents=[types.Part.from_uri(file_uri=file_uri, mime_type=mime_type), prompt],
                config=config,
            )
            text = getattr(response, "text", None)
            if not isinstance(text, str) or not text.strip():
                raise IncompleteResponseError("Gemini returned an empty response")
            return text

        text = call_with_retry(
            _generate,
            self._retry_policy,
            description=f"Gemini {output_mode} transcription ({model})",
        )
        logger.debug("Raw Gemini %s output: %s", output_mode, text[:500])

        if output_mode == "text":
            return clean_delimited_text(text)
        return text

    def _prompt(self, output_mode: OutputMode) -> LoadedTranscriptionPrompt:
        if output_mode not in self._prompts:
            self._prompts[output_mode] = load_transcription_prompt(output_mode)
        return self._prompts[output_mode]


__all__ = [
    "DEFAULT_MODELS",
    "MODEL_PRIORITY",
    "GeminiClientLike",
    "GeminiModelResolver",
    "GeminiTranscriptionAdapter",
    "clean_delimited_text",
    "safety_settings",
]
