from __future__ import annotations


class PipelineError(Exception):
    """Raised by the pipeline entrypoint for user-facing failures."""


class ContractError(PipelineError):
    """Raised when manifest/contracts are invalid."""


class ComponentError(Exception):
    """Base exception for component-level failures."""


class InputValidationError(ComponentError):
    """Raised when an input path, request or config value is invalid."""


class ConfigError(ComponentError):
    """Raised when required settings or credentials are missing or malformed."""


class TranscriptionError(ComponentError):
    """Raised when transcription provider calls fail."""


class ProviderError(TranscriptionError):
    """Base class for provider/API failures."""


class ProviderResponseError(ProviderError):
    """Raised when a provider returns an unexpected response shape."""


class IncompleteResponseError(ProviderResponseError):
    """Raised when a provider returns an empty or truncated response."""


class ProviderRetryExhaustedError(ProviderError):
    """Raised when transient provider failures outlast the retry budget (resource exhausted)."""


class MediaProcessingError(TranscriptionError):
    """Raised when the provider reports that a staged media file failed processing."""


class DiarizationValidationError(TranscriptionError):
    """Raised when a diarized result has fewer distinct speakers than requested."""

    def __init__(self, message: str, *, requested: int, found: int) -> None:
        super().__init__(message)
        self.requested = requested
        self.found = found


class TranscriptionFailedError(TranscriptionError):
    """Raised when every transcription strategy has failed."""

    def __init__(self, message: str, *, errors: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.errors = dict(errors or {})
