from .artifacts import (
    CanonicalTranscript,
    MediaReference,
    RawTranscriptionResult,
    SpeakerInfo,
    StagedFile,
    TimedSegment,
    TranscriptionRequest,
    TranscriptSegment,
)
from .errors import (
    ComponentError,
    ConfigError,
    ContractError,
    DiarizationValidationError,
    IncompleteResponseError,
    InputValidationError,
    MediaProcessingError,
    PipelineError,
    ProviderError,
    ProviderResponseError,
    ProviderRetryExhaustedError,
    TranscriptionError,
    TranscriptionFailedError,
)
from .manifest import Manifest, StepRecord, TranscriptionRefs

__all__ = [
    "MediaReference",
    "TranscriptionRequest",
    "RawTranscriptionResult",
    "SpeakerInfo",
    "StagedFile",
    "TimedSegment",
    "TranscriptSegment",
    "CanonicalTranscript",
    "Manifest",
    "StepRecord",
    "TranscriptionRefs",
    "PipelineError",
    "ContractError",
    "ComponentError",
    "InputValidationError",
    "ConfigError",
    "TranscriptionError",
    "ProviderError",
    "ProviderResponseError",
    "IncompleteResponseError",
    "ProviderRetryExhaustedError",
    "MediaProcessingError",
    "DiarizationValidationError",
    "TranscriptionFailedError",
]
