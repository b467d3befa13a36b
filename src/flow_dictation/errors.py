from __future__ import annotations

from enum import Enum


class RecognitionErrorKind(str, Enum):
    NO_SPEECH = "no-speech"
    PERMISSION_DENIED = "not-allowed"
    AUDIO_CAPTURE = "audio-capture"
    NETWORK = "network"
    ABORTED = "aborted"
    UNKNOWN = "unknown"

    @classmethod
    def from_code(cls, code: str | None) -> RecognitionErrorKind:
        for kind in cls:
            if kind.value == code:
                return kind
        return cls.UNKNOWN


class DictationError(Exception):
    """Base class for dictation session failures."""


class AdapterUnavailable(DictationError):
    """Speech recognition is not supported in this environment."""


class StartFailure(DictationError):
    """The recognizer refused to start listening."""


class MicrophoneNotFound(StartFailure):
    pass


class MicrophonePermissionDenied(StartFailure):
    pass


__all__ = [
    "AdapterUnavailable",
    "DictationError",
    "MicrophoneNotFound",
    "MicrophonePermissionDenied",
    "RecognitionErrorKind",
    "StartFailure",
]
