from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol, Sequence

from flow_dictation.errors import RecognitionErrorKind


@dataclass(frozen=True)
class RecognitionResult:
    text: str
    is_final: bool


@dataclass
class RecognizerCallbacks:
    on_result: Callable[[Sequence[RecognitionResult], int], None]
    on_error: Callable[[RecognitionErrorKind], None]
    on_end: Callable[[], None]


class SpeechRecognizer(Protocol):
    """Continuous recognizer with interim results and a fixed language.

    ``start`` and ``stop`` return immediately; outcomes arrive through the
    callbacks. ``on_end`` fires after ``stop`` and also whenever the
    recognizer closes a listening segment on its own.
    """

    def is_available(self) -> bool:
        ...

    def set_callbacks(self, callbacks: RecognizerCallbacks) -> None:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


__all__ = ["RecognitionResult", "RecognizerCallbacks", "SpeechRecognizer"]
