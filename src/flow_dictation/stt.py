from __future__ import annotations

import importlib.util
import logging
import threading
from typing import Any

import numpy as np

LOGGER = logging.getLogger(__name__)


def whisper_installed() -> bool:
    return importlib.util.find_spec("faster_whisper") is not None


class STTEngine:
    def __init__(self, model_name: str, language: str) -> None:
        self.model_name = model_name
        self.language = language
        self._model: Any | None = None
        self._model_lock = threading.Lock()

    def _ensure_model(self) -> Any:
        with self._model_lock:
            if self._model is not None:
                return self._model

            from faster_whisper import WhisperModel

            LOGGER.info("Loading faster-whisper model: %s (language=%s)", self.model_name, self.language)
            self._model = WhisperModel(self.model_name, device="auto", compute_type="auto")
            return self._model

    def transcribe(self, audio: np.ndarray) -> str:
        if audio.size == 0:
            return ""

        model = self._ensure_model()
        segments, _info = model.transcribe(
            audio,
            beam_size=5,
            language=self.language,
            task="transcribe",
            condition_on_previous_text=False,
            vad_filter=False,
        )
        return " ".join(segment.text.strip() for segment in segments).strip()
