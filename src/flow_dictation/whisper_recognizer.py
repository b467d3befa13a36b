from __future__ import annotations

import logging
import re
import threading
import time
from typing import Callable

import numpy as np
import sounddevice as sd

from flow_dictation.audio import AudioConfig, AudioStream, has_input_device
from flow_dictation.config import AppConfig
from flow_dictation.errors import AdapterUnavailable, MicrophoneNotFound, RecognitionErrorKind, StartFailure
from flow_dictation.recognizer import RecognitionResult, RecognizerCallbacks
from flow_dictation.stt import STTEngine, whisper_installed

LOGGER = logging.getLogger(__name__)

# Marks Whisper inserts on its own; a mark between digits belongs to a number.
AUTO_PUNCTUATION_PATTERN = re.compile(r"(?<!\d)[.,!?;:…]+|[.,!?;:…]+(?!\d)")
STOP_JOIN_TIMEOUT_SECONDS = 5.0


def strip_auto_punctuation(text: str) -> str:
    """Remove the punctuation Whisper adds so only spoken punctuation reaches the transcript."""
    return " ".join(AUTO_PUNCTUATION_PATTERN.sub(" ", text).split())


class WhisperRecognizer:
    def __init__(
        self,
        config: AppConfig,
        stream: AudioStream | None = None,
        engine: STTEngine | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._stream = stream or AudioStream(
            AudioConfig(sample_rate=config.sample_rate, silence_threshold=config.silence_threshold)
        )
        self._engine = engine or STTEngine(config.stt_model, config.language)
        self._clock = clock
        self._callbacks: RecognizerCallbacks | None = None
        self._thread: threading.Thread | None = None
        self._active = False
        self._run_id = 0
        self._lock = threading.Lock()
        self._stop_requested = threading.Event()

    def is_available(self) -> bool:
        return has_input_device() and whisper_installed()

    def set_callbacks(self, callbacks: RecognizerCallbacks) -> None:
        self._callbacks = callbacks

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._active

    def start(self) -> None:
        self._wait_for_stopping_run()
        with self._lock:
            if self._callbacks is None:
                raise StartFailure("Recognizer callbacks are not configured")
            if self._active:
                raise StartFailure("Recognizer is already listening")
            if not whisper_installed():
                raise AdapterUnavailable("faster-whisper is not installed")

            try:
                self._stream.start()
            except sd.PortAudioError as exc:
                if not has_input_device():
                    raise MicrophoneNotFound(str(exc)) from exc
                raise StartFailure(str(exc)) from exc

            self._stop_requested.clear()
            self._active = True
            self._run_id += 1
            self._thread = threading.Thread(
                target=self._run,
                args=(self._guarded(self._callbacks, self._run_id),),
                name="speech-recognizer",
                daemon=True,
            )
            self._thread.start()
            LOGGER.info("Speech recognizer started (model=%s, language=%s)", self.config.stt_model, self.config.language)

    def stop(self) -> None:
        self._stop_requested.set()

    def _wait_for_stopping_run(self) -> None:
        with self._lock:
            thread = self._thread
            if thread is None or thread is threading.current_thread() or not thread.is_alive():
                return
            if not self._stop_requested.is_set():
                return
            # Whatever the stopping run still reports belongs to a finished session.
            self._run_id += 1

        LOGGER.debug("Waiting for the previous recognizer run to finish")
        thread.join(STOP_JOIN_TIMEOUT_SECONDS)
        if thread.is_alive():
            raise StartFailure("Previous recognizer run did not finish")

    def _guarded(self, callbacks: RecognizerCallbacks, run_id: int) -> RecognizerCallbacks:
        def current() -> bool:
            with self._lock:
                return self._run_id == run_id

        def on_result(results, result_index):  # type: ignore[no-untyped-def]
            if current():
                callbacks.on_result(results, result_index)

        def on_error(kind: RecognitionErrorKind) -> None:
            if current():
                callbacks.on_error(kind)

        def on_end() -> None:
            if current():
                callbacks.on_end()
            else:
                LOGGER.debug("Dropping end of a superseded recognizer run")

        return RecognizerCallbacks(on_result=on_result, on_error=on_error, on_end=on_end)

    def _run(self, callbacks: RecognizerCallbacks) -> None:
        poll_seconds = self.config.poll_interval_ms / 1000.0
        started_at = self._clock()
        last_interim_at = started_at
        utterance: list[np.ndarray] = []
        trailing_silence_ms = 0.0
        heard_speech = False
        reported_no_speech = False

        try:
            while not self._stop_requested.wait(poll_seconds):
                now = self._clock()
                if now - started_at >= self.config.segment_max_seconds:
                    LOGGER.debug("Recognizer segment reached %ss; closing it", self.config.segment_max_seconds)
                    break

                samples = self._stream.drain()
                if self._stream.is_voiced(samples):
                    utterance.append(samples)
                    trailing_silence_ms = 0.0
                    heard_speech = True
                elif utterance and samples.size:
                    utterance.append(samples)
                    trailing_silence_ms += samples.size * 1000.0 / self.config.sample_rate
                    if trailing_silence_ms >= self.config.segment_silence_ms:
                        self._emit(callbacks, utterance, is_final=True)
                        utterance = []
                        trailing_silence_ms = 0.0
                        last_interim_at = now
                        continue

                if (
                    not heard_speech
                    and not reported_no_speech
                    and (now - started_at) * 1000.0 >= self.config.no_speech_timeout_ms
                ):
                    reported_no_speech = True
                    callbacks.on_error(RecognitionErrorKind.NO_SPEECH)

                if (
                    utterance
                    and self.config.interim_results
                    and (now - last_interim_at) * 1000.0 >= self.config.interim_interval_ms
                ):
                    self._emit(callbacks, utterance, is_final=False)
                    last_interim_at = now

            remaining = self._stream.stop()
            if utterance:
                if remaining.size:
                    utterance.append(remaining)
                self._emit(callbacks, utterance, is_final=True)
        except Exception:
            LOGGER.exception("Speech recognizer loop failed")
            callbacks.on_error(RecognitionErrorKind.AUDIO_CAPTURE)
        finally:
            try:
                self._stream.stop()
            except Exception:
                LOGGER.warning("Failed to close microphone stream", exc_info=True)
            # Cleared before on_end so the listener may restart from inside the callback.
            with self._lock:
                self._active = False
            callbacks.on_end()

    def _emit(self, callbacks: RecognizerCallbacks, chunks: list[np.ndarray], is_final: bool) -> None:
        audio = self._stream.to_float32(np.concatenate(chunks))
        text = strip_auto_punctuation(self._engine.transcribe(audio))
        if not text:
            return
        LOGGER.debug("Recognizer %s result (chars=%d)", "final" if is_final else "interim", len(text))
        callbacks.on_result([RecognitionResult(text=text, is_final=is_final)], 0)


__all__ = ["WhisperRecognizer", "strip_auto_punctuation"]
