from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import numpy as np
import sounddevice as sd

LOGGER = logging.getLogger(__name__)


@dataclass
class AudioConfig:
    sample_rate: int = 16_000
    channels: int = 1
    dtype: str = "int16"
    silence_threshold: int = 450


class AudioStream:
    """Microphone input that hands out newly captured samples on demand."""

    def __init__(self, config: AudioConfig | None = None) -> None:
        self.config = config or AudioConfig()
        self._frames: list[np.ndarray] = []
        self._lock = threading.Lock()
        self._stream: sd.InputStream | None = None
        self._live_level: float = 0.0

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._stream is not None

    def _on_audio(self, indata: np.ndarray, frames: int, time, status) -> None:  # type: ignore[no-untyped-def]
        if status:
            LOGGER.warning("Audio stream status: %s", status)
        chunk = indata.copy()
        live_level = self._compute_live_level(chunk)
        with self._lock:
            self._frames.append(chunk)
            self._live_level = max(0.0, min(1.0, (self._live_level * 0.60) + (live_level * 0.40)))

    def start(self) -> None:
        with self._lock:
            if self._stream is not None:
                return

            self._frames = []
            self._live_level = 0.0

            stream = sd.InputStream(
                samplerate=self.config.sample_rate,
                channels=self.config.channels,
                dtype=self.config.dtype,
                callback=self._on_audio,
                blocksize=0,
            )
            stream.start()
            self._stream = stream

    def drain(self) -> np.ndarray:
        """Return the int16 samples captured since the previous call."""
        with self._lock:
            if not self._frames:
                return np.array([], dtype=np.int16)
            samples = np.concatenate(self._frames, axis=0).reshape(-1)
            self._frames.clear()
        return samples

    def stop(self) -> np.ndarray:
        with self._lock:
            stream = self._stream
            self._stream = None

        if stream is not None:
            try:
                stream.stop()
            finally:
                stream.close()

        remaining = self.drain()
        self.reset_live_level()
        return remaining

    def is_voiced(self, samples: np.ndarray) -> bool:
        if samples.size == 0:
            return False
        energy = np.abs(samples.astype(np.int32))
        return bool(np.any(energy > self.config.silence_threshold))

    def get_live_level(self) -> float:
        with self._lock:
            return self._live_level

    def reset_live_level(self) -> None:
        with self._lock:
            self._live_level = 0.0

    @staticmethod
    def to_float32(samples: np.ndarray) -> np.ndarray:
        if samples.size == 0:
            return np.array([], dtype=np.float32)
        return samples.astype(np.float32).reshape(-1) / 32768.0

    @staticmethod
    def _compute_live_level(samples: np.ndarray) -> float:
        if samples.size == 0:
            return 0.0
        normalized = samples.astype(np.float32).reshape(-1) / 32768.0
        rms = float(np.sqrt(np.mean(np.square(normalized))))
        return max(0.0, min(1.0, rms * 6.0))


def has_input_device() -> bool:
    try:
        sd.query_devices(kind="input")
    except (sd.PortAudioError, ValueError):
        return False
    return True
