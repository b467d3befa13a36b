from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Literal

NotifierKind = Literal["log", "macos"]

LOGGER = logging.getLogger(__name__)

APP_DIR = Path.home() / ".config" / "flow-dictation"
CONFIG_PATH = APP_DIR / "config.json"

SUPPORTED_LOCALES = {"pt-BR"}


@dataclass
class AppConfig:
    locale: str = "pt-BR"
    stt_model: str = "small"
    sample_rate: int = 16_000
    silence_threshold: int = 450
    poll_interval_ms: int = 100
    segment_silence_ms: int = 700
    interim_results: bool = True
    interim_interval_ms: int = 1200
    no_speech_timeout_ms: int = 8000
    segment_max_seconds: int = 60
    max_consecutive_restarts: int = 3
    notifier: NotifierKind = "log"
    notice_duration_ms: int = 2000
    start_notice_duration_ms: int = 4000
    error_notice_duration_ms: int = 6000

    @property
    def language(self) -> str:
        return self.locale.split("-", 1)[0].lower()

    def validate(self) -> None:
        if self.locale not in SUPPORTED_LOCALES:
            raise ValueError(f"Unsupported locale: {self.locale}")
        if not self.stt_model.strip():
            raise ValueError("stt_model cannot be empty")
        if self.sample_rate < 8000:
            raise ValueError("sample_rate must be >= 8000")
        if self.silence_threshold < 0 or self.silence_threshold > 32767:
            raise ValueError("silence_threshold must be between 0 and 32767")
        if self.poll_interval_ms < 10 or self.poll_interval_ms > 1000:
            raise ValueError("poll_interval_ms must be between 10 and 1000")
        if self.segment_silence_ms < 200:
            raise ValueError("segment_silence_ms must be >= 200")
        if self.interim_interval_ms < 200:
            raise ValueError("interim_interval_ms must be >= 200")
        if self.no_speech_timeout_ms < 1000:
            raise ValueError("no_speech_timeout_ms must be >= 1000")
        if self.segment_max_seconds < 5:
            raise ValueError("segment_max_seconds must be >= 5")
        if self.max_consecutive_restarts < 0 or self.max_consecutive_restarts > 20:
            raise ValueError("max_consecutive_restarts must be between 0 and 20")
        if self.notifier not in {"log", "macos"}:
            raise ValueError(f"Unsupported notifier: {self.notifier}")
        for name in ("notice_duration_ms", "start_notice_duration_ms", "error_notice_duration_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")


class ConfigStore:
    def __init__(self, path: Path = CONFIG_PATH) -> None:
        self.path = path

    def ensure_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> AppConfig:
        self.ensure_dir()
        try:
            raw_text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            cfg = AppConfig()
            self.save(cfg)
            return cfg

        try:
            raw = json.loads(raw_text)
            known_keys = {f.name for f in fields(AppConfig)}
            cfg = AppConfig(**{k: v for k, v in raw.items() if k in known_keys})
            cfg.validate()
            return cfg
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError) as exc:
            LOGGER.warning("Config file corrupt or invalid, using defaults: %s", exc)
            return AppConfig()

    def save(self, config: AppConfig) -> None:
        config.validate()
        self.ensure_dir()
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps(asdict(config), indent=2, sort_keys=True),
            encoding="utf-8",
        )
        os.replace(str(tmp_path), str(self.path))
