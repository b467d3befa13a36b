from __future__ import annotations

import logging
import subprocess
from typing import Literal, Protocol

from flow_dictation.config import AppConfig

NoticeLevel = Literal["info", "success", "error"]

LOGGER = logging.getLogger(__name__)
APP_TITLE = "Flow Dictation"


class Notifier(Protocol):
    def notify(self, message: str, level: NoticeLevel = "info", duration_ms: int = 2000) -> None:
        ...


class MicIndicator(Protocol):
    def set_active(self, active: bool) -> None:
        ...


class LogNotifier:
    def notify(self, message: str, level: NoticeLevel = "info", duration_ms: int = 2000) -> None:
        if level == "error":
            LOGGER.error("%s", message)
        else:
            LOGGER.info("[%s] %s", level, message)


class MacOSNotifier:
    """Shows notices through Notification Center; the duration is up to macOS."""

    def __init__(self, timeout_seconds: float = 2.0) -> None:
        self.timeout_seconds = timeout_seconds

    def notify(self, message: str, level: NoticeLevel = "info", duration_ms: int = 2000) -> None:
        subtitle = "Erro" if level == "error" else ""
        script = (
            f"display notification {_applescript_quote(message)} "
            f"with title {_applescript_quote(APP_TITLE)} "
            f"subtitle {_applescript_quote(subtitle)}"
        )
        try:
            result = subprocess.run(
                ["osascript", "-e", script],
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except (OSError, subprocess.SubprocessError):
            LOGGER.warning("Unable to show notification: %s", message, exc_info=True)
            return
        if result.returncode != 0:
            LOGGER.debug("osascript notification failed: %s", result.stderr.strip())


class TerminalMicIndicator:
    def __init__(self) -> None:
        self.active = False

    def set_active(self, active: bool) -> None:
        self.active = active
        LOGGER.info("Microphone %s", "on" if active else "off")


class NullMicIndicator:
    def set_active(self, active: bool) -> None:
        return None


def _applescript_quote(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_notifier(config: AppConfig) -> Notifier:
    if config.notifier == "macos":
        return MacOSNotifier()
    return LogNotifier()


__all__ = [
    "LogNotifier",
    "MacOSNotifier",
    "MicIndicator",
    "NoticeLevel",
    "Notifier",
    "NullMicIndicator",
    "TerminalMicIndicator",
    "build_notifier",
]
