from __future__ import annotations

import logging
from typing import Callable, Protocol

LOGGER = logging.getLogger(__name__)


class TextBuffer(Protocol):
    def get_value(self) -> str:
        ...

    def set_value(self, value: str) -> None:
        ...

    def get_cursor_offset(self) -> int:
        ...

    def set_cursor_offset(self, offset: int) -> None:
        ...

    def select_all(self) -> None:
        ...

    def set_interim_marker(self, text: str | None) -> None:
        ...

    def notify_changed(self) -> None:
        ...


class InMemoryTextBuffer:
    """Plain text buffer with a cursor, a selection and change listeners."""

    def __init__(self, value: str = "", cursor_offset: int | None = None) -> None:
        self._value = value
        self._selection = (0, 0)
        self.interim_marker: str | None = None
        self._listeners: list[Callable[[str], None]] = []
        self.set_cursor_offset(len(value) if cursor_offset is None else cursor_offset)

    @property
    def selection(self) -> tuple[int, int]:
        return self._selection

    @property
    def selected_text(self) -> str:
        start, end = self._selection
        return self._value[start:end]

    def add_change_listener(self, callback: Callable[[str], None]) -> None:
        self._listeners.append(callback)

    def get_value(self) -> str:
        return self._value

    def set_value(self, value: str) -> None:
        self._value = value
        self.set_cursor_offset(self._selection[1])

    def get_cursor_offset(self) -> int:
        return self._selection[1]

    def set_cursor_offset(self, offset: int) -> None:
        offset = max(0, min(int(offset), len(self._value)))
        self._selection = (offset, offset)

    def select_all(self) -> None:
        self._selection = (0, len(self._value))

    def set_interim_marker(self, text: str | None) -> None:
        self.interim_marker = text

    def notify_changed(self) -> None:
        for callback in list(self._listeners):
            try:
                callback(self._value)
            except Exception:
                LOGGER.warning("Buffer change listener failed", exc_info=True)


__all__ = ["InMemoryTextBuffer", "TextBuffer"]
