from __future__ import annotations

import re
from dataclasses import dataclass

from flow_dictation.buffer import TextBuffer

SENTENCE_END_CHARS = ".!?"
FIRST_LETTER_PATTERN = re.compile(r"^(\s*)([^\W\d_])")
SENTENCE_BREAK_PATTERN = re.compile(r"([.!?][ \t]+|\n[ \t]*)([^\W\d_])")
ATTACHED_START_PATTERN = re.compile(r"[,.!?;:\n\t]")


@dataclass(frozen=True)
class CursorAnchor:
    before: str
    after: str


@dataclass(frozen=True)
class SpliceResult:
    value: str
    cursor_offset: int


def capture_anchor(value: str, cursor_offset: int) -> CursorAnchor:
    offset = max(0, min(int(cursor_offset), len(value)))
    return CursorAnchor(before=value[:offset], after=value[offset:])


def splice(anchor: CursorAnchor, final_text: str, interim_text: str = "") -> SpliceResult:
    dictated = final_text + interim_text
    return SpliceResult(
        value=anchor.before + dictated + anchor.after,
        cursor_offset=len(anchor.before) + len(dictated),
    )


def write_splice(buffer: TextBuffer, result: SpliceResult, interim_marker: str | None) -> None:
    buffer.set_value(result.value)
    buffer.set_cursor_offset(result.cursor_offset)
    buffer.set_interim_marker(interim_marker)
    buffer.notify_changed()


def should_capitalize(previous: str) -> bool:
    if not previous:
        return True
    if previous.rstrip().endswith(tuple(SENTENCE_END_CHARS)):
        return True
    return previous.rstrip(" \t").endswith("\n")


def _upper(match: re.Match[str]) -> str:
    return match.group(1) + match.group(2).upper()


def auto_capitalize(text: str, previous: str = "") -> str:
    if not text:
        return text
    if should_capitalize(previous):
        text = FIRST_LETTER_PATTERN.sub(_upper, text, count=1)
    return SENTENCE_BREAK_PATTERN.sub(_upper, text)


def compose_fragment(text: str, previous: str) -> str:
    """Prepare a rewritten final fragment for appending after ``previous``."""
    if not text:
        return text

    text = auto_capitalize(text, previous)
    if previous and not previous[-1].isspace() and not ATTACHED_START_PATTERN.match(text):
        text = " " + text
    return text


__all__ = [
    "CursorAnchor",
    "SpliceResult",
    "auto_capitalize",
    "capture_anchor",
    "compose_fragment",
    "should_capitalize",
    "splice",
    "write_splice",
]
