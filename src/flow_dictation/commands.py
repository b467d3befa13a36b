from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

T = TypeVar("T")


class VoiceAction(str, Enum):
    STOP = "stop"
    CLEAR = "clear"
    DELETE_LAST_WORD = "delete_last_word"
    UNDO = "undo"
    SELECT_ALL = "select_all"


@dataclass(frozen=True)
class ActionCommand:
    triggers: tuple[str, ...]
    action: VoiceAction


@dataclass(frozen=True)
class PunctuationCommand:
    triggers: tuple[str, ...]
    replacement: str


@dataclass(frozen=True)
class ActionMatch:
    action: VoiceAction
    trigger: str


ACTION_COMMANDS: tuple[ActionCommand, ...] = (
    ActionCommand(
        ("parar", "parar ditado", "parar gravação", "stop", "terminar", "encerrar"),
        VoiceAction.STOP,
    ),
    ActionCommand(("limpar", "limpar tudo", "apagar tudo"), VoiceAction.CLEAR),
    ActionCommand(("apagar", "apagar palavra", "apagar última palavra"), VoiceAction.DELETE_LAST_WORD),
    ActionCommand(("desfazer",), VoiceAction.UNDO),
    ActionCommand(("selecionar tudo",), VoiceAction.SELECT_ALL),
)

PUNCTUATION_COMMANDS: tuple[PunctuationCommand, ...] = (
    PunctuationCommand(
        ("ponto de exclamação", "ponto de exclamacao", "exclamação", "exclamacao"),
        "!",
    ),
    PunctuationCommand(
        ("ponto de interrogação", "ponto de interrogacao", "interrogação", "interrogacao"),
        "?",
    ),
    PunctuationCommand(("ponto e vírgula", "ponto e virgula"), ";"),
    PunctuationCommand(("dois pontos",), ":"),
    PunctuationCommand(("ponto final", "ponto.", "ponto"), "."),
    PunctuationCommand(("vírgula", "virgula"), ","),
    PunctuationCommand(("nova linha", "quebra de linha"), "\n"),
    PunctuationCommand(("novo parágrafo", "parágrafo", "paragrafo"), "\n\n"),
    PunctuationCommand(("tabulação", "tabulacao", "tab"), "\t"),
)

SPACE_BEFORE_MARK_PATTERN = re.compile(r" +([,.!?;:])")
MISSING_SPACE_AFTER_MARK_PATTERN = re.compile(r"([,.!?;:])(?=[^\s\d,.!?;:])")
TAB_RUN_PATTERN = re.compile(r"[ \t]*\t[ \t]*")
SPACE_RUN_PATTERN = re.compile(r" {2,}")
LAST_TOKEN_PATTERN = re.compile(r"\S+$")


def _phrase_pattern(trigger: str) -> str:
    return r"\s+".join(re.escape(word) for word in trigger.split())


def _normalize_trigger(text: str) -> str:
    return " ".join(text.lower().split())


def _longest_first(pairs: list[tuple[str, T]]) -> list[tuple[str, T]]:
    # sorted() is stable, so equal-length triggers keep table order.
    return sorted(pairs, key=lambda pair: len(pair[0]), reverse=True)


def _build_action_index(
    commands: tuple[ActionCommand, ...],
) -> tuple[tuple[re.Pattern[str], ActionMatch], ...]:
    pairs = [(trigger, command.action) for command in commands for trigger in command.triggers]
    return tuple(
        (
            re.compile(rf"(?<!\w){_phrase_pattern(trigger)}(?!\w)", re.IGNORECASE),
            ActionMatch(action=action, trigger=trigger),
        )
        for trigger, action in _longest_first(pairs)
    )


def _build_punctuation_pattern(commands: tuple[PunctuationCommand, ...]) -> tuple[re.Pattern[str], dict[str, str]]:
    pairs = [(trigger, command.replacement) for command in commands for trigger in command.triggers]
    ordered = _longest_first(pairs)
    alternation = "|".join(_phrase_pattern(trigger) for trigger, _ in ordered)
    pattern = re.compile(rf"[ \t]*(?<!\w)({alternation})(?!\w)[ \t]*", re.IGNORECASE)
    replacements = {_normalize_trigger(trigger): replacement for trigger, replacement in ordered}
    return pattern, replacements


ACTION_INDEX = _build_action_index(ACTION_COMMANDS)
PUNCTUATION_PATTERN, PUNCTUATION_REPLACEMENTS = _build_punctuation_pattern(PUNCTUATION_COMMANDS)


def match_action(text: str) -> ActionMatch | None:
    """Return the action command spoken in ``text``, longest trigger first."""
    if not text or not text.strip():
        return None
    for pattern, match in ACTION_INDEX:
        if pattern.search(text):
            return match
    return None


def contains_action(text: str) -> bool:
    return match_action(text) is not None


def _replace_punctuation(match: re.Match[str]) -> str:
    replacement = PUNCTUATION_REPLACEMENTS[_normalize_trigger(match.group(1))]
    if "\n" in replacement or "\t" in replacement:
        return replacement
    return replacement + " "


def rewrite_punctuation(text: str) -> str:
    """Substitute spoken punctuation and formatting phrases with their symbols."""
    if not text:
        return text

    text = PUNCTUATION_PATTERN.sub(_replace_punctuation, f" {text} ")
    text = text.strip(" ")
    text = SPACE_BEFORE_MARK_PATTERN.sub(r"\1", text)
    text = MISSING_SPACE_AFTER_MARK_PATTERN.sub(r"\1 ", text)
    text = TAB_RUN_PATTERN.sub("\t", text)
    text = SPACE_RUN_PATTERN.sub(" ", text)
    return text.strip(" ")


def delete_last_word(text: str) -> str:
    stripped = text.rstrip()
    token = LAST_TOKEN_PATTERN.search(stripped)
    if token is None:
        return ""
    remaining = stripped[: token.start()]
    # Keep the separator before the removed word so the next fragment joins cleanly.
    return remaining if remaining.strip() else ""


__all__ = [
    "ACTION_COMMANDS",
    "PUNCTUATION_COMMANDS",
    "ActionCommand",
    "ActionMatch",
    "PunctuationCommand",
    "VoiceAction",
    "contains_action",
    "delete_last_word",
    "match_action",
    "rewrite_punctuation",
]
