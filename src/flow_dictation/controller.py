from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from flow_dictation.buffer import TextBuffer
from flow_dictation.commands import VoiceAction, contains_action, delete_last_word, match_action, rewrite_punctuation
from flow_dictation.config import AppConfig
from flow_dictation.errors import (
    AdapterUnavailable,
    MicrophoneNotFound,
    MicrophonePermissionDenied,
    RecognitionErrorKind,
)
from flow_dictation.feedback import LogNotifier, MicIndicator, Notifier, NullMicIndicator
from flow_dictation.history import TranscriptHistory
from flow_dictation.recognizer import RecognitionResult, RecognizerCallbacks, SpeechRecognizer
from flow_dictation.splice import CursorAnchor, capture_anchor, compose_fragment, splice, write_splice

LOGGER = logging.getLogger(__name__)

MSG_STARTED = "Microfone ativado! Diga \"desfazer\", \"apagar\" ou \"parar\" para controlar o ditado."
MSG_STOPPED = "Microfone desativado."
MSG_CLEARED = "Texto ditado limpo."
MSG_WORD_DELETED = "Última palavra apagada."
MSG_UNDONE = "Última alteração desfeita."
MSG_NO_SPEECH = "Nenhuma fala foi detectada. Tente novamente."
MSG_PERMISSION_DENIED = "Permissão para usar o microfone foi negada."
MSG_PERMISSION_DENIED_START = (
    "Permissão do microfone foi negada. Permita o acesso ao microfone nas configurações do sistema e tente novamente."
)
MSG_NO_MICROPHONE = "Nenhum microfone foi encontrado. Verifique se há um microfone conectado."
MSG_START_FAILED = "Erro ao acessar o microfone. Verifique as configurações de áudio."
MSG_UNAVAILABLE = "Reconhecimento de voz não suportado neste ambiente."
MSG_RECOGNITION_ERROR = "Erro no reconhecimento de voz ({kind})."
MSG_RESTARTS_EXHAUSTED = "O reconhecimento de voz foi interrompido repetidamente. Ditado encerrado."


class SessionState(str, Enum):
    IDLE = "Idle"
    LISTENING = "Listening"


class SessionEvent(str, Enum):
    START = "start"
    STOP = "stop"
    RESULT = "result"
    ERROR = "error"
    END = "end"


@dataclass
class Session:
    buffer: TextBuffer | None = None
    anchor: CursorAnchor | None = None
    final_transcript: str = ""
    history: TranscriptHistory = field(default_factory=TranscriptHistory)
    stop_requested: bool = False
    restart_attempts: int = 0


def start_failure_message(exc: BaseException) -> str:
    if isinstance(exc, (MicrophonePermissionDenied, PermissionError)):
        return MSG_PERMISSION_DENIED_START
    if isinstance(exc, MicrophoneNotFound):
        return MSG_NO_MICROPHONE
    if isinstance(exc, AdapterUnavailable):
        return MSG_UNAVAILABLE
    return MSG_START_FAILED


class DictationController:
    """Drives one recognizer into a text buffer, one dictation session at a time.

    Every public call and every recognizer callback becomes an event that is
    handled to completion before the next one, in arrival order. Events that
    arrive while a handler runs (including ones raised by the handler itself,
    such as ``on_end`` fired synchronously by ``recognizer.stop()``) are queued.

    Transitions:

        Idle      --start-->                 Listening
        Listening --result-->                Listening
        Listening --stop / error-->          Listening (stop requested)
        Listening --end, stop requested-->   Idle
        Listening --end, unexpected-->       Listening (recognizer restarted)
        Listening --end, restarts used up--> Idle
    """

    TRANSITIONS: dict[tuple[SessionState, SessionEvent], str] = {
        (SessionState.IDLE, SessionEvent.START): "_on_start",
        (SessionState.LISTENING, SessionEvent.STOP): "_on_stop",
        (SessionState.LISTENING, SessionEvent.RESULT): "_on_result",
        (SessionState.LISTENING, SessionEvent.ERROR): "_on_error",
        (SessionState.LISTENING, SessionEvent.END): "_on_end",
    }

    ACTIONS: dict[VoiceAction, str] = {
        VoiceAction.STOP: "_action_stop",
        VoiceAction.CLEAR: "_action_clear",
        VoiceAction.DELETE_LAST_WORD: "_action_delete_last_word",
        VoiceAction.UNDO: "_action_undo",
        VoiceAction.SELECT_ALL: "_action_select_all",
    }

    def __init__(
        self,
        recognizer: SpeechRecognizer | None,
        notifier: Notifier | None = None,
        mic_indicator: MicIndicator | None = None,
        config: AppConfig | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.recognizer = recognizer
        self.notifier = notifier or LogNotifier()
        self.mic_indicator = mic_indicator or NullMicIndicator()

        self._state = SessionState.IDLE
        self._session = Session()

        self._pending: deque[tuple[SessionEvent, Any]] = deque()
        self._queue_lock = threading.Lock()
        self._draining = False
        self._idle = threading.Event()
        self._idle.set()

        self._available = self._connect_recognizer()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._state is SessionState.LISTENING

    @property
    def is_available(self) -> bool:
        return self._available

    @property
    def final_transcript(self) -> str:
        return self._session.final_transcript

    @property
    def history(self) -> tuple[str, ...]:
        if self._state is SessionState.IDLE:
            return ()
        return self._session.history.snapshots()

    def start(self, buffer: TextBuffer) -> None:
        self._post(SessionEvent.START, buffer)

    def stop(self) -> None:
        self._post(SessionEvent.STOP)

    def toggle(self, buffer: TextBuffer) -> None:
        if self.is_listening:
            self.stop()
        else:
            self.start(buffer)

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        return self._idle.wait(timeout)

    # Recognizer callbacks; may arrive from the recognizer's own thread.

    def _handle_results(self, results: Sequence[RecognitionResult], result_index: int = 0) -> None:
        self._post(SessionEvent.RESULT, (tuple(results), result_index))

    def _handle_error(self, kind: RecognitionErrorKind | str) -> None:
        if not isinstance(kind, RecognitionErrorKind):
            kind = RecognitionErrorKind.from_code(str(kind))
        self._post(SessionEvent.ERROR, kind)

    def _handle_end(self) -> None:
        self._post(SessionEvent.END)

    def _connect_recognizer(self) -> bool:
        available = False
        if self.recognizer is not None:
            try:
                available = bool(self.recognizer.is_available())
            except Exception:
                LOGGER.warning("Speech recognizer availability check failed", exc_info=True)

        if not available:
            LOGGER.warning("Speech recognition is unavailable; dictation is disabled")
            self.notifier.notify(MSG_UNAVAILABLE, "error", self.config.error_notice_duration_ms)
            return False

        self.recognizer.set_callbacks(  # type: ignore[union-attr]
            RecognizerCallbacks(
                on_result=self._handle_results,
                on_error=self._handle_error,
                on_end=self._handle_end,
            )
        )
        return True

    def _post(self, event: SessionEvent, payload: Any = None) -> None:
        with self._queue_lock:
            self._pending.append((event, payload))
            if self._draining:
                return
            self._draining = True

        while True:
            with self._queue_lock:
                if not self._pending:
                    self._draining = False
                    return
                event, payload = self._pending.popleft()
            self._dispatch(event, payload)

    def _dispatch(self, event: SessionEvent, payload: Any) -> None:
        handler_name = self.TRANSITIONS.get((self._state, event))
        if handler_name is None:
            LOGGER.debug("Ignoring %s event while %s", event.value, self._state.value)
            return

        try:
            getattr(self, handler_name)(payload)
        except Exception:
            LOGGER.exception("Dictation %s handler failed; ending session", event.value)
            self._abort_session()

    def _on_start(self, buffer: TextBuffer) -> None:
        if not self._available:
            LOGGER.info("Dictation start ignored: speech recognition unavailable")
            return

        anchor = capture_anchor(buffer.get_value(), buffer.get_cursor_offset())
        self._session = Session(buffer=buffer, anchor=anchor)
        self._idle.clear()

        try:
            self.recognizer.start()  # type: ignore[union-attr]
        except Exception as exc:
            LOGGER.warning("Speech recognizer failed to start: %s", exc)
            self._session = Session()
            self._idle.set()
            self.mic_indicator.set_active(False)
            self.notifier.notify(start_failure_message(exc), "error", self.config.error_notice_duration_ms)
            return

        self._state = SessionState.LISTENING
        self.mic_indicator.set_active(True)
        self.notifier.notify(MSG_STARTED, "success", self.config.start_notice_duration_ms)
        LOGGER.info(
            "Dictation started (chars before cursor=%d, after cursor=%d)",
            len(anchor.before),
            len(anchor.after),
        )

    def _on_stop(self, _payload: Any = None) -> None:
        session = self._session
        if session.stop_requested:
            return

        session.stop_requested = True
        LOGGER.info("Dictation stop requested")
        try:
            self.recognizer.stop()  # type: ignore[union-attr]
        except Exception:
            LOGGER.warning("Speech recognizer failed to stop cleanly", exc_info=True)
            self._finish_session(announce=True)

    def _on_result(self, payload: tuple[tuple[RecognitionResult, ...], int]) -> None:
        results, result_index = payload
        fresh = results[max(result_index, 0):]
        if not fresh:
            return

        session = self._session
        session.restart_attempts = 0
        interim = ""
        for result in fresh:
            if result.is_final:
                command = match_action(result.text)
                if command is not None:
                    LOGGER.info("Voice command '%s' -> %s", command.trigger, command.action.value)
                    getattr(self, self.ACTIONS[command.action])()
                    # Actions write the buffer themselves; the rest of the batch is dropped.
                    return
                self._commit(result.text)
            else:
                candidate = interim + result.text
                interim = "" if contains_action(candidate) else candidate

        self._render(interim)

    def _on_error(self, kind: RecognitionErrorKind) -> None:
        session = self._session
        if kind is RecognitionErrorKind.ABORTED and session.stop_requested:
            LOGGER.debug("Recognizer aborted after stop request")
            return

        LOGGER.warning("Speech recognition error: %s", kind.value)
        if kind is RecognitionErrorKind.NO_SPEECH:
            self.notifier.notify(MSG_NO_SPEECH, "info", self.config.notice_duration_ms)
        elif kind is RecognitionErrorKind.PERMISSION_DENIED:
            self.notifier.notify(MSG_PERMISSION_DENIED, "error", self.config.error_notice_duration_ms)
        else:
            self.notifier.notify(
                MSG_RECOGNITION_ERROR.format(kind=kind.value),
                "error",
                self.config.error_notice_duration_ms,
            )
        self._on_stop()

    def _on_end(self, _payload: Any = None) -> None:
        session = self._session
        if session.stop_requested:
            self._finish_session(announce=True)
            return

        session.restart_attempts += 1
        limit = self.config.max_consecutive_restarts
        if session.restart_attempts > limit:
            LOGGER.warning("Recognizer ended %d times in a row without results; ending dictation", session.restart_attempts)
            self._finish_session(announce=False)
            self.notifier.notify(MSG_RESTARTS_EXHAUSTED, "error", self.config.error_notice_duration_ms)
            return

        LOGGER.info("Recognizer ended on its own; restarting (attempt %d/%d)", session.restart_attempts, limit)
        try:
            self.recognizer.start()  # type: ignore[union-attr]
        except Exception as exc:
            LOGGER.warning("Speech recognizer failed to restart: %s", exc)
            self._finish_session(announce=False)
            self.notifier.notify(start_failure_message(exc), "error", self.config.error_notice_duration_ms)

    def _commit(self, text: str) -> None:
        session = self._session
        previous = session.anchor.before + session.final_transcript  # type: ignore[union-attr]
        fragment = compose_fragment(rewrite_punctuation(text), previous)
        if not fragment:
            LOGGER.debug("Dropping empty final fragment")
            return

        session.final_transcript += fragment
        session.history.push(session.final_transcript)

    def _render(self, interim: str = "") -> None:
        session = self._session
        if session.buffer is None or session.anchor is None:
            return
        result = splice(session.anchor, session.final_transcript, interim)
        write_splice(session.buffer, result, session.final_transcript + interim)

    def _action_stop(self) -> None:
        self._on_stop()

    def _action_clear(self) -> None:
        session = self._session
        session.final_transcript = ""
        session.history.reset()
        self._render()
        self.notifier.notify(MSG_CLEARED, "info", self.config.notice_duration_ms)

    def _action_delete_last_word(self) -> None:
        session = self._session
        if not session.final_transcript:
            return
        session.final_transcript = delete_last_word(session.final_transcript)
        session.history.push(session.final_transcript)
        self._render()
        self.notifier.notify(MSG_WORD_DELETED, "info", self.config.notice_duration_ms)

    def _action_undo(self) -> None:
        session = self._session
        previous = session.history.undo()
        if previous is None:
            self._action_clear()
            return
        session.final_transcript = previous
        self._render()
        self.notifier.notify(MSG_UNDONE, "info", self.config.notice_duration_ms)

    def _action_select_all(self) -> None:
        if self._session.buffer is None:
            return
        # Flush earlier finals and drop the interim text before selecting.
        self._render()
        self._session.buffer.select_all()

    def _finish_session(self, announce: bool) -> None:
        session = self._session
        if session.buffer is not None and session.anchor is not None:
            write_splice(session.buffer, splice(session.anchor, session.final_transcript), None)
        LOGGER.info("Dictation finished (dictated chars=%d)", len(session.final_transcript))

        self._session = Session()
        self._state = SessionState.IDLE
        self.mic_indicator.set_active(False)
        if announce:
            self.notifier.notify(MSG_STOPPED, "info", self.config.notice_duration_ms)
        self._idle.set()

    def _abort_session(self) -> None:
        if self._state is SessionState.IDLE:
            self._idle.set()
            return
        self._session.stop_requested = True
        try:
            self.recognizer.stop()  # type: ignore[union-attr]
        except Exception:
            LOGGER.warning("Speech recognizer failed to stop after handler error", exc_info=True)
        try:
            self._finish_session(announce=False)
        except Exception:
            LOGGER.exception("Failed to restore buffer after handler error")
            self._session = Session()
            self._state = SessionState.IDLE
            self.mic_indicator.set_active(False)
            self._idle.set()


__all__ = ["DictationController", "Session", "SessionEvent", "SessionState", "start_failure_message"]
