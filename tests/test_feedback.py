import logging
import subprocess

import flow_dictation.feedback as feedback
from flow_dictation.config import AppConfig
from flow_dictation.feedback import LogNotifier, MacOSNotifier, TerminalMicIndicator, build_notifier


def test_log_notifier_logs_by_level(caplog) -> None:  # type: ignore[no-untyped-def]
    notifier = LogNotifier()

    with caplog.at_level(logging.INFO, logger="flow_dictation.feedback"):
        notifier.notify("Microfone ativado!", "success")
        notifier.notify("Erro ao acessar o microfone.", "error")

    levels = [record.levelno for record in caplog.records]
    assert levels == [logging.INFO, logging.ERROR]
    assert "[success] Microfone ativado!" in caplog.text


def test_macos_notifier_runs_osascript_with_escaped_message(monkeypatch) -> None:
    calls = []

    def fake_run(cmd, check=False, capture_output=False, text=False, timeout=None):  # noqa: ARG001
        calls.append(cmd)

        class Result:
            returncode = 0
            stderr = ""

        return Result()

    monkeypatch.setattr(feedback.subprocess, "run", fake_run)

    MacOSNotifier().notify('Diga "parar"', "error")

    assert calls[0][:2] == ["osascript", "-e"]
    script = calls[0][2]
    assert 'display notification "Diga \\"parar\\""' in script
    assert 'subtitle "Erro"' in script


def test_macos_notifier_survives_missing_osascript(monkeypatch) -> None:
    def fake_run(*_args, **_kwargs):
        raise FileNotFoundError("osascript")

    monkeypatch.setattr(feedback.subprocess, "run", fake_run)

    MacOSNotifier().notify("Microfone desativado.")


def test_macos_notifier_survives_timeout(monkeypatch) -> None:
    def fake_run(cmd, **_kwargs):
        raise subprocess.TimeoutExpired(cmd, 2.0)

    monkeypatch.setattr(feedback.subprocess, "run", fake_run)

    MacOSNotifier().notify("Microfone desativado.")


def test_terminal_mic_indicator_tracks_state() -> None:
    indicator = TerminalMicIndicator()

    indicator.set_active(True)
    assert indicator.active is True

    indicator.set_active(False)
    assert indicator.active is False


def test_build_notifier_follows_config() -> None:
    assert isinstance(build_notifier(AppConfig()), LogNotifier)
    assert isinstance(build_notifier(AppConfig(notifier="macos")), MacOSNotifier)
