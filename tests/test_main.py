import logging
from pathlib import Path

import flow_dictation.main as main
from flow_dictation.recognizer import RecognitionResult


def test_configure_logging_creates_log_dir_and_configures_handlers(monkeypatch, tmp_path: Path) -> None:
    log_dir = tmp_path / "logs"
    log_file = log_dir / "flow_dictation.log"

    monkeypatch.setattr(main, "LOG_DIR", log_dir)
    monkeypatch.setattr(main, "LOG_FILE", log_file)

    captured = {}

    def fake_basic_config(**kwargs):
        captured.update(kwargs)

    monkeypatch.setattr(main.logging, "basicConfig", fake_basic_config)

    main.configure_logging()

    assert log_dir.exists()
    assert captured["level"] == logging.INFO
    assert "%(asctime)s %(levelname)s" in captured["format"]
    assert len(captured["handlers"]) == 2


def test_build_parser_defaults() -> None:
    args = main.build_parser().parse_args([])

    assert args.text == ""
    assert args.cursor is None
    assert args.config == main.CONFIG_PATH


class ScriptedRecognizer:
    """Speaks a fixed script as soon as it is started."""

    script = ["olá mundo", "parar"]
    available = True

    def __init__(self, config) -> None:  # type: ignore[no-untyped-def]
        self.config = config
        self.callbacks = None

    def is_available(self) -> bool:
        return self.available

    def set_callbacks(self, callbacks) -> None:  # type: ignore[no-untyped-def]
        self.callbacks = callbacks

    def start(self) -> None:
        for text in self.script:
            self.callbacks.on_result([RecognitionResult(text, True)], 0)

    def stop(self) -> None:
        self.callbacks.on_end()


def test_run_dictates_into_text_and_prints_result(monkeypatch, tmp_path: Path, capsys) -> None:
    monkeypatch.setattr(main, "configure_logging", lambda: None)
    monkeypatch.setattr(main, "WhisperRecognizer", ScriptedRecognizer)

    code = main.run(["--text", "Início. ", "--config", str(tmp_path / "config.json")])

    assert code == 0
    assert capsys.readouterr().out.strip() == "Início. Olá mundo"


def test_run_returns_error_when_recognition_unavailable(monkeypatch, tmp_path: Path, capsys) -> None:
    class UnavailableRecognizer(ScriptedRecognizer):
        available = False

    monkeypatch.setattr(main, "configure_logging", lambda: None)
    monkeypatch.setattr(main, "WhisperRecognizer", UnavailableRecognizer)

    code = main.run(["--config", str(tmp_path / "config.json")])

    assert code == 1
    assert capsys.readouterr().out == ""
