from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from flow_dictation.buffer import InMemoryTextBuffer
from flow_dictation.config import CONFIG_PATH, ConfigStore
from flow_dictation.controller import DictationController
from flow_dictation.feedback import TerminalMicIndicator, build_notifier
from flow_dictation.whisper_recognizer import WhisperRecognizer

LOGGER = logging.getLogger(__name__)

LOG_DIR = Path.home() / ".local" / "state" / "flow-dictation"
LOG_FILE = LOG_DIR / "flow_dictation.log"
PREVIEW_CHARS = 80


def configure_logging() -> None:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        handlers=[
            logging.FileHandler(LOG_FILE, encoding="utf-8"),
            logging.StreamHandler(),
        ],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flow-dictation",
        description="Dictate into a text buffer; say \"parar\" or press Ctrl+C to finish.",
    )
    parser.add_argument("--text", default="", help="Existing text to dictate into")
    parser.add_argument("--cursor", type=int, default=None, help="Cursor offset inside --text (default: end)")
    parser.add_argument("--config", type=Path, default=CONFIG_PATH, help="Path to config.json")
    return parser


def _log_buffer(value: str) -> None:
    preview = value[-PREVIEW_CHARS:].replace("\n", "\\n")
    LOGGER.info("Buffer (%d chars): ...%s", len(value), preview)


def run(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    config = ConfigStore(args.config).load()

    buffer = InMemoryTextBuffer(args.text, args.cursor)
    buffer.add_change_listener(_log_buffer)
    controller = DictationController(
        WhisperRecognizer(config),
        notifier=build_notifier(config),
        mic_indicator=TerminalMicIndicator(),
        config=config,
    )
    if not controller.is_available:
        return 1

    controller.start(buffer)
    try:
        while not controller.wait_until_idle(timeout=0.5):
            pass
    except KeyboardInterrupt:
        controller.stop()
        controller.wait_until_idle(timeout=5.0)

    print(buffer.get_value())
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
