from __future__ import annotations

import json
import logging
from pathlib import Path

from quiz_cards.core import logging as core_logging


def _close(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_configure_logger_writes_json(tmp_path):
    log_dir = tmp_path / "logs"
    logger, log_path = core_logging.configure_logger(
        "quiz_cards.test",
        log_dir=log_dir,
        level="INFO",
        filename="test.log",
    )

    logger.info("hello world", extra={"event": "unit", "value": 3})
    logger.debug("filtered out")

    class _Helper:
        def __repr__(self):  # noqa: D401
            return "helper"

    try:
        raise ValueError("boom")
    except ValueError:
        logger.exception(
            "with error",
            extra={
                "value": {"items": [Path(log_dir), 1], "mapping": {"k": "v"}},
                "obj": _Helper(),
            },
        )
    for handler in logger.handlers:
        handler.flush()

    lines = log_path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["message"] == "hello world"
    assert first["level"] == "INFO"
    assert first["logger"] == "quiz_cards.test"
    assert first["extra"] == {"event": "unit", "value": 3}

    last = json.loads(lines[-1])
    assert "ValueError" in last["exception"]
    assert last["extra"]["obj"] == "helper"
    assert last["extra"]["value"]["items"][0] == str(log_dir)

    _close(logger)


def test_default_filename_uses_last_name_segment(tmp_path):
    logger, log_path = core_logging.configure_logger(
        "quiz_cards.default_name", log_dir=tmp_path
    )

    assert log_path == tmp_path / "default_name.log"

    _close(logger)


def test_child_loggers_reach_the_file(tmp_path):
    logger, log_path = core_logging.configure_logger(
        "quiz_cards_parent", log_dir=tmp_path, filename="parent.log"
    )

    logging.getLogger("quiz_cards_parent.session").info(
        "Quiz state", extra={"transition": {"from": "setup", "to": "loading"}}
    )
    for handler in logger.handlers:
        handler.flush()

    record = json.loads(log_path.read_text(encoding="utf-8").splitlines()[0])
    assert record["logger"] == "quiz_cards_parent.session"
    assert record["extra"]["transition"]["to"] == "loading"

    _close(logger)


def test_console_handler_toggle(tmp_path):
    name = "quiz_cards.test_toggle"

    def console_handlers(logger):
        return [
            handler
            for handler in logger.handlers
            if getattr(handler, "_quiz_cards_console", False)
        ]

    logger, _ = core_logging.configure_logger(
        name, log_dir=tmp_path, verbose=True, filename="toggle.log"
    )
    assert len(console_handlers(logger)) == 1

    core_logging.configure_logger(
        name, log_dir=tmp_path, verbose=True, filename="toggle.log"
    )
    assert len(console_handlers(logger)) == 1
    file_handlers = [
        h for h in logger.handlers if getattr(h, "_quiz_cards_file", False)
    ]
    assert len(file_handlers) == 1

    core_logging.configure_logger(
        name, log_dir=tmp_path, verbose=False, filename="toggle.log"
    )
    assert console_handlers(logger) == []

    _close(logger)


def test_unknown_level_falls_back_to_info(tmp_path):
    logger, _ = core_logging.configure_logger(
        "quiz_cards.test_level",
        log_dir=tmp_path,
        level="chatty",
        filename="level.log",
    )

    (handler,) = logger.handlers
    assert handler.level == logging.INFO

    _close(logger)
