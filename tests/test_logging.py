# tests/test_logging.py
import logging

from config import settings
from rich.logging import RichHandler

import utils.logging as logging_utils


def test_setup_logging_plain_handler_and_level(monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_RICH_PROGRESS", False)
    monkeypatch.setattr(settings, "LOG_FILE", None)

    logging_utils.setup_logging("debug")

    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG
    assert len(root_logger.handlers) == 1
    assert not isinstance(root_logger.handlers[0], RichHandler)
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_rich_and_file_handlers(monkeypatch, tmp_path):
    log_path = tmp_path / "logs" / "house.log"
    monkeypatch.setattr(settings, "ENABLE_RICH_PROGRESS", True)
    monkeypatch.setattr(settings, "LOG_FILE", str(log_path))

    logging_utils.setup_logging("INFO")

    root_logger = logging.getLogger()
    kinds = {type(h).__name__ for h in root_logger.handlers}
    assert kinds == {"RichHandler", "RotatingFileHandler"}
    assert log_path.parent.is_dir()
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()
