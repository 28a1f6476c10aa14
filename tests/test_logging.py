"""Tests for console/file logging: setup_logger, log_action and ColorizingFormatter."""

from __future__ import annotations

import logging
from pathlib import Path

from folder_sync import Ansi, ColorizingFormatter, log_action, setup_logger

FMT = "%(levelname)s | %(message)s"


def make_record(message: str, level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord("sync_tests", level, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestColorizingFormatter:
    def test_plain_when_color_disabled(self):
        formatter = ColorizingFormatter(use_color=False, fmt=FMT)
        record = make_record("COPY | Copied new file: /r/a.txt", action="COPY", path_text="/r/a.txt", is_dir=False)
        assert formatter.format(record) == "INFO | COPY | Copied new file: /r/a.txt"

    def test_action_and_file_path_colored(self):
        formatter = ColorizingFormatter(use_color=True, fmt=FMT)
        record = make_record("COPY | Copied new file: /r/a.txt", action="COPY", path_text="/r/a.txt", is_dir=False)

        out = formatter.format(record)

        assert f"{Ansi.GREEN}COPY{Ansi.RESET}" in out
        assert f"{Ansi.WHITE}/r/a.txt{Ansi.RESET}" in out

    def test_directory_path_colored_light_brown(self):
        formatter = ColorizingFormatter(use_color=True, fmt=FMT)
        record = make_record("RMDIR | Deleted directory: /r/sub", action="RMDIR", path_text="/r/sub", is_dir=True)

        out = formatter.format(record)

        assert f"{Ansi.ORANGE}RMDIR{Ansi.RESET}" in out
        assert f"{Ansi.LIGHT_BROWN}/r/sub{Ansi.RESET}" in out

    def test_errors_are_red(self):
        formatter = ColorizingFormatter(use_color=True, fmt=FMT)
        record = make_record("COPY | ERROR processing /s/a.txt | denied", level=logging.ERROR, action="COPY")

        out = formatter.format(record)

        assert out.startswith(Ansi.RED)
        assert out.endswith(Ansi.RESET)


class TestLogAction:
    def test_message_and_extra_fields(self, caplog):
        logger = logging.getLogger("sync_tests")
        with caplog.at_level(logging.INFO, logger="sync_tests"):
            log_action(logger, "DELETE", "Deleted file: /r/x.txt", path=Path("/r/x.txt"), is_dir=False)

        record = caplog.records[-1]
        assert record.getMessage() == "DELETE | Deleted file: /r/x.txt"
        assert record.action == "DELETE"
        assert record.path_text == str(Path("/r/x.txt"))
        assert record.is_dir is False

    def test_level_is_honoured(self, caplog):
        logger = logging.getLogger("sync_tests")
        log_action(logger, "COPY", "ERROR something", level=logging.ERROR)
        assert caplog.records[-1].levelno == logging.ERROR


class TestSetupLogger:
    def test_writes_plain_lines_to_file(self, tmp_path):
        log_file = tmp_path / "nested" / "log.txt"
        logger = setup_logger(log_file, name="folder_sync_setup_test")
        try:
            log_action(logger, "COPY", "Copied new file: /r/a.txt", path=Path("/r/a.txt"), is_dir=False)

            text = log_file.read_text(encoding="utf-8")
            assert "Logging to:" in text
            assert "| INFO | COPY | Copied new file: /r/a.txt" in text
            assert "\x1b[" not in text
            assert logger.propagate is False
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()

    def test_second_call_reuses_handlers(self, tmp_path):
        logger = setup_logger(tmp_path / "log.txt", name="folder_sync_setup_twice")
        try:
            again = setup_logger(tmp_path / "log.txt", name="folder_sync_setup_twice")
            assert again is logger
            assert len(logger.handlers) == 2
        finally:
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
                handler.close()
