"""Unit tests for the logging helpers."""

import logging

import pytest

from core.utils.logger import get_infrastructure_logger, reset_log_file, setup_logger


class TestLogFiles:
    """Test cases for log file handling."""

    def test_reset_empties_previous_boot(self, tmp_path):
        log_file = tmp_path / "near-bootstrap.log"
        log_file.write_text("records from the previous boot\n")

        assert reset_log_file(str(log_file)) == log_file
        assert log_file.read_text() == ""

    def test_reset_creates_missing_directory(self, tmp_path):
        log_file = tmp_path / "var" / "log" / "near-bootstrap.log"

        reset_log_file(str(log_file))

        assert log_file.exists()

    def test_shared_file_keeps_every_logger(self, tmp_path):
        log_file = tmp_path / "shared.log"
        reset_log_file(str(log_file))
        first = setup_logger("test_logger.first", str(log_file))
        second = setup_logger("test_logger.second", str(log_file))

        first.info("persisted settings")
        second.info("signal sent")
        for logger in (first, second):
            for handler in logger.handlers:
                handler.flush()

        content = log_file.read_text()
        assert "persisted settings" in content
        assert "signal sent" in content

        for logger in (first, second):
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

    def test_infrastructure_logger_prefix(self):
        assert get_infrastructure_logger("aws.ec2").name == "infrastructure.aws.ec2"
        assert get_infrastructure_logger("infrastructure.aws.ec2") is logging.getLogger("infrastructure.aws.ec2")


if __name__ == "__main__":
    pytest.main([__file__])
