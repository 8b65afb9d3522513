"""Tests for logging setup and log-safe text helpers."""

from loguru import logger

from voicecall.logging_config import setup_logging, truncate_for_log


class TestSetupLogging:
    def teardown_method(self) -> None:
        logger.remove()

    def test_file_handlers_created(self, tmp_path) -> None:
        setup_logging("DEBUG", log_dir=str(tmp_path))
        logger.error("mic unavailable")
        logger.remove()

        main_logs = list(tmp_path.glob("voicecall_*.log"))
        error_logs = list(tmp_path.glob("errors_*.log"))
        assert len(main_logs) == 1
        assert len(error_logs) == 1
        assert "Logging initialized at DEBUG level" in main_logs[0].read_text()
        assert "Logging initialized" not in error_logs[0].read_text()
        assert "mic unavailable" in error_logs[0].read_text()

    def test_console_only(self, tmp_path) -> None:
        setup_logging("INFO", log_dir=str(tmp_path / "logs"), enable_file=False)

        assert not (tmp_path / "logs").exists()


class TestTruncateForLog:
    def test_short_text_unchanged(self) -> None:
        assert truncate_for_log("turn on the lights") == "turn on the lights"

    def test_long_text_cut(self) -> None:
        assert truncate_for_log("a" * 60, limit=10) == "aaaaaaaaaa..."

    def test_whitespace_collapsed(self) -> None:
        assert truncate_for_log("  hello\n  there ") == "hello there"

    def test_empty(self) -> None:
        assert truncate_for_log("") == ""
