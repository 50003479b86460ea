"""
Test suite for the logging system

Covers:
  - Terminal-safe formatting
  - Format validation
  - Root logger configuration (file output)
  - Log line highlighting
"""

import logging
import logging.handlers

from rich.text import Text

from ammledger.logger import (
    LedgerLogHighlighter,
    LogManager,
    TerminalSafeFormatter,
    configure_logging,
    get_logger,
)


def _record(message):
    return logging.LogRecord(
        name="ammledger.test", level=logging.INFO, pathname="", lineno=0,
        msg=message, args=(), exc_info=None,
    )


class TestTerminalSafeFormatter:

    def test_strips_ansi_sequences(self):
        assert TerminalSafeFormatter.sanitize("\x1b[31mred\x1b[0m token") == "red token"

    def test_strips_control_characters(self):
        assert TerminalSafeFormatter.sanitize("a\rb\x07c\x00d") == "abcd"

    def test_keeps_tabs_and_newlines(self):
        assert TerminalSafeFormatter.sanitize("a\tb\nc") == "a\tb\nc"

    def test_empty(self):
        assert TerminalSafeFormatter.sanitize("") == ""

    def test_format_sanitizes_message(self):
        formatter = TerminalSafeFormatter(fmt="%(message)s")
        assert formatter.format(_record("pool \x1b[2Jcleared")) == "pool cleared"


class TestLogManager:

    def test_singleton(self):
        assert LogManager() is LogManager()

    def test_valid_format_kept(self):
        assert LogManager.validate_log_format("%(levelname)s %(message)s") == "%(levelname)s %(message)s"

    def test_invalid_format_falls_back(self, capsys):
        result = LogManager.validate_log_format("%(nonexistent)s")
        assert result != "%(nonexistent)s"
        assert "Validation Error" in capsys.readouterr().err

    def test_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "ledger.log"
        configure_logging(level="DEBUG", log_file=str(log_file), console_output=False, file_output=True)

        root = logging.getLogger()
        try:
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0], logging.handlers.RotatingFileHandler)

            logger = get_logger("ammledger.test")
            logger.debug("Scope 0 opened by %s", "0x" + "ab" * 20)
            root.handlers[0].flush()
            content = log_file.read_text()
            assert "Scope 0 opened by 0x" in content
            assert "DEBUG" in content
        finally:
            for handler in root.handlers:
                handler.close()

    def test_get_logger_returns_named_logger(self):
        assert get_logger("ammledger.exchange.core").name == "ammledger.exchange.core"


class TestHighlighter:

    def _styles(self, line):
        text = Text(line)
        LedgerLogHighlighter().highlight(text)
        return {str(span.style) for span in text.spans}

    def test_pool_id_and_scope(self):
        styles = self._styles("Swap on 0x" + "ab" * 32 + " in scope 3")
        assert "ledger.pool_id" in styles
        assert "ledger.scope" in styles

    def test_address(self):
        assert "ledger.address" in self._styles("Extension registered: 0x" + "Ab" * 20)
