"""
Logging setup shared by the API and the client.
"""

import logging
import sys


class ConsoleFormatter(logging.Formatter):
    """Timestamped formatter, colored when writing to a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        line = f"[{self.formatTime(record)}] {record.levelname} {record.name}: {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        if sys.stderr.isatty():
            cyan = '\033[0;36m'
            reset = '\033[0m'
            return f"{cyan}{line}{reset}"
        return line


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger.

    Args:
        level: Log level name
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ConsoleFormatter())
    root_logger.addHandler(console_handler)

    # Driver chatter stays at WARNING
    logging.getLogger('pymongo').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
