"""
Logging Module.

Provides the LogManager used to build the application logger.
Log calls across the code base pass either a plain string or a dict such as
``{"message": "...", "repository": "owner/name"}``; dict messages are merged
into the emitted JSON entry.
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional


class JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "logger": record.name,
        }

        if isinstance(record.msg, dict):
            entry.update(record.msg)
        else:
            entry["message"] = record.getMessage()

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class LogManager:
    """
    Builds and configures the application logger.

    Attributes:
        logger (logging.Logger): Configured logger instance.
    """

    CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    def __init__(
        self,
        app_name: str,
        log_dir: Optional[str] = None,
        development: bool = False,
        level: int = logging.DEBUG,
        max_bytes: int = 5 * 1024 * 1024,
        backup_count: int = 3,
    ):
        """Initialize the logger.

        Args:
            app_name (str): Logger name, also used for the log file name.
            log_dir (Optional[str]): Directory for the rotating log file. No file
                handler is attached when empty.
            development (bool): Use a readable console format instead of JSON.
            level (int): Logging level.
            max_bytes (int): Size at which the log file rotates.
            backup_count (int): Number of rotated files to keep.
        """
        self.logger = logging.getLogger(app_name)
        self.logger.setLevel(level)
        self.logger.propagate = False

        # Drop handlers from a previous initialization
        self.logger.handlers.clear()

        console = logging.StreamHandler()
        console.setLevel(level)
        if development:
            console.setFormatter(logging.Formatter(self.CONSOLE_FORMAT))
        else:
            console.setFormatter(JsonFormatter())
        self.logger.addHandler(console)

        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(
                os.path.join(log_dir, f"{app_name}.log"),
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(JsonFormatter())
            self.logger.addHandler(file_handler)
