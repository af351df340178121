# -*- coding: utf-8 -*-
"""Logging Service Implementation.

Copyright 2026
SPDX-License-Identifier: Apache-2.0

Console logging goes to stderr because stdout carries the MCP stdio channel.
File logging (JSON lines, rotated) is optional.
"""

# Standard
import logging
from logging.handlers import RotatingFileHandler
import os
from typing import Dict, Optional

# Third-Party
from pythonjsonlogger import jsonlogger

# First-Party
from cloudflare_mcp.config import settings

text_formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

json_formatter = jsonlogger.JsonFormatter("%(asctime)s %(name)s %(levelname)s %(message)s")

# Global handlers will be created lazily
_file_handler: Optional[RotatingFileHandler] = None
_text_handler: Optional[logging.StreamHandler] = None


def _get_file_handler() -> RotatingFileHandler:
    """Get or create the file handler.

    Returns:
        RotatingFileHandler: The file handler for JSON logging.

    Raises:
        ValueError: If file logging is disabled or no log file specified.
    """
    global _file_handler  # pylint: disable=global-statement
    if _file_handler is None:
        if not settings.log_to_file or not settings.log_file:
            raise ValueError("File logging is disabled or no log file specified")

        if settings.log_folder:
            os.makedirs(settings.log_folder, exist_ok=True)
            log_path = os.path.join(settings.log_folder, settings.log_file)
        else:
            log_path = settings.log_file

        _file_handler = RotatingFileHandler(log_path, maxBytes=1024 * 1024, backupCount=5)
        _file_handler.setFormatter(json_formatter)
    return _file_handler


def _get_text_handler() -> logging.StreamHandler:
    """Get or create the stderr handler.

    Returns:
        logging.StreamHandler: The stream handler for console logging.
    """
    global _text_handler  # pylint: disable=global-statement
    if _text_handler is None:
        _text_handler = logging.StreamHandler()
        _text_handler.setFormatter(json_formatter if settings.log_format == "json" else text_formatter)
    return _text_handler


class LoggingService:
    """Process logging setup and logger registry."""

    def __init__(self):
        """Initialize logging service."""
        self._level = settings.log_level
        self._loggers: Dict[str, logging.Logger] = {}

    async def initialize(self) -> None:
        """Attach handlers to the root logger.

        Examples:
            >>> from cloudflare_mcp.services.logging_service import LoggingService
            >>> import asyncio
            >>> service = LoggingService()
            >>> asyncio.run(service.initialize())
        """
        root = logging.getLogger()
        self._loggers[""] = root

        if _get_text_handler() not in root.handlers:
            root.addHandler(_get_text_handler())

        if settings.log_to_file and settings.log_file:
            try:
                handler = _get_file_handler()
                if handler not in root.handlers:
                    root.addHandler(handler)
                logging.info(f"File logging enabled: {settings.log_folder or '.'}/{settings.log_file}")
            except OSError as e:
                logging.warning(f"Failed to initialize file logging: {e}")

        root.setLevel(getattr(logging, self._level, logging.INFO))
        logging.getLogger(__name__).info("Logging service initialized")

    async def shutdown(self) -> None:
        """Flush and detach the handlers installed by :meth:`initialize`.

        Examples:
            >>> from cloudflare_mcp.services.logging_service import LoggingService
            >>> import asyncio
            >>> asyncio.run(LoggingService().shutdown())
        """
        root = logging.getLogger()
        for handler in (_text_handler, _file_handler):
            if handler is not None and handler in root.handlers:
                handler.flush()
                root.removeHandler(handler)
        self._loggers.clear()

    def get_logger(self, name: str) -> logging.Logger:
        """Get or create logger instance.

        Records propagate to the root logger, which owns the handlers.

        Args:
            name: Logger name

        Returns:
            Logger instance

        Examples:
            >>> from cloudflare_mcp.services.logging_service import LoggingService
            >>> service = LoggingService()
            >>> logger = service.get_logger('test')
            >>> import logging
            >>> isinstance(logger, logging.Logger)
            True
        """
        if name not in self._loggers:
            self._loggers[name] = logging.getLogger(name)
        return self._loggers[name]

    def set_level(self, level: str) -> None:
        """Set minimum log level for the root logger and every registered logger.

        Args:
            level: Level name such as ``"DEBUG"``.

        Raises:
            ValueError: If the level name is unknown.

        Examples:
            >>> from cloudflare_mcp.services.logging_service import LoggingService
            >>> service = LoggingService()
            >>> service.set_level("debug")
            >>> service.set_level("loud")
            Traceback (most recent call last):
            ...
            ValueError: Unknown log level: LOUD
        """
        name = level.upper()
        numeric = logging.getLevelName(name)
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level: {name}")
        self._level = name
        logging.getLogger().setLevel(numeric)
        for logger in self._loggers.values():
            logger.setLevel(numeric)
