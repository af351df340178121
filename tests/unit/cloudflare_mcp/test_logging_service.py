# -*- coding: utf-8 -*-
"""Unit tests for the logging service."""

# Standard
import logging

# Third-Party
import pytest

# First-Party
from cloudflare_mcp.services import logging_service as logging_mod
from cloudflare_mcp.services.logging_service import LoggingService


@pytest.mark.asyncio
async def test_initialize_and_shutdown_manage_root_handlers() -> None:
    service = LoggingService()
    root = logging.getLogger()

    await service.initialize()
    handler = logging_mod._get_text_handler()
    assert handler in root.handlers

    await service.shutdown()
    assert handler not in root.handlers


@pytest.mark.asyncio
async def test_initialize_is_idempotent() -> None:
    service = LoggingService()

    await service.initialize()
    await service.initialize()

    assert logging.getLogger().handlers.count(logging_mod._get_text_handler()) == 1
    await service.shutdown()


@pytest.mark.asyncio
async def test_file_logging(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logging_mod.settings, "log_to_file", True)
    monkeypatch.setattr(logging_mod.settings, "log_folder", str(tmp_path))
    monkeypatch.setattr(logging_mod.settings, "log_file", "test.log")
    monkeypatch.setattr(logging_mod, "_file_handler", None)
    service = LoggingService()

    await service.initialize()
    service.get_logger("cloudflare_mcp.test").warning("hello file")
    await service.shutdown()
    logging_mod._file_handler.close()

    assert "hello file" in (tmp_path / "test.log").read_text()


def test_file_handler_requires_file_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logging_mod.settings, "log_to_file", False)
    monkeypatch.setattr(logging_mod, "_file_handler", None)

    with pytest.raises(ValueError):
        logging_mod._get_file_handler()


def test_get_logger_is_cached() -> None:
    service = LoggingService()

    assert service.get_logger("a.b") is service.get_logger("a.b")


def test_set_level() -> None:
    service = LoggingService()
    registered = service.get_logger("cloudflare_mcp.level")
    previous = logging.getLogger().level

    service.set_level("warning")

    assert registered.level == logging.WARNING
    assert logging.getLogger().level == logging.WARNING
    with pytest.raises(ValueError, match="Unknown log level: NOPE"):
        service.set_level("nope")
    logging.getLogger().setLevel(previous)
