"""Tests for logging setup and secret scrubbing."""

import logging
from unittest.mock import MagicMock

import structlog

from tablebot.logging_config import (
    LOGGER_PREFIX,
    SUBSYSTEMS,
    mask_chat_ids,
    sanitize_secrets,
    setup_logging,
)


def test_sanitize_secrets_redacts_tokens():
    event = {
        "event": "send_failed",
        "header": "Bearer abcdefghijklmnopqrstuvwxyz123456",
        "urls": ["https://chat.local/?token=abcdef0123456789abcd"],
        "nested": {"key": "sk-0123456789abcdefghijklmn"},
        "count": 3,
    }
    result = sanitize_secrets(None, "info", event)
    assert "abcdefghijklmnopqrstuvwxyz" not in result["header"]
    assert result["urls"] == ["https://chat.local/?token=***REDACTED***"]
    assert result["nested"]["key"] == "***REDACTED***"
    assert result["count"] == 3


def test_mask_chat_ids_keeps_last_four():
    event = {
        "event": "command_invoked",
        "author": "123456789012345678",
        "author_id": 4242424242,
        "account": "+15551234567",
        "recipient": "42",
        "channel": "room-123456",
    }
    result = mask_chat_ids(None, "info", event)
    assert result["author"] == "...5678"
    assert result["author_id"] == "...2424"
    assert result["account"] == "...4567"
    assert result["recipient"] == "..."
    assert result["channel"] == "room-123456"


def test_mask_chat_ids_ignores_absent_and_none():
    event = {"event": "bot_started", "author": None}
    assert mask_chat_ids(None, "info", dict(event)) == event


def test_setup_logging_creates_subsystem_files(tmp_path):
    config = MagicMock()
    config.log_dir = tmp_path / "logs"
    config.logging_level = "info"
    config.logging_subsystem_levels = {"plugins": "DEBUG"}
    config.logging_max_file_size_mb = 1
    config.logging_backup_count = 1

    setup_logging(config)
    try:
        assert mask_chat_ids in structlog.get_config()["processors"]
        assert config.log_dir.is_dir()
        assert logging.getLogger(f"{LOGGER_PREFIX}.plugins").level == logging.DEBUG
        assert logging.getLogger(f"{LOGGER_PREFIX}.bot").level == logging.INFO
        for subsystem in SUBSYSTEMS:
            handlers = logging.getLogger(f"{LOGGER_PREFIX}.{subsystem}").handlers
            assert len(handlers) == 1
    finally:
        setup_logging()
