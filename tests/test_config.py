"""
Tests for `config.py`.
"""

from __future__ import annotations

import logging

import pytest

from backoffice.config import STORE_MEMORY, STORE_SUPABASE, load_settings
from backoffice.engine import BackOffice
from backoffice.logging_config import KeyValueFormatter
from backoffice.repositories.memory_store import InMemoryDocumentStore


def test_defaults():
    settings = load_settings(environ={})

    assert settings.store_backend == STORE_MEMORY
    assert settings.storage_timeout_seconds == 10.0
    assert settings.follow_up_days == 3
    assert settings.default_delivery_days == 7
    assert settings.order_id_prefix == "RPC"
    assert settings.notification_feed_size == 20
    assert settings.log_level == "INFO"
    assert settings.cors_origins == ("*",)


def test_overrides():
    settings = load_settings(
        environ={
            "BACKOFFICE_STORAGE_TIMEOUT_SECONDS": "2.5",
            "BACKOFFICE_FOLLOW_UP_DAYS": "5",
            "BACKOFFICE_ORDER_PREFIX": "ORD",
            "BACKOFFICE_LOG_LEVEL": "debug",
            "BACKOFFICE_CORS_ORIGINS": "https://a.example.com, https://b.example.com",
        }
    )

    assert settings.storage_timeout_seconds == 2.5
    assert settings.follow_up_days == 5
    assert settings.order_id_prefix == "ORD"
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ("https://a.example.com", "https://b.example.com")


def test_supabase_requires_credentials():
    with pytest.raises(RuntimeError, match="SUPABASE_URL"):
        load_settings(environ={"BACKOFFICE_STORE": STORE_SUPABASE})

    with pytest.raises(RuntimeError, match="SUPABASE_KEY"):
        load_settings(environ={"BACKOFFICE_STORE": STORE_SUPABASE, "SUPABASE_URL": "https://x.supabase.co"})


@pytest.mark.parametrize(
    "environ",
    [
        {"BACKOFFICE_STORE": "redis"},
        {"BACKOFFICE_STORAGE_TIMEOUT_SECONDS": "0"},
        {"BACKOFFICE_FOLLOW_UP_DAYS": "three"},
        {"BACKOFFICE_CORS_ORIGINS": " , "},
    ],
)
def test_invalid_values(environ):
    with pytest.raises(RuntimeError):
        load_settings(environ=environ)


def test_from_settings_builds_memory_store():
    office = BackOffice.from_settings(load_settings(environ={"BACKOFFICE_FOLLOW_UP_DAYS": "4"}))

    assert isinstance(office.store, InMemoryDocumentStore)
    assert office.settings.follow_up_days == 4


def test_key_value_formatter_appends_extras():
    formatter = KeyValueFormatter("%(levelname)s %(message)s")
    record = logging.LogRecord("backoffice", logging.INFO, __file__, 1, "Payment recorded", None, None)
    record.order_id = "RPC1"
    record.amount = "10.00"

    assert formatter.format(record) == "INFO Payment recorded | amount=10.00 order_id=RPC1"
