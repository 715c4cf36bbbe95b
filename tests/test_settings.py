"""Tests for environment-driven settings."""

from datetime import timedelta

import pytest

from ratsinfo.settings import DEFAULT_BASE_URL, Settings, load_settings


def test_defaults_build_client_config():
    config = Settings().client_config()

    assert config.base_url == DEFAULT_BASE_URL
    assert config.hard_ttl == timedelta(minutes=10)
    assert config.soft_ttl == timedelta(minutes=2)
    assert config.max_cache_size == 200
    assert config.eviction_batch == 20
    assert config.max_concurrent_requests == 5
    assert config.item_ttl == config.hard_ttl


def test_env_names_are_aliases():
    settings = Settings.model_validate(
        {
            "OPARL_BASE_URL": "https://oparl.example.test/bodies/2",
            "CACHE_TTL_SECONDS": "300",
            "CACHE_REVALIDATE_SECONDS": "60",
            "CACHE_SUB_ENTITY_TTL_SECONDS": "90",
            "MAX_CONCURRENT_REQUESTS": "2",
        }
    )
    config = settings.client_config()

    assert config.base_url == "https://oparl.example.test/bodies/2"
    assert config.hard_ttl == timedelta(minutes=5)
    assert config.soft_ttl == timedelta(minutes=1)
    assert config.item_ttl == timedelta(seconds=90)
    assert config.max_concurrent_requests == 2


def test_load_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("CACHE_MAX_SIZE", "50")
    monkeypatch.setenv("CACHE_EVICTION_BATCH", "5")

    settings = load_settings()

    assert settings.cache_max_size == 50
    assert settings.cache_eviction_batch == 5


def test_inconsistent_ttls_are_rejected():
    settings = Settings.model_validate(
        {"CACHE_TTL_SECONDS": "60", "CACHE_REVALIDATE_SECONDS": "120"}
    )

    with pytest.raises(ValueError):
        settings.client_config()
