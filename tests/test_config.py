import logging
import os
from unittest import mock

from coinboard import config


def test_settings_defaults():
    # Mock environment to be empty
    with mock.patch.dict(os.environ, {}, clear=True):
        settings = config._read_settings()
        assert settings.COINGECKO_BASE_URL == "https://api.coingecko.com/api/v3"
        assert settings.VS_CURRENCY == "brl"
        assert settings.LOCALIZATION == "pt"
        assert settings.REQUEST_INTERVAL_S == 2.0
        assert settings.CACHE_TTL_S == 300
        assert settings.MAX_RETRIES == 3
        assert settings.RETRY_DELAY_S == 30.0
        assert settings.CACHE_FILE == "data/cache.json"


def test_settings_custom():
    env = {
        "COINGECKO_BASE_URL": "http://localhost:9000/api/v3/",
        "VS_CURRENCY": "USD",
        "REQUEST_INTERVAL_S": "0.5",
        "MAX_RETRIES": "5",
        "CACHE_FILE": "",
    }
    with mock.patch.dict(os.environ, env, clear=True):
        settings = config._read_settings()
        assert settings.COINGECKO_BASE_URL == "http://localhost:9000/api/v3"
        assert settings.VS_CURRENCY == "usd"
        assert settings.REQUEST_INTERVAL_S == 0.5
        assert settings.MAX_RETRIES == 5
        assert settings.CACHE_FILE is None


def test_invalid_numbers_fall_back_to_defaults():
    env = {"REQUEST_INTERVAL_S": "fast", "MAX_RETRIES": "three"}
    with mock.patch.dict(os.environ, env, clear=True):
        settings = config._read_settings()
        assert settings.REQUEST_INTERVAL_S == 2.0
        assert settings.MAX_RETRIES == 3


def test_validate_settings_clamps_negative_retries(caplog):
    with mock.patch.dict(os.environ, {"MAX_RETRIES": "-2", "REQUEST_INTERVAL_S": "0"}, clear=True):
        settings = config._read_settings()
    with caplog.at_level(logging.WARNING, logger="coinboard.config"):
        config.validate_settings(settings)
    assert settings.MAX_RETRIES == 0
    assert "REQUEST_INTERVAL_S" in caplog.text
