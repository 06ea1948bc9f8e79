import logging

import pytest

from auradash.config import DEFAULT_APP_ID, configure_logging, load_config
from auradash.errors import ConfigMissing


def test_defaults_without_environment():
    config = load_config({})
    assert config.app_id == DEFAULT_APP_ID
    assert config.store is None
    assert config.bootstrap_token is None
    with pytest.raises(ConfigMissing):
        config.require_store()


def test_full_environment_parsed():
    config = load_config(
        {
            "AURADASH_APP_ID": "plant-7",
            "AURADASH_STORE_CONFIG": '{"backend": "redis", "url": "redis://cache:6379/2"}',
            "AURADASH_BOOTSTRAP_TOKEN": " tok-1 ",
            "AURADASH_TOKEN_MAP": '{"tok-1": "tech-1"}',
            "AURADASH_LOG_LEVEL": "debug",
        }
    )
    assert config.app_id == "plant-7"
    assert config.require_store().url == "redis://cache:6379/2"
    assert config.bootstrap_token == "tok-1"
    assert config.token_map == {"tok-1": "tech-1"}
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"backend": "sqlite"}', "  "])
def test_unusable_store_config_is_treated_as_missing(raw):
    assert load_config({"AURADASH_STORE_CONFIG": raw}).store is None


def test_sentry_disabled_while_testing():
    config = load_config({"SENTRY_DSN": "https://key@sentry.invalid/1", "TESTING": "1"})
    assert config.sentry_dsn is None
    assert load_config({"SENTRY_DSN": "https://key@sentry.invalid/1"}).sentry_dsn


def test_configure_logging_attaches_single_handler():
    logger = configure_logging("WARNING")
    configure_logging("WARNING")
    assert logger.name == "auradash"
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1
