"""Startup configuration and logging setup."""

# purpose: resolve application id, store connection and bootstrap token from the environment
# inputs: process environment (AURADASH_*, REDIS_URL, TESTING)
# outputs: AppConfig consumed once by the composition root
# status: pilot

from __future__ import annotations

import json
import logging
import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigMissing

DEFAULT_APP_ID = "default-app-id"
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_logger = logging.getLogger(__name__)


class StoreConfig(BaseModel):
    backend: Literal["redis", "memory"] = "redis"
    url: str = Field(default_factory=lambda: REDIS_URL)
    channel_prefix: str = "changes"


class AppConfig(BaseModel):
    app_id: str = DEFAULT_APP_ID
    store: Optional[StoreConfig] = None
    bootstrap_token: Optional[str] = None
    token_map: dict[str, str] = Field(default_factory=dict)
    log_level: str = "INFO"
    sentry_dsn: Optional[str] = None

    def require_store(self) -> StoreConfig:
        if self.store is None:
            raise ConfigMissing("document store configuration is missing")
        return self.store


def _parse_json_object(name: str, raw: Optional[str]) -> Optional[dict]:
    if raw is None or not raw.strip():
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        _logger.error("%s is not valid JSON: %s", name, exc)
        return None
    if not isinstance(value, dict):
        _logger.error("%s must be a JSON object", name)
        return None
    return value


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Build the startup configuration.

    A missing or unparseable ``AURADASH_STORE_CONFIG`` leaves ``store`` unset;
    the composition root treats that as :class:`ConfigMissing` and runs with a
    degraded local identity only.
    """

    env = os.environ if environ is None else environ
    store = None
    store_payload = _parse_json_object("AURADASH_STORE_CONFIG", env.get("AURADASH_STORE_CONFIG"))
    if store_payload is not None:
        try:
            store = StoreConfig.model_validate(store_payload)
        except ValidationError as exc:
            _logger.error("AURADASH_STORE_CONFIG rejected: %s", exc)
    token_map = _parse_json_object("AURADASH_TOKEN_MAP", env.get("AURADASH_TOKEN_MAP")) or {}
    token = (env.get("AURADASH_BOOTSTRAP_TOKEN") or "").strip() or None
    sentry_dsn = None if env.get("TESTING") == "1" else env.get("SENTRY_DSN") or None
    return AppConfig(
        app_id=env.get("AURADASH_APP_ID") or DEFAULT_APP_ID,
        store=store,
        bootstrap_token=token,
        token_map={str(key): str(value) for key, value in token_map.items()},
        log_level=env.get("AURADASH_LOG_LEVEL", "INFO").upper(),
        sentry_dsn=sentry_dsn,
    )


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stream handler to the package logger once."""

    logger = logging.getLogger("auradash")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger
