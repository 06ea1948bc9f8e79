"""Session identity bootstrap."""

# purpose: establish exactly one principal per session and signal readiness once
# inputs: AppConfig (bootstrap token, store presence) and an identity provider
# outputs: Principal, degraded when every sign-in path failed
# status: pilot

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Callable, Optional, Protocol

from . import metrics
from .config import AppConfig
from .errors import AuthFailure, ConfigMissing
from .schemas import Principal

_logger = logging.getLogger(__name__)

IdentityCallback = Callable[[Optional[Principal]], None]


class IdentityProvider(Protocol):
    async def sign_in_anonymous(self) -> Principal: ...

    async def sign_in_with_token(self, token: str) -> Principal: ...

    def on_identity_change(self, callback: IdentityCallback) -> Callable[[], None]: ...


class LocalIdentityProvider:
    """Identity provider backed by a configured token map.

    Anonymous sign-in issues a fresh random id; token sign-in resolves the
    token through ``token_map`` and rejects unknown tokens.
    """

    def __init__(self, token_map: Optional[dict[str, str]] = None, allow_anonymous: bool = True) -> None:
        self._token_map = dict(token_map or {})
        self._allow_anonymous = allow_anonymous
        self._listeners: list[IdentityCallback] = []
        self.current: Optional[Principal] = None

    async def sign_in_anonymous(self) -> Principal:
        if not self._allow_anonymous:
            raise AuthFailure("anonymous sign-in is disabled")
        return self._switch(Principal(id=uuid.uuid4().hex))

    async def sign_in_with_token(self, token: str) -> Principal:
        principal_id = self._token_map.get(token)
        if principal_id is None:
            raise AuthFailure("bootstrap token rejected")
        return self._switch(Principal(id=principal_id))

    def on_identity_change(self, callback: IdentityCallback) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def _switch(self, principal: Principal) -> Principal:
        self.current = principal
        for listener in list(self._listeners):
            listener(principal)
        return principal


def ephemeral_principal() -> Principal:
    return Principal(id=str(uuid.uuid4()), degraded=True)


class IdentityBootstrapper:
    """Resolve the session principal: token, then anonymous, then ephemeral.

    ``ready`` is set exactly once whichever path completes. No timeout is
    applied; if the provider never answers, ``ready`` never fires.
    """

    def __init__(self, provider: Optional[IdentityProvider]) -> None:
        self._provider = provider
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.ready = asyncio.Event()
        self.principal: Optional[Principal] = None

    async def bootstrap(self, config: AppConfig) -> Principal:
        principal = await self._resolve(config)
        self.principal = principal
        if not self.ready.is_set():
            self.ready.set()
        _logger.info("Session identity ready: %s (degraded=%s)", principal.id, principal.degraded)
        return principal

    async def wait_ready(self) -> Principal:
        await self.ready.wait()
        if self.principal is None:
            raise RuntimeError("identity ready without a principal")
        return self.principal

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def _resolve(self, config: AppConfig) -> Principal:
        try:
            config.require_store()
        except ConfigMissing as exc:
            _logger.error("Remote sync disabled: %s", exc)
            metrics.record_error(exc.kind)
            return ephemeral_principal()
        if self._provider is None:
            _logger.error("No identity provider configured; using a local identity")
            return ephemeral_principal()

        self._unsubscribe = self._provider.on_identity_change(self._on_identity_change)
        if config.bootstrap_token:
            try:
                return await self._provider.sign_in_with_token(config.bootstrap_token)
            except Exception as exc:
                _logger.error("Token sign-in failed: %s", exc)
                metrics.record_error(AuthFailure.kind)
        try:
            return await self._provider.sign_in_anonymous()
        except Exception as exc:
            _logger.error("Anonymous sign-in failed: %s", exc)
            metrics.record_error(AuthFailure.kind)
        return ephemeral_principal()

    def _on_identity_change(self, principal: Optional[Principal]) -> None:
        if principal is None:
            _logger.info("Identity provider reports no signed-in principal")
        elif self.principal is not None and principal.id != self.principal.id:
            _logger.warning("Identity changed from %s to %s mid-session", self.principal.id, principal.id)
        else:
            _logger.info("User signed in: %s", principal.id)
