"""
pulse_identity/providers/base.py — Порт identity-провайдера.

Ядро зависит только от этого протокола; клиент провайдера создаётся
один раз при старте и передаётся в сервисы явно.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

from pulse_identity.exceptions import ProviderError
from pulse_identity.models.identity import AuthSession, Identity, SignUpResult, TokenPair

logger = logging.getLogger(__name__)

# (session | None, event name); вызывается в порядке доставки провайдером
SessionCallback = Callable[[AuthSession | None, str], None]
Unsubscribe = Callable[[], None]


class IdentityProvider(Protocol):
    """Операции провайдера, которыми пользуется ядро."""

    async def get_session(self) -> AuthSession | None: ...

    def on_session_change(self, callback: SessionCallback) -> Unsubscribe: ...

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession: ...

    async def sign_in_with_oauth(
        self, provider: str, redirect_url: str, extra_params: dict[str, str]
    ) -> str | None: ...

    async def sign_up(
        self, email: str, password: str, metadata: dict[str, Any]
    ) -> SignUpResult: ...

    async def set_session(self, tokens: TokenPair) -> AuthSession: ...

    async def update_user_metadata(self, data: dict[str, Any]) -> Identity: ...

    async def sign_out(self) -> None: ...


class DisabledIdentityProvider:
    """
    Заглушка на случай, когда Supabase не настроен.

    Сессий нет; любые действия завершаются ProviderError — работают
    только демо-аккаунты.
    """

    MESSAGE = "Supabase configuration is missing. Please check your environment variables."

    async def get_session(self) -> AuthSession | None:
        return None

    def on_session_change(self, callback: SessionCallback) -> Unsubscribe:
        return lambda: None

    async def _fail(self, *args: Any, **kwargs: Any) -> Any:
        raise ProviderError(self.MESSAGE)

    sign_in_with_password = _fail
    sign_in_with_oauth = _fail
    sign_up = _fail
    set_session = _fail
    update_user_metadata = _fail

    async def sign_out(self) -> None:
        logger.debug("Identity provider disabled, nothing to sign out")
