"""
pulse_identity/providers/supabase_provider.py — Адаптер Supabase Auth.

Оборачивает асинхронный клиент supabase-py: переводит его модели
(Session, User) в доменные ``AuthSession``/``Identity`` и его ошибки
в ``ProviderError`` с сырым сообщением провайдера. Классификация
сообщений выполняется уровнем выше (``services.auth_service``).
"""

from __future__ import annotations

import logging
from typing import Any

from supabase import AsyncClient, AuthError, acreate_client

from pulse_identity.config import PulseSettings
from pulse_identity.exceptions import ProviderError
from pulse_identity.models.identity import AuthSession, Identity, SignUpResult, TokenPair
from pulse_identity.providers.base import SessionCallback, Unsubscribe

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# МАППИНГ МОДЕЛЕЙ SUPABASE → ДОМЕН
# ═══════════════════════════════════════════════════════════════════════════


def _to_identity(user: Any) -> Identity:
    return Identity(
        id=str(user.id),
        email=user.email or "",
        metadata=dict(user.user_metadata or {}),
        created_at=getattr(user, "created_at", None),
    )


def _to_session(session: Any) -> AuthSession:
    return AuthSession(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=getattr(session, "expires_at", None),
        identity=_to_identity(session.user),
    )


def _provider_error(exc: AuthError) -> ProviderError:
    status = getattr(exc, "status", None)
    return ProviderError(getattr(exc, "message", None) or str(exc), status=status)


class SupabaseIdentityProvider:
    """Identity-провайдер поверх ``supabase.AsyncClient``."""

    def __init__(self, client: AsyncClient):
        self.client = client

    @classmethod
    async def connect(cls, settings: PulseSettings) -> "SupabaseIdentityProvider":
        """Создаёт клиент Supabase по настройкам (один на процесс)."""
        client = await acreate_client(settings.supabase_url, settings.supabase_anon_key)
        logger.info("Supabase client created for %s", settings.supabase_url)
        return cls(client)

    async def get_session(self) -> AuthSession | None:
        try:
            session = await self.client.auth.get_session()
        except AuthError as exc:
            raise _provider_error(exc) from exc
        if session is None or session.user is None:
            return None
        return _to_session(session)

    def on_session_change(self, callback: SessionCallback) -> Unsubscribe:
        """
        Подписка на события auth-state (SIGNED_IN, TOKEN_REFRESHED, SIGNED_OUT...).

        supabase-py вызывает callback синхронно, в порядке событий.
        """

        def _listener(event: Any, session: Any) -> None:
            name = getattr(event, "value", event)
            if session is None or getattr(session, "user", None) is None:
                callback(None, str(name))
            else:
                callback(_to_session(session), str(name))

        subscription = self.client.auth.on_auth_state_change(_listener)
        return subscription.unsubscribe

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        try:
            response = await self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except AuthError as exc:
            raise _provider_error(exc) from exc
        if response.session is None:
            raise ProviderError("Login failed")
        return _to_session(response.session)

    async def sign_in_with_oauth(
        self, provider: str, redirect_url: str, extra_params: dict[str, str]
    ) -> str | None:
        try:
            response = await self.client.auth.sign_in_with_oauth(
                {
                    "provider": provider,
                    "options": {
                        "redirect_to": redirect_url,
                        "query_params": extra_params,
                    },
                }
            )
        except AuthError as exc:
            raise _provider_error(exc) from exc
        return getattr(response, "url", None)

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> SignUpResult:
        try:
            response = await self.client.auth.sign_up(
                {"email": email, "password": password, "options": {"data": metadata}}
            )
        except AuthError as exc:
            raise _provider_error(exc) from exc
        return SignUpResult(
            identity=_to_identity(response.user) if response.user else None,
            session=_to_session(response.session) if response.session else None,
        )

    async def set_session(self, tokens: TokenPair) -> AuthSession:
        try:
            response = await self.client.auth.set_session(
                tokens.access_token, tokens.refresh_token
            )
        except AuthError as exc:
            raise _provider_error(exc) from exc
        if response.session is None:
            raise ProviderError("Session could not be established from tokens")
        return _to_session(response.session)

    async def update_user_metadata(self, data: dict[str, Any]) -> Identity:
        try:
            response = await self.client.auth.update_user({"data": data})
        except AuthError as exc:
            raise _provider_error(exc) from exc
        return _to_identity(response.user)

    async def sign_out(self) -> None:
        try:
            await self.client.auth.sign_out()
        except AuthError as exc:
            raise _provider_error(exc) from exc
