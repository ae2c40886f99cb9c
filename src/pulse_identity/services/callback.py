"""
pulse_identity/services/callback.py — Обработчик OAuth-редиректа.

Конечный автомат ``pending → confirmed | failed``, управляемый полным
URL редиректа (query + fragment). Не зависит от отображения: HTTP-слой
только превращает ``CallbackOutcome`` в ответ.

Порядок проверок:
    1. ``error`` / ``error_description`` (fragment, затем query) → failed,
       обмен токенов не выполняется.
    2. ``access_token`` + ``refresh_token`` (fragment, затем query) →
       ``set_session``.
    3. Иначе — уже существующая сессия провайдера.

При ``mode=register`` и известной роли создаётся профиль. Роль пишется в
метаданные Identity только если её там ещё нет; уже записанная роль
(``role`` или старое ``userType``) не перезаписывается.

Ошибка создания профиля исход не меняет: SessionReconciler повторит попытку при следующей загрузке.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, urlsplit

from pulse_identity.exceptions import (
    ProviderError,
    ProvisioningFailedError,
    SessionExchangeFailedError,
)
from pulse_identity.models.enums import CallbackStatus, UserRole
from pulse_identity.models.identity import AuthSession, Identity, TokenPair
from pulse_identity.models.profile import seed_from_identity
from pulse_identity.models.user import CallbackOutcome
from pulse_identity.providers.base import IdentityProvider
from pulse_identity.services.provisioner import ProfileProvisioner
from pulse_identity.services.reconciler import declared_role

logger = logging.getLogger(__name__)

APP_ROOT = "/"

MSG_EMAIL_CONFIRMED = "Email confirmed successfully! Redirecting to your dashboard..."
MSG_ALREADY_SIGNED_IN = "Already signed in! Redirecting to your dashboard..."
MSG_EXCHANGE_FAILED = "Failed to complete authentication. Please try again."
MSG_INVALID_LINK = "Invalid authentication link. Please try signing in again."
MSG_UNEXPECTED = "An unexpected error occurred. Please try again."

REGISTER_MODE = "register"


class CallbackParams:
    """Параметры редиректа: fragment имеет приоритет над query."""

    def __init__(self, url: str):
        parts = urlsplit(url)
        self.query = {k: v[0] for k, v in parse_qs(parts.query).items() if v}
        self.fragment = {k: v[0] for k, v in parse_qs(parts.fragment).items() if v}

    def get(self, key: str) -> str | None:
        return self.fragment.get(key) or self.query.get(key)

    def tokens(self) -> TokenPair | None:
        for source in (self.fragment, self.query):
            access, refresh = source.get("access_token"), source.get("refresh_token")
            if access and refresh:
                return TokenPair(access_token=access, refresh_token=refresh)
        return None

    def registration_role(self) -> UserRole | None:
        """Роль для создания профиля, если редирект пришёл из регистрации."""
        if self.get("mode") != REGISTER_MODE:
            return None
        role = UserRole.parse(self.get("userType"))
        if role not in (UserRole.CLINICIAN, UserRole.ORGANIZATION):
            return None
        return role


class OAuthCallbackHandler:
    """Обрабатывает URL редиректа и возвращает CallbackOutcome."""

    def __init__(self, provider: IdentityProvider, provisioner: ProfileProvisioner):
        self.provider = provider
        self.provisioner = provisioner

    async def handle(self, url: str) -> CallbackOutcome:
        try:
            return await self._handle(CallbackParams(url))
        except Exception:
            logger.exception("Auth callback processing error")
            return CallbackOutcome(status=CallbackStatus.FAILED, message=MSG_UNEXPECTED)

    async def _handle(self, params: CallbackParams) -> CallbackOutcome:
        # ── Шаг 1: ошибка от провайдера ──
        error = params.get("error")
        if error:
            description = params.get("error_description")
            logger.warning("Auth callback error: %s (%s)", error, description)
            return CallbackOutcome(status=CallbackStatus.FAILED, message=description or error)

        # ── Шаг 2: токены из редиректа ──
        tokens = params.tokens()
        if tokens is not None:
            try:
                session = await self.provider.set_session(tokens)
            except ProviderError as exc:
                logger.error("Session exchange failed: %s", exc.message)
                err = SessionExchangeFailedError(MSG_EXCHANGE_FAILED, details={"raw_message": exc.message})
                return CallbackOutcome(
                    status=CallbackStatus.FAILED, message=err.message, error_code=err.code
                )
            return await self._confirmed(session, params, MSG_EMAIL_CONFIRMED)

        # ── Шаг 3: уже существующая сессия ──
        session = await self.provider.get_session()
        if session is None:
            logger.info("No valid session found in callback")
            return CallbackOutcome(status=CallbackStatus.FAILED, message=MSG_INVALID_LINK)
        return await self._confirmed(session, params, MSG_ALREADY_SIGNED_IN)

    async def _confirmed(
        self, session: AuthSession, params: CallbackParams, message: str
    ) -> CallbackOutcome:
        role = params.registration_role()
        if role is not None:
            await self._provision(session.identity, role)
        return CallbackOutcome(
            status=CallbackStatus.CONFIRMED,
            message=message,
            redirect_to=APP_ROOT,
            user_id=session.identity.id,
        )

    async def _provision(self, identity: Identity, requested: UserRole) -> None:
        role = declared_role(identity)
        if role is None:
            role = requested
            identity = await self._stamp_role(identity, role)
        elif role != requested:
            logger.warning(
                "Identity %s already has role %s, ignoring requested %s",
                identity.id, role.value, requested.value,
            )
        try:
            result = await self.provisioner.ensure_profile(
                identity.id, role, seed_from_identity(identity, role)
            )
        except ProvisioningFailedError as exc:
            logger.warning(
                "Profile not created on callback for %s, will retry on next load: %s",
                identity.id, exc.message,
            )
            return
        if result.created:
            logger.info("Profile created on callback for %s (%s)", identity.id, role.value)

    async def _stamp_role(self, identity: Identity, role: UserRole) -> Identity:
        """Записывает роль в метаданные Identity без роли (best-effort)."""
        try:
            return await self.provider.update_user_metadata({"role": role.value})
        except ProviderError as exc:
            logger.warning("Could not store role for %s: %s", identity.id, exc.message)
            return identity.model_copy(update={"metadata": {**identity.metadata, "role": role.value}})
