"""
pulse_identity/services/auth_service.py — Действия с учётными данными.

Пять действий, доступных приложению:
    • login                 — демо-аккаунт, иначе пароль у провайдера
    • login_with_google     — URL OAuth-редиректа
    • register              — регистрация по email + пароль
    • register_with_google  — OAuth-регистрация с выбранной ролью
    • logout

Ни одно действие не меняет ``current_user`` напрямую: реальная сессия
приходит в SessionReconciler уведомлением провайдера, демо-сессия и
очистка — через его ``apply_demo_session`` / ``clear``.

Ошибки провайдера классифицируются по подстроке сообщения (без учёта
регистра) в подклассы PulseIdentityError.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from pulse_identity.config import PulseSettings
from pulse_identity.exceptions import (
    AccountAlreadyExistsError,
    EmailNotConfirmedError,
    InvalidCredentialsError,
    OAuthNotConfiguredError,
    OAuthRedirectMismatchError,
    ProviderError,
    PulseIdentityError,
    UnclassifiedAuthError,
    ValidationError,
)
from pulse_identity.models.enums import UserRole
from pulse_identity.models.user import (
    LoginOutcome,
    OAuthRedirect,
    RegistrationOutcome,
    RegistrationRequest,
)
from pulse_identity.providers.base import IdentityProvider
from pulse_identity.services.demo_accounts import DemoCredentialResolver
from pulse_identity.services.reconciler import SessionReconciler

logger = logging.getLogger(__name__)

OAUTH_PROVIDER = "google"

OAUTH_NOT_CONFIGURED = (
    "Google OAuth is not configured in Supabase. Please set up Google OAuth in your "
    "Supabase dashboard under Authentication → Providers → Google."
)
OAUTH_CLIENT_ID = (
    "Google OAuth client ID is missing or invalid. "
    "Please check your Supabase Google OAuth settings."
)
OAUTH_NO_URL = (
    "Google OAuth is not properly configured. "
    "Please contact support or use email/password {alternative}."
)


# ═══════════════════════════════════════════════════════════════════════════
# КЛАССИФИКАЦИЯ ОШИБОК ПРОВАЙДЕРА
# ═══════════════════════════════════════════════════════════════════════════


def classify_password_error(exc: ProviderError, fallback: str = "Login failed") -> PulseIdentityError:
    """Ошибка входа/регистрации по паролю → доменное исключение."""
    raw = exc.message or ""
    text = raw.lower()
    if "email not confirmed" in text:
        return EmailNotConfirmedError()
    if "invalid login credentials" in text:
        return InvalidCredentialsError()
    if "user already registered" in text:
        return AccountAlreadyExistsError()
    return UnclassifiedAuthError(raw or fallback, raw_message=raw)


def classify_oauth_error(exc: ProviderError) -> PulseIdentityError:
    """Ошибка OAuth-старта → доменное исключение."""
    raw = exc.message or ""
    text = raw.lower()
    if any(s in text for s in ("invalid provider", "not configured", "provider is not enabled")):
        return OAuthNotConfiguredError(OAUTH_NOT_CONFIGURED)
    if "redirect_uri" in text:
        return OAuthRedirectMismatchError()
    if "client_id" in text:
        return OAuthNotConfiguredError(OAUTH_CLIENT_ID)
    return UnclassifiedAuthError(f"Google OAuth error: {raw}", raw_message=raw)


# ═══════════════════════════════════════════════════════════════════════════
# CREDENTIAL ACTIONS
# ═══════════════════════════════════════════════════════════════════════════


class CredentialActions:
    """Действия входа/регистрации/выхода поверх провайдера и Reconciler'а."""

    def __init__(
        self,
        provider: IdentityProvider,
        reconciler: SessionReconciler,
        settings: PulseSettings,
        demo_accounts: DemoCredentialResolver | None = None,
    ):
        self.provider = provider
        self.reconciler = reconciler
        self.settings = settings
        self.demo_accounts = demo_accounts or DemoCredentialResolver(
            enabled=settings.demo_accounts_enabled
        )

    async def login(self, email: str, password: str, role: UserRole | str) -> LoginOutcome:
        """
        Вход по email + пароль.

        Сначала таблица демо-аккаунтов (точное совпадение тройки),
        затем провайдер. Пользователь реальной сессии появится в
        Reconciler'е по уведомлению провайдера.

        Raises:
            EmailNotConfirmedError, InvalidCredentialsError, UnclassifiedAuthError
        """
        demo = self.demo_accounts.resolve(email, password, role)
        if demo is not None:
            user = self.reconciler.apply_demo_session(demo)
            return LoginOutcome(demo=True, user=user)

        try:
            await self.provider.sign_in_with_password(email, password)
        except ProviderError as exc:
            logger.warning("Login failed for %s: %s", email, exc.message)
            raise classify_password_error(exc) from exc

        logger.info("Provider login successful: %s", email)
        return LoginOutcome(demo=False)

    async def login_with_google(self, role: UserRole | str) -> OAuthRedirect:
        """URL для входа через Google; роль передаётся в ``userType``."""
        parsed = self._require_role(role, allowed=tuple(UserRole))
        url = await self._oauth(
            self.settings.callback_url,
            {"userType": parsed.value},
            alternative="login",
        )
        return OAuthRedirect(url=url)

    async def register(self, request: RegistrationRequest) -> RegistrationOutcome:
        """
        Регистрация по email + пароль.

        Профиль здесь не создаётся: он появится при первой
        реконсиляции сессии (сразу или после подтверждения email).
        """
        self._require_role(request.role, allowed=(UserRole.CLINICIAN, UserRole.ORGANIZATION))
        try:
            result = await self.provider.sign_up(
                request.email, request.password, request.provider_metadata()
            )
        except ProviderError as exc:
            logger.warning("Registration failed for %s: %s", request.email, exc.message)
            raise classify_password_error(exc, fallback="Registration failed") from exc

        needs_confirmation = result.session is None
        logger.info(
            "Registered %s as %s (email confirmation needed: %s)",
            request.email, request.role.value, needs_confirmation,
        )
        return RegistrationOutcome(
            needs_email_confirmation=needs_confirmation,
            identity_id=result.identity.id if result.identity else None,
        )

    async def register_with_google(self, role: UserRole | str) -> OAuthRedirect:
        """URL для регистрации через Google (только clinician/organization)."""
        parsed = self._require_role(role, allowed=(UserRole.CLINICIAN, UserRole.ORGANIZATION))
        params = {"mode": "register", "userType": parsed.value}
        url = await self._oauth(
            f"{self.settings.callback_url}?{urlencode(params)}",
            params,
            alternative="registration",
        )
        return OAuthRedirect(url=url)

    async def logout(self) -> None:
        """Демо-пользователь — только локальная очистка; иначе sign_out + очистка."""
        user = self.reconciler.current_user
        if user is not None and user.is_demo:
            logger.info("Demo logout: %s", user.id)
            self.reconciler.clear()
            return
        try:
            await self.provider.sign_out()
        except ProviderError as exc:
            logger.error("Provider sign-out failed: %s", exc.message)
            raise UnclassifiedAuthError(exc.message or "Logout failed", raw_message=exc.message) from exc
        finally:
            self.reconciler.clear()

    # ── Внутреннее ─────────────────────────────────────────────────────────

    async def _oauth(self, redirect_url: str, params: dict[str, str], alternative: str) -> str:
        if not self.settings.provider_configured:
            raise OAuthNotConfiguredError(
                "Supabase configuration is missing. Please check your environment variables."
            )
        try:
            url = await self.provider.sign_in_with_oauth(OAUTH_PROVIDER, redirect_url, params)
        except ProviderError as exc:
            logger.error("OAuth start failed: %s", exc.message)
            raise classify_oauth_error(exc) from exc
        if not url:
            raise OAuthNotConfiguredError(OAUTH_NO_URL.format(alternative=alternative))
        logger.info("Redirecting to Google OAuth (%s)", params.get("mode", "login"))
        return url

    @staticmethod
    def _require_role(role: UserRole | str, allowed: tuple[UserRole, ...]) -> UserRole:
        parsed = role if isinstance(role, UserRole) else UserRole.parse(role)
        if parsed is None or parsed not in allowed:
            raise ValidationError(
                f"Unsupported role: {role}",
                details={"allowed": [r.value for r in allowed]},
            )
        return parsed
