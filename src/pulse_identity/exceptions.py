"""
═══════════════════════════════════════════════════════════════════════════════
PulseOps Identity — Иерархия доменных ошибок (Custom Exception Hierarchy)
═══════════════════════════════════════════════════════════════════════════════

Базовый класс ``PulseIdentityError``; по одному подклассу на каждый вид
ошибки из таксономии аутентификации. HTTP-маппинг кодов выполняется в
``pulse_identity.main:identity_error_handler``.

Отдельно — инфраструктурные ошибки адаптеров (``ProviderError``,
``StoreError``): они не показываются пользователю напрямую, а
классифицируются сервисами.
"""


class PulseIdentityError(Exception):
    """
    Базовое исключение для всех доменных ошибок.

    Атрибуты
    ────────
        message (str):  Сообщение для пользователя. Передаётся клиенту в JSON.
        code (str):     Строковый код вида ошибки (маппинг на HTTP-статус).
        details (dict): Дополнительные данные (сырое сообщение провайдера и т.д.).
    """

    def __init__(
        self,
        message: str,
        code: str = "IDENTITY_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class InvalidCredentialsError(PulseIdentityError):
    """Неверный email или пароль."""

    def __init__(
        self,
        message: str = "Invalid email or password. Please check your credentials and try again.",
    ):
        super().__init__(message, code="INVALID_CREDENTIALS")


class EmailNotConfirmedError(PulseIdentityError):
    """Email ещё не подтверждён."""

    def __init__(
        self,
        message: str = (
            "Please check your email and click the confirmation link before signing in. "
            "Don't forget to check your spam folder!"
        ),
    ):
        super().__init__(message, code="EMAIL_NOT_CONFIRMED")


class AccountAlreadyExistsError(PulseIdentityError):
    """Учётная запись с таким email уже существует."""

    def __init__(
        self,
        message: str = "An account with this email already exists. Please try signing in instead.",
    ):
        super().__init__(message, code="ACCOUNT_ALREADY_EXISTS")


class OAuthNotConfiguredError(PulseIdentityError):
    """OAuth-провайдер не настроен (ключи, включение провайдера)."""

    def __init__(self, message: str = "Google OAuth is not configured."):
        super().__init__(message, code="OAUTH_NOT_CONFIGURED")


class OAuthRedirectMismatchError(PulseIdentityError):
    """Redirect URL не совпадает с зарегистрированным у провайдера."""

    def __init__(
        self,
        message: str = "OAuth redirect URL mismatch. Please check your Google OAuth configuration.",
    ):
        super().__init__(message, code="OAUTH_REDIRECT_MISMATCH")


class SessionExchangeFailedError(PulseIdentityError):
    """Не удалось обменять токены из редиректа на сессию."""

    def __init__(
        self,
        message: str = "Failed to complete authentication. Please try again.",
        details: dict | None = None,
    ):
        super().__init__(message, code="SESSION_EXCHANGE_FAILED", details=details)


class ProvisioningFailedError(PulseIdentityError):
    """
    Не удалось создать профиль.

    Никогда не пробрасывается вызывающему ``reconcile`` — только в лог
    и побочный канал событий.
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, code="PROVISIONING_FAILED", details=details)


class UnclassifiedAuthError(PulseIdentityError):
    """Нераспознанная ошибка провайдера; сырое сообщение сохраняется."""

    def __init__(self, message: str, raw_message: str | None = None):
        super().__init__(
            message,
            code="UNCLASSIFIED",
            details={"raw_message": raw_message if raw_message is not None else message},
        )


class ValidationError(PulseIdentityError):
    """Некорректные входные данные от вызывающего кода."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, code="VALIDATION_ERROR", details=details)


# ═══════════════════════════════════════════════════════════════════════════════
# Инфраструктурные ошибки адаптеров
# ═══════════════════════════════════════════════════════════════════════════════


class ProviderError(Exception):
    """Ошибка identity-провайдера; ``message`` — его сырое сообщение."""

    def __init__(self, message: str, status: int | None = None):
        self.message = message
        self.status = status
        super().__init__(message)


class StoreError(Exception):
    """Ошибка хранилища профилей."""


class DuplicateRowError(StoreError):
    """Вставка отклонена ограничением уникальности."""

    def __init__(self, table: str, key: dict):
        self.table = table
        self.key = key
        super().__init__(f"Duplicate row in {table}: {key}")


__all__ = [
    "PulseIdentityError",
    "InvalidCredentialsError",
    "EmailNotConfirmedError",
    "AccountAlreadyExistsError",
    "OAuthNotConfiguredError",
    "OAuthRedirectMismatchError",
    "SessionExchangeFailedError",
    "ProvisioningFailedError",
    "UnclassifiedAuthError",
    "ValidationError",
    "ProviderError",
    "StoreError",
    "DuplicateRowError",
]
