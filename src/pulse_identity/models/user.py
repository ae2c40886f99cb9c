"""
pulse_identity/models/user.py — Пользователь приложения и результаты действий.

ApplicationUser существует тогда и только тогда, когда есть сессия
(реальная или демо). Меняется только SessionReconciler'ом.
"""

from datetime import datetime

from pydantic import Field, field_validator

from pulse_identity.models.common import PulseBase
from pulse_identity.models.enums import CallbackStatus, CredentialingStatus, UserRole

DEMO_ID_PREFIX = "demo-"


class ApplicationUser(PulseBase):
    """Текущий пользователь, каким его видит остальное приложение."""

    model_config = {"frozen": True}

    id: str
    email: str
    role: UserRole
    is_approved: bool = True
    credentialing_status: CredentialingStatus | None = None
    created_at: datetime | None = None
    last_login: datetime

    @property
    def is_demo(self) -> bool:
        return self.id.startswith(DEMO_ID_PREFIX)

    def comparable(self) -> dict:
        """Поля без ``last_login`` — для проверки идемпотентности."""
        return self.model_dump(exclude={"last_login"})


class RegistrationRequest(PulseBase):
    """Данные формы регистрации (email + пароль + метаданные профиля)."""
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=6, max_length=128)
    role: UserRole
    first_name: str | None = None
    last_name: str | None = None
    organization_name: str | None = None
    contact_person_name: str | None = None
    organization_type: str | None = None
    phone: str | None = None
    date_of_birth: str | None = None

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, v):
        """Старые названия ролей (``nurse``, ``hco``) → канонические."""
        if isinstance(v, str):
            return UserRole.parse(v) or v
        return v

    def provider_metadata(self) -> dict:
        """Метаданные, которые провайдер сохраняет в Identity."""
        data = self.model_dump(exclude={"email", "password", "role"}, exclude_none=True)
        data["role"] = self.role.value
        return data


class LoginOutcome(PulseBase):
    """Результат входа по паролю."""
    demo: bool = False
    user: ApplicationUser | None = None


class OAuthRedirect(PulseBase):
    """Куда отправить браузер для OAuth-входа."""
    url: str


class RegistrationOutcome(PulseBase):
    """Результат регистрации."""
    needs_email_confirmation: bool
    identity_id: str | None = None


class CallbackOutcome(PulseBase):
    """Итог обработки OAuth-редиректа."""
    status: CallbackStatus
    message: str = ""
    redirect_to: str | None = None
    user_id: str | None = None
    error_code: str | None = None
