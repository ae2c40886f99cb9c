"""
pulse_identity/models/identity.py — Учётная запись и сессия провайдера.

Identity принадлежит провайдеру и доступна ядру только на чтение.
"""

from datetime import datetime
from typing import Any

from pydantic import Field

from pulse_identity.models.common import PulseBase


class Identity(PulseBase):
    """Учётная запись провайдера (id стабилен на всё время жизни аккаунта)."""
    id: str
    email: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None

    def meta(self, key: str, default: Any = None) -> Any:
        """Значение из метаданных регистрации; пустые строки → default."""
        value = self.metadata.get(key)
        if value is None or value == "":
            return default
        return value


class TokenPair(PulseBase):
    """Пара access/refresh токенов."""
    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)


class AuthSession(PulseBase):
    """Живая сессия провайдера, привязанная ровно к одной Identity."""
    access_token: str
    refresh_token: str
    expires_at: int | None = None
    identity: Identity


class SignUpResult(PulseBase):
    """Ответ провайдера на sign_up: сессии нет, если нужен email-confirm."""
    identity: Identity | None = None
    session: AuthSession | None = None
