"""
pulse_identity/models/enums.py — Перечисления домена.

Содержит:
    • UserRole — роль пользователя платформы
    • CredentialingStatus — статус проверки документов клинициста
    • CallbackStatus — состояние обработчика OAuth-редиректа
"""

from __future__ import annotations

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class UserRole(str, Enum):
    """Роль пользователя платформы."""
    CLINICIAN = "clinician"
    ORGANIZATION = "organization"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: str | None) -> "UserRole | None":
        """
        Приводит значение из метаданных/URL к роли.

        Понимает старые названия (``nurse``, ``hco``), которые пишут
        ранние версии формы регистрации. Неизвестное значение → None.
        """
        if isinstance(value, cls):
            return value
        if not value:
            return None
        key = str(value).strip().lower()
        key = ROLE_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            logger.warning("Unknown role value: %r", value)
            return None


ROLE_ALIASES: dict[str, str] = {
    "nurse": UserRole.CLINICIAN.value,
    "hco": UserRole.ORGANIZATION.value,
}


class CredentialingStatus(str, Enum):
    """Статус проверки документов клинициста."""
    PENDING = "pending"
    APPROVED = "approved"
    NEEDS_DOCUMENTS = "needs_documents"


class CallbackStatus(str, Enum):
    """Состояние обработчика OAuth-редиректа."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
