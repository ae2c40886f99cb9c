"""
pulse_identity/services/demo_accounts.py — Демо-аккаунты.

Фиксированная таблица (email, пароль, роль). Вход демо-аккаунтом
полностью обходит провайдер: профиль не создаётся, выход — только
локальная очистка состояния.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from pulse_identity.models.enums import UserRole
from pulse_identity.models.user import DEMO_ID_PREFIX

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DemoAccount:
    email: str
    password: str
    role: UserRole


@dataclass(frozen=True)
class DemoSession:
    """Синтетическая сессия демо-пользователя."""
    user_id: str
    email: str
    role: UserRole


DEMO_ACCOUNTS: tuple[DemoAccount, ...] = (
    DemoAccount("demo@nurse.com", "demo123", UserRole.CLINICIAN),
    DemoAccount("demo@hco.com", "demo123", UserRole.ORGANIZATION),
    DemoAccount("admin@pulseops.com", "admin123", UserRole.ADMIN),
)


def demo_user_id(role: UserRole, now_ms: int | None = None) -> str:
    """``demo-<role>-<epoch millis>``."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{DEMO_ID_PREFIX}{role.value}-{now_ms}"


class DemoCredentialResolver:
    """Сопоставляет тройку (email, password, role) с таблицей демо-аккаунтов."""

    def __init__(self, accounts: tuple[DemoAccount, ...] = DEMO_ACCOUNTS, enabled: bool = True):
        self.accounts = accounts
        self.enabled = enabled

    def resolve(self, email: str, password: str, role: UserRole | str | None) -> DemoSession | None:
        """
        Точное совпадение всех трёх полей → DemoSession, иначе None.

        Роль сравнивается после приведения (``nurse`` == ``clinician``);
        email и пароль сравниваются как есть.
        """
        if not self.enabled:
            return None
        parsed = role if isinstance(role, UserRole) else UserRole.parse(role)
        if parsed is None:
            return None
        for account in self.accounts:
            if (
                account.email == email
                and account.password == password
                and account.role == parsed
            ):
                logger.info("Demo login accepted: %s (%s)", email, parsed.value)
                return DemoSession(
                    user_id=demo_user_id(parsed),
                    email=account.email,
                    role=parsed,
                )
        return None
