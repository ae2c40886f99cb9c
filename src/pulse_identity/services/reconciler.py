"""
═══════════════════════════════════════════════════════════════════════════════
PulseOps Identity — Session Reconciler (сессия провайдера → пользователь приложения)
═══════════════════════════════════════════════════════════════════════════════

Единственный источник ``current_user`` для остального приложения.

Точки входа:
    • ``on_initial_load()``   — один запрос текущей сессии при старте;
    • ``on_session_event()``  — уведомления провайдера (в порядке доставки);
    • ``apply_demo_session()`` / ``clear()`` — для CredentialActions.

``reconcile(identity)`` идемпотентен: повторный вызов не создаёт второй
профиль и даёт того же пользователя (с точностью до ``last_login``).
Дедупликации по id в памяти нет: гонку первой загрузки и первого
события разрешает ограничение уникальности хранилища.

Ошибка создания профиля никогда не мешает входу: пользователь
выставляется в любом случае, ошибка уходит в лог и в NATS.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pulse_identity.events import EventPublisher
from pulse_identity.exceptions import ProviderError, ProvisioningFailedError
from pulse_identity.models.enums import CredentialingStatus, UserRole
from pulse_identity.models.identity import AuthSession, Identity
from pulse_identity.models.profile import seed_from_identity
from pulse_identity.models.user import ApplicationUser
from pulse_identity.providers.base import IdentityProvider, Unsubscribe
from pulse_identity.services.demo_accounts import DemoSession
from pulse_identity.services.provisioner import ProfileProvisioner

logger = logging.getLogger(__name__)

UserListener = Callable[[ApplicationUser | None], None]

DEFAULT_ROLE = UserRole.CLINICIAN


def declared_role(identity: Identity) -> UserRole | None:
    """Роль из метаданных: ``role``, затем старое ``userType``."""
    for key in ("role", "userType"):
        role = UserRole.parse(identity.meta(key))
        if role is not None:
            return role
    return None


def resolve_role(identity: Identity) -> UserRole:
    """Роль пользователя; нет роли → clinician (вход не отклоняется)."""
    role = declared_role(identity)
    if role is not None:
        return role
    logger.warning(
        "Identity %s has no usable role in metadata, defaulting to %s",
        identity.id, DEFAULT_ROLE.value,
    )
    return DEFAULT_ROLE


def _credentialing_status(role: UserRole, profile: dict[str, Any] | None) -> CredentialingStatus | None:
    if role != UserRole.CLINICIAN or not profile:
        return None
    try:
        return CredentialingStatus(profile.get("credentialing_status") or CredentialingStatus.PENDING)
    except ValueError:
        logger.warning("Unknown credentialing status %r", profile.get("credentialing_status"))
        return None


class SessionReconciler:
    """Держит ``current_user`` в соответствии с сессией провайдера."""

    def __init__(
        self,
        provider: IdentityProvider,
        provisioner: ProfileProvisioner,
        publisher: EventPublisher | None = None,
    ):
        self.provider = provider
        self.provisioner = provisioner
        self.publisher = publisher

        self.current_user: ApplicationUser | None = None
        self.is_loading = True
        self.last_provisioning_error: ProvisioningFailedError | None = None

        self._listeners: list[UserListener] = []
        self._events: asyncio.Queue[tuple[AuthSession | None, str]] | None = None
        self._consumer: asyncio.Task | None = None
        self._unsubscribe: Unsubscribe | None = None

    # ═══════════════════════════════════════════════════════════════════════
    # Жизненный цикл
    # ═══════════════════════════════════════════════════════════════════════

    async def start(self) -> None:
        """Подписка на уведомления провайдера + первичная загрузка сессии."""
        self._events = asyncio.Queue()
        self._unsubscribe = self.provider.on_session_change(self._enqueue)
        self._consumer = asyncio.create_task(self._consume(self._events), name="session-reconciler")
        await self.on_initial_load()

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None
        logger.info("Session reconciler stopped")

    async def drain(self) -> None:
        """Дождаться обработки всех уже доставленных уведомлений."""
        if self._events is not None:
            await self._events.join()

    def _enqueue(self, session: AuthSession | None, event: str) -> None:
        if self._events is None:
            logger.warning("Session event %s received before start(), dropped", event)
            return
        self._events.put_nowait((session, event))

    async def _consume(self, events: asyncio.Queue) -> None:
        while True:
            session, event = await events.get()
            try:
                await self.on_session_event(session, event)
            except Exception:
                logger.exception("Failed to handle session event %s", event)
            finally:
                events.task_done()

    # ═══════════════════════════════════════════════════════════════════════
    # Точки входа
    # ═══════════════════════════════════════════════════════════════════════

    async def on_initial_load(self) -> None:
        """Один запрос сессии; ``is_loading`` сбрасывается в любом случае."""
        try:
            session = await self.provider.get_session()
            if session is not None:
                await self.reconcile(session.identity)
        except ProviderError as exc:
            logger.error("Initial session lookup failed: %s", exc.message)
        finally:
            self.is_loading = False

    async def on_session_event(self, session: AuthSession | None, event: str | None = None) -> None:
        logger.info("Session event: %s (session=%s)", event, "yes" if session else "no")
        if session is not None:
            await self.reconcile(session.identity)
        else:
            self._set_user(None)

    async def reconcile(self, identity: Identity) -> ApplicationUser:
        """Identity → профиль (если нужно) → ApplicationUser."""
        role = resolve_role(identity)
        seed = seed_from_identity(identity, role)

        profile = None
        try:
            result = await self.provisioner.ensure_profile(identity.id, role, seed)
            profile = result.profile
            self.last_provisioning_error = None
        except ProvisioningFailedError as exc:
            logger.error("Profile provisioning failed for %s: %s", identity.id, exc.message)
            self.last_provisioning_error = exc
            if self.publisher is not None:
                await self.publisher.emit_provisioning_failed(identity.id, role.value, exc.message)

        user = ApplicationUser(
            id=identity.id,
            email=identity.email,
            role=role,
            is_approved=True,
            credentialing_status=_credentialing_status(role, profile),
            created_at=identity.created_at,
            last_login=datetime.now(timezone.utc),
        )
        self._set_user(user)
        return user

    def apply_demo_session(self, demo: DemoSession) -> ApplicationUser:
        """Выставляет синтетического демо-пользователя (без профиля)."""
        now = datetime.now(timezone.utc)
        user = ApplicationUser(
            id=demo.user_id,
            email=demo.email,
            role=demo.role,
            is_approved=True,
            credentialing_status=(
                CredentialingStatus.APPROVED if demo.role == UserRole.CLINICIAN else None
            ),
            created_at=now,
            last_login=now,
        )
        self._set_user(user)
        return user

    def clear(self) -> None:
        """Локальная очистка; провайдер не трогается."""
        self._set_user(None)

    # ═══════════════════════════════════════════════════════════════════════
    # Наблюдатели
    # ═══════════════════════════════════════════════════════════════════════

    def add_listener(self, listener: UserListener) -> Callable[[], None]:
        """Подписка на смену ``current_user``; возвращает функцию отписки."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _set_user(self, user: ApplicationUser | None) -> None:
        self.current_user = user
        for listener in list(self._listeners):
            listener(user)
