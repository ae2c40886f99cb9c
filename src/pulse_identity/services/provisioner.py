"""
pulse_identity/services/provisioner.py — Создание профиля по умолчанию.

Гарантия: не более одной строки профиля на пару (identity, role),
сколько бы раз ни вызывался ``ensure_profile`` и в каком бы порядке
ни шли конкурентные вызовы.

Алгоритм
────────
    1. ``admin`` → ничего не делаем.
    2. Ищем существующую строку по ``user_id``.
    3. Нет строки → вставка. Гонку двух вставок разрешает ограничение
       UNIQUE(user_id) в хранилище: проигравший получает
       ``DuplicateRowError``, перечитывает строку и возвращает
       ``created=False``.
    4. Для клинициста — пустое расписание (best-effort, ошибка только в лог).

Существующие строки никогда не перезаписываются и не удаляются.
"""

from __future__ import annotations

import logging

from pulse_identity.db.store import ProfileStore
from pulse_identity.events import EventPublisher
from pulse_identity.exceptions import DuplicateRowError, ProvisioningFailedError, StoreError
from pulse_identity.models.enums import UserRole
from pulse_identity.models.profile import (
    CLINICIAN_AVAILABILITY,
    PROFILE_TABLES,
    ClinicianSeed,
    OrganizationSeed,
    ProfileSeed,
    ProvisionResult,
    availability_row,
)

logger = logging.getLogger(__name__)

_SEED_TYPES = {
    UserRole.CLINICIAN: ClinicianSeed,
    UserRole.ORGANIZATION: OrganizationSeed,
}


class ProfileProvisioner:
    """Идемпотентное создание профиля для пары (identity, role)."""

    def __init__(self, store: ProfileStore, publisher: EventPublisher | None = None):
        self.store = store
        self.publisher = publisher

    async def ensure_profile(
        self,
        identity_id: str,
        role: UserRole,
        seed: ProfileSeed | None = None,
    ) -> ProvisionResult:
        """
        Создаёт профиль, если его ещё нет.

        Raises:
            ProvisioningFailedError: хранилище недоступно или отклонило
                вставку по причине, отличной от дубликата.
        """
        table = PROFILE_TABLES.get(role)
        if table is None:
            return ProvisionResult(created=False)

        seed_type = _SEED_TYPES[role]
        if seed is None:
            seed = seed_type()
        elif not isinstance(seed, seed_type):
            raise ProvisioningFailedError(
                f"Seed {type(seed).__name__} does not match role {role.value}",
                details={"user_id": identity_id, "role": role.value},
            )

        details = {"user_id": identity_id, "role": role.value, "table": table}

        try:
            existing = await self.store.select_one(table, user_id=identity_id)
        except StoreError as exc:
            raise ProvisioningFailedError(f"Profile lookup failed: {exc}", details) from exc
        if existing is not None:
            return ProvisionResult(created=False, profile=existing)

        try:
            profile = await self.store.insert(table, seed.to_row(identity_id))
        except DuplicateRowError:
            logger.info("Profile for %s already created concurrently (%s)", identity_id, table)
            try:
                existing = await self.store.select_one(table, user_id=identity_id)
            except StoreError as exc:
                raise ProvisioningFailedError(f"Profile lookup failed: {exc}", details) from exc
            return ProvisionResult(created=False, profile=existing)
        except StoreError as exc:
            raise ProvisioningFailedError(f"Profile insert failed: {exc}", details) from exc

        logger.info("Created %s profile for %s", role.value, identity_id)

        if role == UserRole.CLINICIAN:
            await self._create_availability(identity_id)

        if self.publisher is not None:
            await self.publisher.emit_profile_created(identity_id, role.value)

        return ProvisionResult(created=True, profile=profile)

    async def _create_availability(self, identity_id: str) -> None:
        try:
            await self.store.insert(CLINICIAN_AVAILABILITY, availability_row(identity_id))
        except DuplicateRowError:
            logger.debug("Availability for %s already exists", identity_id)
        except StoreError as exc:
            logger.warning("Availability for %s not created: %s", identity_id, exc)
