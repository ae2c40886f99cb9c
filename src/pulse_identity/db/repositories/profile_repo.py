"""
pulse_identity/db/repositories/profile_repo.py — Репозиторий профилей (PostgreSQL).

Уникальность (user_id) обеспечивается ограничением в схеме
(``db/migrations/001_profiles.sql``); нарушение ограничения
переводится в ``DuplicateRowError``.
"""

from __future__ import annotations

import logging
import re
from typing import Any

import asyncpg

from pulse_identity.database import check_connection
from pulse_identity.exceptions import DuplicateRowError, StoreError
from pulse_identity.models.profile import (
    CLINICIAN_AVAILABILITY,
    CLINICIAN_PROFILES,
    ORGANIZATION_PROFILES,
)

logger = logging.getLogger(__name__)

ALLOWED_TABLES = frozenset({CLINICIAN_PROFILES, ORGANIZATION_PROFILES, CLINICIAN_AVAILABILITY})

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")


def _quote(name: str) -> str:
    """Имя колонки/таблицы → безопасный SQL-идентификатор."""
    if not _IDENTIFIER.match(name):
        raise StoreError(f"Invalid identifier: {name!r}")
    return f'"{name}"'


def _table(name: str) -> str:
    if name not in ALLOWED_TABLES:
        raise StoreError(f"Unknown table: {name!r}")
    return _quote(name)


class PostgresProfileStore:
    """ProfileStore поверх пула asyncpg."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Вставить строку; вернуть её в виде, сохранённом в БД."""
        columns = list(row)
        sql = "INSERT INTO {table} ({cols}) VALUES ({params}) RETURNING *".format(
            table=_table(table),
            cols=", ".join(_quote(c) for c in columns),
            params=", ".join(f"${i}" for i in range(1, len(columns) + 1)),
        )
        try:
            async with self.pool.acquire() as conn:
                record = await conn.fetchrow(sql, *(row[c] for c in columns))
        except asyncpg.UniqueViolationError as exc:
            raise DuplicateRowError(table, {"user_id": row.get("user_id")}) from exc
        except (asyncpg.PostgresError, OSError, TimeoutError) as exc:
            raise StoreError(f"Insert into {table} failed: {exc}") from exc
        return dict(record) if record else dict(row)

    async def select_one(self, table: str, **filters: Any) -> dict[str, Any] | None:
        """Найти одну строку по равенству колонок."""
        if not filters:
            raise StoreError("select_one requires at least one filter")
        names = list(filters)
        where = " AND ".join(f"{_quote(n)} = ${i}" for i, n in enumerate(names, start=1))
        sql = f"SELECT * FROM {_table(table)} WHERE {where} LIMIT 1"
        try:
            async with self.pool.acquire() as conn:
                record = await conn.fetchrow(sql, *(filters[n] for n in names))
        except (asyncpg.PostgresError, OSError, TimeoutError) as exc:
            raise StoreError(f"Select from {table} failed: {exc}") from exc
        return dict(record) if record else None

    async def ping(self) -> bool:
        return await check_connection(self.pool)

    async def close(self) -> None:
        await self.pool.close()
        logger.info("Profile DB pool closed")
