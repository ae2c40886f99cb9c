"""
═══════════════════════════════════════════════════════════════════════════════
PulseOps Identity — In-Memory хранилище профилей (замена БД для локальной разработки)
═══════════════════════════════════════════════════════════════════════════════

In-memory реализация ProfileStore. Соблюдает тот же контракт
уникальности, что и PostgreSQL: одна строка на ``user_id`` в каждой
таблице, повторная вставка → ``DuplicateRowError``.

Используется:
    • при ``PROFILE_STORE=memory``;
    • как fallback в lifespan при недоступности PostgreSQL;
    • в тестах.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pulse_identity.exceptions import DuplicateRowError

logger = logging.getLogger(__name__)

_now = lambda: datetime.now(timezone.utc)  # noqa: E731

UNIQUE_KEY = "user_id"


class MemoryProfileStore:
    """Хранилище строк профиля в памяти процесса (теряется при рестарте)."""

    def __init__(self) -> None:
        self._tables: dict[str, list[dict[str, Any]]] = {}

    # ═══════════════════════════════════════════════════════════════════════
    # ProfileStore
    # ═══════════════════════════════════════════════════════════════════════

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Вставляет строку; нарушение уникальности user_id → DuplicateRowError."""
        rows = self._tables.setdefault(table, [])
        key = row.get(UNIQUE_KEY)
        if key is not None and any(r.get(UNIQUE_KEY) == key for r in rows):
            raise DuplicateRowError(table, {UNIQUE_KEY: key})
        now = _now()
        stored = {"id": str(uuid4()), **row, "created_at": now, "updated_at": now}
        rows.append(stored)
        logger.info("Memory store: inserted row into %s (user_id=%s)", table, key)
        return dict(stored)

    async def select_one(self, table: str, **filters: Any) -> dict[str, Any] | None:
        # уступаем цикл, как сетевой запрос: даёт конкурентным вызовам перемешаться
        await asyncio.sleep(0)
        for row in self._tables.get(table, []):
            if all(row.get(k) == v for k, v in filters.items()):
                return dict(row)
        return None

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    # ═══════════════════════════════════════════════════════════════════════
    # Инспекция (локальная разработка, тесты)
    # ═══════════════════════════════════════════════════════════════════════

    def rows(self, table: str, **filters: Any) -> list[dict[str, Any]]:
        """Все строки таблицы, удовлетворяющие фильтрам."""
        return [
            dict(r) for r in self._tables.get(table, [])
            if all(r.get(k) == v for k, v in filters.items())
        ]

    @property
    def total_rows(self) -> int:
        return sum(len(rows) for rows in self._tables.values())
