"""
pulse_identity/db/store.py — Порт хранилища профилей.

Контракт адаптеров:
    • ``insert`` бросает ``DuplicateRowError`` при нарушении UNIQUE,
      ``StoreError`` при любой другой ошибке бэкенда;
    • ``select_one`` — аналог ``select(table).eq(...).single()``:
      строка или None, если строки нет.
"""

from __future__ import annotations

from typing import Any, Protocol


class ProfileStore(Protocol):
    """Хранилище строк профиля."""

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]: ...

    async def select_one(self, table: str, **filters: Any) -> dict[str, Any] | None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...
