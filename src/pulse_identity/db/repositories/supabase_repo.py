"""
pulse_identity/db/repositories/supabase_repo.py — Репозиторий профилей (Supabase PostgREST).

Использует тот же ``AsyncClient``, что и identity-провайдер. Код
PostgreSQL 23505 (unique_violation) → ``DuplicateRowError``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from pulse_identity.exceptions import DuplicateRowError, StoreError
from pulse_identity.models.profile import CLINICIAN_PROFILES

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


class SupabaseProfileStore:
    """ProfileStore поверх PostgREST-таблиц Supabase."""

    def __init__(self, client: AsyncClient):
        self.client = client

    async def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self.client.table(table).insert(row).execute()
        except APIError as exc:
            if exc.code == UNIQUE_VIOLATION:
                raise DuplicateRowError(table, {"user_id": row.get("user_id")}) from exc
            raise StoreError(f"Insert into {table} failed: {exc.message}") from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"Insert into {table} failed: {exc}") from exc
        data = response.data or []
        return data[0] if data else dict(row)

    async def select_one(self, table: str, **filters: Any) -> dict[str, Any] | None:
        query = self.client.table(table).select("*")
        for column, value in filters.items():
            query = query.eq(column, value)
        try:
            response = await query.limit(1).execute()
        except APIError as exc:
            raise StoreError(f"Select from {table} failed: {exc.message}") from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"Select from {table} failed: {exc}") from exc
        data = response.data or []
        return data[0] if data else None

    async def ping(self) -> bool:
        try:
            await self.client.table(CLINICIAN_PROFILES).select("user_id").limit(1).execute()
            return True
        except (APIError, httpx.HTTPError) as exc:
            logger.error("Supabase profile store health check failed: %s", exc)
            return False

    async def close(self) -> None:
        """Клиент Supabase общий с провайдером; закрывать нечего."""
