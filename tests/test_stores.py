"""Profile store adapters and the NATS publisher without live backends."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from postgrest.exceptions import APIError

from pulse_identity.db.repositories.profile_repo import PostgresProfileStore
from pulse_identity.db.repositories.supabase_repo import SupabaseProfileStore
from pulse_identity.events import EventPublisher
from pulse_identity.exceptions import DuplicateRowError, StoreError
from pulse_identity.memory_store import MemoryProfileStore
from pulse_identity.models.profile import CLINICIAN_PROFILES


# ---------------------------------------------------------------------------
# MemoryProfileStore
# ---------------------------------------------------------------------------


class TestMemoryStore:
    async def test_insert_and_select(self):
        store = MemoryProfileStore()
        stored = await store.insert(CLINICIAN_PROFILES, {"user_id": "u1", "first_name": "Ada"})

        assert stored["id"]
        assert stored["created_at"] == stored["updated_at"]
        found = await store.select_one(CLINICIAN_PROFILES, user_id="u1")
        assert found["first_name"] == "Ada"
        assert await store.select_one(CLINICIAN_PROFILES, user_id="u2") is None

    async def test_duplicate_user_id_rejected(self):
        store = MemoryProfileStore()
        await store.insert(CLINICIAN_PROFILES, {"user_id": "u1"})

        with pytest.raises(DuplicateRowError) as exc_info:
            await store.insert(CLINICIAN_PROFILES, {"user_id": "u1"})
        assert exc_info.value.table == CLINICIAN_PROFILES
        assert store.total_rows == 1

    async def test_same_user_in_different_tables(self):
        store = MemoryProfileStore()
        await store.insert("clinician_profiles", {"user_id": "u1"})
        await store.insert("clinician_availability", {"user_id": "u1"})
        assert store.total_rows == 2


# ---------------------------------------------------------------------------
# PostgresProfileStore (SQL building only)
# ---------------------------------------------------------------------------


class TestPostgresStore:
    async def test_unknown_table_rejected(self):
        store = PostgresProfileStore(MagicMock())
        with pytest.raises(StoreError, match="Unknown table"):
            await store.insert("users", {"user_id": "u1"})

    async def test_bad_column_rejected(self):
        store = PostgresProfileStore(MagicMock())
        with pytest.raises(StoreError, match="Invalid identifier"):
            await store.select_one(CLINICIAN_PROFILES, **{"user_id; drop": "u1"})

    async def test_select_requires_filter(self):
        store = PostgresProfileStore(MagicMock())
        with pytest.raises(StoreError):
            await store.select_one(CLINICIAN_PROFILES)


# ---------------------------------------------------------------------------
# SupabaseProfileStore (mocked PostgREST builder)
# ---------------------------------------------------------------------------


def _client_with_execute(execute: AsyncMock) -> MagicMock:
    client = MagicMock()
    builder = client.table.return_value
    builder.insert.return_value.execute = execute
    builder.select.return_value.eq.return_value.limit.return_value.execute = execute
    return client


class TestSupabaseStore:
    async def test_unique_violation_becomes_duplicate(self):
        execute = AsyncMock(side_effect=APIError({"message": "duplicate key", "code": "23505"}))
        store = SupabaseProfileStore(_client_with_execute(execute))

        with pytest.raises(DuplicateRowError):
            await store.insert(CLINICIAN_PROFILES, {"user_id": "u1"})

    async def test_other_api_error_becomes_store_error(self):
        execute = AsyncMock(side_effect=APIError({"message": "permission denied", "code": "42501"}))
        store = SupabaseProfileStore(_client_with_execute(execute))

        with pytest.raises(StoreError) as exc_info:
            await store.insert(CLINICIAN_PROFILES, {"user_id": "u1"})
        assert not isinstance(exc_info.value, DuplicateRowError)

    async def test_select_returns_first_row(self):
        execute = AsyncMock(return_value=MagicMock(data=[{"user_id": "u1"}]))
        store = SupabaseProfileStore(_client_with_execute(execute))

        assert await store.select_one(CLINICIAN_PROFILES, user_id="u1") == {"user_id": "u1"}

    async def test_select_empty(self):
        execute = AsyncMock(return_value=MagicMock(data=[]))
        store = SupabaseProfileStore(_client_with_execute(execute))

        assert await store.select_one(CLINICIAN_PROFILES, user_id="u1") is None


# ---------------------------------------------------------------------------
# EventPublisher
# ---------------------------------------------------------------------------


class TestEventPublisher:
    async def test_disabled_publisher_skips(self):
        publisher = EventPublisher(None)
        assert publisher.enabled is False
        assert await publisher.connect() is None
        await publisher.emit_profile_created("u1", "clinician")

    async def test_publishes_json(self):
        publisher = EventPublisher("nats://localhost:4222")
        nc = MagicMock(is_connected=True)
        nc.publish = AsyncMock()
        publisher._nc = nc

        await publisher.emit_provisioning_failed("u1", "clinician", "store down")

        subject, payload = nc.publish.await_args.args
        assert subject == "pulse.profile.provisioning_failed"
        assert b'"reason": "store down"' in payload
