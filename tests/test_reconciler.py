"""Tests for SessionReconciler: initial load, provider events, idempotency."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

from conftest import CREATED_AT, FailingStore, FakeIdentityProvider, make_identity, make_session
from pulse_identity.models.enums import CredentialingStatus, UserRole
from pulse_identity.models.profile import CLINICIAN_PROFILES, ORGANIZATION_PROFILES
from pulse_identity.services.demo_accounts import DemoSession
from pulse_identity.services.provisioner import ProfileProvisioner
from pulse_identity.services.reconciler import SessionReconciler, declared_role, resolve_role


def _reconciler(provider, store, publisher=None):
    return SessionReconciler(provider, ProfileProvisioner(store), publisher)


# ---------------------------------------------------------------------------
# Role resolution
# ---------------------------------------------------------------------------


class TestResolveRole:
    def test_canonical_role(self):
        assert resolve_role(make_identity(role="organization")) == UserRole.ORGANIZATION

    def test_legacy_user_type(self):
        assert resolve_role(make_identity(userType="hco")) == UserRole.ORGANIZATION
        assert resolve_role(make_identity(userType="nurse")) == UserRole.CLINICIAN

    def test_missing_role_defaults_to_clinician(self):
        assert resolve_role(make_identity()) == UserRole.CLINICIAN

    def test_unknown_role_defaults_to_clinician(self):
        assert resolve_role(make_identity(role="pilot")) == UserRole.CLINICIAN

    def test_declared_role_has_no_default(self):
        assert declared_role(make_identity()) is None
        assert declared_role(make_identity(role="pilot", userType="hco")) == UserRole.ORGANIZATION


# ---------------------------------------------------------------------------
# reconcile()
# ---------------------------------------------------------------------------


class TestReconcile:
    async def test_first_reconcile_creates_profile_and_user(self, provider, store):
        reconciler = _reconciler(provider, store)
        identity = make_identity("u1", "nurse@example.com", role="clinician", first_name="Ada")

        user = await reconciler.reconcile(identity)

        assert reconciler.current_user == user
        assert user.id == "u1"
        assert user.role == UserRole.CLINICIAN
        assert user.is_approved is True
        assert user.credentialing_status == CredentialingStatus.PENDING
        assert user.created_at == CREATED_AT
        rows = store.rows(CLINICIAN_PROFILES, user_id="u1")
        assert len(rows) == 1
        assert rows[0]["first_name"] == "Ada"

    async def test_second_reconcile_is_idempotent(self, provider, store):
        reconciler = _reconciler(provider, store)
        identity = make_identity("u1", role="clinician")

        first = await reconciler.reconcile(identity)
        second = await reconciler.reconcile(identity)

        assert first.comparable() == second.comparable()
        assert len(store.rows(CLINICIAN_PROFILES, user_id="u1")) == 1

    async def test_concurrent_reconciles_create_one_row(self, provider, store):
        reconciler = _reconciler(provider, store)
        identity = make_identity("u1", role="clinician")

        first, second = await asyncio.gather(
            reconciler.reconcile(identity), reconciler.reconcile(identity)
        )

        assert first.comparable() == second.comparable()
        assert len(store.rows(CLINICIAN_PROFILES, user_id="u1")) == 1

    async def test_organization_has_no_credentialing_status(self, provider, store):
        reconciler = _reconciler(provider, store)
        user = await reconciler.reconcile(make_identity("o1", role="organization"))

        assert user.role == UserRole.ORGANIZATION
        assert user.credentialing_status is None
        assert len(store.rows(ORGANIZATION_PROFILES, user_id="o1")) == 1

    async def test_admin_creates_no_profile(self, provider, store):
        reconciler = _reconciler(provider, store)
        user = await reconciler.reconcile(make_identity("a1", role="admin"))

        assert user.role == UserRole.ADMIN
        assert store.total_rows == 0

    async def test_provisioning_failure_still_sets_user(self, provider):
        publisher = AsyncMock()
        reconciler = _reconciler(provider, FailingStore({CLINICIAN_PROFILES}), publisher)

        user = await reconciler.reconcile(make_identity("u1", role="clinician"))

        assert reconciler.current_user == user
        assert user.credentialing_status is None
        assert reconciler.last_provisioning_error is not None
        publisher.emit_provisioning_failed.assert_awaited_once()
        assert publisher.emit_provisioning_failed.await_args.args[:2] == ("u1", "clinician")


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


class TestInitialLoad:
    async def test_without_session(self, provider, store):
        reconciler = _reconciler(provider, store)
        assert reconciler.is_loading is True

        await reconciler.on_initial_load()

        assert reconciler.is_loading is False
        assert reconciler.current_user is None

    async def test_with_session(self, store):
        provider = FakeIdentityProvider(make_session(make_identity("u1", role="clinician")))
        reconciler = _reconciler(provider, store)

        await reconciler.on_initial_load()

        assert reconciler.is_loading is False
        assert reconciler.current_user.id == "u1"

    async def test_provider_failure_clears_loading(self, provider, store):
        provider.get_session_error = "network down"
        reconciler = _reconciler(provider, store)

        await reconciler.on_initial_load()

        assert reconciler.is_loading is False
        assert reconciler.current_user is None


class TestSessionEvents:
    async def test_null_event_clears_user(self, provider, store):
        reconciler = _reconciler(provider, store)
        await reconciler.reconcile(make_identity("u1"))

        await reconciler.on_session_event(None, "SIGNED_OUT")

        assert reconciler.current_user is None

    async def test_events_processed_in_order_after_start(self, store):
        identity = make_identity("u1", role="clinician")
        provider = FakeIdentityProvider(make_session(identity))
        reconciler = _reconciler(provider, store)
        seen = []
        reconciler.add_listener(lambda user: seen.append(user.id if user else None))

        await reconciler.start()
        provider.emit(make_session(identity), "INITIAL_SESSION")
        provider.emit(None, "SIGNED_OUT")
        provider.emit(make_session(make_identity("u2", role="organization")), "SIGNED_IN")
        await reconciler.drain()
        await reconciler.close()

        assert seen == ["u1", "u1", None, "u2"]
        assert reconciler.current_user.id == "u2"
        assert len(store.rows(CLINICIAN_PROFILES, user_id="u1")) == 1
        assert provider.listeners == []

    async def test_initial_load_racing_first_event(self, store):
        identity = make_identity("u1", role="clinician")
        provider = FakeIdentityProvider(make_session(identity))
        reconciler = _reconciler(provider, store)

        await asyncio.gather(
            reconciler.on_initial_load(),
            reconciler.on_session_event(make_session(identity), "SIGNED_IN"),
        )

        assert len(store.rows(CLINICIAN_PROFILES, user_id="u1")) == 1
        assert reconciler.current_user.id == "u1"


class TestDemoAndClear:
    def test_apply_demo_session(self, provider, store):
        reconciler = _reconciler(provider, store)
        user = reconciler.apply_demo_session(
            DemoSession(user_id="demo-clinician-1", email="demo@nurse.com", role=UserRole.CLINICIAN)
        )

        assert user.is_demo is True
        assert user.credentialing_status == CredentialingStatus.APPROVED
        assert reconciler.current_user == user
        assert store.total_rows == 0

    def test_listener_can_be_removed(self, provider, store):
        reconciler = _reconciler(provider, store)
        seen = []
        remove = reconciler.add_listener(seen.append)
        reconciler.clear()
        remove()
        reconciler.clear()

        assert seen == [None]
