"""Shared fixtures: in-memory identity provider, profile store and runtime."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from pulse_identity.config import PulseSettings
from pulse_identity.dependencies import AuthRuntime
from pulse_identity.exceptions import ProviderError, StoreError
from pulse_identity.memory_store import MemoryProfileStore
from pulse_identity.models.identity import AuthSession, Identity, SignUpResult, TokenPair
from pulse_identity.services.provisioner import ProfileProvisioner

CREATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_identity(user_id: str = "u1", email: str = "nurse@example.com", **metadata: Any) -> Identity:
    return Identity(id=user_id, email=email, metadata=metadata, created_at=CREATED_AT)


def make_session(identity: Identity) -> AuthSession:
    return AuthSession(access_token="at-" + identity.id, refresh_token="rt-" + identity.id, identity=identity)


class FakeIdentityProvider:
    """Records every call; behaviour is configured through attributes."""

    def __init__(self, session: AuthSession | None = None):
        self.session = session
        self.calls: list[tuple[str, tuple]] = []
        self.listeners: list = []

        self.sign_in_error: str | None = None
        self.oauth_error: str | None = None
        self.oauth_url: str | None = "https://accounts.example.com/o/oauth2/auth"
        self.sign_up_error: str | None = None
        self.sign_up_returns_session = False
        self.set_session_error: str | None = None
        self.get_session_error: str | None = None
        self.update_error: str | None = None
        self.sign_out_error: str | None = None
        self.identity_for_tokens = make_identity("u-oauth", "oauth@example.com")

    def calls_to(self, name: str) -> list[tuple]:
        return [args for call, args in self.calls if call == name]

    def emit(self, session: AuthSession | None, event: str = "SIGNED_IN") -> None:
        for listener in list(self.listeners):
            listener(session, event)

    async def get_session(self) -> AuthSession | None:
        self.calls.append(("get_session", ()))
        if self.get_session_error:
            raise ProviderError(self.get_session_error)
        return self.session

    def on_session_change(self, callback):
        self.listeners.append(callback)
        return lambda: self.listeners.remove(callback)

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        self.calls.append(("sign_in_with_password", (email, password)))
        if self.sign_in_error:
            raise ProviderError(self.sign_in_error, status=400)
        self.session = make_session(make_identity("u-" + email, email, role="clinician"))
        return self.session

    async def sign_in_with_oauth(self, provider: str, redirect_url: str, extra_params: dict) -> str | None:
        self.calls.append(("sign_in_with_oauth", (provider, redirect_url, extra_params)))
        if self.oauth_error:
            raise ProviderError(self.oauth_error, status=400)
        return self.oauth_url

    async def sign_up(self, email: str, password: str, metadata: dict) -> SignUpResult:
        self.calls.append(("sign_up", (email, password, metadata)))
        if self.sign_up_error:
            raise ProviderError(self.sign_up_error, status=400)
        identity = make_identity("u-" + email, email, **metadata)
        session = make_session(identity) if self.sign_up_returns_session else None
        return SignUpResult(identity=identity, session=session)

    async def set_session(self, tokens: TokenPair) -> AuthSession:
        self.calls.append(("set_session", (tokens.access_token, tokens.refresh_token)))
        if self.set_session_error:
            raise ProviderError(self.set_session_error, status=401)
        self.session = make_session(self.identity_for_tokens)
        return self.session

    async def update_user_metadata(self, data: dict) -> Identity:
        self.calls.append(("update_user_metadata", (data,)))
        if self.update_error:
            raise ProviderError(self.update_error)
        assert self.session is not None
        identity = self.session.identity
        updated = identity.model_copy(update={"metadata": {**identity.metadata, **data}})
        self.session = self.session.model_copy(update={"identity": updated})
        return updated

    async def sign_out(self) -> None:
        self.calls.append(("sign_out", ()))
        if self.sign_out_error:
            raise ProviderError(self.sign_out_error)
        self.session = None


class FailingStore(MemoryProfileStore):
    """Memory store whose inserts into chosen tables fail."""

    def __init__(self, failing_tables: set[str], fail_select: bool = False):
        super().__init__()
        self.failing_tables = failing_tables
        self.fail_select = fail_select

    async def insert(self, table, row):
        if table in self.failing_tables:
            raise StoreError(f"{table} unavailable")
        return await super().insert(table, row)

    async def select_one(self, table, **filters):
        if self.fail_select:
            raise StoreError("store unavailable")
        return await super().select_one(table, **filters)


@pytest.fixture
def settings() -> PulseSettings:
    return PulseSettings(
        _env_file=None,
        supabase_url="https://project.supabase.co",
        supabase_anon_key="anon-key",
        profile_store="memory",
        public_base_url="http://localhost:5173/",
        demo_accounts_enabled=True,
    )


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def store() -> MemoryProfileStore:
    return MemoryProfileStore()


@pytest.fixture
def provisioner(store) -> ProfileProvisioner:
    return ProfileProvisioner(store)


@pytest.fixture
def runtime(settings, provider, store) -> AuthRuntime:
    return AuthRuntime.build(settings, provider, store)
