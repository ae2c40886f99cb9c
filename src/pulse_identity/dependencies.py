"""
═══════════════════════════════════════════════════════════════════════════════
PulseOps Identity — Зависимости FastAPI (Dependency Injection)
═══════════════════════════════════════════════════════════════════════════════

``AuthRuntime`` — все компоненты ядра, собранные один раз в lifespan
(или переданные в ``create_app`` в тестах). Роутеры получают их через
``Depends(get_runtime)``, глобальных синглтонов нет.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from pulse_identity.config import PulseSettings
from pulse_identity.db.store import ProfileStore
from pulse_identity.events import EventPublisher
from pulse_identity.providers.base import IdentityProvider
from pulse_identity.services.auth_service import CredentialActions
from pulse_identity.services.callback import OAuthCallbackHandler
from pulse_identity.services.demo_accounts import DemoCredentialResolver
from pulse_identity.services.provisioner import ProfileProvisioner
from pulse_identity.services.reconciler import SessionReconciler


@dataclass
class AuthRuntime:
    settings: PulseSettings
    provider: IdentityProvider
    store: ProfileStore
    publisher: EventPublisher
    provisioner: ProfileProvisioner
    reconciler: SessionReconciler
    callback: OAuthCallbackHandler
    actions: CredentialActions

    @classmethod
    def build(
        cls,
        settings: PulseSettings,
        provider: IdentityProvider,
        store: ProfileStore,
        publisher: EventPublisher | None = None,
    ) -> "AuthRuntime":
        """Собирает граф сервисов вокруг одного клиента провайдера."""
        publisher = publisher or EventPublisher(None)
        provisioner = ProfileProvisioner(store, publisher)
        reconciler = SessionReconciler(provider, provisioner, publisher)
        return cls(
            settings=settings,
            provider=provider,
            store=store,
            publisher=publisher,
            provisioner=provisioner,
            reconciler=reconciler,
            callback=OAuthCallbackHandler(provider, provisioner),
            actions=CredentialActions(
                provider,
                reconciler,
                settings,
                DemoCredentialResolver(enabled=settings.demo_accounts_enabled),
            ),
        )

    async def start(self) -> None:
        await self.publisher.connect()
        await self.reconciler.start()

    async def close(self) -> None:
        await self.reconciler.close()
        await self.publisher.disconnect()
        await self.store.close()


def get_runtime(request: Request) -> AuthRuntime:
    """Runtime текущего приложения; 503, если lifespan ещё не отработал."""
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Identity runtime is not initialized",
        )
    return runtime
