"""
═══════════════════════════════════════════════════════════════════════════════
PulseOps Identity — Главная точка входа (Application Entry Point)
═══════════════════════════════════════════════════════════════════════════════

Фабрика приложения локального хоста сессии.

Lifespan собирает граф компонентов один раз:
    settings → identity-провайдер (Supabase или заглушка)
             → хранилище профилей (supabase | postgres | memory)
             → NATS publisher → AuthRuntime

``create_app(runtime)`` принимает готовый runtime — так его собирают тесты.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import asyncpg
import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pulse_identity import __version__
from pulse_identity.config import PulseSettings, get_settings
from pulse_identity.database import apply_migrations, create_pool
from pulse_identity.db.store import ProfileStore
from pulse_identity.dependencies import AuthRuntime
from pulse_identity.events import EventPublisher
from pulse_identity.exceptions import PulseIdentityError
from pulse_identity.memory_store import MemoryProfileStore
from pulse_identity.providers.base import DisabledIdentityProvider, IdentityProvider

from pulse_identity.api.auth import router as auth_router
from pulse_identity.api.callback import router as callback_router
from pulse_identity.api.health import router as health_router

# ═══════════════════════════════════════════════════════════════════════════════
# Настройка логирования
# ═══════════════════════════════════════════════════════════════════════════════
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

STATUS_MAP = {
    "INVALID_CREDENTIALS": 401,
    "EMAIL_NOT_CONFIRMED": 403,
    "ACCOUNT_ALREADY_EXISTS": 409,
    "VALIDATION_ERROR": 422,
    "OAUTH_NOT_CONFIGURED": 502,
    "OAUTH_REDIRECT_MISMATCH": 502,
    "SESSION_EXCHANGE_FAILED": 502,
    "UNCLASSIFIED": 502,
}


# ═══════════════════════════════════════════════════════════════════════════════
# Сборка компонентов
# ═══════════════════════════════════════════════════════════════════════════════

async def _build_provider(settings: PulseSettings) -> IdentityProvider:
    if not settings.provider_configured:
        logger.warning("Supabase is not configured, only demo accounts will work")
        return DisabledIdentityProvider()
    from pulse_identity.providers.supabase_provider import SupabaseIdentityProvider

    return await SupabaseIdentityProvider.connect(settings)


async def _build_store(settings: PulseSettings, provider: IdentityProvider) -> ProfileStore:
    """Хранилище профилей; при недоступности PostgreSQL — memory store."""
    if settings.profile_store == "postgres":
        try:
            pool = await create_pool(settings)
        except (asyncpg.PostgresError, OSError, TimeoutError) as e:
            logger.warning("Profile DB not available, activating memory store: %s", e)
            return MemoryProfileStore()
        try:
            await apply_migrations(pool)
        except (asyncpg.PostgresError, OSError) as e:
            logger.warning("Profile DB migration apply failed (non-fatal): %s", e)
        from pulse_identity.db.repositories.profile_repo import PostgresProfileStore

        return PostgresProfileStore(pool)

    if settings.profile_store == "supabase":
        from pulse_identity.providers.supabase_provider import SupabaseIdentityProvider

        if isinstance(provider, SupabaseIdentityProvider):
            from pulse_identity.db.repositories.supabase_repo import SupabaseProfileStore

            return SupabaseProfileStore(provider.client)
        logger.warning("PROFILE_STORE=supabase without Supabase configuration, using memory store")

    return MemoryProfileStore()


async def build_runtime(settings: PulseSettings) -> AuthRuntime:
    provider = await _build_provider(settings)
    store = await _build_store(settings, provider)
    publisher = EventPublisher(settings.nats_url if settings.nats_enabled else None)
    return AuthRuntime.build(settings, provider, store, publisher)


# ═══════════════════════════════════════════════════════════════════════════════
# Фабрика приложения
# ═══════════════════════════════════════════════════════════════════════════════

def create_app(runtime: AuthRuntime | None = None) -> FastAPI:
    """Создаёт и конфигурирует FastAPI-приложение."""
    settings = runtime.settings if runtime is not None else get_settings()
    _is_production = settings.app_env == "production"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup: сборка runtime (если не передан), подписка на провайдера,
        первичная загрузка сессии.
        Shutdown: отписка, NATS, хранилище.
        """
        logger.info("PulseOps Identity v%s starting...", __version__)
        logger.info("   Profile store: %s", settings.profile_store)
        rt = runtime if runtime is not None else await build_runtime(settings)
        app.state.runtime = rt
        await rt.start()

        yield

        await rt.close()
        logger.info("PulseOps Identity stopped")

    app = FastAPI(
        redirect_slashes=False,
        title="PulseOps Identity",
        description=(
            "Identity session core for the PulseOps marketplace: session "
            "reconciliation, OAuth callback handling and default profile provisioning."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url=None if _is_production else "/docs",
        redoc_url=None if _is_production else "/redoc",
        openapi_url=None if _is_production else "/api/v1/openapi.json",
    )
    if runtime is not None:
        app.state.runtime = runtime

    # ── CORS middleware ──────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
    )

    # ── Подключение API-роутеров ─────────────────────────────────────────
    v1_router = APIRouter(prefix="/api/v1")
    v1_router.include_router(auth_router)
    v1_router.include_router(health_router)
    app.include_router(v1_router)

    # Редирект OAuth: путь, зарегистрированный у провайдера
    app.include_router(callback_router, prefix=settings.auth_callback_path)

    # ── Глобальный обработчик PulseIdentityError ─────────────────────────
    @app.exception_handler(PulseIdentityError)
    async def identity_error_handler(request: Request, exc: PulseIdentityError) -> JSONResponse:
        """Маппинг кодов ошибок на HTTP-статусы."""
        status_code = STATUS_MAP.get(exc.code, 500)
        return JSONResponse(
            status_code=status_code,
            content={
                "error": {
                    "code": exc.code,
                    "message": exc.message,
                    "details": exc.details,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                }
            },
        )

    # ── Корневой эндпоинт ────────────────────────────────────────────────
    @app.get("/")
    async def root():
        return {
            "name": "PulseOps Identity",
            "version": __version__,
            "docs": "/docs",
            "callback": settings.auth_callback_path,
            "api": {
                "v1": {
                    "health": "/api/v1/health",
                    "session": "/api/v1/session",
                    "login": "/api/v1/login",
                    "signup": "/api/v1/signup",
                    "logout": "/api/v1/logout",
                },
            },
        }

    return app


# ═══════════════════════════════════════════════════════════════════════════════
# Module-level singleton
# ═══════════════════════════════════════════════════════════════════════════════
app = create_app()


def main() -> None:
    """Запускает хост сессии через Uvicorn."""
    settings = get_settings()
    logger.info("Starting PulseOps Identity on %s:%s", settings.api_host, settings.api_port)
    uvicorn.run(
        "pulse_identity.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
