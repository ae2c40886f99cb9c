"""
pulse_identity/api/health.py — Health check.

GET /api/v1/health — хранилище профилей и настройка провайдера.
"""

from fastapi import APIRouter, Depends

from pulse_identity.dependencies import AuthRuntime, get_runtime

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check")
async def health(runtime: AuthRuntime = Depends(get_runtime)):
    store_ok = await runtime.store.ping()
    return {
        "status": "healthy" if store_ok else "degraded",
        "profile_store": "connected" if store_ok else "disconnected",
        "provider": "configured" if runtime.settings.provider_configured else "disabled",
        "service": "pulse-identity",
    }
