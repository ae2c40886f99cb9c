"""
pulse_identity/api/callback.py — Маршрут OAuth-редиректа.

    GET  <AUTH_CALLBACK_PATH>          — параметры в query-строке
    POST <AUTH_CALLBACK_PATH> {"url"}  — полный URL с fragment (его браузер
                                         на сервер не отправляет)

Подтверждённый GET-редирект → 302 на корень приложения; иначе JSON
с ``CallbackOutcome``.
"""

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from pulse_identity.dependencies import AuthRuntime, get_runtime
from pulse_identity.models.enums import CallbackStatus
from pulse_identity.models.user import CallbackOutcome

router = APIRouter(tags=["callback"])


@router.get("", summary="OAuth-редирект (query)")
async def auth_callback(request: Request, runtime: AuthRuntime = Depends(get_runtime)):
    outcome = await runtime.callback.handle(str(request.url))
    if outcome.status == CallbackStatus.CONFIRMED and outcome.redirect_to:
        return RedirectResponse(outcome.redirect_to, status_code=302)
    return JSONResponse(status_code=400, content=outcome.model_dump(mode="json"))


@router.post("", response_model=CallbackOutcome, summary="OAuth-редирект (полный URL)")
async def auth_callback_url(
    url: str = Body(..., embed=True),
    runtime: AuthRuntime = Depends(get_runtime),
):
    return await runtime.callback.handle(url)
