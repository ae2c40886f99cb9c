"""
pulse_identity/api/auth.py — Эндпоинты сессии и учётных данных.

Тонкий HTTP-слой над CredentialActions и SessionReconciler.
"""

from fastapi import APIRouter, Body, Depends, status
from pydantic import Field

from pulse_identity.dependencies import AuthRuntime, get_runtime
from pulse_identity.models.common import PulseBase
from pulse_identity.models.user import (
    ApplicationUser,
    LoginOutcome,
    OAuthRedirect,
    RegistrationOutcome,
    RegistrationRequest,
)

router = APIRouter(tags=["auth"])


class SessionState(PulseBase):
    """Что видит приложение: текущий пользователь и флаг загрузки."""
    user: ApplicationUser | None = None
    is_loading: bool


class LoginRequest(PulseBase):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)
    role: str


@router.get("/session", response_model=SessionState, summary="Текущий пользователь")
async def get_session(runtime: AuthRuntime = Depends(get_runtime)):
    reconciler = runtime.reconciler
    return SessionState(user=reconciler.current_user, is_loading=reconciler.is_loading)


@router.post("/login", response_model=LoginOutcome, summary="Вход по email + пароль")
async def login(body: LoginRequest, runtime: AuthRuntime = Depends(get_runtime)):
    """Демо-аккаунт или вход у провайдера."""
    return await runtime.actions.login(body.email, body.password, body.role)


@router.post("/login/google", response_model=OAuthRedirect, summary="Вход через Google")
async def login_with_google(
    role: str = Body(..., embed=True),
    runtime: AuthRuntime = Depends(get_runtime),
):
    return await runtime.actions.login_with_google(role)


@router.post(
    "/signup",
    response_model=RegistrationOutcome,
    status_code=status.HTTP_201_CREATED,
    summary="Регистрация по email + пароль",
)
async def signup(body: RegistrationRequest, runtime: AuthRuntime = Depends(get_runtime)):
    return await runtime.actions.register(body)


@router.post("/signup/google", response_model=OAuthRedirect, summary="Регистрация через Google")
async def signup_with_google(
    role: str = Body(..., embed=True),
    runtime: AuthRuntime = Depends(get_runtime),
):
    return await runtime.actions.register_with_google(role)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, summary="Выход")
async def logout(runtime: AuthRuntime = Depends(get_runtime)):
    await runtime.actions.logout()
