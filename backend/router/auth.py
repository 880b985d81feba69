from fastapi import APIRouter, Depends
from repositories.session import SessionManager
from repositories.auth import UserRepository
from schemas.auth import (
    SAccessClaims, SLogoutRequest, SRefreshRequest, STokenPair, SUser, SUserLogin, SUserRegister, SUserSession
)
from utils.dependencies import get_session_manager, get_user_repository
from utils.errors import AppError
from utils.http import http_error
from utils.security import get_current_user




router = APIRouter(
    prefix="/auth",
    tags=["Аутентификация"]
)


@router.post("/register", response_model=SUserSession, status_code=201)
async def register_user(
    user_data: SUserRegister,
    sessions: SessionManager = Depends(get_session_manager)
):
    """Регистрация по email и паролю"""
    try:
        user, tokens = await sessions.register(user_data)
    except AppError as e:
        raise http_error(e)

    return SUserSession(user=SUser.model_validate(user), **tokens.model_dump())


@router.post("/login", response_model=SUserSession)
async def login_user(
    credentials: SUserLogin,
    sessions: SessionManager = Depends(get_session_manager)
):
    """Вход по email и паролю"""
    try:
        user, tokens = await sessions.login(credentials)
    except AppError as e:
        raise http_error(e)

    return SUserSession(user=SUser.model_validate(user), **tokens.model_dump())


@router.post("/refresh", response_model=STokenPair)
async def refresh_tokens(
    refresh_data: SRefreshRequest,
    sessions: SessionManager = Depends(get_session_manager)
):
    """Обновить пару токенов"""
    try:
        return await sessions.refresh(refresh_data.refresh_token)
    except AppError as e:
        raise http_error(e)


@router.post("/logout")
async def logout(
    logout_data: SLogoutRequest,
    sessions: SessionManager = Depends(get_session_manager)
):
    """Выход пользователя"""
    await sessions.logout(logout_data.refresh_token)
    return {"success": True, "message": "Вы вышли из системы"}


@router.get("/me", response_model=SUser)
async def get_current_user_info(
    current_user: SAccessClaims = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository)
):
    """Информация о текущем пользователе"""
    try:
        return await users.get_profile(current_user.user_id)
    except AppError as e:
        raise http_error(e)
