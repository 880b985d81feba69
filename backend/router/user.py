from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query
from repositories.auth import UserRepository
from schemas.auth import SAccessClaims, SUser, SUserListResponse, SUserProfileUpdate
from utils.dependencies import get_user_repository
from utils.errors import AppError, ValidationFailed
from utils.http import http_error, total_pages
from utils.security import get_current_organizer, get_current_user




router = APIRouter(
    prefix="/users",
    tags=["Пользователи"]
)


@router.get("", response_model=SUserListResponse)
async def list_users(
    page: int = Query(1, ge=1, description="Номер страницы"),
    page_size: int = Query(10, ge=1, le=100, description="Размер страницы"),
    search: Optional[str] = Query(None, max_length=100, description="Поиск по имени, фамилии и email"),
    role: Optional[Literal["member", "organizer"]] = Query(None, description="Роль"),
    is_blocked: Optional[bool] = Query(None, description="Заблокирован"),
    current_user: SAccessClaims = Depends(get_current_organizer),
    users: UserRepository = Depends(get_user_repository)
):
    """Список пользователей (организатор)"""
    items, total_count = await users.list_users(page, page_size, search, role, is_blocked)
    return SUserListResponse(
        users=[SUser.model_validate(user) for user in items],
        total_count=total_count,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total_count, page_size)
    )


@router.get("/profile", response_model=SUser)
async def get_profile(
    current_user: SAccessClaims = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository)
):
    """Мой профиль"""
    try:
        return await users.get_profile(current_user.user_id)
    except AppError as e:
        raise http_error(e)


@router.patch("/profile", response_model=SUser)
async def update_profile(
    profile_data: SUserProfileUpdate,
    current_user: SAccessClaims = Depends(get_current_user),
    users: UserRepository = Depends(get_user_repository)
):
    """Обновить мой профиль"""
    try:
        return await users.update_profile(current_user.user_id, profile_data)
    except AppError as e:
        raise http_error(e)


@router.get("/{user_id}", response_model=SUser)
async def get_user(
    user_id: int,
    current_user: SAccessClaims = Depends(get_current_organizer),
    users: UserRepository = Depends(get_user_repository)
):
    """Пользователь по ID (организатор)"""
    try:
        return await users.get_profile(user_id)
    except AppError as e:
        raise http_error(e)


async def _set_blocked(user_id: int, blocked: bool, current_user: SAccessClaims, users: UserRepository):
    if user_id == current_user.user_id:
        raise http_error(ValidationFailed("Нельзя изменить блокировку собственного аккаунта"))
    try:
        return await users.set_blocked(user_id, blocked)
    except AppError as e:
        raise http_error(e)


@router.post("/{user_id}/block", response_model=SUser)
async def block_user(
    user_id: int,
    current_user: SAccessClaims = Depends(get_current_organizer),
    users: UserRepository = Depends(get_user_repository)
):
    """Заблокировать пользователя (организатор)"""
    return await _set_blocked(user_id, True, current_user, users)


@router.post("/{user_id}/unblock", response_model=SUser)
async def unblock_user(
    user_id: int,
    current_user: SAccessClaims = Depends(get_current_organizer),
    users: UserRepository = Depends(get_user_repository)
):
    """Разблокировать пользователя (организатор)"""
    return await _set_blocked(user_id, False, current_user, users)
