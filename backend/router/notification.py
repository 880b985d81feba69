from typing import Optional
from fastapi import APIRouter, Depends, Query
from repositories.notification import NotificationRepository
from schemas.auth import SAccessClaims
from schemas.notification import (
    NotificationType, SMarkAllRead, SNotification, SNotificationListResponse, SUnreadCount
)
from utils.dependencies import get_notification_repository
from utils.errors import AppError
from utils.http import http_error, total_pages
from utils.security import get_current_user




router = APIRouter(
    prefix="/notifications",
    tags=["Уведомления"]
)


@router.get("", response_model=SNotificationListResponse)
async def get_notifications(
    page: int = Query(1, ge=1, description="Номер страницы"),
    page_size: int = Query(10, ge=1, le=100, description="Размер страницы"),
    type: Optional[NotificationType] = Query(None, description="Тип уведомления"),
    is_read: Optional[bool] = Query(None, description="Прочитано"),
    current_user: SAccessClaims = Depends(get_current_user),
    notifications: NotificationRepository = Depends(get_notification_repository)
):
    """Мои уведомления"""
    items, total_count = await notifications.list_for_user(current_user.user_id, page, page_size, type, is_read)
    unread_count = await notifications.unread_count(current_user.user_id)

    return SNotificationListResponse(
        notifications=items,
        total_count=total_count,
        unread_count=unread_count,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total_count, page_size)
    )


@router.get("/latest", response_model=list[SNotification])
async def get_latest_notifications(
    limit: int = Query(10, ge=1, le=50),
    current_user: SAccessClaims = Depends(get_current_user),
    notifications: NotificationRepository = Depends(get_notification_repository)
):
    """Последние уведомления"""
    return await notifications.latest(current_user.user_id, limit)


@router.get("/unread-count", response_model=SUnreadCount)
async def get_unread_count(
    current_user: SAccessClaims = Depends(get_current_user),
    notifications: NotificationRepository = Depends(get_notification_repository)
):
    """Количество непрочитанных"""
    return SUnreadCount(unread_count=await notifications.unread_count(current_user.user_id))


@router.post("/read-all", response_model=SMarkAllRead)
async def mark_all_read(
    current_user: SAccessClaims = Depends(get_current_user),
    notifications: NotificationRepository = Depends(get_notification_repository)
):
    """Отметить все уведомления прочитанными"""
    return SMarkAllRead(modified_count=await notifications.mark_all_read(current_user.user_id))


@router.post("/{notification_id}/read", response_model=SNotification)
async def mark_read(
    notification_id: int,
    current_user: SAccessClaims = Depends(get_current_user),
    notifications: NotificationRepository = Depends(get_notification_repository)
):
    """Отметить уведомление прочитанным"""
    try:
        return await notifications.mark_read(notification_id, current_user.user_id)
    except AppError as e:
        raise http_error(e)
