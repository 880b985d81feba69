from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query
from repositories.application import ApplicationRepository
from repositories.event import EventRepository, to_event_view
from schemas.auth import SAccessClaims
from schemas.event import (
    SEventCreate, SEventUpdate, SEventFilter, SEventWithStatus, SEventListResponse, SParticipantCount
)
from utils.dependencies import get_application_repository, get_event_repository
from utils.errors import AppError
from utils.http import http_error, total_pages
from utils.security import get_current_organizer, get_optional_user




router = APIRouter(
    prefix="/events",
    tags=["События"]
)


@router.get("", response_model=SEventListResponse)
async def list_events(
    page: int = Query(1, ge=1, description="Номер страницы"),
    page_size: int = Query(10, ge=1, le=100, description="Размер страницы"),
    search: Optional[str] = Query(None, max_length=100, description="Поиск по названию, описанию и месту"),
    category: Optional[str] = Query(None, description="Категория"),
    status: Optional[Literal["active", "cancelled", "completed"]] = Query(None, description="Статус события"),
    upcoming: bool = Query(False, description="Только предстоящие активные"),
    sort_by: Literal["event_date", "created_at", "title"] = Query("event_date"),
    sort_order: Literal["asc", "desc"] = Query("asc"),
    current_user: Optional[SAccessClaims] = Depends(get_optional_user),
    events: EventRepository = Depends(get_event_repository)
):
    """Список событий со статусом заявки текущего пользователя"""
    event_filter = SEventFilter(
        search=search,
        category=category,
        status=status,
        upcoming=upcoming,
        sort_by=sort_by,
        sort_order=sort_order
    )
    caller_id = current_user.user_id if current_user else None
    items, total_count = await events.list_events(event_filter, page, page_size, caller_id)

    return SEventListResponse(
        events=items,
        total_count=total_count,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total_count, page_size)
    )


@router.post("", response_model=SEventWithStatus, status_code=201)
async def create_event(
    event_data: SEventCreate,
    current_user: SAccessClaims = Depends(get_current_organizer),
    events: EventRepository = Depends(get_event_repository)
):
    """Создать событие (организатор)"""
    event = await events.create_event(event_data, current_user.user_id)
    return to_event_view(event)


@router.get("/{event_id}", response_model=SEventWithStatus)
async def get_event_details(
    event_id: int,
    current_user: Optional[SAccessClaims] = Depends(get_optional_user),
    events: EventRepository = Depends(get_event_repository)
):
    """Событие со статусом заявки текущего пользователя"""
    try:
        return await events.get_event(event_id, current_user.user_id if current_user else None)
    except AppError as e:
        raise http_error(e)


@router.patch("/{event_id}", response_model=SEventWithStatus)
async def update_event(
    event_id: int,
    event_data: SEventUpdate,
    current_user: SAccessClaims = Depends(get_current_organizer),
    events: EventRepository = Depends(get_event_repository)
):
    """Обновить событие (организатор)"""
    try:
        event = await events.update_event(event_id, event_data)
    except AppError as e:
        raise http_error(e)
    return to_event_view(event)


@router.post("/{event_id}/cancel", response_model=SEventWithStatus)
async def cancel_event(
    event_id: int,
    current_user: SAccessClaims = Depends(get_current_organizer),
    events: EventRepository = Depends(get_event_repository),
    applications: ApplicationRepository = Depends(get_application_repository)
):
    """Отменить событие и уведомить заявителей (организатор)"""
    try:
        event = await events.cancel_event(event_id)
    except AppError as e:
        raise http_error(e)

    await applications.notify_event_cancelled(event_id)
    return to_event_view(event)


@router.delete("/{event_id}")
async def delete_event(
    event_id: int,
    current_user: SAccessClaims = Depends(get_current_organizer),
    events: EventRepository = Depends(get_event_repository)
):
    """Удалить событие без заявок (организатор)"""
    try:
        await events.delete_event(event_id)
    except AppError as e:
        raise http_error(e)
    return {"success": True, "message": "Событие удалено"}


@router.post("/{event_id}/reconcile", response_model=SParticipantCount)
async def reconcile_participants(
    event_id: int,
    current_user: SAccessClaims = Depends(get_current_organizer),
    events: EventRepository = Depends(get_event_repository)
):
    """Сверить счетчик участников с одобренными заявками (организатор)"""
    try:
        return await events.reconcile_participant_count(event_id)
    except AppError as e:
        raise http_error(e)
