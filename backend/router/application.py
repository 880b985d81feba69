from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query
from repositories.application import ApplicationRepository
from schemas.auth import SAccessClaims
from schemas.application import (
    SApplication, SApplicationApprove, SApplicationCreate, SApplicationListResponse, SApplicationReject,
    SApplicationUpdate, SApplicationWithUser, SBulkApprove, SBulkApproveResult, SParticipantListResponse,
    SPendingListResponse
)
from utils.dependencies import get_application_repository
from utils.errors import AppError
from utils.http import http_error, total_pages
from utils.security import get_current_organizer, get_current_user




router = APIRouter(
    prefix="/participants",
    tags=["Заявки"]
)

StatusFilter = Optional[Literal["pending", "approved", "rejected"]]


@router.post("/events/{event_id}/join", response_model=SApplication, status_code=201)
async def join_event(
    event_id: int,
    application_data: Optional[SApplicationCreate] = None,
    current_user: SAccessClaims = Depends(get_current_user),
    applications: ApplicationRepository = Depends(get_application_repository)
):
    """Подать заявку на участие"""
    try:
        return await applications.join_event(event_id, current_user.user_id, application_data)
    except AppError as e:
        raise http_error(e)


@router.delete("/events/{event_id}/leave")
async def leave_event(
    event_id: int,
    current_user: SAccessClaims = Depends(get_current_user),
    applications: ApplicationRepository = Depends(get_application_repository)
):
    """Отозвать свою заявку"""
    try:
        await applications.leave_event(event_id, current_user.user_id)
    except AppError as e:
        raise http_error(e)
    return {"success": True, "message": "Заявка отозвана"}


@router.get("/my-applications", response_model=SApplicationListResponse)
async def get_my_applications(
    status: StatusFilter = Query(None, description="Статус заявки"),
    page: int = Query(1, ge=1, description="Номер страницы"),
    page_size: int = Query(10, ge=1, le=100, description="Размер страницы"),
    current_user: SAccessClaims = Depends(get_current_user),
    applications: ApplicationRepository = Depends(get_application_repository)
):
    """Мои заявки"""
    items, total_count = await applications.get_user_applications(current_user.user_id, status, page, page_size)
    return SApplicationListResponse(
        applications=items,
        total_count=total_count,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total_count, page_size)
    )


@router.get("/events/{event_id}", response_model=SParticipantListResponse)
async def get_event_participants(
    event_id: int,
    status: StatusFilter = Query(None, description="Статус заявки"),
    search: Optional[str] = Query(None, max_length=100, description="Поиск по имени, фамилии и email"),
    page: int = Query(1, ge=1, description="Номер страницы"),
    page_size: int = Query(10, ge=1, le=100, description="Размер страницы"),
    current_user: SAccessClaims = Depends(get_current_organizer),
    applications: ApplicationRepository = Depends(get_application_repository)
):
    """Заявки на событие (организатор)"""
    try:
        items, total_count = await applications.list_participants(event_id, status, page, page_size, search)
    except AppError as e:
        raise http_error(e)

    return SParticipantListResponse(
        applications=items,
        total_count=total_count,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total_count, page_size)
    )


@router.get("/pending", response_model=SPendingListResponse)
async def get_pending_applications(
    page: int = Query(1, ge=1, description="Номер страницы"),
    page_size: int = Query(20, ge=1, le=100, description="Размер страницы"),
    event_id: Optional[int] = Query(None, description="Только заявки на это событие"),
    search: Optional[str] = Query(None, max_length=100, description="Поиск по имени, фамилии и email"),
    sort_by: Literal["applied_at", "event_date"] = Query("applied_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    current_user: SAccessClaims = Depends(get_current_organizer),
    applications: ApplicationRepository = Depends(get_application_repository)
):
    """Очередь заявок на рассмотрении (организатор)"""
    items, total_count = await applications.list_pending(page, page_size, event_id, search, sort_by, sort_order)
    return SPendingListResponse(
        applications=items,
        total_count=total_count,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total_count, page_size)
    )


@router.post("/bulk-approve", response_model=SBulkApproveResult)
async def bulk_approve(
    bulk_data: SBulkApprove,
    current_user: SAccessClaims = Depends(get_current_organizer),
    applications: ApplicationRepository = Depends(get_application_repository)
):
    """Одобрить несколько заявок разом (организатор)"""
    try:
        approved_count = await applications.bulk_approve(bulk_data.application_ids, current_user.user_id)
    except AppError as e:
        raise http_error(e)
    return SBulkApproveResult(approved_count=approved_count)


@router.get("/{application_id}", response_model=SApplicationWithUser)
async def get_application_details(
    application_id: int,
    current_user: SAccessClaims = Depends(get_current_organizer),
    applications: ApplicationRepository = Depends(get_application_repository)
):
    """Заявка с данными заявителя (организатор)"""
    try:
        return await applications.get_application(application_id)
    except AppError as e:
        raise http_error(e)


@router.patch("/{application_id}", response_model=SApplicationWithUser)
async def update_participant(
    application_id: int,
    update_data: SApplicationUpdate,
    current_user: SAccessClaims = Depends(get_current_organizer),
    applications: ApplicationRepository = Depends(get_application_repository)
):
    """Изменить данные заявки (организатор)"""
    try:
        return await applications.update_participant(application_id, update_data)
    except AppError as e:
        raise http_error(e)


@router.post("/{application_id}/approve", response_model=SApplication)
async def approve_participant(
    application_id: int,
    approve_data: Optional[SApplicationApprove] = None,
    current_user: SAccessClaims = Depends(get_current_organizer),
    applications: ApplicationRepository = Depends(get_application_repository)
):
    """Одобрить заявку (организатор)"""
    try:
        return await applications.approve_participant(application_id, current_user.user_id, approve_data.notes if approve_data else None)
    except AppError as e:
        raise http_error(e)


@router.post("/{application_id}/reject", response_model=SApplication)
async def reject_participant(
    application_id: int,
    reject_data: SApplicationReject,
    current_user: SAccessClaims = Depends(get_current_organizer),
    applications: ApplicationRepository = Depends(get_application_repository)
):
    """Отклонить заявку (организатор)"""
    try:
        return await applications.reject_participant(
            application_id, current_user.user_id, reject_data.rejection_reason, reject_data.notes
        )
    except AppError as e:
        raise http_error(e)


@router.delete("/{application_id}")
async def delete_participant(
    application_id: int,
    current_user: SAccessClaims = Depends(get_current_organizer),
    applications: ApplicationRepository = Depends(get_application_repository)
):
    """Удалить заявку (организатор)"""
    try:
        await applications.delete_participant(application_id)
    except AppError as e:
        raise http_error(e)
    return {"success": True, "message": "Участник удален"}
