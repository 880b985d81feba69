import logging
from collections import Counter
from sqlalchemy import select, delete, update, and_, or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from models.application import ApplicationOrm, ApplicationBarOrm
from models.auth import UserOrm
from models.event import EventOrm
from repositories.notification import NotificationRepository
from schemas.application import (
    SApplication, SApplicationCreate, SApplicationUpdate, SApplicationWithEvent, SApplicationWithUser,
    SPendingApplication
)
from schemas.notification import EventCancelled, Notice, ParticipantApproved, ParticipantRejected
from utils.errors import (
    AlreadyApplied, AlreadyApproved, ApplicationNotFound, ApprovedCannotLeave,
    BatchCapacityExceeded, EventFull, EventNotActive, EventNotFound, NoPendingApplications,
    NotParticipating, NotPending, PermanentlyBarred, ReasonRequired, RegistrationClosed
)
from utils.time import as_utc, utcnow




logger = logging.getLogger(__name__)

EXISTING_APPLICATION_ERRORS = {
    "pending": AlreadyApplied,
    "approved": AlreadyApproved,
    "rejected": PermanentlyBarred,
}

PENDING_SORT_COLUMNS = {
    "applied_at": ApplicationOrm.applied_at,
    "event_date": EventOrm.event_date,
}


def _application_fields(application: ApplicationOrm) -> dict:
    return SApplication.model_validate(application).model_dump()


def _with_user(application: ApplicationOrm, user: UserOrm) -> SApplicationWithUser:
    return SApplicationWithUser(
        **_application_fields(application),
        user_first_name=user.first_name,
        user_last_name=user.last_name,
        user_email=user.email,
        user_phone=user.phone
    )


def _applicant_matches(search: str):
    pattern = f"%{search}%"
    return or_(
        UserOrm.first_name.ilike(pattern),
        UserOrm.last_name.ilike(pattern),
        UserOrm.email.ilike(pattern)
    )


class ApplicationRepository:
    """Заявки на участие: подача, одобрение, отказ, выход.

    Переходы статуса: pending -> approved, pending -> rejected, удаление
    pending/rejected самим участником, удаление любой заявки организатором.
    В pending заявка не возвращается. Места занимают только одобренные
    заявки; счетчик события меняется в той же транзакции, что и статус,
    условным UPDATE с проверкой лимита.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifications: NotificationRepository,
    ):
        self.session_factory = session_factory
        self.notifications = notifications


    async def join_event(self, event_id: int, user_id: int, application_data: SApplicationCreate | None = None):
        """Подать заявку на участие в событии"""
        application_data = application_data or SApplicationCreate()

        async with self.session_factory() as session:
            event = await session.get(EventOrm, event_id)
            if not event:
                raise EventNotFound()

            if event.status == "active" and as_utc(event.event_date) <= utcnow():
                await session.execute(
                    update(EventOrm)
                    .where(and_(EventOrm.id == event_id, EventOrm.status == "active"))
                    .values(status="completed")
                )
                await session.commit()
                raise EventNotActive()

            if event.status != "active":
                raise EventNotActive()

            await self._ensure_can_apply(session, event_id, user_id)

            deadline = as_utc(event.registration_deadline)
            if deadline is not None and deadline < utcnow():
                raise RegistrationClosed()

            if event.current_participants >= event.max_participants:
                raise EventFull()

            application = ApplicationOrm(
                event_id=event_id,
                user_id=user_id,
                status="pending",
                emergency_contact=application_data.emergency_contact,
                dietary_requirements=application_data.dietary_requirements,
                accessibility_needs=application_data.accessibility_needs,
                notes=application_data.notes
            )
            session.add(application)
            try:
                await session.commit()
            except IntegrityError:
                # Параллельная заявка успела раньше, отвечаем по ее статусу
                await session.rollback()
                await self._ensure_can_apply(session, event_id, user_id)
                raise AlreadyApplied()

            await session.refresh(application)
            logger.info("Application created: application_id=%s event_id=%s user_id=%s", application.id, event_id, user_id)
            return application


    async def _ensure_can_apply(self, session: AsyncSession, event_id: int, user_id: int):
        query = select(ApplicationOrm.status).where(
            and_(ApplicationOrm.event_id == event_id, ApplicationOrm.user_id == user_id)
        )
        status = (await session.execute(query)).scalar()
        if status is not None:
            raise EXISTING_APPLICATION_ERRORS[status]()

        bar_query = select(ApplicationBarOrm.id).where(
            and_(ApplicationBarOrm.event_id == event_id, ApplicationBarOrm.user_id == user_id)
        )
        if (await session.execute(bar_query)).scalar() is not None:
            raise PermanentlyBarred()


    async def approve_participant(self, application_id: int, reviewer_id: int, notes: str | None = None):
        """Одобрить заявку (организатор)"""
        async with self.session_factory() as session:
            application = await session.get(ApplicationOrm, application_id)
            if not application:
                raise ApplicationNotFound()
            if application.status != "pending":
                raise NotPending()

            event_id = application.event_id
            values = {"status": "approved", "reviewed_by": reviewer_id, "reviewed_at": utcnow()}
            if notes:
                values["notes"] = notes

            transition = await session.execute(
                update(ApplicationOrm)
                .where(and_(ApplicationOrm.id == application_id, ApplicationOrm.status == "pending"))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if transition.rowcount != 1:
                await session.rollback()
                raise NotPending()

            seat = await session.execute(
                update(EventOrm)
                .where(and_(
                    EventOrm.id == event_id,
                    EventOrm.current_participants < EventOrm.max_participants
                ))
                .values(current_participants=EventOrm.current_participants + 1)
                .execution_options(synchronize_session=False)
            )
            if seat.rowcount != 1:
                await session.rollback()
                logger.info("Approval refused, event is full: application_id=%s event_id=%s", application_id, event_id)
                raise EventFull()

            await session.commit()
            await session.refresh(application)

        logger.info("Application approved: application_id=%s event_id=%s reviewer_id=%s", application_id, event_id, reviewer_id)
        await self._notify_approved(application.id, application.event_id, application.user_id)
        return application


    async def reject_participant(
        self,
        application_id: int,
        reviewer_id: int,
        rejection_reason: str,
        notes: str | None = None
    ):
        """Отклонить заявку (организатор). Повторная подача будет невозможна."""
        rejection_reason = (rejection_reason or "").strip()
        if not rejection_reason:
            raise ReasonRequired()

        async with self.session_factory() as session:
            application = await session.get(ApplicationOrm, application_id)
            if not application:
                raise ApplicationNotFound()
            if application.status != "pending":
                raise NotPending()

            values = {
                "status": "rejected",
                "reviewed_by": reviewer_id,
                "reviewed_at": utcnow(),
                "rejection_reason": rejection_reason,
            }
            if notes:
                values["notes"] = notes

            transition = await session.execute(
                update(ApplicationOrm)
                .where(and_(ApplicationOrm.id == application_id, ApplicationOrm.status == "pending"))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if transition.rowcount != 1:
                await session.rollback()
                raise NotPending()

            session.add(ApplicationBarOrm(
                event_id=application.event_id,
                user_id=application.user_id,
                application_id=application.id
            ))
            await session.commit()
            await session.refresh(application)

        logger.info("Application rejected: application_id=%s reviewer_id=%s", application_id, reviewer_id)
        await self._notify_rejected(application.id, application.event_id, application.user_id, rejection_reason)
        return application


    async def bulk_approve(self, application_ids: list[int], reviewer_id: int) -> int:
        """Одобрить пачку заявок целиком или не одобрить ни одной"""
        application_ids = list(dict.fromkeys(application_ids))

        async with self.session_factory() as session:
            transition = await session.execute(
                update(ApplicationOrm)
                .where(and_(ApplicationOrm.id.in_(application_ids), ApplicationOrm.status == "pending"))
                .values(status="approved", reviewed_by=reviewer_id, reviewed_at=utcnow())
                .returning(ApplicationOrm.id, ApplicationOrm.event_id, ApplicationOrm.user_id)
                .execution_options(synchronize_session=False)
            )
            approved = transition.all()
            if not approved:
                await session.rollback()
                raise NoPendingApplications()

            seats_per_event = Counter(row.event_id for row in approved)
            full_events = []
            for event_id, seats in sorted(seats_per_event.items()):
                seat = await session.execute(
                    update(EventOrm)
                    .where(and_(
                        EventOrm.id == event_id,
                        EventOrm.current_participants + seats <= EventOrm.max_participants
                    ))
                    .values(current_participants=EventOrm.current_participants + seats)
                    .execution_options(synchronize_session=False)
                )
                if seat.rowcount != 1:
                    full_events.append(event_id)

            if full_events:
                await session.rollback()
                logger.info("Bulk approval refused, events are full: event_ids=%s", full_events)
                raise BatchCapacityExceeded(full_events)

            await session.commit()

        logger.info("Bulk approval: count=%s reviewer_id=%s", len(approved), reviewer_id)
        for row in approved:
            await self._notify_approved(row.id, row.event_id, row.user_id)
        return len(approved)


    async def leave_event(self, event_id: int, user_id: int):
        """Отозвать свою заявку (только pending или rejected)"""
        async with self.session_factory() as session:
            removed = await session.execute(
                delete(ApplicationOrm)
                .where(and_(
                    ApplicationOrm.event_id == event_id,
                    ApplicationOrm.user_id == user_id,
                    ApplicationOrm.status.in_(["pending", "rejected"])
                ))
                .returning(ApplicationOrm.id)
                .execution_options(synchronize_session=False)
            )
            application_id = removed.scalar()
            if application_id is None:
                await session.rollback()
                query = select(ApplicationOrm.status).where(
                    and_(ApplicationOrm.event_id == event_id, ApplicationOrm.user_id == user_id)
                )
                status = (await session.execute(query)).scalar()
                if status == "approved":
                    raise ApprovedCannotLeave()
                raise NotParticipating()

            await session.commit()

        logger.info("Application withdrawn: application_id=%s event_id=%s user_id=%s", application_id, event_id, user_id)
        return True


    async def delete_participant(self, application_id: int):
        """Удалить заявку (организатор); одобренная освобождает место"""
        async with self.session_factory() as session:
            removed = await session.execute(
                delete(ApplicationOrm)
                .where(ApplicationOrm.id == application_id)
                .returning(ApplicationOrm.event_id, ApplicationOrm.status)
                .execution_options(synchronize_session=False)
            )
            row = removed.first()
            if row is None:
                await session.rollback()
                raise ApplicationNotFound()

            if row.status == "approved":
                await session.execute(
                    update(EventOrm)
                    .where(and_(EventOrm.id == row.event_id, EventOrm.current_participants > 0))
                    .values(current_participants=EventOrm.current_participants - 1)
                    .execution_options(synchronize_session=False)
                )

            await session.commit()

        logger.info("Application deleted: application_id=%s status=%s", application_id, row.status)
        return True


    async def get_application(self, application_id: int) -> SApplicationWithUser:
        """Заявка с данными заявителя"""
        async with self.session_factory() as session:
            query = (
                select(ApplicationOrm, UserOrm)
                .join(UserOrm, ApplicationOrm.user_id == UserOrm.id)
                .where(ApplicationOrm.id == application_id)
            )
            row = (await session.execute(query)).first()
            if row is None:
                raise ApplicationNotFound()

            application, user = row
            return _with_user(application, user)


    async def list_participants(
        self,
        event_id: int,
        status: str | None,
        page: int,
        page_size: int,
        search: str | None = None
    ):
        """Все заявки на событие с данными заявителей (организатор).

        ``search`` ищет по имени, фамилии и email заявителя.
        """
        async with self.session_factory() as session:
            if await session.get(EventOrm, event_id) is None:
                raise EventNotFound()

            conditions = [ApplicationOrm.event_id == event_id]
            if status:
                conditions.append(ApplicationOrm.status == status)
            if search:
                conditions.append(_applicant_matches(search))

            count_query = (
                select(func.count())
                .select_from(ApplicationOrm)
                .join(UserOrm, ApplicationOrm.user_id == UserOrm.id)
                .where(*conditions)
            )
            total_count = (await session.execute(count_query)).scalar()

            offset = (page - 1) * page_size
            query = (
                select(ApplicationOrm, UserOrm)
                .join(UserOrm, ApplicationOrm.user_id == UserOrm.id)
                .where(*conditions)
                .order_by(ApplicationOrm.applied_at.desc(), ApplicationOrm.id.desc())
                .offset(offset)
                .limit(page_size)
            )
            result = await session.execute(query)

            applications = [_with_user(application, user) for application, user in result.all()]
            return applications, total_count


    async def list_pending(
        self,
        page: int = 1,
        page_size: int = 20,
        event_id: int | None = None,
        search: str | None = None,
        sort_by: str = "applied_at",
        sort_order: str = "desc"
    ):
        """Очередь заявок на рассмотрении по всем событиям (организатор)"""
        async with self.session_factory() as session:
            conditions = [ApplicationOrm.status == "pending"]
            if event_id is not None:
                conditions.append(ApplicationOrm.event_id == event_id)
            if search:
                conditions.append(_applicant_matches(search))

            count_query = (
                select(func.count())
                .select_from(ApplicationOrm)
                .join(UserOrm, ApplicationOrm.user_id == UserOrm.id)
                .where(*conditions)
            )
            total_count = (await session.execute(count_query)).scalar()

            sort_column = PENDING_SORT_COLUMNS[sort_by]
            order = sort_column.desc() if sort_order == "desc" else sort_column.asc()

            offset = (page - 1) * page_size
            query = (
                select(ApplicationOrm, UserOrm, EventOrm)
                .join(UserOrm, ApplicationOrm.user_id == UserOrm.id)
                .join(EventOrm, ApplicationOrm.event_id == EventOrm.id)
                .where(*conditions)
                .order_by(order, ApplicationOrm.id)
                .offset(offset)
                .limit(page_size)
            )
            result = await session.execute(query)

            applications = []
            for application, user, event in result.all():
                applications.append(SPendingApplication(
                    **_with_user(application, user).model_dump(),
                    event_title=event.title,
                    event_date=event.event_date,
                    event_location=event.location
                ))

            return applications, total_count


    async def update_participant(self, application_id: int, update_data: SApplicationUpdate) -> SApplicationWithUser:
        """Изменить данные заявки (организатор); статус и место не трогаются"""
        values = update_data.model_dump(exclude_unset=True)

        async with self.session_factory() as session:
            if values:
                result = await session.execute(
                    update(ApplicationOrm)
                    .where(ApplicationOrm.id == application_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise ApplicationNotFound()
                await session.commit()

        logger.info("Application updated: application_id=%s fields=%s", application_id, sorted(values))
        return await self.get_application(application_id)


    async def get_user_applications(self, user_id: int, status: str | None, page: int, page_size: int):
        """Заявки пользователя с краткой информацией о событиях"""
        async with self.session_factory() as session:
            conditions = [ApplicationOrm.user_id == user_id]
            if status:
                conditions.append(ApplicationOrm.status == status)

            count_query = select(func.count()).select_from(ApplicationOrm).where(*conditions)
            total_count = (await session.execute(count_query)).scalar()

            offset = (page - 1) * page_size
            query = (
                select(ApplicationOrm, EventOrm)
                .join(EventOrm, ApplicationOrm.event_id == EventOrm.id)
                .where(*conditions)
                .order_by(ApplicationOrm.applied_at.desc(), ApplicationOrm.id.desc())
                .offset(offset)
                .limit(page_size)
            )
            result = await session.execute(query)

            applications = []
            for application, event in result.all():
                applications.append(SApplicationWithEvent(
                    **_application_fields(application),
                    event_title=event.title,
                    event_date=event.event_date,
                    event_location=event.location,
                    event_status=event.status
                ))

            return applications, total_count


    async def notify_event_cancelled(self, event_id: int):
        """Разослать уведомления об отмене всем pending и approved заявителям"""
        async with self.session_factory() as session:
            event = await session.get(EventOrm, event_id)
            if not event:
                raise EventNotFound()
            query = select(ApplicationOrm.user_id).where(
                and_(ApplicationOrm.event_id == event_id, ApplicationOrm.status.in_(["pending", "approved"]))
            )
            user_ids = (await session.execute(query)).scalars().all()
            event_title = event.title

        delivered = 0
        for user_id in user_ids:
            notice = EventCancelled(user_id=user_id, event_id=event_id, event_title=event_title)
            if await self._emit(notice):
                delivered += 1
        return delivered


    async def _event_title(self, event_id: int) -> str:
        async with self.session_factory() as session:
            title = (await session.execute(select(EventOrm.title).where(EventOrm.id == event_id))).scalar()
            return title or ""


    async def _notify_approved(self, application_id: int, event_id: int, user_id: int):
        try:
            notice = ParticipantApproved(
                user_id=user_id,
                event_id=event_id,
                application_id=application_id,
                event_title=await self._event_title(event_id)
            )
        except Exception:
            logger.warning("Failed to build approval notification: application_id=%s", application_id, exc_info=True)
            return False
        return await self._emit(notice)


    async def _notify_rejected(self, application_id: int, event_id: int, user_id: int, rejection_reason: str):
        try:
            notice = ParticipantRejected(
                user_id=user_id,
                event_id=event_id,
                application_id=application_id,
                event_title=await self._event_title(event_id),
                rejection_reason=rejection_reason
            )
        except Exception:
            logger.warning("Failed to build rejection notification: application_id=%s", application_id, exc_info=True)
            return False
        return await self._emit(notice)


    async def _emit(self, notice: Notice) -> bool:
        # Решение по заявке уже зафиксировано, сбой ленты его не откатывает
        try:
            await self.notifications.create(notice)
            return True
        except Exception:
            logger.warning(
                "Failed to create %s notification: user_id=%s event_id=%s",
                notice.kind, notice.user_id, notice.event_id,
                exc_info=True
            )
            return False
