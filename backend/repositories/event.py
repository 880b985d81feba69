import logging
from sqlalchemy import select, delete, update, and_, or_, func, exists
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from models.application import ApplicationOrm, ApplicationBarOrm
from models.event import EventOrm
from schemas.event import SEventCreate, SEventUpdate, SEventFilter, SEventWithStatus, SParticipantCount
from utils.errors import (
    CapacityBelowParticipants, EventHasApplications, EventNotActive, EventNotFound, InvalidSchedule
)
from utils.time import as_utc, utcnow




logger = logging.getLogger(__name__)

NULLABLE_EVENT_FIELDS = {"registration_deadline"}

SORT_COLUMNS = {
    "event_date": EventOrm.event_date,
    "created_at": EventOrm.created_at,
    "title": EventOrm.title,
}


def to_event_view(event: EventOrm, participation_status: str | None = None) -> SEventWithStatus:
    """Событие с вычисляемыми флагами и статусом заявки вызывающего"""
    deadline = as_utc(event.registration_deadline)
    view = SEventWithStatus.model_validate(event)
    view.is_full = event.current_participants >= event.max_participants
    view.is_registration_closed = deadline is not None and deadline < utcnow()
    view.participation_status = participation_status
    return view


class EventRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory


    async def create_event(self, event_data: SEventCreate, user_id: int):
        """Создать новое событие"""
        async with self.session_factory() as session:
            event = EventOrm(
                title=event_data.title,
                description=event_data.description,
                location=event_data.location,
                category=event_data.category,
                price=event_data.price,
                event_date=event_data.event_date,
                registration_deadline=event_data.registration_deadline,
                max_participants=event_data.max_participants,
                current_participants=0,
                status="active",
                created_by=user_id
            )
            session.add(event)
            await session.commit()
            await session.refresh(event)
            logger.info("Event created: event_id=%s by user_id=%s", event.id, user_id)
            return event


    async def get_event_by_id(self, event_id: int):
        """Получить событие по ID"""
        async with self.session_factory() as session:
            query = select(EventOrm).where(EventOrm.id == event_id)
            result = await session.execute(query)
            return result.scalars().first()


    async def update_event(self, event_id: int, event_data: SEventUpdate):
        """Обновить событие. Счетчик участников здесь не меняется."""
        async with self.session_factory() as session:
            event = await session.get(EventOrm, event_id)
            if not event:
                raise EventNotFound()

            # null разрешен только для необязательных колонок, для остальных игнорируется
            update_data = {
                field: value
                for field, value in event_data.model_dump(exclude_unset=True).items()
                if value is not None or field in NULLABLE_EVENT_FIELDS
            }

            event_date = as_utc(update_data.get("event_date", event.event_date))
            deadline = as_utc(update_data.get("registration_deadline", event.registration_deadline))
            if deadline is not None and deadline >= event_date:
                raise InvalidSchedule()

            stmt = update(EventOrm).where(EventOrm.id == event_id)
            if "max_participants" in update_data:
                # Лимит нельзя опустить ниже уже одобренных участников
                stmt = stmt.where(EventOrm.current_participants <= update_data["max_participants"])

            if update_data:
                result = await session.execute(stmt.values(**update_data))
                if result.rowcount == 0:
                    await session.rollback()
                    raise CapacityBelowParticipants()
                await session.commit()

        return await self.get_event_by_id(event_id)


    async def cancel_event(self, event_id: int):
        """Отменить активное событие"""
        async with self.session_factory() as session:
            stmt = (
                update(EventOrm)
                .where(and_(EventOrm.id == event_id, EventOrm.status == "active"))
                .values(status="cancelled")
            )
            result = await session.execute(stmt)
            if result.rowcount == 0:
                await session.rollback()
                if await session.get(EventOrm, event_id) is None:
                    raise EventNotFound()
                raise EventNotActive()
            await session.commit()
        logger.info("Event cancelled: event_id=%s", event_id)
        return await self.get_event_by_id(event_id)


    async def delete_event(self, event_id: int):
        """Удалить событие, если на него никто не подавал заявок.

        Запреты повторной подачи удаляются вместе с событием.
        """
        async with self.session_factory() as session:
            has_applications = exists().where(ApplicationOrm.event_id == EventOrm.id)
            stmt = delete(EventOrm).where(and_(EventOrm.id == event_id, ~has_applications))
            result = await session.execute(stmt)
            if result.rowcount == 0:
                await session.rollback()
                if await session.get(EventOrm, event_id) is None:
                    raise EventNotFound()
                raise EventHasApplications()

            await session.execute(delete(ApplicationBarOrm).where(ApplicationBarOrm.event_id == event_id))
            await session.commit()
            logger.info("Event deleted: event_id=%s", event_id)
            return True


    async def complete_past_events(self):
        """Перевести прошедшие активные события в completed"""
        async with self.session_factory() as session:
            stmt = (
                update(EventOrm)
                .where(and_(EventOrm.status == "active", EventOrm.event_date < utcnow()))
                .values(status="completed")
            )
            result = await session.execute(stmt)
            await session.commit()
            if result.rowcount:
                logger.info("Events completed by schedule: count=%s", result.rowcount)
            return result.rowcount


    async def list_events(self, event_filter: SEventFilter, page: int, page_size: int, caller_id: int | None = None):
        """Список событий со статусом заявки вызывающего пользователя.

        Заявки присоединяются только по паре (event_id, caller_id), поэтому
        чужие статусы и личности в выдачу не попадают.
        """
        await self.complete_past_events()

        async with self.session_factory() as session:
            conditions = []
            if event_filter.search:
                pattern = f"%{event_filter.search}%"
                conditions.append(or_(
                    EventOrm.title.ilike(pattern),
                    EventOrm.description.ilike(pattern),
                    EventOrm.location.ilike(pattern)
                ))
            if event_filter.category:
                conditions.append(EventOrm.category == event_filter.category)
            if event_filter.status:
                conditions.append(EventOrm.status == event_filter.status)
            if event_filter.upcoming:
                conditions.append(EventOrm.event_date > utcnow())
                conditions.append(EventOrm.status == "active")

            count_query = select(func.count()).select_from(EventOrm).where(*conditions)
            total_count_result = await session.execute(count_query)
            total_count = total_count_result.scalar()

            sort_column = SORT_COLUMNS[event_filter.sort_by]
            order = sort_column.desc() if event_filter.sort_order == "desc" else sort_column.asc()

            offset = (page - 1) * page_size

            if caller_id is None:
                events_query = select(EventOrm).where(*conditions).order_by(order, EventOrm.id).offset(offset).limit(page_size)
                events_result = await session.execute(events_query)
                events = [to_event_view(event) for event in events_result.scalars().all()]
                return events, total_count

            events_query = (
                select(EventOrm, ApplicationOrm.status)
                .outerjoin(
                    ApplicationOrm,
                    and_(ApplicationOrm.event_id == EventOrm.id, ApplicationOrm.user_id == caller_id)
                )
                .where(*conditions)
                .order_by(order, EventOrm.id)
                .offset(offset)
                .limit(page_size)
            )
            events_result = await session.execute(events_query)
            events = [to_event_view(event, status) for event, status in events_result.all()]
            return events, total_count


    async def get_event(self, event_id: int, caller_id: int | None = None):
        """Одно событие со статусом заявки вызывающего"""
        await self.complete_past_events()

        async with self.session_factory() as session:
            event = await session.get(EventOrm, event_id)
            if not event:
                raise EventNotFound()

            status = None
            if caller_id is not None:
                query = select(ApplicationOrm.status).where(
                    and_(ApplicationOrm.event_id == event_id, ApplicationOrm.user_id == caller_id)
                )
                result = await session.execute(query)
                status = result.scalar()

            return to_event_view(event, status)


    async def reconcile_participant_count(self, event_id: int) -> SParticipantCount:
        """Сверить счетчик участников с числом одобренных заявок и исправить"""
        async with self.session_factory() as session:
            event = await session.get(EventOrm, event_id)
            if not event:
                raise EventNotFound()

            count_query = select(func.count()).select_from(ApplicationOrm).where(
                and_(ApplicationOrm.event_id == event_id, ApplicationOrm.status == "approved")
            )
            actual = (await session.execute(count_query)).scalar()
            stored = event.current_participants

            if stored != actual:
                logger.warning(
                    "Participant counter drift: event_id=%s stored=%s actual=%s",
                    event_id, stored, actual
                )
                await session.execute(
                    update(EventOrm).where(EventOrm.id == event_id).values(current_participants=actual)
                )
                await session.commit()

            return SParticipantCount(event_id=event_id, stored=stored, actual=actual, corrected=stored != actual)
