import logging
from sqlalchemy import select, update, and_, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from models.notification import NotificationOrm
from schemas.notification import Notice, SNotification, notice_adapter
from utils.errors import NotificationNotFound
from utils.time import utcnow




logger = logging.getLogger(__name__)


def to_notification_view(notification: NotificationOrm) -> SNotification:
    return SNotification(
        id=notification.id,
        user_id=notification.user_id,
        type=notification.type,
        title=notification.title,
        message=notification.message,
        priority=notification.priority,
        is_read=notification.is_read,
        read_at=notification.read_at,
        event_id=notification.event_id,
        application_id=notification.application_id,
        action_url=notification.action_url,
        details=notice_adapter.validate_python(notification.payload),
        created_at=notification.created_at
    )


class NotificationRepository:
    """Лента уведомлений пользователя, только дописывается.

    Запись уведомления не участвует в транзакции решения по заявке: ошибки
    записи ловит и логирует вызывающая сторона.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory


    async def create(self, notice: Notice):
        """Записать уведомление"""
        async with self.session_factory() as session:
            notification = NotificationOrm(
                user_id=notice.user_id,
                type=notice.kind,
                title=notice.render_title(),
                message=notice.render_message(),
                priority=notice.priority,
                event_id=notice.event_id,
                application_id=notice.application_id,
                action_url=notice.action_url,
                payload=notice.model_dump(mode="json")
            )
            session.add(notification)
            await session.commit()
            await session.refresh(notification)
            return notification


    async def list_for_user(
        self,
        user_id: int,
        page: int = 1,
        page_size: int = 10,
        notification_type: str | None = None,
        is_read: bool | None = None
    ):
        """Уведомления пользователя, новые первыми"""
        async with self.session_factory() as session:
            conditions = [NotificationOrm.user_id == user_id]
            if notification_type:
                conditions.append(NotificationOrm.type == notification_type)
            if is_read is not None:
                conditions.append(NotificationOrm.is_read == is_read)

            count_query = select(func.count()).select_from(NotificationOrm).where(*conditions)
            total_count = (await session.execute(count_query)).scalar()

            offset = (page - 1) * page_size
            query = (
                select(NotificationOrm)
                .where(*conditions)
                .order_by(NotificationOrm.created_at.desc(), NotificationOrm.id.desc())
                .offset(offset)
                .limit(page_size)
            )
            result = await session.execute(query)
            notifications = [to_notification_view(n) for n in result.scalars().all()]
            return notifications, total_count


    async def latest(self, user_id: int, limit: int = 10):
        """Последние N уведомлений"""
        notifications, _ = await self.list_for_user(user_id, page=1, page_size=limit)
        return notifications


    async def unread_count(self, user_id: int) -> int:
        async with self.session_factory() as session:
            query = select(func.count()).select_from(NotificationOrm).where(
                and_(NotificationOrm.user_id == user_id, NotificationOrm.is_read.is_(False))
            )
            return (await session.execute(query)).scalar()


    async def mark_read(self, notification_id: int, user_id: int):
        """Отметить уведомление прочитанным; чужие уведомления не находятся"""
        async with self.session_factory() as session:
            query = select(NotificationOrm).where(
                and_(NotificationOrm.id == notification_id, NotificationOrm.user_id == user_id)
            )
            result = await session.execute(query)
            notification = result.scalars().first()
            if not notification:
                raise NotificationNotFound()

            if not notification.is_read:
                notification.is_read = True
                notification.read_at = utcnow()
                await session.commit()
                await session.refresh(notification)

            return to_notification_view(notification)


    async def mark_all_read(self, user_id: int) -> int:
        async with self.session_factory() as session:
            stmt = (
                update(NotificationOrm)
                .where(and_(NotificationOrm.user_id == user_id, NotificationOrm.is_read.is_(False)))
                .values(is_read=True, read_at=utcnow())
            )
            result = await session.execute(stmt)
            await session.commit()
            logger.debug("Notifications marked read: user_id=%s count=%s", user_id, result.rowcount)
            return result.rowcount
