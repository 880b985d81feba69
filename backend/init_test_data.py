import logging
from datetime import timedelta
from decimal import Decimal
from sqlalchemy import select
from database import new_session
from models.auth import UserOrm
from models.event import EventOrm
from utils.passwords import hash_password
from utils.time import utcnow




logger = logging.getLogger(__name__)


async def init_users():
    """Инициализация тестовых пользователей"""
    async with new_session() as session:
        existing_users = await session.execute(select(UserOrm))
        if existing_users.scalars().first():
            return None

        organizer = UserOrm(
            email="organizer@example.com",
            password_hash=hash_password("organizer123"),
            first_name="Анна",
            last_name="Организатор",
            role="organizer"
        )
        members = [
            UserOrm(
                email=f"member{i}@example.com",
                password_hash=hash_password("member123"),
                first_name="Участник",
                last_name=str(i),
                role="member"
            )
            for i in range(1, 4)
        ]

        session.add(organizer)
        session.add_all(members)
        await session.commit()
        await session.refresh(organizer)
        return organizer.id


async def init_events(organizer_id: int):
    """Инициализация тестовых событий"""
    async with new_session() as session:
        now = utcnow()
        events = [
            EventOrm(
                title="Субботник в парке",
                description="Уборка центрального парка, инвентарь выдаем на месте",
                location="Центральный парк",
                category="Экология",
                price=Decimal("0"),
                event_date=now + timedelta(days=14),
                registration_deadline=now + timedelta(days=10),
                max_participants=20,
                created_by=organizer_id
            ),
            EventOrm(
                title="Мастер-класс по фотографии",
                description="Камерный мастер-класс для начинающих",
                location="Студия на Ленина, 10",
                category="Образование",
                price=Decimal("1500"),
                event_date=now + timedelta(days=30),
                max_participants=2,
                created_by=organizer_id
            ),
        ]

        session.add_all(events)
        await session.commit()


async def init_all_test_data():
    """Инициализация всех тестовых данных"""
    organizer_id = await init_users()
    if organizer_id is None:
        logger.info("Тестовые данные уже есть")
        return
    await init_events(organizer_id)
    logger.info("Тестовые данные созданы")
