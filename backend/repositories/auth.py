import logging
from sqlalchemy import select, update, or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from models.auth import UserOrm
from schemas.auth import SUserProfileUpdate, SUserRegister
from utils.errors import EmailTaken, UserNotFound
from utils.passwords import hash_password
from utils.time import utcnow




logger = logging.getLogger(__name__)


class UserRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory


    async def create_user(self, user_data: SUserRegister, role: str = "member"):
        """Создать пользователя"""
        async with self.session_factory() as session:
            user = UserOrm(
                email=user_data.email.strip().lower(),
                password_hash=hash_password(user_data.password),
                first_name=user_data.first_name,
                last_name=user_data.last_name,
                phone=user_data.phone,
                role=role
            )
            session.add(user)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise EmailTaken()
            await session.refresh(user)
            logger.info("User registered: user_id=%s role=%s", user.id, user.role)
            return user


    async def get_user_by_id(self, user_id: int):
        """Получить пользователя по ID"""
        async with self.session_factory() as session:
            query = select(UserOrm).where(UserOrm.id == user_id)
            result = await session.execute(query)
            return result.scalars().first()


    async def get_user_by_email(self, email: str):
        """Получить пользователя по email"""
        async with self.session_factory() as session:
            query = select(UserOrm).where(UserOrm.email == email.strip().lower())
            result = await session.execute(query)
            return result.scalars().first()


    async def is_user_blocked(self, user_id: int):
        """Флаг блокировки; None, если пользователя нет"""
        async with self.session_factory() as session:
            query = select(UserOrm.is_blocked).where(UserOrm.id == user_id)
            result = await session.execute(query)
            return result.scalar()


    async def record_login(self, user_id: int):
        """Обновить время и счетчик входов"""
        async with self.session_factory() as session:
            stmt = (
                update(UserOrm)
                .where(UserOrm.id == user_id)
                .values(last_login_at=utcnow(), login_count=UserOrm.login_count + 1)
            )
            await session.execute(stmt)
            await session.commit()


    async def set_blocked(self, user_id: int, blocked: bool):
        """Заблокировать или разблокировать пользователя"""
        async with self.session_factory() as session:
            stmt = update(UserOrm).where(UserOrm.id == user_id).values(is_blocked=blocked)
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise UserNotFound()
            await session.commit()
        logger.info("User block flag changed: user_id=%s blocked=%s", user_id, blocked)
        return await self.get_user_by_id(user_id)


    async def get_profile(self, user_id: int):
        """Профиль пользователя; UserNotFound, если его нет"""
        user = await self.get_user_by_id(user_id)
        if not user:
            raise UserNotFound()
        return user


    async def update_profile(self, user_id: int, profile_data: SUserProfileUpdate):
        """Обновить имя, фамилию и телефон"""
        update_data = profile_data.model_dump(exclude_unset=True)
        # Имя и фамилия обязательны, телефон можно стереть
        update_data = {
            field: value
            for field, value in update_data.items()
            if value is not None or field == "phone"
        }

        async with self.session_factory() as session:
            if update_data:
                stmt = update(UserOrm).where(UserOrm.id == user_id).values(**update_data)
                result = await session.execute(stmt)
                if result.rowcount == 0:
                    raise UserNotFound()
                await session.commit()

        return await self.get_profile(user_id)


    async def list_users(
        self,
        page: int = 1,
        page_size: int = 10,
        search: str | None = None,
        role: str | None = None,
        is_blocked: bool | None = None
    ):
        """Пользователи с фильтрами, новые первыми (организатор)"""
        async with self.session_factory() as session:
            conditions = []
            if search:
                pattern = f"%{search}%"
                conditions.append(or_(
                    UserOrm.first_name.ilike(pattern),
                    UserOrm.last_name.ilike(pattern),
                    UserOrm.email.ilike(pattern)
                ))
            if role:
                conditions.append(UserOrm.role == role)
            if is_blocked is not None:
                conditions.append(UserOrm.is_blocked == is_blocked)

            count_query = select(func.count()).select_from(UserOrm).where(*conditions)
            total_count = (await session.execute(count_query)).scalar()

            offset = (page - 1) * page_size
            query = (
                select(UserOrm)
                .where(*conditions)
                .order_by(UserOrm.created_at.desc(), UserOrm.id.desc())
                .offset(offset)
                .limit(page_size)
            )
            result = await session.execute(query)
            return result.scalars().all(), total_count
