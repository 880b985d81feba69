import logging
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from models.auth import RefreshTokenOrm, UserOrm
from repositories.auth import UserRepository
from schemas.auth import SAccessClaims, STokenPair, SUserLogin, SUserRegister
from utils.errors import AccountBlocked, Forbidden, InvalidCredentials, TokenExpired, TokenInvalid
from utils.passwords import verify_password
from utils.time import as_utc, utcnow
from utils.tokens import TokenCodec




logger = logging.getLogger(__name__)


class SessionManager:
    """Выдача, ротация и отзыв пар токенов.

    На пользователя хранится ровно одна строка refresh токена (уникальный
    ``user_id``), новая выдача затирает предыдущую. Access токен проверяется
    без обращения к хранилищу, кроме проверки флага блокировки.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        codec: TokenCodec,
        users: UserRepository,
        allow_organizer_signup: bool = False,
    ):
        self.session_factory = session_factory
        self.codec = codec
        self.users = users
        self.allow_organizer_signup = allow_organizer_signup


    async def register(self, user_data: SUserRegister):
        """Зарегистрировать пользователя и выдать пару токенов"""
        if user_data.role == "organizer" and not self.allow_organizer_signup:
            raise Forbidden("Регистрация организаторов отключена")

        user = await self.users.create_user(user_data, role=user_data.role)
        tokens = await self.issue_tokens(user)
        return user, tokens


    async def login(self, credentials: SUserLogin):
        """Вход по email и паролю"""
        user = await self.users.get_user_by_email(credentials.email)
        if not user:
            raise InvalidCredentials()

        if user.is_blocked:
            raise AccountBlocked()

        if not verify_password(credentials.password, user.password_hash):
            raise InvalidCredentials()

        await self.users.record_login(user.id)
        tokens = await self.issue_tokens(user)
        user = await self.users.get_user_by_id(user.id)
        logger.info("User logged in: user_id=%s", user.id)
        return user, tokens


    async def issue_tokens(self, user: UserOrm) -> STokenPair:
        """Выдать новую пару, заменив прежнюю сессию пользователя"""
        access_token = self.codec.create_access_token(user.id, user.email, user.role)
        refresh_token, expires_at = self.codec.create_refresh_token(user.id)

        async with self.session_factory() as session:
            await session.execute(delete(RefreshTokenOrm).where(RefreshTokenOrm.user_id == user.id))
            session.add(RefreshTokenOrm(user_id=user.id, token=refresh_token, expires_at=expires_at))
            await session.commit()

        return STokenPair(access_token=access_token, refresh_token=refresh_token)


    async def refresh(self, refresh_token: str) -> STokenPair:
        """Ротация: старый refresh токен удаляется, выдается новая пара.

        Удаление условное, поэтому из двух одновременных запросов с одним и
        тем же токеном выигрывает ровно один, второй получает TokenInvalid.
        """
        try:
            payload = self.codec.decode_refresh_token(refresh_token)
        except TokenExpired:
            await self.logout(refresh_token)
            raise

        async with self.session_factory() as session:
            query = select(RefreshTokenOrm).where(RefreshTokenOrm.token == refresh_token)
            result = await session.execute(query)
            stored = result.scalars().first()

            if not stored or str(stored.user_id) != payload["sub"]:
                raise TokenInvalid()

            if as_utc(stored.expires_at) < utcnow():
                await session.execute(delete(RefreshTokenOrm).where(RefreshTokenOrm.id == stored.id))
                await session.commit()
                raise TokenExpired()

            user = await session.get(UserOrm, stored.user_id)
            if not user:
                raise TokenInvalid()
            if user.is_blocked:
                raise AccountBlocked()
            # После rollback экземпляры истекают, поэтому поля читаются заранее
            user_id, email, role = user.id, user.email, user.role

            consumed = await session.execute(
                delete(RefreshTokenOrm)
                .where(RefreshTokenOrm.token == refresh_token)
                .execution_options(synchronize_session=False)
            )
            if consumed.rowcount != 1:
                await session.rollback()
                logger.info("Refresh token reuse refused: user_id=%s", user_id)
                raise TokenInvalid()

            access_token = self.codec.create_access_token(user_id, email, role)
            new_refresh_token, expires_at = self.codec.create_refresh_token(user_id)
            session.add(RefreshTokenOrm(user_id=user_id, token=new_refresh_token, expires_at=expires_at))
            try:
                await session.commit()
            except IntegrityError as e:
                # Параллельный вход уже занял сессию пользователя
                await session.rollback()
                raise TokenInvalid() from e

        return STokenPair(access_token=access_token, refresh_token=new_refresh_token)


    async def logout(self, refresh_token: str | None):
        """Отозвать refresh токен; отсутствие токена не ошибка"""
        if not refresh_token:
            return

        async with self.session_factory() as session:
            await session.execute(delete(RefreshTokenOrm).where(RefreshTokenOrm.token == refresh_token))
            await session.commit()


    async def verify_access_token(self, access_token: str) -> SAccessClaims:
        """Проверить access токен и флаг блокировки пользователя"""
        payload = self.codec.decode_access_token(access_token)

        try:
            user_id = int(payload["sub"])
        except (KeyError, ValueError) as e:
            raise TokenInvalid() from e

        blocked = await self.users.is_user_blocked(user_id)
        if blocked is None:
            raise TokenInvalid()
        if blocked:
            raise AccountBlocked()

        return SAccessClaims(user_id=user_id, email=payload.get("email", ""), role=payload.get("role", "member"))
