from datetime import timedelta
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import config
from database import new_session
from repositories.application import ApplicationRepository
from repositories.auth import UserRepository
from repositories.event import EventRepository
from repositories.notification import NotificationRepository
from repositories.session import SessionManager
from utils.tokens import TokenCodec




def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return new_session


def get_token_codec() -> TokenCodec:
    return TokenCodec(
        access_secret=config.JWT_ACCESS_SECRET,
        refresh_secret=config.JWT_REFRESH_SECRET,
        algorithm=config.JWT_ALGORITHM,
        access_ttl=timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_ttl=timedelta(days=config.REFRESH_TOKEN_EXPIRE_DAYS)
    )


def get_user_repository(session_factory=Depends(get_session_factory)) -> UserRepository:
    return UserRepository(session_factory)


def get_session_manager(
    session_factory=Depends(get_session_factory),
    codec: TokenCodec = Depends(get_token_codec),
    users: UserRepository = Depends(get_user_repository)
) -> SessionManager:
    return SessionManager(session_factory, codec, users, allow_organizer_signup=config.ALLOW_ORGANIZER_SIGNUP)


def get_event_repository(session_factory=Depends(get_session_factory)) -> EventRepository:
    return EventRepository(session_factory)


def get_notification_repository(session_factory=Depends(get_session_factory)) -> NotificationRepository:
    return NotificationRepository(session_factory)


def get_application_repository(
    session_factory=Depends(get_session_factory),
    notifications: NotificationRepository = Depends(get_notification_repository)
) -> ApplicationRepository:
    return ApplicationRepository(session_factory, notifications)
