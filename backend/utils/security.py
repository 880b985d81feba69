import logging
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from repositories.session import SessionManager
from schemas.auth import SAccessClaims
from utils.dependencies import get_session_manager
from utils.errors import AuthError, Forbidden
from utils.http import http_error




logger = logging.getLogger(__name__)

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    sessions: SessionManager = Depends(get_session_manager)
) -> SAccessClaims:
    """Получить текущего пользователя по access токену"""
    try:
        return await sessions.verify_access_token(credentials.credentials)
    except AuthError as e:
        raise http_error(e)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_security),
    sessions: SessionManager = Depends(get_session_manager)
) -> SAccessClaims | None:
    """Текущий пользователь или None; недействительный токен дает анонимный запрос"""
    if credentials is None:
        return None
    try:
        return await sessions.verify_access_token(credentials.credentials)
    except AuthError as e:
        logger.debug("Optional auth ignored: %s", e.code)
        return None


async def get_current_organizer(current_user: SAccessClaims = Depends(get_current_user)) -> SAccessClaims:
    """Получить текущего пользователя, если он организатор"""
    if not current_user.is_organizer:
        raise http_error(Forbidden("Недостаточно прав. Требуется роль организатора"))
    return current_user
