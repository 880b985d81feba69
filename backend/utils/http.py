from fastapi import HTTPException
from utils.errors import AppError, AuthError




def http_error(error: AppError) -> HTTPException:
    """Перевести доменную ошибку в HTTPException с машиночитаемым кодом"""
    headers = None
    if isinstance(error, AuthError) and error.status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}
    return HTTPException(status_code=error.status_code, detail=error.as_detail(), headers=headers)


def total_pages(total_count: int, page_size: int) -> int:
    return (total_count + page_size - 1) // page_size if page_size > 0 else 0
