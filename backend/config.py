import os
from dotenv import load_dotenv




load_dotenv()


def _flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./events.db")

JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET", "change_me_access_secret")
JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "change_me_refresh_secret")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 15))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", 7))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 12))

ALLOW_ORGANIZER_SIGNUP = _flag("ALLOW_ORGANIZER_SIGNUP")
RESET_DATABASE = _flag("RESET_DATABASE")
SEED_DEMO_DATA = _flag("SEED_DEMO_DATA")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://127.0.0.1:5500").split(",")
    if origin.strip()
]
