import secrets
import typing as t
from datetime import datetime, timedelta

import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from utils.errors import TokenExpired, TokenInvalid
from utils.time import utcnow




class TokenCodec:
    """Подпись и проверка пары JWT.

    Access и refresh токены подписываются разными секретами, так что refresh
    токен нельзя предъявить вместо access и наоборот. В каждый токен кладется
    случайный ``jti``: две пары, выданные в одну секунду, не совпадают.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        self.access_secret = access_secret
        self.refresh_secret = refresh_secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    def _encode(self, claims: dict[str, t.Any], secret: str, ttl: timedelta, now: datetime) -> str:
        payload = {
            **claims,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
            "jti": secrets.token_urlsafe(16),
        }
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def create_access_token(self, user_id: int, email: str, role: str, now: datetime | None = None) -> str:
        now = now or utcnow()
        claims = {"sub": str(user_id), "email": email, "role": role, "type": "access"}
        return self._encode(claims, self.access_secret, self.access_ttl, now)

    def create_refresh_token(self, user_id: int, now: datetime | None = None) -> tuple[str, datetime]:
        now = now or utcnow()
        token = self._encode({"sub": str(user_id), "type": "refresh"}, self.refresh_secret, self.refresh_ttl, now)
        return token, now + self.refresh_ttl

    def _decode(self, token: str, secret: str, expected_type: str) -> dict[str, t.Any]:
        try:
            payload = jwt.decode(
                token,
                key=secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp", "iat", "jti"]},
            )
        except ExpiredSignatureError as e:
            raise TokenExpired() from e
        except InvalidTokenError as e:
            raise TokenInvalid() from e

        if payload.get("type") != expected_type:
            raise TokenInvalid()
        return payload

    def decode_access_token(self, token: str) -> dict[str, t.Any]:
        return self._decode(token, self.access_secret, "access")

    def decode_refresh_token(self, token: str) -> dict[str, t.Any]:
        return self._decode(token, self.refresh_secret, "refresh")
