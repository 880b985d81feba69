from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Literal, Optional, List




class SUserRegister(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=6, max_length=72)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    role: Literal["member", "organizer"] = "member"

    @field_validator("password")
    @classmethod
    def check_password_bytes(cls, value: str) -> str:
        # bcrypt учитывает только первые 72 байта
        if len(value.encode("utf-8")) > 72:
            raise ValueError("password must not exceed 72 bytes")
        return value


class SUserLogin(BaseModel):
    email: str
    password: str


class SRefreshRequest(BaseModel):
    refresh_token: str


class SLogoutRequest(BaseModel):
    refresh_token: Optional[str] = None


class SUser(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: str
    is_blocked: bool
    login_count: int
    last_login_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class STokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class SUserSession(STokenPair):
    user: SUser


class SAccessClaims(BaseModel):
    user_id: int
    email: str
    role: Literal["member", "organizer"]

    @property
    def is_organizer(self) -> bool:
        return self.role == "organizer"


class SUserProfileUpdate(BaseModel):
    # email, роль и блокировка через профиль не меняются
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)


class SUserListResponse(BaseModel):
    users: List[SUser]
    total_count: int
    page: int
    page_size: int
    total_pages: int
