from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional, List
from utils.time import as_utc




class SEventBase(BaseModel):
    title: str = Field(
        min_length=1,
        max_length=100,
        description="Название события",
        examples=["Субботник в парке"]
    )
    description: str = Field(
        min_length=1,
        max_length=1000,
        description="Описание события",
        examples=["Уборка центрального парка, инвентарь выдаем на месте"]
    )
    location: str = Field(
        min_length=1,
        max_length=200,
        description="Место проведения",
        examples=["Центральный парк"]
    )
    category: str = Field(
        min_length=1,
        max_length=50,
        description="Категория события",
        examples=["Экология"]
    )
    price: Decimal = Field(
        Decimal("0"),
        ge=0,
        description="Стоимость участия (информационно, оплата не поддерживается)"
    )
    event_date: datetime = Field(
        description="Дата и время события",
        examples=["2030-01-15T10:00:00Z"]
    )
    registration_deadline: Optional[datetime] = Field(
        None,
        description="Дедлайн регистрации, должен быть раньше даты события"
    )
    max_participants: int = Field(
        ge=1,
        le=10000,
        description="Максимальное число участников"
    )

    @field_validator("event_date", "registration_deadline")
    @classmethod
    def normalize_to_utc(cls, value):
        return as_utc(value)


class SEventCreate(SEventBase):
    @model_validator(mode="after")
    def check_schedule(self):
        if self.registration_deadline and self.registration_deadline >= self.event_date:
            raise ValueError("registration_deadline must be before event_date")
        return self


class SEventUpdate(BaseModel):
    # current_participants здесь нет: счетчик меняют только заявки
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    location: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    price: Optional[Decimal] = Field(None, ge=0)
    event_date: Optional[datetime] = None
    registration_deadline: Optional[datetime] = None
    max_participants: Optional[int] = Field(None, ge=1, le=10000)

    @field_validator("event_date", "registration_deadline")
    @classmethod
    def normalize_to_utc(cls, value):
        return as_utc(value)


class SEventFilter(BaseModel):
    search: Optional[str] = None
    category: Optional[str] = None
    status: Optional[Literal["active", "cancelled", "completed"]] = None
    upcoming: bool = False
    sort_by: Literal["event_date", "created_at", "title"] = "event_date"
    sort_order: Literal["asc", "desc"] = "asc"


class SEvent(BaseModel):
    id: int
    title: str
    description: str
    location: str
    category: str
    price: Decimal
    event_date: datetime
    registration_deadline: Optional[datetime] = None
    max_participants: int
    current_participants: int
    status: str
    created_by: int
    created_at: datetime
    updated_at: datetime
    is_full: bool = False
    is_registration_closed: bool = False

    model_config = ConfigDict(from_attributes=True)


class SEventWithStatus(SEvent):
    participation_status: Optional[Literal["pending", "approved", "rejected"]] = Field(
        None,
        description="Статус заявки текущего пользователя"
    )


class SEventListResponse(BaseModel):
    events: List[SEventWithStatus]
    total_count: int
    page: int
    page_size: int
    total_pages: int


class SParticipantCount(BaseModel):
    event_id: int
    stored: int
    actual: int
    corrected: bool
