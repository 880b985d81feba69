from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from datetime import datetime
from typing import Annotated, Literal, Optional, List, Union




class _Notice(BaseModel):
    """Общие поля всех уведомлений о событии.

    Каждый вид уведомления объявляет свой ``kind`` и сам формирует заголовок
    и текст, поэтому в ленту не попадает произвольный payload.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int
    event_id: int
    event_title: str

    priority: Literal["low", "medium", "high"] = "medium"
    application_id: Optional[int] = None

    @property
    def action_url(self) -> str:
        return f"/events/{self.event_id}"

    def render_title(self) -> str:
        raise NotImplementedError

    def render_message(self) -> str:
        raise NotImplementedError


class ParticipantApproved(_Notice):
    kind: Literal["participant_approved"] = "participant_approved"
    application_id: int
    priority: Literal["low", "medium", "high"] = "high"

    def render_title(self) -> str:
        return "Заявка одобрена"

    def render_message(self) -> str:
        return f'Ваша заявка на "{self.event_title}" одобрена! Ждем вас на событии.'


class ParticipantRejected(_Notice):
    kind: Literal["participant_rejected"] = "participant_rejected"
    application_id: int
    rejection_reason: str

    def render_title(self) -> str:
        return "Заявка отклонена"

    def render_message(self) -> str:
        return f'Ваша заявка на "{self.event_title}" отклонена. Причина: {self.rejection_reason}'


class EventCancelled(_Notice):
    kind: Literal["event_cancelled"] = "event_cancelled"
    priority: Literal["low", "medium", "high"] = "high"

    def render_title(self) -> str:
        return "Событие отменено"

    def render_message(self) -> str:
        return f'Событие "{self.event_title}" отменено организатором.'


Notice = Annotated[
    Union[ParticipantApproved, ParticipantRejected, EventCancelled],
    Field(discriminator="kind")
]

notice_adapter = TypeAdapter(Notice)

NotificationType = Literal["participant_approved", "participant_rejected", "event_cancelled"]


class SNotification(BaseModel):
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    priority: str
    is_read: bool
    read_at: Optional[datetime] = None
    event_id: Optional[int] = None
    application_id: Optional[int] = None
    action_url: Optional[str] = None
    details: Notice
    created_at: datetime


class SNotificationListResponse(BaseModel):
    notifications: List[SNotification]
    total_count: int
    unread_count: int
    page: int
    page_size: int
    total_pages: int


class SUnreadCount(BaseModel):
    unread_count: int


class SMarkAllRead(BaseModel):
    modified_count: int
