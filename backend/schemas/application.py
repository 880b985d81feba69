from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Literal, Optional, List




class SApplicationCreate(BaseModel):
    emergency_contact: Optional[str] = Field(None, max_length=200, description="Контакт на экстренный случай")
    dietary_requirements: Optional[str] = Field(None, max_length=500, description="Ограничения в питании")
    accessibility_needs: Optional[str] = Field(None, max_length=500, description="Особые потребности")
    notes: Optional[str] = Field(None, max_length=500, description="Комментарий к заявке")


class SApplicationUpdate(BaseModel):
    # Статус меняется только через approve/reject
    model_config = ConfigDict(extra="forbid")

    emergency_contact: Optional[str] = Field(None, max_length=200)
    dietary_requirements: Optional[str] = Field(None, max_length=500)
    accessibility_needs: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=500)


class SApplicationApprove(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class SApplicationReject(BaseModel):
    rejection_reason: str = Field(max_length=500, description="Причина отказа")
    notes: Optional[str] = Field(None, max_length=500)


class SBulkApprove(BaseModel):
    application_ids: List[int] = Field(min_length=1, max_length=500)


class SBulkApproveResult(BaseModel):
    approved_count: int


class SApplication(BaseModel):
    id: int
    event_id: int
    user_id: int
    status: Literal["pending", "approved", "rejected"]
    applied_at: datetime
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[int] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    emergency_contact: Optional[str] = None
    dietary_requirements: Optional[str] = None
    accessibility_needs: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class SApplicationWithUser(SApplication):
    user_first_name: str
    user_last_name: str
    user_email: str
    user_phone: Optional[str] = None


class SApplicationWithEvent(SApplication):
    event_title: str
    event_date: datetime
    event_location: str
    event_status: str


class SParticipantListResponse(BaseModel):
    applications: List[SApplicationWithUser]
    total_count: int
    page: int
    page_size: int
    total_pages: int


class SApplicationListResponse(BaseModel):
    applications: List[SApplicationWithEvent]
    total_count: int
    page: int
    page_size: int
    total_pages: int


class SPendingApplication(SApplicationWithUser):
    event_title: str
    event_date: datetime
    event_location: str


class SPendingListResponse(BaseModel):
    applications: List[SPendingApplication]
    total_count: int
    page: int
    page_size: int
    total_pages: int
