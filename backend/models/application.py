from datetime import datetime, timezone
from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from database import Model




class ApplicationOrm(Model):
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_applications_event_user"),
    )
    
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(nullable=False, index=True)
    event_id: Mapped[int] = mapped_column(nullable=False, index=True)
    status: Mapped[str] = mapped_column(nullable=False, default="pending")  # pending, approved, rejected
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    reviewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[int] = mapped_column(nullable=True)
    rejection_reason: Mapped[str] = mapped_column(String(500), nullable=True)
    notes: Mapped[str] = mapped_column(String(500), nullable=True)
    emergency_contact: Mapped[str] = mapped_column(String(200), nullable=True)
    dietary_requirements: Mapped[str] = mapped_column(String(500), nullable=True)
    accessibility_needs: Mapped[str] = mapped_column(String(500), nullable=True)


class ApplicationBarOrm(Model):
    """Запрет повторной подачи после отказа, переживает удаление заявки"""
    __tablename__ = "application_bars"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_application_bars_event_user"),
    )
    
    id: Mapped[int] = mapped_column(primary_key=True)
    event_id: Mapped[int] = mapped_column(nullable=False)
    user_id: Mapped[int] = mapped_column(nullable=False)
    application_id: Mapped[int] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
