import logging

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from models.notification import NotificationOrm
from repositories.application import ApplicationRepository
from repositories.notification import NotificationRepository
from schemas.notification import EventCancelled, ParticipantApproved, ParticipantRejected
from utils.errors import NotificationNotFound


class BrokenLedger(NotificationRepository):
    async def create(self, notice):
        raise OperationalError("INSERT INTO notifications", {}, Exception("disk I/O error"))


async def _notifications_for_event(session_factory, event_id) -> int:
    async with session_factory() as session:
        query = select(func.count()).select_from(NotificationOrm).where(NotificationOrm.event_id == event_id)
        return (await session.execute(query)).scalar()


async def test_approval_writes_typed_notification(applications, notifications, organizer, make_user, make_event):
    member = await make_user()
    event = await make_event(title="Мастер-класс")
    application = await applications.join_event(event.id, member.id)

    await applications.approve_participant(application.id, organizer.id)

    items, total = await notifications.list_for_user(member.id)
    assert total == 1
    notification = items[0]
    assert notification.type == "participant_approved"
    assert notification.priority == "high"
    assert notification.action_url == f"/events/{event.id}"
    assert "Мастер-класс" in notification.message
    assert isinstance(notification.details, ParticipantApproved)
    assert notification.details.application_id == application.id


async def test_rejection_notification_carries_reason(applications, notifications, organizer, make_user, make_event):
    member = await make_user()
    event = await make_event()
    application = await applications.join_event(event.id, member.id)

    await applications.reject_participant(application.id, organizer.id, "late")

    [notification] = await notifications.latest(member.id)
    assert isinstance(notification.details, ParticipantRejected)
    assert notification.details.rejection_reason == "late"
    assert "late" in notification.message


async def test_failed_ledger_write_does_not_undo_approval(
    session_factory, events, organizer, make_user, make_event, caplog
):
    applications = ApplicationRepository(session_factory, BrokenLedger(session_factory))
    member = await make_user()
    event = await make_event()
    application = await applications.join_event(event.id, member.id)

    with caplog.at_level(logging.WARNING, logger="repositories.application"):
        approved = await applications.approve_participant(application.id, organizer.id)

    assert approved.status == "approved"
    assert (await events.get_event_by_id(event.id)).current_participants == 1
    assert await _notifications_for_event(session_factory, event.id) == 0
    assert any("participant_approved" in record.getMessage() for record in caplog.records)


async def test_failed_ledger_write_does_not_undo_bulk_approval(session_factory, events, organizer, make_user, make_event):
    applications = ApplicationRepository(session_factory, BrokenLedger(session_factory))
    event = await make_event(max_participants=2)
    ids = []
    for _ in range(2):
        member = await make_user()
        ids.append((await applications.join_event(event.id, member.id)).id)

    assert await applications.bulk_approve(ids, organizer.id) == 2
    assert (await events.get_event_by_id(event.id)).current_participants == 2
    assert await _notifications_for_event(session_factory, event.id) == 0


async def test_event_cancellation_notifies_active_applicants(
    applications, events, notifications, organizer, make_user, make_event
):
    pending, approved, rejected = await make_user(), await make_user(), await make_user()
    event = await make_event()
    await applications.join_event(event.id, pending.id)
    approved_application = await applications.join_event(event.id, approved.id)
    rejected_application = await applications.join_event(event.id, rejected.id)
    await applications.approve_participant(approved_application.id, organizer.id)
    await applications.reject_participant(rejected_application.id, organizer.id, "late")

    await events.cancel_event(event.id)
    delivered = await applications.notify_event_cancelled(event.id)

    assert delivered == 2
    for user in (pending, approved):
        items, _ = await notifications.list_for_user(user.id, notification_type="event_cancelled")
        assert len(items) == 1
        assert isinstance(items[0].details, EventCancelled)
    items, _ = await notifications.list_for_user(rejected.id, notification_type="event_cancelled")
    assert items == []


async def test_mark_read_and_unread_count(applications, notifications, organizer, make_user, make_event):
    member = await make_user()
    for _ in range(3):
        event = await make_event()
        application = await applications.join_event(event.id, member.id)
        await applications.approve_participant(application.id, organizer.id)

    assert await notifications.unread_count(member.id) == 3

    latest = await notifications.latest(member.id, limit=2)
    assert len(latest) == 2
    assert latest[0].id > latest[1].id

    read = await notifications.mark_read(latest[0].id, member.id)
    assert read.is_read
    assert read.read_at is not None
    assert await notifications.unread_count(member.id) == 2

    unread, total = await notifications.list_for_user(member.id, is_read=False)
    assert total == 2
    assert all(not n.is_read for n in unread)

    assert await notifications.mark_all_read(member.id) == 2
    assert await notifications.unread_count(member.id) == 0
    assert await notifications.mark_all_read(member.id) == 0


async def test_cannot_mark_someone_elses_notification(applications, notifications, organizer, make_user, make_event):
    member, stranger = await make_user(), await make_user()
    event = await make_event()
    application = await applications.join_event(event.id, member.id)
    await applications.approve_participant(application.id, organizer.id)
    [notification] = await notifications.latest(member.id)

    with pytest.raises(NotificationNotFound):
        await notifications.mark_read(notification.id, stranger.id)
    assert await notifications.unread_count(member.id) == 1
