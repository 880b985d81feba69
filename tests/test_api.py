from datetime import timedelta

from utils.time import utcnow

PASSWORD = "secret123"


def _event_payload(**overrides):
    payload = {
        "title": "Субботник",
        "description": "Уборка парка",
        "location": "Центральный парк",
        "category": "Экология",
        "event_date": (utcnow() + timedelta(days=7)).isoformat(),
        "max_participants": 1,
    }
    payload.update(overrides)
    return payload


async def _register(client, email):
    response = await client.post("/auth/register", json={
        "email": email,
        "password": PASSWORD,
        "first_name": "Иван",
        "last_name": "Петров",
    })
    assert response.status_code == 201, response.text
    body = response.json()
    return body["user"], {"Authorization": f"Bearer {body['access_token']}"}


async def test_register_login_and_me(client):
    user, headers = await _register(client, "ivan@example.com")
    assert user["role"] == "member"

    response = await client.get("/auth/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["email"] == "ivan@example.com"

    response = await client.post("/auth/login", json={"email": "ivan@example.com", "password": "wrong-password"})
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "invalid_credentials"


async def test_organizer_signup_is_forbidden_by_default(client):
    response = await client.post("/auth/register", json={
        "email": "boss@example.com",
        "password": PASSWORD,
        "first_name": "Анна",
        "last_name": "Организатор",
        "role": "organizer",
    })
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "forbidden"


async def test_refresh_reuse_is_rejected(client):
    response = await client.post("/auth/register", json={
        "email": "ivan@example.com", "password": PASSWORD, "first_name": "Иван", "last_name": "Петров"
    })
    refresh_token = response.json()["refresh_token"]

    rotated = await client.post("/auth/refresh", json={"refresh_token": refresh_token})
    assert rotated.status_code == 200
    assert rotated.json()["token_type"] == "bearer"

    reused = await client.post("/auth/refresh", json={"refresh_token": refresh_token})
    assert reused.status_code == 401
    assert reused.json()["detail"]["code"] == "token_invalid"

    response = await client.post("/auth/logout", json={"refresh_token": rotated.json()["refresh_token"]})
    assert response.status_code == 200


async def test_protected_routes_require_token(client):
    response = await client.get("/participants/my-applications")
    assert response.status_code in (401, 403)

    response = await client.get("/auth/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "token_invalid"


async def test_admission_flow_over_http(client, organizer, login):
    organizer_headers = await login(organizer.email)
    _, alice_headers = await _register(client, "alice@example.com")
    _, bob_headers = await _register(client, "bob@example.com")

    response = await client.post("/events", json=_event_payload(), headers=organizer_headers)
    assert response.status_code == 201, response.text
    event_id = response.json()["id"]

    response = await client.post("/events", json=_event_payload(), headers=alice_headers)
    assert response.status_code == 403

    alice_join = await client.post(f"/participants/events/{event_id}/join", headers=alice_headers)
    assert alice_join.status_code == 201
    assert alice_join.json()["status"] == "pending"
    bob_join = await client.post(
        f"/participants/events/{event_id}/join", json={"notes": "Возьму перчатки"}, headers=bob_headers
    )
    assert bob_join.status_code == 201

    response = await client.post(f"/participants/events/{event_id}/join", headers=alice_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "already_applied"

    response = await client.post(f"/participants/{alice_join.json()['id']}/approve", headers=alice_headers)
    assert response.status_code == 403

    response = await client.post(f"/participants/{alice_join.json()['id']}/approve", headers=organizer_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "approved"

    response = await client.post(f"/participants/{bob_join.json()['id']}/approve", headers=organizer_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "event_full"

    response = await client.get(f"/events/{event_id}", headers=alice_headers)
    assert response.json()["participation_status"] == "approved"
    assert response.json()["current_participants"] == 1
    assert response.json()["is_full"]

    response = await client.get(f"/events/{event_id}")
    assert response.json()["participation_status"] is None

    response = await client.delete(f"/participants/events/{event_id}/leave", headers=alice_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "approved_cannot_leave"

    response = await client.get(f"/participants/events/{event_id}", headers=organizer_headers)
    assert response.status_code == 200
    assert response.json()["total_count"] == 2


async def test_reject_requires_reason_and_bars_reapply(client, organizer, login):
    organizer_headers = await login(organizer.email)
    _, member_headers = await _register(client, "member@example.com")
    event_id = (await client.post("/events", json=_event_payload(), headers=organizer_headers)).json()["id"]
    application_id = (
        await client.post(f"/participants/events/{event_id}/join", headers=member_headers)
    ).json()["id"]

    response = await client.post(
        f"/participants/{application_id}/reject", json={"rejection_reason": " "}, headers=organizer_headers
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "reason_required"

    response = await client.post(
        f"/participants/{application_id}/reject", json={"rejection_reason": "late"}, headers=organizer_headers
    )
    assert response.status_code == 200
    assert response.json()["rejection_reason"] == "late"

    response = await client.delete(f"/participants/events/{event_id}/leave", headers=member_headers)
    assert response.status_code == 200

    response = await client.post(f"/participants/events/{event_id}/join", headers=member_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "permanently_barred"


async def test_bulk_approve_reports_full_events(client, organizer, login):
    organizer_headers = await login(organizer.email)
    event_id = (await client.post("/events", json=_event_payload(), headers=organizer_headers)).json()["id"]
    ids = []
    for email in ("a@example.com", "b@example.com"):
        _, headers = await _register(client, email)
        ids.append((await client.post(f"/participants/events/{event_id}/join", headers=headers)).json()["id"])

    response = await client.post("/participants/bulk-approve", json={"application_ids": ids}, headers=organizer_headers)
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "batch_capacity_exceeded"
    assert detail["event_ids"] == [event_id]

    response = await client.post(
        "/participants/bulk-approve", json={"application_ids": ids[:1]}, headers=organizer_headers
    )
    assert response.status_code == 200
    assert response.json()["approved_count"] == 1


async def test_event_validation(client, organizer, login):
    organizer_headers = await login(organizer.email)

    response = await client.post(
        "/events",
        json=_event_payload(registration_deadline=(utcnow() + timedelta(days=8)).isoformat()),
        headers=organizer_headers
    )
    assert response.status_code == 422

    event_id = (await client.post("/events", json=_event_payload(), headers=organizer_headers)).json()["id"]
    response = await client.patch(
        f"/events/{event_id}", json={"current_participants": 5}, headers=organizer_headers
    )
    assert response.status_code == 422

    response = await client.patch(f"/events/{event_id}", json={"max_participants": 3}, headers=organizer_headers)
    assert response.status_code == 200
    assert response.json()["max_participants"] == 3


async def test_cancel_event_and_notifications(client, organizer, login):
    organizer_headers = await login(organizer.email)
    _, member_headers = await _register(client, "member@example.com")
    event_id = (await client.post("/events", json=_event_payload(), headers=organizer_headers)).json()["id"]
    application_id = (
        await client.post(f"/participants/events/{event_id}/join", headers=member_headers)
    ).json()["id"]
    await client.post(f"/participants/{application_id}/approve", headers=organizer_headers)

    response = await client.post(f"/events/{event_id}/cancel", headers=organizer_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    response = await client.delete(f"/events/{event_id}", headers=organizer_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "event_has_applications"

    response = await client.get("/notifications/unread-count", headers=member_headers)
    assert response.json()["unread_count"] == 2

    response = await client.get("/notifications", params={"type": "event_cancelled"}, headers=member_headers)
    body = response.json()
    assert body["total_count"] == 1
    assert body["unread_count"] == 2
    assert body["notifications"][0]["details"]["kind"] == "event_cancelled"
    notification_id = body["notifications"][0]["id"]

    response = await client.post(f"/notifications/{notification_id}/read", headers=organizer_headers)
    assert response.status_code == 404

    response = await client.post(f"/notifications/{notification_id}/read", headers=member_headers)
    assert response.status_code == 200
    assert response.json()["is_read"]

    response = await client.post("/notifications/read-all", headers=member_headers)
    assert response.json()["modified_count"] == 1

    response = await client.get("/notifications/latest", headers=member_headers)
    assert len(response.json()) == 2


async def test_blocking_user(client, organizer, login):
    organizer_headers = await login(organizer.email)
    member, member_headers = await _register(client, "member@example.com")

    response = await client.post(f"/users/{member['id']}/block", headers=organizer_headers)
    assert response.status_code == 200
    assert response.json()["is_blocked"]

    response = await client.get("/auth/me", headers=member_headers)
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "account_blocked"

    response = await client.post(f"/users/{organizer.id}/block", headers=organizer_headers)
    assert response.status_code == 400

    response = await client.post(f"/users/{member['id']}/unblock", headers=organizer_headers)
    assert response.json()["is_blocked"] is False
    response = await client.get("/auth/me", headers=member_headers)
    assert response.status_code == 200


async def test_public_listing_ignores_bad_token(client, organizer, login):
    organizer_headers = await login(organizer.email)
    event_id = (await client.post("/events", json=_event_payload(), headers=organizer_headers)).json()["id"]

    response = await client.get("/events", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 200
    assert response.json()["events"][0]["participation_status"] is None

    response = await client.get(f"/events/{event_id}", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 200


async def test_clear_deadline_over_http(client, organizer, login):
    organizer_headers = await login(organizer.email)
    payload = _event_payload(registration_deadline=(utcnow() + timedelta(days=1)).isoformat())
    event_id = (await client.post("/events", json=payload, headers=organizer_headers)).json()["id"]

    response = await client.patch(
        f"/events/{event_id}", json={"registration_deadline": None}, headers=organizer_headers
    )
    assert response.status_code == 200
    assert response.json()["registration_deadline"] is None


async def test_pending_queue_and_participant_update(client, organizer, login):
    organizer_headers = await login(organizer.email)
    _, member_headers = await _register(client, "member@example.com")
    event_id = (await client.post("/events", json=_event_payload(), headers=organizer_headers)).json()["id"]
    application_id = (
        await client.post(f"/participants/events/{event_id}/join", headers=member_headers)
    ).json()["id"]

    response = await client.get("/participants/pending", headers=member_headers)
    assert response.status_code == 403

    response = await client.get(
        "/participants/pending", params={"event_id": event_id, "search": "member"}, headers=organizer_headers
    )
    assert response.status_code == 200
    body = response.json()
    assert body["total_count"] == 1
    assert body["applications"][0]["event_title"] == "Субботник"

    response = await client.get(
        f"/participants/events/{event_id}", params={"search": "nobody"}, headers=organizer_headers
    )
    assert response.json()["total_count"] == 0

    response = await client.patch(
        f"/participants/{application_id}", json={"accessibility_needs": "Пандус"}, headers=organizer_headers
    )
    assert response.status_code == 200
    assert response.json()["accessibility_needs"] == "Пандус"

    response = await client.patch(
        f"/participants/{application_id}", json={"status": "approved"}, headers=organizer_headers
    )
    assert response.status_code == 422


async def test_profile_and_user_directory(client, organizer, login):
    organizer_headers = await login(organizer.email)
    member, member_headers = await _register(client, "member@example.com")

    response = await client.patch("/users/profile", json={"first_name": "Мария"}, headers=member_headers)
    assert response.status_code == 200
    assert response.json()["first_name"] == "Мария"

    response = await client.get("/users/profile", headers=member_headers)
    assert response.json()["first_name"] == "Мария"

    response = await client.patch("/users/profile", json={"role": "organizer"}, headers=member_headers)
    assert response.status_code == 422

    response = await client.get("/users", headers=member_headers)
    assert response.status_code == 403

    response = await client.get("/users", params={"role": "member"}, headers=organizer_headers)
    assert response.status_code == 200
    assert [user["id"] for user in response.json()["users"]] == [member["id"]]

    response = await client.get(f"/users/{member['id']}", headers=organizer_headers)
    assert response.json()["email"] == "member@example.com"

    response = await client.get("/users/9999", headers=organizer_headers)
    assert response.status_code == 404
