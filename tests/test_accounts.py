import pytest
from pydantic import ValidationError

from schemas.auth import SUserProfileUpdate
from utils.errors import UserNotFound


async def test_get_profile(users, make_user):
    member = await make_user()

    profile = await users.get_profile(member.id)
    assert profile.email == member.email

    with pytest.raises(UserNotFound):
        await users.get_profile(9999)


async def test_update_profile_changes_only_given_fields(users, make_user):
    member = await make_user()
    await users.update_profile(member.id, SUserProfileUpdate(phone="+79990000000"))

    profile = await users.update_profile(member.id, SUserProfileUpdate(first_name="Мария", last_name=None))

    assert profile.first_name == "Мария"
    assert profile.last_name == member.last_name
    assert profile.phone == "+79990000000"
    assert profile.role == "member"

    profile = await users.update_profile(member.id, SUserProfileUpdate(phone=None))
    assert profile.phone is None


async def test_update_profile_rejects_protected_fields():
    with pytest.raises(ValidationError):
        SUserProfileUpdate(role="organizer")


async def test_update_profile_of_missing_user(users):
    with pytest.raises(UserNotFound):
        await users.update_profile(9999, SUserProfileUpdate(first_name="Мария"))


async def test_list_users_filters(users, organizer, make_user):
    alice = await make_user(email="alice@example.com")
    await make_user(email="bob@example.com")
    await users.set_blocked(alice.id, True)

    items, total = await users.list_users()
    assert total == 3

    items, total = await users.list_users(role="organizer")
    assert [user.id for user in items] == [organizer.id]

    items, total = await users.list_users(is_blocked=True)
    assert [user.id for user in items] == [alice.id]

    items, total = await users.list_users(search="bob@")
    assert total == 1
    assert items[0].email == "bob@example.com"

    items, total = await users.list_users(page=2, page_size=2)
    assert total == 3
    assert len(items) == 1
