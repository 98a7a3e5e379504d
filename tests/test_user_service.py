"""Tests for user service."""

import pytest
from sqlalchemy import select

from productbazar.exceptions import NotFoundError, ValidationError
from productbazar.models import User, UserRole
from productbazar.models.user import RoleDetails
from productbazar.services.user_service import UserService, next_step, profile_completion


def test_profile_completion_weights():
    user = User(
        username="ada",
        first_name="Ada",
        last_name="Lovelace",
        email="ada@example.com",
        phone="+919876543210",
        about="Analyst",
    )
    completion = profile_completion(user)
    assert completion["completion_percentage"] == 70
    assert completion["is_complete"] is True
    assert completion["recommended_fields"] == ["bio", "country", "city"]

    user.bio, user.country, user.city = "Engines", "UK", "London"
    assert profile_completion(user)["completion_percentage"] == 100


def test_profile_completion_without_contact():
    completion = profile_completion(User(username="ghost", first_name="Ghost"))
    assert completion["completion_percentage"] == 14
    assert completion["missing_fields"][-1] == "contact method (email or phone)"
    assert completion["is_complete"] is False


def test_next_step_orders_pending_steps():
    user = User(
        username="new",
        email="new@example.com",
        phone="+919876543210",
        is_email_verified=False,
        is_phone_verified=False,
    )
    step = next_step(user)
    assert step["type"] == "email_verification"
    assert step["data"]["email"] == "ne***@example.com"
    assert [s["type"] for s in step["all_steps"]] == ["email_verification", "phone_verification"]
    assert step["progress"]["remaining"] == 2
    assert {r["type"] for r in step["recommendations"]} == {"verify_email", "verify_phone"}


def test_next_step_none_when_done():
    user = User(
        username="done",
        first_name="Done",
        last_name="User",
        email="done@example.com",
        phone="+919876543210",
        about="All set",
        is_email_verified=True,
        is_phone_verified=True,
    )
    assert next_step(user) is None


async def test_update_profile(db_session, make_user):
    user = await make_user(about="Builder", phone="+919876543210", is_phone_verified=True)
    updated = await UserService(db_session).update_profile(
        user, {"first_name": "  Grace ", "bio": "Compilers", "username": "Grace.H"}
    )
    assert updated.first_name == "Grace"
    assert updated.username == "grace.h"
    assert updated.is_profile_completed is True


async def test_update_profile_keeps_a_verified_contact(db_session, make_user):
    user = await make_user()
    with pytest.raises(ValidationError) as exc:
        await UserService(db_session).update_profile(user, {"email": "other@example.com"})
    assert exc.value.code == "VERIFIED_CONTACT_REQUIRED"


async def test_update_profile_rejects_taken_values(db_session, make_user):
    await make_user(username="taken", phone="+919812345678")
    user = await make_user()
    service = UserService(db_session)

    with pytest.raises(ValidationError) as exc:
        await service.update_profile(user, {"username": "taken"})
    assert exc.value.code == "USERNAME_TAKEN"

    with pytest.raises(ValidationError) as exc:
        await service.update_profile(user, {"phone": "98123 45678"})
    assert exc.value.code == "PHONE_EXISTS"

    with pytest.raises(ValidationError):
        await service.update_profile(user, {"phone": "12"})


async def test_check_username(db_session, make_user):
    await make_user(username="maker")
    service = UserService(db_session)
    assert await service.check_username(" Maker ") == {"username": "maker", "available": False}
    assert await service.check_username("fresh_name") == {"username": "fresh_name", "available": True}
    with pytest.raises(ValidationError):
        await service.check_username("no spaces")


async def test_generate_username(db_session, make_user):
    await make_user(username="jane")
    await make_user(username="jane1")
    assert await UserService(db_session).generate_username("jane") == "jane2"


async def test_add_secondary_role(db_session, make_user):
    user = await make_user(role=UserRole.JOBSEEKER)
    service = UserService(db_session)
    assert user.can_post_jobs is False

    await service.add_secondary_role(user, UserRole.AGENCY)
    assert user.secondary_roles == ["agency"]
    assert user.can_post_jobs is True
    assert user.can_apply_to_jobs is True

    roles = (
        await db_session.execute(select(RoleDetails.role).where(RoleDetails.user_id == user.id))
    ).scalars().all()
    assert roles == [UserRole.AGENCY]

    with pytest.raises(ValidationError):
        await service.add_secondary_role(user, UserRole.AGENCY)
    with pytest.raises(ValidationError):
        await service.add_secondary_role(user, UserRole.ADMIN)


async def test_upsert_role_details_merges(db_session, make_user):
    user = await make_user(role=UserRole.INVESTOR)
    service = UserService(db_session)

    record = await service.upsert_role_details(user, {"ticket_size": "50k"})
    record = await service.upsert_role_details(user, {"stage": "seed"})
    assert record.details == {"ticket_size": "50k", "stage": "seed"}

    with pytest.raises(ValidationError):
        await service.upsert_role_details(user, {"skills": []}, UserRole.FREELANCER)


async def test_get_role_details_unknown_user(db_session):
    with pytest.raises(NotFoundError):
        await UserService(db_session).get_role_details(404)


async def test_role_routes(client, make_user, auth_headers):
    user = await make_user(role=UserRole.FREELANCER)
    user_id, headers = user.id, auth_headers(user)

    updated = await client.put(
        "/api/v1/users/me/role-details",
        json={"details": {"hourly_rate": 80}},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["role"] == "freelancer"
    assert updated.json()["data"]["details"] == {"hourly_rate": 80}

    added = await client.post("/api/v1/users/me/roles", json={"role": "jobseeker"}, headers=headers)
    assert added.status_code == 201
    assert added.json()["data"]["secondary_roles"] == ["jobseeker"]
    assert added.json()["data"]["capabilities"]["can_apply_to_jobs"] is True

    details = await client.get(f"/api/v1/users/{user_id}/role-details")
    assert {d["role"] for d in details.json()["data"]} == {"freelancer", "jobseeker"}
