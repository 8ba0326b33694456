from __future__ import annotations

from ems.api.routes.auth import get_current_user, get_password_hash
from ems.models.log import ActivityLog
from ems.models.notification import Notification
from ems.models.user import User
from main import app, ensure_default_admin


async def test_login_issues_token(client, make_user):
    user = await make_user(password_hash=get_password_hash("s3cret!"))

    response = await client.post(
        "/api/auth/login", data={"username": user.email.upper(), "password": "s3cret!"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["token_type"] == "bearer"
    assert body["access_token"]
    assert (await User.get(user.id)).last_login is not None


async def test_login_rejects_bad_password_and_logs_it(client, make_user):
    user = await make_user(password_hash=get_password_hash("s3cret!"))

    response = await client.post("/api/auth/login", data={"username": user.email, "password": "nope"})

    assert response.status_code == 401
    failures = await ActivityLog.find(ActivityLog.action == "Login Failed").to_list()
    assert [entry.user for entry in failures] == [user.id]
    assert failures[0].success is False


async def test_login_rejects_unapproved_account(client, make_user):
    user = await make_user(password_hash=get_password_hash("s3cret!"), is_approved=False)

    response = await client.post("/api/auth/login", data={"username": user.email, "password": "s3cret!"})

    assert response.status_code == 403
    assert response.json()["message"] == "Account is pending approval"


async def test_token_authenticates_requests(client, make_user):
    user = await make_user(password_hash=get_password_hash("s3cret!"))
    login = await client.post("/api/auth/login", data={"username": user.email, "password": "s3cret!"})
    token = login.json()["access_token"]
    del app.dependency_overrides[get_current_user]

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    anonymous = await client.get("/api/auth/me")

    assert me.status_code == 200
    assert me.json()["data"]["user"]["employee_id"] == user.employee_id
    assert anonymous.status_code == 401


async def test_default_admin_created_once(database):
    await ensure_default_admin()
    await ensure_default_admin()

    admins = await User.find(User.employee_id == "ADMIN001").to_list()
    assert len(admins) == 1
    assert admins[0].is_approved is True


async def test_notifications_listing_and_read_tracking(client, session, make_user):
    user = session.login(await make_user())
    other = await make_user()
    first = Notification(recipient=user.id, title="One", message="first")
    await first.insert()
    await Notification(recipient=user.id, title="Two", message="second").insert()
    foreign = Notification(recipient=other.id, title="Theirs", message="not yours")
    await foreign.insert()

    listing = (await client.get("/api/notifications")).json()["data"]
    assert listing["unread_count"] == 2
    assert {n["title"] for n in listing["notifications"]} == {"One", "Two"}

    assert (await client.put(f"/api/notifications/{first.id}/read")).status_code == 200
    assert (await client.put(f"/api/notifications/{foreign.id}/read")).status_code == 404
    unread = (await client.get("/api/notifications", params={"unread_only": True})).json()["data"]
    assert [n["title"] for n in unread["notifications"]] == ["Two"]

    await client.put("/api/notifications/read-all")
    assert (await client.get("/api/notifications")).json()["data"]["unread_count"] == 0
    assert (await Notification.get(foreign.id)).is_read is False
