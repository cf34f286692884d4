"""HTTP surface: routes, status codes and the error envelope."""

import pytest
from sqlalchemy import select

from app.models.invitation import Invitation
from tests.conftest import DEFAULT_PASSWORD, auth_headers


async def _token_for(session_factory, email: str) -> str:
    async with session_factory() as session:
        result = await session.execute(
            select(Invitation.token)
            .where(Invitation.email == email)
            .order_by(Invitation.created_at.desc())
        )
        return result.scalars().first()


async def _invite(client, actor, email="newbie@example.com", **extra):
    response = await client.post(
        "/api/invitations",
        json={"email": email, **extra},
        headers=auth_headers(actor),
    )
    assert response.status_code == 201, response.text
    return response.json()


def _assert_error(response, status_code: int, kind: str):
    assert response.status_code == status_code, response.text
    body = response.json()
    assert body["success"] is False
    assert body["error"]["kind"] == kind
    assert body["error"]["status"] == status_code
    assert body["error"]["trace_id"] == response.headers["X-Request-ID"]


class TestHealth:
    async def test_healthz(self, client):
        response = await client.get("/api/healthz")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_security_headers_present(self, client):
        response = await client.get("/api/healthz")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Request-ID" in response.headers


class TestAuth:
    async def test_login_returns_token_and_sets_cookie(self, client, manager):
        response = await client.post(
            "/api/auth/login",
            json={"email": manager.email, "password": DEFAULT_PASSWORD},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["data"]["id"] == manager.id
        assert body["access_token"]
        assert "projecthub_token" in response.cookies

        me = await client.get(
            "/api/auth/me",
            headers={"Authorization": f"Bearer {body['access_token']}"},
        )
        assert me.json()["email"] == manager.email

    async def test_wrong_password_is_unauthorized(self, client, manager):
        response = await client.post(
            "/api/auth/login",
            json={"email": manager.email, "password": "not-the-password"},
        )
        _assert_error(response, 401, "Unauthorized")

    async def test_protected_route_requires_credentials(self, client):
        _assert_error(await client.get("/api/auth/me"), 401, "Unauthorized")

    async def test_garbage_token_is_unauthorized(self, client):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        _assert_error(response, 401, "Unauthorized")


@pytest.mark.invitation
class TestInvitationRoutes:
    async def test_create_returns_link_and_sends_email(self, client, manager, session_factory, email_outbox):
        body = await _invite(client, manager, role="manager", department="Design")
        token = await _token_for(session_factory, "newbie@example.com")

        assert body["success"] is True
        assert body["data"]["status"] == "pending"
        assert body["data"]["invited_by"]["id"] == manager.id
        assert body["invitation_link"].endswith(f"/accept-invitation/{token}")
        assert "token" not in body["data"]
        assert [e.to_email for e in email_outbox.sent] == ["newbie@example.com"]

    async def test_create_succeeds_when_email_fails(self, client, manager, email_outbox):
        email_outbox.fail = True

        body = await _invite(client, manager)

        assert body["data"]["status"] == "pending"
        assert email_outbox.sent == []

    async def test_duplicate_invitation_conflicts(self, client, manager, admin):
        await _invite(client, manager)
        response = await client.post(
            "/api/invitations",
            json={"email": "NEWBIE@example.com"},
            headers=auth_headers(admin),
        )
        _assert_error(response, 409, "DuplicateActiveInvitation")

    async def test_existing_account_conflicts(self, client, manager, member):
        response = await client.post(
            "/api/invitations",
            json={"email": member.email},
            headers=auth_headers(manager),
        )
        _assert_error(response, 409, "UserAlreadyExists")

    async def test_members_are_forbidden(self, client, member):
        response = await client.post(
            "/api/invitations",
            json={"email": "x@example.com"},
            headers=auth_headers(member),
        )
        _assert_error(response, 403, "Forbidden")

    async def test_invalid_payload_is_validation_error(self, client, manager):
        response = await client.post(
            "/api/invitations",
            json={"email": "not-an-email", "role": "owner"},
            headers=auth_headers(manager),
        )
        _assert_error(response, 422, "ValidationError")
        assert response.json()["error"]["details"]

    async def test_public_lookup_accept_round_trip(self, client, manager, project, session_factory):
        await _invite(client, manager, role="manager", projectId=project.id)
        token = await _token_for(session_factory, "newbie@example.com")

        lookup = await client.get(f"/api/invitations/token/{token}")
        assert lookup.status_code == 200
        assert lookup.json()["data"]["invited_by"]["name"] == manager.name
        assert lookup.json()["data"]["project"]["id"] == project.id

        accepted = await client.post(
            f"/api/invitations/accept/{token}",
            json={"name": "Nora New", "password": "secret123"},
        )
        assert accepted.status_code == 201
        account = accepted.json()
        assert account["data"]["role"] == "manager"
        assert account["data"]["email"] == "newbie@example.com"

        again = await client.get(f"/api/invitations/token/{token}")
        _assert_error(again, 404, "NotFoundOrExpired")

        login = await client.post(
            "/api/auth/login",
            json={"email": "newbie@example.com", "password": "secret123"},
        )
        assert login.status_code == 200

        notifications = await client.get("/api/notifications", headers=auth_headers(manager))
        items = notifications.json()["data"]
        assert [n["type"] for n in items] == ["team_added"]
        assert items[0]["message"] == "Nora New has accepted your invitation and joined the team"

    async def test_accept_rejects_short_password(self, client, manager, session_factory):
        await _invite(client, manager)
        token = await _token_for(session_factory, "newbie@example.com")

        response = await client.post(
            f"/api/invitations/accept/{token}",
            json={"name": "Nora New", "password": "123"},
        )
        _assert_error(response, 422, "ValidationError")

    async def test_decline_then_decline_again(self, client, manager, session_factory):
        await _invite(client, manager)
        token = await _token_for(session_factory, "newbie@example.com")

        first = await client.post(f"/api/invitations/decline/{token}")
        assert first.status_code == 200
        assert first.json()["message"] == "Invitation declined"
        assert first.json()["data"]["status"] == "declined"

        _assert_error(await client.post(f"/api/invitations/decline/{token}"), 404, "NotFoundOrExpired")

    async def test_unknown_token_is_not_found_or_expired(self, client):
        _assert_error(await client.get("/api/invitations/token/deadbeef"), 404, "NotFoundOrExpired")

    async def test_cancel_permissions(self, client, manager, other_manager):
        body = await _invite(client, manager)
        invitation_id = body["data"]["id"]

        denied = await client.delete(
            f"/api/invitations/{invitation_id}", headers=auth_headers(other_manager)
        )
        _assert_error(denied, 403, "Forbidden")

        cancelled = await client.delete(
            f"/api/invitations/{invitation_id}", headers=auth_headers(manager)
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["message"] == "Invitation cancelled"
        assert cancelled.json()["data"]["status"] == "expired"

        missing = await client.delete("/api/invitations/missing", headers=auth_headers(manager))
        _assert_error(missing, 404, "NotFound")

    async def test_resend_rotates_token(self, client, manager, session_factory, email_outbox):
        body = await _invite(client, manager)
        old_token = await _token_for(session_factory, "newbie@example.com")

        response = await client.post(
            f"/api/invitations/{body['data']['id']}/resend", headers=auth_headers(manager)
        )

        assert response.status_code == 200
        new_token = await _token_for(session_factory, "newbie@example.com")
        assert new_token != old_token
        assert response.json()["invitation_link"].endswith(new_token)
        assert len(email_outbox.sent) == 2
        _assert_error(await client.get(f"/api/invitations/token/{old_token}"), 404, "NotFoundOrExpired")

    async def test_resend_after_accept_is_invalid(self, client, manager, session_factory):
        body = await _invite(client, manager)
        token = await _token_for(session_factory, "newbie@example.com")
        await client.post(
            f"/api/invitations/accept/{token}",
            json={"name": "Nora New", "password": "secret123"},
        )

        response = await client.post(
            f"/api/invitations/{body['data']['id']}/resend", headers=auth_headers(manager)
        )
        _assert_error(response, 409, "InvalidTransition")

    async def test_list_and_stats(self, client, manager, other_manager, admin):
        await _invite(client, manager, email="mine@example.com")
        await _invite(client, other_manager, email="theirs@example.com")

        mine = await client.get("/api/invitations", headers=auth_headers(manager))
        assert mine.json()["total"] == 1
        assert mine.json()["data"][0]["email"] == "mine@example.com"

        pending = await client.get(
            "/api/invitations", params={"status": "pending"}, headers=auth_headers(admin)
        )
        assert pending.json()["total"] == 2

        stats = await client.get("/api/invitations/stats", headers=auth_headers(admin))
        assert stats.json() == {"pending": 2, "accepted": 0, "declined": 0, "expired": 0, "total": 2}

    async def test_list_rejects_unknown_status(self, client, admin):
        response = await client.get(
            "/api/invitations", params={"status": "archived"}, headers=auth_headers(admin)
        )
        _assert_error(response, 422, "ValidationError")


@pytest.mark.notification
class TestNotificationRoutes:
    async def _accepted_invitation(self, client, manager, session_factory, email):
        await _invite(client, manager, email=email)
        token = await _token_for(session_factory, email)
        await client.post(
            f"/api/invitations/accept/{token}",
            json={"name": "Nora New", "password": "secret123"},
        )

    async def test_read_flow(self, client, manager, session_factory):
        await self._accepted_invitation(client, manager, session_factory, "one@example.com")
        await self._accepted_invitation(client, manager, session_factory, "two@example.com")
        headers = auth_headers(manager)

        listing = (await client.get("/api/notifications", headers=headers)).json()
        assert (listing["total"], listing["unread_count"]) == (2, 2)

        first_id = listing["data"][0]["id"]
        read = await client.put(f"/api/notifications/{first_id}/read", headers=headers)
        assert read.status_code == 200
        assert read.json()["data"]["is_read"] is True

        unread = (await client.get("/api/notifications", params={"isRead": "false"}, headers=headers)).json()
        assert unread["total"] == 1

        read_all = await client.put("/api/notifications/read-all", headers=headers)
        assert read_all.json()["updated"] == 1

        stats = (await client.get("/api/notifications/stats", headers=headers)).json()
        assert stats["unread"] == 0
        assert stats["by_type"] == {"team_added": 2}

        deleted = await client.delete(f"/api/notifications/{first_id}", headers=headers)
        assert deleted.status_code == 200
        assert (await client.get("/api/notifications", headers=headers)).json()["total"] == 1

    async def test_other_users_notification_is_not_found(self, client, manager, member, session_factory):
        await self._accepted_invitation(client, manager, session_factory, "three@example.com")
        listing = (await client.get("/api/notifications", headers=auth_headers(manager))).json()
        notification_id = listing["data"][0]["id"]

        response = await client.put(
            f"/api/notifications/{notification_id}/read", headers=auth_headers(member)
        )
        _assert_error(response, 404, "NotFound")

    async def test_requires_authentication(self, client):
        _assert_error(await client.get("/api/notifications"), 401, "Unauthorized")
