"""Racing requests on separate connections: the store's constraints decide the winner."""

import asyncio

import pytest
from sqlalchemy import func, select

from app.core.errors import NotFoundOrExpired, ProjectHubError
from app.models.invitation import Invitation
from app.models.user import User
from app.schemas.invitation import AcceptInvitationRequest, InvitationCreate
from app.services.invitation_lifecycle import InvitationLifecycle
from tests.conftest import create_user


async def _attempt(session_factory, clock, operation) -> str:
    async with session_factory() as session:
        try:
            await operation(InvitationLifecycle(session, clock))
        except ProjectHubError as exc:
            return exc.kind
    return "ok"


@pytest.fixture
async def inviter(file_session_factory):
    async with file_session_factory() as session:
        return await create_user(session, role="manager", name="Rae Racer")


@pytest.mark.invitation
class TestConcurrentInvites:
    async def test_only_one_of_several_simultaneous_invites_wins(self, file_session_factory, clock, inviter):
        async def invite(lifecycle):
            await lifecycle.invite(inviter, InvitationCreate(email="contested@example.com"))

        results = await asyncio.gather(
            *(_attempt(file_session_factory, clock, invite) for _ in range(3))
        )

        assert sorted(results) == ["DuplicateActiveInvitation", "DuplicateActiveInvitation", "ok"]
        async with file_session_factory() as session:
            pending = await session.execute(
                select(func.count()).select_from(Invitation).where(
                    Invitation.email == "contested@example.com",
                    Invitation.status == "pending",
                )
            )
            assert pending.scalar() == 1


@pytest.mark.invitation
class TestConcurrentAccepts:
    async def test_losing_accept_reports_token_as_used(self, file_session_factory, clock, inviter):
        async with file_session_factory() as session:
            outcome = await InvitationLifecycle(session, clock).invite(
                inviter, InvitationCreate(email="double-click@example.com")
            )
            token = (await session.execute(
                select(Invitation.token).where(Invitation.id == outcome.value.data.id)
            )).scalar_one()

        def accept(name):
            async def run(lifecycle):
                await lifecycle.accept(token, AcceptInvitationRequest(name=name, password="secret123"))
            return run

        results = await asyncio.gather(
            _attempt(file_session_factory, clock, accept("First Tab")),
            _attempt(file_session_factory, clock, accept("Second Tab")),
        )

        assert sorted(results) == ["NotFoundOrExpired", "ok"]
        async with file_session_factory() as session:
            accounts = await session.execute(
                select(func.count()).select_from(User).where(User.email == "double-click@example.com")
            )
            assert accounts.scalar() == 1
            status = await session.execute(
                select(Invitation.status).where(Invitation.id == outcome.value.data.id)
            )
            assert status.scalar_one() == "accepted"

    async def test_accept_overtaken_after_resolution_is_not_found_or_expired(self, file_session_factory, clock, inviter):
        async with file_session_factory() as session:
            outcome = await InvitationLifecycle(session, clock).invite(
                inviter, InvitationCreate(email="overtaken@example.com")
            )
            token = (await session.execute(
                select(Invitation.token).where(Invitation.id == outcome.value.data.id)
            )).scalar_one()

        request = AcceptInvitationRequest(name="Slow Tab", password="secret123")
        async with file_session_factory() as slow_session, file_session_factory() as fast_session:
            slow = InvitationLifecycle(slow_session, clock)
            create_account = slow.accounts.create_account

            async def overtaken(**fields):
                # The other tab finishes between resolution and provisioning
                await InvitationLifecycle(fast_session, clock).accept(
                    token, AcceptInvitationRequest(name="Fast Tab", password="secret123")
                )
                return await create_account(**fields)

            slow.accounts.create_account = overtaken

            with pytest.raises(NotFoundOrExpired):
                await slow.accept(token, request)
