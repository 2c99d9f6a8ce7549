"""
Unit tests for the Event Broadcaster.

The transport is an AsyncMock; the registry is real so room membership,
multi-session identities and disconnect pruning are exercised end to end.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from north_command.realtime.broadcaster import (
    BroadcastDeliveryFailure,
    Broadcaster,
    BroadcastResult,
)
from north_command.realtime.events import ChatMessageSent, TypingSignal
from north_command.realtime.rooms import PRIVILEGED_ROOM, identity_room
from tests.conftest import AGENT_7_ID, AGENT_9_ID, AGENT_42_ID, OVERSEER_ID, emissions, emissions_to


pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def connected(registry, overseer, agent42, agent7, agent9):
    """One session per identity: overseer, agent42, agent7 and agent9."""
    await registry.join("sid-overseer", overseer)
    await registry.join("sid-42", agent42)
    await registry.join("sid-7", agent7)
    await registry.join("sid-9", agent9)
    return registry


def _chat(from_id=AGENT_42_ID, to_id=AGENT_7_ID, message="Sleigh is ready"):
    return ChatMessageSent(
        message_id="m-1",
        from_id=from_id,
        to_id=to_id,
        message=message,
        timestamp="2025-12-24T20:00:00+00:00",
    )


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class TestChatMessage:

    async def test_third_identity_never_sees_dm(self, broadcaster, transport, connected):
        await broadcaster.broadcast_chat_message(_chat())
        assert emissions_to(transport, "sid-9") == []
        assert emissions_to(transport, "sid-overseer") == []

    async def test_sender_echo_and_recipient_copy(self, broadcaster, transport, connected):
        result = await broadcaster.broadcast_chat_message(_chat())

        to_recipient = emissions_to(transport, "sid-7")
        to_sender = emissions_to(transport, "sid-42")
        assert len(to_recipient) == 1 and len(to_sender) == 1
        assert to_recipient[0][0] == "chat:msg"
        assert to_recipient[0][1]["self"] is False
        assert to_sender[0][1]["self"] is True
        assert to_recipient[0][1]["_id"] == to_sender[0][1]["_id"]
        assert to_recipient[0][1]["message"] == to_sender[0][1]["message"]
        assert result.ok and result.delivered == 2

    async def test_accepts_wire_dict(self, broadcaster, transport, connected):
        await broadcaster.broadcast_chat_message({
            "_id": "m-2",
            "fromUserId": AGENT_42_ID,
            "toUserId": OVERSEER_ID,
            "message": "hi",
            "createdAt": "2025-12-24T20:00:00+00:00",
        })
        assert emissions_to(transport, "sid-overseer")[0][1]["self"] is False
        assert emissions_to(transport, "sid-42")[0][1]["self"] is True

    async def test_sender_with_two_devices_gets_echo_on_both(self, broadcaster, transport, connected, agent42):
        await connected.join("sid-42-phone", agent42)
        await broadcaster.broadcast_chat_message(_chat())
        assert emissions_to(transport, "sid-42")[0][1]["self"] is True
        assert emissions_to(transport, "sid-42-phone")[0][1]["self"] is True


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class TestNotificationCreated:

    @pytest.mark.parametrize("target", [AGENT_42_ID, AGENT_7_ID, OVERSEER_ID, "never-connected"])
    async def test_always_reaches_privileged_room(self, broadcaster, transport, connected, target):
        result = await broadcaster.broadcast_notification_created(target, {"_id": "n-1"})
        assert ("notification:new", {"notification": {"_id": "n-1"}}) in emissions_to(transport, "sid-overseer")
        assert PRIVILEGED_ROOM in result.rooms

    async def test_target_receives_it(self, broadcaster, transport, connected):
        await broadcaster.broadcast_notification_created(AGENT_42_ID, {"_id": "n-1"})
        assert emissions_to(transport, "sid-42") == [("notification:new", {"notification": {"_id": "n-1"}})]
        assert emissions_to(transport, "sid-7") == []

    async def test_overseer_target_receives_twice(self, broadcaster, transport, connected):
        await broadcaster.broadcast_notification_created(OVERSEER_ID, {"_id": "n-1"})
        assert len(emissions_to(transport, "sid-overseer")) == 2


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TestTaskChanged:

    async def test_unassigned_reaches_privileged_only(self, broadcaster, transport, connected):
        snap = {"_id": "t-1", "status": "OPEN", "assigneeUserId": None}
        await broadcaster.broadcast_task_changed("t-1", snapshot=snap)
        assert [to for _, _, to in emissions(transport)] == ["sid-overseer"]

    async def test_reaches_current_assignee_not_previous(self, transport, registry, connected):
        loader = AsyncMock(return_value={"_id": "t-1", "status": "OPEN", "assigneeUserId": AGENT_7_ID})
        broadcaster = Broadcaster(transport, registry, snapshot_loader=loader)

        result = await broadcaster.broadcast_task_changed("t-1")

        loader.assert_awaited_once_with("t-1")
        assert result.rooms == [PRIVILEGED_ROOM, identity_room(AGENT_7_ID)]
        assert len(emissions_to(transport, "sid-7")) == 1
        assert emissions_to(transport, "sid-42") == []

    async def test_deleted_skips_loader_and_reaches_former_assignee(self, transport, registry, connected):
        loader = AsyncMock()
        broadcaster = Broadcaster(transport, registry, snapshot_loader=loader)

        await broadcaster.broadcast_task_changed("t-1", True, former_assignee_id=AGENT_42_ID)

        loader.assert_not_awaited()
        expected = ("task:update", {"task": {"_id": "t-1"}, "deleted": True})
        assert emissions_to(transport, "sid-overseer") == [expected]
        assert emissions_to(transport, "sid-42") == [expected]

    async def test_loader_failure_is_reported_not_raised(self, transport, registry, connected):
        loader = AsyncMock(side_effect=RuntimeError("db down"))
        broadcaster = Broadcaster(transport, registry, snapshot_loader=loader)

        result = await broadcaster.broadcast_task_changed("t-1")

        assert not result.ok
        assert isinstance(result.failures[0], RuntimeError)
        transport.emit.assert_not_awaited()

    async def test_missing_task_still_reaches_privileged_room(self, transport, registry, connected):
        broadcaster = Broadcaster(transport, registry, snapshot_loader=AsyncMock(return_value=None))
        await broadcaster.broadcast_task_changed("t-gone")
        assert emissions_to(transport, "sid-overseer") == [("task:update", {"task": None, "deleted": False})]

    async def test_duplicate_delivery_is_idempotent_for_replace_by_id(self, broadcaster, transport, connected):
        snap = {"_id": "t-1", "status": "IN_PROGRESS", "assigneeUserId": OVERSEER_ID}
        await broadcaster.broadcast_task_changed("t-1", snapshot=snap)

        received = emissions_to(transport, "sid-overseer")
        assert len(received) == 2

        once: dict = {}
        twice: dict = {}
        once[received[0][1]["task"]["_id"]] = received[0][1]["task"]
        for _, payload in received:
            twice[payload["task"]["_id"]] = payload["task"]
        assert once == twice


# ---------------------------------------------------------------------------
# Typing relay
# ---------------------------------------------------------------------------


class TestTypingRelay:

    async def test_each_overseer_tab_gets_one_pulse(self, broadcaster, transport, connected, overseer):
        await connected.join("sid-overseer-tab2", overseer)

        await broadcaster.relay_typing(AGENT_42_ID, OVERSEER_ID)

        expected = [("chat:typing", {"fromUserId": AGENT_42_ID})]
        assert emissions_to(transport, "sid-overseer") == expected
        assert emissions_to(transport, "sid-overseer-tab2") == expected
        assert emissions_to(transport, "sid-42") == []
        assert transport.emit.await_count == 2


# ---------------------------------------------------------------------------
# Disconnects and failures
# ---------------------------------------------------------------------------


class TestDeliveryFailures:

    async def test_no_delivery_after_disconnect(self, broadcaster, transport, registry, agent42):
        baseline = (registry.session_count, registry.room_count)
        await registry.join("sid-42", agent42)
        await registry.leave("sid-42")

        result = await broadcaster.relay_typing(OVERSEER_ID, AGENT_42_ID)

        assert result.ok and result.delivered == 0
        transport.emit.assert_not_awaited()
        assert (registry.session_count, registry.room_count) == baseline

    async def test_empty_room_is_not_a_failure(self, broadcaster, transport):
        result = await broadcaster.dispatch(TypingSignal(from_id=AGENT_42_ID, to_id=AGENT_9_ID))
        assert result == BroadcastResult(event="chat:typing", rooms=[identity_room(AGENT_9_ID)], delivered=0)

    async def test_emit_error_is_swallowed_and_other_rooms_still_served(
        self, broadcaster, transport, connected,
    ):
        async def flaky(event, data=None, to=None, **kwargs):
            if to == "sid-42":
                raise ConnectionResetError("socket closed")

        transport.emit.side_effect = flaky

        result = await broadcaster.broadcast_notification_created(AGENT_42_ID, {"_id": "n-1"})

        assert not result.ok
        failure = result.failures[0]
        assert isinstance(failure, BroadcastDeliveryFailure)
        assert failure.room == identity_room(AGENT_42_ID)
        assert failure.failed_sids == ("sid-42",)
        # privileged room was still attempted after the failing room
        assert any(call.kwargs["to"] == "sid-overseer" for call in transport.emit.await_args_list)
        assert result.delivered == 1

    async def test_partial_room_failure_counts_delivered_members(
        self, broadcaster, transport, connected, agent42,
    ):
        await connected.join("sid-42-phone", agent42)

        async def flaky(event, data=None, to=None, **kwargs):
            if to == "sid-42-phone":
                raise RuntimeError("boom")

        transport.emit.side_effect = flaky

        result = await broadcaster.relay_typing(OVERSEER_ID, AGENT_42_ID)

        assert result.delivered == 1
        assert result.failures[0].delivered == 1
        assert result.failures[0].failed_sids == ("sid-42-phone",)
