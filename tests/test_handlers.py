"""Tests for the event router."""

from unittest.mock import AsyncMock

import pytest

from collab_realtime.websocket.handlers import BroadcastResult, EventRouter

from conftest import sent_messages, sent_of_type


def _new_message(conversation_id: str = "c1", message_id: str = "m1") -> dict:
    return {
        "type": "new-message",
        "data": {
            "conversationId": conversation_id,
            "message": {"id": message_id, "content": "hi", "createdAt": "2026-03-02T10:00:00Z"},
        },
    }


class TestConnectionLifecycle:
    """Tests for on_connect / on_disconnect."""

    @pytest.mark.asyncio
    async def test_connect_joins_user_room(self, router: EventRouter, rooms, make_identity):
        conn = await router.on_connect(AsyncMock(), make_identity("A"))

        assert rooms.rooms_of(conn) == {"user:A"}

    @pytest.mark.asyncio
    async def test_disconnect_releases_all_and_announces_offline_once(
        self, router: EventRouter, rooms, conn_manager, make_identity
    ):
        a = await router.on_connect(AsyncMock(), make_identity("A"))
        b = await router.on_connect(AsyncMock(), make_identity("B"))
        await router.route(a, {"type": "join-conversation", "data": "c1"})
        await router.route(a, {"type": "join-document", "data": "d1"})

        await router.on_disconnect(a)
        await router.on_disconnect(a)

        assert rooms.rooms_of(a) == set()
        assert conn_manager.total_rooms == 1  # only B's user room
        offline = [
            m for m in sent_of_type(b.websocket, "user-presence-change")
            if m["data"]["status"] == "offline"
        ]
        assert offline == [
            {"type": "user-presence-change", "data": {"userId": "A", "status": "offline"}}
        ]

    @pytest.mark.asyncio
    async def test_nothing_delivered_after_disconnect(self, router, make_identity):
        a = await router.on_connect(AsyncMock(), make_identity("A"))
        b = await router.on_connect(AsyncMock(), make_identity("B"))
        await router.route(a, {"type": "join-conversation", "data": "c1"})
        await router.route(b, {"type": "join-conversation", "data": "c1"})
        await router.on_disconnect(a)

        await router.route(b, _new_message())

        assert sent_of_type(a.websocket, "new-message") == []


class TestRouteValidation:
    @pytest.mark.asyncio
    async def test_unknown_type_dropped(self, router, make_identity):
        a = await router.on_connect(AsyncMock(), make_identity("A"))

        assert await router.route(a, {"type": "explode", "data": {}}) is None
        assert sent_messages(a.websocket) == []

    @pytest.mark.asyncio
    async def test_malformed_payload_dropped_connection_kept(
        self, router, conn_manager, make_identity
    ):
        a = await router.on_connect(AsyncMock(), make_identity("A"))

        assert await router.route(a, {"type": "typing", "data": {"isTyping": True}}) is None
        assert conn_manager.is_connected(a)

    def test_every_variant_has_a_handler(self, router):
        """Construction fails if an inbound variant is left unhandled."""
        assert len(router._handlers) == 6


class TestConversationEvents:
    """Tests for message and typing relay."""

    @pytest.mark.asyncio
    async def test_message_reaches_peer_not_sender(self, router, make_identity):
        a = await router.on_connect(AsyncMock(), make_identity("A"))
        b = await router.on_connect(AsyncMock(), make_identity("B"))
        await router.route(a, {"type": "join-conversation", "data": "c1"})
        await router.route(b, {"type": "join-conversation", "data": "c1"})

        result = await router.route(a, _new_message())

        assert result == BroadcastResult("conversation:c1", 1, "new-message")
        assert sent_of_type(a.websocket, "new-message") == []
        assert sent_of_type(b.websocket, "new-message") == [{
            "type": "new-message",
            "data": {
                "conversationId": "c1",
                "message": {
                    "id": "m1",
                    "content": "hi",
                    "senderId": "A",
                    "createdAt": "2026-03-02T10:00:00Z",
                },
            },
        }]

    @pytest.mark.asyncio
    async def test_sender_id_comes_from_connection(self, router, make_identity):
        a = await router.on_connect(AsyncMock(), make_identity("A"))
        b = await router.on_connect(AsyncMock(), make_identity("B"))
        for conn in (a, b):
            await router.route(conn, {"type": "join-conversation", "data": "c1"})
        frame = _new_message()
        frame["data"]["message"]["senderId"] = "B"

        await router.route(a, frame)

        assert sent_of_type(b.websocket, "new-message")[0]["data"]["message"]["senderId"] == "A"

    @pytest.mark.asyncio
    async def test_non_member_message_dropped(self, router, make_identity):
        a = await router.on_connect(AsyncMock(), make_identity("A"))
        b = await router.on_connect(AsyncMock(), make_identity("B"))
        await router.route(b, {"type": "join-conversation", "data": "c1"})

        assert await router.route(a, _new_message()) is None
        assert sent_of_type(b.websocket, "new-message") == []

    @pytest.mark.asyncio
    async def test_non_member_typing_dropped(self, router, make_identity):
        a = await router.on_connect(AsyncMock(), make_identity("A"))
        b = await router.on_connect(AsyncMock(), make_identity("B"))
        await router.route(b, {"type": "join-conversation", "data": "c1"})

        result = await router.route(
            a, {"type": "typing", "data": {"conversationId": "c1", "isTyping": True}}
        )

        assert result is None
        assert sent_of_type(b.websocket, "user-typing") == []

    @pytest.mark.asyncio
    async def test_typing_relayed_to_others(self, router, make_identity):
        a = await router.on_connect(AsyncMock(), make_identity("A"))
        b = await router.on_connect(AsyncMock(), make_identity("B"))
        for conn in (a, b):
            await router.route(conn, {"type": "join-conversation", "data": "c1"})

        await router.route(a, {"type": "typing", "data": {"conversationId": "c1", "isTyping": True}})

        assert sent_of_type(b.websocket, "user-typing") == [
            {"type": "user-typing", "data": {"userId": "A", "isTyping": True}}
        ]
        assert sent_of_type(a.websocket, "user-typing") == []

    @pytest.mark.asyncio
    async def test_unauthorized_join_sends_nothing(self, router, access_checker, make_identity):
        access_checker.is_conversation_participant.return_value = False
        x = await router.on_connect(AsyncMock(), make_identity("X"))

        assert await router.route(x, {"type": "join-conversation", "data": "c1"}) is None
        assert sent_messages(x.websocket) == []


class TestDocumentEvents:
    """Tests for document rooms."""

    @pytest.mark.asyncio
    async def test_join_announces_to_existing_members(self, router, make_identity):
        a = await router.on_connect(AsyncMock(), make_identity("A"))
        b = await router.on_connect(AsyncMock(), make_identity("B"))
        await router.route(a, {"type": "join-document", "data": "d1"})

        result = await router.route(b, {"type": "join-document", "data": "d1"})

        assert result == BroadcastResult("document:d1", 1, "user-joined")
        assert sent_of_type(a.websocket, "user-joined") == [
            {"type": "user-joined", "data": {"userId": "B", "documentId": "d1"}}
        ]
        assert sent_of_type(b.websocket, "user-joined") == []

    @pytest.mark.asyncio
    async def test_repeated_join_not_reannounced(self, router, rooms, make_identity):
        a = await router.on_connect(AsyncMock(), make_identity("A"))
        b = await router.on_connect(AsyncMock(), make_identity("B"))
        await router.route(a, {"type": "join-document", "data": "d1"})
        await router.route(b, {"type": "join-document", "data": "d1"})

        assert await router.route(b, {"type": "join-document", "data": "d1"}) is None
        assert len(sent_of_type(a.websocket, "user-joined")) == 1
        assert rooms.room_size("document:d1") == 2

    @pytest.mark.asyncio
    async def test_non_project_member_cannot_join(
        self, router, rooms, access_checker, make_identity
    ):
        a = await router.on_connect(AsyncMock(), make_identity("A"))
        await router.route(a, {"type": "join-document", "data": "d1"})
        access_checker.is_document_project_member.return_value = False
        x = await router.on_connect(AsyncMock(), make_identity("X"))

        await router.route(x, {"type": "join-document", "data": "d1"})

        assert "document:d1" not in rooms.rooms_of(x)
        assert sent_of_type(a.websocket, "user-joined") == []
        assert sent_of_type(x.websocket, "user-joined") == []

    @pytest.mark.asyncio
    async def test_lookup_failure_isolated(self, router, rooms, access_checker, make_identity):
        access_checker.is_document_project_member.side_effect = RuntimeError("db down")
        a = await router.on_connect(AsyncMock(), make_identity("A"))

        assert await router.route(a, {"type": "join-document", "data": "d1"}) is None
        assert rooms.rooms_of(a) == {"user:A"}

        access_checker.is_document_project_member.side_effect = None
        await router.route(a, {"type": "join-document", "data": "d2"})
        assert "document:d2" in rooms.rooms_of(a)

    @pytest.mark.asyncio
    async def test_change_relayed_verbatim_to_others(self, router, make_identity):
        a = await router.on_connect(AsyncMock(), make_identity("A"))
        b = await router.on_connect(AsyncMock(), make_identity("B"))
        for conn in (a, b):
            await router.route(conn, {"type": "join-document", "data": "d1"})
        delta = {"ops": [{"retain": 12}, {"insert": "Methods"}]}

        await router.route(a, {
            "type": "document-change",
            "data": {"documentId": "d1", "content": delta, "position": 12},
        })

        assert sent_of_type(b.websocket, "document-change") == [{
            "type": "document-change",
            "data": {"documentId": "d1", "content": delta, "position": 12, "userId": "A"},
        }]
        assert sent_of_type(a.websocket, "document-change") == []

    @pytest.mark.asyncio
    async def test_change_from_non_member_dropped(self, router, make_identity):
        a = await router.on_connect(AsyncMock(), make_identity("A"))
        b = await router.on_connect(AsyncMock(), make_identity("B"))
        await router.route(b, {"type": "join-document", "data": "d1"})

        result = await router.route(a, {
            "type": "document-change",
            "data": {"documentId": "d1", "content": "x"},
        })

        assert result is None
        assert sent_of_type(b.websocket, "document-change") == []


class TestPresenceEvents:
    @pytest.mark.asyncio
    async def test_presence_then_disconnect_ordering(self, router, make_identity):
        a = await router.on_connect(AsyncMock(), make_identity("A"))
        b = await router.on_connect(AsyncMock(), make_identity("B"))

        await router.route(a, {"type": "set-presence", "data": "typing"})
        await router.on_disconnect(a)

        assert sent_of_type(b.websocket, "user-presence-change") == [
            {"type": "user-presence-change", "data": {"userId": "A", "status": "typing"}},
            {"type": "user-presence-change", "data": {"userId": "A", "status": "offline"}},
        ]

    @pytest.mark.asyncio
    async def test_set_presence_echoed_to_sender(self, router, make_identity):
        a = await router.on_connect(AsyncMock(), make_identity("A"))

        result = await router.route(a, {"type": "set-presence", "data": "away"})

        assert result == BroadcastResult(None, 1, "user-presence-change")
        assert sent_of_type(a.websocket, "user-presence-change") == [
            {"type": "user-presence-change", "data": {"userId": "A", "status": "away"}}
        ]
