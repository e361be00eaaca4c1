"""Tests for inbound websocket event dispatch."""

import pytest

from app.core.config import settings
from app.services.chat_gateway import ChatGateway
from app.services.realtime_hub import RealtimeHub
from tests.support import create_user, open_connection


@pytest.fixture
def gateway(hub: RealtimeHub) -> ChatGateway:
    return ChatGateway(hub)


class TestFraming:
    """Malformed and unknown frames become error events."""

    async def test_unknown_event(self, gateway: ChatGateway) -> None:
        connection, transport = open_connection(1)
        await gateway.dispatch(connection, {"event": "bogus", "data": {}})
        assert transport.events("error") == [
            {
                "event": "bogus",
                "code": "VALIDATION_ERROR",
                "error": "Unknown event: bogus",
            }
        ]

    async def test_frame_without_event(self, gateway: ChatGateway) -> None:
        connection, transport = open_connection(1)
        await gateway.dispatch(connection, {"data": {}})
        errors = transport.events("error")
        assert errors[0]["event"] == ""
        assert errors[0]["code"] == "VALIDATION_ERROR"

    async def test_non_object_frame(self, gateway: ChatGateway) -> None:
        connection, transport = open_connection(1)
        await gateway.dispatch(connection, ["send_message"])
        assert transport.names() == ["error"]

    def test_handles_every_inbound_event(self, gateway: ChatGateway) -> None:
        assert gateway.events == {
            "send_message",
            "typing",
            "stop_typing",
            "message_delivered",
            "message_read",
            "request_sent",
            "request_accepted",
        }


class TestSendMessage:
    """send_message failures are reported as message_error."""

    async def test_invalid_payload(self, gateway: ChatGateway) -> None:
        connection, transport = open_connection(1)
        await gateway.dispatch(
            connection,
            {"event": "send_message", "data": {"receiverId": 2, "type": "video"}},
        )
        errors = transport.events("message_error")
        assert len(errors) == 1
        assert errors[0]["code"] == "VALIDATION_ERROR"

    async def test_blank_text(self, gateway: ChatGateway) -> None:
        connection, transport = open_connection(1)
        await gateway.dispatch(
            connection,
            {
                "event": "send_message",
                "data": {"receiverId": 2, "type": "text", "content": "   "},
            },
        )
        assert transport.names() == ["message_error"]

    async def test_send_to_self(self, gateway: ChatGateway) -> None:
        alice = await create_user("alice")
        connection, transport = open_connection(alice.id)
        await gateway.dispatch(
            connection,
            {
                "event": "send_message",
                "data": {"receiverId": alice.id, "type": "text", "content": "me"},
            },
        )
        assert transport.events("message_error") == [
            {"error": "Cannot send a message to yourself", "code": "VALIDATION_ERROR"}
        ]

    async def test_successful_send(
        self, gateway: ChatGateway, hub: RealtimeHub
    ) -> None:
        alice = await create_user("alice")
        bob = await create_user("bob")
        receiver, receiver_transport = open_connection(bob.id)
        await hub.registry.register(receiver)
        connection, transport = open_connection(alice.id)

        await gateway.dispatch(
            connection,
            {
                "event": "send_message",
                "data": {"receiverId": bob.id, "type": "text", "content": "hey"},
            },
        )

        assert transport.names() == ["message_sent"]
        assert receiver_transport.events("receive_message")[0]["message"]["content"] == "hey"


class TestOtherEvents:
    """Non-send failures are reported as error with the event name."""

    async def test_message_read_needs_a_target(self, gateway: ChatGateway) -> None:
        connection, transport = open_connection(1)
        await gateway.dispatch(connection, {"event": "message_read", "data": {}})
        errors = transport.events("error")
        assert errors[0]["event"] == "message_read"
        assert errors[0]["code"] == "VALIDATION_ERROR"

    async def test_unknown_message_delivered(self, gateway: ChatGateway) -> None:
        connection, transport = open_connection(1)
        await gateway.dispatch(
            connection, {"event": "message_delivered", "data": {"messageId": 999}}
        )
        assert transport.events("error") == [
            {
                "event": "message_delivered",
                "code": "MESSAGE_NOT_FOUND",
                "error": "Message not found",
            }
        ]

    async def test_read_whole_conversation(
        self, gateway: ChatGateway, hub: RealtimeHub
    ) -> None:
        alice = await create_user("alice")
        bob = await create_user("bob")
        sender, sender_transport = open_connection(alice.id)
        await hub.registry.register(sender)
        await gateway.dispatch(
            sender,
            {
                "event": "send_message",
                "data": {"receiverId": bob.id, "type": "text", "content": "yo"},
            },
        )
        conversation_id = sender_transport.events("message_sent")[0]["conversationId"]
        reader, reader_transport = open_connection(bob.id)

        await gateway.dispatch(
            reader,
            {"event": "message_read", "data": {"conversationId": conversation_id}},
        )

        assert reader_transport.sent == []
        assert sender_transport.events("messages_read") == [
            {"conversationId": conversation_id, "readBy": bob.id}
        ]

    async def test_typing_relayed(self, gateway: ChatGateway, hub: RealtimeHub) -> None:
        receiver, receiver_transport = open_connection(2)
        await hub.registry.register(receiver)
        typer, _ = open_connection(1)

        await gateway.dispatch(typer, {"event": "typing", "data": {"receiverId": 2}})
        await gateway.dispatch(
            typer, {"event": "stop_typing", "data": {"receiverId": 2}}
        )

        assert [e["isTyping"] for e in receiver_transport.events("user_typing")] == [
            True,
            False,
        ]

    async def test_typing_disabled(
        self,
        gateway: ChatGateway,
        hub: RealtimeHub,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setitem(
            settings.__dict__,
            "chat",
            settings.chat.model_copy(update={"typing_enabled": False}),
        )
        receiver, receiver_transport = open_connection(2)
        await hub.registry.register(receiver)
        typer, typer_transport = open_connection(1)

        await gateway.dispatch(typer, {"event": "typing", "data": {"receiverId": 2}})

        assert receiver_transport.sent == []
        assert typer_transport.sent == []

    async def test_request_sent_relayed(
        self, gateway: ChatGateway, hub: RealtimeHub
    ) -> None:
        receiver, receiver_transport = open_connection(2)
        await hub.registry.register(receiver)
        sender, _ = open_connection(1)

        await gateway.dispatch(
            sender,
            {
                "event": "request_sent",
                "data": {"receiverId": 2, "request": {"id": 3, "status": "pending"}},
            },
        )

        assert receiver_transport.events("request_received") == [
            {"request": {"id": 3, "status": "pending"}}
        ]
