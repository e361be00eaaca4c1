"""Integration tests for the real-time websocket endpoint."""

from typing import Any

import fakeredis.aioredis
import pytest
from httpx import AsyncClient

from app.core.config import settings
from app.models.user import User
from app.services.realtime_hub import RealtimeHub
from app.services.token_service import TokenService
from tests.support import (
    WebSocketClient,
    WebSocketRejected,
    create_user,
    make_auth_headers,
    make_token,
)

WS_PATH = settings.chat.websocket_path


@pytest.fixture
async def alice() -> User:
    return await create_user("alice")


@pytest.fixture
async def bob() -> User:
    return await create_user("bob")


def connect(app: Any, redis: fakeredis.aioredis.FakeRedis, user: User) -> WebSocketClient:
    return WebSocketClient(app, WS_PATH, token=make_token(redis, user_id=user.id))


class TestHandshake:
    """Credential checks happen before the socket is accepted."""

    async def test_missing_token(self, application: Any) -> None:
        with pytest.raises(WebSocketRejected) as exc_info:
            async with WebSocketClient(application, WS_PATH):
                pass
        assert exc_info.value.code == 4401

    async def test_invalid_token(self, application: Any) -> None:
        with pytest.raises(WebSocketRejected) as exc_info:
            async with WebSocketClient(application, WS_PATH, token="not.a.jwt"):
                pass
        assert exc_info.value.code == 4401

    async def test_unknown_user(
        self, application: Any, fake_redis: fakeredis.aioredis.FakeRedis
    ) -> None:
        with pytest.raises(WebSocketRejected):
            async with WebSocketClient(
                application, WS_PATH, token=make_token(fake_redis, user_id=999)
            ):
                pass

    async def test_revoked_token(
        self,
        application: Any,
        fake_redis: fakeredis.aioredis.FakeRedis,
        alice: User,
    ) -> None:
        tokens = TokenService(fake_redis)
        token = tokens.create_access_token(
            user_id=alice.id, email=alice.email, role="user"
        )
        payload = tokens.decode_token(token)
        await tokens.blacklist_token(payload.jti, payload.exp)

        with pytest.raises(WebSocketRejected):
            async with WebSocketClient(application, WS_PATH, token=token):
                pass

    async def test_bearer_header_accepted(
        self,
        application: Any,
        fake_redis: fakeredis.aioredis.FakeRedis,
        hub: RealtimeHub,
        alice: User,
    ) -> None:
        headers = make_auth_headers(fake_redis, user_id=alice.id)
        async with WebSocketClient(application, WS_PATH, headers=headers):
            assert hub.registry.is_online(alice.id)
        assert not hub.registry.is_online(alice.id)


class TestFrames:
    async def test_bad_json_keeps_socket_open(
        self,
        application: Any,
        fake_redis: fakeredis.aioredis.FakeRedis,
        alice: User,
        bob: User,
    ) -> None:
        async with connect(application, fake_redis, alice) as ws:
            await ws.send_text("{not json")
            error = await ws.receive_event("error")
            assert error["code"] == "VALIDATION_ERROR"

            await ws.send_event(
                "send_message", {"receiverId": bob.id, "type": "text", "content": "ok"}
            )
            sent = await ws.receive_event("message_sent")
            assert sent["message"]["content"] == "ok"

    async def test_binary_frame_keeps_socket_open(
        self,
        application: Any,
        fake_redis: fakeredis.aioredis.FakeRedis,
        hub: RealtimeHub,
        alice: User,
        bob: User,
    ) -> None:
        async with connect(application, fake_redis, alice) as ws:
            await ws.send_bytes(b'{"event": "typing", "data": {}}')
            error = await ws.receive_event("error")
            assert error == {
                "event": "",
                "code": "VALIDATION_ERROR",
                "error": "Frame must be text JSON",
            }

            await ws.send_event(
                "send_message", {"receiverId": bob.id, "type": "text", "content": "ok"}
            )
            sent = await ws.receive_event("message_sent")
            assert sent["message"]["content"] == "ok"
            assert hub.registry.is_online(alice.id)

    async def test_unknown_event(
        self,
        application: Any,
        fake_redis: fakeredis.aioredis.FakeRedis,
        alice: User,
    ) -> None:
        async with connect(application, fake_redis, alice) as ws:
            await ws.send_event("dance", {})
            error = await ws.receive_event("error")
            assert error["event"] == "dance"

    async def test_invalid_message_reports_message_error(
        self,
        application: Any,
        fake_redis: fakeredis.aioredis.FakeRedis,
        alice: User,
        bob: User,
    ) -> None:
        async with connect(application, fake_redis, alice) as ws:
            await ws.send_event(
                "send_message", {"receiverId": bob.id, "type": "text", "content": "  "}
            )
            error = await ws.receive_event("message_error")
            assert error["code"] == "VALIDATION_ERROR"


class TestPresence:
    async def test_online_and_offline_broadcast(
        self,
        application: Any,
        fake_redis: fakeredis.aioredis.FakeRedis,
        alice: User,
        bob: User,
    ) -> None:
        async with connect(application, fake_redis, alice) as alice_ws:
            async with connect(application, fake_redis, bob) as bob_ws:
                online = await alice_ws.receive_event("user_online")
                assert online["userId"] == bob.id
                assert online["online"] is True

                await bob_ws.send_event("typing", {"receiverId": alice.id})
                typing = await alice_ws.receive_event("user_typing")
                assert typing == {
                    "userId": bob.id,
                    "conversationId": None,
                    "isTyping": True,
                }

            offline = await alice_ws.receive_event("user_offline")
            assert offline["userId"] == bob.id
            assert offline["online"] is False
            assert offline["lastSeen"] is not None


class TestRequestToConversation:
    """A request accepted over HTTP, relayed live, then messaged in."""

    async def test_request_accept_then_message(
        self,
        application: Any,
        async_client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
        alice: User,
        bob: User,
    ) -> None:
        alice_headers = make_auth_headers(fake_redis, user_id=alice.id)
        bob_headers = make_auth_headers(fake_redis, user_id=bob.id)

        async with connect(application, fake_redis, alice) as alice_ws:
            async with connect(application, fake_redis, bob) as bob_ws:
                sent = await async_client.post(
                    "/api/v1/requests",
                    json={"receiver_id": bob.id, "message": "let's talk"},
                    headers=alice_headers,
                )
                request = sent.json()["data"]
                await alice_ws.send_event(
                    "request_sent", {"receiverId": bob.id, "request": request}
                )
                received = await bob_ws.receive_event("request_received")
                assert received["request"]["id"] == request["id"]

                accepted = await async_client.put(
                    f"/api/v1/requests/{request['id']}/accept", headers=bob_headers
                )
                conversation = accepted.json()["data"]["conversation"]
                await bob_ws.send_event(
                    "request_accepted",
                    {"senderId": alice.id, "conversation": conversation},
                )
                notice = await alice_ws.receive_event("request_accepted_notification")
                assert notice["acceptedBy"] == bob.id
                assert notice["conversation"]["id"] == conversation["id"]

                await alice_ws.send_event(
                    "send_message",
                    {
                        "receiverId": bob.id,
                        "conversationId": conversation["id"],
                        "type": "text",
                        "content": "hi bob",
                    },
                )
                echoed = await alice_ws.receive_event("message_sent")
                pushed = await bob_ws.receive_event("receive_message")

        assert echoed["message"]["status"] == "delivered"
        assert pushed["message"]["id"] == echoed["message"]["id"]
        assert pushed["conversationId"] == conversation["id"]

        listing = await async_client.get("/api/v1/conversations", headers=bob_headers)
        [summary] = listing.json()["data"]["conversations"]
        assert summary["id"] == conversation["id"]
        assert summary["unread_count"] == 1


class TestOfflineDelivery:
    """A message to an offline user is read later, by the receiver only."""

    async def test_read_after_reconnect(
        self,
        application: Any,
        fake_redis: fakeredis.aioredis.FakeRedis,
        alice: User,
        bob: User,
    ) -> None:
        async with connect(application, fake_redis, alice) as alice_ws:
            await alice_ws.send_event(
                "send_message",
                {"receiverId": bob.id, "type": "text", "content": "see you later"},
            )
            sent = await alice_ws.receive_event("message_sent")
            message_id = sent["message"]["id"]
            assert sent["message"]["status"] == "sent"

            await alice_ws.send_event("message_read", {"messageId": message_id})
            refused = await alice_ws.receive_event("error")
            assert refused["event"] == "message_read"
            assert refused["code"] == "AUTHORIZATION_ERROR"

            async with connect(application, fake_redis, bob) as bob_ws:
                await bob_ws.send_event("message_read", {"messageId": message_id})
                update = await alice_ws.receive_event("message_status_updated")
                assert update == {"messageId": message_id, "status": "read"}

                await bob_ws.send_event(
                    "message_read",
                    {"conversationId": sent["conversationId"]},
                )
                await bob_ws.send_event("message_delivered", {"messageId": message_id})
                await bob_ws.send_event("typing", {"receiverId": alice.id})
                # Nothing moved after the first read, so typing is the next frame.
                frame = await alice_ws.receive_frame()
                assert frame["event"] == "user_typing"
