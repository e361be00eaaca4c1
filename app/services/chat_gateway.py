"""Dispatch of inbound websocket events to the real-time core."""

from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.exceptions import AppException, StoreError, ValidationError
from app.schemas import event_schema as ev
from app.services.connection_registry import Connection
from app.services.realtime_hub import RealtimeHub

logger = structlog.get_logger()

Handler = Callable[[Connection, dict[str, Any]], Awaitable[None]]


class ChatGateway:
    """Turns client frames into router/presence calls.

    Every event is handled in isolation: failures become an error event on
    the originating connection and never close the socket.
    """

    def __init__(self, hub: RealtimeHub) -> None:
        self._hub = hub
        self._handlers: dict[str, Handler] = {
            ev.SEND_MESSAGE: self._on_send_message,
            ev.TYPING: self._on_typing,
            ev.STOP_TYPING: self._on_stop_typing,
            ev.MESSAGE_DELIVERED: self._on_message_delivered,
            ev.MESSAGE_READ: self._on_message_read,
            ev.REQUEST_SENT: self._on_request_sent,
            ev.REQUEST_ACCEPTED: self._on_request_accepted,
        }

    @property
    def events(self) -> frozenset[str]:
        return frozenset(self._handlers)

    async def dispatch(self, connection: Connection, raw: Any) -> None:
        """Handle one decoded client frame."""
        try:
            frame = ev.ClientFrame.model_validate(raw)
        except PydanticValidationError:
            await self.report(
                connection, "", ValidationError("Frame must be {event, data}")
            )
            return

        handler = self._handlers.get(frame.event)
        if handler is None:
            await self.report(
                connection, frame.event, ValidationError(f"Unknown event: {frame.event}")
            )
            return

        log = logger.bind(
            event=frame.event, user_id=connection.user_id, connection_id=connection.id
        )
        try:
            await handler(connection, frame.data)
        except AppException as exc:
            log.info("Event rejected", code=exc.code, reason=exc.message)
            await self.report(connection, frame.event, exc)
        except SQLAlchemyError:
            log.exception("Store failure while handling event")
            await self.report(connection, frame.event, StoreError())
        except Exception:
            log.exception("Unhandled error while handling event")
            await self.report(
                connection,
                frame.event,
                AppException("Internal error", code="INTERNAL_ERROR", status_code=500),
            )

    async def report(
        self, connection: Connection, event: str, exc: AppException
    ) -> None:
        if event == ev.SEND_MESSAGE:
            await connection.send(
                ev.MESSAGE_ERROR, ev.MessageErrorPayload(error=exc.message, code=exc.code)
            )
        else:
            await connection.send(
                ev.ERROR, ev.ErrorPayload(event=event, code=exc.code, error=exc.message)
            )

    # --- Handlers ---

    async def _on_send_message(self, connection: Connection, data: dict[str, Any]) -> None:
        request = ev.parse_payload(ev.SendMessageEvent, data)
        await self._hub.router.send(connection.user_id, request, origin=connection)

    async def _on_typing(self, connection: Connection, data: dict[str, Any]) -> None:
        request = ev.parse_payload(ev.TypingEvent, data)
        if not settings.chat.typing_enabled:
            return
        await self._hub.presence.typing(
            connection.user_id, request.receiver_id, request.conversation_id, True
        )

    async def _on_stop_typing(self, connection: Connection, data: dict[str, Any]) -> None:
        request = ev.parse_payload(ev.TypingEvent, data)
        if not settings.chat.typing_enabled:
            return
        await self._hub.presence.typing(
            connection.user_id, request.receiver_id, request.conversation_id, False
        )

    async def _on_message_delivered(
        self, connection: Connection, data: dict[str, Any]
    ) -> None:
        request = ev.parse_payload(ev.MessageDeliveredEvent, data)
        await self._hub.router.mark_delivered(connection.user_id, request.message_id)

    async def _on_message_read(self, connection: Connection, data: dict[str, Any]) -> None:
        request = ev.parse_payload(ev.MessageReadEvent, data)
        if request.message_id is not None:
            await self._hub.router.mark_read(connection.user_id, request.message_id)
        elif request.conversation_id is not None:
            await self._hub.router.mark_conversation_read(
                connection.user_id, request.conversation_id
            )

    async def _on_request_sent(self, connection: Connection, data: dict[str, Any]) -> None:
        request = ev.parse_payload(ev.RequestSentEvent, data)
        await self._hub.presence.relay_request_sent(
            connection.user_id, request.receiver_id, request.request
        )

    async def _on_request_accepted(
        self, connection: Connection, data: dict[str, Any]
    ) -> None:
        request = ev.parse_payload(ev.RequestAcceptedEvent, data)
        await self._hub.presence.relay_request_accepted(
            connection.user_id, request.sender_id, request.conversation
        )
