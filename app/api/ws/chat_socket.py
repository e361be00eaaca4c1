"""Real-time websocket endpoint."""

import json
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.core.config import settings
from app.core.exceptions import AppException, ValidationError
from app.dependencies import get_realtime_hub, get_token_service
from app.repositories.user_repo import UserRepository
from app.services.auth_service import AuthService
from app.services.chat_gateway import ChatGateway
from app.services.connection_registry import Connection
from app.services.realtime_hub import RealtimeHub
from app.services.token_service import TokenService

logger = structlog.get_logger()

router = APIRouter(tags=["realtime"])

# Application-defined close code for a rejected credential.
WS_CLOSE_UNAUTHORIZED = 4401


def extract_token(websocket: WebSocket) -> str | None:
    """Token from ``?token=`` or an ``Authorization: Bearer`` header."""
    token = websocket.query_params.get("token")
    if token:
        return token
    auth_header = websocket.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


@router.websocket(settings.chat.websocket_path)
async def chat_socket(
    websocket: WebSocket,
    hub: Annotated[RealtimeHub, Depends(get_realtime_hub)],
    token_service: Annotated[TokenService, Depends(get_token_service)],
) -> None:
    """Authenticate, register the session, then dispatch frames until close."""
    try:
        async with hub.session_factory() as session:
            auth = AuthService(UserRepository(session), token_service, session)
            user = await auth.verify_identity(extract_token(websocket))
            user_id = user.id
    except AppException as exc:
        logger.info("Websocket rejected", code=exc.code, reason=exc.message)
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED, reason=exc.message)
        return

    await websocket.accept()
    connection = Connection(user_id=user_id, transport=websocket)
    gateway = ChatGateway(hub)
    log = logger.bind(user_id=user_id, connection_id=connection.id)

    try:
        await hub.presence.connect(connection)
        log.info("Websocket connected")
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
            text = message.get("text")
            if text is None:
                await gateway.report(
                    connection, "", ValidationError("Frame must be text JSON")
                )
                continue
            try:
                frame = json.loads(text)
            except ValueError:
                await gateway.report(
                    connection, "", ValidationError("Frame is not valid JSON")
                )
                continue
            await gateway.dispatch(connection, frame)
    except WebSocketDisconnect as exc:
        log.info("Websocket disconnected", code=exc.code)
    finally:
        await hub.presence.disconnect(connection)
