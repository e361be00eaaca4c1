"""Chat request lifecycle: send, list, accept, reject."""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AlreadyConnectedError,
    AuthorizationError,
    ChatRequestNotFoundError,
    RequestAlreadyPendingError,
    RequestAlreadyProcessedError,
    UserNotFoundError,
    ValidationError,
)
from app.models.chat_request import ChatRequest, ChatRequestStatus
from app.models.conversation import Conversation
from app.repositories.request_repo import ChatRequestRepository
from app.repositories.user_repo import UserRepository
from app.schemas.conversation_schema import ConversationDetail
from app.schemas.request_schema import (
    AcceptRequestResponse,
    ChatRequestListResponse,
    ChatRequestResponse,
    SendChatRequest,
)
from app.schemas.user_schema import UserSummary
from app.services.conversation_directory import ConversationDirectory

logger = structlog.get_logger()


class ChatRequestService:
    """One request row per user pair; a rejected request can be sent again."""

    def __init__(
        self,
        request_repo: ChatRequestRepository,
        user_repo: UserRepository,
        directory: ConversationDirectory,
        session: AsyncSession,
        user_id: int,
    ) -> None:
        self._request_repo = request_repo
        self._user_repo = user_repo
        self._directory = directory
        self._session = session
        self._user_id = user_id

    async def send(self, request: SendChatRequest) -> tuple[ChatRequestResponse, bool]:
        """Create or reopen a request. Returns ``(request, created)``."""
        if request.receiver_id == self._user_id:
            raise ValidationError("Cannot send request to yourself")
        if await self._user_repo.find_by_id(request.receiver_id) is None:
            raise UserNotFoundError

        existing = await self._request_repo.find_by_pair(
            self._user_id, request.receiver_id
        )
        created = existing is None
        match existing.status if existing else None:
            case None:
                chat_request = await self._request_repo.create(
                    self._user_id, request.receiver_id, request.message
                )
            case ChatRequestStatus.PENDING:
                raise RequestAlreadyPendingError
            case ChatRequestStatus.ACCEPTED:
                raise AlreadyConnectedError
            case _:
                chat_request = await self._request_repo.reopen(
                    existing, self._user_id, request.receiver_id, request.message
                )
        await self._session.commit()

        logger.info(
            "Chat request sent",
            request_id=chat_request.id,
            sender_id=self._user_id,
            receiver_id=request.receiver_id,
            reopened=not created,
        )
        return await self._to_response(chat_request), created

    async def list_received(self) -> ChatRequestListResponse:
        rows = await self._request_repo.find_pending_received(self._user_id)
        return await self._to_list(rows)

    async def list_sent(self) -> ChatRequestListResponse:
        rows = await self._request_repo.find_pending_sent(self._user_id)
        return await self._to_list(rows)

    async def accept(self, request_id: int) -> AcceptRequestResponse:
        """Accept a pending request and return the pair's conversation.

        The conversation is looked up or created through the directory, so
        a pair that already exchanged messages keeps its conversation.
        """
        chat_request = await self._load_pending_for_receiver(request_id)
        conversation, created = await self._directory.get_or_create(
            self._session, chat_request.sender_id, chat_request.receiver_id
        )
        chat_request = await self._request_repo.set_status(
            chat_request, ChatRequestStatus.ACCEPTED
        )
        await self._session.commit()

        logger.info(
            "Chat request accepted",
            request_id=chat_request.id,
            conversation_id=conversation.id,
            conversation_created=created,
        )
        return AcceptRequestResponse(
            request=await self._to_response(chat_request),
            conversation=await self._conversation_detail(conversation),
        )

    async def reject(self, request_id: int) -> ChatRequestResponse:
        chat_request = await self._load_pending_for_receiver(request_id)
        chat_request = await self._request_repo.set_status(
            chat_request, ChatRequestStatus.REJECTED
        )
        await self._session.commit()
        logger.info("Chat request rejected", request_id=chat_request.id)
        return await self._to_response(chat_request)

    async def _load_pending_for_receiver(self, request_id: int) -> ChatRequest:
        chat_request = await self._request_repo.find_by_id(request_id)
        if chat_request is None:
            raise ChatRequestNotFoundError
        if chat_request.receiver_id != self._user_id:
            raise AuthorizationError("Not authorized to process this request")
        if chat_request.status != ChatRequestStatus.PENDING:
            raise RequestAlreadyProcessedError
        return chat_request

    async def _to_response(self, chat_request: ChatRequest) -> ChatRequestResponse:
        users = await self._user_repo.find_by_ids(
            [chat_request.sender_id, chat_request.receiver_id]
        )
        return self._build(chat_request, users)

    async def _to_list(self, rows: list[ChatRequest]) -> ChatRequestListResponse:
        user_ids = {r.sender_id for r in rows} | {r.receiver_id for r in rows}
        users = await self._user_repo.find_by_ids(user_ids)
        requests = [self._build(r, users) for r in rows]
        return ChatRequestListResponse(requests=requests, count=len(requests))

    @staticmethod
    def _build(chat_request: ChatRequest, users: dict) -> ChatRequestResponse:
        return ChatRequestResponse(
            id=chat_request.id,
            sender=UserSummary.model_validate(users[chat_request.sender_id]),
            receiver=UserSummary.model_validate(users[chat_request.receiver_id]),
            status=ChatRequestStatus(chat_request.status),
            message=chat_request.message,
            created_at=chat_request.created_at,
            updated_at=chat_request.updated_at,
        )

    async def _conversation_detail(self, conversation: Conversation) -> ConversationDetail:
        users = await self._user_repo.find_by_ids(conversation.participant_ids)
        return ConversationDetail(
            id=conversation.id,
            participants=[
                UserSummary.model_validate(users[uid])
                for uid in conversation.participant_ids
                if uid in users
            ],
            last_message_id=conversation.last_message_id,
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )
