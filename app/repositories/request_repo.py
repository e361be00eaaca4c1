"""Chat request repository."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.chat_request import ChatRequest, ChatRequestStatus
from app.models.conversation import make_pair_key


class ChatRequestRepository:
    """Encapsulates chat request database queries."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_id(self, request_id: int) -> ChatRequest | None:
        result = await self._session.execute(
            select(ChatRequest).where(ChatRequest.id == request_id)
        )
        return result.scalar_one_or_none()

    async def find_by_pair(self, user_a: int, user_b: int) -> ChatRequest | None:
        """Find the request between two users regardless of direction."""
        result = await self._session.execute(
            select(ChatRequest).where(
                ChatRequest.pair_key == make_pair_key(user_a, user_b)
            )
        )
        return result.scalar_one_or_none()

    async def create(self, sender_id: int, receiver_id: int, message: str) -> ChatRequest:
        request = ChatRequest(
            sender_id=sender_id,
            receiver_id=receiver_id,
            pair_key=make_pair_key(sender_id, receiver_id),
            status=ChatRequestStatus.PENDING.value,
            message=message,
        )
        self._session.add(request)
        await self._session.flush()
        await self._session.refresh(request)
        return request

    async def reopen(
        self, request: ChatRequest, sender_id: int, receiver_id: int, message: str
    ) -> ChatRequest:
        """Turn a rejected request back into a pending one from the new sender."""
        request.sender_id = sender_id
        request.receiver_id = receiver_id
        request.message = message
        request.status = ChatRequestStatus.PENDING.value
        await self._session.flush()
        await self._session.refresh(request)
        return request

    async def set_status(
        self, request: ChatRequest, status: ChatRequestStatus
    ) -> ChatRequest:
        request.status = status.value
        await self._session.flush()
        await self._session.refresh(request)
        return request

    async def find_pending_received(self, user_id: int) -> list[ChatRequest]:
        result = await self._session.execute(
            select(ChatRequest)
            .where(
                ChatRequest.receiver_id == user_id,
                ChatRequest.status == ChatRequestStatus.PENDING.value,
            )
            .order_by(ChatRequest.created_at.desc(), ChatRequest.id.desc())
        )
        return list(result.scalars().all())

    async def find_pending_sent(self, user_id: int) -> list[ChatRequest]:
        result = await self._session.execute(
            select(ChatRequest)
            .where(
                ChatRequest.sender_id == user_id,
                ChatRequest.status == ChatRequestStatus.PENDING.value,
            )
            .order_by(ChatRequest.created_at.desc(), ChatRequest.id.desc())
        )
        return list(result.scalars().all())
