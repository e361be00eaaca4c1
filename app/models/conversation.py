"""Conversation and participant database models."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


def make_pair_key(user_a: int, user_b: int) -> str:
    """Canonical key of an unordered user pair."""
    low, high = sorted((user_a, user_b))
    return f"{low}:{high}"


class Conversation(Base):
    """One-to-one conversation between exactly two users."""

    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    pair_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    # Weak reference: no FK so message deletion never has to touch this row.
    last_message_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), index=True
    )

    participants: Mapped[list["ConversationParticipant"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def participant_ids(self) -> list[int]:
        return sorted(p.user_id for p in self.participants)

    def has_participant(self, user_id: int) -> bool:
        return any(p.user_id == user_id for p in self.participants)

    def other_participant_id(self, user_id: int) -> int | None:
        for p in self.participants:
            if p.user_id != user_id:
                return p.user_id
        return None

    def unread_count_for(self, user_id: int) -> int:
        for p in self.participants:
            if p.user_id == user_id:
                return p.unread_count
        return 0


class ConversationParticipant(Base):
    """Membership row carrying the participant's unread counter."""

    __tablename__ = "conversation_participants"

    conversation_id: Mapped[int] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), primary_key=True, index=True
    )
    unread_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    conversation: Mapped[Conversation] = relationship(back_populates="participants")
