from __future__ import annotations

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base
from app.models.base import SoftDeleteMixin, TimestampMixin, utcnow
from app.models.enums import MessageType


class Conversation(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # One conversation per booking; concurrent creators collide on this constraint.
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)

    booking = relationship("Booking", back_populates="conversation")
    participants = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
    )
    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan")

    def participant_ids(self) -> set[int]:
        return {participant.user_id for participant in self.participants}

    def is_participant(self, user_id: int) -> bool:
        return user_id in self.participant_ids()


class ConversationParticipant(TimestampMixin, Base):
    __tablename__ = "conversation_participants"
    __table_args__ = (UniqueConstraint("conversation_id", "user_id", name="uq_conversation_participant"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Never moves backward.
    last_read_message_id = Column(Integer, ForeignKey("messages.id", ondelete="SET NULL"), nullable=True)
    last_read_at = Column(DateTime, nullable=True)

    conversation = relationship("Conversation", back_populates="participants")
    user = relationship("User")


class Message(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_id", "conversation_id", "id"),
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
        Index("ix_messages_limit_lookup", "conversation_id", "sender_id", "context"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    body = Column(Text, nullable=True)
    type = Column(String(16), nullable=False, default=MessageType.TEXT.value)
    context = Column(String(20), nullable=False)

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User")
    attachments = relationship("MessageAttachment", back_populates="message", cascade="all, delete-orphan")


class MessageAttachment(Base):
    __tablename__ = "message_attachments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(Integer, ForeignKey("messages.id"), nullable=False, index=True)
    original_name = Column(String(255), nullable=False)
    mime_type = Column(String(255), nullable=False)
    size = Column(BigInteger, nullable=False)
    disk = Column(String(32), nullable=False)
    path = Column(String(512), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    message = relationship("Message", back_populates="attachments")


__all__ = ["Conversation", "ConversationParticipant", "Message", "MessageAttachment"]
