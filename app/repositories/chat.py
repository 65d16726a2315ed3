from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, func, or_, update
from sqlalchemy.orm import Query, Session, joinedload

from app.models import (
    Conversation,
    ConversationParticipant,
    Message,
    MessageAttachment,
    MessageContext,
    User,
    utcnow,
)


class ConversationRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, conversation_id: int) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(Conversation.id == conversation_id, Conversation.deleted_at.is_(None))
            .first()
        )

    def find_by_booking(self, booking_id: int, with_deleted: bool = False) -> Optional[Conversation]:
        query = (
            self.db.query(Conversation)
            .options(joinedload(Conversation.participants))
            .filter(Conversation.booking_id == booking_id)
        )
        if not with_deleted:
            query = query.filter(Conversation.deleted_at.is_(None))
        return query.first()

    def create_with_participants(self, booking_id: int, user_ids: list[int]) -> Conversation:
        conversation = Conversation(booking_id=booking_id)
        self.db.add(conversation)
        self.db.flush()
        for user_id in dict.fromkeys(user_ids):
            self.db.add(ConversationParticipant(conversation_id=conversation.id, user_id=user_id))
        self.db.flush()
        return conversation

    def participant(self, conversation_id: int, user_id: int) -> Optional[ConversationParticipant]:
        return (
            self.db.query(ConversationParticipant)
            .filter(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .first()
        )

    def participants(self, conversation_id: int) -> list[ConversationParticipant]:
        return (
            self.db.query(ConversationParticipant)
            .filter(ConversationParticipant.conversation_id == conversation_id)
            .order_by(ConversationParticipant.id.asc())
            .all()
        )

    def for_user(self, user_id: int, search: Optional[str] = None) -> Query:
        """Conversations the user takes part in, most recently active first."""
        my_conversation_ids = self.db.query(ConversationParticipant.conversation_id).filter(
            ConversationParticipant.user_id == user_id
        )
        query = (
            self.db.query(Conversation)
            .options(
                joinedload(Conversation.participants).joinedload(ConversationParticipant.user),
                joinedload(Conversation.booking),
            )
            .filter(Conversation.id.in_(my_conversation_ids), Conversation.deleted_at.is_(None))
        )
        if search:
            pattern = f"%{search}%"
            other_matches = (
                self.db.query(ConversationParticipant.conversation_id)
                .join(User, ConversationParticipant.user_id == User.id)
                .filter(
                    ConversationParticipant.user_id != user_id,
                    or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern), User.email.ilike(pattern)),
                )
            )
            query = query.filter(Conversation.id.in_(other_matches))
        return query.order_by(Conversation.updated_at.desc(), Conversation.id.desc())

    def touch(self, conversation: Conversation) -> None:
        conversation.updated_at = utcnow()
        self.db.flush()

    def advance_read_marker(self, conversation_id: int, user_id: int, message_id: int, now: datetime) -> int:
        """Single-row UPDATE of one participant's marker; never moves it backward."""
        result = self.db.execute(
            update(ConversationParticipant)
            .where(
                ConversationParticipant.conversation_id == conversation_id,
                ConversationParticipant.user_id == user_id,
                or_(
                    ConversationParticipant.last_read_message_id.is_(None),
                    ConversationParticipant.last_read_message_id < message_id,
                ),
            )
            .values(last_read_message_id=message_id, last_read_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


class MessageRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, message_id: int) -> Optional[Message]:
        return self.db.query(Message).filter(Message.id == message_id, Message.deleted_at.is_(None)).first()

    def get_attachment(self, attachment_id: int) -> Optional[MessageAttachment]:
        return (
            self.db.query(MessageAttachment)
            .options(joinedload(MessageAttachment.message))
            .filter(MessageAttachment.id == attachment_id)
            .first()
        )

    def _visible(self, conversation_id: int):
        return self.db.query(Message).filter(
            Message.conversation_id == conversation_id,
            Message.deleted_at.is_(None),
        )

    def count_out_of_session(self, conversation_id: int, sender_id: int) -> int:
        return (
            self.db.query(func.count(Message.id))
            .filter(
                Message.conversation_id == conversation_id,
                Message.sender_id == sender_id,
                Message.context == MessageContext.OUT_OF_SESSION.value,
                Message.deleted_at.is_(None),
            )
            .scalar()
            or 0
        )

    def max_id(self, conversation_id: int) -> Optional[int]:
        return (
            self.db.query(func.max(Message.id))
            .filter(Message.conversation_id == conversation_id, Message.deleted_at.is_(None))
            .scalar()
        )

    def unread_count(self, conversation_id: int, user_id: int, last_read_message_id: Optional[int]) -> int:
        query = self.db.query(func.count(Message.id)).filter(
            Message.conversation_id == conversation_id,
            Message.sender_id != user_id,
            Message.deleted_at.is_(None),
        )
        if last_read_message_id is not None:
            query = query.filter(Message.id > last_read_message_id)
        return query.scalar() or 0

    def unread_counts_for_user(self, user_id: int, conversation_ids: list[int]) -> dict[int, int]:
        """Unread counts for several conversations in one grouped query."""
        if not conversation_ids:
            return {}
        rows = (
            self.db.query(Message.conversation_id, func.count(Message.id))
            .join(
                ConversationParticipant,
                and_(
                    ConversationParticipant.conversation_id == Message.conversation_id,
                    ConversationParticipant.user_id == user_id,
                ),
            )
            .filter(
                Message.conversation_id.in_(conversation_ids),
                Message.sender_id != user_id,
                Message.deleted_at.is_(None),
                or_(
                    ConversationParticipant.last_read_message_id.is_(None),
                    Message.id > ConversationParticipant.last_read_message_id,
                ),
            )
            .group_by(Message.conversation_id)
            .all()
        )
        return {conversation_id: count for conversation_id, count in rows}

    def latest(self, conversation_id: int) -> Optional[Message]:
        return self._visible(conversation_id).order_by(Message.id.desc()).first()

    def page(self, conversation_id: int, per_page: int, cursor: Optional[int] = None) -> tuple[list[Message], Optional[int]]:
        """Newest first; ``cursor`` is the smallest id already seen by the caller."""
        query = self._visible(conversation_id).options(
            joinedload(Message.attachments),
            joinedload(Message.sender),
        )
        if cursor:
            query = query.filter(Message.id < cursor)
        rows = query.order_by(Message.id.desc()).limit(per_page + 1).all()
        has_more = len(rows) > per_page
        rows = rows[:per_page]
        next_cursor = rows[-1].id if has_more and rows else None
        return rows, next_cursor

    def create(self, *, conversation_id: int, sender_id: int, body: Optional[str], type: str, context: str) -> Message:
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            body=body,
            type=type,
            context=context,
        )
        self.db.add(message)
        self.db.flush()
        return message

    def add_attachment(self, message: Message, **data) -> MessageAttachment:
        attachment = MessageAttachment(message_id=message.id, **data)
        self.db.add(attachment)
        self.db.flush()
        return attachment


