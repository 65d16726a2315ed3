"""
Per-participant read markers and unread counts.

A participant's marker is last_read_message_id: every message from the other
side with a larger id is unread. Markers only move forward, and marking one
participant never touches the other participant's row or the messages table.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.core import errors
from app.core.clock import Clock
from app.core.config import settings
from app.core.errors import ForbiddenError, NotFoundError
from app.models import ConversationParticipant, Message
from app.repositories import ConversationRepository, MessageRepository

logger = logging.getLogger(__name__)


@dataclass
class MessagePage:
    messages: list[Message]
    next_cursor: Optional[int]
    per_page: int
    unread_count: int


class ReadStateEngine:
    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock
        self.conversations = ConversationRepository(db)
        self.messages = MessageRepository(db)

    def _participant(self, conversation_id: int, user_id: int) -> ConversationParticipant:
        if not self.conversations.get(conversation_id):
            raise NotFoundError("Conversation", conversation_id)
        participant = self.conversations.participant(conversation_id, user_id)
        if not participant:
            raise ForbiddenError("You are not a participant in this conversation", reason=errors.NOT_PARTICIPANT)
        return participant

    def unread_count(self, conversation_id: int, user_id: int) -> int:
        participant = self._participant(conversation_id, user_id)
        self.db.refresh(participant)
        return self.messages.unread_count(conversation_id, user_id, participant.last_read_message_id)

    def mark_as_read(self, conversation_id: int, user_id: int, message_id: Optional[int] = None) -> Optional[int]:
        """Advance the caller's marker to message_id (default: the newest message). Returns the marker."""
        participant = self._participant(conversation_id, user_id)
        if message_id is None:
            message_id = self.messages.max_id(conversation_id)
            if message_id is None:
                return participant.last_read_message_id
        else:
            message = self.messages.get(message_id)
            if not message or message.conversation_id != conversation_id:
                raise NotFoundError("Message", message_id)

        try:
            updated = self.conversations.advance_read_marker(conversation_id, user_id, message_id, self.clock.now())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        if updated:
            logger.debug("read marker advanced conversation_id=%s user_id=%s to %s", conversation_id, user_id, message_id)
        self.db.refresh(participant)
        return participant.last_read_message_id

    def fetch_messages(
        self, conversation_id: int, user_id: int, per_page: Optional[int] = None, cursor: Optional[int] = None
    ) -> tuple[list[Message], Optional[int]]:
        self._participant(conversation_id, user_id)
        return self.messages.page(conversation_id, per_page or settings.chat_messages_per_page, cursor)

    def get_messages_and_mark_read(
        self, conversation_id: int, user_id: int, per_page: Optional[int] = None, cursor: Optional[int] = None
    ) -> MessagePage:
        """Fetch a page, then mark read up to the newest message that existed at fetch time."""
        self._participant(conversation_id, user_id)
        latest_id = self.messages.max_id(conversation_id)
        per_page = per_page or settings.chat_messages_per_page
        rows, next_cursor = self.messages.page(conversation_id, per_page, cursor)
        if latest_id is not None:
            self.mark_as_read(conversation_id, user_id, latest_id)
        return MessagePage(
            messages=rows,
            next_cursor=next_cursor,
            per_page=per_page,
            unread_count=self.unread_count(conversation_id, user_id),
        )
