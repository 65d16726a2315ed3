"""
Booking conversations and message sending.

sendMessage holds the conversation row lock for the whole send, so quota counts
and inserts for one conversation are serialized. Lock order: conversation, then messages.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.core import errors
from app.core.clock import Clock
from app.core.config import settings
from app.core.errors import BookingValidationError, ForbiddenError, NotFoundError
from app.core.locking import lock_row
from app.models import (
    Booking,
    BookingStatus,
    Consultant,
    Conversation,
    Message,
    MessageAttachment,
    MessageContext,
    MessageType,
)
from app.repositories import ConversationRepository, MessageRepository
from app.services.storage import FileStorage, IncomingFile, get_storage

logger = logging.getLogger(__name__)


def is_in_session(booking: Booking, now: datetime) -> bool:
    """Session window is [start_at, start_at + duration); the buffer is not part of it."""
    return booking.start_at <= now < booking.session_end


def message_type_for(body: Optional[str], files: Sequence[IncomingFile]) -> str:
    if body and files:
        return MessageType.MIXED.value
    if files:
        return MessageType.ATTACHMENT.value
    return MessageType.TEXT.value


def validate_files(files: Sequence[IncomingFile]) -> None:
    """One bad file rejects the whole send."""
    if len(files) > settings.chat_max_files:
        raise BookingValidationError(
            errors.INVALID_ATTACHMENT, f"At most {settings.chat_max_files} files per message", field="files"
        )
    max_bytes = settings.chat_max_file_size_mb * 1024 * 1024
    allowed = set(settings.chat_allowed_mime_types)
    for index, incoming in enumerate(files):
        if incoming.content_type not in allowed:
            raise BookingValidationError(
                errors.INVALID_ATTACHMENT, f"File type not allowed: {incoming.filename}", field=f"files.{index}"
            )
        if incoming.size > max_bytes:
            raise BookingValidationError(
                errors.INVALID_ATTACHMENT,
                f"File exceeds {settings.chat_max_file_size_mb}MB: {incoming.filename}",
                field=f"files.{index}",
            )


@dataclass
class ConversationSummary:
    conversation: Conversation
    other_user_id: Optional[int]
    last_message: Optional[Message]
    unread_count: int


@dataclass
class ConversationListing:
    items: list[ConversationSummary] = field(default_factory=list)
    total: int = 0
    page: int = 1
    per_page: int = 20


class ChatService:
    def __init__(self, db: Session, clock: Clock, storage: FileStorage | None = None):
        self.db = db
        self.clock = clock
        self.storage = storage or get_storage()
        self.conversations = ConversationRepository(db)
        self.messages = MessageRepository(db)

    def get_or_create_conversation(self, booking_id: int, user_id: int) -> Conversation:
        booking = (
            self.db.query(Booking)
            .options(joinedload(Booking.consultant))
            .filter(Booking.id == booking_id, Booking.deleted_at.is_(None))
            .first()
        )
        if not booking:
            raise NotFoundError("Booking", booking_id)
        consultant_user_id = booking.consultant.user_id
        if user_id not in (booking.client_id, consultant_user_id):
            raise ForbiddenError("You are not a participant in this booking", reason=errors.NOT_PARTICIPANT)

        existing = self.conversations.find_by_booking(booking_id, with_deleted=True)
        if existing:
            # booking_id is unique, so a removed conversation cannot be replaced.
            if existing.deleted_at is not None:
                raise NotFoundError("Conversation", existing.id)
            return existing
        try:
            conversation = self.conversations.create_with_participants(
                booking_id, [booking.client_id, consultant_user_id]
            )
            self.db.commit()
        except IntegrityError:
            # Another request created it first; the unique booking_id decides the winner.
            self.db.rollback()
            conversation = self.conversations.find_by_booking(booking_id)
            if conversation is None:
                raise
            return conversation
        logger.info("conversation created id=%s booking_id=%s", conversation.id, booking_id)
        return conversation

    def get_conversation(self, conversation_id: int, user_id: int) -> Conversation:
        conversation = self.conversations.get(conversation_id)
        if not conversation:
            raise NotFoundError("Conversation", conversation_id)
        if not self.conversations.participant(conversation_id, user_id):
            raise ForbiddenError("You are not a participant in this conversation", reason=errors.NOT_PARTICIPANT)
        return conversation

    def send_message(
        self,
        conversation_id: int,
        sender_id: int,
        body: Optional[str] = None,
        files: Sequence[IncomingFile] = (),
    ) -> Message:
        body = body.strip() if body else None
        files = list(files or [])
        if not body and not files:
            raise BookingValidationError(errors.EMPTY_MESSAGE, "A message needs a body or files", field="body")
        if body and len(body) > settings.chat_max_message_length:
            raise BookingValidationError(
                errors.MESSAGE_TOO_LONG,
                f"Message must be at most {settings.chat_max_message_length} characters",
                field="body",
            )

        stored: list[tuple[str, str]] = []
        try:
            conversation = lock_row(self.db, Conversation, conversation_id)
            if conversation is None or conversation.deleted_at is not None:
                raise NotFoundError("Conversation", conversation_id)
            if not self.conversations.participant(conversation_id, sender_id):
                raise ForbiddenError("You are not a participant in this conversation", reason=errors.NOT_PARTICIPANT)
            booking = self.db.get(Booking, conversation.booking_id, populate_existing=True)
            if booking.status != BookingStatus.CONFIRMED.value:
                raise ForbiddenError(
                    "Messaging is only available for confirmed bookings", reason=errors.MESSAGING_NOT_ALLOWED
                )

            now = self.clock.now()
            in_session = is_in_session(booking, now)
            context = MessageContext.IN_SESSION.value if in_session else MessageContext.OUT_OF_SESSION.value
            self._check_quota(conversation_id, booking, sender_id, in_session)
            if files:
                validate_files(files)

            message = self.messages.create(
                conversation_id=conversation_id,
                sender_id=sender_id,
                body=body,
                type=message_type_for(body, files),
                context=context,
            )
            disk = settings.chat_attachment_disk
            for incoming in files:
                path = self.storage.put(disk, settings.chat_attachment_path, incoming.filename, incoming.content)
                stored.append((disk, path))
                self.messages.add_attachment(
                    message,
                    original_name=incoming.filename,
                    mime_type=incoming.content_type,
                    size=incoming.size,
                    disk=disk,
                    path=path,
                )
            self.conversations.touch(conversation)
            self.db.commit()
        except Exception:
            self.db.rollback()
            for disk, path in stored:
                self.storage.delete(disk, path)
            raise
        logger.info(
            "message sent id=%s conversation_id=%s sender_id=%s context=%s attachments=%s",
            message.id,
            conversation_id,
            sender_id,
            context,
            len(files),
        )
        return message

    def _check_quota(self, conversation_id: int, booking: Booking, sender_id: int, in_session: bool) -> None:
        if in_session:
            return
        consultant = self.db.get(Consultant, booking.consultant_id)
        if consultant is not None and consultant.user_id == sender_id:
            return
        # Counted while the conversation lock is held.
        sent = self.messages.count_out_of_session(conversation_id, sender_id)
        limit = settings.chat_client_out_of_session_limit
        if sent >= limit:
            logger.warning("out-of-session quota reached conversation_id=%s sender_id=%s", conversation_id, sender_id)
            raise ForbiddenError(
                f"You have reached the limit of {limit} messages outside the session time",
                reason=errors.QUOTA_EXCEEDED,
            )

    def get_user_conversations(
        self, user_id: int, search: Optional[str] = None, page: int = 1, per_page: int = 20
    ) -> ConversationListing:
        query = self.conversations.for_user(user_id, search)
        total = query.order_by(None).count()
        rows = query.offset((page - 1) * per_page).limit(per_page).all()
        unread = self.messages.unread_counts_for_user(user_id, [row.id for row in rows])
        items = []
        for conversation in rows:
            other = next((p.user_id for p in conversation.participants if p.user_id != user_id), None)
            items.append(
                ConversationSummary(
                    conversation=conversation,
                    other_user_id=other,
                    last_message=self.messages.latest(conversation.id),
                    unread_count=unread.get(conversation.id, 0),
                )
            )
        return ConversationListing(items=items, total=total, page=page, per_page=per_page)

    def attachment_for_download(self, attachment_id: int, user_id: int) -> tuple[MessageAttachment, bytes]:
        attachment = self.messages.get_attachment(attachment_id)
        if not attachment or attachment.message is None or attachment.message.deleted_at is not None:
            raise NotFoundError("Attachment", attachment_id)
        if not self.conversations.participant(attachment.message.conversation_id, user_id):
            raise ForbiddenError("You are not a participant in this conversation", reason=errors.NOT_PARTICIPANT)
        if not self.storage.exists(attachment.disk, attachment.path):
            raise NotFoundError("Attachment file", attachment_id)
        return attachment, self.storage.get(attachment.disk, attachment.path)
