from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from sqlalchemy.orm import Session

from app.api.deps import current_user
from app.core.clock import Clock, get_clock
from app.models import User
from app.schemas.chat import (
    ConversationCreate,
    ConversationListItem,
    ConversationListResponse,
    ConversationRead,
    MarkReadRequest,
    MessageRead,
    MessagesMeta,
    MessagesResponse,
    ReadStateResponse,
)
from app.services.chat import ChatService, ConversationSummary
from app.services.read_state import ReadStateEngine
from app.services.storage import FileStorage, IncomingFile, get_storage
from database import get_db

router = APIRouter()


def _to_list_item(summary: ConversationSummary) -> ConversationListItem:
    conversation = summary.conversation
    other = next((p.user for p in conversation.participants if p.user_id == summary.other_user_id), None)
    return ConversationListItem(
        id=conversation.id,
        booking_id=conversation.booking_id,
        other_user_id=summary.other_user_id,
        other_user_name=other.full_name if other else None,
        last_message=MessageRead.model_validate(summary.last_message) if summary.last_message else None,
        unread_count=summary.unread_count,
        updated_at=conversation.updated_at,
    )


@router.post("/conversations", response_model=ConversationRead)
def get_or_create_conversation(
    payload: ConversationCreate,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    storage: FileStorage = Depends(get_storage),
) -> ConversationRead:
    """Return the booking's conversation, creating it on first use."""
    conversation = ChatService(db, clock, storage).get_or_create_conversation(payload.booking_id, user.id)
    return ConversationRead.model_validate(conversation)


@router.get("/conversations", response_model=ConversationListResponse)
def list_conversations(
    search: Optional[str] = Query(None, description="Match the other participant's name or email"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    storage: FileStorage = Depends(get_storage),
) -> ConversationListResponse:
    listing = ChatService(db, clock, storage).get_user_conversations(user.id, search, page, per_page)
    return ConversationListResponse(
        conversations=[_to_list_item(item) for item in listing.items],
        total=listing.total,
        page=listing.page,
        per_page=listing.per_page,
    )


@router.get("/conversations/{conversation_id}", response_model=ConversationRead)
def get_conversation(
    conversation_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    storage: FileStorage = Depends(get_storage),
) -> ConversationRead:
    conversation = ChatService(db, clock, storage).get_conversation(conversation_id, user.id)
    return ConversationRead.model_validate(conversation)


@router.get("/conversations/{conversation_id}/messages", response_model=MessagesResponse)
def list_messages(
    conversation_id: int,
    per_page: Optional[int] = Query(None, ge=1, le=100),
    cursor: Optional[int] = Query(None, description="Load messages older than this id"),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> MessagesResponse:
    """Newest first. Opening the conversation marks everything up to now as read."""
    result = ReadStateEngine(db, clock).get_messages_and_mark_read(conversation_id, user.id, per_page, cursor)
    return MessagesResponse(
        messages=[MessageRead.model_validate(message) for message in result.messages],
        meta=MessagesMeta(
            next_cursor=result.next_cursor,
            per_page=result.per_page,
            unread_count=result.unread_count,
        ),
    )


@router.post("/conversations/{conversation_id}/messages", response_model=MessageRead, status_code=201)
async def send_message(
    conversation_id: int,
    body: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    storage: FileStorage = Depends(get_storage),
) -> MessageRead:
    incoming = []
    for upload in files or []:
        incoming.append(
            IncomingFile(
                filename=upload.filename or "file",
                content_type=upload.content_type or "application/octet-stream",
                content=await upload.read(),
            )
        )
    message = ChatService(db, clock, storage).send_message(conversation_id, user.id, body, incoming)
    return MessageRead.model_validate(message)


@router.post("/conversations/{conversation_id}/read", response_model=ReadStateResponse)
def mark_conversation_read(
    conversation_id: int,
    payload: Optional[MarkReadRequest] = None,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ReadStateResponse:
    engine = ReadStateEngine(db, clock)
    marker = engine.mark_as_read(conversation_id, user.id, payload.message_id if payload else None)
    return ReadStateResponse(
        conversation_id=conversation_id,
        last_read_message_id=marker,
        unread_count=engine.unread_count(conversation_id, user.id),
    )


@router.get("/conversations/{conversation_id}/unread-count", response_model=ReadStateResponse)
def get_unread_count(
    conversation_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ReadStateResponse:
    engine = ReadStateEngine(db, clock)
    count = engine.unread_count(conversation_id, user.id)
    participant = engine.conversations.participant(conversation_id, user.id)
    return ReadStateResponse(
        conversation_id=conversation_id,
        last_read_message_id=participant.last_read_message_id,
        unread_count=count,
    )


@router.get("/attachments/{attachment_id}")
def download_attachment(
    attachment_id: int,
    user: User = Depends(current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    storage: FileStorage = Depends(get_storage),
) -> Response:
    attachment, content = ChatService(db, clock, storage).attachment_for_download(attachment_id, user.id)
    return Response(
        content=content,
        media_type=attachment.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{attachment.original_name}"'},
    )
