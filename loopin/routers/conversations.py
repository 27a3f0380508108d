"""Conversation, message and group management routes."""
from __future__ import annotations

import json
from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Response,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.orm import Session

from ..constants import QUEUED_OFFLINE
from ..database import get_session
from ..models import Conversation, User
from ..schemas import (
    ConversationCreate,
    ConversationListResponse,
    ConversationResponse,
    ConversationSettingsUpdate,
    DirectConversationRequest,
    GroupMembersRequest,
    MemberRoleUpdate,
    MessageListResponse,
    MessageResponse,
    MessageSendRequest,
    QueuedActionResponse,
    SharePostRequest,
    UnreadCountResponse,
)
from ..services import (
    add_group_members,
    conversation_stream,
    create_conversation,
    decode_access_token,
    delete_group,
    delete_message,
    find_or_create_direct_conversation,
    get_conversation,
    get_conversation_messages,
    get_current_user,
    get_unread_messages_count,
    get_user_conversations,
    is_participant,
    leave_group,
    mark_messages_as_read,
    remove_group_member,
    send_message,
    serialize_conversation,
    share_post_in_dm,
    update_conversation_settings,
    update_member_role,
    upload_file,
)

router = APIRouter(prefix="/conversations", tags=["conversations"])


def _to_response(conversation: Conversation, viewer_id: UUID) -> ConversationResponse:
    return ConversationResponse(**serialize_conversation(conversation, viewer_id))


def _get_for_member(db: Session, conversation_id: UUID, user_id: UUID) -> Conversation:
    conversation = get_conversation(db, conversation_id)
    if conversation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    if user_id not in conversation.participant_ids:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a participant in this conversation")
    return conversation


@router.get("", response_model=ConversationListResponse)
def list_conversations_endpoint(
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> ConversationListResponse:
    conversations = get_user_conversations(db, current_user.id)
    return ConversationListResponse(items=[_to_response(item, current_user.id) for item in conversations])


@router.post(
    "",
    response_model=ConversationResponse | QueuedActionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_conversation_endpoint(
    payload: ConversationCreate,
    response: Response,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> ConversationResponse | QueuedActionResponse:
    result = create_conversation(
        db,
        payload.participant_ids,
        is_group=payload.is_group,
        name=payload.name,
        created_by=current_user.id,
    )
    if result == QUEUED_OFFLINE:
        response.status_code = status.HTTP_202_ACCEPTED
        return QueuedActionResponse()
    return _to_response(result, current_user.id)


@router.post("/direct", response_model=ConversationResponse | QueuedActionResponse)
def direct_conversation_endpoint(
    payload: DirectConversationRequest,
    response: Response,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> ConversationResponse | QueuedActionResponse:
    result = find_or_create_direct_conversation(db, current_user.id, payload.user_id, find_only=payload.find_only)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No direct conversation with this user")
    if result == QUEUED_OFFLINE:
        response.status_code = status.HTTP_202_ACCEPTED
        return QueuedActionResponse()
    return _to_response(result, current_user.id)


@router.post("/share-post", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def share_post_endpoint(
    payload: SharePostRequest,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    message = share_post_in_dm(db, current_user.id, payload.recipient_id, payload.post_id, payload.note)
    return MessageResponse.model_validate(message)


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count_endpoint(
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=get_unread_messages_count(db, current_user.id))


@router.get("/{conversation_id}", response_model=ConversationResponse)
def get_conversation_endpoint(
    conversation_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> ConversationResponse:
    return _to_response(_get_for_member(db, conversation_id, current_user.id), current_user.id)


@router.patch("/{conversation_id}", response_model=ConversationResponse)
def update_settings_endpoint(
    conversation_id: UUID,
    payload: ConversationSettingsUpdate,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> ConversationResponse:
    conversation = update_conversation_settings(
        db,
        conversation_id,
        current_user.id,
        is_muted=payload.is_muted,
        is_pinned=payload.is_pinned,
        name=payload.name,
    )
    return _to_response(conversation, current_user.id)


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_group_endpoint(
    conversation_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> Response:
    delete_group(db, conversation_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{conversation_id}/messages", response_model=MessageListResponse)
def list_messages_endpoint(
    conversation_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    before: UUID | None = Query(default=None),
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> MessageListResponse:
    _get_for_member(db, conversation_id, current_user.id)
    messages = get_conversation_messages(db, conversation_id, limit=limit, before=before)
    return MessageListResponse(items=[MessageResponse.model_validate(item) for item in messages])


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse | QueuedActionResponse,
    status_code=status.HTTP_201_CREATED,
)
def send_message_endpoint(
    conversation_id: UUID,
    payload: MessageSendRequest,
    response: Response,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> MessageResponse | QueuedActionResponse:
    result = send_message(db, conversation_id, current_user.id, payload.content, payload.message_type)
    if result == QUEUED_OFFLINE:
        response.status_code = status.HTTP_202_ACCEPTED
        return QueuedActionResponse()
    return MessageResponse.model_validate(result)


@router.post(
    "/{conversation_id}/attachments",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
def send_attachment_endpoint(
    conversation_id: UUID,
    file: UploadFile = File(...),
    caption: str | None = Form(default=None),
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Upload a file to storage and post it to the conversation."""

    _get_for_member(db, conversation_id, current_user.id)
    filename = (file.filename or "").strip()
    if not filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file must include a filename.")

    content_type = (file.content_type or "").lower()
    if content_type.startswith("image/"):
        message_type, kind = "image", "image"
    elif content_type.startswith("video/"):
        message_type, kind = "file", "video"
    else:
        message_type, kind = "file", "file"

    url = upload_file(file, f"chat/{conversation_id}")
    size = getattr(file, "size", None)
    content = {"name": filename, "url": url, "type": kind, "text": caption, "size": size}
    message = send_message(db, conversation_id, current_user.id, content, message_type, allow_queue=False)
    return MessageResponse.model_validate(message)


@router.post("/{conversation_id}/read", status_code=status.HTTP_204_NO_CONTENT)
def mark_read_endpoint(
    conversation_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> Response:
    mark_messages_as_read(db, conversation_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{conversation_id}/messages/{message_id}", response_model=MessageResponse)
def delete_message_endpoint(
    conversation_id: UUID,
    message_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    message = delete_message(db, message_id, current_user.id, conversation_id=conversation_id)
    return MessageResponse.model_validate(message)


@router.post("/{conversation_id}/members", response_model=ConversationResponse)
def add_members_endpoint(
    conversation_id: UUID,
    payload: GroupMembersRequest,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> ConversationResponse:
    conversation = add_group_members(db, conversation_id, current_user.id, payload.user_ids)
    return _to_response(conversation, current_user.id)


@router.delete("/{conversation_id}/members/{member_id}", response_model=ConversationResponse)
def remove_member_endpoint(
    conversation_id: UUID,
    member_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> ConversationResponse:
    conversation = remove_group_member(db, conversation_id, current_user.id, member_id)
    return _to_response(conversation, current_user.id)


@router.patch("/{conversation_id}/members/{member_id}", response_model=ConversationResponse)
def update_role_endpoint(
    conversation_id: UUID,
    member_id: UUID,
    payload: MemberRoleUpdate,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> ConversationResponse:
    conversation = update_member_role(db, conversation_id, current_user.id, member_id, payload.role)
    return _to_response(conversation, current_user.id)


@router.post("/{conversation_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
def leave_group_endpoint(
    conversation_id: UUID,
    db: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> Response:
    leave_group(db, conversation_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.websocket("/{conversation_id}/ws")
async def conversation_socket(
    websocket: WebSocket,
    conversation_id: UUID,
    token: str = Query(..., alias="token"),
    db: Session = Depends(get_session),
) -> None:
    try:
        user_id = decode_access_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    if not is_participant(db, conversation_id, user_id):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    channel = str(conversation_id)
    messages = get_conversation_messages(db, conversation_id)
    await conversation_stream.connect(channel, websocket)
    await websocket.send_text(
        json.dumps(
            {
                "type": "snapshot",
                "conversation_id": channel,
                "messages": [MessageResponse.model_validate(item).model_dump(mode="json") for item in messages],
            }
        )
    )
    try:
        while True:
            try:
                payload = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            if payload.strip().lower() == "ping":
                await websocket.send_text(json.dumps({"type": "pong", "conversation_id": channel}))
    finally:
        await conversation_stream.disconnect(websocket)
