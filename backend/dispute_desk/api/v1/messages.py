from typing import Any, List, Optional
from fastapi import APIRouter, Depends, File, UploadFile, WebSocket, status

from dispute_desk.api import deps
from dispute_desk.api.live import accept_authenticated, stream_snapshots
from dispute_desk.schemas.auth import SupportIdentity
from dispute_desk.schemas.message import Attachment, Message, MessageDraft, SendMessageRequest, SenderRole
from dispute_desk.services.dispute_repository import DisputeRepository
from dispute_desk.services.message_repository import MessageRepository
from dispute_desk.services.session_store import SessionStore

router = APIRouter()


@router.get("/{dispute_id}/messages", response_model=List[Message], dependencies=[Depends(deps.get_current_support_user)])
async def read_messages(
    dispute_id: str,
    disputes: DisputeRepository = Depends(deps.get_dispute_repository),
    messages: MessageRepository = Depends(deps.get_message_repository),
) -> Any:
    await disputes.get_by_id(dispute_id)
    return await messages.fetch_all(dispute_id)


@router.post("/{dispute_id}/messages", response_model=Message, status_code=status.HTTP_201_CREATED)
async def send_message(
    dispute_id: str,
    request: SendMessageRequest,
    current_user: SupportIdentity = Depends(deps.get_current_support_user),
    disputes: DisputeRepository = Depends(deps.get_dispute_repository),
    messages: MessageRepository = Depends(deps.get_message_repository),
) -> Any:
    """
    Post a support reply. Text, attachments, or both.
    """
    await disputes.get_by_id(dispute_id)
    draft = MessageDraft(
        sender_id=current_user.id,
        sender_role=SenderRole.SUPPORT,
        sender_name=current_user.display_name,
        message=request.message,
        attachments=request.attachments,
    )
    return await messages.send(dispute_id, draft)


@router.post(
    "/{dispute_id}/attachments",
    response_model=Attachment,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(deps.get_current_support_user)],
)
async def upload_attachment(
    dispute_id: str,
    file: UploadFile = File(...),
    disputes: DisputeRepository = Depends(deps.get_dispute_repository),
    messages: MessageRepository = Depends(deps.get_message_repository),
) -> Any:
    """
    Store a file for the chat; send the returned attachment with a message.
    """
    await disputes.get_by_id(dispute_id)
    messages.check_attachment_size(file.size)
    content = await file.read()
    return await messages.upload_attachment(content, file.filename, file.content_type, dispute_id)


@router.websocket("/{dispute_id}/messages/stream")
async def stream_messages(
    websocket: WebSocket,
    dispute_id: str,
    token: Optional[str] = None,
    store: SessionStore = Depends(deps.get_session_store),
    messages: MessageRepository = Depends(deps.get_message_repository),
):
    if not await accept_authenticated(websocket, store, token):
        return

    def render(snapshot: List[Message]) -> dict:
        return {
            "disputeId": dispute_id,
            "messages": [m.model_dump(mode="json", by_alias=True) for m in snapshot],
        }

    await stream_snapshots(websocket, messages.subscribe(dispute_id), render)
