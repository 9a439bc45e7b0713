from typing import Any, List, Optional
from fastapi import APIRouter, Depends, WebSocket

from dispute_desk.api import deps
from dispute_desk.api.live import accept_authenticated, stream_snapshots
from dispute_desk.schemas.dispute import (
    DashboardSummary,
    Dispute,
    DisputeStatistics,
    StatusUpdateRequest,
)
from dispute_desk.services import statistics
from dispute_desk.services.chat_session import mark_opened
from dispute_desk.services.dispute_repository import DisputeRepository
from dispute_desk.services.session_store import SessionStore

router = APIRouter()


@router.get("", response_model=List[Dispute], dependencies=[Depends(deps.get_current_support_user)])
async def read_disputes(
    disputes: DisputeRepository = Depends(deps.get_dispute_repository),
) -> Any:
    """
    Every dispute, in the order it was reported.
    """
    return await disputes.list_all()


@router.get("/statistics", response_model=DisputeStatistics, dependencies=[Depends(deps.get_current_support_user)])
async def read_statistics(
    disputes: DisputeRepository = Depends(deps.get_dispute_repository),
) -> Any:
    return await disputes.get_statistics()


@router.get("/dashboard", response_model=DashboardSummary, dependencies=[Depends(deps.get_current_support_user)])
async def read_dashboard(
    disputes: DisputeRepository = Depends(deps.get_dispute_repository),
) -> Any:
    """
    Quick stats plus the status pie and monthly trend chart series.
    """
    return statistics.summarize(await disputes.list_all())


@router.websocket("/stream")
async def stream_disputes(
    websocket: WebSocket,
    token: Optional[str] = None,
    store: SessionStore = Depends(deps.get_session_store),
    disputes: DisputeRepository = Depends(deps.get_dispute_repository),
):
    """
    Live dispute list: one frame with the full list and summary per change.
    """
    if not await accept_authenticated(websocket, store, token):
        return

    def render(snapshot: List[Dispute]) -> dict:
        return {
            "disputes": [d.model_dump(mode="json", by_alias=True) for d in snapshot],
            "summary": statistics.summarize(snapshot).model_dump(mode="json", by_alias=True),
        }

    await stream_snapshots(websocket, disputes.subscribe(), render)


@router.get("/{dispute_id}", response_model=Dispute, dependencies=[Depends(deps.get_current_support_user)])
async def read_dispute(
    dispute_id: str,
    disputes: DisputeRepository = Depends(deps.get_dispute_repository),
) -> Any:
    return await disputes.get_by_id(dispute_id)


@router.put("/{dispute_id}/status", response_model=Dispute, dependencies=[Depends(deps.get_current_support_user)])
async def update_dispute_status(
    dispute_id: str,
    request: StatusUpdateRequest,
    disputes: DisputeRepository = Depends(deps.get_dispute_repository),
) -> Any:
    """
    Move a dispute to any of New, Open, In Progress, Resolved, Escalated.
    """
    return await disputes.update_status(dispute_id, request.status)


@router.post("/{dispute_id}/chat/open", response_model=Dispute, dependencies=[Depends(deps.get_current_support_user)])
async def open_dispute_chat(
    dispute_id: str,
    disputes: DisputeRepository = Depends(deps.get_dispute_repository),
) -> Any:
    """
    Called when an agent opens the chat; a New dispute becomes Open.
    """
    return await mark_opened(disputes, await disputes.get_by_id(dispute_id))
