"""
Streaming chat route

Server-sent events: data: {"token": ...} per delta, then text_done,
an optional audio_url and done.
"""
from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from app import crud
from app.api.deps import CurrentUser, SessionDep
from app.api.schemas import ChatStreamRequest
from app.services import companion_service

router = APIRouter(prefix="/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("/stream")
def stream(session: SessionDep, current_user: CurrentUser, body: ChatStreamRequest) -> StreamingResponse:
    """
    Stream a companion reply

    Request: POST /api/v1/chat/stream

    Errors after the stream started are sent as {"error": "..."} events.

    Raises:
        AppError: 404 "Companion not found" before streaming starts
    """
    character = crud.character.get_owned_or_404(session=session, user_id=current_user.id, ref=body.character_id)
    events = companion_service.stream_reply(
        user_id=current_user.id,
        character_id=character.id,
        content=body.content,
        with_voice=body.with_voice,
        nudge_voice=body.nudge_voice,
    )
    return StreamingResponse(events, media_type="text/event-stream", headers=SSE_HEADERS)
