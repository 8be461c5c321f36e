"""
Companion routes

Persona CRUD, portraits and request/response chat. The streaming chat
endpoint lives in chat.py.
"""
from __future__ import annotations

from fastapi import APIRouter, Query

from app import crud
from app.api.deps import CurrentUser, SessionDep
from app.api.schemas import (
    ApiEnvelope,
    CharacterCreateRequest,
    CharacterData,
    ChatExchangeData,
    ChatHistoryData,
    ChatMessageData,
    ChatSendRequest,
    PortraitPreviewRequest,
    PortraitSetRequest,
)
from app.services import companion_service

router = APIRouter(prefix="/companions", tags=["companions"])


@router.post("", response_model=ApiEnvelope)
def create_companion(session: SessionDep, current_user: CurrentUser, body: CharacterCreateRequest) -> ApiEnvelope:
    """
    Create a companion

    Request: POST /api/v1/companions

    Raises:
        AppError: 400 "Maximum 5 active companions. Delete one to create a new one."
    """
    character = companion_service.create_character(session, user=current_user, body=body)
    return ApiEnvelope(data=CharacterData.model_validate(character))


@router.get("", response_model=ApiEnvelope)
def list_companions(session: SessionDep, current_user: CurrentUser) -> ApiEnvelope:
    """Active companions, most recently used first; Request: GET /api/v1/companions"""
    rows = crud.character.list_active(session=session, user_id=current_user.id)
    return ApiEnvelope(data=[CharacterData.model_validate(c) for c in rows])


@router.post("/preview", response_model=ApiEnvelope)
def preview(current_user: CurrentUser, body: PortraitPreviewRequest) -> ApiEnvelope:
    """
    One preview portrait for the creation form; nothing is saved

    Request: POST /api/v1/companions/preview
    """
    url = companion_service.preview_portrait(
        personality=body.personality, appearance=body.appearance, description=body.description
    )
    return ApiEnvelope(data={"image_url": url})


@router.get("/{ref}", response_model=ApiEnvelope)
def get_companion(session: SessionDep, current_user: CurrentUser, ref: str) -> ApiEnvelope:
    """
    Request: GET /api/v1/companions/{id_or_slug}

    Raises:
        AppError: 404 "Companion not found"
    """
    character = crud.character.get_owned_or_404(session=session, user_id=current_user.id, ref=ref)
    return ApiEnvelope(data=CharacterData.model_validate(character))


@router.delete("/{character_id}", response_model=ApiEnvelope)
def delete_companion(session: SessionDep, current_user: CurrentUser, character_id: int) -> ApiEnvelope:
    """Soft delete; Request: DELETE /api/v1/companions/{character_id}"""
    character = crud.character.get_owned_or_404(session=session, user_id=current_user.id, ref=character_id)
    companion_service.delete_character(session, character=character)
    return ApiEnvelope(data={"deleted": character_id})


@router.post("/{character_id}/portrait", response_model=ApiEnvelope)
def generate_portraits(session: SessionDep, current_user: CurrentUser, character_id: int) -> ApiEnvelope:
    """
    Portrait candidates from the GPU box (512x768, 4 images)

    Request: POST /api/v1/companions/{character_id}/portrait
    """
    character = crud.character.get_owned_or_404(session=session, user_id=current_user.id, ref=character_id)
    return ApiEnvelope(data={"images": companion_service.generate_portraits(character=character)})


@router.put("/{character_id}/portrait", response_model=ApiEnvelope)
def set_portrait(session: SessionDep, current_user: CurrentUser, character_id: int,
                 body: PortraitSetRequest) -> ApiEnvelope:
    """Pick the portrait; Request: PUT /api/v1/companions/{character_id}/portrait"""
    character = crud.character.get_owned_or_404(session=session, user_id=current_user.id, ref=character_id)
    character = companion_service.set_portrait(session, character=character, portrait_url=body.portrait_url)
    return ApiEnvelope(data=CharacterData.model_validate(character))


@router.post("/{character_id}/messages", response_model=ApiEnvelope)
def send_message(session: SessionDep, current_user: CurrentUser, character_id: int,
                 body: ChatSendRequest) -> ApiEnvelope:
    """
    Send a message and get the companion's reply

    Request: POST /api/v1/companions/{character_id}/messages

    with_voice adds an audio_url (TTS), with_video a lip-synced video_url
    when the companion has a portrait. Voice and video failures leave those
    fields empty instead of failing the request.
    """
    character = crud.character.get_owned_or_404(session=session, user_id=current_user.id, ref=character_id)
    user_msg, reply = companion_service.send_message(
        session,
        user=current_user,
        character=character,
        content=body.content,
        with_voice=body.with_voice,
        with_video=body.with_video,
    )
    return ApiEnvelope(data=ChatExchangeData(
        user_message=ChatMessageData.model_validate(user_msg),
        assistant_message=ChatMessageData.model_validate(reply),
    ))


@router.get("/{character_id}/messages", response_model=ApiEnvelope)
def history(
    session: SessionDep,
    current_user: CurrentUser,
    character_id: int,
    cursor: int | None = None,
    limit: int = Query(default=50, ge=1, le=100),
) -> ApiEnvelope:
    """
    Chat history, oldest first, paging backwards

    Request: GET /api/v1/companions/{character_id}/messages?cursor&limit

    Pass next_cursor from the previous page to load older messages.
    """
    character = crud.character.get_owned_or_404(session=session, user_id=current_user.id, ref=character_id)
    rows, has_more, next_cursor = crud.character.history_page(
        session=session, character_id=character.id, cursor=cursor, limit=limit
    )
    return ApiEnvelope(data=ChatHistoryData(
        messages=[ChatMessageData.model_validate(m) for m in rows],
        has_more=has_more,
        next_cursor=next_cursor,
    ))
