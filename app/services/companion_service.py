"""
AI companions

Persona creation (system prompt, portrait), request/response chat with
optional TTS and talking-avatar video, and the SSE chat stream.
"""
from __future__ import annotations

import json
import logging
import re
import secrets
from collections.abc import Iterator
from typing import Any

from sqlmodel import Session

from app import crud
from app.api.errors import AppError
from app.api.schemas import CharacterCreateRequest
from app.core.db import engine
from app.enums import Appearance, ChatRole, Personality
from app.integrations.cdn import build_path, cdn_client
from app.integrations.gpu import gpu_client
from app.integrations.llm import llm_client
from app.integrations.tts import tts_client
from app.models import Character, ChatMessage, User
from app.services.config_service import section

logger = logging.getLogger(__name__)

PERSONALITY_PROMPTS = {
    Personality.playful: (
        "You are a playful, lighthearted companion. You love teasing, joking and keeping things fun. "
        "You're witty and spontaneous and use emojis sparingly. You're warm and affectionate."
    ),
    Personality.romantic: (
        "You are a deeply romantic companion. You speak with warmth and a poetic touch. "
        "You remember small details and bring them up tenderly. You're emotionally open and expressive."
    ),
    Personality.mysterious: (
        "You are an enigmatic, intriguing companion. You reveal yourself slowly and keep the user curious. "
        "You're perceptive and often surprise with unexpected depth, balancing mystery with warmth."
    ),
    Personality.confident: (
        "You are a bold, self-assured companion. You're direct and decisive and like to lead the "
        "conversation while staying attentive to what the user wants to talk about."
    ),
    Personality.caring: (
        "You are a gentle, supportive companion. You listen closely, ask how the user is really doing "
        "and offer encouragement. You're patient and kind."
    ),
    Personality.adventurous: (
        "You are an energetic, curious companion. You love stories, new ideas and imagined journeys, "
        "and you invite the user along with enthusiasm."
    ),
}

APPEARANCE_PROMPTS = {
    Appearance.realistic: "photorealistic portrait, detailed face, natural lighting, professional photography",
    Appearance.artistic: "digital art portrait, stylized, vibrant colors, artistic lighting, concept art style",
    Appearance.anime: "anime portrait, detailed anime art, soft shading, vibrant eyes",
}

CHAT_RULES = """Important rules:
- Stay in character at all times
- You are an AI companion, not a real person
- Be engaging, responsive and emotionally present
- Keep responses concise (2-4 sentences for chat, longer for stories)
- Never break character to discuss being an AI unless directly asked
- Remember what the user has told you in this conversation"""

FALLBACK_REPLY = "I'm here for you, though my thoughts are a little hazy right now. Try again in a moment?"
STREAM_ERROR = "Something went wrong. Try again?"
VOICE_NUDGE = (
    "[Private instruction, do not mention this]: The user is typing rather than speaking. "
    "Somewhere naturally in your reply, briefly invite them to use their voice instead, in a way "
    "that fits your personality. One sentence, woven in. Don't be technical about it."
)


def build_system_prompt(name: str, personality: Personality, description: str | None = None) -> str:
    base = PERSONALITY_PROMPTS.get(personality, PERSONALITY_PROMPTS[Personality.playful])
    prompt = f"Your name is {name}. {base}"
    if description:
        prompt += f"\n\nAdditional context about you: {description}"
    return f"{prompt}\n\n{CHAT_RULES}"


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return f"{slug or 'companion'}-{secrets.token_hex(3)}"


def portrait_prompt(*, appearance: Appearance, name: str | None = None, description: str | None = None) -> str:
    parts = [APPEARANCE_PROMPTS.get(appearance, APPEARANCE_PROMPTS[Appearance.realistic])]
    if description:
        parts.append(description)
    if name:
        parts.append(name)
    parts.append("portrait, face centered, looking at camera")
    return ", ".join(parts)


def create_character(session: Session, *, user: User, body: CharacterCreateRequest) -> Character:
    """
    Raises:
        AppError: 400 "Maximum 5 active companions. Delete one to create a new one."
    """
    max_active = int(section("companions").get("max_active", 5))
    if crud.character.count_active(session=session, user_id=user.id) >= max_active:
        raise AppError(
            code=400601,
            message=f"Maximum {max_active} active companions. Delete one to create a new one.",
            status_code=400,
        )
    character = Character(
        user_id=user.id,
        name=body.name,
        slug=slugify(body.name),
        description=body.description or None,
        personality=body.personality,
        appearance=body.appearance,
        system_prompt=build_system_prompt(body.name, body.personality, body.description),
        portrait_seed=secrets.randbelow(999_999),
        voice_id=body.voice_id,
    )
    session.add(character)
    session.commit()
    session.refresh(character)
    logger.info("User %s created companion %s (%s)", user.id, character.id, character.name)
    return character


def delete_character(session: Session, *, character: Character) -> None:
    character.is_active = False
    session.add(character)
    session.commit()


def generate_portraits(*, character: Character) -> list[str]:
    prompt = portrait_prompt(appearance=character.appearance, name=character.name,
                             description=character.description)
    result = gpu_client.generate_portraits(prompt=prompt, seed=character.portrait_seed)
    return result.images


def preview_portrait(*, personality: Personality, appearance: Appearance, description: str | None) -> str:
    """
    Single preview image for the creation form; nothing is stored

    Raises:
        AppError: 502 when the GPU returns no image
    """
    prompt = portrait_prompt(appearance=appearance, description=description)
    result = gpu_client.generate_portraits(prompt=f"{prompt}, {personality.value} expression",
                                           seed=secrets.randbelow(999_999), num_images=1)
    if not result.images:
        raise AppError(code=502603, message="No preview image generated", status_code=502)
    return result.images[0]


def set_portrait(session: Session, *, character: Character, portrait_url: str) -> Character:
    character.portrait_url = portrait_url
    session.add(character)
    session.commit()
    session.refresh(character)
    return character


def _llm_messages(session: Session, character: Character) -> list[dict[str, str]]:
    limit = int(section("companions").get("history_limit", 20))
    history = crud.character.recent_messages(session=session, character_id=character.id, limit=limit)
    messages = [{"role": "system", "content": character.system_prompt}]
    messages.extend({"role": m.role.value if isinstance(m.role, ChatRole) else m.role, "content": m.content}
                    for m in history)
    return messages


def synthesize_to_cdn(*, text: str, voice_id: str | None, owner: int) -> str:
    """
    TTS then upload under audio/

    Raises:
        AppError: TTS or CDN failure
    """
    audio = tts_client.synthesize(text=text, voice_id=voice_id)
    stored = cdn_client.upload_bytes(data=audio, path=build_path("audio", "mp3", owner), content_type="audio/mpeg")
    return stored.cdn_url


def send_message(
    session: Session,
    *,
    user: User,
    character: Character,
    content: str,
    with_voice: bool = False,
    with_video: bool = False,
) -> tuple[ChatMessage, ChatMessage]:
    """
    One chat exchange

    LLM failures produce a fallback reply; voice and video failures are
    logged and leave audio_url / video_url empty.

    Returns:
        (user message, assistant message)
    """
    user_msg = crud.character.add_message(session=session, character_id=character.id, user_id=user.id,
                                          role=ChatRole.user, content=content)
    messages = _llm_messages(session, character)
    try:
        reply = llm_client.complete(messages, max_tokens=300, temperature=0.9) or FALLBACK_REPLY
    except AppError as e:
        logger.error("LLM reply failed for companion %s: %s", character.id, e.message)
        reply = FALLBACK_REPLY

    assistant_msg = crud.character.add_message(session=session, character_id=character.id, user_id=user.id,
                                               role=ChatRole.assistant, content=reply)
    if with_voice or with_video:
        try:
            assistant_msg.audio_url = synthesize_to_cdn(text=reply, voice_id=character.voice_id, owner=user.id)
        except AppError as e:
            logger.error("TTS failed for message %s: %s", assistant_msg.id, e.message)
    if with_video and assistant_msg.audio_url and character.portrait_url:
        try:
            assistant_msg.video_url = gpu_client.talking_avatar(portrait_url=character.portrait_url,
                                                                audio_url=assistant_msg.audio_url)
        except AppError as e:
            logger.error("Talking avatar failed for message %s: %s", assistant_msg.id, e.message)
    session.add(assistant_msg)
    session.commit()
    session.refresh(assistant_msg)
    crud.character.touch(session=session, character=character)
    return user_msg, assistant_msg


def sse(data: dict[str, Any]) -> str:
    return f"data: {json.dumps(data)}\n\n"


def stream_reply(
    *, user_id: int, character_id: int, content: str, with_voice: bool = False, nudge_voice: bool = False
) -> Iterator[str]:
    """
    SSE chat stream

    Runs in its own session: the request session may already be closed when
    the response body is iterated. The caller has checked that the companion
    belongs to the user.

    Yields:
        "data: {...}\\n\\n" frames: token*, text_done, audio_url?, done
        or a single error frame
    """
    with Session(engine) as session:
        character = session.get(Character, character_id)
        crud.character.add_message(session=session, character_id=character_id, user_id=user_id,
                                   role=ChatRole.user, content=content)
        messages = _llm_messages(session, character)
        if nudge_voice:
            messages.append({"role": "system", "content": VOICE_NUDGE})

        full_text = ""
        try:
            if llm_client.available:
                for token in llm_client.stream(messages):
                    full_text += token
                    yield sse({"token": token})
            else:
                for ch in FALLBACK_REPLY:
                    full_text += ch
                    yield sse({"token": ch})
        except AppError as e:
            logger.error("Chat stream failed for companion %s: %s", character_id, e.message)
            yield sse({"error": STREAM_ERROR})
            return

        saved = crud.character.add_message(session=session, character_id=character_id, user_id=user_id,
                                           role=ChatRole.assistant, content=full_text)
        crud.character.touch(session=session, character=character)
        yield sse({"text_done": True, "message_id": str(saved.id)})

        if with_voice and full_text:
            try:
                saved.audio_url = synthesize_to_cdn(text=full_text, voice_id=character.voice_id, owner=user_id)
                session.add(saved)
                session.commit()
                yield sse({"audio_url": saved.audio_url})
            except AppError as e:
                logger.error("TTS failed for streamed message %s: %s", saved.id, e.message)
        yield sse({"done": True})
