"""Companion and chat message CRUD operations"""
from sqlmodel import Session, col, func, select

from app.api.errors import AppError
from app.enums import ChatRole
from app.models import Character, ChatMessage, utc_now


def count_active(*, session: Session, user_id: int) -> int:
    stmt = select(func.count()).select_from(Character).where(
        Character.user_id == user_id, Character.is_active == True  # noqa: E712
    )
    return int(session.exec(stmt).one())


def list_active(*, session: Session, user_id: int) -> list[Character]:
    stmt = (
        select(Character)
        .where(Character.user_id == user_id, Character.is_active == True)  # noqa: E712
        .order_by(col(Character.updated_at).desc())
    )
    return list(session.exec(stmt).all())


def get_owned_or_404(*, session: Session, user_id: int, ref: str | int) -> Character:
    """
    Active companion of the user, by id or slug

    Raises:
        AppError: 404601 "Companion not found"
    """
    stmt = select(Character).where(Character.user_id == user_id, Character.is_active == True)  # noqa: E712
    ref_str = str(ref)
    if ref_str.isdigit():
        stmt = stmt.where(Character.id == int(ref_str))
    else:
        stmt = stmt.where(Character.slug == ref_str)
    character = session.exec(stmt).first()
    if not character:
        raise AppError(code=404601, message="Companion not found", status_code=404)
    return character


def touch(*, session: Session, character: Character) -> None:
    character.updated_at = utc_now()
    session.add(character)
    session.commit()


def add_message(
    *, session: Session, character_id: int, user_id: int, role: ChatRole, content: str
) -> ChatMessage:
    message = ChatMessage(character_id=character_id, user_id=user_id, role=role, content=content)
    session.add(message)
    session.commit()
    session.refresh(message)
    return message


def recent_messages(*, session: Session, character_id: int, limit: int) -> list[ChatMessage]:
    """Last `limit` messages, oldest first"""
    rows = session.exec(
        select(ChatMessage)
        .where(ChatMessage.character_id == character_id)
        .order_by(col(ChatMessage.id).desc())
        .limit(limit)
    ).all()
    return list(reversed(rows))


def history_page(
    *, session: Session, character_id: int, cursor: int | None, limit: int
) -> tuple[list[ChatMessage], bool, int | None]:
    """
    One page of history walking backwards from a cursor

    Message ids are time ordered, so the cursor is the id of the oldest
    message already shown.

    Returns:
        (messages oldest first, has_more, next_cursor)
    """
    stmt = select(ChatMessage).where(ChatMessage.character_id == character_id)
    if cursor is not None:
        stmt = stmt.where(ChatMessage.id < cursor)
    rows = list(session.exec(stmt.order_by(col(ChatMessage.id).desc()).limit(limit)).all())
    rows.reverse()
    has_more = len(rows) == limit
    next_cursor = rows[0].id if rows and has_more else None
    return rows, has_more, next_cursor
