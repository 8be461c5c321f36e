"""User CRUD operations"""
from sqlmodel import Session, col, func, or_, select

from app.api.errors import AppError
from app.core.security import get_password_hash, verify_password
from app.crud.media import LIKE_ESCAPE, contains_pattern
from app.enums import UserRole
from app.models import GenerationIp, User, utc_now


def get_by_email(*, session: Session, email: str) -> User | None:
    """Look a user up by email (case-insensitive)"""
    statement = select(User).where(func.lower(User.email) == email.strip().lower())
    return session.exec(statement).first()


def get_or_404(*, session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if not user:
        raise AppError(code=404001, message="User not found", status_code=404)
    return user


def create(
    *,
    session: Session,
    email: str,
    password: str | None,
    name: str | None = None,
    role: UserRole = UserRole.user,
) -> User:
    """Create an account; the password is stored as a bcrypt hash"""
    user = User(
        email=email.strip().lower(),
        hashed_password=get_password_hash(password) if password else None,
        name=name,
        role=role,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def authenticate(*, session: Session, email: str, password: str) -> User | None:
    user = get_by_email(session=session, email=email)
    if not user or not user.hashed_password:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def set_password(*, session: Session, user: User, password: str) -> None:
    user.hashed_password = get_password_hash(password)
    user.updated_at = utc_now()
    session.add(user)
    session.commit()


def search(*, session: Session, query: str | None, page: int, page_size: int) -> tuple[list[User], int]:
    """Paginated user list, newest first, filtered by email or name"""
    stmt = select(User)
    count_stmt = select(func.count()).select_from(User)
    if query:
        pattern = contains_pattern(query)
        cond = or_(
            func.lower(User.email).like(pattern, escape=LIKE_ESCAPE),
            func.lower(User.name).like(pattern, escape=LIKE_ESCAPE),
        )
        stmt = stmt.where(cond)
        count_stmt = count_stmt.where(cond)
    total = session.exec(count_stmt).one()
    users = session.exec(
        stmt.order_by(col(User.created_at).desc()).offset((page - 1) * page_size).limit(page_size)
    ).all()
    return list(users), int(total)


def list_generation_ips(*, session: Session, user_id: int) -> list[str]:
    rows = session.exec(select(GenerationIp.ip).where(GenerationIp.user_id == user_id)).all()
    return list(rows)


def count_users_for_ip(*, session: Session, ip: str) -> int:
    stmt = select(func.count()).select_from(GenerationIp).where(GenerationIp.ip == ip)
    return int(session.exec(stmt).one())


def add_generation_ip(*, session: Session, user_id: int, ip: str) -> None:
    """Remember an IP for the user; no-op when already known. Does not commit."""
    exists = session.exec(
        select(GenerationIp).where(GenerationIp.user_id == user_id, GenerationIp.ip == ip)
    ).first()
    if not exists:
        session.add(GenerationIp(user_id=user_id, ip=ip))
