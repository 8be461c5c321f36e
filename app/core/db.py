"""
Database connection

Owns the SQLModel engine and the seed-data hook.

Notes:
- Tables are created by Alembic migrations, never here
- Import app.models before using the engine so every table is registered
"""
import logging

from sqlmodel import Session, create_engine, select

from app.core.config import settings
from app.enums import UserRole
from app.models import Category, Plan, User

logger = logging.getLogger(__name__)

engine = create_engine(str(settings.SQLALCHEMY_DATABASE_URI))


# Seed plans: nuts_per_month -1 means unlimited
DEFAULT_PLANS: list[dict] = [
    {
        "name": "Free",
        "description": "Try the studio with a small monthly allowance",
        "nuts_per_month": 100,
        "images_per_day": 10,
        "images_per_generation": 1,
        "monthly_price": 0,
        "yearly_price": 0,
        "features": [],
    },
    {
        "name": "Pro",
        "description": "More nuts, batch generations and companion voice",
        "nuts_per_month": 2000,
        "images_per_day": 200,
        "images_per_generation": 4,
        "monthly_price": 1299,
        "yearly_price": 12990,
        "features": ["companion_voice", "video_generation"],
    },
    {
        "name": "Premium",
        "description": "Unlimited nuts and every premium feature",
        "nuts_per_month": -1,
        "images_per_day": 1000,
        "images_per_generation": 10,
        "monthly_price": 2999,
        "yearly_price": 29990,
        "features": [
            "companion_voice",
            "companion_video",
            "video_generation",
            "premium_generation",
        ],
    },
]

DEFAULT_CATEGORIES: list[dict] = [
    {"name": "Portrait", "keywords": ["portrait", "face", "headshot", "close-up", "selfie"]},
    {"name": "Landscape", "keywords": ["landscape", "mountain", "forest", "ocean", "sunset", "beach"]},
    {"name": "Fantasy", "keywords": ["fantasy", "dragon", "elf", "magic", "castle", "wizard"]},
    {"name": "Anime", "keywords": ["anime", "manga", "chibi", "cel shaded"]},
    {"name": "Sci-Fi", "keywords": ["sci-fi", "robot", "cyberpunk", "spaceship", "futuristic", "neon"]},
    {"name": "Animals", "keywords": ["cat", "dog", "animal", "bird", "wolf", "fox"]},
]


def init_db(session: Session) -> None:
    """
    Seed reference data

    Creates the default plans and categories and, when ADMIN_EMAIL is set,
    promotes the matching account to ADMIN. Safe to run repeatedly.

    Args:
        session: database session
    """
    for values in DEFAULT_PLANS:
        plan = session.exec(select(Plan).where(Plan.name == values["name"])).first()
        if not plan:
            session.add(Plan(**values))
            logger.info("Created plan %s", values["name"])

    for values in DEFAULT_CATEGORIES:
        category = session.exec(select(Category).where(Category.name == values["name"])).first()
        if not category:
            session.add(Category(**values))
            logger.info("Created category %s", values["name"])

    if settings.ADMIN_EMAIL:
        admin = session.exec(select(User).where(User.email == settings.ADMIN_EMAIL)).first()
        if admin and admin.role != UserRole.admin:
            admin.role = UserRole.admin
            session.add(admin)
            logger.info("Promoted %s to admin", settings.ADMIN_EMAIL)

    session.commit()
