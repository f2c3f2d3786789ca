from collections.abc import AsyncGenerator
from datetime import datetime, timezone

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from .config import settings


class Base(DeclarativeBase):
    pass


def _connect_args(url: str) -> dict:
    # asyncpg only; other drivers reject server_settings
    if url.startswith("postgresql+asyncpg") and settings.SCHEMA_SEARCH_PATH:
        return {"server_settings": {"search_path": settings.SCHEMA_SEARCH_PATH}}
    return {}


engine = create_async_engine(
    settings.DATABASE_URL,
    connect_args=_connect_args(settings.DATABASE_URL),
    echo=settings.SQL_ECHO,
)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


def utcnow() -> datetime:
    """Naive UTC now; all timestamps are stored naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def create_db_and_tables():

    from .models import user_model, exam_request_model, exam_session_model  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


async def get_user_db(session: AsyncSession = Depends(get_async_session)):
    from .models.user_model import User
    from fastapi_users.db import SQLAlchemyUserDatabase
    yield SQLAlchemyUserDatabase(session, User)
