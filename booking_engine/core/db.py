from typing import AsyncIterator
from fastapi import Request
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from .config import settings
from .base import Base


def build_engine(dsn: str | None = None) -> AsyncEngine:
    dsn = dsn or settings.DATABASE_DSN
    if dsn.startswith("sqlite"):
        return create_async_engine(dsn)
    return create_async_engine(dsn, pool_pre_ping=True)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


def _import_models():
    # registers every table on Base.metadata
    from booking_engine.modules.audit import models as _audit  # noqa: F401
    from booking_engine.modules.availability import models as _availability  # noqa: F401
    from booking_engine.modules.booking_links import models as _links  # noqa: F401
    from booking_engine.modules.directory import models as _directory  # noqa: F401
    from booking_engine.modules.events import outbox as _outbox  # noqa: F401
    from booking_engine.modules.interviews import models as _interviews  # noqa: F401
    from booking_engine.modules.notifications import models as _notifications  # noqa: F401


async def init_models(engine: AsyncEngine, manage: str | None = None):
    ## In dev-only "create_all" mode build tables here; otherwise, migrations own the schema.
    _import_models()
    if (manage or settings.DB_MANAGE).lower() == "create_all":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.sessionmaker() as session:
        yield session
