from typing import AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from rollcall.core.config import settings


def _engine_options(url: str) -> Dict:
    if url.startswith("sqlite"):
        # File-backed SQLite for local runs and tests; no server connections to keep alive
        return {}
    # Postgres drops idle connections: ping before use, recycle after 5 minutes
    return {"pool_pre_ping": True, "pool_recycle": 300}


engine = create_async_engine(settings.database_url, echo=False, future=True, **_engine_options(settings.database_url))

AsyncSessionLocal = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request; services commit or roll back themselves."""
    async with AsyncSessionLocal() as session:
        yield session


async def init_models() -> None:
    """Create all tables. Used by the seed script and local development."""
    import rollcall.core.models  # noqa: F401  registers mappers
    import rollcall.auth.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
