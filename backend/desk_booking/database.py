from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings

settings = get_settings()

_engine_options: dict[str, object] = {"echo": settings.echo_sql, "pool_pre_ping": True}
if not settings.database_url.startswith("sqlite"):
    _engine_options["pool_recycle"] = 3600

engine = create_async_engine(settings.database_url, **_engine_options)

async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
