
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from fixflow.core.settings import settings
from typing import Optional

_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker] = None

def build_engine(url: str, **kwargs) -> AsyncEngine:
    options = {"echo": settings.log_level == "DEBUG"}
    # SQLite uses a static/singleton pool that rejects the sizing arguments
    if not url.startswith("sqlite"):
        options["pool_size"] = settings.db.pool_size
        options["max_overflow"] = settings.db.max_overflow
    options.update(kwargs)
    return create_async_engine(url, **options)

def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = build_engine(settings.db.url)
    return _engine

def get_sessionmaker() -> async_sessionmaker:
    global _sessionmaker
    if _sessionmaker is None:
        _sessionmaker = build_sessionmaker(get_engine())
    return _sessionmaker

async def dispose_engine():
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessionmaker = None
