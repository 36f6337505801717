from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from ledger_sync.config import settings


def _engine_options(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"connect_args": {"timeout": settings.DB_COMMAND_TIMEOUT_SECONDS}}
    options = {
        "pool_size": 10,  # Number of connections to keep open
        "max_overflow": 20,  # Additional connections to create if needed
        "pool_pre_ping": True,  # Test connections before using
        "pool_recycle": 3600,  # Recycle connections after 1 hour
        "pool_timeout": settings.DB_POOL_TIMEOUT_SECONDS,
    }
    if database_url.startswith("postgresql+asyncpg"):
        options["connect_args"] = {"command_timeout": settings.DB_COMMAND_TIMEOUT_SECONDS}
    return options


engine = create_async_engine(
    settings.DATABASE_URL,
    future=True,
    echo=False,
    **_engine_options(settings.DATABASE_URL),
)

AsyncSessionLocal = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,  # Prevent automatic flushes for better control
    autocommit=False
)
async def get_db():
    async with AsyncSessionLocal() as session:
        yield session
