from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import AsyncAdaptedQueuePool, StaticPool
from app.core.config import settings
from app.core.logger import get_logger

logger = get_logger("database")


def _engine_options() -> dict:
    """Pool and driver options for the configured database URL."""
    if not settings.is_postgres:
        # Local sqlite (tests, demos): one shared connection
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }

    # Determine SSL requirement based on environment
    ssl_config = {} if settings.ENVIRONMENT == "development" else {"ssl": "require"}
    return {
        "connect_args": {
            **ssl_config,
            "server_settings": {
                "application_name": "voice_coach_backend",
                "jit": "off",
            },
            "command_timeout": 30,
            "prepared_statement_cache_size": 500,
        },
        "poolclass": AsyncAdaptedQueuePool,
        "pool_size": 10,            # Keep 10 connections ready
        "max_overflow": 20,         # Allow 20 additional connections under load
        "pool_timeout": 30,         # Wait up to 30s for a connection
        "pool_recycle": 1800,       # Recycle connections every 30 minutes
        "pool_pre_ping": True,      # Verify connections are alive before using
    }


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,
    **_engine_options()
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)

async def get_db():
    """Dependency for getting database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
