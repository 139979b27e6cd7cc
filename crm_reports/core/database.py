"""
Async database access for the reporting store
- Creates the database on first start when it is missing
- Creates the dashboard tables listed in settings.DB_MODELS
- Hands out request sessions and the raw session factory
"""
import logging
from importlib import import_module
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
import asyncpg
from crm_reports.core.config import settings
from crm_reports.models.base import Base

logger = logging.getLogger(__name__)


def build_engine(url: URL) -> AsyncEngine:
    """Pooled engine for asyncpg; other drivers (aiosqlite) keep SQLAlchemy's defaults."""
    if url.drivername.endswith("asyncpg"):
        return create_async_engine(
            url,
            pool_size=15,
            max_overflow=5,
            pool_timeout=30,
            pool_recycle=300,
            pool_pre_ping=True,
            echo=settings.DB_ECHO,
            connect_args={"prepared_statement_cache_size": 0},
        )
    return create_async_engine(url, echo=settings.DB_ECHO)


class DatabaseSessionManager:
    """Owns the engine and session factory for the app's lifetime."""

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None

    async def init(self):
        url = make_url(settings.DATABASE_URL)
        try:
            self.engine = build_engine(url)
            try:
                await self._create_tables()
            except asyncpg.exceptions.InvalidCatalogNameError:
                logger.warning(f"🔄 Database '{url.database}' missing, creating it")
                if not await create_database(url):
                    raise
                await self.engine.dispose()
                self.engine = build_engine(url)
                await self._create_tables()
        except Exception as e:
            logger.error(f"❌ Database initialization failed: {e}")
            raise

        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def _create_tables(self):
        for model in settings.DB_MODELS:
            import_module(model)
        async with self.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"📝 Tables ready: {sorted(Base.metadata.tables.keys())}")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on success and rolls back when the caller raises."""
        if not self.session_factory:
            raise RuntimeError("DatabaseSessionManager not initialized")
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self):
        if self.engine:
            await self.engine.dispose()
        self.engine = None
        self.session_factory = None


async def create_database(url: URL) -> bool:
    """Create the target database through the server's default 'postgres' database."""
    admin_engine = create_async_engine(url.set(database="postgres"), isolation_level="AUTOCOMMIT")
    try:
        async with admin_engine.connect() as conn:
            await conn.execute(text(f'CREATE DATABASE "{url.database}"'))
        logger.info(f"✅ Database '{url.database}' created")
        return True
    except (asyncpg.exceptions.PostgresError, SQLAlchemyError) as e:
        logger.error(f"❌ Failed to create database: {e}")
        return False
    finally:
        await admin_engine.dispose()


session_manager = DatabaseSessionManager()


async def aget_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions
    Usage:
    @router.get("/")
    async def endpoint(db: AsyncSession = Depends(aget_db)):
        ...
    """
    async with session_manager.get_session() as session:
        yield session


def aget_session_factory() -> async_sessionmaker:
    """FastAPI dependency for services that open one session per concurrent read."""
    if not session_manager.session_factory:
        raise RuntimeError("DatabaseSessionManager not initialized")
    return session_manager.session_factory
