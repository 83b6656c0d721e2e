"""
Marketplace Session Broker — Application Entrypoint

Initializes the async SQLAlchemy engine backing the credential store,
configures structlog, and serves the HTTP front end with uvicorn.

Run via:
    python -m src.main
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any

import structlog
import uvicorn
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.api.app import create_app
from src.config import settings
from src.credentials.store import SqlCredentialStore
from src.models.base import Base
from src.session.broker import SessionBroker


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def _configure_logging(log_level: str = "INFO") -> None:
    """
    Set up structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    # stdlib logging carries uvicorn / sqlalchemy / playwright output
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Database Setup
# ---------------------------------------------------------------------------


async def create_db_engine() -> tuple[Any, async_sessionmaker[AsyncSession]]:
    """
    Create SQLAlchemy async engine and session factory for the credential store.

    Returns:
        (engine, session_factory) tuple.
    """
    logger = structlog.get_logger(__name__)
    logger.info("database_engine_initializing")

    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=False,
        pool_pre_ping=True,
    )

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    # Credentials table only; no migrations needed for a fresh database.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("database_engine_ready")
    return engine, session_factory


# ---------------------------------------------------------------------------
# Application Startup
# ---------------------------------------------------------------------------


async def main() -> None:
    """
    Application entrypoint.

    Execution order:
    1. Configure logging (structlog JSON)
    2. Create async database engine and session factory
    3. Verify database connection (health check)
    4. Serve the HTTP front end until shutdown
    """
    _configure_logging(log_level=settings.LOG_LEVEL)
    logger = structlog.get_logger(__name__)

    logger.info("session_broker_startup_begin", version="0.1.0")

    try:
        engine, session_factory = await create_db_engine()
    except Exception as e:
        logger.error(
            "database_engine_creation_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise

    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        logger.info("database_health_check_passed")
    except Exception as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        await engine.dispose()
        raise

    broker = SessionBroker(SqlCredentialStore(session_factory))
    app = create_app(broker)
    server = uvicorn.Server(
        uvicorn.Config(app, host=settings.HOST, port=settings.PORT, log_config=None)
    )

    logger.info("session_broker_startup_complete", host=settings.HOST, port=settings.PORT)

    try:
        await server.serve()
    finally:
        await engine.dispose()
        logger.info("session_broker_shutdown_complete")


# ---------------------------------------------------------------------------
# CLI Entry
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    asyncio.run(main())
