"""
Fundry Crowdfunding API — application entry-point.

Run with ``uvicorn fundry.main:app``.  ``USE_SQLITE=true`` starts the
service against an in-memory database with no other infrastructure; the
payment gateway stays unconfigured (card and bank-transfer payments answer
502) until ``PAYMENT_GATEWAY_URL`` is set.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text
from sqlmodel import SQLModel

from fundry.api.v1.api import api_router
from fundry.core.cache import funding_cache
from fundry.core.config import settings
from fundry.core.exceptions import add_exception_handlers
from fundry.core.logging import setup_logging
from fundry.core.resilience import breaker_report
from fundry.db.session import AsyncSessionLocal, engine
from fundry.middleware import RequestIDMiddleware, RequestTimingMiddleware

VERSION = "1.0.0"

setup_logging()
logger = logging.getLogger(__name__)

DB_CONNECT_ATTEMPTS = 5
DB_CONNECT_FIRST_DELAY = 2  # seconds, doubled after each failed attempt


async def _create_tables() -> bool:
    """Create missing tables, backing off while the database comes up."""
    import fundry.db.base  # noqa: F401  (populates SQLModel.metadata)

    delay = DB_CONNECT_FIRST_DELAY
    for attempt in range(1, DB_CONNECT_ATTEMPTS + 1):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database ready (attempt %d)", attempt)
            return True
        except Exception as exc:
            if attempt == DB_CONNECT_ATTEMPTS:
                logger.error(
                    "Database unreachable after %d attempts, starting DEGRADED: %s",
                    attempt,
                    exc,
                )
                return False
            logger.warning(
                "Database connection attempt %d/%d failed: %s; retrying in %ds",
                attempt,
                DB_CONNECT_ATTEMPTS,
                exc,
                delay,
            )
            await asyncio.sleep(delay)
            delay *= 2
    return False


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup creates the schema (or starts degraded, reported by ``/health``)
    and logs the investment terms in force.  Shutdown disposes of the pool.
    """
    await _create_tables()
    logger.info(
        "Investment terms: fee %s above $%s, ceiling $%s, cooling-off %dh, "
        "over-funding policy '%s', payment gateway %s",
        settings.PLATFORM_FEE_RATE,
        settings.PLATFORM_FEE_THRESHOLD,
        settings.PLATFORM_MAX_INVESTMENT,
        settings.COOLING_OFF_HOURS,
        settings.OVERFUNDING_POLICY.value,
        "configured" if settings.PAYMENT_GATEWAY_URL else "NOT configured",
    )
    yield
    logger.info("Shutting down, disposing connection pool")
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=VERSION,
    description=(
        "Investment commitment and campaign funding engine: fee-adjusted, "
        "SAFE-backed investments into founder campaigns."
    ),
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# ── Middleware (last added runs first) ──
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)
app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Liveness / readiness probe: ``SELECT 1`` against the database plus the
    circuit breakers and the funding-stats cache.
    """
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        db_healthy = True
    except Exception:
        logger.warning("Health check database probe failed", exc_info=True)
        db_healthy = False

    return {
        "status": "ok" if db_healthy else "degraded",
        "version": VERSION,
        "database": db_healthy,
        "payment_gateway_configured": bool(settings.PAYMENT_GATEWAY_URL),
        "circuit_breakers": breaker_report(),
        "cache": funding_cache.get_stats(),
    }
