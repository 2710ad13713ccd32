"""
FastAPI application and entry point.

This module creates and configures the FastAPI application:
  1. Logging — stdlib logging at settings.LOG_LEVEL
  2. Lifespan manager — creates tables, starts and stops the background
     workers, disposes of the engine
  3. Exception handlers — maps domain errors to HTTP responses
  4. Router registration — mounts the /api/user endpoint groups

Running locally:
    uvicorn loyalty.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from loyalty.accrual_client import AccrualClient
from loyalty.config import settings
from loyalty.database import AsyncSessionLocal, Base, engine, ensure_sqlite_directory
from loyalty.exceptions import register_exception_handlers
from loyalty.routers import auth, balance, orders
from loyalty.workers.balance_settler import BalanceSettler
from loyalty.workers.status_reconciler import StatusReconciler

import loyalty.models  # noqa: F401  (registers all tables on Base.metadata)

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
      Creates all database tables if they don't exist (a failure here is
      fatal), then starts the status reconciler and the balance settler.

    Shutdown:
      Cancels and awaits both workers, closes the accrual client, and
      disposes of the database engine.
    """
    # --- Startup ---
    ensure_sqlite_directory(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    accrual_client = AccrualClient(
        settings.ACCRUAL_SYSTEM_ADDRESS,
        timeout=settings.ACCRUAL_REQUEST_TIMEOUT_SECONDS,
    )
    workers = [
        StatusReconciler(
            AsyncSessionLocal,
            accrual_client,
            interval_seconds=settings.STATUS_POLL_INTERVAL_SECONDS,
            timeout_seconds=settings.STATUS_POLL_TIMEOUT_SECONDS,
            concurrency=settings.ACCRUAL_CONCURRENCY,
        ),
        BalanceSettler(
            AsyncSessionLocal,
            interval_seconds=settings.BALANCE_FOLD_INTERVAL_SECONDS,
            timeout_seconds=settings.BALANCE_FOLD_TIMEOUT_SECONDS,
            lag_seconds=settings.BALANCE_FOLD_LAG_SECONDS,
        ),
    ]
    app.state.workers = workers

    if settings.BACKGROUND_WORKERS_ENABLED:
        for worker in workers:
            await worker.start()
    else:
        logger.info("Background workers disabled by configuration")

    yield

    # --- Shutdown ---
    for worker in workers:
        await worker.stop()
    await accrual_client.aclose()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Loyalty points API: order uploads, accrual reconciliation, balances and withdrawals",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(auth.router, prefix="/api/user", tags=["Auth"])
app.include_router(orders.router, prefix="/api/user", tags=["Orders"])
app.include_router(balance.router, prefix="/api/user", tags=["Balance"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe for load balancers and orchestrators."""
    return {"status": "ok", "version": settings.APP_VERSION}
