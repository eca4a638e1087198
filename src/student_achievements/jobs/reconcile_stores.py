"""Background scheduler for store reconciliation."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool

from ..core.config import get_settings
from ..core.database import SessionLocal
from ..core.documents import get_achievement_collection
from ..repositories import DetailStore, ReferenceStore
from ..services.reconciliation_service import reconcile_stores

logger = logging.getLogger(__name__)

_scheduler = AsyncIOScheduler(timezone="UTC")


def run_reconciliation_once(current_time: datetime | None = None) -> dict[str, int]:
    """Run one reconciliation pass synchronously."""

    settings = get_settings()
    session = SessionLocal()
    try:
        return reconcile_stores(
            ReferenceStore(session),
            DetailStore(get_achievement_collection()),
            current_time=current_time,
            orphan_grace=timedelta(minutes=settings.reconcile_orphan_grace_minutes),
        )
    finally:
        session.close()


async def _execute_reconciliation() -> None:
    """Run the blocking store scan off the event loop."""

    try:
        summary = await run_in_threadpool(run_reconciliation_once)
        logger.info("store reconciliation completed: %s", summary)
    except Exception:  # pragma: no cover - safeguard for background job
        logger.exception("store reconciliation job failed")
        raise


def register_scheduler(app: FastAPI) -> None:
    """Attach APScheduler lifecycle hooks to the FastAPI app."""

    settings = get_settings()
    if not settings.reconcile_enabled:
        return

    @app.on_event("startup")
    async def start_scheduler() -> None:
        if not _scheduler.get_job("reconcile_stores"):
            _scheduler.add_job(
                _execute_reconciliation,
                "interval",
                minutes=settings.reconcile_interval_minutes,
                id="reconcile_stores",
                misfire_grace_time=600,
                coalesce=True,
                max_instances=1,
            )
        if not _scheduler.running:
            _scheduler.start()
            logger.info("store reconciliation scheduler started")

    @app.on_event("shutdown")
    async def shutdown_scheduler() -> None:
        if _scheduler.running:
            _scheduler.shutdown(wait=False)
            logger.info("store reconciliation scheduler stopped")
