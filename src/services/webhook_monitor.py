"""Periodic renewal and health reporting for webhook channels."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from pymongo.errors import PyMongoError

from src.database import utcnow
from src.services.webhook_service import RENEWAL_THRESHOLD_HOURS, WebhookService

logger = logging.getLogger(__name__)

CHECK_INTERVAL_HOURS = 6
STALE_AFTER_HOURS = 24
JOB_ID = "webhook-renewal"


class WebhookMonitor:
    """Runs ``check_and_renew`` every six hours and once at start-up."""

    def __init__(self, webhook_service: WebhookService, *, interval_hours: float = CHECK_INTERVAL_HOURS) -> None:
        self.webhook_service = webhook_service
        self.interval_hours = interval_hours
        self.scheduler = AsyncIOScheduler()
        self.last_result: dict[str, Any] | None = None

    def start(self) -> None:
        if self.scheduler.running:
            return
        self.scheduler.add_job(
            self.check_and_renew,
            trigger=IntervalTrigger(hours=self.interval_hours),
            id=JOB_ID,
            name="Renew expiring calendar webhooks",
            next_run_time=datetime.now(UTC),
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("Webhook monitor started (every %sh)", self.interval_hours)

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Webhook monitor stopped")

    async def check_and_renew(self) -> dict[str, Any]:
        """Renew expiring channels and log the stale ones."""
        try:
            result = await self.webhook_service.check_and_renew_expiring(RENEWAL_THRESHOLD_HOURS)
            stale = await self.webhook_service.syncs.stale_since(utcnow() - timedelta(hours=STALE_AFTER_HOURS))
        except PyMongoError:
            logger.exception("Webhook monitor run failed")
            return {"checked": 0, "renewed": 0, "failed": [], "error": "database unavailable"}

        for sync in stale:
            logger.warning(
                "Webhook channel %s for user %s has not synced since %s",
                sync.get("channelId"), sync.get("userId"), sync.get("lastSyncTime"),
            )
        self.last_result = {**result, "stale": len(stale), "ranAt": utcnow()}
        return self.last_result

    async def get_health_status(self) -> dict[str, Any]:
        now = utcnow()
        syncs = await self.webhook_service.syncs.all()
        expiring = [s for s in syncs if s["expiration"] <= now + timedelta(hours=RENEWAL_THRESHOLD_HOURS)]
        stale_cutoff = now - timedelta(hours=STALE_AFTER_HOURS)
        stale = [s for s in syncs if s.get("lastSyncTime") and s["lastSyncTime"] < stale_cutoff]
        return {
            "status": "warning" if expiring or stale else "healthy",
            "totalChannels": len(syncs),
            "expiringChannels": len(expiring),
            "staleChannels": len(stale),
            "timestamp": now,
        }

    def get_status(self) -> dict[str, Any]:
        job = self.scheduler.get_job(JOB_ID) if self.scheduler.running else None
        return {
            "isRunning": self.scheduler.running,
            "nextRun": job.next_run_time if job else None,
            "intervalHours": self.interval_hours,
            "lastResult": self.last_result,
        }

