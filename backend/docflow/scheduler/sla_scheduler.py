"""SLA Scheduler - Periodic escalation sweep

Runs WorkflowService.escalate_overdue on an interval. The engine itself never
schedules anything; this is the external timer that drives escalation.
"""
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.settings import settings
from ..services.workflow_service import WorkflowService
from ..domain.errors import DomainError
from ..utils.idgen import generate_correlation_id
from ..utils.logger import get_logger, set_correlation_id

logger = get_logger(__name__)


class SlaScheduler:
    """
    APScheduler wrapper for the SLA sweep

    Each server runs its own instance. Duplicate sweeps are harmless because
    a step already escalated since it was entered is skipped.
    """

    def __init__(self, service: WorkflowService, interval_seconds: Optional[int] = None):
        self.service = service
        self.interval_seconds = interval_seconds or settings.sla_check_interval_seconds
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._is_running = False

    def start(self) -> None:
        """Start the scheduler"""
        if self._is_running:
            logger.warning("SLA scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.run_sweep,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id="check_sla_escalations",
            name="Check SLA escalations",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        self._is_running = True
        logger.info(f"SLA scheduler started (every {self.interval_seconds}s)")

    def stop(self) -> None:
        """Stop the scheduler"""
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self._is_running = False
            logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    def run_sweep(self) -> int:
        """Single escalation pass; errors are logged so the job keeps running"""
        set_correlation_id(generate_correlation_id())
        try:
            return self.service.escalate_overdue()
        except DomainError as e:
            logger.error(f"SLA sweep failed: {e.message}", extra={"error_code": e.error_code})
            return 0
