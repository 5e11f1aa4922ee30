"""Tests for the SLA sweep job"""

from contextvars import copy_context

from docflow.domain.errors import StorageError
from docflow.scheduler.sla_scheduler import SlaScheduler
from tests.conftest import COLLECTION


class BrokenService:
    def escalate_overdue(self):
        raise StorageError("Database unavailable")


class TestSlaScheduler:

    def test_sweep_escalates_overdue_documents(self, seeded_service, clock, editor):
        seeded_service.trigger(COLLECTION, "doc-1", editor)
        clock.advance(hours=30)

        scheduler = SlaScheduler(seeded_service, interval_seconds=5)

        assert copy_context().run(scheduler.run_sweep) == 1
        assert scheduler.is_running is False

    def test_sweep_survives_storage_errors(self):
        scheduler = SlaScheduler(BrokenService(), interval_seconds=5)

        assert copy_context().run(scheduler.run_sweep) == 0

    def test_stop_before_start_is_harmless(self, service):
        scheduler = SlaScheduler(service, interval_seconds=5)

        scheduler.stop()

        assert scheduler.is_running is False
