"""
Unit tests for the run ledger
"""

import pytest
from models.base import EntityType, LogLevel, RunStatus
from models.run_ledger import RunLedger
from schemas.migration import WorkItem
from core.exceptions import RunStateError


def work_item(item_id):
    return WorkItem(id=item_id, original={"id": item_id}, transformed={"id": item_id})


class TestRunLedger:
    """Test ledger state transitions"""

    def test_initial_ledger_is_idle(self):
        ledger = RunLedger()

        assert ledger.status == RunStatus.IDLE
        assert ledger.run_id is None
        assert not ledger.is_running
        assert not ledger.has_results

    def test_begin(self):
        ledger = RunLedger.begin(EntityType.PLANS)

        assert ledger.is_running
        assert ledger.run_id is not None
        assert ledger.progress == 0
        assert ledger.started_at is not None

    def test_progress_is_monotonic_and_clamped(self):
        ledger = RunLedger.begin(EntityType.PLANS)

        assert ledger.advance(50, "transforming") == {"progress": 50, "step": "transforming"}
        assert ledger.advance(30, "classifying")["progress"] == 50
        assert ledger.advance(150, "complete")["progress"] == 100
        assert ledger.current_step == "complete"

    def test_approval_is_idempotent(self):
        ledger = RunLedger.begin(EntityType.PLANS)

        assert ledger.set_approval(["p2", "p1"], True) == ["p1", "p2"]
        assert ledger.set_approval(["p1"], True) == ["p1", "p2"]
        assert ledger.set_approval(["p1"], False) == ["p2"]
        assert ledger.set_approval(["p1"], False) == ["p2"]

    def test_approved_items_follow_result_order(self):
        ledger = RunLedger.begin(EntityType.PLANS)
        ledger.set_results([work_item("a"), work_item("b"), work_item("c")])

        ledger.set_approval(["c", "a", "ghost"], True)

        assert [item.id for item in ledger.approved_items()] == ["a", "c"]

    def test_results_set_once(self):
        ledger = RunLedger.begin(EntityType.PLANS)
        ledger.set_results([work_item("a")])

        with pytest.raises(RunStateError):
            ledger.set_results([work_item("b")])

    def test_empty_results_still_count_as_results(self):
        ledger = RunLedger.begin(EntityType.PLANS)
        ledger.set_results([])

        assert ledger.has_results

    def test_snapshot_is_a_copy(self):
        ledger = RunLedger.begin(EntityType.PLANS)
        ledger.append_log("Fetched 1 plans from source")
        snapshot = ledger.snapshot()

        ledger.append_log("Something went wrong", LogLevel.ERROR)
        ledger.set_approval(["p1"], True)
        ledger.finish(RunStatus.ERROR)

        assert len(snapshot.logs) == 1
        assert snapshot.approved_ids == []
        assert snapshot.status == "running"
        assert snapshot.completed_at is None

    def test_snapshot_results_are_detached(self):
        ledger = RunLedger.begin(EntityType.PLANS)
        ledger.set_results([
            WorkItem(id="p1", original={"id": "p1", "price": "9"}, transformed={"id": "p1", "price": 9.0})
        ])
        snapshot = ledger.snapshot()

        snapshot.results[0].transformed["price"] = -999.0
        snapshot.results[0].original["price"] = "tampered"

        assert ledger.results[0].transformed["price"] == 9.0
        assert ledger.results[0].original["price"] == "9"
        assert ledger.snapshot().results[0].transformed["price"] == 9.0

    def test_snapshot_log_entries_are_detached(self):
        ledger = RunLedger.begin(EntityType.PLANS)
        ledger.append_log("Fetched 2 plans from source")
        snapshot = ledger.snapshot()

        snapshot.logs[0].message = "rewritten"

        assert ledger.logs[0].message == "Fetched 2 plans from source"
