from datetime import datetime
from typing import Dict, Any, Iterable, List, Optional, Set
import uuid

from models.base import EntityType, RunStatus, LogLevel
from schemas.migration import LedgerSnapshot, LogEntry, WorkItem, WriteResult, utcnow
from core.exceptions import RunStateError


class RunLedger:
    """
    Mutable state of one migration run.

    Purpose:
    - Status, progress and step label of the active phase
    - Append-only run log
    - Result set produced by the map stage
    - Reviewer-controlled set of approved record ids

    Design:
    - One ledger per run; a new run builds a new ledger instead of
      resetting this one
    - The ledger does no locking itself. Its owner serializes every call
      together with the snapshot reads used for broadcasting
    - Approved ids are not checked against results; an id with no matching
      result is inert
    """

    def __init__(
        self,
        entity_type: Optional[EntityType] = None,
        status: RunStatus = RunStatus.IDLE,
        run_id: Optional[uuid.UUID] = None
    ):
        self.run_id: Optional[uuid.UUID] = run_id
        self.entity_type = entity_type
        self.status = status
        self.progress = 0
        self.current_step = ""
        self.logs: List[LogEntry] = []
        self.results: Optional[List[WorkItem]] = None
        self.approved_ids: Set[str] = set()
        self.write_results: List[WriteResult] = []
        self.started_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None

    @classmethod
    def begin(cls, entity_type: EntityType) -> "RunLedger":
        """Create the ledger of a freshly started run"""
        ledger = cls(entity_type=entity_type, status=RunStatus.RUNNING, run_id=uuid.uuid4())
        ledger.current_step = "Initializing"
        ledger.started_at = utcnow()
        return ledger

    @property
    def is_running(self) -> bool:
        return self.status == RunStatus.RUNNING

    @property
    def has_results(self) -> bool:
        return self.results is not None

    def append_log(self, message: str, level: LogLevel = LogLevel.INFO) -> LogEntry:
        entry = LogEntry(message=message, level=level)
        self.logs.append(entry)
        return entry

    def advance(self, progress: int, step: str) -> Dict[str, Any]:
        """
        Move progress forward and relabel the current step.

        Progress never decreases within a run; a lower value keeps the
        current one.
        """
        self.progress = max(self.progress, min(100, max(0, int(progress))))
        self.current_step = step
        return {"progress": self.progress, "step": self.current_step}

    def set_results(self, items: Iterable[WorkItem]):
        if self.results is not None:
            raise RunStateError(
                "Results are already set for this run",
                context={"run_id": str(self.run_id)}
            )
        self.results = list(items)

    def set_approval(self, ids: Iterable[str], approved: bool) -> List[str]:
        for item_id in ids:
            if approved:
                self.approved_ids.add(str(item_id))
            else:
                self.approved_ids.discard(str(item_id))
        return sorted(self.approved_ids)

    def approved_items(self) -> List[WorkItem]:
        """Results whose id is in the approval set, in result order"""
        return [item for item in (self.results or []) if item.id in self.approved_ids]

    def finish(self, status: RunStatus):
        self.status = status
        self.completed_at = utcnow()

    def snapshot(self) -> LedgerSnapshot:
        """Detached copy; nothing in it aliases the ledger's own records"""
        return LedgerSnapshot(
            run_id=self.run_id,
            entity_type=self.entity_type,
            status=self.status,
            progress=self.progress,
            current_step=self.current_step,
            logs=[entry.model_copy(deep=True) for entry in self.logs],
            results=(
                [item.model_copy(deep=True) for item in self.results]
                if self.results is not None else None
            ),
            approved_ids=sorted(self.approved_ids),
            started_at=self.started_at,
            completed_at=self.completed_at,
        )
