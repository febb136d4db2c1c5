# ============================================================================
# File: migration/orchestrator.py
# Description: Migration state machine with live event fan-out
# ============================================================================
"""
Migration Orchestrator - sequences fetch, classify, transform, approval and
write-back for one run at a time.

This module provides:
- The run state machine (idle -> running -> complete | error)
- Partial failure support (per-record failures never abort a batch)
- The approval control surface for reviewers
- Atomic ledger snapshots and live events for observers
"""

from functools import partial
from typing import Any, Dict, Iterable, List, Optional
import asyncio
import logging
import threading

from clients.base import SourceClient, DestinationClient
from migration.broadcaster import EventBroadcaster, Subscription
from migration.classifier import CohortClassifier
from migration.entities import default_schema, rules_for
from migration.isolation import isolate_async
from migration.mapper import map_records
from models.base import EntityType, EventType, FieldType, LogLevel, RunStatus
from models.run_ledger import RunLedger
from schemas.migration import (
    CompletionReport,
    DestinationConfig,
    LedgerSnapshot,
    WorkItem,
    WriteResult,
)
from core.config import settings
from core.exceptions import (
    MigrationException,
    FetchError,
    ClassificationError,
    MappingFieldError,
    WriteError,
    WriteSweepError,
    RunStateError,
    RunAlreadyActiveError,
    NoResultsError,
)

logger = logging.getLogger(__name__)

STEP_FETCHING = "fetching"
STEP_CLASSIFYING = "classifying"
STEP_TRANSFORMING = "transforming"
STEP_AWAITING_APPROVAL = "ready for approval"
STEP_WRITING = "writing"
STEP_COMPLETE = "complete"

LOG_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class MigrationOrchestrator:
    """
    Owns the current RunLedger and drives the pipeline against it.

    Responsibilities:
    - Reject a start while a run is in flight
    - Replace the ledger wholesale when a run starts
    - Advance progress through the pipeline stages
    - Hold the run in `running` while reviewers approve, with no timeout
    - Write the approved subset on an explicit complete call
    - Publish every ledger change to the broadcaster

    Every ledger mutation and the event describing it happen inside one
    critical section, so a snapshot taken for a new observer always agrees
    with the events already published.
    """

    def __init__(
        self,
        source: SourceClient,
        classifier: CohortClassifier,
        destination: DestinationClient,
        broadcaster: Optional[EventBroadcaster] = None
    ):
        self.source = source
        self.classifier = classifier
        self.destination = destination
        self.broadcaster = broadcaster or EventBroadcaster()
        self._ledger = RunLedger()
        self._lock = threading.RLock()
        self._sweeping = False

    # --------------------------------------------------
    # Control surface
    # --------------------------------------------------

    async def start(
        self,
        entity_type: EntityType,
        schema: Optional[Dict[str, FieldType]] = None
    ) -> LedgerSnapshot:
        """
        Start a run and carry it to the approval stage.

        Returns once results are ready for review; the run stays `running`
        until `complete` is called.

        Args:
            entity_type: Entity type to migrate
            schema: Target schema; the entity type's default when omitted

        Returns:
            Snapshot of the ledger at the approval stage

        Raises:
            RunAlreadyActiveError: If another run is in flight (ledger untouched)
            FetchError: If the source cannot deliver records
            UnknownEntityType: If no extraction rules apply
        """
        entity_type = EntityType(entity_type)
        target_schema = dict(schema) if schema else default_schema(entity_type)

        with self._lock:
            if self._ledger.is_running:
                raise RunAlreadyActiveError(
                    "Migration already in progress",
                    context={
                        "run_id": str(self._ledger.run_id),
                        "entity_type": self._ledger.entity_type.value,
                        "progress": self._ledger.progress,
                    }
                )
            self._ledger = RunLedger.begin(entity_type)
            self._publish_state()

        logger.info(f"Starting migration run {self._ledger.run_id} for {entity_type.value}")

        try:
            # --------------------------------------------------
            # PHASE 1: FETCH
            # --------------------------------------------------
            self._advance(10, STEP_FETCHING)
            records = await self._fetch(entity_type)
            self._log(f"Fetched {len(records)} {entity_type.value} from source")

            # --------------------------------------------------
            # PHASE 2: CLASSIFY
            # --------------------------------------------------
            self._advance(30, STEP_CLASSIFYING)
            enriched = await self.classifier.classify(
                records, entity_type, on_failure=self._on_classification_failure
            )
            self._log("Cohort analysis complete")

            # --------------------------------------------------
            # PHASE 3: TRANSFORM
            # --------------------------------------------------
            self._advance(50, STEP_TRANSFORMING)
            items = map_records(
                enriched,
                target_schema,
                entity_type=entity_type,
                on_field_error=self._on_field_error,
            )
            items = self._dedupe(items)
            with self._lock:
                self._ledger.set_results(items)
                self._publish_state()
            self._log("Data transformation complete")

            # --------------------------------------------------
            # PHASE 4: HAND OVER TO REVIEWERS
            # --------------------------------------------------
            self._advance(70, STEP_AWAITING_APPROVAL)
            return self.get_snapshot()

        except asyncio.CancelledError as e:
            self._fail(e, "Migration run cancelled")
            raise

        except Exception as e:
            self._fail(e)
            raise

    def set_approval(self, ids: Iterable[str], approved: bool) -> List[str]:
        """
        Add ids to, or remove ids from, the approval set.

        Idempotent: approving an approved id or unapproving an absent one
        changes nothing.

        Returns:
            The approval set after the change, sorted
        """
        ids = [str(item_id) for item_id in ids]
        with self._lock:
            before = len(self._ledger.approved_ids)
            approved_ids = self._ledger.set_approval(ids, approved)
            self.broadcaster.publish(EventType.APPROVALS, approved_ids)
            changed = abs(len(approved_ids) - before)
            verb = "Approved" if approved else "Unapproved"
            self._log(f"{verb} {changed} item(s); {len(approved_ids)} approved in total")
        return approved_ids

    async def complete(self, destination: Optional[DestinationConfig] = None) -> CompletionReport:
        """
        Write every approved result to the destination.

        Per-record rejections are logged and reported but do not stop the
        sweep. An unreachable destination fails the run.

        Raises:
            NoResultsError: If the run has no results yet
            RunStateError: If the run is not awaiting approval
            WriteSweepError: If the destination cannot be reached
        """
        with self._lock:
            ledger = self._ledger
            if not ledger.has_results:
                raise NoResultsError(
                    "No migration results to write",
                    context={"status": ledger.status.value, "progress": ledger.progress}
                )
            if not ledger.is_running or self._sweeping:
                raise RunStateError(
                    "Migration run is not awaiting approval",
                    context={"run_id": str(ledger.run_id), "status": ledger.status.value}
                )
            self._sweeping = True
            approved = ledger.approved_items()

        config = destination or self._default_destination(ledger.entity_type)
        report = CompletionReport(run_id=ledger.run_id)

        try:
            self._advance(90, STEP_WRITING)
            self._log(f"Writing {len(approved)} approved item(s) to destination")

            for item in approved:
                result = await isolate_async(
                    partial(self.destination.write_one, item.transformed, config),
                    fallback=partial(self._failed_write, item),
                    on_error=partial(self._on_write_error, item),
                    reraise=(WriteSweepError,),
                )
                result = WriteResult(record_id=item.id, success=result.success, detail=result.detail)
                if not result.success:
                    self._log(f"Failed to write {item.id}: {result.detail}", LogLevel.ERROR)
                report.results.append(result)

            report.attempted = len(report.results)
            report.written = sum(1 for r in report.results if r.success)
            report.failed = report.attempted - report.written

            with self._lock:
                ledger.write_results = list(report.results)
                self._advance(100, STEP_COMPLETE)
                self._log(
                    f"Migration completed: {report.written} written, {report.failed} failed"
                )
                ledger.finish(RunStatus.COMPLETE)
                self._publish_state()

            logger.info(f"Run {ledger.run_id} complete ({report.written}/{report.attempted} written)")
            return report

        except asyncio.CancelledError as e:
            self._fail(e, "Write-back cancelled")
            raise

        except Exception as e:
            self._fail(e)
            raise

        finally:
            with self._lock:
                self._sweeping = False

    def get_snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return self._ledger.snapshot()

    def subscribe(self) -> Subscription:
        """Register an observer; its first event is the current full state"""
        with self._lock:
            return self.broadcaster.subscribe(self._state_payload())

    def unsubscribe(self, subscription: Subscription):
        self.broadcaster.unsubscribe(subscription)

    # --------------------------------------------------
    # Pipeline helpers
    # --------------------------------------------------

    async def _fetch(self, entity_type: EntityType) -> List[Dict[str, Any]]:
        try:
            records = await self.source.fetch(entity_type)
        except FetchError:
            raise
        except Exception as e:
            raise FetchError(
                "Unexpected error during fetch",
                context={"entity_type": entity_type.value},
                original_exception=e
            )
        return list(records or [])

    def _dedupe(self, items: List[WorkItem]) -> List[WorkItem]:
        """Keep one item per id; a later duplicate replaces the earlier one"""
        by_id: Dict[str, WorkItem] = {}
        for item in items:
            if item.id in by_id:
                self._log(f"Duplicate record id {item.id}; keeping the last occurrence", LogLevel.WARNING)
            by_id[item.id] = item
        return list(by_id.values())

    def _default_destination(self, entity_type: EntityType) -> DestinationConfig:
        return DestinationConfig(
            endpoint=f"{settings.DESTINATION_URL.rstrip('/')}{rules_for(entity_type).endpoint}",
            api_key=settings.DESTINATION_API_KEY,
            timeout=settings.REQUEST_TIMEOUT,
        )

    def _on_classification_failure(self, record_id: str, error: ClassificationError):
        self._log(f"Failed to classify record {record_id}: {_describe(error)}", LogLevel.ERROR)

    def _on_field_error(self, record_id: str, error: MappingFieldError):
        field_name = error.context.get("field_name", "?")
        self._log(
            f"Failed to transform field {field_name} for record {record_id}: {_describe(error)}",
            LogLevel.ERROR
        )

    def _on_write_error(self, item: WorkItem, error: Exception):
        logger.error(f"Write raised for record {item.id}: {error}")

    @staticmethod
    def _failed_write(item: WorkItem, error: Exception) -> WriteResult:
        if not isinstance(error, WriteError):
            error = WriteError(str(error), context={"record_id": item.id}, original_exception=error)
        return WriteResult(record_id=item.id, success=False, detail=_describe(error))

    def _fail(self, error: BaseException, message: Optional[str] = None):
        with self._lock:
            self._log(message or _describe(error), LogLevel.ERROR)
            self._ledger.finish(RunStatus.ERROR)
            self._publish_state()
        if isinstance(error, MigrationException):
            logger.error(f"Migration run failed: {error.message}", extra={"error_context": error.to_dict()})
        else:
            logger.error(f"Migration run failed: {error!r}")

    # --------------------------------------------------
    # Ledger mutation + broadcast
    # --------------------------------------------------

    def _log(self, message: str, level: LogLevel = LogLevel.INFO):
        with self._lock:
            entry = self._ledger.append_log(message, level)
            self.broadcaster.publish(EventType.LOG, entry.model_dump(mode="json"))
        logger.log(LOG_LEVELS[LogLevel(level)], message)

    def _advance(self, progress: int, step: str):
        with self._lock:
            update = self._ledger.advance(progress, step)
            self.broadcaster.publish(EventType.PROGRESS, update)

    def _publish_state(self):
        self.broadcaster.publish(EventType.STATE, self._state_payload())

    def _state_payload(self) -> Dict[str, Any]:
        return self._ledger.snapshot().model_dump(mode="json")


def _describe(error: BaseException) -> str:
    if isinstance(error, MigrationException):
        if error.original_exception:
            return f"{error.message}: {error.original_exception}"
        return error.message
    return str(error) or type(error).__name__
