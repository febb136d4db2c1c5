"""
Assign a cohort label to every source record.

Classification is advisory: a failed lookup for one record gives that
record the sentinel cohort and never fails the batch.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional
import asyncio
import logging

from clients.base import CompletionClient
from migration.entities import build_prompt
from migration.isolation import isolate_async
from models.base import EntityType
from schemas.migration import EnrichedRecord
from core.config import settings
from core.exceptions import ClassificationError

logger = logging.getLogger(__name__)

UNCLASSIFIED = "unclassified"

FailureHandler = Callable[[str, ClassificationError], None]


class CohortClassifier:
    """
    Classify records through a completion client.

    Calls are dispatched concurrently, bounded by `concurrency`; the output
    always matches the input order.
    """

    def __init__(
        self,
        client: CompletionClient,
        max_tokens: Optional[int] = None,
        concurrency: Optional[int] = None
    ):
        self.client = client
        self.max_tokens = max_tokens or settings.COHORT_MAX_TOKENS
        self.concurrency = max(1, concurrency or settings.CLASSIFY_CONCURRENCY)

    async def classify_one(self, record: Dict[str, Any], entity_type: EntityType) -> str:
        """
        Return the trimmed cohort label for one record.

        Raises:
            ClassificationError: If the lookup fails or the reply is empty
        """
        context = {"record_id": record.get("id"), "entity_type": EntityType(entity_type).value}
        prompt = build_prompt(record, entity_type)

        try:
            reply = await self.client.complete(prompt, max_tokens=self.max_tokens)
        except ClassificationError:
            raise
        except Exception as e:
            raise ClassificationError("Cohort lookup failed", context=context, original_exception=e)

        cohort = reply.strip() if isinstance(reply, str) else ""
        if not cohort:
            raise ClassificationError("Empty cohort label in reply", context=context)
        return cohort

    async def classify(
        self,
        records: Iterable[Dict[str, Any]],
        entity_type: EntityType,
        on_failure: Optional[FailureHandler] = None
    ) -> List[EnrichedRecord]:
        """
        Classify every record, one output per input, same order.

        Args:
            records: Raw source records
            entity_type: Selects the prompt
            on_failure: Called with (record id, error) for each failed lookup
        """
        entity_type = EntityType(entity_type)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _classify(record: Dict[str, Any]) -> EnrichedRecord:
            async with semaphore:
                cohort = await isolate_async(
                    lambda: self.classify_one(record, entity_type),
                    fallback=lambda e: UNCLASSIFIED,
                    on_error=lambda e: self._report_failure(record, e, on_failure),
                )
            return EnrichedRecord(original=record, enriched={**record, "cohort": cohort})

        enriched = await asyncio.gather(*(_classify(record) for record in records))

        unclassified = sum(1 for item in enriched if item.cohort == UNCLASSIFIED)
        logger.info(
            f"Cohorts assigned for {len(enriched)} {entity_type.value} "
            f"({unclassified} unclassified)"
        )
        return list(enriched)

    @staticmethod
    def _report_failure(record: Dict[str, Any], error: Exception, on_failure: Optional[FailureHandler]):
        record_id = str(record.get("id", ""))
        if not isinstance(error, ClassificationError):
            error = ClassificationError(str(error), context={"record_id": record_id}, original_exception=error)
        logger.warning(f"Failed to classify record {record_id}: {error.message}")
        if on_failure:
            on_failure(record_id, error)
