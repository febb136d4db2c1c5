"""
Pytest configuration and fixtures
"""

import asyncio
import pytest
from typing import Any, Dict, List, Optional
from clients.base import SourceClient, CompletionClient, DestinationClient
from migration.broadcaster import EventBroadcaster
from migration.classifier import CohortClassifier
from migration.orchestrator import MigrationOrchestrator
from models.base import EntityType
from schemas.migration import DestinationConfig, WriteResult
from core.exceptions import WriteSweepError


class FakeSource(SourceClient):
    """In-memory source ledger keyed by entity type"""

    def __init__(self, records: Dict[EntityType, List[Dict[str, Any]]]):
        self.records = records
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.calls: List[EntityType] = []

    async def fetch(self, entity_type):
        self.calls.append(EntityType(entity_type))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return [dict(r) for r in self.records.get(EntityType(entity_type), [])]


class FakeCompletion(CompletionClient):
    """
    Replies with `default` unless the prompt carries an id listed in
    `replies`; an Exception value is raised instead of returned.
    """

    def __init__(self, default: str = "standard"):
        self.default = default
        self.replies: Dict[str, Any] = {}
        self.prompts: List[str] = []
        self.max_tokens: List[int] = []

    async def complete(self, prompt, max_tokens):
        self.prompts.append(prompt)
        self.max_tokens.append(max_tokens)
        for record_id, reply in self.replies.items():
            if f'"id": "{record_id}"' in prompt:
                if isinstance(reply, Exception):
                    raise reply
                return reply
        return self.default


class FakeDestination(DestinationClient):
    """Records every write; ids in `reject` fail in-band, `unreachable` fails the sweep"""

    def __init__(self):
        self.written: List[Dict[str, Any]] = []
        self.configs: List[DestinationConfig] = []
        self.reject: set = set()
        self.explode: set = set()
        self.unreachable = False

    async def write_one(self, record, config):
        record_id = str(record.get("id", record.get("entityid")))
        if self.unreachable:
            raise WriteSweepError("Destination unreachable", context={"endpoint": config.endpoint})
        self.written.append(record)
        self.configs.append(config)
        if record_id in self.explode:
            raise RuntimeError(f"connection reset while writing {record_id}")
        if record_id in self.reject:
            return WriteResult(record_id=record_id, success=False, detail="HTTP 400: invalid record")
        return WriteResult(record_id=record_id, success=True, detail={"internalId": f"ns-{record_id}"})


@pytest.fixture
def plan_records():
    """Ten billing plans with string prices as the source ledger exports them"""
    return [
        {
            "id": f"p{i}",
            "name": f"Plan {i}",
            "price": f"{i * 10}.50",
            "billingFrequency": "monthly" if i % 2 else "yearly",
            "currency": "USD",
        }
        for i in range(1, 11)
    ]


@pytest.fixture
def customer_records():
    return [
        {"id": "c1", "email": "ana@example.com", "currency": "EUR", "balance": "120.00"},
        {"id": "c2", "email": "bo@example.com", "balance": 15},
    ]


@pytest.fixture
def source(plan_records, customer_records):
    return FakeSource({
        EntityType.PLANS: plan_records,
        EntityType.CUSTOMERS: customer_records,
    })


@pytest.fixture
def completion():
    return FakeCompletion()


@pytest.fixture
def destination():
    return FakeDestination()


@pytest.fixture
def broadcaster():
    return EventBroadcaster(queue_size=1000)


@pytest.fixture
def orchestrator(source, completion, destination, broadcaster):
    """Orchestrator wired to in-memory collaborators"""
    return MigrationOrchestrator(
        source=source,
        classifier=CohortClassifier(completion, concurrency=3),
        destination=destination,
        broadcaster=broadcaster,
    )
