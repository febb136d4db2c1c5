"""
Shared FastAPI dependencies
"""

from typing import Optional
from clients.source import HTTPSourceClient
from clients.completion import HTTPCompletionClient
from clients.destination import HTTPDestinationClient
from migration.classifier import CohortClassifier
from migration.orchestrator import MigrationOrchestrator

_orchestrator: Optional[MigrationOrchestrator] = None


def build_orchestrator() -> MigrationOrchestrator:
    """Wire the orchestrator to the configured HTTP collaborators"""
    return MigrationOrchestrator(
        source=HTTPSourceClient(),
        classifier=CohortClassifier(HTTPCompletionClient()),
        destination=HTTPDestinationClient(),
    )


def get_orchestrator() -> MigrationOrchestrator:
    """Process-wide orchestrator; only one run may be in flight at a time"""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
    return _orchestrator
