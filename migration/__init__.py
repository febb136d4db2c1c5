"""
Billing migration pipeline.

This package moves billing records from a source ledger to a destination
ERP through five stages:

    1. Fetch - Read raw records for one entity type from the source
    2. Classify - Attach an advisory cohort label to every record
    3. Transform - Map records onto the destination target schema
    4. Approve - Reviewers admit records into the write set, at human pace
    5. Write - Send the approved records to the destination

Modules:
    entities: Per entity type extraction rules, schemas, prompts, endpoints
    isolation: The partial-failure combinator shared by every per-item stage
    mapper: Field mapping with type-safe zero values
    classifier: Cohort classification with bounded concurrency
    broadcaster: Event fan-out to live observers
    orchestrator: The run state machine and control surface

Usage:
    from migration.orchestrator import MigrationOrchestrator
    from migration.classifier import CohortClassifier

Example:
    orchestrator = MigrationOrchestrator(
        source=HTTPSourceClient(),
        classifier=CohortClassifier(HTTPCompletionClient()),
        destination=HTTPDestinationClient(),
    )

    await orchestrator.start(EntityType.PLANS)
    orchestrator.set_approval(["p1"], approved=True)
    report = await orchestrator.complete()

    print(f"Wrote {report.written} records")

Error Handling:
    Per-record failures are logged to the run and replaced by a fallback
    (sentinel cohort, zero value, failed write result). Stage failures set
    the run to `error` and propagate. See core.exceptions.
"""

__all__ = [
    "MigrationOrchestrator",
    "CohortClassifier",
    "EventBroadcaster",
    "map_records",
    "isolate",
    "isolate_async",
]
