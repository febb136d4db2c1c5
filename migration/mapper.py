"""
Map classified records onto a destination target schema
"""

from typing import Any, Callable, Dict, Iterable, List, Optional
import logging
import math

from migration.entities import RuleSet, rules_for
from migration.isolation import isolate
from models.base import EntityType, FieldType
from schemas.migration import EnrichedRecord, WorkItem
from core.exceptions import MappingFieldError, UnknownEntityType

logger = logging.getLogger(__name__)

FieldErrorHandler = Callable[[str, MappingFieldError], None]

TRUE_STRINGS = {"true", "1", "yes", "y"}
FALSE_STRINGS = {"false", "0", "no", "n", ""}


def zero_value(field_type: FieldType) -> Any:
    """Type-appropriate value substituted for missing or failed fields"""
    field_type = FieldType(field_type)
    if field_type == FieldType.STRING:
        return ""
    if field_type == FieldType.NUMBER:
        return 0.0
    if field_type == FieldType.BOOLEAN:
        return False
    if field_type == FieldType.ARRAY:
        return []
    return {}


def parse_number(value: Any) -> float:
    """
    Parse a value as a float.

    Unparsable input, NaN and infinities all yield 0.0 so a numeric
    slot never carries a non-numeric payload.
    """
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def coerce(value: Any, field_type: FieldType) -> Any:
    """
    Coerce an extracted value to the declared field type.

    Raises:
        MappingFieldError: If the value cannot represent the type
    """
    field_type = FieldType(field_type)

    if field_type == FieldType.NUMBER:
        return parse_number(value)

    if field_type == FieldType.STRING:
        if isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)

    elif field_type == FieldType.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return bool(value)
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in TRUE_STRINGS:
                return True
            if lowered in FALSE_STRINGS:
                return False

    elif field_type == FieldType.ARRAY:
        if isinstance(value, (list, tuple, set)):
            return list(value)

    elif field_type == FieldType.OBJECT:
        if isinstance(value, dict):
            return dict(value)

    raise MappingFieldError(
        f"Cannot coerce {type(value).__name__} to {field_type.value}",
        context={"field_type": field_type.value, "field_value": repr(value)[:100]}
    )


def infer_entity_type(record: Dict[str, Any]) -> EntityType:
    """
    Infer the entity type from an enriched record's shape.

    Precedence: email, then amount+type, then planId, then billingFrequency.
    """
    if record.get("email"):
        return EntityType.CUSTOMERS
    if record.get("amount") and record.get("type"):
        return EntityType.TRANSACTIONS
    if record.get("planId"):
        return EntityType.SUBSCRIPTIONS
    if record.get("billingFrequency"):
        return EntityType.PLANS
    raise UnknownEntityType(
        "Unable to determine entity type from record structure",
        context={"fields": sorted(record.keys())}
    )


def map_records(
    items: Iterable[EnrichedRecord],
    schema: Dict[str, FieldType],
    entity_type: Optional[EntityType] = None,
    on_field_error: Optional[FieldErrorHandler] = None
) -> List[WorkItem]:
    """
    Map enriched records to the target schema.

    Every schema field is present in every output record. A field whose
    extraction fails is set to its zero value and reported through
    `on_field_error`; the record and the batch carry on.

    Args:
        items: Classified records, in source order
        schema: Ordered field name -> field type mapping
        entity_type: Selects the extraction rules; inferred from the first
            record when omitted
        on_field_error: Called with (record id, error) per failed field

    Returns:
        One WorkItem per input record, same order

    Raises:
        UnknownEntityType: If the entity type is omitted and cannot be inferred
    """
    items = list(items)
    if not items:
        return []

    if entity_type is None:
        entity_type = infer_entity_type(items[0].enriched)
    rule_set = rules_for(entity_type)

    mapped = [
        _map_record(item, schema, rule_set, index, on_field_error)
        for index, item in enumerate(items)
    ]
    logger.info(f"Mapped {len(mapped)} {EntityType(entity_type).value} to target schema")
    return mapped


def _map_record(
    item: EnrichedRecord,
    schema: Dict[str, FieldType],
    rule_set: RuleSet,
    index: int,
    on_field_error: Optional[FieldErrorHandler]
) -> WorkItem:
    source_id = item.original.get("id")
    record_label = str(source_id) if source_id not in (None, "") else f"#{index}"
    transformed: Dict[str, Any] = {}

    for field_name, declared in schema.items():
        field_type = FieldType(declared)
        extractor = rule_set.extractors.get(field_name)
        transformed[field_name] = isolate(
            lambda: _extract_field(item.enriched, field_name, field_type, extractor),
            fallback=lambda e: zero_value(field_type),
            on_error=lambda e: _report_field_error(record_label, e, on_field_error),
        )

    return WorkItem(
        id=_work_item_id(transformed, item.original, rule_set, index),
        original=item.original,
        transformed=transformed,
    )


def _extract_field(
    enriched: Dict[str, Any],
    field_name: str,
    field_type: FieldType,
    extractor: Optional[Callable[[Dict[str, Any]], Any]]
) -> Any:
    try:
        value = extractor(enriched) if extractor else enriched.get(field_name)
    except Exception as e:
        raise MappingFieldError(
            f"Failed to extract field {field_name}",
            context={"field_name": field_name, "field_type": field_type.value},
            original_exception=e
        )

    if value is None:
        return zero_value(field_type)

    try:
        return coerce(value, field_type)
    except MappingFieldError as e:
        e.context["field_name"] = field_name
        raise


def _report_field_error(record_label: str, error: Exception, on_field_error: Optional[FieldErrorHandler]):
    if not isinstance(error, MappingFieldError):
        error = MappingFieldError(str(error), original_exception=error)
    logger.warning(f"Failed to transform field for record {record_label}: {error.message}")
    if on_field_error:
        on_field_error(record_label, error)


def _work_item_id(transformed: Dict[str, Any], original: Dict[str, Any], rule_set: RuleSet, index: int) -> str:
    for candidate in (transformed.get(rule_set.id_field), original.get("id")):
        if candidate not in (None, ""):
            return str(candidate)
    return f"row-{index}"
