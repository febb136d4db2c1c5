"""
Per entity type configuration: extraction rules, default target schemas,
cohort prompts and destination endpoints.
"""

from typing import Any, Callable, Dict, NamedTuple
import json

from models.base import EntityType, FieldType

Extractor = Callable[[Dict[str, Any]], Any]


class RuleSet(NamedTuple):
    """Everything the pipeline needs to know about one entity type"""
    id_field: str
    extractors: Dict[str, Extractor]
    default_schema: Dict[str, FieldType]
    prompt: str
    endpoint: str


def _field(name: str) -> Extractor:
    return lambda record: record.get(name)


def _with_default(name: str, default: Any) -> Extractor:
    return lambda record: record.get(name) or default


CUSTOMER_RULES = RuleSet(
    id_field="entityid",
    extractors={
        "entityid": _field("id"),
        "email": _field("email"),
        "currency": _with_default("currency", "USD"),
        "balance": _field("balance"),
        "cohort": _field("cohort"),
    },
    default_schema={
        "entityid": FieldType.STRING,
        "email": FieldType.STRING,
        "currency": FieldType.STRING,
        "balance": FieldType.NUMBER,
        "cohort": FieldType.STRING,
    },
    prompt=(
        "Analyze the following customer data and assign it to a cohort based on "
        "account size, product type, or logical grouping: {data}. Return a cohort name."
    ),
    endpoint="/customers",
)

TRANSACTION_RULES = RuleSet(
    id_field="id",
    extractors={
        "id": _field("id"),
        "amount": _field("amount"),
        "status": _field("status"),
        "type": _field("type"),
        "date": _field("createdAt"),
        "customerId": _field("customerId"),
        "cohort": _field("cohort"),
    },
    default_schema={
        "id": FieldType.STRING,
        "amount": FieldType.NUMBER,
        "status": FieldType.STRING,
        "type": FieldType.STRING,
        "date": FieldType.STRING,
        "customerId": FieldType.STRING,
        "cohort": FieldType.STRING,
    },
    prompt=(
        "Analyze the following transaction data and assign it to a cohort based on "
        "transaction size, frequency, or type: {data}. Return a cohort name."
    ),
    endpoint="/transactions",
)

SUBSCRIPTION_RULES = RuleSet(
    id_field="id",
    extractors={
        "id": _field("id"),
        "planId": _field("planId"),
        "status": _field("status"),
        "price": _field("price"),
        "billingPeriod": _field("billingPeriod"),
        "customerId": _field("customerId"),
        "cohort": _field("cohort"),
    },
    default_schema={
        "id": FieldType.STRING,
        "planId": FieldType.STRING,
        "status": FieldType.STRING,
        "price": FieldType.NUMBER,
        "billingPeriod": FieldType.STRING,
        "customerId": FieldType.STRING,
        "cohort": FieldType.STRING,
    },
    prompt=(
        "Analyze the following subscription data and assign it to a cohort based on "
        "plan type, billing frequency, or subscription value: {data}. Return a cohort name."
    ),
    endpoint="/subscriptions",
)

PLAN_RULES = RuleSet(
    id_field="id",
    extractors={
        "id": _field("id"),
        "name": _field("name"),
        "price": _field("price"),
        "billingFrequency": _field("billingFrequency"),
        "currency": _with_default("currency", "USD"),
        "cohort": _field("cohort"),
    },
    default_schema={
        "id": FieldType.STRING,
        "name": FieldType.STRING,
        "price": FieldType.NUMBER,
        "billingFrequency": FieldType.STRING,
        "currency": FieldType.STRING,
        "cohort": FieldType.STRING,
    },
    prompt=(
        "Analyze the following plan data and assign it to a cohort based on "
        "pricing tier, features, or target market: {data}. Return a cohort name."
    ),
    endpoint="/plans",
)

RULE_SETS: Dict[EntityType, RuleSet] = {
    EntityType.CUSTOMERS: CUSTOMER_RULES,
    EntityType.TRANSACTIONS: TRANSACTION_RULES,
    EntityType.SUBSCRIPTIONS: SUBSCRIPTION_RULES,
    EntityType.PLANS: PLAN_RULES,
}

_missing = set(EntityType) - set(RULE_SETS)
if _missing:
    raise RuntimeError(f"No rule set for entity types: {sorted(t.value for t in _missing)}")


def rules_for(entity_type: EntityType) -> RuleSet:
    return RULE_SETS[EntityType(entity_type)]


def default_schema(entity_type: EntityType) -> Dict[str, FieldType]:
    return dict(rules_for(entity_type).default_schema)


def build_prompt(record: Dict[str, Any], entity_type: EntityType) -> str:
    """Embed the serialized record into the entity type's cohort prompt"""
    data = json.dumps(record, default=str, sort_keys=True)
    return rules_for(entity_type).prompt.format(data=data)
