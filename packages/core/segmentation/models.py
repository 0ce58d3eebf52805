"""
Segmentation models.

Segment criteria are data, not code. They are persisted as JSON on each
segment, edited by tenants, and interpreted by the evaluator. Parsing is
lenient: a rule that cannot be understood is kept as a MalformedRule so the
evaluator can fail it closed instead of rejecting the whole segment.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)


# -----------------------------
# Enums
# -----------------------------


class SegmentType(str, Enum):
    """Origin of a segment definition."""

    SYSTEM = "system"
    CUSTOM = "custom"


class CriteriaMatch(str, Enum):
    """How the top-level rule results are combined."""

    ALL = "all"
    ANY = "any"


class RuleOperator(str, Enum):
    """Comparison operators for field rules."""

    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    BETWEEN = "between"
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"


class ConditionName(str, Enum):
    """Named conditions with fixed, tenant-independent semantics."""

    LAST_SEEN_WITHIN_DAYS = "last_seen_within_days"
    FIRST_SEEN_WITHIN_DAYS = "first_seen_within_days"
    NOT_SEEN_FOR_DAYS = "not_seen_for_days"
    MIN_BOOKINGS = "min_bookings"
    MAX_BOOKINGS = "max_bookings"
    MIN_MESSAGES = "min_messages"
    MIN_ENGAGEMENT = "min_engagement"
    HAS_REFERRALS = "has_referrals"
    HAS_STAMPS = "has_stamps"
    IS_REPEAT = "is_repeat"
    TAG_INCLUDES = "tag_includes"
    SOURCE_INCLUDES = "source_includes"


# -----------------------------
# Customer inputs
# -----------------------------


class CustomerRecord(BaseModel):
    """
    Read-only view of a tenant's customer.

    Built from ORM rows (``from_attributes``) or plain dicts. Null counters,
    tags and source are normalized so evaluation never has to care.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID | None = None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    line_user_id: str | None = None
    total_bookings: int = 0
    total_messages: int = 0
    first_seen_at: datetime | None = None
    last_seen_at: datetime | None = None
    created_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    source: str = ""

    @field_validator("total_bookings", "total_messages", mode="before")
    @classmethod
    def _null_counter(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("tags", mode="before")
    @classmethod
    def _null_tags(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return v

    @field_validator("source", mode="before")
    @classmethod
    def _null_source(cls, v: Any) -> Any:
        return "" if v is None else v

    @property
    def sources(self) -> list[str]:
        """Source provenance as a list (booking, contact, subscriber...)."""
        return [s.strip() for s in self.source.split(",") if s.strip()]


@dataclass(frozen=True)
class CustomerExtras:
    """Auxiliary signals sourced from related tables, not the customer row."""

    has_referrals: bool = False
    has_stamps: bool = False


# -----------------------------
# Criteria rules
# -----------------------------


class FieldRule(BaseModel):
    """
    Compare one raw or computed customer field against a value.

    Examples:
        {"field": "total_bookings", "operator": "gte", "value": 3}
        {"field": "tags", "operator": "contains", "value": "vip"}

    The operator is kept as a plain string so that an operator removed in a
    later release still parses and simply never matches.
    """

    kind: Literal["field"] = "field"
    field: str
    operator: str
    value: Any = None


class NamedCondition(BaseModel):
    """
    A named condition with a single parameter.

    Examples:
        {"condition": "min_bookings", "value": 3}
        {"condition": "has_referrals"}
    """

    kind: Literal["condition"] = "condition"
    condition: str
    value: Any = None


class MalformedRule(BaseModel):
    """A persisted rule that could not be parsed. Never matches."""

    kind: Literal["malformed"] = "malformed"
    raw: Any = None


SegmentRule = FieldRule | NamedCondition | MalformedRule


def parse_rule(raw: Any) -> SegmentRule:
    """
    Parse a single persisted rule, never raising.

    Args:
        raw: A rule dict (or an already-parsed rule model).

    Returns:
        FieldRule, NamedCondition, or MalformedRule.
    """
    if isinstance(raw, (FieldRule, NamedCondition, MalformedRule)):
        return raw

    if not isinstance(raw, dict):
        return MalformedRule(raw=raw)

    try:
        if "field" in raw:
            return FieldRule.model_validate(raw)
        if "condition" in raw:
            return NamedCondition.model_validate(raw)
    except ValidationError:
        return MalformedRule(raw=raw)

    if raw.get("kind") == "malformed":
        return MalformedRule(raw=raw.get("raw"))

    return MalformedRule(raw=raw)


class SegmentCriteria(BaseModel):
    """
    Root of a segment's rule tree.

    Accepted input shapes:
        {"match": "all", "rules": [...]}
        {"min_bookings": 3}                  (compact named conditions)
        {"match": "any", "has_stamps": true, "has_referrals": true}
    """

    match: CriteriaMatch = CriteriaMatch.ALL
    rules: list[FieldRule | NamedCondition | MalformedRule] = Field(
        default_factory=list
    )

    @model_validator(mode="before")
    @classmethod
    def _expand_compact_form(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "rules" in data:
            return data

        rules = [
            {"condition": key, "value": value}
            for key, value in data.items()
            if key != "match"
        ]
        return {"match": data.get("match", CriteriaMatch.ALL), "rules": rules}

    @field_validator("match", mode="before")
    @classmethod
    def _default_match(cls, v: Any) -> Any:
        # Only an explicit "any" switches to OR semantics.
        if isinstance(v, CriteriaMatch):
            return v
        if isinstance(v, str) and v.strip().lower() == CriteriaMatch.ANY.value:
            return CriteriaMatch.ANY
        return CriteriaMatch.ALL

    @field_validator("rules", mode="before")
    @classmethod
    def _parse_rules(cls, v: Any) -> Any:
        if v is None:
            return []
        if not isinstance(v, (list, tuple)):
            return [MalformedRule(raw=v)]
        return [parse_rule(item) for item in v]

    def to_dict(self) -> dict:
        """Serialize for persistence (JSONB) and API responses."""
        rules: list[dict] = []
        for rule in self.rules:
            if isinstance(rule, FieldRule):
                rules.append(
                    {"field": rule.field, "operator": rule.operator, "value": rule.value}
                )
            elif isinstance(rule, NamedCondition):
                rules.append({"condition": rule.condition, "value": rule.value})
            else:
                rules.append({"kind": "malformed", "raw": rule.raw})
        return {"match": self.match.value, "rules": rules}


def parse_criteria(raw: Any) -> SegmentCriteria:
    """
    Parse persisted criteria without ever raising.

    Anything unusable at the top level yields criteria holding a single
    MalformedRule, which evaluates to no match.
    """
    if isinstance(raw, SegmentCriteria):
        return raw

    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return SegmentCriteria(rules=[MalformedRule(raw=raw)])

    if not isinstance(raw, dict):
        return SegmentCriteria(rules=[MalformedRule(raw=raw)])

    try:
        return SegmentCriteria.model_validate(raw)
    except ValidationError:
        return SegmentCriteria(rules=[MalformedRule(raw=raw)])


# -----------------------------
# Segment definitions
# -----------------------------


class SegmentDefinition(BaseModel):
    """
    A tenant-scoped named segment.

    ``id`` is None for definitions that have not been persisted yet (the
    system catalog before initialization, or a client-side preview).
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID | None = None
    tenant_id: UUID
    name: str
    description: str = ""
    type: SegmentType = SegmentType.CUSTOM
    criteria: SegmentCriteria = Field(default_factory=SegmentCriteria)
    color: str = "#6B7280"
    icon: str = "users"
    auto_actions: list[dict[str, Any]] = Field(default_factory=list)
    customer_count: int = 0
    is_active: bool = True

    @field_validator("criteria", mode="before")
    @classmethod
    def _lenient_criteria(cls, v: Any) -> SegmentCriteria:
        return parse_criteria(v)

    @field_validator("description", mode="before")
    @classmethod
    def _null_description(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("auto_actions", mode="before")
    @classmethod
    def _null_actions(cls, v: Any) -> Any:
        return [] if v is None else v
