"""
Segment field registry.

Declares which fields a segment rule may reference, their types, the
operators allowed per type, and the labels used by the custom segment
builder and rule summaries.
"""

from dataclasses import dataclass
from enum import Enum

from packages.core.segmentation.models import (
    ConditionName,
    MalformedRule,
    NamedCondition,
    RuleOperator,
    SegmentRule,
)


class FieldType(str, Enum):
    """Value type of a segment field."""

    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    LIST = "list"


@dataclass(frozen=True)
class SegmentField:
    """Metadata for one rule-addressable field."""

    name: str
    label: str
    field_type: FieldType
    builder: bool = True  # offered in the custom segment builder

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {"value": self.name, "label": self.label, "type": self.field_type.value}


SEGMENT_FIELDS: tuple[SegmentField, ...] = (
    SegmentField("total_bookings", "Bookings", FieldType.NUMBER),
    SegmentField("total_messages", "Messages", FieldType.NUMBER),
    SegmentField("days_since_first_seen", "Days since first visit", FieldType.NUMBER),
    SegmentField("days_since_last_seen", "Days since last visit", FieldType.NUMBER),
    SegmentField("engagement_score", "Engagement score", FieldType.NUMBER),
    SegmentField("contact_richness", "Contact richness (0-3)", FieldType.NUMBER),
    SegmentField("source", "Source", FieldType.STRING),
    SegmentField("tags", "Tags", FieldType.LIST),
    SegmentField("engagement_level", "Engagement level", FieldType.STRING),
    SegmentField("is_new", "New customer", FieldType.BOOLEAN),
    SegmentField("is_active", "Active", FieldType.BOOLEAN),
    SegmentField("is_at_risk", "At risk", FieldType.BOOLEAN),
    SegmentField("is_churned", "Churned", FieldType.BOOLEAN),
    SegmentField("is_vip", "VIP", FieldType.BOOLEAN),
    SegmentField("is_subscriber", "Email subscriber", FieldType.BOOLEAN),
    SegmentField("is_repeat", "Repeat customer", FieldType.BOOLEAN),
    SegmentField("has_email", "Has email", FieldType.BOOLEAN),
    SegmentField("has_phone", "Has phone", FieldType.BOOLEAN),
    SegmentField("has_line", "LINE connected", FieldType.BOOLEAN),
    SegmentField("has_referrals", "Has referrals", FieldType.BOOLEAN),
    SegmentField("has_stamps", "Has stamps", FieldType.BOOLEAN),
    SegmentField("email", "Email", FieldType.STRING, builder=False),
    SegmentField("phone", "Phone", FieldType.STRING, builder=False),
    SegmentField("name", "Name", FieldType.STRING, builder=False),
    SegmentField("line_user_id", "LINE user", FieldType.STRING, builder=False),
)

_FIELDS_BY_NAME = {f.name: f for f in SEGMENT_FIELDS}

ALLOWED_OPERATORS: dict[FieldType, set[RuleOperator]] = {
    FieldType.NUMBER: {
        RuleOperator.EQ,
        RuleOperator.NEQ,
        RuleOperator.GT,
        RuleOperator.LT,
        RuleOperator.GTE,
        RuleOperator.LTE,
        RuleOperator.BETWEEN,
        RuleOperator.IN,
        RuleOperator.NOT_IN,
    },
    FieldType.STRING: {
        RuleOperator.EQ,
        RuleOperator.NEQ,
        RuleOperator.IN,
        RuleOperator.NOT_IN,
        RuleOperator.CONTAINS,
        RuleOperator.NOT_CONTAINS,
    },
    FieldType.LIST: {
        RuleOperator.IN,
        RuleOperator.NOT_IN,
        RuleOperator.CONTAINS,
        RuleOperator.NOT_CONTAINS,
    },
    FieldType.BOOLEAN: {
        RuleOperator.EQ,
        RuleOperator.NEQ,
    },
}

# Parameter type expected by each named condition (None = optional boolean).
CONDITION_PARAMS: dict[ConditionName, FieldType | None] = {
    ConditionName.LAST_SEEN_WITHIN_DAYS: FieldType.NUMBER,
    ConditionName.FIRST_SEEN_WITHIN_DAYS: FieldType.NUMBER,
    ConditionName.NOT_SEEN_FOR_DAYS: FieldType.NUMBER,
    ConditionName.MIN_BOOKINGS: FieldType.NUMBER,
    ConditionName.MAX_BOOKINGS: FieldType.NUMBER,
    ConditionName.MIN_MESSAGES: FieldType.NUMBER,
    ConditionName.MIN_ENGAGEMENT: FieldType.NUMBER,
    ConditionName.HAS_REFERRALS: None,
    ConditionName.HAS_STAMPS: None,
    ConditionName.IS_REPEAT: None,
    ConditionName.TAG_INCLUDES: FieldType.STRING,
    ConditionName.SOURCE_INCLUDES: FieldType.STRING,
}

OPERATOR_LABELS: dict[str, str] = {
    RuleOperator.EQ.value: "=",
    RuleOperator.NEQ.value: "≠",
    RuleOperator.GT.value: ">",
    RuleOperator.LT.value: "<",
    RuleOperator.GTE.value: "≥",
    RuleOperator.LTE.value: "≤",
    RuleOperator.BETWEEN.value: "between",
    RuleOperator.IN.value: "in",
    RuleOperator.NOT_IN.value: "not in",
    RuleOperator.CONTAINS.value: "contains",
    RuleOperator.NOT_CONTAINS.value: "does not contain",
}

CONDITION_LABELS: dict[str, str] = {
    ConditionName.LAST_SEEN_WITHIN_DAYS.value: "Visited within {value} days",
    ConditionName.FIRST_SEEN_WITHIN_DAYS.value: "First visit within {value} days",
    ConditionName.NOT_SEEN_FOR_DAYS.value: "No visit for {value}+ days",
    ConditionName.MIN_BOOKINGS.value: "At least {value} bookings",
    ConditionName.MAX_BOOKINGS.value: "At most {value} bookings",
    ConditionName.MIN_MESSAGES.value: "At least {value} messages",
    ConditionName.MIN_ENGAGEMENT.value: "Engagement score ≥ {value}",
    ConditionName.HAS_REFERRALS.value: "Has referrals",
    ConditionName.HAS_STAMPS.value: "Has stamps",
    ConditionName.IS_REPEAT.value: "Repeat customer",
    ConditionName.TAG_INCLUDES.value: "Tagged {value}",
    ConditionName.SOURCE_INCLUDES.value: "Came from {value}",
}

SEGMENT_COLORS: tuple[str, ...] = (
    "#3B82F6",  # blue
    "#22C55E",  # green
    "#F59E0B",  # amber
    "#F97316",  # orange
    "#EF4444",  # red
    "#8B5CF6",  # purple
    "#EC4899",  # pink
    "#06B6D4",  # cyan
    "#6B7280",  # gray
    "#06C755",  # LINE green
)


def get_field(name: str) -> SegmentField | None:
    """Look up field metadata by name."""
    return _FIELDS_BY_NAME.get(name)


def builder_fields() -> list[SegmentField]:
    """Fields offered in the custom segment builder."""
    return [f for f in SEGMENT_FIELDS if f.builder]


def get_field_label(name: str) -> str:
    field = get_field(name)
    return field.label if field else name


def get_operator_label(operator: str) -> str:
    return OPERATOR_LABELS.get(operator, operator)


def format_rule_display(rule: SegmentRule) -> str:
    """
    Render a rule as a short human-readable summary.

    Examples:
        "Bookings ≥ 3", "VIP: yes", "Days since last visit 45–90",
        "At least 3 bookings", "Unrecognized rule"
    """
    if isinstance(rule, MalformedRule):
        return "Unrecognized rule"

    if isinstance(rule, NamedCondition):
        template = CONDITION_LABELS.get(rule.condition)
        if template is None:
            return rule.condition
        if rule.value is False:
            return f"Not: {template.format(value='')}".strip()
        return template.format(value=rule.value)

    field_label = get_field_label(rule.field)

    if isinstance(rule.value, bool):
        return f"{field_label}: {'yes' if rule.value else 'no'}"

    if rule.operator == RuleOperator.BETWEEN.value and isinstance(rule.value, (list, tuple)):
        if len(rule.value) == 2:
            return f"{field_label} {rule.value[0]}–{rule.value[1]}"

    if isinstance(rule.value, (list, tuple)):
        value = ", ".join(str(v) for v in rule.value)
    else:
        value = rule.value

    return f"{field_label} {get_operator_label(rule.operator)} {value}"

