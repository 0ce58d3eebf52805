"""
Segment Criteria Evaluator.

A pure interpreter over SegmentCriteria. Every rule resolves to a boolean;
anything the interpreter does not recognize (unknown field, operator or
condition, malformed rule, wrongly typed value) resolves to False. The
evaluator never raises, so the same code serves the bulk refresh and the
single-customer preview.
"""

from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from packages.core.segmentation.fields import ComputedFields, compute_customer_fields
from packages.core.segmentation.models import (
    ConditionName,
    CriteriaMatch,
    CustomerExtras,
    CustomerRecord,
    FieldRule,
    NamedCondition,
    RuleOperator,
    SegmentCriteria,
    SegmentDefinition,
    SegmentRule,
)

_MISSING = object()


# -----------------------------
# Field lookup
# -----------------------------


def build_field_map(
    customer: CustomerRecord,
    computed: ComputedFields,
    extras: CustomerExtras | None = None,
) -> dict[str, Any]:
    """
    Merge raw, computed and extra fields into a single lookup.

    The keys of this map are the field names a FieldRule may reference.
    """
    extras = extras or CustomerExtras()
    return {
        # Raw customer fields
        "total_bookings": customer.total_bookings,
        "total_messages": customer.total_messages,
        "source": customer.source,
        "email": customer.email,
        "phone": customer.phone,
        "name": customer.name,
        "tags": list(customer.tags),
        "line_user_id": customer.line_user_id,
        # Computed fields
        "days_since_first_seen": computed.days_since_first_seen,
        "days_since_last_seen": computed.days_since_last_seen,
        "is_new": computed.is_new,
        "is_active": computed.is_active,
        "is_at_risk": computed.is_at_risk,
        "is_churned": computed.is_churned,
        "is_vip": computed.is_vip,
        "is_subscriber": computed.is_subscriber,
        "is_repeat": computed.is_repeat,
        "has_email": computed.has_email,
        "has_phone": computed.has_phone,
        "has_line": computed.has_line,
        "contact_richness": computed.contact_richness,
        "engagement_score": computed.engagement_score,
        "engagement_level": computed.engagement_level.value,
        # Extras (from related tables)
        "has_referrals": extras.has_referrals,
        "has_stamps": extras.has_stamps,
    }


# -----------------------------
# Value helpers
# -----------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _same(left: Any, right: Any) -> bool:
    """Equality that does not treat True as 1."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    return left == right


def _contains(field_value: Any, needle: Any) -> bool | None:
    """Case-insensitive substring match; None when types are unusable."""
    if not isinstance(needle, str):
        return None
    needle = needle.lower()
    if isinstance(field_value, str):
        return needle in field_value.lower()
    if isinstance(field_value, list):
        return any(isinstance(v, str) and needle in v.lower() for v in field_value)
    return None


def _in(field_value: Any, values: Any) -> bool | None:
    if not isinstance(values, (list, tuple)):
        return None
    if isinstance(field_value, list):
        return any(_same(v, candidate) for v in field_value for candidate in values)
    return any(_same(field_value, candidate) for candidate in values)


# -----------------------------
# Field rules
# -----------------------------


def _compare(field_value: Any, operator: str, value: Any) -> bool:
    match operator:
        case RuleOperator.EQ.value:
            return _same(field_value, value)
        case RuleOperator.NEQ.value:
            return not _same(field_value, value)
        case RuleOperator.GT.value:
            return _is_number(field_value) and _is_number(value) and field_value > value
        case RuleOperator.LT.value:
            return _is_number(field_value) and _is_number(value) and field_value < value
        case RuleOperator.GTE.value:
            return _is_number(field_value) and _is_number(value) and field_value >= value
        case RuleOperator.LTE.value:
            return _is_number(field_value) and _is_number(value) and field_value <= value
        case RuleOperator.BETWEEN.value:
            if not _is_number(field_value) or not isinstance(value, (list, tuple)):
                return False
            if len(value) != 2 or not all(_is_number(v) for v in value):
                return False
            low, high = value
            return low <= field_value <= high
        case RuleOperator.IN.value:
            return _in(field_value, value) is True
        case RuleOperator.NOT_IN.value:
            return _in(field_value, value) is False
        case RuleOperator.CONTAINS.value:
            return _contains(field_value, value) is True
        case RuleOperator.NOT_CONTAINS.value:
            result = _contains(field_value, value)
            # A missing or non-text field contains nothing.
            return True if result is None else not result
        case _:
            return False


def _evaluate_field_rule(rule: FieldRule, fields: dict[str, Any]) -> bool:
    field_value = fields.get(rule.field, _MISSING)
    if field_value is _MISSING:
        return False
    return _compare(field_value, rule.operator.strip().lower(), rule.value)


# -----------------------------
# Named conditions
# -----------------------------


def _threshold(field: str, test: Callable[[Any, Any], bool]):
    def check(fields: dict[str, Any], value: Any) -> bool:
        return _is_number(value) and test(fields[field], value)

    return check


def _flag(field: str):
    def check(fields: dict[str, Any], value: Any) -> bool:
        expected = True if value is None else value
        return isinstance(expected, bool) and fields[field] is expected

    return check


def _tag_includes(fields: dict[str, Any], value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    return value.strip() in {t.strip() for t in fields["tags"] if isinstance(t, str)}


def _source_includes(fields: dict[str, Any], value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    sources = {s.strip().lower() for s in (fields["source"] or "").split(",")}
    return value.strip().lower() in sources


CONDITIONS: dict[str, Callable[[dict[str, Any], Any], bool]] = {
    ConditionName.LAST_SEEN_WITHIN_DAYS.value: _threshold(
        "days_since_last_seen", lambda actual, n: actual <= n
    ),
    ConditionName.FIRST_SEEN_WITHIN_DAYS.value: _threshold(
        "days_since_first_seen", lambda actual, n: actual <= n
    ),
    ConditionName.NOT_SEEN_FOR_DAYS.value: _threshold(
        "days_since_last_seen", lambda actual, n: actual >= n
    ),
    ConditionName.MIN_BOOKINGS.value: _threshold(
        "total_bookings", lambda actual, n: actual >= n
    ),
    ConditionName.MAX_BOOKINGS.value: _threshold(
        "total_bookings", lambda actual, n: actual <= n
    ),
    ConditionName.MIN_MESSAGES.value: _threshold(
        "total_messages", lambda actual, n: actual >= n
    ),
    ConditionName.MIN_ENGAGEMENT.value: _threshold(
        "engagement_score", lambda actual, n: actual >= n
    ),
    ConditionName.HAS_REFERRALS.value: _flag("has_referrals"),
    ConditionName.HAS_STAMPS.value: _flag("has_stamps"),
    ConditionName.IS_REPEAT.value: _flag("is_repeat"),
    ConditionName.TAG_INCLUDES.value: _tag_includes,
    ConditionName.SOURCE_INCLUDES.value: _source_includes,
}


def _evaluate_condition(rule: NamedCondition, fields: dict[str, Any]) -> bool:
    check = CONDITIONS.get(rule.condition.strip().lower())
    if check is None:
        return False
    return check(fields, rule.value)


# -----------------------------
# Entry points
# -----------------------------


def evaluate_rule(rule: SegmentRule, fields: dict[str, Any]) -> bool:
    """
    Evaluate a single rule against a field map.

    Malformed rules and wrongly typed parameters evaluate to False.
    """
    try:
        if isinstance(rule, FieldRule):
            return _evaluate_field_rule(rule, fields)
        if isinstance(rule, NamedCondition):
            return _evaluate_condition(rule, fields)
    except (TypeError, ValueError):
        return False
    return False


def evaluate_segment_criteria(
    customer: CustomerRecord,
    computed: ComputedFields,
    criteria: SegmentCriteria,
    extras: CustomerExtras | None = None,
) -> bool:
    """
    Decide whether a customer belongs to a segment.

    Args:
        customer: The customer record.
        computed: Fields derived from the customer (see compute_customer_fields).
        criteria: The segment's rule tree.
        extras: Auxiliary signals; missing means every flag is False.

    Returns:
        True if the rules match under the criteria's combinator. Criteria
        without rules never match.
    """
    if not criteria.rules:
        return False

    fields = build_field_map(customer, computed, extras)
    results = (evaluate_rule(rule, fields) for rule in criteria.rules)

    if criteria.match == CriteriaMatch.ANY:
        return any(results)
    return all(results)


def matching_segments(
    customer: CustomerRecord,
    segments: Iterable[SegmentDefinition],
    extras: CustomerExtras | None = None,
    now: datetime | None = None,
) -> list[SegmentDefinition]:
    """
    Return the active segments a single customer currently matches.

    Used for the per-customer badge view, against either persisted
    segments or the system catalog preview.
    """
    computed = compute_customer_fields(customer, extras, now=now)
    return [
        segment
        for segment in segments
        if segment.is_active
        and evaluate_segment_criteria(customer, computed, segment.criteria, extras)
    ]
