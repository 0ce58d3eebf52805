"""Customer segmentation: computed fields, criteria evaluation and refresh."""

from .catalog import SYSTEM_SEGMENT_COUNT, get_system_segments
from .evaluator import (
    build_field_map,
    evaluate_rule,
    evaluate_segment_criteria,
    matching_segments,
)
from .fields import ComputedFields, EngagementLevel, compute_customer_fields
from .models import (
    ConditionName,
    CriteriaMatch,
    CustomerExtras,
    CustomerRecord,
    FieldRule,
    MalformedRule,
    NamedCondition,
    RuleOperator,
    SegmentCriteria,
    SegmentDefinition,
    SegmentType,
    parse_criteria,
)
from .refresh import (
    MEMBERSHIP_BATCH_SIZE,
    RefreshSummary,
    SegmentCount,
    SegmentRefreshError,
    SegmentRefresher,
    SegmentStore,
    chunked,
)
from .registry import SEGMENT_FIELDS, builder_fields, format_rule_display
from .validator import CriteriaValidationError, CriteriaValidator

__all__ = [
    "ComputedFields",
    "ConditionName",
    "CriteriaMatch",
    "CriteriaValidationError",
    "CriteriaValidator",
    "CustomerExtras",
    "CustomerRecord",
    "EngagementLevel",
    "FieldRule",
    "MEMBERSHIP_BATCH_SIZE",
    "MalformedRule",
    "NamedCondition",
    "RefreshSummary",
    "RuleOperator",
    "SEGMENT_FIELDS",
    "SYSTEM_SEGMENT_COUNT",
    "SegmentCount",
    "SegmentCriteria",
    "SegmentDefinition",
    "SegmentRefreshError",
    "SegmentRefresher",
    "SegmentStore",
    "SegmentType",
    "build_field_map",
    "builder_fields",
    "chunked",
    "compute_customer_fields",
    "evaluate_rule",
    "evaluate_segment_criteria",
    "format_rule_display",
    "get_system_segments",
    "matching_segments",
    "parse_criteria",
]
