"""
Criteria Validator.

Strict counterpart to the lenient evaluator: used when a tenant submits
new criteria, so mistakes are reported instead of silently never matching.
"""

from typing import Any

from packages.core.segmentation.models import (
    ConditionName,
    FieldRule,
    MalformedRule,
    NamedCondition,
    RuleOperator,
    SegmentCriteria,
)
from packages.core.segmentation.registry import (
    ALLOWED_OPERATORS,
    CONDITION_PARAMS,
    FieldType,
    get_field,
)

MAX_RULES = 20


class CriteriaValidationError(Exception):
    """Raised when submitted criteria are semantically invalid."""

    pass


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class CriteriaValidator:
    """Validates SegmentCriteria against the segment field registry."""

    def validate(self, criteria: SegmentCriteria) -> None:
        """
        Validate the given criteria.

        Raises:
            CriteriaValidationError: If any rule is unknown or mistyped.
        """
        if not criteria.rules:
            raise CriteriaValidationError("At least one rule is required")

        if len(criteria.rules) > MAX_RULES:
            raise CriteriaValidationError(
                f"At most {MAX_RULES} rules are allowed per segment"
            )

        for index, rule in enumerate(criteria.rules, start=1):
            if isinstance(rule, MalformedRule):
                raise CriteriaValidationError(f"Rule {index} is malformed")
            if isinstance(rule, FieldRule):
                self._validate_field_rule(index, rule)
            elif isinstance(rule, NamedCondition):
                self._validate_condition(index, rule)

    def _validate_field_rule(self, index: int, rule: FieldRule) -> None:
        field_meta = get_field(rule.field)
        if field_meta is None:
            raise CriteriaValidationError(
                f"Rule {index}: unknown field '{rule.field}'"
            )

        try:
            operator = RuleOperator(rule.operator)
        except ValueError:
            raise CriteriaValidationError(
                f"Rule {index}: unknown operator '{rule.operator}'"
            )

        if operator not in ALLOWED_OPERATORS[field_meta.field_type]:
            raise CriteriaValidationError(
                f"Rule {index}: operator '{operator.value}' not allowed for "
                f"{field_meta.field_type.value} field '{rule.field}'"
            )

        self._validate_value(index, rule, operator, field_meta.field_type)

    def _validate_value(
        self,
        index: int,
        rule: FieldRule,
        operator: RuleOperator,
        field_type: FieldType,
    ) -> None:
        value = rule.value

        if operator == RuleOperator.BETWEEN:
            if (
                not isinstance(value, (list, tuple))
                or len(value) != 2
                or not all(_is_number(v) for v in value)
            ):
                raise CriteriaValidationError(
                    f"Rule {index}: 'between' requires exactly 2 numbers"
                )
            return

        if operator in (RuleOperator.IN, RuleOperator.NOT_IN):
            if not isinstance(value, (list, tuple)) or not value:
                raise CriteriaValidationError(
                    f"Rule {index}: '{operator.value}' requires a non-empty list"
                )
            return

        if operator in (RuleOperator.GT, RuleOperator.LT, RuleOperator.GTE, RuleOperator.LTE):
            if not _is_number(value):
                raise CriteriaValidationError(
                    f"Rule {index}: '{operator.value}' requires a number"
                )
            return

        if operator in (RuleOperator.CONTAINS, RuleOperator.NOT_CONTAINS):
            if not isinstance(value, str) or not value:
                raise CriteriaValidationError(
                    f"Rule {index}: '{operator.value}' requires text"
                )
            return

        expected = {
            FieldType.NUMBER: _is_number(value),
            FieldType.BOOLEAN: isinstance(value, bool),
            FieldType.STRING: isinstance(value, str) or value is None,
            FieldType.LIST: False,
        }[field_type]
        if not expected:
            raise CriteriaValidationError(
                f"Rule {index}: value for '{rule.field}' must be "
                f"a {field_type.value}"
            )

    def _validate_condition(self, index: int, rule: NamedCondition) -> None:
        try:
            name = ConditionName(rule.condition)
        except ValueError:
            raise CriteriaValidationError(
                f"Rule {index}: unknown condition '{rule.condition}'"
            )

        param = CONDITION_PARAMS[name]
        value = rule.value

        if param is None:
            if value is not None and not isinstance(value, bool):
                raise CriteriaValidationError(
                    f"Rule {index}: '{name.value}' takes true or false"
                )
        elif param == FieldType.NUMBER:
            if not _is_number(value) or value < 0:
                raise CriteriaValidationError(
                    f"Rule {index}: '{name.value}' requires a non-negative number"
                )
        elif not isinstance(value, str) or not value.strip():
            raise CriteriaValidationError(
                f"Rule {index}: '{name.value}' requires text"
            )
