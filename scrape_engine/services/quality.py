"""Quality assessment of cleaned records."""
import inspect
import re
from numbers import Number
from typing import Any, Dict, List, Optional

from ..models import (
    DataQuality,
    QualityIssue,
    QualityIssueType,
    Severity,
    ValidationRule,
    ValidationRuleType,
)
from .registry import FunctionRegistry


def has_value(value: Any) -> bool:
    """True unless the value is None or an empty string."""
    return value is not None and value != ""


def is_consistent(value: Any) -> bool:
    """Basic type-stability check.

    Any non-null value counts as consistent.
    """
    return value is not None


class QualityAssessor:
    """Scores a cleaned record on completeness, accuracy, consistency and
    timeliness.

    All ratios share the record's field count as denominator. Accuracy
    counts passing rule evaluations, so several rules on one field can each
    contribute; the ratio is capped at 1.0.
    """

    def __init__(self, registry: Optional[FunctionRegistry] = None):
        self.registry = registry if registry is not None else FunctionRegistry()

    def assess(
        self,
        data: Dict[str, Any],
        rules: Optional[List[ValidationRule]] = None,
        timeliness: float = 1.0,
    ) -> DataQuality:
        rules = rules or []
        issues: List[QualityIssue] = []
        field_count = len(data)
        completed_fields = 0
        accurate_checks = 0
        consistent_fields = 0

        for field, value in data.items():
            # Completeness
            if has_value(value):
                completed_fields += 1
            else:
                issues.append(
                    QualityIssue(
                        type=QualityIssueType.MISSING,
                        field=field,
                        description=f"Field {field} is missing or empty",
                        severity=Severity.MEDIUM,
                    )
                )

            # Accuracy
            for rule in rules:
                if rule.field is not None and rule.field != field:
                    continue
                if self.check_rule(value, rule):
                    accurate_checks += 1
                else:
                    issues.append(
                        QualityIssue(
                            type=QualityIssueType.INVALID,
                            field=field,
                            description=rule.message or f"Field {field} failed {rule.type.value} validation",
                            severity=Severity.HIGH,
                        )
                    )

            # Consistency
            if is_consistent(value):
                consistent_fields += 1
            else:
                issues.append(
                    QualityIssue(
                        type=QualityIssueType.INCONSISTENT,
                        field=field,
                        description=f"Field {field} has inconsistent format",
                        severity=Severity.LOW,
                    )
                )

        if field_count == 0:
            return DataQuality(timeliness=timeliness, issues=issues)

        return DataQuality(
            completeness=completed_fields / field_count,
            accuracy=min(accurate_checks / field_count, 1.0),
            consistency=consistent_fields / field_count,
            timeliness=timeliness,
            issues=issues,
        )

    def check_rule(self, value: Any, rule: ValidationRule) -> bool:
        """Evaluate one validation rule. An invalid regex raises re.error."""
        if rule.type == ValidationRuleType.REQUIRED:
            return has_value(value)

        if rule.type == ValidationRuleType.FORMAT:
            if not rule.value:
                return True
            return re.search(rule.value, "" if value is None else str(value)) is not None

        if rule.type == ValidationRuleType.PATTERN:
            return isinstance(value, str) and re.search(rule.value or "", value) is not None

        if rule.type == ValidationRuleType.RANGE:
            low, high = rule.value
            return (
                isinstance(value, Number)
                and not isinstance(value, bool)
                and low <= value <= high
            )

        if rule.type == ValidationRuleType.LENGTH:
            return isinstance(value, str) and len(value) <= int(rule.value)

        if rule.type == ValidationRuleType.CUSTOM:
            validator = self.registry.get_validator(rule.value) if rule.value else None
            if validator is None:
                return False
            result = validator(value)
            if inspect.iscoroutine(result):
                result.close()
                raise TypeError(f"Validator {rule.value} is a coroutine; custom rules need a plain function")
            return bool(result)

        return True
