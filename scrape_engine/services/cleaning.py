"""Cleaning engine: applies conditional field rules to a raw record."""
import inspect
import re
from numbers import Number
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ..exceptions import RuleError
from ..models import (
    CleaningCondition,
    CleaningOperation,
    CleaningRule,
    ConditionOperator,
    DataTransformation,
)
from ..utils.dates import parse_date
from .registry import FunctionRegistry

Handler = Callable[[Any, CleaningRule], Awaitable[Any]]


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def matches_condition(data: Dict[str, Any], condition: CleaningCondition) -> bool:
    """Evaluate one condition against a record.

    Raises whatever the comparison raises (bad regex, uncomparable bounds);
    the pipeline treats that as a failure of the whole record.
    """
    field_value = data.get(condition.field)
    expected = condition.value
    operator = condition.operator

    if operator == ConditionOperator.EQUALS:
        matched = field_value == expected
    elif operator == ConditionOperator.CONTAINS:
        matched = isinstance(field_value, str) and str(expected) in field_value
    elif operator == ConditionOperator.STARTS_WITH:
        matched = isinstance(field_value, str) and field_value.startswith(str(expected))
    elif operator == ConditionOperator.ENDS_WITH:
        matched = isinstance(field_value, str) and field_value.endswith(str(expected))
    elif operator == ConditionOperator.MATCHES:
        matched = isinstance(field_value, str) and re.search(expected, field_value) is not None
    elif operator == ConditionOperator.GT:
        matched = _is_number(field_value) and field_value > expected
    elif operator == ConditionOperator.LT:
        matched = _is_number(field_value) and field_value < expected
    elif operator == ConditionOperator.BETWEEN:
        low, high = expected
        matched = _is_number(field_value) and low <= field_value <= high
    else:
        matched = False

    return not matched if condition.negate else matched


def matches_conditions(data: Dict[str, Any], conditions: List[CleaningCondition]) -> bool:
    """All conditions must match (AND). An empty list always matches."""
    return all(matches_condition(data, condition) for condition in conditions)


async def _resolve(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class CleaningEngine:
    """Applies cleaning rules to a field map and records an audit trail.

    Rule content problems (unknown operation, unknown transformer or
    validator, invalid pattern) and failed validations produce an
    unsuccessful transformation and leave the value untouched. Exceptions
    raised by registered functions or by condition evaluation propagate to
    the caller.
    """

    def __init__(self, registry: Optional[FunctionRegistry] = None):
        self.registry = registry if registry is not None else FunctionRegistry()
        self._handlers: Dict[CleaningOperation, Handler] = {
            CleaningOperation.TRIM: self._trim,
            CleaningOperation.NORMALIZE: self._normalize,
            CleaningOperation.FORMAT: self._format,
            CleaningOperation.VALIDATE: self._validate,
            CleaningOperation.TRANSFORM: self._transform,
            CleaningOperation.FILTER: self._filter,
            CleaningOperation.REPLACE: self._replace,
        }

    async def apply(
        self, record: Dict[str, Any], rules: List[CleaningRule]
    ) -> Tuple[Dict[str, Any], List[DataTransformation]]:
        """Apply rules in order and return the cleaned copy plus the audit trail.

        Rules whose conditions do not match are skipped without leaving a
        transformation entry.
        """
        cleaned = dict(record)
        transformations: List[DataTransformation] = []

        for rule in rules:
            if not matches_conditions(cleaned, rule.conditions):
                continue

            transformation = await self.apply_rule(cleaned, rule)
            transformations.append(transformation)
            if rule.field in cleaned or transformation.after is not None:
                cleaned[rule.field] = transformation.after

        return cleaned, transformations

    async def apply_rule(self, data: Dict[str, Any], rule: CleaningRule) -> DataTransformation:
        before = data.get(rule.field)
        after = before
        success = True
        error = None

        try:
            handler = self._handler_for(rule.operation)
            after = await handler(before, rule)
        except RuleError as e:
            after = before
            success = False
            error = str(e)

        return DataTransformation(
            field=rule.field,
            operation=rule.operation,
            parameters=rule.parameters,
            before=before,
            after=after,
            success=success,
            error=error,
        )

    def _handler_for(self, operation: str) -> Handler:
        try:
            return self._handlers[CleaningOperation(operation)]
        except ValueError:
            raise RuleError(f"Unknown operation: {operation}")

    async def _trim(self, value: Any, rule: CleaningRule) -> Any:
        return value.strip() if isinstance(value, str) else value

    async def _normalize(self, value: Any, rule: CleaningRule) -> Any:
        if not isinstance(value, str):
            return value
        if rule.parameters.get("trim"):
            value = value.strip()
        case = rule.parameters.get("case")
        if case == "upper":
            return value.upper()
        if case == "lower":
            return value.lower()
        if case == "title":
            return value.title()
        return value

    async def _format(self, value: Any, rule: CleaningRule) -> Any:
        kind = rule.parameters.get("type")
        if kind == "date" and value:
            parsed = parse_date(value)
            if parsed is None:
                return value
            fmt = rule.parameters.get("format")
            return parsed.strftime(fmt) if fmt else parsed.isoformat()
        if kind == "number" and _is_number(value):
            return round(value, int(rule.parameters.get("decimals", 2)))
        return value

    async def _validate(self, value: Any, rule: CleaningRule) -> Any:
        name = rule.parameters.get("validator")
        validator = self.registry.get_validator(name) if name else None
        if validator is None:
            raise RuleError(f"Unknown validator: {name}")
        if not await _resolve(validator(value)):
            raise RuleError(f"Validation failed for field {rule.field}")
        return value

    async def _transform(self, value: Any, rule: CleaningRule) -> Any:
        name = rule.parameters.get("transformer")
        transformer = self.registry.get_transformer(name) if name else None
        if transformer is None:
            raise RuleError(f"Unknown transformer: {name}")
        return await _resolve(transformer(value, rule.parameters))

    async def _filter(self, value: Any, rule: CleaningRule) -> Any:
        # Marks the record; the caller decides whether to drop it
        return value

    async def _replace(self, value: Any, rule: CleaningRule) -> Any:
        pattern = rule.parameters.get("pattern")
        if not isinstance(value, str) or not pattern:
            return value
        try:
            return re.sub(pattern, rule.parameters.get("replacement", ""), value)
        except re.error as e:
            raise RuleError(f"Invalid pattern {pattern!r}: {e}")
