"""Data aggregation service for grouping and reducing processed records."""
from typing import Dict, Any, List, Optional

from ..models import (
    AggregatedData,
    AggregationOperation,
    AggregationRule,
    ProcessedRecord,
)
from ..utils.logger import logger

DEFAULT_GROUP = "default"


def extract_field_value(data: Dict[str, Any], field_path: str) -> Any:
    """Look up a dotted path such as ``address.city``.

    Returns None as soon as an intermediate segment is missing or is not a
    mapping.
    """
    value: Any = data
    for key in field_path.split("."):
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return None
    return value


def _to_number(value: Any) -> float:
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


class DataAggregator:
    """Groups processed records and reduces them per aggregation rule."""

    def aggregate(
        self, records: List[ProcessedRecord], rules: List[AggregationRule]
    ) -> List[AggregatedData]:
        """Aggregate records into one row per group.

        Grouping uses a single key: the first rule's ``group_by`` parameter,
        looked up on every record. Without it every record lands in the
        ``default`` group; with it, records lacking the field share a group
        whose key is None, so a literal "default" value stays separate.
        Each rule then reduces its first field across the group.

        Args:
            records: Processed records to aggregate
            rules: Aggregation rules, applied in order

        Returns:
            One AggregatedData per distinct group key
        """
        results: List[AggregatedData] = []

        for group_key, members in self.group_records(records, rules).items():
            aggregated: Dict[str, Any] = {}

            for rule in rules:
                field = rule.fields[0]
                values = [extract_field_value(r.processed, field) for r in members]
                aggregated[field] = self.apply_operation(values, rule.operation, rule.parameters)

            results.append(
                AggregatedData(
                    group_key=group_key,
                    source_ids=[r.id for r in members],
                    aggregated=aggregated,
                    aggregation_rules=rules,
                )
            )

        logger.info(f"Aggregated {len(records)} records into {len(results)} groups")
        return results

    def group_records(
        self, records: List[ProcessedRecord], rules: List[AggregationRule]
    ) -> Dict[Optional[str], List[ProcessedRecord]]:
        group_by: Optional[str] = None
        if rules:
            group_by = rules[0].parameters.get("group_by")
            if isinstance(group_by, list):
                group_by = group_by[0] if group_by else None

        groups: Dict[Optional[str], List[ProcessedRecord]] = {}
        for record in records:
            key: Optional[str] = DEFAULT_GROUP
            if group_by:
                value = extract_field_value(record.processed, group_by)
                key = str(value) if value is not None else None
            groups.setdefault(key, []).append(record)

        return groups

    def apply_operation(
        self,
        values: List[Any],
        operation: AggregationOperation,
        parameters: Optional[Dict[str, Any]] = None,
    ) -> Any:
        parameters = parameters or {}
        present = [v for v in values if v is not None]

        if operation == AggregationOperation.SUM:
            return sum(_to_number(v) for v in present)
        if operation == AggregationOperation.AVERAGE:
            return sum(_to_number(v) for v in present) / len(present) if present else 0
        if operation == AggregationOperation.MIN:
            return min(_to_number(v) for v in present) if present else None
        if operation == AggregationOperation.MAX:
            return max(_to_number(v) for v in present) if present else None
        if operation == AggregationOperation.COUNT:
            return len(present)
        if operation == AggregationOperation.CONCAT:
            separator = parameters.get("separator", ", ")
            return separator.join(str(v) for v in present)
        if operation == AggregationOperation.FIRST:
            return present[0] if present else None
        if operation == AggregationOperation.LAST:
            return present[-1] if present else None
        if operation == AggregationOperation.MERGE:
            merged: Dict[str, Any] = {}
            for value in present:
                if not isinstance(value, dict):
                    continue
                if parameters.get("deep"):
                    merged = self.merge_nested(merged, value)
                else:
                    merged.update(value)
            return merged

        return present

    def merge_nested(self, obj1: Any, obj2: Any) -> Any:
        """Recursively merge two objects; later scalar values win.

        Args:
            obj1: First object
            obj2: Second object

        Returns:
            Merged object
        """
        # If both are dicts, merge recursively
        if isinstance(obj1, dict) and isinstance(obj2, dict):
            result = obj1.copy()
            for key, value in obj2.items():
                if key in result:
                    result[key] = self.merge_nested(result[key], value)
                else:
                    result[key] = value
            return result

        # If both are lists, combine them
        if isinstance(obj1, list) and isinstance(obj2, list):
            result = []
            for item in obj1 + obj2:
                if item not in result:
                    result.append(item)
            return result

        return obj2
