"""Schema inference and batch statistics over processed records."""
import json
import statistics
import time
from datetime import date
from numbers import Number
from typing import Any, Dict, List, Sequence

from ..models import (
    DataSchema,
    DataStatistics,
    FieldInfo,
    FieldStatistics,
    FieldType,
    ProcessedRecord,
    SchemaField,
)
from .quality import has_value
from .registry import is_date, is_email, is_phone, URL_PREFIX_PATTERN

REQUIRED_PRESENCE_RATIO = 0.9
MAX_SAMPLE_VALUES = 10


def canonical_json(value: Any) -> str:
    """Serialize with sorted keys so equal maps produce equal strings."""
    return json.dumps(value, sort_keys=True, default=str)


def infer_field_type(value: Any) -> FieldType:
    """Classify a single value.

    Strings are tested in order: email, url, phone, date. Note that the phone
    pattern accepts any run of digits, spaces, dashes and parentheses, so
    ISO dates such as "2024-01-15" classify as phone.
    """
    if value is None:
        return FieldType.STRING
    if isinstance(value, bool):
        return FieldType.BOOLEAN
    if isinstance(value, Number):
        return FieldType.NUMBER
    if isinstance(value, (list, tuple)):
        return FieldType.ARRAY
    if isinstance(value, dict):
        return FieldType.OBJECT
    if isinstance(value, date):
        return FieldType.DATE

    if isinstance(value, str):
        if is_email(value):
            return FieldType.EMAIL
        if URL_PREFIX_PATTERN.match(value):
            return FieldType.URL
        if is_phone(value):
            return FieldType.PHONE
        if is_date(value):
            return FieldType.DATE

    return FieldType.STRING


def is_more_specific(new_type: FieldType, current_type: FieldType) -> bool:
    return new_type.specificity > current_type.specificity


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def numeric_statistics(values: Sequence[float]) -> FieldStatistics:
    """min, max, mean, median and population standard deviation.

    The median is the lower-middle element of the sorted values, so for an
    even count it is not the average of the two middle values.
    """
    if not values:
        return FieldStatistics()

    ordered = sorted(values)
    return FieldStatistics(
        min=ordered[0],
        max=ordered[-1],
        avg=statistics.fmean(ordered),
        median=ordered[(len(ordered) - 1) // 2],
        mode=statistics.mode(ordered),
        standard_deviation=statistics.pstdev(ordered),
    )


class SchemaInferrer:
    """Derives field schemas and distribution statistics from a batch."""

    def infer_schema(self, records: List[ProcessedRecord]) -> DataSchema:
        fields: Dict[str, SchemaField] = {}

        for record in records:
            for name, value in record.processed.items():
                current_type = infer_field_type(value)
                field = fields.get(name)
                if field is None:
                    fields[name] = SchemaField(
                        name=name,
                        type=current_type,
                        description=f"Auto-inferred field: {name}",
                        example=value if has_value(value) else None,
                    )
                    continue

                # Types only ever widen towards the more specific one
                if is_more_specific(current_type, field.type):
                    field.type = current_type
                if field.example is None and has_value(value):
                    field.example = value

        for field in fields.values():
            presence = sum(1 for r in records if has_value(r.processed.get(field.name)))
            field.required = (presence / len(records)) > REQUIRED_PRESENCE_RATIO

        return DataSchema(fields=list(fields.values()))

    def generate_statistics(self, records: List[ProcessedRecord]) -> DataStatistics:
        started = time.perf_counter()
        stats = DataStatistics(record_count=len(records))
        if not records:
            return stats

        fields: Dict[str, FieldInfo] = {}
        unique: Dict[str, set] = {}
        total_quality = 0.0
        total_size = 0

        for record in records:
            total_quality += record.quality.overall_score
            total_size += len(canonical_json(record.processed))

            for name, value in record.processed.items():
                info = fields.get(name)
                if info is None:
                    info = fields[name] = FieldInfo(name=name, type=infer_field_type(value))
                    unique[name] = set()

                info.count += 1
                if not has_value(value):
                    info.null_count += 1
                    continue
                unique[name].add(canonical_json(value))
                if len(info.sample_values) < MAX_SAMPLE_VALUES:
                    info.sample_values.append(value)

        for info in fields.values():
            info.unique_values = len(unique[info.name])
            if info.type == FieldType.NUMBER:
                values = [
                    r.processed[info.name]
                    for r in records
                    if _is_number(r.processed.get(info.name))
                ]
                info.statistics = numeric_statistics(values)
            stats.distribution[info.type.value] = stats.distribution.get(info.type.value, 0) + 1

        distinct = {canonical_json(r.processed) for r in records}
        stats.duplicate_records = len(records) - len(distinct)

        # Flattened over the whole field x record matrix
        total_fields = sum(info.count for info in fields.values())
        non_null_fields = sum(info.count - info.null_count for info in fields.values())
        stats.completeness_ratio = non_null_fields / total_fields if total_fields else 0.0

        stats.field_count = len(fields)
        stats.quality_score = total_quality / len(records)
        stats.data_size = total_size
        stats.fields = list(fields.values())
        stats.processing_time = (time.perf_counter() - started) * 1000
        return stats
