"""Record, rule, quality and schema models for the data pipeline."""
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List
import uuid

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    return str(uuid.uuid4())


class ExtractionMetadata(BaseModel):
    """What the page driver reported while capturing a page."""

    page_title: Optional[str] = None
    page_size: int = 0
    load_time_ms: float = 0.0
    status_code: int = 200
    redirect_chain: List[str] = Field(default_factory=list)
    response_headers: Dict[str, str] = Field(default_factory=dict)


class RawRecord(BaseModel):
    """A record captured from one page. Immutable once captured."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    url: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)
    raw: Dict[str, Any] = Field(default_factory=dict)
    metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata)


class DataTransformation(BaseModel):
    """Audit entry for one cleaning rule applied to one field."""

    field: str
    operation: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    before: Any = None
    after: Any = None
    success: bool = True
    error: Optional[str] = None


class QualityIssueType(str, Enum):
    MISSING = "missing"
    INVALID = "invalid"
    INCONSISTENT = "inconsistent"
    DUPLICATE = "duplicate"
    OUTDATED = "outdated"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class QualityIssue(BaseModel):
    type: QualityIssueType
    field: str
    description: str
    severity: Severity
    suggestion: Optional[str] = None


class DataQuality(BaseModel):
    """Four-dimensional quality score of one record, each ratio in [0, 1]."""

    completeness: float = 0.0
    accuracy: float = 0.0
    consistency: float = 0.0
    timeliness: float = 1.0
    issues: List[QualityIssue] = Field(default_factory=list)

    @property
    def overall_score(self) -> float:
        return (self.completeness + self.accuracy + self.consistency + self.timeliness) / 4


class ProcessedRecord(BaseModel):
    """A cleaned record. A re-run produces a new record, never an update."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    original_id: str
    processed: Dict[str, Any]
    transformations: List[DataTransformation] = Field(default_factory=list)
    quality: DataQuality = Field(default_factory=DataQuality)
    flagged_for_exclusion: bool = False
    timestamp: datetime = Field(default_factory=datetime.now)


class CleaningOperation(str, Enum):
    TRIM = "trim"
    NORMALIZE = "normalize"
    FORMAT = "format"
    VALIDATE = "validate"
    TRANSFORM = "transform"
    FILTER = "filter"
    REPLACE = "replace"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    MATCHES = "matches"
    GT = "gt"
    LT = "lt"
    BETWEEN = "between"


class CleaningCondition(BaseModel):
    field: str
    operator: ConditionOperator
    value: Any = None
    negate: bool = False


class CleaningRule(BaseModel):
    """A conditional field-level transformation.

    ``operation`` is kept as free text so that rules authored outside the
    engine with an unknown operation still load and fail softly when applied.

    ``replace`` takes a Python ``re`` pattern and replacement string, so
    backreferences are written ``\\1`` or ``\\g<name>``, not ``$1``.
    """

    field: str
    operation: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    conditions: List[CleaningCondition] = Field(default_factory=list)


class ValidationRuleType(str, Enum):
    REQUIRED = "required"
    FORMAT = "format"
    RANGE = "range"
    LENGTH = "length"
    PATTERN = "pattern"
    CUSTOM = "custom"


class ValidationRule(BaseModel):
    """A rule scored by the quality assessor.

    ``field`` (wire name ``validator``) targets one field; unset means the
    rule applies to every field. ``value`` holds the regex for format and
    pattern rules, ``[min, max]`` for range, the maximum length for length
    and the registry validator name for custom rules.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: ValidationRuleType
    field: Optional[str] = Field(default=None, alias="validator")
    value: Any = None
    message: Optional[str] = None


class AggregationOperation(str, Enum):
    MERGE = "merge"
    SUM = "sum"
    AVERAGE = "average"
    MIN = "min"
    MAX = "max"
    COUNT = "count"
    CONCAT = "concat"
    FIRST = "first"
    LAST = "last"


class AggregationRule(BaseModel):
    fields: List[str] = Field(..., min_length=1)
    operation: AggregationOperation
    parameters: Dict[str, Any] = Field(default_factory=dict)


class AggregatedData(BaseModel):
    id: str = Field(default_factory=new_id)
    # None when records were grouped by a field they do not have
    group_key: Optional[str] = "default"
    source_ids: List[str] = Field(default_factory=list)
    aggregated: Dict[str, Any] = Field(default_factory=dict)
    aggregation_rules: List[AggregationRule] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)


class FieldType(str, Enum):
    """Inferred field types, declared from least to most specific."""

    STRING = "string"
    DATE = "date"
    PHONE = "phone"
    EMAIL = "email"
    URL = "url"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"

    @property
    def specificity(self) -> int:
        return list(FieldType).index(self)


class SchemaField(BaseModel):
    name: str
    type: FieldType
    required: bool = False
    description: Optional[str] = None
    format: Optional[str] = None
    example: Any = None
    validation: List[ValidationRule] = Field(default_factory=list)


class DataSchema(BaseModel):
    version: str = "1.0.0"
    fields: List[SchemaField] = Field(default_factory=list)

    def get_field(self, name: str) -> Optional[SchemaField]:
        return next((f for f in self.fields if f.name == name), None)


class FieldStatistics(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None
    avg: Optional[float] = None
    median: Optional[float] = None
    mode: Any = None
    standard_deviation: Optional[float] = None


class FieldInfo(BaseModel):
    name: str
    type: FieldType
    count: int = 0
    unique_values: int = 0
    null_count: int = 0
    sample_values: List[Any] = Field(default_factory=list)
    statistics: Optional[FieldStatistics] = None


class DataStatistics(BaseModel):
    record_count: int = 0
    field_count: int = 0
    duplicate_records: int = 0
    completeness_ratio: float = 0.0
    quality_score: float = 0.0
    processing_time: float = 0.0  # milliseconds
    data_size: int = 0
    distribution: Dict[str, int] = Field(default_factory=dict)
    fields: List[FieldInfo] = Field(default_factory=list)
