"""
Rule and evaluation data models for the Screening Service.
"""

from typing import Dict, Any, Optional, List, Union
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class RuleType(str, Enum):
    """Rule types."""
    HARD_DISQUALIFY = "hard_disqualify"
    SOFT_FLAG = "soft_flag"


class Severity(str, Enum):
    """Rule severities."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ComparisonOperator(str, Enum):
    """Comparison operators."""
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EQ = "eq"
    NEQ = "neq"


ORDERING_OPERATORS = frozenset({
    ComparisonOperator.GT,
    ComparisonOperator.GTE,
    ComparisonOperator.LT,
    ComparisonOperator.LTE,
})


class Recommendation(str, Enum):
    """Evaluation outcome."""
    SUITABLE = "suitable"
    UNSUITABLE = "unsuitable"
    REVIEW_REQUIRED = "review_required"


@dataclass(frozen=True)
class NumericComparison:
    """Numeric comparison; supports every operator."""
    operator: ComparisonOperator
    value: Union[int, float]


@dataclass(frozen=True)
class BooleanEquality:
    """Boolean equality (eq/neq)."""
    operator: ComparisonOperator
    value: bool


@dataclass(frozen=True)
class StringEquality:
    """Case-sensitive string equality (eq/neq)."""
    operator: ComparisonOperator
    value: str


RuleValue = Union[NumericComparison, BooleanEquality, StringEquality]


@dataclass
class ScreeningRule:
    """Screening rule."""
    id: str
    rule_key: str
    rule_type: RuleType
    rule_name: str
    field_path: str
    rule_value: RuleValue
    severity: Severity = Severity.MEDIUM
    is_active: bool = True
    display_order: int = 0
    description: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def rule_value_dict(self) -> Dict[str, Any]:
        """Stored JSON shape of the comparison."""
        return {"operator": self.rule_value.operator.value, "value": self.rule_value.value}


@dataclass
class Submission:
    """Donor intake submission, as read by the engine."""
    id: str
    birth_date: Optional[date] = None
    height_feet: Optional[float] = None
    height_inches: Optional[float] = None
    weight: Optional[float] = None
    assigned_sex: Optional[str] = None
    has_blood_disorder: Optional[bool] = None
    has_chronic_illness: Optional[bool] = None
    had_surgery: Optional[bool] = None
    takes_medications: Optional[bool] = None
    has_tattoos_piercings: Optional[bool] = None
    has_been_incarcerated: Optional[bool] = None
    has_traveled_internationally: Optional[bool] = None
    has_received_transfusion: Optional[bool] = None
    has_been_pregnant: Optional[bool] = None
    evaluated_at: Optional[datetime] = None

    @property
    def total_height_inches(self) -> Optional[float]:
        """Undefined unless feet were captured; 0 ft is treated as missing."""
        if not self.height_feet:
            return None
        return self.height_feet * 12 + (self.height_inches or 0)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Submission":
        """Build a submission from a storage row, ignoring unknown columns."""
        birth_date = record.get("birth_date")
        if isinstance(birth_date, str):
            birth_date = date.fromisoformat(birth_date[:10])
        elif isinstance(birth_date, datetime):
            birth_date = birth_date.date()

        values = {
            name: record.get(name)
            for name in cls.__dataclass_fields__
            if name not in ("id", "birth_date")
        }
        # NUMERIC columns arrive as Decimal
        for name in ("height_feet", "height_inches", "weight"):
            if values[name] is not None:
                values[name] = float(values[name])
        return cls(id=str(record["id"]), birth_date=birth_date, **values)


@dataclass(frozen=True)
class EvaluationFlag:
    """One matched rule."""
    rule_key: str
    rule_name: str
    rule_type: RuleType
    severity: Severity
    message: str
    actual_value: Union[bool, int, float, str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_key": self.rule_key,
            "rule_name": self.rule_name,
            "rule_type": self.rule_type.value,
            "severity": self.severity.value,
            "message": self.message,
            "actual_value": self.actual_value,
        }


@dataclass(frozen=True)
class EvaluationResult:
    """Result of evaluating one submission against a rule set."""
    score: int
    recommendation: Recommendation
    flags: List[EvaluationFlag]
    summary: str
    evaluated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "recommendation": self.recommendation.value,
            "flags": [flag.to_dict() for flag in self.flags],
            "summary": self.summary,
            "evaluated_at": self.evaluated_at.isoformat(),
        }


RawRuleValue = Union[bool, int, float, str]


class RuleCreateRequest(BaseModel):
    """Request model for creating a rule."""
    rule_key: str = Field(..., min_length=1, max_length=100, description="Stable unique key")
    rule_name: str = Field(..., min_length=1, description="Display name")
    rule_type: RuleType = Field(..., description="hard_disqualify or soft_flag")
    field_path: str = Field(..., description="Submission field inspected by the rule")
    operator: ComparisonOperator = Field(..., description="Comparison operator")
    value: RawRuleValue = Field(..., description="Comparison value; strings are coerced")
    severity: Severity = Field(Severity.MEDIUM, description="Rule severity")
    is_active: bool = Field(True, description="Whether the rule is applied")
    display_order: Optional[int] = Field(None, description="Display position")
    description: Optional[str] = Field(None, description="Explanation shown on flags")


class RuleUpdateRequest(BaseModel):
    """Request model for updating a rule."""
    rule_key: Optional[str] = Field(None, description="Must equal the existing key if given")
    rule_name: Optional[str] = Field(None, min_length=1)
    rule_type: Optional[RuleType] = None
    field_path: Optional[str] = None
    operator: Optional[ComparisonOperator] = None
    value: Optional[RawRuleValue] = None
    severity: Optional[Severity] = None
    is_active: Optional[bool] = None
    display_order: Optional[int] = None
    description: Optional[str] = None


class RuleResponse(BaseModel):
    """Response model for rule operations."""
    id: str
    rule_key: str
    rule_name: str
    rule_type: RuleType
    field_path: str
    rule_value: Dict[str, Any]
    severity: Severity
    is_active: bool
    display_order: int
    description: Optional[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_rule(cls, rule: ScreeningRule) -> "RuleResponse":
        return cls(
            id=rule.id,
            rule_key=rule.rule_key,
            rule_name=rule.rule_name,
            rule_type=rule.rule_type,
            field_path=rule.field_path,
            rule_value=rule.rule_value_dict(),
            severity=rule.severity,
            is_active=rule.is_active,
            display_order=rule.display_order,
            description=rule.description,
            created_at=rule.created_at,
            updated_at=rule.updated_at,
        )


class RuleListResponse(BaseModel):
    """Response model for rule list."""
    rules: List[RuleResponse]
    total: int


class EvaluationFlagResponse(BaseModel):
    rule_key: str
    rule_name: str
    rule_type: RuleType
    severity: Severity
    message: str
    actual_value: RawRuleValue


class EvaluationResponse(BaseModel):
    """Response model for a submission evaluation."""
    submission_id: str
    score: int = Field(..., ge=0, le=100)
    recommendation: Recommendation
    flags: List[EvaluationFlagResponse]
    summary: str
    evaluated_at: datetime

    @classmethod
    def from_result(cls, submission_id: str, result: EvaluationResult) -> "EvaluationResponse":
        return cls(
            submission_id=submission_id,
            score=result.score,
            recommendation=result.recommendation,
            flags=[EvaluationFlagResponse(**flag.to_dict()) for flag in result.flags],
            summary=result.summary,
            evaluated_at=result.evaluated_at,
        )


class BatchEvaluationResponse(BaseModel):
    """Response model for a batch evaluation run."""
    requested: int
    processed: int
    failed: int = 0
    cancelled: bool = False
