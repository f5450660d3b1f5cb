"""
Submission field resolution.

Rules reference submission attributes by a field path drawn from a closed,
versioned set. Each path maps to an accessor function and a declared value
kind; derived fields (age, BMI) are computed at evaluation time and are never
stored on the submission.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from shared.errors import UnknownFieldPathError, ValidationError
from .models import Submission, RuleValue, NumericComparison, BooleanEquality, StringEquality

FIELD_SET_VERSION = 1


class FieldPath(str, Enum):
    """Supported field paths."""
    CALCULATED_AGE = "calculated_age"
    CALCULATED_BMI = "calculated_bmi"
    HAS_BLOOD_DISORDER = "has_blood_disorder"
    HAS_CHRONIC_ILLNESS = "has_chronic_illness"
    HAD_SURGERY = "had_surgery"
    TAKES_MEDICATIONS = "takes_medications"
    HAS_TATTOOS_PIERCINGS = "has_tattoos_piercings"
    HAS_BEEN_INCARCERATED = "has_been_incarcerated"
    HAS_TRAVELED_INTERNATIONALLY = "has_traveled_internationally"
    HAS_RECEIVED_TRANSFUSION = "has_received_transfusion"
    HAS_BEEN_PREGNANT = "has_been_pregnant"
    ASSIGNED_SEX = "assigned_sex"


class FieldKind(str, Enum):
    """Declared value kind of a field."""
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"


ResolvedValue = Optional[Union[bool, int, float, str]]
Accessor = Callable[[Submission, date], ResolvedValue]


@dataclass(frozen=True)
class FieldDefinition:
    path: FieldPath
    kind: FieldKind
    label: str
    accessor: Accessor


def calculate_age(birth_date: Optional[date], as_of: date) -> Optional[int]:
    """Whole years between birth_date and as_of, calendar aware."""
    if birth_date is None:
        return None
    age = as_of.year - birth_date.year
    if (as_of.month, as_of.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def calculate_bmi(weight_pounds: Optional[float], height_inches: Optional[float]) -> Optional[float]:
    """Imperial BMI rounded to one decimal; None when inputs are missing or non-positive."""
    if weight_pounds is None or height_inches is None:
        return None
    if weight_pounds <= 0 or height_inches <= 0:
        return None
    return round((weight_pounds * 703) / (height_inches ** 2), 1)


def _passthrough(attribute: str) -> Accessor:
    def accessor(submission: Submission, as_of: date) -> ResolvedValue:
        return getattr(submission, attribute)
    return accessor


def _age(submission: Submission, as_of: date) -> ResolvedValue:
    return calculate_age(submission.birth_date, as_of)


def _bmi(submission: Submission, as_of: date) -> ResolvedValue:
    return calculate_bmi(submission.weight, submission.total_height_inches)


FIELD_DEFINITIONS: Dict[FieldPath, FieldDefinition] = {
    definition.path: definition
    for definition in [
        FieldDefinition(FieldPath.CALCULATED_BMI, FieldKind.NUMBER, "BMI (calculated)", _bmi),
        FieldDefinition(FieldPath.CALCULATED_AGE, FieldKind.NUMBER, "Age (calculated)", _age),
        FieldDefinition(FieldPath.HAS_BLOOD_DISORDER, FieldKind.BOOLEAN, "Has Blood Disorder",
                        _passthrough("has_blood_disorder")),
        FieldDefinition(FieldPath.HAS_CHRONIC_ILLNESS, FieldKind.BOOLEAN, "Has Chronic Illness",
                        _passthrough("has_chronic_illness")),
        FieldDefinition(FieldPath.HAD_SURGERY, FieldKind.BOOLEAN, "Had Surgery",
                        _passthrough("had_surgery")),
        FieldDefinition(FieldPath.HAS_TATTOOS_PIERCINGS, FieldKind.BOOLEAN, "Has Tattoos/Piercings",
                        _passthrough("has_tattoos_piercings")),
        FieldDefinition(FieldPath.HAS_BEEN_INCARCERATED, FieldKind.BOOLEAN, "Has Been Incarcerated",
                        _passthrough("has_been_incarcerated")),
        FieldDefinition(FieldPath.HAS_TRAVELED_INTERNATIONALLY, FieldKind.BOOLEAN, "Has Traveled Internationally",
                        _passthrough("has_traveled_internationally")),
        FieldDefinition(FieldPath.HAS_RECEIVED_TRANSFUSION, FieldKind.BOOLEAN, "Has Received Transfusion",
                        _passthrough("has_received_transfusion")),
        FieldDefinition(FieldPath.HAS_BEEN_PREGNANT, FieldKind.BOOLEAN, "Has Been Pregnant",
                        _passthrough("has_been_pregnant")),
        FieldDefinition(FieldPath.TAKES_MEDICATIONS, FieldKind.BOOLEAN, "Takes Medications",
                        _passthrough("takes_medications")),
        FieldDefinition(FieldPath.ASSIGNED_SEX, FieldKind.STRING, "Assigned Sex",
                        _passthrough("assigned_sex")),
    ]
}


def get_field_definition(field_path: Union[FieldPath, str]) -> FieldDefinition:
    """Look up a field definition, raising UnknownFieldPathError for unsupported paths."""
    try:
        return FIELD_DEFINITIONS[FieldPath(field_path)]
    except (ValueError, KeyError):
        raise UnknownFieldPathError(str(field_path))


def resolve(field_path: Union[FieldPath, str], submission: Submission, as_of: date) -> ResolvedValue:
    """Resolve a field path against a submission; None means the value is undefined."""
    return get_field_definition(field_path).accessor(submission, as_of)


_KIND_BY_COMPARISON = {
    NumericComparison: FieldKind.NUMBER,
    BooleanEquality: FieldKind.BOOLEAN,
    StringEquality: FieldKind.STRING,
}


def validate_comparison_for_field(field_path: str, comparison: RuleValue) -> FieldDefinition:
    """Check that a comparison's value kind matches the declared kind of its field."""
    definition = get_field_definition(field_path)
    kind = _KIND_BY_COMPARISON[type(comparison)]
    if kind != definition.kind:
        raise ValidationError(
            f"Field '{definition.path.value}' expects a {definition.kind.value} value",
            {
                "field_path": definition.path.value,
                "expected": definition.kind.value,
                "received": kind.value,
            }
        )
    return definition


def describe_fields() -> List[Dict[str, Any]]:
    """Field catalog for rule authoring clients."""
    return [
        {"field_path": d.path.value, "kind": d.kind.value, "label": d.label}
        for d in FIELD_DEFINITIONS.values()
    ]
