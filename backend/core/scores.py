"""
scores.py — Grade component validation and total normalization.

A bimester grade is classwork ("zona", 0-60) plus exam (0-40). The total is
always derived from the two components, never supplied by the caller.
"""

from typing import Any, Dict, Optional

from core.errors import ValidationError
from core.grading_policy import GradingPolicy

CLASSWORK_MAX = 60.0
EXAM_MAX = 40.0
CYCLE_MIN = 2020
CYCLE_MAX = 2100


def _as_number(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")


def validate_classwork(value: Any) -> float:
    number = _as_number(value, "classwork")
    if not 0 <= number <= CLASSWORK_MAX:
        raise ValidationError(f"classwork must be between 0 and {CLASSWORK_MAX:g}")
    return number


def validate_exam(value: Any) -> float:
    number = _as_number(value, "exam")
    if not 0 <= number <= EXAM_MAX:
        raise ValidationError(f"exam must be between 0 and {EXAM_MAX:g}")
    return number


def validate_components(classwork: Any, exam: Any):
    return validate_classwork(classwork), validate_exam(exam)


def validate_period(value: Any, policy: GradingPolicy) -> int:
    """Bimester number within 1..policy.periods."""
    message = f"period must be between 1 and {policy.periods}"
    if isinstance(value, bool):
        raise ValidationError(message)
    try:
        period = int(value)
    except (TypeError, ValueError):
        raise ValidationError(message)
    if period != value and str(period) != str(value).strip():
        raise ValidationError(message)
    if period not in policy.period_numbers:
        raise ValidationError(message)
    return period


def validate_edit(classwork: Any = None, exam: Any = None, remarks: Any = None) -> Dict[str, Any]:
    """Validate the fields supplied to an edit; omitted ones stay None."""
    if remarks is not None and not isinstance(remarks, str):
        raise ValidationError("remarks must be text")
    return {
        "classwork": validate_classwork(classwork) if classwork is not None else None,
        "exam": validate_exam(exam) if exam is not None else None,
        "remarks": remarks,
    }


def validate_cycle(value: Any) -> int:
    """Canonical integer school year; '2025' and 2025 are the same cycle."""
    if isinstance(value, bool):
        raise ValidationError("cycle must be a year")
    text = str(value).strip() if value is not None else ""
    if not text.isdigit():
        raise ValidationError("cycle must be a year")
    cycle = int(text)
    if not CYCLE_MIN <= cycle <= CYCLE_MAX:
        raise ValidationError(f"cycle must be between {CYCLE_MIN} and {CYCLE_MAX}")
    return cycle


def compute_total(classwork: float, exam: float) -> float:
    """Total score on the 0-100 scale."""
    total = float(classwork) + float(exam)
    return int(total) if total.is_integer() else total


def recompute_total(
    existing: Dict[str, Any],
    classwork: Optional[Any] = None,
    exam: Optional[Any] = None,
) -> Dict[str, Any]:
    """
    Return the component/total update for an edit.

    Components must already be validated (see validate_edit). A missing one
    is read from the stored record so the total never drifts from its parts.
    """
    new_classwork = classwork if classwork is not None else existing["classwork"]
    new_exam = exam if exam is not None else existing["exam"]
    return {
        "classwork": new_classwork,
        "exam": new_exam,
        "total": compute_total(new_classwork, new_exam),
    }
