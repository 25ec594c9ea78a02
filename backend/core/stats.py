"""
stats.py — Grade aggregation for report cards and class grids.

Computes:
- Summary view (Mode A): per-subject simple average of recorded bimesters,
  pass/fail against the stage threshold, student-level overall average
- Transcript view (Mode B): weighted accumulation where each bimester adds
  at most 25 of 100 points, and the course-level accumulated average
- Per-bimester class rows for the transcript (PROMEDIOS / PERDIDAS)
- Roster grid: every enrolled student against one subject and bimester

The two views round and default differently on purpose: the summary rounds
to 2 decimals and reports None when nothing is graded, while the transcript's
accumulated average falls back to 0 and its bimester rows round to integers.
"""

from typing import Any, Dict, List, Optional

import numpy as np

from core.aggregation import period_values
from core.grading_policy import GradingPolicy, round_half_up, sort_key_for_name


# ── Helpers ─────────────────────────────────────────────────────────

def _mean(values: List[float]) -> Optional[float]:
    if not values:
        return None
    return float(np.mean(np.asarray(values, dtype=float)))


def _sanitize(obj):
    """Recursively coerce numpy scalars to JSON-safe Python types."""
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        v = float(obj)
        return None if (np.isnan(v) or np.isinf(v)) else v
    return obj


# ── Mode A: summary view ────────────────────────────────────────────

def compute_subject_summary(
    rows: List[Dict[str, Any]],
    passing_score: int,
    policy: GradingPolicy,
) -> List[Dict[str, Any]]:
    """Simple average of the bimesters with data; None when there are none."""
    summary = []
    for row in rows:
        values = period_values(row)
        average = round_half_up(_mean(values), policy.summary_decimals) if values else None
        summary.append({
            **row,
            "average": average,
            "passed": (average >= passing_score) if average is not None else None,
        })
    return _sanitize(summary)


def compute_student_summary(
    rows: List[Dict[str, Any]],
    passing_score: int,
    policy: GradingPolicy,
) -> Dict[str, Any]:
    """Subject averages plus the overall average and pass/fail counts."""
    subjects = compute_subject_summary(rows, passing_score, policy)
    averages = [s["average"] for s in subjects if s["average"] is not None]
    overall = round_half_up(_mean(averages), policy.summary_decimals) if averages else None

    return _sanitize({
        "subjects": subjects,
        "summary": {
            "overall_average": overall,
            "passing_score": passing_score,
            "passed_count": sum(1 for s in subjects if s["passed"] is True),
            "failed_count": sum(1 for s in subjects if s["passed"] is False),
            "total_subjects": len(subjects),
        },
    })


# ── Mode B: transcript accumulation ─────────────────────────────────

def compute_cumulative(row: Dict[str, Any], policy: GradingPolicy) -> Optional[float]:
    """Sum of bimester contributions; two graded bimesters cap at 50."""
    values = period_values(row)
    if not values:
        return None
    points = sum(policy.contribution(v) for v in values)
    return round_half_up(points, policy.summary_decimals)


def compute_accumulation(
    rows: List[Dict[str, Any]],
    passing_score: int,
    policy: GradingPolicy,
) -> List[Dict[str, Any]]:
    accumulated = []
    for row in rows:
        cumulative = compute_cumulative(row, policy)
        accumulated.append({
            **row,
            "cumulative": cumulative,
            "passed": (cumulative >= passing_score) if cumulative is not None else None,
        })
    return _sanitize(accumulated)


def compute_overall_accumulated(rows: List[Dict[str, Any]], policy: GradingPolicy) -> float:
    """Mean of subject cumulatives; 0 (not None) when nothing is graded."""
    values = [r["cumulative"] for r in rows if r.get("cumulative") is not None]
    if not values:
        return 0
    return round_half_up(_mean(values), policy.summary_decimals)


def compute_period_statistics(
    rows: List[Dict[str, Any]],
    passing_score: int,
    policy: GradingPolicy,
) -> Dict[str, Any]:
    """
    Class rows of the transcript grid, computed over subject rows.

    average: integer mean of the subject totals recorded in that bimester.
    failing: number of subjects (not students) below the threshold.
    """
    periods = {}
    for p in policy.period_numbers:
        values = [r["periods"][p] for r in rows if r["periods"].get(p) is not None]
        periods[p] = {
            "average": round_half_up(_mean(values), policy.period_stat_decimals) if values else None,
            "failing": sum(1 for v in values if v < passing_score),
        }

    failing_cumulative = sum(
        1 for r in rows
        if r.get("cumulative") is not None and r["cumulative"] < passing_score
    )
    return _sanitize({"periods": periods, "failing_cumulative": failing_cumulative})


# ── Roster grid ─────────────────────────────────────────────────────

def _grade_cell(record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(record["_id"]),
        "classwork": record.get("classwork"),
        "exam": record.get("exam"),
        "total": record.get("total"),
        "remarks": record.get("remarks", ""),
    }


def compute_roster_grid(
    students: List[Dict[str, Any]],
    records: List[Dict[str, Any]],
    policy: GradingPolicy,
) -> Dict[str, Any]:
    """
    Join the enrolled roster against one subject/bimester's grade records.

    The roster defines completeness: students without a record get a None
    grade instead of being dropped. Rows are ordered by surname.
    """
    by_student = {str(r["student"]): r for r in records}

    rows = []
    for student in students:
        record = by_student.get(str(student["_id"]))
        rows.append({
            "student": {
                "id": str(student["_id"]),
                "name": student.get("name", ""),
                "surname": student.get("surname", ""),
                "code": student.get("code"),
            },
            "grade": _grade_cell(record) if record else None,
        })
    rows.sort(key=lambda r: (sort_key_for_name(r["student"]["surname"]), sort_key_for_name(r["student"]["name"])))

    totals = [r["grade"]["total"] for r in rows if r["grade"] is not None and r["grade"]["total"] is not None]
    present = sum(1 for r in rows if r["grade"] is not None)

    return _sanitize({
        "rows": rows,
        "class_mean": round_half_up(_mean(totals), policy.summary_decimals) if totals else None,
        "present_count": present,
        "absent_count": len(rows) - present,
        "total_students": len(rows),
    })
