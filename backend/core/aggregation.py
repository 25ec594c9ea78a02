"""
aggregation.py — Bimester pivot of a student's grade records.

Turns the flat list of active grade records for one student and cycle into
one row per course subject with a slot per bimester. The course's subject
list is the authoritative row set: subjects with no grades still get a row,
with every period empty (None, never 0).
"""

from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from core.grading_policy import GradingPolicy, sort_key_for_name


def _safe_float(val) -> Optional[float]:
    """Convert to float or return None for NaN/inf/missing."""
    try:
        v = float(val)
        if np.isnan(v) or np.isinf(v):
            return None
        return int(v) if v.is_integer() else v
    except (TypeError, ValueError):
        return None


def _records_frame(records: List[Dict[str, Any]]) -> pd.DataFrame:
    if not records:
        return pd.DataFrame(columns=["subject", "period", "total"])
    df = pd.DataFrame(
        [
            {"subject": str(r["subject"]), "period": int(r["period"]), "total": r.get("total")}
            for r in records
        ]
    )
    df["total"] = pd.to_numeric(df["total"], errors="coerce")
    return df


def aggregate_periods(
    subjects: List[Dict[str, Any]],
    records: List[Dict[str, Any]],
    policy: GradingPolicy,
) -> List[Dict[str, Any]]:
    """
    Pivot grade records into subject rows.

    subjects: [{"_id", "name"}], records: [{"subject", "period", "total"}].
    Returns [{"subject_id", "subject", "periods": {1: total|None, ...}}]
    ordered by subject name.
    """
    periods = policy.period_numbers
    df = _records_frame(records)

    if df.empty:
        pivot = pd.DataFrame(columns=periods, dtype=float)
    else:
        # The store guarantees one active record per subject and period.
        pivot = df.pivot_table(index="subject", columns="period", values="total", aggfunc="first")
    pivot = pivot.reindex(columns=periods)

    rows = []
    for subject in subjects:
        subject_id = str(subject["_id"])
        if subject_id in pivot.index:
            values = pivot.loc[subject_id]
            cells = {p: _safe_float(values.get(p)) for p in periods}
        else:
            cells = {p: None for p in periods}
        rows.append({
            "subject_id": subject_id,
            "subject": subject.get("name", ""),
            "periods": cells,
        })

    rows.sort(key=lambda row: sort_key_for_name(row["subject"]))
    return rows


def period_values(row: Dict[str, Any]) -> List[float]:
    """Totals of the periods that have data, in period order."""
    return [v for _, v in sorted(row["periods"].items()) if v is not None]
