"""
Production Plan Calculation Engine
Expands the date range x resource list into a schedule and spreads the
project goal over it with a ramp / growth / plateau weight curve.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from production_plan.config import (
    ActualDataItem,
    DailyColumn,
    PlanResult,
    ProjectData,
    ScheduleItem,
)
from production_plan.errors import InvalidDateRangeError

logger = logging.getLogger(__name__)

RAMP_END = 0.25
GROWTH_END = 0.75
RAMP_START_WEIGHT = 0.3
GROWTH_START_WEIGHT = 0.6
PLATEAU_WEIGHT = 1.0


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def _to_date(value) -> Optional[date]:
    """Calendar day of a date or ISO 8601 string, or None when it does not parse.

    Only ISO text is read, so words such as "today" and bare numbers are
    rejected instead of resolving against the clock or the epoch.
    """
    if isinstance(value, datetime):
        return None if pd.isna(value) else value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    ts = pd.to_datetime(value.strip(), format="ISO8601", errors="coerce")
    if pd.isna(ts):
        return None
    return ts.date()


def parse_date_range(start, end) -> Tuple[date, date]:
    start_d = _to_date(start)
    if start_d is None:
        raise InvalidDateRangeError("start_date", f"invalid date {start!r}")
    end_d = _to_date(end)
    if end_d is None:
        raise InvalidDateRangeError("end_date", f"invalid date {end!r}")
    if end_d < start_d:
        raise InvalidDateRangeError(
            "date_range", f"end date {end_d.isoformat()} precedes start date {start_d.isoformat()}"
        )
    return start_d, end_d


def iso_weeks(days: Iterable[date]) -> List[int]:
    """Distinct ISO week numbers in order of first appearance."""
    weeks: List[int] = []
    for d in days:
        wk = d.isocalendar()[1]
        if wk not in weeks:
            weeks.append(wk)
    return weeks


# ---------------------------------------------------------------------------
# Actual data
# ---------------------------------------------------------------------------

def merge_actual_data(
    planner_items: Sequence[ActualDataItem],
    uploaded_items: Iterable[ActualDataItem],
) -> List[ActualDataItem]:
    """Planner entries win; an upload is added only for an unseen (date, name)."""
    combined = list(planner_items or [])
    for up in uploaded_items or []:
        exists = any(
            item.date == up.date and item.name == up.name for item in combined
        )
        if not exists:
            combined.append(up)
    return combined


def _index_actuals(actual_data: Sequence[ActualDataItem]) -> Dict[Tuple[date, str], ActualDataItem]:
    index: Dict[Tuple[date, str], ActualDataItem] = {}
    for item in actual_data or []:
        d = _to_date(item.date)
        if d is None:
            logger.debug("Skipping actual data item with unparsable date %r", item.date)
            continue
        index.setdefault((d, item.name.lower()), item)
    return index


# ---------------------------------------------------------------------------
# Schedule
# ---------------------------------------------------------------------------

def expand_schedule(
    start_date,
    end_date,
    resources: Sequence[str],
    actual_data: Sequence[ActualDataItem] = (),
    daily_columns: Sequence[DailyColumn] = (),
) -> List[ScheduleItem]:
    """One item per (day, resource), day-major, without targets."""
    start_d, end_d = parse_date_range(start_date, end_date)
    days = [ts.date() for ts in pd.date_range(start_d, end_d, freq="D")]
    actuals = _index_actuals(actual_data)

    items: List[ScheduleItem] = []
    for day in days:
        for resource in resources:
            match = actuals.get((day, resource.lower()))
            values = {}
            if match is not None:
                for col in daily_columns:
                    values[col.key] = match.get(col.key)
            else:
                for col in daily_columns:
                    values[col.key] = None
            items.append(ScheduleItem(
                date=day,
                name=resource,
                actual=match.actual if match is not None else None,
                values=values,
            ))
    return items


# ---------------------------------------------------------------------------
# Target distribution
# ---------------------------------------------------------------------------

def curve_position(index: int, total: int) -> float:
    if total <= 1:
        return 0.0
    return index / (total - 1)


def curve_weight(t: float) -> float:
    if t < RAMP_END:
        return RAMP_START_WEIGHT + (GROWTH_START_WEIGHT - RAMP_START_WEIGHT) * (t / RAMP_END)
    if t < GROWTH_END:
        return GROWTH_START_WEIGHT + (PLATEAU_WEIGHT - GROWTH_START_WEIGHT) * (
            (t - RAMP_END) / (GROWTH_END - RAMP_END)
        )
    return PLATEAU_WEIGHT


def schedule_weights(total: int) -> List[float]:
    return [curve_weight(curve_position(i, total)) for i in range(total)]


def distribute_targets(items: Sequence[ScheduleItem], goal: float) -> List[ScheduleItem]:
    """Give every item its share of the goal; shares sum to the goal."""
    if not items:
        return []
    weights = schedule_weights(len(items))
    total_weight = sum(weights)
    return [
        ScheduleItem(
            date=item.date,
            name=item.name,
            actual=item.actual,
            values=dict(item.values),
            target=(w / total_weight) * goal,
        )
        for item, w in zip(items, weights)
    ]


def _schedule_frame(items: Sequence[ScheduleItem], project: ProjectData) -> pd.DataFrame:
    keys = [c.key for c in project.daily_columns if c.key.lower() not in ("target", "actual")]
    columns = ["date", "name", "actual", "target"] + keys
    records = []
    for item in items:
        rec = {
            "date": item.date,
            "name": item.name,
            "actual": item.actual,
            "target": item.target,
        }
        for k in keys:
            rec[k] = item.values.get(k)
        records.append(rec)
    return pd.DataFrame(records, columns=columns)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def run_model(project: ProjectData) -> PlanResult:
    start_d, end_d = parse_date_range(project.start_date, project.end_date)

    schedule = expand_schedule(
        start_d,
        end_d,
        project.resources,
        project.actual_data,
        project.daily_columns,
    )
    schedule = distribute_targets(schedule, project.goal)

    days = list(dict.fromkeys(item.date for item in schedule))

    logger.info(
        "Expanded %s (%s to %s): %d resources, %d schedule items",
        project.name, start_d.isoformat(), end_d.isoformat(),
        len(project.resources), len(schedule),
    )

    return PlanResult(
        schedule=schedule,
        frame=_schedule_frame(schedule, project),
        days=days,
        weeks=iso_weeks(days),
    )
