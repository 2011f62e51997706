from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from production_plan.errors import ProjectDataError

SECTIONS = ("Target", "Actual", "Accumulative")

DateLike = Union[str, date]


@dataclass
class ActualDataItem:
    """One observed data point, as extracted by the planner or an upload."""

    date: DateLike
    name: str
    actual: Optional[float] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str) -> Any:
        if key == "actual":
            return self.actual
        if key == "date":
            return self.date
        if key == "name":
            return self.name
        return self.extra.get(key)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ActualDataItem":
        for req in ("date", "name"):
            if req not in payload:
                raise ProjectDataError(f"actual data item is missing '{req}'")
        extra = {k: v for k, v in payload.items() if k not in ("date", "name", "actual")}
        return cls(
            date=payload["date"],
            name=str(payload["name"]),
            actual=payload.get("actual"),
            extra=extra,
        )


@dataclass
class ProjectColumn:
    """A Production Plan column, placed in one of the three header bands."""

    header: str
    key: str
    section: str = "Target"
    formula: Optional[str] = None
    width: Optional[float] = None

    def __post_init__(self):
        if self.section not in SECTIONS:
            raise ProjectDataError(
                f"column '{self.header}' has unknown section '{self.section}'"
            )


@dataclass
class DailyColumn:
    header: str
    key: str
    formula: Optional[str] = None


@dataclass
class PivotColumn:
    header: str
    formula: str


@dataclass
class DashboardMetric:
    label: str
    formula: str
    format: Optional[str] = None


@dataclass
class ProjectData:
    """Everything the planner hands over for one workbook generation."""

    name: str
    goal: float
    unit: str
    start_date: DateLike
    end_date: DateLike
    resources: List[str] = field(default_factory=list)
    actual_data: List[ActualDataItem] = field(default_factory=list)
    columns: List[ProjectColumn] = field(default_factory=list)
    daily_columns: List[DailyColumn] = field(default_factory=list)
    pivot_columns: Optional[List[PivotColumn]] = None
    dashboard_metrics: Optional[List[DashboardMetric]] = None

    @property
    def unit_label(self) -> str:
        unit = self.unit or "Units"
        return unit[:1].upper() + unit[1:]

    def with_uploaded_actuals(self, uploaded: Iterable[ActualDataItem]) -> "ProjectData":
        """Copy of the project with uploaded observations merged in."""
        from production_plan.model import merge_actual_data

        return dataclasses.replace(
            self, actual_data=merge_actual_data(self.actual_data, uploaded)
        )

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ProjectData":
        """Build from the planner's JSON payload (camelCase or snake_case keys)."""

        def pick(*keys, required=False, default=None):
            for k in keys:
                if k in payload and payload[k] is not None:
                    return payload[k]
            if required:
                raise ProjectDataError(f"project data is missing '{keys[0]}'")
            return default

        try:
            pivot = pick("pivotColumns", "pivot_columns")
            metrics = pick("dashboardMetrics", "dashboard_metrics")
            return cls(
                name=str(pick("name", required=True)),
                goal=float(pick("goal", required=True)),
                unit=str(pick("unit", default="")),
                start_date=pick("startDate", "start_date", required=True),
                end_date=pick("endDate", "end_date", required=True),
                resources=[str(r) for r in pick("resources", default=[])],
                actual_data=[
                    ActualDataItem.from_dict(a)
                    for a in pick("actualData", "actual_data", default=[])
                ],
                columns=[ProjectColumn(**c) for c in pick("columns", default=[])],
                daily_columns=[
                    DailyColumn(**c) for c in pick("dailyColumns", "daily_columns", default=[])
                ],
                pivot_columns=None if pivot is None else [PivotColumn(**c) for c in pivot],
                dashboard_metrics=None if metrics is None else [DashboardMetric(**m) for m in metrics],
            )
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ProjectDataError):
                raise
            raise ProjectDataError(f"malformed project data: {exc}") from exc


@dataclass
class WorkbookOptions:
    """Rendering switches for one generation run."""

    include_dashboard: bool = True
    creator: str = "Production Plan Agent"
    table_style: str = "TableStyleMedium2"
    pivot_table_style: str = "TableStyleLight1"


@dataclass(frozen=True)
class ScheduleItem:
    """One (day, resource) slot with its observation and computed target."""

    date: date
    name: str
    actual: Optional[float] = None
    values: Dict[str, Any] = field(default_factory=dict)
    target: float = 0.0

    def value(self, key: str) -> Any:
        lowered = key.lower()
        if lowered == "target":
            return self.target
        if lowered == "actual":
            return self.actual
        return self.values.get(key)


@dataclass
class PlanResult:
    """Output container returned by the calculation engine."""

    schedule: List[ScheduleItem]
    frame: pd.DataFrame
    days: List[date]
    weeks: List[int]
