"""Built-in sheet definitions and a sample project."""

from typing import List

from production_plan.config import (
    ActualDataItem,
    DailyColumn,
    DashboardMetric,
    PivotColumn,
    ProjectColumn,
    ProjectData,
)

DAILY_SHEET = "Daily_Production_Key"
PIVOT_SHEET = "Production_Pivot"
DASHBOARD_SHEET = "Summary_Dashboard"

DAILY_TABLE = "DailyProductionTable"
PIVOT_TABLE = "PivotSummaryTable"


def default_pivot_columns() -> List[PivotColumn]:
    return [
        PivotColumn(
            "Total Target",
            f"SUMIFS({DAILY_TABLE}[Target], {DAILY_TABLE}[Week], A{{rowIndex}})",
        ),
        PivotColumn(
            "Total Actual",
            f"SUMIFS({DAILY_TABLE}[Actual], {DAILY_TABLE}[Week], A{{rowIndex}})",
        ),
        PivotColumn(
            "Total Variance",
            f"SUMIFS({DAILY_TABLE}[Variance], {DAILY_TABLE}[Week], A{{rowIndex}})",
        ),
        PivotColumn("Cumulative Actual", "SUM($D$2:D{rowIndex})"),
    ]


def _number_literal(value: float) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


def default_dashboard_metrics(goal: float) -> List[DashboardMetric]:
    # Row 3 onwards: B3 goal, B4 actual, B5 remaining, B7 average daily.
    blanks = f"COUNTBLANK({DAILY_TABLE}[Actual])"
    return [
        DashboardMetric("Overall Goal", _number_literal(goal)),
        DashboardMetric("Total Actual", f"SUM({DAILY_TABLE}[Actual])"),
        DashboardMetric("Total Remaining", "B3-B4"),
        DashboardMetric("% Completion", "B4/B3", "0.00%"),
        DashboardMetric("Avg Daily Production", f"AVERAGE({DAILY_TABLE}[Actual])"),
        DashboardMetric(
            "Required Daily Production",
            f"IF(OR(B5<=0, {blanks}=0), 0, B5 / {blanks})",
        ),
        DashboardMetric(
            "Status",
            f'IF(B5<=0, "Completed", IF(B7>=AVERAGE({DAILY_TABLE}[Target]), "On Track", "Behind"))',
        ),
    ]


def sample_project() -> ProjectData:
    """Two assembly lines over two weeks with a few recorded actuals."""
    table = DAILY_TABLE
    return ProjectData(
        name="Widget Assembly",
        goal=1200,
        unit="units",
        start_date="2024-01-01",
        end_date="2024-01-14",
        resources=["Line A", "Line B"],
        actual_data=[
            ActualDataItem("2024-01-01", "line a", 30, {"ops": 2}),
            ActualDataItem("2024-01-01", "Line B", 25, {"ops": 2}),
            ActualDataItem("2024-01-02", "Line A", 34.5, {"ops": 3}),
        ],
        daily_columns=[
            DailyColumn("Target", "target"),
            DailyColumn("Actual", "actual"),
            DailyColumn("Ops", "ops"),
            DailyColumn("Variance", "variance", "G{rowIndex}-F{rowIndex}"),
            DailyColumn("Completion Rate", "rate", "IF(F{rowIndex}=0, 0, G{rowIndex}/F{rowIndex})"),
        ],
        columns=[
            ProjectColumn(
                "Daily Target", "daily_target", "Target",
                f"SUMIFS({table}[Target], {table}[Date], A{{rowIndex}})",
            ),
            ProjectColumn(
                "Daily Actual", "daily_actual", "Actual",
                f"SUMIFS({table}[Actual], {table}[Date], A{{rowIndex}})",
            ),
            ProjectColumn(
                "Achievement Rate", "achievement_rate", "Actual",
                "IF(C{rowIndex}=0, 0, D{rowIndex}/C{rowIndex})",
            ),
            ProjectColumn(
                "Cumulative Target", "cum_target", "Accumulative", "SUM($C$5:C{rowIndex})",
            ),
            ProjectColumn(
                "Cumulative Actual", "cum_actual", "Accumulative", "SUM($D$5:D{rowIndex})",
            ),
        ],
    )
