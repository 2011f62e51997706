"""Production plan workbook generator."""

from production_plan.build_excel_model import (
    build_workbook,
    generate_excel_file,
    generate_excel_file_async,
    get_column_letter,
    output_filename,
    sanitize_sheet_name,
    substitute_row_index,
    workbook_to_bytes,
)
from production_plan.config import (
    ActualDataItem,
    DailyColumn,
    DashboardMetric,
    PivotColumn,
    PlanResult,
    ProjectColumn,
    ProjectData,
    ScheduleItem,
    WorkbookOptions,
)
from production_plan.errors import (
    InvalidDateRangeError,
    ProductionPlanError,
    ProjectDataError,
    WorkbookRenderError,
)
from production_plan.model import (
    distribute_targets,
    expand_schedule,
    merge_actual_data,
    run_model,
)

__all__ = [
    "ActualDataItem",
    "DailyColumn",
    "DashboardMetric",
    "InvalidDateRangeError",
    "PivotColumn",
    "PlanResult",
    "ProductionPlanError",
    "ProjectColumn",
    "ProjectData",
    "ProjectDataError",
    "ScheduleItem",
    "WorkbookOptions",
    "WorkbookRenderError",
    "build_workbook",
    "distribute_targets",
    "expand_schedule",
    "generate_excel_file",
    "generate_excel_file_async",
    "get_column_letter",
    "merge_actual_data",
    "output_filename",
    "run_model",
    "sanitize_sheet_name",
    "substitute_row_index",
    "workbook_to_bytes",
]
