"""
Build a formula-driven Production Plan workbook.

Sheets, in order:
  Daily_Production_Key  one row per (day, resource), table DailyProductionTable
  <Project> Plan        one row per day, Target / Actual / Accumulative bands
  Production_Pivot      one row per ISO week, table PivotSummaryTable
  Summary_Dashboard     KPI list (optional)

Planner-supplied formulas are opaque templates; only {rowIndex} is replaced.
"""

from __future__ import annotations

import asyncio
import io
import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from openpyxl import Workbook
from openpyxl.formatting.rule import Rule
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.styles.differential import DifferentialStyle
from openpyxl.styles.numbers import NumberFormat
from openpyxl.utils import get_column_letter as _column_letter
from openpyxl.worksheet.filters import AutoFilter
from openpyxl.worksheet.table import Table, TableColumn, TableStyleInfo

from production_plan.config import (
    SECTIONS,
    DailyColumn,
    PlanResult,
    ProjectColumn,
    ProjectData,
    WorkbookOptions,
)
from production_plan.defaults import (
    DAILY_SHEET,
    DAILY_TABLE,
    DASHBOARD_SHEET,
    PIVOT_SHEET,
    PIVOT_TABLE,
    default_dashboard_metrics,
    default_pivot_columns,
    sample_project,
)
from production_plan.errors import WorkbookRenderError
from production_plan.model import run_model

logger = logging.getLogger(__name__)

ROW_PLACEHOLDER = "{rowIndex}"
MAX_SHEET_NAME = 31
PLAN_FIRST_ROW = 5

# ── Palette ──────────────────────────────────────────────────────────────
NAVY = "051C2C"
BLUE = "2251FF"
TEAL = "00A9F4"
WHITE = "FFFFFF"
TITLE_GREEN = "006633"
TARGET_YELLOW = "FFF2CC"
ACTUAL_GREEN = "70AD47"
ACTUAL_LIGHT = "C6E0B4"
ACCUM_GREY = "D9D9D9"
TOTAL_GREY = "F2F2F2"

# ── Styles ───────────────────────────────────────────────────────────────
def _solid(color):
    return PatternFill(start_color=color, end_color=color, fill_type="solid")


title_fill = _solid(TITLE_GREEN)
target_fill = _solid(TARGET_YELLOW)
actual_band_fill = _solid(ACTUAL_GREEN)
actual_fill = _solid(ACTUAL_LIGHT)
accum_fill = _solid(ACCUM_GREY)
total_fill = _solid(TOTAL_GREY)

SECTION_FILLS = {"Target": target_fill, "Actual": actual_fill, "Accumulative": accum_fill}

title_font = Font(name="Calibri", size=12, bold=True, color=WHITE)
band_font = Font(name="Calibri", size=11, bold=True, color=WHITE)
bold_font = Font(name="Calibri", size=11, bold=True)
dash_title_font = Font(name="Calibri", size=16, bold=True, color=NAVY)

thin = Side(style="thin")
thin_border = Border(left=thin, right=thin, top=thin, bottom=thin)
total_border = Border(left=thin, right=thin, top=Side(style="double"), bottom=thin)

align_center = Alignment(horizontal="center", vertical="center")
align_header = Alignment(horizontal="center", vertical="center", wrap_text=True)

DATE_FORMAT = "yyyy-mm-dd"
PERCENT_FORMAT = "0.00%"
WHOLE_FORMAT = NumberFormat(numFmtId=3, formatCode="#,##0")
DECIMAL_FORMAT = NumberFormat(numFmtId=4, formatCode="#,##0.00")


# ═════════════════════════════════════════════════════════════════════════
# HELPERS
# ═════════════════════════════════════════════════════════════════════════
def get_column_letter(index: int) -> str:
    """1 -> A, 26 -> Z, 27 -> AA."""
    if index < 1:
        raise ValueError(f"Column index must be >= 1, got {index}")
    return _column_letter(index)


def sanitize_sheet_name(name: str) -> str:
    cleaned = re.sub(r"[\[\]:*?/\\]", "", name)[:MAX_SHEET_NAME]
    return cleaned or "Sheet"


def output_filename(project: ProjectData) -> str:
    stem = re.sub(r"\s+", "_", project.name)
    return f"{stem}_Production_Planning.xlsx"


def substitute_row_index(template: str, row: int) -> str:
    """Formula text for one row; a leading '=' is added when missing."""
    if not isinstance(template, str):
        raise TypeError(f"Formula template must be a string, got {type(template).__name__}")
    text = template.replace(ROW_PLACEHOLDER, str(row)).strip()
    return text if text.startswith("=") else f"={text}"


def is_rate_header(header: str, include_percent: bool = True) -> bool:
    lowered = header.lower()
    return "rate" in lowered or (include_percent and "%" in lowered)


def _structured_name(header: str) -> str:
    # Special characters inside a structured reference are escaped with '
    return re.sub(r"(['#\[\]])", r"'\1", header)


def _merge(ws, start_row, start_col, end_row, end_col):
    if start_row == end_row and start_col == end_col:
        return
    ws.merge_cells(start_row=start_row, start_column=start_col, end_row=end_row, end_column=end_col)


def _add_whole_number_formats(ws, ref: str) -> None:
    """#,##0 for whole numbers, #,##0.00 otherwise, tested per cell."""
    top_left = ref.split(":")[0]
    ws.conditional_formatting.add(ref, Rule(
        type="expression",
        formula=[f"MOD({top_left},1)=0"],
        dxf=DifferentialStyle(numFmt=WHOLE_FORMAT),
    ))
    ws.conditional_formatting.add(ref, Rule(
        type="expression",
        formula=[f"MOD({top_left},1)<>0"],
        dxf=DifferentialStyle(numFmt=DECIMAL_FORMAT),
    ))


def _add_table(ws, name: str, headers: Sequence[str], n_rows: int, style: str,
               sum_headers: Optional[Iterable[str]] = None) -> Table:
    """
    Register A1:<last> as a native table.

    Excel needs at least one data row, so an empty body keeps one blank row.
    When sum_headers is given a totals row is added below the body.
    """
    last_col = get_column_letter(len(headers))
    last_data_row = 1 + max(n_rows, 1)
    with_totals = sum_headers is not None
    summed = set(sum_headers or [])
    last_row = last_data_row + 1 if with_totals else last_data_row

    table = Table(displayName=name, ref=f"A1:{last_col}{last_row}")
    table.autoFilter = AutoFilter(ref=f"A1:{last_col}{last_data_row}")
    table.tableStyleInfo = TableStyleInfo(
        name=style,
        showFirstColumn=False,
        showLastColumn=False,
        showRowStripes=True,
        showColumnStripes=False,
    )
    if with_totals:
        table.totalsRowCount = 1

    for idx, header in enumerate(headers, 1):
        ws.cell(row=1, column=idx, value=header)
        col = TableColumn(id=idx, name=header)
        if with_totals:
            if header in summed:
                col.totalsRowFunction = "sum"
                ws.cell(row=last_row, column=idx,
                        value=f"=SUBTOTAL(109,{name}[{_structured_name(header)}])")
            elif idx == 1:
                col.totalsRowLabel = "Total"
                ws.cell(row=last_row, column=idx, value="Total")
        table.tableColumns.append(col)

    ws.add_table(table)
    return table


def _unique_daily_columns(columns: Sequence[DailyColumn], reserved: Sequence[str]) -> List[DailyColumn]:
    seen = {h.lower() for h in reserved}
    kept = []
    for col in columns:
        if col.header.lower() in seen:
            logger.warning("Dropping daily column %r: header already used", col.header)
            continue
        seen.add(col.header.lower())
        kept.append(col)
    return kept


# ═════════════════════════════════════════════════════════════════════════
# SHEET 1: DAILY PRODUCTION KEY
# Columns: A=Date, B=Day, C=Week, D=Month, E=Name, F+ = daily columns
# ═════════════════════════════════════════════════════════════════════════
DAILY_BASE_COLUMNS = [("Date", 15), ("Day", 15), ("Week", 10), ("Month", 15), ("Name", 20)]


def build_daily_key_sheet(wb, project: ProjectData, result: PlanResult, options: WorkbookOptions):
    ws = wb.active
    ws.title = DAILY_SHEET
    ws.sheet_properties.tabColor = BLUE

    base_headers = [h for h, _ in DAILY_BASE_COLUMNS]
    daily_cols = _unique_daily_columns(project.daily_columns, base_headers)
    headers = base_headers + [c.header for c in daily_cols]

    for ci, (_, width) in enumerate(DAILY_BASE_COLUMNS, 1):
        ws.column_dimensions[get_column_letter(ci)].width = width
    for ci in range(len(DAILY_BASE_COLUMNS) + 1, len(headers) + 1):
        ws.column_dimensions[get_column_letter(ci)].width = 15

    for idx, item in enumerate(result.schedule):
        r = idx + 2
        date_cell = ws.cell(row=r, column=1, value=item.date)
        date_cell.number_format = DATE_FORMAT
        ws.cell(row=r, column=2, value=f'=TEXT(A{r},"dddd")')
        ws.cell(row=r, column=3, value=f"=_xlfn.ISOWEEKNUM(A{r})")
        ws.cell(row=r, column=4, value=f'=TEXT(A{r},"mmmm")')
        ws.cell(row=r, column=5, value=item.name)

        for ci, col in enumerate(daily_cols, len(DAILY_BASE_COLUMNS) + 1):
            if col.formula:
                ws.cell(row=r, column=ci, value=substitute_row_index(col.formula, r))
            else:
                ws.cell(row=r, column=ci, value=item.value(col.key))

    n_rows = len(result.schedule)
    _add_table(
        ws, DAILY_TABLE, headers, n_rows, options.table_style,
        sum_headers=[c.header for c in daily_cols if not is_rate_header(c.header, include_percent=False)],
    )

    first_num_col = len(DAILY_BASE_COLUMNS) + 1
    if len(headers) >= first_num_col:
        last = get_column_letter(len(headers))
        _add_whole_number_formats(ws, f"{get_column_letter(first_num_col)}2:{last}{max(n_rows, 1) + 1}")

    logger.debug("Daily key sheet: %d rows, %d columns", n_rows, len(headers))
    return ws


# ═════════════════════════════════════════════════════════════════════════
# SHEET 2: PRODUCTION PLAN
# Row 1 = title, Rows 2-3 = section bands, Row 4 = headers, Row 5+ = days
# Columns: A=Date, B=Month, C+ = plan columns grouped by section
# ═════════════════════════════════════════════════════════════════════════
def plan_columns(project: ProjectData) -> List[ProjectColumn]:
    """Date and Month, then the planner's columns grouped Target, Actual, Accumulative."""
    builtins = [
        ProjectColumn("Date", "date", "Target", width=15),
        ProjectColumn("Month", "month", "Target", width=15),
    ]
    grouped = sorted(project.columns, key=lambda c: SECTIONS.index(c.section))
    return builtins + grouped


def _write_section_bands(ws, columns: Sequence[ProjectColumn], unit_label: str):
    col_idx = 1
    for section in SECTIONS:
        count = sum(1 for c in columns if c.section == section)
        if not count:
            continue
        start, end = col_idx, col_idx + count - 1

        if section == "Target":
            _merge(ws, 2, start, 3, end)
            cell = ws.cell(row=2, column=start, value=f"Target {unit_label} Output")
            cell.fill = target_fill
            cell.font = bold_font
            cell.alignment = align_center
        else:
            _merge(ws, 2, start, 2, end)
            caption = f"{unit_label} Output Tracking" if section == "Actual" else section
            cell2 = ws.cell(row=2, column=start, value=caption)
            cell2.fill = actual_band_fill
            cell2.font = band_font
            cell2.alignment = align_center

            _merge(ws, 3, start, 3, end)
            cell3 = ws.cell(row=3, column=start, value=section)
            cell3.fill = SECTION_FILLS[section]
            cell3.font = bold_font
            cell3.alignment = align_center

        col_idx += count


def build_plan_sheet(wb, project: ProjectData, result: PlanResult, options: WorkbookOptions):
    ws = wb.create_sheet(sanitize_sheet_name(f"{project.name} Plan"))
    ws.sheet_properties.tabColor = TITLE_GREEN

    columns = plan_columns(project)
    n_cols = len(columns)
    last_col = get_column_letter(n_cols)

    for ci, col in enumerate(columns, 1):
        ws.column_dimensions[get_column_letter(ci)].width = col.width or 18

    # Row 1: title
    _merge(ws, 1, 1, 1, n_cols)
    title = ws.cell(row=1, column=1, value=f"{project.name}: Production Plan & Daily Output Tracking")
    title.fill = title_fill
    title.font = title_font
    title.alignment = align_center

    # Rows 2-3: bands
    _write_section_bands(ws, columns, project.unit_label)

    # Row 4: headers
    for ci, col in enumerate(columns, 1):
        cell = ws.cell(row=4, column=ci, value=col.header)
        cell.font = bold_font
        cell.alignment = align_header
        cell.border = thin_border
        cell.fill = SECTION_FILLS[col.section]
    ws.row_dimensions[4].height = 40

    # Rows 5+: one per unique date
    for idx, day in enumerate(result.days):
        r = PLAN_FIRST_ROW + idx
        for ci, col in enumerate(columns, 1):
            cell = ws.cell(row=r, column=ci)
            if ci == 1:
                cell.value = day
                cell.number_format = DATE_FORMAT
            elif ci == 2:
                cell.value = f'=TEXT(A{r},"mmmm")'
            elif col.formula:
                cell.value = substitute_row_index(col.formula, r)
            cell.border = thin_border
            if ci > 2 and is_rate_header(col.header):
                cell.number_format = PERCENT_FORMAT

    # Grand Total
    total_row = PLAN_FIRST_ROW + len(result.days)
    ws.cell(row=total_row, column=1, value="Grand Total")
    for ci, col in enumerate(columns, 1):
        cell = ws.cell(row=total_row, column=ci)
        cell.font = bold_font
        cell.border = total_border
        cell.fill = total_fill
        if ci <= 2 or is_rate_header(col.header):
            continue
        letter = get_column_letter(ci)
        if result.days:
            cell.value = f"=SUM({letter}{PLAN_FIRST_ROW}:{letter}{total_row - 1})"
        else:
            cell.value = 0

    if n_cols >= 3:
        _add_whole_number_formats(ws, f"C{PLAN_FIRST_ROW}:{last_col}{total_row}")

    logger.debug("Plan sheet %r: %d days, %d columns", ws.title, len(result.days), n_cols)
    return ws


# ═════════════════════════════════════════════════════════════════════════
# SHEET 3: PIVOT
# Columns: A=Week, B=Month, C+ = pivot columns
# ═════════════════════════════════════════════════════════════════════════
PIVOT_BASE_COLUMNS = [("Week", 10), ("Month", 15)]


def build_pivot_sheet(wb, project: ProjectData, result: PlanResult, options: WorkbookOptions):
    ws = wb.create_sheet(PIVOT_SHEET)
    ws.sheet_properties.tabColor = TEAL

    base_headers = [h for h, _ in PIVOT_BASE_COLUMNS]
    source = project.pivot_columns if project.pivot_columns is not None else default_pivot_columns()
    pivot_cols = []
    seen = {h.lower() for h in base_headers}
    for col in source:
        if col.header.lower() in seen:
            continue
        seen.add(col.header.lower())
        pivot_cols.append(col)
    headers = base_headers + [c.header for c in pivot_cols]

    for ci, (_, width) in enumerate(PIVOT_BASE_COLUMNS, 1):
        ws.column_dimensions[get_column_letter(ci)].width = width
    for ci in range(len(PIVOT_BASE_COLUMNS) + 1, len(headers) + 1):
        ws.column_dimensions[get_column_letter(ci)].width = 18

    for idx, week in enumerate(result.weeks):
        r = idx + 2
        ws.cell(row=r, column=1, value=week)
        ws.cell(row=r, column=2,
                value=f"=INDEX({DAILY_TABLE}[Month], MATCH(A{r}, {DAILY_TABLE}[Week], 0))")
        for ci, col in enumerate(pivot_cols, len(PIVOT_BASE_COLUMNS) + 1):
            ws.cell(row=r, column=ci, value=substitute_row_index(col.formula, r))

    n_rows = len(result.weeks)
    _add_table(
        ws, PIVOT_TABLE, headers, n_rows, options.pivot_table_style,
        sum_headers=[c.header for c in pivot_cols if not is_rate_header(c.header)],
    )

    if pivot_cols:
        last = get_column_letter(len(headers))
        _add_whole_number_formats(ws, f"C2:{last}{max(n_rows, 1) + 1}")

    logger.debug("Pivot sheet: %d weeks, %d columns", n_rows, len(headers))
    return ws


# ═════════════════════════════════════════════════════════════════════════
# SHEET 4: DASHBOARD
# Row 1 = title, Row 3+ = label | metric
# ═════════════════════════════════════════════════════════════════════════
DASHBOARD_FIRST_ROW = 3


def build_dashboard_sheet(wb, project: ProjectData, result: PlanResult, options: WorkbookOptions):
    ws = wb.create_sheet(DASHBOARD_SHEET)
    ws.sheet_properties.tabColor = NAVY

    ws.merge_cells("A1:B1")
    ws["A1"] = "Project Summary Dashboard"
    ws["A1"].font = dash_title_font
    ws["A1"].alignment = Alignment(horizontal="center")

    metrics = project.dashboard_metrics
    if metrics is None:
        metrics = default_dashboard_metrics(project.goal)

    for idx, metric in enumerate(metrics):
        r = DASHBOARD_FIRST_ROW + idx
        label = ws.cell(row=r, column=1, value=metric.label)
        label.font = bold_font
        cell = ws.cell(row=r, column=2, value=substitute_row_index(metric.formula, r))
        if metric.format:
            cell.number_format = metric.format
        else:
            _add_whole_number_formats(ws, f"B{r}")

    ws.column_dimensions["A"].width = 30
    ws.column_dimensions["B"].width = 25

    logger.debug("Dashboard sheet: %d metrics", len(metrics))
    return ws


# ═════════════════════════════════════════════════════════════════════════
# WORKBOOK
# ═════════════════════════════════════════════════════════════════════════
def build_workbook(project: ProjectData, options: Optional[WorkbookOptions] = None) -> Workbook:
    """Run the model and render every sheet; any failure aborts the whole workbook."""
    options = options or WorkbookOptions()
    result = run_model(project)

    wb = Workbook()
    wb.properties.creator = options.creator

    steps = [
        (DAILY_SHEET, build_daily_key_sheet),
        ("Production Plan", build_plan_sheet),
        (PIVOT_SHEET, build_pivot_sheet),
    ]
    if options.include_dashboard:
        steps.append((DASHBOARD_SHEET, build_dashboard_sheet))

    for stage, builder in steps:
        try:
            builder(wb, project, result, options)
        except Exception as exc:
            logger.exception("Failed to build %s sheet for %s", stage, project.name)
            raise WorkbookRenderError(f"{stage} sheet", exc) from exc

    logger.info("Built workbook for %s: %s", project.name, ", ".join(wb.sheetnames))
    return wb


def workbook_to_bytes(wb: Workbook) -> bytes:
    buf = io.BytesIO()
    try:
        wb.save(buf)
    except Exception as exc:
        logger.exception("Failed to serialize workbook")
        raise WorkbookRenderError("serialization", exc) from exc
    return buf.getvalue()


def generate_excel_file(project: ProjectData, options: Optional[WorkbookOptions] = None) -> bytes:
    return workbook_to_bytes(build_workbook(project, options))


async def generate_excel_file_async(project: ProjectData, options: Optional[WorkbookOptions] = None) -> bytes:
    """Same as generate_excel_file; only serialization runs off the event loop."""
    wb = build_workbook(project, options)
    return await asyncio.to_thread(workbook_to_bytes, wb)


# ═════════════════════════════════════════════════════════════════════════
# MAIN
# ═════════════════════════════════════════════════════════════════════════
def main():
    from production_plan.logging_config import configure_logging

    configure_logging()
    project = sample_project()

    print(f"Building production plan for {project.name}...")
    data = generate_excel_file(project)

    out_path = Path.cwd() / output_filename(project)
    out_path.write_bytes(data)
    print(f"\nSaved to: {out_path}")
    print("Open in Excel and fill in the Actual column of the Daily_Production_Key sheet!")


if __name__ == "__main__":
    main()
