from __future__ import annotations

from datetime import date, datetime

import pytest

from production_plan.config import ActualDataItem, DailyColumn, ProjectData
from production_plan.errors import InvalidDateRangeError
from production_plan.model import (
    curve_weight,
    distribute_targets,
    expand_schedule,
    iso_weeks,
    merge_actual_data,
    run_model,
    schedule_weights,
)


def _project(**overrides) -> ProjectData:
    fields = dict(
        name="Test",
        goal=100,
        unit="units",
        start_date="2024-01-01",
        end_date="2024-01-04",
        resources=["A", "B"],
    )
    fields.update(overrides)
    return ProjectData(**fields)


def test_schedule_is_days_times_resources_day_major():
    items = expand_schedule("2024-01-01", "2024-01-04", ["A", "B"])

    assert len(items) == 8
    assert [(i.date, i.name) for i in items[:4]] == [
        (date(2024, 1, 1), "A"),
        (date(2024, 1, 1), "B"),
        (date(2024, 1, 2), "A"),
        (date(2024, 1, 2), "B"),
    ]
    assert sum(1 for i in items if i.date == date(2024, 1, 1)) == 2


@pytest.mark.parametrize("days,resources", [(1, 1), (7, 3), (31, 2), (366, 1)])
def test_schedule_size(days, resources):
    start = date(2024, 1, 1)
    end = date.fromordinal(start.toordinal() + days - 1)
    names = [f"R{i}" for i in range(resources)]

    assert len(expand_schedule(start, end, names)) == days * resources


def test_duplicate_resources_produce_duplicate_rows():
    items = expand_schedule("2024-01-01", "2024-01-01", ["A", "A"])
    assert [i.name for i in items] == ["A", "A"]


def test_actual_match_is_case_insensitive():
    actuals = [ActualDataItem("2024-01-02", "a", 5)]
    items = expand_schedule("2024-01-01", "2024-01-04", ["A", "B"], actuals)

    matched = [i for i in items if i.actual is not None]
    assert len(matched) == 1
    assert matched[0].date == date(2024, 1, 2)
    assert matched[0].name == "A"
    assert matched[0].actual == 5


def test_actual_match_ignores_time_of_day_and_takes_first():
    actuals = [
        ActualDataItem("2024-01-02T17:45:00", "A", 7),
        ActualDataItem("2024-01-02", "A", 99),
    ]
    items = expand_schedule("2024-01-02", "2024-01-02", ["A"], actuals)
    assert items[0].actual == 7


def test_extra_fields_copied_for_daily_columns():
    actuals = [ActualDataItem("2024-01-01", "A", 3, {"ops": 4})]
    cols = [DailyColumn("Ops", "ops"), DailyColumn("Scrap", "scrap")]
    items = expand_schedule("2024-01-01", "2024-01-02", ["A"], actuals, cols)

    assert items[0].value("ops") == 4
    assert items[0].value("scrap") is None
    assert items[1].value("ops") is None
    assert items[1].actual is None


def test_unparsable_actual_dates_are_ignored():
    actuals = [ActualDataItem("someday", "A", 3)]
    items = expand_schedule("2024-01-01", "2024-01-01", ["A"], actuals)
    assert items[0].actual is None


@pytest.mark.parametrize(
    "start,end,field",
    [
        ("not-a-date", "2024-01-04", "start_date"),
        ("", "2024-01-04", "start_date"),
        ("today", "2024-01-04", "start_date"),
        ("now", "2024-01-04", "start_date"),
        (5, "2024-01-04", "start_date"),
        ("2024-01-01", "2024-02-30", "end_date"),
        ("2024-01-01", "today", "end_date"),
        ("2024-01-05", "2024-01-04", "date_range"),
    ],
)
def test_invalid_date_range(start, end, field):
    with pytest.raises(InvalidDateRangeError) as exc:
        expand_schedule(start, end, ["A"])
    assert exc.value.field == field
    assert field in str(exc.value)


def test_curve_boundaries():
    assert curve_weight(0.0) == pytest.approx(0.3)
    assert curve_weight(0.125) == pytest.approx(0.45)
    assert curve_weight(0.25) == pytest.approx(0.6)
    assert curve_weight(0.5) == pytest.approx(0.8)
    assert curve_weight(0.75) == 1.0
    assert curve_weight(1.0) == 1.0


def test_weights_are_non_decreasing():
    weights = schedule_weights(257)
    assert all(a <= b for a, b in zip(weights, weights[1:]))
    assert weights[0] == pytest.approx(0.3)
    assert weights[-1] == 1.0


def test_eight_item_scenario():
    items = expand_schedule("2024-01-01", "2024-01-04", ["A", "B"])
    with_targets = distribute_targets(items, 100)

    weights = [0.3, 0.3 + 0.3 * (1 / 7) / 0.25]
    weights += [0.6 + 0.4 * ((i / 7) - 0.25) / 0.5 for i in range(2, 6)]
    weights += [1.0, 1.0]
    total = sum(weights)

    assert [t.target for t in with_targets] == pytest.approx([w / total * 100 for w in weights])
    assert sum(t.target for t in with_targets) == pytest.approx(100.0, rel=1e-9)


@pytest.mark.parametrize("n", [1, 2, 3, 10, 97, 1000])
@pytest.mark.parametrize("goal", [1, 100, 12345.67, -50])
def test_targets_sum_to_goal(n, goal):
    items = expand_schedule("2024-01-01", "2024-01-01", [f"R{i}" for i in range(n)])
    total = sum(i.target for i in distribute_targets(items, goal))
    assert total == pytest.approx(goal, rel=1e-9)


def test_single_item_gets_whole_goal():
    items = expand_schedule("2024-03-01", "2024-03-01", ["Solo"])
    assert distribute_targets(items, 42)[0].target == 42


def test_zero_goal_and_empty_schedule():
    items = expand_schedule("2024-01-01", "2024-01-03", ["A"])
    assert all(i.target == 0 for i in distribute_targets(items, 0))
    assert distribute_targets([], 100) == []


def test_negative_goal_is_proportional():
    items = distribute_targets(expand_schedule("2024-01-01", "2024-01-04", ["A"]), -10)
    assert all(i.target < 0 for i in items)
    assert items[0].target > items[-1].target


def test_merge_keeps_planner_entries():
    planner = [ActualDataItem("2024-01-01", "A", 10)]
    uploaded = [
        ActualDataItem("2024-01-01", "A", 99),
        ActualDataItem("2024-01-02", "A", 11),
    ]

    merged = merge_actual_data(planner, uploaded)

    assert [(m.date, m.actual) for m in merged] == [("2024-01-01", 10), ("2024-01-02", 11)]
    assert len(planner) == 1


def test_with_uploaded_actuals_returns_copy():
    project = _project(actual_data=[ActualDataItem("2024-01-01", "A", 1)])
    merged = project.with_uploaded_actuals([ActualDataItem("2024-01-03", "B", 2)])

    assert len(merged.actual_data) == 2
    assert len(project.actual_data) == 1


def test_iso_weeks_in_order_of_appearance():
    days = [date(2024, 12, 29), date(2024, 12, 30), date(2025, 1, 6)]
    assert iso_weeks(days) == [52, 1, 2]


def test_run_model_result():
    result = run_model(_project(daily_columns=[DailyColumn("Ops", "ops")]))

    assert len(result.schedule) == 8
    assert result.days == [date(2024, 1, d) for d in range(1, 5)]
    assert result.weeks == [1]
    assert list(result.frame.columns) == ["date", "name", "actual", "target", "ops"]
    assert result.frame["target"].sum() == pytest.approx(100.0)
    assert not hasattr(result, "total_weight")


def test_run_model_without_resources():
    result = run_model(_project(resources=[]))
    assert result.schedule == []
    assert result.days == []
    assert result.frame.empty


def test_date_objects_accepted_as_given():
    items = expand_schedule(datetime(2024, 1, 1, 9, 30), date(2024, 1, 2), ["A"])
    assert [i.date for i in items] == [date(2024, 1, 1), date(2024, 1, 2)]


def test_non_iso_actual_dates_are_ignored():
    actuals = [ActualDataItem("today", "A", 3), ActualDataItem(20240101, "A", 4)]
    items = expand_schedule("2024-01-01", "2024-01-01", ["A"], actuals)
    assert items[0].actual is None
