"""
Month index and record helper tests.
"""

import pytest

from financial_models import SignConvention
from financial_math import (
    parse_month_key,
    build_month_index,
    available_years,
    extend_month_index,
    build_manual_value_map,
    compute_year_totals,
    year_rollup,
)
from pnl_builders import make_line


class TestParseMonthKey:

    def test_valid_key(self):
        month = parse_month_key("2024-03")
        assert (month.key, month.year, month.month) == ("2024-03", 2024, 3)

    @pytest.mark.parametrize("key", [
        "2024-13", "2024-00", "2024", "abc-01", "2024-01-05", "", "2024-xx",
        "2024-1\u00b2",                # superscript two
        "\u0662\u0660\u0662\u0664-01",  # Arabic-Indic digits
    ])
    def test_malformed_keys_rejected(self, key):
        assert parse_month_key(key) is None

    def test_non_string_rejected(self):
        assert parse_month_key(None) is None


class TestBuildMonthIndex:

    def test_sorted_and_deduplicated(self):
        lines = [
            make_line("a", months={"2025-01": 1, "2024-02": 2}),
            make_line("b", months={"2024-02": 3, "2024-11": 4}),
        ]
        keys = [month.key for month in build_month_index(lines)]
        assert keys == ["2024-02", "2024-11", "2025-01"]

    def test_malformed_keys_dropped(self):
        lines = [make_line("a", months={"2024-01": 1, "bogus": 2, "2024-13": 3})]
        assert [month.key for month in build_month_index(lines)] == ["2024-01"]

    def test_lines_without_months_contribute_nothing(self):
        lines = [make_line("a"), make_line("b", computation="cumulative")]
        assert build_month_index(lines) == []

    def test_available_years(self):
        lines = [make_line("a", months={"2023-12": 1, "2024-01": 1, "2024-05": 1})]
        assert available_years(build_month_index(lines)) == [2023, 2024]

    def test_extend_keeps_existing_calendar_months(self):
        index = build_month_index([make_line("a", months={"2024-01": 1, "2024-03": 1})])
        extra = [parse_month_key(key) for key in ("2024-1", "2024-02", "2023-12")]
        keys = [month.key for month in extend_month_index(index, extra)]
        assert keys == ["2023-12", "2024-01", "2024-02", "2024-03"]


class TestManualValueMap:

    def test_zero_fills_missing_months(self):
        lines = [make_line("a", months={"2024-01": 5})]
        manual = build_manual_value_map(lines, ["2024-01", "2024-02"])
        assert manual["a"] == {"2024-01": 5.0, "2024-02": 0.0}

    def test_only_manual_lines(self):
        lines = [make_line("a", months={"2024-01": 5}), make_line("t", computation="children")]
        assert set(build_manual_value_map(lines, ["2024-01"])) == {"a"}

    def test_non_numeric_amounts_become_zero(self):
        line = make_line("a")
        line.months = {"2024-01": "n/a", "2024-02": float("nan"), "2024-03": "7.5"}
        manual = build_manual_value_map([line], ["2024-01", "2024-02", "2024-03"])
        assert manual["a"] == {"2024-01": 0.0, "2024-02": 0.0, "2024-03": 7.5}

    def test_cost_negative_convention(self):
        lines = [make_line("c", nature="cost", months={"2024-01": 40})]
        as_entered = build_manual_value_map(lines, ["2024-01"])
        negated = build_manual_value_map(lines, ["2024-01"], SignConvention.COST_NEGATIVE)
        assert as_entered["c"]["2024-01"] == 40
        assert negated["c"]["2024-01"] == -40


class TestYearTotals:

    def test_rollup_by_year(self):
        values = {"2024-01": 10.0, "2024-02": 5.0, "2025-01": 7.0}
        assert compute_year_totals(values) == {2024: 15.0, 2025: 7.0}

    def test_missing_year_is_zero(self):
        assert year_rollup({"2024-01": 10.0}, 2030) == 0.0
