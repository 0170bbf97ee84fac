"""
Value resolution and initiative overlay tests.

Covers the three computation modes over month-keyed records and scalars,
and the routing of initiative entries onto blueprint lines.
"""

import pytest

from financial_models import SignConvention
from pnl_aggregation import (
    SCALAR_OPS,
    record_ops,
    resolve_values,
    resolve_base_values,
    collect_direct_effects,
    collect_initiative_records,
    resolve_initiative_effects,
    resolve_initiative_records,
    filter_initiatives,
    overlay_month_index,
)
from pnl_hierarchy import LineHierarchy
from pnl_builders import make_line, make_initiative

MONTHS = ["2024-01", "2024-02"]


class TestBaseValues:

    def test_gross_margin_scenario(self, gross_margin_blueprint):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        values = resolve_base_values(hierarchy, MONTHS)
        assert values["gross-margin"] == {"2024-01": 60.0, "2024-02": 70.0}
        assert values["revenue"] == {"2024-01": 100.0, "2024-02": 120.0}

    def test_children_sum(self):
        lines = [
            make_line("total", computation="children"),
            make_line("a", indent=1, months={"2024-01": 1, "2024-02": 2}),
            make_line("group", indent=1, computation="children"),
            make_line("g1", indent=2, months={"2024-01": 10}),
            make_line("g2", indent=2, months={"2024-02": 20}),
        ]
        values = resolve_base_values(LineHierarchy.from_lines(lines), MONTHS)
        assert values["group"] == {"2024-01": 10.0, "2024-02": 20.0}
        assert values["total"] == {"2024-01": 11.0, "2024-02": 22.0}

    def test_childless_children_line_is_zero(self):
        lines = [make_line("empty", computation="children"), make_line("a", months={"2024-01": 3})]
        values = resolve_base_values(LineHierarchy.from_lines(lines), MONTHS)
        assert values["empty"] == {"2024-01": 0.0, "2024-02": 0.0}

    def test_cumulative_is_running_total_of_manual_lines(self):
        lines = [
            make_line("rev-total", computation="children"),
            make_line("rev", indent=1, months={"2024-01": 100}),
            make_line("gp", computation="cumulative"),
            make_line("opex", months={"2024-01": -30}),
            make_line("ebitda", computation="cumulative"),
        ]
        values = resolve_base_values(LineHierarchy.from_lines(lines), MONTHS)
        # The children-mode total is not counted twice
        assert values["gp"]["2024-01"] == 100.0
        assert values["ebitda"]["2024-01"] == 70.0

    def test_cumulative_before_any_line_is_zero(self):
        lines = [make_line("open", computation="cumulative"), make_line("a", months={"2024-01": 5})]
        values = resolve_base_values(LineHierarchy.from_lines(lines), MONTHS)
        assert values["open"] == {"2024-01": 0.0, "2024-02": 0.0}

    def test_every_line_resolved(self, populated_default_blueprint):
        hierarchy = LineHierarchy.from_lines(populated_default_blueprint.lines)
        values = resolve_base_values(hierarchy, MONTHS)
        assert set(values) == {line.id for line in hierarchy.lines}

    def test_scalar_and_record_ops_agree(self, populated_default_blueprint):
        hierarchy = LineHierarchy.from_lines(populated_default_blueprint.lines)
        records = resolve_base_values(hierarchy, MONTHS)
        leaf_scalars = {
            line.id: float(line.months.get("2024-01", 0))
            for line in hierarchy.lines if line.computation.value == "manual"
        }
        scalars = resolve_values(hierarchy, leaf_scalars, SCALAR_OPS)
        for line_id, record in records.items():
            assert scalars[line_id] == pytest.approx(record["2024-01"])

    def test_record_ops_do_not_mutate_operands(self):
        ops = record_ops(MONTHS)
        a = {"2024-01": 1.0, "2024-02": 2.0}
        b = {"2024-01": 3.0, "2024-02": 4.0}
        assert ops.add(a, b) == {"2024-01": 4.0, "2024-02": 6.0}
        assert a == {"2024-01": 1.0, "2024-02": 2.0}


class TestInitiativeOverlay:

    def test_direct_effect_and_propagation(self, gross_margin_blueprint, revenue_initiative):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        direct = collect_direct_effects(hierarchy, [revenue_initiative], 2024)
        assert direct == {"revenue": 10.0}
        effects = resolve_initiative_effects(hierarchy, [revenue_initiative], 2024)
        assert effects["revenue"] == 10.0
        assert effects["gross-margin"] == 10.0
        assert effects["cogs"] == 0.0

    def test_dangling_code_ignored(self, gross_margin_blueprint):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        initiative = make_initiative("ghost", [("DOES_NOT_EXIST", {"2024-01": 999})])
        effects = resolve_initiative_effects(hierarchy, [initiative], 2024)
        assert all(value == 0.0 for value in effects.values())

    def test_dangling_code_does_not_disturb_other_entries(self, gross_margin_blueprint, revenue_initiative):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        ghost = make_initiative("ghost", [("DOES_NOT_EXIST", {"2024-01": 999})])
        with_ghost = resolve_initiative_effects(hierarchy, [revenue_initiative, ghost], 2024)
        without = resolve_initiative_effects(hierarchy, [revenue_initiative], 2024)
        assert with_ghost == without

    def test_months_outside_year_ignored(self, gross_margin_blueprint):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        initiative = make_initiative("i", [("REVENUE", {"2023-12": 50, "2024-02": 5, "2025-01": 7})])
        assert collect_direct_effects(hierarchy, [initiative], 2024) == {"revenue": 5.0}

    def test_code_matching_is_trimmed_and_case_insensitive(self, gross_margin_blueprint):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        initiative = make_initiative("i", [("  cogs ", {"2024-01": -4})])
        assert collect_direct_effects(hierarchy, [initiative], 2024) == {"cogs": -4.0}

    def test_entries_on_derived_lines_ignored(self, gross_margin_blueprint):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        initiative = make_initiative("i", [("GROSS_MARGIN", {"2024-01": 25})])
        assert collect_direct_effects(hierarchy, [initiative], 2024) == {}

    def test_non_numeric_amounts_skipped(self, gross_margin_blueprint):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        initiative = make_initiative("i", [("REVENUE", {"2024-01": "abc", "2024-02": 3, "2024-13": 9})])
        assert collect_direct_effects(hierarchy, [initiative], 2024) == {"revenue": 3.0}

    def test_all_financial_kinds_contribute(self, gross_margin_blueprint):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        benefit = make_initiative("a", [("REVENUE", {"2024-01": 10})], kind="oneoff-benefits")
        cost = make_initiative("b", [("COGS", {"2024-01": -3})], kind="recurring-costs")
        effects = resolve_initiative_effects(hierarchy, [benefit, cost], 2024)
        assert effects["gross-margin"] == 7.0

    def test_cost_negative_convention(self, gross_margin_blueprint):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        initiative = make_initiative("i", [("COGS", {"2024-01": 5})])
        direct = collect_direct_effects(
            hierarchy, [initiative], 2024, convention=SignConvention.COST_NEGATIVE
        )
        assert direct == {"cogs": -5.0}

    def test_monthly_records(self, gross_margin_blueprint, revenue_initiative):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        direct = collect_initiative_records(hierarchy, [revenue_initiative], MONTHS)
        assert direct == {"revenue": {"2024-01": 10.0, "2024-02": 0.0}}
        records = resolve_initiative_records(hierarchy, [revenue_initiative], MONTHS)
        assert records["gross-margin"] == {"2024-01": 10.0, "2024-02": 0.0}

    def test_monthly_records_match_by_calendar_month(self, gross_margin_blueprint):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        initiative = make_initiative("i", [("REVENUE", {"2024-2": 4, "2024-05": 9})])
        direct = collect_initiative_records(hierarchy, [initiative], MONTHS)
        assert direct == {"revenue": {"2024-01": 0.0, "2024-02": 4.0}}

    def test_overlay_month_index(self, gross_margin_blueprint):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        initiative = make_initiative("i", [
            ("REVENUE", {"2025-01": 1, "2024-2": 4, "2024-02": 1, "bad": 3}),
            ("GROSS_MARGIN", {"2026-01": 7}),
            ("COGS", {"2024-07": "n/a"}),
        ])
        months = overlay_month_index(hierarchy, [initiative])
        assert [(month.year, month.month) for month in months] == [(2024, 2), (2025, 1)]


class TestStageFilter:

    def test_empty_filter_keeps_all(self):
        initiatives = [make_initiative("a", [], active_stage="l0"), make_initiative("b", [], active_stage="l4")]
        assert len(filter_initiatives(initiatives, [])) == 2
        assert len(filter_initiatives(initiatives, None)) == 2

    def test_filter_by_active_stage(self, gross_margin_blueprint, revenue_initiative):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        assert collect_direct_effects(hierarchy, [revenue_initiative], 2024, stage_filter=["l2"]) == {}
        assert collect_direct_effects(hierarchy, [revenue_initiative], 2024, stage_filter=["l1"]) == {"revenue": 10.0}

    def test_missing_active_stage_data_contributes_nothing(self, gross_margin_blueprint, revenue_initiative):
        hierarchy = LineHierarchy.from_lines(gross_margin_blueprint.lines)
        revenue_initiative.active_stage = "l3"
        assert collect_direct_effects(hierarchy, [revenue_initiative], 2024) == {}
