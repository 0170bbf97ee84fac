"""
P&L Aggregation

One three-mode aggregator (manual | children | cumulative) used for both the
base blueprint values (month-keyed records) and the initiative overlay
(year-scoped scalars, or month-keyed records for the monthly table).

Key invariant: the overlay is pushed up through exactly the same rules as the
base values, so "with initiatives" stays consistent with "without" at every
level of the tree.
"""

from dataclasses import dataclass
from typing import Optional, List, Dict, Any, Callable, Iterable, Iterator, Tuple
import logging

from financial_models import (
    LineItem, LineComputation, SignConvention, Initiative, FinancialEntry,
    MonthDescriptor, is_finite_number,
)
from financial_math import (
    build_empty_record, build_manual_value_map, line_sign, parse_month_key,
)
from pnl_hierarchy import LineHierarchy

logger = logging.getLogger(__name__)


# =============================================================================
# VALUE OPERATIONS
# =============================================================================

@dataclass(frozen=True)
class ValueOps:
    """Zero and addition for the value type being aggregated"""
    zero: Callable[[], Any]
    add: Callable[[Any, Any], Any]  # Must not mutate either operand


SCALAR_OPS = ValueOps(zero=lambda: 0.0, add=lambda a, b: a + b)


def record_ops(month_keys: List[str]) -> ValueOps:
    def add(a: Dict[str, float], b: Dict[str, float]) -> Dict[str, float]:
        return {key: a.get(key, 0.0) + b.get(key, 0.0) for key in month_keys}

    return ValueOps(zero=lambda: build_empty_record(month_keys), add=add)


def resolve_values(
    hierarchy: LineHierarchy,
    leaf_values: Dict[str, Any],
    ops: ValueOps,
) -> Dict[str, Any]:
    """
    Resolve every line's value.

    - manual: its own leaf value (zero when absent)
    - children: sum of its indentation children
    - cumulative: running total of all manual lines before it in document order

    Memoized by line id; each line is computed exactly once.
    """
    cumulative_lookup: Dict[str, Any] = {}
    running = ops.zero()
    for line in hierarchy.lines:
        if line.computation == LineComputation.MANUAL:
            running = ops.add(running, leaf_values.get(line.id, ops.zero()))
        elif line.computation == LineComputation.CUMULATIVE:
            cumulative_lookup[line.id] = running

    memo: Dict[str, Any] = {}

    def resolve(line: LineItem) -> Any:
        if line.id in memo:
            return memo[line.id]
        if line.computation == LineComputation.MANUAL:
            computed = leaf_values.get(line.id, ops.zero())
        elif line.computation == LineComputation.CHILDREN:
            computed = ops.zero()
            for child_id in hierarchy.indent_children.get(line.id, []):
                child = hierarchy.line_by_id.get(child_id)
                if child is None:
                    continue
                computed = ops.add(computed, resolve(child))
        else:
            computed = cumulative_lookup.get(line.id, ops.zero())
        memo[line.id] = computed
        return computed

    # Children always follow their parent, so resolving in reverse document
    # order finds every child already memoized.
    for line in reversed(hierarchy.lines):
        resolve(line)

    return {line.id: memo[line.id] for line in hierarchy.lines}


def resolve_base_values(
    hierarchy: LineHierarchy,
    month_keys: List[str],
    convention: SignConvention = SignConvention.AS_ENTERED,
) -> Dict[str, Dict[str, float]]:
    """Month-keyed base values for every line."""
    manual_map = build_manual_value_map(hierarchy.lines, month_keys, convention)
    return resolve_values(hierarchy, manual_map, record_ops(month_keys))


# =============================================================================
# INITIATIVE OVERLAY
# =============================================================================

def filter_initiatives(
    initiatives: Iterable[Initiative],
    stage_filter: Optional[Iterable[str]] = None,
) -> List[Initiative]:
    """An empty or missing filter keeps every initiative."""
    allowed = {str(getattr(stage, "value", stage)) for stage in (stage_filter or [])}
    if not allowed:
        return list(initiatives)
    return [initiative for initiative in initiatives if initiative.active_stage in allowed]


def iter_overlay_entries(
    hierarchy: LineHierarchy,
    initiatives: Iterable[Initiative],
    stage_filter: Optional[Iterable[str]] = None,
) -> Iterator[Tuple[LineItem, FinancialEntry]]:
    """
    Yield (target line, entry) for every active-stage entry that routes to a
    manual blueprint line. Dangling or derived-line codes are skipped.
    """
    line_by_code = {line.code.strip().upper(): line for line in hierarchy.lines}
    for initiative in filter_initiatives(initiatives, stage_filter):
        for entry in initiative.active_entries():
            code = entry.normalized_code
            if not code:
                continue
            line = line_by_code.get(code)
            if line is None:
                logger.debug(f"Initiative {initiative.id}: no blueprint line for code {code}")
                continue
            if line.computation != LineComputation.MANUAL:
                continue
            yield line, entry


def collect_direct_effects(
    hierarchy: LineHierarchy,
    initiatives: Iterable[Initiative],
    year: int,
    stage_filter: Optional[Iterable[str]] = None,
    convention: SignConvention = SignConvention.AS_ENTERED,
) -> Dict[str, float]:
    """Year-scoped effect per targeted manual line id."""
    effects: Dict[str, float] = {}
    for line, entry in iter_overlay_entries(hierarchy, initiatives, stage_filter):
        total = 0.0
        for month_key, raw in entry.distribution.items():
            parsed = parse_month_key(month_key)
            if parsed is None or parsed.year != year or not is_finite_number(raw):
                continue
            total += float(raw)
        if total == 0:
            continue
        effects[line.id] = effects.get(line.id, 0.0) + total * line_sign(line, convention)
    return effects


def overlay_month_index(
    hierarchy: LineHierarchy,
    initiatives: Iterable[Initiative],
    stage_filter: Optional[Iterable[str]] = None,
) -> List[MonthDescriptor]:
    """Calendar months carrying a finite amount in any routed entry, sorted."""
    months: Dict[Tuple[int, int], MonthDescriptor] = {}
    for _, entry in iter_overlay_entries(hierarchy, initiatives, stage_filter):
        for month_key, raw in entry.distribution.items():
            parsed = parse_month_key(month_key)
            if parsed is None or not is_finite_number(raw):
                continue
            months.setdefault((parsed.year, parsed.month), parsed)
    return [months[slot] for slot in sorted(months)]


def collect_initiative_records(
    hierarchy: LineHierarchy,
    initiatives: Iterable[Initiative],
    month_keys: List[str],
    stage_filter: Optional[Iterable[str]] = None,
    convention: SignConvention = SignConvention.AS_ENTERED,
) -> Dict[str, Dict[str, float]]:
    """
    Month-keyed initiative deltas per targeted manual line id.

    Distribution keys are matched by calendar month, the same way the
    year-scoped overlay reads them. Months with no column in `month_keys` are
    dropped; callers that need them widen the index with `overlay_month_index`.
    """
    slots: Dict[Tuple[int, int], str] = {}
    for key in month_keys:
        parsed = parse_month_key(key)
        if parsed is not None:
            slots.setdefault((parsed.year, parsed.month), key)

    records: Dict[str, Dict[str, float]] = {}
    for line, entry in iter_overlay_entries(hierarchy, initiatives, stage_filter):
        record = records.setdefault(line.id, build_empty_record(month_keys))
        sign = line_sign(line, convention)
        for month_key, raw in entry.distribution.items():
            parsed = parse_month_key(month_key)
            if parsed is None or not is_finite_number(raw):
                continue
            slot = slots.get((parsed.year, parsed.month))
            if slot is None:
                continue
            record[slot] += float(raw) * sign
    return records


def resolve_initiative_effects(
    hierarchy: LineHierarchy,
    initiatives: Iterable[Initiative],
    year: int,
    stage_filter: Optional[Iterable[str]] = None,
    convention: SignConvention = SignConvention.AS_ENTERED,
) -> Dict[str, float]:
    """Propagated year-scoped initiative effect for every line."""
    direct = collect_direct_effects(hierarchy, initiatives, year, stage_filter, convention)
    return resolve_values(hierarchy, direct, SCALAR_OPS)


def resolve_initiative_records(
    hierarchy: LineHierarchy,
    initiatives: Iterable[Initiative],
    month_keys: List[str],
    stage_filter: Optional[Iterable[str]] = None,
    convention: SignConvention = SignConvention.AS_ENTERED,
) -> Dict[str, Dict[str, float]]:
    """Propagated month-keyed initiative deltas for every line."""
    direct = collect_initiative_records(
        hierarchy, initiatives, month_keys, stage_filter, convention
    )
    return resolve_values(hierarchy, direct, record_ops(month_keys))
