"""
Month-keyed record helpers for the P&L tree.

A "record" is a dict {YYYY-MM: float} zero-filled over the month index.
"""

import re
from collections import OrderedDict
from typing import Optional, List, Dict, Iterable

from financial_models import (
    LineItem, LineComputation, LineNature, SignConvention, MonthDescriptor, to_number
)

# ASCII digits only: superscripts and other Unicode digits are malformed
MONTH_KEY_RE = re.compile(r"\s*([0-9]{1,9})\s*-\s*([0-9]{1,4})\s*")


def parse_month_key(key: str) -> Optional[MonthDescriptor]:
    """Parse 'YYYY-MM'; returns None for anything malformed."""
    if not isinstance(key, str):
        return None
    match = MONTH_KEY_RE.fullmatch(key)
    if match is None:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if month < 1 or month > 12:
        return None
    return MonthDescriptor(key=key, year=year, month=month)


def build_month_index(lines: Iterable[LineItem]) -> List[MonthDescriptor]:
    """Sorted, deduplicated months seen across every line's `months` map."""
    keys = set()
    for line in lines:
        keys.update((line.months or {}).keys())
    parsed = [parse_month_key(key) for key in keys]
    months = [month for month in parsed if month is not None]
    # Distinct keys like '2024-1' and '2024-01' may parse to the same month
    months.sort(key=lambda m: (m.year, m.month, m.key))
    return months


def available_years(month_index: List[MonthDescriptor]) -> List[int]:
    return sorted({month.year for month in month_index})


def build_empty_record(month_keys: List[str]) -> Dict[str, float]:
    return OrderedDict((key, 0.0) for key in month_keys)


def add_to_record(target: Dict[str, float], source: Dict[str, float]) -> Dict[str, float]:
    """Add `source` into `target` over target's keys only."""
    for key in target:
        target[key] = target[key] + source.get(key, 0.0)
    return target


def line_sign(line: LineItem, convention: SignConvention = SignConvention.AS_ENTERED) -> int:
    if convention == SignConvention.COST_NEGATIVE and line.nature == LineNature.COST:
        return -1
    return 1


def build_manual_value_map(
    lines: List[LineItem],
    month_keys: List[str],
    convention: SignConvention = SignConvention.AS_ENTERED,
) -> Dict[str, Dict[str, float]]:
    """Zero-filled records for manual lines; non-numeric amounts become 0."""
    manual_map = {}
    for line in lines:
        if line.computation != LineComputation.MANUAL:
            continue
        sign = line_sign(line, convention)
        record = build_empty_record(month_keys)
        for key in month_keys:
            if key in line.months:
                record[key] = sign * to_number(line.months[key])
        manual_map[line.id] = record
    return manual_map


def compute_year_totals(values: Dict[str, float]) -> Dict[int, float]:
    """Roll a month-keyed record up into {year: total}."""
    totals: Dict[int, float] = {}
    for key, value in values.items():
        parsed = parse_month_key(key)
        if parsed is None:
            continue
        totals[parsed.year] = totals.get(parsed.year, 0.0) + value
    return totals


def year_rollup(values: Dict[str, float], year: int) -> float:
    return compute_year_totals(values).get(year, 0.0)


def extend_month_index(
    month_index: List[MonthDescriptor], extra: Iterable[MonthDescriptor]
) -> List[MonthDescriptor]:
    """`month_index` plus every `extra` month whose calendar month it lacks."""
    slots = {(month.year, month.month) for month in month_index}
    merged = list(month_index)
    for month in extra:
        if (month.year, month.month) in slots:
            continue
        slots.add((month.year, month.month))
        merged.append(month)
    merged.sort(key=lambda m: (m.year, m.month, m.key))
    return merged
