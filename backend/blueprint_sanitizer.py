"""
Blueprint Sanitizer

Normalizes a user-edited blueprint payload before it reaches the engine:
codes are slugified and de-duplicated, indents clamped, month keys validated.
Also builds the planning-horizon month columns for a blueprint.
"""

import re
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional, List, Dict, Any

from dateutil.relativedelta import relativedelta

from financial_models import (
    Blueprint, LineItem, LineComputation, LineNature, is_finite_number,
)
from blueprint_defaults import default_lines
from pnl_settings import DEFAULT_MONTH_COUNT, MIN_MONTH_COUNT, MAX_MONTH_COUNT, MAX_INDENT_LEVEL

MONTH_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}$")


class BlueprintValidationError(ValueError):
    """Raised when a blueprint payload cannot be interpreted at all"""
    pass


def slugify(value: str) -> str:
    normalized = re.sub(r"[^A-Z0-9]+", "_", value.strip().upper()).strip("_")
    return normalized or f"LINE_{uuid.uuid4().hex[:4].upper()}"


def clamp_indent(value: Any) -> int:
    if not is_finite_number(value):
        return 0
    return max(0, min(MAX_INDENT_LEVEL, int(float(value) // 1)))


def normalize_computation(value: Any) -> LineComputation:
    if value in (LineComputation.CHILDREN.value, LineComputation.CUMULATIVE.value):
        return LineComputation(value)
    return LineComputation.MANUAL


def normalize_nature(value: Any) -> LineNature:
    if value in (LineNature.COST.value, LineNature.SUMMARY.value):
        return LineNature(value)
    return LineNature.REVENUE


def sanitize_months(raw: Any) -> Dict[str, float]:
    if not isinstance(raw, dict):
        return {}
    months = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not MONTH_KEY_PATTERN.match(key):
            continue
        months[key] = float(value) if is_finite_number(value) else 0.0
    return months


def sanitize_lines(raw_lines: Any) -> List[LineItem]:
    if not isinstance(raw_lines, list):
        return []
    used_codes: Dict[str, int] = {}
    lines = []
    for source in raw_lines:
        if not isinstance(source, dict):
            continue
        name = source.get("name").strip() if isinstance(source.get("name"), str) else ""
        if not name:
            continue
        raw_id = source.get("id")
        line_id = raw_id.strip() if isinstance(raw_id, str) and raw_id.strip() else str(uuid.uuid4())
        raw_code = source.get("code")
        base_code = slugify(raw_code) if isinstance(raw_code, str) and raw_code.strip() else slugify(name)
        usage = used_codes.get(base_code, 0)
        used_codes[base_code] = usage + 1
        code = base_code if usage == 0 else f"{base_code}_{usage + 1}"
        computation = normalize_computation(source.get("computation"))
        is_manual = computation == LineComputation.MANUAL
        lines.append(LineItem(
            id=line_id,
            code=code,
            name=name,
            indent=clamp_indent(source.get("indent")),
            nature=normalize_nature(source.get("nature")) if is_manual else LineNature.SUMMARY,
            computation=computation,
            months=sanitize_months(source.get("months")) if is_manual else {},
        ))
    return lines


def sanitize_blueprint(payload: Any, today: Optional[date] = None) -> Blueprint:
    """
    Normalize a raw blueprint payload.

    Raises:
        BlueprintValidationError: payload is not a mapping
    """
    if not isinstance(payload, dict):
        raise BlueprintValidationError("Blueprint payload must be an object")
    today = today or date.today()

    start_month = payload.get("startMonth")
    if not isinstance(start_month, str) or not MONTH_KEY_PATTERN.match(start_month):
        start_month = f"{today.year}-{today.month:02d}"

    raw_count = payload.get("monthCount")
    if is_finite_number(raw_count):
        month_count = max(MIN_MONTH_COUNT, min(MAX_MONTH_COUNT, int(float(raw_count) // 1)))
    else:
        month_count = DEFAULT_MONTH_COUNT

    lines = sanitize_lines(payload.get("lines"))
    root_line_id = payload.get("rootLineId")
    if not any(line.id == root_line_id for line in lines):
        root_line_id = None

    return Blueprint(
        lines=lines or default_lines(),
        start_month=start_month,
        month_count=month_count,
        root_line_id=root_line_id,
    )


# =============================================================================
# MONTH COLUMNS
# =============================================================================

@dataclass(frozen=True)
class MonthColumn:
    key: str
    label: str
    year: int
    index: int

    def to_dict(self) -> Dict:
        return {"key": self.key, "label": self.label, "year": self.year, "index": self.index}


def build_month_columns(start_month: str, month_count: int, today: Optional[date] = None) -> List[MonthColumn]:
    """Consecutive month columns from `start_month`; count clamped to the horizon bounds."""
    start = None
    if isinstance(start_month, str) and MONTH_KEY_PATTERN.match(start_month):
        year, month = int(start_month[:4]), int(start_month[5:])
        if 1 <= month <= 12:
            start = date(year, month, 1)
    if start is None:
        today = today or date.today()
        start = date(today.year, today.month, 1)

    count = max(MIN_MONTH_COUNT, min(MAX_MONTH_COUNT, int(month_count)))
    columns = []
    for index in range(count):
        cursor = start + relativedelta(months=index)
        columns.append(MonthColumn(
            key=cursor.strftime("%Y-%m"),
            label=cursor.strftime("%b"),
            year=cursor.year,
            index=index,
        ))
    return columns
