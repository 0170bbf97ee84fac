"""
P&L Blueprint Data Model

Line items, blueprints, initiative financial entries and month descriptors.
Inputs arrive as already-deserialized JSON (camelCase keys); `from_dict`
never raises on odd values, it coerces them to safe defaults.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any


# =============================================================================
# ENUMS
# =============================================================================

class LineComputation(str, Enum):
    """How a line's monthly values are derived"""
    MANUAL = "manual"            # Leaf, values entered directly
    CHILDREN = "children"        # Sum of indentation children
    CUMULATIVE = "cumulative"    # Running subtotal of preceding manual lines


class LineNature(str, Enum):
    """Informational line type"""
    REVENUE = "revenue"
    COST = "cost"
    SUMMARY = "summary"


class SignConvention(str, Enum):
    """Whether cost lines are negated before aggregation"""
    AS_ENTERED = "as_entered"
    COST_NEGATIVE = "cost_negative"


class InitiativeStageKey(str, Enum):
    """Stage gates an initiative moves through"""
    L0 = "l0"
    L1 = "l1"
    L2 = "l2"
    L3 = "l3"
    L4 = "l4"
    L5 = "l5"


class FinancialKind(str, Enum):
    """Financial buckets of an initiative stage plan"""
    RECURRING_BENEFITS = "recurring-benefits"
    RECURRING_COSTS = "recurring-costs"
    ONEOFF_BENEFITS = "oneoff-benefits"
    ONEOFF_COSTS = "oneoff-costs"


STAGE_KEYS = [stage.value for stage in InitiativeStageKey]
FINANCIAL_KINDS = [kind.value for kind in FinancialKind]


def _coerce_enum(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return default


def to_number(value: Any) -> float:
    """Coerce anything to a finite float, 0.0 otherwise."""
    if isinstance(value, bool):
        return 0.0
    try:
        numeric = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(numeric):
        return 0.0
    return numeric


def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or value is None:
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError, OverflowError):
        return False


def _coerce_months(raw: Any) -> Dict[str, float]:
    if not isinstance(raw, dict):
        return {}
    return {str(key): to_number(value) for key, value in raw.items()}


def _coerce_indent(raw: Any) -> int:
    if not is_finite_number(raw):
        return 0
    return max(0, int(math.floor(float(raw))))


# =============================================================================
# BLUEPRINT
# =============================================================================

@dataclass
class LineItem:
    """One row of the P&L blueprint"""
    id: str
    code: str
    name: str
    indent: int = 0
    nature: LineNature = LineNature.REVENUE
    computation: LineComputation = LineComputation.MANUAL
    months: Dict[str, float] = field(default_factory=dict)  # {YYYY-MM: amount}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LineItem":
        return cls(
            id=str(data.get("id", "")),
            code=str(data.get("code") or ""),
            name=str(data.get("name") or ""),
            indent=_coerce_indent(data.get("indent", 0)),
            nature=_coerce_enum(LineNature, data.get("nature"), LineNature.REVENUE),
            computation=_coerce_enum(
                LineComputation, data.get("computation"), LineComputation.MANUAL
            ),
            months=_coerce_months(data.get("months")),
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "indent": self.indent,
            "nature": self.nature.value,
            "computation": self.computation.value,
            "months": dict(self.months),
        }


@dataclass
class Blueprint:
    """Ordered list of line items; document order drives the hierarchy"""
    lines: List[LineItem] = field(default_factory=list)
    start_month: Optional[str] = None
    month_count: Optional[int] = None
    root_line_id: Optional[str] = None  # Explicit tree root, overrides the NET heuristic

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Blueprint":
        raw_lines = data.get("lines") or []
        month_count = data.get("monthCount")
        return cls(
            lines=[LineItem.from_dict(line) for line in raw_lines if isinstance(line, dict)],
            start_month=data.get("startMonth"),
            month_count=int(month_count) if is_finite_number(month_count) else None,
            root_line_id=data.get("rootLineId"),
        )

    def to_dict(self) -> Dict:
        result = {"lines": [line.to_dict() for line in self.lines]}
        if self.start_month is not None:
            result["startMonth"] = self.start_month
        if self.month_count is not None:
            result["monthCount"] = self.month_count
        if self.root_line_id is not None:
            result["rootLineId"] = self.root_line_id
        return result


# =============================================================================
# INITIATIVES
# =============================================================================

@dataclass
class FinancialEntry:
    """Monthly deltas an initiative contributes against one line code"""
    line_code: str
    distribution: Dict[str, Any] = field(default_factory=dict)  # {YYYY-MM: amount}
    label: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FinancialEntry":
        distribution = data.get("distribution")
        return cls(
            line_code=str(data.get("lineCode") or ""),
            distribution=dict(distribution) if isinstance(distribution, dict) else {},
            label=str(data.get("label") or ""),
        )

    @property
    def normalized_code(self) -> str:
        return self.line_code.strip().upper()


@dataclass
class Initiative:
    """An initiative with per-stage financial plans"""
    id: str
    active_stage: str
    # {stage_key: {financial_kind: [FinancialEntry]}}
    stages: Dict[str, Dict[str, List[FinancialEntry]]] = field(default_factory=dict)
    name: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Initiative":
        stages = {}
        raw_stages = data.get("stages")
        if not isinstance(raw_stages, dict):
            raw_stages = {}
        for stage_key, stage in raw_stages.items():
            if not isinstance(stage, dict):
                continue
            financials = stage.get("financials")
            if not isinstance(financials, dict):
                financials = {}
            stages[stage_key] = {
                kind: [
                    FinancialEntry.from_dict(entry)
                    for entry in (financials.get(kind) or [])
                    if isinstance(entry, dict)
                ]
                for kind in FINANCIAL_KINDS
            }
        return cls(
            id=str(data.get("id", "")),
            active_stage=str(data.get("activeStage") or ""),
            stages=stages,
            name=str(data.get("name") or ""),
        )

    def active_entries(self) -> List[FinancialEntry]:
        """All entries of the active stage, in financial-kind order."""
        stage = self.stages.get(self.active_stage)
        if not stage:
            return []
        entries = []
        for kind in FINANCIAL_KINDS:
            entries.extend(stage.get(kind, []))
        return entries


# =============================================================================
# MONTHS
# =============================================================================

@dataclass(frozen=True)
class MonthDescriptor:
    """A parsed YYYY-MM key"""
    key: str
    year: int
    month: int

    def to_dict(self) -> Dict:
        return {"key": self.key, "year": self.year, "month": self.month}
