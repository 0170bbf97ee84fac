"""
Tabular exports of P&L tree results (pandas).
"""

from typing import Optional, Iterable, Union, Dict, Any
import logging

import pandas as pd

from financial_models import Blueprint, Initiative, SignConvention
from financial_math import build_month_index, extend_month_index
from pnl_aggregation import (
    overlay_month_index, resolve_base_values, resolve_initiative_records,
)
from pnl_hierarchy import LineHierarchy
from pnl_tree_engine import TreeNode

logger = logging.getLogger(__name__)

TREE_COLUMNS = [
    "line_id", "code", "name", "depth", "parent_id",
    "base_value", "initiative_value", "total_value",
]


def tree_to_dataframe(root: TreeNode) -> pd.DataFrame:
    """Flatten a tree depth-first (pre-order) into one row per node."""
    rows = []
    stack = [(root, 0, None)]
    while stack:
        node, depth, parent_id = stack.pop()
        rows.append({
            "line_id": node.line.id,
            "code": node.line.code,
            "name": node.line.name,
            "depth": depth,
            "parent_id": parent_id,
            "base_value": node.base_value,
            "initiative_value": node.initiative_value,
            "total_value": node.total_value,
        })
        for child in reversed(node.children):
            stack.append((child, depth + 1, node.line.id))
    frame = pd.DataFrame(rows, columns=TREE_COLUMNS)
    # Object dtype keeps the root's parent as None
    frame["parent_id"] = pd.Series([row["parent_id"] for row in rows], index=frame.index, dtype=object)
    return frame


def monthly_table(
    blueprint: Union[Blueprint, Dict[str, Any]],
    initiatives: Optional[Iterable[Union[Initiative, Dict[str, Any]]]] = None,
    stage_filter: Optional[Iterable[str]] = None,
    convention: SignConvention = SignConvention.AS_ENTERED,
    include_initiatives: bool = True,
) -> pd.DataFrame:
    """
    Per-line monthly values, indexed by line id in document order with one
    column per month key. Empty frame when the blueprint has no monthly data.

    Initiative months the blueprint lacks get their own column with a zero base,
    so each year's columns add up to the tree totals for that year.
    """
    if isinstance(blueprint, dict):
        blueprint = Blueprint.from_dict(blueprint)
    month_index = build_month_index(blueprint.lines)
    hierarchy = LineHierarchy.from_lines(blueprint.lines)
    if not month_index:
        return pd.DataFrame(index=pd.Index([line.id for line in hierarchy.lines], name="line_id"))

    initiative_list = []
    if include_initiatives:
        initiative_list = [
            item if isinstance(item, Initiative) else Initiative.from_dict(item)
            for item in (initiatives or [])
        ]
        month_index = extend_month_index(
            month_index, overlay_month_index(hierarchy, initiative_list, stage_filter)
        )
    month_keys = [month.key for month in month_index]

    base = resolve_base_values(hierarchy, month_keys, convention)
    frame = pd.DataFrame.from_dict(base, orient="index", columns=month_keys)

    if include_initiatives:
        overlay = resolve_initiative_records(
            hierarchy, initiative_list, month_keys, stage_filter, convention
        )
        frame = frame + pd.DataFrame.from_dict(overlay, orient="index", columns=month_keys)

    frame.index.name = "line_id"
    logger.debug(f"Monthly table: {frame.shape[0]} lines x {frame.shape[1]} months")
    return frame
