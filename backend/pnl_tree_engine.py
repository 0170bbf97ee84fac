"""
P&L Tree Engine

Pure, stateless pipeline from a blueprint plus initiatives to a render-ready
tree:

    line items + initiative entries
      -> month index -> hierarchy -> base values / initiative overlay
      -> tree -> layout

Key invariant: same inputs = same outputs. Document order fixes both the
hierarchy and the order of every floating-point sum.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, List, Dict, Any, Iterable, Union
import logging
import time

from financial_models import Blueprint, Initiative, LineItem, LineComputation, SignConvention
from financial_math import available_years, build_month_index, year_rollup
from pnl_aggregation import resolve_base_values, resolve_initiative_effects
from pnl_hierarchy import LineHierarchy
from pnl_settings import PnLTreeSettings

logger = logging.getLogger(__name__)


# =============================================================================
# OUTPUT DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class TreeNode:
    """One line in the rendered tree"""
    line: LineItem
    children: List["TreeNode"]
    base_value: float
    initiative_value: float
    total_value: float

    def iter_nodes(self):
        """Depth-first, pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> Dict:
        # Children before parents: reversed pre-order
        rendered: Dict[int, Dict] = {}
        for node in reversed(list(self.iter_nodes())):
            rendered[id(node)] = {
                "id": node.line.id,
                "code": node.line.code,
                "name": node.line.name,
                "computation": node.line.computation.value,
                "baseValue": node.base_value,
                "initiativeValue": node.initiative_value,
                "totalValue": node.total_value,
                "children": [rendered[id(child)] for child in node.children],
            }
        return rendered[id(self)]


@dataclass(frozen=True)
class NodePosition:
    depth: int
    x: float
    y: float

    def to_dict(self) -> Dict:
        return {"depth": self.depth, "x": self.x, "y": self.y}


@dataclass(frozen=True)
class Connector:
    """Orthogonal path from a parent's right edge to a child's left edge"""
    id: str
    path: str  # SVG path: M x y H x V y H x

    def to_dict(self) -> Dict:
        return {"id": self.id, "path": self.path}


@dataclass
class TreeLayout:
    positions: Dict[str, NodePosition]
    connectors: List[Connector]
    width: float
    height: float
    card_width: float
    card_height: float
    root_y: float = 0.0

    def to_dict(self) -> Dict:
        return {
            "positions": {key: pos.to_dict() for key, pos in self.positions.items()},
            "connectors": [connector.to_dict() for connector in self.connectors],
            "width": self.width,
            "height": self.height,
            "cardWidth": self.card_width,
            "cardHeight": self.card_height,
            "rootY": self.root_y,
        }


@dataclass
class PnLTreeResult:
    """A computed tree ready for rendering"""
    root: TreeNode
    layout: TreeLayout
    year: int
    available_years: List[int] = field(default_factory=list)
    month_keys: List[str] = field(default_factory=list)
    available: bool = True

    def to_dict(self) -> Dict:
        return {
            "available": True,
            "year": self.year,
            "availableYears": list(self.available_years),
            "monthKeys": list(self.month_keys),
            "root": self.root.to_dict(),
            "layout": self.layout.to_dict(),
        }


@dataclass(frozen=True)
class PnLTreeUnavailable:
    """Explicit 'no data' result; callers render a placeholder"""
    reason: str
    available: bool = False

    def to_dict(self) -> Dict:
        return {"available": False, "reason": self.reason}


NO_BLUEPRINT = PnLTreeUnavailable("no_blueprint")
NO_MONTHS = PnLTreeUnavailable("no_months")
NO_ROOT = PnLTreeUnavailable("no_root")


# =============================================================================
# TREE CONSTRUCTION
# =============================================================================

def select_root(hierarchy: LineHierarchy, root_line_id: Optional[str] = None) -> Optional[LineItem]:
    """
    Explicitly designated root first, then the cumulative root whose code
    contains NET, then the first root in document order.
    """
    roots = hierarchy.roots()
    if root_line_id:
        for line in roots:
            if line.id == root_line_id:
                return line
    for line in roots:
        if line.computation == LineComputation.CUMULATIVE and "NET" in line.code.upper():
            return line
    return roots[0] if roots else None


def build_tree(
    hierarchy: LineHierarchy,
    root_line: LineItem,
    base_values: Dict[str, Dict[str, float]],
    initiative_effects: Dict[str, float],
    year: int,
) -> TreeNode:
    """Materialize the subtree under `root_line`, bottom-up without recursion."""
    order: List[LineItem] = []
    stack = [root_line]
    while stack:
        line = stack.pop()
        order.append(line)
        stack.extend(
            hierarchy.line_by_id[child_id]
            for child_id in hierarchy.tree_children.get(line.id, [])
        )

    nodes: Dict[str, TreeNode] = {}
    for line in reversed(order):
        base_value = year_rollup(base_values.get(line.id, {}), year)
        initiative_value = initiative_effects.get(line.id, 0.0)
        nodes[line.id] = TreeNode(
            line=line,
            children=[nodes[child_id] for child_id in hierarchy.tree_children.get(line.id, [])],
            base_value=base_value,
            initiative_value=initiative_value,
            total_value=base_value + initiative_value,
        )
    return nodes[root_line.id]


# =============================================================================
# LAYOUT
# =============================================================================

def _fmt(value: float) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


def compute_layout(root: TreeNode, settings: Optional[PnLTreeSettings] = None) -> TreeLayout:
    """
    Leaves take successive vertical slots; parents sit at the mean of their
    children. Columns are one per depth.
    """
    settings = settings or PnLTreeSettings()
    column_step = settings.column_width + settings.column_gap
    positions: Dict[str, NodePosition] = {}
    leaf_index = 0

    # Post-order walk; children are pushed reversed so leaves fill slots top-down
    pending = [(root, 0, False)]
    while pending:
        node, depth, expanded = pending.pop()
        if node.children and not expanded:
            pending.append((node, depth, True))
            pending.extend((child, depth + 1, False) for child in reversed(node.children))
            continue
        x = settings.horizontal_padding + depth * column_step
        if not node.children:
            y = settings.vertical_padding + leaf_index * settings.vertical_gap
            leaf_index += 1
        else:
            child_ys = [positions[child.line.id].y for child in node.children]
            y = sum(child_ys) / len(child_ys)
        positions[node.line.id] = NodePosition(depth=depth, x=x, y=y)

    max_y = max(pos.y + settings.card_height for pos in positions.values())
    max_depth = max(pos.depth for pos in positions.values())

    connectors: List[Connector] = []
    stack = [root]
    while stack:
        node = stack.pop()
        position = positions[node.line.id]
        for child in node.children:
            child_pos = positions[child.line.id]
            start_x = position.x + settings.card_width
            start_y = position.y + settings.card_height / 2
            end_x = child_pos.x
            end_y = child_pos.y + settings.card_height / 2
            elbow_x = (start_x + end_x) / 2
            path = (
                f"M {_fmt(start_x)} {_fmt(start_y)} H {_fmt(elbow_x)} "
                f"V {_fmt(end_y)} H {_fmt(end_x)}"
            )
            connectors.append(Connector(id=f"{node.line.id}-{child.line.id}", path=path))
            stack.append(child)

    return TreeLayout(
        positions=positions,
        connectors=connectors,
        width=settings.horizontal_padding * 2 + (max_depth + 1) * column_step,
        height=max_y + settings.vertical_padding,
        card_width=settings.card_width,
        card_height=settings.card_height,
        root_y=positions[root.line.id].y,
    )


# =============================================================================
# ENGINE
# =============================================================================

def select_year(years: List[int], requested: Optional[int] = None, today: Optional[date] = None) -> int:
    """Requested year, else the first year not in the past, else the first year."""
    if requested is not None:
        return int(requested)
    current_year = (today or date.today()).year
    for year in years:
        if year >= current_year:
            return year
    return years[0] if years else current_year


class PnLTreeEngine:
    """
    Builds the P&L tree for one year.

    Stateless: every call to `compute` is a fresh pass over its inputs.
    """

    def __init__(self, settings: Optional[PnLTreeSettings] = None):
        self.settings = settings or PnLTreeSettings()

    def compute(
        self,
        blueprint: Union[Blueprint, Dict[str, Any], None],
        initiatives: Optional[Iterable[Union[Initiative, Dict[str, Any]]]] = None,
        year: Optional[int] = None,
        stage_filter: Optional[Iterable[str]] = None,
        today: Optional[date] = None,
        sign_convention: Optional[SignConvention] = None,
    ) -> Union[PnLTreeResult, PnLTreeUnavailable]:
        start_time = time.perf_counter()

        if blueprint is None:
            logger.warning("P&L tree unavailable: no blueprint loaded")
            return NO_BLUEPRINT
        if isinstance(blueprint, dict):
            blueprint = Blueprint.from_dict(blueprint)
        initiative_list = [
            item if isinstance(item, Initiative) else Initiative.from_dict(item)
            for item in (initiatives or [])
        ]
        convention = sign_convention or self.settings.sign_convention

        month_index = build_month_index(blueprint.lines)
        if not month_index:
            logger.warning("P&L tree unavailable: blueprint has no monthly data")
            return NO_MONTHS
        month_keys = [month.key for month in month_index]
        years = available_years(month_index)
        effective_year = select_year(years, year, today)

        hierarchy = LineHierarchy.from_lines(blueprint.lines)
        root_line = select_root(hierarchy, blueprint.root_line_id)
        if root_line is None:
            logger.warning("P&L tree unavailable: no root line")
            return NO_ROOT

        base_values = resolve_base_values(hierarchy, month_keys, convention)
        effects = resolve_initiative_effects(
            hierarchy, initiative_list, effective_year, stage_filter, convention
        )
        root = build_tree(hierarchy, root_line, base_values, effects, effective_year)
        layout = compute_layout(root, self.settings)

        compute_time_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            f"P&L tree for {effective_year} built from {len(hierarchy.lines)} lines "
            f"and {len(initiative_list)} initiatives in {compute_time_ms}ms"
        )

        return PnLTreeResult(
            root=root,
            layout=layout,
            year=effective_year,
            available_years=years,
            month_keys=month_keys,
        )


def build_pnl_tree(blueprint, initiatives=None, year=None, stage_filter=None, settings=None, today=None):
    """Convenience wrapper around `PnLTreeEngine.compute`."""
    return PnLTreeEngine(settings).compute(
        blueprint, initiatives, year=year, stage_filter=stage_filter, today=today
    )
