"""
P&L Hierarchy Reconstruction

Blueprints are flat, human-edited lists. The hierarchy is derived from two
cues in document order:

1. Indentation: a line is a child of the nearest preceding line with a
   strictly smaller indent.
2. Cumulative successor: the next cumulative line after a line closes it off
   and acts as its parent when indentation does not already give one.

Value aggregation (`children` mode) uses the indentation children only.
The rendered tree uses the merged parent pointers.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict

from financial_models import LineItem, LineComputation


def build_indent_parent_map(lines: List[LineItem]) -> Dict[str, Optional[str]]:
    stack: List[LineItem] = []
    parents: Dict[str, Optional[str]] = {}
    for line in lines:
        while stack and stack[-1].indent >= line.indent:
            stack.pop()
        parents[line.id] = stack[-1].id if stack else None
        stack.append(line)
    return parents


def build_next_cumulative_map(lines: List[LineItem]) -> Dict[str, Optional[str]]:
    """For each line, the id of the nearest cumulative line after it."""
    next_map: Dict[str, Optional[str]] = {}
    next_cumulative: Optional[str] = None
    for line in reversed(lines):
        next_map[line.id] = next_cumulative
        if line.computation == LineComputation.CUMULATIVE:
            next_cumulative = line.id
    return next_map


def build_child_map(lines: List[LineItem]) -> Dict[str, List[str]]:
    """Indentation children of every line, in document order."""
    children: Dict[str, List[str]] = {line.id: [] for line in lines}
    for line_id, parent_id in build_indent_parent_map(lines).items():
        if parent_id is not None:
            children[parent_id].append(line_id)
    # Dict iteration follows document order, so children lists do too
    return children


def build_parent_map(lines: List[LineItem]) -> Dict[str, Optional[str]]:
    """Merged parent pointers used for the rendered tree."""
    indent_parents = build_indent_parent_map(lines)
    next_cumulative = build_next_cumulative_map(lines)
    parents: Dict[str, Optional[str]] = {}
    for line in lines:
        indent_parent = indent_parents.get(line.id)
        successor = next_cumulative.get(line.id)
        if line.computation == LineComputation.CUMULATIVE:
            parents[line.id] = successor or indent_parent
        else:
            parents[line.id] = indent_parent or successor
    _break_cycles(lines, parents)
    return parents


def _break_cycles(lines: List[LineItem], parents: Dict[str, Optional[str]]) -> None:
    """
    A cumulative line indented under an orphan line points back at the line
    that points to it. The earlier line in document order becomes a root.
    """
    for line in lines:
        seen = set()
        current = parents.get(line.id)
        while current is not None and current not in seen:
            if current == line.id:
                parents[line.id] = None
                break
            seen.add(current)
            current = parents.get(current)


@dataclass
class LineHierarchy:
    """Node arena for one blueprint, indexed by line id"""
    lines: List[LineItem]
    line_by_id: Dict[str, LineItem]
    position: Dict[str, int]                 # document order
    parent: Dict[str, Optional[str]]         # merged (tree) parent
    indent_children: Dict[str, List[str]]    # aggregation children
    tree_children: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_lines(cls, lines: List[LineItem]) -> "LineHierarchy":
        # Duplicate ids: the first occurrence wins
        unique: List[LineItem] = []
        seen = set()
        for line in lines:
            if line.id in seen:
                continue
            seen.add(line.id)
            unique.append(line)

        parent = build_parent_map(unique)
        tree_children: Dict[str, List[str]] = {line.id: [] for line in unique}
        for line in unique:
            parent_id = parent[line.id]
            if parent_id is not None:
                tree_children[parent_id].append(line.id)

        return cls(
            lines=unique,
            line_by_id={line.id: line for line in unique},
            position={line.id: index for index, line in enumerate(unique)},
            parent=parent,
            indent_children=build_child_map(unique),
            tree_children=tree_children,
        )

    def roots(self) -> List[LineItem]:
        return [line for line in self.lines if self.parent.get(line.id) is None]
