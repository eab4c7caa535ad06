# SPDX-License-Identifier: AGPL-3.0-only
# Copyright (C) 2024 Jonathan Lee
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License version 3
# as published by the Free Software Foundation.
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.
# See the GNU Affero General Public License for more details.
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see https://www.gnu.org/licenses/.

"""
Hierarchy builders for sunburst charts.

Path mode turns a list of columns into a node tree; node ids are the
prefix of segments joined with " / " and only leaves accumulate values.
Ancestors are sized by the renderer (branchvalues="total").
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from aggregation import to_number
from tabular import RowSet

PATH_SEPARATOR = " / "


@dataclass
class SunburstNode:
    id: str
    label: str
    parent: str
    value: float = 0


@dataclass
class SunburstTree:
    nodes: List[SunburstNode] = field(default_factory=list)
    has_values: bool = True

    @property
    def ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    @property
    def labels(self) -> List[Any]:
        return [n.label for n in self.nodes]

    @property
    def parents(self) -> List[Any]:
        return [n.parent for n in self.nodes]

    @property
    def values(self) -> Optional[List[float]]:
        if not self.has_values:
            return None
        return [n.value for n in self.nodes]


def _segment(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_path_tree(rows: RowSet, path: Sequence[str], value_column: Optional[str] = None) -> SunburstTree:
    """Build label/parent/value nodes from an ordered list of path columns."""
    nodes: Dict[str, SunburstNode] = {}
    for row in rows:
        parts = [_segment(row.get(col)) for col in path]
        for depth, label in enumerate(parts):
            node_id = PATH_SEPARATOR.join(parts[:depth + 1])
            parent = PATH_SEPARATOR.join(parts[:depth]) if depth else ""
            node = nodes.get(node_id)
            if node is None:
                node = nodes[node_id] = SunburstNode(id=node_id, label=label, parent=parent)
            if depth == len(parts) - 1:
                node.value += to_number(row.get(value_column)) if value_column else 1
    return SunburstTree(nodes=list(nodes.values()))


def build_labels_tree(
    rows: RowSet,
    labels_column: str,
    parents_column: str,
    value_column: Optional[str] = None,
) -> SunburstTree:
    """Row-per-node hierarchy taken straight from labels/parents columns.

    Parents are not checked against labels; a broken hierarchy is rendered
    however the charting library chooses.
    """
    nodes = []
    for row in rows:
        label = row.get(labels_column)
        parent = row.get(parents_column)
        nodes.append(SunburstNode(
            id=label,
            label=label,
            parent="" if parent is None else parent,
            value=to_number(row.get(value_column)) if value_column else 0,
        ))
    return SunburstTree(nodes=nodes, has_values=bool(value_column))
