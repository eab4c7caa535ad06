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
Column mappings per chart type.

A raw mapping is the loose JSON object from a chart config
({"x": "month", "y": "sales", ...}). `resolve_mapping` checks the roles each
chart type needs, applies the documented fallbacks and returns one of the
typed mapping records below.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from chart_errors import MappingError, UnsupportedChartType

logger = logging.getLogger(__name__)

CHART_TYPES = ('bar', 'line', 'scatter', 'pie', 'combo', 'sunburst')


@dataclass(frozen=True)
class BarMapping:
    x: str
    y: str
    group: Optional[str] = None
    stacked: bool = False
    chart_type: str = 'bar'


@dataclass(frozen=True)
class LineMapping:
    x: str
    y: str
    group: Optional[str] = None
    chart_type: str = 'line'


@dataclass(frozen=True)
class ScatterMapping:
    x: str
    y: str
    group: Optional[str] = None
    chart_type: str = 'scatter'


@dataclass(frozen=True)
class PieMapping:
    label: str
    value: Optional[str] = None
    chart_type: str = 'pie'


@dataclass(frozen=True)
class ComboMapping:
    x: str
    bar: str
    line: str
    chart_type: str = 'combo'


@dataclass(frozen=True)
class SunburstPathMapping:
    path: Tuple[str, ...]
    value: Optional[str] = None
    chart_type: str = 'sunburst'


@dataclass(frozen=True)
class SunburstLabelsMapping:
    labels: str
    parents: str
    values: Optional[str] = None
    chart_type: str = 'sunburst'


ResolvedMapping = Union[
    BarMapping, LineMapping, ScatterMapping, PieMapping,
    ComboMapping, SunburstPathMapping, SunburstLabelsMapping,
]


# --- Helpers ---

def _pick(mapping: Mapping[str, Any], *keys: str) -> Optional[str]:
    """First non-empty value among `keys`, implementing role fallbacks."""
    for key in keys:
        value = mapping.get(key)
        if value:
            return value
    return None


def _require(chart_type: str, **roles: Optional[str]) -> None:
    missing = [name for name, value in roles.items() if not value]
    if missing:
        raise MappingError(
            f"{chart_type.title()} chart requires mapping for: {', '.join(missing)}",
            roles=missing,
        )


def _path_columns(mapping: Mapping[str, Any]) -> List[str]:
    path = mapping.get('path')
    if not isinstance(path, (list, tuple)):
        return []
    return [str(p) for p in path if p]


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == 'true'
    return bool(value)


# --- Per-type resolvers ---

def _resolve_xy(chart_type: str, mapping: Mapping[str, Any]) -> Tuple[str, str, Optional[str]]:
    x, y = _pick(mapping, 'x'), _pick(mapping, 'y')
    _require(chart_type, x=x, y=y)
    return x, y, _pick(mapping, 'group')


def _resolve_bar(mapping: Mapping[str, Any]) -> BarMapping:
    x, y, group = _resolve_xy('bar', mapping)
    return BarMapping(x=x, y=y, group=group, stacked=_as_bool(mapping.get('stacked')))


def _resolve_line(mapping: Mapping[str, Any]) -> LineMapping:
    x, y, group = _resolve_xy('line', mapping)
    return LineMapping(x=x, y=y, group=group)


def _resolve_scatter(mapping: Mapping[str, Any]) -> ScatterMapping:
    x, y, group = _resolve_xy('scatter', mapping)
    return ScatterMapping(x=x, y=y, group=group)


def _resolve_pie(mapping: Mapping[str, Any]) -> PieMapping:
    label = _pick(mapping, 'label', 'x')
    _require('pie', label=label)
    return PieMapping(label=label, value=_pick(mapping, 'value', 'y'))


def _resolve_combo(mapping: Mapping[str, Any]) -> ComboMapping:
    x = _pick(mapping, 'x')
    bar = _pick(mapping, 'bar', 'y')
    line = _pick(mapping, 'line', 'y2')
    _require('combo', x=x, bar=bar, line=line)
    return ComboMapping(x=x, bar=bar, line=line)


def _resolve_sunburst(mapping: Mapping[str, Any]) -> Union[SunburstPathMapping, SunburstLabelsMapping]:
    path = _path_columns(mapping)
    if len(path) >= 2:
        return SunburstPathMapping(path=tuple(path), value=_pick(mapping, 'value'))

    labels, parents = _pick(mapping, 'labels'), _pick(mapping, 'parents')
    if labels and parents:
        return SunburstLabelsMapping(labels=labels, parents=parents, values=_pick(mapping, 'values', 'value'))

    if path or 'path' in mapping:
        raise MappingError("Sunburst (path): select at least two path columns", roles=['path'])
    missing = [role for role, value in (('labels', labels), ('parents', parents)) if not value]
    raise MappingError(
        "Sunburst chart requires either a 'path' of two or more columns or 'labels' and 'parents'",
        roles=missing,
    )


MAPPING_RESOLVERS: Dict[str, Callable[[Mapping[str, Any]], ResolvedMapping]] = {
    'bar': _resolve_bar,
    'line': _resolve_line,
    'scatter': _resolve_scatter,
    'pie': _resolve_pie,
    'combo': _resolve_combo,
    'sunburst': _resolve_sunburst,
}


# --- Public API ---

def referenced_columns(resolved: ResolvedMapping) -> List[str]:
    """Every column name a resolved mapping points at, in role order."""
    columns: List[str] = []
    for name, value in asdict(resolved).items():
        if name in ('chart_type', 'stacked') or not value:
            continue
        if isinstance(value, (list, tuple)):
            columns.extend(value)
        else:
            columns.append(value)
    return columns


def resolve_mapping(
    chart_type: Optional[str],
    mapping: Optional[Mapping[str, Any]],
    available_columns: Sequence[str] = (),
) -> ResolvedMapping:
    """Validate a raw mapping for `chart_type` and resolve it against the data's columns.

    Column checks are skipped when `available_columns` is empty (no rows to
    check against).
    """
    resolver = MAPPING_RESOLVERS.get(chart_type or '')
    if resolver is None:
        raise UnsupportedChartType(chart_type)

    resolved = resolver(mapping or {})
    logger.debug("Resolved %s mapping: %s", chart_type, resolved)

    if available_columns:
        known = set(available_columns)
        unknown = [c for c in referenced_columns(resolved) if c not in known]
        if unknown:
            raise MappingError(
                f"Column(s) {unknown} not found. Available: {list(available_columns)}",
                columns=unknown,
            )
    return resolved
