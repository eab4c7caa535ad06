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
Chart config documents: reading dashboard configs and writing the config the
playground exports.

Document shape::

    {"charts": [{"id", "title", "source": {...}, "mapping": {...},
                 "chart": {"type", "stacked", "barName", "lineName",
                           "options": {"colors": [...]}}}]}
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from chart_errors import ConfigError
from chart_spec import ChartOptions
from settings import INLINE_ROW_LIMIT
from tabular import RowSet

logger = logging.getLogger(__name__)


@dataclass
class ChartConfig:
    id: Optional[str] = None
    title: Optional[str] = None
    source: Optional[Dict[str, Any]] = None
    mapping: Dict[str, Any] = field(default_factory=dict)
    chart_type: str = 'bar'
    stacked: bool = False
    bar_name: Optional[str] = None
    line_name: Optional[str] = None
    colors: Optional[List[str]] = None

    @property
    def display_title(self) -> str:
        return self.title or self.id or 'Untitled'

    def chart_options(self) -> ChartOptions:
        return ChartOptions(
            title=self.title or self.id or '',
            stacked=self.stacked,
            bar_name=self.bar_name,
            line_name=self.line_name,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChartConfig":
        if not isinstance(data, dict):
            raise ConfigError(f"Chart entry must be an object, got {type(data).__name__}")
        chart = data.get('chart') or {}
        if not isinstance(chart, dict):
            raise ConfigError(f"'chart' must be an object, got {type(chart).__name__}")
        options = chart.get('options') or {}
        if not isinstance(options, dict):
            raise ConfigError(f"'chart.options' must be an object, got {type(options).__name__}")
        return cls(
            id=data.get('id'),
            title=data.get('title'),
            source=data.get('source'),
            mapping=dict(data.get('mapping') or {}),
            chart_type=chart.get('type') or 'bar',
            stacked=bool(chart.get('stacked')),
            bar_name=chart.get('barName'),
            line_name=chart.get('lineName'),
            colors=list(options['colors']) if options.get('colors') else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        chart: Dict[str, Any] = {'type': self.chart_type, 'stacked': self.stacked}
        if self.bar_name:
            chart['barName'] = self.bar_name
        if self.line_name:
            chart['lineName'] = self.line_name
        chart['options'] = {'colors': list(self.colors or [])}
        out: Dict[str, Any] = {}
        if self.id is not None:
            out['id'] = self.id
        if self.title is not None:
            out['title'] = self.title
        out['source'] = self.source
        out['mapping'] = self.mapping
        out['chart'] = chart
        return out


@dataclass
class Selection:
    """What the user picked in the playground controls."""
    chart_type: str = 'bar'
    stacked: bool = False
    x: str = ''
    y: str = ''
    y2: str = ''
    group: str = ''
    sb_mode: str = 'path'
    path: List[str] = field(default_factory=list)
    sb_value: str = ''
    sb_labels: str = ''
    sb_parents: str = ''

    _KEYS = (
        ('chart_type', 'chartType'), ('stacked', 'stacked'), ('x', 'xCol'), ('y', 'yCol'),
        ('y2', 'y2Col'), ('group', 'groupCol'), ('sb_mode', 'sbMode'), ('path', 'pathCols'),
        ('sb_value', 'sbValueCol'), ('sb_labels', 'sbLabelsCol'), ('sb_parents', 'sbParentsCol'),
    )

    def to_dict(self) -> Dict[str, Any]:
        out = {key: getattr(self, attr) for attr, key in self._KEYS}
        out['stacked'] = 'true' if self.stacked else 'false'
        out['pathCols'] = list(self.path)
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Selection":
        selection = cls()
        for attr, key in cls._KEYS:
            if key in data and data[key] is not None:
                setattr(selection, attr, data[key])
        selection.stacked = str(selection.stacked).lower() == 'true'
        selection.path = [p for p in selection.path if p] if isinstance(selection.path, list) else []
        return selection


# --- Reading ---

def parse_dashboard_config(data: Any) -> List[ChartConfig]:
    """Chart configs from a decoded document; it must hold a `charts` array."""
    if not isinstance(data, dict) or not isinstance(data.get('charts'), list):
        raise ConfigError("Config must contain a 'charts' array")
    return [ChartConfig.from_dict(entry) for entry in data['charts']]


def load_dashboard_config(path: Path) -> List[ChartConfig]:
    """Read a JSON (or .yml/.yaml) config document from disk."""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    text = path.read_text(encoding='utf-8')
    try:
        if path.suffix.lower() in ('.yml', '.yaml'):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid json: {e}") from e
    charts = parse_dashboard_config(data)
    logger.info("Loaded %d chart(s) from %s", len(charts), path)
    return charts


# --- Writing ---

def mapping_from_selection(selection: Selection) -> Dict[str, Any]:
    """Mapping object for the chart type currently selected in the playground."""
    mapping: Dict[str, Any] = {}
    kind = selection.chart_type
    if kind in ('bar', 'line', 'scatter'):
        mapping['x'] = selection.x
        mapping['y'] = selection.y
        if selection.group:
            mapping['group'] = selection.group
    elif kind == 'pie':
        mapping['label'] = selection.x
        if selection.y:
            mapping['value'] = selection.y
    elif kind == 'combo':
        mapping['x'] = selection.x
        mapping['bar'] = selection.y
        mapping['line'] = selection.y2
    elif kind == 'sunburst':
        if selection.sb_mode == 'path':
            mapping['path'] = list(selection.path)
            if selection.sb_value:
                mapping['value'] = selection.sb_value
        else:
            mapping['labels'] = selection.sb_labels
            mapping['parents'] = selection.sb_parents
            if selection.sb_value:
                mapping['values'] = selection.sb_value
    return mapping


def build_config_document(
    selection: Selection,
    rows: RowSet,
    palette: Sequence[str],
    chart_id: str = 'my-chart',
    title: str = 'My Generated Chart',
    row_limit: int = INLINE_ROW_LIMIT,
) -> Dict[str, Any]:
    """One-chart document embedding (at most `row_limit`) rows inline."""
    config = ChartConfig(
        id=chart_id,
        title=title,
        source={'type': 'inline', 'rows': rows[:row_limit]},
        mapping=mapping_from_selection(selection),
        chart_type=selection.chart_type,
        stacked=selection.stacked,
        colors=list(palette),
    )
    return {'charts': [config.to_dict()]}


def dump_config(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2, default=str)
