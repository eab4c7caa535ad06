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

import json
import logging
import textwrap
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import pandas as pd
import plotly.graph_objects as go

from aggregation import numeric_mask
from chart_errors import ChartError
from chart_spec import ChartOptions, ChartSpec, Series, build_chart_spec
from mappings import CHART_TYPES, resolve_mapping
from settings import PNG_HEIGHT, PNG_WIDTH
from tabular import RowSet, column_names, rows_from_dataframe

logger = logging.getLogger(__name__)

PLOTLY_CDN = "https://cdn.plot.ly/plotly-2.35.2.min.js"
NUMERIC_ROLES = ('y', 'y2', 'value', 'values', 'bar', 'line')
NA_STRINGS = ['na', 'Na', 'NA', 'n/a', 'N/A', '', 'null', 'None']

# --- Helper Functions ---

def _load_rows(data: Union[str, RowSet, Dict[str, List[Any]]]) -> RowSet:
    """Accept JSON text, a list of records or a dict of columns and return records."""
    if isinstance(data, str):
        data = json.loads(data)
    if isinstance(data, list):
        return data
    return rows_from_dataframe(pd.DataFrame(data))

# --- Handlers per Series Kind ---

def _bar_trace(series: Series, chart_type: str) -> Any:
    return go.Bar(x=series.x, y=series.y, name=series.name,
                  marker=dict(color=series.color), yaxis=series.axis)

def _line_trace(series: Series, chart_type: str) -> Any:
    trace = go.Scatter(
        x=series.x, y=series.y, name=series.name,
        mode='lines+markers',
        line=dict(shape='spline', color=series.color),
        marker=dict(size=6),
        yaxis=series.axis,
    )
    if chart_type == 'line' and series.name is not None:
        trace.hovertemplate = '%{x}: %{y}<extra>' + series.name + '</extra>'
    return trace

def _scatter_trace(series: Series, chart_type: str) -> Any:
    return go.Scatter(x=series.x, y=series.y, name=series.name, mode='markers',
                      marker=dict(size=8, color=series.color))

def _pie_trace(series: Series, chart_type: str) -> Any:
    return go.Pie(labels=series.labels, values=series.values, textinfo='label+percent',
                  marker=dict(colors=series.colors))

def _sunburst_trace(series: Series, chart_type: str) -> Any:
    kwargs: Dict[str, Any] = dict(labels=series.labels, parents=series.parents,
                                  marker=dict(colors=series.colors))
    if series.ids is not None:
        kwargs['ids'] = series.ids
    if series.values is not None:
        kwargs['values'] = series.values
        kwargs['branchvalues'] = 'total'
    return go.Sunburst(**kwargs)

# --- Central Dispatcher ---

TRACE_HANDLERS: Dict[str, Callable[[Series, str], Any]] = {
    'bar': _bar_trace,
    'line': _line_trace,
    'scatter': _scatter_trace,
    'pie': _pie_trace,
    'sunburst': _sunburst_trace,
}

# --- Core Logic & Public API ---

def _create_error_figure(error_message: str) -> go.Figure:
    """Blank figure carrying the failure message, shown in place of the chart."""
    lines = textwrap.wrap(error_message, 80) or [""]
    fig = go.Figure()
    fig.add_annotation(
        text="<b>Failed to render:</b><br>" + "<br>".join(lines),
        xref="paper", yref="paper", x=0.5, y=0.5,
        showarrow=False, align="left",
        font=dict(size=13, color="#f87171"),
        bordercolor="#f87171", borderwidth=1, borderpad=6,
    )
    fig.update_layout(xaxis=dict(visible=False), yaxis=dict(visible=False),
                      paper_bgcolor='rgba(0,0,0,0)', plot_bgcolor='rgba(0,0,0,0)')
    return fig

def _get_base_layout(title: str) -> go.Layout:
    """Returns a consistent base layout for all charts."""
    return go.Layout(
        title=dict(text=title, font=dict(size=18)),
        margin=dict(l=40, r=30, t=40, b=40),
        paper_bgcolor='rgba(0,0,0,0)',
        plot_bgcolor='rgba(0,0,0,0)',
        xaxis=dict(gridcolor='rgba(255,255,255,.12)'),
        yaxis=dict(gridcolor='rgba(255,255,255,.12)'),
    )

def spec_to_figure(spec: ChartSpec) -> go.Figure:
    """Turn a chart spec into a plotly Figure."""
    fig = go.Figure()
    for series in spec.series:
        handler = TRACE_HANDLERS.get(series.kind)
        if handler is None:
            raise ChartError(f"No trace handler for series kind '{series.kind}'")
        fig.add_trace(handler(series, spec.type))

    fig.update_layout(_get_base_layout(spec.layout.title))
    if spec.layout.stacked:
        fig.update_layout(barmode='stack')
    if spec.layout.dual_axis:
        fig.update_layout(yaxis2=dict(overlaying='y', side='right'))
    if not spec.layout.show_legend:
        fig.update_layout(showlegend=False)
    if spec.layout.colorway:
        fig.update_layout(sunburstcolorway=spec.layout.colorway, extendsunburstcolors=True)
    return fig

def _create_figure(chart_type: str, data, mapping: Dict[str, Any],
                   palette: Optional[Sequence[str]] = None,
                   options: Optional[ChartOptions] = None) -> go.Figure:
    """Core private function to prepare data and create a Plotly Figure object."""
    rows = _load_rows(data)
    if not rows:
        raise ValueError("Dataset is empty")
    logger.debug("Creating %s figure from %d rows, mapping=%s", chart_type, len(rows), mapping)
    spec = build_chart_spec(chart_type, mapping, rows, palette, options)
    return spec_to_figure(spec)

def render_chart(chart_type: str, data, mapping: Dict[str, Any],
                 palette: Optional[Sequence[str]] = None,
                 options: Optional[ChartOptions] = None) -> str:
    """Dynamically renders a chart, creating an error chart on failure."""
    try:
        fig = _create_figure(chart_type, data, mapping, palette, options)
    except ValueError as e:
        logger.exception("Error in render_chart: %s", e)
        fig = _create_error_figure(str(e))
    fig.update_layout(width=1000, height=600)
    return fig.to_json()

def save_chart_as_html(chart_type: str, data, mapping: Dict[str, Any], output_path: str,
                       palette: Optional[Sequence[str]] = None,
                       options: Optional[ChartOptions] = None) -> str:
    """Renders a chart to HTML, creating an error chart on failure."""
    try:
        fig = _create_figure(chart_type, data, mapping, palette, options)
    except ValueError as e:
        logger.exception("Error in save_chart_as_html: %s", e)
        fig = _create_error_figure(str(e))
    fig.update_layout(width=1200, height=700)
    write_figure_html(fig, output_path)
    return output_path

def write_figure_html(fig: go.Figure, output_path: str) -> str:
    config = {'displayModeBar': False, 'responsive': True}
    fig.write_html(output_path, config=config, include_plotlyjs='cdn')
    return output_path

def figure_to_png(fig: go.Figure, width: int = PNG_WIDTH, height: int = PNG_HEIGHT) -> bytes:
    """Static PNG export; needs the kaleido package."""
    try:
        return fig.to_image(format='png', width=width, height=height)
    except (ValueError, ImportError, RuntimeError) as e:
        raise RuntimeError("Plotly static export failed. Install Kaleido: pip install -U kaleido") from e

def embed_snippet(fig: go.Figure, div_id: str = 'myChart') -> str:
    """Standalone HTML that recreates the figure with plotly.js from the CDN."""
    payload = json.loads(fig.to_json())
    data = json.dumps(payload.get('data', []))
    layout = json.dumps(payload.get('layout', {}))
    return (
        f'<div id="{div_id}"></div>\n'
        f'<script src="{PLOTLY_CDN}"></script>\n'
        f"<script>Plotly.newPlot('{div_id}', {data}, {layout});</script>"
    )

def get_available_charts() -> list:
    """Returns a list of all available chart types."""
    return sorted(CHART_TYPES)

def validate_chart_mappings(chart_type: str, mapping: Dict[str, Any], data) -> Dict[str, Any]:
    """Validates that the chart mappings are valid for the given data."""
    rows = _load_rows(data)
    errors = []
    warnings = []

    try:
        resolve_mapping(chart_type, mapping, column_names(rows))
    except ChartError as e:
        errors.append(str(e))

    columns = set(column_names(rows))
    for role, col in (mapping or {}).items():
        if not isinstance(col, str) or col not in columns or not rows:
            continue
        values = [r.get(col) for r in rows]

        # Check for missing values
        null_pct = sum(1 for v in values if v is None) / len(values) * 100
        if null_pct > 50:
            warnings.append(f"Column '{col}' has {null_pct:.1f}% missing values")

        # Values that will silently count as 0
        if role in NUMERIC_ROLES or (role == 'x' and chart_type == 'scatter'):
            non_numeric = [v for v, ok in zip(values, numeric_mask(values)) if v is not None and not ok]
            na_count = sum(1 for v in non_numeric if v in NA_STRINGS)
            other = len(non_numeric) - na_count
            if na_count:
                warnings.append(f"Column '{col}' has {na_count} 'na' string values that will be treated as 0")
            if other:
                warnings.append(f"Column '{col}' has {other} non-numeric values that will be treated as 0")

    return {
        'valid': len(errors) == 0,
        'errors': errors,
        'warnings': warnings
    }

def create_sample_data(chart_type: str) -> Dict[str, Any]:
    """Create sample data for testing different chart types."""
    if chart_type == 'sunburst':
        return {
            'region': ['EU', 'EU', 'EU', 'NA', 'NA'],
            'country': ['FR', 'DE', 'FR', 'US', 'CA'],
            'sales': [10, 15, 12, 30, 8]
        }
    elif chart_type == 'combo':
        return {
            'month': ['Jan', 'Feb', 'Mar', 'Apr'],
            'revenue': [100, 120, 90, 140],
            'margin': [0.2, 0.25, 0.18, 0.3]
        }
    elif chart_type == 'pie':
        return {
            'fruit': ['apple', 'apple', 'pear', 'plum', 'pear', 'apple']
        }
    else:
        # Default sample data
        return {
            'x': [1, 2, 3, 4, 5],
            'y': [10, 15, 13, 17, 20],
            'category': ['A', 'B', 'A', 'B', 'A']
        }

