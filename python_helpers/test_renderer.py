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
Test suite for the chart renderer module.
Covers every chart type, error figures and the export helpers.
"""

import json
from typing import Any, Dict, List, Tuple

import plotly.graph_objects as go
import pytest

from chart_spec import ChartOptions
from renderer import (
    PLOTLY_CDN,
    _create_error_figure,
    _create_figure,
    _get_base_layout,
    create_sample_data,
    embed_snippet,
    figure_to_png,
    get_available_charts,
    render_chart,
    save_chart_as_html,
    validate_chart_mappings,
)


def get_test_cases() -> List[Tuple[str, str, Dict[str, Any], Dict[str, Any]]]:
    """Get all test cases."""
    sample_data = {"x_axis": [1, 2, 3], "y_axis": [10, 15, 13], "category": ["A", "B", "A"]}
    problematic_data = {
        "gross_mthly_75_percentile": ["4000", "2900", "3500", "4100", "na", "3365", "3800", "na"],
        "school": ["School A", "School B", "School C", "School D", "School E", "School F", "School G", "School H"]
    }

    return [
        ("Basic Scatter", "scatter", sample_data, {"x": "x_axis", "y": "y_axis", "group": "category"}),
        ("Basic Bar", "bar", {"categories": ["A", "B", "C"], "values": [10, 15, 13]}, {"x": "categories", "y": "values"}),
        ("Stacked Bar", "bar", sample_data, {"x": "x_axis", "y": "y_axis", "group": "category", "stacked": True}),
        ("Line Chart", "line", sample_data, {"x": "x_axis", "y": "y_axis"}),
        ("Pie Chart", "pie", {"names": ["A", "B", "C"], "values": [10, 15, 13]}, {"label": "names", "value": "values"}),
        ("Pie Counts", "pie", create_sample_data("pie"), {"label": "fruit"}),
        ("Problematic Pie", "pie", problematic_data, {"value": "gross_mthly_75_percentile", "label": "school"}),
        ("Combo", "combo", create_sample_data("combo"), {"x": "month", "y": "revenue", "y2": "margin"}),
        ("Sunburst Path", "sunburst", create_sample_data("sunburst"), {"path": ["region", "country"], "value": "sales"}),
        ("Sunburst Labels", "sunburst", {"node": ["Root", "A", "B"], "parent": ["", "Root", "Root"]},
         {"labels": "node", "parents": "parent"}),
    ]


def _layout(fig_json: str) -> Dict[str, Any]:
    return json.loads(fig_json)["layout"]


def _data(fig_json: str) -> List[Dict[str, Any]]:
    return json.loads(fig_json)["data"]


# --- Basic chart tests ---

@pytest.mark.parametrize("test_name, chart_name, data, mappings", get_test_cases(), ids=lambda v: v if isinstance(v, str) else None)
def test_chart_renders(test_name, chart_name, data, mappings, tmp_path):
    validation = validate_chart_mappings(chart_name, mappings, data)
    assert validation['errors'] == []
    assert validation['valid']

    fig = _create_figure(chart_name, json.dumps(data), mappings)
    assert len(fig.data) >= 1

    out = save_chart_as_html(chart_name, json.dumps(data), mappings, str(tmp_path / "chart.html"))
    with open(out, encoding="utf-8") as f:
        assert "plotly" in f.read().lower()


def test_get_available_charts():
    assert get_available_charts() == ['bar', 'combo', 'line', 'pie', 'scatter', 'sunburst']


def test_stacked_bar_layout():
    data = {"m": ["Jan", "Jan"], "v": [1, 2], "g": ["a", "b"]}
    fig_json = render_chart("bar", data, {"x": "m", "y": "v", "group": "g", "stacked": "true"})
    assert _layout(fig_json)["barmode"] == "stack"
    assert [t["name"] for t in _data(fig_json)] == ["a", "b"]


def test_grouped_line_uses_palette_and_hovertemplate():
    data = [{"m": 1, "v": 1, "g": "a"}, {"m": 2, "v": 2, "g": "b"}]
    traces = _data(render_chart("line", data, {"x": "m", "y": "v", "group": "g"}, palette=["#123456", "#654321"]))
    assert [t["line"]["color"] for t in traces] == ["#123456", "#654321"]
    assert traces[0]["line"]["shape"] == "spline"
    assert traces[0]["hovertemplate"] == "%{x}: %{y}<extra>a</extra>"


def test_combo_has_secondary_axis():
    fig_json = render_chart("combo", create_sample_data("combo"), {"x": "month", "bar": "revenue", "line": "margin"},
                            options=ChartOptions(bar_name="Revenue", line_name="Margin"))
    traces = _data(fig_json)
    assert [t["type"] for t in traces] == ["bar", "scatter"]
    assert traces[1]["yaxis"] == "y2"
    assert [t["name"] for t in traces] == ["Revenue", "Margin"]
    layout = _layout(fig_json)
    assert layout["yaxis2"]["overlaying"] == "y"
    assert layout["yaxis2"]["side"] == "right"


def test_pie_hides_legend():
    fig_json = render_chart("pie", create_sample_data("pie"), {"label": "fruit"})
    assert _layout(fig_json)["showlegend"] is False
    pie = _create_figure("pie", create_sample_data("pie"), {"label": "fruit"}).data[0]
    assert list(pie.labels) == ["apple", "pear", "plum"]
    assert list(pie.values) == [3, 2, 1]


def test_sunburst_path_trace():
    fig_json = render_chart("sunburst", create_sample_data("sunburst"), {"path": ["region", "country"], "value": "sales"},
                            palette=["#aaaaaa", "#bbbbbb"])
    trace = _create_figure("sunburst", create_sample_data("sunburst"), {"path": ["region", "country"], "value": "sales"}).data[0]
    assert trace.branchvalues == "total"
    assert list(trace.ids[:2]) == ["EU", "EU / FR"]
    assert dict(zip(trace.ids, trace.values))["EU / FR"] == 22
    assert _layout(fig_json)["sunburstcolorway"] == ["#aaaaaa", "#bbbbbb"]


def test_sunburst_labels_trace_has_no_values():
    data = {"node": ["Root", "A"], "parent": ["", "Root"]}
    trace = _data(render_chart("sunburst", data, {"labels": "node", "parents": "parent"}))[0]
    assert "values" not in trace
    assert "ids" not in trace
    assert "branchvalues" not in trace


# --- Error handling ---

@pytest.mark.parametrize("test_name, chart_name, data, mappings, message", [
    ("Invalid Chart Type", "invalid_chart", {"x": [1, 2, 3], "y": [10, 15, 13]}, {"x": "x", "y": "y"},
     "Unsupported chart type"),
    ("Missing Column", "scatter", {"x": [1, 2, 3], "y": [10, 15, 13]}, {"x": "missing_column", "y": "y"},
     "missing_column"),
    ("Missing Role", "line", {"x": [1, 2, 3]}, {"x": "x"}, "requires mapping for: y"),
    ("Empty Dataset", "scatter", {}, {"x": "x", "y": "y"}, "Dataset is empty"),
    ("Bad JSON", "scatter", "{not json", {"x": "x", "y": "y"}, "Failed to render"),
])
def test_errors_render_error_figure(test_name, chart_name, data, mappings, message):
    payload = data if isinstance(data, str) else json.dumps(data)
    layout = _layout(render_chart(chart_name, payload, mappings))
    text = layout["annotations"][0]["text"]
    assert text.startswith("<b>Failed to render:</b>")
    assert message in text


def test_invalid_palette_renders_error_figure():
    fig_json = render_chart("bar", {"m": ["Jan"], "v": [1]}, {"x": "m", "y": "v"}, palette=["not-a-colour"])
    assert "Failed to render" in _layout(fig_json)["annotations"][0]["text"]


def test_all_na_values_still_render():
    data = {"x": ["na", "na", "na"], "y": ["na", "na", "na"]}
    fig = _create_figure("scatter", data, {"x": "x", "y": "y"})
    assert list(fig.data[0].y) == [0, 0, 0]


def test_save_chart_as_html_writes_error_chart(tmp_path):
    out = save_chart_as_html("nope", {"x": [1]}, {"x": "x"}, str(tmp_path / "err.html"))
    with open(out, encoding="utf-8") as f:
        assert "Failed to render" in f.read()


def test_error_figure_wraps_long_messages():
    fig = _create_error_figure("x" * 200)
    assert fig.layout.annotations[0].text.count("<br>") == 3


def test_base_layout():
    layout = _get_base_layout("Hello")
    assert layout.title.text == "Hello"
    assert layout.paper_bgcolor == "rgba(0,0,0,0)"


# --- Validation ---

def test_validation_warns_about_na_strings():
    data = {
        "gross": ["4000", "2900", "na", "na", "abc"],
        "school": ["A", "B", "C", "D", "E"],
    }
    result = validate_chart_mappings("pie", {"label": "school", "value": "gross"}, data)
    assert result['valid']
    assert "Column 'gross' has 2 'na' string values that will be treated as 0" in result['warnings']
    assert "Column 'gross' has 1 non-numeric values that will be treated as 0" in result['warnings']


def test_validation_warns_about_missing_values():
    data = [{"x": 1, "y": None}, {"x": 2, "y": None}, {"x": 3, "y": 4}]
    result = validate_chart_mappings("line", {"x": "x", "y": "y"}, data)
    assert result['warnings'] == ["Column 'y' has 66.7% missing values"]


def test_validation_reports_mapping_errors():
    result = validate_chart_mappings("combo", {"x": "a"}, {"a": [1]})
    assert not result['valid']
    assert "Combo chart requires mapping for: bar, line" in result['errors'][0]


# --- Export helpers ---

def test_embed_snippet():
    fig = _create_figure("bar", {"a": ["x"], "b": [1]}, {"x": "a", "y": "b"})
    snippet = embed_snippet(fig, "chart1")
    assert snippet.startswith('<div id="chart1"></div>')
    assert PLOTLY_CDN in snippet
    assert "Plotly.newPlot('chart1', [" in snippet


def test_figure_to_png_without_kaleido(monkeypatch):
    def broken(self, *args, **kwargs):
        raise ValueError("Image export using the \"kaleido\" engine requires the kaleido package")

    monkeypatch.setattr(go.Figure, "to_image", broken)
    with pytest.raises(RuntimeError, match="Install Kaleido"):
        figure_to_png(go.Figure())


def test_figure_to_png_passes_size(monkeypatch):
    seen = {}

    def fake(self, format=None, width=None, height=None):
        seen.update(format=format, width=width, height=height)
        return b"\x89PNG"

    monkeypatch.setattr(go.Figure, "to_image", fake)
    assert figure_to_png(go.Figure(), width=10, height=20) == b"\x89PNG"
    assert seen == {"format": "png", "width": 10, "height": 20}


def test_performance_large_dataset():
    large_data = {
        "x": list(range(1000)),
        "y": [i * 2 + (i % 10) for i in range(1000)],
        "category": [f"Cat_{i % 5}" for i in range(1000)]
    }
    fig = _create_figure("scatter", json.dumps(large_data), {"x": "x", "y": "y", "group": "category"})
    assert len(fig.data) == 5
    assert sum(len(t.x) for t in fig.data) == 1000
