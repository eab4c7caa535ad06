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

import pytest

from chart_errors import MappingError, UnsupportedChartType
from chart_spec import ChartOptions, build_chart_spec
from settings import DEFAULT_PALETTE

SALES = [
    {"month": "Jan", "sales": 10, "region": "EU"},
    {"month": "Feb", "sales": "12", "region": "NA"},
    {"month": "Mar", "sales": "n/a", "region": "EU"},
]


def test_ungrouped_bar_is_single_series():
    spec = build_chart_spec("bar", {"x": "month", "y": "sales"}, SALES, ["#111"])
    assert spec.type == "bar"
    assert len(spec.series) == 1
    series = spec.series[0]
    assert series.x == ["Jan", "Feb", "Mar"]
    assert series.y == [10, 12, 0]
    assert series.color == "#111"
    assert series.name is None


def test_grouped_line_one_series_per_group_in_first_seen_order():
    palette = ["#a", "#b"]
    spec = build_chart_spec("line", {"x": "month", "y": "sales", "group": "region"}, SALES, palette)
    assert [s.name for s in spec.series] == ["EU", "NA"]
    assert [s.color for s in spec.series] == ["#a", "#b"]
    assert spec.series[0].x == ["Jan", "Mar"]
    # every row lands in exactly one series
    assert sum(len(s.y) for s in spec.series) == len(SALES)


def test_palette_wraps_around():
    rows = [{"x": i, "y": i, "g": i} for i in range(3)]
    spec = build_chart_spec("scatter", {"x": "x", "y": "y", "group": "g"}, rows, ["#a", "#b"])
    assert [s.color for s in spec.series] == ["#a", "#b", "#a"]


def test_scatter_coerces_x():
    rows = [{"x": "1.5", "y": "2"}, {"x": "bad", "y": 3}]
    spec = build_chart_spec("scatter", {"x": "x", "y": "y"}, rows)
    assert spec.series[0].x == [1.5, 0]
    assert spec.series[0].y == [2, 3]


@pytest.mark.parametrize("mapping, options, stacked", [
    ({"x": "month", "y": "sales"}, None, False),
    ({"x": "month", "y": "sales", "stacked": True}, None, True),
    ({"x": "month", "y": "sales"}, ChartOptions(stacked=True), True),
])
def test_bar_stacked_flag(mapping, options, stacked):
    spec = build_chart_spec("bar", mapping, SALES, options=options)
    assert spec.layout.stacked is stacked


def test_pie_counts_when_no_value_column():
    rows = [{"c": "a"}, {"c": "b"}, {"c": "a"}]
    spec = build_chart_spec("pie", {"label": "c"}, rows)
    assert spec.series[0].labels == ["a", "b"]
    assert spec.series[0].values == [2, 1]
    assert spec.layout.show_legend is False


def test_pie_with_value_column_uses_rows_as_is():
    rows = [{"c": "a", "v": "3"}, {"c": "b", "v": 4}, {"c": "a", "v": 1}]
    spec = build_chart_spec("pie", {"x": "c", "y": "v"}, rows, ["#1", "#2"])
    assert spec.series[0].labels == ["a", "b", "a"]
    assert spec.series[0].values == [3, 4, 1]
    assert spec.series[0].colors == ["#1", "#2"]


def test_combo_has_bar_and_line_on_second_axis():
    rows = [{"m": "Jan", "rev": 100, "margin": 0.2}, {"m": "Feb", "rev": 120, "margin": "0.25"}]
    spec = build_chart_spec("combo", {"x": "m", "y": "rev", "y2": "margin"}, rows, ["#a", "#b", "#c"],
                            ChartOptions(title="Revenue", line_name="Margin"))
    bar, line = spec.series
    assert (bar.kind, line.kind) == ("bar", "line")
    assert (bar.axis, line.axis) == ("y", "y2")
    assert (bar.name, line.name) == ("Bar", "Margin")
    assert (bar.color, line.color) == ("#a", "#b")
    assert line.y == [0.2, 0.25]
    assert spec.layout.dual_axis is True
    assert spec.layout.title == "Revenue"


def test_sunburst_path_mode():
    rows = [{"R": "EU", "C": "FR"}, {"R": "EU", "C": "DE"}, {"R": "EU", "C": "FR"}]
    spec = build_chart_spec("sunburst", {"path": ["R", "C"]}, rows, ["#a"])
    series = spec.series[0]
    assert series.labels == ["EU", "FR", "DE"]
    assert series.parents == ["", "EU", "EU"]
    assert series.values == [0, 2, 1]
    assert series.ids == ["EU", "EU / FR", "EU / DE"]
    assert spec.layout.branch_values == "total"
    assert spec.layout.colorway == ["#a"]


def test_sunburst_labels_mode_without_values():
    rows = [{"n": "Root", "p": ""}, {"n": "A", "p": "Root"}]
    spec = build_chart_spec("sunburst", {"labels": "n", "parents": "p"}, rows)
    series = spec.series[0]
    assert series.ids is None
    assert series.values is None
    assert spec.layout.branch_values is None


def test_default_palette_when_none_or_empty():
    for palette in (None, []):
        spec = build_chart_spec("bar", {"x": "month", "y": "sales"}, SALES, palette)
        assert spec.series[0].color == DEFAULT_PALETTE[0]


def test_empty_rows_skip_column_check():
    spec = build_chart_spec("bar", {"x": "month", "y": "sales"}, [])
    assert spec.series[0].x == []


def test_errors_surface():
    with pytest.raises(MappingError):
        build_chart_spec("bar", {"x": "month", "y": "nope"}, SALES)
    with pytest.raises(UnsupportedChartType):
        build_chart_spec("radar", {"x": "month", "y": "sales"}, SALES)


def test_to_dict_is_plain_data():
    spec = build_chart_spec("bar", {"x": "month", "y": "sales"}, SALES)
    data = spec.to_dict()
    assert data["type"] == "bar"
    assert data["series"][0]["kind"] == "bar"
    assert data["layout"]["show_legend"] is True
