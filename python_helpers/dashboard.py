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
Dashboard renderer: one card per chart config, each rendered independently.

A chart whose source, mapping or type is bad gets an error message on its
card; the remaining charts still render.
"""

import argparse
import functools
import html
import json
import logging
import os
import sys
import uuid
import webbrowser
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import plotly.graph_objects as go

from chart_errors import ConfigError
from chart_logging import setup_logging
from chart_spec import ChartSpec, build_chart_spec
from config_io import ChartConfig, load_dashboard_config, parse_dashboard_config
from renderer import figure_to_png, spec_to_figure
from settings import Settings, load_settings
from sources import Fetcher, fetch_csv, load_rows
from tabular import RowSet, rows_to_csv

logger = logging.getLogger(__name__)

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2


@dataclass
class ChartCard:
    chart: ChartConfig
    dom_id: str = ''
    rows: RowSet = field(default_factory=list)
    spec: Optional[ChartSpec] = None
    figure: Optional[go.Figure] = None
    csv: str = ''
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def file_stem(self) -> str:
        return self.chart.id or 'chart'


def _dom_id(chart: ChartConfig) -> str:
    return f"chart_{chart.id or uuid.uuid4().hex[:8]}"


def render_card(chart: ChartConfig, fetcher: Optional[Fetcher] = None,
                settings: Optional[Settings] = None) -> ChartCard:
    """Load, build and render one chart; failures end up on card.error."""
    settings = settings or load_settings()
    card = ChartCard(chart=chart, dom_id=_dom_id(chart))
    try:
        rows = load_rows(chart.source, fetcher)
        card.rows = rows
        card.csv = rows_to_csv(rows)
        palette = chart.colors or list(settings.palette)
        card.spec = build_chart_spec(chart.chart_type, chart.mapping, rows, palette, chart.chart_options())
        card.figure = spec_to_figure(card.spec)
    except ValueError as e:
        logger.exception("Failed to render chart %s", chart.id or chart.title)
        card.error = str(e)
    return card


def render_dashboard(config: Union[Dict[str, Any], Sequence[ChartConfig]],
                     fetcher: Optional[Fetcher] = None,
                     settings: Optional[Settings] = None) -> List[ChartCard]:
    """Render every chart in a config document (or a list of ChartConfig)."""
    settings = settings or load_settings()
    charts = parse_dashboard_config(config) if isinstance(config, dict) else list(config)
    if fetcher is None:
        fetcher = functools.partial(fetch_csv, timeout=settings.fetch_timeout)
    cards = [render_card(chart, fetcher, settings) for chart in charts]
    failed = sum(1 for c in cards if not c.ok)
    logger.info("Rendered %d chart(s), %d failed", len(cards) - failed, failed)
    return cards


def load_default_config(candidates: Sequence[str]) -> Optional[List[ChartConfig]]:
    """First candidate path that loads; None when none of them does."""
    for candidate in candidates:
        try:
            return load_dashboard_config(Path(candidate))
        except ConfigError as e:
            logger.debug("Config candidate %s skipped: %s", candidate, e)
    return None


# --- Exports ---

def chart_json_export(card: ChartCard, sample_rows: int = 20) -> Dict[str, Any]:
    return {'chart': card.chart.to_dict(), 'sample': card.rows[:sample_rows]}


def export_card(card: ChartCard, directory: Path, png: bool = False,
                settings: Optional[Settings] = None) -> List[Path]:
    """Write <id>.json, <id>.csv (and <id>.png) for a rendered card."""
    if not card.ok:
        return []
    settings = settings or load_settings()
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    json_path = directory / f"{card.file_stem}.json"
    json_path.write_text(
        json.dumps(chart_json_export(card, settings.json_sample_rows), indent=2, default=str),
        encoding='utf-8',
    )
    csv_path = directory / f"{card.file_stem}.csv"
    csv_path.write_text(card.csv, encoding='utf-8')
    written = [json_path, csv_path]

    if png and card.figure is not None:
        png_path = directory / f"{card.file_stem}.png"
        png_path.write_bytes(figure_to_png(card.figure, settings.png_width, settings.png_height))
        written.append(png_path)
    return written


def dashboard_html(cards: Sequence[ChartCard], title: str = 'Dashboard') -> str:
    """A single HTML page with one card per chart."""
    parts = []
    plotly_js: Union[str, bool] = 'cdn'
    for card in cards:
        heading = html.escape(card.chart.display_title)
        if card.ok and card.figure is not None:
            body = card.figure.to_html(full_html=False, include_plotlyjs=plotly_js, div_id=card.dom_id,
                                       config={'displayModeBar': False, 'responsive': True})
            plotly_js = False
        else:
            body = f'<p class="muted">Failed to render: {html.escape(card.error or "")}</p>'
        parts.append(f'<article class="card">\n<h3>{heading}</h3>\n{body}\n</article>')
    if not parts:
        parts.append('<div class="card"><h3>No charts</h3>'
                     '<p class="muted">The config has an empty <code>charts</code> array.</p></div>')
    return (
        '<!DOCTYPE html>\n<html>\n<head>\n<meta charset="utf-8">\n'
        f'<title>{html.escape(title)}</title>\n</head>\n<body>\n'
        '<main id="dashboard">\n' + '\n'.join(parts) + '\n</main>\n</body>\n</html>\n'
    )


# --- CLI ---

def _parse_args(argv: List[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Render a chart config document into an HTML dashboard")
    p.add_argument("config", nargs="?", help="Config document (.json/.yml); defaults to assets/config.json")
    p.add_argument("--out", default="dashboard.html", help="HTML file to write")
    p.add_argument("--export-dir", help="Write per-chart JSON/CSV exports here")
    p.add_argument("--png", action="store_true", help="Also export PNG images (needs kaleido)")
    p.add_argument("--open", action="store_true", help="Open the dashboard in a browser")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    setup_logging(debug=args.debug)
    settings = load_settings()

    try:
        if args.config:
            charts = load_dashboard_config(Path(args.config))
        else:
            charts = load_default_config(settings.config_candidates)
    except ConfigError as e:
        logger.error("config: %s", e)
        return EXIT_FATAL
    if charts is None:
        logger.error("No config found. Provide assets/config.json or pass a config path.")
        return EXIT_FATAL

    cards = render_dashboard(charts, settings=settings)
    out = Path(args.out)
    out.write_text(dashboard_html(cards), encoding='utf-8')
    logger.info("Wrote %s", out)

    if args.export_dir:
        for card in cards:
            try:
                for path in export_card(card, Path(args.export_dir), png=args.png, settings=settings):
                    logger.info("Exported %s", path)
            except RuntimeError as e:
                logger.error("export %s: %s", card.file_stem, e)

    if args.open:
        webbrowser.open(f'file://{os.path.abspath(out)}')

    if any(not card.ok for card in cards):
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
