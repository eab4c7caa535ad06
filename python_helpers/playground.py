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
Chart playground: load a table, map its columns to a chart, preview it and
export the config document that reproduces it on the dashboard.
"""

import argparse
import json
import logging
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import plotly.graph_objects as go

from a1_range import slice_rows_by_a1
from aggregation import is_numeric_column
from chart_errors import PlaygroundError
from chart_logging import setup_logging
from chart_spec import ChartOptions, ChartSpec, build_chart_spec
from config_io import Selection, build_config_document, dump_config, mapping_from_selection
from renderer import embed_snippet, spec_to_figure, write_figure_html
from settings import PLAYGROUND_PALETTE, Settings, load_settings
from sources import Fetcher, fetch_csv, parse_csv_text, to_google_csv_url
from tabular import RowSet, column_names

logger = logging.getLogger(__name__)

_LABEL_HINT = re.compile(r"country|name|label|category|type|month|date|region|city", re.IGNORECASE)
_GROUP_HINT = re.compile(r"group|gender|region|species|type|tier|team", re.IGNORECASE)
_SB_LABELS_HINT = re.compile(r"label|node|name", re.IGNORECASE)
_SB_PARENTS_HINT = re.compile(r"parent|super|root", re.IGNORECASE)


def _first_match(columns: List[str], pattern: re.Pattern) -> str:
    return next((c for c in columns if pattern.search(c)), '')


@dataclass
class PlaygroundSession:
    """Rows, palette and control selections for one playground user."""
    rows: RowSet = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    palette: List[str] = field(default_factory=lambda: list(PLAYGROUND_PALETTE))
    selection: Selection = field(default_factory=Selection)
    settings: Settings = field(default_factory=load_settings)

    # --- Loading ---

    def set_rows(self, rows: Optional[RowSet]) -> None:
        self.rows = rows or []
        self.columns = column_names(self.rows)
        logger.info("Loaded %d rows, columns=%s", len(self.rows), self.columns)
        self.suggest_mappings()

    def load_csv_text(self, text: str, a1: Optional[str] = None) -> RowSet:
        rows = parse_csv_text(text)
        if a1:
            rows = slice_rows_by_a1(rows, a1)
        self.set_rows(rows)
        return self.rows

    def load_csv_file(self, path: Path, a1: Optional[str] = None) -> RowSet:
        return self.load_csv_text(Path(path).read_text(encoding='utf-8-sig'), a1)

    def load_url(self, url: str, a1: Optional[str] = None, query: Optional[str] = None,
                 fetcher: Optional[Fetcher] = None) -> RowSet:
        """Fetch a CSV (or Google Sheets link) and replace the current rows."""
        csv_url = to_google_csv_url(url.strip(), query=query or None)
        fetch = fetcher or (lambda u: fetch_csv(u, timeout=self.settings.fetch_timeout))
        rows = fetch(csv_url)
        if a1:
            rows = slice_rows_by_a1(rows, a1)
        self.set_rows(rows)
        return self.rows

    # --- Column guesses ---

    def suggest_mappings(self) -> Selection:
        """Pre-fill the selection with plausible columns for the loaded data."""
        cols = self.columns
        if not cols:
            return self.selection
        numeric = [c for c in cols if is_numeric_column(self.rows, c)]
        sel = self.selection
        sel.x = _first_match(cols, _LABEL_HINT) or cols[0]
        sel.y = numeric[0] if numeric else cols[0]
        sel.y2 = numeric[1] if len(numeric) > 1 else ''
        sel.group = _first_match(cols, _GROUP_HINT)
        sel.sb_labels = _first_match(cols, _SB_LABELS_HINT)
        sel.sb_parents = _first_match(cols, _SB_PARENTS_HINT)
        sel.sb_value = numeric[0] if numeric else ''
        return sel

    def set_color(self, index: int, value: str) -> None:
        while len(self.palette) <= index:
            self.palette.append('#999999')
        self.palette[index] = value

    # --- Rendering ---

    def build_spec(self) -> ChartSpec:
        if not self.rows:
            raise PlaygroundError("Load some data first!")
        options = ChartOptions(title='Preview', stacked=self.selection.stacked)
        return build_chart_spec(self.selection.chart_type, mapping_from_selection(self.selection),
                                self.rows, self.palette, options)

    def render(self) -> Tuple[ChartSpec, go.Figure, Dict[str, Any]]:
        """Preview spec and figure plus the exportable config document."""
        spec = self.build_spec()
        figure = spec_to_figure(spec)
        document = build_config_document(self.selection, self.rows, self.palette,
                                         row_limit=self.settings.inline_row_limit)
        return spec, figure, document

    def config_json(self) -> str:
        return dump_config(self.render()[2])

    def embed_code(self) -> str:
        return embed_snippet(spec_to_figure(self.build_spec()))

    # --- Persistence ---

    def save_session(self, path: Path) -> Path:
        path = Path(path)
        payload = {'rows': self.rows, 'colors': self.palette, 'ui': self.selection.to_dict()}
        path.write_text(json.dumps(payload, default=str), encoding='utf-8')
        return path

    def load_session(self, path: Path) -> None:
        path = Path(path)
        if not path.exists():
            raise PlaygroundError("No saved session")
        try:
            data = json.loads(path.read_text(encoding='utf-8'))
        except json.JSONDecodeError as e:
            raise PlaygroundError(f"Saved session is not valid JSON: {e}") from e
        self.set_rows(data.get('rows') or [])
        self.palette = list(data.get('colors') or self.palette)
        self.selection = Selection.from_dict(data.get('ui') or {})


# --- CLI ---

def _parse_args(argv: List[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Map table columns to a chart and export its config")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--csv", help="CSV file to load")
    src.add_argument("--url", help="CSV URL or Google Sheets link")
    src.add_argument("--session", help="Saved playground session to restore")
    p.add_argument("--range", dest="a1", help="A1 range to keep, e.g. A1:D20")
    p.add_argument("--tq", help="Google Visualization query for Sheets links")
    p.add_argument("--type", dest="chart_type", choices=['bar', 'line', 'scatter', 'pie', 'combo', 'sunburst'])
    p.add_argument("--x")
    p.add_argument("--y")
    p.add_argument("--y2")
    p.add_argument("--group")
    p.add_argument("--stacked", action="store_true")
    p.add_argument("--path", nargs="+", help="Sunburst path columns (outermost first)")
    p.add_argument("--labels", help="Sunburst labels column")
    p.add_argument("--parents", help="Sunburst parents column")
    p.add_argument("--value", help="Sunburst value column")
    p.add_argument("--config-out", help="Write the chart config document here")
    p.add_argument("--html-out", help="Write the preview figure as HTML here")
    p.add_argument("--save-session", help="Save the session to this file")
    p.add_argument("--debug", action="store_true")
    return p.parse_args(argv)


def _apply_args(sel: Selection, args: argparse.Namespace) -> None:
    for attr in ('chart_type', 'x', 'y', 'y2', 'group'):
        value = getattr(args, attr)
        if value:
            setattr(sel, attr, value)
    if args.stacked:
        sel.stacked = True
    if args.path:
        sel.sb_mode = 'path'
        sel.path = list(args.path)
    if args.labels or args.parents:
        sel.sb_mode = 'labels'
        sel.sb_labels = args.labels or ''
        sel.sb_parents = args.parents or ''
    if args.value:
        sel.sb_value = args.value


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    setup_logging(debug=args.debug)

    session = PlaygroundSession()
    try:
        if args.csv:
            session.load_csv_file(Path(args.csv), args.a1)
        elif args.url:
            session.load_url(args.url, args.a1, args.tq)
        else:
            session.load_session(Path(args.session))
        _apply_args(session.selection, args)
        spec, figure, document = session.render()
    except (ValueError, OSError) as e:
        logger.error("playground: %s", e)
        return 1

    if args.config_out:
        Path(args.config_out).write_text(dump_config(document), encoding='utf-8')
        logger.info("Wrote config %s", args.config_out)
    else:
        print(dump_config(document))
    if args.html_out:
        write_figure_html(figure, args.html_out)
        logger.info("Wrote preview %s", args.html_out)
    if args.save_session:
        session.save_session(Path(args.save_session))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
