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
Data source resolution: inline rows, CSV files/URLs and Google Sheets links.
"""

import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs, quote, urlparse

import pandas as pd
import requests

from a1_range import slice_rows_by_a1
from chart_errors import SourceError
from tabular import RowSet, infer_scalar

logger = logging.getLogger(__name__)

SOURCE_TYPES = ('inline', 'csv', 'url', 'google_sheet', 'google_form')
SHEETS_HOST = 'docs.google.com'
GVIZ_CSV = 'https://docs.google.com/spreadsheets/d/{id}/gviz/tq?tqx=out:csv'

_DOC_ID_RE = re.compile(r"/d/([a-zA-Z0-9-_]+)")

Fetcher = Callable[[str], RowSet]


@dataclass
class SourceDescriptor:
    type: str
    rows: Optional[RowSet] = None
    path: Optional[str] = None
    url: Optional[str] = None
    sheet_url: Optional[str] = None
    sheet: Optional[str] = None
    range: Optional[str] = None
    query: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SourceDescriptor":
        if not isinstance(data, dict):
            raise SourceError("Missing source")
        return cls(
            type=data.get('type') or '',
            rows=data.get('rows'),
            path=data.get('path'),
            url=data.get('url'),
            sheet_url=data.get('sheetUrl'),
            sheet=data.get('sheet'),
            range=data.get('range'),
            query=data.get('tq'),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {'type': self.type}
        for key, value in (('rows', self.rows), ('path', self.path), ('url', self.url),
                           ('sheetUrl', self.sheet_url), ('sheet', self.sheet),
                           ('range', self.range), ('tq', self.query)):
            if value is not None:
                out[key] = value
        return out


# --- Google Sheets ---

def _encode(value: str) -> str:
    return quote(value, safe="-_.!~*'()")


def _gid(parsed) -> Optional[str]:
    """gid from the query string, else from the fragment (`.../edit#gid=99`)."""
    for part in (parsed.query, parsed.fragment):
        values = parse_qs(part).get('gid')
        if values and values[0]:
            return values[0]
    return None


def to_google_csv_url(
    sheet_url: str,
    sheet: Optional[str] = None,
    cell_range: Optional[str] = None,
    query: Optional[str] = None,
) -> str:
    """Turn a Google Sheets link into its gviz CSV export URL.

    Anything that is not a Sheets document link is assumed to be a direct
    CSV URL and returned unchanged.
    """
    try:
        parsed = urlparse(sheet_url)
    except ValueError:
        return sheet_url
    if SHEETS_HOST not in (parsed.hostname or ''):
        return sheet_url
    m = _DOC_ID_RE.search(parsed.path)
    if not m:
        return sheet_url

    url = GVIZ_CSV.format(id=m.group(1))
    gid = _gid(parsed)
    if sheet and cell_range:
        url += f"&sheet={_encode(sheet)}&range={_encode(cell_range)}"
    elif gid:
        url += f"&gid={gid}"
    elif sheet:
        url += f"&sheet={_encode(sheet)}"
    if query:
        url += f"&tq={_encode(query)}"
    return url


# --- CSV ---

def parse_csv_text(text: str) -> RowSet:
    """Parse delimited text with a header row, typing each cell individually."""
    if not text or not text.strip():
        return []
    try:
        df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False, skip_blank_lines=True)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        raise SourceError(f"Failed to parse CSV: {e}") from e
    columns = [str(c) for c in df.columns]
    return [
        {col: infer_scalar(v) for col, v in zip(columns, values)}
        for values in df.itertuples(index=False, name=None)
    ]


def fetch_csv(location: str, timeout: Optional[float] = None,
              session: Optional[requests.Session] = None) -> RowSet:
    """Download (http/https) or read (local path) a CSV document and parse it."""
    scheme = urlparse(location).scheme.lower()
    if scheme in ('http', 'https'):
        logger.debug("Fetching CSV from %s", location)
        http = session or requests.Session()
        try:
            response = http.get(location, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise SourceError(f"Failed to fetch CSV: {e}") from e
        return parse_csv_text(response.text)

    path = Path(location[7:] if scheme == 'file' else location)
    try:
        text = path.read_text(encoding='utf-8-sig')
    except OSError as e:
        raise SourceError(f"Failed to read CSV {path}: {e}") from e
    return parse_csv_text(text)


# --- Resolver ---

def load_rows(source, fetcher: Optional[Fetcher] = None) -> RowSet:
    """Resolve a source descriptor (or its dict form) into rows.

    A `range` that could not be pushed into a Sheets export URL is applied
    locally with the A1 slicer.
    """
    if not isinstance(source, SourceDescriptor):
        source = SourceDescriptor.from_dict(source)
    fetch = fetcher or fetch_csv
    kind = source.type

    if kind == 'inline':
        if not isinstance(source.rows, list) or not all(isinstance(r, dict) for r in source.rows):
            raise SourceError("Inline source requires a 'rows' array of objects")
        rows = source.rows
        local_range = source.range
    elif kind == 'csv':
        if not source.path:
            raise SourceError("CSV source requires 'path'")
        rows = fetch(source.path)
        local_range = source.range
    elif kind == 'url':
        if not source.url:
            raise SourceError("URL source requires 'url'")
        rows = fetch(source.url)
        local_range = source.range
    elif kind in ('google_sheet', 'google_form'):
        link = source.url or source.sheet_url
        if not link:
            raise SourceError(f"{kind} source requires 'url' or 'sheetUrl'")
        url = to_google_csv_url(link, source.sheet, source.range, source.query)
        rows = fetch(url)
        local_range = None if '&range=' in url else source.range
    else:
        raise SourceError(f"Unsupported or invalid source type: {kind!r}")

    logger.debug("Loaded %d rows from %s source", len(rows), kind)
    if local_range:
        rows = slice_rows_by_a1(rows, local_range)
    return rows
