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
Row model helpers: records keyed by column name, as produced by CSV parsing
or embedded inline in a chart config.
"""

import math
import re
from typing import Any, Dict, List

import pandas as pd

Row = Dict[str, Any]
RowSet = List[Row]

_FLOAT_RE = re.compile(r"^\s*-?(\d+\.?|\.\d+|\d+\.\d+)([eE][-+]?\d+)?\s*$")
_INT_RE = re.compile(r"^\s*-?\d+\s*$")


def column_names(rows: RowSet) -> List[str]:
    """Header of a row set: the keys of its first row, in order."""
    if not rows:
        return []
    return list(rows[0].keys())


def infer_scalar(text: Any) -> Any:
    """Type a single CSV cell: empty -> None, true/false -> bool, numerals -> int/float."""
    if not isinstance(text, str):
        return text
    if text == "":
        return None
    if text in ("true", "TRUE", "True"):
        return True
    if text in ("false", "FALSE", "False"):
        return False
    if _INT_RE.match(text):
        return int(text)
    if _FLOAT_RE.match(text):
        return float(text)
    return text


def _native(value: Any) -> Any:
    if value is None:
        return None
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        # numpy scalar
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def rows_from_dataframe(df: pd.DataFrame) -> RowSet:
    """Convert a DataFrame into plain records, NaN becoming None."""
    columns = [str(c) for c in df.columns]
    rows: RowSet = []
    for values in df.itertuples(index=False, name=None):
        rows.append({col: _native(v) for col, v in zip(columns, values)})
    return rows


def _csv_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def rows_to_csv(rows: RowSet) -> str:
    """Serialize rows as CSV using the first row's columns as header."""
    if not rows:
        return ""
    cols = column_names(rows)
    records = [[_csv_value(r.get(c)) for c in cols] for r in rows]
    # object dtype keeps ints as ints when a column also holds None
    df = pd.DataFrame(records, columns=cols, dtype=object)
    return df.to_csv(index=False, na_rep="", lineterminator="\n")
