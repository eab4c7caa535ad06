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
Grouping, counting and numeric coercion over row sets.

Group identity follows one rule everywhere: values are compared as exact
scalars, numbers numerically (1 == 1.0), and a string never matches a
number or a bool ("1" and 1 form two groups). The first value seen for a
group is the one reported back.
"""

import math
from typing import Any, Dict, Hashable, List, Sequence, Tuple

import pandas as pd

from tabular import RowSet


def to_number(value: Any) -> float:
    """Coerce any scalar to a finite number; anything else becomes 0."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        if "_" in text:
            return 0
        lowered = text.lower()
        try:
            if lowered.startswith(("0x", "0o", "0b")):
                return int(text, 0)
            n = float(text)
        except ValueError:
            return 0
        return n if math.isfinite(n) else 0
    try:
        n = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return n if math.isfinite(n) else 0


def group_key(value: Any) -> Hashable:
    """Identity of a value when used as a group key."""
    if value is None:
        return ("none",)
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return ("nan",)
        return ("num", value)
    if isinstance(value, str):
        return ("str", value)
    try:
        hash(value)
    except TypeError:
        return ("repr", repr(value))
    return ("other", value)


def display_label(value: Any) -> str:
    """String form of a group key for legends and pie labels."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def group_by(rows: RowSet, key_column: str) -> List[Tuple[Any, RowSet]]:
    """Stable grouping: buckets appear in first-occurrence order of their key."""
    index: Dict[Hashable, int] = {}
    groups: List[Tuple[Any, RowSet]] = []
    for row in rows:
        value = row.get(key_column)
        k = group_key(value)
        if k not in index:
            index[k] = len(groups)
            groups.append((value, []))
        groups[index[k]][1].append(row)
    return groups


def count_by(rows: RowSet, key_column: str) -> List[Tuple[Any, int]]:
    """Distinct-value counts, same ordering and identity rules as group_by."""
    return [(value, len(bucket)) for value, bucket in group_by(rows, key_column)]


def column_values(rows: RowSet, column: str) -> List[Any]:
    return [r.get(column) for r in rows]


def numeric_values(rows: RowSet, column: str) -> List[float]:
    return [to_number(r.get(column)) for r in rows]


def numeric_mask(values: Sequence[Any]) -> List[bool]:
    """Per value: does pandas read it as a number? None, NaN and non-scalars don't."""
    cleaned = [
        int(v) if isinstance(v, bool) else v if isinstance(v, (int, float, str)) else None
        for v in values
    ]
    converted = pd.to_numeric(pd.Series(cleaned, dtype=object), errors='coerce')
    return converted.notna().tolist()


def is_numeric_column(rows: RowSet, column: str, threshold: float = 0.7) -> bool:
    """True when more than `threshold` of the non-empty cells convert to numbers."""
    values = [v for v in column_values(rows, column) if v is not None and v != ""]
    if not values:
        return False
    mask = numeric_mask(values)
    return sum(mask) / len(values) > threshold
