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
Spreadsheet-style range slicing ("A2:D20") over a header-bearing row set.

Row 1 is the header, so data row N lives at list index N-2. Bad input is
never an error: the rows come back untouched.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from tabular import RowSet, column_names

logger = logging.getLogger(__name__)

_A1_RE = re.compile(r"^([A-Z]+)(\d+):([A-Z]+)(\d+)$", re.IGNORECASE)


@dataclass(frozen=True)
class A1Range:
    start_col: int
    end_col: int
    start_row: int
    end_row: int

    @property
    def is_ordered(self) -> bool:
        return self.start_col <= self.end_col and self.start_row <= self.end_row


def col_letters_to_index(letters: str) -> int:
    """'A' -> 0, 'Z' -> 25, 'AA' -> 26."""
    n = 0
    for ch in letters.upper():
        n = n * 26 + (ord(ch) - 64)
    return n - 1


def parse_a1(text: Optional[str]) -> Optional[A1Range]:
    """Parse 'A2:D20' into zero-based columns and one-based rows, or None."""
    if text is None:
        return None
    m = _A1_RE.match(str(text).strip())
    if not m:
        return None
    c1, r1, c2, r2 = m.groups()
    return A1Range(
        start_col=col_letters_to_index(c1),
        end_col=col_letters_to_index(c2),
        start_row=int(r1),
        end_row=int(r2),
    )


def slice_rows_by_a1(rows: RowSet, a1: Optional[str]) -> RowSet:
    """Return the rows and columns addressed by an A1 range (inclusive)."""
    rng = parse_a1(a1)
    if rng is None or not rows:
        if a1:
            logger.debug("A1 range %r ignored (unparseable or no rows)", a1)
        return rows
    if not rng.is_ordered:
        logger.debug("A1 range %r ignored (inverted bounds)", a1)
        return rows

    keep_cols = column_names(rows)[rng.start_col:rng.end_col + 1]
    slice_start = max(0, rng.start_row - 2)
    slice_end = max(slice_start, rng.end_row - 2)

    return [{k: r.get(k) for k in keep_cols} for r in rows[slice_start:slice_end + 1]]
