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

"""Defaults for the dashboard and playground, overridable from the environment."""

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

DEFAULT_PALETTE: Tuple[str, ...] = (
    '#60a5fa', '#34d399', '#fbbf24', '#f472b6', '#a78bfa', '#f87171', '#22d3ee', '#fb923c',
)
PLAYGROUND_PALETTE: Tuple[str, ...] = DEFAULT_PALETTE[:6]
CONFIG_CANDIDATES: Tuple[str, ...] = ('assets/config.json', 'assets/config.sample.json')

INLINE_ROW_LIMIT = 2000
JSON_SAMPLE_ROWS = 20
PNG_WIDTH = 1280
PNG_HEIGHT = 720

ENV_PALETTE = 'SHEETCHARTS_PALETTE'
ENV_FETCH_TIMEOUT = 'SHEETCHARTS_FETCH_TIMEOUT'
ENV_CONFIG = 'SHEETCHARTS_CONFIG'


@dataclass(frozen=True)
class Settings:
    palette: Tuple[str, ...] = DEFAULT_PALETTE
    playground_palette: Tuple[str, ...] = PLAYGROUND_PALETTE
    config_candidates: Tuple[str, ...] = CONFIG_CANDIDATES
    fetch_timeout: Optional[float] = None
    inline_row_limit: int = INLINE_ROW_LIMIT
    json_sample_rows: int = JSON_SAMPLE_ROWS
    png_width: int = PNG_WIDTH
    png_height: int = PNG_HEIGHT


def _parse_palette(raw: str) -> Tuple[str, ...]:
    return tuple(c.strip() for c in raw.split(',') if c.strip())


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from defaults plus SHEETCHARTS_* environment variables.

    An unusable override (empty palette, non-numeric timeout) is ignored and
    the default kept.
    """
    env = os.environ if environ is None else environ

    palette = DEFAULT_PALETTE
    if env.get(ENV_PALETTE):
        palette = _parse_palette(env[ENV_PALETTE]) or DEFAULT_PALETTE

    timeout: Optional[float] = None
    if env.get(ENV_FETCH_TIMEOUT):
        try:
            timeout = float(env[ENV_FETCH_TIMEOUT])
        except ValueError:
            timeout = None

    candidates = CONFIG_CANDIDATES
    if env.get(ENV_CONFIG):
        candidates = (env[ENV_CONFIG],) + CONFIG_CANDIDATES

    return Settings(palette=palette, config_candidates=candidates, fetch_timeout=timeout)
