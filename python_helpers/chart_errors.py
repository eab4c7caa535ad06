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
Error kinds raised while turning a chart config into a figure.

All of them are ValueErrors so the render entry points can keep catching
bad input the same way and turn it into an error figure or card message.
"""

from typing import Iterable, Optional


class ChartError(ValueError):
    """Base class for chart building failures."""


class SourceError(ChartError):
    """Unknown or malformed data source, or a failed fetch/parse."""


class MappingError(ChartError):
    """A required mapping role is missing or names an unknown column."""

    def __init__(self, message: str, roles: Iterable[str] = (), columns: Iterable[str] = ()):
        super().__init__(message)
        self.roles = list(roles)
        self.columns = list(columns)


class UnsupportedChartType(ChartError):
    """Chart type tag has no builder."""

    def __init__(self, chart_type: Optional[str]):
        super().__init__(f"Unsupported chart type: {chart_type}")
        self.chart_type = chart_type


class ConfigError(ChartError):
    """Chart config document could not be read or has the wrong shape."""


class PlaygroundError(ChartError):
    """Playground action attempted without the data it needs."""
