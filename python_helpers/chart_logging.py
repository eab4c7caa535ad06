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
Logging setup for the command line entry points.

Modules log through `logging.getLogger(__name__)`; this installs one stderr
handler on the root logger with a "LEVEL message" format. Library use
without calling setup_logging stays silent.
"""

import logging
import sys
from typing import Optional

_configured: Optional[logging.Handler] = None


class LabeledFormatter(logging.Formatter):
    """Prefix each line with a short level label."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        line = f"{label} {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(debug: bool = False) -> logging.Logger:
    """Attach the stderr handler (once) and set the level."""
    global _configured
    root = logging.getLogger()
    level = logging.DEBUG if debug else logging.INFO

    if _configured is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(LabeledFormatter())
        root.addHandler(handler)
        _configured = handler

    _configured.setLevel(level)
    root.setLevel(level)
    return root


def reset_logging() -> None:
    """Remove the handler installed by setup_logging. Mainly for tests."""
    global _configured
    if _configured is not None:
        logging.getLogger().removeHandler(_configured)
        _configured = None
