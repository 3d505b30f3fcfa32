# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Data directory resolution.

Status files, saved web sessions and the .env file live in one data
directory: GENAI_DATA_DIR when set, next to the executable when frozen,
otherwise the current working directory.
"""

import os
import sys
from pathlib import Path
from typing import Optional, Union


def get_default_root() -> Path:
    """Get the default data root (respects EXE vs script mode)."""
    override = os.environ.get("GENAI_DATA_DIR")
    if override:
        return Path(override).expanduser().resolve()
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent
    return Path.cwd()


def get_data_file(
    name: str, root: Optional[Union[str, Path]] = None
) -> Path:
    """Get the path of a file inside the data directory."""
    base = Path(root) if root else get_default_root()
    return base / name
