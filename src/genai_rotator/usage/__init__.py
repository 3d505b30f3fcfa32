# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Usage package: credential health tracking.

Public API:
    KeyStatusManager: status map, availability filter and mutations
    KeyStatusStorage: JSON file Credential Store
    MemoryKeyStatusStorage: in-process Credential Store
"""

from .manager import KeyStatusManager
from .storage import KeyStatusStorage, MemoryKeyStatusStorage

__all__ = [
    "KeyStatusManager",
    "KeyStatusStorage",
    "MemoryKeyStatusStorage",
]
