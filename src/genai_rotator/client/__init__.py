# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Client package for key rotation and backend fallback.

Public API:
    StudioClient: Main client class for image and text generation

Components (for advanced usage):
    RequestDispatcher: Global FIFO throttle
    RotationExecutor: Credential rotation/retry logic
    BackendFallbackChain: Ordered backend escalation
"""

from .studio_client import StudioClient
from .dispatcher import RequestDispatcher
from .executor import RotationExecutor
from .fallback import BackendFallbackChain, FallbackTier

__all__ = [
    "StudioClient",
    "RequestDispatcher",
    "RotationExecutor",
    "BackendFallbackChain",
    "FallbackTier",
]
