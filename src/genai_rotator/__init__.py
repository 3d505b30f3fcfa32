# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
genai_rotator: API key pool with rotation, quota tracking and backend
fallback for Gemini image and text generation.
"""

import logging

from .client import (
    BackendFallbackChain,
    FallbackTier,
    RequestDispatcher,
    RotationExecutor,
    StudioClient,
)
from .core.config import load_credentials
from .core.errors import (
    AllCredentialsExhaustedError,
    BackendUnavailableError,
    CredentialExhaustedError,
    GenerationError,
    NonCredentialError,
    RequestCancelledError,
    TotalFailureError,
    classify_error,
)
from .core.types import (
    Credential,
    CredentialStatus,
    GeneratedAsset,
    KeyStatus,
    PoolStats,
)
from .usage import KeyStatusManager, KeyStatusStorage, MemoryKeyStatusStorage

# Library logging is configured by the application
logging.getLogger("genai_rotator").addHandler(logging.NullHandler())

__all__ = [
    "StudioClient",
    "RequestDispatcher",
    "RotationExecutor",
    "BackendFallbackChain",
    "FallbackTier",
    "KeyStatusManager",
    "KeyStatusStorage",
    "MemoryKeyStatusStorage",
    "Credential",
    "CredentialStatus",
    "GeneratedAsset",
    "KeyStatus",
    "PoolStats",
    "GenerationError",
    "CredentialExhaustedError",
    "AllCredentialsExhaustedError",
    "BackendUnavailableError",
    "NonCredentialError",
    "TotalFailureError",
    "RequestCancelledError",
    "classify_error",
    "load_credentials",
]
