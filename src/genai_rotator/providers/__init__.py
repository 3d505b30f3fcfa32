# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Generation backends, in fallback order: Gemini API, Gemini web session, Pollinations.ai."""

from .provider_interface import ImageBackend, size_for_aspect_ratio
from .gemini_provider import GeminiImageBackend, GeminiTextBackend
from .gemini_web_provider import GeminiWebBackend
from .pollinations_provider import PollinationsBackend

__all__ = [
    "ImageBackend",
    "size_for_aspect_ratio",
    "GeminiImageBackend",
    "GeminiTextBackend",
    "GeminiWebBackend",
    "PollinationsBackend",
]
