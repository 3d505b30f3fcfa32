# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Base interface for image generation backends.

The primary backend is keyed (one call per credential, driven by the
RotationExecutor). Fallback backends authenticate some other way, or not
at all, and report whether they can currently serve requests.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from ..core.types import Credential, GeneratedAsset

# Pixel sizes used by backends that take explicit dimensions
ASPECT_RATIO_SIZES: Dict[str, Tuple[int, int]] = {
    "1:1": (1024, 1024),
    "3:4": (896, 1200),
    "4:3": (1200, 896),
    "9:16": (768, 1344),
    "16:9": (1344, 768),
}


def size_for_aspect_ratio(aspect_ratio: str) -> Tuple[int, int]:
    """Width and height for an aspect ratio, square when unknown."""
    return ASPECT_RATIO_SIZES.get(aspect_ratio, ASPECT_RATIO_SIZES["1:1"])


class ImageBackend(ABC):
    """
    Interface every image generation backend implements.

    Attributes:
        name: Tier name used in logs and aggregated errors
        requires_credential: True if generate_image needs a pool credential
    """

    name: str = "backend"
    requires_credential: bool = False

    def is_available(self) -> bool:
        """Whether the backend can be attempted right now."""
        return True

    @abstractmethod
    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        options: Optional[Dict[str, Any]] = None,
        credential: Optional[Credential] = None,
    ) -> GeneratedAsset:
        """
        Generate one image.

        Raises:
            GenerationError subclasses, or provider exceptions the
            classifier understands (status code / message markers)
        """
        pass
