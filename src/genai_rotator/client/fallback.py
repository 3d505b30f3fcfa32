# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Backend fallback chain.

Tiers are attempted in order until one returns an asset. A tier that is
not configured is skipped with a recorded reason; a tier that fails with
a GenerationError escalates to the next. Only when every tier has failed
does the caller see a single TotalFailureError naming each tier's reason.
A set cancel_event in the options stops the chain instead of escalating.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.errors import GenerationError, RequestCancelledError, TotalFailureError
from ..core.types import GeneratedAsset

lib_logger = logging.getLogger("genai_rotator")

TierRunner = Callable[[str, str, Dict[str, Any]], Awaitable[GeneratedAsset]]

NOT_CONFIGURED_REASON = "not configured"


@dataclass
class FallbackTier:
    """
    One generation backend in the chain.

    Attributes:
        name: Tier name used in logs and the aggregated error
        runner: Coroutine function (prompt, aspect_ratio, options) -> asset
        is_available: Returns False when the tier must be skipped
    """

    name: str
    runner: TierRunner
    is_available: Callable[[], bool] = lambda: True


class BackendFallbackChain:
    """Ordered escalation across generation backends."""

    def __init__(self, tiers: List[FallbackTier]):
        if not tiers:
            raise ValueError("BackendFallbackChain needs at least one tier")
        self._tiers = list(tiers)

    @property
    def tier_names(self) -> List[str]:
        return [tier.name for tier in self._tiers]

    async def generate(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        options: Optional[Dict[str, Any]] = None,
    ) -> GeneratedAsset:
        """
        Generate an asset from the first tier that succeeds.

        Raises:
            TotalFailureError: Every tier failed or was unavailable
            RequestCancelledError: options["cancel_event"] was set before or during a tier
        """
        options = options or {}
        reasons: Dict[str, str] = {}

        cancel_event = options.get("cancel_event")

        for index, tier in enumerate(self._tiers, start=1):
            if cancel_event is not None and cancel_event.is_set():
                raise RequestCancelledError(
                    f"Image request cancelled before tier {index} '{tier.name}'"
                )

            if not tier.is_available():
                lib_logger.info(f"Tier {index} '{tier.name}': skipped ({NOT_CONFIGURED_REASON})")
                reasons[tier.name] = NOT_CONFIGURED_REASON
                continue

            lib_logger.info(f"Tier {index} '{tier.name}': attempting generation")
            try:
                asset = await tier.runner(prompt, aspect_ratio, dict(options))
            except RequestCancelledError:
                lib_logger.info(f"Tier {index} '{tier.name}': cancelled by caller")
                raise
            except GenerationError as e:
                reasons[tier.name] = str(e) or type(e).__name__
                lib_logger.warning(f"Tier {index} '{tier.name}': failed ({reasons[tier.name]})")
                continue

            lib_logger.info(
                f"Tier {index} '{tier.name}': succeeded ({asset.size} bytes, {asset.mime_type})"
            )
            return asset

        error = TotalFailureError(reasons)
        lib_logger.error(error.message)
        raise error
