# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Pollinations.ai backend (last-resort tier).

Free, keyless image generation. Lower quality than Imagen but needs no
credential, so it is always attempted when the other tiers fail.
"""

import logging
import time
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ..core.constants import POLLINATIONS_TIMEOUT, POLLINATIONS_URL
from ..core.errors import BackendUnavailableError
from ..core.types import Credential, GeneratedAsset
from .provider_interface import ImageBackend, size_for_aspect_ratio

lib_logger = logging.getLogger("genai_rotator")


class PollinationsBackend(ImageBackend):
    """Keyless public image generation over HTTP GET."""

    name = "pollinations"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        timeout: float = POLLINATIONS_TIMEOUT,
    ):
        self._http_client = http_client
        self._timeout = timeout

    def build_url(self, prompt: str, aspect_ratio: str, options: Dict[str, Any]) -> str:
        width, height = size_for_aspect_ratio(aspect_ratio)
        url = POLLINATIONS_URL.format(prompt=quote(prompt, safe=""))
        url += f"?nologo=true&width={width}&height={height}"
        if options.get("seed") is not None:
            url += f"&seed={int(options['seed'])}"
        return url

    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        options: Optional[Dict[str, Any]] = None,
        credential: Optional[Credential] = None,
    ) -> GeneratedAsset:
        start_time = time.perf_counter()
        url = self.build_url(prompt, aspect_ratio, options or {})
        lib_logger.info(
            f"Pollinations.ai fallback: generating image for prompt (first 50 chars): {prompt[:50]}..."
        )

        try:
            response = await self._http_client.get(url, timeout=self._timeout)
        except httpx.HTTPError as e:
            raise BackendUnavailableError(
                self.name, f"Pollinations.ai request failed: {e}"
            ) from e

        if response.status_code != 200:
            raise BackendUnavailableError(
                self.name, f"Pollinations.ai returned status {response.status_code}"
            )
        if not response.content:
            raise BackendUnavailableError(self.name, "Pollinations.ai returned an empty body")

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        lib_logger.info(f"Pollinations.ai image generated successfully in {latency_ms}ms")
        return GeneratedAsset(
            data=response.content,
            mime_type=response.headers.get("content-type", "image/jpeg").split(";")[0],
            backend=self.name,
            prompt=prompt,
        )
