# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
StudioClient facade.

This is the consumer-facing entry point. It wires the components together:
- KeyStatusManager: credential health (Credential Store + availability)
- RequestDispatcher: global FIFO throttle
- RotationExecutor: per-request credential rotation
- BackendFallbackChain: Gemini API -> Gemini web session -> Pollinations.ai
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

from ..core.config import load_credentials
from ..core.constants import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_QUOTA_FAILURES,
    DEFAULT_MIN_REQUEST_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    KEY_STATUS_FILE_NAME,
)
from ..core.types import Credential, CredentialStatus, GeneratedAsset, PoolStats
from ..providers.gemini_provider import GeminiImageBackend, GeminiTextBackend
from ..providers.gemini_web_provider import GeminiWebBackend
from ..providers.pollinations_provider import PollinationsBackend
from ..providers.provider_interface import ImageBackend
from ..usage.manager import KeyStatusManager
from ..usage.storage import KeyStatusStorage
from ..utils.paths import get_data_file
from .dispatcher import RequestDispatcher
from .executor import RotationExecutor
from .fallback import BackendFallbackChain, FallbackTier

lib_logger = logging.getLogger("genai_rotator")


class StudioClient:
    """
    Image and text generation with key rotation and backend fallback.

    Example:
        async with StudioClient() as client:
            asset = await client.generate_image("a lighthouse at dusk", "16:9")
            print(client.get_stats().to_dict())
    """

    def __init__(
        self,
        credentials: Optional[Sequence[Credential]] = None,
        status_file: Optional[Union[str, Path]] = None,
        storage: Optional[Any] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        min_interval: float = DEFAULT_MIN_REQUEST_INTERVAL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_failures: int = DEFAULT_MAX_QUOTA_FAILURES,
        primary_backend: Optional[ImageBackend] = None,
        web_backend: Optional[ImageBackend] = None,
        fallback_backend: Optional[ImageBackend] = None,
        text_backend: Optional[GeminiTextBackend] = None,
        dispatcher: Optional[RequestDispatcher] = None,
        status_manager: Optional[KeyStatusManager] = None,
    ):
        """
        Initialize the StudioClient.

        Args:
            credentials: Credential pool; loaded from the environment when None
            status_file: Path of the key status JSON file
            storage: Credential Store override (e.g. MemoryKeyStatusStorage)
            http_client: Shared httpx.AsyncClient; created and owned when None
            min_interval: Minimum seconds between request starts
            max_attempts: Credentials tried per request on the primary backend
            max_failures: Quota failures before a key is permanently blocked
            primary_backend / web_backend / fallback_backend: Tier overrides
            text_backend: Text generation override
            dispatcher / status_manager: Component overrides
        """
        self.credentials: List[Credential] = (
            list(credentials) if credentials is not None else load_credentials()
        )

        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=DEFAULT_REQUEST_TIMEOUT, follow_redirects=True
        )

        if status_manager is None:
            if storage is None:
                storage = KeyStatusStorage(
                    status_file or get_data_file(KEY_STATUS_FILE_NAME)
                )
            status_manager = KeyStatusManager(storage, max_failures=max_failures)
        self.status_manager = status_manager

        self.dispatcher = dispatcher or RequestDispatcher(min_interval=min_interval)
        self.executor = RotationExecutor(
            self.credentials,
            self.status_manager,
            self.dispatcher,
            max_attempts=max_attempts,
        )

        self.primary_backend = primary_backend or GeminiImageBackend(self._http_client)
        self.web_backend = web_backend or GeminiWebBackend(self._http_client)
        self.fallback_backend = fallback_backend or PollinationsBackend(self._http_client)
        self.text_backend = text_backend or GeminiTextBackend()

        self.fallback_chain = BackendFallbackChain(
            [
                FallbackTier(
                    name=self.primary_backend.name,
                    runner=self._run_primary,
                    is_available=lambda: bool(self.credentials),
                ),
                FallbackTier(
                    name=self.web_backend.name,
                    runner=self.web_backend.generate_image,
                    is_available=self.web_backend.is_available,
                ),
                FallbackTier(
                    name=self.fallback_backend.name,
                    runner=self.fallback_backend.generate_image,
                ),
            ]
        )

    async def __aenter__(self) -> "StudioClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.aclose()
        return False

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    # =========================================================================
    # GENERATION
    # =========================================================================

    async def _run_primary(
        self, prompt: str, aspect_ratio: str, options: Dict[str, Any]
    ) -> GeneratedAsset:
        cancel_event = options.pop("cancel_event", None)
        max_attempts = options.pop("max_attempts", None)

        async def _call(cred: Credential) -> GeneratedAsset:
            return await self.primary_backend.generate_image(
                prompt, aspect_ratio, options, credential=cred
            )

        return await self.executor.execute(
            _call,
            max_attempts=max_attempts,
            cancel_event=cancel_event,
            label=f"image ({self.primary_backend.name})",
        )

    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        options: Optional[Dict[str, Any]] = None,
    ) -> GeneratedAsset:
        """
        Generate an image, escalating through the fallback tiers.

        Raises:
            TotalFailureError: Every tier failed
        """
        lib_logger.info(f"Image request queued (aspect ratio {aspect_ratio})")
        return await self.fallback_chain.generate(prompt, aspect_ratio, options)

    async def generate_text(
        self,
        prompt: str,
        schema: Optional[Dict[str, Any]] = None,
        cancel_event: Optional[asyncio.Event] = None,
        max_attempts: Optional[int] = None,
        **options: Any,
    ) -> Union[str, Dict[str, Any], list]:
        """
        Generate text (or a parsed JSON object when schema is given).

        Raises:
            AllCredentialsExhaustedError: No key could serve the request
            NonCredentialError: The request failed for another reason
        """

        async def _call(cred: Credential):
            return await self.text_backend.generate_text(
                prompt, cred, schema=schema, **options
            )

        return await self.executor.execute(
            _call,
            max_attempts=max_attempts,
            cancel_event=cancel_event,
            label=f"text ({self.text_backend.model})",
        )

    # =========================================================================
    # WEB SESSION
    # =========================================================================

    async def initialize_web_session(self, cookie_string: str) -> bool:
        return await self.web_backend.initialize(cookie_string)

    async def load_saved_web_session(self) -> bool:
        return await self.web_backend.load_saved_session()

    # =========================================================================
    # KEY STATUS
    # =========================================================================

    def list_credential_status(self) -> List[CredentialStatus]:
        return self.status_manager.list_statuses(self.credentials)

    def reset_all(self) -> None:
        self.status_manager.reset_all()

    def reset_one(self, name: str) -> bool:
        return self.status_manager.reset_one(name)

    def get_stats(self) -> PoolStats:
        return self.status_manager.get_stats(self.credentials)
