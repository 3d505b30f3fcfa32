# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Gemini API backends (primary tier).

Image generation calls the Imagen predict endpoint directly with httpx,
since the request needs Imagen-specific parameters (aspect ratio, negative
prompt). Text generation goes through LiteLLM's Gemini provider.

Both are keyed: every call receives the credential picked by the
RotationExecutor.

Environment variables:
    GEMINI_API_BASE: API base URL (default: https://generativelanguage.googleapis.com/v1beta)
    GEMINI_IMAGE_MODEL: Imagen model (default: imagen-4.0-generate-001)
    GEMINI_TEXT_MODEL: Text model (default: gemini-2.5-flash)
"""

import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional, Union

import httpx
import litellm

from ..core.constants import (
    DEFAULT_IMAGE_MODEL,
    DEFAULT_TEXT_MODEL,
    DEFAULT_THINKING_BUDGET,
    GEMINI_API_BASE,
)
from ..core.errors import NonCredentialError, ProviderHTTPError
from ..core.types import Credential, GeneratedAsset
from .provider_interface import ImageBackend

lib_logger = logging.getLogger("genai_rotator")

# Imagen options passed through to the request "parameters" block
_IMAGEN_OPTION_KEYS = {
    "negative_prompt": "negativePrompt",
    "person_generation": "personGeneration",
    "safety_filter_level": "safetyFilterLevel",
    "output_mime_type": "outputMimeType",
}


class GeminiImageBackend(ImageBackend):
    """
    Imagen image generation through the Gemini API.

    Non-2xx responses raise ProviderHTTPError carrying the status and body
    (e.g. 429 RESOURCE_EXHAUSTED) so the executor can classify them.
    """

    name = "gemini_api"
    requires_credential = True

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        model: str = DEFAULT_IMAGE_MODEL,
        api_base: str = GEMINI_API_BASE,
    ):
        self._http_client = http_client
        self.model = model
        self.api_base = api_base.rstrip("/")

    def _build_payload(
        self, prompt: str, aspect_ratio: str, options: Dict[str, Any]
    ) -> Dict[str, Any]:
        parameters: Dict[str, Any] = {"sampleCount": 1, "aspectRatio": aspect_ratio}
        for option, api_name in _IMAGEN_OPTION_KEYS.items():
            if options.get(option) is not None:
                parameters[api_name] = options[option]
        return {"instances": [{"prompt": prompt}], "parameters": parameters}

    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        options: Optional[Dict[str, Any]] = None,
        credential: Optional[Credential] = None,
    ) -> GeneratedAsset:
        if credential is None:
            raise NonCredentialError(f"{self.name} requires a credential")

        options = options or {}
        model = options.get("model", self.model)
        url = f"{self.api_base}/models/{model}:predict"
        response = await self._http_client.post(
            url,
            headers={"x-goog-api-key": credential.token},
            json=self._build_payload(prompt, aspect_ratio, options),
        )
        if response.status_code >= 400:
            raise ProviderHTTPError(response.status_code, response.text, provider=self.name)

        try:
            predictions = response.json().get("predictions") or []
        except (ValueError, AttributeError) as e:
            raise NonCredentialError(f"Unexpected Imagen response: {e}") from e

        for prediction in predictions:
            encoded = prediction.get("bytesBase64Encoded")
            if not encoded:
                continue
            try:
                data = base64.b64decode(encoded)
            except (binascii.Error, ValueError) as e:
                raise NonCredentialError(f"Imagen returned undecodable image data: {e}") from e
            return GeneratedAsset(
                data=data,
                mime_type=prediction.get("mimeType", "image/png"),
                backend=self.name,
                prompt=prompt,
            )

        # No image usually means the prompt was filtered
        reason = predictions[0].get("raiFilteredReason") if predictions else None
        raise NonCredentialError(
            f"Imagen returned no image{f' ({reason})' if reason else ''}"
        )


class GeminiTextBackend:
    """Text generation through LiteLLM's Gemini provider."""

    name = "gemini_text"

    def __init__(self, model: str = DEFAULT_TEXT_MODEL):
        self.model = model

    def _build_kwargs(
        self,
        prompt: str,
        credential: Credential,
        schema: Optional[Dict[str, Any]],
        options: Dict[str, Any],
    ) -> Dict[str, Any]:
        model = options.pop("model", self.model)
        kwargs: Dict[str, Any] = {
            "model": model if model.startswith("gemini/") else f"gemini/{model}",
            "messages": [{"role": "user", "content": prompt}],
            "api_key": credential.token,
        }
        system_instruction = options.pop("system_instruction", None)
        if system_instruction:
            kwargs["messages"].insert(0, {"role": "system", "content": system_instruction})
        if schema is not None:
            kwargs["response_format"] = {"type": "json_object", "response_schema": schema}

        # Reserve part of the output budget for thinking, otherwise
        # gemini-2.5-flash can spend it all and return no text
        if "gemini-2.5-flash" in model and options.get("max_tokens") and "thinking" not in options:
            kwargs["thinking"] = {"type": "enabled", "budget_tokens": DEFAULT_THINKING_BUDGET}
            lib_logger.debug("Auto-setting thinking budget for gemini-2.5-flash with max_tokens")

        kwargs.update(options)
        return kwargs

    async def generate_text(
        self,
        prompt: str,
        credential: Credential,
        schema: Optional[Dict[str, Any]] = None,
        **options: Any,
    ) -> Union[str, Dict[str, Any], list]:
        """
        Generate text, or a JSON object when a schema is given.

        Raises:
            litellm exceptions for API failures (classified by the executor)
            NonCredentialError: Empty response or invalid JSON
        """
        kwargs = self._build_kwargs(prompt, credential, schema, dict(options))
        response = await litellm.acompletion(**kwargs)

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise NonCredentialError(f"Unexpected completion response shape: {e}") from e
        if not content:
            raise NonCredentialError(f"Empty response from {kwargs['model']}")

        if schema is None:
            return content
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise NonCredentialError(
                f"{kwargs['model']} returned invalid JSON: {e}"
            ) from e
