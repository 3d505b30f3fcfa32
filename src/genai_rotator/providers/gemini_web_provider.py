# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Gemini web session backend (second tier).

Authenticates out-of-band with the browser cookies of a signed-in
gemini.google.com session. The session is validated against the web app,
saved to the data directory and revalidated on the next start while it is
younger than WEB_SESSION_MAX_AGE_SECONDS.

The web app exposes no stable image endpoint, so a validated session is
reported as connected but image requests still escalate to the next tier
with an explicit reason.
"""

import base64
import json
import logging
import re
import secrets
import time
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from ..core.constants import (
    GEMINI_WEB_URL,
    WEB_SESSION_FILE_NAME,
    WEB_SESSION_MAX_AGE_SECONDS,
)
from ..core.errors import BackendUnavailableError
from ..core.types import Credential, GeneratedAsset
from ..utils.paths import get_data_file
from .provider_interface import ImageBackend

lib_logger = logging.getLogger("genai_rotator")

_COOKIE_RE = re.compile(r"(.*?)=(.*)")

# Markers of a login redirect or bot check instead of the app shell
_INVALID_SESSION_MARKERS = ("accounts.google.com", "Captcha", "solve this puzzle")


def parse_cookie_string(cookie_string: str) -> Dict[str, str]:
    """Parse a "name=value; name2=value2" header into a dict."""
    cookies: Dict[str, str] = {}
    for part in cookie_string.split(";"):
        match = _COOKIE_RE.match(part)
        if match:
            cookies[match.group(1).strip()] = match.group(2).strip()
    return cookies


def has_essential_cookies(cookies: Dict[str, str]) -> bool:
    """True when both a __Secure-*PSID and a __Secure-*PSIDTS cookie are present."""
    has_psid = any(
        k.startswith("__Secure-")
        and k.endswith("PSID")
        and "PSIDTS" not in k
        and "PSIDCC" not in k
        for k in cookies
    )
    has_psidts = any(k.startswith("__Secure-") and k.endswith("PSIDTS") for k in cookies)
    return has_psid and has_psidts


class GeminiWebBackend(ImageBackend):
    """Second-tier backend driven by a browser cookie session."""

    name = "gemini_web"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        session_file: Optional[Union[str, Path]] = None,
        clock=time.time,
    ):
        self._http_client = http_client
        self._session_file = (
            Path(session_file) if session_file else get_data_file(WEB_SESSION_FILE_NAME)
        )
        self._clock = clock
        self._cookies: Dict[str, str] = {}
        self._initialized = False
        self.session_id = ""
        self.last_validation = 0.0

    def is_available(self) -> bool:
        return self._initialized

    def _build_headers(self) -> Dict[str, str]:
        cookie_header = "; ".join(f"{k}={v}" for k, v in self._cookies.items() if v)
        return {
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Origin": "https://gemini.google.com",
            "Referer": "https://gemini.google.com/",
            "Cookie": cookie_header,
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "same-origin",
            "Upgrade-Insecure-Requests": "1",
            "X-Same-Domain": "1",
        }

    async def _validate_connection(self) -> None:
        try:
            response = await self._http_client.get(
                GEMINI_WEB_URL, headers=self._build_headers()
            )
        except httpx.HTTPError as e:
            raise BackendUnavailableError(
                self.name, f"Network error while validating the Gemini web session: {e}"
            ) from e

        text = response.text
        if response.status_code >= 400 or any(m in text for m in _INVALID_SESSION_MARKERS):
            raise BackendUnavailableError(
                self.name,
                "Could not validate the Gemini web session: the cookies are invalid, "
                "expired or a CAPTCHA is required. Copy fresh cookies from gemini.google.com.",
            )

    async def initialize(self, cookie_string: str) -> bool:
        """
        Validate and store a cookie session.

        Raises:
            BackendUnavailableError: Missing essential cookies or failed validation
        """
        lib_logger.info("Initializing Gemini web session")
        cookies = parse_cookie_string(cookie_string)
        if not has_essential_cookies(cookies):
            self._initialized = False
            raise BackendUnavailableError(
                self.name,
                "Essential cookies (__Secure-..PSID, __Secure-..PSIDTS) are missing. "
                "Copy every cookie from gemini.google.com.",
            )

        self._cookies = cookies
        try:
            await self._validate_connection()
        except BackendUnavailableError:
            self._initialized = False
            raise

        self.session_id = secrets.token_hex(12)
        self.last_validation = self._clock()
        self._initialized = True
        self._save_session(cookie_string)
        lib_logger.info("Gemini web session validated")
        return True

    def _save_session(self, cookie_string: str) -> None:
        payload = {
            "cookies": cookie_string,
            "timestamp": self.last_validation,
            "session_id": self.session_id,
            "validated": True,
        }
        try:
            self._session_file.parent.mkdir(parents=True, exist_ok=True)
            encoded = base64.b64encode(json.dumps(payload).encode()).decode()
            self._session_file.write_text(encoded, encoding="utf-8")
        except OSError as e:
            lib_logger.error(f"Failed to save Gemini web session: {e}")

    def _discard_saved_session(self) -> None:
        try:
            self._session_file.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            lib_logger.warning(f"Failed to remove saved Gemini web session: {e}")

    async def load_saved_session(self) -> bool:
        """
        Revalidate a previously saved session.

        Returns:
            True if a saved session was restored; False when none exists,
            it is too old, or revalidation failed (the file is then removed)
        """
        if not self._session_file.exists():
            return False
        try:
            raw = self._session_file.read_text(encoding="utf-8")
            data = json.loads(base64.b64decode(raw))
            age = self._clock() - float(data["timestamp"])
            if age > WEB_SESSION_MAX_AGE_SECONDS:
                lib_logger.info("Saved Gemini web session is stale, a new login is required")
                self._discard_saved_session()
                return False
            await self.initialize(data["cookies"])
            return True
        except (ValueError, KeyError, TypeError, BackendUnavailableError) as e:
            lib_logger.warning(f"Could not restore saved Gemini web session: {e}")
            self._discard_saved_session()
            return False

    def get_status(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "session_id": self.session_id,
            "has_valid_cookies": any("PSID" in k for k in self._cookies),
            "last_validation": self.last_validation,
        }

    async def generate_image(
        self,
        prompt: str,
        aspect_ratio: str = "1:1",
        options: Optional[Dict[str, Any]] = None,
        credential: Optional[Credential] = None,
    ) -> GeneratedAsset:
        if not self._initialized:
            raise BackendUnavailableError(
                self.name, "Gemini web session is not initialized"
            )
        raise BackendUnavailableError(
            self.name, "Image generation through the Gemini web session is not supported"
        )
