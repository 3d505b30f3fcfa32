# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Credential pool configuration.

The pool is built once at startup from, in order:
1. A fixed in-memory list passed by the application
2. GEMINI_API_KEY / GEMINI_API_KEY_<N> entries from the environment or .env,
   with optional GEMINI_API_KEY_<N>_NAME display names
3. API_KEY, a single environment-provided secret that replaces the token
   of the first slot
"""

import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from dotenv import load_dotenv

from .types import Credential
from ..utils.paths import get_data_file

lib_logger = logging.getLogger("genai_rotator")

KEY_ENV_PREFIX = "GEMINI_API_KEY"
OVERRIDE_ENV_NAME = "API_KEY"

_KEY_NAME_RE = re.compile(rf"^{KEY_ENV_PREFIX}(?:_(\d+))?$")


def _extract_key_number(key_name: str) -> int:
    """Extract the numeric suffix from a key name for proper sorting.

    Examples:
        GEMINI_API_KEY_1 -> 1
        GEMINI_API_KEY_10 -> 10
        GEMINI_API_KEY -> 0
    """
    match = re.search(r"_(\d+)$", key_name)
    return int(match.group(1)) if match else 0


def load_env_file(env_file: Optional[Union[str, Path]] = None) -> bool:
    """Load the .env file from the data directory without overriding the process env."""
    path = Path(env_file) if env_file else get_data_file(".env")
    if not path.exists():
        return False
    return load_dotenv(path, override=False)


def discover_env_keys(env: Mapping[str, str]) -> List[Tuple[str, str, Optional[str]]]:
    """
    Find API keys in an environment mapping.

    Returns:
        List of (env var name, token, display name) sorted by key number
    """
    found = []
    for key_name, value in env.items():
        if not _KEY_NAME_RE.match(key_name) or not (value or "").strip():
            continue
        display_name = env.get(f"{key_name}_NAME") or None
        found.append((key_name, value.strip(), display_name))
    found.sort(key=lambda item: _extract_key_number(item[0]))
    return found


def load_credentials(
    defaults: Optional[Sequence[Tuple[str, str]]] = None,
    env: Optional[Mapping[str, str]] = None,
    env_file: Optional[Union[str, Path]] = None,
) -> List[Credential]:
    """
    Build the credential pool.

    Args:
        defaults: In-memory (display name, token) pairs, loaded first
        env: Environment mapping; defaults to os.environ after loading .env
        env_file: Optional explicit .env path

    Returns:
        Deduplicated list of credentials in priority order
    """
    if env is None:
        load_env_file(env_file)
        env = os.environ

    credentials: List[Credential] = []
    seen_tokens: Dict[str, str] = {}

    def _add(token: str, name: Optional[str]) -> None:
        if token in seen_tokens:
            lib_logger.debug(f"Skipping duplicate key for '{name or seen_tokens[token]}'")
            return
        cred = Credential.from_token(token, name)
        seen_tokens[token] = cred.name
        credentials.append(cred)

    for name, token in defaults or []:
        if token:
            _add(token, name)

    for key_name, token, display_name in discover_env_keys(env):
        number = _extract_key_number(key_name)
        _add(token, display_name or f"Project Key {number or len(credentials) + 1}")

    override = (env.get(OVERRIDE_ENV_NAME) or "").strip()
    if override:
        if credentials:
            first = credentials[0]
            if override != first.token:
                credentials[0] = Credential.from_token(override, first.name)
                credentials = [credentials[0]] + [
                    c for c in credentials[1:] if c.token != override
                ]
                lib_logger.info(f"{OVERRIDE_ENV_NAME} replaces the key of '{first.name}'")
        else:
            credentials.append(Credential.from_token(override, "Environment Key"))

    if not credentials:
        lib_logger.warning(
            "No API keys configured. Set GEMINI_API_KEY_1 (or API_KEY) to enable the primary backend."
        )
    else:
        lib_logger.debug(f"Loaded {len(credentials)} credential(s)")
    return credentials
