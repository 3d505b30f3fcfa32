# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Centralized defaults for the key rotator.

This file contains all tunable default values for:
- Request throttling (global dispatcher interval)
- Credential rotation and quota escalation
- Daily limit reset timing
- Backend endpoints and timeouts

Environment variables override these at import time.
"""

import os


def _env_int(name: str, default: int) -> int:
    """Parse an integer from environment variable with fallback to default."""
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    """Parse a float from environment variable with fallback to default."""
    try:
        return float(os.environ.get(name, str(default)))
    except ValueError:
        return default


# =============================================================================
# DISPATCH & ROTATION DEFAULTS
# =============================================================================

# Minimum seconds between the start of two outbound requests.
# Shared by every caller regardless of credential, keeps the pool under a
# free-tier requests-per-minute ceiling.
# Override: GENAI_MIN_REQUEST_INTERVAL=<seconds>
DEFAULT_MIN_REQUEST_INTERVAL: float = max(
    0.0, _env_float("GENAI_MIN_REQUEST_INTERVAL", 1.2)
)

# Credentials tried per request before giving up on the primary backend
# Override: GENAI_MAX_ATTEMPTS=<n>
DEFAULT_MAX_ATTEMPTS: int = max(1, _env_int("GENAI_MAX_ATTEMPTS", 3))

# Consecutive quota failures after which a credential is permanently blocked
# Override: GENAI_MAX_QUOTA_FAILURES=<n>
DEFAULT_MAX_QUOTA_FAILURES: int = max(1, _env_int("GENAI_MAX_QUOTA_FAILURES", 3))

# =============================================================================
# DAILY LIMIT RESET
# =============================================================================

# Gemini daily quotas roll over at midnight Pacific time
DEFAULT_RESET_TIMEZONE: str = os.environ.get(
    "GENAI_DAILY_RESET_TZ", "America/Los_Angeles"
)

# Seconds past midnight before a daily-limited key becomes selectable again
DAILY_RESET_MARGIN_SECONDS: int = 300

# =============================================================================
# STORAGE
# =============================================================================

KEY_STATUS_FILE_NAME = os.environ.get("KEY_STATUS_FILE", "key_status.json")
WEB_SESSION_FILE_NAME = "gemini_web_session.json"

# Saved web sessions older than this are discarded instead of revalidated
WEB_SESSION_MAX_AGE_SECONDS: int = 2 * 60 * 60

# =============================================================================
# BACKENDS
# =============================================================================

GEMINI_API_BASE = os.environ.get(
    "GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta"
)
DEFAULT_IMAGE_MODEL = os.environ.get("GEMINI_IMAGE_MODEL", "imagen-4.0-generate-001")
DEFAULT_TEXT_MODEL = os.environ.get("GEMINI_TEXT_MODEL", "gemini-2.5-flash")

# Tokens reserved for thinking on gemini-2.5-flash when max_tokens is set,
# otherwise thinking can consume the whole budget and return empty text
DEFAULT_THINKING_BUDGET: int = 1024

GEMINI_WEB_URL = "https://gemini.google.com/app"
POLLINATIONS_URL = "https://image.pollinations.ai/prompt/{prompt}"

DEFAULT_REQUEST_TIMEOUT: float = _env_float("GENAI_REQUEST_TIMEOUT", 120.0)
POLLINATIONS_TIMEOUT: float = _env_float("POLLINATIONS_TIMEOUT", 60.0)
