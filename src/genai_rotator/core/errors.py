# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Error taxonomy and classification for credential rotation.

The Gemini API does not expose structured quota codes through every
client path, so classification inspects the error text for quota and
daily-limit markers. The matching rules live here, apart from the retry
loop, so they can evolve independently.
"""

import logging
from typing import Dict, List, Optional

from litellm.exceptions import RateLimitError

lib_logger = logging.getLogger("genai_rotator")


# =============================================================================
# EXCEPTIONS
# =============================================================================


class GenerationError(Exception):
    """Base class for every error raised by the rotator."""

    pass


class CredentialExhaustedError(GenerationError):
    """
    Raised by a backend when a single credential hit its usage ceiling.

    Rotatable: the executor marks the credential and tries the next one.
    """

    pass


class AllCredentialsExhaustedError(GenerationError):
    """Raised when no credential in the pool yields a successful response."""

    pass


class BackendUnavailableError(GenerationError):
    """
    Raised when a fallback backend is not initialized or itself failing.

    Attributes:
        backend: Name of the backend that could not serve the request
    """

    def __init__(self, backend: str, message: str = ""):
        self.backend = backend
        self.message = message or f"Backend '{backend}' is unavailable"
        super().__init__(self.message)


class NonCredentialError(GenerationError):
    """
    Raised for failures that are not a credential problem.

    Malformed requests, server errors and unexpected response shapes are
    never retried on another credential, so real bugs stay visible.

    Attributes:
        credential: Masked credential that was active, if any
    """

    def __init__(self, message: str, credential: Optional[str] = None):
        self.credential = credential
        self.message = message
        super().__init__(message)


class TotalFailureError(GenerationError):
    """
    Raised when every fallback tier failed.

    Attributes:
        reasons: Ordered mapping of tier name to its failure reason
    """

    def __init__(self, reasons: Dict[str, str]):
        self.reasons = dict(reasons)
        parts = [f"{tier}: {reason}" for tier, reason in self.reasons.items()]
        self.message = "All generation backends failed. " + "; ".join(parts)
        super().__init__(self.message)


class RequestCancelledError(GenerationError):
    """Raised when the caller's stop flag is observed between attempts."""

    pass


class ProviderHTTPError(Exception):
    """
    Non-2xx response from a provider endpoint.

    Carries the status code and body text so the classifier can see
    quota markers like RESOURCE_EXHAUSTED.
    """

    def __init__(self, status_code: int, body: str = "", provider: str = ""):
        self.status_code = status_code
        self.body = body
        self.provider = provider
        prefix = f"{provider} " if provider else ""
        super().__init__(f"{prefix}HTTP {status_code}: {body[:500]}")


# =============================================================================
# CLASSIFICATION
# =============================================================================

QUOTA_MARKERS = (
    "quota",
    "rate limit",
    "rate_limit",
    "ratelimit",
    "429",
    "resource exhausted",
    "resource_exhausted",
    "too many requests",
)

DAILY_MARKERS = (
    "daily",
    "per day",
    "perday",
)

ERROR_TYPE_DAILY_LIMIT = "daily_limit"
ERROR_TYPE_QUOTA = "quota_exceeded"
ERROR_TYPE_NON_CREDENTIAL = "non_credential"


class ClassifiedError:
    """A structured representation of a classified error."""

    def __init__(
        self,
        error_type: str,
        original_exception: Optional[Exception] = None,
        status_code: Optional[int] = None,
        message: str = "",
    ):
        self.error_type = error_type
        self.original_exception = original_exception
        self.status_code = status_code
        self.message = message

    def __str__(self):
        return (
            f"ClassifiedError(type={self.error_type}, status={self.status_code}, "
            f"original_exc={self.original_exception})"
        )


def _extract_status_code(e: Exception) -> Optional[int]:
    status = getattr(e, "status_code", None)
    if isinstance(status, int):
        return status
    response = getattr(e, "response", None)
    status = getattr(response, "status_code", None)
    return status if isinstance(status, int) else None


def _extract_message(e: Exception) -> str:
    message = str(e)
    response = getattr(e, "response", None)
    if response is not None:
        try:
            body = response.text
        except Exception:
            body = ""
        if body and body not in message:
            message = f"{message} {body}"
    return message


def classify_message(message: str, status_code: Optional[int] = None) -> str:
    """
    Classify raw error text into one of the error types.

    Quota markers with a daily marker mean a daily limit; quota markers
    alone mean a generic quota/rate-limit hit; anything else is not a
    credential problem.
    """
    lowered = message.lower()
    is_quota = status_code == 429 or any(m in lowered for m in QUOTA_MARKERS)
    if not is_quota:
        return ERROR_TYPE_NON_CREDENTIAL
    if any(m in lowered for m in DAILY_MARKERS):
        return ERROR_TYPE_DAILY_LIMIT
    return ERROR_TYPE_QUOTA


def classify_error(e: Exception) -> ClassifiedError:
    """Classify an exception raised while calling a backend."""
    status_code = _extract_status_code(e)
    message = _extract_message(e)
    error_type = classify_message(message, status_code)
    if error_type == ERROR_TYPE_NON_CREDENTIAL and isinstance(
        e, (RateLimitError, CredentialExhaustedError)
    ):
        error_type = ERROR_TYPE_QUOTA
    return ClassifiedError(
        error_type=error_type,
        original_exception=e,
        status_code=status_code,
        message=message,
    )


def is_credential_error(classified_error: ClassifiedError) -> bool:
    """True when the error should rotate to another credential."""
    return classified_error.error_type in (ERROR_TYPE_DAILY_LIMIT, ERROR_TYPE_QUOTA)


def mask_credential(credential: str) -> str:
    """
    Mask a credential for safe display in logs and error messages.

    Shows the last 6 characters (e.g., "...xyz123").
    """
    if len(credential) > 6:
        return f"...{credential[-6:]}"
    return "***"


# =============================================================================
# ERROR ACCUMULATION
# =============================================================================


class RequestErrorAccumulator:
    """
    Tracks errors encountered during a request's credential rotation cycle.

    Used to build a single, human-readable message when every credential
    is exhausted, instead of surfacing a stack of per-attempt exceptions.
    """

    def __init__(self, label: str = ""):
        self.label = label
        self.errors: List[Dict[str, Optional[str]]] = []
        self._tried_credentials: set = set()

    def record_error(
        self, credential: str, classified_error: ClassifiedError, error_message: str
    ) -> None:
        """Record an error for a credential."""
        self._tried_credentials.add(credential)
        self.errors.append(
            {
                "credential": credential,
                "error_type": classified_error.error_type,
                "message": self._truncate_message(error_message, 150),
            }
        )

    @property
    def total_credentials_tried(self) -> int:
        """Return the number of unique credentials tried."""
        return len(self._tried_credentials)

    def _truncate_message(self, message: str, max_length: int = 150) -> str:
        first_line = message.split("\n")[0]
        if len(first_line) > max_length:
            return first_line[:max_length] + "..."
        return first_line

    def has_errors(self) -> bool:
        return bool(self.errors)

    def get_summary(self) -> str:
        """Summary like "2 quota_exceeded, 1 daily_limit"."""
        counts: Dict[str, int] = {}
        for err in self.errors:
            counts[err["error_type"]] = counts.get(err["error_type"], 0) + 1
        return ", ".join(f"{count} {err_type}" for err_type, count in counts.items())

    def build_message(self, available: int, total: int) -> str:
        """Build the aggregated exhaustion message."""
        target = f" for {self.label}" if self.label else ""
        if not self.has_errors():
            return (
                f"All credentials exhausted{target}: "
                f"{available} of {total} available"
            )
        parts = [
            f"All credentials exhausted{target} after trying "
            f"{self.total_credentials_tried} credential(s)",
            f"failures: {self.get_summary()}",
        ]
        last = self.errors[-1]
        parts.append(f"last error on {last['credential']}: {last['message']}")
        return "; ".join(parts)
