# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Shared type definitions for the key rotator.

This module contains dataclasses and type definitions used across
the client, usage and provider packages.
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


# =============================================================================
# CREDENTIAL TYPES
# =============================================================================


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def credential_id_for_token(token: str) -> str:
    """Stable identifier for an API key that never reveals the key itself."""
    return hashlib.sha256(token.encode()).hexdigest()[:16]


@dataclass(frozen=True)
class Credential:
    """
    One API key plus its display metadata.

    Immutable for the process lifetime; the pool itself is configuration.
    """

    id: str
    token: str = field(repr=False)
    name: str

    @classmethod
    def from_token(cls, token: str, name: Optional[str] = None) -> "Credential":
        cred_id = credential_id_for_token(token)
        return cls(id=cred_id, token=token, name=name or f"Key {cred_id[:6]}")


class KeyStatus(str, Enum):
    """Health state of a credential. Only ACTIVE credentials are selectable."""

    ACTIVE = "active"
    QUOTA_EXHAUSTED = "quota_exhausted"
    DAILY_LIMITED = "daily_limited"
    PERMANENTLY_BLOCKED = "permanently_blocked"

    @classmethod
    def parse(cls, value: str) -> "KeyStatus":
        # Older status files wrote "daily_limit"
        if value == "daily_limit":
            return cls.DAILY_LIMITED
        return cls(value)


@dataclass
class CredentialStatus:
    """
    Mutable health record tracked per credential.

    Persisted as a flat JSON object keyed by credential id, using the
    camelCase field names of the status file.
    """

    id: str
    name: str = ""
    status: KeyStatus = KeyStatus.ACTIVE
    failure_count: int = 0
    last_error: Optional[str] = None
    exhausted_at: Optional[float] = None
    reset_at: Optional[float] = None  # daily_limited only
    last_used_at: Optional[float] = None

    @classmethod
    def default_for(cls, credential: Credential) -> "CredentialStatus":
        """Record used for credentials that have never been referenced."""
        return cls(id=credential.id, name=credential.name)

    @property
    def is_active(self) -> bool:
        return self.status == KeyStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "projectName": self.name,
            "status": self.status.value,
            "failureCount": self.failure_count,
        }
        optional = {
            "lastError": self.last_error,
            "exhaustedAt": self.exhausted_at,
            "resetAt": self.reset_at,
            "lastUsedAt": self.last_used_at,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, cred_id: str, data: Dict[str, Any]) -> "CredentialStatus":
        return cls(
            id=data.get("id") or cred_id,
            name=data.get("projectName", ""),
            status=KeyStatus.parse(data.get("status", KeyStatus.ACTIVE.value)),
            failure_count=int(data.get("failureCount", 0)),
            last_error=data.get("lastError"),
            exhausted_at=_optional_float(data.get("exhaustedAt")),
            reset_at=_optional_float(data.get("resetAt")),
            last_used_at=_optional_float(data.get("lastUsedAt")),
        )


@dataclass
class PoolStats:
    """Counts of credentials per status."""

    total: int = 0
    active: int = 0
    quota_exhausted: int = 0
    daily_limited: int = 0
    permanently_blocked: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "active": self.active,
            "quotaExhausted": self.quota_exhausted,
            "dailyLimited": self.daily_limited,
            "permanentlyBlocked": self.permanently_blocked,
        }


# =============================================================================
# GENERATION TYPES
# =============================================================================


@dataclass
class GeneratedAsset:
    """
    A finished generation result.

    Backends construct this only after the full payload has been decoded,
    so a failing tier never exposes a partial asset.
    """

    data: bytes = field(repr=False)
    mime_type: str
    backend: str
    prompt: str = ""

    @property
    def size(self) -> int:
        return len(self.data)


# =============================================================================
# ERROR ACTION ENUM
# =============================================================================


class ErrorAction:
    """
    Actions to take after an error.

    Used by RotationExecutor to determine next steps.
    """

    ROTATE = "rotate"  # Mark credential and try the next one
    FAIL = "fail"  # Surface the error immediately
