# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
KeyStatusManager: credential health tracking and availability filtering.

This is the main public API of the usage package. It owns the in-memory
status map, loaded once from the Credential Store and written back after
every mutation.
"""

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..core.constants import (
    DAILY_RESET_MARGIN_SECONDS,
    DEFAULT_MAX_QUOTA_FAILURES,
    DEFAULT_RESET_TIMEZONE,
)
from ..core.errors import (
    ERROR_TYPE_DAILY_LIMIT,
    ERROR_TYPE_QUOTA,
    ClassifiedError,
)
from ..core.types import Credential, CredentialStatus, KeyStatus, PoolStats

lib_logger = logging.getLogger("genai_rotator")

AUTO_RESET_NOTE = "Automatically reactivated after daily reset."


class KeyStatusManager:
    """
    Tracks the health of every credential and decides which are usable.

    Eligibility is a strict function of the status map and the clock:
    - no record: available
    - permanently_blocked / quota_exhausted: excluded until reset
    - daily_limited: excluded until reset_at, then reactivated in place

    Example:
        manager = KeyStatusManager(KeyStatusStorage("key_status.json"))
        usable = manager.get_available(credentials)
        manager.mark_failure(usable[0], classify_error(exc))
    """

    def __init__(
        self,
        storage,
        max_failures: int = DEFAULT_MAX_QUOTA_FAILURES,
        clock: Callable[[], float] = time.time,
        reset_timezone: str = DEFAULT_RESET_TIMEZONE,
    ):
        """
        Initialize KeyStatusManager.

        Args:
            storage: Credential Store (KeyStatusStorage or compatible)
            max_failures: Quota failures before a credential is permanently blocked
            clock: Wall clock returning epoch seconds
            reset_timezone: IANA zone whose midnight ends a daily limit
        """
        self._storage = storage
        self._max_failures = max(1, max_failures)
        self._clock = clock
        try:
            self._reset_tz = ZoneInfo(reset_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            lib_logger.warning(
                f"Unknown reset timezone '{reset_timezone}', falling back to UTC"
            )
            self._reset_tz = timezone.utc

        # Store mutations are read-modify-write; the lock keeps them atomic
        # when the synchronous tools share a manager with the event loop.
        self._lock = threading.RLock()
        self._statuses: Dict[str, CredentialStatus] = self._storage.load()
        lib_logger.debug(f"Loaded {len(self._statuses)} key status record(s)")

    # =========================================================================
    # LOOKUP
    # =========================================================================

    @property
    def max_failures(self) -> int:
        return self._max_failures

    def get_status(self, credential: Credential) -> CredentialStatus:
        """Status record for a credential, defaulting to active. Does not write."""
        with self._lock:
            status = self._statuses.get(credential.id)
            if status is None:
                return CredentialStatus.default_for(credential)
            return status

    def _ensure_status(self, credential: Credential) -> CredentialStatus:
        status = self._statuses.get(credential.id)
        if status is None:
            status = CredentialStatus.default_for(credential)
            self._statuses[credential.id] = status
        if not status.name:
            status.name = credential.name
        return status

    def _persist(self) -> None:
        # Persistence failures are logged by the store and never abort a request
        self._storage.save(self._statuses)

    # =========================================================================
    # AVAILABILITY FILTER
    # =========================================================================

    def get_available(self, credentials: Sequence[Credential]) -> List[Credential]:
        """
        Return the credentials currently eligible for selection.

        Daily-limited credentials whose reset time has passed are reactivated
        and persisted before this returns.
        """
        with self._lock:
            now = self._clock()
            available: List[Credential] = []
            reactivated = False

            for cred in credentials:
                status = self._statuses.get(cred.id)
                if status is None or status.status == KeyStatus.ACTIVE:
                    available.append(cred)
                    continue

                if status.status in (
                    KeyStatus.PERMANENTLY_BLOCKED,
                    KeyStatus.QUOTA_EXHAUSTED,
                ):
                    continue

                if status.status == KeyStatus.DAILY_LIMITED:
                    if status.reset_at is not None and now < status.reset_at:
                        continue
                    status.status = KeyStatus.ACTIVE
                    status.failure_count = 0
                    status.reset_at = None
                    status.last_error = AUTO_RESET_NOTE
                    reactivated = True
                    lib_logger.info(
                        f"Key '{cred.name}' reactivated: daily limit has reset"
                    )
                    available.append(cred)

            if reactivated:
                self._persist()

            lib_logger.debug(f"Available: {len(available)}/{len(credentials)} credentials")
            return available

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def mark_success(self, credential: Credential) -> CredentialStatus:
        """Record a successful call: active, zero failures, fresh last_used_at."""
        with self._lock:
            status = self._ensure_status(credential)
            if status.status != KeyStatus.ACTIVE:
                lib_logger.info(
                    f"Key '{credential.name}' reactivated after a successful call"
                )
            status.status = KeyStatus.ACTIVE
            status.failure_count = 0
            status.last_error = None
            status.reset_at = None
            status.last_used_at = self._clock()
            self._persist()
            return status

    def mark_failure(
        self, credential: Credential, error: ClassifiedError
    ) -> CredentialStatus:
        """
        Reclassify a credential after a failed call.

        Only credential-class errors change state:
        - daily_limit: daily_limited until the next reset time
        - quota_exceeded: quota_exhausted, or permanently_blocked once the
          failure count reaches the threshold
        Other errors leave the record untouched.
        """
        with self._lock:
            if error.error_type not in (ERROR_TYPE_DAILY_LIMIT, ERROR_TYPE_QUOTA):
                return self.get_status(credential)

            now = self._clock()
            status = self._ensure_status(credential)
            status.failure_count += 1
            status.last_error = error.message or str(error.original_exception)
            status.exhausted_at = now

            if error.error_type == ERROR_TYPE_DAILY_LIMIT:
                status.status = KeyStatus.DAILY_LIMITED
                status.reset_at = self.next_reset_time(now)
                reset_dt = datetime.fromtimestamp(status.reset_at, tz=self._reset_tz)
                lib_logger.warning(
                    f"Key '{credential.name}' hit its daily limit. "
                    f"Retrying after {reset_dt.isoformat()}"
                )
            elif status.failure_count >= self._max_failures:
                status.status = KeyStatus.PERMANENTLY_BLOCKED
                status.reset_at = None
                lib_logger.error(
                    f"Key '{credential.name}' permanently blocked after "
                    f"{status.failure_count} quota failures"
                )
            else:
                status.status = KeyStatus.QUOTA_EXHAUSTED
                status.reset_at = None
                lib_logger.warning(
                    f"Key '{credential.name}' marked quota exhausted "
                    f"(failure {status.failure_count}/{self._max_failures})"
                )

            self._persist()
            return status

    def next_reset_time(self, now: Optional[float] = None) -> float:
        """Next midnight in the reset timezone plus a safety margin, as epoch seconds."""
        if now is None:
            now = self._clock()
        local_now = datetime.fromtimestamp(now, tz=self._reset_tz)
        next_midnight = (local_now + timedelta(days=1)).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        return next_midnight.timestamp() + DAILY_RESET_MARGIN_SECONDS

    # =========================================================================
    # ADMINISTRATION
    # =========================================================================

    def reset_all(self) -> None:
        """Forget every status record; all credentials revert to active."""
        with self._lock:
            self._statuses.clear()
            self._storage.clear_all()
            lib_logger.info("All key statuses have been reset")

    def reset_one(self, name_or_id: str) -> bool:
        """
        Forget the record whose display name or id matches.

        Returns:
            True if a record was removed
        """
        with self._lock:
            target = None
            for cred_id, status in self._statuses.items():
                if cred_id == name_or_id or status.name == name_or_id:
                    target = cred_id
                    break
            if target is None:
                return False
            del self._statuses[target]
            self._storage.clear_one(target)
            lib_logger.info(f"Key '{name_or_id}' has been reset")
            return True

    def reload(self) -> None:
        """Re-read the store, discarding in-memory state."""
        with self._lock:
            self._statuses = self._storage.load()

    # =========================================================================
    # REPORTING
    # =========================================================================

    def list_statuses(self, credentials: Sequence[Credential]) -> List[CredentialStatus]:
        """Status of every credential in pool order, with defaults for unseen ones."""
        return [self.get_status(cred) for cred in credentials]

    def get_stats(self, credentials: Sequence[Credential]) -> PoolStats:
        stats = PoolStats(total=len(credentials))
        for status in self.list_statuses(credentials):
            if status.status == KeyStatus.ACTIVE:
                stats.active += 1
            elif status.status == KeyStatus.QUOTA_EXHAUSTED:
                stats.quota_exhausted += 1
            elif status.status == KeyStatus.DAILY_LIMITED:
                stats.daily_limited += 1
            elif status.status == KeyStatus.PERMANENTLY_BLOCKED:
                stats.permanently_blocked += 1
        return stats

    @property
    def statuses(self) -> Dict[str, CredentialStatus]:
        """Snapshot of the raw status map."""
        with self._lock:
            return dict(self._statuses)
