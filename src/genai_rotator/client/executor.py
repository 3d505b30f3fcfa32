# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Request execution with credential rotation.

The RotationExecutor wraps one unit of work (a single generation call),
picks a usable credential, submits the call through the global dispatcher
and classifies the outcome. Quota-class failures mark the credential and
rotate to an untried sibling; anything else is surfaced immediately.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, List, Optional, Sequence, Set, TypeVar

from ..core.constants import DEFAULT_MAX_ATTEMPTS
from ..core.errors import (
    AllCredentialsExhaustedError,
    ClassifiedError,
    GenerationError,
    NonCredentialError,
    RequestCancelledError,
    RequestErrorAccumulator,
    classify_error,
    is_credential_error,
    mask_credential,
)
from ..core.types import Credential, ErrorAction
from ..usage.manager import KeyStatusManager
from .dispatcher import RequestDispatcher

lib_logger = logging.getLogger("genai_rotator")

T = TypeVar("T")


class RotationExecutor:
    """
    Rotation/retry controller for the primary backend.

    This class handles:
    - Fresh availability checks before every attempt
    - Random selection among credentials not yet tried for this request
    - Status updates on success and on quota-class failures
    - Immediate failure on errors that are not a credential problem
    """

    def __init__(
        self,
        credentials: Sequence[Credential],
        status_manager: KeyStatusManager,
        dispatcher: RequestDispatcher,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize RotationExecutor.

        Args:
            credentials: The configured credential pool
            status_manager: KeyStatusManager holding the Credential Store
            dispatcher: Global RequestDispatcher every call is submitted to
            max_attempts: Default bound on credentials tried per request
            rng: Random source for credential selection
        """
        self._credentials: List[Credential] = list(credentials)
        self._status = status_manager
        self._dispatcher = dispatcher
        self._max_attempts = max(1, max_attempts)
        self._rng = rng or random.Random()

    @property
    def credentials(self) -> List[Credential]:
        return list(self._credentials)

    def _log_acquiring_credential(
        self, label: str, tried_count: int, available_count: int
    ) -> None:
        lib_logger.info(
            f"Acquiring credential for {label}. Tried: {tried_count}/"
            f"{available_count}({len(self._credentials)})"
        )

    def _handle_error(
        self,
        error: Exception,
        credential: Credential,
        label: str,
        accumulator: RequestErrorAccumulator,
    ) -> str:
        """
        Classify a failed attempt and update the credential's status.

        Returns:
            ErrorAction.ROTATE for credential-class errors, ErrorAction.FAIL otherwise
        """
        classified: ClassifiedError = classify_error(error)
        masked = mask_credential(credential.token)

        if not is_credential_error(classified):
            lib_logger.error(
                f"{label} failed with a non-credential error on key {masked}: {error}"
            )
            return ErrorAction.FAIL

        status = self._status.mark_failure(credential, classified)
        accumulator.record_error(masked, classified, classified.message)
        lib_logger.warning(
            f"Key {masked} ('{credential.name}') failed with {classified.error_type}, "
            f"now {status.status.value}. Rotating."
        )
        return ErrorAction.ROTATE

    async def execute(
        self,
        request_fn: Callable[[Credential], Awaitable[T]],
        max_attempts: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
        label: str = "request",
    ) -> T:
        """
        Execute a unit of work with rotation.

        Args:
            request_fn: Coroutine function performing one call with a credential
            max_attempts: Bound on credentials tried; defaults to the executor's
            cancel_event: Optional stop flag checked between attempts
            label: Short description used in logs and error messages

        Returns:
            The result of the first successful call

        Raises:
            AllCredentialsExhaustedError: No credential available or bound reached
            NonCredentialError: The call failed for a reason unrelated to quota
            RequestCancelledError: cancel_event was set between attempts
        """
        bound = max(1, max_attempts or self._max_attempts)
        accumulator = RequestErrorAccumulator(label)
        tried: Set[str] = set()
        available: List[Credential] = []

        while len(tried) < bound:
            if cancel_event is not None and cancel_event.is_set():
                raise RequestCancelledError(f"{label} cancelled after {len(tried)} attempt(s)")

            # Fresh each attempt: siblings may have exhausted credentials meanwhile
            available = self._status.get_available(self._credentials)
            untried = [c for c in available if c.id not in tried]
            self._log_acquiring_credential(label, len(tried), len(available))
            if not untried:
                break

            cred = self._rng.choice(untried)
            tried.add(cred.id)
            masked = mask_credential(cred.token)
            lib_logger.info(
                f"Attempting {label} with credential {masked} "
                f"(Attempt {len(tried)}/{bound})"
            )

            try:
                result = await self._dispatcher.schedule(lambda c=cred: request_fn(c))
            except Exception as e:
                action = self._handle_error(e, cred, label, accumulator)
                if action == ErrorAction.ROTATE:
                    continue
                if isinstance(e, GenerationError):
                    if isinstance(e, NonCredentialError) and e.credential is None:
                        e.credential = masked
                    raise
                raise NonCredentialError(
                    f"{label} failed on key {masked}: {e}", credential=masked
                ) from e

            self._status.mark_success(cred)
            lib_logger.info(f"{label} succeeded with credential {masked}")
            return result

        message = accumulator.build_message(len(available), len(self._credentials))
        lib_logger.warning(message)
        raise AllCredentialsExhaustedError(message)
