# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import asyncio
import random
import unittest

from genai_rotator.client.dispatcher import RequestDispatcher
from genai_rotator.client.executor import RotationExecutor
from genai_rotator.core.errors import (
    AllCredentialsExhaustedError,
    NonCredentialError,
    ProviderHTTPError,
    RequestCancelledError,
    classify_error,
)
from genai_rotator.core.types import Credential, KeyStatus
from genai_rotator.usage.manager import KeyStatusManager
from genai_rotator.usage.storage import MemoryKeyStatusStorage


def quota_error() -> ProviderHTTPError:
    return ProviderHTTPError(429, "RESOURCE_EXHAUSTED: quota exceeded", "gemini_api")


class RotationExecutorTest(unittest.TestCase):
    def setUp(self) -> None:
        self.storage = MemoryKeyStatusStorage()
        self.manager = KeyStatusManager(self.storage, max_failures=3)
        self.key_a = Credential.from_token("AIza-key-aaaaaaaa", "Project A")
        self.key_b = Credential.from_token("AIza-key-bbbbbbbb", "Project B")
        self.key_c = Credential.from_token("AIza-key-cccccccc", "Project C")
        self.dispatcher = RequestDispatcher(min_interval=0)

    def _executor(self, pool, max_attempts: int = 3, seed: int = 7) -> RotationExecutor:
        return RotationExecutor(
            pool, self.manager, self.dispatcher, max_attempts=max_attempts, rng=random.Random(seed)
        )

    def _run(self, coro):
        return asyncio.run(coro)

    def test_rotates_past_an_exhausted_key(self) -> None:
        calls = []

        async def request(cred: Credential):
            calls.append(cred.id)
            if cred.id == self.key_a.id:
                raise quota_error()
            return f"image from {cred.name}"

        # Try every selection order the rng can produce
        for seed in range(10):
            self.manager.reset_all()
            self.dispatcher = RequestDispatcher(min_interval=0)
            calls.clear()
            executor = self._executor([self.key_a, self.key_b], seed=seed)
            result = self._run(executor.execute(request))
            self.assertEqual(result, "image from Project B")
            self.assertEqual(calls[-1], self.key_b.id)
            self.assertEqual(len(calls), len(set(calls)))
            if self.key_a.id in calls:
                self.assertEqual(
                    self.manager.get_status(self.key_a).status, KeyStatus.QUOTA_EXHAUSTED
                )
            self.assertEqual(self.manager.get_status(self.key_b).failure_count, 0)
            self.assertIsNotNone(self.manager.get_status(self.key_b).last_used_at)

    def test_rotates_to_the_only_healthy_key_of_three(self) -> None:
        exhausted = {self.key_a.id, self.key_b.id}

        async def request(cred: Credential):
            if cred.id in exhausted:
                raise quota_error()
            return cred.name

        for seed in range(10):
            self.manager.reset_all()
            self.dispatcher = RequestDispatcher(min_interval=0)
            executor = self._executor(
                [self.key_a, self.key_b, self.key_c], max_attempts=3, seed=seed
            )
            self.assertEqual(self._run(executor.execute(request)), "Project C")
            self.assertEqual(self.manager.get_status(self.key_c).status, KeyStatus.ACTIVE)

    def test_concurrent_quota_failures_block_a_single_key(self) -> None:
        self.manager = KeyStatusManager(MemoryKeyStatusStorage(), max_failures=2)
        calls = []

        async def request(cred: Credential):
            calls.append(cred.id)
            await asyncio.sleep(0)
            raise quota_error()

        async def scenario():
            executor = self._executor([self.key_a])
            return await asyncio.gather(
                executor.execute(request), executor.execute(request), return_exceptions=True
            )

        results = self._run(scenario())
        for result in results:
            self.assertIsInstance(result, AllCredentialsExhaustedError)
        self.assertEqual(len(calls), 2)
        status = self.manager.get_status(self.key_a)
        self.assertEqual(status.status, KeyStatus.PERMANENTLY_BLOCKED)
        self.assertEqual(status.failure_count, 2)

        self.dispatcher = RequestDispatcher(min_interval=0)
        with self.assertRaises(AllCredentialsExhaustedError) as ctx:
            self._run(self._executor([self.key_a]).execute(request))
        self.assertIn("All credentials exhausted", str(ctx.exception))
        self.assertEqual(len(calls), 2)

    def test_blocked_key_fails_fast_without_calling(self) -> None:
        self.manager.mark_failure(self.key_a, classify_error(quota_error()))
        self.manager.mark_failure(self.key_a, classify_error(quota_error()))
        self.manager.mark_failure(self.key_a, classify_error(quota_error()))
        self.assertEqual(
            self.manager.get_status(self.key_a).status, KeyStatus.PERMANENTLY_BLOCKED
        )
        calls = []

        async def request(cred: Credential):
            calls.append(cred.id)
            return "never"

        executor = self._executor([self.key_a])
        with self.assertRaises(AllCredentialsExhaustedError) as ctx:
            self._run(executor.execute(request, label="image"))
        self.assertEqual(calls, [])
        self.assertIn("0 of 1 available", str(ctx.exception))

    def test_all_keys_exhausted_raises_aggregated_error(self) -> None:
        calls = []

        async def request(cred: Credential):
            calls.append(cred.id)
            raise quota_error()

        executor = self._executor([self.key_a, self.key_b])
        with self.assertRaises(AllCredentialsExhaustedError) as ctx:
            self._run(executor.execute(request, label="image"))
        self.assertEqual(sorted(calls), sorted([self.key_a.id, self.key_b.id]))
        self.assertIn("after trying 2 credential(s)", str(ctx.exception))
        self.assertEqual(self.manager.get_stats([self.key_a, self.key_b]).quota_exhausted, 2)

    def test_attempt_bound_is_respected(self) -> None:
        calls = []

        async def request(cred: Credential):
            calls.append(cred.id)
            raise quota_error()

        executor = self._executor([self.key_a, self.key_b, self.key_c], max_attempts=3)
        with self.assertRaises(AllCredentialsExhaustedError):
            self._run(executor.execute(request, max_attempts=2))
        self.assertEqual(len(calls), 2)
        self.assertEqual(len(set(calls)), 2)

    def test_non_credential_error_is_not_retried(self) -> None:
        calls = []

        async def request(cred: Credential):
            calls.append(cred.id)
            raise ProviderHTTPError(400, "INVALID_ARGUMENT: prompt is empty", "gemini_api")

        executor = self._executor([self.key_a, self.key_b])
        with self.assertRaises(NonCredentialError) as ctx:
            self._run(executor.execute(request))
        self.assertEqual(len(calls), 1)
        self.assertIsInstance(ctx.exception.__cause__, ProviderHTTPError)
        self.assertEqual(self.manager.statuses, {})

    def test_backend_non_credential_error_keeps_its_message(self) -> None:
        async def request(cred: Credential):
            raise NonCredentialError("Imagen returned no image")

        executor = self._executor([self.key_a])
        with self.assertRaises(NonCredentialError) as ctx:
            self._run(executor.execute(request))
        self.assertEqual(str(ctx.exception), "Imagen returned no image")
        self.assertEqual(ctx.exception.credential, "...aaaaaa")

    def test_cancel_event_stops_before_the_next_attempt(self) -> None:
        async def scenario():
            cancel = asyncio.Event()
            calls = []

            async def request(cred: Credential):
                calls.append(cred.id)
                cancel.set()
                raise quota_error()

            executor = self._executor([self.key_a, self.key_b])
            with self.assertRaises(RequestCancelledError):
                await executor.execute(request, cancel_event=cancel)
            return calls

        self.assertEqual(len(self._run(scenario())), 1)

    def test_empty_pool(self) -> None:
        async def request(cred: Credential):
            return "never"

        executor = self._executor([])
        with self.assertRaises(AllCredentialsExhaustedError):
            self._run(executor.execute(request))


if __name__ == "__main__":
    unittest.main()
