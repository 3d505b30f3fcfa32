# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import asyncio
import unittest

from genai_rotator.client.fallback import (
    NOT_CONFIGURED_REASON,
    BackendFallbackChain,
    FallbackTier,
)
from genai_rotator.core.errors import (
    AllCredentialsExhaustedError,
    BackendUnavailableError,
    RequestCancelledError,
    TotalFailureError,
)
from genai_rotator.core.types import GeneratedAsset


def succeeding(name: str, calls: list):
    async def runner(prompt, aspect_ratio, options):
        calls.append(name)
        return GeneratedAsset(data=b"\x89PNG", mime_type="image/png", backend=name, prompt=prompt)

    return runner


def failing(name: str, error: Exception, calls: list):
    async def runner(prompt, aspect_ratio, options):
        calls.append(name)
        raise error

    return runner


class BackendFallbackChainTest(unittest.TestCase):
    def _run(self, coro):
        return asyncio.run(coro)

    def test_first_success_wins(self) -> None:
        calls = []
        chain = BackendFallbackChain(
            [
                FallbackTier("gemini_api", succeeding("gemini_api", calls)),
                FallbackTier("pollinations", succeeding("pollinations", calls)),
            ]
        )
        asset = self._run(chain.generate("a red fox", "16:9"))
        self.assertEqual(asset.backend, "gemini_api")
        self.assertEqual(calls, ["gemini_api"])

    def test_escalates_in_order(self) -> None:
        calls = []
        chain = BackendFallbackChain(
            [
                FallbackTier(
                    "gemini_api",
                    failing("gemini_api", AllCredentialsExhaustedError("keys gone"), calls),
                ),
                FallbackTier(
                    "gemini_web",
                    failing("gemini_web", BackendUnavailableError("gemini_web", "no session"), calls),
                ),
                FallbackTier("pollinations", succeeding("pollinations", calls)),
            ]
        )
        asset = self._run(chain.generate("a red fox"))
        self.assertEqual(asset.backend, "pollinations")
        self.assertEqual(calls, ["gemini_api", "gemini_web", "pollinations"])

    def test_total_failure_names_every_tier(self) -> None:
        calls = []
        chain = BackendFallbackChain(
            [
                FallbackTier(
                    "gemini_api",
                    failing("gemini_api", AllCredentialsExhaustedError("keys gone"), calls),
                ),
                FallbackTier(
                    "gemini_web",
                    succeeding("gemini_web", calls),
                    is_available=lambda: False,
                ),
                FallbackTier(
                    "pollinations",
                    failing("pollinations", BackendUnavailableError("pollinations", "HTTP 503"), calls),
                ),
            ]
        )
        with self.assertRaises(TotalFailureError) as ctx:
            self._run(chain.generate("a red fox"))
        self.assertEqual(calls, ["gemini_api", "pollinations"])
        self.assertEqual(
            ctx.exception.reasons,
            {
                "gemini_api": "keys gone",
                "gemini_web": NOT_CONFIGURED_REASON,
                "pollinations": "HTTP 503",
            },
        )

    def test_unexpected_exceptions_propagate(self) -> None:
        calls = []
        chain = BackendFallbackChain(
            [
                FallbackTier("gemini_api", failing("gemini_api", KeyError("bug"), calls)),
                FallbackTier("pollinations", succeeding("pollinations", calls)),
            ]
        )
        with self.assertRaises(KeyError):
            self._run(chain.generate("a red fox"))
        self.assertEqual(calls, ["gemini_api"])

    def test_each_tier_gets_its_own_options(self) -> None:
        seen = []

        async def mutating(prompt, aspect_ratio, options):
            seen.append(dict(options))
            options["seed"] = 99
            raise BackendUnavailableError("first", "down")

        async def reading(prompt, aspect_ratio, options):
            seen.append(dict(options))
            return GeneratedAsset(data=b"x", mime_type="image/jpeg", backend="second")

        chain = BackendFallbackChain([FallbackTier("first", mutating), FallbackTier("second", reading)])
        self._run(chain.generate("p", options={"seed": 1}))
        self.assertEqual(seen, [{"seed": 1}, {"seed": 1}])

    def test_cancel_set_before_start_runs_no_tier(self) -> None:
        calls = []

        async def scenario():
            cancel = asyncio.Event()
            cancel.set()
            chain = BackendFallbackChain(
                [
                    FallbackTier(
                        "gemini_api",
                        succeeding("gemini_api", calls),
                        is_available=lambda: False,
                    ),
                    FallbackTier("pollinations", succeeding("pollinations", calls)),
                ]
            )
            await chain.generate("a red fox", options={"cancel_event": cancel})

        with self.assertRaises(RequestCancelledError):
            self._run(scenario())
        self.assertEqual(calls, [])

    def test_cancel_inside_a_tier_stops_escalation(self) -> None:
        calls = []
        chain = BackendFallbackChain(
            [
                FallbackTier(
                    "gemini_api",
                    failing("gemini_api", RequestCancelledError("stopped"), calls),
                ),
                FallbackTier("pollinations", succeeding("pollinations", calls)),
            ]
        )
        with self.assertRaises(RequestCancelledError):
            self._run(chain.generate("a red fox"))
        self.assertEqual(calls, ["gemini_api"])

    def test_requires_a_tier(self) -> None:
        with self.assertRaises(ValueError):
            BackendFallbackChain([])


if __name__ == "__main__":
    unittest.main()
