# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import asyncio
import unittest

from genai_rotator.client.dispatcher import RequestDispatcher


class FakeTime:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self) -> None:
        self.now = 100.0
        self.sleeps = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


class RequestDispatcherTest(unittest.TestCase):
    def _run(self, coro):
        return asyncio.run(coro)

    def test_start_times_respect_min_interval(self) -> None:
        fake = FakeTime()
        dispatcher = RequestDispatcher(min_interval=1.2, clock=fake.clock, sleep=fake.sleep)
        started = []

        async def task(index: int):
            started.append(fake.now)
            fake.now += 0.3  # the call itself takes time
            return index

        async def scenario():
            return await asyncio.gather(
                *(dispatcher.schedule(lambda i=i: task(i)) for i in range(4))
            )

        self.assertEqual(self._run(scenario()), [0, 1, 2, 3])
        gaps = [b - a for a, b in zip(started, started[1:])]
        for gap in gaps:
            self.assertGreaterEqual(gap, 1.2 - 1e-9)
        self.assertEqual(len(fake.sleeps), 3)

    def test_no_sleep_when_interval_already_elapsed(self) -> None:
        fake = FakeTime()
        dispatcher = RequestDispatcher(min_interval=1.0, clock=fake.clock, sleep=fake.sleep)

        async def slow():
            fake.now += 5.0
            return "done"

        async def scenario():
            await dispatcher.schedule(slow)
            return await dispatcher.schedule(slow)

        self.assertEqual(self._run(scenario()), "done")
        self.assertEqual(fake.sleeps, [])

    def test_tasks_run_in_submission_order(self) -> None:
        dispatcher = RequestDispatcher(min_interval=0)
        order = []

        async def task(index: int):
            order.append(("start", index))
            await asyncio.sleep(0)
            order.append(("end", index))

        async def scenario():
            await asyncio.gather(*(dispatcher.schedule(lambda i=i: task(i)) for i in range(3)))

        self._run(scenario())
        self.assertEqual(
            order,
            [("start", 0), ("end", 0), ("start", 1), ("end", 1), ("start", 2), ("end", 2)],
        )

    def test_failure_reaches_only_its_caller(self) -> None:
        dispatcher = RequestDispatcher(min_interval=0)

        async def boom():
            raise RuntimeError("boom")

        async def ok():
            return "ok"

        async def scenario():
            return await asyncio.gather(
                dispatcher.schedule(boom), dispatcher.schedule(ok), return_exceptions=True
            )

        first, second = self._run(scenario())
        self.assertIsInstance(first, RuntimeError)
        self.assertEqual(second, "ok")
        self.assertEqual(dispatcher.pending, 0)


if __name__ == "__main__":
    unittest.main()
