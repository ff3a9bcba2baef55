from __future__ import annotations

import asyncio

import pytest

from octopus.limiter import ConcurrencyLimiter


class TestLimiterConstruction:
    def test_zero_cap_rejected(self):
        with pytest.raises(ValueError, match="must be >= 1"):
            ConcurrencyLimiter(0)

    def test_negative_cap_rejected(self):
        with pytest.raises(ValueError):
            ConcurrencyLimiter(-3)

    def test_initial_state(self):
        limiter = ConcurrencyLimiter(4)
        assert limiter.cap == 4
        assert limiter.running == 0
        assert limiter.queued == 0
        assert limiter.peak == 0


class TestLimiterScheduling:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("cap", [1, 2, 3, 5])
    async def test_in_flight_never_exceeds_cap(self, cap):
        limiter = ConcurrencyLimiter(cap)
        running = 0
        observed: list[int] = []

        async def unit(i: int) -> int:
            nonlocal running
            running += 1
            observed.append(running)
            await asyncio.sleep(0.005 * (i % 3))
            running -= 1
            return i

        results = await asyncio.gather(
            *(limiter.schedule(lambda i=i: unit(i)) for i in range(12))
        )

        assert results == list(range(12))
        assert max(observed) <= cap
        assert limiter.peak == cap
        assert limiter.running == 0

    @pytest.mark.asyncio
    async def test_cap_one_runs_in_submission_order(self):
        limiter = ConcurrencyLimiter(1)
        events: list[str] = []

        async def unit(i: int) -> None:
            events.append(f"start-{i}")
            await asyncio.sleep(0.001 * (5 - i))
            events.append(f"end-{i}")

        await asyncio.gather(*(limiter.schedule(lambda i=i: unit(i)) for i in range(5)))

        expected = []
        for i in range(5):
            expected += [f"start-{i}", f"end-{i}"]
        assert events == expected

    @pytest.mark.asyncio
    async def test_admission_is_fifo_when_saturated(self):
        limiter = ConcurrencyLimiter(2)
        started: list[int] = []

        async def unit(i: int) -> None:
            started.append(i)
            # Later units finish first, which must not let them jump the queue.
            await asyncio.sleep(0.002 * (10 - i))

        await asyncio.gather(*(limiter.schedule(lambda i=i: unit(i)) for i in range(10)))

        assert started == list(range(10))

    @pytest.mark.asyncio
    async def test_queued_count_while_saturated(self):
        limiter = ConcurrencyLimiter(1)
        gate = asyncio.Event()

        async def blocker() -> None:
            await gate.wait()

        tasks = [asyncio.create_task(limiter.schedule(blocker)) for _ in range(3)]
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert limiter.running == 1
        assert limiter.queued == 2

        gate.set()
        await asyncio.gather(*tasks)
        assert limiter.running == 0
        assert limiter.queued == 0

    @pytest.mark.asyncio
    async def test_failing_unit_releases_slot(self):
        limiter = ConcurrencyLimiter(1)
        ran: list[int] = []

        async def boom() -> None:
            raise RuntimeError("boom")

        async def ok(i: int) -> int:
            ran.append(i)
            return i

        results = await asyncio.gather(
            limiter.schedule(boom),
            limiter.schedule(lambda: ok(1)),
            limiter.schedule(lambda: ok(2)),
            return_exceptions=True,
        )

        assert isinstance(results[0], RuntimeError)
        assert results[1:] == [1, 2]
        assert ran == [1, 2]
        assert limiter.running == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_leak_slot(self):
        limiter = ConcurrencyLimiter(1)
        gate = asyncio.Event()
        ran: list[str] = []

        async def first() -> None:
            await gate.wait()
            ran.append("first")

        async def named(name: str) -> None:
            ran.append(name)

        t1 = asyncio.create_task(limiter.schedule(first))
        t2 = asyncio.create_task(limiter.schedule(lambda: named("second")))
        t3 = asyncio.create_task(limiter.schedule(lambda: named("third")))
        await asyncio.sleep(0)

        t2.cancel()
        gate.set()
        await asyncio.gather(t1, t3)

        with pytest.raises(asyncio.CancelledError):
            await t2
        assert ran == ["first", "third"]
        assert limiter.running == 0

    @pytest.mark.asyncio
    async def test_each_unit_runs_exactly_once(self):
        limiter = ConcurrencyLimiter(3)
        counts: dict[int, int] = {}

        async def unit(i: int) -> None:
            counts[i] = counts.get(i, 0) + 1
            await asyncio.sleep(0)

        await asyncio.gather(*(limiter.schedule(lambda i=i: unit(i)) for i in range(40)))

        assert counts == {i: 1 for i in range(40)}
