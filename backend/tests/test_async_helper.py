import asyncio

import pytest

from callsync.utils.async_helper import gather_in_waves, run_async


class TestGatherInWaves:
    @pytest.mark.asyncio
    async def test_waves_never_overlap(self):
        events = []
        in_flight = 0
        peak = 0

        async def job(index: int, delay: float):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            events.append(("start", index))
            await asyncio.sleep(delay)
            events.append(("end", index))
            in_flight -= 1
            return index

        delays = [0.03, 0.01, 0.02, 0.01, 0.01]
        results = await gather_in_waves([job(i, d) for i, d in enumerate(delays)], concurrency=2)

        assert results == [0, 1, 2, 3, 4]
        assert peak == 2

        position = {event: i for i, event in enumerate(events)}
        for finished, started in [(0, 2), (1, 2), (0, 3), (1, 3), (2, 4), (3, 4)]:
            assert position[("end", finished)] < position[("start", started)]

    @pytest.mark.asyncio
    async def test_exceptions_returned_in_place(self):
        async def ok():
            return "ok"

        async def boom():
            raise ValueError("boom")

        results = await gather_in_waves([ok(), boom(), ok()], concurrency=5)

        assert results[0] == "ok"
        assert isinstance(results[1], ValueError)
        assert results[2] == "ok"

    @pytest.mark.asyncio
    async def test_empty(self):
        assert await gather_in_waves([], concurrency=3) == []


def test_run_async_from_sync_code():
    async def add(a, b):
        await asyncio.sleep(0)
        return a + b

    assert run_async(add(2, 3)) == 5
