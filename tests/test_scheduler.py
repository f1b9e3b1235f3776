import asyncio

from services.session.scheduler import SessionScheduler


def test_call_later_fires_once():
    async def scenario():
        scheduler = SessionScheduler()
        fired = []
        scheduler.call_later(0.01, lambda: fired.append("x"))
        await asyncio.sleep(0.05)
        return fired

    assert asyncio.run(scenario()) == ["x"]


def test_cancelled_and_invalidated_callbacks_never_fire():
    async def scenario():
        scheduler = SessionScheduler()
        fired = []
        handle = scheduler.call_later(0.01, lambda: fired.append("cancelled"))
        handle.cancel()
        scheduler.call_later(0.01, lambda: fired.append("stale"))
        epoch = scheduler.invalidate()
        await asyncio.sleep(0.05)
        return fired, epoch, scheduler

    fired, epoch, scheduler = asyncio.run(scenario())
    assert fired == []
    assert epoch == 1
    assert scheduler.is_current(1)
    assert not scheduler.is_current(0)


def test_call_every_repeats_and_awaits_async_callbacks():
    async def scenario():
        scheduler = SessionScheduler()
        ticks = []

        async def tick():
            ticks.append(len(ticks))
            await asyncio.sleep(0)

        handle = scheduler.call_every(0.01, tick)
        await asyncio.sleep(0.08)
        handle.cancel()
        count = len(ticks)
        await asyncio.sleep(0.03)
        return count, len(ticks)

    count, later = asyncio.run(scenario())
    assert count >= 3
    assert later == count


def test_invalidate_cancels_spawned_tasks():
    async def scenario():
        scheduler = SessionScheduler()
        task = scheduler.spawn(asyncio.sleep(10))
        await asyncio.sleep(0)
        scheduler.invalidate()
        await asyncio.sleep(0)
        return task

    task = asyncio.run(scenario())
    assert task.cancelled()


def test_call_every_survives_a_failing_callback():
    async def scenario():
        scheduler = SessionScheduler()
        ticks = []

        async def tick():
            ticks.append(len(ticks))
            if len(ticks) == 1:
                raise FileNotFoundError("sync folder briefly missing")

        handle = scheduler.call_every(0.01, tick)
        await asyncio.sleep(0.08)
        handle.cancel()
        return len(ticks)

    assert asyncio.run(scenario()) >= 3
