import asyncio

from models.session_models import AnswerItem, ReadoutState
from services.session.readout_queue import EMPTY_QUEUE_STATUS, ReadoutQueue
from services.session.scheduler import SessionScheduler
from tests.fakes import FakeSpeech


def _items(count):
    return [AnswerItem(source_image=None, spoken_text=f"answer {index}") for index in range(count)]


def _queue(pace):
    speech = FakeSpeech()
    statuses = []
    queue = ReadoutQueue(speech, SessionScheduler(), pace_seconds=pace, on_change=statuses.append)
    return queue, speech, statuses


def test_toggle_on_empty_queue_changes_nothing():
    async def scenario():
        queue, speech, _ = _queue(0.01)
        status = queue.toggle()
        return queue, speech, status

    queue, speech, status = asyncio.run(scenario())
    assert status == EMPTY_QUEUE_STATUS
    assert queue.state is ReadoutState.IDLE
    assert speech.spoken == []


def test_reads_every_item_in_order_then_finishes():
    async def scenario():
        queue, speech, statuses = _queue(0.01)
        queue.load(_items(3))
        queue.toggle()
        await asyncio.sleep(0.2)
        return queue, speech, statuses

    queue, speech, statuses = asyncio.run(scenario())
    assert speech.spoken == ["answer 0", "answer 1", "answer 2"]
    assert queue.state is ReadoutState.FINISHED
    assert queue.index == 3
    assert statuses[-1] == "Finished reading all answers."


def test_toggle_on_finished_queue_restarts_from_zero():
    async def scenario():
        queue, speech, _ = _queue(10)
        queue.load(_items(2))
        queue.index = 2
        queue.state = ReadoutState.FINISHED
        queue.toggle()
        await asyncio.sleep(0)
        return queue, speech

    queue, speech = asyncio.run(scenario())
    assert queue.state is ReadoutState.READING
    assert queue.index == 0
    assert speech.spoken == ["answer 0"]


def test_pause_stops_speech_and_resume_continues_at_index():
    async def scenario():
        queue, speech, _ = _queue(10)
        queue.load(_items(3))
        queue.toggle()
        await asyncio.sleep(0)
        paused = queue.toggle()
        state_after_pause = queue.state
        await asyncio.sleep(0)
        queue.toggle()
        await asyncio.sleep(0)
        return queue, speech, paused, state_after_pause

    queue, speech, paused, state_after_pause = asyncio.run(scenario())
    assert paused == "Reading paused."
    assert state_after_pause is ReadoutState.PAUSED
    assert speech.stops >= 1
    assert speech.spoken == ["answer 0", "answer 0"]
    assert queue.state is ReadoutState.READING


def test_restart_always_goes_back_to_first_item():
    async def scenario():
        queue, speech, _ = _queue(10)
        queue.load(_items(3))
        queue.index = 2
        status = queue.restart()
        await asyncio.sleep(0)
        return queue, speech, status

    queue, speech, status = asyncio.run(scenario())
    assert status == "Restarting from beginning…"
    assert queue.index == 0
    assert queue.state is ReadoutState.READING
    assert speech.spoken == ["answer 0"]


def test_restart_on_empty_queue_reports():
    async def scenario():
        queue, _, _ = _queue(0.01)
        return queue.restart(), queue.state

    status, state = asyncio.run(scenario())
    assert status == "No answers to restart."
    assert state is ReadoutState.IDLE


def test_external_index_change_during_wait_is_not_overwritten():
    async def scenario():
        queue, speech, _ = _queue(0.03)
        queue.load(_items(3))
        queue.toggle()
        await asyncio.sleep(0)
        queue.index = 2
        await asyncio.sleep(0.2)
        return queue, speech

    queue, speech = asyncio.run(scenario())
    assert speech.spoken == ["answer 0", "answer 2"]
    assert queue.state is ReadoutState.FINISHED


def test_load_replaces_items_and_rewinds():
    async def scenario():
        queue, speech, _ = _queue(10)
        queue.load(_items(3))
        queue.toggle()
        await asyncio.sleep(0)
        queue.load(_items(1))
        return queue, speech

    queue, speech = asyncio.run(scenario())
    assert queue.state is ReadoutState.IDLE
    assert queue.index == 0
    assert len(queue.items) == 1
    assert speech.stops == 1
