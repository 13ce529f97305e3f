"""Tests for the search debouncer."""
import asyncio

import pytest

from walkroute.services.debouncer import SearchDebouncer


class Recorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, text, token):
        self.calls.append((text, token))


@pytest.mark.asyncio
async def test_only_last_schedule_fires():
    debouncer = SearchDebouncer(delay=0.02)
    recorder = Recorder()

    debouncer.schedule("a", recorder)
    debouncer.schedule("ab", recorder)
    token = debouncer.schedule("abc", recorder)
    assert debouncer.pending

    await asyncio.sleep(0.08)
    await debouncer.wait()

    assert recorder.calls == [("abc", token)]
    assert not debouncer.pending
    assert debouncer.is_current(token)


@pytest.mark.asyncio
async def test_tokens_increase_even_for_identical_text():
    debouncer = SearchDebouncer(delay=10)
    recorder = Recorder()

    first = debouncer.schedule("same", recorder)
    second = debouncer.schedule("same", recorder)

    assert second > first
    assert not debouncer.is_current(first)
    debouncer.cancel()


@pytest.mark.asyncio
async def test_cancel_drops_pending_and_invalidates_token():
    debouncer = SearchDebouncer(delay=0.02)
    recorder = Recorder()

    token = debouncer.schedule("abc", recorder)
    debouncer.cancel()
    await asyncio.sleep(0.06)

    assert recorder.calls == []
    assert not debouncer.pending
    assert not debouncer.is_current(token)


@pytest.mark.asyncio
async def test_close_cancels_in_flight_callback():
    debouncer = SearchDebouncer(delay=0)
    started = asyncio.Event()
    finished = []

    async def slow(text, token):
        started.set()
        await asyncio.sleep(10)
        finished.append(text)

    debouncer.schedule("abc", slow)
    await asyncio.wait_for(started.wait(), timeout=1)
    assert debouncer.in_flight == 1

    debouncer.close()
    await debouncer.wait()

    assert finished == []
    assert debouncer.in_flight == 0


@pytest.mark.asyncio
async def test_new_schedule_cancels_in_flight_callback():
    debouncer = SearchDebouncer(delay=0)
    blocker = asyncio.Event()
    started = []
    finished = []

    async def blocked(text, token):
        started.append(text)
        await blocker.wait()
        finished.append((text, debouncer.is_current(token)))

    debouncer.schedule("a", blocked)
    await asyncio.sleep(0.01)
    assert started == ["a"]
    assert debouncer.in_flight == 1

    token = debouncer.schedule("ab", blocked)
    await asyncio.sleep(0.01)
    assert started == ["a", "ab"]
    assert debouncer.in_flight == 1

    blocker.set()
    await debouncer.wait()

    assert finished == [("ab", True)]
    assert debouncer.is_current(token)


@pytest.mark.asyncio
async def test_cancel_stops_in_flight_callback():
    debouncer = SearchDebouncer(delay=0)
    blocker = asyncio.Event()
    finished = []

    async def blocked(text, token):
        await blocker.wait()
        finished.append(text)

    debouncer.schedule("abc", blocked)
    await asyncio.sleep(0.01)
    debouncer.cancel()
    blocker.set()
    await asyncio.sleep(0.01)

    assert finished == []
    assert debouncer.in_flight == 0


@pytest.mark.asyncio
async def test_wait_covers_scheduled_callback():
    debouncer = SearchDebouncer(delay=0.02)
    recorder = Recorder()

    token = debouncer.schedule("abc", recorder)
    await debouncer.wait()

    assert recorder.calls == [("abc", token)]
    assert not debouncer.pending


def test_default_delay_comes_from_settings():
    assert SearchDebouncer().delay == 0.5
