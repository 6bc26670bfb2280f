from __future__ import annotations

import asyncio

from keepli.pipeline.session import SaveSession, SaveStage
from keepli.storage.models import CaptureRequest


def test_stash_and_consume_once():
    session = SaveSession()
    capture = CaptureRequest(url="https://example.com/p/1", post_content="body", author_name="Ada")

    session.stash_capture("tab-1", capture)

    assert session.consume_capture("tab-1") == capture
    assert session.consume_capture("tab-1") is None


def test_later_stash_replaces_earlier():
    session = SaveSession()
    session.stash_capture("tab-1", CaptureRequest(url="https://example.com/1", post_content="one"))
    session.stash_capture("tab-1", CaptureRequest(url="https://example.com/2", post_content="two"))

    assert session.consume_capture("tab-1").post_content == "two"


def test_stage_tracking():
    session = SaveSession()

    session.record_stage("abc", SaveStage.ENRICHING)
    session.record_stage("abc", SaveStage.DONE)

    assert session.stage_of("abc") == SaveStage.DONE
    assert session.stage_of("other") is None


def test_single_flight_serializes_same_content_id():
    session = SaveSession()
    events: list[str] = []

    async def worker(name: str):
        async with session.single_flight("abc"):
            events.append(f"{name}:start")
            await asyncio.sleep(0)
            events.append(f"{name}:end")

    async def scenario():
        await asyncio.gather(worker("a"), worker("b"))

    asyncio.run(scenario())

    assert events == ["a:start", "a:end", "b:start", "b:end"]
    assert session.in_flight() == []


def test_single_flight_does_not_block_other_ids():
    session = SaveSession()
    events: list[str] = []

    async def worker(content_id: str):
        async with session.single_flight(content_id):
            events.append(f"{content_id}:start")
            await asyncio.sleep(0)
            events.append(f"{content_id}:end")

    async def scenario():
        await asyncio.gather(worker("a"), worker("b"))

    asyncio.run(scenario())

    assert events[:2] == ["a:start", "b:start"]


def test_lock_is_released_on_error():
    session = SaveSession()

    async def scenario():
        try:
            async with session.single_flight("abc"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        async with session.single_flight("abc"):
            return session.in_flight()

    assert asyncio.run(scenario()) == ["abc"]
    assert session.in_flight() == []
