import asyncio
import json

import pytest

from insightwriter.nodes.progress import ChannelClosedError, ProgressChannel, encode_sse
from insightwriter.nodes.schemas import GenerationProgress


def test_encode_sse_frame():
    event = GenerationProgress(step="generating", message="AI 正在创作文章...", progress=15)
    frame = encode_sse(event)

    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    assert "AI 正在创作文章" in frame
    assert json.loads(frame[len("data: "):]) == {
        "step": "generating",
        "message": "AI 正在创作文章...",
        "progress": 15,
    }


def test_encode_sse_includes_data():
    event = GenerationProgress(step="completed", message="done", progress=100, data={"articleId": 1})
    assert json.loads(encode_sse(event)[6:])["data"] == {"articleId": 1}


def test_progress_never_decreases():
    channel = ProgressChannel()
    channel.emit("generating", "a", 50)
    event = channel.emit("generating_images", "b", 30)

    assert event.progress == 50
    assert channel.last_progress == 50


def test_progress_capped_at_100():
    channel = ProgressChannel()
    assert channel.emit("saving", "x", 150).progress == 100


def test_fail_keeps_last_progress():
    channel = ProgressChannel()
    channel.emit("generating", "a", 50)
    event = channel.fail("boom")

    assert event.step == "error"
    assert event.progress == 50
    assert channel.closed


def test_emit_after_terminal_raises():
    channel = ProgressChannel()
    channel.complete("done")

    with pytest.raises(ChannelClosedError):
        channel.emit("saving", "late", 90)
    with pytest.raises(ChannelClosedError):
        channel.fail("late")


def test_events_stop_after_terminal():
    async def main():
        channel = ProgressChannel()
        channel.emit("validating", "a", 5)
        channel.emit("validating", "b", 10)
        channel.complete("done", {"ok": True})
        return [e async for e in channel.events()]

    events = asyncio.run(main())

    assert [e.step for e in events] == ["validating", "validating", "completed"]
    assert events[-1].progress == 100


def test_frames_follow_producer():
    async def produce(channel):
        for p in (5, 10, 15):
            await asyncio.sleep(0)
            channel.emit("generating", f"p{p}", p)
        channel.fail("stop")

    async def main():
        channel = ProgressChannel()
        producer = asyncio.create_task(produce(channel))
        frames = [f async for f in channel.frames()]
        await producer
        return frames

    frames = asyncio.run(main())

    assert len(frames) == 4
    assert json.loads(frames[-1][6:])["step"] == "error"


def test_history_is_a_copy():
    channel = ProgressChannel()
    channel.emit("validating", "a", 5)
    channel.history.clear()
    assert len(channel.history) == 1
