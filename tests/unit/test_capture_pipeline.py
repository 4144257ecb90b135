# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import threading
from typing import Any

import numpy as np
import pytest

from audio import capture as capture_mod
from audio.capture import AudioCapturePipeline
from audio.frames import AudioFrame


class FakeInputStream:
    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.started = False
        self.closed = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.started = False

    def close(self) -> None:
        self.closed = True

    def push(self, samples: np.ndarray) -> None:
        block = samples.reshape(-1, 1).astype(np.float32)
        self.kwargs["callback"](block, len(samples), None, None)


def _pipeline() -> tuple[AudioCapturePipeline, list[FakeInputStream]]:
    streams: list[FakeInputStream] = []

    def factory(**kwargs: Any) -> FakeInputStream:
        stream = FakeInputStream(**kwargs)
        streams.append(stream)
        return stream

    return AudioCapturePipeline(stream_factory=factory), streams


def test_frames_arrive_in_capture_order_as_pcm16() -> None:
    pipeline, streams = _pipeline()
    frames: list[AudioFrame] = []

    async def scenario() -> None:
        await pipeline.start(frames.append)
        streams[0].push(np.full(4, 0.5, dtype=np.float32))
        streams[0].push(np.full(4, -1.0, dtype=np.float32))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        pipeline.stop()

    asyncio.run(scenario())

    assert streams[0].kwargs["samplerate"] == 16_000
    assert streams[0].kwargs["blocksize"] == 4096
    assert [f.sequence_num for f in frames] == [1, 2]
    assert frames[0].sample_rate_hz == 16_000
    assert np.frombuffer(frames[1].pcm_bytes, dtype="<i2").tolist() == [-32768] * 4
    assert streams[0].closed


def test_blocks_after_stop_are_not_delivered() -> None:
    pipeline, streams = _pipeline()
    frames: list[AudioFrame] = []

    async def scenario() -> None:
        await pipeline.start(frames.append)
        stream = streams[0]
        pipeline.stop()
        stream.push(np.zeros(4, dtype=np.float32))
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert not frames
    assert not pipeline.is_listening


def test_stop_is_idempotent(monkeypatch: pytest.MonkeyPatch) -> None:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(capture_mod, "log_event", emitted.append)
    pipeline, _ = _pipeline()

    async def scenario() -> None:
        await pipeline.start(lambda frame: None)

    asyncio.run(scenario())
    pipeline.stop()
    pipeline.stop()

    stopped = [e for e in emitted if e["event_type"] == "CAPTURE_STOPPED"]
    assert len(stopped) == 1


def test_device_error_propagates_and_leaves_pipeline_stopped() -> None:
    def broken(**kwargs: Any) -> Any:
        raise OSError("permission denied")

    pipeline = AudioCapturePipeline(stream_factory=broken)

    with pytest.raises(OSError):
        asyncio.run(pipeline.start(lambda frame: None))

    assert not pipeline.is_listening


def test_stop_while_device_opens_releases_the_late_stream() -> None:
    streams: list[FakeInputStream] = []
    gate = threading.Event()

    def slow(**kwargs: Any) -> FakeInputStream:
        gate.wait(2.0)
        stream = FakeInputStream(**kwargs)
        streams.append(stream)
        return stream

    pipeline = AudioCapturePipeline(stream_factory=slow)
    frames: list[AudioFrame] = []

    async def scenario() -> bool:
        task = asyncio.create_task(pipeline.start(frames.append))
        await asyncio.sleep(0)
        pipeline.stop()
        gate.set()
        return await task

    assert asyncio.run(scenario()) is False
    assert not pipeline.is_listening
    assert streams[0].closed

    streams[0].push(np.zeros(4, dtype=np.float32))
    assert not frames


def test_restart_after_cancelled_start_delivers_frames() -> None:
    pipeline, streams = _pipeline()
    frames: list[AudioFrame] = []

    async def scenario() -> None:
        task = asyncio.create_task(pipeline.start(frames.append))
        await asyncio.sleep(0)
        pipeline.stop()
        assert await task is False

        assert await pipeline.start(frames.append)
        streams[-1].push(np.zeros(4, dtype=np.float32))
        await asyncio.sleep(0)
        pipeline.stop()

    asyncio.run(scenario())

    assert len(streams) == 2
    assert [f.sequence_num for f in frames] == [1]
