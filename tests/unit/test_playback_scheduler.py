# pylint: disable=missing-module-docstring,missing-function-docstring

from typing import Any

import numpy as np
import pytest

from audio import playback as playback_mod
from audio.pcm import pcm16_to_base64
from audio.playback import AudioPlaybackScheduler


def _chunk(num_samples: int, value: int = 1000) -> str:
    return pcm16_to_base64(np.full(num_samples, value, dtype="<i2").tobytes())


def _scheduler() -> AudioPlaybackScheduler:
    return AudioPlaybackScheduler(open_device=False)


def test_chunks_are_scheduled_back_to_back() -> None:
    sched = _scheduler()

    first = sched.schedule(_chunk(240))
    second = sched.schedule(_chunk(480))

    assert first is not None and second is not None
    assert first.start_sample == 0
    assert second.start_sample == 240
    assert sched.cursor_samples == 720


def test_chunk_after_idle_gap_starts_now() -> None:
    sched = _scheduler()
    sched.schedule(_chunk(100))

    sched.render(1000)  # clock passes the end of the first chunk

    unit = sched.schedule(_chunk(100))
    assert unit is not None
    assert unit.start_sample == 1000


def test_render_mixes_in_order_and_retires_finished_units() -> None:
    sched = _scheduler()
    sched.schedule(_chunk(4, value=16384))
    sched.schedule(_chunk(4, value=-16384))

    out = sched.render(8)

    assert out.tolist() == [0.5] * 4 + [-0.5] * 4
    assert sched.live_count == 0


def test_interrupt_stops_everything_and_resets_cursor_to_now() -> None:
    sched = _scheduler()
    sched.schedule(_chunk(1000))
    sched.schedule(_chunk(1000))
    sched.render(300)

    stopped = sched.interrupt()

    assert stopped == 2
    assert sched.live_count == 0
    assert sched.cursor_samples == 300
    assert sched.render(100).tolist() == [0.0] * 100

    unit = sched.schedule(_chunk(10))
    assert unit is not None
    assert unit.start_sample == 400


def test_undecodable_payload_is_logged_not_raised(monkeypatch: pytest.MonkeyPatch) -> None:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(playback_mod, "log_event", emitted.append)

    assert _scheduler().schedule("%%%") is None
    assert emitted[0]["event_type"] == "PLAYBACK_DECODE_FAILED"


class FakeOutputStream:
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


def test_output_device_opened_lazily_at_playback_rate() -> None:
    streams: list[FakeOutputStream] = []

    def factory(**kwargs: Any) -> FakeOutputStream:
        stream = FakeOutputStream(**kwargs)
        streams.append(stream)
        return stream

    sched = AudioPlaybackScheduler(stream_factory=factory)
    assert not streams

    sched.schedule(_chunk(10))
    sched.schedule(_chunk(10))

    assert len(streams) == 1
    assert streams[0].started
    assert streams[0].kwargs["samplerate"] == 24_000
    assert streams[0].kwargs["channels"] == 1

    # device callback fills the first channel
    outdata = np.zeros((20, 1), dtype=np.float32)
    streams[0].kwargs["callback"](outdata, 20, None, None)
    assert outdata[0, 0] == pytest.approx(1000 / 32768)

    sched.close()
    sched.close()
    assert streams[0].closed


def test_device_failure_does_not_break_scheduling(monkeypatch: pytest.MonkeyPatch) -> None:
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(playback_mod, "log_event", emitted.append)

    def broken(**kwargs: Any) -> Any:
        raise OSError("no output device")

    sched = AudioPlaybackScheduler(stream_factory=broken)
    assert sched.schedule(_chunk(10)) is not None
    assert sched.schedule(_chunk(10)) is not None

    failures = [e for e in emitted if e["event_type"] == "PLAYBACK_DEVICE_FAILED"]
    assert len(failures) == 1


def test_units_are_not_retained_without_an_output_device(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(playback_mod, "log_event", lambda event: None)

    def broken(**kwargs: Any) -> Any:
        raise OSError("no output device")

    sched = AudioPlaybackScheduler(stream_factory=broken)
    for _ in range(500):
        sched.schedule(_chunk(2400))

    assert sched.live_count == 0
    assert sched.interrupt() == 0
