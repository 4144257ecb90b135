"""
Microphone capture pipeline.

Responsibilities:
- Own one microphone input stream (sounddevice / PortAudio)
- Convert each fixed-size float32 block to PCM16 mono
- Hand frames to the event loop in capture order

Non-responsibilities:
- No network I/O (the orchestrator sends frames)
- No buffering beyond the loop's callback queue
- No resampling (the device is opened at the capture rate)

Threading:
- The block callback runs on the PortAudio thread and must not block.
- Frames cross into asyncio via loop.call_soon_threadsafe, which preserves
  capture order.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

import numpy as np

from audio.frames import AudioFrame
from audio.pcm import float32_to_pcm16le
from observability.logger import log_event
from spec import AUDIO_CHANNELS, CAPTURE_BLOCK_SAMPLES, CAPTURE_SAMPLE_RATE_HZ


FrameSink = Callable[[AudioFrame], None]
StreamFactory = Callable[..., Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _default_input_stream(**kwargs: Any) -> Any:
    import sounddevice as sd  # pylint: disable=import-outside-toplevel
    return sd.InputStream(**kwargs)


class AudioCapturePipeline:
    """
    Start/stop wrapper around a microphone input stream.

    Recording is gated by `_recording`, separate from "stream installed",
    so stop() silences transmission before the device is torn down.
    """

    def __init__(
        self,
        *,
        stream_factory: StreamFactory | None = None,
        sample_rate_hz: int = CAPTURE_SAMPLE_RATE_HZ,
        block_samples: int = CAPTURE_BLOCK_SAMPLES,
    ) -> None:
        self._stream_factory = stream_factory or _default_input_stream
        self._sample_rate_hz = sample_rate_hz
        self._block_samples = block_samples

        self._stream: Any | None = None
        self._recording: bool = False
        self._sink: FrameSink | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._sequence_num: int = 0
        # Bumped by stop(); a start() that sees it change was cancelled
        self._generation: int = 0

    @property
    def is_listening(self) -> bool:
        return self._recording and self._sink is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, on_frame: FrameSink) -> bool:
        """
        Acquire the microphone and begin delivering frames to `on_frame`.

        Returns False when stop() ran while the device was being opened;
        the freshly opened stream is released and nothing is delivered.
        Raises whatever the audio backend raises (device missing,
        permission denied). The pipeline is left stopped in that case.
        """
        generation = self._generation
        self._loop = asyncio.get_running_loop()

        if self._stream is None:
            self._sequence_num = 0
            # Opening a device may block on the OS permission prompt
            stream = await asyncio.to_thread(self._open_stream)
            if generation != self._generation or self._stream is not None:
                self._release(stream)
                log_event({
                    "event_type": "CAPTURE_START_CANCELLED",
                    "level": "WARNING",
                })
                return False
            self._stream = stream

        self._sink = on_frame
        self._recording = True
        log_event({
            "event_type": "CAPTURE_STARTED",
            "sample_rate_hz": self._sample_rate_hz,
            "block_samples": self._block_samples,
        })
        return True

    def stop(self) -> None:
        """Stop sending, then release the device. Idempotent."""
        self._generation += 1
        was_active = self._recording or self._stream is not None
        self._recording = False
        self._sink = None

        stream = self._stream
        self._stream = None
        if stream is not None:
            self._release(stream)

        if was_active:
            log_event({
                "event_type": "CAPTURE_STOPPED",
                "frames_captured": self._sequence_num,
            })

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open_stream(self) -> Any:
        stream = self._stream_factory(
            samplerate=self._sample_rate_hz,
            channels=AUDIO_CHANNELS,
            dtype="float32",
            blocksize=self._block_samples,
            callback=self._on_block,
        )
        try:
            stream.start()
        except Exception:
            stream.close()
            raise
        return stream

    def _release(self, stream: Any) -> None:
        try:
            stream.stop()
            stream.close()
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "CAPTURE_RELEASE_FAILED",
                "level": "WARNING",
                "error": repr(e),
            })

    def _on_block(
        self,
        indata: np.ndarray,
        frames: int,  # pylint: disable=unused-argument
        time_info: Any,  # pylint: disable=unused-argument
        status: Any,  # pylint: disable=unused-argument
    ) -> None:
        # PortAudio thread
        loop = self._loop
        if not self._recording or loop is None:
            return

        samples = indata[:, 0] if indata.ndim > 1 else indata
        self._sequence_num += 1
        frame = AudioFrame(
            sequence_num=self._sequence_num,
            pcm_bytes=float32_to_pcm16le(samples),
            sample_rate_hz=self._sample_rate_hz,
            ts_ms=_now_ms(),
        )
        try:
            loop.call_soon_threadsafe(self._deliver, frame)
        except RuntimeError:
            # Loop already closed during shutdown
            self._recording = False

    def _deliver(self, frame: AudioFrame) -> None:
        sink = self._sink
        if not self._recording or sink is None:
            return
        sink(frame)
