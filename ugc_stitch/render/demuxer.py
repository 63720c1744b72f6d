"""Demux and decode one in-memory clip with PyAV.

The container format is probed by libav, never assumed from a file name.
Decoded frames are large compared to the encoded clip, so every
``VideoSample`` handed out must be released by whoever consumes it.
"""

import io
import logging
from collections.abc import Iterator
from fractions import Fraction

import av
from av.error import FFmpegError

from ugc_stitch.exceptions import ClipDecodeError, UnsupportedFormat

logger = logging.getLogger(__name__)

MICROSECONDS = 1_000_000


class VideoSample:
    """A decoded video frame with its presentation timestamp and duration.

    Timestamps and durations are integer microseconds relative to the start
    of the clip's video stream.
    """

    __slots__ = ("_frame", "timestamp_us", "duration_us")

    def __init__(self, frame, timestamp_us: int, duration_us: int):
        self._frame = frame
        self.timestamp_us = timestamp_us
        self.duration_us = duration_us

    @property
    def frame(self):
        if self._frame is None:
            raise RuntimeError("VideoSample used after release()")
        return self._frame

    @property
    def released(self) -> bool:
        return self._frame is None

    def release(self) -> None:
        """Drop the decoded picture. Safe to call more than once."""
        self._frame = None

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"VideoSample(timestamp_us={self.timestamp_us}, duration_us={self.duration_us}, {state})"


def to_microseconds(value: int, time_base: Fraction) -> int:
    return round(value * time_base * MICROSECONDS)


class ClipDemuxer:
    """Opens one clip buffer and exposes its primary video track.

    Usage:
        with ClipDemuxer(data) as demuxer:
            for sample in demuxer.samples():
                ...
                sample.release()
            duration_us = demuxer.track_duration_us()
    """

    def __init__(self, data: bytes, *, clip_index: int | None = None):
        self.clip_index = clip_index
        self._buffer: io.BytesIO | None = io.BytesIO(data)
        self._samples_started = False
        try:
            self._container = av.open(self._buffer, mode="r")
        except FFmpegError as e:
            self._buffer = None
            raise UnsupportedFormat(
                f"{self._label()} is not a readable media container: {e}",
                clip_index=clip_index,
            ) from e

        if not self._container.streams.video:
            self.close()
            raise UnsupportedFormat(
                f"{self._label()} has no video track",
                clip_index=clip_index,
            )
        self._stream = self._container.streams.video[0]
        self._time_base: Fraction = self._stream.time_base or Fraction(1, MICROSECONDS)

    def _label(self) -> str:
        return f"Video {self.clip_index + 1}" if self.clip_index is not None else "Clip"

    def __enter__(self) -> "ClipDemuxer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the container and drop the raw clip bytes."""
        container = getattr(self, "_container", None)
        if container is not None:
            container.close()
            self._container = None
        self._buffer = None

    @property
    def closed(self) -> bool:
        return self._buffer is None

    @property
    def width(self) -> int:
        return self._stream.codec_context.width

    @property
    def height(self) -> int:
        return self._stream.codec_context.height

    @property
    def codec_name(self) -> str:
        return self._stream.codec_context.name

    @property
    def frame_rate(self) -> Fraction | None:
        return self._stream.average_rate or self._stream.guessed_rate

    @property
    def sample_duration_us(self) -> int:
        rate = self.frame_rate
        if not rate:
            return 0
        return round(MICROSECONDS / rate)

    def track_duration_us(self) -> int:
        """Measured duration of the primary video track in microseconds.

        Uses the track's own duration; falls back to the container duration
        when the track header does not carry one.
        """
        if self._stream.duration:
            return to_microseconds(self._stream.duration, self._time_base)
        if self._container is not None and self._container.duration:
            return to_microseconds(self._container.duration, Fraction(1, av.time_base))
        return 0

    def samples(self) -> Iterator[VideoSample]:
        """Decode the video track once, in presentation order.

        Raises:
            RuntimeError: if called a second time
            ClipDecodeError: if libav fails mid-stream
        """
        if self._samples_started:
            raise RuntimeError("samples() can only be consumed once per demuxer")
        if self._container is None:
            raise RuntimeError("Demuxer is closed")
        self._samples_started = True
        return self._iter_samples()

    def _iter_samples(self) -> Iterator[VideoSample]:
        start_pts = self._stream.start_time
        duration_us = self.sample_duration_us
        previous_us: int | None = None
        try:
            for frame in self._container.decode(self._stream):
                time_base = frame.time_base or self._time_base
                if frame.pts is None:
                    # No pts from the container: continue at the nominal rate.
                    timestamp_us = 0 if previous_us is None else previous_us + duration_us
                else:
                    if start_pts is None:
                        start_pts = frame.pts
                    timestamp_us = to_microseconds(frame.pts - start_pts, time_base)
                if timestamp_us < 0:
                    logger.debug(f"{self._label()}: skipping pre-roll frame at {timestamp_us}us")
                    continue
                previous_us = timestamp_us
                yield VideoSample(frame, timestamp_us, duration_us)
        except FFmpegError as e:
            raise ClipDecodeError(
                f"{self._label()} failed to decode: {e}",
                clip_index=self.clip_index,
            ) from e
