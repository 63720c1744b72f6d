"""Encode and mux the concatenated sample stream into an in-memory MP4."""

import io
import logging
from fractions import Fraction

import av
from av.error import FFmpegError
from av.video.frame import PictureType

from ugc_stitch.config import get_settings
from ugc_stitch.exceptions import EmptyOutput, EncodeFailure
from ugc_stitch.render.demuxer import MICROSECONDS, VideoSample

logger = logging.getLogger(__name__)


class ConcatEncoder:
    """Single-track MP4 writer with a fixed codec and bitrate policy.

    The output geometry and rate come from the first sample added; later
    samples are scaled to match. Timestamps are given in microseconds and
    rescaled to the encoder time base (1/timescale).
    """

    def __init__(
        self,
        codec: str | None = None,
        bitrate: int | None = None,
        *,
        pix_fmt: str | None = None,
        timescale: int | None = None,
        default_fps: int | None = None,
        container_format: str = "mp4",
    ):
        settings = get_settings()
        self.codec = codec or settings.concat_video_codec
        self.bitrate = bitrate or settings.concat_video_bitrate
        self.pix_fmt = pix_fmt or settings.concat_pix_fmt
        self.timescale = timescale or settings.concat_timescale
        self.default_fps = default_fps or settings.concat_default_fps
        self.time_base = Fraction(1, self.timescale)

        self._buffer = io.BytesIO()
        try:
            self._container = av.open(self._buffer, mode="w", format=container_format)
        except FFmpegError as e:
            raise EncodeFailure(f"Failed to open {container_format} output: {e}") from e
        self._stream = None
        self._packet_duration = 1
        self._last_timestamp_us: int | None = None
        self._last_pts: int | None = None
        self._finalized = False
        self.sample_count = 0
        self.skipped_count = 0

    @property
    def width(self) -> int | None:
        return self._stream.codec_context.width if self._stream is not None else None

    @property
    def height(self) -> int | None:
        return self._stream.codec_context.height if self._stream is not None else None

    def _open_stream(self, frame, rate: Fraction | None) -> None:
        rate = rate or Fraction(self.default_fps)
        try:
            stream = self._container.add_stream(self.codec, rate=rate)
            ctx = stream.codec_context
            ctx.width = frame.width
            ctx.height = frame.height
            ctx.pix_fmt = self.pix_fmt
            ctx.bit_rate = self.bitrate
            ctx.time_base = self.time_base
            stream.time_base = self.time_base
        except (FFmpegError, ValueError) as e:
            raise EncodeFailure(f"Failed to configure {self.codec} encoder: {e}") from e
        self._stream = stream
        self._packet_duration = max(1, round(self.timescale / rate))
        logger.info(
            f"Encoder configured: codec={self.codec} {frame.width}x{frame.height} "
            f"rate={rate} bitrate={self.bitrate}"
        )

    def add(self, sample: VideoSample, timestamp_us: int, rate: Fraction | None = None) -> None:
        """Encode one sample at ``timestamp_us`` on the output timeline.

        Timestamps must be non-decreasing. The caller keeps ownership of the
        sample and releases it afterwards.
        """
        if self._finalized:
            raise RuntimeError("Encoder already finalized")
        if self._last_timestamp_us is not None and timestamp_us < self._last_timestamp_us:
            raise EncodeFailure(
                f"Out-of-order timestamp {timestamp_us}us after {self._last_timestamp_us}us"
            )
        source = sample.frame
        if self._stream is None:
            self._open_stream(source, rate)

        pts = round(Fraction(timestamp_us, MICROSECONDS) / self.time_base)
        self._last_timestamp_us = timestamp_us
        if self._last_pts is not None and pts <= self._last_pts:
            # Finer than the encoder time base; the muxer needs strictly increasing pts.
            self.skipped_count += 1
            return

        ctx = self._stream.codec_context
        frame = source.reformat(width=ctx.width, height=ctx.height, format=self.pix_fmt)
        frame.pts = pts
        frame.time_base = self.time_base
        frame.pict_type = PictureType.NONE
        try:
            self._mux(self._stream.encode(frame))
        except FFmpegError as e:
            raise EncodeFailure(f"Failed to encode frame at {timestamp_us}us: {e}") from e
        finally:
            del frame
        self._last_pts = pts
        self.sample_count += 1

    def _mux(self, packets) -> None:
        for packet in packets:
            # Without a duration the muxer drops the last frame from the track length.
            if not packet.duration:
                packet.duration = self._packet_duration
            self._container.mux(packet)

    def finalize(self) -> bytes:
        """Flush the encoder, seal the container and return its bytes.

        Raises:
            EmptyOutput: if no sample was ever added
            RuntimeError: if called twice
        """
        if self._finalized:
            raise RuntimeError("Encoder already finalized")
        if self.sample_count == 0:
            self.close()
            raise EmptyOutput("Cannot finalize a video with zero samples")
        self._finalized = True
        try:
            self._mux(self._stream.encode(None))
            self._container.close()
        except FFmpegError as e:
            raise EncodeFailure(f"Failed to finalize output: {e}") from e
        finally:
            self._container = None
        data = self._buffer.getvalue()
        self._buffer = None
        return data

    def close(self) -> None:
        """Abandon an unfinished output and free its buffer."""
        self._finalized = True
        if self._container is not None:
            try:
                self._container.close()
            except FFmpegError as e:
                logger.warning(f"Error closing abandoned encoder output: {e}")
            self._container = None
        self._buffer = None
