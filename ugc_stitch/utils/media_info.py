"""Media information for in-memory videos using PyAV."""

import io
from dataclasses import dataclass
from fractions import Fraction

import av
from av.error import FFmpegError


@dataclass
class MediaInfo:
    """Media file information."""

    duration_ms: int | None = None
    width: int | None = None
    height: int | None = None
    fps: float | None = None
    video_codec: str | None = None
    audio_codec: str | None = None
    frame_count: int | None = None
    has_video: bool = False
    has_audio: bool = False

    def to_dict(self) -> dict:
        return {
            "duration_ms": self.duration_ms,
            "width": self.width,
            "height": self.height,
            "fps": self.fps,
            "video_codec": self.video_codec,
            "audio_codec": self.audio_codec,
            "frame_count": self.frame_count,
            "has_video": self.has_video,
            "has_audio": self.has_audio,
        }


def probe_video_bytes(data: bytes, *, count_frames: bool = False) -> MediaInfo:
    """
    Probe an in-memory media buffer.

    Args:
        data: Complete container bytes
        count_frames: Demux the whole video track to count its packets

    Returns:
        MediaInfo for the first video and audio streams

    Raises:
        RuntimeError: If the buffer cannot be opened as a container
    """
    try:
        container = av.open(io.BytesIO(data), mode="r")
    except FFmpegError as e:
        raise RuntimeError(f"Failed to probe media: {e}") from e

    try:
        info = MediaInfo()
        if container.streams.audio:
            info.has_audio = True
            info.audio_codec = container.streams.audio[0].codec_context.name

        if container.streams.video:
            stream = container.streams.video[0]
            info.has_video = True
            info.video_codec = stream.codec_context.name
            info.width = stream.codec_context.width
            info.height = stream.codec_context.height
            rate = stream.average_rate or stream.guessed_rate
            info.fps = float(rate) if rate else None
            if stream.duration and stream.time_base:
                info.duration_ms = round(stream.duration * stream.time_base * 1000)
            if stream.frames:
                info.frame_count = stream.frames
            if count_frames:
                info.frame_count = sum(
                    1 for packet in container.demux(stream) if packet.size > 0
                )

        if info.duration_ms is None and container.duration:
            info.duration_ms = round(Fraction(container.duration, av.time_base) * 1000)
        return info
    finally:
        container.close()
