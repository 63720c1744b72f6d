"""
Timeline compositor: joins N clips back-to-back on one timeline.

Each clip's samples are shifted by the cumulative *measured* track duration
of every clip before it, then handed to a single encoder:

    offset = 0
    for clip in clips:
        for sample in clip.samples():
            encoder.add(sample, sample.timestamp + offset)
            sample.release()
        offset += clip.track_duration()

The offset advances by the measured track duration, never by the last
sample's end. Clips are processed strictly in order: clip k's offset
depends on every clip before it.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from fractions import Fraction
from typing import ContextManager, Protocol

from ugc_stitch.exceptions import EmptyOutput, InvalidSegmentOrderError
from ugc_stitch.render.demuxer import ClipDemuxer, VideoSample

logger = logging.getLogger(__name__)


class ClipTrack(Protocol):
    """What the compositor needs from an opened clip."""

    frame_rate: Fraction | None

    def samples(self) -> Iterator[VideoSample]: ...

    def track_duration_us(self) -> int: ...


class SampleSink(Protocol):
    """What the compositor needs from the encoder."""

    def add(self, sample: VideoSample, timestamp_us: int, rate: Fraction | None = None) -> None: ...


ClipOpener = Callable[..., ContextManager[ClipTrack]]


@dataclass
class CompositionState:
    """Running state of one job. ``offset_us`` only ever grows."""

    offset_us: int = 0
    clip_index: int = 0
    sample_count: int = 0
    dropped_count: int = 0
    last_timestamp_us: int | None = None
    clip_offsets_us: list[int] = field(default_factory=list)
    clip_sample_counts: list[int] = field(default_factory=list)

    def advance(self, duration_us: int) -> None:
        if duration_us < 0:
            raise ValueError(f"Clip duration cannot be negative: {duration_us}")
        self.offset_us += duration_us
        self.clip_index += 1


@dataclass
class CompositionResult:
    total_duration_us: int
    clip_offsets_us: list[int]
    clip_sample_counts: list[int]
    sample_count: int
    dropped_count: int = 0

    @property
    def total_duration_s(self) -> float:
        return self.total_duration_us / 1_000_000


class TimelineCompositor:
    """Feeds every clip's samples to one encoder on a shared timeline.

    ``open_clip`` is called as ``open_clip(data, clip_index=i)`` and must
    return a context manager yielding a ``ClipTrack``; the default opens the
    buffer with PyAV.
    """

    def __init__(self, open_clip: ClipOpener = ClipDemuxer, session_id: str | None = None):
        self._open_clip = open_clip
        self._label = f"[{session_id}] " if session_id else ""

    def compose(self, clips: Iterable[bytes], encoder: SampleSink) -> CompositionResult:
        """Append ``clips`` in order to ``encoder``.

        ``clips`` is consumed lazily, one buffer at a time, so the caller can
        hand over ownership of each raw buffer and let it go once its
        demuxer is closed.

        Raises:
            EmptyOutput: if no clip produced a single sample
        """
        state = CompositionState()
        for data in clips:
            clip_index = state.clip_index
            state.clip_offsets_us.append(state.offset_us)
            with self._open_clip(data, clip_index=clip_index) as track:
                del data
                clip_samples = self._append_clip(track, state, encoder)
                duration_us = track.track_duration_us()
            state.clip_sample_counts.append(clip_samples)
            logger.info(
                f"{self._label}Appended clip {clip_index + 1}: {clip_samples} samples, "
                f"offset {state.offset_us}us, measured duration {duration_us}us"
            )
            if clip_samples == 0:
                logger.warning(f"{self._label}Clip {clip_index + 1} produced no video samples")
            state.advance(duration_us)

        if state.sample_count == 0:
            raise EmptyOutput(f"No video samples in {state.clip_index} clip(s)")

        return CompositionResult(
            total_duration_us=state.offset_us,
            clip_offsets_us=list(state.clip_offsets_us),
            clip_sample_counts=list(state.clip_sample_counts),
            sample_count=state.sample_count,
            dropped_count=state.dropped_count,
        )

    def _append_clip(self, track: ClipTrack, state: CompositionState, encoder: SampleSink) -> int:
        emitted = 0
        samples = track.samples()
        try:
            for sample in samples:
                try:
                    timestamp_us = sample.timestamp_us + state.offset_us
                    if state.last_timestamp_us is not None and timestamp_us <= state.last_timestamp_us:
                        state.dropped_count += 1
                        logger.debug(
                            f"{self._label}Dropping sample at {timestamp_us}us "
                            f"(last emitted {state.last_timestamp_us}us)"
                        )
                        continue
                    encoder.add(sample, timestamp_us, track.frame_rate)
                    state.last_timestamp_us = timestamp_us
                    state.sample_count += 1
                    emitted += 1
                finally:
                    sample.release()
        finally:
            close = getattr(samples, "close", None)
            if close is not None:
                close()
        return emitted


def order_clip_sources(clips: list[tuple[str, int]]) -> list[str]:
    """Sort ``(uri, segment_number)`` pairs by segment number.

    Segment numbers must be unique and form the contiguous range starting at
    the smallest one; anything else raises InvalidSegmentOrderError.
    """
    numbers = [number for _, number in clips]
    if len(set(numbers)) != len(numbers):
        raise InvalidSegmentOrderError("Duplicate segment numbers in request")
    ordered = sorted(clips, key=lambda item: item[1])
    first = ordered[0][1] if ordered else 0
    for expected, (_, number) in enumerate(ordered, start=first):
        if number != expected:
            raise InvalidSegmentOrderError(f"Missing segment number {expected}")
    return [uri for uri, _ in ordered]
