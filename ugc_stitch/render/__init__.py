from ugc_stitch.render.compositor import (
    CompositionResult,
    CompositionState,
    TimelineCompositor,
    order_clip_sources,
)
from ugc_stitch.render.demuxer import ClipDemuxer, VideoSample
from ugc_stitch.render.encoder import ConcatEncoder

__all__ = [
    "TimelineCompositor",
    "CompositionState",
    "CompositionResult",
    "ClipDemuxer",
    "VideoSample",
    "ConcatEncoder",
    "order_clip_sources",
]
