from ugc_stitch.schemas.concat import (
    ConcatenateRequest,
    ConcatenateResponse,
    JobStatusResponse,
    SegmentClip,
)
from ugc_stitch.schemas.operation import OperationStatusResponse

__all__ = [
    "ConcatenateRequest",
    "ConcatenateResponse",
    "JobStatusResponse",
    "SegmentClip",
    "OperationStatusResponse",
]
