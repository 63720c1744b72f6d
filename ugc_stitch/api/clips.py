"""Single generated clip proxy (preview or download)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ugc_stitch.services.clip_fetcher import ClipFetcher, ClipSource

router = APIRouter()
logger = logging.getLogger(__name__)


def get_clip_fetcher() -> ClipFetcher:
    return ClipFetcher()


@router.get("/download-video")
async def download_video(
    fetcher: Annotated[ClipFetcher, Depends(get_clip_fetcher)],
    uri: str | None = Query(None),
    download: bool = Query(False),
) -> Response:
    """Fetch one clip with the upstream credential and pass it through."""
    if not uri:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Video URI is required",
        )

    data = await fetcher.fetch(ClipSource(uri=uri, index=0))
    logger.info(f"Proxying clip ({len(data)} bytes, download={download})")

    headers = {"Cache-Control": "public, max-age=3600"}
    if download:
        headers["Content-Disposition"] = 'attachment; filename="generated-video.mp4"'
    else:
        headers["Content-Disposition"] = "inline"
    return Response(content=data, media_type="video/mp4", headers=headers)
