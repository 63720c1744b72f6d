"""Concatenation API endpoints.

POST starts a job (background by default) and GET hands the finished video
out exactly once.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from fastapi.responses import JSONResponse

from ugc_stitch.config import Settings, get_settings
from ugc_stitch.exceptions import MissingSessionIdError
from ugc_stitch.schemas.concat import ConcatenateRequest, ConcatenateResponse, JobStatusResponse
from ugc_stitch.services.concat_service import ConcatenationService, get_concat_service
from ugc_stitch.services.job_registry import JobStatus

router = APIRouter()
logger = logging.getLogger(__name__)

Service = Annotated[ConcatenationService, Depends(get_concat_service)]


@router.post(
    "",
    response_model=ConcatenateResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={200: {"model": ConcatenateResponse}},
)
async def concatenate_videos(
    body: ConcatenateRequest,
    background_tasks: BackgroundTasks,
    service: Service,
    wait: bool = Query(False, description="Run the job inline and answer when it is done"),
):
    """
    Concatenate the generated clips into one video.

    The request is validated before anything is fetched. By default the job
    runs after the response is sent and the caller polls the status
    endpoint; with ``wait=true`` the response is sent once the video is ready.
    """
    session_id, sources = service.validate(body)
    service.submit(session_id, sources)

    if not wait:
        background_tasks.add_task(service.run_in_background, session_id, sources)
        return ConcatenateResponse(
            session_id=session_id,
            status=JobStatus.PENDING.value,
            message="Video concatenation started",
        )

    result = await service.run(session_id, sources)
    job = service.registry.get(session_id)
    payload = ConcatenateResponse(
        session_id=session_id,
        status=job.status.value,
        message="Videos concatenated successfully",
        total_duration_s=result.total_duration_s,
        output_size=job.output_size,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=payload.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@router.get("")
async def download_concatenated_video(
    service: Service,
    settings: Annotated[Settings, Depends(get_settings)],
    session_id: str | None = Query(None, alias="sessionId"),
) -> Response:
    """Serve the finished video once; the stored copy is removed as it is handed out."""
    if not session_id:
        raise MissingSessionIdError()

    data = service.store.take(session_id)
    logger.info(f"Serving concatenated video for session {session_id}: {len(data)} bytes")
    return Response(
        content=data,
        media_type="video/mp4",
        headers={
            "Content-Disposition": f'attachment; filename="{settings.concat_output_filename}"',
            "Cache-Control": "no-cache",
        },
    )


@router.get("/{session_id}/status", response_model=JobStatusResponse)
async def get_concatenation_status(session_id: str, service: Service) -> JobStatusResponse:
    job = service.registry.get(session_id)
    return JobStatusResponse(
        session_id=job.session_id,
        status=job.status.value,
        clip_count=job.clip_count,
        ready=job.status == JobStatus.SUCCEEDED and service.store.contains(session_id),
        error=job.error,
        error_code=job.error_code,
        output_size=job.output_size,
        total_duration_s=(
            job.total_duration_us / 1_000_000 if job.total_duration_us is not None else None
        ),
        sample_count=job.sample_count,
        created_at=job.created_at,
        finished_at=job.finished_at,
    )
