"""Video generation operation status endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ugc_stitch.schemas.operation import OperationStatusResponse
from ugc_stitch.services.operation_poller import OperationPoller, OperationState

router = APIRouter()


def get_operation_poller() -> OperationPoller:
    return OperationPoller()


@router.get("/check-operation", response_model=OperationStatusResponse, response_model_exclude_none=True)
async def check_operation(
    poller: Annotated[OperationPoller, Depends(get_operation_poller)],
    operation: str | None = Query(None),
) -> OperationStatusResponse:
    """Report whether a generation operation is still running, done, or failed."""
    if not operation:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Operation name is required",
        )

    result = await poller.poll(operation)

    if result.state == OperationState.PENDING:
        return OperationStatusResponse(
            status="in_progress",
            message="Video generation is still in progress",
        )
    if result.state == OperationState.FAILED:
        return OperationStatusResponse(status="error", error=result.error)
    return OperationStatusResponse(
        status="completed",
        video_uri=result.video_uri,
        operation=result.raw,
    )
