from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class OperationStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Literal["in_progress", "completed", "error"]
    video_uri: str | None = Field(default=None, alias="videoUri")
    message: str | None = None
    error: str | None = None
    operation: dict[str, Any] | None = None
