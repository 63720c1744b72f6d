from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class SegmentClip(BaseModel):
    """A clip with an explicit position, for callers whose list order is not reliable."""

    model_config = ConfigDict(populate_by_name=True)

    uri: str = Field(validation_alias=AliasChoices("uri", "videoUri", "video_uri"))
    segment_number: int = Field(
        validation_alias=AliasChoices("segmentNumber", "segment_number", "index")
    )


class ConcatenateRequest(BaseModel):
    # Fields are optional here so that missing values surface as
    # ValidationError with the API's own messages instead of pydantic's.
    model_config = ConfigDict(populate_by_name=True)

    clip_uris: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("clipUris", "videoUris", "clip_uris"),
    )
    clips: list[SegmentClip] | None = None
    session_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("sessionId", "session_id"),
    )


class ConcatenateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    session_id: str = Field(alias="sessionId")
    status: str
    message: str
    total_duration_s: float | None = Field(default=None, alias="totalDurationS")
    output_size: int | None = Field(default=None, alias="outputSize")


class JobStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    status: str
    clip_count: int = Field(alias="clipCount")
    ready: bool
    error: str | None = None
    error_code: str | None = Field(default=None, alias="errorCode")
    output_size: int | None = Field(default=None, alias="outputSize")
    total_duration_s: float | None = Field(default=None, alias="totalDurationS")
    sample_count: int | None = Field(default=None, alias="sampleCount")
    created_at: datetime = Field(alias="createdAt")
    finished_at: datetime | None = Field(default=None, alias="finishedAt")
