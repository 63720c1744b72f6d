import json
from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "UGC Stitch API"
    app_version: str = "0.1.0"
    git_hash: str = "unknown"  # Set via GIT_HASH env var at build time
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Upstream video generation service (clip storage + operations)
    gemini_api_key: str = Field(
        default="", validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_GEMINI_API_KEY")
    )
    upstream_api_key_header: str = "x-goog-api-key"
    upstream_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "http://localhost:3000,http://localhost:5173"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from pipe/comma-separated string or JSON array."""
        v = self.cors_origins_raw
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        # Pipe-separated (for Cloud Run compatibility)
        if "|" in v:
            return [origin.strip() for origin in v.split("|") if origin.strip()]
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # Clip download
    clip_fetch_timeout_s: float = 120.0
    clip_fetch_concurrency: int = 3
    max_clip_bytes: int = 256 * 1024 * 1024

    # Concatenation policy (fixed per deployment, not negotiated per clip)
    expected_clip_count: int = 3
    concat_video_codec: str = "h264"
    concat_video_bitrate: int = 1_000_000
    concat_pix_fmt: str = "yuv420p"
    # Encoder time base is 1/concat_timescale; must stay <= 65535 for mpeg4
    concat_timescale: int = 1000
    concat_default_fps: int = 24
    concat_output_filename: str = "concatenated-video.mp4"

    # Session result store (memory-resident, lost on restart)
    session_ttl_seconds: int = 3600
    session_max_entries: int = 32
    job_history_ttl_seconds: int = 3600


@lru_cache
def get_settings() -> Settings:
    return Settings()
