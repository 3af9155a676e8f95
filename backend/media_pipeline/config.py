# backend/media_pipeline/config.py
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .enums import ImageFormat, LogLevel, TranscodeMode


class Settings(BaseSettings):
    environment: str = "development"

    # ============= STORAGE =============
    media_bucket: str = Field(
        default="media-uploads", description="Bucket holding originals and derivatives"
    )
    aws_region: str = Field(default="us-east-1", description="AWS region for clients")
    s3_endpoint_url: Optional[str] = Field(
        default=None, description="Custom S3-compatible endpoint (LocalStack/MinIO)"
    )
    public_base_url: str = Field(
        default="",
        description="CDN base URL joined with derivative keys. Empty means relative URLs.",
    )
    cache_control: str = Field(
        default="public, max-age=31536000, immutable",
        description="Cache directive written on every derivative blob",
    )

    # ============= METADATA =============
    asset_table: str = Field(
        default="media-assets", description="DynamoDB table holding asset records"
    )

    # ============= TRANSFORM CACHE =============
    transform_cache_prefix: str = Field(
        default="proxy-cache/", description="Key prefix for on-demand transforms"
    )
    transform_max_width: int = Field(
        default=4096, ge=16, le=16384, description="Largest width a transform may request"
    )
    transform_cache_workers: int = Field(
        default=2, ge=1, le=32, description="Background threads for cache writes"
    )

    # ============= IMAGE PIPELINE =============
    preferred_modern_format: ImageFormat = Field(
        default=ImageFormat.HEIF,
        description="Modern format requested for every ladder rung (heif or avif)",
    )
    image_workers: int = Field(
        default=4, ge=1, le=32, description="Parallel ladder rung encoders"
    )
    max_digest_source_bytes: int = Field(
        default=20 * 1024 * 1024,
        ge=0,
        description="Originals larger than this skip visual/content digests",
    )

    # ============= VIDEO PIPELINE =============
    transcode_mode: TranscodeMode = Field(
        default=TranscodeMode.LOCAL,
        description="Encode video locally with ffmpeg or submit a managed job",
    )
    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")
    ffprobe_binary: str = Field(default="ffprobe", description="ffprobe executable")
    ffmpeg_timeout_seconds: int = Field(
        default=900, ge=10, le=7200, description="Timeout for a single ffmpeg run"
    )
    video_workers: int = Field(
        default=3, ge=1, le=16, description="Parallel HLS rendition encoders"
    )

    # ============= MANAGED TRANSCODE =============
    mediaconvert_role_arn: Optional[str] = Field(
        default=None, description="IAM role MediaConvert assumes"
    )
    mediaconvert_queue_arn: Optional[str] = Field(
        default=None, description="Optional MediaConvert queue"
    )
    mediaconvert_endpoint_url: Optional[str] = Field(
        default=None, description="Account endpoint; discovered when not set"
    )

    # ============= NOTIFICATIONS =============
    notification_topic_arn: Optional[str] = Field(
        default=None, description="SNS topic for terminal outcomes. None logs only."
    )

    # ============= LOGGING =============
    log_level: LogLevel = Field(default=LogLevel.INFO)

    def build_public_url(self, key: str) -> str:
        """Join a blob key with the CDN base URL"""
        base = self.public_base_url.rstrip("/")
        return f"{base}/{key}" if base else f"/{key}"

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v) -> LogLevel:
        """Validate log level is one of the allowed values"""
        if isinstance(v, LogLevel):
            return v
        allowed_levels = LogLevel.__members__.keys()
        v_upper = str(v).upper()
        if v_upper not in allowed_levels:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: {', '.join(allowed_levels)}"
            )
        return LogLevel[v_upper]

    @field_validator("preferred_modern_format", mode="before")
    @classmethod
    def validate_modern_format(cls, v) -> ImageFormat:
        """Only heif and avif are valid modern ladder formats"""
        fmt = ImageFormat(str(getattr(v, "value", v)).lower())
        if fmt not in (ImageFormat.HEIF, ImageFormat.AVIF):
            raise ValueError(f"Invalid modern format '{v}'. Must be heif or avif")
        return fmt

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the allowed values"""
        allowed_envs = ["development", "test", "staging", "production"]
        v_lower = v.lower()
        if v_lower not in allowed_envs:
            raise ValueError(
                f"Invalid environment '{v}'. Must be one of: {', '.join(allowed_envs)}"
            )
        return v_lower

    model_config = SettingsConfigDict(
        env_prefix="MEDIA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """Build the process-wide settings once; components receive it explicitly."""
    return Settings()
