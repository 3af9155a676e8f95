from .mediaconvert_service import (
    MediaConvertJobService,
    build_job_settings,
    map_job_status,
    parse_completion_event,
)
from .transcode_service import (
    MANAGED_POSTER_FILENAME,
    TranscodeCompletion,
    TranscodeJobService,
    managed_hls_playlist_key,
    managed_output_keys,
)

__all__ = [
    "MediaConvertJobService",
    "TranscodeCompletion",
    "TranscodeJobService",
    "MANAGED_POSTER_FILENAME",
    "build_job_settings",
    "managed_hls_playlist_key",
    "managed_output_keys",
    "map_job_status",
    "parse_completion_event",
]
