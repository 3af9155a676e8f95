# backend/media_pipeline/services/transcode/mediaconvert_service.py
"""
MediaConvert Job Service - boto3 adapter for managed video transcoding.

Builds one job per original with three output groups: the HLS ladder, a
single frame capture for the poster and a progressive 1080p MP4.
"""

import posixpath
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ...config import Settings
from ...constants import (
    AUDIO_BITRATE,
    DOWNLOADS_DIRECTORY,
    HLS_DIRECTORY,
    HLS_SEGMENT_SECONDS,
)
from ...enums import LogEmoji, LoggerName, LogSource, RenditionRole, TranscodeJobStatus
from ...exceptions import ConfigurationError, TranscodeSubmissionError
from ...models.rendition_models import RenditionSpec
from ...models.result_models import OutputDimensions, TranscodeStatusReport
from ..logger import get_service_logger
from .transcode_service import (
    MANAGED_HLS_BASENAME,
    MANAGED_POSTER_BASENAME,
    TranscodeCompletion,
    TranscodeJobService,
    classify_managed_output,
)

logger = get_service_logger(LoggerName.TRANSCODE, LogSource.PIPELINE)

# MediaConvert job states -> pipeline job states
STATUS_MAP = {
    "SUBMITTED": TranscodeJobStatus.SUBMITTED,
    "PROGRESSING": TranscodeJobStatus.RUNNING,
    "COMPLETE": TranscodeJobStatus.COMPLETE,
    "ERROR": TranscodeJobStatus.ERROR,
    "CANCELED": TranscodeJobStatus.CANCELED,
}


def map_job_status(status: Optional[str]) -> TranscodeJobStatus:
    """Unknown states are treated as still running."""
    return STATUS_MAP.get((status or "").upper(), TranscodeJobStatus.RUNNING)


def _audio_bitrate_bps() -> int:
    return int(AUDIO_BITRATE.rstrip("k")) * 1000


def _h264_output(spec: RenditionSpec, name_modifier: str, container: Dict[str, Any]) -> Dict[str, Any]:
    h264: Dict[str, Any] = {
        "RateControlMode": "VBR",
        "Bitrate": spec.bitrate_bps,
        "GopSize": HLS_SEGMENT_SECONDS,
        "GopSizeUnits": "SECONDS",
        "SceneChangeDetect": "DISABLED",
        "CodecProfile": "HIGH",
    }
    if spec.maxrate_bps:
        h264["MaxBitrate"] = spec.maxrate_bps
    if spec.bufsize_kbps:
        h264["HrdBufferSize"] = spec.bufsize_kbps * 1000

    output: Dict[str, Any] = {
        "ContainerSettings": container,
        "VideoDescription": {
            "Width": spec.width,
            "Height": spec.height,
            "ScalingBehavior": "FIT_NO_UPSCALE",
            "CodecSettings": {"Codec": "H_264", "H264Settings": h264},
        },
        "AudioDescriptions": [
            {
                "CodecSettings": {
                    "Codec": "AAC",
                    "AacSettings": {
                        "Bitrate": _audio_bitrate_bps(),
                        "CodingMode": "CODING_MODE_2_0",
                        "SampleRate": 48000,
                    },
                }
            }
        ],
    }
    if name_modifier:
        output["NameModifier"] = name_modifier
    return output


def build_job_settings(
    input_uri: str, output_uri_prefix: str, specs: List[RenditionSpec]
) -> Dict[str, Any]:
    """
    Build the MediaConvert Settings document for one original.

    Args:
        input_uri: s3:// URI of the original
        output_uri_prefix: s3:// URI of the asset prefix, no trailing slash
        specs: Video plan from the rendition planner

    Returns:
        Settings dict for create_job
    """
    hls_specs = [s for s in specs if s.role == RenditionRole.HLS]
    poster_specs = [s for s in specs if s.role == RenditionRole.POSTER]
    download_specs = [s for s in specs if s.role == RenditionRole.DOWNLOAD]

    output_groups: List[Dict[str, Any]] = []

    if hls_specs:
        output_groups.append(
            {
                "Name": "HLS",
                "OutputGroupSettings": {
                    "Type": "HLS_GROUP_SETTINGS",
                    "HlsGroupSettings": {
                        "Destination": f"{output_uri_prefix}/{HLS_DIRECTORY}/{MANAGED_HLS_BASENAME}",
                        "SegmentLength": HLS_SEGMENT_SECONDS,
                        "MinSegmentLength": 0,
                        "SegmentControl": "SEGMENTED_FILES",
                        "DirectoryStructure": "SINGLE_DIRECTORY",
                        "ManifestDurationFormat": "INTEGER",
                        "StreamInfResolution": "INCLUDE",
                        "CodecSpecification": "RFC_4281",
                        "OutputSelection": "MANIFESTS_AND_SEGMENTS",
                        "ClientCache": "ENABLED",
                    },
                },
                "Outputs": [
                    _h264_output(spec, f"_{spec.label}", {"Container": "M3U8"})
                    for spec in hls_specs
                ],
            }
        )

    for spec in poster_specs:
        output_groups.append(
            {
                "Name": "Poster",
                "OutputGroupSettings": {
                    "Type": "FILE_GROUP_SETTINGS",
                    "FileGroupSettings": {
                        "Destination": f"{output_uri_prefix}/{MANAGED_POSTER_BASENAME}"
                    },
                },
                "Outputs": [
                    {
                        "ContainerSettings": {"Container": "RAW"},
                        "VideoDescription": {
                            "Width": spec.width,
                            "Height": spec.height,
                            "ScalingBehavior": "FIT_NO_UPSCALE",
                            "CodecSettings": {
                                "Codec": "FRAME_CAPTURE",
                                "FrameCaptureSettings": {
                                    "FramerateNumerator": 1,
                                    "FramerateDenominator": 60,
                                    "MaxCaptures": 1,
                                    "Quality": 80,
                                },
                            },
                        },
                    }
                ],
            }
        )

    for spec in download_specs:
        output_groups.append(
            {
                "Name": "Downloads",
                "OutputGroupSettings": {
                    "Type": "FILE_GROUP_SETTINGS",
                    "FileGroupSettings": {
                        "Destination": f"{output_uri_prefix}/{DOWNLOADS_DIRECTORY}/{spec.label}"
                    },
                },
                "Outputs": [
                    _h264_output(
                        spec,
                        "",
                        {
                            "Container": "MP4",
                            "Mp4Settings": {"MoovPlacement": "PROGRESSIVE_DOWNLOAD"},
                        },
                    )
                ],
            }
        )

    return {
        "TimecodeConfig": {"Source": "ZEROBASED"},
        "OutputGroups": output_groups,
        "Inputs": [
            {
                "FileInput": input_uri,
                "AudioSelectors": {"Audio Selector 1": {"DefaultSelection": "DEFAULT"}},
                "VideoSelector": {},
            }
        ],
    }


# Output container -> file extension MediaConvert appends
CONTAINER_EXTENSIONS = {"M3U8": ".m3u8", "MP4": ".mp4", "RAW": ".jpg"}


def _field(obj: Dict[str, Any], name: str) -> Any:
    """Events use camelCase keys, the GetJob API PascalCase."""
    value = obj.get(name)
    if value is None:
        value = obj.get(name[0].upper() + name[1:])
    return value


def _settings_output_name(
    output_groups: List[Dict[str, Any]], group_index: int, output_index: int
) -> Optional[str]:
    try:
        group = output_groups[group_index]
        output = group["Outputs"][output_index]
    except (IndexError, KeyError, TypeError):
        return None
    group_settings = group.get("OutputGroupSettings") or {}
    destination = (
        group_settings.get("HlsGroupSettings") or group_settings.get("FileGroupSettings") or {}
    ).get("Destination", "")
    container = (output.get("ContainerSettings") or {}).get("Container", "")
    return (
        posixpath.basename(destination)
        + output.get("NameModifier", "")
        + CONTAINER_EXTENSIONS.get(container, "")
    )


def parse_output_dimensions(
    group_details: Optional[List[Dict[str, Any]]],
    output_groups: Optional[List[Dict[str, Any]]] = None,
) -> OutputDimensions:
    """
    Actual output sizes from a job's output group details.

    Completion events name every output file; GetJob does not, so its
    outputs are matched by position against the submitted output groups.

    Returns:
        {"hls": {label: (w, h)}, "downloads": {label: (w, h)}}
    """
    dimensions: OutputDimensions = {}
    for group_index, group in enumerate(group_details or []):
        for output_index, detail in enumerate(_field(group, "outputDetails") or []):
            video = _field(detail, "videoDetails") or {}
            width, height = _field(video, "widthInPx"), _field(video, "heightInPx")
            if not width or not height:
                continue

            paths = _field(detail, "outputFilePaths") or []
            name = paths[0] if paths else _settings_output_name(
                output_groups or [], group_index, output_index
            )
            target = classify_managed_output(name) if name else None
            if target is None:
                continue
            group_name, label = target
            dimensions.setdefault(group_name, {})[label] = (int(width), int(height))
    return dimensions


def parse_completion_event(event: Dict[str, Any]) -> TranscodeCompletion:
    """
    Normalize an EventBridge "MediaConvert Job State Change" event.

    Accepts either the full event or just its detail object.

    Raises:
        ValueError: If the event carries no job id
    """
    detail = event.get("detail", event)
    job_id = detail.get("jobId")
    if not job_id:
        raise ValueError("Completion event has no jobId")
    return TranscodeCompletion(
        job_id=job_id,
        status=str(detail.get("status", "")).upper(),
        error_message=detail.get("errorMessage"),
        user_metadata=dict(detail.get("userMetadata") or {}),
        outputs=parse_output_dimensions(detail.get("outputGroupDetails")),
    )


class MediaConvertJobService(TranscodeJobService):
    """TranscodeJobService backed by AWS Elemental MediaConvert."""

    def __init__(self, settings: Settings, client=None):
        if not settings.mediaconvert_role_arn and client is None:
            raise ConfigurationError("mediaconvert_role_arn is required in managed mode")
        self.settings = settings
        self.bucket = settings.media_bucket
        self._client = client

    @property
    def client(self):
        """Lazily resolve the account endpoint on first use."""
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self):
        endpoint = self.settings.mediaconvert_endpoint_url
        if not endpoint:
            try:
                discovery = boto3.client("mediaconvert", region_name=self.settings.aws_region)
                endpoint = discovery.describe_endpoints()["Endpoints"][0]["Url"]
            except (ClientError, BotoCoreError, KeyError, IndexError) as e:
                raise TranscodeSubmissionError(f"MediaConvert endpoint discovery failed: {e}") from e
            logger.info(f"Discovered MediaConvert endpoint {endpoint}", emoji=LogEmoji.SEARCH)
        return boto3.client(
            "mediaconvert", region_name=self.settings.aws_region, endpoint_url=endpoint
        )

    def submit(
        self,
        input_key: str,
        specs: List[RenditionSpec],
        output_prefix: str,
        user_metadata: Dict[str, str],
    ) -> str:
        params: Dict[str, Any] = {
            "Role": self.settings.mediaconvert_role_arn,
            "Settings": build_job_settings(
                f"s3://{self.bucket}/{input_key}",
                f"s3://{self.bucket}/{output_prefix.rstrip('/')}",
                specs,
            ),
            "UserMetadata": {k: str(v) for k, v in user_metadata.items()},
        }
        if self.settings.mediaconvert_queue_arn:
            params["Queue"] = self.settings.mediaconvert_queue_arn

        try:
            response = self.client.create_job(**params)
            job_id = response["Job"]["Id"]
        except (ClientError, BotoCoreError, KeyError) as e:
            raise TranscodeSubmissionError(f"MediaConvert job submission failed: {e}") from e

        logger.info(f"MediaConvert job {job_id} submitted for {input_key}", emoji=LogEmoji.JOB)
        return job_id

    def get_status(self, job_id: str) -> TranscodeStatusReport:
        try:
            job = self.client.get_job(Id=job_id)["Job"]
        except (ClientError, BotoCoreError, KeyError) as e:
            raise TranscodeSubmissionError(f"MediaConvert status check failed for {job_id}: {e}") from e

        return TranscodeStatusReport(
            job_id=job_id,
            status=map_job_status(job.get("Status")),
            error_message=job.get("ErrorMessage"),
            outputs=parse_output_dimensions(
                job.get("OutputGroupDetails"), (job.get("Settings") or {}).get("OutputGroups")
            ),
        )
