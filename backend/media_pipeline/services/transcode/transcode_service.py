# backend/media_pipeline/services/transcode/transcode_service.py
"""
Transcode job service interface and the managed output layout.

A managed job writes its outputs at fixed keys under the asset prefix; the
orchestrator rebuilds the manifest from the plan, these keys and the output
dimensions the job reports once it completes.
"""

import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from ...constants import DOWNLOADS_DIRECTORY, HLS_DIRECTORY, HLS_MASTER_FILENAME
from ...enums import RenditionRole
from ...models.rendition_models import RenditionSpec
from ...models.result_models import OutputDimensions, TranscodeStatusReport
from ...utils.key_utils import join_key

MANAGED_HLS_BASENAME = "master"
MANAGED_POSTER_BASENAME = "poster"
MANAGED_POSTER_FILENAME = "poster.0000000.jpg"


@dataclass
class TranscodeCompletion:
    """Normalized completion signal from the external job service."""

    job_id: str
    status: str
    error_message: Optional[str]
    user_metadata: Dict[str, str]
    outputs: OutputDimensions = field(default_factory=dict)


class TranscodeJobService(ABC):
    """External video transcode service."""

    @abstractmethod
    def submit(
        self,
        input_key: str,
        specs: List[RenditionSpec],
        output_prefix: str,
        user_metadata: Dict[str, str],
    ) -> str:
        """
        Submit one job producing every planned video rendition.

        Returns:
            External job id

        Raises:
            TranscodeSubmissionError: If the service rejects the job
        """

    @abstractmethod
    def get_status(self, job_id: str) -> TranscodeStatusReport:
        """One status check; never blocks waiting for completion."""


def managed_job_specs(specs: List[RenditionSpec]) -> List[RenditionSpec]:
    """
    Square every encoded box for a job submitted before the source is inspected.

    An N×N box fit without upscaling keeps the source orientation, so one
    plan serves portrait and landscape originals alike.
    """
    squared = []
    for spec in specs:
        if spec.role in (RenditionRole.HLS, RenditionRole.DOWNLOAD) and spec.width and spec.height:
            edge = max(spec.width, spec.height)
            spec = replace(spec, width=edge, height=edge)
        squared.append(spec)
    return squared


def classify_managed_output(filename: str) -> Optional[Tuple[str, str]]:
    """
    Map a managed output file name to its (group, label).

    master_720p.m3u8 -> ("hls", "720p"), 1080p.mp4 -> ("downloads", "1080p");
    anything else (poster frames, the master playlist) -> None.
    """
    stem, ext = posixpath.splitext(posixpath.basename(filename))
    hls_prefix = f"{MANAGED_HLS_BASENAME}_"
    if ext == ".m3u8" and stem.startswith(hls_prefix) and len(stem) > len(hls_prefix):
        return "hls", stem[len(hls_prefix):]
    if ext == ".mp4" and stem:
        return "downloads", stem
    return None


def managed_hls_playlist_key(media_prefix: str, label: str) -> str:
    """Variant playlists are named from the HLS basename plus a _{label} modifier."""
    return join_key(media_prefix, HLS_DIRECTORY, f"{MANAGED_HLS_BASENAME}_{label}.m3u8")


def managed_output_keys(media_prefix: str, specs: List[RenditionSpec]) -> Dict[str, object]:
    """
    Keys a managed job writes for the given plan.

    Returns:
        Dict with master, hls (label -> key), poster and downloads (label -> key)
    """
    return {
        "master": join_key(media_prefix, HLS_DIRECTORY, HLS_MASTER_FILENAME),
        "hls": {
            spec.label: managed_hls_playlist_key(media_prefix, spec.label)
            for spec in specs
            if spec.role == RenditionRole.HLS
        },
        "poster": join_key(media_prefix, MANAGED_POSTER_FILENAME),
        "downloads": {
            spec.label: join_key(media_prefix, DOWNLOADS_DIRECTORY, f"{spec.label}.mp4")
            for spec in specs
            if spec.role == RenditionRole.DOWNLOAD
        },
    }
