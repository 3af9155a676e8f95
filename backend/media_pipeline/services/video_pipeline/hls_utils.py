# backend/media_pipeline/services/video_pipeline/hls_utils.py
"""
HLS playlist helpers.
"""

from pathlib import Path
from typing import List, Sequence

from ...constants import (
    HLS_CODECS,
    HLS_PLAYLIST_MIME,
    HLS_PLAYLIST_VERSION,
    HLS_SEGMENT_MIME,
    MP4_MIME,
    DEFAULT_CONTENT_TYPE,
)
from ...models.asset_models import Rendition


def sort_by_bitrate(renditions: Sequence[Rendition]) -> List[Rendition]:
    """Ascending bitrate so naive players start on the lightest stream."""
    return sorted(renditions, key=lambda r: (r.bitrate or 0, r.label))


def build_master_playlist(entries: Sequence[dict]) -> str:
    """
    Build the master playlist text.

    Args:
        entries: Dicts with label, width, height, bandwidth (peak bps) and
            average_bandwidth (bps), for successful renditions only

    Returns:
        Playlist text; variants appear in ascending bandwidth order
    """
    lines = ["#EXTM3U", f"#EXT-X-VERSION:{HLS_PLAYLIST_VERSION}", ""]
    for entry in sorted(entries, key=lambda e: (e["average_bandwidth"], e["label"])):
        lines.append(
            f"#EXT-X-STREAM-INF:BANDWIDTH={entry['bandwidth']},"
            f"AVERAGE-BANDWIDTH={entry['average_bandwidth']},"
            f"RESOLUTION={entry['width']}x{entry['height']},"
            f'CODECS="{HLS_CODECS}"'
        )
        lines.append(f"{entry['label']}/{entry['label']}.m3u8")
        lines.append("")
    return "\n".join(lines)


def hls_content_type(filename: str) -> str:
    suffix = Path(filename).suffix.lower()
    if suffix == ".m3u8":
        return HLS_PLAYLIST_MIME
    if suffix in (".m4s", ".ts"):
        return HLS_SEGMENT_MIME
    if suffix == ".mp4":
        return MP4_MIME
    return DEFAULT_CONTENT_TYPE
