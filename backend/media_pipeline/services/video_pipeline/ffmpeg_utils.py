# backend/media_pipeline/services/video_pipeline/ffmpeg_utils.py
"""
FFmpeg utilities for video derivative generation.

Pure functions for ffprobe/FFmpeg command generation plus the single
execution helper. No storage access - suitable for service layer
consumption.
"""

import json
import subprocess
from typing import Any, Dict, List, Optional, Tuple

from ...constants import (
    AUDIO_BITRATE,
    DOWNLOAD_AUDIO_BITRATE,
    DOWNLOAD_CRF,
    HLS_FRAME_RATE,
    HLS_GOP_FRAMES,
    HLS_INIT_FILENAME,
    HLS_SEGMENT_PATTERN,
    HLS_SEGMENT_SECONDS,
    POSTER_SEEK_SECONDS,
)
from ...enums import LoggerName, LogSource
from ...exceptions import SourceUnreadableError
from ...models.rendition_models import RenditionSpec
from ..logger import get_service_logger

logger = get_service_logger(LoggerName.VIDEO_PIPELINE, LogSource.PIPELINE)


def check_ffmpeg_available(ffmpeg_binary: str = "ffmpeg") -> Tuple[bool, str]:
    """
    Run `{ffmpeg_binary} -version` once; the video generator factory logs the result.

    Returns:
        Tuple of (is_available, version_or_error_message)
    """
    try:
        result = subprocess.run(
            [ffmpeg_binary, "-version"], capture_output=True, text=True, timeout=10
        )
        if result.returncode == 0:
            version_line = result.stdout.split("\n")[0]
            return True, version_line
        else:
            return False, f"FFmpeg returned error code {result.returncode}"
    except FileNotFoundError:
        return False, "FFmpeg not found in system PATH"
    except subprocess.TimeoutExpired:
        return False, "FFmpeg version check timed out"
    except OSError as e:
        return False, f"FFmpeg could not be started: {e}"


def inspect_video(
    input_path: str, ffprobe_binary: str = "ffprobe", timeout: int = 60
) -> Dict[str, Any]:
    """
    Read width, height and duration of the first video stream.

    Args:
        input_path: Local path of the source video
        ffprobe_binary: ffprobe executable
        timeout: ffprobe timeout in seconds

    Returns:
        Dict with width, height and duration (None when not reported)

    Raises:
        SourceUnreadableError: If the file has no decodable video stream
    """
    cmd = [
        ffprobe_binary,
        "-v",
        "error",
        "-select_streams",
        "v:0",
        "-show_entries",
        "stream=width,height:format=duration",
        "-of",
        "json",
        input_path,
    ]
    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, timeout=timeout, check=False
        )
    except FileNotFoundError as e:
        raise SourceUnreadableError(f"ffprobe not available: {e}") from e
    except subprocess.TimeoutExpired as e:
        raise SourceUnreadableError(f"ffprobe timed out after {timeout} seconds") from e

    if result.returncode != 0:
        raise SourceUnreadableError(
            f"ffprobe failed with code {result.returncode}: {result.stderr.strip()}"
        )

    try:
        info = json.loads(result.stdout or "{}")
        stream = info["streams"][0]
        width, height = int(stream["width"]), int(stream["height"])
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise SourceUnreadableError("Source has no decodable video stream") from e

    duration = None
    raw_duration = info.get("format", {}).get("duration")
    if raw_duration not in (None, "N/A"):
        try:
            duration = float(raw_duration)
        except ValueError:
            duration = None

    return {"width": width, "height": height, "duration": duration}


def even_fit_dimensions(
    source: Tuple[int, int], box: Tuple[int, int]
) -> Tuple[int, int]:
    """
    Fit source inside box without upscaling, rounded down to even numbers.

    libx264 with yuv420p requires even dimensions.
    """
    src_w, src_h = source
    box_w, box_h = box
    # Integer math so exact fits never lose a pixel to float rounding
    if src_w * box_h >= src_h * box_w:
        width = min(src_w, box_w)
        height = src_h * width // src_w
    else:
        height = min(src_h, box_h)
        width = src_w * height // src_h
    return max(2, width // 2 * 2), max(2, height // 2 * 2)


def poster_seek_seconds(duration: Optional[float]) -> float:
    """Capture near 1s, or the first frame when the source is shorter."""
    if duration is not None and duration <= POSTER_SEEK_SECONDS:
        return 0.0
    return POSTER_SEEK_SECONDS


def build_poster_command(
    input_path: str,
    output_path: str,
    size: Tuple[int, int],
    seek_seconds: float,
    ffmpeg_binary: str = "ffmpeg",
) -> List[str]:
    """Single JPEG frame scaled into the poster box."""
    return [
        ffmpeg_binary,
        "-y",
        "-ss",
        f"{seek_seconds:.3f}",
        "-i",
        input_path,
        "-vframes",
        "1",
        "-vf",
        f"scale={size[0]}:{size[1]}",
        "-q:v",
        "3",
        output_path,
    ]


def build_hls_command(
    input_path: str,
    output_dir: str,
    spec: RenditionSpec,
    size: Tuple[int, int],
    ffmpeg_binary: str = "ffmpeg",
) -> List[str]:
    """
    Build the FFmpeg command for one HLS rendition.

    Constant 2s keyframe interval equal to the segment duration, with scene
    cut detection disabled, so every segment starts on a keyframe.

    Args:
        input_path: Local source path
        output_dir: Directory receiving playlist, init segment and segments
        spec: Planned HLS rendition
        size: Output (width, height), already clipped to the source

    Returns:
        FFmpeg command as list of strings
    """
    return [
        ffmpeg_binary,
        "-y",
        "-i",
        input_path,
        "-map",
        "0:v:0",
        "-map",
        "0:a:0?",
        "-r",
        str(HLS_FRAME_RATE),
        "-g",
        str(HLS_GOP_FRAMES),
        "-keyint_min",
        str(HLS_GOP_FRAMES),
        "-sc_threshold",
        "0",
        "-c:v",
        "libx264",
        "-profile:v",
        "high",
        "-vf",
        f"scale={size[0]}:{size[1]}",
        "-b:v",
        f"{spec.bitrate_kbps}k",
        "-maxrate",
        f"{spec.maxrate_kbps}k",
        "-bufsize",
        f"{spec.bufsize_kbps}k",
        "-pix_fmt",
        "yuv420p",
        "-c:a",
        "aac",
        "-b:a",
        AUDIO_BITRATE,
        "-ar",
        "48000",
        "-ac",
        "2",
        "-hls_time",
        str(HLS_SEGMENT_SECONDS),
        "-hls_flags",
        "independent_segments",
        "-hls_segment_type",
        "fmp4",
        "-hls_playlist_type",
        "vod",
        "-hls_fmp4_init_filename",
        HLS_INIT_FILENAME,
        "-hls_segment_filename",
        f"{output_dir}/{HLS_SEGMENT_PATTERN}",
        "-hls_list_size",
        "0",
        "-f",
        "hls",
        f"{output_dir}/{spec.label}.m3u8",
    ]


def build_download_command(
    input_path: str,
    output_path: str,
    spec: RenditionSpec,
    size: Tuple[int, int],
    ffmpeg_binary: str = "ffmpeg",
) -> List[str]:
    """Progressive MP4 for direct download, moov atom first."""
    return [
        ffmpeg_binary,
        "-y",
        "-i",
        input_path,
        "-vf",
        f"scale={size[0]}:{size[1]}",
        "-c:v",
        "libx264",
        "-b:v",
        f"{spec.bitrate_kbps}k",
        "-preset",
        "medium",
        "-crf",
        str(DOWNLOAD_CRF),
        "-c:a",
        "aac",
        "-b:a",
        DOWNLOAD_AUDIO_BITRATE,
        "-movflags",
        "+faststart",
        "-pix_fmt",
        "yuv420p",
        output_path,
    ]


def execute_ffmpeg_command(
    cmd: List[str], timeout: int = 300, capture_output: bool = True
) -> Tuple[bool, str]:
    """
    Execute FFmpeg command with proper error handling.

    Args:
        cmd: FFmpeg command as list of strings
        timeout: Command timeout in seconds
        capture_output: Whether to capture stdout/stderr

    Returns:
        Tuple of (success, output_or_error_message)
    """
    try:
        logger.debug(f"Executing FFmpeg command: {' '.join(cmd)}")

        result = subprocess.run(
            cmd, capture_output=capture_output, text=True, timeout=timeout, check=False
        )

        if result.returncode == 0:
            return True, result.stdout if capture_output else "Success"
        else:
            error_msg = f"FFmpeg failed with code {result.returncode}"
            if capture_output and result.stderr:
                # Last lines carry the actual error; the head is banner output
                error_msg += f": {result.stderr.strip()[-500:]}"
            logger.error(error_msg)
            return False, error_msg

    except subprocess.TimeoutExpired:
        error_msg = f"FFmpeg command timed out after {timeout} seconds"
        logger.error(error_msg)
        return False, error_msg
    except OSError as e:
        error_msg = f"Error executing FFmpeg command: {str(e)}"
        logger.error(error_msg)
        return False, error_msg
