# backend/media_pipeline/constants.py
"""
Pipeline constants: key layout, file classification, ladder tables and
content types shared by every service.
"""

from .enums import ImageFormat, MediaKind

# =============================================================================
# KEY LAYOUT
# =============================================================================

# Originals live at projects/{projectId}/media/{mediaId}/{filename}
PROJECTS_SEGMENT = "projects"
MEDIA_SEGMENT = "media"
MIN_ORIGINAL_KEY_PARTS = 5

THUMBNAIL_FILENAME = "thumb.jpg"
BLUR_PLACEHOLDER_FILENAME = "blur_placeholder.jpg"
HLS_DIRECTORY = "hls"
HLS_MASTER_FILENAME = "master.m3u8"
DOWNLOADS_DIRECTORY = "downloads"

# Substrings marking a key as pipeline output, never an original
DERIVATIVE_KEY_MARKERS = (
    "/thumb.jpg",
    "/320w.",
    "/640w.",
    "/960w.",
    "/1280w.",
    "/1920w.",
    "/blur_placeholder.",
    "/poster.",
    "/hls/",
    "/downloads/",
)

# =============================================================================
# FILE CLASSIFICATION
# =============================================================================

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "avif", "heic", "gif"}
VIDEO_EXTENSIONS = {"mp4", "mov", "avi", "webm", "mkv"}

EXTENSION_KIND = {
    **{ext: MediaKind.IMAGE for ext in IMAGE_EXTENSIONS},
    **{ext: MediaKind.VIDEO for ext in VIDEO_EXTENSIONS},
}

# =============================================================================
# IMAGE LADDER
# =============================================================================

THUMBNAIL_SIZE = (300, 300)
THUMBNAIL_QUALITY = 80

BLUR_PLACEHOLDER_LABEL = "blur_placeholder"
BLUR_PLACEHOLDER_SIZE = (20, 20)
BLUR_PLACEHOLDER_QUALITY = 20

# (label, box edge, JPEG quality) smallest first
IMAGE_LADDER_RUNGS = (
    ("320w", 320, 75),
    ("640w", 640, 80),
    ("960w", 960, 85),
    ("1280w", 1280, 90),
    ("1920w", 1920, 95),
)

WEBP_MIN_QUALITY = 70
WEBP_QUALITY_OFFSET = 15

# Best-url preference per rung, most preferred first
FORMAT_PREFERENCE = (
    ImageFormat.HEIF,
    ImageFormat.AVIF,
    ImageFormat.WEBP,
    ImageFormat.JPG,
)

VISUAL_DIGEST_SAMPLE_SIZE = (32, 32)
VISUAL_DIGEST_COMPONENTS = (4, 3)
CONTENT_DIGEST_SAMPLE_SIZE = (8, 8)
CONTENT_DIGEST_LENGTH = 16

# Cover candidates narrower than this are skipped while wider ones exist
COVER_MIN_WIDTH = 640

# =============================================================================
# VIDEO LADDER
# =============================================================================

# Portrait orientation (width, height); landscape sources swap the axes
VIDEO_HLS_RUNGS = (
    {"label": "480p", "width": 360, "height": 640, "bitrate": 1000, "maxrate": 1200, "bufsize": 2000},
    {"label": "720p", "width": 540, "height": 960, "bitrate": 2500, "maxrate": 3000, "bufsize": 5000},
    {"label": "1080p", "width": 720, "height": 1280, "bitrate": 5000, "maxrate": 6000, "bufsize": 10000},
)

POSTER_LABEL = "poster"
POSTER_SIZE = (300, 300)
POSTER_SEEK_SECONDS = 1.0

DOWNLOAD_LABEL = "1080p"
DOWNLOAD_SIZE = (1080, 1920)
DOWNLOAD_BITRATE = 5000
DOWNLOAD_CRF = 20
ORIGINAL_DOWNLOAD_LABEL = "original"

HLS_SEGMENT_SECONDS = 2
HLS_FRAME_RATE = 30
HLS_GOP_FRAMES = HLS_SEGMENT_SECONDS * HLS_FRAME_RATE
HLS_SEGMENT_PATTERN = "seg_%04d.m4s"
HLS_INIT_FILENAME = "init.mp4"
HLS_PLAYLIST_VERSION = 7
HLS_CODECS = "avc1.640029,mp4a.40.2"
AUDIO_BITRATE = "128k"
DOWNLOAD_AUDIO_BITRATE = "192k"

# =============================================================================
# TRANSFORM CACHE
# =============================================================================

TRANSFORM_DEFAULT_WIDTH = 1280
TRANSFORM_DEFAULT_QUALITY = 80
TRANSFORM_DEFAULT_FORMAT = ImageFormat.WEBP
AVIF_MIN_QUALITY = 50
AVIF_QUALITY_OFFSET = 20
TRANSFORM_PATH_PREFIX = "/img/"

# =============================================================================
# CONTENT TYPES
# =============================================================================

IMAGE_MIME_TYPES = {
    ImageFormat.JPG: "image/jpeg",
    ImageFormat.WEBP: "image/webp",
    ImageFormat.HEIF: "image/heif",
    ImageFormat.AVIF: "image/avif",
    ImageFormat.PNG: "image/png",
}

HLS_PLAYLIST_MIME = "application/vnd.apple.mpegurl"
HLS_SEGMENT_MIME = "video/iso.segment"
MP4_MIME = "video/mp4"

VIDEO_MIME_TYPES = {
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    "webm": "video/webm",
    "mkv": "video/x-matroska",
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"
