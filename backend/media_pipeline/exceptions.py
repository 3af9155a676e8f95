# backend/media_pipeline/exceptions.py
"""
Custom exceptions for the media derivative pipeline.

Centralized location for all custom exception classes so every layer
raises and catches the same types.
"""


class MediaPipelineError(Exception):
    """Base exception for all media pipeline errors."""

    pass


class ConfigurationError(MediaPipelineError):
    """Custom exception for configuration and validation errors."""

    pass


# =============================================================================
# SOURCE / GENERATION ERRORS
# =============================================================================


class SourceUnreadableError(MediaPipelineError):
    """Original blob is missing or cannot be decoded."""

    pass


class PartialRenditionFailure(MediaPipelineError):
    """A single (resolution, format) pair or HLS rendition failed to encode."""

    def __init__(self, label: str, target: str, reason: str):
        self.label = label
        self.target = target
        self.reason = reason
        super().__init__(f"{label}.{target}: {reason}")


class VideoEncodingError(MediaPipelineError):
    """Every encoded video rendition failed."""

    pass


# =============================================================================
# COLLABORATOR ERRORS
# =============================================================================


class StorageError(MediaPipelineError):
    """Custom exception for blob storage operation failures."""

    pass


class BlobNotFoundError(StorageError):
    """Requested blob key does not exist."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Blob not found: {key}")


class MetadataStoreError(MediaPipelineError):
    """Custom exception for metadata store failures."""

    pass


class TranscodeSubmissionError(MediaPipelineError):
    """Managed transcode job could not be submitted or queried."""

    pass


class ExternalJobFailureError(MediaPipelineError):
    """Managed transcode job reported error or canceled."""

    pass


# =============================================================================
# TRANSFORM CACHE ERRORS
# =============================================================================


class TransformError(MediaPipelineError):
    """Base class for on-demand transform failures."""

    status_code = 500


class InvalidTransformRequestError(TransformError):
    """Transform parameters are out of range or unparsable."""

    status_code = 400


class TransformNotFoundError(TransformError):
    """Transform source blob does not exist."""

    status_code = 404


class TransformProcessingError(TransformError):
    """Decode, encode or upstream failure while producing a transform."""

    status_code = 500


# =============================================================================
# ORCHESTRATION ERRORS
# =============================================================================


class InvalidStateTransitionError(MediaPipelineError):
    """Asset state machine received an event not allowed in its current state."""

    def __init__(self, state, event):
        self.state = state
        self.event = event
        super().__init__(f"Cannot apply '{event.value}' to asset in '{state.value}'")


class AssetNotFoundError(MediaPipelineError):
    """Custom exception for when an asset record is not found."""

    pass
