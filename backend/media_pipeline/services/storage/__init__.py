from .blob_store import BlobStore, InMemoryBlobStore, StoredBlob, normalize_key
from .metadata_store import DynamoMetadataStore, InMemoryMetadataStore, MetadataStore
from .s3_blob_store import S3BlobStore, create_s3_client

__all__ = [
    "BlobStore",
    "InMemoryBlobStore",
    "S3BlobStore",
    "StoredBlob",
    "create_s3_client",
    "normalize_key",
    "MetadataStore",
    "InMemoryMetadataStore",
    "DynamoMetadataStore",
]
