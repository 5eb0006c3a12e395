"""Blob storage for generated images."""

from scenecast.storage.blob_store import (
    BlobInfo,
    BlobStore,
    LocalBlobStore,
    SupabaseBlobStore,
    content_type_for,
    create_blob_store,
    next_sequence_number,
    parse_blob_key,
    project_blob_key,
    unprojected_blob_key,
)

__all__ = [
    "BlobInfo",
    "BlobStore",
    "LocalBlobStore",
    "SupabaseBlobStore",
    "content_type_for",
    "create_blob_store",
    "next_sequence_number",
    "parse_blob_key",
    "project_blob_key",
    "unprojected_blob_key",
]
