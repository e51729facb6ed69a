"""Stored files: ingestion, compression, blob storage."""

from .blob_store import InMemoryBlobStore, LocalBlobStore
from .compression import CompressionPipeline, CompressionResult
from .model import File, format_file_size

__all__ = [
    'CompressionPipeline',
    'CompressionResult',
    'File',
    'InMemoryBlobStore',
    'LocalBlobStore',
    'format_file_size',
]
