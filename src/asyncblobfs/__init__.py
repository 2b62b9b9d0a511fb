"""
asyncblobfs
===========

Async filesystem abstraction over Azure Blob Storage, speaking the Blob REST
API directly (Shared Key signing, SAS URLs, paginated listings, server-side
copy), with a local filesystem backend behind the same contract.

Main entry points:
- Filesystem: path-normalizing front for any adapter
- AzureBlobStorageAdapter, LocalFileAdapter: storage backends
- create_filesystem, register_driver: named driver registry
- FilesystemError and subclasses: exceptions

Example:
    from asyncblobfs import AzureBlobStorageAdapter, Filesystem

    async with Filesystem(
        AzureBlobStorageAdapter("account", "base64key==", "container")
    ) as fs:
        await fs.write("dir/hello.txt", b"hello")
        async for entry in fs.list_contents("dir"):
            print(entry.path)
"""

from .attributes import EntryType, StorageAttributes
from .errors import (
    BlobNotFoundError,
    BlobStorageError,
    CorruptedPathDetected,
    ErrorKind,
    FilesystemError,
    PathTraversalDetected,
    UnableToCheckExistence,
    UnableToCopyFile,
    UnableToCreateDirectory,
    UnableToDeleteDirectory,
    UnableToDeleteFile,
    UnableToListContents,
    UnableToMoveFile,
    UnableToReadFile,
    UnableToRetrieveMetadata,
    UnableToWriteFile,
    UnsupportedCapability,
)
from .storage_protocols import AsyncFilesystemAdapter
from .azure_blob_adapter import AzureBlobStorageAdapter
from .local_file_adapter import LocalFileAdapter
from .filesystem import Filesystem
from .settings import AzureBlobSettings
from .drivers import create_filesystem, register_driver

import importlib.metadata

try:
    __version__ = importlib.metadata.version(__name__)
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "AsyncFilesystemAdapter",
    "AzureBlobStorageAdapter",
    "AzureBlobSettings",
    "BlobNotFoundError",
    "BlobStorageError",
    "CorruptedPathDetected",
    "EntryType",
    "ErrorKind",
    "Filesystem",
    "FilesystemError",
    "LocalFileAdapter",
    "PathTraversalDetected",
    "StorageAttributes",
    "UnableToCheckExistence",
    "UnableToCopyFile",
    "UnableToCreateDirectory",
    "UnableToDeleteDirectory",
    "UnableToDeleteFile",
    "UnableToListContents",
    "UnableToMoveFile",
    "UnableToReadFile",
    "UnableToRetrieveMetadata",
    "UnableToWriteFile",
    "UnsupportedCapability",
    "create_filesystem",
    "register_driver",
]
