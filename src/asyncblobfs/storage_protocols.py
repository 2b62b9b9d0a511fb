from datetime import datetime
from typing import IO, Any, AsyncIterator, Mapping, Protocol

from .attributes import StorageAttributes

# Per-call options, e.g. {"mimetype": "text/plain"}.
Config = Mapping[str, Any]


class AsyncFilesystemAdapter(Protocol):
    """Protocol for a filesystem backend."""

    async def file_exists(self, path: str) -> bool:
        """Return True if a file exists at path."""
        ...

    async def directory_exists(self, path: str) -> bool:
        """Return True if anything lives under path/."""
        ...

    async def read(self, path: str) -> bytes:
        """Read file contents as bytes."""
        ...

    async def read_stream(self, path: str) -> IO[bytes]:
        """Read file contents as a binary stream positioned at 0."""
        ...

    async def write(
        self, path: str, contents: bytes | str, config: Config | None = None
    ) -> None:
        """Create or overwrite a file."""
        ...

    async def write_stream(
        self, path: str, contents: IO | bytes | str, config: Config | None = None
    ) -> None:
        """Create or overwrite a file from a readable stream."""
        ...

    async def delete(self, path: str) -> None:
        """Delete a file. Deleting a missing file is not an error."""
        ...

    async def delete_directory(self, path: str) -> None:
        """Delete a directory and everything below it."""
        ...

    async def create_directory(self, path: str, config: Config | None = None) -> None:
        """Create a directory."""
        ...

    async def copy(
        self, source: str, destination: str, config: Config | None = None
    ) -> None:
        """Copy a file."""
        ...

    async def move(
        self, source: str, destination: str, config: Config | None = None
    ) -> None:
        """Move a file."""
        ...

    def list_contents(self, path: str, deep: bool) -> AsyncIterator[StorageAttributes]:
        """Iterate the entries below path."""
        ...

    async def file_size(self, path: str) -> StorageAttributes:
        ...

    async def mime_type(self, path: str) -> StorageAttributes:
        ...

    async def last_modified(self, path: str) -> StorageAttributes:
        ...

    async def visibility(self, path: str) -> StorageAttributes:
        ...

    async def set_visibility(self, path: str, visibility: str) -> None:
        ...

    def get_url(self, path: str) -> str:
        """Return a URL for the file."""
        ...

    def get_temporary_url(
        self,
        path: str,
        expires_at: datetime,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        """Return a URL that grants read access until expires_at."""
        ...

    async def close(self) -> None:
        """Close any resources/connections."""
        ...
