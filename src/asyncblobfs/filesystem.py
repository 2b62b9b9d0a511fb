import re
from datetime import datetime
from typing import IO, AsyncIterator, Mapping

from .attributes import StorageAttributes
from .errors import CorruptedPathDetected, PathTraversalDetected
from .storage_protocols import AsyncFilesystemAdapter, Config

_CONTROL_CHARACTERS = re.compile(r"[\x00-\x1f\x7f]")


def normalize_path(path: str) -> str:
    """
    Normalize a user supplied path to the form adapters expect:
    '/'-separated, no leading or trailing slash, no '.' or empty segments.
    '..' is resolved but may never climb above the root.
    """
    if _CONTROL_CHARACTERS.search(path):
        raise CorruptedPathDetected(repr(path), "Path contains control characters.")

    parts: list[str] = []
    for segment in path.replace("\\", "/").split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not parts:
                raise PathTraversalDetected(path, "Path escapes the filesystem root.")
            parts.pop()
        else:
            parts.append(segment)
    return "/".join(parts)


class Filesystem:
    """
    Path-normalizing front for any AsyncFilesystemAdapter.
    This is what drivers hand out to applications.
    """

    def __init__(self, adapter: AsyncFilesystemAdapter) -> None:
        self.adapter = adapter

    async def __aenter__(self) -> "Filesystem":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.adapter.close()

    async def file_exists(self, path: str) -> bool:
        return await self.adapter.file_exists(normalize_path(path))

    async def directory_exists(self, path: str) -> bool:
        return await self.adapter.directory_exists(normalize_path(path))

    async def has(self, path: str) -> bool:
        """True if path is a file or a directory."""
        path = normalize_path(path)
        return await self.adapter.file_exists(path) or await self.adapter.directory_exists(
            path
        )

    async def read(self, path: str) -> bytes:
        return await self.adapter.read(normalize_path(path))

    async def read_stream(self, path: str) -> IO[bytes]:
        return await self.adapter.read_stream(normalize_path(path))

    async def write(
        self, path: str, contents: bytes | str, config: Config | None = None
    ) -> None:
        await self.adapter.write(normalize_path(path), contents, config)

    async def write_stream(
        self, path: str, contents: IO | bytes | str, config: Config | None = None
    ) -> None:
        await self.adapter.write_stream(normalize_path(path), contents, config)

    async def delete(self, path: str) -> None:
        await self.adapter.delete(normalize_path(path))

    async def delete_directory(self, path: str) -> None:
        await self.adapter.delete_directory(normalize_path(path))

    async def create_directory(self, path: str, config: Config | None = None) -> None:
        await self.adapter.create_directory(normalize_path(path), config)

    async def copy(
        self, source: str, destination: str, config: Config | None = None
    ) -> None:
        await self.adapter.copy(normalize_path(source), normalize_path(destination), config)

    async def move(
        self, source: str, destination: str, config: Config | None = None
    ) -> None:
        await self.adapter.move(normalize_path(source), normalize_path(destination), config)

    async def list_contents(
        self, path: str = "", deep: bool = False
    ) -> AsyncIterator[StorageAttributes]:
        async for entry in self.adapter.list_contents(normalize_path(path), deep):
            yield entry

    async def file_size(self, path: str) -> int:
        return (await self.adapter.file_size(normalize_path(path))).file_size

    async def mime_type(self, path: str) -> str:
        return (await self.adapter.mime_type(normalize_path(path))).mime_type

    async def last_modified(self, path: str) -> int | None:
        return (await self.adapter.last_modified(normalize_path(path))).last_modified

    async def visibility(self, path: str) -> StorageAttributes:
        return await self.adapter.visibility(normalize_path(path))

    async def set_visibility(self, path: str, visibility: str) -> None:
        await self.adapter.set_visibility(normalize_path(path), visibility)

    def public_url(self, path: str) -> str:
        return self.adapter.get_url(normalize_path(path))

    def temporary_url(
        self,
        path: str,
        expires_at: datetime,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        return self.adapter.get_temporary_url(normalize_path(path), expires_at, headers)
