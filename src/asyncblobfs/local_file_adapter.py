import asyncio
import io
import shutil
from datetime import datetime
from pathlib import Path
from typing import IO, AsyncIterator, Callable, Mapping

from .attributes import StorageAttributes
from .errors import (
    ErrorKind,
    PathTraversalDetected,
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
from .mime import detect_mime_type
from .storage_protocols import AsyncFilesystemAdapter, Config

DEFAULT_MIME_TYPE = "application/octet-stream"


def _ensure_within(base: Path, target: Path) -> Path:
    """
    Resolve target path and ensure it is inside base path.
    Symlinks in the existing part of the path are followed, so a link that
    points outside the base is caught as well.
    """
    base_resolved = base.resolve(strict=True)
    target_resolved = target.resolve()
    if not target_resolved.is_relative_to(base_resolved):
        raise ValueError(
            f"Path {target_resolved} escapes base directory {base_resolved}"
        )
    return target_resolved


# Global lock registry for concurrency safety
_lock_registry: dict[str, asyncio.Lock] = {}


def _get_global_lock(path: Path) -> asyncio.Lock:
    key = str(path)
    if key not in _lock_registry:
        _lock_registry[key] = asyncio.Lock()
    return _lock_registry[key]


class LocalFileAdapter(AsyncFilesystemAdapter):
    """Local filesystem adapter, rooted at a base directory."""

    def __init__(
        self,
        root: str,
        mime_detector: Callable[[str, bytes], str | None] = detect_mime_type,
    ):
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        self._detect_mime_type = mime_detector

    async def __aenter__(self) -> "LocalFileAdapter":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        pass

    def _resolve(self, path: str) -> Path:
        try:
            return _ensure_within(self._root, self._root / path.lstrip("/"))
        except ValueError as e:
            raise PathTraversalDetected(path, str(e)) from e

    def _relative(self, target: Path) -> str:
        return target.relative_to(self._root).as_posix()

    async def file_exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    async def directory_exists(self, path: str) -> bool:
        return self._resolve(path).is_dir()

    async def read(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise UnableToReadFile(path, "File not found", ErrorKind.NOT_FOUND)
        try:
            async with _get_global_lock(target):
                return target.read_bytes()
        except OSError as e:
            raise UnableToReadFile(path, str(e)) from e

    async def read_stream(self, path: str) -> IO[bytes]:
        return io.BytesIO(await self.read(path))

    async def write(
        self, path: str, contents: bytes | str, config: Config | None = None
    ) -> None:
        target = self._resolve(path)
        data = contents.encode("utf-8") if isinstance(contents, str) else bytes(contents)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            async with _get_global_lock(target):
                target.write_bytes(data)
        except OSError as e:
            raise UnableToWriteFile(path, str(e)) from e

    async def write_stream(
        self, path: str, contents: IO | bytes | str, config: Config | None = None
    ) -> None:
        if hasattr(contents, "read"):
            try:
                contents = contents.read()
            except OSError as e:
                raise UnableToWriteFile(path, f"Unable to read stream: {e}") from e
        await self.write(path, contents, config)

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        if not target.exists():
            return
        try:
            target.unlink()
        except OSError as e:
            raise UnableToDeleteFile(path, str(e)) from e

    async def delete_directory(self, path: str) -> None:
        target = self._resolve(path)
        if not target.exists():
            return
        try:
            shutil.rmtree(target)
        except OSError as e:
            raise UnableToDeleteDirectory(path, str(e)) from e

    async def create_directory(self, path: str, config: Config | None = None) -> None:
        try:
            self._resolve(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise UnableToCreateDirectory(path, str(e)) from e

    async def list_contents(
        self, path: str = "", deep: bool = False
    ) -> AsyncIterator[StorageAttributes]:
        base = self._resolve(path)
        if not base.is_dir():
            return
        try:
            children = sorted(base.rglob("*") if deep else base.iterdir())
        except OSError as e:
            raise UnableToListContents(path, str(e)) from e

        for child in children:
            # catches symlinks pointing outside the root
            self._resolve(self._relative(child))
            if not child.exists():
                # dangling symlink
                continue
            stat = child.stat()
            if child.is_dir():
                yield StorageAttributes.directory(
                    self._relative(child), int(stat.st_mtime)
                )
            else:
                yield StorageAttributes(
                    path=self._relative(child),
                    file_size=stat.st_size,
                    last_modified=int(stat.st_mtime),
                )

    async def copy(
        self, source: str, destination: str, config: Config | None = None
    ) -> None:
        src = self._resolve(source)
        dest = self._resolve(destination)
        if not src.is_file():
            raise UnableToCopyFile(
                source, destination, "File not found", ErrorKind.NOT_FOUND
            )
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dest)
        except OSError as e:
            raise UnableToCopyFile(source, destination, str(e)) from e

    async def move(
        self, source: str, destination: str, config: Config | None = None
    ) -> None:
        if source == destination:
            return
        src = self._resolve(source)
        dest = self._resolve(destination)
        if not src.is_file():
            raise UnableToMoveFile(
                source, destination, "File not found", ErrorKind.NOT_FOUND
            )
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            src.replace(dest)
        except OSError as e:
            raise UnableToMoveFile(source, destination, str(e)) from e

    def _file_stat(self, path: str, metadata_type: str):
        target = self._resolve(path)
        if target.is_dir():
            raise UnableToRetrieveMetadata(
                path,
                metadata_type,
                "Path is a directory, not a file",
                ErrorKind.IS_DIRECTORY,
            )
        if not target.is_file():
            raise UnableToRetrieveMetadata(
                path, metadata_type, "File not found", ErrorKind.NOT_FOUND
            )
        return target, target.stat()

    async def file_size(self, path: str) -> StorageAttributes:
        _, stat = self._file_stat(path, "file_size")
        return StorageAttributes(path, file_size=stat.st_size)

    async def mime_type(self, path: str) -> StorageAttributes:
        target, _ = self._file_stat(path, "mime_type")
        mime_type = self._detect_mime_type(path, target.read_bytes())
        return StorageAttributes(path, mime_type=mime_type or DEFAULT_MIME_TYPE)

    async def last_modified(self, path: str) -> StorageAttributes:
        target = self._resolve(path)
        if not target.exists():
            raise UnableToRetrieveMetadata(
                path, "last_modified", "File not found", ErrorKind.NOT_FOUND
            )
        return StorageAttributes(path, last_modified=int(target.stat().st_mtime))

    async def visibility(self, path: str) -> StorageAttributes:
        raise UnsupportedCapability(path, "Visibility is not supported by this adapter.")

    async def set_visibility(self, path: str, visibility: str) -> None:
        raise UnsupportedCapability(path, "Visibility is not supported by this adapter.")

    def get_url(self, path: str) -> str:
        return self._resolve(path).as_uri()

    def get_temporary_url(
        self,
        path: str,
        expires_at: datetime,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        raise UnsupportedCapability(
            path, "Temporary URLs are not supported by this adapter."
        )
