import io
import logging
from datetime import datetime
from typing import IO, AsyncIterator, Callable, Mapping

from .attributes import StorageAttributes
from .client import BlobRestClient
from .copying import (
    MAX_POLL_ATTEMPTS,
    POLL_INTERVAL_SECONDS,
    CopyOrchestrator,
    CopyStatus,
)
from .errors import (
    BlobNotFoundError,
    BlobStorageError,
    CopyFailedError,
    ErrorKind,
    FilesystemError,
    ResponseError,
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
from .listing import ListingPaginator, parse_http_date
from .mime import detect_mime_type
from .paths import blob_path
from .sas import SasTokenGenerator
from .settings import AzureBlobSettings
from .storage_protocols import AsyncFilesystemAdapter, Config
from .transport import AsyncHttpTransport

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
DIRECTORY_MARKER_CONTENTS = " "

_COPY_FAILURE_KINDS = {
    CopyStatus.FAILED: ErrorKind.FAILED,
    CopyStatus.ABORTED: ErrorKind.ABORTED,
    CopyStatus.TIMED_OUT: ErrorKind.TIMED_OUT,
}


class AzureBlobStorageAdapter(AsyncFilesystemAdapter):
    """
    Filesystem adapter over a single Azure Blob Storage container,
    speaking the Blob REST API with Shared Key authentication.

    Directories are virtual: they exist when any blob shares the prefix,
    and create_directory writes a marker blob named '{path}/'.
    """

    def __init__(
        self,
        account_name: str,
        account_key: str,
        container: str,
        endpoint: str | None = None,
        transport: AsyncHttpTransport | None = None,
        mime_detector: Callable[[str, bytes], str | None] = detect_mime_type,
        tolerate_listing_errors: bool = False,
        listing_page_size: int | None = None,
        copy_poll_interval: float = POLL_INTERVAL_SECONDS,
        copy_max_attempts: int = MAX_POLL_ATTEMPTS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._container = container
        self._client = BlobRestClient(
            account_name, account_key, endpoint=endpoint, transport=transport
        )
        self._detect_mime_type = mime_detector
        self._listing = ListingPaginator(
            self._client,
            container,
            page_size=listing_page_size,
            tolerate_errors=tolerate_listing_errors,
        )
        self._copier = CopyOrchestrator(
            self._client,
            poll_interval=copy_poll_interval,
            max_attempts=copy_max_attempts,
        )
        self._sas = SasTokenGenerator(
            self._client.signer, self._client.api_version, clock=clock
        )

    @classmethod
    def from_settings(
        cls, settings: AzureBlobSettings, **kwargs
    ) -> "AzureBlobStorageAdapter":
        return cls(
            settings.account_name,
            settings.account_key,
            settings.container,
            endpoint=settings.endpoint,
            **kwargs,
        )

    @classmethod
    def from_connection_string(
        cls, connection_string: str, container: str, **kwargs
    ) -> "AzureBlobStorageAdapter":
        """
        Convenience builder: create adapter from a connection string.
        """
        settings = AzureBlobSettings.from_connection_string(connection_string, container)
        return cls.from_settings(settings, **kwargs)

    async def __aenter__(self) -> "AzureBlobStorageAdapter":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.close()

    def _blob(self, path: str) -> str:
        return blob_path(self._container, path)

    # ---------------------------
    # Existence
    # ---------------------------
    async def file_exists(self, path: str) -> bool:
        try:
            await self._client.request("HEAD", self._blob(path))
            return True
        except BlobNotFoundError:
            return False
        except BlobStorageError as e:
            raise UnableToCheckExistence(path, str(e)) from e

    async def directory_exists(self, path: str) -> bool:
        prefix = (path.rstrip("/") + "/").lstrip("/")
        try:
            return await self._listing.has_any(prefix)
        except BlobStorageError as e:
            raise UnableToCheckExistence(path, str(e)) from e

    # ---------------------------
    # Reading and writing
    # ---------------------------
    async def read(self, path: str) -> bytes:
        try:
            response = await self._client.request("GET", self._blob(path))
        except BlobNotFoundError as e:
            raise UnableToReadFile(path, "File not found", ErrorKind.NOT_FOUND) from e
        except BlobStorageError as e:
            raise UnableToReadFile(path, str(e)) from e
        return response.body

    async def read_stream(self, path: str) -> IO[bytes]:
        return io.BytesIO(await self.read(path))

    async def write(
        self, path: str, contents: bytes | str, config: Config | None = None
    ) -> None:
        body = contents.encode("utf-8") if isinstance(contents, str) else bytes(contents)
        headers = {"x-ms-blob-type": "BlockBlob"}
        mime_type = (config or {}).get("mimetype") or self._detect_mime_type(path, body)
        if mime_type:
            headers["Content-Type"] = mime_type

        try:
            await self._client.request("PUT", self._blob(path), headers=headers, body=body)
        except BlobStorageError as e:
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

    # ---------------------------
    # Deleting
    # ---------------------------
    async def delete(self, path: str) -> None:
        try:
            await self._client.request("DELETE", self._blob(path))
        except BlobNotFoundError:
            logger.debug("Delete of missing blob '%s' ignored", path)
        except BlobStorageError as e:
            raise UnableToDeleteFile(path, str(e)) from e

    async def delete_directory(self, path: str) -> None:
        try:
            files = [
                entry.path
                async for entry in self._listing.entries(path, deep=True)
                if entry.is_file
            ]
            for file_path in files:
                await self.delete(file_path)
        except (BlobStorageError, UnableToDeleteFile) as e:
            raise UnableToDeleteDirectory(path, str(e)) from e

    # ---------------------------
    # Directories
    # ---------------------------
    async def create_directory(self, path: str, config: Config | None = None) -> None:
        marker = path.rstrip("/") + "/"
        try:
            await self.write(marker, DIRECTORY_MARKER_CONTENTS, config)
        except UnableToWriteFile as e:
            raise UnableToCreateDirectory(path, e.reason) from e

    async def list_contents(
        self, path: str = "", deep: bool = False
    ) -> AsyncIterator[StorageAttributes]:
        try:
            async for entry in self._listing.entries(path, deep):
                yield entry
        except BlobStorageError as e:
            raise UnableToListContents(path, str(e)) from e

    # ---------------------------
    # Copy and move
    # ---------------------------
    async def copy(
        self, source: str, destination: str, config: Config | None = None
    ) -> None:
        try:
            await self._copier.copy(self._blob(source), self._blob(destination))
        except CopyFailedError as e:
            kind = _COPY_FAILURE_KINDS.get(
                e.operation.status, ErrorKind.UNEXPECTED_STATUS
            )
            raise UnableToCopyFile(source, destination, str(e), kind) from e
        except BlobNotFoundError as e:
            raise UnableToCopyFile(
                source, destination, "File not found", ErrorKind.NOT_FOUND
            ) from e
        except ResponseError as e:
            raise UnableToCopyFile(
                source, destination, str(e), ErrorKind.UNEXPECTED_STATUS
            ) from e
        except BlobStorageError as e:
            raise UnableToCopyFile(source, destination, str(e)) from e

    async def move(
        self, source: str, destination: str, config: Config | None = None
    ) -> None:
        if source == destination:
            return
        try:
            await self.copy(source, destination, config)
            await self.delete(source)
        except FilesystemError as e:
            raise UnableToMoveFile(source, destination, str(e), e.kind) from e

    # ---------------------------
    # Metadata
    # ---------------------------
    async def _properties(self, path: str, metadata_type: str):
        try:
            response = await self._client.request("HEAD", self._blob(path))
        except BlobNotFoundError as e:
            raise UnableToRetrieveMetadata(
                path, metadata_type, "File not found", ErrorKind.NOT_FOUND
            ) from e
        except BlobStorageError as e:
            raise UnableToRetrieveMetadata(path, metadata_type, str(e)) from e
        return response.headers

    async def _reject_directory(self, path: str, metadata_type: str) -> None:
        # Directories have neither a size nor a MIME type.
        try:
            is_directory = await self.directory_exists(path)
        except UnableToCheckExistence as e:
            raise UnableToRetrieveMetadata(path, metadata_type, e.reason) from e
        if is_directory:
            raise UnableToRetrieveMetadata(
                path,
                metadata_type,
                "Path is a directory, not a file",
                ErrorKind.IS_DIRECTORY,
            )

    async def file_size(self, path: str) -> StorageAttributes:
        await self._reject_directory(path, "file_size")
        headers = await self._properties(path, "file_size")
        return StorageAttributes(path, file_size=int(headers.get("Content-Length", 0)))

    async def mime_type(self, path: str) -> StorageAttributes:
        await self._reject_directory(path, "mime_type")
        headers = await self._properties(path, "mime_type")
        return StorageAttributes(
            path, mime_type=headers.get("Content-Type") or DEFAULT_MIME_TYPE
        )

    async def last_modified(self, path: str) -> StorageAttributes:
        headers = await self._properties(path, "last_modified")
        return StorageAttributes(
            path, last_modified=parse_http_date(headers.get("Last-Modified"))
        )

    async def visibility(self, path: str) -> StorageAttributes:
        raise UnsupportedCapability(
            path, "Getting visibility is not supported by Azure Blob Storage."
        )

    async def set_visibility(self, path: str, visibility: str) -> None:
        raise UnsupportedCapability(
            path, "Setting visibility is not supported by Azure Blob Storage."
        )

    # ---------------------------
    # URLs
    # ---------------------------
    def get_url(self, path: str) -> str:
        return self._client.url_for(self._blob(path))

    def get_temporary_url(
        self,
        path: str,
        expires_at: datetime,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        """
        Public URL plus a read-only SAS token.

        Args:
            path: File path
            expires_at: When the URL stops working (naive datetimes are UTC)
            headers: Response header overrides, by SAS key (rscc, rscd,
                rsce, rscl, rsct) or by header name (Cache-Control, ...)
        """
        blob = self._blob(path)
        token = self._sas.generate(blob, expires_at, headers)
        return f"{self._client.url_for(blob)}?{token}"
