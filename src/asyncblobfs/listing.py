"""Marker-based pagination over container listings."""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from typing import AsyncIterator

from .attributes import StorageAttributes
from .client import BlobRestClient
from .errors import BlobStorageError, ListingParseError

logger = logging.getLogger(__name__)


@dataclass
class BlobItem:
    name: str
    content_length: int | None = None
    last_modified: int | None = None
    content_type: str | None = None


@dataclass
class ListingPage:
    blobs: list[BlobItem] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)
    next_marker: str | None = None


def parse_http_date(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(parsedate_to_datetime(value).timestamp())
    except (TypeError, ValueError):
        return None


def parse_listing(body: bytes) -> ListingPage:
    """Parse an EnumerationResults document."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise ListingParseError(f"Invalid listing response: {e}") from e

    page = ListingPage()
    blobs = root.find("Blobs")
    if blobs is not None:
        for blob in blobs.findall("Blob"):
            item = BlobItem(name=blob.findtext("Name", default=""))
            props = blob.find("Properties")
            if props is not None:
                length = props.findtext("Content-Length")
                try:
                    item.content_length = int(length) if length else None
                except ValueError as e:
                    raise ListingParseError(
                        f"Invalid Content-Length for blob '{item.name}': {length!r}"
                    ) from e
                item.last_modified = parse_http_date(props.findtext("Last-Modified"))
                item.content_type = props.findtext("Content-Type") or None
            page.blobs.append(item)
        for prefix in blobs.findall("BlobPrefix"):
            page.prefixes.append(prefix.findtext("Name", default=""))

    page.next_marker = root.findtext("NextMarker") or None
    return page


def normalize_prefix(path: str) -> str:
    prefix = path.strip("/")
    return f"{prefix}/" if prefix else ""


class ListingPaginator:
    """
    Walks a container listing page by page.

    By default a failure on any page propagates. With tolerate_errors the
    walk stops at the failing page and keeps what was already yielded.
    """

    def __init__(
        self,
        client: BlobRestClient,
        container: str,
        page_size: int | None = None,
        tolerate_errors: bool = False,
    ) -> None:
        self._client = client
        self._container = container
        self._page_size = page_size
        self._tolerate_errors = tolerate_errors

    async def fetch_page(
        self,
        prefix: str,
        marker: str | None = None,
        max_results: int | None = None,
    ) -> ListingPage:
        query = {"restype": "container", "comp": "list", "prefix": prefix}
        if marker is not None:
            query["marker"] = marker
        if max_results:
            query["maxresults"] = str(max_results)

        response = await self._client.request("GET", f"/{self._container}", query=query)
        page = parse_listing(response.body)
        logger.debug(
            "Listing page for prefix '%s': %d blobs, next marker %r",
            prefix,
            len(page.blobs),
            page.next_marker,
        )
        return page

    async def pages(
        self, prefix: str, max_results: int | None = None
    ) -> AsyncIterator[ListingPage]:
        marker: str | None = None
        consumed: set[str] = set()
        max_results = max_results or self._page_size

        while True:
            page = await self.fetch_page(prefix, marker, max_results)
            yield page

            if page.next_marker is None:
                return
            if page.next_marker in consumed:
                raise ListingParseError(
                    f"Service repeated listing marker '{page.next_marker}'"
                )
            consumed.add(page.next_marker)
            marker = page.next_marker

    async def has_any(self, prefix: str) -> bool:
        page = await self.fetch_page(prefix, max_results=1)
        return len(page.blobs) > 0

    async def entries(self, path: str, deep: bool) -> AsyncIterator[StorageAttributes]:
        prefix = normalize_prefix(path)
        seen_directories: set[str] = set()

        try:
            async for page in self.pages(prefix):
                for blob in page.blobs:
                    relative = blob.name[len(prefix):]
                    if not deep:
                        if relative == "":
                            # marker blob of the listed directory itself
                            continue
                        slash = relative.find("/")
                        if slash != -1 and slash != len(relative) - 1:
                            continue
                        if slash == len(relative) - 1:
                            directory = blob.name.rstrip("/")
                            if directory not in seen_directories:
                                seen_directories.add(directory)
                                yield StorageAttributes.directory(
                                    directory, blob.last_modified
                                )
                            continue

                    yield StorageAttributes(
                        path=blob.name,
                        file_size=blob.content_length or 0,
                        last_modified=blob.last_modified,
                        mime_type=blob.content_type,
                    )

                if not deep:
                    for name in page.prefixes:
                        directory = name.rstrip("/")
                        if directory not in seen_directories:
                            seen_directories.add(directory)
                            yield StorageAttributes.directory(directory)
        except BlobStorageError as e:
            if not self._tolerate_errors:
                raise
            logger.warning(
                "Listing of '%s' stopped early, returning partial results: %s",
                prefix,
                e,
            )
