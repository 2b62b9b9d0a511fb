import base64
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from urllib.parse import parse_qsl, urlsplit

import pytest
from azure.core.utils import CaseInsensitiveDict
from dotenv import load_dotenv

from asyncblobfs import AzureBlobSettings, AzureBlobStorageAdapter, LocalFileAdapter
from asyncblobfs.paths import decode_path
from asyncblobfs.signing import RequestSigner
from asyncblobfs.transport import HttpResponse

load_dotenv()

TEST_ACCOUNT = "testaccount"
TEST_KEY = base64.b64encode(b"not-a-real-key-but-long-enough-1234").decode()
TEST_CONTAINER = "test-container"


def unique_prefix(suffix: str) -> str:
    return f"test_{suffix}_{uuid.uuid4()}"


# ---------------------------
# In-memory Blob service
# ---------------------------
@dataclass
class StoredBlob:
    data: bytes
    content_type: str | None = None
    last_modified: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc).replace(microsecond=0)
    )
    copy_status: str | None = None
    copy_description: str | None = None
    polls_left: int = 0


@dataclass
class RecordedRequest:
    method: str
    url: str
    path: str
    query: dict
    headers: dict
    body: bytes | None


class InMemoryBlobService:
    """
    Speaks just enough of the Blob REST API for the adapter: blob
    GET/HEAD/PUT/DELETE, server-side copy and paginated container listing.
    Every request must carry a valid Shared Key signature.
    """

    def __init__(
        self,
        account: str = TEST_ACCOUNT,
        key: str = TEST_KEY,
        container: str = TEST_CONTAINER,
        page_size: int = 2,
    ) -> None:
        self.signer = RequestSigner(account, key)
        self.container = container
        self.page_size = page_size
        self.blobs: dict[str, StoredBlob] = {}
        self.requests: list[RecordedRequest] = []
        self.closed = False

        # copy behaviour: "sync", "pending" or "failed"
        self.copy_mode = "sync"
        self.copy_status_code = 202
        self.pending_polls = 0
        self.final_copy_status = "success"
        self.copy_description: str | None = None

        # (method, path suffix) -> status code returned instead of serving
        self.failures: dict[tuple[str, str], int] = {}
        # number of listing pages served before listings start failing
        self.fail_listing_after: int | None = None
        self._listing_pages_served = 0

    # helpers for tests
    def put_blob(self, name: str, data: bytes, content_type: str | None = None) -> None:
        self.blobs[name] = StoredBlob(data=data, content_type=content_type)

    def requests_for(self, method: str) -> list[RecordedRequest]:
        return [r for r in self.requests if r.method == method]

    async def close(self) -> None:
        self.closed = True

    async def send(self, method, url, headers, body=None) -> HttpResponse:
        parts = urlsplit(url)
        query = dict(parse_qsl(parts.query, keep_blank_values=True))
        headers = dict(headers)
        path = decode_path(parts.path)
        self.requests.append(
            RecordedRequest(method, url, path, query, headers, body)
        )

        for name in ("x-ms-version", "x-ms-date"):
            if name not in headers:
                return self._error(400, "MissingRequiredHeader")
        expected = self.signer.authorization_header(
            method, parts.path, headers, query or None
        )
        if headers.get("Authorization") != expected:
            return self._error(403, "AuthenticationFailed")
        if body and headers.get("Content-Length") != str(len(body)):
            return self._error(400, "InvalidHeaderValue")

        for (fail_method, suffix), status in self.failures.items():
            if fail_method == method and path.endswith(suffix):
                return self._error(status, "InjectedFailure")

        container, _, name = path.lstrip("/").partition("/")
        if container != self.container:
            return self._error(404, "ContainerNotFound")
        if not name:
            if method == "GET" and query.get("comp") == "list":
                return self._list(query)
            return self._error(400, "UnsupportedContainerOperation")

        if method == "PUT" and "x-ms-copy-source" in headers:
            return self._copy(name, headers["x-ms-copy-source"])
        if method == "PUT":
            self.blobs[name] = StoredBlob(
                data=body or b"", content_type=headers.get("Content-Type")
            )
            return HttpResponse(201, CaseInsensitiveDict())
        if method == "DELETE":
            if self.blobs.pop(name, None) is None:
                return self._error(404, "BlobNotFound")
            return HttpResponse(202, CaseInsensitiveDict())
        if method in ("GET", "HEAD"):
            blob = self.blobs.get(name)
            if blob is None:
                return self._error(404, "BlobNotFound")
            if method == "HEAD":
                self._advance_copy(blob)
            return HttpResponse(
                200,
                self._blob_headers(blob),
                blob.data if method == "GET" else b"",
            )
        return self._error(405, "UnsupportedHttpVerb")

    def _error(self, status: int, code: str) -> HttpResponse:
        return HttpResponse(status, CaseInsensitiveDict({"x-ms-error-code": code}))

    def _blob_headers(self, blob: StoredBlob) -> CaseInsensitiveDict:
        headers = CaseInsensitiveDict(
            {
                "Content-Length": str(len(blob.data)),
                "Last-Modified": format_datetime(blob.last_modified, usegmt=True),
            }
        )
        if blob.content_type:
            headers["Content-Type"] = blob.content_type
        if blob.copy_status:
            headers["x-ms-copy-status"] = blob.copy_status
        if blob.copy_description:
            headers["x-ms-copy-status-description"] = blob.copy_description
        return headers

    def _advance_copy(self, blob: StoredBlob) -> None:
        if blob.copy_status != "pending":
            return
        if blob.polls_left > 0:
            blob.polls_left -= 1
            return
        blob.copy_status = self.final_copy_status
        if self.final_copy_status != "success":
            blob.copy_description = self.copy_description

    def _copy(self, name: str, source_url: str) -> HttpResponse:
        source_parts = urlsplit(source_url)
        source_path = decode_path(source_parts.path)
        _, _, source_name = source_path.lstrip("/").partition("/")
        source = self.blobs.get(source_name)
        if source is None:
            return self._error(404, "CannotVerifyCopySource")

        copied = StoredBlob(data=source.data, content_type=source.content_type)
        headers = CaseInsensitiveDict()
        if self.copy_mode == "pending":
            copied.copy_status = "pending"
            copied.polls_left = self.pending_polls
        elif self.copy_mode == "failed":
            copied.copy_status = "failed"
            copied.copy_description = self.copy_description
            headers["x-ms-copy-status-description"] = self.copy_description or ""
        else:
            copied.copy_status = "success"
        headers["x-ms-copy-status"] = copied.copy_status
        self.blobs[name] = copied
        return HttpResponse(self.copy_status_code, headers)

    def _list(self, query: dict) -> HttpResponse:
        if (
            self.fail_listing_after is not None
            and self._listing_pages_served >= self.fail_listing_after
        ):
            return self._error(500, "InternalError")
        self._listing_pages_served += 1

        prefix = query.get("prefix", "")
        names = sorted(n for n in self.blobs if n.startswith(prefix))
        marker = query.get("marker")
        if marker is not None:
            names = [n for n in names if n >= marker]
        limit = self.page_size
        if "maxresults" in query:
            limit = min(limit, int(query["maxresults"]))
        page, rest = names[:limit], names[limit:]

        root = ET.Element("EnumerationResults")
        ET.SubElement(root, "Prefix").text = prefix
        blobs_element = ET.SubElement(root, "Blobs")
        for name in page:
            blob = self.blobs[name]
            blob_element = ET.SubElement(blobs_element, "Blob")
            ET.SubElement(blob_element, "Name").text = name
            props = ET.SubElement(blob_element, "Properties")
            ET.SubElement(props, "Content-Length").text = str(len(blob.data))
            ET.SubElement(props, "Content-Type").text = blob.content_type or ""
            ET.SubElement(props, "Last-Modified").text = format_datetime(
                blob.last_modified, usegmt=True
            )
        ET.SubElement(root, "NextMarker").text = rest[0] if rest else None
        body = ET.tostring(root, encoding="utf-8", xml_declaration=True)
        return HttpResponse(
            200, CaseInsensitiveDict({"Content-Type": "application/xml"}), body
        )


# ---------------------------
# Fixtures
# ---------------------------
@pytest.fixture
def blob_service():
    return InMemoryBlobService()


@pytest.fixture
def azure_adapter(blob_service):
    return AzureBlobStorageAdapter(
        TEST_ACCOUNT,
        TEST_KEY,
        TEST_CONTAINER,
        transport=blob_service,
        copy_poll_interval=0,
    )


def _live_settings() -> AzureBlobSettings | None:
    try:
        return AzureBlobSettings.from_env(dotenv=False)
    except ValueError:
        return None


@pytest.fixture(
    params=[
        pytest.param("memory", marks=pytest.mark.memory),
        pytest.param("local", marks=pytest.mark.local),
        pytest.param("azure", marks=pytest.mark.azure),
    ]
)
async def backend(request, tmp_path):
    """Fixture that provides an adapter and a unique directory to work in."""
    root = unique_prefix(request.node.name.split("[")[0])
    if request.param == "memory":
        adapter = AzureBlobStorageAdapter(
            TEST_ACCOUNT,
            TEST_KEY,
            TEST_CONTAINER,
            transport=InMemoryBlobService(),
            copy_poll_interval=0,
        )
        yield adapter, root

    elif request.param == "local":
        # Use pytest's tmp_path for safe temporary storage
        yield LocalFileAdapter(str(tmp_path)), root

    elif request.param == "azure":
        settings = _live_settings()
        if settings is None:
            print("[TEST] Azure backend not configured — skipping Azure tests.")
            pytest.skip(
                "Azure backend not configured (AZURE_STORAGE_ACCOUNT_NAME / "
                "AZURE_STORAGE_ACCOUNT_KEY / AZURE_STORAGE_CONTAINER missing)"
            )
        async with AzureBlobStorageAdapter.from_settings(settings) as adapter:
            yield adapter, root
            await adapter.delete_directory(root)
