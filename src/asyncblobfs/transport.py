from dataclasses import dataclass, field
from typing import Mapping, Protocol

from azure.core import AsyncPipelineClient
from azure.core.exceptions import AzureError
from azure.core.rest import HttpRequest
from azure.core.utils import CaseInsensitiveDict

from .errors import TransportError


@dataclass
class HttpResponse:
    status_code: int
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: bytes = b""


class AsyncHttpTransport(Protocol):
    """Protocol for the HTTP layer underneath the blob client."""

    async def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None = None,
    ) -> HttpResponse:
        """Send one request and return the fully read response."""
        ...

    async def close(self) -> None:
        """Release pooled connections."""
        ...


class PipelineTransport(AsyncHttpTransport):
    """
    Transport backed by an azure-core AsyncPipelineClient.

    The pipeline runs with no policies so nothing adds headers after the
    request has been signed.
    """

    def __init__(self, base_url: str, client: AsyncPipelineClient | None = None):
        self._client = client or AsyncPipelineClient(base_url, policies=[])

    async def send(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None = None,
    ) -> HttpResponse:
        request = HttpRequest(method, url, headers=dict(headers), content=body)
        try:
            response = await self._client.send_request(request)
        except AzureError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        return HttpResponse(
            status_code=response.status_code,
            headers=CaseInsensitiveDict(response.headers),
            body=response.content if method != "HEAD" else b"",
        )

    async def close(self) -> None:
        await self._client.close()
