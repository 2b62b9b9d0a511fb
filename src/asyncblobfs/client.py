import logging
from email.utils import formatdate
from typing import Mapping
from urllib.parse import quote, urlsplit

from .errors import BlobNotFoundError, ResponseError
from .paths import encode_path
from .signing import API_VERSION, BODYLESS_METHODS, RequestSigner
from .transport import AsyncHttpTransport, HttpResponse, PipelineTransport

logger = logging.getLogger(__name__)


def default_endpoint(account_name: str) -> str:
    return f"https://{account_name}.blob.core.windows.net"


class BlobRestClient:
    """
    Signs and sends raw Blob service requests.

    Paths are unencoded service paths (/container or /container/blob).
    Responses with status >= 400 are raised as BlobNotFoundError (404)
    or ResponseError.
    """

    def __init__(
        self,
        account_name: str,
        account_key: str,
        endpoint: str | None = None,
        transport: AsyncHttpTransport | None = None,
        api_version: str = API_VERSION,
    ) -> None:
        self.signer = RequestSigner(account_name, account_key)
        self.endpoint = (endpoint or default_endpoint(account_name)).rstrip("/")
        self.api_version = api_version
        # Path-style endpoints (emulators) put the account in the URL path,
        # and that prefix is part of what gets signed.
        self._endpoint_path = urlsplit(self.endpoint).path.rstrip("/")
        self._transport = transport or PipelineTransport(self.endpoint)

    def url_for(self, path: str) -> str:
        return self.endpoint + encode_path(path)

    async def request(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        query: Mapping[str, str] | None = None,
        body: bytes | None = None,
    ) -> HttpResponse:
        method = method.upper()
        request_headers = dict(headers or {})
        request_headers["x-ms-version"] = self.api_version
        request_headers["x-ms-date"] = formatdate(usegmt=True)

        if body is not None:
            # Empty uploads leave Content-Length to the transport so that
            # the signed value is empty, as the service expects.
            if len(body) > 0:
                request_headers["Content-Length"] = str(len(body))
        elif method not in BODYLESS_METHODS:
            request_headers["Content-Length"] = "0"

        signed_path = self._endpoint_path + encode_path(path)
        request_headers["Authorization"] = self.signer.authorization_header(
            method, signed_path, request_headers, query
        )

        url = self.endpoint + encode_path(path)
        if query:
            url += "?" + "&".join(
                f"{quote(key, safe='')}={quote(value, safe='')}"
                for key, value in query.items()
            )

        response = await self._transport.send(method, url, request_headers, body)
        logger.debug("%s %s -> %s", method, path, response.status_code)

        if response.status_code == 404:
            raise BlobNotFoundError(f"Blob '{path}' not found")
        if response.status_code >= 400:
            error_code = response.headers.get("x-ms-error-code")
            raise ResponseError(
                response.status_code,
                error_code,
                f"{method} {path} failed with status {response.status_code}"
                + (f" ({error_code})" if error_code else ""),
            )
        return response

    async def close(self) -> None:
        await self._transport.close()
