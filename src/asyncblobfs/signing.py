"""Shared Key request signing for the Azure Blob REST API."""

import base64
import binascii
import hashlib
import hmac
from typing import Mapping

API_VERSION = "2024-11-04"
VENDOR_HEADER_PREFIX = "x-ms-"

# Verbs whose requests carry no meaningful body.
BODYLESS_METHODS = frozenset({"GET", "HEAD", "DELETE"})


def decode_account_key(account_key: str) -> bytes:
    try:
        return base64.b64decode(account_key, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Account key is not valid base64") from e


def hmac_sha256(key: bytes, string_to_sign: str) -> str:
    digest = hmac.new(key, string_to_sign.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def _header(headers: Mapping[str, str], name: str) -> str:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return ""


class RequestSigner:
    """
    Builds the string-to-sign and Shared Key signature of a request.

    The account key is decoded once at construction; the signer holds no
    other state, so the same instance can sign concurrent requests.
    """

    def __init__(self, account_name: str, account_key: str) -> None:
        self._account_name = account_name
        self._key = decode_account_key(account_key)

    @property
    def account_name(self) -> str:
        return self._account_name

    def canonicalized_headers(self, headers: Mapping[str, str]) -> str:
        vendor = {
            name.lower(): value
            for name, value in headers.items()
            if name.lower().startswith(VENDOR_HEADER_PREFIX)
        }
        if not vendor:
            return ""
        return "\n".join(f"{name}:{vendor[name]}" for name in sorted(vendor)) + "\n"

    def canonicalized_resource(
        self, path: str, query: Mapping[str, str] | None = None
    ) -> str:
        resource = f"/{self._account_name}{path}"
        if query:
            params = sorted(query.items(), key=lambda item: item[0].lower())
            resource += "".join(f"\n{key.lower()}:{value}" for key, value in params)
        return resource

    def string_to_sign(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str],
        query: Mapping[str, str] | None = None,
    ) -> str:
        method = method.upper()
        content_length = _header(headers, "Content-Length")
        is_copy = bool(_header(headers, "x-ms-copy-source"))
        if content_length == "0" and (method in BODYLESS_METHODS or is_copy):
            content_length = ""

        return "\n".join(
            [
                method,
                "",  # Content-Encoding
                "",  # Content-Language
                content_length,
                _header(headers, "Content-MD5"),
                _header(headers, "Content-Type"),
                "",  # Date, carried in x-ms-date
                "",  # If-Modified-Since
                "",  # If-Match
                "",  # If-None-Match
                "",  # If-Unmodified-Since
                "",  # Range
                self.canonicalized_headers(headers)
                + self.canonicalized_resource(path, query),
            ]
        )

    def sign(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str],
        query: Mapping[str, str] | None = None,
    ) -> str:
        """Return the base64 HMAC-SHA256 signature for the request."""
        return hmac_sha256(self._key, self.string_to_sign(method, path, headers, query))

    def sign_with_key(self, string_to_sign: str) -> str:
        return hmac_sha256(self._key, string_to_sign)

    def authorization_header(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str],
        query: Mapping[str, str] | None = None,
    ) -> str:
        signature = self.sign(method, path, headers, query)
        return f"SharedKey {self._account_name}:{signature}"
