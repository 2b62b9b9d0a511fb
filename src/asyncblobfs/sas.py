"""Read-only, time-scoped service SAS tokens for single blobs."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Mapping
from urllib.parse import quote

from .signing import API_VERSION, RequestSigner

CLOCK_SKEW = timedelta(seconds=300)
SAS_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

READ_PERMISSION = "r"
BLOB_RESOURCE = "b"
HTTPS_ONLY = "https"

# Order matters: it is the order of the trailing string-to-sign fields.
RESPONSE_OVERRIDE_KEYS = ("rscc", "rscd", "rsce", "rscl", "rsct")

_HEADER_TO_OVERRIDE = {
    "cache-control": "rscc",
    "content-disposition": "rscd",
    "content-encoding": "rsce",
    "content-language": "rscl",
    "content-type": "rsct",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_sas_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(SAS_TIME_FORMAT)


def normalize_overrides(overrides: Mapping[str, str] | None) -> dict[str, str]:
    """Accept rscc..rsct keys or the response header names they override."""
    normalized: dict[str, str] = {}
    for key, value in (overrides or {}).items():
        lowered = key.lower()
        if lowered in RESPONSE_OVERRIDE_KEYS:
            normalized[lowered] = value
        elif lowered in _HEADER_TO_OVERRIDE:
            normalized[_HEADER_TO_OVERRIDE[lowered]] = value
        else:
            raise ValueError(f"Unsupported SAS response header override: '{key}'")
    return normalized


class SasTokenGenerator:
    """
    Generates blob SAS query strings that only ever grant read access.
    """

    def __init__(
        self,
        signer: RequestSigner,
        api_version: str = API_VERSION,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._signer = signer
        self._api_version = api_version
        self._clock = clock or _utcnow

    def string_to_sign(
        self,
        path: str,
        start: str,
        expiry: str,
        overrides: Mapping[str, str],
    ) -> str:
        return "\n".join(
            [
                READ_PERMISSION,
                start,
                expiry,
                f"/blob/{self._signer.account_name}{path}",
                "",  # signed identifier
                "",  # signed IP
                HTTPS_ONLY,
                self._api_version,
                BLOB_RESOURCE,
                "",  # snapshot time
                "",  # encryption scope
                *(overrides.get(key, "") for key in RESPONSE_OVERRIDE_KEYS),
            ]
        )

    def generate(
        self,
        path: str,
        expires_at: datetime,
        overrides: Mapping[str, str] | None = None,
    ) -> str:
        """
        Build the SAS query string (without leading '?') for a blob path.

        Args:
            path: Unencoded service path, e.g. /container/dir/file.txt
            expires_at: Expiry; naive datetimes are taken as UTC
            overrides: Optional response header overrides
        """
        response_overrides = normalize_overrides(overrides)
        start = format_sas_time(self._clock() - CLOCK_SKEW)
        expiry = format_sas_time(expires_at)

        signature = self._signer.sign_with_key(
            self.string_to_sign(path, start, expiry, response_overrides)
        )

        params = {
            "sv": self._api_version,
            "st": start,
            "se": expiry,
            "sr": BLOB_RESOURCE,
            "sp": READ_PERMISSION,
            "spr": HTTPS_ONLY,
            "sig": signature,
        }
        for key in RESPONSE_OVERRIDE_KEYS:
            if key in response_overrides:
                params[key] = response_overrides[key]

        return "&".join(f"{key}={quote(value, safe='')}" for key, value in params.items())
