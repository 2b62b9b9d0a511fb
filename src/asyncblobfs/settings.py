import os
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv

ENV_ACCOUNT_NAME = "AZURE_STORAGE_ACCOUNT_NAME"
ENV_ACCOUNT_KEY = "AZURE_STORAGE_ACCOUNT_KEY"
ENV_CONTAINER = "AZURE_STORAGE_CONTAINER"
ENV_ENDPOINT = "AZURE_STORAGE_ENDPOINT"


@dataclass(frozen=True)
class AzureBlobSettings:
    account_name: str
    account_key: str
    container: str
    endpoint: str | None = None

    def __post_init__(self) -> None:
        missing = [
            name
            for name in ("account_name", "account_key", "container")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(
                f"Azure blob storage settings missing: {', '.join(missing)}"
            )

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, dotenv: bool = True
    ) -> "AzureBlobSettings":
        """
        Read settings from the environment.
        With dotenv=True a .env file is loaded first (existing variables win).
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ
        return cls(
            account_name=environ.get(ENV_ACCOUNT_NAME, ""),
            account_key=environ.get(ENV_ACCOUNT_KEY, ""),
            container=environ.get(ENV_CONTAINER, ""),
            endpoint=environ.get(ENV_ENDPOINT) or None,
        )

    @classmethod
    def from_connection_string(
        cls, connection_string: str, container: str
    ) -> "AzureBlobSettings":
        """
        Parse an Azure Storage connection string.
        Only Shared Key connection strings are supported.
        """
        parts: dict[str, str] = {}
        for segment in connection_string.split(";"):
            if not segment.strip():
                continue
            key, sep, value = segment.partition("=")
            if not sep:
                raise ValueError(f"Malformed connection string segment: '{segment}'")
            parts[key.strip().lower()] = value.strip()

        account_name = parts.get("accountname", "")
        endpoint = parts.get("blobendpoint")
        if not endpoint and account_name and "endpointsuffix" in parts:
            protocol = parts.get("defaultendpointsprotocol", "https")
            endpoint = f"{protocol}://{account_name}.blob.{parts['endpointsuffix']}"

        return cls(
            account_name=account_name,
            account_key=parts.get("accountkey", ""),
            container=container,
            endpoint=endpoint,
        )
