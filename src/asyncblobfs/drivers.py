"""Named driver registry, the hook host applications use to build filesystems."""

import logging
import os
from typing import Any, Callable, Mapping

from .azure_blob_adapter import AzureBlobStorageAdapter
from .filesystem import Filesystem
from .local_file_adapter import LocalFileAdapter
from .settings import (
    ENV_ACCOUNT_KEY,
    ENV_ACCOUNT_NAME,
    ENV_CONTAINER,
    ENV_ENDPOINT,
    AzureBlobSettings,
)
from .storage_protocols import AsyncFilesystemAdapter

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[Mapping[str, Any]], AsyncFilesystemAdapter]

_drivers: dict[str, AdapterFactory] = {}


def register_driver(name: str, factory: AdapterFactory) -> None:
    """Register (or replace) the adapter factory for a driver name."""
    if name in _drivers:
        logger.debug("Replacing filesystem driver '%s'", name)
    _drivers[name] = factory


def available_drivers() -> list[str]:
    return sorted(_drivers)


def create_filesystem(config: Mapping[str, Any]) -> Filesystem:
    """
    Build a Filesystem from a driver config, e.g.
    {"driver": "azure-blob", "account_name": ..., "account_key": ..., "container": ...}
    """
    driver = config.get("driver")
    if driver not in _drivers:
        raise ValueError(
            f"Could not find a filesystem driver named '{driver}'. "
            f"Available: {', '.join(available_drivers())}"
        )
    return Filesystem(_drivers[driver](config))


def azure_blob_factory(config: Mapping[str, Any]) -> AzureBlobStorageAdapter:
    """Config values win; missing ones fall back to the environment."""
    settings = AzureBlobSettings(
        account_name=config.get("account_name") or os.environ.get(ENV_ACCOUNT_NAME, ""),
        account_key=config.get("account_key") or os.environ.get(ENV_ACCOUNT_KEY, ""),
        container=config.get("container") or os.environ.get(ENV_CONTAINER, ""),
        endpoint=config.get("endpoint") or os.environ.get(ENV_ENDPOINT) or None,
    )
    return AzureBlobStorageAdapter.from_settings(settings)


def local_factory(config: Mapping[str, Any]) -> LocalFileAdapter:
    if not config.get("root"):
        raise ValueError("'root' (directory path) required for the local driver")
    return LocalFileAdapter(config["root"])


register_driver("azure-blob", azure_blob_factory)
register_driver("local", local_factory)
