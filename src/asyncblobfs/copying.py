"""Server-side copy with bounded polling of asynchronous copies."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from .client import BlobRestClient
from .errors import CopyFailedError

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.5
MAX_POLL_ATTEMPTS = 20

ACCEPTED_STATUS_CODES = (201, 202)


class CopyStatus(Enum):
    INITIATED = "initiated"
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    ABORTED = "aborted"
    TIMED_OUT = "timed-out"

    @property
    def is_terminal(self) -> bool:
        return self in (
            CopyStatus.SUCCESS,
            CopyStatus.FAILED,
            CopyStatus.ABORTED,
            CopyStatus.TIMED_OUT,
        )


@dataclass
class CopyOperation:
    source: str
    destination: str
    status: CopyStatus = CopyStatus.INITIATED
    description: str | None = None

    def transition(self, status: CopyStatus, description: str | None = None) -> None:
        if self.status.is_terminal:
            raise RuntimeError(
                f"Copy {self.source} -> {self.destination} already ended as "
                f"'{self.status.value}'"
            )
        self.status = status
        self.description = description


class CopyOrchestrator:
    """
    Starts a server-side copy and waits for it to reach a terminal state.

    A copy reported as pending is polled with HEAD on the destination every
    poll_interval seconds, at most max_attempts times.
    """

    def __init__(
        self,
        client: BlobRestClient,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        max_attempts: int = MAX_POLL_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts
        self._sleep = sleep

    async def copy(self, source: str, destination: str) -> CopyOperation:
        """
        Copy one blob to another within the account.

        Args:
            source: Unencoded service path of the source blob
            destination: Unencoded service path of the destination blob

        Returns:
            The operation, in the SUCCESS state

        Raises:
            CopyFailedError: on failed/aborted/timed-out copies and on any
                unexpected status of the initiating request
        """
        operation = CopyOperation(source=source, destination=destination)
        response = await self._client.request(
            "PUT",
            destination,
            headers={"x-ms-copy-source": self._client.url_for(source)},
        )

        if response.status_code not in ACCEPTED_STATUS_CODES:
            raise CopyFailedError(
                operation, f"Unexpected status code: {response.status_code}"
            )

        status = response.headers.get("x-ms-copy-status")
        if status == "pending":
            operation.transition(CopyStatus.PENDING)
            await self._wait(operation)
        elif status in ("failed", "aborted"):
            self._finish(
                operation,
                CopyStatus(status),
                response.headers.get("x-ms-copy-status-description"),
            )
        else:
            # A missing header means the copy completed synchronously.
            operation.transition(CopyStatus.SUCCESS)

        return operation

    async def _wait(self, operation: CopyOperation) -> None:
        for attempt in range(1, self._max_attempts + 1):
            await self._sleep(self._poll_interval)
            response = await self._client.request("HEAD", operation.destination)
            status = response.headers.get("x-ms-copy-status", "success")
            logger.debug(
                "Copy to %s poll %d/%d: %s",
                operation.destination,
                attempt,
                self._max_attempts,
                status,
            )

            if status == "success":
                operation.transition(CopyStatus.SUCCESS)
                return
            if status in ("failed", "aborted"):
                self._finish(
                    operation,
                    CopyStatus(status),
                    response.headers.get("x-ms-copy-status-description"),
                )

        operation.transition(CopyStatus.TIMED_OUT, "Copy operation timed out")
        raise CopyFailedError(operation, "Copy operation timed out")

    @staticmethod
    def _finish(
        operation: CopyOperation, status: CopyStatus, description: str | None
    ) -> None:
        description = description or "Unknown error"
        operation.transition(status, description)
        raise CopyFailedError(operation, f"Copy operation failed: {description}")
