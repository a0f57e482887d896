"""Transport sockets: the communication channel between an RTR cache and client."""

from __future__ import annotations

import abc
import time
from types import TracebackType

CONNECT_TIMEOUT_DEFAULT = 30
"""Default connect timeout in seconds."""


class TransportError(Exception):
    """A transport operation failed."""


class TransportWouldBlock(TransportError):
    """No data could be transferred before the timeout expired."""


class TransportInterrupted(TransportError):
    """The call was interrupted by a signal."""


class TransportClosed(TransportError):
    """The remote side closed the connection."""


class Transport(abc.ABC):
    """A connection to an RTR cache over some stream-oriented technology.

    Timeouts are given in seconds. A timeout of zero means the call must not
    block.
    """

    @abc.abstractmethod
    def open(self) -> None:
        """Establish the connection; raise TransportError on failure."""

    @abc.abstractmethod
    def close(self) -> None:
        """Close the connection. Closing a closed transport does nothing."""

    @abc.abstractmethod
    def send(self, data: bytes, timeout: float) -> int:
        """Send at most ``len(data)`` bytes and return how many were sent."""

    @abc.abstractmethod
    def recv(self, size: int, timeout: float) -> bytes:
        """Receive at most ``size`` bytes; the result is never empty."""

    @abc.abstractmethod
    def ident(self) -> str:
        """Return an identifier of the remote endpoint, such as host:port."""

    def send_all(self, data: bytes, timeout: float) -> int:
        """Send all of ``data`` within ``timeout`` seconds.

        Errors of the underlying ``send`` propagate unchanged.
        """
        payload = memoryview(bytes(data))
        end_time = time.monotonic() + timeout
        total = 0
        while total < len(payload):
            remaining = max(0.0, end_time - time.monotonic())
            total += self.send(bytes(payload[total:]), remaining)
        return total

    def recv_all(self, size: int, timeout: float) -> bytes:
        """Receive exactly ``size`` bytes within ``timeout`` seconds.

        Errors of the underlying ``recv`` propagate unchanged.
        """
        end_time = time.monotonic() + timeout
        chunks: list[bytes] = []
        received = 0
        while received < size:
            remaining = max(0.0, end_time - time.monotonic())
            chunk = self.recv(size - received, remaining)
            chunks.append(chunk)
            received += len(chunk)
        return b"".join(chunks)

    def __enter__(self) -> Transport:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()