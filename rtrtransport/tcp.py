"""TCP transport for RTR connections."""

from __future__ import annotations

import dataclasses
import errno
import logging
import os
import select
import socket
from typing import Any, Callable, Optional, Union

from rtrtransport.transport import (
    CONNECT_TIMEOUT_DEFAULT,
    Transport,
    TransportClosed,
    TransportError,
    TransportInterrupted,
    TransportWouldBlock,
)

_log = logging.getLogger(__name__)

SocketFactory = Callable[[Any], Union[socket.socket, int, None]]

_CONNECT_PENDING = {0, errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EAGAIN}


@dataclasses.dataclass
class TcpConfig:
    """Configuration of a TCP connection.

    ``new_socket`` is called with ``data`` whenever a connection is opened and
    must return a connected stream socket (or its file descriptor); when it is
    given, ``host``, ``port`` and ``bindaddr`` are not used for connecting.
    A ``connect_timeout`` of 0 selects the default.
    """

    host: str
    port: Union[str, int]
    bindaddr: Optional[str] = None
    data: Any = None
    new_socket: Optional[SocketFactory] = None
    connect_timeout: int = 0


def _resolve(host: Optional[str], port: Union[str, int, None]) -> list:
    try:
        return socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_STREAM, 0, socket.AI_ADDRCONFIG)
    except socket.gaierror:
        # Hosts with only a loopback interface reject AI_ADDRCONFIG lookups.
        return socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_STREAM)


class TcpTransport(Transport):
    """A transport over a plain TCP connection."""

    def __init__(self, config: TcpConfig) -> None:
        self.config = dataclasses.replace(
            config,
            port=str(config.port),
            connect_timeout=config.connect_timeout or CONNECT_TIMEOUT_DEFAULT,
        )
        self._sock: Optional[socket.socket] = None

    def _dbg(self, msg: str, *args: Any) -> None:
        _log.debug("TCP Transport(%s:%s): " + msg, self.config.host, self.config.port, *args)

    def open(self) -> None:
        if self._sock is not None:
            raise TransportError("socket is already open")
        try:
            if self.config.new_socket is not None:
                self._sock = self._socket_from_factory()
            else:
                self._connect()
        except TransportError:
            self.close()
            raise
        self._dbg("Connection established")

    def _socket_from_factory(self) -> socket.socket:
        result = self.config.new_socket(self.config.data)
        if isinstance(result, int):
            if result <= 0:
                self._dbg("Couldn't establish TCP connection")
                raise TransportError("socket factory returned an invalid descriptor")
            return socket.socket(fileno=result)
        if result is None:
            self._dbg("Couldn't establish TCP connection")
            raise TransportError("socket factory returned no socket")
        return result

    def _connect(self) -> None:
        cfg = self.config
        try:
            infos = _resolve(cfg.host, cfg.port)
        except socket.gaierror as exc:
            self._dbg("getaddrinfo error, %s", exc)
            raise TransportError(f"getaddrinfo error, {exc}") from exc
        family, socktype, proto, _, address = infos[0]

        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as exc:
            self._dbg("Socket creation failed, %s", exc)
            raise TransportError(f"socket creation failed, {exc}") from exc
        self._sock = sock

        if cfg.bindaddr:
            try:
                bind_infos = _resolve(cfg.bindaddr, None)
            except socket.gaierror as exc:
                self._dbg("getaddrinfo error, %s", exc)
                raise TransportError(f"getaddrinfo error, {exc}") from exc
            try:
                sock.bind(bind_infos[0][4])
            except OSError as exc:
                self._dbg("Socket bind failed, %s", exc)
                raise TransportError(f"socket bind failed, {exc}") from exc

        sock.setblocking(False)
        err = sock.connect_ex(address)
        if err not in _CONNECT_PENDING:
            self._dbg("Couldn't establish TCP connection, %s", os.strerror(err))
            raise TransportError(f"couldn't establish TCP connection, {os.strerror(err)}")

        try:
            _, writable, _ = select.select([], [sock], [], cfg.connect_timeout)
        except (OSError, ValueError) as exc:
            self._dbg("Could not select tcp socket, %s", exc)
            raise TransportError(f"could not select tcp socket, {exc}") from exc
        if not writable:
            self._dbg("Could not establish TCP connection in time")
            raise TransportError("could not establish TCP connection in time")

        try:
            socket_error = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        except OSError as exc:
            self._dbg("Could not get socket error, %s", exc)
            raise TransportError(f"could not get socket error, {exc}") from exc
        if socket_error:
            self._dbg("Could not establish TCP connection, %s", os.strerror(socket_error))
            raise TransportError(f"could not establish TCP connection, {os.strerror(socket_error)}")

        sock.setblocking(True)

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        self._dbg("Socket closed")

    def _require_socket(self, timeout: float) -> socket.socket:
        if self._sock is None:
            raise TransportError("socket is not open")
        try:
            self._sock.settimeout(0.0 if timeout == 0 else timeout)
        except (OSError, ValueError) as exc:
            self._dbg("setting socket timeout failed, %s", exc)
            raise TransportError(f"setting socket timeout failed, {exc}") from exc
        return self._sock

    def recv(self, size: int, timeout: float) -> bytes:
        sock = self._require_socket(timeout)
        try:
            data = sock.recv(size)
        except (BlockingIOError, TimeoutError) as exc:
            raise TransportWouldBlock("no data available") from exc
        except InterruptedError as exc:
            raise TransportInterrupted("recv interrupted") from exc
        except OSError as exc:
            self._dbg("recv(..) error: %s", exc)
            raise TransportError(f"recv error: {exc}") from exc
        if not data:
            raise TransportClosed("connection closed by peer")
        return data

    def send(self, data: bytes, timeout: float) -> int:
        sock = self._require_socket(timeout)
        try:
            sent = sock.send(data)
        except (BlockingIOError, TimeoutError) as exc:
            raise TransportWouldBlock("send would block") from exc
        except InterruptedError as exc:
            raise TransportInterrupted("send interrupted") from exc
        except OSError as exc:
            self._dbg("send(..) error: %s", exc)
            raise TransportError(f"send error: {exc}") from exc
        if sent == 0:
            raise TransportError("nothing was sent")
        return sent

    def ident(self) -> str:
        return f"{self.config.host}:{self.config.port}"