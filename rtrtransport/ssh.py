"""SSH transport for RTR connections, using the ``rpki-rtr`` subsystem."""

from __future__ import annotations

import dataclasses
import logging
import socket
from typing import Any, Callable, Optional, Union

import paramiko

from rtrtransport.transport import (
    CONNECT_TIMEOUT_DEFAULT,
    Transport,
    TransportClosed,
    TransportError,
    TransportWouldBlock,
)

_log = logging.getLogger(__name__)

SUBSYSTEM = "rpki-rtr"

SocketFactory = Callable[[Any], Union[socket.socket, int, None]]

_KEY_TYPES = (paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key)

_SSH_FAILURES = (paramiko.SSHException, OSError, EOFError, ValueError)


@dataclasses.dataclass
class SshConfig:
    """Configuration of an SSH connection.

    Exactly one of ``password`` and ``client_privkey_path`` must be given.
    ``server_hostkey_path`` names a known-hosts file; when it is None the
    server's host key is not verified. ``new_socket`` is called with ``data``
    whenever a connection is opened and must return a connected stream socket
    (or its file descriptor); when it is given, ``host``, ``port`` and
    ``bindaddr`` are not used for connecting. A ``connect_timeout`` of 0
    selects the default.
    """

    host: str
    port: int
    username: str
    bindaddr: Optional[str] = None
    server_hostkey_path: Optional[str] = None
    client_privkey_path: Optional[str] = None
    data: Any = None
    new_socket: Optional[SocketFactory] = None
    connect_timeout: int = 0
    password: Optional[str] = None


def _load_private_key(path: str) -> paramiko.PKey:
    last_error: Optional[Exception] = None
    for key_type in _KEY_TYPES:
        try:
            return key_type.from_private_key_file(path)
        except paramiko.SSHException as exc:
            last_error = exc
    raise paramiko.SSHException(f"unsupported private key in {path}: {last_error}")


class SshTransport(Transport):
    """A transport over an SSH channel to the ``rpki-rtr`` subsystem."""

    def __init__(self, config: SshConfig) -> None:
        if (config.password is None) == (config.client_privkey_path is None):
            raise TransportError("exactly one of password and client_privkey_path must be set")
        self.config = dataclasses.replace(
            config,
            connect_timeout=config.connect_timeout or CONNECT_TIMEOUT_DEFAULT,
        )
        self._sock: Optional[socket.socket] = None
        self._session: Optional[paramiko.Transport] = None
        self._channel: Optional[paramiko.Channel] = None

    def _dbg(self, msg: str, *args: Any) -> None:
        cfg = self.config
        _log.debug("SSH Transport(%s@%s:%u): " + msg, cfg.username, cfg.host, cfg.port, *args)

    def open(self) -> None:
        if self._session is not None or self._channel is not None:
            raise TransportError("socket is already open")
        try:
            self._establish()
        except TransportError:
            self.close()
            raise
        except _SSH_FAILURES as exc:
            self._dbg("opening SSH connection failed, %s", exc)
            self.close()
            raise TransportError(f"opening SSH connection failed, {exc}") from exc
        self._dbg("Connection established")

    def _open_socket(self) -> socket.socket:
        cfg = self.config
        if cfg.new_socket is not None:
            result = cfg.new_socket(cfg.data)
            if isinstance(result, int):
                if result < 0:
                    self._dbg("opening SSH connection failed")
                    raise TransportError("socket factory returned an invalid descriptor")
                return socket.socket(fileno=result)
            if result is None:
                self._dbg("opening SSH connection failed")
                raise TransportError("socket factory returned no socket")
            return result
        source = (cfg.bindaddr, 0) if cfg.bindaddr else None
        try:
            return socket.create_connection(
                (cfg.host, cfg.port), timeout=cfg.connect_timeout, source_address=source
            )
        except socket.timeout as exc:
            self._dbg("connection attempt timed out")
            raise TransportError("connection attempt timed out") from exc

    def _known_hosts_name(self) -> str:
        cfg = self.config
        if cfg.port == 22:
            return cfg.host
        return f"[{cfg.host}]:{cfg.port}"

    def _establish(self) -> None:
        cfg = self.config
        self._sock = self._open_socket()
        self._session = paramiko.Transport(self._sock)
        self._session.banner_timeout = cfg.connect_timeout
        self._session.start_client(timeout=cfg.connect_timeout)

        if cfg.server_hostkey_path:
            known_hosts = paramiko.HostKeys(cfg.server_hostkey_path)
            server_key = self._session.get_remote_server_key()
            if not known_hosts.check(self._known_hosts_name(), server_key):
                self._dbg("Wrong hostkey")
                raise TransportError("wrong hostkey")

        if cfg.client_privkey_path:
            self._dbg("Trying publickey authentication")
            key = _load_private_key(cfg.client_privkey_path)
            try:
                self._session.auth_publickey(cfg.username, key)
            except paramiko.AuthenticationException as exc:
                self._dbg("Publickey authentication failed")
                raise TransportError("publickey authentication failed") from exc
        else:
            self._dbg("Trying password authentication")
            try:
                self._session.auth_password(cfg.username, cfg.password)
            except paramiko.AuthenticationException as exc:
                self._dbg("Password authentication failed")
                raise TransportError("password authentication failed") from exc
        if not self._session.is_authenticated():
            raise TransportError("authentication failed")

        self._channel = self._session.open_session(timeout=cfg.connect_timeout)
        try:
            self._channel.invoke_subsystem(SUBSYSTEM)
        except paramiko.SSHException as exc:
            self._dbg("Error requesting subsystem %s", SUBSYSTEM)
            raise TransportError(f"error requesting subsystem {SUBSYSTEM}") from exc

    def close(self) -> None:
        if self._channel is not None:
            self._channel.close()
            self._channel = None
        if self._session is not None:
            self._session.close()
            self._session = None
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        self._dbg("Socket closed")

    def _require_channel(self) -> paramiko.Channel:
        if self._channel is None:
            raise TransportError("socket is not open")
        return self._channel

    def recv(self, size: int, timeout: float) -> bytes:
        channel = self._require_channel()
        if channel.eof_received and not channel.recv_ready():
            self._dbg("remote has sent EOF")
            raise TransportError("remote has sent EOF")
        try:
            channel.settimeout(0.0 if timeout == 0 else timeout)
            data = channel.recv(size)
        except socket.timeout as exc:
            raise TransportWouldBlock("no data available") from exc
        except _SSH_FAILURES as exc:
            self._dbg("recv(..) error")
            raise TransportError(f"recv error: {exc}") from exc
        if not data:
            self._dbg("remote has sent EOF")
            raise TransportClosed("remote has sent EOF")
        return data

    def send(self, data: bytes, timeout: float) -> int:
        channel = self._require_channel()
        try:
            channel.settimeout(None)
            return channel.send(data)
        except _SSH_FAILURES as exc:
            raise TransportError(f"send error: {exc}") from exc

    def ident(self) -> str:
        cfg = self.config
        return f"{cfg.username}@{cfg.host}:{cfg.port}"