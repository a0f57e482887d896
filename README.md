# rtrtransport

Transport channels that carry the RPKI-to-Router (RTR) protocol between a
router and an RPKI cache. Two are provided:

- `rtrtransport.tcp.TcpTransport`, a plain TCP connection, configured with
  `TcpConfig`;
- `rtrtransport.ssh.SshTransport`, an SSH session (via paramiko) running the
  `rpki-rtr` subsystem, configured with `SshConfig`.

Both implement the abstract base class `rtrtransport.transport.Transport`.

## Installation

```
pip install rtrtransport
```

## Usage

```python
from rtrtransport.tcp import TcpConfig, TcpTransport

config = TcpConfig(host="rpki-cache.example.com", port="8282")
with TcpTransport(config) as transport:
    print(transport.ident())          # "rpki-cache.example.com:8282"
    transport.send_all(b"\x01\x02\x00\x00\x00\x00\x00\x08", timeout=10)
    header = transport.recv_all(8, timeout=10)
```

Using a transport as a context manager calls `open()` on entry and
`close()` on exit.

An SSH connection works the same way. Exactly one of `password` and
`client_privkey_path` must be given, otherwise the constructor raises
`TransportError`:

```python
from rtrtransport.ssh import SshConfig, SshTransport

password = "password"
config = SshConfig(
    host="rpki-cache.example.com",
    port=22,
    username="rtr",
    password=password,
)
with SshTransport(config) as transport:
    print(transport.ident())          # "rtr@rpki-cache.example.com:22"
```

`client_privkey_path` may name an RSA, ECDSA or Ed25519 private key file.
When `server_hostkey_path` names a known-hosts file, the server's host key
is checked against it and `open()` fails on a mismatch; when it is `None`
the host key is not verified.

### Operations

- `open()` establishes the connection, waiting at most the configured
  `connect_timeout` seconds (`0` selects the default of 30,
  `rtrtransport.transport.CONNECT_TIMEOUT_DEFAULT`). Opening a transport
  that is already open raises `TransportError`.
- `close()` tears the connection down; calling it on a closed transport
  does nothing.
- `send(data, timeout)` sends at most `len(data)` bytes and returns how many
  were sent; `recv(size, timeout)` returns at most `size` bytes and never an
  empty result. A timeout of `0` means the call must not block. The SSH
  transport's `send` ignores the timeout.
- `send_all(data, timeout)` / `recv_all(size, timeout)` repeat `send` /
  `recv` until everything is transferred, sharing one overall timeout.
  Errors from the underlying calls propagate unchanged.
- `ident()` returns `host:port` for TCP and `username@host:port` for SSH.

### Errors

Failures raise exceptions derived from `TransportError`:

- `TransportWouldBlock` – no data could be transferred before the timeout;
- `TransportInterrupted` – the call was interrupted by a signal (TCP only);
- `TransportClosed` – the remote side closed the connection.

### Custom sockets

Both configurations accept a `new_socket` callable, which is called with
`data` on every `open()`. It must return a connected, stream-oriented
`socket.socket` or its file descriptor; `host`, `port` and `bindaddr` are
then not used to connect. Returning `None` or an invalid descriptor makes
`open()` raise `TransportError`.

### Logging

Debug messages are written to the `rtrtransport.tcp` and `rtrtransport.ssh`
loggers of the standard `logging` module.

## What this package does not do

It only moves bytes between a client and a cache. It does not encode or
decode RTR protocol data units, keep prefix or router-key tables, validate
routes, or provide a command-line program.

## Tests

The test suite runs under pytest, which the `test` extra installs
(`pip install rtrtransport[test]`).