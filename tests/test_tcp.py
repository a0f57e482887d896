import socket
import threading

import pytest

from rtrtransport.tcp import TcpConfig, TcpTransport
from rtrtransport.transport import (
    CONNECT_TIMEOUT_DEFAULT,
    TransportClosed,
    TransportError,
    TransportWouldBlock,
)


@pytest.fixture
def server():
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.bind(("127.0.0.1", 0))
    srv.listen(5)
    srv.settimeout(5)
    yield srv
    srv.close()


def _config(srv, **kwargs):
    return TcpConfig(host="127.0.0.1", port=str(srv.getsockname()[1]), **kwargs)


def test_ident_is_host_and_port():
    tr = TcpTransport(TcpConfig(host="192.0.2.1", port="8283"))
    assert tr.ident() == "192.0.2.1:8283"


def test_ident_accepts_integer_port():
    tr = TcpTransport(TcpConfig(host="192.0.2.1", port=8283))
    assert tr.ident() == "192.0.2.1:8283"


def test_connect_timeout_defaults():
    tr = TcpTransport(TcpConfig(host="192.0.2.1", port="8283"))
    assert tr.config.connect_timeout == CONNECT_TIMEOUT_DEFAULT
    tr = TcpTransport(TcpConfig(host="192.0.2.1", port="8283", connect_timeout=5))
    assert tr.config.connect_timeout == 5


def test_send_and_recv_round_trip(server):
    tr = TcpTransport(_config(server))
    tr.open()
    conn, _ = server.accept()
    try:
        assert tr.send(b"hello", 2) == 5
        assert conn.recv(5) == b"hello"
        conn.sendall(b"world")
        assert tr.recv_all(5, 2) == b"world"
    finally:
        conn.close()
        tr.close()


def test_recv_nonblocking_without_data_would_block(server):
    tr = TcpTransport(_config(server))
    tr.open()
    conn, _ = server.accept()
    try:
        with pytest.raises(TransportWouldBlock):
            tr.recv(10, 0)
    finally:
        conn.close()
        tr.close()


def test_recv_timeout_without_data_would_block(server):
    tr = TcpTransport(_config(server))
    tr.open()
    conn, _ = server.accept()
    try:
        with pytest.raises(TransportWouldBlock):
            tr.recv(10, 0.2)
    finally:
        conn.close()
        tr.close()


def test_recv_after_peer_close_raises_closed(server):
    tr = TcpTransport(_config(server))
    tr.open()
    conn, _ = server.accept()
    conn.close()
    try:
        with pytest.raises(TransportClosed):
            tr.recv(10, 2)
    finally:
        tr.close()


def test_negative_timeout_is_an_error(server):
    tr = TcpTransport(_config(server))
    tr.open()
    conn, _ = server.accept()
    try:
        with pytest.raises(TransportError):
            tr.recv(10, -1)
    finally:
        conn.close()
        tr.close()


def test_connection_refused_raises_and_leaves_closed():
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    tr = TcpTransport(TcpConfig(host="127.0.0.1", port=str(port), connect_timeout=2))
    with pytest.raises(TransportError):
        tr.open()
    with pytest.raises(TransportError):
        tr.send(b"x", 1)


def test_unknown_service_raises():
    tr = TcpTransport(TcpConfig(host="127.0.0.1", port="no-such-service-name"))
    with pytest.raises(TransportError):
        tr.open()


def test_open_twice_raises(server):
    tr = TcpTransport(_config(server))
    tr.open()
    conn, _ = server.accept()
    try:
        with pytest.raises(TransportError):
            tr.open()
    finally:
        conn.close()
        tr.close()


def test_bindaddr_is_used(server):
    tr = TcpTransport(_config(server, bindaddr="127.0.0.1"))
    tr.open()
    conn, peer = server.accept()
    try:
        assert peer[0] == "127.0.0.1"
    finally:
        conn.close()
        tr.close()


def test_new_socket_factory_receives_data():
    ours, theirs = socket.socketpair()
    seen = []
    marker = {"tag": 1}

    def factory(data):
        seen.append(data)
        return ours

    tr = TcpTransport(TcpConfig(host="192.0.2.1", port="8283", data=marker, new_socket=factory))
    tr.open()
    try:
        assert seen == [marker]
        tr.send_all(b"ping", 2)
        assert theirs.recv(4) == b"ping"
        theirs.sendall(b"pong")
        assert tr.recv_all(4, 2) == b"pong"
    finally:
        tr.close()
        theirs.close()


def test_new_socket_factory_returning_none_fails():
    tr = TcpTransport(TcpConfig(host="192.0.2.1", port="8283", new_socket=lambda data: None))
    with pytest.raises(TransportError):
        tr.open()


def test_new_socket_factory_returning_bad_descriptor_fails():
    tr = TcpTransport(TcpConfig(host="192.0.2.1", port="8283", new_socket=lambda data: -1))
    with pytest.raises(TransportError):
        tr.open()


def test_recv_all_collects_large_payload(server):
    payload = b"abc" * 20000
    tr = TcpTransport(_config(server))
    tr.open()
    conn, _ = server.accept()
    sender = threading.Thread(target=conn.sendall, args=(payload,))
    sender.start()
    try:
        assert tr.recv_all(len(payload), 5) == payload
    finally:
        sender.join()
        conn.close()
        tr.close()


def test_context_manager_closes(server):
    with TcpTransport(_config(server)) as tr:
        conn, _ = server.accept()
        assert tr.send(b"a", 1) == 1
    conn.close()
    with pytest.raises(TransportError):
        tr.send(b"a", 1)


def test_close_is_idempotent_and_allows_reopen(server):
    tr = TcpTransport(_config(server))
    tr.open()
    first, _ = server.accept()
    tr.close()
    tr.close()
    tr.open()
    second, _ = server.accept()
    try:
        assert tr.send(b"z", 1) == 1
        assert second.recv(1) == b"z"
    finally:
        first.close()
        second.close()
        tr.close()