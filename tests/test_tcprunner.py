import socket
import socketserver
import threading
from contextlib import contextmanager

import pytest

from fortio.tcprunner import (
    REQ_TIMEOUT_DEFAULT,
    EchoError,
    MismatchError,
    ShortReadError,
    TCPClient,
    TCPOptions,
    generate_payload,
)


class _Handler(socketserver.BaseRequestHandler):
    def handle(self):
        while True:
            try:
                data = self.request.recv(4096)
            except OSError:
                return
            if not data:
                return
            reply = self.server.transform(data)
            if reply:
                self.request.sendall(reply)


class _Server(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True


@contextmanager
def tcp_server(transform=lambda d: d):
    server = _Server(("127.0.0.1", 0), _Handler)
    server.transform = transform
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server.server_address[1]
    finally:
        server.shutdown()
        server.server_close()


def _free_port():
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def test_generate_payload_default():
    assert generate_payload(0, 0) == b"Fortio\n0000\n000000000000"
    assert len(generate_payload(0, 0)) == 24


def test_generate_payload_fields():
    assert generate_payload(12, 345) == b"Fortio\n0012\n000000000345"
    assert len(generate_payload(9999, 999999999999)) == len(generate_payload(0, 0))


def test_fetch_echoes_generated_payload():
    with tcp_server() as port:
        client = TCPClient(TCPOptions(destination=f"127.0.0.1:{port}"))
        client.conn_id = 7
        try:
            assert client.fetch() == generate_payload(7, 1)
            assert client.fetch() == generate_payload(7, 2)
        finally:
            client.close()


def test_socket_reused_and_bytes_counted():
    with tcp_server() as port:
        with TCPClient(TCPOptions(destination=f"tcp://127.0.0.1:{port}/")) as client:
            for _ in range(3):
                client.fetch()
            assert client.socket_count == 1
            assert client.message_count == 3
            assert client.bytes_sent == 3 * len(generate_payload(0, 0))
            assert client.bytes_received == client.bytes_sent
        assert client.close() == 1


def test_custom_payload():
    with tcp_server() as port:
        opts = TCPOptions(destination=f"127.0.0.1:{port}", payload=b"hello world")
        with TCPClient(opts) as client:
            assert client.fetch() == b"hello world"
            assert client.fetch() == b"hello world"


def test_reconnect_after_close():
    with tcp_server() as port:
        client = TCPClient(TCPOptions(destination=f"127.0.0.1:{port}"))
        client.fetch()
        assert client.close() == 1
        client.fetch()
        assert client.close() == 2


def test_mismatch():
    with tcp_server(lambda d: d[::-1]) as port:
        with TCPClient(TCPOptions(destination=f"127.0.0.1:{port}", payload=b"abc")) as client:
            with pytest.raises(MismatchError) as info:
                client.fetch()
            assert info.value.data == b"cba"
            assert str(info.value) == "read not echoing writes"


def test_short_read():
    with tcp_server(lambda d: d[:2]) as port:
        with TCPClient(TCPOptions(destination=f"127.0.0.1:{port}", payload=b"abcdef")) as client:
            with pytest.raises(ShortReadError) as info:
                client.fetch()
            assert info.value.data == b"ab"
            assert str(info.value) == "short read"


def test_no_reply_times_out_as_short_read():
    with tcp_server(lambda d: b"") as port:
        opts = TCPOptions(destination=f"127.0.0.1:{port}", req_timeout=0.2)
        with TCPClient(opts) as client:
            with pytest.raises(ShortReadError) as info:
                client.fetch()
            assert info.value.data == b""
            assert isinstance(info.value, EchoError)


def test_failed_fetch_does_not_keep_socket():
    with tcp_server(lambda d: d[::-1]) as port:
        client = TCPClient(TCPOptions(destination=f"127.0.0.1:{port}", payload=b"xy"))
        for _ in range(2):
            with pytest.raises(MismatchError):
                client.fetch()
        assert client.close() == 2


def test_connection_refused():
    port = _free_port()
    client = TCPClient(TCPOptions(destination=f"127.0.0.1:{port}"))
    with pytest.raises(OSError):
        client.fetch()
    assert client.close() == 1


def test_bad_destination():
    with pytest.raises(OSError):
        TCPClient(TCPOptions(destination="doesnotexist.invalid:1111"))


def test_missing_port():
    with pytest.raises(ValueError):
        TCPClient(TCPOptions(destination="tcp://127.0.0.1/"))


@pytest.mark.parametrize("timeout", [0, -1.5])
def test_timeout_defaults(timeout):
    client = TCPClient(TCPOptions(destination="127.0.0.1:1", req_timeout=timeout))
    assert client.req_timeout == REQ_TIMEOUT_DEFAULT


def test_timeout_kept():
    client = TCPClient(TCPOptions(destination="127.0.0.1:1", req_timeout=1.25))
    assert client.req_timeout == 1.25