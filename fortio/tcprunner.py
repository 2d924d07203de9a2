"""TCP echo client used for load testing TCP echo servers."""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

TCP_URL_PREFIX = "tcp://"
"""URL prefix that selects TCP load."""

TCP_STATUS_OK = "OK"
"""Result key used for successful requests."""

REQ_TIMEOUT_DEFAULT = 3.0
"""Request timeout in seconds used when none (or an invalid one) is given."""


class EchoError(Exception):
    """An echo request failed; `data` holds whatever was received."""

    message = "echo error"

    def __init__(self, data: bytes = b"") -> None:
        super().__init__(self.message)
        self.data = data


class ShortWriteError(EchoError):
    message = "short write"


class ShortReadError(EchoError):
    message = "short read"


class LongReadError(EchoError):
    message = "bug: long read"


class MismatchError(EchoError):
    message = "read not echoing writes"


def generate_payload(t: int, i: int) -> bytes:
    """Return the default 24 byte payload for connection t and message i."""
    return f"Fortio\n{t:04d}\n{i:012d}".encode("ascii")


def _resolve(destination: str, prefix: str, socktype: int) -> tuple[int, tuple]:
    """Resolve "[prefix]host:port[/]" into an address family and socket address."""
    target = destination[len(prefix):] if destination.startswith(prefix) else destination
    target = target.rstrip("/")
    host, sep, port = target.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"destination {destination!r} is missing a port")
    host = host.strip("[]") or "localhost"
    infos = socket.getaddrinfo(host, int(port), type=socktype)
    family, _, _, _, address = infos[0]
    return family, address


class _EchoClient:
    """Sends a payload, expects it echoed back, and reuses the socket on success."""

    _socktype = socket.SOCK_STREAM
    _url_prefix = TCP_URL_PREFIX
    _default_timeout = REQ_TIMEOUT_DEFAULT

    def __init__(self, options) -> None:
        self.destination = options.destination
        self._family, self._address = _resolve(
            options.destination, self._url_prefix, self._socktype
        )
        self._req = bytes(options.payload or b"")
        self._do_generate = not self._req
        if self._do_generate:
            self._req = generate_payload(0, 0)
        self._expected_len = len(self._req)
        timeout = options.req_timeout
        if timeout == 0:
            logger.debug("Request timeout not set, using default %s", self._default_timeout)
            timeout = self._default_timeout
        elif timeout < 0:
            logger.warning(
                "Invalid timeout %s, setting to %s", timeout, self._default_timeout
            )
            timeout = self._default_timeout
        self.req_timeout = timeout
        self.conn_id = 0
        self.message_count = 0
        self.bytes_sent = 0
        self.bytes_received = 0
        self.socket_count = 0
        self._socket: Optional[socket.socket] = None

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self._close()

    def _connect(self) -> socket.socket:
        self.socket_count += 1
        sock = socket.socket(self._family, self._socktype)
        try:
            sock.connect(self._address)
        except OSError as exc:
            sock.close()
            logger.error("Unable to connect to %s : %s", self._address, exc)
            raise
        return sock

    def _read_failed(self, exc: OSError) -> None:
        """Hook for read errors; by default they count as a short read."""

    def _fetch(self) -> bytes:
        conn = self._socket
        self.message_count += 1
        reuse = conn is not None
        if conn is None:
            conn = self._connect()
        else:
            logger.debug("Reusing socket %s", conn)
        self._socket = None
        if self._do_generate:
            self._req = generate_payload(self.conn_id, self.message_count)
        try:
            conn.settimeout(self.req_timeout)
            sent = conn.send(self._req)
        except OSError as exc:
            conn.close()
            if reuse:
                # An idle socket may die once: reconnect and retry.
                logger.info("Closing dead socket %s (%s)", conn, exc)
                return self._fetch()
            logger.error("Unable to write to %s : %s", self._address, exc)
            raise
        self.bytes_sent += sent
        logger.debug("wrote %d (%r)", sent, self._req)
        if sent != len(self._req):
            conn.close()
            logger.error("Short write to %s : %d instead of %d", self._address, sent, len(self._req))
            raise ShortWriteError()
        try:
            data = conn.recv(self._expected_len)
        except OSError as exc:
            conn.close()
            self._read_failed(exc)
            data = b""
        self.bytes_received += len(data)
        logger.debug("read %d (%r)", len(data), data)
        if len(data) < len(self._req):
            conn.close()
            raise ShortReadError(data)
        if len(data) > len(self._req):
            conn.close()
            logger.error("BUG: read more than possible %d vs %d", len(data), len(self._req))
            raise LongReadError(data)
        if data != self._req:
            conn.close()
            logger.info("Mismatch between sent %r and received %r", self._req, data)
            raise MismatchError(data)
        self._socket = conn
        return data

    def _close(self) -> int:
        logger.debug("Closing %s socket count %d", self.destination, self.socket_count)
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError as exc:
                logger.warning("Error closing client's socket: %s", exc)
            self._socket = None
        return self.socket_count


@dataclass
class TCPOptions:
    """Options for a TCPClient; req_timeout is in seconds (0 means default)."""

    destination: str
    payload: bytes = b""
    unix_domain_socket: str = ""
    req_timeout: float = 0.0


class TCPClient(_EchoClient):
    """Client for TCP echo testing."""

    def __init__(self, options: TCPOptions) -> None:
        super().__init__(options)

    def fetch(self) -> bytes:
        """Send one request and return the echoed bytes; raises EchoError or OSError."""
        return self._fetch()

    def close(self) -> int:
        """Close the open socket, if any, and return the number of sockets used."""
        return self._close()