"""UDP echo client used for load testing UDP echo servers."""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass

from fortio.tcprunner import EchoError, _EchoClient

logger = logging.getLogger(__name__)

UDP_URL_PREFIX = "udp://"
"""URL prefix that selects UDP load."""

UDP_STATUS_OK = "OK"
"""Result key used for successful requests."""

UDP_TIMEOUT_DEFAULT = 0.75
"""Request timeout in seconds used when none (or an invalid one) is given."""


class EchoTimeoutError(EchoError):
    message = "timeout"


@dataclass
class UDPOptions:
    """Options for a UDPClient; req_timeout is in seconds (0 means default)."""

    destination: str
    payload: bytes = b""
    req_timeout: float = 0.0


class UDPClient(_EchoClient):
    """Client for UDP echo testing."""

    _socktype = socket.SOCK_DGRAM
    _url_prefix = UDP_URL_PREFIX
    _default_timeout = UDP_TIMEOUT_DEFAULT

    def __init__(self, options: UDPOptions) -> None:
        super().__init__(options)

    def _read_failed(self, exc: OSError) -> None:
        if isinstance(exc, TimeoutError):
            raise EchoTimeoutError() from exc

    def fetch(self) -> bytes:
        """Send one datagram and return the echoed bytes; raises EchoError or OSError."""
        return self._fetch()

    def close(self) -> int:
        """Close the open socket, if any, and return the number of sockets used."""
        return self._close()