"""Utilities for interacting with raw HTTP over sockets in tests."""

from __future__ import annotations

import socket
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List

HEADER_DELIMITER = b"\r\n\r\n"


@dataclass(slots=True)
class RawHttpResponse:
    """Structured view of an HTTP response captured from a socket."""

    status_line: str
    headers: Dict[str, str]
    body: bytes
    closed: bool = False

    @property
    def status_code(self) -> int:
        return int(self.status_line.split()[1])


def reserve_port(host: str = "127.0.0.1") -> int:
    """Return an available TCP port bound to the given host without listening."""

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


def wait_for_port(host: str, port: int, timeout: float = 5.0) -> None:
    """Block until a TCP connection to host:port succeeds or timeout elapses."""

    deadline = time.perf_counter() + timeout
    while time.perf_counter() < deadline:
        try:
            with socket.create_connection((host, port), timeout=0.1):
                return
        except OSError:
            time.sleep(0.05)
    raise RuntimeError(f"Server did not start on {host}:{port} within {timeout}s")


def read_http_response(sock: socket.socket) -> RawHttpResponse:
    """Read a whole response from a server that closes the connection afterwards."""

    buffer = b""
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            break
        buffer += chunk
    if HEADER_DELIMITER not in buffer:
        raise RuntimeError("Connection closed before headers were received")
    header_block, body = buffer.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode("latin-1").split("\r\n")
    return RawHttpResponse(
        status_line=header_lines[0],
        headers=_parse_headers(header_lines[1:]),
        body=body,
        closed=True,
    )


def send_raw_request(
    host: str,
    port: int,
    pieces: Iterable[bytes],
    pause: float = 0.0,
) -> RawHttpResponse:
    """Send ``pieces`` as separate writes and capture the parsed response."""

    with socket.create_connection((host, port), timeout=5) as sock:
        for piece in pieces:
            sock.sendall(piece)
            if pause:
                time.sleep(pause)
        return read_http_response(sock)


def _parse_headers(lines: List[str]) -> Dict[str, str]:
    """Convert header lines into a normalized dictionary."""

    parsed: Dict[str, str] = {}
    for line in lines:
        if ": " not in line:
            continue
        name, value = line.split(": ", 1)
        parsed[name.lower()] = value
    return parsed
