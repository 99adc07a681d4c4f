"""Per-socket state owned by the event loop."""

import socket
from dataclasses import dataclass, field
from typing import Optional

from localserver.bootstrap.config import READ_BUFFER_SIZE
from localserver.domain.correlation_id import generate_correlation_id
from localserver.domain.message import HttpResponse
from localserver.pipeline.request_parser import RequestParser


@dataclass
class Connection:
    """Read buffer, parser and in-progress response of one accepted client."""

    sock: socket.socket
    address: tuple
    connection_id: str = field(default_factory=generate_correlation_id)
    buffer: bytearray = field(default_factory=lambda: bytearray(READ_BUFFER_SIZE))
    parser: RequestParser = field(default_factory=RequestParser)
    response: HttpResponse = field(default_factory=HttpResponse)
    outgoing: Optional[memoryview] = None
    bytes_in: int = 0
    bytes_out: int = 0

    @property
    def client(self) -> str:
        if isinstance(self.address, tuple) and len(self.address) >= 2:
            return f"{self.address[0]}:{self.address[1]}"
        return str(self.address)

    def pending_output(self) -> memoryview:
        """Serialized response bytes not yet written, serialized on first use."""
        if self.outgoing is None:
            self.outgoing = memoryview(self.response.to_bytes())
        return self.outgoing

    def close(self) -> None:
        try:
            self.sock.close()
        except OSError:
            pass
