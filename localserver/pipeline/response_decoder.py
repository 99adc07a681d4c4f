"""One-shot decoder turning a complete raw HTTP response into an HttpResponse."""

import logging

from localserver.domain.constants import (
    HEADER_TRANSFER_ENCODING,
    TRANSFER_ENCODING_CHUNKED,
)
from localserver.domain.correlation_id import CorrelationLoggerAdapter
from localserver.domain.errors import MalformedResponse
from localserver.domain.message import HttpResponse

DECODER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("localserver.decoder"), {})

STATUS_LINE_PARTS = 3
LINE_BREAK_BYTES = (ord("\r"), ord("\n"))
CR = ord("\r")
SPACE = ord(" ")
HEX_DIGITS = {ord(digit): int(digit, 16) for digit in "0123456789abcdefABCDEF"}


def _next_line(data: bytes, offset: int) -> tuple[str, int]:
    """Read ASCII text from ``offset`` up to the next CR or LF; return it and the end index."""
    end = offset
    while end < len(data) and data[end] not in LINE_BREAK_BYTES:
        end += 1
    return data[offset:end].decode("latin-1"), end


def _parse_status_line(response: HttpResponse, line: str) -> None:
    parts = line.split(" ", STATUS_LINE_PARTS - 1)
    if len(parts) != STATUS_LINE_PARTS:
        raise MalformedResponse(f"Invalid status line: {line!r}")
    version, status, message = parts
    try:
        status_code = int(status)
    except ValueError as exc:
        raise MalformedResponse(f"Invalid status code: {status!r}") from exc
    response.version = version
    response.set_status(status_code, message)


def decode_chunked(data: bytes, offset: int = 0) -> bytes:
    """Decode a chunked transfer-encoded body starting at ``offset``.

    Decoding ends when the input is exhausted rather than at the zero-size
    chunk, so bytes following the terminal chunk are read as further chunks.
    """
    output = bytearray()
    while offset < len(data):
        chunk_size = 0
        while offset < len(data) and data[offset] != CR:
            digit = HEX_DIGITS.get(data[offset])
            if digit is not None:
                chunk_size = chunk_size * 16 + digit
            elif data[offset] != SPACE:
                DECODER_LOGGER.info(
                    "Unexpected character in chunk size",
                    extra={
                        "event": "chunk_size_invalid_char",
                        "character": chr(data[offset]),
                        "chunk_size": chunk_size,
                    },
                )
            offset += 1
        if offset >= len(data):
            DECODER_LOGGER.warning(
                "Chunk size line without terminator",
                extra={"event": "chunk_size_unterminated"},
            )
            break

        offset += 2
        chunk = data[offset : offset + chunk_size]
        if len(chunk) < chunk_size:
            DECODER_LOGGER.warning(
                "Chunk truncated by end of input",
                extra={
                    "event": "chunk_truncated",
                    "chunk_size": chunk_size,
                    "bytes_in": len(chunk),
                },
            )
        output.extend(chunk)
        offset += chunk_size + 2
    return bytes(output)


def decode_into(response: HttpResponse, data: bytes) -> None:
    """Populate ``response`` from the complete raw response ``data``."""
    data = bytes(data)
    status_line, offset = _next_line(data, 0)
    _parse_status_line(response, status_line)

    while offset < len(data):
        line, offset = _next_line(data, offset + 2)
        name, separator, value = line.partition(":")
        if not separator:
            break
        response.set_header(name.strip(), value.strip())
    offset += 2

    transfer_encoding = response.get_header(HEADER_TRANSFER_ENCODING)
    if (
        transfer_encoding is not None
        and transfer_encoding.strip().lower() == TRANSFER_ENCODING_CHUNKED
    ):
        response.set_content(decode_chunked(data, offset), False)
    else:
        response.set_content(data[offset:], False)


def decode_response(data: bytes) -> HttpResponse:
    """Decode a complete raw HTTP response into a new :class:`HttpResponse`."""
    response = HttpResponse()
    decode_into(response, data)
    return response
