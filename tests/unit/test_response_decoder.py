"""Unit tests for decoding raw HTTP responses."""

import logging

import pytest

from localserver.domain.errors import MalformedResponse, ProtocolMalformed
from localserver.domain.message import HttpResponse
from localserver.pipeline.response_decoder import decode_chunked, decode_response


def test_decode_plain_response():
    """Status line, headers and body are decoded."""
    response = decode_response(
        b"HTTP/1.1 404 Not Found\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"Content-Length: 7\r\n"
        b"\r\n"
        b"missing"
    )

    assert response.version == "HTTP/1.1"
    assert response.status_code == 404
    assert response.status_message == "Not Found"
    assert response.content_type == "text/plain"
    assert response.charset == "utf-8"
    assert response.get_content() == "missing"


def test_status_message_may_contain_spaces():
    """Everything after the status code is the reason phrase."""
    response = decode_response(b"HTTP/1.1 500 Internal Server Error\r\n\r\n")

    assert response.status_message == "Internal Server Error"
    assert response.content_bytes == b""


def test_decode_chunked_response():
    """Chunked bodies are reassembled."""
    response = decode_response(
        b"HTTP/1.1 200 OK\r\n"
        b"Transfer-Encoding: chunked\r\n"
        b"\r\n"
        b"4\r\nWiki\r\n5\r\npedia\r\n0\r\n\r\n"
    )

    assert response.get_content() == "Wikipedia"


def test_transfer_encoding_is_matched_case_insensitively():
    """A differently cased chunked token still selects chunked decoding."""
    response = HttpResponse.from_bytes(
        b"HTTP/1.1 200 OK\r\ntransfer-encoding: Chunked \r\n\r\n3\r\nabc\r\n0\r\n\r\n"
    )

    assert response.content_bytes == b"abc"


def test_decode_chunked_hex_sizes():
    """Chunk sizes are hexadecimal in either case."""
    payload = b"x" * 26
    data = b"1A\r\n" + payload + b"\r\n1a\r\n" + payload + b"\r\n0\r\n\r\n"

    assert decode_chunked(data) == payload * 2


def test_decode_chunked_truncated_input(caplog):
    """A chunk cut short keeps the bytes that arrived."""
    with caplog.at_level(logging.WARNING, logger="localserver"):
        assert decode_chunked(b"a\r\nabc") == b"abc"

    assert any(
        getattr(record, "event", None) == "chunk_truncated" for record in caplog.records
    )


def test_decode_chunked_unterminated_size_line():
    """A size line without CR ends decoding."""
    assert decode_chunked(b"3\r\nabc\r\n5") == b"abc"


def test_decode_chunked_ignores_invalid_size_characters(caplog):
    """Characters outside hex digits and spaces are logged and skipped."""
    with caplog.at_level(logging.INFO, logger="localserver"):
        assert decode_chunked(b"3;x\r\nabc\r\n0\r\n\r\n") == b"abc"

    assert any(
        getattr(record, "event", None) == "chunk_size_invalid_char"
        for record in caplog.records
    )


def test_response_round_trip():
    """A serialized response decodes back to the same fields."""
    original = HttpResponse(404, "Not Found")
    original.set_header("X-A", "1")
    original.set_content_type("text/plain")
    original.set_charset("utf-8")
    original.set_content("héllo")

    decoded = decode_response(original.to_bytes())

    assert decoded.version == original.version
    assert decoded.status_code == 404
    assert decoded.status_message == "Not Found"
    assert decoded.headers.lower_items() == original.headers.lower_items()
    assert decoded.content_bytes == "héllo".encode("utf-8")
    assert decoded.get_content() == "héllo"


@pytest.mark.parametrize(
    "raw",
    [b"garbage\r\n\r\n", b"HTTP/1.1 abc Broken\r\n\r\n", b""],
)
def test_malformed_status_line(raw):
    """Responses that do not start with a status line are rejected."""
    with pytest.raises(MalformedResponse):
        decode_response(raw)


def test_malformed_response_is_a_value_error():
    """Decoding failures belong to the protocol error family."""
    assert issubclass(MalformedResponse, ProtocolMalformed)
    assert issubclass(MalformedResponse, ValueError)
