"""Unit tests for urlencoded and multipart form decoding."""

from localserver.pipeline.forms import (
    FormErrorKind,
    decode_form,
    decode_multipart,
    decode_urlencoded,
)


def test_urlencoded_pairs():
    """Pairs separated by ampersands become parameters."""
    form = decode_urlencoded("a=1&b=2")

    assert form.ok
    assert form.parameters == {"a": "1", "b": "2"}


def test_urlencoded_percent_and_plus_decoding():
    """Percent escapes and plus signs are decoded as UTF-8."""
    form = decode_urlencoded("a=hello%20world&b=x+y&name%C3%A9=caf%C3%A9")

    assert form.parameters == {"a": "hello world", "b": "x y", "namé": "café"}


def test_urlencoded_value_may_contain_equals():
    """Only the first equals sign separates name from value."""
    assert decode_urlencoded("token=abc==").parameters == {"token": "abc=="}


def test_urlencoded_skips_empty_items():
    """Empty items between ampersands are ignored."""
    assert decode_urlencoded("&a=1&&b=&").parameters == {"a": "1", "b": ""}


def test_urlencoded_item_without_equals_is_an_error():
    """A bare item rejects the whole body."""
    form = decode_urlencoded("a=1&flag")

    assert not form.ok
    assert form.error.kind is FormErrorKind.MALFORMED_PARAMETER
    assert form.parameters == {}


def test_multipart_single_field():
    """A text field is read from its Content-Disposition name."""
    body = (
        "--XYZ\r\n"
        'Content-Disposition: form-data; name="field1"\r\n'
        "\r\n"
        "value1\r\n"
        "--XYZ--"
    )

    form = decode_multipart(body, "XYZ")

    assert form.ok
    assert form.parameters == {"field1": "value1"}


def test_multipart_several_fields_and_preamble():
    """Text before the first marker is ignored and every part is read."""
    body = (
        "preamble\r\n"
        "--b0undary\r\n"
        'Content-Disposition: form-data; name="first"\r\n'
        "Content-Type: text/plain\r\n"
        "\r\n"
        "one\r\n"
        "--b0undary\r\n"
        "Content-Disposition: form-data; name=second\r\n"
        "\r\n"
        "two words\r\n"
        "--b0undary--\r\n"
    )

    form = decode_multipart(body, "b0undary")

    assert form.parameters == {"first": "one", "second": "two words"}


def test_multipart_without_closing_marker_reads_to_end():
    """The last value runs to the end of the content without a closing marker."""
    body = '--XYZ\r\nContent-Disposition: form-data; name="tail"\r\n\r\nlast value\r\n'

    assert decode_multipart(body, "XYZ").parameters == {"tail": "last value"}


def test_multipart_part_without_disposition_is_skipped():
    """Parts that carry no field name contribute nothing."""
    body = "--XYZ\r\nContent-Type: text/plain\r\n\r\norphan\r\n--XYZ--"

    assert decode_multipart(body, "XYZ").parameters == {}


def test_multipart_missing_boundary():
    """Without a boundary the body cannot be split into parts."""
    form = decode_multipart("--XYZ\r\n\r\nvalue\r\n--XYZ--", None)

    assert not form.ok
    assert form.error.kind is FormErrorKind.MISSING_BOUNDARY


def test_decode_form_selects_decoder_by_content_type():
    """Only form content types are decoded."""
    assert decode_form("a=1", "application/x-www-form-urlencoded", None).parameters == {
        "a": "1"
    }
    assert decode_form("a=1", "text/plain", None).parameters == {}
    assert decode_form("a=1", None, None).ok
