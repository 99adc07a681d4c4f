"""HTTP message model shared by requests and responses."""

import codecs
import io
import logging
from email.utils import formatdate
from typing import TYPE_CHECKING, BinaryIO, Iterator, Optional, Union

from localserver.domain.constants import (
    CONTENT_TYPE_FORM,
    HEADER_CONNECTION,
    HEADER_CONTENT_LENGTH,
    HEADER_CONTENT_TYPE,
    HEADER_DATE,
    METHOD_GET,
    METHOD_POST,
    STATUS_CODE_200_OK,
    STATUS_MESSAGE_200_OK,
    VERSION_1_1,
)
from localserver.domain.correlation_id import CorrelationLoggerAdapter
from localserver.domain.headers import HeaderMap, parse_header_value

if TYPE_CHECKING:
    from localserver.pipeline.forms import FormData

MESSAGE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("localserver.message"), {})

DEFAULT_CHARSET = "utf-8"
HEADER_TEXT_ENCODING = "ascii"

Content = Union[str, bytes, bytearray, memoryview]


def _is_known_charset(name: str) -> bool:
    try:
        codecs.lookup(name)
    except LookupError:
        return False
    return True


class HttpMessage:
    """Fields common to HTTP requests and responses.

    The ``Content-Type`` header and the ``content_type``/``charset``/
    ``form_boundary`` attributes are kept in sync: setting the header re-derives
    the attributes, and changing the attributes re-emits the header.
    """

    def __init__(self, version: str = "") -> None:
        self.version = version
        self._headers = HeaderMap()
        self._content = bytearray()
        self.content_type: Optional[str] = None
        self.charset: Optional[str] = None
        self.form_boundary: Optional[str] = None

    # Headers

    def set_header(self, name: str, value: str) -> None:
        """Store or overwrite a header, re-deriving content metadata for Content-Type."""
        self._headers[name] = value
        if value is not None and name.lower() == HEADER_CONTENT_TYPE.lower():
            self._apply_content_type(value)

    def _apply_content_type(self, value: str) -> None:
        main_value, parameters = parse_header_value(value)
        self.content_type = main_value
        charset_name = parameters.get("charset")
        if charset_name:
            if _is_known_charset(charset_name):
                self.charset = charset_name
            else:
                MESSAGE_LOGGER.warning(
                    "Unknown charset ignored",
                    extra={"event": "unknown_charset", "charset": charset_name},
                )
        self.form_boundary = parameters.get("boundary")

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._headers.get(name, default)

    def remove_header(self, name: str) -> None:
        self._headers.pop(name, None)

    def clear_headers(self) -> None:
        self._headers.clear()

    @property
    def headers(self) -> HeaderMap:
        return self._headers

    # Content

    @property
    def encoding(self) -> str:
        """Codec used for text content: the declared charset or the default."""
        return self.charset if self.charset else DEFAULT_CHARSET

    def set_content(self, content: Content, refresh: bool = True) -> None:
        """Replace the content; with ``refresh`` update Content-Length and Content-Type."""
        self._content.clear()
        self.append_content(content, refresh)

    def append_content(self, content: Content, refresh: bool = True) -> None:
        """Append text (encoded with the current charset) or raw bytes to the content."""
        if isinstance(content, str):
            content = content.encode(self.encoding, errors="replace")
        self._content.extend(content)

        if refresh:
            self._headers[HEADER_CONTENT_LENGTH] = str(len(self._content))
            self.refresh_content_type()

    @property
    def content_bytes(self) -> bytes:
        return bytes(self._content)

    @property
    def content_length(self) -> int:
        """Integer value of the Content-Length header, 0 when absent or invalid."""
        value = self._headers.get(HEADER_CONTENT_LENGTH)
        if value is None:
            return 0
        try:
            length = int(value.strip())
        except ValueError:
            return 0
        return max(length, 0)

    def get_content(self) -> str:
        """Decode the content with the current charset."""
        return self._content.decode(self.encoding, errors="replace")

    def set_content_type(self, content_type: str) -> None:
        self.content_type = content_type
        self.refresh_content_type()

    def set_charset(self, charset: Optional[str]) -> None:
        if charset is not None and not _is_known_charset(charset):
            raise LookupError(f"unknown charset: {charset}")
        self.charset = charset
        self.refresh_content_type()

    def refresh_content_type(self) -> None:
        """Re-emit the Content-Type header from ``content_type`` and ``charset``."""
        if self.content_type is None:
            return
        value = self.content_type
        if self.charset:
            value += f"; charset={self.charset}"
        self._headers[HEADER_CONTENT_TYPE] = value

    # Serialization

    def first_line(self) -> str:
        raise NotImplementedError

    def _header_lines(self) -> Iterator[str]:
        yield self.first_line()
        for name, value in self._headers.items():
            yield f"{name}: {value}"

    def header_bytes(self) -> bytes:
        """Encode the first line, headers and blank line terminator."""
        text = "".join(f"{line}\r\n" for line in self._header_lines()) + "\r\n"
        return text.encode(HEADER_TEXT_ENCODING, errors="replace")

    def write_header(self, stream: BinaryIO) -> None:
        stream.write(self.header_bytes())

    def to_bytes(self) -> bytes:
        return self.header_bytes() + bytes(self._content)

    def __str__(self) -> str:
        head = "".join(f"{line}\r\n" for line in self._header_lines())
        return f"{head}\r\n{self.get_content()}"


class HttpRequest(HttpMessage):
    """An HTTP request: method and target plus message fields."""

    def __init__(self, method: str = "", target: str = "", version: str = "") -> None:
        super().__init__(version)
        self.method = method
        self.target = target
        self._form_data: Optional["FormData"] = None

    def configure_defaults(self) -> None:
        """Reset to a single ``GET /`` request with plain ASCII text content."""
        self.method = METHOD_GET
        self.target = "/"
        self.version = VERSION_1_1
        self.set_content_type("text/plain")
        self.set_charset("ascii")

        self.clear_headers()
        self.set_header(HEADER_CONNECTION, "close")

    def first_line(self) -> str:
        return f"{self.method} {self.target} {self.version}"

    @property
    def form_data(self) -> "FormData":
        """Decoded form parameters; built once, and only for POST requests."""
        # pylint: disable=import-outside-toplevel
        from localserver.pipeline.forms import FormData, decode_form

        if self.method.upper() != METHOD_POST:
            return FormData()
        if self._form_data is None:
            self._form_data = decode_form(
                self.get_content(), self.content_type, self.form_boundary
            )
        return self._form_data

    @property
    def parameters(self) -> dict[str, str]:
        return self.form_data.parameters

    def get_parameter(self, name: str) -> Optional[str]:
        return self.form_data.parameters.get(name)

    def is_form(self) -> bool:
        return self.content_type == CONTENT_TYPE_FORM

    def input_stream(self) -> io.BytesIO:
        return io.BytesIO(self.content_bytes)

    def reader(self) -> io.StringIO:
        return io.StringIO(self.get_content())


class _ContentOutputStream(io.BytesIO):
    """Byte stream whose flush and close append the written bytes to a response."""

    def __init__(self, message: HttpMessage) -> None:
        super().__init__()
        self._message = message

    def _commit(self) -> None:
        data = self.getvalue()
        if data:
            self._message.append_content(data, True)
        self.seek(0)
        self.truncate(0)

    def flush(self) -> None:
        if not self.closed:
            self._commit()
        super().flush()

    def close(self) -> None:
        if not self.closed:
            self._commit()
        super().close()


class HttpResponse(HttpMessage):
    """An HTTP response: status code and message plus message fields."""

    def __init__(
        self,
        status_code: int = STATUS_CODE_200_OK,
        status_message: str = STATUS_MESSAGE_200_OK,
        version: str = VERSION_1_1,
    ) -> None:
        super().__init__(version)
        self.status_code = status_code
        self.status_message = status_message

    @classmethod
    def from_bytes(cls, data: bytes) -> "HttpResponse":
        """Decode a complete raw HTTP response."""
        # pylint: disable=import-outside-toplevel
        from localserver.pipeline.response_decoder import decode_into

        response = cls()
        decode_into(response, data)
        return response

    def configure_defaults(self) -> None:
        """Reset headers to HTML content, a single exchange and the current date."""
        self.version = VERSION_1_1

        self.clear_headers()
        self.set_content_type("text/html")
        self.set_header(HEADER_CONNECTION, "close")
        self.set_header(HEADER_DATE, formatdate(usegmt=True))

    def set_status(self, status_code: int, status_message: str) -> None:
        self.status_code = status_code
        self.status_message = status_message

    def first_line(self) -> str:
        return f"{self.version} {self.status_code} {self.status_message}"

    def output_stream(self) -> io.BytesIO:
        """Binary stream appended to the content on ``flush()`` or ``close()``."""
        return _ContentOutputStream(self)

    def writer(self) -> io.TextIOWrapper:
        """Text stream encoded with the current charset, appended on flush or close."""
        return io.TextIOWrapper(self.output_stream(), encoding=self.encoding)
