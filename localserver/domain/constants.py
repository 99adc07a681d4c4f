"""HTTP protocol constants shared by the message model, parsers and servlets."""

from http import HTTPStatus

VERSION_1_1 = "HTTP/1.1"

METHOD_GET = "GET"
METHOD_POST = "POST"
METHOD_PUT = "PUT"
METHOD_HEAD = "HEAD"
METHOD_DELETE = "DELETE"
METHOD_OPTIONS = "OPTIONS"
METHOD_TRACE = "TRACE"

HEADER_CONNECTION = "Connection"
HEADER_CONTENT_DISPOSITION = "Content-Disposition"
HEADER_CONTENT_LENGTH = "Content-Length"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_DATE = "Date"
HEADER_TRANSFER_ENCODING = "Transfer-Encoding"

CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"
CONTENT_TYPE_MULTIPART = "multipart/form-data"
TRANSFER_ENCODING_CHUNKED = "chunked"

STATUS_CODE_200_OK = 200
STATUS_MESSAGE_200_OK = "OK"


def reason_phrase(status_code: int) -> str:
    """Return the standard reason phrase for a status code, or an empty string."""
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""
