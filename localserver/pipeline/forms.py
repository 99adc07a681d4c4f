"""Decoders for urlencoded and multipart form bodies."""

import logging
import urllib.parse
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from localserver.domain.constants import (
    CONTENT_TYPE_FORM,
    CONTENT_TYPE_MULTIPART,
    HEADER_CONTENT_DISPOSITION,
)
from localserver.domain.correlation_id import CorrelationLoggerAdapter
from localserver.domain.headers import HeaderMap, parse_header_value
from localserver.pipeline.header_scanner import (
    ParserState,
    ParseStage,
    scan_header_character,
)

FORMS_LOGGER = CorrelationLoggerAdapter(logging.getLogger("localserver.forms"), {})

FORM_CHARSET = "utf-8"
BOUNDARY_PREFIX = "--"


class FormErrorKind(Enum):
    """Reasons a form body could not be decoded."""

    MISSING_BOUNDARY = "missing_boundary"
    MALFORMED_PARAMETER = "malformed_parameter"


@dataclass(frozen=True)
class FormError:
    kind: FormErrorKind
    detail: str


@dataclass
class FormData:
    """Outcome of decoding a form body: parameters, or the reason decoding stopped."""

    parameters: dict[str, str] = field(default_factory=dict)
    error: Optional[FormError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def decode_form(
    content: str, content_type: Optional[str], boundary: Optional[str]
) -> FormData:
    """Decode ``content`` according to its content type."""
    if content_type == CONTENT_TYPE_FORM:
        return decode_urlencoded(content)
    if content_type == CONTENT_TYPE_MULTIPART:
        return decode_multipart(content, boundary)
    return FormData()


def decode_urlencoded(content: str) -> FormData:
    """Decode ``name=value`` pairs joined by ``&``.

    Each pair is split on its first ``=`` so values may contain ``=``. A pair
    without ``=`` rejects the whole body.
    """
    parameters: dict[str, str] = {}
    for item in content.split("&"):
        if not item:
            continue
        name, separator, value = item.partition("=")
        if not separator:
            FORMS_LOGGER.warning(
                "Malformed urlencoded parameter",
                extra={"event": "malformed_parameter", "parameter": item[:64]},
            )
            return FormData(
                error=FormError(FormErrorKind.MALFORMED_PARAMETER, item),
            )
        parameters[urllib.parse.unquote_plus(name, encoding=FORM_CHARSET)] = (
            urllib.parse.unquote_plus(value, encoding=FORM_CHARSET)
        )
    return FormData(parameters)


def _scan_part_headers(content: str, index: int) -> tuple[HeaderMap, int]:
    """Read a part's header block starting at ``index``; return headers and body start."""
    headers = HeaderMap()
    state = ParserState(stage=ParseStage.HEADER_NAME)
    while index < len(content) and not state.headers_done:
        header = scan_header_character(state, content[index])
        if header is not None:
            headers[header[0]] = header[1]
        index += 1
    return headers, index


def decode_multipart(content: str, boundary: Optional[str]) -> FormData:
    """Decode a ``multipart/form-data`` body into text field values."""
    if not boundary:
        return FormData(
            error=FormError(
                FormErrorKind.MISSING_BOUNDARY, "multipart body without boundary"
            ),
        )

    marker = BOUNDARY_PREFIX + boundary
    parameters: dict[str, str] = {}
    index = content.find(marker)
    while index != -1:
        index += len(marker)
        if content.startswith(BOUNDARY_PREFIX, index):
            break

        headers, index = _scan_part_headers(content, index)
        next_marker = content.find(marker, index)
        end = next_marker if next_marker != -1 else len(content)
        value = content[index:end].strip()

        disposition = headers.get(HEADER_CONTENT_DISPOSITION)
        if disposition is not None:
            _, disposition_parameters = parse_header_value(disposition)
            name = disposition_parameters.get("name")
            if name is not None:
                parameters[name] = value
        else:
            FORMS_LOGGER.debug(
                "Multipart part without Content-Disposition skipped",
                extra={"event": "multipart_part_skipped"},
            )

        index = next_marker
    return FormData(parameters)
