"""Incremental HTTP request parser driven by successive socket buffers."""

import logging
from typing import Optional, Union

from localserver.domain.constants import HEADER_CONTENT_LENGTH
from localserver.domain.correlation_id import CorrelationLoggerAdapter
from localserver.domain.message import HttpRequest
from localserver.pipeline.header_scanner import (
    WHITESPACE,
    ParserState,
    ParseStage,
    scan_header_character,
)

PARSER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("localserver.parser"), {})

REQUEST_LINE_STAGES = (ParseStage.METHOD, ParseStage.TARGET, ParseStage.VERSION)

Buffer = Union[bytes, bytearray, memoryview]


def _is_valid_length(value: str) -> bool:
    try:
        return int(value.strip()) >= 0
    except ValueError:
        return False


class RequestParser:
    """Builds an :class:`HttpRequest` from bytes fed in any number of pieces.

    Input is consumed strictly left to right. Once the declared Content-Length
    has been received the parser is ready and ignores anything fed afterwards.
    """

    def __init__(self, request: Optional[HttpRequest] = None) -> None:
        self.request = request if request is not None else HttpRequest()
        self.state = ParserState()
        self._expected_length = 0

    def feed_bytes(self, data: Buffer) -> None:
        """Consume ``data``; may be called repeatedly with successive buffers."""
        view = memoryview(data).cast("B")
        index = 0
        size = len(view)
        while index < size and self.state.stage is not ParseStage.END:
            if self.state.stage is ParseStage.BODY:
                index += self._consume_body(view[index:])
                continue

            char = chr(view[index])
            index += 1
            if self.state.stage in REQUEST_LINE_STAGES:
                self._scan_request_line(char)
                continue

            header = scan_header_character(self.state, char)
            if header is not None:
                self.request.set_header(*header)
            if self.state.headers_done:
                self._begin_body()

    def is_ready(self) -> bool:
        return self.state.stage is ParseStage.END

    def _scan_request_line(self, char: str) -> None:
        state = self.state
        if char in WHITESPACE:
            if state.parsing:
                token = state.close_token()
                if state.stage is ParseStage.METHOD:
                    self.request.method = token
                    state.stage = ParseStage.TARGET
                elif state.stage is ParseStage.TARGET:
                    self.request.target = token
                    state.stage = ParseStage.VERSION
                else:
                    self.request.version = token
                    state.stage = ParseStage.HEADER_NAME
        else:
            state.append(char)
        state.count_newline(char)

    def _begin_body(self) -> None:
        state = self.state
        state.stage = ParseStage.BODY
        state.token.clear()
        state.parsing = False
        state.current_header = None

        declared = self.request.get_header(HEADER_CONTENT_LENGTH)
        self._expected_length = self.request.content_length
        if declared is not None and not _is_valid_length(declared):
            PARSER_LOGGER.warning(
                "Unusable Content-Length treated as zero",
                extra={"event": "malformed_content_length", "value": declared},
            )
        if self._expected_length == 0:
            self._finish()

    def _consume_body(self, chunk: memoryview) -> int:
        state = self.state
        needed = self._expected_length - state.body_length
        taken = chunk[:needed]
        state.body.extend(taken)
        state.body_length += len(taken)
        if state.body_length >= self._expected_length:
            self._finish()
        return len(taken)

    def _finish(self) -> None:
        self.request.set_content(bytes(self.state.body), False)
        self.state.stage = ParseStage.END
        if PARSER_LOGGER.logger.isEnabledFor(logging.DEBUG):
            PARSER_LOGGER.debug(
                "Request parsed",
                extra={
                    "event": "request_parsed",
                    "method": self.request.method,
                    "route": self.request.target,
                    "bytes_in": self.state.body_length,
                },
            )
