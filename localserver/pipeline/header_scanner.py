"""Character-level header tokenizer shared by the request parser and multipart decoder."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

WHITESPACE = frozenset(" \t\n\r\x0b\x0c\x1c\x1d\x1e\x1f")
LINE_BREAKS = frozenset("\r\n")


class ParseStage(Enum):
    """Stages of an HTTP request, in the order they are consumed."""

    METHOD = "method"
    TARGET = "target"
    VERSION = "version"
    HEADER_NAME = "header_name"
    HEADER_VALUE = "header_value"
    BODY = "body"
    END = "end"


@dataclass
class ParserState:
    """Scratch state of one parse, reset token by token."""

    stage: ParseStage = ParseStage.METHOD
    token: list[str] = field(default_factory=list)
    parsing: bool = False
    current_header: Optional[str] = None
    newline_count: int = 0
    body: bytearray = field(default_factory=bytearray)
    body_length: int = 0

    def append(self, char: str) -> None:
        self.token.append(char)
        self.parsing = True

    def close_token(self) -> str:
        """Return the accumulated token and reset the token buffer."""
        token = "".join(self.token)
        self.token.clear()
        self.parsing = False
        return token

    def count_newline(self, char: str) -> None:
        if char == "\n":
            self.newline_count += 1
        elif char != "\r":
            self.newline_count = 0

    @property
    def headers_done(self) -> bool:
        return self.newline_count >= 2


def scan_header_character(
    state: ParserState, char: str
) -> Optional[tuple[str, str]]:
    """Consume one character of a header block.

    Returns the ``(name, value)`` pair completed by this character, if any. The
    caller checks ``state.headers_done`` afterwards to detect the blank line.
    """
    completed = None
    if state.stage is ParseStage.HEADER_NAME:
        if char in WHITESPACE or char == ":":
            if state.parsing and char == ":":
                state.current_header = state.close_token()
                state.stage = ParseStage.HEADER_VALUE
        else:
            state.append(char)
    elif char in LINE_BREAKS:
        if state.parsing or state.current_header is not None:
            completed = (state.current_header or "", state.close_token())
            state.current_header = None
            state.stage = ParseStage.HEADER_NAME
    elif state.parsing or char != " ":
        state.append(char)

    state.count_newline(char)
    return completed
