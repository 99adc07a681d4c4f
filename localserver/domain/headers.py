"""Header collection and structured header-value parsing."""

from collections.abc import MutableMapping
from typing import Iterator, Optional

QUOTE_CHARACTERS = ('"', "'")


class HeaderMap(MutableMapping):
    """Case-preserving header mapping with case-insensitive keys.

    Lookups, overwrites and removals compare names case-insensitively. Iteration
    yields the spelling used by the most recent write, which is also the spelling
    emitted on the wire.
    """

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._entries: dict[str, tuple[str, str]] = {}
        if initial:
            self.update(initial)

    def __setitem__(self, name: str, value: str) -> None:
        self._entries[name.lower()] = (name, value)

    def __getitem__(self, name: str) -> str:
        return self._entries[name.lower()][1]

    def __delitem__(self, name: str) -> None:
        del self._entries[name.lower()]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def __repr__(self) -> str:
        return f"HeaderMap({dict(self.items())!r})"

    def lower_items(self) -> dict[str, str]:
        """Return a plain dict keyed by lower-cased header names."""
        return {key: value for key, (_, value) in self._entries.items()}


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] in QUOTE_CHARACTERS and value[-1] == value[0]:
        return value[1:-1]
    return value


def parse_header_value(value: str) -> tuple[str, dict[str, Optional[str]]]:
    """Split a structured header value into its main value and parameters.

    ``text/html; charset="UTF-8"`` gives ``("text/html", {"charset": "UTF-8"})``.
    Parameter names are lower-cased; a parameter without ``=`` maps to ``None``.
    """
    main_value, _, tail = value.partition(";")
    parameters: dict[str, Optional[str]] = {}
    if not tail:
        return main_value.strip(), parameters

    for segment in tail.split(";"):
        if not segment.strip():
            continue
        name, separator, raw_value = segment.partition("=")
        name = name.strip().lower()
        if separator:
            parameters[name] = _strip_quotes(raw_value.strip())
        else:
            parameters[name] = None
    return main_value.strip(), parameters
