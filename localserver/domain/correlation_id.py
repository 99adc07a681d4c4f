"""Connection ids attached to log records while a connection is being serviced."""

import contextvars
import itertools
import logging
from contextlib import contextmanager
from typing import Any, Iterator, MutableMapping, Optional

PROJECT_LOGGER_PREFIX = "localserver."
NO_CONNECTION = "-"

_connection_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "connection_id", default=None
)
_connection_counter = itertools.count(1)


def generate_correlation_id() -> str:
    """Return the next ``conn-N`` id; ids are unique for the life of the process."""
    return f"conn-{next(_connection_counter)}"


def get_correlation_id() -> Optional[str]:
    return _connection_id_var.get()


@contextmanager
def connection_scope(connection_id: Optional[str] = None) -> Iterator[str]:
    """Tag log records emitted inside the block with ``connection_id``.

    A fresh id is generated when none is given. The previous id is restored on
    exit, so scopes nest and never leak into the next connection serviced by
    the same thread.
    """
    if connection_id is None:
        connection_id = generate_correlation_id()
    token = _connection_id_var.set(connection_id)
    try:
        yield connection_id
    finally:
        _connection_id_var.reset(token)


def component_name(logger_name: str) -> str:
    """``localserver.transport.loop`` -> ``transport.loop``."""
    if logger_name.startswith(PROJECT_LOGGER_PREFIX):
        return logger_name[len(PROJECT_LOGGER_PREFIX) :]
    return logger_name


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Adds ``correlation_id`` and ``component`` to every record.

    Keys given to the adapter itself are defaults for each call; a call's own
    ``extra`` wins on conflict.
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})

        connection_id = get_correlation_id()
        extra["correlation_id"] = (
            connection_id if connection_id is not None else NO_CONNECTION
        )
        extra.setdefault("component", component_name(self.logger.name))
        kwargs["extra"] = extra
        return msg, kwargs
