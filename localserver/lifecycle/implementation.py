"""Selection of the server variant backing a :class:`LocalServer`."""

from enum import Enum
from typing import Any, Callable, Union

from localserver.bootstrap.config import DEFAULT_HOST
from localserver.lifecycle.server_thread import (
    HostServerThread,
    LocalServerThread,
    ServerThread,
)


class ServerImplementation(Enum):
    LOCALSERVER = "localserver"
    HOST = "host"


ServerThreadFactory = Callable[[int, Any, str], ServerThread]

SERVER_THREAD_FACTORIES: dict[ServerImplementation, ServerThreadFactory] = {
    ServerImplementation.LOCALSERVER: LocalServerThread,
    ServerImplementation.HOST: HostServerThread,
}


def create_server_thread(
    implementation: Union[ServerImplementation, str],
    port: int,
    handler: Any,
    host: str = DEFAULT_HOST,
) -> ServerThread:
    """Build the server thread registered for ``implementation``."""
    factory = SERVER_THREAD_FACTORIES[ServerImplementation(implementation)]
    return factory(port, handler, host)
