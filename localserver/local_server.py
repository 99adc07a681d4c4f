"""Public entry point for embedding a throwaway HTTP server."""

import logging
import random
from typing import Any, Optional, Union

import requests

from localserver.bootstrap.config import (
    DEFAULT_HOST,
    DEFAULT_START_RETRIES,
    PROBE_TIMEOUT_SECONDS,
    RANDOM_PORT_MAX,
    RANDOM_PORT_MIN,
)
from localserver.domain.correlation_id import CorrelationLoggerAdapter
from localserver.domain.errors import ServerStartError
from localserver.lifecycle.implementation import (
    ServerImplementation,
    create_server_thread,
)
from localserver.lifecycle.server_thread import Endpoint

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("localserver.server"), {})

PROBE_HOST = "localhost"
PROBE_OK_STATUS = 200


class LocalServer:
    """HTTP server running ``handler`` on a background thread.

    The requested port is a starting point: when it is taken the native
    implementation binds the next free port instead, so read :attr:`endpoint`
    after :meth:`start` to learn where the server listens.
    """

    def __init__(
        self,
        port: int,
        handler: Any,
        implementation: Union[ServerImplementation, str] = ServerImplementation.LOCALSERVER,
        host: str = DEFAULT_HOST,
    ) -> None:
        self.handler = handler
        self.implementation = ServerImplementation(implementation)
        self._server_thread = create_server_thread(
            self.implementation, port, handler, host
        )

    @classmethod
    def start_server_on_random_port(
        cls,
        handler: Any,
        implementation: Optional[Union[ServerImplementation, str]] = None,
        retries: Optional[int] = None,
    ) -> Optional["LocalServer"]:
        """Start a server on a random port and check that it answers ``GET /`` with 200.

        Each attempt picks a new port; when ``implementation`` is ``None`` the
        attempts cycle through every implementation. Returns ``None`` once
        ``retries`` attempts have failed.
        """
        implementations = list(ServerImplementation)
        retry_count = retries if retries is not None else DEFAULT_START_RETRIES

        for attempt in range(retry_count):
            port = random.randrange(RANDOM_PORT_MIN, RANDOM_PORT_MAX)
            chosen = (
                ServerImplementation(implementation)
                if implementation is not None
                else implementations[attempt % len(implementations)]
            )
            server = cls(port, handler, chosen)
            try:
                server.start()
            except ServerStartError:
                SERVER_LOGGER.debug(
                    "Random port start failed",
                    extra={
                        "event": "random_port_start_failed",
                        "attempt": attempt + 1,
                        "port": port,
                        "implementation": chosen.value,
                    },
                    exc_info=True,
                )
                continue

            if server.probe():
                SERVER_LOGGER.info(
                    "Server started on random port",
                    extra={
                        "event": "random_port_started",
                        "attempt": attempt + 1,
                        "endpoint": server.endpoint,
                        "implementation": chosen.value,
                    },
                )
                return server
            server.stop()

        SERVER_LOGGER.warning(
            "Unable to start a server on a random port",
            extra={"event": "random_port_exhausted", "attempt": retry_count},
        )
        return None

    def probe(self) -> bool:
        """Return True when the running server answers ``GET /`` with status 200."""
        endpoint = self.endpoint
        if endpoint is None:
            return False
        url = f"http://{PROBE_HOST}:{endpoint[1]}/"
        try:
            response = requests.get(url, timeout=PROBE_TIMEOUT_SECONDS)
        except requests.RequestException:
            SERVER_LOGGER.debug(
                "Unable to connect to local server",
                extra={"event": "probe_failed", "endpoint": endpoint},
                exc_info=True,
            )
            return False
        return response.status_code == PROBE_OK_STATUS

    def start(self) -> None:
        """Start serving; returns once the server is listening."""
        self._server_thread.start()

    def stop(self) -> None:
        self._server_thread.stop()

    def stop_later(self, delay: float) -> bool:
        """Stop after ``delay`` seconds; only the first call schedules a stop."""
        return self._server_thread.stop_later(delay)

    @property
    def endpoint(self) -> Optional[Endpoint]:
        """Bound ``(host, port)``, or ``None`` when the server is not running."""
        return self._server_thread.endpoint

    def __enter__(self) -> "LocalServer":
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()
