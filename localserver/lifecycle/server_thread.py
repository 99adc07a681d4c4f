"""Background server threads: start, stop and delayed stop of one listening server."""

import logging
import threading
import time
from typing import Any, Optional, Protocol

from localserver.bootstrap.config import DEFAULT_HOST
from localserver.domain.correlation_id import CorrelationLoggerAdapter
from localserver.domain.errors import ServerStartError
from localserver.transport.event_loop import ConnectionMultiplexer
from localserver.transport.host_adapter import HostHTTPServer

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("localserver.lifecycle"), {})

Endpoint = tuple[str, int]


class ServerThread(Protocol):
    """Operations shared by every server variant."""

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def stop_later(self, delay: float) -> bool: ...

    @property
    def endpoint(self) -> Optional[Endpoint]: ...


class DelayedStop:
    """Schedules at most one deferred call to a stop function."""

    def __init__(self, stop) -> None:
        self._stop = stop
        self._lock = threading.Lock()
        self._scheduled = False
        self._timer: Optional[threading.Timer] = None

    def schedule(self, delay: float) -> bool:
        """Start the timer unless one was already scheduled; return whether it was started."""
        with self._lock:
            if self._scheduled:
                return False
            self._scheduled = True
            self._timer = threading.Timer(delay, self._stop)
            self._timer.daemon = True
            self._timer.start()
        LIFECYCLE_LOGGER.info(
            "Delayed stop scheduled",
            extra={"event": "stop_scheduled", "delay_seconds": delay},
        )
        return True

    def reset(self) -> None:
        with self._lock:
            self._scheduled = False
            self._timer = None


class LocalServerThread:
    """Runs a :class:`ConnectionMultiplexer` on a daemon thread.

    ``start`` returns once the listening socket is bound, or once binding has
    failed, in which case ``endpoint`` stays ``None``. ``stop`` interrupts the
    loop and waits until it has exited.
    """

    def __init__(self, port: int, handler: Any, host: str = DEFAULT_HOST) -> None:
        self.port = port
        self.host = host
        self.handler = handler
        self._run_lock = threading.RLock()
        self._start_signal = threading.Semaphore(0)
        self._multiplexer: Optional[ConnectionMultiplexer] = None
        self._thread: Optional[threading.Thread] = None
        self._started_at: Optional[float] = None
        self._delayed_stop = DelayedStop(self.stop)

    def start(self) -> None:
        self._delayed_stop.reset()
        self._multiplexer = ConnectionMultiplexer(
            self.handler,
            self.port,
            self._start_signal,
            self._run_lock,
            host=self.host,
        )
        self._thread = threading.Thread(
            target=self._multiplexer.run,
            name=f"localserver-{self.port}",
            daemon=True,
        )
        self._started_at = time.monotonic()
        self._thread.start()
        self._start_signal.acquire()

        endpoint = self._multiplexer.endpoint
        if endpoint is None:
            LIFECYCLE_LOGGER.error(
                "Server failed to start",
                extra={"event": "server_start_failed", "port": self.port},
            )
            return
        LIFECYCLE_LOGGER.info(
            "Server started",
            extra={
                "event": "server_started",
                "implementation": "localserver",
                "endpoint": f"{endpoint[0]}:{endpoint[1]}",
            },
        )

    def stop(self) -> None:
        multiplexer = self._multiplexer
        if multiplexer is None:
            return
        multiplexer.interrupt()
        with self._run_lock:
            pass
        LIFECYCLE_LOGGER.info(
            "Server stopped",
            extra={
                "event": "server_stopped",
                "implementation": "localserver",
                "uptime_seconds": _uptime(self._started_at),
            },
        )

    def stop_later(self, delay: float) -> bool:
        return self._delayed_stop.schedule(delay)

    @property
    def endpoint(self) -> Optional[Endpoint]:
        if self._multiplexer is None:
            return None
        return self._multiplexer.endpoint


class HostServerThread:
    """Runs the standard library threading HTTP server on a daemon thread."""

    def __init__(self, port: int, handler: Any, host: str = DEFAULT_HOST) -> None:
        self.port = port
        self.host = host
        self.handler = handler
        self._server: Optional[HostHTTPServer] = None
        self._thread: Optional[threading.Thread] = None
        self._started_at: Optional[float] = None
        self._delayed_stop = DelayedStop(self.stop)

    def start(self) -> None:
        self._delayed_stop.reset()
        try:
            self._server = HostHTTPServer((self.host, self.port), self.handler)
        except OSError as error:
            raise ServerStartError(
                f"Unable to bind {self.host!r} port {self.port}"
            ) from error

        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name=f"localserver-host-{self.port}",
            daemon=True,
        )
        self._started_at = time.monotonic()
        self._thread.start()
        endpoint = self.endpoint
        LIFECYCLE_LOGGER.info(
            "Server started",
            extra={
                "event": "server_started",
                "implementation": "host",
                "endpoint": f"{endpoint[0]}:{endpoint[1]}",
            },
        )

    def stop(self) -> None:
        server = self._server
        if server is None:
            return
        self._server = None
        server.shutdown()
        server.server_close()
        LIFECYCLE_LOGGER.info(
            "Server stopped",
            extra={
                "event": "server_stopped",
                "implementation": "host",
                "uptime_seconds": _uptime(self._started_at),
            },
        )

    def stop_later(self, delay: float) -> bool:
        return self._delayed_stop.schedule(delay)

    @property
    def endpoint(self) -> Optional[Endpoint]:
        server = self._server
        if server is None:
            return None
        host, port = server.server_address[:2]
        return host, port


def _uptime(started_at: Optional[float]) -> float:
    if started_at is None:
        return 0.0
    return round(time.monotonic() - started_at, 3)
