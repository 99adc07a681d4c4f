"""Single-threaded selector loop accepting, reading, dispatching and answering clients."""

import logging
import selectors
import socket
import threading
import time
from typing import Any, Optional

from localserver.bootstrap.config import DEFAULT_HOST, LISTEN_BACKLOG, MAX_PORT
from localserver.domain.correlation_id import CorrelationLoggerAdapter, connection_scope
from localserver.domain.errors import BindFailure
from localserver.pipeline.dispatch import invoke_handler, resolve_handler
from localserver.transport.connection import Connection

LOOP_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("localserver.transport.loop"), {"implementation": "localserver"}
)

_WAKE_KEY = object()


class ConnectionMultiplexer:
    """Event loop serving one request per connection on the calling thread.

    ``run`` holds ``run_lock`` for its whole duration and releases
    ``start_signal`` once the listening socket is bound and registered. Handlers
    run synchronously on the loop thread, so a slow handler delays every other
    connection.
    """

    def __init__(
        self,
        handler: Any,
        port: int,
        start_signal: threading.Semaphore,
        run_lock: threading.RLock,
        host: str = DEFAULT_HOST,
    ) -> None:
        self._handler = resolve_handler(handler)
        self.host = host
        self.port = port
        self._start_signal = start_signal
        self._run_lock = run_lock
        self._interrupted = threading.Event()
        self._wake_reader, self._wake_writer = socket.socketpair()
        self._wake_reader.setblocking(False)
        self._wake_writer.setblocking(False)
        self._connections: dict[str, Connection] = {}
        self.endpoint: Optional[tuple[str, int]] = None

    def interrupt(self) -> None:
        """Ask the loop to exit and wake it if it is waiting for socket activity."""
        self._interrupted.set()
        try:
            self._wake_writer.send(b"\0")
        except OSError:
            pass

    def is_interrupted(self) -> bool:
        return self._interrupted.is_set()

    def run(self) -> None:
        with self._run_lock:
            signaled = False
            try:
                with socket.socket(
                    socket.AF_INET, socket.SOCK_STREAM
                ) as server_socket, selectors.DefaultSelector() as selector:
                    self._bind(server_socket)
                    server_socket.listen(LISTEN_BACKLOG)
                    server_socket.setblocking(False)
                    selector.register(server_socket, selectors.EVENT_READ, data=None)
                    selector.register(
                        self._wake_reader, selectors.EVENT_READ, data=_WAKE_KEY
                    )
                    self._start_signal.release()
                    signaled = True
                    LOOP_LOGGER.info(
                        "Server listening for connections",
                        extra={
                            "event": "server_listening",
                            "host": self.endpoint[0],
                            "port": self.endpoint[1],
                        },
                    )
                    try:
                        while not self.is_interrupted():
                            self._handle_io(selector)
                    finally:
                        for connection in list(self._connections.values()):
                            self._close(connection, selector)
            except OSError as error:
                LOOP_LOGGER.error(
                    "Server loop terminated by an I/O error",
                    extra={
                        "event": "loop_io_error",
                        "endpoint": self.endpoint,
                        "error_type": type(error).__name__,
                    },
                    exc_info=True,
                )
            finally:
                self.endpoint = None
                self._wake_reader.close()
                self._wake_writer.close()
                if not signaled:
                    self._start_signal.release()
                LOOP_LOGGER.info("Server loop exited", extra={"event": "loop_exited"})

    def _bind(self, server_socket: socket.socket) -> None:
        """Bind to the configured port, moving to the next port while it is taken."""
        server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        port = self.port
        while True:
            try:
                server_socket.bind((self.host, port))
                break
            except OSError as error:
                LOOP_LOGGER.debug(
                    "Unable to bind to address",
                    extra={
                        "event": "bind_failed",
                        "host": self.host,
                        "port": port,
                        "error_type": type(error).__name__,
                    },
                )
                if port == 0 or port >= MAX_PORT:
                    raise BindFailure(
                        f"No port available from {self.port} on {self.host!r}"
                    ) from error
                port += 1
        host, bound_port = server_socket.getsockname()[:2]
        self.port = bound_port
        self.endpoint = (host, bound_port)

    def _handle_io(self, selector: selectors.BaseSelector) -> None:
        for key, mask in selector.select():
            if key.data is None:
                self._accept(key.fileobj, selector)
                continue
            if key.data is _WAKE_KEY:
                self._drain_wake()
                continue

            connection: Connection = key.data
            with connection_scope(connection.connection_id):
                self._service(connection, mask, selector)

    def _service(
        self, connection: Connection, mask: int, selector: selectors.BaseSelector
    ) -> None:
        try:
            if mask & selectors.EVENT_READ:
                self._read(connection, selector)
            elif mask & selectors.EVENT_WRITE:
                self._write(connection, selector)
        except OSError as error:
            LOOP_LOGGER.warning(
                "Connection I/O error",
                extra={
                    "event": "connection_error",
                    "client": connection.client,
                    "error_type": type(error).__name__,
                },
            )
            self._close(connection, selector)
        except Exception as error:  # pylint: disable=broad-except
            LOOP_LOGGER.error(
                "Unexpected error while servicing connection",
                extra={
                    "event": "connection_failure",
                    "client": connection.client,
                    "error_type": type(error).__name__,
                },
                exc_info=True,
            )
            self._close(connection, selector)

    def _drain_wake(self) -> None:
        try:
            while self._wake_reader.recv(64):
                pass
        except (BlockingIOError, InterruptedError):
            pass

    def _accept(self, server_socket: socket.socket, selector: selectors.BaseSelector) -> None:
        try:
            client_socket, address = server_socket.accept()
        except BlockingIOError:
            return
        except OSError as error:
            LOOP_LOGGER.warning(
                "Socket accept failed",
                extra={"event": "accept_error", "error_type": type(error).__name__},
            )
            return

        client_socket.setblocking(False)
        connection = Connection(client_socket, address)
        self._connections[connection.connection_id] = connection
        selector.register(client_socket, selectors.EVENT_READ, data=connection)
        with connection_scope(connection.connection_id):
            LOOP_LOGGER.debug(
                "Client connection accepted",
                extra={"event": "client_accepted", "client": connection.client},
            )

    def _read(self, connection: Connection, selector: selectors.BaseSelector) -> None:
        try:
            count = connection.sock.recv_into(connection.buffer)
        except BlockingIOError:
            return

        if count == 0:
            LOOP_LOGGER.debug(
                "Client closed the connection",
                extra={"event": "client_disconnected", "client": connection.client},
            )
            self._close(connection, selector)
            return

        connection.bytes_in += count
        connection.parser.feed_bytes(memoryview(connection.buffer)[:count])
        if not connection.parser.is_ready():
            return

        request = connection.parser.request
        response = connection.response
        response.configure_defaults()
        started = time.monotonic()
        invoke_handler(self._handler, request, response)
        LOOP_LOGGER.info(
            "Request handled",
            extra={
                "event": "request_handled",
                "client": connection.client,
                "method": request.method,
                "route": request.target,
                "status_code": response.status_code,
                "duration_ms": round((time.monotonic() - started) * 1000, 3),
            },
        )
        selector.modify(connection.sock, selectors.EVENT_WRITE, data=connection)

    def _write(self, connection: Connection, selector: selectors.BaseSelector) -> None:
        pending = connection.pending_output()
        try:
            sent = connection.sock.send(pending)
        except BlockingIOError:
            return

        connection.bytes_out += sent
        connection.outgoing = pending[sent:]
        if len(connection.outgoing) > 0:
            return

        LOOP_LOGGER.debug(
            "Response written",
            extra={
                "event": "response_written",
                "client": connection.client,
                "bytes_in": connection.bytes_in,
                "bytes_out": connection.bytes_out,
            },
        )
        self._close(connection, selector)

    def _close(self, connection: Connection, selector: selectors.BaseSelector) -> None:
        self._connections.pop(connection.connection_id, None)
        try:
            selector.unregister(connection.sock)
        except (KeyError, ValueError):
            pass
        connection.close()
