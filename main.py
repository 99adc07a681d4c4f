"""Serve a directory over a local HTTP server until interrupted."""

import logging
import signal
import sys
import threading
from typing import Optional

from localserver.bootstrap.config import ServerConfig, parse_cli_args
from localserver.bootstrap.logging_setup import configure_logging
from localserver.domain.correlation_id import CorrelationLoggerAdapter
from localserver.domain.errors import ServerStartError
from localserver.handlers.directory_index import DirectoryIndexServlet
from localserver.local_server import LocalServer

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("localserver.main"), {})


def build_server(config: ServerConfig) -> LocalServer:
    """Create the directory index server described by ``config``."""
    servlet = DirectoryIndexServlet(config.directory)
    return LocalServer(config.port, servlet, config.implementation, config.host)


def main(argv: Optional[list[str]] = None) -> int:
    """Start the directory index server and block until SIGINT or SIGTERM."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level, args.log_destination, args.log_format == "json")

    config = ServerConfig(
        host=args.host,
        port=args.port,
        directory=args.directory,
        implementation=args.implementation,
    )
    stop_requested = threading.Event()

    def shutdown_handler(signum: int, _frame) -> None:
        SERVER_LOGGER.info(
            "Received shutdown signal",
            extra={"event": "shutdown_signal", "signal": signum},
        )
        stop_requested.set()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    SERVER_LOGGER.info(
        "Starting directory index server",
        extra={
            "event": "server_starting",
            "host": config.host,
            "port": config.port,
            "directory": config.directory,
            "implementation": config.implementation,
        },
    )
    server = build_server(config)
    try:
        server.start()
    except ServerStartError:
        SERVER_LOGGER.error(
            "Server did not start", extra={"event": "startup_failed"}, exc_info=True
        )
        return 1
    if server.endpoint is None:
        SERVER_LOGGER.error("Server did not start", extra={"event": "startup_failed"})
        return 1

    while not stop_requested.wait(0.5):
        pass
    server.stop()
    SERVER_LOGGER.info("Server shutdown complete", extra={"event": "shutdown_complete"})
    return 0


if __name__ == "__main__":
    sys.exit(main())
