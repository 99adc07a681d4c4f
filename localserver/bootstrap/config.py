"""Server configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


READ_BUFFER_SIZE = 1024
MAX_PORT = 65535
LISTEN_BACKLOG = _env_int("LOCALSERVER_LISTEN_BACKLOG", 50)

DEFAULT_HOST = _env_str("LOCALSERVER_HOST", "")
DEFAULT_PORT = _env_int("LOCALSERVER_PORT", 8787)
DEFAULT_DIRECTORY = _env_str("LOCALSERVER_DIRECTORY", ".")
DEFAULT_IMPLEMENTATION = _env_str("LOCALSERVER_IMPLEMENTATION", "localserver")

RANDOM_PORT_MIN = _env_int("LOCALSERVER_RANDOM_PORT_MIN", 10000)
RANDOM_PORT_MAX = _env_int("LOCALSERVER_RANDOM_PORT_MAX", 18000)
DEFAULT_START_RETRIES = _env_int("LOCALSERVER_START_RETRIES", 5)
PROBE_TIMEOUT_SECONDS = _env_int("LOCALSERVER_PROBE_TIMEOUT", 2)

IMPLEMENTATION_CHOICES = ["localserver", "host"]


@dataclass
class ServerConfig:
    """Settings needed to start a directory index server."""

    host: str
    port: int
    directory: str
    implementation: str


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for server configuration."""
    parser = argparse.ArgumentParser(
        description="Serve a directory index over a throwaway local HTTP server"
    )
    parser.add_argument("--directory", default=DEFAULT_DIRECTORY)
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument(
        "--implementation",
        default=DEFAULT_IMPLEMENTATION,
        choices=IMPLEMENTATION_CHOICES,
        help="localserver (selector event loop) or host (standard library server)",
    )
    default_log_level = os.getenv("LOCALSERVER_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("LOCALSERVER_LOG_DESTINATION", "stdout")
    default_log_format = os.getenv("LOCALSERVER_LOG_FORMAT", "json").lower()
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-format",
        default=default_log_format,
        choices=["json", "text"],
        type=str.lower,
    )
    return parser.parse_args(argv)
