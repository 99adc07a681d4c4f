"""Unit tests validating CLI parsing and entry point wiring."""

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from localserver.bootstrap.config import (
    DEFAULT_PORT,
    ServerConfig,
    parse_cli_args,
)
from localserver.handlers.directory_index import DirectoryIndexServlet
from localserver.lifecycle.implementation import ServerImplementation
from main import build_server

if TYPE_CHECKING:
    from _pytest.monkeypatch import MonkeyPatch


def test_parse_cli_args_uses_defaults(monkeypatch: "MonkeyPatch") -> None:
    """Defaults serve the working directory on the index port."""
    for name in ("LOCALSERVER_LOG_LEVEL", "LOCALSERVER_LOG_DESTINATION", "LOCALSERVER_LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)

    args = parse_cli_args([])

    assert args.directory == "."
    assert args.port == DEFAULT_PORT == 8787
    assert args.implementation == "localserver"
    assert args.log_level == "INFO"
    assert args.log_destination == "stdout"
    assert args.log_format == "json"


def test_parse_cli_args_honors_overrides(tmp_path: Path) -> None:
    """Overrides should replace defaults when flags are present."""
    args = parse_cli_args(
        [
            "--directory",
            tmp_path.as_posix(),
            "--host",
            "127.0.0.1",
            "--port",
            "9090",
            "--implementation",
            "host",
            "--log-level",
            "debug",
            "--log-destination",
            "server.log",
            "--log-format",
            "TEXT",
        ]
    )

    assert args.directory == tmp_path.as_posix()
    assert args.host == "127.0.0.1"
    assert args.port == 9090
    assert args.implementation == "host"
    assert args.log_level == "DEBUG"
    assert args.log_destination == "server.log"
    assert args.log_format == "text"


def test_parse_cli_args_reads_logging_environment(monkeypatch: "MonkeyPatch") -> None:
    """Logging defaults come from LOCALSERVER_ variables."""
    monkeypatch.setenv("LOCALSERVER_LOG_LEVEL", "warning")
    monkeypatch.setenv("LOCALSERVER_LOG_DESTINATION", "/tmp/localserver.log")
    monkeypatch.setenv("LOCALSERVER_LOG_FORMAT", "text")

    args = parse_cli_args([])

    assert args.log_level == "WARNING"
    assert args.log_destination == "/tmp/localserver.log"
    assert args.log_format == "text"


def test_parse_cli_args_rejects_unknown_implementation() -> None:
    """Only the two server variants are accepted."""
    with pytest.raises(SystemExit):
        parse_cli_args(["--implementation", "twisted"])


def test_build_server_wires_directory_servlet(tmp_path: Path) -> None:
    """The entry point serves the configured directory through the index servlet."""
    config = ServerConfig(
        host="127.0.0.1", port=0, directory=tmp_path.as_posix(), implementation="host"
    )

    server = build_server(config)

    assert isinstance(server.handler, DirectoryIndexServlet)
    assert server.handler.server_root == tmp_path.resolve()
    assert server.implementation is ServerImplementation.HOST
    assert server.endpoint is None
