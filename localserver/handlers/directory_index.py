"""Servlet exposing a directory tree as HTML listings and raw files."""

import html
import logging
import mimetypes
from pathlib import Path
from typing import Union
from urllib.parse import quote, unquote, urlsplit

from localserver.domain.constants import reason_phrase
from localserver.domain.correlation_id import CorrelationLoggerAdapter
from localserver.domain.message import HttpRequest, HttpResponse
from localserver.domain.sandbox import ForbiddenPath, resolve_sandbox_path
from localserver.handlers.servlet import HttpServlet

INDEX_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("localserver.handlers.index"), {}
)

FILE_CHUNK_SIZE = 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"
LISTING_CHARSET = "utf-8"


def content_type_for_path(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(path.as_posix())
    return mime_type or DEFAULT_CONTENT_TYPE


class DirectoryIndexServlet(HttpServlet):
    """Serves files below ``server_root`` and lists its directories.

    Missing paths and paths resolving outside ``server_root`` both answer
    404 so a client cannot probe for files outside the served tree.
    """

    def __init__(self, server_root: Union[str, Path]) -> None:
        self.server_root = Path(server_root).resolve()

    def do_get(self, request: HttpRequest, response: HttpResponse) -> None:
        target = request.target
        try:
            path = urlsplit(target).path if "://" in target else target.split("?", 1)[0]
        except ValueError:
            response.set_status(400, reason_phrase(400))
            response.set_content(f"Given path is unsupported: {target}")
            return
        path = unquote(path) or "/"

        try:
            resolved = resolve_sandbox_path(self.server_root, path)
        except ForbiddenPath:
            INDEX_LOGGER.warning(
                "Path outside served directory",
                extra={"event": "path_forbidden", "path": path},
            )
            self._not_found(response)
            return

        if not resolved.exists():
            self._not_found(response)
            return

        response.set_status(200, reason_phrase(200))
        if resolved.is_dir():
            self._write_listing(path, resolved, response)
        else:
            self._write_file(resolved, response)

    def _not_found(self, response: HttpResponse) -> None:
        response.set_status(404, reason_phrase(404))
        response.set_content("")

    def _write_listing(self, path: str, directory: Path, response: HttpResponse) -> None:
        children = []
        if len(path) > 1:
            children.append("../")
        for child in sorted(directory.iterdir(), key=lambda entry: entry.name):
            children.append(child.name + "/" if child.is_dir() else child.name)

        base = path if path.endswith("/") else path + "/"
        title = html.escape(directory.name)
        lines = [
            f"<html><head><title>{title}</title></head><body>",
            f"<h1>Index of {html.escape(path)}</h1><hr/><pre>",
        ]
        for child in children:
            href = quote(base + child)
            lines.append(f'<a href="{href}">{html.escape(child)}</a>')
        lines.append("</pre></body></html>")

        response.set_charset(LISTING_CHARSET)
        response.set_content("\n".join(lines))
        INDEX_LOGGER.debug(
            "Directory listed",
            extra={"event": "directory_listed", "path": directory.as_posix()},
        )

    def _write_file(self, path: Path, response: HttpResponse) -> None:
        response.set_content_type(content_type_for_path(path))
        response.set_content(b"")
        with open(path, "rb") as file_handle, response.output_stream() as stream:
            while True:
                chunk = file_handle.read(FILE_CHUNK_SIZE)
                if not chunk:
                    break
                stream.write(chunk)
        INDEX_LOGGER.info(
            "File served",
            extra={
                "event": "file_served",
                "path": path.as_posix(),
                "bytes_out": response.content_length,
            },
        )
