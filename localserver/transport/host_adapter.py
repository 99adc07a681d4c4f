"""Adapter running request handlers on the standard library threading HTTP server."""

import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from localserver.domain.constants import (
    HEADER_CONNECTION,
    HEADER_CONTENT_LENGTH,
    METHOD_HEAD,
)
from localserver.domain.correlation_id import CorrelationLoggerAdapter, connection_scope
from localserver.domain.message import HttpRequest, HttpResponse
from localserver.pipeline.dispatch import RequestHandler, invoke_handler, resolve_handler

HOST_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("localserver.transport.host"), {"implementation": "host"}
)


class HostHTTPServer(ThreadingHTTPServer):
    """Threading HTTP server carrying the request handler shared by all exchanges."""

    daemon_threads = True

    def __init__(self, server_address: tuple[str, int], handler: Any) -> None:
        self.request_handler: RequestHandler = resolve_handler(handler)
        super().__init__(server_address, AdaptedRequestHandler)


class AdaptedRequestHandler(BaseHTTPRequestHandler):
    """Translates one exchange into :class:`HttpRequest`/:class:`HttpResponse` objects."""

    server: HostHTTPServer
    protocol_version = "HTTP/1.1"

    def _dispatch(self) -> None:
        with connection_scope():
            request = self._build_request()
            response = HttpResponse()
            response.configure_defaults()
            invoke_handler(self.server.request_handler, request, response)
            self._send(request, response)
            HOST_LOGGER.info(
                "Request handled",
                extra={
                    "event": "request_handled",
                    "client": f"{self.client_address[0]}:{self.client_address[1]}",
                    "method": request.method,
                    "route": request.target,
                    "status_code": response.status_code,
                },
            )

    do_GET = do_POST = do_HEAD = do_OPTIONS = do_PUT = do_TRACE = do_DELETE = _dispatch

    def _build_request(self) -> HttpRequest:
        request = HttpRequest(self.command, self.path, self.request_version)
        for name in dict.fromkeys(self.headers.keys()):
            request.set_header(name, ", ".join(self.headers.get_all(name, [])))

        try:
            length = int(self.headers.get(HEADER_CONTENT_LENGTH, "0").strip())
        except ValueError:
            length = 0
        if length > 0:
            request.set_content(self.rfile.read(length), False)
        return request

    def _send(self, request: HttpRequest, response: HttpResponse) -> None:
        payload = response.content_bytes
        self.send_response_only(response.status_code, response.status_message)
        for name, value in response.headers.items():
            self.send_header(name, value)
        if HEADER_CONTENT_LENGTH not in response.headers:
            self.send_header(HEADER_CONTENT_LENGTH, str(len(payload)))
        if HEADER_CONNECTION not in response.headers:
            self.send_header(HEADER_CONNECTION, "close")
        self.end_headers()
        if request.method != METHOD_HEAD:
            self.wfile.write(payload)
        self.close_connection = True

    def log_message(self, format: str, *args: Any) -> None:  # pylint: disable=redefined-builtin
        HOST_LOGGER.debug(format % args, extra={"event": "host_server_message"})
