"""Base class routing requests to one hook per HTTP method."""

import logging

from localserver.domain.constants import (
    METHOD_DELETE,
    METHOD_GET,
    METHOD_HEAD,
    METHOD_OPTIONS,
    METHOD_POST,
    METHOD_PUT,
    METHOD_TRACE,
    reason_phrase,
)
from localserver.domain.correlation_id import CorrelationLoggerAdapter
from localserver.domain.message import HttpRequest, HttpResponse
from localserver.pipeline.dispatch import render_failure

SERVLET_LOGGER = CorrelationLoggerAdapter(logging.getLogger("localserver.handlers"), {})

BAD_REQUEST_STATUS = 400
BAD_REQUEST_MESSAGE = reason_phrase(BAD_REQUEST_STATUS)

METHOD_HOOKS = {
    METHOD_GET: "do_get",
    METHOD_POST: "do_post",
    METHOD_HEAD: "do_head",
    METHOD_OPTIONS: "do_options",
    METHOD_PUT: "do_put",
    METHOD_TRACE: "do_trace",
    METHOD_DELETE: "do_delete",
}


class HttpServlet:
    """Request handler dispatching on the request method.

    Subclasses override the ``do_*`` hooks they support; the others leave the
    default response untouched. Methods outside :data:`METHOD_HOOKS` get a 400,
    and an error raised by a hook becomes a 500 carrying its traceback.
    """

    def handle_request(self, request: HttpRequest, response: HttpResponse) -> None:
        hook_name = METHOD_HOOKS.get(request.method)
        if hook_name is None:
            SERVLET_LOGGER.warning(
                "Unsupported request method",
                extra={"event": "unsupported_method", "method": request.method},
            )
            response.set_status(BAD_REQUEST_STATUS, BAD_REQUEST_MESSAGE)
            return

        try:
            getattr(self, hook_name)(request, response)
        except Exception as error:  # pylint: disable=broad-except
            SERVLET_LOGGER.error(
                "Servlet hook raised an error",
                extra={
                    "event": "servlet_error",
                    "method": request.method,
                    "route": request.target,
                    "error_type": type(error).__name__,
                },
                exc_info=True,
            )
            render_failure(response, error)

    __call__ = handle_request

    def do_get(self, request: HttpRequest, response: HttpResponse) -> None:
        pass

    def do_post(self, request: HttpRequest, response: HttpResponse) -> None:
        pass

    def do_head(self, request: HttpRequest, response: HttpResponse) -> None:
        pass

    def do_options(self, request: HttpRequest, response: HttpResponse) -> None:
        pass

    def do_put(self, request: HttpRequest, response: HttpResponse) -> None:
        pass

    def do_trace(self, request: HttpRequest, response: HttpResponse) -> None:
        pass

    def do_delete(self, request: HttpRequest, response: HttpResponse) -> None:
        pass
