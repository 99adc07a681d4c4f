"""Handler invocation with conversion of handler errors into 500 responses."""

import logging
import traceback
from typing import Any, Callable

from localserver.domain.constants import reason_phrase
from localserver.domain.correlation_id import CorrelationLoggerAdapter
from localserver.domain.message import HttpRequest, HttpResponse

DISPATCH_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("localserver.dispatch"), {}
)

INTERNAL_ERROR_STATUS = 500
INTERNAL_ERROR_MESSAGE = reason_phrase(INTERNAL_ERROR_STATUS)
TRACE_CHARSET = "utf-8"

RequestHandler = Callable[[HttpRequest, HttpResponse], None]


def resolve_handler(handler: Any) -> RequestHandler:
    """Accept either a plain callable or an object exposing ``handle_request``."""
    handle_request = getattr(handler, "handle_request", None)
    if callable(handle_request):
        return handle_request
    if callable(handler):
        return handler
    raise TypeError(f"{type(handler).__name__} is not a request handler")


def render_failure(response: HttpResponse, error: BaseException) -> None:
    """Turn ``response`` into a 500 whose body is the formatted traceback."""
    response.set_status(INTERNAL_ERROR_STATUS, INTERNAL_ERROR_MESSAGE)
    response.set_content_type("text/plain")
    response.set_charset(TRACE_CHARSET)
    trace = "".join(
        traceback.format_exception(type(error), error, error.__traceback__)
    )
    response.set_content(trace)


def invoke_handler(
    handler: RequestHandler, request: HttpRequest, response: HttpResponse
) -> bool:
    """Run ``handler``; return False when it raised and ``response`` became a 500."""
    try:
        handler(request, response)
    except Exception as error:  # pylint: disable=broad-except
        DISPATCH_LOGGER.error(
            "Handler raised an error",
            extra={
                "event": "handler_error",
                "method": request.method,
                "route": request.target,
                "error_type": type(error).__name__,
            },
            exc_info=True,
        )
        render_failure(response, error)
        return False
    return True
