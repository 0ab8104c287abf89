"""Django integration for Fault Reporter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

from ..context.provider import RequestContextProvider

if TYPE_CHECKING:
    from django.http import HttpRequest, HttpResponse


class DjangoRequestContext(RequestContextProvider):
    """Request context backed by a Django HttpRequest."""

    def __init__(self, request: 'HttpRequest') -> None:
        self.request = request

    def server_variables(self) -> Any:
        return self.request.META

    def current_url(self) -> str:
        return self.request.build_absolute_uri()

    def host(self) -> str:
        return self.request.get_host().rsplit(':', 1)[0]

    def query_string(self) -> Any:
        return self.request.GET

    def form(self) -> Any:
        return self.request.POST

    def cookies(self) -> Any:
        return self.request.COOKIES

    def session(self) -> Any:
        session = getattr(self.request, 'session', None)
        return dict(session.items()) if session is not None else None


class DjangoIntegration:
    """Django middleware that reports exceptions raised by views."""

    def __init__(self, get_response: Callable[['HttpRequest'], 'HttpResponse']) -> None:
        self.get_response = get_response

    def __call__(self, request: 'HttpRequest') -> 'HttpResponse':
        return self.get_response(request)

    def process_exception(
        self,
        request: 'HttpRequest',
        exception: Exception,
    ) -> None:
        """Report the exception and let Django build the error response."""
        import fault_reporter

        fault_reporter.handle(exception, DjangoRequestContext(request))


def configure_django_logging() -> dict[str, Any]:
    """
    Returns a Django LOGGING configuration that reports logged exceptions.

    Usage in settings.py:
        from fault_reporter.integrations.django import configure_django_logging

        LOGGING = configure_django_logging()
        # Or merge with existing config:
        # LOGGING['handlers'].update(configure_django_logging()['handlers'])
    """
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'handlers': {
            'fault_reporter': {
                'class': 'fault_reporter.integrations.django.FaultReporterLoggingHandler',
                'level': 'ERROR',
            },
        },
        'root': {
            'handlers': ['fault_reporter'],
            'level': 'ERROR',
        },
    }


class FaultReporterLoggingHandler(logging.Handler):
    """Logging handler that reports records carrying exception info."""

    def __init__(self, level: int = logging.ERROR) -> None:
        super().__init__(level)

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a log record."""
        import fault_reporter

        if record.exc_info:
            exc_value = record.exc_info[1]
            if exc_value is not None:
                request = getattr(record, 'request', None)
                context = DjangoRequestContext(request) if request is not None else None
                fault_reporter.handle(exc_value, context)
