"""FastAPI integration for Fault Reporter."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable

from ..context.provider import RequestContextProvider

if TYPE_CHECKING:
    from fastapi import FastAPI
    from starlette.requests import Request
    from starlette.responses import Response


def scope_variables(scope: dict[str, Any]) -> dict[str, str]:
    """CGI-style server variables for an ASGI HTTP scope."""
    variables: dict[str, str] = {
        'REQUEST_METHOD': scope.get('method', ''),
        'SCRIPT_NAME': scope.get('root_path', ''),
        'PATH_INFO': scope.get('path', ''),
        'QUERY_STRING': scope.get('query_string', b'').decode('latin-1'),
        'SERVER_PROTOCOL': f"HTTP/{scope.get('http_version', '1.1')}",
        'HTTPS': 'on' if scope.get('scheme') in ('https', 'wss') else 'off',
    }

    server = scope.get('server')
    if server:
        variables['SERVER_NAME'] = str(server[0])
        if server[1] is not None:
            variables['SERVER_PORT'] = str(server[1])

    client = scope.get('client')
    if client:
        variables['REMOTE_ADDR'] = str(client[0])
        variables['REMOTE_PORT'] = str(client[1])

    for name, value in scope.get('headers', []):
        key = 'HTTP_' + name.decode('latin-1').upper().replace('-', '_')
        text = value.decode('latin-1')
        variables[key] = f'{variables[key]},{text}' if key in variables else text

    # The Host header names the site the client asked for
    host = variables.get('HTTP_HOST')
    if host:
        name, _, port = host.partition(':')
        variables['SERVER_NAME'] = name
        if port:
            variables['SERVER_PORT'] = port

    return variables


class StarletteRequestContext(RequestContextProvider):
    """Request context backed by a Starlette request or a raw ASGI scope."""

    def __init__(self, scope: dict[str, Any], request: 'Request | None' = None) -> None:
        self.scope = scope
        self.request = request
        self._variables = scope_variables(scope)

    @classmethod
    def from_request(cls, request: 'Request') -> 'StarletteRequestContext':
        return cls(request.scope, request)

    def server_variables(self) -> dict[str, str]:
        return self._variables

    def query_string(self) -> Any:
        if self.request is None:
            return None
        return self.request.query_params

    def cookies(self) -> Any:
        if self.request is None:
            return None
        return self.request.cookies

    def session(self) -> Any:
        return self.scope.get('session')

    def application_state(self) -> Any:
        app = self.scope.get('app')
        state = getattr(getattr(app, 'state', None), '_state', None)
        return state if state else None


class FastAPIIntegration:
    """FastAPI exception handler for Fault Reporter."""

    def __init__(self, app: 'FastAPI' | None = None) -> None:
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app: 'FastAPI') -> None:
        """Initialize FastAPI application with Fault Reporter."""

        # Register exception handler
        @app.exception_handler(Exception)
        async def exception_handler(request: 'Request', exc: Exception) -> 'Response':
            return self._handle_exception(request, exc)

    def _handle_exception(self, request: 'Request', exc: Exception) -> 'Response':
        import fault_reporter
        from starlette.responses import JSONResponse, PlainTextResponse

        result = fault_reporter.report(exc, StarletteRequestContext.from_request(request))

        if result is not None and result.settings.log_to_ui:
            return PlainTextResponse(result.summary, status_code=500)

        return JSONResponse(
            status_code=500,
            content={'detail': 'Internal Server Error'},
        )


def init_app(app: 'FastAPI') -> FastAPIIntegration:
    """
    Initialize FastAPI app with Fault Reporter.

    Usage:
        from fastapi import FastAPI
        from fault_reporter.integrations.fastapi import init_app

        app = FastAPI()
        init_app(app)

        # Or using the integration directly:
        from fault_reporter.integrations.fastapi import FastAPIIntegration
        FastAPIIntegration(app)
    """
    return FastAPIIntegration(app)


class FaultReporterMiddleware:
    """
    ASGI middleware for Fault Reporter.

    Can be used with any ASGI framework.

    Usage:
        from fault_reporter.integrations.fastapi import FaultReporterMiddleware

        app = FaultReporterMiddleware(app)
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(
        self,
        scope: dict[str, Any],
        receive: Callable[[], Awaitable[dict[str, Any]]],
        send: Callable[[dict[str, Any]], Awaitable[None]],
    ) -> None:
        """Process ASGI request."""
        if scope['type'] != 'http':
            await self.app(scope, receive, send)
            return

        import fault_reporter

        try:
            await self.app(scope, receive, send)
        except Exception as e:
            fault_reporter.handle(e, StarletteRequestContext(scope))
            raise
