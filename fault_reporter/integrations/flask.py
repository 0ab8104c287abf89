"""Flask integration for Fault Reporter."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..context.provider import WsgiRequestContext

if TYPE_CHECKING:
    from flask import Flask, Request


class FlaskRequestContext(WsgiRequestContext):
    """Request context backed by Flask's parsed request and session."""

    def __init__(self, request: 'Request', session: Any = None) -> None:
        super().__init__(request.environ, session=session)
        self.request = request

    @classmethod
    def current(cls) -> 'FlaskRequestContext':
        """Build a context for the request being served."""
        from flask import request, session

        return cls(request._get_current_object(), dict(session))

    def query_string(self) -> Any:
        return self.request.args

    def form(self) -> Any:
        return self.request.form

    def cookies(self) -> Any:
        return self.request.cookies


class FlaskIntegration:
    """Flask extension for Fault Reporter."""

    def __init__(self, app: 'Flask' | None = None) -> None:
        self.app = app
        if app is not None:
            self.init_app(app)

    def init_app(self, app: 'Flask') -> None:
        """Initialize the Flask application with Fault Reporter."""

        # Register error handler
        @app.errorhandler(Exception)
        def handle_exception(error: Exception) -> Any:
            return self._handle_exception(error)

        # Store extensions reference
        if not hasattr(app, 'extensions'):
            app.extensions = {}
        app.extensions['fault_reporter'] = self

    def _handle_exception(self, error: Exception) -> Any:
        import fault_reporter
        from werkzeug.exceptions import HTTPException, InternalServerError

        try:
            request = FlaskRequestContext.current()
        except Exception:
            request = None

        result = fault_reporter.report(error, request)

        # Let werkzeug render 404s and friends as usual
        if isinstance(error, HTTPException):
            return error

        if result is not None and result.settings.log_to_ui:
            return result.summary, 500, {'Content-Type': 'text/plain; charset=utf-8'}

        return InternalServerError(original_exception=error)


def init_app(app: 'Flask') -> FlaskIntegration:
    """
    Initialize Flask app with Fault Reporter.

    Usage:
        from flask import Flask
        from fault_reporter.integrations.flask import init_app

        app = Flask(__name__)
        init_app(app)
    """
    return FlaskIntegration(app)
