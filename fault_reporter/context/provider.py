"""Request context providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from http.cookies import CookieError, SimpleCookie
from typing import Any
from urllib.parse import parse_qsl, urlsplit

DEFAULT_PORTS = {'http': '80', 'https': '443'}


def build_url(variables: Mapping[str, Any]) -> str:
    """Reconstruct the request URL from CGI-style server variables.

    ``http://localhost:8080/mypath/page?test=1&apples=bear``
    """
    scheme = variables.get('wsgi.url_scheme')
    if not scheme:
        https = str(variables.get('HTTPS', '') or 'off').lower()
        scheme = 'http' if https in ('off', '0', 'false') else 'https'

    # The Host header names the site the client asked for
    host = str(variables.get('HTTP_HOST', '') or '')
    if host:
        name, _, port = host.partition(':')
    else:
        name = str(variables.get('SERVER_NAME', '') or '')
        port = str(variables.get('SERVER_PORT', '') or '')

    url = f'{scheme}://{name}'
    if port and port != DEFAULT_PORTS.get(scheme):
        url += f':{port}'

    url += f"{variables.get('SCRIPT_NAME', '')}{variables.get('PATH_INFO', '')}"

    query = variables.get('QUERY_STRING', '')
    if query:
        url += f'?{query}'

    return url


class RequestContextProvider(ABC):
    """Key/value snapshots of the request being handled.

    Collections that a framework cannot supply return None and are left out
    of reports.
    """

    def is_available(self) -> bool:
        return True

    @abstractmethod
    def server_variables(self) -> Mapping[str, Any] | None:
        """CGI-style variables describing the request and server."""

    def server_variable(self, name: str) -> str | None:
        value = (self.server_variables() or {}).get(name)
        return None if value is None else str(value)

    def current_url(self) -> str:
        return build_url(self.server_variables() or {})

    def host(self) -> str:
        return urlsplit(self.current_url()).hostname or ''

    def query_string(self) -> Mapping[str, Any] | None:
        return None

    def form(self) -> Mapping[str, Any] | None:
        return None

    def cookies(self) -> Mapping[str, Any] | None:
        return None

    def session(self) -> Mapping[str, Any] | None:
        return None

    def application_state(self) -> Mapping[str, Any] | None:
        return None

    def cache(self) -> Mapping[str, Any] | None:
        return None


class WsgiRequestContext(RequestContextProvider):
    """Provider over a WSGI environ.

    The request body is never read here; frameworks that have already parsed
    the form, session or application state pass them in.
    """

    def __init__(
        self,
        environ: Mapping[str, Any],
        form: Mapping[str, Any] | None = None,
        session: Mapping[str, Any] | None = None,
        application: Mapping[str, Any] | None = None,
        cache: Mapping[str, Any] | None = None,
    ) -> None:
        self.environ = environ
        self._form = form
        self._session = session
        self._application = application
        self._cache = cache

    def server_variables(self) -> Mapping[str, Any]:
        return self.environ

    def query_string(self) -> Mapping[str, Any]:
        return dict(parse_qsl(self.environ.get('QUERY_STRING', ''), keep_blank_values=True))

    def form(self) -> Mapping[str, Any] | None:
        return self._form

    def cookies(self) -> Mapping[str, Any]:
        cookie = SimpleCookie()
        try:
            cookie.load(self.environ.get('HTTP_COOKIE', ''))
        except CookieError:
            return {}
        return {name: morsel.value for name, morsel in cookie.items()}

    def session(self) -> Mapping[str, Any] | None:
        return self._session

    def application_state(self) -> Mapping[str, Any] | None:
        return self._application

    def cache(self) -> Mapping[str, Any] | None:
        return self._cache
