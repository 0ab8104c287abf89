"""System and request context snapshots."""

from __future__ import annotations

import os
import platform
import re
import socket
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from ..exceptions.capture import describe_value
from .provider import RequestContextProvider

SECTIONS = ('QueryString', 'Form', 'Cookies', 'Session', 'Cache', 'Application', 'ServerVariables')

_SECTION_GETTERS: dict[str, Callable[[RequestContextProvider], Mapping[str, Any] | None]] = {
    'QueryString': lambda p: p.query_string(),
    'Form': lambda p: p.form(),
    'Cookies': lambda p: p.cookies(),
    'Session': lambda p: p.session(),
    'Cache': lambda p: p.cache(),
    'Application': lambda p: p.application_state(),
    'ServerVariables': lambda p: p.server_variables(),
}


def platform_identity() -> str:
    """Name of the effective user according to the OS account database."""
    import pwd

    return pwd.getpwuid(os.geteuid()).pw_name


def environment_identity() -> str:
    """``domain\\user`` built from environment variables."""
    domain = os.environ.get('USERDOMAIN') or socket.gethostname()
    user = os.environ.get('USERNAME') or os.environ.get('USER') or ''
    return f'{domain}\\{user}'


def process_identity() -> str:
    """Identity of the running process, with an environment fallback."""
    try:
        identity = platform_identity()
    except Exception:
        identity = ''
    return identity or environment_identity()


def local_ipv4_address() -> str:
    """First IPv4 address bound to the host name."""
    for info in socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET):
        return str(info[4][0])
    return ''


def _available(provider: RequestContextProvider | None) -> bool:
    if provider is None:
        return False
    try:
        return bool(provider.is_available())
    except Exception:
        return False


def _field(getter: Callable[[], Any]) -> str:
    try:
        value = getter()
    except Exception as e:
        return str(e) or type(e).__name__
    return '' if value is None else str(value)


@dataclass(frozen=True)
class SectionFilter:
    """Which entries of a request collection are left out."""

    suppress_empty: bool = False
    suppress_key_pattern: str = ''

    def hides(self, key: str, value: Any) -> bool:
        if self.suppress_empty and (value is None or describe_value(value) == ''):
            return True
        if self.suppress_key_pattern:
            try:
                return re.search(self.suppress_key_pattern, key) is not None
            except re.error:
                return False
        return False


@dataclass
class ContextSnapshot:
    """System facts and, inside a request, the request collections."""

    system: list[tuple[str, str]] = field(default_factory=list)
    sections: dict[str, dict[str, str]] = field(default_factory=dict)
    view_state: str | None = None
    is_web: bool = False

    def get(self, label: str) -> str | None:
        for name, value in self.system:
            if name == label:
                return value
        return None

    def render_system(self) -> str:
        lines = []
        for label, value in self.system:
            lines.append(f'{label + ":":<23}{value}\n')
            if label == 'URL':
                lines.append('\n')
        return ''.join(lines)

    def render_collections(self) -> str:
        if not self.is_web:
            return ''

        out = ['---- Request Collections ----\n\n']
        if self.view_state is not None:
            out.append(f"{'View State:':<23}{self.view_state}\n\n")
        for title, values in self.sections.items():
            if not values:
                continue
            out.append(f'{title}\n\n')
            for key, value in values.items():
                out.append(f'    {key:<30} {value}\n')
            out.append('\n')
        return ''.join(out)


class ContextSnapshotter:
    """Captures process, machine and request state for a report."""

    def __init__(
        self,
        view_state_key: str = '__VIEWSTATE',
        filters: Mapping[str, SectionFilter] | None = None,
    ) -> None:
        self.view_state_key = view_state_key
        self.filters = dict(filters or {})

    @classmethod
    def from_settings(cls, settings: Any) -> 'ContextSnapshotter':
        return cls(
            view_state_key=settings.view_state_key,
            filters={
                'ServerVariables': SectionFilter(
                    suppress_empty=True,
                    suppress_key_pattern=settings.server_variables_suppress_pattern,
                ),
            },
        )

    def snapshot(self, provider: RequestContextProvider | None = None) -> ContextSnapshot:
        """Never raises; a failing field holds the error message instead."""
        is_web = _available(provider)
        snapshot = ContextSnapshot(is_web=is_web)
        system = snapshot.system

        system.append(('Date and Time', _field(lambda: datetime.now().strftime('%Y-%m-%d %H:%M:%S'))))
        system.append(('Machine Name', _field(socket.gethostname)))
        system.append(('Process User', _field(process_identity)))

        if is_web:
            system.append(('Remote User', _field(lambda: provider.server_variable('REMOTE_USER'))))
            system.append(('Remote Address', _field(lambda: provider.server_variable('REMOTE_ADDR'))))
            system.append(('Remote Host', _field(lambda: provider.server_variable('REMOTE_HOST'))))
            system.append(('URL', _field(provider.current_url)))
        else:
            system.append(('IP Address', _field(local_ipv4_address)))

        system.append(('Process', _field(lambda: f'{os.path.basename(sys.argv[0]) or "python"} (pid {os.getpid()})')))
        system.append(('Python Runtime', _field(lambda: f'{platform.python_implementation()} {platform.python_version()}')))

        if is_web:
            for title in SECTIONS:
                snapshot.sections[title] = self._capture_section(snapshot, title, provider)

        return snapshot

    def _capture_section(
        self,
        snapshot: ContextSnapshot,
        title: str,
        provider: RequestContextProvider,
    ) -> dict[str, str]:
        try:
            collection = _SECTION_GETTERS[title](provider)
            items = list(collection.items()) if collection else []
        except Exception as e:
            return {'(error)': str(e) or type(e).__name__}

        section_filter = self.filters.get(title, SectionFilter())
        values: dict[str, str] = {}
        for key, value in items:
            key = describe_value(key)
            if key == self.view_state_key:
                snapshot.view_state = describe_value(value)
                values[key] = snapshot.view_state
                continue
            if section_filter.hides(key, value):
                continue
            values[key] = describe_value(value)
        return values
