"""Rules for exceptions that should produce no report."""

from __future__ import annotations

import re
import sys
from typing import TYPE_CHECKING

from .capture import ExceptionChainBuilder, full_type_name

if TYPE_CHECKING:
    from ..config import Settings

LOCAL_HOSTS = ('localhost', '127.0.0.1')
DEBUGGER_MODULES = ('pydevd', 'debugpy')


def is_local_host(host: str | None) -> bool:
    return (host or '').lower() in LOCAL_HOSTS


def debugger_attached() -> bool:
    """Whether an IDE debugger is tracing this process."""
    return sys.gettrace() is not None and any(name in sys.modules for name in DEBUGGER_MODULES)


class SuppressionPolicy:
    """Decides whether an exception is ignored before or after rendering."""

    def __init__(self, settings: 'Settings') -> None:
        self.settings = settings
        self.chain_builder = ExceptionChainBuilder(settings.root_exceptions)

    def should_ignore(
        self,
        exception: BaseException,
        is_local_host: bool,
        is_debugger_attached: bool,
    ) -> bool:
        """Pre-render check: debug sessions, local requests and HTTP noise."""
        if self.settings.ignore_debug_errors and (is_debugger_attached or is_local_host):
            return True

        if self.settings.ignore_http_errors and self.is_http_error(exception):
            return True

        return False

    def is_http_error(self, exception: BaseException) -> bool:
        """Whether the exception, or the one a root wrapper stands for, is an HTTP error."""
        resolved = self.chain_builder.resolve(exception)
        names = set(self.settings.http_exceptions)
        return any(full_type_name(cls) in names for cls in type(resolved).__mro__)

    def should_ignore_rendered(self, rendered: str, ignore_regex: str) -> bool:
        """Post-render check against the whole report text.

        A pattern that does not compile never suppresses anything.
        """
        if not ignore_regex:
            return False
        try:
            return re.search(ignore_regex, rendered, re.IGNORECASE) is not None
        except re.error:
            return False
