"""Exception handler installation and management."""

from __future__ import annotations

import sys
import threading
from dataclasses import dataclass
from types import TracebackType
from typing import TYPE_CHECKING, Callable, Iterable

from ..transport.dispatcher import DeliveryDispatcher, DeliveryOutcome, format_user_summary
from ..transport.sinks import Sink, default_sinks
from .composer import Report, ReportComposer
from .policy import SuppressionPolicy, debugger_attached, is_local_host

if TYPE_CHECKING:
    from ..config import Settings, SettingsLoader
    from ..context.provider import RequestContextProvider


ExceptHookType = Callable[[type[BaseException], BaseException, TracebackType | None], None]


def _inspect_request(request: 'RequestContextProvider | None') -> tuple[bool, str]:
    """Whether a request is being served, and its host name."""
    if request is None:
        return False, ''
    try:
        if not request.is_available():
            return False, ''
    except Exception:
        return False, ''
    try:
        return True, request.host()
    except Exception:
        return True, ''


@dataclass
class HandlingResult:
    """A delivered report and where it went."""

    report: Report
    outcome: DeliveryOutcome
    settings: 'Settings'

    @property
    def summary(self) -> str:
        """Text suitable for an interactive error page."""
        return format_user_summary(self.outcome, self.settings, self.report)


class ExceptionHandler:
    """Runs the suppress, compose and deliver pipeline for one exception at a time."""

    def __init__(
        self,
        loader: 'SettingsLoader',
        sinks: Iterable[Sink] | None = None,
        debugger_probe: Callable[[], bool] = debugger_attached,
    ) -> None:
        self.loader = loader
        self._sinks = list(sinks) if sinks is not None else None
        self._debugger_probe = debugger_probe
        self._installed = False
        self._original_excepthook: ExceptHookType | None = None
        self._original_threading_excepthook: Callable | None = None
        self._original_unraisablehook: Callable | None = None

    @property
    def settings(self) -> 'Settings':
        return self.loader.get()

    def sinks(self, settings: 'Settings') -> list[Sink]:
        if self._sinks is not None:
            return self._sinks
        return default_sinks(settings)

    def process(
        self,
        exception: BaseException,
        request: 'RequestContextProvider | None' = None,
    ) -> HandlingResult | None:
        """Report an exception; returns None when it is suppressed.

        Unlike handle(), errors raised here propagate.
        """
        settings = self.settings
        policy = SuppressionPolicy(settings)

        web, host = _inspect_request(request)
        local = web and is_local_host(host)

        if policy.should_ignore(exception, local, self._debugger_probe()):
            if settings.debug:
                print(f'[Fault Reporter] Ignoring {type(exception).__name__}')
            return None

        report = ReportComposer(settings).compose(exception, request if web else None)

        if policy.should_ignore_rendered(report.text, settings.ignore_regexp):
            if settings.debug:
                print(f'[Fault Reporter] Ignoring {report.exception_type} matched by IgnoreRegExp')
            return None

        outcome = DeliveryDispatcher(self.sinks(settings)).deliver(report, settings)
        return HandlingResult(report=report, outcome=outcome, settings=settings)

    def handle(
        self,
        exception: BaseException,
        request: 'RequestContextProvider | None' = None,
    ) -> HandlingResult | None:
        """Report an exception without ever raising."""
        try:
            return self.process(exception, request)
        except Exception as e:
            # We are inside an unhandled exception handler
            try:
                if self.settings.debug:
                    print(f'[Fault Reporter] Error handling exception: {e}')
            except Exception:
                pass
            return None

    def install(self) -> None:
        """Install exception hooks."""
        if self._installed:
            return

        # Save original hooks
        self._original_excepthook = sys.excepthook
        self._original_threading_excepthook = threading.excepthook
        self._original_unraisablehook = sys.unraisablehook

        # Install our hooks
        sys.excepthook = self._excepthook
        threading.excepthook = self._threading_excepthook
        sys.unraisablehook = self._unraisablehook

        self._installed = True

    def uninstall(self) -> None:
        """Uninstall exception hooks."""
        if not self._installed:
            return

        # Restore original hooks
        if self._original_excepthook:
            sys.excepthook = self._original_excepthook
        if self._original_threading_excepthook:
            threading.excepthook = self._original_threading_excepthook
        if self._original_unraisablehook:
            sys.unraisablehook = self._original_unraisablehook

        self._installed = False

    def is_installed(self) -> bool:
        return self._installed

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_tb: TracebackType | None,
    ) -> None:
        """Handle uncaught exceptions."""
        if exc_tb is not None and exc_value.__traceback__ is None:
            exc_value.__traceback__ = exc_tb

        if not issubclass(exc_type, KeyboardInterrupt):
            self.handle(exc_value)

        # Call original hook
        if self._original_excepthook:
            self._original_excepthook(exc_type, exc_value, exc_tb)

    def _threading_excepthook(self, args: threading.ExceptHookArgs) -> None:
        """Handle exceptions escaping a thread's run()."""
        if args.exc_value is not None and not issubclass(args.exc_type, SystemExit):
            self.handle(args.exc_value)

        if self._original_threading_excepthook:
            self._original_threading_excepthook(args)

    def _unraisablehook(self, unraisable: object) -> None:
        """Handle unraisable exceptions (e.g., in __del__)."""
        exc_value = getattr(unraisable, 'exc_value', None)
        if exc_value is not None:
            self.handle(exc_value)

        # Call original hook
        if self._original_unraisablehook:
            self._original_unraisablehook(unraisable)
