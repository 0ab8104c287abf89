"""Main fault reporter."""

from __future__ import annotations

import atexit
from typing import TYPE_CHECKING, Iterable

from .config import ConfigurationSource, Settings, SettingsLoader
from .exceptions.handler import ExceptionHandler, HandlingResult

if TYPE_CHECKING:
    from .context.provider import RequestContextProvider
    from .transport.sinks import Sink


class FaultReporter:
    """Owns the settings and the exception handler, and installs the process hooks."""

    def __init__(
        self,
        source: ConfigurationSource | None = None,
        settings: Settings | None = None,
        sinks: Iterable['Sink'] | None = None,
    ) -> None:
        self.loader = SettingsLoader(source, settings)
        self._handler = ExceptionHandler(self.loader, sinks)
        self._started = False

    @property
    def settings(self) -> Settings:
        return self.loader.get()

    def start(self, install_hooks: bool = True) -> None:
        """Start reporting, optionally taking over the process exception hooks."""
        if self._started:
            return

        if install_hooks:
            self._handler.install()

        atexit.register(self._cleanup)
        self._started = True

        if self.settings.debug:
            print('[Fault Reporter] Reporter started')

    def stop(self) -> None:
        """Stop reporting and restore the original hooks."""
        if not self._started:
            return

        self._cleanup()
        atexit.unregister(self._cleanup)
        self._started = False

    def handle(self, exception: BaseException, request: 'RequestContextProvider | None' = None) -> None:
        """Report an exception; never raises."""
        self._handler.handle(exception, request)

    def report(
        self,
        exception: BaseException,
        request: 'RequestContextProvider | None' = None,
    ) -> HandlingResult | None:
        """Report an exception and return where it went; never raises."""
        return self._handler.handle(exception, request)

    def _cleanup(self) -> None:
        self._handler.uninstall()

        try:
            if self.settings.debug:
                print('[Fault Reporter] Reporter stopped')
        except Exception:
            pass
