"""
Fault Reporter

Captures unhandled exceptions, renders them into a readable diagnostic
report and delivers it to the event log, a text file, email and a database.

Usage:
    import fault_reporter

    fault_reporter.init()

    # Manually report an exception
    try:
        risky_operation()
    except Exception as e:
        fault_reporter.handle(e)

Settings come from ``FAULT_REPORTER_*`` environment variables by default, for
example ``FAULT_REPORTER_LOG_TO_FILE=true``; pass another ConfigurationSource
to read them elsewhere.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from .config import ConfigurationSource, EnvironmentSource, IniFileSource, MappingSource, Settings
from .exceptions.handler import HandlingResult
from .reporter import FaultReporter

if TYPE_CHECKING:
    from .context.provider import RequestContextProvider
    from .transport.sinks import Sink

__version__ = '1.0.0'
__all__ = [
    'init',
    'shutdown',
    'handle',
    'report',
    'is_initialized',
    'get_reporter',
    'Settings',
    'ConfigurationSource',
    'EnvironmentSource',
    'IniFileSource',
    'MappingSource',
    'FaultReporter',
    'HandlingResult',
]

_reporter: FaultReporter | None = None


def init(
    source: ConfigurationSource | None = None,
    settings: Settings | None = None,
    sinks: Iterable['Sink'] | None = None,
    install_hooks: bool = True,
) -> FaultReporter:
    """
    Initialize the fault reporter.

    Args:
        source: Where settings are read from (default: FAULT_REPORTER_* env vars)
        settings: Ready-made settings, used instead of reading a source
        sinks: Sinks to deliver to (default: event log, file, email, database)
        install_hooks: Report exceptions that reach sys.excepthook,
            threading.excepthook and sys.unraisablehook (default: True)
    """
    global _reporter

    if _reporter is not None:
        print('[Fault Reporter] Reporter already initialized')
        return _reporter

    _reporter = FaultReporter(source=source, settings=settings, sinks=sinks)
    _reporter.start(install_hooks=install_hooks)
    return _reporter


def shutdown() -> None:
    """Shutdown the fault reporter."""
    global _reporter

    if _reporter is None:
        return

    _reporter.stop()
    _reporter = None


def handle(exception: BaseException, request: 'RequestContextProvider | None' = None) -> None:
    """
    Report an exception. Never raises.

    Args:
        exception: The exception to report
        request: The request being served when it was raised, if any
    """
    if _reporter is None:
        print('[Fault Reporter] Reporter not initialized')
        return

    _reporter.handle(exception, request)


def report(
    exception: BaseException,
    request: 'RequestContextProvider | None' = None,
) -> HandlingResult | None:
    """
    Report an exception and return the report with its delivery outcome.

    Returns None when the exception was suppressed, reporting failed or the
    reporter is not initialized. Never raises.
    """
    if _reporter is None:
        return None

    return _reporter.report(exception, request)


def get_reporter() -> FaultReporter | None:
    """The reporter created by init(), if any."""
    return _reporter


def is_initialized() -> bool:
    """Check if the reporter is initialized."""
    return _reporter is not None
