"""Tests for the exception handler pipeline and process hooks."""

import sys
import threading
from types import SimpleNamespace

import pytest
from conftest import RecordingSink

from fault_reporter.config import ConfigurationSource, Settings, SettingsLoader
from fault_reporter.context.provider import WsgiRequestContext
from fault_reporter.exceptions.handler import ExceptionHandler


class BrokenSource(ConfigurationSource):
    def lookup(self, key):
        raise RuntimeError('configuration store offline')


def raise_value_error():
    raise ValueError('checkout failed')


def capture(fn):
    try:
        fn()
    except Exception as e:
        return e
    raise AssertionError('no exception raised')


def make_handler(settings, sink, debugger=False):
    return ExceptionHandler(SettingsLoader(settings=settings), [sink], debugger_probe=lambda: debugger)


@pytest.fixture
def hooks(monkeypatch):
    """Replace the process hooks with recorders so installing is reversible."""
    calls = SimpleNamespace(excepthook=[], threading=[], unraisable=[])
    monkeypatch.setattr(sys, 'excepthook', lambda *args: calls.excepthook.append(args))
    monkeypatch.setattr(threading, 'excepthook', lambda args: calls.threading.append(args))
    monkeypatch.setattr(sys, 'unraisablehook', lambda unraisable: calls.unraisable.append(unraisable))
    return calls


def test_process_delivers_report(settings, sink):
    result = make_handler(settings, sink).process(capture(raise_value_error))

    assert result is not None
    assert result.report.exception_type == 'ValueError'
    assert result.outcome.succeeded('Recording')
    assert len(sink.sent) == 1
    assert 'checkout failed' in sink.sent[0][0]
    assert sink.sent[0][1] == 'ValueError'
    assert result.summary.endswith(result.report.text)


def test_debugger_suppresses_before_rendering(sink):
    handler = make_handler(Settings(ignore_debug_errors=True), sink, debugger=True)

    assert handler.process(capture(raise_value_error)) is None
    assert sink.sent == []


def test_local_request_is_suppressed(sink, environ):
    environ = dict(environ, SERVER_NAME='localhost')
    handler = make_handler(Settings(ignore_debug_errors=True), sink)

    assert handler.process(capture(raise_value_error), WsgiRequestContext(environ)) is None
    assert sink.sent == []


def test_proxied_request_uses_host_header(sink, environ):
    environ = dict(environ, SERVER_NAME='localhost', SERVER_PORT='8000', HTTP_HOST='shop.example.com')
    handler = make_handler(Settings(ignore_debug_errors=True), sink)
    result = handler.process(capture(raise_value_error), WsgiRequestContext(environ))

    assert result is not None
    assert len(sink.sent) == 1
    assert 'http://shop.example.com/shop/cart?item=3' in result.report.text


def test_remote_request_is_reported(sink, environ):
    handler = make_handler(Settings(ignore_debug_errors=True), sink)
    result = handler.process(capture(raise_value_error), WsgiRequestContext(environ))

    assert result is not None
    assert 'http://example.com:8080/shop/cart?item=3' in result.report.text


def test_ignore_regexp_suppresses_after_rendering(sink):
    settings = Settings(ignore_debug_errors=False, ignore_regexp='CHECKOUT FAILED')
    assert make_handler(settings, sink).process(capture(raise_value_error)) is None
    assert sink.sent == []


def test_disabled_sinks_produce_empty_outcome():
    sink = RecordingSink('LogToFile')
    result = make_handler(Settings(ignore_debug_errors=False), sink).process(capture(raise_value_error))

    assert result is not None
    assert len(result.outcome) == 0
    assert sink.sent == []


def test_default_sinks_are_built_from_settings():
    handler = ExceptionHandler(SettingsLoader(settings=Settings()))
    names = [s.name for s in handler.sinks(handler.settings)]
    assert names == ['LogToEventLog', 'LogToFile', 'LogToEmail', 'LogToSQL']


def test_handle_never_raises():
    handler = ExceptionHandler(SettingsLoader(BrokenSource()), [RecordingSink()])
    assert handler.handle(ValueError('x')) is None


def test_process_propagates_errors():
    handler = ExceptionHandler(SettingsLoader(BrokenSource()), [RecordingSink()])
    with pytest.raises(RuntimeError, match='configuration store offline'):
        handler.process(ValueError('x'))


def test_install_and_uninstall_restore_hooks(hooks, settings, sink):
    original = (sys.excepthook, threading.excepthook, sys.unraisablehook)
    handler = make_handler(settings, sink)

    handler.install()
    assert handler.is_installed() is True
    assert sys.excepthook == handler._excepthook
    assert threading.excepthook == handler._threading_excepthook
    assert sys.unraisablehook == handler._unraisablehook

    handler.uninstall()
    assert handler.is_installed() is False
    assert (sys.excepthook, threading.excepthook, sys.unraisablehook) == original


def test_excepthook_reports_and_chains(hooks, settings, sink):
    handler = make_handler(settings, sink)
    handler.install()
    try:
        exc = capture(raise_value_error)
        sys.excepthook(type(exc), exc, exc.__traceback__)
    finally:
        handler.uninstall()

    assert len(sink.sent) == 1
    assert hooks.excepthook == [(ValueError, exc, exc.__traceback__)]


def test_excepthook_skips_keyboard_interrupt(hooks, settings, sink):
    handler = make_handler(settings, sink)
    handler.install()
    try:
        sys.excepthook(KeyboardInterrupt, KeyboardInterrupt(), None)
    finally:
        handler.uninstall()

    assert sink.sent == []
    assert len(hooks.excepthook) == 1


def test_thread_exceptions_are_reported(hooks, settings, sink):
    handler = make_handler(settings, sink)
    handler.install()
    try:
        worker = threading.Thread(target=raise_value_error)
        worker.start()
        worker.join()
    finally:
        handler.uninstall()

    assert len(sink.sent) == 1
    assert 'checkout failed' in sink.sent[0][0]
    assert len(hooks.threading) == 1


def test_thread_system_exit_is_not_reported(hooks, settings, sink):
    handler = make_handler(settings, sink)
    handler._original_threading_excepthook = hooks.threading.append
    handler._threading_excepthook(SimpleNamespace(exc_type=SystemExit, exc_value=SystemExit(0)))

    assert sink.sent == []
    assert len(hooks.threading) == 1


def test_unraisable_exceptions_are_reported(hooks, settings, sink):
    handler = make_handler(settings, sink)
    handler.install()
    try:
        sys.unraisablehook(SimpleNamespace(exc_value=ValueError('in __del__')))
    finally:
        handler.uninstall()

    assert len(sink.sent) == 1
    assert len(hooks.unraisable) == 1
