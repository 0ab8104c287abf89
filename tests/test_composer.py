"""Tests for report composition."""

from fault_reporter.config import Settings
from fault_reporter.context.provider import WsgiRequestContext
from fault_reporter.exceptions.capture import full_type_name
from fault_reporter.exceptions.composer import OUTER_MARKER, ReportComposer


class Wrapper(Exception):
    pass


class FailingSnapshotter:
    def snapshot(self, provider):
        raise RuntimeError('snapshot exploded')


def fail_with(message):
    raise RuntimeError(message)


def capture(fn):
    try:
        fn()
    except Exception as e:
        return e
    raise AssertionError('no exception raised')


def three_levels():
    try:
        try:
            fail_with('disk full')
        except RuntimeError as e:
            raise OSError('could not save cart') from e
    except OSError as e:
        raise LookupError('checkout failed') from e


def test_single_exception_report(settings):
    report = ReportComposer(settings).compose(capture(lambda: fail_with('disk full')))

    assert OUTER_MARKER not in report.text
    assert report.exception_type == 'RuntimeError'
    assert 'Exception Type:        RuntimeError\n' in report.text
    assert 'Exception Message:     disk full\n' in report.text
    assert 'Exception Target Site: fail_with\n' in report.text
    assert '---- Stack Trace ----' in report.text
    assert str(report) == report.text


def test_chain_is_rendered_innermost_first(settings):
    report = ReportComposer(settings).compose(capture(three_levels))
    text = report.text

    assert text.count(f'\n{OUTER_MARKER}\n') == 2
    assert text.index('disk full') < text.index('could not save cart') < text.index('checkout failed')
    assert report.exception_type == 'LookupError'
    assert len(report.chain) == 3


def test_system_information_appears_once_with_outermost(settings):
    text = ReportComposer(settings).compose(capture(three_levels)).text

    assert text.count('Date and Time:') == 1
    assert text.count('Machine Name:') == 1
    assert text.index('Date and Time:') > text.rindex(OUTER_MARKER)
    assert text.index('Date and Time:') < text.index('checkout failed')


def test_non_web_report_has_no_collections(settings):
    text = ReportComposer(settings).compose(capture(three_levels)).text

    assert 'IP Address:' in text
    assert 'URL:' not in text
    assert 'Request Collections' not in text


def test_web_report_ends_with_collections(settings, environ):
    request = WsgiRequestContext(environ, form={'__VIEWSTATE': 'dDwtMTA4', 'qty': '2'})
    report = ReportComposer(settings).compose(capture(three_levels), request)
    text = report.text

    assert 'URL:                   http://example.com:8080/shop/cart?item=3' in text
    assert text.index('checkout failed') < text.index('---- Request Collections ----')
    assert report.view_state == 'dDwtMTA4'


def test_outer_root_wrapper_is_elided_and_resolved():
    settings = Settings(root_exceptions=(full_type_name(Wrapper),))

    def wrapped():
        try:
            fail_with('real problem')
        except RuntimeError as e:
            raise Wrapper('wrapper') from e

    report = ReportComposer(settings).compose(capture(wrapped))

    assert report.exception_type == 'RuntimeError'
    assert OUTER_MARKER not in report.text
    assert full_type_name(Wrapper) not in report.text


def test_frame_pattern_suppresses_frames():
    class Middleware:
        def call(self):
            fail_with('boom')

    text = ReportComposer(Settings(suppress_frame_pattern='Middleware')).compose(
        capture(lambda: Middleware().call())
    ).text

    assert '.call(' not in text
    assert 'fail_with(' in text


def test_composition_failure_becomes_report_text(settings):
    composer = ReportComposer(settings, snapshotter=FailingSnapshotter())
    report = composer.compose(ValueError('bad'))

    assert report.text == "Error 'snapshot exploded' while generating exception string"
    assert report.exception_type == 'ValueError'
