"""Tests for report delivery."""

import threading

from conftest import RecordingSink

from fault_reporter.config import Settings
from fault_reporter.exceptions.composer import Report
from fault_reporter.transport.dispatcher import (
    DeliveryDispatcher,
    DeliveryOutcome,
    format_display_string,
    format_user_summary,
)
from fault_reporter.transport.sinks import Sink


class BlockingSink(Sink):
    name = 'Blocking'

    def __init__(self) -> None:
        self.release = threading.Event()

    def send(self, report, exception_type):
        self.release.wait(10)


class ExplodingSettings(Settings):
    def sink_enabled(self, name):
        raise RuntimeError('settings broken')


def make_report(text='report body'):
    return Report(text=text, exception_type='ValueError')


def test_every_sink_receives_the_report(settings):
    first, second = RecordingSink('First'), RecordingSink('Second')
    outcome = DeliveryDispatcher([first, second]).deliver(make_report(), settings)

    assert first.sent == [('report body', 'ValueError')]
    assert second.sent == [('report body', 'ValueError')]
    assert dict(outcome) == {'First': 'ok', 'Second': 'ok'}
    assert outcome.errors == {}


def test_failing_sink_does_not_stop_others(settings):
    failing = RecordingSink('Middle', error=OSError('disk full'))
    before, after = RecordingSink('Before'), RecordingSink('After')

    outcome = DeliveryDispatcher([before, failing, after]).deliver(make_report(), settings)

    assert len(after.sent) == 1
    assert outcome.succeeded('Before') is True
    assert outcome.succeeded('Middle') is False
    assert outcome['Middle'] == 'disk full'
    assert outcome.errors == {'Middle': 'disk full'}


def test_disabled_builtin_sinks_are_skipped():
    settings = Settings(log_to_file=False, log_to_email=True)
    file_sink = RecordingSink('LogToFile')
    email_sink = RecordingSink('LogToEmail')

    outcome = DeliveryDispatcher([file_sink, email_sink]).deliver(make_report(), settings)

    assert file_sink.sent == []
    assert list(outcome) == ['LogToEmail']


def test_slow_sink_times_out():
    settings = Settings(sink_timeout=1)
    blocking = BlockingSink()
    after = RecordingSink('After')

    try:
        outcome = DeliveryDispatcher([blocking, after]).deliver(make_report(), settings)
    finally:
        blocking.release.set()

    assert outcome['Blocking'] == 'Timed out after 1s'
    assert outcome.succeeded('After') is True


def test_deliver_never_raises():
    outcome = DeliveryDispatcher([RecordingSink()]).deliver(make_report(), ExplodingSettings())
    assert len(outcome) == 0


def test_error_without_message_uses_type_name(settings):
    outcome = DeliveryDispatcher([RecordingSink('Silent', error=KeyError())]).deliver(make_report(), settings)
    assert outcome['Silent'] == 'KeyError'


def test_debug_output(capsys):
    settings = Settings(debug=True)
    DeliveryDispatcher([RecordingSink('Console')]).deliver(make_report(), settings)
    assert '[Fault Reporter] Console: ok' in capsys.readouterr().out


def test_format_display_string():
    settings = Settings(app_name='Shop', contact_info='ops@example.com')
    assert format_display_string('(app) failed, mail (contact)', settings) == 'Shop failed, mail ops@example.com'


def test_user_summary_lists_outcomes(tmp_path):
    settings = Settings(
        app_name='Shop',
        contact_info='ops@example.com',
        log_file_name=str(tmp_path),
        email_to_list='dev@example.com',
    )
    outcome = DeliveryOutcome()
    outcome.record_success('LogToFile')
    outcome.record_error('LogToEmail', 'No email server configured')

    summary = format_user_summary(outcome, settings, make_report())

    assert summary.startswith('Shop has encountered an unexpected problem.\n')
    assert 'Please contact ops@example.com' in summary
    assert 'The following information about the error was automatically captured' in summary
    assert str(tmp_path / 'ExceptionLog.txt') in summary
    assert "email could NOT be sent due to an error:\n   'No email server configured'" in summary
    assert 'application log' not in summary
    assert summary.endswith('Detailed error information follows:\n\nreport body')


def test_user_summary_without_app_details():
    summary = format_user_summary(DeliveryOutcome(), Settings(), make_report())
    assert summary.startswith('\nThe following information')
