"""Fan-out of a report to every enabled sink."""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Iterable

from .sinks import FileSink, Sink

if TYPE_CHECKING:
    from ..config import Settings
    from ..exceptions.composer import Report

OK = 'ok'
BULLET = '·'


class DeliveryOutcome(Mapping):
    """Per-sink result of one delivery: ``'ok'`` or the error message."""

    def __init__(self) -> None:
        self._results: dict[str, str] = {}

    def record_success(self, name: str) -> None:
        self._results[name] = OK

    def record_error(self, name: str, message: str) -> None:
        self._results[name] = message

    def succeeded(self, name: str) -> bool:
        return self._results.get(name) == OK

    @property
    def errors(self) -> dict[str, str]:
        return {name: result for name, result in self._results.items() if result != OK}

    def __getitem__(self, name: str) -> str:
        return self._results[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._results)

    def __len__(self) -> int:
        return len(self._results)

    def __repr__(self) -> str:
        return f'DeliveryOutcome({self._results!r})'


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


class DeliveryDispatcher:
    """Sends a report to each enabled sink, isolating their failures."""

    def __init__(self, sinks: Iterable[Sink]) -> None:
        self.sinks = list(sinks)

    def enabled_sinks(self, settings: 'Settings') -> list[Sink]:
        return [sink for sink in self.sinks if settings.sink_enabled(sink.name)]

    def deliver(self, report: 'Report', settings: 'Settings') -> DeliveryOutcome:
        """Never raises; whatever was recorded before a failure is returned."""
        outcome = DeliveryOutcome()
        try:
            for sink in self.enabled_sinks(settings):
                self._deliver_one(sink, report, settings, outcome)
        except Exception as e:
            if settings.debug:
                print(f'[Fault Reporter] Delivery aborted: {e}')
        return outcome

    def _deliver_one(
        self,
        sink: Sink,
        report: 'Report',
        settings: 'Settings',
        outcome: DeliveryOutcome,
    ) -> None:
        errors: list[BaseException] = []

        def run() -> None:
            try:
                sink.send(report.text, report.exception_type)
            except Exception as e:
                errors.append(e)

        worker = threading.Thread(target=run, name=f'fault-reporter-{sink.name}', daemon=True)
        worker.start()
        worker.join(settings.sink_timeout if settings.sink_timeout > 0 else None)

        if worker.is_alive():
            outcome.record_error(sink.name, f'Timed out after {settings.sink_timeout}s')
        elif errors:
            outcome.record_error(sink.name, _error_message(errors[0]))
        else:
            outcome.record_success(sink.name)

        if settings.debug:
            print(f'[Fault Reporter] {sink.name}: {outcome[sink.name]}')


def format_display_string(template: str, settings: 'Settings') -> str:
    """Fill the ``(app)`` and ``(contact)`` placeholders."""
    text = template or ''
    text = text.replace('(app)', settings.app_name)
    return text.replace('(contact)', settings.contact_info)


def format_user_summary(outcome: DeliveryOutcome, settings: 'Settings', report: 'Report') -> str:
    """Describe where the report went, followed by the report itself."""
    out = []
    if settings.app_name:
        out.append(format_display_string('(app) has encountered an unexpected problem.\n', settings))
    if settings.contact_info:
        out.append(format_display_string('Please contact (contact) if the problem persists.\n', settings))

    out.append('\nThe following information about the error was automatically captured: \n\n')

    if 'LogToEventLog' in outcome:
        out.append(f' {BULLET} ')
        if outcome.succeeded('LogToEventLog'):
            out.append('an event was written to the application log\n')
        else:
            out.append(f"an event could NOT be written to the application log due to an error:\n   '{outcome['LogToEventLog']}'\n")

    if 'LogToFile' in outcome:
        out.append(f' {BULLET} ')
        if outcome.succeeded('LogToFile'):
            out.append(f'details were written to a text log at:\n   {FileSink(settings).path}\n')
        else:
            out.append(f"details could NOT be written to the text log due to an error:\n   '{outcome['LogToFile']}'\n")

    if 'LogToEmail' in outcome:
        out.append(f' {BULLET} ')
        if outcome.succeeded('LogToEmail'):
            out.append(f'an email was sent to: {settings.email_to_list}\n')
        else:
            out.append(f"email could NOT be sent due to an error:\n   '{outcome['LogToEmail']}'\n")

    if 'LogToSQL' in outcome:
        out.append(f' {BULLET} ')
        if outcome.succeeded('LogToSQL'):
            out.append('details were recorded in the error database\n')
        else:
            out.append(f"details could NOT be recorded in the error database due to an error:\n   '{outcome['LogToSQL']}'\n")

    out.append(f'\n\nDetailed error information follows:\n\n{report.text}')
    return ''.join(out)
