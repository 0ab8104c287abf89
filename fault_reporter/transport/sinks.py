"""Delivery channels for rendered reports."""

from __future__ import annotations

import logging
import logging.handlers
import os
import smtplib
import socket
import sqlite3
import sys
from abc import ABC, abstractmethod
from contextlib import closing
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from ..config import Settings


SQLITE_BUSY_TIMEOUT = 5.0


class SinkError(Exception):
    """A sink could not deliver a report."""


def sink_timeout(settings: 'Settings', default: float | None) -> float | None:
    """SinkTimeout in seconds; zero or less means the library's own default."""
    if settings.sink_timeout > 0:
        return settings.sink_timeout
    return default


class Sink(ABC):
    """Delivers a rendered report to one destination."""

    name: str = ''

    @abstractmethod
    def send(self, report: str, exception_type: str) -> None:
        """Deliver the report; raise on failure."""


class _PropagatingErrors:
    """Make a logging handler raise emit failures instead of printing them."""

    def handleError(self, record: logging.LogRecord) -> None:
        raise


class _SysLogHandler(_PropagatingErrors, logging.handlers.SysLogHandler):
    pass


class _NTEventLogHandler(_PropagatingErrors, logging.handlers.NTEventLogHandler):
    pass


class EventLogSink(Sink):
    """Writes reports to the Windows event log or the local syslog."""

    name = 'LogToEventLog'

    def __init__(self, settings: 'Settings', handler_factory: Callable[[], logging.Handler] | None = None) -> None:
        self.settings = settings
        self.handler_factory = handler_factory or self._default_handler

    def _default_handler(self) -> logging.Handler:
        if sys.platform == 'win32':
            return _NTEventLogHandler(self.settings.app_name or 'Python Application')
        if os.path.exists('/dev/log'):
            return _SysLogHandler(address='/dev/log')
        return _SysLogHandler(address=('localhost', logging.handlers.SYSLOG_UDP_PORT))

    def send(self, report: str, exception_type: str) -> None:
        handler = self.handler_factory()
        try:
            record = logging.makeLogRecord({
                'name': self.settings.app_name or 'fault_reporter',
                'msg': '\n%s',
                'args': (report,),
                'levelno': logging.ERROR,
                'levelname': 'ERROR',
            })
            handler.emit(record)
        finally:
            handler.close()


class FileSink(Sink):
    """Appends reports to a text log."""

    name = 'LogToFile'

    def __init__(self, settings: 'Settings') -> None:
        self.settings = settings

    @property
    def path(self) -> str:
        path = self.settings.log_file_name
        if not os.path.basename(path) or os.path.isdir(path):
            path = os.path.join(path, self.settings.default_log_name)
        return path

    def send(self, report: str, exception_type: str) -> None:
        path = self.path
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, 'a', encoding='utf-8') as f:
            f.write(report)
            f.write('\n')


class EmailSink(Sink):
    """Mails reports to the configured recipients."""

    name = 'LogToEmail'

    def __init__(self, settings: 'Settings', smtp_factory: Callable[..., Any] = smtplib.SMTP) -> None:
        self.settings = settings
        self.smtp_factory = smtp_factory

    def build_message(self, report: str, exception_type: str) -> EmailMessage:
        message = EmailMessage()
        message['From'] = formataddr((self.settings.email_address_from_name, self.settings.email_from_address))
        message['To'] = ', '.join(self.settings.email_to_addresses)
        message['Subject'] = f'{self.settings.app_name or "Application"} error - {exception_type}'
        message.set_content(report)
        return message

    def send(self, report: str, exception_type: str) -> None:
        # Nobody to mail is not a failure
        if not self.settings.email_to_addresses:
            return

        if not self.settings.email_server:
            raise SinkError('No email server configured')

        message = self.build_message(report, exception_type)
        timeout = sink_timeout(self.settings, socket.getdefaulttimeout())
        with self.smtp_factory(self.settings.email_server, timeout=timeout) as smtp:
            smtp.send_message(message)


class DatabaseSink(Sink):
    """Records reports in an ``exception_log`` table of a SQLite database."""

    name = 'LogToSQL'

    CREATE_TABLE = (
        'CREATE TABLE IF NOT EXISTS exception_log ('
        'id INTEGER PRIMARY KEY AUTOINCREMENT, '
        'logged_at TEXT NOT NULL, '
        'system_id INTEGER, '
        'location_id INTEGER, '
        'application_id INTEGER, '
        'reported_by TEXT, '
        'exception_type TEXT, '
        'exception_text TEXT)'
    )
    INSERT = (
        'INSERT INTO exception_log '
        '(logged_at, system_id, location_id, application_id, reported_by, exception_type, exception_text) '
        'VALUES (?, ?, ?, ?, ?, ?, ?)'
    )

    def __init__(self, settings: 'Settings', connect: Callable[..., sqlite3.Connection] = sqlite3.connect) -> None:
        self.settings = settings
        self.connect = connect

    def send(self, report: str, exception_type: str) -> None:
        database = self.settings.sql_connection_string
        if not database:
            raise SinkError('No database connection string configured')

        timeout = sink_timeout(self.settings, SQLITE_BUSY_TIMEOUT)
        with closing(self.connect(database, timeout=timeout)) as conn:
            with conn:
                conn.execute(self.CREATE_TABLE)
                conn.execute(self.INSERT, (
                    datetime.now().isoformat(sep=' ', timespec='seconds'),
                    self.settings.system_id,
                    self.settings.location_id,
                    self.settings.application_id,
                    self.settings.reported_by,
                    exception_type,
                    report,
                ))


def default_sinks(settings: 'Settings') -> list[Sink]:
    """The built-in sinks, in delivery order."""
    return [
        EventLogSink(settings),
        FileSink(settings),
        EmailSink(settings),
        DatabaseSink(settings),
    ]
