"""Report delivery."""

from .dispatcher import DeliveryDispatcher, DeliveryOutcome, format_user_summary
from .sinks import DatabaseSink, EmailSink, EventLogSink, FileSink, Sink, SinkError, default_sinks

__all__ = [
    'DeliveryDispatcher',
    'DeliveryOutcome',
    'format_user_summary',
    'Sink',
    'SinkError',
    'EventLogSink',
    'FileSink',
    'EmailSink',
    'DatabaseSink',
    'default_sinks',
]
