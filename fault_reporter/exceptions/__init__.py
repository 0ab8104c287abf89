"""Exception capture, rendering and handling."""

from .capture import ExceptionChain, ExceptionChainBuilder, ExceptionDescriptor, StackFrameDescriptor
from .composer import Report, ReportComposer
from .handler import ExceptionHandler, HandlingResult
from .policy import SuppressionPolicy
from .stacktrace import StackTraceFormatter

__all__ = [
    'ExceptionChain',
    'ExceptionChainBuilder',
    'ExceptionDescriptor',
    'StackFrameDescriptor',
    'StackTraceFormatter',
    'Report',
    'ReportComposer',
    'SuppressionPolicy',
    'ExceptionHandler',
    'HandlingResult',
]
