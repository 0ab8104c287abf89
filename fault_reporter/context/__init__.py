"""Request and process context."""

from .provider import RequestContextProvider, WsgiRequestContext, build_url
from .snapshot import ContextSnapshot, ContextSnapshotter, SectionFilter

__all__ = [
    'RequestContextProvider',
    'WsgiRequestContext',
    'build_url',
    'ContextSnapshot',
    'ContextSnapshotter',
    'SectionFilter',
]
