"""Turns an exception and its surroundings into a single text report."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..context.snapshot import ContextSnapshot, ContextSnapshotter
from .capture import ExceptionChain, ExceptionChainBuilder, ExceptionDescriptor, full_type_name
from .modules import format_module_info
from .stacktrace import StackTraceFormatter

if TYPE_CHECKING:
    from ..config import Settings
    from ..context.provider import RequestContextProvider

OUTER_MARKER = '(Outer Exception)'


@dataclass
class Report:
    """A rendered report, held only while it is delivered."""

    text: str
    exception_type: str
    view_state: str | None = None
    chain: ExceptionChain = field(default_factory=ExceptionChain)

    def __str__(self) -> str:
        return self.text


class ReportComposer:
    """Builds the report for one handled exception.

    The innermost exception is rendered first and every enclosing exception
    follows, introduced by an ``(Outer Exception)`` line. System and module
    information is rendered once, with the outermost exception, and the
    request collections close the report.
    """

    def __init__(
        self,
        settings: 'Settings',
        snapshotter: ContextSnapshotter | None = None,
        formatter: StackTraceFormatter | None = None,
    ) -> None:
        self.settings = settings
        self.chain_builder = ExceptionChainBuilder(settings.root_exceptions)
        self.snapshotter = snapshotter or ContextSnapshotter.from_settings(settings)
        self.formatter = formatter or StackTraceFormatter()

    def resolved_type(self, exception: BaseException) -> str:
        """Type name that represents the exception, looking through root wrappers."""
        return full_type_name(type(self.chain_builder.resolve(exception)))

    def compose(
        self,
        exception: BaseException,
        request: 'RequestContextProvider | None' = None,
    ) -> Report:
        try:
            chain = self.chain_builder.build(exception)
            snapshot = self.snapshotter.snapshot(request)
            text = self.render(chain, snapshot)
            return Report(
                text=text,
                exception_type=self.resolved_type(exception),
                view_state=snapshot.view_state,
                chain=chain,
            )
        except Exception as e:
            return Report(
                text=f"Error '{e}' while generating exception string",
                exception_type=full_type_name(type(exception)),
            )

    def render(self, chain: ExceptionChain, snapshot: ContextSnapshot) -> str:
        blocks = []
        outermost = len(chain) - 1
        for depth, descriptor in enumerate(reversed(chain)):
            block = ''
            if depth == outermost:
                block += snapshot.render_system()
                block += f'{format_module_info(descriptor.source)}\n'
            block += self.render_exception(descriptor)
            blocks.append(block)

        return f'\n{OUTER_MARKER}\n'.join(blocks) + snapshot.render_collections()

    def render_exception(self, descriptor: ExceptionDescriptor) -> str:
        """Fields and stack trace of a single exception."""
        return (
            f'Exception Type:        {descriptor.type_name}\n'
            f'Exception Message:     {descriptor.message}\n'
            f'Exception Source:      {descriptor.source}\n'
            f'Exception Target Site: {descriptor.target_site}\n'
            f'{self.formatter.format(descriptor.frames, self.settings.suppress_frame_pattern)}\n'
        )
