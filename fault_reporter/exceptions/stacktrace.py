"""Readable stack trace rendering."""

from __future__ import annotations

from typing import Iterable

from .capture import ExceptionDescriptor, StackFrameDescriptor, attempt


class StackTraceFormatter:
    """Renders captured frames as text, one method signature and location per frame."""

    HEADER = '\n---- Stack Trace ----\n'

    def format_frame(self, frame: StackFrameDescriptor) -> str:
        """Render a single frame as signature line plus location line."""
        name = '.'.join(
            part for part in (frame.module_name, frame.type_name, frame.method_name) if part
        )
        params = ','.join(f'{p.type_name} {p.name}'.strip() for p in frame.parameters)

        if frame.source_available:
            location = f'{frame.file_name}: line {frame.line_number:05d}, col {frame.column_number:02d}'
            if frame.offset is not None:
                location += f', IL {frame.offset:05d}'
        else:
            location = f'(unknown file): N {frame.offset or 0:05d}'

        return f'    {name}({params})\n       {location}\n'

    def format(self, frames: Iterable[StackFrameDescriptor], suppress_name_pattern: str = '') -> str:
        """Render a call stack, omitting frames whose type name contains the pattern."""
        lines = [self.HEADER]
        for frame in frames:
            if suppress_name_pattern and suppress_name_pattern in frame.type_name:
                continue
            lines.append(attempt(lambda: self.format_frame(frame), ''))
        lines.append('\n')
        return ''.join(lines)

    def format_chain(
        self,
        chain: Iterable[ExceptionDescriptor],
        suppress_name_pattern: str = '',
    ) -> str:
        """Render the stacks of every exception in a chain, outermost first."""
        return ''.join(self.format(e.frames, suppress_name_pattern) for e in chain)
