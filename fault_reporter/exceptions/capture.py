"""Exception capture data structures."""

from __future__ import annotations

import inspect
import os
import sys
from dataclasses import dataclass, field
from types import CodeType, FrameType, TracebackType
from typing import Any, Callable, Iterable, TypeVar

T = TypeVar('T')

_PACKAGE = __name__.split('.')[0]
MAX_CHAIN_LENGTH = 100
MAX_FRAMES = 200


def attempt(fn: Callable[[], T], default: T) -> T:
    """Evaluate a single field, returning the default if the lookup fails."""
    try:
        return fn()
    except Exception:
        return default


def full_type_name(cls: type) -> str:
    """Dotted name of an exception class; builtins keep their short name."""
    module = getattr(cls, '__module__', None)
    name = getattr(cls, '__qualname__', None) or cls.__name__
    if not module or module == 'builtins':
        return name
    return f'{module}.{name}'


def inner_exception(exception: BaseException) -> BaseException | None:
    """The exception wrapped by this one, if any."""
    if exception.__cause__ is not None:
        return exception.__cause__

    # werkzeug's InternalServerError carries the real error without chaining
    original = getattr(exception, 'original_exception', None)
    if isinstance(original, BaseException):
        return original

    if exception.__context__ is not None and not exception.__suppress_context__:
        return exception.__context__

    return None


@dataclass(frozen=True)
class ParameterDescriptor:
    """A parameter of the method a frame belongs to."""

    type_name: str
    name: str


@dataclass(frozen=True)
class StackFrameDescriptor:
    """Information about a single stack frame."""

    module_name: str
    type_name: str
    method_name: str
    parameters: tuple[ParameterDescriptor, ...] = ()
    file_name: str | None = None
    line_number: int = 0
    column_number: int = 0
    offset: int | None = None

    @property
    def source_available(self) -> bool:
        return bool(self.file_name)


@dataclass(frozen=True)
class ExceptionDescriptor:
    """One level of an exception chain."""

    type_name: str
    message: str
    source: str
    target_site: str
    frames: tuple[StackFrameDescriptor, ...] = field(default_factory=tuple)


def _declaring_type(frame: FrameType, code: CodeType) -> str:
    qualname = getattr(code, 'co_qualname', '')
    if '.' in qualname:
        owner = qualname.rsplit('.', 1)[0]
        if not owner.endswith('<locals>'):
            return owner

    local_self = frame.f_locals.get('self')
    if local_self is not None:
        return type(local_self).__name__

    local_cls = frame.f_locals.get('cls')
    if isinstance(local_cls, type):
        return local_cls.__name__

    return ''


def _parameters(frame: FrameType, code: CodeType) -> tuple[ParameterDescriptor, ...]:
    count = code.co_argcount + code.co_kwonlyargcount
    if code.co_flags & inspect.CO_VARARGS:
        count += 1
    if code.co_flags & inspect.CO_VARKEYWORDS:
        count += 1

    params: list[ParameterDescriptor] = []
    for name in code.co_varnames[:count]:
        if name in frame.f_locals:
            type_name = attempt(lambda: type(frame.f_locals[name]).__name__, '')
        else:
            type_name = ''
        params.append(ParameterDescriptor(type_name=type_name, name=name))
    return tuple(params)


def _column(code: CodeType, offset: int) -> int:
    positions = getattr(code, 'co_positions', None)
    if positions is None or offset < 0:
        return 0
    for index, position in enumerate(positions()):
        if index == offset // 2:
            col = position[2]
            return col + 1 if col is not None else 0
    return 0


def describe_frame(frame: FrameType, line_number: int, offset: int) -> StackFrameDescriptor:
    """Capture a frame; failed lookups become empty fields."""
    code = frame.f_code
    file_path = code.co_filename
    source_available = bool(file_path) and not file_path.startswith('<')

    return StackFrameDescriptor(
        module_name=attempt(lambda: str(frame.f_globals.get('__name__', '')), ''),
        type_name=attempt(lambda: _declaring_type(frame, code), ''),
        method_name=attempt(lambda: code.co_name, ''),
        parameters=attempt(lambda: _parameters(frame, code), ()),
        file_name=os.path.basename(file_path) if source_available else None,
        line_number=line_number or 0,
        column_number=attempt(lambda: _column(code, offset), 0),
        offset=offset if offset >= 0 else None,
    )


def frames_from_traceback(tb: TracebackType | None) -> list[StackFrameDescriptor]:
    """Extract frames from a traceback, outermost call first."""
    frames: list[StackFrameDescriptor] = []
    while tb is not None and len(frames) < MAX_FRAMES:
        frames.append(describe_frame(tb.tb_frame, tb.tb_lineno, tb.tb_lasti))
        tb = tb.tb_next
    return frames


def frames_from_current_stack() -> list[StackFrameDescriptor]:
    """Describe the calling stack, skipping this package's own frames."""
    frames: list[StackFrameDescriptor] = []
    current = sys._getframe(1)
    while current is not None and len(frames) < MAX_FRAMES:
        module = current.f_globals.get('__name__', '')
        if module != _PACKAGE and not module.startswith(_PACKAGE + '.'):
            frames.append(describe_frame(current, current.f_lineno, current.f_lasti))
        current = current.f_back
    frames.reverse()
    return frames


def _source(tb: TracebackType | None) -> str:
    last = None
    while tb is not None:
        last = tb
        tb = tb.tb_next
    if last is None:
        return ''
    return str(last.tb_frame.f_globals.get('__name__', '')).split('.')[0]


def describe_exception(exception: BaseException) -> ExceptionDescriptor:
    """Capture the information carried by a single exception."""
    tb = exception.__traceback__
    if tb is not None:
        frames = frames_from_traceback(tb)
    else:
        frames = frames_from_current_stack()

    return ExceptionDescriptor(
        type_name=attempt(lambda: full_type_name(type(exception)), ''),
        message=attempt(lambda: str(exception), '(unprintable message)'),
        source=attempt(lambda: _source(tb), ''),
        target_site=frames[-1].method_name if tb is not None and frames else '',
        frames=tuple(frames),
    )


class ExceptionChain(tuple):
    """Ordered exception descriptors, outermost first."""

    @property
    def outermost(self) -> ExceptionDescriptor:
        return self[0]

    @property
    def innermost(self) -> ExceptionDescriptor:
        return self[-1]


class ExceptionChainBuilder:
    """Unwraps an exception and the exceptions it wraps into a chain."""

    def __init__(self, root_exceptions: Iterable[str] = ()) -> None:
        self.root_exceptions = frozenset(root_exceptions)

    def is_root_wrapper(self, exception: BaseException) -> bool:
        """A framework wrapper whose only information is its inner exception."""
        return (
            full_type_name(type(exception)) in self.root_exceptions
            and inner_exception(exception) is not None
        )

    def resolve(self, exception: BaseException) -> BaseException:
        """The exception a root wrapper stands for, or the exception itself."""
        if self.is_root_wrapper(exception):
            return inner_exception(exception)  # type: ignore[return-value]
        return exception

    def unwrap(self, exception: BaseException) -> list[BaseException]:
        """List the exception and its inner exceptions, eliding root wrappers."""
        chain: list[BaseException] = []
        seen: set[int] = set()
        current: BaseException | None = exception

        while current is not None and id(current) not in seen and len(seen) < MAX_CHAIN_LENGTH:
            seen.add(id(current))
            if not self.is_root_wrapper(current):
                chain.append(current)
            current = inner_exception(current)

        if not chain:
            chain.append(exception)
        return chain

    def build(self, exception: BaseException) -> ExceptionChain:
        return ExceptionChain(describe_exception(e) for e in self.unwrap(exception))


def describe_value(value: Any) -> str:
    """Stringify a value for a report line."""
    if value is None:
        return '(Null)'
    try:
        return str(value)
    except Exception:
        return f'({full_type_name(type(value))})'
