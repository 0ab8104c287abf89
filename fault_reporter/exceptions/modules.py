"""Loaded module metadata and build dates."""

from __future__ import annotations

import os
import re
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import lru_cache
from importlib import metadata
from types import ModuleType

from .capture import attempt

ZERO_VERSION = (0, 0, 0, 0)
BUILD_EPOCH = datetime(2000, 1, 1)

# Builds numbered below this many days after the epoch predate the convention
MIN_BUILD_DAYS = 730


def parse_version(version: str) -> tuple[int, int, int, int]:
    """Parse the leading numeric parts of a version into four components."""
    parts: list[int] = []
    for piece in version.split('.')[:4]:
        match = re.match(r'\d+', piece)
        parts.append(int(match.group()) if match else 0)
    while len(parts) < 4:
        parts.append(0)
    return tuple(parts)  # type: ignore[return-value]


def file_time(path: str | None) -> datetime:
    """Last modification time of a file, or ``datetime.max`` if unavailable."""
    try:
        return datetime.fromtimestamp(os.path.getmtime(path))  # type: ignore[arg-type]
    except (OSError, TypeError, ValueError):
        return datetime.max


def _is_daylight_saving(moment: datetime) -> bool:
    return time.localtime(time.mktime(moment.timetuple())).tm_isdst > 0


def build_date(version: str, path: str | None, now: datetime | None = None) -> datetime:
    """Build date encoded in a version number, with a file-time fallback.

    The third version component counts days and the fourth counts 2-second
    ticks from 2000-01-01. Versions that do not follow that convention fall
    back to the modification time of the module file.
    """
    _, _, build, revision = parse_version(version)
    now = now or datetime.now()

    try:
        built = BUILD_EPOCH + timedelta(days=build, seconds=revision * 2)
        if _is_daylight_saving(built):
            built += timedelta(hours=1)
    except (OverflowError, ValueError):
        return file_time(path)

    if built > now or build < MIN_BUILD_DAYS or revision == 0:
        return file_time(path)
    return built


@lru_cache(maxsize=1)
def _distributions_by_package() -> dict[str, list[str]]:
    return dict(metadata.packages_distributions())


def module_version(name: str, module: ModuleType | None = None) -> str:
    """Installed distribution version of a top-level module."""
    for dist in attempt(_distributions_by_package, {}).get(name, []):
        version = attempt(lambda: metadata.version(dist), None)
        if version:
            return version

    version = getattr(module, '__version__', None)
    if isinstance(version, str) and version:
        return version
    return '0.0.0.0'


@dataclass(frozen=True)
class ModuleInfo:
    """Codebase, name, version and build date of a loaded module."""

    name: str
    codebase: str
    version: str

    @property
    def full_name(self) -> str:
        return f'{self.name}, Version={self.version}'

    @property
    def build_date(self) -> datetime:
        return build_date(self.version, self.codebase or None)

    @property
    def is_zero_version(self) -> bool:
        return parse_version(self.version) == ZERO_VERSION

    @classmethod
    def from_module(cls, name: str, module: ModuleType) -> 'ModuleInfo':
        return cls(
            name=name,
            codebase=attempt(lambda: getattr(module, '__file__', None) or '', ''),
            version=module_version(name, module),
        )


def find_module(name: str) -> ModuleInfo | None:
    """Look up a top-level module among those currently loaded."""
    if not name:
        return None
    module = sys.modules.get(name)
    if module is None:
        return None
    return ModuleInfo.from_module(name, module)


def loaded_modules() -> list[ModuleInfo]:
    """Every loaded top-level module, sorted by name."""
    infos = []
    for name, module in sorted(list(sys.modules.items())):
        if '.' in name or module is None:
            continue
        infos.append(ModuleInfo.from_module(name, module))
    return infos


def format_module_details(info: ModuleInfo) -> str:
    """Render one module's metadata, one field per line."""
    fields = (
        ('Module Codebase:', lambda: info.codebase),
        ('Module Full Name:', lambda: info.full_name),
        ('Module Version:', lambda: info.version),
        ('Module Build Date:', lambda: info.build_date),
    )
    lines = []
    for label, getter in fields:
        try:
            value = str(getter())
        except Exception as e:
            value = str(e)
        lines.append(f'{label:<23}{value}\n')
    return ''.join(lines)


def format_module_table(infos: list[ModuleInfo]) -> str:
    """Render every module that carries a real version as a table."""
    line = '\n   {0:<30} {1:<15} {2}'
    out = [line.format('Module', 'Version', 'BuildDate'), line.format('------', '-------', '---------')]
    for info in infos:
        if info.is_zero_version:
            continue
        out.append(line.format(info.name, info.version, attempt(lambda: info.build_date, '')))
    out.append('\n')
    return ''.join(out)


def format_module_info(source: str) -> str:
    """Details of the originating module, or the table of all modules if it is unknown."""
    info = attempt(lambda: find_module(source), None)
    if info is None:
        return format_module_table(attempt(loaded_modules, []))
    return format_module_details(info)
