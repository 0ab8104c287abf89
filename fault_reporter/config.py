"""Reporter configuration management."""

from __future__ import annotations

import configparser
import os
import re
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field, fields


class ConfigurationSource(ABC):
    """Resolves named settings with typed defaults.

    Subclasses only provide raw string lookup; a missing key, an empty value
    or a value that fails to parse yields the caller's default.
    """

    def __init__(self, app_base: str | None = None) -> None:
        self.app_base = app_base or os.getcwd()

    @abstractmethod
    def lookup(self, key: str) -> str | None:
        """Return the raw value for a key, or None if absent."""

    def get_string(self, key: str, default: str = '') -> str:
        value = self.lookup(key)
        if value is None or value == '':
            return default
        return value

    def get_boolean(self, key: str, default: bool = False) -> bool:
        value = self.lookup(key)
        if value is None or value == '':
            return default
        return value.strip().lower() in ('1', 'true')

    def get_int(self, key: str, default: int = 0) -> int:
        value = self.lookup(key)
        if value is None or value == '':
            return default
        try:
            return int(value.strip())
        except ValueError:
            return default

    def get_path(self, key: str, default: str = '') -> str:
        """Resolve a path setting against the application base directory.

        A missing or empty value yields the default unchanged.
        """
        path = self.get_string(key)
        if not path:
            return default

        # Not a web-root mapping; relative paths are always app-base relative
        if path.startswith('~/'):
            path = path[2:]

        return path if os.path.isabs(path) else os.path.join(self.app_base, path)


class MappingSource(ConfigurationSource):
    """Configuration held in a plain mapping."""

    def __init__(self, values: Mapping[str, object] | None = None, app_base: str | None = None) -> None:
        super().__init__(app_base)
        self._values = dict(values or {})

    def lookup(self, key: str) -> str | None:
        value = self._values.get(key)
        return None if value is None else str(value)


def environment_name(key: str, prefix: str = 'FAULT_REPORTER_') -> str:
    """Map a setting key such as ``LogToUI`` to ``FAULT_REPORTER_LOG_TO_UI``."""
    snake = re.sub(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])', '_', key)
    return prefix + snake.upper()


class EnvironmentSource(ConfigurationSource):
    """Configuration read from ``FAULT_REPORTER_*`` environment variables."""

    def __init__(
        self,
        prefix: str = 'FAULT_REPORTER_',
        environ: Mapping[str, str] | None = None,
        app_base: str | None = None,
    ) -> None:
        super().__init__(app_base)
        self.prefix = prefix
        self._environ = os.environ if environ is None else environ

    def lookup(self, key: str) -> str | None:
        return self._environ.get(environment_name(key, self.prefix))


class IniFileSource(ConfigurationSource):
    """Configuration read from one section of an INI file.

    A missing or unreadable file is not an error: every setting then falls
    back to its default.
    """

    SECTION = 'ExceptionHandlerConfig'

    def __init__(self, path: str, section: str = SECTION, app_base: str | None = None) -> None:
        super().__init__(app_base or os.path.dirname(os.path.abspath(path)))
        self.path = path
        self.section = section
        self._values: dict[str, str] | None = None

    def _load(self) -> dict[str, str]:
        parser = configparser.ConfigParser(interpolation=None)
        parser.optionxform = str  # keep key case
        try:
            parser.read(self.path, encoding='utf-8')
        except (OSError, configparser.Error):
            return {}
        if not parser.has_section(self.section):
            return {}
        return dict(parser.items(self.section))

    def lookup(self, key: str) -> str | None:
        if self._values is None:
            self._values = self._load()
        return self._values.get(key)


def _setting(key: str, kind: str, default: object) -> object:
    return field(default=default, metadata={'key': key, 'kind': kind})


@dataclass(frozen=True)
class Settings:
    """Typed, read-only reporter settings."""

    log_to_event_log: bool = _setting('LogToEventLog', 'bool', False)
    log_to_file: bool = _setting('LogToFile', 'bool', False)
    log_to_email: bool = _setting('LogToEmail', 'bool', False)
    log_to_ui: bool = _setting('LogToUI', 'bool', True)
    log_to_sql: bool = _setting('LogToSQL', 'bool', False)
    log_file_name: str = _setting('LogFileName', 'path', '')
    ignore_regexp: str = _setting('IgnoreRegExp', 'str', '')
    ignore_debug_errors: bool = _setting('IgnoreDebugErrors', 'bool', True)
    ignore_http_errors: bool = _setting('IgnoreHttpErrors', 'bool', False)
    email_server: str = _setting('EmailServer', 'str', '')
    email_from_address: str = _setting('EmailFromAddress', 'str', '')
    email_address_from_name: str = _setting('EmailAddressFromName', 'str', '')
    email_to_list: str = _setting('EmailToAddressList', 'str', '')
    app_name: str = _setting('AppName', 'str', '')
    contact_info: str = _setting('ContactInfo', 'str', '')
    system_id: int = _setting('SystemID', 'int', 0)
    location_id: int = _setting('LocationID', 'int', 0)
    application_id: int = _setting('ApplicationID', 'int', 0)
    reported_by: str = _setting('ReportedBy', 'str', '')
    sql_connection_string: str = _setting('SQLConnectionString', 'str', '')
    sink_timeout: int = _setting('SinkTimeout', 'int', 30)
    suppress_frame_pattern: str = _setting('SuppressFramePattern', 'str', '')
    debug: bool = _setting('Debug', 'bool', False)

    # Fixed names, not read from configuration
    view_state_key: str = '__VIEWSTATE'
    root_exceptions: tuple[str, ...] = (
        'werkzeug.exceptions.InternalServerError',
        'zeep.exceptions.Fault',
    )
    http_exceptions: tuple[str, ...] = (
        'werkzeug.exceptions.HTTPException',
        'starlette.exceptions.HTTPException',
        'django.http.response.Http404',
    )
    default_log_name: str = 'ExceptionLog.txt'
    server_variables_suppress_pattern: str = r'^wsgi\.|^werkzeug\.|^ALL_HTTP|^ALL_RAW|^HTTP_AUTHORIZATION'

    @classmethod
    def load(cls, source: ConfigurationSource) -> 'Settings':
        """Read every configurable field from a source."""
        values: dict[str, object] = {}
        for f in fields(cls):
            key = f.metadata.get('key')
            if key is None:
                continue
            kind = f.metadata['kind']
            if kind == 'bool':
                values[f.name] = source.get_boolean(key, f.default)
            elif kind == 'int':
                values[f.name] = source.get_int(key, f.default)
            elif kind == 'path':
                values[f.name] = source.get_path(key, f.default)
            else:
                values[f.name] = source.get_string(key, f.default)
        return cls(**values)

    @property
    def email_to_addresses(self) -> list[str]:
        """Recipients from the ';'-separated address list."""
        return [a.strip() for a in self.email_to_list.split(';') if a.strip()]

    def sink_enabled(self, name: str) -> bool:
        """Whether a sink with this name should receive reports."""
        flags = {
            'LogToEventLog': self.log_to_event_log,
            'LogToFile': self.log_to_file,
            'LogToEmail': self.log_to_email,
            'LogToSQL': self.log_to_sql,
        }
        return flags.get(name, True)


class SettingsLoader:
    """Loads Settings once, on first use, from a configuration source."""

    def __init__(self, source: ConfigurationSource | None = None, settings: Settings | None = None) -> None:
        self.source = source or EnvironmentSource()
        self._settings = settings
        self._lock = threading.Lock()

    def get(self) -> Settings:
        settings = self._settings
        if settings is None:
            with self._lock:
                if self._settings is None:
                    self._settings = Settings.load(self.source)
                settings = self._settings
        return settings

    def is_loaded(self) -> bool:
        return self._settings is not None
