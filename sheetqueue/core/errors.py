"""Rust-style error display for sheetqueue configuration and submission errors.

Only errors a developer can fix before traffic arrives are SheetQueueErrors:
bad queue limits, unknown queue names, non-callable task units. Job failures
at runtime travel through JobHandle / TaskResult instead.
"""

from __future__ import annotations

import inspect
import linecache
import os
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, NamedTuple

# Frames under this directory belong to sheetqueue, not to the caller.
_PACKAGE_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class ErrorCode(str, Enum):
    """
    E1xx: task submission
    E2xx: queue and app configuration
    E3xx: registry lookups
    """

    TASK_NOT_CALLABLE = 'E100'

    CONFIG_INVALID_CONCURRENCY = 'E200'
    CONFIG_INVALID_TIMEOUT = 'E201'
    CONFIG_DUPLICATE_QUEUE = 'E202'
    CONFIG_MISSING_QUEUE = 'E203'
    CONFIG_INVALID_REPORT_INTERVAL = 'E204'
    CONFIG_INVALID_ENV = 'E205'
    CONFIG_INVALID_EXCEPTION_MAPPER = 'E206'

    QUEUE_NOT_REGISTERED = 'E300'


class _Palette(NamedTuple):
    reset: str
    bold: str
    dim: str
    red: str
    blue: str
    cyan: str
    green: str


_ANSI = _Palette('\033[0m', '\033[1m', '\033[2m', '\033[91m', '\033[94m', '\033[96m', '\033[92m')
_PLAIN = _Palette('', '', '', '', '', '', '')


def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').strip().lower() in ('1', 'true', 'yes', 'on')


def _should_use_colors() -> bool:
    if _env_flag('SHEETQUEUE_FORCE_COLOR'):
        return True
    # https://no-color.org/
    if 'NO_COLOR' in os.environ:
        return False
    isatty = getattr(sys.stderr, 'isatty', None)
    return bool(isatty and isatty())


def _should_show_verbose() -> bool:
    """SHEETQUEUE_VERBOSE=1 appends the Python traceback to formatted errors."""
    return _env_flag('SHEETQUEUE_VERBOSE')


def _should_use_plain_errors() -> bool:
    """SHEETQUEUE_PLAIN_ERRORS=1 leaves sys.excepthook output untouched."""
    return _env_flag('SHEETQUEUE_PLAIN_ERRORS')


@dataclass
class SourceLocation:
    file: str
    line: int
    column: int | None = None
    end_column: int | None = None

    @classmethod
    def from_frame(cls, frame: Any) -> SourceLocation:
        return cls(file=frame.f_code.co_filename, line=frame.f_lineno)

    @classmethod
    def from_function(cls, fn: Callable[..., Any]) -> SourceLocation | None:
        """Location of fn's definition; None for callables without __code__."""
        code = getattr(fn, '__code__', None)
        if code is None:
            return None
        return cls(file=code.co_filename, line=code.co_firstlineno)

    def get_source_line(self) -> str | None:
        text = linecache.getline(self.file, self.line)
        return text.rstrip('\n') or None

    def format_short(self) -> str:
        parts = [self.file, str(self.line)]
        if self.column is not None:
            parts.append(str(self.column))
        return ':'.join(parts)

    def underline(self, source_line: str) -> str:
        if self.column is None:
            body = source_line.lstrip()
            return ' ' * (len(source_line) - len(body)) + '^' * len(body)
        stop = self.end_column if self.end_column is not None else self.column + 1
        return ' ' * self.column + '^' * max(1, stop - self.column)


@dataclass
class SheetQueueError(Exception):
    """
    Base class for errors raised while configuring queues or submitting work.

    Renders like a compiler diagnostic:

        error[E200]: queue concurrency must be at least 1
          --> app/startup.py:12
           |
         12| registry = QueueRegistry(AppConfig(queues=[...]))
           | ^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^^
           = note: queue 'pdf' got concurrency=0

           = help:
                use a positive integer

    The location defaults to the first stack frame outside sheetqueue.
    """

    message: str
    code: ErrorCode | None = None
    location: SourceLocation | None = None
    notes: list[str] = field(default_factory=list)
    help_text: str | None = None

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)
        if self.location is None:
            frame = _find_user_frame()
            if frame is not None:
                self.location = SourceLocation.from_frame(frame)

    def with_note(self, note: str) -> SheetQueueError:
        self.notes.append(note)
        return self

    def with_help(self, help_text: str) -> SheetQueueError:
        self.help_text = help_text
        return self

    def with_location(self, location: SourceLocation) -> SheetQueueError:
        self.location = location
        return self

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        p = _ANSI if (_should_use_colors() if use_colors is None else use_colors) else _PLAIN
        code = f'[{self.code.value}]' if self.code is not None else ''
        out = ['', f'{p.bold}{p.red}error{code}:{p.reset} {self.message}']
        out.extend(self._location_lines(p))
        for note in self.notes:
            first, *rest = note.split('\n')
            out.append(f'   {p.blue}={p.reset} {p.bold}{p.blue}note{p.reset}: {first}')
            out.extend(f'          {extra}' for extra in rest)
        if self.help_text:
            out += ['', f'   {p.blue}={p.reset} {p.bold}{p.green}help{p.reset}:']
            out.extend(f'        {line}' for line in self.help_text.split('\n'))
        return '\n'.join(out)

    def _location_lines(self, p: _Palette) -> list[str]:
        loc = self.location
        if loc is None:
            return []
        lines = [f'  {p.blue}-->{p.reset} {p.cyan}{loc.format_short()}{p.reset}']
        source = loc.get_source_line()
        if source:
            gutter = ' ' * len(str(loc.line))
            lines += [
                f'   {p.blue}{gutter}|{p.reset}',
                f'   {p.blue}{loc.line}|{p.reset} {source}',
                f'   {p.blue}{gutter}|{p.reset} {p.red}{loc.underline(source)}{p.reset}',
            ]
        return lines

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


@dataclass
class TaskDefinitionError(SheetQueueError):
    """Something other than a zero-argument callable was submitted."""


@dataclass
class ConfigurationError(SheetQueueError):
    """Queue or app configuration is invalid."""


@dataclass
class RegistryError(SheetQueueError):
    """A queue lookup in the registry failed."""


_original_excepthook = sys.excepthook


def _sheetqueue_excepthook(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: Any,
) -> None:
    if _should_use_plain_errors() or not isinstance(exc_value, SheetQueueError):
        _original_excepthook(exc_type, exc_value, exc_tb)
        return

    print(exc_value.format_rust_style(), file=sys.stderr)
    if _should_show_verbose():
        p = _ANSI if _should_use_colors() else _PLAIN
        print(f'\n{p.dim}Full traceback (SHEETQUEUE_VERBOSE=1):{p.reset}', file=sys.stderr)
        traceback.print_exception(exc_type, exc_value, exc_tb, file=sys.stderr)


def install_error_handler() -> None:
    sys.excepthook = _sheetqueue_excepthook


def uninstall_error_handler() -> None:
    sys.excepthook = _original_excepthook


class ValidationReport:
    """Errors found while validating one config object, raised together."""

    def __init__(self, phase_name: str) -> None:
        self.phase_name = phase_name
        self.errors: list[SheetQueueError] = []

    def add(self, error: SheetQueueError) -> None:
        self.errors.append(error)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        if use_colors is None:
            use_colors = _should_use_colors()
        p = _ANSI if use_colors else _PLAIN
        blocks = [e.format_rust_style(use_colors=use_colors) for e in self.errors]
        blocks.append(
            f'\n{p.bold}{p.red}error{p.reset}: '
            f'aborting due to {len(self.errors)} previous errors'
        )
        return '\n'.join(blocks)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


@dataclass
class MultipleValidationErrors(SheetQueueError):
    """Two or more independent errors from one ValidationReport."""

    report: ValidationReport = field(default_factory=lambda: ValidationReport(''))

    def __post_init__(self) -> None:
        self.message = self.message or (
            f'aborting due to {len(self.report.errors)} previous errors'
        )
        # Each collected error carries its own location.
        Exception.__init__(self, self.message)

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        return self.report.format_rust_style(use_colors=use_colors)


def raise_collected(report: ValidationReport) -> None:
    """No-op when empty; a single error is raised as itself."""
    if not report.errors:
        return
    if len(report.errors) == 1:
        raise report.errors[0]
    raise MultipleValidationErrors(
        message=f'aborting due to {len(report.errors)} previous errors',
        report=report,
    )


def _find_user_frame() -> Any | None:
    frame = inspect.currentframe()
    while frame is not None:
        filename = frame.f_code.co_filename
        if not (
            filename.startswith('<')
            or filename.startswith(_PACKAGE_ROOT)
            or f'{os.sep}site-packages{os.sep}' in filename
        ):
            return frame
        frame = frame.f_back
    return None
