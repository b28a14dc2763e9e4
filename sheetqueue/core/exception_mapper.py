"""Label failed jobs with domain error codes.

AppConfig.exception_mapper maps exception classes to codes such as
'LLM_RATE_LIMITED' or 'RENDER_CRASHED'. Lookup is by exact class: a subclass
of a mapped exception gets the default code unless it is mapped itself.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

ExceptionMapper = dict[type[BaseException], str]

_CODE = re.compile(r'[A-Z][A-Z0-9_]*')
_CLASS_NAME = re.compile(r'[A-Z][A-Za-z0-9_]*(?:Error|Exception)')


def resolve_exception_error_code(
    exc: BaseException,
    mapper: Mapping[type[BaseException], str] | None,
    default: str,
) -> str:
    code = mapper.get(type(exc)) if isinstance(mapper, Mapping) else None
    return code if isinstance(code, str) else default


def validate_error_code_string(value: object, *, field_name: str) -> str | None:
    """Return a problem description, or None when value is a usable code."""
    if not isinstance(value, str) or not value:
        return f'{field_name} must be a non-empty string, got {value!r}'
    if _CLASS_NAME.fullmatch(value):
        return (
            f"{field_name} '{value}' looks like an exception class name; "
            'use UPPER_SNAKE_CASE code names'
        )
    if not _CODE.fullmatch(value):
        return (
            f"{field_name} '{value}' is invalid; expected UPPER_SNAKE_CASE "
            '(e.g. LLM_RATE_LIMITED)'
        )
    return None


def validate_exception_mapper(mapper: object) -> list[str]:
    if not isinstance(mapper, Mapping):
        return ['exception_mapper must be a mapping of {ExceptionClass: "ERROR_CODE"} entries']

    problems: list[str] = []
    for key, value in mapper.items():
        is_exception_class = isinstance(key, type) and issubclass(key, BaseException)
        if not is_exception_class:
            problems.append(f'Mapper key {key!r} is not a BaseException subclass')
        name = key.__name__ if isinstance(key, type) else repr(key)
        problem = validate_error_code_string(value, field_name=f'Mapper value for {name}')
        if problem is not None:
            problems.append(problem)
    return problems
