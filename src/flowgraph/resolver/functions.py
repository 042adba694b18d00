"""Built-in functions callable from placeholders, e.g. ``{{uppercase(name)}}``.

Arguments arrive as raw, comma-split, trimmed text. Functions that take a
value look the argument up in the scope first and fall back to the literal
text.
"""

from __future__ import annotations

import json
import random
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

_MISSING = object()


def to_text(value: Any) -> str:
    """Render a resolved value for substitution into a string."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def _lookup(arg: str | None, scope: dict) -> Any:
    if arg is None:
        return _MISSING
    return scope[arg] if arg in scope else arg


def _iso_now() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def date_function(args: list[str], scope: dict) -> Any:
    fmt = (args[0] if args and args[0] else "iso").lower()
    now = datetime.now()
    if fmt == "date":
        return now.strftime("%a %b %d %Y")
    if fmt == "time":
        return now.strftime("%H:%M:%S")
    if fmt == "timestamp":
        return int(datetime.now(timezone.utc).timestamp() * 1000)
    if fmt == "year":
        return now.year
    if fmt == "month":
        return now.month
    if fmt == "day":
        return now.day
    return _iso_now()


def random_function(args: list[str], scope: dict) -> Any:
    if len(args) == 1:
        return random.randrange(int(args[0]))
    if len(args) == 2:
        return random.randint(int(args[0]), int(args[1]))
    return random.random()


def uuid_function(args: list[str], scope: dict) -> str:
    return str(uuid.uuid4())


def length_function(args: list[str], scope: dict) -> int:
    value = _lookup(args[0] if args else None, scope)
    if isinstance(value, (str, list, tuple, dict)):
        return len(value)
    return 0


def substring_function(args: list[str], scope: dict) -> Any:
    if len(args) < 2:
        return ""
    value = _lookup(args[0], scope)
    start = int(args[1])
    end = int(args[2]) if len(args) > 2 and args[2] else None
    if not isinstance(value, str):
        return ""
    # Bounds are clamped, and swapped when reversed.
    start = max(0, min(start, len(value)))
    end = len(value) if end is None else max(0, min(end, len(value)))
    if start > end:
        start, end = end, start
    return value[start:end]


def replace_function(args: list[str], scope: dict) -> Any:
    if len(args) < 3:
        return ""
    value = _lookup(args[0], scope)
    if isinstance(value, str):
        return value.replace(args[1], args[2])
    return value


def _string_transform(transform: Callable[[str], str]) -> Callable[[list[str], dict], Any]:
    def apply(args: list[str], scope: dict) -> Any:
        value = _lookup(args[0] if args else None, scope)
        if value is _MISSING:
            return ""
        return transform(value) if isinstance(value, str) else value

    return apply


def format_function(args: list[str], scope: dict) -> Any:
    if not args:
        return ""
    template = _lookup(args[0], scope)
    if not isinstance(template, str):
        return template
    for index, arg in enumerate(args[1:]):
        value = _lookup(arg, scope)
        template = template.replace(f"{{{index}}}", to_text(value))
    return template


BUILTIN_FUNCTIONS: dict[str, Callable[[list[str], dict], Any]] = {
    "date": date_function,
    "random": random_function,
    "uuid": uuid_function,
    "length": length_function,
    "substring": substring_function,
    "replace": replace_function,
    "uppercase": _string_transform(str.upper),
    "lowercase": _string_transform(str.lower),
    "trim": _string_transform(str.strip),
    "format": format_function,
}


def get_function(name: str) -> Callable[[list[str], dict], Any] | None:
    return BUILTIN_FUNCTIONS.get(name.lower())
