"""Resolve ``{{expression}}`` placeholders inside configuration values."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from pydantic import BaseModel

from .arithmetic import evaluate_arithmetic, is_arithmetic, substitute_numeric_variables
from .functions import get_function, to_text

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{(.+?)\}\}")
_FULL_PLACEHOLDER_RE = re.compile(r"^\{\{(.+)\}\}$")
_INDEX_RE = re.compile(r"^(\w+)\[(\d+)\]$")
_CALL_RE = re.compile(r"^(\w+)\((.*)\)$")


class _Undefined:
    """Marker for an expression that resolved to nothing."""

    _instance: Optional["_Undefined"] = None

    def __new__(cls) -> "_Undefined":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()


class ResolutionDiagnostic(BaseModel):
    """A placeholder that was left as written, and why."""

    placeholder: str
    expression: str
    reason: str


class VariableValidation(BaseModel):
    valid: bool
    missing_variables: list[str] = []
    referenced_variables: list[str] = []


def get_nested_value(scope: Any, path: str) -> Any:
    """Walk ``a.b.c`` through nested mappings; numeric segments index lists."""
    current = scope
    for key in path.split("."):
        if isinstance(current, dict):
            if key not in current:
                return UNDEFINED
            current = current[key]
        elif isinstance(current, (list, tuple)) and key.isdigit():
            index = int(key)
            if index >= len(current):
                return UNDEFINED
            current = current[index]
        else:
            return UNDEFINED
    return current


class VariableResolver:
    """Substitutes placeholders against a variable scope.

    Expressions are tried in order: exact scope key, dotted path,
    ``name[index]``, built-in function call, arithmetic. Anything that does
    not resolve, or raises while resolving, leaves the placeholder exactly
    as written. Neither the value nor the scope is mutated.
    """

    def __init__(self, strict_logging: bool | None = None):
        if strict_logging is None:
            from ..config import get_settings

            strict_logging = get_settings().resolver_strict_logging
        self._diagnostic_level = logging.WARNING if strict_logging else logging.DEBUG

    def resolve_variables(
        self,
        value: Any,
        scope: dict[str, Any] | None = None,
        diagnostics: list[ResolutionDiagnostic] | None = None,
        preserve_types: bool = False,
    ) -> Any:
        """Resolve placeholders anywhere inside ``value``.

        Strings are templated, lists and tuples are mapped element-wise into
        new lists, dicts are mapped value-wise with keys kept verbatim, and
        every other value passes through. With ``preserve_types`` a string
        that is exactly one placeholder yields the resolved value itself
        instead of its text.
        """
        scope = scope if scope is not None else {}

        if value is None or isinstance(value, (bool, int, float)):
            return value
        if isinstance(value, str):
            if preserve_types:
                full = _FULL_PLACEHOLDER_RE.match(value)
                if full and "{{" not in full.group(1) and "}}" not in full.group(1):
                    resolved = self._resolve_single(value, full.group(1), scope, diagnostics)
                    return value if resolved is UNDEFINED else resolved
            return self.resolve_string(value, scope, diagnostics)
        if isinstance(value, (list, tuple)):
            return [self.resolve_variables(item, scope, diagnostics, preserve_types) for item in value]
        if isinstance(value, dict):
            return {
                key: self.resolve_variables(item, scope, diagnostics, preserve_types)
                for key, item in value.items()
            }
        return value

    def resolve_string(
        self,
        text: str,
        scope: dict[str, Any] | None = None,
        diagnostics: list[ResolutionDiagnostic] | None = None,
    ) -> str:
        scope = scope if scope is not None else {}

        def substitute(match: re.Match) -> str:
            resolved = self._resolve_single(match.group(0), match.group(1), scope, diagnostics)
            return match.group(0) if resolved is UNDEFINED else to_text(resolved)

        return PLACEHOLDER_RE.sub(substitute, text)

    def resolve_node_config(self, node: Any, scope: dict[str, Any] | None = None, **kwargs: Any) -> dict:
        """Resolve ``node.config`` for dispatch. The node is left untouched."""
        return self.resolve_variables(node.config, scope, **kwargs)

    def _resolve_single(
        self,
        placeholder: str,
        body: str,
        scope: dict[str, Any],
        diagnostics: list[ResolutionDiagnostic] | None,
    ) -> Any:
        expression = body.strip()
        try:
            value = self.evaluate_expression(expression, scope)
        except Exception as exc:
            self._report(placeholder, expression, f"{type(exc).__name__}: {exc}", diagnostics)
            return UNDEFINED
        if value is UNDEFINED:
            self._report(placeholder, expression, "unresolved", diagnostics)
        return value

    def _report(
        self,
        placeholder: str,
        expression: str,
        reason: str,
        diagnostics: list[ResolutionDiagnostic] | None,
    ) -> None:
        logger.log(self._diagnostic_level, "Placeholder %s left as-is: %s", placeholder, reason)
        if diagnostics is not None:
            diagnostics.append(
                ResolutionDiagnostic(placeholder=placeholder, expression=expression, reason=reason)
            )

    def evaluate_expression(self, expression: str, scope: dict[str, Any] | None = None) -> Any:
        """Evaluate a single placeholder body. Returns UNDEFINED if unresolved.

        May raise on malformed input; ``resolve_variables`` turns that into
        an unchanged placeholder.
        """
        scope = scope if scope is not None else {}

        if expression in scope:
            return scope[expression]

        # Anything with a dot is a path unless it is a call or plain arithmetic,
        # so keys such as "content-type" still resolve.
        substituted = substitute_numeric_variables(expression, scope)
        if "." in expression and not _CALL_RE.match(expression) and not is_arithmetic(substituted):
            return get_nested_value(scope, expression)

        match = _INDEX_RE.match(expression)
        if match:
            name, index = match.group(1), int(match.group(2))
            items = scope.get(name)
            if isinstance(items, (list, tuple)) and index < len(items):
                return items[index]
            return UNDEFINED

        match = _CALL_RE.match(expression)
        if match:
            function = get_function(match.group(1))
            if function is None:
                return UNDEFINED
            raw_args = match.group(2)
            args = [arg.strip() for arg in raw_args.split(",")] if raw_args.strip() else []
            return function(args, scope)

        if is_arithmetic(substituted):
            return evaluate_arithmetic(expression, scope)

        return UNDEFINED

    def get_variable_references(self, text: Any) -> list[str]:
        """Placeholder bodies in order of first occurrence, without duplicates."""
        if not isinstance(text, str):
            return []
        return list(dict.fromkeys(match.strip() for match in PLACEHOLDER_RE.findall(text)))

    def has_variables(self, text: Any) -> bool:
        return isinstance(text, str) and PLACEHOLDER_RE.search(text) is not None

    def validate_variables(self, expression: Any, scope: dict[str, Any] | None = None) -> VariableValidation:
        """Report references that are neither scope keys nor resolvable paths.

        Index, function and arithmetic forms are not checked and always
        count as missing unless they are literally a scope key.
        """
        scope = scope if scope is not None else {}
        references = self.get_variable_references(expression)
        missing = []
        for ref in references:
            if ref in scope:
                continue
            if "." in ref and get_nested_value(scope, ref) is not UNDEFINED:
                continue
            missing.append(ref)

        return VariableValidation(
            valid=not missing,
            missing_variables=missing,
            referenced_variables=references,
        )


_default_resolver: VariableResolver | None = None


def _get_default_resolver() -> VariableResolver:
    global _default_resolver
    if _default_resolver is None:
        _default_resolver = VariableResolver()
    return _default_resolver


def resolve_variables(value: Any, scope: dict[str, Any] | None = None, **kwargs: Any) -> Any:
    return _get_default_resolver().resolve_variables(value, scope, **kwargs)


def validate_variables(expression: Any, scope: dict[str, Any] | None = None) -> VariableValidation:
    return _get_default_resolver().validate_variables(expression, scope)
