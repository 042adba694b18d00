"""Variable resolution engine for ``{{...}}`` placeholders."""

from .arithmetic import ArithmeticEvaluationError, ArithmeticSyntaxError, evaluate_arithmetic
from .functions import BUILTIN_FUNCTIONS
from .resolver import (
    PLACEHOLDER_RE,
    UNDEFINED,
    ResolutionDiagnostic,
    VariableResolver,
    VariableValidation,
    resolve_variables,
    validate_variables,
)

__all__ = [
    "ArithmeticEvaluationError",
    "ArithmeticSyntaxError",
    "BUILTIN_FUNCTIONS",
    "PLACEHOLDER_RE",
    "ResolutionDiagnostic",
    "UNDEFINED",
    "VariableResolver",
    "VariableValidation",
    "evaluate_arithmetic",
    "resolve_variables",
    "validate_variables",
]
