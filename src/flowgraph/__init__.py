"""flowgraph: workflow graph model and variable resolution engine."""

from .config import Settings, configure_logging, get_settings
from .resolver import ResolutionDiagnostic, VariableResolver, VariableValidation
from .workflow import (
    ExecutionOrderMode,
    ExecutionStatus,
    NodeType,
    ValidationResult,
    WorkflowCycleError,
    WorkflowModel,
    WorkflowNode,
    WorkflowStatus,
    WorkflowStore,
)

__all__ = [
    "ExecutionOrderMode",
    "ExecutionStatus",
    "NodeType",
    "ResolutionDiagnostic",
    "Settings",
    "ValidationResult",
    "VariableResolver",
    "VariableValidation",
    "WorkflowCycleError",
    "WorkflowModel",
    "WorkflowNode",
    "WorkflowStatus",
    "WorkflowStore",
    "configure_logging",
    "get_settings",
]
