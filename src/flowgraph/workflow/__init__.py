"""Workflow graph model: nodes, connections, ordering and validation."""

from .model import WorkflowMetadata, WorkflowModel
from .node import WorkflowNode
from .ordering import WorkflowCycleError
from .schema import (
    Edge,
    ExecutionOrderMode,
    ExecutionStatus,
    InputConnection,
    NodeConnections,
    NodeType,
    OutputConnection,
    Position,
    Step,
    ValidationResult,
    WorkflowDocument,
    WorkflowStatus,
)
from .store import VersionConflictError, WorkflowStore

__all__ = [
    "Edge",
    "ExecutionOrderMode",
    "ExecutionStatus",
    "InputConnection",
    "NodeConnections",
    "NodeType",
    "OutputConnection",
    "Position",
    "Step",
    "ValidationResult",
    "VersionConflictError",
    "WorkflowCycleError",
    "WorkflowDocument",
    "WorkflowMetadata",
    "WorkflowModel",
    "WorkflowNode",
    "WorkflowStatus",
    "WorkflowStore",
]
