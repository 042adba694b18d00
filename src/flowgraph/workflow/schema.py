"""Pydantic models defining the workflow graph and its serialized document."""

from enum import Enum
from typing import Any, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_OUTPUT_PORT = "success"
DEFAULT_INPUT_PORT = "trigger"


class NodeType(str, Enum):
    """Step kinds known to the node registry."""

    # Actions
    CLICK = "click"
    INPUT = "input"
    WAIT = "wait"
    NAVIGATE = "navigate"
    SCROLL = "scroll"
    SCREENSHOT = "screenshot"

    # Logic
    CONDITION = "condition"
    LOOP = "loop"
    BRANCH = "branch"

    # Data
    EXTRACT = "extract"
    STORE = "store"
    TRANSFORM = "transform"

    # Control
    START = "start"
    END = "end"
    PAUSE = "pause"


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class WorkflowStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    ARCHIVED = "archived"


class ExecutionOrderMode(str, Enum):
    """How ``WorkflowModel.get_execution_order`` walks the graph."""

    TOPOLOGICAL = "topological"
    DFS = "dfs"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Position(BaseModel):
    """Canvas coordinate of a node. Presentation only."""

    x: float = 0
    y: float = 0


class OutputConnection(_CamelModel):
    """Outbound edge stored on the source node."""

    node_id: str = Field(alias="nodeId")
    output_port: str = Field(DEFAULT_OUTPUT_PORT, alias="outputPort")
    input_port: str = Field(DEFAULT_INPUT_PORT, alias="inputPort")


class InputConnection(_CamelModel):
    """Inbound edge stored on the target node, mirror of an OutputConnection."""

    node_id: str = Field(alias="nodeId")
    output_port: str = Field(DEFAULT_OUTPUT_PORT, alias="outputPort")
    input_port: str = Field(DEFAULT_INPUT_PORT, alias="inputPort")


class NodeConnections(BaseModel):
    inputs: list[InputConnection] = []
    outputs: list[OutputConnection] = []


class Edge(NamedTuple):
    """Canonical edge key shared by both sides of a connection."""

    source: str
    target: str
    output_port: str = DEFAULT_OUTPUT_PORT
    input_port: str = DEFAULT_INPUT_PORT


class ValidationResult(BaseModel):
    """Outcome of a structural validation pass. Never raised."""

    valid: bool = True
    errors: list[str] = []
    warnings: list[str] = []


class Step(BaseModel):
    """A serialized node as it appears in ``WorkflowDocument.steps``."""

    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    position: Optional[Position] = None
    config: dict[str, Any] = {}
    connections: NodeConnections = NodeConnections()


class WorkflowDocument(BaseModel):
    """Canonical external representation consumed by the persistence layer."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str = "New Workflow"
    description: str = ""
    status: str = WorkflowStatus.DRAFT.value
    steps: list[Step] = []
    variables: dict[str, Any] = {}
    execution_history: list[Any] = []
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    version: int = 1
    user_id: Optional[str] = None
    organization_id: Optional[str] = None
