"""A single step in a workflow graph."""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .schema import (
    DEFAULT_INPUT_PORT,
    DEFAULT_OUTPUT_PORT,
    ExecutionStatus,
    NodeConnections,
    OutputConnection,
    Position,
    Step,
    ValidationResult,
)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_node_id() -> str:
    return f"node_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class WorkflowNode(BaseModel):
    """A single step in the workflow graph.

    The node owns its outbound and inbound connection lists but never checks
    that the nodes it points at exist; keeping both sides consistent is the
    job of ``WorkflowModel``.
    """

    id: str = Field(default_factory=generate_node_id, frozen=True)
    type: str
    position: Optional[Position] = Field(default_factory=Position)
    config: dict[str, Any] = {}
    connections: NodeConnections = Field(default_factory=NodeConnections)

    execution_status: ExecutionStatus = ExecutionStatus.PENDING
    execution_result: Any = None
    execution_time: Optional[str] = None
    retry_count: int = 0

    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: Any) -> Any:
        return value.value if isinstance(value, Enum) else value

    def update_config(self, partial: dict[str, Any]) -> None:
        """Shallow-merge ``partial`` into the config. Content is not validated."""
        self.config = {**self.config, **partial}
        self.updated_at = utc_now()

    def add_connection(
        self,
        target_id: str,
        output_port: str = DEFAULT_OUTPUT_PORT,
        input_port: str = DEFAULT_INPUT_PORT,
    ) -> bool:
        """Append an outbound edge. Returns False if the exact edge already exists."""
        for conn in self.connections.outputs:
            if (
                conn.node_id == target_id
                and conn.output_port == output_port
                and conn.input_port == input_port
            ):
                return False
        self.connections.outputs.append(
            OutputConnection(node_id=target_id, output_port=output_port, input_port=input_port)
        )
        return True

    def remove_connection(
        self,
        target_id: str,
        output_port: str = DEFAULT_OUTPUT_PORT,
        input_port: str = DEFAULT_INPUT_PORT,
        all_input_ports: bool = False,
    ) -> list[OutputConnection]:
        """Remove the outbound edge ``(target_id, output_port, input_port)``.

        With ``all_input_ports=True`` every edge to ``target_id`` on
        ``output_port`` is removed regardless of input port. Returns the
        removed entries.
        """
        kept: list[OutputConnection] = []
        removed: list[OutputConnection] = []
        for conn in self.connections.outputs:
            matches = (
                conn.node_id == target_id
                and conn.output_port == output_port
                and (all_input_ports or conn.input_port == input_port)
            )
            (removed if matches else kept).append(conn)
        self.connections.outputs = kept
        return removed

    def update_execution_status(self, status: ExecutionStatus | str, result: Any = None) -> None:
        # Transitions are not guarded; the orchestrator owns the state machine.
        self.execution_status = ExecutionStatus(status)
        self.execution_result = result
        self.execution_time = utc_now()
        if self.execution_status == ExecutionStatus.ERROR:
            self.retry_count += 1

    def reset_execution(self) -> None:
        """Return to PENDING for a fresh run. ``retry_count`` is kept."""
        self.execution_status = ExecutionStatus.PENDING
        self.execution_result = None
        self.execution_time = None

    def can_execute(self) -> bool:
        return self.execution_status in (ExecutionStatus.PENDING, ExecutionStatus.ERROR)

    def validate(self) -> ValidationResult:  # type: ignore[override]
        errors = []
        if not self.type or not str(self.type).strip():
            errors.append("Node type is required")
        if self.position is None:
            errors.append("Node position is required")
        return ValidationResult(valid=not errors, errors=errors)

    def to_step(self) -> Step:
        return Step(
            id=self.id,
            type=self.type,
            position=self.position.model_copy() if self.position else None,
            config=dict(self.config),
            connections=self.connections.model_copy(deep=True),
        )

    @classmethod
    def from_step(cls, step: Step) -> WorkflowNode:
        return cls(
            id=step.id,
            type=step.type,
            position=step.position,
            config=dict(step.config),
            connections=step.connections.model_copy(deep=True),
        )
