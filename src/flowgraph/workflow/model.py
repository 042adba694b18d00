"""The workflow graph: node arena, edge mutation, ordering and validation."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .node import WorkflowNode, utc_now
from .ordering import dfs_order, is_start_node, topological_order, unorderable_nodes
from .schema import (
    DEFAULT_INPUT_PORT,
    DEFAULT_OUTPUT_PORT,
    Edge,
    ExecutionOrderMode,
    InputConnection,
    NodeType,
    Position,
    ValidationResult,
    WorkflowDocument,
    WorkflowStatus,
)

logger = logging.getLogger(__name__)


def _has_input(node: WorkflowNode, source_id: str, output_port: str, input_port: str) -> bool:
    return any(
        c.node_id == source_id and c.output_port == output_port and c.input_port == input_port
        for c in node.connections.inputs
    )


class WorkflowMetadata(BaseModel):
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)
    # Bumped on every structural mutation, used for optimistic concurrency.
    version: int = 1
    user_id: Optional[str] = None
    organization_id: Optional[str] = None


class WorkflowModel(BaseModel):
    """A workflow graph that exclusively owns its nodes.

    ``connect_nodes`` and ``disconnect_nodes`` are the only writers of edges
    and update both endpoints with the same ``Edge`` key, so every entry in a
    node's ``inputs`` is the mirror of exactly one ``outputs`` entry elsewhere.
    The model is not thread safe; callers serialize edits and use
    ``metadata.version`` to detect lost updates.
    """

    id: Optional[str] = None
    name: str = "New Workflow"
    description: str = ""
    status: str = WorkflowStatus.DRAFT.value
    nodes: dict[str, WorkflowNode] = {}
    variables: dict[str, Any] = {}
    execution_history: list[Any] = []
    metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> Any:
        return value.value if isinstance(value, Enum) else value

    # ------------------------------------------------------------------
    # Node mutation
    # ------------------------------------------------------------------

    def add_node(
        self,
        type: NodeType | str,
        position: Position | dict | None = None,
        node_id: str | None = None,
        config: dict[str, Any] | None = None,
    ) -> WorkflowNode:
        fields: dict[str, Any] = {"type": type, "config": dict(config or {})}
        if position is not None:
            fields["position"] = position
        if node_id is not None:
            if node_id in self.nodes:
                raise ValueError(f"Node {node_id} already exists")
            fields["id"] = node_id
        node = WorkflowNode(**fields)
        self.nodes[node.id] = node
        self.touch()
        logger.debug("Added node %s (%s) to workflow %s", node.id, node.type, self.id)
        return node

    def get_node(self, node_id: str) -> WorkflowNode | None:
        return self.nodes.get(node_id)

    def update_node(self, node_id: str, **updates: Any) -> WorkflowNode | None:
        """Replace ``type``, ``position`` or ``config`` on a node.

        Identity and connections are owned by the model and cannot be
        changed here. Returns None if the node does not exist.
        """
        node = self.nodes.get(node_id)
        if node is None:
            return None
        unknown = set(updates) - {"type", "position", "config"}
        if unknown:
            raise ValueError(f"Cannot update node fields: {', '.join(sorted(unknown))}")

        if "type" in updates:
            new_type = updates["type"]
            node.type = new_type.value if isinstance(new_type, Enum) else new_type
        if "position" in updates:
            position = updates["position"]
            node.position = Position.model_validate(position) if isinstance(position, dict) else position
        if "config" in updates:
            node.config = dict(updates["config"])
        node.updated_at = utc_now()
        self.touch()
        return node

    def remove_node(self, node_id: str) -> bool:
        """Delete a node and every edge that references it."""
        for node in self.nodes.values():
            node.connections.outputs = [c for c in node.connections.outputs if c.node_id != node_id]
            node.connections.inputs = [c for c in node.connections.inputs if c.node_id != node_id]

        removed = self.nodes.pop(node_id, None)
        if removed is None:
            return False
        self.touch()
        logger.debug("Removed node %s from workflow %s", node_id, self.id)
        return True

    # ------------------------------------------------------------------
    # Edge mutation
    # ------------------------------------------------------------------

    def connect_nodes(
        self,
        from_id: str,
        to_id: str,
        output_port: str = DEFAULT_OUTPUT_PORT,
        input_port: str = DEFAULT_INPUT_PORT,
    ) -> bool:
        """Create the edge on both endpoints. False if either node is missing."""
        from_node = self.nodes.get(from_id)
        to_node = self.nodes.get(to_id)
        if from_node is None or to_node is None:
            logger.debug("connect_nodes: missing endpoint %s -> %s", from_id, to_id)
            return False

        added = from_node.add_connection(to_id, output_port, input_port)
        if not _has_input(to_node, from_id, output_port, input_port):
            to_node.connections.inputs.append(
                InputConnection(node_id=from_id, output_port=output_port, input_port=input_port)
            )
            added = True

        if added:
            self.touch()
        return True

    def disconnect_nodes(
        self,
        from_id: str,
        to_id: str,
        output_port: str = DEFAULT_OUTPUT_PORT,
        input_port: str = DEFAULT_INPUT_PORT,
        all_input_ports: bool = False,
    ) -> bool:
        """Remove the edge ``(from_id, to_id, output_port, input_port)`` on both endpoints.

        ``all_input_ports=True`` removes every edge between the two nodes on
        ``output_port`` whatever its input port. The same key is applied to
        both sides. False if either node is missing.
        """
        from_node = self.nodes.get(from_id)
        to_node = self.nodes.get(to_id)
        if from_node is None or to_node is None:
            return False

        removed = from_node.remove_connection(to_id, output_port, input_port, all_input_ports)
        before = len(to_node.connections.inputs)
        to_node.connections.inputs = [
            c
            for c in to_node.connections.inputs
            if not (
                c.node_id == from_id
                and c.output_port == output_port
                and (all_input_ports or c.input_port == input_port)
            )
        ]
        if removed or len(to_node.connections.inputs) != before:
            self.touch()
        return True

    def edges(self) -> list[Edge]:
        return [
            Edge(node.id, conn.node_id, conn.output_port, conn.input_port)
            for node in self.nodes.values()
            for conn in node.connections.outputs
        ]

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def start_nodes(self) -> list[WorkflowNode]:
        return [node for node in self.nodes.values() if is_start_node(node)]

    def get_execution_order(self, mode: ExecutionOrderMode | str | None = None) -> list[str]:
        """Return node IDs in the order they should run.

        ``topological`` (default) only emits a node after all of its inputs
        and raises WorkflowCycleError on cycles. ``dfs`` reproduces the
        legacy depth-first visiting order.
        """
        if mode is None:
            from ..config import get_settings

            mode = get_settings().execution_order_mode
        mode = ExecutionOrderMode(mode)

        if mode == ExecutionOrderMode.DFS:
            return dfs_order(self.nodes)
        return topological_order(self.nodes)

    def find_cycle_nodes(self) -> list[str]:
        return unorderable_nodes(self.nodes)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> ValidationResult:  # type: ignore[override]
        errors: list[str] = []
        warnings: list[str] = []

        if not self.name or not self.name.strip():
            errors.append("Workflow name is required")

        if not self.nodes:
            warnings.append("Workflow has no steps")

        for node in self.nodes.values():
            result = node.validate()
            if not result.valid:
                errors.append(f"Node {node.id}: {', '.join(result.errors)}")

        errors.extend(self._edge_errors())

        cyclic = self.find_cycle_nodes()
        if cyclic:
            errors.append(f"Cycle detected involving nodes: {', '.join(cyclic)}")

        orphaned = [
            node.id
            for node in self.nodes.values()
            if node.type != NodeType.START.value
            and not node.connections.inputs
            and not node.connections.outputs
        ]
        if orphaned:
            warnings.append(f"Orphaned nodes: {', '.join(orphaned)}")

        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    def _edge_errors(self) -> list[str]:
        errors = []
        forward = set(self.edges())
        backward = {
            Edge(conn.node_id, node.id, conn.output_port, conn.input_port)
            for node in self.nodes.values()
            for conn in node.connections.inputs
        }
        for edge in self.edges():
            if edge.target not in self.nodes:
                errors.append(f"Node {edge.source}: output references missing node {edge.target}")
        for edge in sorted(backward):
            if edge.source not in self.nodes:
                errors.append(f"Node {edge.target}: input references missing node {edge.source}")
        for edge in sorted(forward ^ backward):
            if edge.source in self.nodes and edge.target in self.nodes:
                errors.append(
                    f"Connection {edge.source}:{edge.output_port} -> "
                    f"{edge.target}:{edge.input_port} is not mirrored on both nodes"
                )
        return errors

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def touch(self) -> None:
        self.metadata.updated_at = utc_now()
        self.metadata.version += 1

    def to_document(self) -> WorkflowDocument:
        return WorkflowDocument(
            id=self.id,
            name=self.name,
            description=self.description,
            status=self.status,
            steps=[node.to_step() for node in self.nodes.values()],
            variables=dict(self.variables),
            execution_history=list(self.execution_history),
            created_at=self.metadata.created_at,
            updated_at=self.metadata.updated_at,
            version=self.metadata.version,
            user_id=self.metadata.user_id,
            organization_id=self.metadata.organization_id,
        )

    def to_json(self) -> dict[str, Any]:
        return self.to_document().model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, document: WorkflowDocument) -> WorkflowModel:
        """Build a model from a document, reconciling stored connections.

        Outputs are treated as the source of truth: inputs are rebuilt from
        them and any edge pointing at a missing node is dropped.
        """
        metadata = WorkflowMetadata(
            version=document.version,
            user_id=document.user_id,
            organization_id=document.organization_id,
        )
        if document.created_at:
            metadata.created_at = document.created_at
        if document.updated_at:
            metadata.updated_at = document.updated_at

        workflow = cls(
            id=document.id,
            name=document.name,
            description=document.description,
            status=document.status,
            variables=dict(document.variables),
            execution_history=list(document.execution_history),
            metadata=metadata,
        )
        for step in document.steps:
            workflow.nodes[step.id] = WorkflowNode.from_step(step)
        workflow._reconcile_connections()
        return workflow

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> WorkflowModel:
        return cls.from_document(WorkflowDocument.model_validate(data))

    def _reconcile_connections(self) -> None:
        stored_inputs = {
            node.id: [(c.node_id, c.output_port, c.input_port) for c in node.connections.inputs]
            for node in self.nodes.values()
        }
        for node in self.nodes.values():
            node.connections.inputs = []

        for node in self.nodes.values():
            kept = []
            for conn in node.connections.outputs:
                target = self.nodes.get(conn.node_id)
                if target is None:
                    logger.warning(
                        "Workflow %s: dropping edge %s -> %s, target does not exist",
                        self.id,
                        node.id,
                        conn.node_id,
                    )
                    continue
                kept.append(conn)
                if not _has_input(target, node.id, conn.output_port, conn.input_port):
                    target.connections.inputs.append(
                        InputConnection(
                            node_id=node.id, output_port=conn.output_port, input_port=conn.input_port
                        )
                    )
            node.connections.outputs = kept

        for node in self.nodes.values():
            rebuilt = [(c.node_id, c.output_port, c.input_port) for c in node.connections.inputs]
            if sorted(rebuilt) != sorted(set(stored_inputs[node.id])):
                logger.warning(
                    "Workflow %s: node %s stored inputs did not mirror outputs, rebuilt",
                    self.id,
                    node.id,
                )
