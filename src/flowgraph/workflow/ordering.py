"""Execution order derivation over a node arena."""

from __future__ import annotations

from collections import deque
from typing import Mapping

from .node import WorkflowNode
from .schema import NodeType


class WorkflowCycleError(ValueError):
    """Raised when the graph cannot be ordered because of a cycle."""

    def __init__(self, node_ids: list[str]):
        self.node_ids = node_ids
        super().__init__(f"Cycle detected in workflow graph involving nodes: {', '.join(node_ids)}")


def is_start_node(node: WorkflowNode) -> bool:
    return node.type == NodeType.START.value or not node.connections.inputs


def topological_order(nodes: Mapping[str, WorkflowNode]) -> list[str]:
    """Return node IDs so that every node follows all of its upstream nodes.

    Roots are seeded in insertion order and processed FIFO, so independent
    start nodes interleave. Raises WorkflowCycleError if any node is left.
    """
    order, remaining = _kahn(nodes)
    if remaining:
        raise WorkflowCycleError(remaining)
    return order


def unorderable_nodes(nodes: Mapping[str, WorkflowNode]) -> list[str]:
    """IDs of nodes that sit on, or downstream of, a cycle."""
    _, remaining = _kahn(nodes)
    return remaining


def dfs_order(nodes: Mapping[str, WorkflowNode]) -> list[str]:
    """Legacy depth-first pre-order from every start node.

    Not a topological sort: a node with two upstream nodes may be emitted
    before the second one. Cycles are silently cut by the visited set.
    """
    visited: set[str] = set()
    order: list[str] = []

    for start in [n for n in nodes.values() if is_start_node(n)]:
        stack = [start.id]
        while stack:
            node_id = stack.pop()
            if node_id in visited:
                continue
            visited.add(node_id)
            order.append(node_id)
            node = nodes[node_id]
            # Reversed so the first output is visited first.
            for conn in reversed(node.connections.outputs):
                if conn.node_id in nodes and conn.node_id not in visited:
                    stack.append(conn.node_id)

    return order


def _kahn(nodes: Mapping[str, WorkflowNode]) -> tuple[list[str], list[str]]:
    in_degree: dict[str, int] = {}
    for node_id, node in nodes.items():
        sources = {conn.node_id for conn in node.connections.inputs if conn.node_id in nodes}
        in_degree[node_id] = len(sources)

    queue: deque[str] = deque(nid for nid, degree in in_degree.items() if degree == 0)

    order: list[str] = []
    while queue:
        nid = queue.popleft()
        order.append(nid)
        released: set[str] = set()
        for conn in nodes[nid].connections.outputs:
            target = conn.node_id
            if target not in in_degree or target in released:
                continue
            released.add(target)
            in_degree[target] -= 1
            if in_degree[target] == 0:
                queue.append(target)

    emitted = set(order)
    remaining = [nid for nid in nodes if nid not in emitted]
    return order, remaining
