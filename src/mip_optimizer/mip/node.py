"""
Search-tree nodes, the handle-indexed node pool and the search frontier.

Nodes are immutable records; a node refined by cutting planes is replaced by a
new record with the same handle. Parents are referenced by handle only, so a
node can be released as soon as it leaves the frontier.
"""

from __future__ import annotations

import heapq
import math
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from ..lp.simplex import RelaxationResult
from ..lp.utils import LinearRow
from ..schemas import NodeSelection


@dataclass(frozen=True)
class Node:
    handle: int
    depth: int
    bound: float
    lp_result: RelaxationResult = field(repr=False)
    bound_overrides: Mapping[int, Tuple[float, float]] = field(default_factory=dict)
    extra_constraints: Tuple[LinearRow, ...] = ()
    parent: Optional[int] = None
    branched_variable: Optional[int] = None
    refined: bool = False


class NodePool:
    """Arena of live nodes indexed by integer handle."""

    def __init__(self) -> None:
        self._nodes: Dict[int, Node] = {}
        self._parents: Dict[int, Optional[int]] = {}
        self._next_handle = 0

    def next_handle(self, parent: Optional[int] = None) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._parents[handle] = parent
        return handle

    def store(self, node: Node) -> Node:
        self._nodes[node.handle] = node
        return node

    def get(self, handle: int) -> Node:
        return self._nodes[handle]

    def release(self, handle: int) -> None:
        self._nodes.pop(handle, None)

    def lineage(self, handle: int) -> List[int]:
        """Handles from the root down to ``handle``; available after nodes are released."""
        path: List[int] = []
        current: Optional[int] = handle
        while current is not None:
            path.append(current)
            current = self._parents.get(current)
        return path[::-1]

    @property
    def created(self) -> int:
        return self._next_handle

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, handle: int) -> bool:
        return handle in self._nodes


class Frontier:
    """
    Open nodes ordered by the node-selection strategy:

    - ``best_bound``: smallest LP bound first, insertion order among ties;
    - ``depth_first``: most recently pushed first;
    - ``breadth_first``: oldest first.
    """

    def __init__(self, pool: NodePool, strategy: NodeSelection = "best_bound") -> None:
        self.pool = pool
        self.strategy = strategy
        self._heap: List[Tuple[Tuple[float, ...], int]] = []
        self._seq = 0

    def _key(self, node: Node) -> Tuple[float, ...]:
        if self.strategy == "best_bound":
            return (node.bound, self._seq)
        if self.strategy == "depth_first":
            return (-self._seq,)
        return (self._seq,)

    def push(self, node: Node) -> None:
        self.pool.store(node)
        heapq.heappush(self._heap, (self._key(node), node.handle))
        self._seq += 1

    def pop(self) -> Node:
        _, handle = heapq.heappop(self._heap)
        return self.pool.get(handle)

    def min_bound(self) -> float:
        if not self._heap:
            return math.inf
        if self.strategy == "best_bound":
            return self.pool.get(self._heap[0][1]).bound
        return min(self.pool.get(handle).bound for _, handle in self._heap)

    def __iter__(self) -> Iterator[Node]:
        return (self.pool.get(handle) for _, handle in self._heap)

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)
