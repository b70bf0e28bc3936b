"""Immutable dependency graph derived from an :class:`EntityTable`.

Nodes are entities, and an edge ``source -> target`` means *source*'s file
imports *target*.  Adjacency is kept as id-indexed lists, so entities never
hold references to each other and cyclic imports need no special handling.

All enumerations are bounded: path search by ``max_depth``/``max_paths`` and
cycle search by ``max_depth``/``max_cycles``.  Both report a ``truncated``
flag when a bound cut the results short.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from typing import Collection, Dict, Iterable, List, Optional, Set, Tuple

from .models import CycleSearch, EntityKind, GraphEdge, GraphNode, PathSearch
from .storage import EntityTable

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Read-only node/edge view with consumer, path, cycle and rank queries."""

    def __init__(self, nodes: Iterable[GraphNode], edges: Iterable[GraphEdge]) -> None:
        self._nodes: Dict[str, GraphNode] = {node.id: node for node in nodes}
        self._edges: Tuple[GraphEdge, ...] = tuple(edges)
        self._forward: Dict[str, List[str]] = {node_id: [] for node_id in self._nodes}
        self._reverse: Dict[str, List[str]] = {node_id: [] for node_id in self._nodes}
        for edge in self._edges:
            self._forward[edge.source].append(edge.target)
            self._reverse[edge.target].append(edge.source)

    @classmethod
    def from_table(
        cls,
        table: EntityTable,
        kinds: Optional[Collection[EntityKind]] = None,
    ) -> "DependencyGraph":
        """Build the graph, optionally restricted to entities of *kinds*.

        The kind filter decides node inclusion before edges are resolved, so
        edges to filtered-out entities never exist.
        """
        entities = table.all()
        if kinds:
            wanted = set(kinds)
            entities = [e for e in entities if e.kind in wanted]

        index: Dict[Tuple[str, str], str] = {(e.file_path, e.name): e.id for e in entities}

        nodes: List[GraphNode] = []
        edges: List[GraphEdge] = []
        seen: Set[Tuple[str, str]] = set()
        for entity in entities:
            nodes.append(GraphNode(entity.id, entity.name, entity.kind, entity.file_path))
            for ref in entity.import_references:
                target = index.get((ref.path, ref.name))
                if target is None:
                    continue
                key = (entity.id, target)
                if key in seen:
                    continue
                seen.add(key)
                edges.append(GraphEdge(entity.id, target))

        logger.debug("Built graph with %d nodes and %d edges", len(nodes), len(edges))
        return cls(nodes, edges)

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> List[GraphNode]:
        return list(self._nodes.values())

    @property
    def edges(self) -> List[GraphEdge]:
        return list(self._edges)

    def node(self, node_id: str) -> Optional[GraphNode]:
        return self._nodes.get(node_id)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def successors(self, node_id: str) -> List[str]:
        return list(self._forward.get(node_id, ()))

    def predecessors(self, node_id: str) -> List[str]:
        return list(self._reverse.get(node_id, ()))

    def out_degree(self, node_id: str) -> int:
        return len(self._forward.get(node_id, ()))

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------

    def find_consumers(self, targets: Collection[str], transitive: bool = False) -> Set[str]:
        """Entities importing any of *targets*, excluding the targets themselves.

        With *transitive* the reverse edges are followed breadth-first until
        no new entity turns up; each id is visited at most once.
        """
        target_set = set(targets)
        consumers: Set[str] = set()

        if not transitive:
            for target in target_set:
                for source in self._reverse.get(target, ()):
                    if source not in target_set:
                        consumers.add(source)
            return consumers

        visited = set(target_set)
        queue = deque(target_set)
        while queue:
            current = queue.popleft()
            for source in self._reverse.get(current, ()):
                if source not in visited:
                    visited.add(source)
                    consumers.add(source)
                    queue.append(source)
        return consumers

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def find_path(self, start: str, end: str) -> Optional[List[str]]:
        """Shortest path from *start* to *end* by edge count, or None."""
        if start not in self._nodes or end not in self._nodes:
            return None
        if start == end:
            return [start]

        parents: Dict[str, str] = {}
        visited = {start}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            for nxt in self._forward[current]:
                if nxt in visited:
                    continue
                visited.add(nxt)
                parents[nxt] = current
                if nxt == end:
                    path = [end]
                    while path[-1] != start:
                        path.append(parents[path[-1]])
                    path.reverse()
                    return path
                queue.append(nxt)
        return None

    def find_all_paths(
        self,
        start: str,
        end: str,
        max_paths: int,
        max_depth: int,
    ) -> PathSearch:
        """Enumerate simple paths of at most *max_depth* edges, depth-first.

        Paths come out in edge-insertion order, not sorted by length. The
        search stops with ``truncated=True`` as soon as a path beyond
        *max_paths* is found.
        """
        result = PathSearch()
        if start not in self._nodes or end not in self._nodes:
            return result
        if start == end:
            if max_paths < 1:
                result.truncated = True
            else:
                result.paths.append([start])
            return result
        if max_depth < 1:
            return result

        path = [start]
        on_path = {start}
        stack = [iter(self._forward[start])]
        while stack:
            nxt = next(stack[-1], None)
            if nxt is None:
                stack.pop()
                on_path.discard(path.pop())
                continue
            if nxt in on_path:
                continue
            if nxt == end:
                if len(result.paths) >= max_paths:
                    result.truncated = True
                    break
                result.paths.append(path + [end])
                continue
            if len(path) < max_depth:
                path.append(nxt)
                on_path.add(nxt)
                stack.append(iter(self._forward[nxt]))
        return result

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    def find_cycles(self, max_cycles: int, max_depth: int) -> CycleSearch:
        """Enumerate simple cycles of at most *max_depth* edges.

        Each cycle is searched for only from its smallest node id, visiting
        only larger ids, so every cycle is reported exactly once and always
        starts at its smallest id.  Nodes that cannot get back to the start
        within the remaining depth are pruned.
        """
        result = CycleSearch()
        if max_depth < 1:
            return result

        for start in sorted(self._nodes):
            distance = self._distances_to(start, max_depth)
            if not distance and start not in self._forward[start]:
                continue

            path = [start]
            on_path = {start}
            stack = [iter(self._forward[start])]
            while stack:
                nxt = next(stack[-1], None)
                if nxt is None:
                    stack.pop()
                    on_path.discard(path.pop())
                    continue
                if nxt == start:
                    if len(result.cycles) >= max_cycles:
                        result.truncated = True
                        return result
                    result.cycles.append(list(path))
                    continue
                if nxt < start or nxt in on_path:
                    continue
                remaining = distance.get(nxt)
                if remaining is None or len(path) + remaining > max_depth:
                    continue
                path.append(nxt)
                on_path.add(nxt)
                stack.append(iter(self._forward[nxt]))
        return result

    def _distances_to(self, start: str, max_depth: int) -> Dict[str, int]:
        """Edge distance to *start* for nodes with larger ids that can reach it."""
        distance: Dict[str, int] = {}
        queue = deque([(start, 0)])
        while queue:
            current, depth = queue.popleft()
            if depth >= max_depth - 1:
                continue
            for source in self._reverse[current]:
                if source <= start or source in distance:
                    continue
                distance[source] = depth + 1
                queue.append((source, depth + 1))
        return distance

    # ------------------------------------------------------------------
    # Ranking
    # ------------------------------------------------------------------

    def rank_by_deps(self) -> List[Tuple[int, GraphNode]]:
        """Nodes with their out-degree, ascending, ties broken by name."""
        ranked = [(self.out_degree(node.id), node) for node in self._nodes.values()]
        ranked.sort(key=lambda item: (item[0], item[1].name, item[1].id))
        return ranked

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, List[Dict[str, str]]]:
        """D3 force-layout payload: ``nodes`` with ``type`` and ``links``."""
        return {
            "nodes": [
                {"id": n.id, "name": n.name, "type": str(n.kind), "file": n.file}
                for n in self._nodes.values()
            ],
            "links": [{"source": e.source, "target": e.target} for e in self._edges],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
