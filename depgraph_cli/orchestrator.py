"""Analyzer coordinating the scanner, entity table, graph, and git diff."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Collection, Iterable, List, Optional, Sequence, Set, Tuple

from .config_manager import AnalyzerConfig, load_config
from .diff_engine import get_changed_files
from .errors import ConfigError, EntityNotFoundError
from .graph import DependencyGraph
from .models import (
    AffectedEntity,
    AffectedReport,
    ChainReport,
    ChangedFile,
    CycleReport,
    Entity,
    EntityKind,
    GraphNode,
)
from .parser import FileParser
from .scanner import scan_project
from .storage import EntityTable, build_entity_table

logger = logging.getLogger(__name__)


def is_test_file(path: str, suffixes: Sequence[str]) -> bool:
    return path.endswith(tuple(suffixes))


def find_test_files(directories: Iterable[str], suffixes: Sequence[str]) -> List[str]:
    """Test files directly inside each of *directories* (not recursive)."""
    found: Set[str] = set()
    for directory in directories:
        if not os.path.isdir(directory):
            continue
        try:
            with os.scandir(directory) as it:
                for entry in it:
                    if entry.is_file() and is_test_file(entry.name, suffixes):
                        found.add(os.path.join(directory, entry.name))
        except OSError as exc:
            logger.warning("Could not read directory %s: %s", directory, exc)
    return sorted(found)


class Analyzer:
    """Runs dependency queries against one monorepo root.

    The tree is scanned lazily, once per instance; every command invocation
    builds a fresh :class:`Analyzer`, so nothing is persisted between runs.
    """

    def __init__(
        self,
        root: Path,
        config: Optional[AnalyzerConfig] = None,
        jobs: int = 1,
    ):
        if not root.is_dir():
            raise ConfigError(f"Unable to resolve path: {root}")
        self.root = root.resolve()
        self.config = config if config is not None else load_config(self.root)
        self.jobs = jobs
        self._table: Optional[EntityTable] = None

    @property
    def table(self) -> EntityTable:
        if self._table is None:
            files = scan_project(self.root, self.config)
            parser = FileParser(self.root, self.config.aliases)
            self._table = build_entity_table(files, parser, jobs=self.jobs)
        return self._table

    def graph(self, kinds: Optional[Collection[EntityKind]] = None) -> DependencyGraph:
        return DependencyGraph.from_table(self.table, kinds)

    # ------------------------------------------------------------------
    # Entity queries
    # ------------------------------------------------------------------

    def query_all(self) -> List[Entity]:
        return self.table.all()

    def query(self, text: str) -> List[Entity]:
        return self.table.find(text)

    def unused(self) -> List[Entity]:
        return self.table.unused()

    def rank(self, kinds: Optional[Collection[EntityKind]] = None) -> List[Tuple[int, GraphNode]]:
        return self.graph(kinds).rank_by_deps()

    # ------------------------------------------------------------------
    # Affected
    # ------------------------------------------------------------------

    def project_dir(self, project: str) -> str:
        subdir = self.config.projects.get(project)
        if subdir is None:
            known = ", ".join(sorted(self.config.projects))
            raise ConfigError(f"Unknown project '{project}' (expected one of: {known})")
        return str(self.root / subdir)

    def affected(
        self,
        base_ref: str,
        transitive: bool = False,
        project: Optional[str] = None,
        changed_files: Optional[List[ChangedFile]] = None,
    ) -> AffectedReport:
        """Entities in files changed since *base_ref*, plus their consumers.

        Consumers are computed over the whole graph before the optional
        *project* filter narrows what is reported.
        """
        area = self.project_dir(project) if project else None
        if changed_files is None:
            changed_files = get_changed_files(self.root, base_ref)

        report = AffectedReport(base_ref=base_ref, changed_files=list(changed_files))
        if not changed_files:
            return report

        by_path = {cf.path: cf for cf in changed_files}
        direct = []
        for entity in self.table.in_files(by_path):
            change = by_path[entity.file_path]
            direct.append(AffectedEntity(entity, f"{change.change_kind.reason} file", change))
        direct_ids = {item.entity.id for item in direct}
        direct_keys = {(item.entity.file_path, item.entity.name) for item in direct}

        graph = self.graph()
        consumers: List[AffectedEntity] = []
        for consumer_id in graph.find_consumers(direct_ids, transitive=transitive):
            entity = self.table.get(consumer_id)
            if entity is None:
                continue
            imported = [ref.name for ref in entity.import_references if (ref.path, ref.name) in direct_keys]
            reason = f"Imports: {', '.join(imported)}" if imported else "Transitive dependency"
            consumers.append(AffectedEntity(entity, reason))
        consumers.sort(key=lambda item: (item.entity.file_path, item.entity.name))

        if area is not None:
            direct = [item for item in direct if _is_under(item.entity.file_path, area)]
            consumers = [item for item in consumers if _is_under(item.entity.file_path, area)]

        report.direct = direct
        report.consumers = consumers
        report.directories = sorted(
            {os.path.dirname(item.entity.file_path) for item in direct + consumers}
        )

        suffixes = self.config.test_suffixes
        tests = set(find_test_files(report.directories, suffixes))
        for cf in changed_files:
            if is_test_file(cf.path, suffixes) and (area is None or _is_under(cf.path, area)):
                tests.add(cf.path)
        report.test_files = sorted(tests)
        return report

    # ------------------------------------------------------------------
    # Chains and cycles
    # ------------------------------------------------------------------

    def chain(
        self,
        start: str,
        end: str,
        shortest: bool = False,
        max_paths: Optional[int] = None,
        max_depth: Optional[int] = None,
    ) -> ChainReport:
        """Dependency chains from entities named *start* to entities named *end*.

        Every (start, end) pair of same-named entities is searched in id
        order; ``max_paths`` is one budget shared by all pairs.

        Raises:
            EntityNotFoundError: If neither name matches any entity.
        """
        max_paths = self.config.max_paths if max_paths is None else max_paths
        max_depth = self.config.max_depth if max_depth is None else max_depth

        starts = self.table.find_by_name(start)
        ends = self.table.find_by_name(end)
        if not starts and not ends:
            raise EntityNotFoundError(f"No entities found with name '{start}' or '{end}'")

        report = ChainReport(start=start, end=end)
        report.missing = [name for name, found in ((start, starts), (end, ends)) if not found]
        if report.missing:
            return report

        graph = self.graph()
        paths: List[List[str]] = []

        if shortest:
            best: Optional[List[str]] = None
            for s in starts:
                for e in ends:
                    path = graph.find_path(s.id, e.id)
                    if path is not None and (best is None or len(path) < len(best)):
                        best = path
            if best is not None:
                paths.append(best)
        else:
            for s in starts:
                for e in ends:
                    search = graph.find_all_paths(s.id, e.id, max_paths - len(paths), max_depth)
                    paths.extend(search.paths)
                    if search.truncated:
                        report.truncated = True
                        break
                if report.truncated:
                    break

        report.paths = [[graph.node(node_id) for node_id in path] for path in paths]
        if report.truncated:
            logger.info("Chain search stopped after %d paths", len(paths))
        return report

    def cycles(
        self,
        max_cycles: Optional[int] = None,
        max_depth: Optional[int] = None,
    ) -> CycleReport:
        max_cycles = self.config.max_cycles if max_cycles is None else max_cycles
        max_depth = self.config.max_depth if max_depth is None else max_depth

        graph = self.graph()
        search = graph.find_cycles(max_cycles=max_cycles, max_depth=max_depth)
        return CycleReport(
            cycles=[[graph.node(node_id) for node_id in cycle] for cycle in search.cycles],
            truncated=search.truncated,
        )


def _is_under(path: str, directory: str) -> bool:
    return path.startswith(directory.rstrip(os.sep) + os.sep)
