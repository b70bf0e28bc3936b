"""In-memory entity table built from per-file parse results.

The table is keyed by :func:`entity_id`, a pure function of ``(file_path,
name)``.  Because of that, an import seen before the declaration it points to
lands in the same slot the declaration will later fill, and the merge below is
commutative across files:

1. every import reference marks its target ``used``, creating an ``unknown``
   placeholder when the target has not been declared yet;
2. every declaration fills in ``kind`` and ``import_references`` of the slot,
   keeping whatever ``used`` value it already has.

Only the declaring file ever runs step 2 for a given id, so the final table is
the same for any processing order.
"""

from __future__ import annotations

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from .models import Entity, EntityKind, FileParseResult, entity_id
from .parser import FileParser

logger = logging.getLogger(__name__)

__all__ = ["EntityTable", "build_entity_table", "entity_id", "parse_files"]


class EntityTable:
    """Deduplicated mapping from entity id to :class:`Entity`."""

    def __init__(self) -> None:
        self._entities: Dict[str, Entity] = {}

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[Entity]:
        return iter(self._entities.values())

    def __contains__(self, entity_id_: str) -> bool:
        return entity_id_ in self._entities

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def merge(self, result: FileParseResult) -> None:
        for ref in result.imports:
            existing = self._entities.get(ref.id)
            if existing is not None:
                existing.used = True
            else:
                self._entities[ref.id] = Entity(
                    id=ref.id,
                    name=ref.name,
                    kind=EntityKind.UNKNOWN,
                    file_path=ref.path,
                    used=True,
                )

        for entity in result.entities:
            existing = self._entities.get(entity.id)
            if existing is not None:
                existing.kind = entity.kind
                existing.import_references = entity.import_references
            else:
                self._entities[entity.id] = dataclasses.replace(entity)

    @classmethod
    def from_results(cls, results: Iterable[FileParseResult]) -> "EntityTable":
        table = cls()
        for result in results:
            table.merge(result)
        return table

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, entity_id_: str) -> Optional[Entity]:
        return self._entities.get(entity_id_)

    def all(self) -> List[Entity]:
        """All entities ordered by id."""
        return sorted(self._entities.values(), key=lambda e: e.id)

    def find_by_name(self, name: str) -> List[Entity]:
        return sorted(
            (e for e in self._entities.values() if e.name == name),
            key=lambda e: e.id,
        )

    def find(self, query: str) -> List[Entity]:
        """Match *query* against ids first, then against names."""
        entity = self._entities.get(query)
        if entity is not None:
            return [entity]
        return self.find_by_name(query)

    def unused(self) -> List[Entity]:
        """Declared entities that nothing imports and the file never reuses."""
        return sorted(
            (e for e in self._entities.values() if not e.used and e.kind is not EntityKind.UNKNOWN),
            key=lambda e: (e.file_path, e.name),
        )

    def in_files(self, paths: Iterable[str]) -> List[Entity]:
        wanted = set(paths)
        return sorted(
            (e for e in self._entities.values() if e.file_path in wanted),
            key=lambda e: (e.file_path, e.name),
        )

    def snapshot(self) -> Dict[str, tuple]:
        """Comparable view of the table, used to check merge determinism."""
        return {
            e.id: (e.name, e.kind, e.file_path, e.import_references, e.used)
            for e in self._entities.values()
        }


def parse_files(
    files: Sequence[str],
    parser: FileParser,
    jobs: int = 1,
) -> List[FileParseResult]:
    """Parse *files*, skipping (and logging) those that cannot be read.

    With ``jobs > 1`` files are parsed on a thread pool; results keep the
    input order so the later merge stays a single-threaded reduction.
    """
    results: List[Optional[FileParseResult]] = [None] * len(files)

    if jobs <= 1 or len(files) < 2:
        for index, file_path in enumerate(files):
            results[index] = _parse_one(parser, file_path)
    else:
        with ThreadPoolExecutor(max_workers=jobs) as executor:
            future_to_index = {
                executor.submit(_parse_one, parser, file_path): i
                for i, file_path in enumerate(files)
            }
            for future in as_completed(future_to_index):
                results[future_to_index[future]] = future.result()

    return [r for r in results if r is not None]


def _parse_one(parser: FileParser, file_path: str) -> Optional[FileParseResult]:
    try:
        return parser.parse(file_path)
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not parse file %s: %s", file_path, exc)
        return None


def build_entity_table(
    files: Sequence[str],
    parser: FileParser,
    jobs: int = 1,
) -> EntityTable:
    table = EntityTable.from_results(parse_files(files, parser, jobs=jobs))
    logger.info("Built entity table: %d entities from %d files", len(table), len(files))
    return table
