"""Core data models shared by the scanner, entity table, and graph layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from hashlib import blake2b
from typing import List, Optional, Tuple


def entity_id(file_path: str, name: str) -> str:
    """Return the stable identity of the declaration *name* in *file_path*."""
    digest = blake2b(f"{file_path}:{name}".encode("utf-8"), digest_size=8)
    return digest.hexdigest()


class EntityKind(str, Enum):
    UNKNOWN = "unknown"
    CLASS = "class"
    COMPONENT = "component"
    SERVICE = "service"
    DIRECTIVE = "directive"
    PIPE = "pipe"
    ENUM = "enum"
    TYPE = "type"
    INTERFACE = "interface"
    FUNCTION = "function"
    CONST = "const"
    WORKER = "worker"

    def __str__(self) -> str:
        return self.value


class ChangeKind(str, Enum):
    ADDED = "A"
    MODIFIED = "M"
    DELETED = "D"
    RENAMED = "R"

    def __str__(self) -> str:
        return self.value

    @property
    def reason(self) -> str:
        return {
            ChangeKind.ADDED: "New",
            ChangeKind.MODIFIED: "Modified",
            ChangeKind.DELETED: "Deleted",
            ChangeKind.RENAMED: "Renamed",
        }[self]


@dataclass(frozen=True)
class ImportReference:
    id: str
    name: str
    path: str

    @classmethod
    def create(cls, name: str, path: str) -> "ImportReference":
        return cls(id=entity_id(path, name), name=name, path=path)


@dataclass
class Entity:
    id: str
    name: str
    kind: EntityKind
    file_path: str
    # One tuple per file, shared by every entity declared in that file.
    import_references: Tuple[ImportReference, ...] = ()
    used: bool = False

    @classmethod
    def create(
        cls,
        name: str,
        kind: EntityKind,
        file_path: str,
        import_references: Tuple[ImportReference, ...] = (),
        used: bool = False,
    ) -> "Entity":
        return cls(
            id=entity_id(file_path, name),
            name=name,
            kind=kind,
            file_path=file_path,
            import_references=import_references,
            used=used,
        )


@dataclass
class FileParseResult:
    file_path: str
    entities: List[Entity] = field(default_factory=list)
    imports: Tuple[ImportReference, ...] = ()


@dataclass(frozen=True)
class ChangedFile:
    path: str
    change_kind: ChangeKind


@dataclass(frozen=True)
class GraphNode:
    id: str
    name: str
    kind: EntityKind
    file: str


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str


@dataclass
class PathSearch:
    paths: List[List[str]] = field(default_factory=list)
    truncated: bool = False


@dataclass
class CycleSearch:
    cycles: List[List[str]] = field(default_factory=list)
    truncated: bool = False


@dataclass
class AffectedEntity:
    entity: Entity
    reason: str
    change: Optional[ChangedFile] = None


@dataclass
class AffectedReport:
    base_ref: str
    changed_files: List[ChangedFile] = field(default_factory=list)
    direct: List[AffectedEntity] = field(default_factory=list)
    consumers: List[AffectedEntity] = field(default_factory=list)
    directories: List[str] = field(default_factory=list)
    test_files: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.direct) + len(self.consumers)


@dataclass
class ChainReport:
    start: str
    end: str
    paths: List[List[GraphNode]] = field(default_factory=list)
    truncated: bool = False
    missing: List[str] = field(default_factory=list)


@dataclass
class CycleReport:
    cycles: List[List[GraphNode]] = field(default_factory=list)
    truncated: bool = False
