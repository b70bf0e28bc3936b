"""Pytest configuration and fixtures for DepGraph CLI tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Generator

import git
import pytest

from depgraph_cli.models import Entity, EntityKind, FileParseResult, ImportReference


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path_factory, monkeypatch):
    """Point the user config file at an empty temp dir so local settings never leak in."""
    home = tmp_path_factory.mktemp("depgraph_home")
    monkeypatch.setattr("depgraph_cli.config.BASE_DIR", home)
    monkeypatch.setattr("depgraph_cli.config.CONFIG_FILE", home / "config.toml")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp.resolve()
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_monorepo_path() -> Path:
    """Get path to the sample monorepo fixture."""
    return (Path(__file__).parent / "fixtures" / "sample_monorepo").resolve()


@pytest.fixture
def monorepo_copy(temp_dir: Path, sample_monorepo_path: Path) -> Path:
    """A writable copy of the sample monorepo."""
    root = temp_dir / "monorepo"
    shutil.copytree(sample_monorepo_path, root)
    return root


@pytest.fixture
def git_monorepo(monorepo_copy: Path) -> Path:
    """The sample monorepo committed to a fresh git repo, tagged ``base``."""
    repo = git.Repo.init(monorepo_copy)
    with repo.config_writer() as cw:
        cw.set_value("user", "name", "DepGraph Tests")
        cw.set_value("user", "email", "tests@example.com")
    repo.git.add("--all")
    repo.git.commit("-m", "initial import")
    repo.create_tag("base")
    return monorepo_copy


def _make_result(file_path: str, declared=(), imports=(), used=()) -> FileParseResult:
    """Build a parse result the way FileParser would for *file_path*.

    ``declared`` holds ``(name, kind)`` pairs, ``imports`` holds
    ``(name, path)`` pairs and ``used`` names locally-used declarations.
    """
    refs = tuple(ImportReference.create(name, path) for name, path in imports)
    entities = [
        Entity.create(name, kind, file_path, refs, used=name in used)
        for name, kind in declared
    ]
    return FileParseResult(file_path=file_path, entities=entities, imports=refs)


@pytest.fixture
def cyclic_results():
    """Three files whose single exports import each other in a ring A -> B -> C -> A."""
    return [
        _make_result("/repo/a.ts", [("A", EntityKind.CLASS)], [("B", "/repo/b.ts")]),
        _make_result("/repo/b.ts", [("B", EntityKind.CLASS)], [("C", "/repo/c.ts")]),
        _make_result("/repo/c.ts", [("C", EntityKind.CLASS)], [("A", "/repo/a.ts")]),
    ]


@pytest.fixture
def make_result():
    """Factory for hand-built parse results."""
    return _make_result
