"""Tests for the Analyzer workflows over the sample monorepo."""

import os
from pathlib import Path

import pytest

from depgraph_cli.config_manager import AnalyzerConfig
from depgraph_cli.errors import ConfigError, EntityNotFoundError, NoSourceFilesError
from depgraph_cli.models import ChangedFile, ChangeKind, EntityKind
from depgraph_cli.orchestrator import Analyzer, find_test_files, is_test_file

FORMAT_TS = "libs/shared/src/lib/utils/format.ts"
MAIN_TS = "apps/mobile/src/main.ts"


@pytest.fixture
def analyzer(sample_monorepo_path: Path) -> Analyzer:
    return Analyzer(sample_monorepo_path)


def _modified(root: Path, *rel_paths: str):
    return [ChangedFile(str(root / rel), ChangeKind.MODIFIED) for rel in rel_paths]


def _names(items):
    return [item.entity.name for item in items]


class TestAnalyzerSetup:
    """Tests for Analyzer construction."""

    def test_rejects_missing_root(self, temp_dir: Path):
        """Test that a missing root raises ConfigError."""
        with pytest.raises(ConfigError):
            Analyzer(temp_dir / "nope")

    def test_empty_tree(self, temp_dir: Path):
        """Test that a tree without sources raises an error."""
        with pytest.raises(NoSourceFilesError):
            Analyzer(temp_dir).query_all()

    def test_loads_project_config(self, monorepo_copy: Path):
        """Test loading the project config file."""
        (monorepo_copy / ".depgraph.toml").write_text("[analyzer]\nmax_depth = 3\n", encoding="utf-8")
        assert Analyzer(monorepo_copy).config.max_depth == 3

    def test_table_is_built_once(self, analyzer: Analyzer):
        """Test that the entity table is built once."""
        assert analyzer.table is analyzer.table

    def test_parallel_jobs(self, sample_monorepo_path: Path, analyzer: Analyzer):
        """Test that parallel jobs build the same table."""
        parallel = Analyzer(sample_monorepo_path, jobs=4)
        assert parallel.table.snapshot() == analyzer.table.snapshot()


class TestQueries:
    """Tests for query, unused and rank."""

    def test_query_all(self, analyzer: Analyzer):
        """Test listing every entity."""
        assert len(analyzer.query_all()) == 13

    def test_query(self, analyzer: Analyzer):
        """Test querying by name and by id."""
        (entity,) = analyzer.query("formatName")
        assert entity.kind is EntityKind.FUNCTION
        assert analyzer.query(entity.id) == [entity]

    def test_unused(self, analyzer: Analyzer):
        """Test listing unused entities."""
        assert {e.name for e in analyzer.unused()} == {
            "AppComponent",
            "ROUTES",
            "ImageLoader",
            "bootstrapMobile",
            "Role",
            "UserId",
            "MAX_NAME",
            "legacyHelper",
        }

    def test_rank(self, analyzer: Analyzer):
        """Test ranking every entity."""
        ranked = [(count, node.name) for count, node in analyzer.rank()]
        assert ranked == [
            (0, "DashboardModule"),
            (0, "MAX_NAME"),
            (0, "formatName"),
            (0, "image.worker"),
            (0, "legacyHelper"),
            (1, "ImageLoader"),
            (1, "ROUTES"),
            (1, "Role"),
            (1, "User"),
            (1, "UserId"),
            (1, "bootstrapMobile"),
            (2, "AppComponent"),
            (2, "UserService"),
        ]

    def test_rank_filtered(self, analyzer: Analyzer):
        """Test ranking with a kind filter."""
        ranked = [(count, node.name) for count, node in analyzer.rank([EntityKind.CLASS])]
        assert ranked == [(0, "DashboardModule"), (0, "ImageLoader")]


class TestAffected:
    """Tests for change impact analysis with explicit change lists."""

    def test_direct_and_consumers(self, analyzer: Analyzer, sample_monorepo_path: Path):
        """Test direct and consumer entities of a changed file."""
        report = analyzer.affected("base", changed_files=_modified(sample_monorepo_path, FORMAT_TS))

        assert _names(report.direct) == ["MAX_NAME", "formatName"]
        assert {item.reason for item in report.direct} == {"Modified file"}
        assert sorted(_names(report.consumers)) == ["AppComponent", "UserService"]
        assert {item.reason for item in report.consumers} == {"Imports: formatName"}
        assert report.total == 4

    def test_transitive(self, analyzer: Analyzer, sample_monorepo_path: Path):
        """Test transitive consumers and their reasons."""
        report = analyzer.affected(
            "base", transitive=True, changed_files=_modified(sample_monorepo_path, FORMAT_TS)
        )
        reasons = {item.entity.name: item.reason for item in report.consumers}
        assert reasons == {
            "AppComponent": "Imports: formatName",
            "UserService": "Imports: formatName",
            "bootstrapMobile": "Transitive dependency",
            "User": "Transitive dependency",
            "UserId": "Transitive dependency",
            "Role": "Transitive dependency",
        }

    def test_consumers_are_sorted_by_file(self, analyzer: Analyzer, sample_monorepo_path: Path):
        """Test that consumers are sorted by file."""
        report = analyzer.affected(
            "base", transitive=True, changed_files=_modified(sample_monorepo_path, FORMAT_TS)
        )
        keys = [(item.entity.file_path, item.entity.name) for item in report.consumers]
        assert keys == sorted(keys)

    def test_project_filter_applies_after_consumers(self, analyzer: Analyzer, sample_monorepo_path: Path):
        """Test that the project filter runs after consumer search."""
        report = analyzer.affected(
            "base", project="web", changed_files=_modified(sample_monorepo_path, FORMAT_TS)
        )
        assert report.direct == []
        assert _names(report.consumers) == ["AppComponent"]

    def test_project_filter_drops_other_areas(self, analyzer: Analyzer, sample_monorepo_path: Path):
        """Test that the project filter drops other areas."""
        report = analyzer.affected(
            "base", project="web", changed_files=_modified(sample_monorepo_path, MAIN_TS)
        )
        assert report.direct == []
        assert report.consumers == []

    def test_unknown_project(self, analyzer: Analyzer):
        """Test an unknown project name."""
        with pytest.raises(ConfigError, match="Unknown project"):
            analyzer.affected("base", project="desktop", changed_files=[])

    def test_no_changes(self, analyzer: Analyzer):
        """Test an empty change list."""
        report = analyzer.affected("base", changed_files=[])
        assert report.changed_files == []
        assert report.total == 0
        assert report.test_files == []

    def test_directories_and_tests(self, analyzer: Analyzer, sample_monorepo_path: Path):
        """Test affected directories and test files."""
        report = analyzer.affected("base", changed_files=_modified(sample_monorepo_path, FORMAT_TS))
        lib = sample_monorepo_path / "libs/shared/src/lib"
        web = sample_monorepo_path / "apps/web/src/app"
        assert report.directories == sorted(
            [str(web), str(lib / "services"), str(lib / "utils")]
        )
        assert report.test_files == sorted(
            [str(web / "app.component.spec.ts"), str(lib / "utils" / "format.spec.ts")]
        )

    def test_changed_test_file_is_reported(self, analyzer: Analyzer, sample_monorepo_path: Path):
        """Test that a changed test file is reported."""
        test_file = "libs/shared/src/lib/utils/format.spec.ts"
        report = analyzer.affected("base", changed_files=_modified(sample_monorepo_path, test_file))
        assert report.total == 0
        assert report.test_files == [str(sample_monorepo_path / test_file)]

    def test_against_git(self, git_monorepo: Path):
        """Test affected analysis against a real git diff."""
        with open(git_monorepo / FORMAT_TS, "a", encoding="utf-8") as f:
            f.write("// touched\n")

        report = Analyzer(git_monorepo).affected("base")
        assert [cf.path for cf in report.changed_files] == [os.path.realpath(git_monorepo / FORMAT_TS)]
        assert _names(report.direct) == ["MAX_NAME", "formatName"]
        assert report.direct[0].change.change_kind is ChangeKind.MODIFIED


class TestChains:
    """Tests for dependency chains between named entities."""

    def test_single_chain(self, analyzer: Analyzer):
        """Test a single chain between two entities."""
        report = analyzer.chain("AppComponent", "User")
        assert [[node.name for node in path] for path in report.paths] == [
            ["AppComponent", "UserService", "User"]
        ]
        assert not report.truncated
        assert report.missing == []

    def test_shortest(self, analyzer: Analyzer):
        """Test the shortest chain."""
        report = analyzer.chain("bootstrapMobile", "formatName", shortest=True)
        assert [[node.name for node in path] for path in report.paths] == [
            ["bootstrapMobile", "UserService", "formatName"]
        ]

    def test_depth_bound(self, analyzer: Analyzer):
        """Test that the depth bound hides longer chains."""
        assert analyzer.chain("AppComponent", "User", max_depth=1).paths == []

    def test_path_budget(self, analyzer: Analyzer):
        """Test that the path budget truncates chains."""
        report = analyzer.chain("AppComponent", "formatName", max_paths=1)
        assert len(report.paths) == 1
        assert report.truncated

    def test_no_chain(self, analyzer: Analyzer):
        """Test entities with no chain between them."""
        report = analyzer.chain("DashboardModule", "User")
        assert report.paths == []
        assert report.missing == []

    def test_one_side_missing(self, analyzer: Analyzer):
        """Test a chain with one unknown name."""
        report = analyzer.chain("AppComponent", "Nope")
        assert report.missing == ["Nope"]
        assert report.paths == []

    def test_both_missing(self, analyzer: Analyzer):
        """Test that two unknown names raise an error."""
        with pytest.raises(EntityNotFoundError):
            analyzer.chain("Nope", "Nada")


class TestCycles:
    """Tests for cycle detection over the sample monorepo."""

    def test_user_service_cycle(self, analyzer: Analyzer):
        """Test the UserService cycle."""
        report = analyzer.cycles()
        assert [sorted(node.name for node in cycle) for cycle in report.cycles] == [
            ["User", "UserService"]
        ]
        assert not report.truncated

    def test_depth_bound(self, analyzer: Analyzer):
        """Test that the depth bound hides the cycle."""
        assert analyzer.cycles(max_depth=1).cycles == []


class TestTestFiles:
    """Tests for test file helpers."""

    def test_is_test_file(self):
        """Test recognizing test files by suffix."""
        suffixes = AnalyzerConfig().test_suffixes
        assert is_test_file("/a/b.spec.ts", suffixes)
        assert is_test_file("/a/b.test.ts", suffixes)
        assert not is_test_file("/a/b.ts", suffixes)

    def test_find_test_files_is_not_recursive(self, sample_monorepo_path: Path):
        """Test that test file lookup is not recursive."""
        found = find_test_files([str(sample_monorepo_path / "apps/web")], [".spec.ts"])
        assert found == []

    def test_find_test_files_skips_missing_directories(self, temp_dir: Path):
        """Test that missing directories are skipped."""
        assert find_test_files([str(temp_dir / "missing")], [".spec.ts"]) == []
