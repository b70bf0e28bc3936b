"""Filesystem walker that enumerates TypeScript sources of the monorepo."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List

from .config_manager import AnalyzerConfig
from .errors import NoSourceFilesError

logger = logging.getLogger(__name__)


class Scanner:
    """Recursively collect source files, skipping configured dirs and suffixes."""

    def __init__(
        self,
        extensions: Iterable[str],
        skip_dirs: Iterable[str],
        skip_suffixes: Iterable[str],
    ) -> None:
        self.extensions = tuple(extensions)
        self.skip_dirs = set(skip_dirs)
        self.skip_suffixes = tuple(skip_suffixes)

    @classmethod
    def from_config(cls, cfg: AnalyzerConfig) -> "Scanner":
        return cls(cfg.extensions, cfg.skip_dirs, cfg.skip_suffixes)

    def scan(self, directory: Path) -> List[str]:
        """Return absolute paths of matching files below *directory*.

        Raises:
            OSError: If *directory* itself cannot be listed. Nested directories
                that cannot be read are logged and skipped.
        """
        files: List[str] = []
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
        for entry in entries:
            if entry.is_dir():
                if entry.name in self.skip_dirs:
                    continue
                try:
                    files.extend(self.scan(Path(entry.path)))
                except OSError as exc:
                    logger.warning("Could not read directory %s: %s", entry.path, exc)
            elif entry.is_file():
                if self.should_skip_file(entry.name):
                    continue
                if entry.name.endswith(self.extensions):
                    files.append(os.path.realpath(entry.path))
        return files

    def should_skip_file(self, file_name: str) -> bool:
        return file_name.endswith(self.skip_suffixes)


def scan_project(root: Path, cfg: AnalyzerConfig) -> List[str]:
    """Scan every configured project area below *root*.

    Raises:
        NoSourceFilesError: If no source file was found in any area.
    """
    scanner = Scanner.from_config(cfg)
    all_files: List[str] = []

    for project, subdir in cfg.projects.items():
        area = root / subdir
        if not area.is_dir():
            logger.warning("Directory %s (%s) does not exist, skipping", area, project)
            continue
        try:
            files = scanner.scan(area)
        except OSError as exc:
            logger.warning("Could not read directory %s: %s", area, exc)
            continue
        logger.info("Found %d source files in %s", len(files), area)
        all_files.extend(files)

    if not all_files:
        raise NoSourceFilesError(f"No TypeScript files found in {root}")
    return all_files
