"""DiffEngine: list files changed in a git repository since a base reference."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

import git
import git.exc

from .errors import VcsError
from .models import ChangedFile, ChangeKind

logger = logging.getLogger(__name__)

# git status letter -> change kind; copies count as additions, others are ignored
_CHANGE_KINDS = {
    "A": ChangeKind.ADDED,
    "C": ChangeKind.ADDED,
    "M": ChangeKind.MODIFIED,
    "D": ChangeKind.DELETED,
    "R": ChangeKind.RENAMED,
}


class DiffEngine:
    """Compares the working tree of a repository against a base reference."""

    def __init__(self, repo_path: Path):
        """Discover the repository at or above *repo_path*.

        Raises:
            VcsError: If no repository is found or it has no working tree.
        """
        try:
            self.repo = git.Repo(repo_path, search_parent_directories=True)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as exc:
            raise VcsError(f"Failed to find git repository at or above '{repo_path}'") from exc

        if self.repo.bare or self.repo.working_tree_dir is None:
            raise VcsError("Repository has no working directory (bare repository)")
        self.root = os.path.realpath(self.repo.working_tree_dir)

    def resolve(self, base_ref: str) -> git.Commit:
        """Resolve *base_ref* (branch, tag, or SHA) to a commit."""
        try:
            return self.repo.commit(base_ref)
        except (git.exc.BadName, git.exc.BadObject, ValueError) as exc:
            raise VcsError(
                f"Could not resolve git reference '{base_ref}'. Ensure it exists."
            ) from exc

    def changed_files(self, base_ref: str) -> List[ChangedFile]:
        """Tracked files that differ between *base_ref* and the working tree.

        Paths are absolute; deleted files report the path they had at
        *base_ref*.
        """
        base = self.resolve(base_ref)
        try:
            diffs = base.diff(None)
        except git.exc.GitCommandError as exc:
            raise VcsError(f"Failed to compute diff against '{base_ref}': {exc}") from exc

        changed: List[ChangedFile] = []
        for diff in diffs:
            kind = _CHANGE_KINDS.get(diff.change_type)
            if kind is None:
                logger.debug("Skipping %s change for %s", diff.change_type, diff.b_path)
                continue
            rel_path: Optional[str] = diff.a_path if kind is ChangeKind.DELETED else diff.b_path
            if not rel_path:
                continue
            changed.append(ChangedFile(os.path.normpath(os.path.join(self.root, rel_path)), kind))

        changed.sort(key=lambda cf: cf.path)
        logger.info("%d files changed since %s", len(changed), base_ref)
        return changed


def get_changed_files(repo_path: Path, base_ref: str) -> List[ChangedFile]:
    return DiffEngine(repo_path).changed_files(base_ref)
