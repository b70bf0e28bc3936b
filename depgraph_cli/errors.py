"""Fatal error types raised by the analysis layers and reported by the CLI."""

from __future__ import annotations


class DepgraphError(Exception):
    """Base class for errors that abort a command."""


class ConfigError(DepgraphError):
    """Invalid configuration file or unusable project root."""


class NoSourceFilesError(DepgraphError):
    """The scan did not discover a single source file."""


class VcsError(DepgraphError):
    """Repository discovery or base reference resolution failed."""


class EntityNotFoundError(DepgraphError):
    """None of the requested entity names matched the entity table."""
