"""Configuration manager for DepGraph using TOML files.

Settings are layered: built-in defaults from :mod:`depgraph_cli.config`, then
the ``[analyzer]`` table of ``~/.depgraph/config.toml``, then the ``[analyzer]``
table of ``.depgraph.toml`` at the analyzed project root.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from . import config
from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class AnalyzerConfig:
    projects: Dict[str, str] = field(default_factory=lambda: dict(config.DEFAULT_PROJECTS))
    extensions: List[str] = field(default_factory=lambda: list(config.SOURCE_EXTENSIONS))
    skip_dirs: List[str] = field(default_factory=lambda: list(config.SKIP_DIRS))
    skip_suffixes: List[str] = field(default_factory=lambda: list(config.SKIP_SUFFIXES))
    test_suffixes: List[str] = field(default_factory=lambda: list(config.TEST_SUFFIXES))
    aliases: Dict[str, str] = field(default_factory=lambda: dict(config.MODULE_ALIASES))
    max_paths: int = config.DEFAULT_MAX_PATHS
    max_depth: int = config.DEFAULT_MAX_DEPTH
    max_cycles: int = config.DEFAULT_MAX_CYCLES

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_LIST_KEYS = {"extensions", "skip_dirs", "skip_suffixes", "test_suffixes"}
_TABLE_KEYS = {"projects", "aliases"}
_INT_KEYS = {"max_paths", "max_depth", "max_cycles"}


def _read_analyzer_table(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = toml.load(f)
    except (toml.TomlDecodeError, OSError) as exc:
        logger.error("Could not read config file %s: %s", path, exc)
        raise ConfigError(f"Invalid configuration file {path}: {exc}") from exc
    section = data.get("analyzer", {})
    if not isinstance(section, dict):
        raise ConfigError(f"[analyzer] in {path} must be a table")
    return section


def _apply(cfg: AnalyzerConfig, overrides: Dict[str, Any], source: Path) -> None:
    for key, value in overrides.items():
        if key in _LIST_KEYS:
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(f"'{key}' in {source} must be a list of strings")
            setattr(cfg, key, list(value))
        elif key in _TABLE_KEYS:
            if not isinstance(value, dict):
                raise ConfigError(f"'{key}' in {source} must be a table")
            setattr(cfg, key, {str(k): str(v) for k, v in value.items()})
        elif key in _INT_KEYS:
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ConfigError(f"'{key}' in {source} must be a positive integer")
            setattr(cfg, key, value)
        else:
            logger.debug("Ignoring unknown config key '%s' in %s", key, source)


def load_config(project_root: Optional[Path] = None) -> AnalyzerConfig:
    """Load the effective analyzer configuration.

    Args:
        project_root: Root of the analyzed monorepo; its ``.depgraph.toml``
            takes precedence over the user-level file.

    Returns:
        Merged configuration.

    Raises:
        ConfigError: If a config file is malformed or holds invalid values.
    """
    cfg = AnalyzerConfig()
    sources = [config.CONFIG_FILE]
    if project_root is not None:
        sources.append(project_root / config.PROJECT_CONFIG_NAME)

    for path in sources:
        overrides = _read_analyzer_table(path)
        if overrides:
            logger.debug("Loaded analyzer settings from %s", path)
            _apply(cfg, overrides, path)
    return cfg


def dump_config(cfg: AnalyzerConfig) -> str:
    """Render *cfg* as an ``[analyzer]`` TOML document."""
    return toml.dumps({"analyzer": cfg.to_dict()})
