"""Default locations and analyzer settings for DepGraph."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("DEPGRAPH_HOME", str(Path.home() / ".depgraph"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"
PROJECT_CONFIG_NAME = ".depgraph.toml"

# Top-level code areas of the monorepo, scanned in this order.
DEFAULT_PROJECTS = {
    "web": "apps/web",
    "mobile": "apps/mobile",
    "libs": "libs",
}

SOURCE_EXTENSIONS = (".ts", ".tsx")

SKIP_DIRS = (
    "mocks",
    "__mocks__",
    "mocks_stubs",
    "tests",
    "environments",
    "i18n",
)

SKIP_SUFFIXES = (
    ".spec.ts",
    ".d.ts",
    ".stories.ts",
    "-stub.ts",
    "mocks.ts",
    "mock.ts",
)

TEST_SUFFIXES = (".spec.ts", ".test.ts")

# Import prefix -> directory relative to the project root.
MODULE_ALIASES = {
    "@awork/": "libs/shared/src/lib",
}

DEFAULT_MAX_PATHS = 100
DEFAULT_MAX_DEPTH = 10
DEFAULT_MAX_CYCLES = 100
