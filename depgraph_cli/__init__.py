"""DepGraph CLI: dependency analysis for TypeScript monorepos."""

__version__ = "0.1.0"
