"""Graph export helpers for D3-compatible JSON and Graphviz DOT outputs."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .graph import DependencyGraph


def render_json(graph: DependencyGraph) -> str:
    return graph.to_json(indent=2)


def render_dot(graph: DependencyGraph) -> str:
    lines = ["digraph DepGraph {"]
    lines.append("  rankdir=LR;")

    for node in graph.nodes:
        label = f"{node.kind}\\n{node.name}"
        lines.append(f'  "{node.id}" [label="{_esc(label)}", tooltip="{_esc(node.file)}"];')

    for edge in graph.edges:
        lines.append(f'  "{edge.source}" -> "{edge.target}";')

    lines.append("}")
    return "\n".join(lines)


def export_json(graph: DependencyGraph, output_file: Optional[Path] = None) -> str:
    text = render_json(graph)
    if output_file is not None:
        output_file.write_text(text + "\n", encoding="utf-8")
    return text


def export_dot(graph: DependencyGraph, output_file: Optional[Path] = None) -> str:
    text = render_dot(graph)
    if output_file is not None:
        output_file.write_text(text + "\n", encoding="utf-8")
    return text


def _esc(text: str) -> str:
    return text.replace('"', '\\"')
