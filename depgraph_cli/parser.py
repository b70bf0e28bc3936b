"""Lightweight TypeScript export/import extractor.

Not a real parser: exports are detected line by line and imports by a small
table of independent regular expressions run over comment-stripped text, so
unusual formatting can produce false positives or negatives.

Supported import forms:

- named imports, including multiline lists, ``as`` aliases and ``type`` modifiers
- default imports
- Angular lazy-loaded routes: ``import('./x').then(m => m.XModule)``
- web workers: ``new Worker(new URL('./x.worker', import.meta.url))``
"""

from __future__ import annotations

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from .models import Entity, EntityKind, FileParseResult, ImportReference

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Compiled patterns (built once per process)
# ---------------------------------------------------------------------------

_NORMALIZE_RE = re.compile(r"import\s*(type\s+)?\{([^}]*)\}\s*from")
_NAMED_IMPORT_RE = re.compile(r"""import\s*(?:type\s+)?\{([^}]+)\}\s*from\s*['"]([^'"]+)['"]""")
_DEFAULT_IMPORT_RE = re.compile(r"""import\s+(\w+)\s+from\s*['"]([^'"]+)['"]""")
_LAZY_IMPORT_RE = re.compile(
    r"""import\s*\(\s*['"]([^'"]+)['"]\s*\)\.then\s*\(\s*\w+\s*=>\s*\w+\.(\w+)\s*\)"""
)
_WORKER_IMPORT_RE = re.compile(
    r"""new\s+Worker\s*\(\s*new\s+URL\s*\(\s*['"]([^'"]+)['"]\s*,\s*import\.meta\.url\s*\)"""
)
_DECORATOR_RE = re.compile(r"^@(Component|Injectable|Directive|Pipe)\s*\(")

_EXPORT_KEYWORDS: Tuple[Tuple[str, EntityKind], ...] = (
    ("class", EntityKind.CLASS),
    ("enum", EntityKind.ENUM),
    ("type", EntityKind.TYPE),
    ("interface", EntityKind.INTERFACE),
    ("function", EntityKind.FUNCTION),
)
_EXPORT_NAME_RES: Dict[str, re.Pattern] = {
    keyword: re.compile(rf"(?<!\w){keyword}\s+(\w+)")
    for keyword in ("class", "enum", "type", "interface", "function", "const", "let", "var")
}

DECORATOR_KINDS: Dict[str, EntityKind] = {
    "Component": EntityKind.COMPONENT,
    "Injectable": EntityKind.SERVICE,
    "Directive": EntityKind.DIRECTIVE,
    "Pipe": EntityKind.PIPE,
}

WORKER_SUFFIX = ".worker.ts"


@lru_cache(maxsize=4096)
def _word_pattern(name: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(name)}\b")


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def strip_comments(content: str) -> str:
    """Remove ``//`` and ``/* */`` comments while leaving string literals intact."""
    out: List[str] = []
    i = 0
    n = len(content)
    quote: Optional[str] = None

    while i < n:
        c = content[i]
        if quote is not None:
            out.append(c)
            if c == "\\" and i + 1 < n:
                out.append(content[i + 1])
                i += 2
                continue
            if c == quote:
                quote = None
            i += 1
            continue

        if c in "\"'`":
            quote = c
            out.append(c)
            i += 1
            continue

        if c == "/" and i + 1 < n:
            nxt = content[i + 1]
            if nxt == "/":
                end = content.find("\n", i + 2)
                i = n if end == -1 else end
                continue
            if nxt == "*":
                end = content.find("*/", i + 2)
                i = n if end == -1 else end + 2
                continue

        out.append(c)
        i += 1

    return "".join(out)


def _normalize_named_imports(content: str) -> str:
    """Collapse multiline ``import { ... } from`` lists onto one line."""

    def _collapse(match: re.Match) -> str:
        names = match.group(2).replace("\r", " ").replace("\n", " ")
        return f"import {match.group(1) or ''}{{{names}}} from"

    return _NORMALIZE_RE.sub(_collapse, content)


def extract_export_name(line: str, keyword: str) -> Optional[str]:
    """Return the identifier that follows *keyword* as a whole word, if any."""
    match = _EXPORT_NAME_RES[keyword].search(line)
    return match.group(1) if match else None


def is_used_locally(content: str, name: str) -> bool:
    """True when *name* occurs as a whole word more than once in *content*."""
    count = 0
    for _ in _word_pattern(name).finditer(content):
        count += 1
        if count > 1:
            return True
    return False


def skip_balanced_parens(line: str, start: int) -> int:
    """Index just past the ``)`` closing the ``(`` at *start*.

    Returns ``len(line)`` when the group is not closed on this line.
    """
    depth = 0
    for i in range(start, len(line)):
        c = line[i]
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth == 0:
                return i + 1
    return len(line)


def worker_name(module: str) -> str:
    """Entity name of a worker module: its file name without the TS extension."""
    name = os.path.basename(module)
    for ext in (".ts", ".tsx"):
        if name.endswith(ext):
            return name[: -len(ext)]
    return name


# ---------------------------------------------------------------------------
# Import matchers: each yields (imported name, raw module reference)
# ---------------------------------------------------------------------------

ImportMatch = Tuple[str, str]


def _match_named(content: str) -> Iterator[ImportMatch]:
    for match in _NAMED_IMPORT_RE.finditer(content):
        module = match.group(2)
        for part in match.group(1).split(","):
            part = part.strip()
            if part.startswith("type "):
                part = part[len("type "):].strip()
            if not part:
                continue
            name = part.split(" as ", 1)[0].strip()
            if name:
                yield name, module


def _match_default(content: str) -> Iterator[ImportMatch]:
    for match in _DEFAULT_IMPORT_RE.finditer(content):
        name = match.group(1)
        if name in ("type", "from"):
            continue
        yield name, match.group(2)


def _match_lazy(content: str) -> Iterator[ImportMatch]:
    for match in _LAZY_IMPORT_RE.finditer(content):
        yield match.group(2), match.group(1)


def _match_worker(content: str) -> Iterator[ImportMatch]:
    for match in _WORKER_IMPORT_RE.finditer(content):
        module = match.group(1)
        yield worker_name(module), module


IMPORT_MATCHERS: Tuple[Tuple[str, Callable[[str], Iterator[ImportMatch]]], ...] = (
    ("named", _match_named),
    ("default", _match_default),
    ("lazy", _match_lazy),
    ("worker", _match_worker),
)


# ---------------------------------------------------------------------------
# Module resolution
# ---------------------------------------------------------------------------

def resolve_import_path(
    importing_file: str,
    module: str,
    root_path: Path,
    aliases: Mapping[str, str],
) -> Optional[str]:
    """Resolve *module* to an absolute file path, or None for external packages."""
    base: Optional[Path] = None
    for prefix, target in aliases.items():
        if module.startswith(prefix):
            base = root_path / target / module[len(prefix):]
            break
    if base is None:
        if module.startswith("./") or module.startswith("../"):
            base = Path(importing_file).parent / module
        else:
            return None

    base_str = str(base)
    candidates = (
        Path(base_str + ".ts"),
        Path(base_str + ".tsx"),
        base / "index.ts",
        base / "index.tsx",
    )
    for candidate in candidates:
        if candidate.is_file():
            return os.path.realpath(candidate)

    if base.is_file():
        return os.path.realpath(base)

    normalized = os.path.normpath(base_str)
    if normalized.endswith((".ts", ".tsx")):
        return normalized
    return normalized + ".ts"


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------

class ImportExtractor:
    """Extract resolved, project-local import references from file text."""

    def __init__(self, root_path: Path, aliases: Optional[Mapping[str, str]] = None) -> None:
        self.root_path = root_path
        self.aliases = dict(aliases or {})

    def extract_imports(self, content: str, file_path: str) -> List[ImportReference]:
        text = _normalize_named_imports(strip_comments(content))
        imports: List[ImportReference] = []

        for _kind, matcher in IMPORT_MATCHERS:
            for name, module in matcher(text):
                resolved = resolve_import_path(file_path, module, self.root_path, self.aliases)
                if resolved is None:
                    continue
                imports.append(ImportReference.create(name, resolved))

        return imports


class FileParser:
    """Turn one source file into exported entities plus its import references."""

    def __init__(self, root_path: Path, aliases: Optional[Mapping[str, str]] = None) -> None:
        self.root_path = root_path
        self.extractor = ImportExtractor(root_path, aliases)

    def parse(self, file_path: str) -> FileParseResult:
        with open(file_path, "r", encoding="utf-8") as f:
            content = f.read()
        return self.parse_source(file_path, content)

    def parse_source(self, file_path: str, content: str) -> FileParseResult:
        imports = tuple(self.extractor.extract_imports(content, file_path))
        entities: List[Entity] = []
        seen = set()

        def _add(name: str, kind: EntityKind) -> None:
            if name in seen:
                return
            seen.add(name)
            entities.append(Entity.create(name, kind, file_path, imports))

        if file_path.endswith(WORKER_SUFFIX):
            _add(worker_name(file_path), EntityKind.WORKER)

        pending_decorator: Optional[EntityKind] = None
        for line in strip_comments(content).splitlines():
            line = line.strip()
            if not line:
                continue

            decorator = _DECORATOR_RE.match(line)
            if decorator:
                pending_decorator = DECORATOR_KINDS[decorator.group(1)]
                # `@Injectable() export class X {}` keeps going with the class part.
                line = line[skip_balanced_parens(line, decorator.end() - 1):].strip()
                if not line:
                    continue

            if "export" not in line:
                if "class" in line and extract_export_name(line, "class"):
                    pending_decorator = None
                continue

            for keyword, kind in _EXPORT_KEYWORDS:
                if keyword not in line:
                    continue
                if keyword == "type" and "typeof" in line:
                    continue
                name = extract_export_name(line, keyword)
                if name is None:
                    continue
                if keyword == "class" and pending_decorator is not None:
                    kind = pending_decorator
                    pending_decorator = None
                _add(name, kind)

            for keyword in ("const", "let", "var"):
                if line.startswith(f"export {keyword}"):
                    name = extract_export_name(line, keyword)
                    # `export const enum X` is already covered by the enum keyword.
                    if name and name != "enum":
                        is_fn = "=>" in line or "= function" in line
                        _add(name, EntityKind.FUNCTION if is_fn else EntityKind.CONST)
                    break

        for entity in entities:
            if is_used_locally(content, entity.name):
                entity.used = True

        logger.debug(
            "Parsed %s: %d entities, %d imports", file_path, len(entities), len(imports)
        )
        return FileParseResult(file_path=file_path, entities=entities, imports=imports)
