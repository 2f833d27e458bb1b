from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .constants import INDEX_BASENAME, SOURCE_EXTS, SOURCE_ROOT
from .models import Resolution, ResolutionContext, Resolved, Unresolved

ESM_EXTS = (".js", ".jsx", ".mjs", ".cjs")


def is_relative_specifier(specifier: str) -> bool:
    return specifier in (".", "..") or specifier.startswith(("./", "../"))


def normalize(path: Path) -> Path:
    return Path(os.path.normpath(path.as_posix()))


def probe_candidates(target: Path, *, exts: Sequence[str] = SOURCE_EXTS) -> List[Path]:
    """Literal path first, then the same path with a source extension."""
    candidates = [target]
    candidates.extend(target.with_name(target.name + ext) for ext in exts)
    if target.suffix in ESM_EXTS:
        stem = target.with_suffix("")
        candidates.extend(stem.with_name(stem.name + ext) for ext in exts)
    candidates.extend(target / f"{INDEX_BASENAME}{ext}" for ext in exts)
    return candidates


def probe_file(target: Path, tried: List[str]) -> Optional[Path]:
    for candidate in probe_candidates(normalize(target)):
        tried.append(candidate.as_posix())
        if candidate.is_file():
            return candidate.resolve()
    return None


def resolve_alias_candidates(specifier: str, alias_table: Dict[str, List[str]]) -> List[str]:
    candidates: List[str] = []
    for pattern, targets in alias_table.items():
        if "*" in pattern:
            prefix, suffix = pattern.split("*", 1)
            if len(specifier) < len(prefix) + len(suffix):
                continue
            if specifier.startswith(prefix) and specifier.endswith(suffix):
                token = specifier[len(prefix) : len(specifier) - len(suffix)]
                candidates.extend(target.replace("*", token) for target in targets)
        elif specifier == pattern:
            candidates.extend(targets)
    return candidates


def resolve_import(from_file: Path, specifier: str, context: ResolutionContext) -> Resolution:
    """Resolve ``specifier`` as imported from ``from_file``.

    Strategies, first hit wins: relative to the importing file, the tsconfig
    alias table, then ``<root>/src/<specifier>``. A relative specifier that
    does not exist is unresolved; it never falls through to the others.
    """
    tried: List[str] = []
    if is_relative_specifier(specifier):
        found = probe_file(Path(from_file).parent / specifier, tried)
        if found:
            return Resolved(found, "relative")
        return Unresolved(specifier, tuple(tried))

    if context.alias_table:
        base = context.base_dir or context.root_path
        for candidate in resolve_alias_candidates(specifier, context.alias_table):
            found = probe_file(Path(base) / candidate, tried)
            if found:
                return Resolved(found, "alias")

    found = probe_file(Path(context.root_path) / SOURCE_ROOT / specifier, tried)
    if found:
        return Resolved(found, "source-root")
    return Unresolved(specifier, tuple(tried))
