from __future__ import annotations

import posixpath
import re
from dataclasses import replace
from pathlib import Path
from typing import Union

from .cache import SourceIndex
from .docs import extract_route_metadata
from .models import RouteAnnotation, RouteGroup

SOURCE_SUFFIX_RE = re.compile(r"\.(?:tsx?|jsx?|mts|cts|mjs|cjs)$")
WORD_SPLIT_RE = re.compile(r"[-_]|(?=[A-Z])")


def strip_source_suffix(filename: str) -> str:
    return SOURCE_SUFFIX_RE.sub("", filename)


def generate_name_from_filename(filename: str) -> str:
    """``user-profile.ts`` -> ``User Profile``, ``apiKeys.ts`` -> ``Api Keys``."""
    words = [word for word in WORD_SPLIT_RE.split(strip_source_suffix(filename)) if word]
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def generate_prefix_from_filename(filename: str) -> str:
    return f"/{strip_source_suffix(filename)}"


def normalize_prefix(prefix: str) -> str:
    collapsed = re.sub(r"/{2,}", "/", prefix.strip())
    stripped = collapsed.strip("/")
    return f"/{stripped}" if stripped else "/"


def read_route_annotation(index: SourceIndex, module_path: str, root: Path) -> RouteAnnotation:
    source = index.get(Path(root) / module_path)
    if source is None:
        return RouteAnnotation()
    return extract_route_metadata(source)


def normalize_api_group(api: Union[str, RouteGroup], index: SourceIndex, root: Path) -> RouteGroup:
    """Fill in the display name (and, when missing, the prefix) of a group.

    A group that already has a name is returned untouched. Otherwise the
    module's ``@name``/``@prefix`` annotation wins over names derived from
    the filename.
    """
    if isinstance(api, RouteGroup) and api.name:
        return api

    module_path = api if isinstance(api, str) else api.module_path
    filename = posixpath.basename(module_path.replace("\\", "/"))
    annotation = read_route_annotation(index, module_path, root)
    name = annotation.name or generate_name_from_filename(filename)

    if isinstance(api, str) or not api.prefix:
        prefix = annotation.prefix or generate_prefix_from_filename(filename)
        if isinstance(api, str):
            return RouteGroup(prefix=normalize_prefix(prefix), module_path=module_path, name=name)
        return replace(api, prefix=normalize_prefix(prefix), name=name)
    return replace(api, prefix=normalize_prefix(api.prefix), name=name)
