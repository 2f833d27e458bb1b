from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from utils import progress

from .cache import SourceIndex
from .constants import MOUNT_METHOD, ROUTE_METHODS
from .docs import builder_declarations, call_site_node, doc_source_for, extract_jsdoc_from_handler
from .imports import resolve_import
from .models import HandlerAnnotation, ResolutionContext, RouteGroup, Unresolved
from .syntax import Argument, CallExpression, SourceFile, VariableDeclaration

BUILDER_CLASS_RE = re.compile(r"[A-Za-z_$][\w$]*Hono|Hono")
IDENT_ONLY_RE = re.compile(r"[A-Za-z_$][\w$]*")

HandlerKey = Tuple[str, str]


@dataclass
class MountCall:
    prefix: str
    app_name: str
    line: int


@dataclass
class RouteCall:
    method: str
    path: str
    call: CallExpression

    @property
    def spreads(self) -> List[Argument]:
        return [arg for arg in self.call.arguments if arg.kind == "spread"]


def relative_module_path(path: Path, root: Path) -> str:
    return Path(os.path.relpath(Path(path).resolve(), Path(root).resolve())).as_posix()


def normalize_route_path(path: str) -> str:
    stripped = path.strip("/")
    return f"/{stripped}" if stripped else "/"


def extract_mount_calls(source: SourceFile) -> List[MountCall]:
    mounts: List[MountCall] = []
    for call in source.calls:
        if call.name != MOUNT_METHOD or len(call.arguments) < 2:
            continue
        prefix_arg, app_arg = call.arguments[0], call.arguments[1]
        if prefix_arg.kind != "string" or app_arg.kind != "identifier":
            continue
        mounts.append(MountCall(prefix_arg.value, app_arg.value, call.line))
    return mounts


def discover_routes_from_app(
    index: SourceIndex,
    app_path: str,
    root: Path,
    context: ResolutionContext,
    warnings: Optional[List[str]] = None,
) -> List[RouteGroup]:
    """Find ``.route(prefix, app)`` mounts in the entry module.

    Groups come back in lexical order and without a name. A mount whose
    app cannot be traced to a file is dropped and reported in ``warnings``.
    """
    warnings = warnings if warnings is not None else []
    root = Path(root).resolve()
    full_app_path = root / app_path
    if not full_app_path.is_file():
        raise FileNotFoundError(f"Could not load app file: {full_app_path}")
    source = index.load(full_app_path)

    groups: List[RouteGroup] = []
    for mount in extract_mount_calls(source):
        decl = source.get_import_declaration(mount.app_name)
        if decl is None:
            warnings.append(
                f"Skipping mount '{mount.prefix}' ({app_path}:{mount.line}): '{mount.app_name}' is not imported"
            )
            continue
        result = resolve_import(source.path, decl.specifier, context)
        if isinstance(result, Unresolved):
            warnings.append(
                f"Skipping mount '{mount.prefix}' ({app_path}:{mount.line}): cannot resolve '{result.specifier}'"
            )
            continue
        groups.append(RouteGroup(prefix=mount.prefix, module_path=relative_module_path(result.path, root)))
    progress(f"Discovered {len(groups)} route group(s) in {app_path}", done=True)
    return groups


def is_builder_call(call: CallExpression, builder_names: Sequence[str]) -> bool:
    root = call.receiver_root
    return root in builder_names or bool(BUILDER_CLASS_RE.fullmatch(root))


def chained_calls(source: SourceFile, decl: VariableDeclaration) -> List[CallExpression]:
    """Calls linked directly onto the initializer of ``decl``.

    Calls nested in arguments (handler bodies) sit at a deeper bracket
    level and are left out.
    """
    by_dot = {call.dot_index: call for call in source.calls_between(decl.init_start, decl.init_end)}
    chained: List[CallExpression] = []
    depth = 0
    for idx in range(decl.init_start, decl.init_end):
        tok = source.tokens[idx]
        if depth == 0 and idx in by_dot:
            chained.append(by_dot[idx])
        if tok.kind != "punct":
            continue
        if tok.value in ("(", "[", "{"):
            depth += 1
        elif tok.value in (")", "]", "}"):
            depth -= 1
    return chained


def collect_route_calls(source: SourceFile) -> List[RouteCall]:
    builders = builder_declarations(source)
    builder_names = [decl.name for decl in builders]
    in_chain = {call.name_index for decl in builders for call in chained_calls(source, decl)}
    calls: List[RouteCall] = []
    for call in source.calls:
        if call.name not in ROUTE_METHODS or not call.arguments:
            continue
        if call.name_index not in in_chain and not is_builder_call(call, builder_names):
            continue
        path_arg = call.arguments[0]
        if path_arg.kind != "string":
            continue
        calls.append(RouteCall(call.name.lower(), normalize_route_path(path_arg.value), call))
    return calls


def trace_bundle(
    index: SourceIndex,
    source: SourceFile,
    name: str,
    context: ResolutionContext,
    warnings: List[str],
) -> Optional[HandlerAnnotation]:
    decl = source.get_import_declaration(name)
    if decl is None:
        # Bundle declared next to the routes.
        return extract_jsdoc_from_handler(source, name)
    result = resolve_import(source.path, decl.specifier, context)
    if isinstance(result, Unresolved):
        warnings.append(f"Unresolved handler import '{result.specifier}' in {source.path.name}")
        return None
    target = index.get(result.path)
    if target is None:
        return None
    imported = decl.imported_name(name) or name
    if imported == "default":
        imported = target.default_export
        if not imported:
            return None
    return extract_jsdoc_from_handler(target, imported)


def bundle_annotation(
    index: SourceIndex,
    source: SourceFile,
    spreads: List[Argument],
    context: ResolutionContext,
    warnings: List[str],
) -> Optional[HandlerAnnotation]:
    merged = HandlerAnnotation()
    for arg in spreads:
        name = arg.value.strip()
        if not IDENT_ONLY_RE.fullmatch(name):
            continue
        found = trace_bundle(index, source, name, context, warnings)
        if found is not None:
            merged = merged.layered(found)
    return None if merged.is_empty() else merged


def discover_handlers_from_route(
    index: SourceIndex,
    route_file: Path,
    root: Path,
    context: ResolutionContext,
    warnings: Optional[List[str]] = None,
) -> Dict[HandlerKey, HandlerAnnotation]:
    """Map ``(method, path)`` to the handler annotation of each route call.

    Calls with spread arguments read their metadata from the handler
    bundles; every other call reads the doc-comment at its call site.
    """
    warnings = warnings if warnings is not None else []
    handlers: Dict[HandlerKey, HandlerAnnotation] = {}
    source = index.get(route_file)
    if source is None:
        warnings.append(f"Could not load route module: {relative_module_path(route_file, root)}")
        return handlers
    for route in collect_route_calls(source):
        spreads = route.spreads
        if spreads:
            annotation = bundle_annotation(index, source, spreads, context, warnings)
        else:
            annotation = doc_source_for(call_site_node(source, route.call)).handler_annotation()
        if annotation is not None:
            handlers[(route.method, route.path)] = annotation
    return handlers
