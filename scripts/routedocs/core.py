from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from openapi_doc import add_tag, load_fragment, new_document, save_document
from utils import progress

from .cache import SourceIndex
from .constants import OPENAPI_SUBDIR, TYPES_SUBDIR
from .formatting import clean_default_response, operation_path, sanitize_api_prefix
from .generators import CommandGroupGenerator, GenerationJob, GroupGenerator, StaticGroupGenerator
from .groups import normalize_api_group
from .models import HandlerAnnotation, OperationOverride, ResolutionContext, RouteGroup
from .repo_config import DocsConfig, load_tsconfig_paths
from .routes import HandlerKey, discover_handlers_from_route, discover_routes_from_app

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

OperationKey = Tuple[str, str]


@dataclass
class GenerateResult:
    output_path: Path
    groups: List[RouteGroup]
    document: Dict[str, Any]
    operations: int = 0
    warnings: List[str] = field(default_factory=list)


def discover_groups(
    config: DocsConfig,
    index: SourceIndex,
    root: Path,
    context: ResolutionContext,
    warnings: List[str],
) -> List[RouteGroup]:
    if config.app_path:
        raw: Sequence[Union[str, RouteGroup]] = discover_routes_from_app(
            index, config.app_path, root, context, warnings
        )
    else:
        raw = config.apis or []
    return [normalize_api_group(api, index, root) for api in raw]


def build_override_map(
    group: RouteGroup,
    config_overrides: Sequence[OperationOverride] = (),
) -> Dict[OperationKey, OperationOverride]:
    """Group overrides are prefix-relative; top-level overrides are final paths."""
    overrides: Dict[OperationKey, OperationOverride] = {}
    for item in group.overrides:
        path = operation_path(group.prefix, item.path)
        overrides[(item.method.lower(), path)] = item
    for item in config_overrides:
        path = operation_path("/", item.path)
        overrides[(item.method.lower(), path)] = item
    return overrides


def prefix_handler_map(
    group: RouteGroup,
    handlers: Mapping[HandlerKey, HandlerAnnotation],
) -> Dict[OperationKey, HandlerAnnotation]:
    prefixed: Dict[OperationKey, HandlerAnnotation] = {}
    for (method, path), annotation in handlers.items():
        prefixed[(method, operation_path(group.prefix, path))] = annotation
    return prefixed


def apply_metadata(operation: Dict[str, Any], summary: str, description: str, tags: Sequence[str]) -> None:
    if summary:
        operation["summary"] = summary
    if description:
        operation["description"] = description
    if tags:
        operation["tags"] = list(tags)


def reconcile_tags(operation: Dict[str, Any], group_name: str) -> None:
    tags = operation.get("tags")
    if not isinstance(tags, list) or not tags:
        operation["tags"] = [group_name]
    elif group_name not in tags:
        tags.append(group_name)


def merge_group(
    document: Dict[str, Any],
    group: RouteGroup,
    fragment: Dict[str, Any],
    handlers: Mapping[OperationKey, HandlerAnnotation],
    overrides: Mapping[OperationKey, OperationOverride],
    warnings: List[str],
    owners: Optional[Dict[OperationKey, str]] = None,
) -> int:
    """Fold one group's fragment into ``document["paths"]``.

    Metadata is layered fragment, then handler annotation, then override;
    only non-empty fields are copied. Returns the number of operations.
    """
    owners = owners if owners is not None else {}
    paths: Dict[str, Any] = document["paths"]
    merged = 0
    for fragment_path, path_item in fragment.get("paths", {}).items():
        if not isinstance(path_item, dict):
            continue
        full_path = operation_path(group.prefix, str(fragment_path))
        target = paths.setdefault(full_path, {})
        for key, operation in path_item.items():
            method = str(key).lower()
            if method not in HTTP_METHODS:
                target.setdefault(key, operation)
                continue
            if not isinstance(operation, dict):
                continue
            op_key = (method, full_path)
            annotation = handlers.get(op_key)
            if annotation is not None:
                apply_metadata(operation, annotation.summary, annotation.description, annotation.tags)
            override = overrides.get(op_key)
            if override is not None:
                apply_metadata(operation, override.summary, override.description, override.tags)
            reconcile_tags(operation, group.name)
            clean_default_response(operation, full_path, method, warnings)
            if method in target:
                warnings.append(
                    f"{method.upper()} {full_path} from '{group.name}' replaces the one from '{owners.get(op_key, '?')}'"
                )
            target[method] = operation
            owners[op_key] = group.name
            merged += 1
    return merged


def build_jobs(
    groups: Sequence[RouteGroup],
    header: Dict[str, Any],
    context: ResolutionContext,
    root: Path,
    work_dir: Path,
) -> List[GenerationJob]:
    jobs: List[GenerationJob] = []
    seen: Dict[str, int] = {}
    for group in groups:
        slug = sanitize_api_prefix(group.prefix)
        seen[slug] = seen.get(slug, 0) + 1
        if seen[slug] > 1:
            slug = f"{slug}_{seen[slug]}"
        jobs.append(
            GenerationJob(
                group=group,
                header=header,
                context=context,
                root=root,
                snapshot_path=work_dir / TYPES_SUBDIR / f"{slug}.json",
                fragment_path=work_dir / OPENAPI_SUBDIR / f"{slug}.json",
                log_dir=work_dir / "logs",
            )
        )
    return jobs


def default_generator(config: DocsConfig, index: SourceIndex, warnings: List[str]) -> GroupGenerator:
    if config.types_command or config.openapi_command:
        return CommandGroupGenerator(
            index,
            warnings,
            types_command=config.types_command,
            openapi_command=config.openapi_command,
        )
    return StaticGroupGenerator(index, warnings)


def run_generators(generator: GroupGenerator, jobs: Sequence[GenerationJob], workers: int = 1) -> None:
    for job in jobs:
        for stale in (job.snapshot_path, job.fragment_path):
            if stale.exists():
                stale.unlink()
    if workers > 1 and len(jobs) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(generator.run, job) for job in jobs]
            for future in as_completed(futures):
                future.result()
    else:
        for job in jobs:
            generator.run(job)


def run_generate(
    config: Union[DocsConfig, Dict[str, Any]],
    *,
    root: Optional[Path] = None,
    generator: Optional[GroupGenerator] = None,
    workers: int = 1,
    warnings: Optional[List[str]] = None,
    index: Optional[SourceIndex] = None,
) -> GenerateResult:
    """Discover route groups, run the generators and write the merged document.

    Group order drives everything: tag order, path insertion order and which
    group wins when two claim the same operation. Generators may run in
    parallel; merging is always serial in group order.
    """
    if not isinstance(config, DocsConfig):
        config = DocsConfig.from_dict(config)
    warnings = warnings if warnings is not None else []
    root = Path(root or Path.cwd()).resolve()
    index = index if index is not None else SourceIndex()

    progress(f"Loading module resolution from {config.ts_config_path}")
    context = load_tsconfig_paths(root, config.ts_config_path, warnings)
    groups = discover_groups(config, index, root, context, warnings)
    progress(f"Normalized {len(groups)} route group(s)", done=True)

    header = config.header()
    jobs = build_jobs(groups, header, context, root, root / config.work_dir)
    generator = generator or default_generator(config, index, warnings)
    progress(f"Generating fragments (workers={max(1, workers)})")
    run_generators(generator, jobs, workers)

    document = new_document(header)
    owners: Dict[OperationKey, str] = {}
    operations = 0
    for job in jobs:
        group = job.group
        fragment = load_fragment(job.fragment_path, warnings)
        if fragment is None:
            warnings.append(f"Missing OpenAPI fragment: {job.fragment_path}")
        else:
            handlers = discover_handlers_from_route(index, job.module_file, root, context, warnings)
            operations += merge_group(
                document,
                group,
                fragment,
                prefix_handler_map(group, handlers),
                build_override_map(group, config.overrides),
                warnings,
                owners,
            )
        add_tag(document, group.name)

    output_path = root / config.openapi_json
    save_document(output_path, document)
    progress(f"Merged OpenAPI spec written to {output_path}", done=True)
    return GenerateResult(output_path, groups, document, operations, warnings)
