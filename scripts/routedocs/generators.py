"""Per-group generators.

Each normalized group goes through two stages: a type snapshot of its route
module, then a single-group OpenAPI fragment built from that snapshot. The
merge step only reads the fragment back from ``job.fragment_path``.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from _fs import read_json, write_json
from openapi_doc import new_fragment
from utils import ToolState, progress, run_cmd_logged

from .cache import SourceIndex, hash_file
from .constants import RESPONSE_HINTS
from .formatting import colon_to_bracket, path_parameters, sanitize_api_prefix
from .models import ResolutionContext, RouteGroup
from .routes import collect_route_calls
from .syntax import SourceFile

SNAPSHOT_VERSION = 1
WORD_RE = re.compile(r"[A-Za-z0-9]+")


@dataclass(frozen=True)
class GenerationJob:
    group: RouteGroup
    header: Dict[str, Any]
    context: ResolutionContext
    root: Path
    snapshot_path: Path
    fragment_path: Path
    log_dir: Path

    @property
    def module_file(self) -> Path:
        return self.root / self.group.module_path

    @property
    def slug(self) -> str:
        return sanitize_api_prefix(self.group.prefix)


class GroupGenerator:
    def generate_types(self, job: GenerationJob) -> Optional[Path]:
        raise NotImplementedError

    def generate_openapi(self, job: GenerationJob) -> Optional[Path]:
        raise NotImplementedError

    def run(self, job: GenerationJob) -> Optional[Path]:
        if self.generate_types(job) is None:
            return None
        return self.generate_openapi(job)


def response_hint(source: SourceFile, start: int, end: int) -> str:
    text = source.text[source.tokens[start].start : source.tokens[end].end]
    for needle, media_type in RESPONSE_HINTS:
        if needle in text:
            return media_type
    return ""


def route_table(source: SourceFile) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for route in collect_route_calls(source):
        rows.append(
            {
                "method": route.method,
                "path": route.path,
                "line": route.call.line,
                "response": response_hint(source, route.call.name_index, route.call.close_index),
            }
        )
    return rows


def operation_id(method: str, prefix: str, path: str) -> str:
    parts = [method.lower()]
    for segment in f"{prefix}/{path}".split("/"):
        if segment.startswith("{") and segment.endswith("}"):
            parts.append("By" + segment[1:-1][:1].upper() + segment[1:-1][1:])
            continue
        parts.extend(word[:1].upper() + word[1:] for word in WORD_RE.findall(segment))
    return "".join(parts)


def fragment_operation(row: Dict[str, Any], prefix: str) -> Dict[str, Any]:
    raw_path = str(row.get("path") or "/")
    path = colon_to_bracket(raw_path)
    operation: Dict[str, Any] = {"operationId": operation_id(str(row["method"]), colon_to_bracket(prefix), path)}
    # Mount prefix parameters come first and are always required.
    found = [(name, True) for name, _ in path_parameters(prefix)] + path_parameters(raw_path)
    parameters: List[Dict[str, Any]] = []
    seen = set()
    for name, required in found:
        if name in seen:
            continue
        seen.add(name)
        parameters.append({"name": name, "in": "path", "required": required, "schema": {"type": "string"}})
    if parameters:
        operation["parameters"] = parameters
    responses: Dict[str, Any] = {}
    media_type = row.get("response")
    if media_type:
        schema: Dict[str, Any] = {"type": "string"} if media_type.startswith("text/") else {}
        responses["200"] = {"description": "", "content": {media_type: {"schema": schema}}}
    responses["default"] = {"description": "Unexpected error"}
    operation["responses"] = responses
    return operation


class StaticGroupGenerator(GroupGenerator):
    """Builds snapshots and fragments from the route calls themselves."""

    def __init__(self, index: SourceIndex, warnings: List[str]) -> None:
        self.index = index
        self.warnings = warnings

    def generate_types(self, job: GenerationJob) -> Optional[Path]:
        source = self.index.get(job.module_file)
        if source is None:
            self.warnings.append(f"Could not load route module: {job.group.module_path}")
            return None
        snapshot = {
            "version": SNAPSHOT_VERSION,
            "module": job.group.module_path,
            "prefix": job.group.prefix,
            "name": job.group.name,
            "sha1": hash_file(job.module_file),
            "routes": route_table(source),
        }
        return write_json(job.snapshot_path, snapshot)

    def generate_openapi(self, job: GenerationJob) -> Optional[Path]:
        try:
            snapshot = read_json(job.snapshot_path)
        except (OSError, json.JSONDecodeError) as exc:
            self.warnings.append(f"Failed to read snapshot for {job.group.prefix}: {exc}")
            return None
        if not isinstance(snapshot, dict) or not isinstance(snapshot.get("routes"), list):
            self.warnings.append(f"Invalid snapshot for {job.group.prefix}: expected a route table")
            return None
        info = job.header.get("info") if isinstance(job.header.get("info"), dict) else {}
        fragment = new_fragment(job.group.name, str(info.get("version", "0.0.0")))
        paths: Dict[str, Any] = fragment["paths"]
        for row in snapshot["routes"]:
            if not isinstance(row, dict) or not row.get("method"):
                continue
            path = colon_to_bracket(str(row.get("path") or "/"))
            paths.setdefault(path, {})[str(row["method"])] = fragment_operation(row, job.group.prefix)
        return write_json(job.fragment_path, fragment)


def fill_placeholders(command: List[str], job: GenerationJob) -> List[str]:
    values = {
        "module": job.module_file.as_posix(),
        "prefix": job.group.prefix,
        "name": job.group.name,
        "snapshot": job.snapshot_path.as_posix(),
        "output": job.fragment_path.as_posix(),
        "root": job.root.as_posix(),
    }
    filled = []
    for arg in command:
        for key, value in values.items():
            arg = arg.replace("{" + key + "}", value)
        filled.append(arg)
    return filled


class CommandGroupGenerator(GroupGenerator):
    """Runs external commands for the stages that have one configured.

    A stage without a command falls back to ``StaticGroupGenerator``.
    """

    def __init__(
        self,
        index: SourceIndex,
        warnings: List[str],
        *,
        types_command: Optional[List[str]] = None,
        openapi_command: Optional[List[str]] = None,
        tools: Optional[ToolState] = None,
    ) -> None:
        self.fallback = StaticGroupGenerator(index, warnings)
        self.warnings = warnings
        self.types_command = types_command
        self.openapi_command = openapi_command
        self.tools = tools or ToolState()

    def _run(self, stage: str, command: List[str], job: GenerationJob, expected: Path) -> Optional[Path]:
        expected.parent.mkdir(parents=True, exist_ok=True)
        log_path = job.log_dir / f"{job.slug}.{stage}.log"
        progress(f"{stage} {job.group.prefix}: {command[0]}")
        code = run_cmd_logged(
            fill_placeholders(command, job),
            cwd=job.root,
            log_path=log_path,
            warnings=self.warnings,
            tools=self.tools,
        )
        if code is None:
            return None
        if code != 0:
            self.warnings.append(f"{stage} command failed for {job.group.prefix} (exit {code}); see {log_path}")
            return None
        if not expected.exists():
            self.warnings.append(f"{stage} command for {job.group.prefix} did not write {expected}")
            return None
        return expected

    def generate_types(self, job: GenerationJob) -> Optional[Path]:
        if not self.types_command:
            return self.fallback.generate_types(job)
        return self._run("types", self.types_command, job, job.snapshot_path)

    def generate_openapi(self, job: GenerationJob) -> Optional[Path]:
        if not self.openapi_command:
            return self.fallback.generate_openapi(job)
        return self._run("openapi", self.openapi_command, job, job.fragment_path)
