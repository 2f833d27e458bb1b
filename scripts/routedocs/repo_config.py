from __future__ import annotations

import json
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .constants import DEFAULT_OPENAPI_VERSION, DEFAULT_TSCONFIG, DEFAULT_WORK_DIR
from .models import OperationOverride, ResolutionContext, RouteGroup

GroupSpec = Union[str, RouteGroup]


class ConfigError(ValueError):
    """Configuration is malformed; the run cannot start."""


def normalize_str_list(value: Any) -> List[str]:
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    if isinstance(value, list):
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return []


def normalize_tags(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return tuple(part.strip() for part in value.split(",") if part.strip())
    return tuple(normalize_str_list(value))


def normalize_command(value: Any, key: str) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str) and value.strip():
        return shlex.split(value)
    if isinstance(value, list) and value and all(isinstance(item, str) for item in value):
        return list(value)
    raise ConfigError(f"Config error: '{key}' must be a command string or a list of strings")


def strip_json_comments(text: str) -> str:
    """Remove // and /* */ comments from JSON-like text."""
    out: List[str] = []
    in_str = False
    escape = False
    idx = 0
    while idx < len(text):
        ch = text[idx]
        if in_str:
            out.append(ch)
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_str = False
            idx += 1
            continue
        if ch == '"':
            in_str = True
            out.append(ch)
            idx += 1
            continue
        if ch == "/" and idx + 1 < len(text):
            nxt = text[idx + 1]
            if nxt == "/":
                idx = text.find("\n", idx + 2)
                if idx == -1:
                    break
                continue
            if nxt == "*":
                end = text.find("*/", idx + 2)
                if end == -1:
                    break
                idx = end + 2
                continue
        out.append(ch)
        idx += 1
    return "".join(out)


def parse_overrides(value: Any, where: str = "overrides") -> Tuple[OperationOverride, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError(f"Config error: '{where}' must be a list")
    overrides: List[OperationOverride] = []
    for pos, item in enumerate(value):
        if not isinstance(item, dict):
            raise ConfigError(f"Config error: {where}[{pos}] must be an object")
        path = item.get("path", item.get("api"))
        method = item.get("method")
        if not isinstance(path, str) or not isinstance(method, str) or not method.strip():
            raise ConfigError(f"Config error: {where}[{pos}] needs string 'path' and 'method'")
        summary = item.get("summary")
        description = item.get("description")
        overrides.append(
            OperationOverride(
                path=path,
                method=method.strip().lower(),
                summary=summary if isinstance(summary, str) else "",
                description=description if isinstance(description, str) else "",
                tags=normalize_tags(item.get("tags", item.get("tag"))),
            )
        )
    return tuple(overrides)


def parse_group(value: Any, pos: int) -> GroupSpec:
    if isinstance(value, str):
        if not value.strip():
            raise ConfigError(f"Config error: apis[{pos}] is an empty module path")
        return value.strip()
    if not isinstance(value, dict):
        raise ConfigError(f"Config error: apis[{pos}] must be a module path or an object")
    module = value.get("module", value.get("appTypePath"))
    if not isinstance(module, str) or not module.strip():
        raise ConfigError(f"Config error: apis[{pos}] needs a string 'module'")
    prefix = value.get("prefix", value.get("apiPrefix", ""))
    name = value.get("name", "")
    return RouteGroup(
        prefix=prefix if isinstance(prefix, str) else "",
        module_path=module.strip(),
        name=name.strip() if isinstance(name, str) else "",
        overrides=parse_overrides(value.get("overrides", value.get("api")), f"apis[{pos}].overrides"),
    )


@dataclass
class DocsConfig:
    """Typed view of ``routedocs.json``.

    Exactly one of ``app_path`` (discover groups from an entry module) and
    ``apis`` (explicit group list) must be set. The check runs on
    construction, before anything touches the filesystem.
    """

    openapi_json: str
    ts_config_path: str = DEFAULT_TSCONFIG
    open_api: Dict[str, Any] = field(default_factory=dict)
    work_dir: str = DEFAULT_WORK_DIR
    app_path: Optional[str] = None
    apis: Optional[List[GroupSpec]] = None
    overrides: Tuple[OperationOverride, ...] = ()
    types_command: Optional[List[str]] = None
    openapi_command: Optional[List[str]] = None

    def __post_init__(self) -> None:
        if self.app_path and self.apis is not None:
            raise ConfigError(
                "Config error: cannot use both 'appPath' and 'apis'. Use either 'appPath' "
                "for auto-discovery or 'apis' for manual configuration."
            )
        if not self.app_path and self.apis is None:
            raise ConfigError(
                "Config error: must provide either 'appPath' (for auto-discovery) "
                "or 'apis' (for manual configuration)."
            )
        if not self.openapi_json:
            raise ConfigError("Config error: 'outputs.openApiJson' is required")

    def header(self) -> Dict[str, Any]:
        header = {key: value for key, value in self.open_api.items() if key not in ("paths", "tags")}
        header.setdefault("openapi", DEFAULT_OPENAPI_VERSION)
        return header

    @classmethod
    def from_dict(cls, payload: Any) -> "DocsConfig":
        if not isinstance(payload, dict):
            raise ConfigError("Config error: expected a JSON object")
        outputs = payload.get("outputs")
        if not isinstance(outputs, dict):
            raise ConfigError("Config error: 'outputs' must be an object")
        openapi_json = outputs.get("openApiJson")
        if not isinstance(openapi_json, str) or not openapi_json.strip():
            raise ConfigError("Config error: 'outputs.openApiJson' is required")
        work_dir = outputs.get("workDir")
        if not isinstance(work_dir, str) or not work_dir.strip():
            work_dir = DEFAULT_WORK_DIR
        ts_config_path = payload.get("tsConfigPath")
        if not isinstance(ts_config_path, str) or not ts_config_path.strip():
            ts_config_path = DEFAULT_TSCONFIG
        open_api = payload.get("openApi", {})
        if not isinstance(open_api, dict):
            raise ConfigError("Config error: 'openApi' must be an object")
        app_path = payload.get("appPath")
        if app_path is not None and not isinstance(app_path, str):
            raise ConfigError("Config error: 'appPath' must be a string")
        apis_raw = payload.get("apis")
        apis: Optional[List[GroupSpec]] = None
        if apis_raw is not None:
            if not isinstance(apis_raw, list):
                raise ConfigError("Config error: 'apis' must be a list")
            apis = [parse_group(item, pos) for pos, item in enumerate(apis_raw)]
        generator = payload.get("generator") if isinstance(payload.get("generator"), dict) else {}
        return cls(
            openapi_json=openapi_json.strip(),
            ts_config_path=ts_config_path.strip(),
            open_api=dict(open_api),
            work_dir=work_dir.strip(),
            app_path=app_path.strip() if app_path else None,
            apis=apis,
            overrides=parse_overrides(payload.get("overrides")),
            types_command=normalize_command(generator.get("typesCommand"), "generator.typesCommand"),
            openapi_command=normalize_command(generator.get("openapiCommand"), "generator.openapiCommand"),
        )


def load_docs_config(path: Path) -> DocsConfig:
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    try:
        payload = json.loads(strip_json_comments(raw))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Failed to parse {Path(path).name}: {exc}") from exc
    return DocsConfig.from_dict(payload)


def parse_tsconfig(path: Path, warnings: List[str]) -> Tuple[Optional[str], Dict[str, List[str]]]:
    try:
        raw = path.read_text(encoding="utf-8")
        payload = json.loads(strip_json_comments(raw))
    except (OSError, json.JSONDecodeError) as exc:
        warnings.append(f"Failed to parse {path.name}: {exc}")
        return None, {}
    if not isinstance(payload, dict):
        warnings.append(f"Invalid {path.name}: expected a JSON object")
        return None, {}
    compiler = payload.get("compilerOptions", {})
    if not isinstance(compiler, dict):
        compiler = {}
    base_url = compiler.get("baseUrl", ".")
    if not isinstance(base_url, str) or not base_url.strip():
        base_url = "."
    paths = compiler.get("paths", {})
    normalized: Dict[str, List[str]] = {}
    if isinstance(paths, dict):
        for key, value in paths.items():
            if not isinstance(key, str) or key.count("*") > 1:
                continue
            if isinstance(value, str):
                normalized[key] = [value]
            elif isinstance(value, list):
                normalized[key] = [item for item in value if isinstance(item, str)]
    return base_url, normalized


def load_tsconfig_paths(root: Path, ts_config_path: str, warnings: List[str]) -> ResolutionContext:
    """Build the resolution context from ``compilerOptions.paths``/``baseUrl``.

    A missing or unreadable tsconfig only disables alias resolution.
    """
    root = Path(root).resolve()
    path = root / ts_config_path
    if not path.is_file():
        return ResolutionContext(root_path=root)
    base_url, normalized = parse_tsconfig(path, warnings)
    if not normalized:
        return ResolutionContext(root_path=root)
    return ResolutionContext(
        root_path=root,
        alias_table=normalized,
        base_dir=(path.parent / (base_url or ".")).resolve(),
    )
