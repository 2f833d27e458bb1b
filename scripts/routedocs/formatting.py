from __future__ import annotations

import posixpath
import re
from http import HTTPStatus
from typing import Any, Dict, List, Optional, Tuple

# `:id`, `:id?`, `:id{[0-9]+}`
COLON_PARAM_RE = re.compile(r"(?<=/):([A-Za-z_][A-Za-z0-9_]*)(?:\{(?:[^{}]|\{[^{}]*\})*\})?(\?)?")
NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]+")


def colon_to_bracket(path: str) -> str:
    return COLON_PARAM_RE.sub(r"{\1}", path)


def path_parameters(path: str) -> List[Tuple[str, bool]]:
    """``(name, required)`` for every colon parameter, in path order."""
    return [(match.group(1), not match.group(2)) for match in COLON_PARAM_RE.finditer(path)]


def join_and_collapse(prefix: str, path: str) -> str:
    """Join a group prefix and a route path into one URL template.

    Separators are collapsed, trailing slashes dropped, and an empty result
    becomes ``/``.
    """
    joined = re.sub(r"/{2,}", "/", f"{prefix}/{path}")
    joined = posixpath.normpath(joined)
    if joined == ".":
        joined = ""
    return joined.rstrip("/") or "/"


def operation_path(prefix: str, path: str) -> str:
    """Final document key: both parts in bracket syntax, then joined."""
    return join_and_collapse(colon_to_bracket(prefix), colon_to_bracket(path))


def sanitize_api_prefix(prefix: str) -> str:
    sanitized = NON_ALNUM_RE.sub("_", prefix).strip("_")
    return sanitized or "root"


def default_description(code: str) -> str:
    try:
        return HTTPStatus(int(code)).phrase
    except ValueError:
        return "Default response"


def _schema_is_empty(body: Any) -> bool:
    if not isinstance(body, dict):
        return True
    schema = body.get("schema")
    return not isinstance(schema, dict) or not schema


def clean_default_response(
    operation: Dict[str, Any],
    path: str,
    method: str,
    warnings: Optional[List[str]] = None,
) -> None:
    responses = operation.get("responses")
    if not isinstance(responses, dict) or not responses:
        if warnings is not None:
            warnings.append(f"{method.upper()} {path}: no responses in fragment")
        operation["responses"] = {"default": {"description": default_description("default")}}
        return

    if "default" in responses and any(code != "default" for code in responses):
        del responses["default"]

    for code, response in responses.items():
        if not isinstance(response, dict) or "$ref" in response:
            continue
        content = response.get("content")
        if isinstance(content, dict):
            for media_type in [key for key, body in content.items() if _schema_is_empty(body)]:
                del content[media_type]
        if "content" in response and not response["content"]:
            del response["content"]
        if not response.get("description"):
            response["description"] = default_description(str(code))
