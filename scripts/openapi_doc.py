from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from _fs import read_json, write_json


def new_document(header: Dict[str, Any]) -> Dict[str, Any]:
    """Merged document skeleton: header fields first, then tags and paths."""
    document: Dict[str, Any] = dict(header)
    document["tags"] = []
    document["paths"] = {}
    return document


def add_tag(document: Dict[str, Any], name: str) -> None:
    document["tags"].append({"name": name})


def new_fragment(title: str, version: str = "0.0.0") -> Dict[str, Any]:
    return {
        "openapi": "3.0.0",
        "info": {"title": title, "version": version},
        "paths": {},
    }


def load_fragment(path: Path, warnings: List[str]) -> Optional[Dict[str, Any]]:
    if not path.exists():
        return None
    try:
        payload = read_json(path)
    except (OSError, json.JSONDecodeError) as exc:
        warnings.append(f"Failed to parse fragment {path.name}: {exc}")
        return None
    if not isinstance(payload, dict):
        warnings.append(f"Invalid fragment {path.name}: expected a JSON object")
        return None
    if not isinstance(payload.get("paths"), dict):
        payload["paths"] = {}
    return payload


def save_document(path: Path, document: Dict[str, Any]) -> Path:
    return write_json(path, document)
