"""Filesystem helpers.

Rules:
- generated artifacts are written atomically (temp file in the target
  directory, then replace), so readers never see a half-written file
- JSON is rendered the same way everywhere: 2-space indent, trailing newline
"""
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def render_json(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2) + "\n"


def write_text(path: Path, text: str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    return path


def write_json(path: Path, obj: Any) -> Path:
    return write_text(path, render_json(obj))


def read_json(path: Path) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))
