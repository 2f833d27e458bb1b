from __future__ import annotations

import hashlib
import threading
from pathlib import Path
from typing import Dict, Optional

from .syntax import SourceFile, parse_source


def hash_file(path: Path) -> str:
    digest = hashlib.sha1()
    with path.open("rb") as handle:
        while True:
            chunk = handle.read(8192)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def index_key(path: Path) -> str:
    return Path(path).resolve().as_posix()


class SourceIndex:
    """Parsed source files for one discovery run, keyed by absolute path.

    Entries are parsed on first access and never invalidated; create a new
    index for every run.
    """

    def __init__(self) -> None:
        self._files: Dict[str, SourceFile] = {}
        self._lock = threading.Lock()

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)):
            return False
        return index_key(Path(path)) in self._files

    def __len__(self) -> int:
        return len(self._files)

    def load(self, path: Path) -> SourceFile:
        key = index_key(path)
        with self._lock:
            cached = self._files.get(key)
            if cached is not None:
                return cached
            full_path = Path(key)
            if not full_path.is_file():
                raise FileNotFoundError(f"Could not load source file: {full_path}")
            text = full_path.read_text(encoding="utf-8", errors="ignore")
            source = parse_source(full_path, text)
            self._files[key] = source
            return source

    def get(self, path: Path) -> Optional[SourceFile]:
        try:
            return self.load(path)
        except OSError:
            return None
