from __future__ import annotations

import shlex
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Set


@dataclass
class ToolState:
    missing: Set[str] = field(default_factory=set)
    used: Set[str] = field(default_factory=set)


def progress(message: str, done: bool = False) -> None:
    """Print a progress message to stderr (doesn't interfere with stdout output)."""
    if done:
        print(f"  [done] {message}", file=sys.stderr)
    else:
        print(f"  [....] {message}", file=sys.stderr)


def warn(message: str) -> None:
    print(f"  [warn] {message}", file=sys.stderr)


def flush_warnings(warnings: Sequence[str]) -> None:
    for message in warnings:
        warn(message)


def run_cmd_logged(
    cmd: Sequence[str],
    *,
    cwd: Optional[Path],
    log_path: Path,
    warnings: List[str],
    tools: ToolState,
) -> Optional[int]:
    """Run ``cmd`` with stdout/stderr going to ``log_path``.

    Returns the exit code, or None when the tool is not installed.
    """
    tool = cmd[0]
    if tool in tools.missing:
        return None
    tools.used.add(tool)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with log_path.open("w", encoding="utf-8") as log_file:
            log_file.write(f"$ {shlex.join(cmd)}\n")
            log_file.flush()
            proc = subprocess.run(
                list(cmd),
                cwd=str(cwd) if cwd else None,
                check=False,
                text=True,
                stdout=log_file,
                stderr=log_file,
            )
        return proc.returncode
    except FileNotFoundError:
        tools.missing.add(tool)
        warnings.append(f"Missing tool: {tool}")
        return None
