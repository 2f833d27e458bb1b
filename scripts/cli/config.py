from __future__ import annotations

from pathlib import Path
from typing import Optional

from routedocs import CONFIG_FILES, ConfigError


def resolve_root(root_arg: Optional[str]) -> Path:
    root = Path(root_arg or ".").resolve()
    if not root.is_dir():
        raise ConfigError(f"Project root is not a directory: {root}")
    return root


def resolve_config_path(root: Path, config_arg: Optional[str]) -> Path:
    if config_arg:
        config_path = Path(config_arg)
        if not config_path.is_absolute():
            config_path = root / config_path
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
        return config_path
    for filename in CONFIG_FILES:
        candidate = root / filename
        if candidate.is_file():
            return candidate
    raise ConfigError(f"No config file found in {root} (looked for {', '.join(CONFIG_FILES)})")
