#!/usr/bin/env python3
"""routedocs CLI: discover Hono route groups and merge their OpenAPI fragments."""

from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional, Sequence

from routedocs import (
    ConfigError,
    SourceIndex,
    discover_groups,
    load_docs_config,
    load_tsconfig_paths,
    run_generate,
)
from utils import flush_warnings, progress
from .config import resolve_config_path, resolve_root


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--root", default=".", help="Project root (default: .)")
    common.add_argument(
        "--config",
        default=None,
        help="Config file, relative to --root (default: first of routedocs.json, .routedocs.json, hono-docs.json)",
    )

    parser = argparse.ArgumentParser(description="OpenAPI documents from Hono route declarations")
    subparsers = parser.add_subparsers(dest="command")

    generate_parser = subparsers.add_parser(
        "generate", parents=[common], help="Generate and merge the OpenAPI document"
    )
    generate_parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Run per-group generators on this many threads (merge order is unchanged)",
    )
    subparsers.add_parser(
        "discover", parents=[common], help="Print the normalized route groups as JSON"
    )
    return parser


def run_discover(args: argparse.Namespace, warnings: List[str]) -> None:
    root = resolve_root(args.root)
    config = load_docs_config(resolve_config_path(root, args.config))
    context = load_tsconfig_paths(root, config.ts_config_path, warnings)
    groups = discover_groups(config, SourceIndex(), root, context, warnings)
    print(json.dumps([group.as_dict() for group in groups], ensure_ascii=True, indent=2))


def run_generate_command(args: argparse.Namespace, warnings: List[str]) -> None:
    root = resolve_root(args.root)
    config_path = resolve_config_path(root, args.config)
    progress(f"Using config {config_path}")
    config = load_docs_config(config_path)
    result = run_generate(config, root=root, workers=max(1, args.workers), warnings=warnings)
    print(
        json.dumps(
            {
                "output": result.output_path.as_posix(),
                "groups": len(result.groups),
                "operations": result.operations,
                "warnings": len(result.warnings),
            },
            ensure_ascii=True,
        )
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else sys.argv[1:])
    if not args.command:
        parser.print_help()
        return 1

    warnings: List[str] = []
    try:
        if args.command == "discover":
            run_discover(args, warnings)
        else:
            run_generate_command(args, warnings)
    except ConfigError as exc:
        flush_warnings(warnings)
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError as exc:
        flush_warnings(warnings)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    flush_warnings(warnings)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
