from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class OperationOverride:
    path: str
    method: str
    summary: str = ""
    description: str = ""
    tags: Tuple[str, ...] = ()


@dataclass(frozen=True)
class RouteGroup:
    """A set of routes sharing one URL prefix, backed by one source module.

    ``module_path`` is project-root-relative. ``name`` stays empty until the
    group normalizer fills it in.
    """

    prefix: str
    module_path: str
    name: str = ""
    overrides: Tuple[OperationOverride, ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "prefix": self.prefix,
            "module": self.module_path,
            "name": self.name,
        }
        if self.overrides:
            payload["overrides"] = [
                {
                    "path": item.path,
                    "method": item.method,
                    "summary": item.summary,
                    "description": item.description,
                    "tags": list(item.tags),
                }
                for item in self.overrides
            ]
        return payload


@dataclass
class RouteAnnotation:
    prefix: str = ""
    name: str = ""


@dataclass
class HandlerAnnotation:
    summary: str = ""
    description: str = ""
    tags: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.summary or self.description or self.tags)

    def layered(self, other: "HandlerAnnotation") -> "HandlerAnnotation":
        """Return a copy with ``other``'s non-empty fields on top."""
        return HandlerAnnotation(
            summary=other.summary or self.summary,
            description=other.description or self.description,
            tags=list(other.tags) if other.tags else list(self.tags),
        )


@dataclass(frozen=True)
class ResolutionContext:
    root_path: Path
    alias_table: Optional[Dict[str, List[str]]] = None
    base_dir: Optional[Path] = None


@dataclass(frozen=True)
class Resolved:
    path: Path
    strategy: str


@dataclass(frozen=True)
class Unresolved:
    specifier: str
    tried: Tuple[str, ...] = ()


Resolution = Union[Resolved, Unresolved]
