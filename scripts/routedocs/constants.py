from __future__ import annotations

import re

SOURCE_EXTS = (".ts", ".tsx")
SOURCE_ROOT = "src"
INDEX_BASENAME = "index"

MOUNT_METHOD = "route"
ROUTE_METHODS = ("get", "post", "put", "patch", "delete", "options", "head")

# `new Hono()`, `new Hono<{ Bindings: Env }>()`, `new OpenAPIHono()`
BUILDER_FACTORY_RE = re.compile(r"\bnew\s+[A-Za-z_$][\w$]*Hono\b|\bnew\s+Hono\b")

ROUTE_MARKERS = ("prefix", "name")
HANDLER_MARKERS = ("summary", "description", "tags")

CONFIG_FILES = ("routedocs.json", ".routedocs.json", "hono-docs.json")
DEFAULT_TSCONFIG = "tsconfig.json"
DEFAULT_WORK_DIR = ".routedocs"
DEFAULT_OPENAPI_VERSION = "3.0.0"

TYPES_SUBDIR = "types"
OPENAPI_SUBDIR = "openapi"

RESPONSE_HINTS = (
    ("c.json(", "application/json"),
    ("c.text(", "text/plain"),
    ("c.html(", "text/html"),
    ("c.body(", "application/octet-stream"),
)
