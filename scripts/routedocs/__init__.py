from __future__ import annotations

from .cache import SourceIndex, hash_file, index_key
from .constants import (
    BUILDER_FACTORY_RE,
    CONFIG_FILES,
    DEFAULT_OPENAPI_VERSION,
    DEFAULT_TSCONFIG,
    DEFAULT_WORK_DIR,
    MOUNT_METHOD,
    ROUTE_METHODS,
)
from .docs import (
    DocSource,
    LeadingTextDocSource,
    StructuredDocSource,
    annotation_from_jsdoc,
    call_site_node,
    doc_source_for,
    extract_jsdoc_from_handler,
    extract_route_metadata,
    is_builder_declaration,
    last_doc_block,
)
from .formatting import (
    clean_default_response,
    colon_to_bracket,
    join_and_collapse,
    operation_path,
    path_parameters,
    sanitize_api_prefix,
)
from .groups import (
    generate_name_from_filename,
    generate_prefix_from_filename,
    normalize_api_group,
    normalize_prefix,
)
from .imports import resolve_alias_candidates, resolve_import
from .models import (
    HandlerAnnotation,
    OperationOverride,
    Resolution,
    ResolutionContext,
    Resolved,
    RouteAnnotation,
    RouteGroup,
    Unresolved,
)
from .repo_config import (
    ConfigError,
    DocsConfig,
    load_docs_config,
    load_tsconfig_paths,
    strip_json_comments,
)
from .routes import (
    chained_calls,
    collect_route_calls,
    discover_handlers_from_route,
    discover_routes_from_app,
    extract_mount_calls,
    normalize_route_path,
)
from .syntax import SourceFile, parse_jsdoc, parse_source, tokenize


from .generators import (
    CommandGroupGenerator,
    GenerationJob,
    GroupGenerator,
    StaticGroupGenerator,
)
from .core import (
    GenerateResult,
    build_override_map,
    discover_groups,
    merge_group,
    run_generate,
)
