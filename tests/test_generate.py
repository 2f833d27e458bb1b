import io
import json
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from typing import Optional
from unittest.mock import patch

sys.path.append(os.path.join(os.path.dirname(__file__), "../scripts"))

from routedocs import (
    CommandGroupGenerator,
    ConfigError,
    DocsConfig,
    GenerationJob,
    GroupGenerator,
    HandlerAnnotation,
    OperationOverride,
    RouteGroup,
    SourceIndex,
    StaticGroupGenerator,
    build_override_map,
    load_docs_config,
    merge_group,
    run_generate,
)
from cli.main import main


def write_file(root: Path, rel_path: str, content: str) -> None:
    full_path = root / rel_path
    full_path.parent.mkdir(parents=True, exist_ok=True)
    full_path.write_text(content, encoding="utf-8")


INDEX_TS = """import { Hono } from "hono";
import docs from "./routes/docs";
import { userRoutes } from "./routes/users";

const app = new Hono();
app.route("/docs", docs);
app.route("/user", userRoutes);

export default app;
"""

DOCS_TS = """import { Hono } from "hono";

/**
 * @name Documentation
 */
const docs = new Hono()
  /**
   * @summary View API documentation
   * @tags Documentation
   */
  .get("/", (c) => c.html("<html></html>"))
  .get("/open-api", (c) => c.json({}));

export default docs;
"""

USERS_TS = """import { Hono } from "hono";

/** @name Users */
export const userRoutes = new Hono()
  /** @summary Get all users @tags Users */
  .get("/", (c) => c.json([]))
  .get("/u/:id", (c) => c.json({ id: c.req.param("id") }));
"""


def app_config(**extra) -> dict:
    payload = {
        "tsConfigPath": "tsconfig.json",
        "openApi": {"openapi": "3.0.0", "info": {"title": "Basic App API", "version": "1.0.0"}},
        "outputs": {"openApiJson": "openapi/openapi.json"},
        "appPath": "src/index.ts",
    }
    payload.update(extra)
    return payload


def write_app(root: Path) -> None:
    write_file(root, "src/index.ts", INDEX_TS)
    write_file(root, "src/routes/docs.ts", DOCS_TS)
    write_file(root, "src/routes/users.ts", USERS_TS)


class SkippingGenerator(GroupGenerator):
    def __init__(self, inner: GroupGenerator, skip_prefix: str) -> None:
        self.inner = inner
        self.skip_prefix = skip_prefix

    def generate_types(self, job: GenerationJob) -> Optional[Path]:
        return self.inner.generate_types(job)

    def generate_openapi(self, job: GenerationJob) -> Optional[Path]:
        if job.group.prefix == self.skip_prefix:
            return None
        return self.inner.generate_openapi(job)


class TestConfig(unittest.TestCase):
    def test_app_path_and_apis_are_exclusive(self) -> None:
        with self.assertRaises(ConfigError):
            DocsConfig(openapi_json="out.json", app_path="src/index.ts", apis=["src/routes/a.ts"])
        with self.assertRaises(ConfigError):
            DocsConfig(openapi_json="out.json")

    def test_shape_errors_happen_before_io(self) -> None:
        both = app_config(apis=["src/routes/users.ts"])
        neither = app_config()
        del neither["appPath"]
        with patch("pathlib.Path.read_text", side_effect=AssertionError("file read")), patch(
            "pathlib.Path.is_file", side_effect=AssertionError("file probe")
        ):
            with self.assertRaises(ConfigError):
                run_generate(both, root=Path("/nonexistent/project"))
            with self.assertRaises(ConfigError):
                run_generate(neither, root=Path("/nonexistent/project"))

    def test_load_docs_config(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            write_file(
                root,
                "routedocs.json",
                """{
  // comments are allowed
  "openApi": {"info": {"title": "T", "version": "1"}},
  "outputs": {"openApiJson": "out/openapi.json", "workDir": "build/docs"},
  "apis": [
    "src/routes/users.ts",
    {"module": "src/routes/admin.ts", "prefix": "/admin", "overrides": [{"path": "/", "method": "GET", "tag": "Ops, Admin"}]}
  ],
  "overrides": [{"path": "/admin", "method": "post", "summary": "Create admin"}],
  "generator": {"openapiCommand": "node gen.js {snapshot} {output}"}
}
""",
            )
            config = load_docs_config(root / "routedocs.json")
            self.assertIsNone(config.app_path)
            self.assertEqual(config.work_dir, "build/docs")
            self.assertEqual(config.ts_config_path, "tsconfig.json")
            self.assertEqual(config.apis[0], "src/routes/users.ts")
            admin = config.apis[1]
            self.assertEqual((admin.prefix, admin.module_path, admin.name), ("/admin", "src/routes/admin.ts", ""))
            self.assertEqual(admin.overrides[0].method, "get")
            self.assertEqual(admin.overrides[0].tags, ("Ops", "Admin"))
            self.assertEqual(config.overrides[0].summary, "Create admin")
            self.assertEqual(config.openapi_command, ["node", "gen.js", "{snapshot}", "{output}"])
            self.assertEqual(config.header(), {"info": {"title": "T", "version": "1"}, "openapi": "3.0.0"})

    def test_malformed_config_file(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            write_file(root, "routedocs.json", "{ nope")
            with self.assertRaises(ConfigError):
                load_docs_config(root / "routedocs.json")
            write_file(root, "routedocs.json", '{"appPath": "src/index.ts"}')
            with self.assertRaises(ConfigError):
                load_docs_config(root / "routedocs.json")


class TestMerge(unittest.TestCase):
    def test_priority_override_beats_annotation_beats_fragment(self) -> None:
        group = RouteGroup("/user", "src/routes/users.ts", "Users")
        fragment = {
            "paths": {
                "/u/{id}": {
                    "get": {
                        "summary": "from fragment",
                        "description": "fragment description",
                        "tags": ["Fragment"],
                        "responses": {"200": {"description": "OK"}},
                    }
                }
            }
        }
        key = ("get", "/user/u/{id}")
        handlers = {key: HandlerAnnotation(summary="from annotation", description="", tags=[])}
        overrides = build_override_map(
            RouteGroup("/user", "src/routes/users.ts", "Users", (OperationOverride("/u/:id", "GET", description="from override"),))
        )
        self.assertIn(key, overrides)
        document = {"tags": [], "paths": {}}
        warnings = []
        self.assertEqual(merge_group(document, group, fragment, handlers, overrides, warnings), 1)
        operation = document["paths"]["/user/u/{id}"]["get"]
        self.assertEqual(operation["summary"], "from annotation")
        self.assertEqual(operation["description"], "from override")
        self.assertEqual(operation["tags"], ["Fragment", "Users"])

    def test_top_level_overrides_use_final_paths(self) -> None:
        group = RouteGroup("/user", "src/routes/users.ts", "Users")
        overrides = build_override_map(group, (OperationOverride("/user/u/:id", "get", tags=("Public",)),))
        self.assertEqual(list(overrides), [("get", "/user/u/{id}")])

    def test_parameterized_prefix_keys_match(self) -> None:
        group = RouteGroup("/orgs/:orgId", "src/routes/orgs.ts", "Orgs", (OperationOverride("/:id", "get", summary="Org"),))
        key = ("get", "/orgs/{orgId}/{id}")
        self.assertEqual(list(build_override_map(group)), [key])
        fragment = {"paths": {"/:id": {"get": {"responses": {"200": {"description": "OK"}}}}}}
        document = {"tags": [], "paths": {}}
        merge_group(document, group, fragment, {}, build_override_map(group), [])
        self.assertEqual(document["paths"]["/orgs/{orgId}/{id}"]["get"]["summary"], "Org")


class TestGenerate(unittest.TestCase):
    def test_end_to_end_two_groups(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            write_app(root)
            result = run_generate(app_config(), root=root)
            output = root / "openapi/openapi.json"
            self.assertEqual(result.output_path, output.resolve())
            text = output.read_text(encoding="utf-8")
            self.assertTrue(text.endswith("}\n"))
            document = json.loads(text)

            self.assertEqual(list(document), ["openapi", "info", "tags", "paths"])
            self.assertEqual(document["tags"], [{"name": "Documentation"}, {"name": "Users"}])
            self.assertEqual(list(document["paths"]), ["/docs", "/docs/open-api", "/user", "/user/u/{id}"])

            users = document["paths"]["/user"]["get"]
            self.assertEqual(users["summary"], "Get all users")
            self.assertEqual(users["tags"], ["Users"])
            self.assertEqual(users["responses"], {"200": {"description": "OK"}})

            user = document["paths"]["/user/u/{id}"]["get"]
            self.assertEqual(user["tags"], ["Users"])
            self.assertNotIn("summary", user)
            self.assertEqual(user["parameters"][0]["name"], "id")
            self.assertTrue(user["parameters"][0]["required"])

            docs = document["paths"]["/docs"]["get"]
            self.assertEqual(docs["summary"], "View API documentation")
            self.assertEqual(docs["tags"], ["Documentation"])
            self.assertIn("text/html", docs["responses"]["200"]["content"])
            self.assertEqual(document["paths"]["/docs/open-api"]["get"]["tags"], ["Documentation"])
            self.assertEqual(result.operations, 4)

    def test_rerun_is_byte_identical(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            write_app(root)
            output = root / "openapi/openapi.json"
            run_generate(app_config(), root=root)
            first = output.read_bytes()
            run_generate(app_config(), root=root)
            self.assertEqual(output.read_bytes(), first)
            run_generate(app_config(), root=root, workers=4)
            self.assertEqual(output.read_bytes(), first)

    def test_missing_fragment_keeps_group_tag(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            write_app(root)
            warnings = []
            index = SourceIndex()
            generator = SkippingGenerator(StaticGroupGenerator(index, warnings), "/docs")
            result = run_generate(app_config(), root=root, generator=generator, warnings=warnings, index=index)
            self.assertEqual(result.document["tags"], [{"name": "Documentation"}, {"name": "Users"}])
            self.assertEqual(list(result.document["paths"]), ["/user", "/user/u/{id}"])
            self.assertTrue(any("Missing OpenAPI fragment" in message for message in warnings))

    def test_later_group_overwrites_same_operation(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            write_file(root, "src/routes/a.ts", 'export const a = new Hono()\n  .get("/", (c) => c.json([]));\n')
            write_file(root, "src/routes/b.ts", 'export const b = new Hono()\n  .get("/", (c) => c.json([]));\n')
            config = {
                "outputs": {"openApiJson": "openapi.json"},
                "apis": [
                    {"module": "src/routes/a.ts", "prefix": "/same", "name": "A"},
                    {"module": "src/routes/b.ts", "prefix": "/same", "name": "B"},
                ],
            }
            result = run_generate(config, root=root)
            self.assertEqual(result.document["tags"], [{"name": "A"}, {"name": "B"}])
            self.assertEqual(result.document["paths"]["/same"]["get"]["tags"], ["B"])
            self.assertTrue(any("replaces" in message for message in result.warnings))
            self.assertTrue((root / ".routedocs/openapi/same.json").exists())
            self.assertTrue((root / ".routedocs/openapi/same_2.json").exists())

    def test_parameterized_mount_prefix(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            write_file(
                root,
                "src/index.ts",
                'import { Hono } from "hono";\nimport { members } from "./routes/members";\n\n'
                'const app = new Hono();\napp.route("/orgs/:orgId/members", members);\n',
            )
            write_file(
                root,
                "src/routes/members.ts",
                'export const members = new Hono()\n  /** @summary Get member */\n  .get("/:id", (c) => c.json({}));\n',
            )
            result = run_generate(app_config(), root=root)
            self.assertEqual(list(result.document["paths"]), ["/orgs/{orgId}/members/{id}"])
            operation = result.document["paths"]["/orgs/{orgId}/members/{id}"]["get"]
            self.assertEqual(operation["summary"], "Get member")
            self.assertEqual([param["name"] for param in operation["parameters"]], ["orgId", "id"])
            self.assertTrue(all(param["required"] for param in operation["parameters"]))

    def test_configured_overrides(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            write_file(root, "src/routes/users.ts", USERS_TS)
            config = {
                "outputs": {"openApiJson": "openapi.json"},
                "apis": [
                    {
                        "module": "src/routes/users.ts",
                        "prefix": "/user",
                        "overrides": [{"path": "/u/:id", "method": "GET", "summary": "Fetch one"}],
                    }
                ],
                "overrides": [{"path": "/user", "method": "get", "tags": ["Public"]}],
            }
            result = run_generate(config, root=root)
            paths = result.document["paths"]
            self.assertEqual(paths["/user/u/{id}"]["get"]["summary"], "Fetch one")
            self.assertEqual(paths["/user"]["get"]["summary"], "Get all users")
            self.assertEqual(paths["/user"]["get"]["tags"], ["Public", "Users"])
            self.assertEqual(result.document["tags"], [{"name": "Users"}])

    def test_command_generator(self) -> None:
        script = (
            "import json, sys\n"
            "json.dump({'paths': {'/ping': {'get': {'summary': 'from tool'}}}}, open(sys.argv[1], 'w'))\n"
        )
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            write_app(root)
            config = app_config(generator={"openapiCommand": [sys.executable, "-c", script, "{output}"]})
            result = run_generate(config, root=root)
            paths = result.document["paths"]
            self.assertEqual(list(paths), ["/docs/ping", "/user/ping"])
            self.assertEqual(paths["/user/ping"]["get"]["summary"], "from tool")
            self.assertEqual(paths["/user/ping"]["get"]["tags"], ["Users"])
            self.assertIn("default", paths["/user/ping"]["get"]["responses"])

    def test_command_generator_missing_tool(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir).resolve()
            write_app(root)
            warnings = []
            generator = CommandGroupGenerator(
                SourceIndex(), warnings, types_command=["routedocs-missing-tool-for-tests"]
            )
            result = run_generate(app_config(), root=root, generator=generator, warnings=warnings)
            self.assertEqual(result.document["paths"], {})
            self.assertEqual(len(result.document["tags"]), 2)
            self.assertIn("Missing tool: routedocs-missing-tool-for-tests", warnings)


class TestCli(unittest.TestCase):
    def test_generate_and_discover(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            write_app(root)
            write_file(root, "routedocs.json", json.dumps(app_config()))

            buffer = io.StringIO()
            with redirect_stdout(buffer):
                self.assertEqual(main(["discover", "--root", str(root)]), 0)
            groups = json.loads(buffer.getvalue())
            self.assertEqual(
                [(group["prefix"], group["name"]) for group in groups],
                [("/docs", "Documentation"), ("/user", "Users")],
            )

            buffer = io.StringIO()
            with redirect_stdout(buffer):
                self.assertEqual(main(["generate", "--root", str(root), "--workers", "2"]), 0)
            summary = json.loads(buffer.getvalue())
            self.assertEqual(summary["groups"], 2)
            self.assertTrue((root / "openapi/openapi.json").exists())

    def test_config_errors_exit_2(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            write_file(root, "hono-docs.json", json.dumps(app_config(apis=["src/routes/users.ts"])))
            self.assertEqual(main(["generate", "--root", str(root)]), 2)
            self.assertEqual(main(["generate", "--root", str(root), "--config", "nope.json"]), 2)


if __name__ == "__main__":
    unittest.main()
