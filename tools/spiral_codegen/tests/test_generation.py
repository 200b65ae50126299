from __future__ import annotations

import argparse
import contextlib
import io
import json
import shutil
import tempfile
import unittest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
import spiral_codegen  # noqa: E402
from spiral_codegen import cli  # noqa: E402


FIXTURE_ROOT = Path(__file__).resolve().parent / "fixtures" / "bookmark_workspace"
PORT_PATH = Path("apps/front/src/ports/gen/bookmark.port.gen.ts")
SERVICE_PATH = Path("apps/front/src/services/gen/bookmark.service.gen.ts")
CLIENT_PATH = Path("apps/android/src/main/kotlin/com/example/bookmark/BookmarkClient.kt")
GRADLE_PATH = Path("apps/android/build.gradle.kts")
INDEX_PATH = Path("apps/front/src/index.ts")


def generate_args(workspace: Path, **overrides) -> argparse.Namespace:
    values = {
        "workspace": str(workspace),
        "config": None,
        "check": False,
        "dry_run": False,
        "print_diff": False,
        "jobs": 1,
        "report_json": None,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


def run_quietly(func, *args):
    with contextlib.redirect_stdout(io.StringIO()):
        return func(*args)


class GenerationTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.workspace = Path(self.temp_dir.name) / "workspace"
        shutil.copytree(FIXTURE_ROOT, self.workspace)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _read(self, relative: Path) -> str:
        return (self.workspace / relative).read_text(encoding="utf-8")

    def _write_config(self, config: dict) -> None:
        (self.workspace / "loom.json").write_text(json.dumps(config, indent=2), encoding="utf-8")

    def _snapshot(self) -> dict[str, bytes]:
        return {
            path.relative_to(self.workspace).as_posix(): path.read_bytes()
            for path in sorted(self.workspace.rglob("*"))
            if path.is_file()
        }

    def test_bookmark_front_port(self) -> None:
        exit_code = run_quietly(spiral_codegen.command_generate, generate_args(self.workspace))
        self.assertEqual(exit_code, 0)

        port = self._read(PORT_PATH)
        self.assertTrue(port.startswith("// <auto-generated />\n"))
        self.assertIn("export interface Bookmark {\n  id: number;\n  url: string;\n  title: string;\n  notes?: string;\n}", port)
        self.assertIn("export interface BookmarkPort {", port)
        self.assertIn("  /** Store a new bookmark. */", port)
        self.assertIn("  create(url: string, title: string, notes?: string): Promise<Bookmark>;", port)
        self.assertIn("  list(): Promise<Bookmark[]>;", port)
        self.assertIn("  delete(id: number): Promise<boolean>;", port)
        # declaration order is kept
        self.assertLess(port.index("create("), port.index("list("))
        self.assertLess(port.index("list("), port.index("delete("))

        service = self._read(SERVICE_PATH)
        self.assertIn("import type { BookmarkPort, Bookmark } from '../../ports/gen/bookmark.port.gen';", service)
        self.assertIn("  async delete(id: number): Promise<boolean> {\n    return this.port.delete(id);\n  }", service)

    def test_bookmark_mobile_binding(self) -> None:
        run_quietly(spiral_codegen.command_generate, generate_args(self.workspace))

        client = self._read(CLIENT_PATH)
        self.assertIn("package com.example.bookmark\n", client)
        self.assertIn("class BookmarkClient {", client)
        self.assertIn('System.loadLibrary("bookmark_core")', client)
        self.assertIn("    fun delete(id: Long): Boolean = nativeDelete(id)", client)
        self.assertIn("    private external fun nativeDelete(id: Long): Boolean", client)
        self.assertIn(
            "    fun create(url: String, title: String, notes: String? = null): String = nativeCreate(url, title, notes)",
            client,
        )
        self.assertIn("    fun list(): String = nativeList()", client)

        gradle = self._read(GRADLE_PATH)
        self.assertIn("// LOOM:GRADLE:RUST-BUILD-BOOKMARK-CORE", gradle)
        self.assertIn('workingDir = file("../../crates/core")', gradle)
        self.assertIn("export * from './ports/gen/bookmark.port.gen';", self._read(INDEX_PATH))

    def test_generation_is_idempotent(self) -> None:
        run_quietly(spiral_codegen.command_generate, generate_args(self.workspace))
        first = self._snapshot()
        report_path = Path(self.temp_dir.name) / "report.json"

        exit_code = run_quietly(spiral_codegen.command_generate, generate_args(self.workspace, report_json=str(report_path)))

        self.assertEqual(exit_code, 0)
        self.assertEqual(self._snapshot(), first)
        self.assertEqual(self._read(GRADLE_PATH).count("// LOOM:GRADLE:RUST-BUILD-BOOKMARK-CORE"), 1)
        report = json.loads(report_path.read_text(encoding="utf-8"))
        self.assertFalse(report["has_drift"])
        self.assertEqual({item["status"] for item in report["artifacts"]}, {"unchanged"})
        self.assertEqual({item["status"] for item in report["hookups"]}, {"unchanged"})
        self.assertEqual([task["treadle"] for task in report["tasks"]], ["front-port", "mobile-binding"])

    def test_check_mode_detects_drift(self) -> None:
        run_quietly(spiral_codegen.command_generate, generate_args(self.workspace))
        port = self.workspace / PORT_PATH
        port.write_text("// edited by hand\n", encoding="utf-8")

        exit_code = run_quietly(spiral_codegen.command_generate, generate_args(self.workspace, check=True))

        self.assertEqual(exit_code, 1)
        self.assertEqual(port.read_text(encoding="utf-8"), "// edited by hand\n")

    def test_dry_run_writes_nothing(self) -> None:
        before = self._snapshot()
        exit_code = run_quietly(spiral_codegen.command_generate, generate_args(self.workspace, dry_run=True))
        self.assertEqual(exit_code, 0)
        self.assertEqual(self._snapshot(), before)

    def test_parallel_rendering_matches_sequential(self) -> None:
        run_quietly(spiral_codegen.command_generate, generate_args(self.workspace))
        sequential = self._snapshot()
        shutil.rmtree(self.workspace / "apps")

        run_quietly(spiral_codegen.command_generate, generate_args(self.workspace, jobs=4))

        self.assertEqual(self._snapshot(), sequential)

    def test_unmapped_type_aborts_without_partial_files(self) -> None:
        config = json.loads(self._read(Path("loom.json")))
        config["types"] = [
            {"abstract_type": "Money", "language": "typescript", "target_type": "string", "strategy": "string"}
        ]
        self._write_config(config)
        (self.workspace / "loom" / "wallet.json").write_text(
            json.dumps(
                {
                    "management": "WalletMgmt",
                    "reach": "Public",
                    "methods": [{"name": "balance", "crud": "read", "returns": "Money"}],
                }
            ),
            encoding="utf-8",
        )

        with self.assertRaises(spiral_codegen.UnmappedTypeError) as ctx:
            run_quietly(spiral_codegen.command_generate, generate_args(self.workspace))

        self.assertEqual(ctx.exception.abstract_type, "Money")
        self.assertEqual(ctx.exception.language, "kotlin")
        self.assertIn("WalletMgmt.balance", str(ctx.exception))
        self.assertFalse((self.workspace / "apps").exists())

    def test_hookup_conflict_aborts_before_any_artifact_is_written(self) -> None:
        gradle = self.workspace / GRADLE_PATH
        gradle.parent.mkdir(parents=True)
        seeded = "// LOOM:GRADLE:RUST-BUILD-BOOKMARK-CORE\nold\n// /LOOM:GRADLE:RUST-BUILD-BOOKMARK-CORE\n"
        gradle.write_text(seeded, encoding="utf-8")
        before = self._snapshot()

        with self.assertRaises(spiral_codegen.HookupConflictError) as ctx:
            run_quietly(spiral_codegen.command_generate, generate_args(self.workspace))

        self.assertIn("RUST-BUILD-BOOKMARK-CORE", str(ctx.exception))
        self.assertEqual(self._snapshot(), before)
        self.assertFalse((self.workspace / "apps" / "front").exists())
        self.assertEqual(sorted(p.name for p in (self.workspace / "apps" / "android").iterdir()), ["build.gradle.kts"])

    def test_every_builtin_type_renders_through_every_default_treadle(self) -> None:
        config = json.loads(self._read(Path("loom.json")))
        config["rings"]["ipc"] = {"wraps": "android", "spiraler": "ipc", "package_path": "apps/android"}
        config["rings"]["jni"] = {"wraps": "android", "spiraler": "native", "package_path": "crates/jni"}
        config["rings"]["desktop"] = {"wraps": "core", "spiraler": "desktop", "package_path": "apps/desktop"}
        self._write_config(config)

        builtin = [name for name in spiral_codegen.BUILTIN_TYPE_MAP if name != "void"] + ["Clip", "Bookmark"]
        methods = []
        for abstract_type in builtin:
            for suffix, declared in (("one", abstract_type), ("many", f"{abstract_type}[]")):
                methods.append(
                    {
                        "name": f"echo_{abstract_type.lower()}_{suffix}",
                        "crud": "read",
                        "params": [
                            {"name": "value", "type": declared},
                            {"name": "fallback", "type": declared, "optional": True},
                        ],
                        "returns": declared,
                    }
                )
        methods.append({"name": "reset", "crud": "none"})
        methods.append(
            {
                "name": "thumb",
                "crud": "read",
                "params": [{"name": "data", "type": "bytes"}, {"name": "max_size", "type": "int", "optional": True}],
                "returns": "bytes",
            }
        )
        clip = {"fields": [{"name": "source", "type": "Bookmark"}, {"name": "frames", "type": "bytes[]"}]}
        (self.workspace / "loom" / "media.json").write_text(
            json.dumps({"management": "MediaMgmt", "reach": "Public", "types": {"Clip": clip}, "methods": methods}),
            encoding="utf-8",
        )
        report_path = Path(self.temp_dir.name) / "report.json"

        exit_code = run_quietly(spiral_codegen.command_generate, generate_args(self.workspace, report_json=str(report_path)))

        self.assertEqual(exit_code, 0)
        report = json.loads(report_path.read_text(encoding="utf-8"))
        self.assertEqual(report["skipped"], [])
        media_treadles = {task["treadle"] for task in report["tasks"] if task["management"] == "MediaMgmt"}
        self.assertEqual(
            media_treadles,
            {"front-port", "mobile-binding", "native-binding", "ipc-descriptor", "desktop-direct"},
        )

        glue = self._read(Path("crates/jni/src/media_jni.rs"))
        self.assertNotIn("jbyteArray", glue)
        self.assertIn("    data: JString<'local>,\n    max_size: JString<'local>,\n) -> jstring {", glue)
        self.assertIn(
            'let data: Vec<u8> = serde_json::from_str(&String::from(env.get_string(&data).expect("Failed to get data")))',
            glue,
        )
        self.assertIn("let max_size: Option<i64> = if max_size.is_null() { None } else {", glue)
        self.assertIn("Ok(value) => env.new_string(serde_json::to_string(&value)", glue)

        client = self._read(Path("apps/android/src/main/kotlin/com/example/bookmark/MediaClient.kt"))
        self.assertIn(
            "    fun thumb(data: String, maxSize: Long? = null): String = nativeThumb(data, maxSize?.toString())",
            client,
        )
        self.assertIn("    private external fun nativeThumb(data: String, maxSize: String?): String", client)
        self.assertNotIn("List<", client)
        self.assertNotIn("ByteArray", client)

        aidl = self._read(Path("apps/android/src/main/aidl/com/example/bookmark/IMediaService.aidl"))
        self.assertIn("    String thumb(String data, long maxSize);", aidl)

        desktop = self._read(Path("apps/desktop/src/media_commands.rs"))
        self.assertIn("use bookmark_core::media as core;", desktop)
        self.assertIn(
            "pub fn media_thumb(data: Vec<u8>, max_size: Option<i64>) -> Result<Vec<u8>, String> {\n"
            "    core::thumb(data, max_size).map_err(|err| err.to_string())\n}",
            desktop,
        )
        self.assertIn("pub fn media_reset() -> Result<(), String> {", desktop)
        self.assertIn("pub mod media_commands;", self._read(Path("apps/desktop/src/lib.rs")))
        self.assertIn("pub mod bookmark_commands;", self._read(Path("apps/desktop/src/lib.rs")))

        port = self._read(Path("apps/front/src/ports/gen/media.port.gen.ts"))
        self.assertIn("import type { Bookmark } from './bookmark.port.gen';", port)
        self.assertIn("  source: Bookmark;\n  frames: Uint8Array[];", port)
        self.assertNotIn("export interface Bookmark ", port)
        service = self._read(Path("apps/front/src/services/gen/media.service.gen.ts"))
        self.assertIn("import type { Bookmark } from '../../ports/gen/bookmark.port.gen';", service)

    def test_output_collision_is_reported(self) -> None:
        config = json.loads(self._read(Path("loom.json")))
        config["rings"]["android"]["package_path"] = "apps/front"
        self._write_config(config)
        registry = [
            spiral_codegen.define_treadle(
                "front-notes",
                matches=[("FrontDomainSpiraler", "RustCore")],
                data_shaper=spiral_codegen.shape_front,
                outputs=[spiral_codegen.OutputSpec("front/port.ts", "gen/{entity_kebab}.ts", "typescript")],
            ),
            spiral_codegen.define_treadle(
                "mobile-notes",
                matches=[("MobileBindingSpiraler", "FrontDomainSpiraler")],
                data_shaper=spiral_codegen.shape_front,
                outputs=[spiral_codegen.OutputSpec("front/port.ts", "gen/{entity_kebab}.ts", "typescript")],
            ),
        ]

        with self.assertRaises(spiral_codegen.OutputCollisionError) as ctx:
            spiral_codegen.run_generation(
                workspace_root=self.workspace.resolve(),
                config=config,
                dry_run=False,
                check=False,
                registry=registry,
            )

        self.assertIn("apps/front/gen/bookmark.ts", str(ctx.exception))
        self.assertIn("front-notes/BookmarkMgmt", str(ctx.exception))
        self.assertIn("mobile-notes/BookmarkMgmt", str(ctx.exception))
        self.assertFalse((self.workspace / "apps").exists())

    def test_filter_and_pipeline_keep_declaration_order(self) -> None:
        config = json.loads(self._read(Path("loom.json")))
        workspace = spiral_codegen.load_workspace(self.workspace.resolve(), config)
        treadle = spiral_codegen.define_treadle(
            "ordered",
            matches=[("FrontDomainSpiraler", "RustCore")],
            data_shaper=spiral_codegen.shape_front,
            method_filter=spiral_codegen.crud_operation_filter(["create", "delete"]),
            pipeline=[
                spiral_codegen.tag_crud_intent,
                spiral_codegen.rename({"delete": "remove"}),
                spiral_codegen.inject_default_param("requestId", "string", ["delete"]),
                spiral_codegen.add_management_prefix,
            ],
            outputs=[spiral_codegen.OutputSpec("front/port.ts", "gen/{entity_kebab}.ts", "typescript")],
        )
        spiral = workspace.spirals[0]
        context = spiral_codegen.TreadleContext(
            workspace_root=workspace.root,
            graph=workspace.graph,
            spiral=spiral,
            current=workspace.graph.find("front"),
            previous=workspace.graph.find("core"),
            types=workspace.types,
        )

        result = spiral_codegen.execute_treadle(treadle, context)

        content = result.artifacts[0].content
        self.assertIn("  bookmarkCreate(url: string, title: string, notes?: string): Promise<Bookmark>;", content)
        self.assertIn("  bookmarkRemove(id: number, requestId?: string): Promise<boolean>;", content)
        self.assertNotIn("list(", content)
        self.assertLess(content.index("bookmarkCreate("), content.index("bookmarkRemove("))

    def test_reordering_pipeline_step_is_rejected(self) -> None:
        def newest_first(methods):
            return list(reversed(methods))

        config = json.loads(self._read(Path("loom.json")))
        registry = [
            spiral_codegen.define_treadle(
                "reordering",
                matches=[("FrontDomainSpiraler", "RustCore")],
                pipeline=[newest_first],
                outputs=[spiral_codegen.OutputSpec("front/port.ts", "gen/{entity_kebab}.ts", "typescript")],
            )
        ]

        with self.assertRaises(spiral_codegen.ValidationError) as ctx:
            spiral_codegen.run_generation(
                workspace_root=self.workspace.resolve(),
                config=config,
                dry_run=False,
                check=False,
                registry=registry,
            )
        self.assertIn("newest_first", str(ctx.exception))

    def test_native_and_ipc_layers(self) -> None:
        config = json.loads(self._read(Path("loom.json")))
        config["rings"]["ipc"] = {"wraps": "android", "spiraler": "ipc", "package_path": "apps/android"}
        config["rings"]["jni"] = {"wraps": "android", "spiraler": "native", "package_path": "crates/jni"}
        self._write_config(config)

        exit_code = run_quietly(spiral_codegen.command_generate, generate_args(self.workspace))

        self.assertEqual(exit_code, 0)
        aidl = self._read(Path("apps/android/src/main/aidl/com/example/bookmark/IBookmarkService.aidl"))
        self.assertIn("package com.example.bookmark;", aidl)
        self.assertIn("    boolean delete(long id);", aidl)
        glue = self._read(Path("crates/jni/src/bookmark_jni.rs"))
        self.assertIn("pub extern \"system\" fn Java_com_example_bookmark_BookmarkClient_nativeDelete<'local>(", glue)
        self.assertIn("    id: jlong,", glue)
        self.assertIn(") -> jboolean {", glue)
        self.assertIn("            0\n", glue)
        self.assertIn('let url: String = env.get_string(&url).expect("Failed to get url").into();', glue)
        self.assertIn("pub mod bookmark_jni;", self._read(Path("crates/jni/src/lib.rs")))


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.workspace = Path(self.temp_dir.name) / "workspace"
        shutil.copytree(FIXTURE_ROOT, self.workspace)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_generate_exit_codes(self) -> None:
        self.assertEqual(run_quietly(cli.main, ["generate", "--workspace", str(self.workspace)]), 0)
        self.assertEqual(run_quietly(cli.main, ["generate", "--workspace", str(self.workspace), "--check"]), 0)

        (self.workspace / PORT_PATH).write_text("stale\n", encoding="utf-8")
        self.assertEqual(run_quietly(cli.main, ["generate", "--workspace", str(self.workspace), "--check"]), 1)

    def test_hard_failure_returns_two(self) -> None:
        (self.workspace / "loom" / "broken.json").write_text("{", encoding="utf-8")
        stderr = io.StringIO()
        with contextlib.redirect_stderr(stderr):
            exit_code = run_quietly(cli.main, ["generate", "--workspace", str(self.workspace)])
        self.assertEqual(exit_code, 2)
        self.assertIn("spiral_codegen error:", stderr.getvalue())

    def test_plan_and_listing(self) -> None:
        plan_path = Path(self.temp_dir.name) / "plan.json"
        stdout = io.StringIO()
        with contextlib.redirect_stdout(stdout):
            self.assertEqual(cli.main(["plan", "--workspace", str(self.workspace), "--output", str(plan_path)]), 0)
            self.assertEqual(cli.main(["list-managements", "--workspace", str(self.workspace), "--crud", "delete"]), 0)
            self.assertEqual(cli.main(["types", "--language", "kotlin"]), 0)

        plan = json.loads(plan_path.read_text(encoding="utf-8"))
        self.assertEqual([ring["name"] for ring in plan["graph"]["rings"]], ["core", "front", "android"])
        self.assertEqual([task["treadle"] for task in plan["tasks"]], ["front-port", "mobile-binding"])
        output = stdout.getvalue()
        self.assertIn("BookmarkMgmt reach=Public methods=1: delete", output)
        self.assertIn("Long", output)
        self.assertFalse((self.workspace / "apps").exists())


if __name__ == "__main__":
    unittest.main()
