from __future__ import annotations

import os

from ._core_base import *  # noqa: F401,F403
from ._core_rings import *  # noqa: F401,F403
from ._core_methods import *  # noqa: F401,F403
from ._core_hookups import *  # noqa: F401,F403
from ._core_treadles import *  # noqa: F401,F403


def kotlin_package_of(ring: Ring) -> str:
    value = ring.option("kotlin_package", ring.package_name)
    if not isinstance(value, str) or not re.match(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$", value):
        raise LoomError(f"ring '{ring.name}': kotlin package '{value}' is not a dotted identifier")
    return value


def jni_mangle(value: str) -> str:
    return value.replace("_", "_1").replace(".", "_")


def relative_dir(target: Path, start: Path) -> str:
    return Path(os.path.relpath(target, start)).as_posix()


def foreign_record_imports(context: TreadleContext) -> list[dict[str, Any]]:
    """Records used by this management but declared in another one."""
    spec = context.management
    grouped: dict[str, list[str]] = {}
    for abstract_type, _ in referenced_types(spec):
        name = array_element(abstract_type) or abstract_type
        owner = context.record_owner(name)
        if owner is None or owner is spec:
            continue
        names = grouped.setdefault(kebab_case(owner.entity), [])
        if name not in names:
            names.append(name)
    return [{"module": module, "names": names} for module, names in grouped.items()]


def shape_front(context: TreadleContext, current: Ring, previous: Ring) -> dict[str, Any]:
    entity = pascal_case(context.management.entity)
    kebab = kebab_case(context.management.entity)
    return {
        "port_name": f"{entity}Port",
        "service_name": f"{entity}Service",
        "port_import": f"../../ports/gen/{kebab}.port.gen",
        "record_imports": foreign_record_imports(context),
        "emit_services": bool(current.option("services", True)),
    }


def shape_mobile(context: TreadleContext, current: Ring, previous: Ring) -> dict[str, Any]:
    kotlin_package = kotlin_package_of(current)
    return {
        "kotlin_package": kotlin_package,
        "kotlin_path": kotlin_package.replace(".", "/"),
        "client_name": f"{pascal_case(context.management.entity)}Client",
        "native_library": snake_case(context.core.package_name),
        "crate_dir": relative_dir(context.package_root(context.core), context.package_root()),
    }


def shape_native(context: TreadleContext, current: Ring, previous: Ring) -> dict[str, Any]:
    client_name = f"{pascal_case(context.management.entity)}Client"
    if previous.kind == "MobileBindingSpiraler":
        jvm_class = f"{kotlin_package_of(previous)}.{client_name}"
    else:
        jvm_class = current.option("jvm_class", f"{kotlin_package_of(current)}.{client_name}")
    return {
        "jni_class_path": jni_mangle(jvm_class),
        "core_module": snake_case(context.core.package_name),
    }


def shape_ipc(context: TreadleContext, current: Ring, previous: Ring) -> dict[str, Any]:
    kotlin_package = kotlin_package_of(previous)
    return {
        "kotlin_package": kotlin_package,
        "kotlin_path": kotlin_package.replace(".", "/"),
        "interface_name": f"I{pascal_case(context.management.entity)}Service",
    }


def shape_desktop(context: TreadleContext, current: Ring, previous: Ring) -> dict[str, Any]:
    return {"core_module": snake_case(context.core.package_name)}


def hookup_path(context: TreadleContext, relative: str) -> tuple[Path, str]:
    path = context.package_root() / relative
    return path, to_root_relative(path, context.workspace_root)


def front_index_export(context: TreadleContext, data: dict[str, Any]) -> HookupSpec:
    path, relative = hookup_path(context, "src/index.ts")
    return typescript_export_hookup(path, relative, f"./ports/gen/{data['entity_kebab']}.port.gen", data["treadle"])


def mobile_gradle_build(context: TreadleContext, data: dict[str, Any]) -> HookupSpec:
    path, relative = hookup_path(context, "build.gradle.kts")
    return gradle_rust_build_hookup(path, relative, data["crate_dir"], data["native_library"], data["treadle"])


def native_module_declaration(context: TreadleContext, data: dict[str, Any]) -> HookupSpec:
    path, relative = hookup_path(context, "src/lib.rs")
    return rust_module_hookup(path, relative, f"{data['entity_snake']}_jni", data["treadle"])


def desktop_module_declaration(context: TreadleContext, data: dict[str, Any]) -> HookupSpec:
    path, relative = hookup_path(context, "src/lib.rs")
    return rust_module_hookup(path, relative, f"{data['entity_snake']}_commands", data["treadle"])


def default_registry() -> list[Treadle]:
    """Built-in treadles in registration order; the first match wins."""
    return [
        define_treadle(
            "front-port",
            matches=[("FrontDomainSpiraler", "RustCore"), ("FrontDomainSpiraler", "TypeScriptCore")],
            pipeline=[tag_crud_intent],
            data_shaper=shape_front,
            outputs=[
                OutputSpec("front/port.ts", "src/ports/gen/{entity_kebab}.port.gen.ts", "typescript"),
                OutputSpec(
                    "front/service.ts",
                    "src/services/gen/{entity_kebab}.service.gen.ts",
                    "typescript",
                    condition=lambda data: bool(data.get("emit_services")),
                ),
            ],
            hookups=[front_index_export],
        ),
        define_treadle(
            "mobile-binding",
            matches=[("MobileBindingSpiraler", "RustCore"), ("MobileBindingSpiraler", "FrontDomainSpiraler")],
            validate=require_wrapped_core_language,
            data_shaper=shape_mobile,
            outputs=[
                OutputSpec("mobile/client.kt", "src/main/kotlin/{kotlin_path}/{client_name}.kt", "kotlin"),
            ],
            hookups=[mobile_gradle_build],
        ),
        define_treadle(
            "native-binding",
            matches=[("NativeBindingSpiraler", "RustCore"), ("NativeBindingSpiraler", "MobileBindingSpiraler")],
            validate=require_wrapped_core_language,
            data_shaper=shape_native,
            outputs=[OutputSpec("native/glue.rs", "src/{entity_snake}_jni.rs", "jni")],
            hookups=[native_module_declaration],
        ),
        define_treadle(
            "ipc-descriptor",
            matches=[("IpcDescriptorSpiraler", "MobileBindingSpiraler")],
            validate=require_wrapped_core_language,
            method_filter=tag_filter(["internal"], filter_out=True),
            data_shaper=shape_ipc,
            outputs=[OutputSpec("ipc/interface.aidl", "src/main/aidl/{kotlin_path}/{interface_name}.aidl", "aidl")],
        ),
        define_treadle(
            "desktop-direct",
            matches=[("DesktopSpiraler", "RustCore")],
            validate=require_wrapped_core_language,
            pipeline=[add_management_prefix],
            data_shaper=shape_desktop,
            outputs=[OutputSpec("desktop/commands.rs", "src/{entity_snake}_commands.rs", "rust")],
            hookups=[desktop_module_declaration],
        ),
    ]
