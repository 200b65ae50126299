from __future__ import annotations

from ._core_base import *  # noqa: F401,F403
from ._core_types import *  # noqa: F401,F403

Template = Callable[[dict[str, Any]], str]


def header_lines(context: dict[str, Any], comment: str = "//") -> list[str]:
    return [
        f"{comment} <auto-generated />",
        f"{comment} Generated by {TOOL_NAME} ({context['treadle']}) from {context['source_file']}. Do not edit.",
    ]


def join_params(params: list[dict[str, Any]], pattern: str, optional_pattern: str | None = None) -> str:
    out: list[str] = []
    for param in params:
        if param["optional"] and optional_pattern is not None:
            out.append(optional_pattern.format(**param))
        else:
            out.append(pattern.format(**param))
    return ", ".join(out)


def doc_lines(method: dict[str, Any], indent: str, style: str) -> list[str]:
    text = method.get("description") or ""
    if not text:
        return []
    if style == "rustdoc":
        return [f"{indent}/// {text}"]
    return [f"{indent}/** {text} */"]


def record_import_lines(context: dict[str, Any], prefix: str) -> list[str]:
    return [
        f"import type {{ {', '.join(item['names'])} }} from '{prefix}{item['module']}.port.gen';"
        for item in context.get("record_imports", [])
    ]


def render_front_port(context: dict[str, Any]) -> str:
    lines = header_lines(context)
    lines.extend(record_import_lines(context, "./"))
    lines.append("")
    for record in context["records"]:
        lines.append(f"export interface {record['name']} {{")
        for item in record["fields"]:
            marker = "?" if item["optional"] else ""
            lines.append(f"  {item['name']}{marker}: {item['type']};")
        lines.append("}")
        lines.append("")
    lines.append(f"export interface {context['port_name']} {{")
    for method in context["methods"]:
        lines.extend(doc_lines(method, "  ", "jsdoc"))
        params = join_params(method["params"], "{name}: {type}", "{name}?: {type}")
        lines.append(f"  {method['name']}({params}): Promise<{method['return_type']}>;")
    lines.append("}")
    return "\n".join(lines) + "\n"


def render_front_service(context: dict[str, Any]) -> str:
    lines = header_lines(context)
    imports = [context["port_name"]] + [record["name"] for record in context["records"]]
    lines.append(f"import type {{ {', '.join(imports)} }} from '{context['port_import']}';")
    lines.extend(record_import_lines(context, "../../ports/gen/"))
    lines.append("")
    lines.append(f"export class {context['service_name']} {{")
    lines.append(f"  constructor(private readonly port: {context['port_name']}) {{}}")
    for method in context["methods"]:
        lines.append("")
        lines.extend(doc_lines(method, "  ", "jsdoc"))
        params = join_params(method["params"], "{name}: {type}", "{name}?: {type}")
        args = ", ".join(param["name"] for param in method["params"])
        lines.append(f"  async {method['name']}({params}): Promise<{method['return_type']}> {{")
        lines.append(f"    return this.port.{method['name']}({args});")
        lines.append("  }")
    lines.append("}")
    return "\n".join(lines) + "\n"


def kotlin_native_param(param: dict[str, Any]) -> tuple[str, str]:
    """Return the ``external fun`` parameter and the argument passed to it.

    Optional values reach the JNI glue as a nullable string, so optional
    primitives are stringified on the Kotlin side.
    """
    name = param["name"]
    if not param["optional"]:
        return f"{name}: {param['type']}", name
    if param["strategy"] == "primitive":
        return f"{name}: String?", f"{name}?.toString()"
    return f"{name}: {param['type']}?", name


def render_mobile_client(context: dict[str, Any]) -> str:
    lines = header_lines(context)
    lines.append(f"package {context['kotlin_package']}")
    lines.append("")
    lines.append(f"class {context['client_name']} {{")
    lines.append("    companion object {")
    lines.append("        init {")
    lines.append(f"            System.loadLibrary(\"{context['native_library']}\")")
    lines.append("        }")
    lines.append("    }")
    for method in context["methods"]:
        native_name = "native" + pascal_case(method["name"])
        params = join_params(method["params"], "{name}: {type}", "{name}: {type}? = null")
        boundary = [kotlin_native_param(param) for param in method["params"]]
        native_params = ", ".join(declared for declared, _ in boundary)
        args = ", ".join(passed for _, passed in boundary)
        lines.append("")
        lines.extend(doc_lines(method, "    ", "kdoc"))
        lines.append(f"    fun {method['name']}({params}): {method['return_type']} = {native_name}({args})")
        lines.append("")
        lines.append(f"    private external fun {native_name}({native_params}): {method['return_type']}")
    lines.append("}")
    return "\n".join(lines) + "\n"


def jni_param_type(target_type: str) -> str:
    if target_type.startswith("J"):
        return f"{target_type}<'local>"
    return target_type


def jni_return_type(target_type: str) -> str:
    if target_type == "()":
        return ""
    # JString -> jstring
    if target_type.startswith("J"):
        return "j" + target_type[1:].lower()
    return target_type


def render_native_glue(context: dict[str, Any]) -> str:
    types: TypeTable = context["types"]
    lines = header_lines(context)
    lines.append("#![allow(non_snake_case)]")
    lines.append("")
    lines.append("use jni::objects::{JClass, JString};")
    lines.append("use jni::sys::*;")
    lines.append("use jni::JNIEnv;")
    lines.append("")
    lines.append(f"use {context['core_module']}::{context['entity_snake']} as core;")
    for method in context["methods"]:
        symbol = f"Java_{context['jni_class_path']}_native{pascal_case(method['name'])}"
        ret = jni_return_type(method["return_type"])
        lines.append("")
        lines.append("#[no_mangle]")
        lines.append(f"pub extern \"system\" fn {symbol}<'local>(")
        lines.append("    mut env: JNIEnv<'local>,")
        lines.append("    _class: JClass<'local>,")
        for param in method["params"]:
            boundary = "JString" if param["optional"] else param["type"]
            lines.append(f"    {param['name']}: {jni_param_type(boundary)},")
        lines.append(f") -> {ret} {{" if ret else ") {")
        for param in method["params"]:
            fragment = types.conversion_fragment("jni_to_rust", param["abstract_type"], param["name"], param["optional"])
            lines.append(f"    {fragment}")
        args = ", ".join(param["name"] for param in method["params"])
        call = f"core::{snake_case(method['source_name'])}({args})"
        if not ret:
            lines.append(f"    if let Err(err) = {call} {{")
            lines.append("        let _ = env.throw_new(\"java/lang/RuntimeException\", err.to_string());")
            lines.append("    }")
        else:
            converted = types.conversion_fragment("rust_to_jni", method["return_abstract"], "value")
            lines.append(f"    match {call} {{")
            lines.append(f"        Ok(value) => {converted},")
            lines.append("        Err(err) => {")
            lines.append("            let _ = env.throw_new(\"java/lang/RuntimeException\", err.to_string());")
            lines.append(f"            {method['return_sentinel']}")
            lines.append("        }")
            lines.append("    }")
        lines.append("}")
    return "\n".join(lines) + "\n"


def render_ipc_descriptor(context: dict[str, Any]) -> str:
    lines = header_lines(context)
    lines.append(f"package {context['kotlin_package']};")
    lines.append("")
    lines.append(f"interface {context['interface_name']} {{")
    for method in context["methods"]:
        params = join_params(method["params"], "{type} {name}")
        lines.append(f"    {method['return_type']} {method['name']}({params});")
    lines.append("}")
    return "\n".join(lines) + "\n"


def render_desktop_commands(context: dict[str, Any]) -> str:
    lines = header_lines(context)
    lines.append(f"use {context['core_module']}::{context['entity_snake']} as core;")
    lines.append(f"use {context['core_module']}::{context['entity_snake']}::*;")
    for method in context["methods"]:
        params = join_params(method["params"], "{name}: {type}", "{name}: Option<{type}>")
        args = ", ".join(param["name"] for param in method["params"])
        lines.append("")
        lines.extend(doc_lines(method, "", "rustdoc"))
        lines.append(f"pub fn {snake_case(method['name'])}({params}) -> Result<{method['return_type']}, String> {{")
        lines.append(f"    core::{snake_case(method['source_name'])}({args}).map_err(|err| err.to_string())")
        lines.append("}")
    return "\n".join(lines) + "\n"


TEMPLATES: dict[str, Template] = {
    "front/port.ts": render_front_port,
    "front/service.ts": render_front_service,
    "mobile/client.kt": render_mobile_client,
    "native/glue.rs": render_native_glue,
    "ipc/interface.aidl": render_ipc_descriptor,
    "desktop/commands.rs": render_desktop_commands,
}


def resolve_template(name: str) -> Template:
    template = TEMPLATES.get(name)
    if template is None:
        known = ", ".join(sorted(TEMPLATES))
        raise LoomError(f"Unknown template '{name}'. Known templates: {known}")
    return template
