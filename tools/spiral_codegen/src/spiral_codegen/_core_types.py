from __future__ import annotations

from ._core_base import *  # noqa: F401,F403

TARGET_LANGUAGES = ("typescript", "kotlin", "rust", "jni", "aidl")
LANGUAGE_RUNTIMES = {
    "typescript": "managed",
    "kotlin": "managed",
    "aidl": "managed",
    "rust": "native",
    "jni": "native",
}
SERIALIZATION_STRATEGIES = ("primitive", "string", "struct", "reference")

# abstract type -> (strategy, {language: (target type, error sentinel)})
BUILTIN_TYPE_MAP: dict[str, tuple[str, dict[str, tuple[str, str]]]] = {
    "string": (
        "string",
        {
            "typescript": ("string", "null"),
            "kotlin": ("String", "null"),
            "rust": ("String", "String::new()"),
            "jni": ("JString", "std::ptr::null_mut()"),
            "aidl": ("String", "null"),
        },
    ),
    "number": (
        "primitive",
        {
            "typescript": ("number", "null"),
            "kotlin": ("Int", "null"),
            "rust": ("i32", "-1"),
            "jni": ("jint", "-1"),
            "aidl": ("int", "-1"),
        },
    ),
    "int": (
        "primitive",
        {
            "typescript": ("number", "null"),
            "kotlin": ("Long", "null"),
            "rust": ("i64", "-1"),
            "jni": ("jlong", "-1"),
            "aidl": ("long", "-1"),
        },
    ),
    "float": (
        "primitive",
        {
            "typescript": ("number", "null"),
            "kotlin": ("Double", "null"),
            "rust": ("f64", "0.0"),
            "jni": ("jdouble", "0.0"),
            "aidl": ("double", "0.0"),
        },
    ),
    "boolean": (
        "primitive",
        {
            "typescript": ("boolean", "null"),
            "kotlin": ("Boolean", "null"),
            "rust": ("bool", "false"),
            "jni": ("jboolean", "0"),
            "aidl": ("boolean", "false"),
        },
    ),
    "bool": (
        "primitive",
        {
            "typescript": ("boolean", "null"),
            "kotlin": ("Boolean", "null"),
            "rust": ("bool", "false"),
            "jni": ("jboolean", "0"),
            "aidl": ("boolean", "false"),
        },
    ),
    "void": (
        "primitive",
        {
            "typescript": ("void", ""),
            "kotlin": ("Unit", ""),
            "rust": ("()", ""),
            "jni": ("()", ""),
            "aidl": ("void", ""),
        },
    ),
    "bytes": (
        "reference",
        {
            "typescript": ("Uint8Array", "null"),
            "kotlin": ("String", "null"),
            "rust": ("Vec<u8>", "Vec::new()"),
            "jni": ("JString", "std::ptr::null_mut()"),
            "aidl": ("String", "null"),
        },
    ),
}

# Records, arrays and bytes cross the JVM boundary as JSON text.
STRUCT_SPELLINGS = {
    "typescript": ("{name}", "null"),
    "kotlin": ("String", "null"),
    "rust": ("{name}", "Default::default()"),
    "jni": ("JString", "std::ptr::null_mut()"),
    "aidl": ("String", "null"),
}

ARRAY_SPELLINGS = {
    "typescript": ("{inner}[]", "null"),
    "kotlin": ("String", "null"),
    "rust": ("Vec<{inner}>", "Vec::new()"),
    "jni": ("JString", "std::ptr::null_mut()"),
    "aidl": ("String", "null"),
}

# (direction, strategy) -> fragment; selected by classification, not type name.
CONVERSION_FRAGMENTS = {
    ("jni_to_rust", "primitive"): "// {name} is already {rust_type}",
    ("jni_to_rust", "string"): (
        'let {name}: String = env.get_string(&{name}).expect("Failed to get {name}").into();'
    ),
    ("jni_to_rust", "struct"): (
        'let {name}: {rust_type} = serde_json::from_str(&String::from(env.get_string(&{name})'
        '.expect("Failed to get {name}"))).expect("Failed to decode {name}");'
    ),
    ("jni_to_rust", "reference"): (
        'let {name}: {rust_type} = serde_json::from_str(&String::from(env.get_string(&{name})'
        '.expect("Failed to get {name}"))).expect("Failed to decode {name}");'
    ),
    # Optional parameters of every strategy arrive as a nullable JString.
    ("jni_to_rust_optional", "primitive"): (
        'let {name}: Option<{rust_type}> = if {name}.is_null() {{ None }} else {{ '
        'Some(String::from(env.get_string(&{name}).expect("Failed to get {name}"))'
        '.parse().expect("Failed to parse {name}")) }};'
    ),
    ("jni_to_rust_optional", "string"): (
        'let {name}: Option<String> = if {name}.is_null() {{ None }} else {{ '
        'Some(env.get_string(&{name}).expect("Failed to get {name}").into()) }};'
    ),
    ("jni_to_rust_optional", "struct"): (
        'let {name}: Option<{rust_type}> = if {name}.is_null() {{ None }} else {{ '
        'Some(serde_json::from_str(&String::from(env.get_string(&{name}).expect("Failed to get {name}")))'
        '.expect("Failed to decode {name}")) }};'
    ),
    ("jni_to_rust_optional", "reference"): (
        'let {name}: Option<{rust_type}> = if {name}.is_null() {{ None }} else {{ '
        'Some(serde_json::from_str(&String::from(env.get_string(&{name}).expect("Failed to get {name}")))'
        '.expect("Failed to decode {name}")) }};'
    ),
    ("rust_to_jni", "primitive"): "{name} as {jni_type}",
    ("rust_to_jni", "string"): 'env.new_string(&{name}).expect("Failed to create Java string").into_raw()',
    ("rust_to_jni", "struct"): (
        'env.new_string(serde_json::to_string(&{name}).expect("Failed to encode {name}"))'
        '.expect("Failed to create Java string").into_raw()'
    ),
    ("rust_to_jni", "reference"): (
        'env.new_string(serde_json::to_string(&{name}).expect("Failed to encode {name}"))'
        '.expect("Failed to create Java string").into_raw()'
    ),
}


@dataclass(frozen=True)
class TypeMappingEntry:
    abstract_type: str
    language: str
    target_type: str
    strategy: str
    error_sentinel: str
    is_primitive: bool

    def as_dict(self) -> dict[str, Any]:
        return {
            "abstract_type": self.abstract_type,
            "language": self.language,
            "target_type": self.target_type,
            "strategy": self.strategy,
            "error_sentinel": self.error_sentinel,
            "is_primitive": self.is_primitive,
        }


def array_element(abstract_type: str) -> str | None:
    if abstract_type.endswith("[]"):
        return abstract_type[:-2].strip()
    return None


class TypeTable:
    """Abstract type name -> per-language mapping.

    Lookups are total or they fail: an unmapped type never falls back to a
    default spelling. Registration is append-only.
    """

    def __init__(self, entries: list[TypeMappingEntry] | None = None) -> None:
        self._entries: dict[tuple[str, str], TypeMappingEntry] = {}
        self._strategies: dict[str, str] = {}
        for entry in entries or []:
            self.register(entry)

    def copy(self) -> "TypeTable":
        return TypeTable(list(self._entries.values()))

    def register(self, entry: TypeMappingEntry) -> None:
        if entry.language not in TARGET_LANGUAGES:
            raise LoomError(f"Unknown target language '{entry.language}' for type '{entry.abstract_type}'")
        if entry.strategy not in SERIALIZATION_STRATEGIES:
            raise LoomError(f"Unknown serialization strategy '{entry.strategy}' for type '{entry.abstract_type}'")
        key = (entry.abstract_type, entry.language)
        existing = self._entries.get(key)
        if existing is not None:
            if existing != entry:
                raise LoomError(
                    f"Type mapping for '{entry.abstract_type}' in '{entry.language}' is already registered "
                    f"as '{existing.target_type}'"
                )
            return
        known_strategy = self._strategies.get(entry.abstract_type)
        if known_strategy is not None and known_strategy != entry.strategy:
            raise LoomError(
                f"Type '{entry.abstract_type}' is registered with strategy '{known_strategy}', "
                f"cannot add '{entry.strategy}'"
            )
        self._entries[key] = entry
        self._strategies[entry.abstract_type] = entry.strategy

    def register_struct(self, name: str) -> None:
        for language, (spelling, sentinel) in STRUCT_SPELLINGS.items():
            self.register(
                TypeMappingEntry(
                    abstract_type=name,
                    language=language,
                    target_type=spelling.format(name=name),
                    strategy="struct",
                    error_sentinel=sentinel,
                    is_primitive=False,
                )
            )

    def knows(self, abstract_type: str) -> bool:
        element = array_element(abstract_type)
        if element is not None:
            return self.knows(element)
        return abstract_type in self._strategies

    def abstract_types(self) -> list[str]:
        return sorted(self._strategies.keys())

    def entries(self, language: str | None = None) -> list[TypeMappingEntry]:
        out = [entry for entry in self._entries.values() if language is None or entry.language == language]
        return sorted(out, key=lambda item: (item.abstract_type, item.language))

    def resolve(self, abstract_type: str, language: str) -> TypeMappingEntry:
        element = array_element(abstract_type)
        if element is not None:
            inner = self.resolve(element, language)
            spelling, sentinel = ARRAY_SPELLINGS[language]
            return TypeMappingEntry(
                abstract_type=abstract_type,
                language=language,
                target_type=spelling.format(inner=inner.target_type),
                strategy="reference",
                error_sentinel=sentinel,
                is_primitive=False,
            )
        entry = self._entries.get((abstract_type, language))
        if entry is None:
            raise UnmappedTypeError(abstract_type, language)
        return entry

    def declared_type(self, abstract_type: str, language: str) -> str:
        return self.resolve(abstract_type, language).target_type

    def error_sentinel(self, abstract_type: str, language: str) -> str:
        return self.resolve(abstract_type, language).error_sentinel

    def get_serialization_strategy(self, abstract_type: str) -> str:
        if array_element(abstract_type) is not None:
            if not self.knows(abstract_type):
                raise UnmappedTypeError(abstract_type, "*")
            return "reference"
        strategy = self._strategies.get(abstract_type)
        if strategy is None:
            raise UnmappedTypeError(abstract_type, "*")
        return strategy

    def needs_boundary_conversion(self, abstract_type: str, from_language: str, to_language: str) -> bool:
        # Resolve both sides so an unmapped type fails here too.
        self.resolve(abstract_type, from_language)
        self.resolve(abstract_type, to_language)
        if LANGUAGE_RUNTIMES[from_language] == LANGUAGE_RUNTIMES[to_language]:
            return False
        return self.get_serialization_strategy(abstract_type) != "primitive"

    def conversion_fragment(self, direction: str, abstract_type: str, name: str, optional: bool = False) -> str:
        if abstract_type == "void":
            return ""
        strategy = self.get_serialization_strategy(abstract_type)
        if optional:
            direction = f"{direction}_optional"
        template = CONVERSION_FRAGMENTS.get((direction, strategy))
        if template is None:
            raise LoomError(f"No conversion fragment for direction '{direction}' and strategy '{strategy}'")
        return template.format(
            name=name,
            rust_type=self.declared_type(abstract_type, "rust"),
            jni_type=self.declared_type(abstract_type, "jni"),
        )


def default_type_table() -> TypeTable:
    table = TypeTable()
    for abstract_type, (strategy, spellings) in BUILTIN_TYPE_MAP.items():
        for language in TARGET_LANGUAGES:
            target_type, sentinel = spellings[language]
            table.register(
                TypeMappingEntry(
                    abstract_type=abstract_type,
                    language=language,
                    target_type=target_type,
                    strategy=strategy,
                    error_sentinel=sentinel,
                    is_primitive=strategy == "primitive",
                )
            )
    return table
