"""JS interop proxy generator for Blazor.

Compiles declarative interop interface descriptions (interop.xml) into typed
C# proxy classes that call JavaScript module exports through
Microsoft.JSInterop, plus one AddJsInterops() registration extension.

Usage:
    python interop_gen.py --interop-xml interop.xml --output-dir Generated
"""

import argparse
import re
import sys
import xml.etree.ElementTree as ET
from collections import Counter
from dataclasses import dataclass
from pathlib import Path

DEFAULT_INTEROP_XML = Path("interop.xml")
DEFAULT_OUTPUT_DIR = Path("Generated")


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    interop_xml: Path
    output_dir: Path
    strict: bool


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str
    filter_text: str | None
    info_interface: str | None
    interop_xml: Path


VALID_ERROR_CODES = {
    "PATH_NOT_FOUND",
    "FILTER_WITHOUT_LIST",
    "CONFLICT_GENERATE_DISCOVERY",
    "INVALID_INTERFACE_NAME",
}
_INTERFACE_NAME_RE = re.compile(
    r"^(global::)?([A-Za-z_][A-Za-z0-9_]*\.)*[A-Za-z_][A-Za-z0-9_]*$"
)


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def validate_interface_name(name: str) -> str:
    if _INTERFACE_NAME_RE.match(name):
        return name
    raise ConfigError(
        "INVALID_INTERFACE_NAME",
        f"Invalid interface name: {name}",
        "Pass a C# identifier, optionally namespace-qualified (for example "
        "Demo.Interop.IUtilitiesInterop).",
    )


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this flag.",
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate Blazor JS interop proxies from interop.xml"
    )

    parser.add_argument("--interop-xml", type=Path, default=DEFAULT_INTEROP_XML)
    parser.add_argument("--output-dir", type=Path, default=DEFAULT_OUTPUT_DIR)
    parser.add_argument("--strict", action="store_true", default=False)

    discovery_group = parser.add_mutually_exclusive_group()
    discovery_group.add_argument(
        "--list-interfaces", action="store_true", default=False
    )
    discovery_group.add_argument("--info", type=str, default=None)

    parser.add_argument("--filter", type=str, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig | DiscoveryConfig:
    has_discovery_command = args.list_interfaces or args.info is not None

    if args.filter and not args.list_interfaces:
        raise ConfigError(
            "FILTER_WITHOUT_LIST",
            "--filter requires --list-interfaces.",
            "Add --list-interfaces or remove --filter.",
        )

    if args.strict and has_discovery_command:
        raise ConfigError(
            "CONFLICT_GENERATE_DISCOVERY",
            "--strict cannot be combined with discovery flags.",
            "Choose either generate mode or one discovery command.",
        )

    interop_xml = validate_path_exists(
        args.interop_xml,
        "--interop-xml",
        "Describe your interop interfaces in interop.xml (see examples/interop.xml)\n"
        "Or pass a custom path: --interop-xml /your/path/to/interop.xml",
    )

    if has_discovery_command:
        command = "list-interfaces" if args.list_interfaces else "info"
        info_interface = (
            validate_interface_name(args.info) if args.info is not None else None
        )
        return DiscoveryConfig(
            command=command,
            filter_text=args.filter,
            info_interface=info_interface,
            interop_xml=interop_xml,
        )

    return GenerateConfig(
        interop_xml=interop_xml,
        output_dir=args.output_dir,
        strict=bool(args.strict),
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))


# ===--- Constants ---=== #

JS_MODULE_ATTRIBUTE = "BlazorBridge.JsModuleAttribute"
JS_EXPORT_ATTRIBUTE = "BlazorBridge.JsExportAttribute"
JS_DEFAULT_EXPORT_ATTRIBUTE = "BlazorBridge.JsDefaultExportAttribute"
JS_METHOD_ATTRIBUTE = "BlazorBridge.JsMethodAttribute"
JS_INTEROP_MARKER = "BlazorBridge.IJsInterop"

DEFAULT_EXPORT_PREFIX = "default"
ASYNC_RESULT_WRAPPER = "ValueTask"
ORDINARY_METHOD_KIND = "ordinary"

REGISTRATION_NAMESPACE = "BlazorBridge"
REGISTRATION_CLASS = "JsInteropServiceCollectionExtensions"
REGISTRATION_METHOD = "AddJsInterops"
REGISTRATION_ARTIFACT = f"{REGISTRATION_CLASS}.g.cs"
ARTIFACT_SUFFIX = ".g.cs"

GENERATED_HEADER: tuple[str, ...] = (
    "// <auto-generated />",
    "// Generated by blazor-interop-gen. Do not edit.",
)

PROXY_USINGS: tuple[str, ...] = (
    "System",
    "System.Threading",
    "System.Threading.Tasks",
    "Microsoft.JSInterop",
)
REGISTRATION_USINGS: tuple[str, ...] = ("Microsoft.Extensions.DependencyInjection",)

_INDENT = "    "


# ===--- Descriptor model ---=== #


@dataclass(frozen=True)
class ParameterBinding:
    type_name: str
    name: str


@dataclass(frozen=True)
class MemberBinding:
    """One callable exposed through a proxy.

    Attributes:
        interface_member_name: Method name declared on the interface. Unique
            within its ModuleBinding.
        wire_name: JavaScript function name invoked on the module export.
        return_type: Declared return type, emitted verbatim in the proxy
            method signature (e.g. "global::System.Threading.Tasks.ValueTask").
        result_shape: Type argument of ValueTask<T>, or None for a bare
            ValueTask (void call).
        parameters: Forwarded positionally, in declared order.
    """

    interface_member_name: str
    wire_name: str
    return_type: str
    result_shape: str | None
    parameters: tuple[ParameterBinding, ...]


@dataclass(frozen=True)
class ModuleBinding:
    """One interface's compilation unit: a module path plus its members.

    Attributes:
        module_path: Script module location, passed through verbatim to the
            runtime import call.
        export_prefix: "" for top-level exports, a named export identifier,
            or DEFAULT_EXPORT_PREFIX for the module's default export.
        members: Declaration-ordered member bindings. Never empty.
        source_interface_name: Simple name of the interface, e.g.
            "IUtilitiesInterop".
        containing_namespace: Dotted namespace of the interface, "" for the
            global namespace.
    """

    module_path: str
    export_prefix: str
    members: tuple[MemberBinding, ...]
    source_interface_name: str
    containing_namespace: str

    @property
    def proxy_type_name(self) -> str:
        return proxy_type_name_for(self.source_interface_name)

    @property
    def qualified_interface_name(self) -> str:
        return _qualify(self.containing_namespace, self.source_interface_name)

    @property
    def qualified_proxy_name(self) -> str:
        return _qualify(self.containing_namespace, self.proxy_type_name)


SKIP_CODES = (
    "NO_MARKER_INTERFACE",
    "NO_MODULE_ATTRIBUTE",
    "NOT_ORDINARY_METHOD",
    "DUPLICATE_MEMBER",
    "UNSUPPORTED_RETURN",
    "NO_ELIGIBLE_MEMBERS",
)
STRICT_SKIP_CODES = frozenset({"DUPLICATE_MEMBER", "UNSUPPORTED_RETURN"})


@dataclass(frozen=True)
class SkipRecord:
    """Why an interface or one of its members was left out of generation.

    interface_name is namespace-qualified (e.g. "Demo.Interop.IUtilitiesInterop");
    member_name is None when the whole interface was skipped.
    """

    interface_name: str
    member_name: str | None
    code: str
    message: str

    @property
    def subject(self) -> str:
        if self.member_name is None:
            return self.interface_name
        return f"{self.interface_name}.{self.member_name}"


@dataclass(frozen=True)
class ExtractionResult:
    bindings: tuple[ModuleBinding, ...]
    skipped: tuple[SkipRecord, ...]

    @property
    def member_count(self) -> int:
        return sum(len(b.members) for b in self.bindings)


def proxy_type_name_for(interface_name: str) -> str:
    """Strip a single leading "I" marker character from an interface name."""
    if interface_name.startswith("I"):
        return interface_name[1:]
    return interface_name


def _qualify(namespace: str, name: str) -> str:
    if namespace:
        return f"global::{namespace}.{name}"
    return f"global::{name}"


# ===--- Interop document parsing ---=== #


class DocumentError(Exception):
    """Raised when interop.xml is well-formed XML but not a valid document."""


@dataclass(frozen=True)
class AttributeUse:
    """A metadata attribute applied to an interface or method.

    argument is None when the attribute was applied with a null argument
    (null="true") and "" when it was applied without one.
    """

    type_name: str
    argument: str | None


@dataclass(frozen=True)
class MethodDecl:
    name: str
    kind: str
    return_type: str
    attributes: tuple[AttributeUse, ...]
    parameters: tuple[ParameterBinding, ...]


@dataclass(frozen=True)
class InterfaceDecl:
    name: str
    namespace: str
    implements: tuple[str, ...]
    attributes: tuple[AttributeUse, ...]
    methods: tuple[MethodDecl, ...]

    @property
    def qualified_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}.{self.name}"
        return self.name


def load_interop_document(path: Path) -> ET.Element:
    return ET.parse(path).getroot()


def _require_attr(el: ET.Element, attr: str, context: str) -> str:
    value = el.get(attr)
    if not value:
        raise DocumentError(f"<{el.tag}> in {context} is missing required '{attr}'")
    return value


def parse_attribute_use(el: ET.Element, context: str) -> AttributeUse:
    type_name = _require_attr(el, "type", context)
    if el.get("null") == "true":
        return AttributeUse(type_name, None)
    return AttributeUse(type_name, el.text or "")


def parse_method(el: ET.Element, interface_name: str) -> MethodDecl:
    name = _require_attr(el, "name", interface_name)
    context = f"{interface_name}.{name}"
    attributes = tuple(
        parse_attribute_use(a, context) for a in el.findall("attribute")
    )
    parameters = tuple(
        ParameterBinding(
            type_name=_require_attr(p, "type", context),
            name=_require_attr(p, "name", context),
        )
        for p in el.findall("param")
    )
    return MethodDecl(
        name=name,
        kind=el.get("kind", ORDINARY_METHOD_KIND),
        return_type=el.get("returns", "void"),
        attributes=attributes,
        parameters=parameters,
    )


def parse_interface(el: ET.Element) -> InterfaceDecl:
    name = _require_attr(el, "name", "<interop>")
    if not proxy_type_name_for(name):
        raise DocumentError(f"Interface name '{name}' leaves no proxy type name")
    implements = tuple(
        (i.text or "").strip() for i in el.findall("implements") if i.text
    )
    attributes = tuple(parse_attribute_use(a, name) for a in el.findall("attribute"))
    methods = tuple(parse_method(m, name) for m in el.findall("method"))
    return InterfaceDecl(
        name=name,
        namespace=el.get("namespace", ""),
        implements=implements,
        attributes=attributes,
        methods=methods,
    )


def parse_interop_document(root: ET.Element) -> list[InterfaceDecl]:
    """Read every <interface> declaration from an <interop> root, in order.

    Raises:
        DocumentError: If the root element is not <interop>, a required
            name/type attribute is missing, or an interface name is just "I".
    """
    if root.tag != "interop":
        raise DocumentError(f"Expected <interop> root element, got <{root.tag}>")
    return [parse_interface(el) for el in root.findall("interface")]


# ===--- Descriptor extraction ---=== #


def _normalize_type_ref(type_name: str) -> str:
    return type_name.strip().removeprefix("global::")


def attribute_matches(type_name: str, metadata_name: str) -> bool:
    """Match an applied attribute against a metadata name.

    Accepts the C# spellings of the same attribute: fully qualified or simple,
    with or without the "Attribute" suffix, with or without "global::".
    """
    applied = _normalize_type_ref(type_name).removesuffix("Attribute")
    full = metadata_name.removesuffix("Attribute")
    return applied == full or applied == full.rsplit(".", 1)[-1]


def find_attribute(
    attributes: tuple[AttributeUse, ...], metadata_name: str
) -> AttributeUse | None:
    for attribute in attributes:
        if attribute_matches(attribute.type_name, metadata_name):
            return attribute
    return None


def _type_ref_matches(type_ref: str, metadata_name: str) -> bool:
    ref = _normalize_type_ref(type_ref)
    return ref == metadata_name or ref == metadata_name.rsplit(".", 1)[-1]


def index_interfaces(interfaces: list[InterfaceDecl]) -> dict[str, InterfaceDecl]:
    index: dict[str, InterfaceDecl] = {}
    for decl in interfaces:
        index.setdefault(decl.qualified_name, decl)
        index.setdefault(decl.name, decl)
    return index


def all_interfaces(
    decl: InterfaceDecl, index: dict[str, InterfaceDecl]
) -> tuple[str, ...]:
    """Return every interface decl implements, directly or transitively.

    Only interfaces declared in the same document are expanded; anything
    else is a leaf.
    """
    seen: list[str] = []
    queue = list(decl.implements)
    while queue:
        ref = _normalize_type_ref(queue.pop(0))
        if ref in seen:
            continue
        seen.append(ref)
        base = index.get(ref)
        if base is not None and base is not decl:
            queue.extend(base.implements)
    return tuple(seen)


def implements_marker(decl: InterfaceDecl, index: dict[str, InterfaceDecl]) -> bool:
    return any(
        _type_ref_matches(ref, JS_INTEROP_MARKER) for ref in all_interfaces(decl, index)
    )


def resolve_export_prefix(attributes: tuple[AttributeUse, ...]) -> str:
    if find_attribute(attributes, JS_DEFAULT_EXPORT_ATTRIBUTE) is not None:
        return DEFAULT_EXPORT_PREFIX
    export = find_attribute(attributes, JS_EXPORT_ATTRIBUTE)
    if export is None or export.argument is None or not export.argument.strip():
        return ""
    return export.argument


def resolve_wire_name(method: MethodDecl) -> str:
    mapping = find_attribute(method.attributes, JS_METHOD_ATTRIBUTE)
    if mapping is not None and mapping.argument and mapping.argument.strip():
        return mapping.argument
    return method.name


def _split_type_arguments(inner: str) -> tuple[str, ...]:
    args: list[str] = []
    depth = 0
    start = 0
    for i, ch in enumerate(inner):
        if ch in "<(":
            depth += 1
        elif ch in ">)":
            depth -= 1
        elif ch == "," and depth == 0:
            args.append(inner[start:i].strip())
            start = i + 1
    args.append(inner[start:].strip())
    return tuple(a for a in args if a)


def split_generic_type(display: str) -> tuple[str, tuple[str, ...]]:
    """Split a C# type display string into (simple name, type arguments).

    "global::System.Threading.Tasks.ValueTask<global::Demo.DomRect?>"
    -> ("ValueTask", ("global::Demo.DomRect?",))
    """
    text = display.strip()
    lt = text.find("<")
    if lt == -1:
        base, args = text, ()
    else:
        gt = text.rfind(">")
        # Anything after the closing bracket is some other type.
        if gt < lt or gt != len(text) - 1:
            return text, ()
        base, args = text[:lt], _split_type_arguments(text[lt + 1 : gt])
    simple = _normalize_type_ref(base).rsplit(".", 1)[-1].strip()
    return simple, args


def resolve_result_shape(return_type: str) -> tuple[bool, str | None]:
    """Return (is_supported, result_shape) for a declared return type.

    Only the ValueTask wrapper is recognized. The generic form yields its
    first type argument; the bare form yields None.
    """
    simple, args = split_generic_type(return_type)
    if simple != ASYNC_RESULT_WRAPPER:
        return False, None
    return True, (args[0] if args else None)


def collect_members(
    decl: InterfaceDecl,
) -> tuple[list[MemberBinding], list[SkipRecord]]:
    members: list[MemberBinding] = []
    skipped: list[SkipRecord] = []
    kept_names: set[str] = set()

    for method in decl.methods:
        if method.kind != ORDINARY_METHOD_KIND:
            skipped.append(
                SkipRecord(
                    decl.qualified_name,
                    method.name,
                    "NOT_ORDINARY_METHOD",
                    f"{method.kind} members are not proxied",
                )
            )
            continue

        # Overloads: only the first kept member with a given name survives.
        if method.name in kept_names:
            skipped.append(
                SkipRecord(
                    decl.qualified_name,
                    method.name,
                    "DUPLICATE_MEMBER",
                    "overload ignored; first declaration wins",
                )
            )
            continue

        supported, result_shape = resolve_result_shape(method.return_type)
        if not supported:
            skipped.append(
                SkipRecord(
                    decl.qualified_name,
                    method.name,
                    "UNSUPPORTED_RETURN",
                    f"return type {method.return_type} is not {ASYNC_RESULT_WRAPPER}",
                )
            )
            continue

        kept_names.add(method.name)
        members.append(
            MemberBinding(
                interface_member_name=method.name,
                wire_name=resolve_wire_name(method),
                return_type=method.return_type,
                result_shape=result_shape,
                parameters=method.parameters,
            )
        )

    return members, skipped


def extract_bindings(interfaces: list[InterfaceDecl]) -> ExtractionResult:
    """Apply interop eligibility rules to parsed interface declarations.

    Produces one ModuleBinding per eligible interface, in declaration order.
    Anything left out is reported as a SkipRecord instead of an error.
    """
    index = index_interfaces(interfaces)
    bindings: list[ModuleBinding] = []
    skipped: list[SkipRecord] = []

    for decl in interfaces:
        if not implements_marker(decl, index):
            skipped.append(
                SkipRecord(
                    decl.qualified_name,
                    None,
                    "NO_MARKER_INTERFACE",
                    f"does not implement {JS_INTEROP_MARKER}",
                )
            )
            continue

        module = find_attribute(decl.attributes, JS_MODULE_ATTRIBUTE)
        if module is None or module.argument is None:
            skipped.append(
                SkipRecord(
                    decl.qualified_name,
                    None,
                    "NO_MODULE_ATTRIBUTE",
                    "missing JsModule attribute or module path",
                )
            )
            continue

        members, member_skips = collect_members(decl)
        skipped.extend(member_skips)
        if not members:
            skipped.append(
                SkipRecord(
                    decl.qualified_name,
                    None,
                    "NO_ELIGIBLE_MEMBERS",
                    f"no ordinary {ASYNC_RESULT_WRAPPER} methods",
                )
            )
            continue

        bindings.append(
            ModuleBinding(
                module_path=module.argument,
                export_prefix=resolve_export_prefix(decl.attributes),
                members=tuple(members),
                source_interface_name=decl.name,
                containing_namespace=decl.namespace,
            )
        )

    return ExtractionResult(bindings=tuple(bindings), skipped=tuple(skipped))


class ExtractionError(Exception):
    def __init__(self, records: tuple[SkipRecord, ...]):
        super().__init__(f"{len(records)} interop member(s) rejected in strict mode")
        self.records = records


def enforce_strict(result: ExtractionResult) -> None:
    """Raise ExtractionError if any member was dropped for overloads or shape."""
    rejected = tuple(r for r in result.skipped if r.code in STRICT_SKIP_CODES)
    if rejected:
        raise ExtractionError(rejected)


# ===--- C# rendering helpers ---=== #


def csharp_string_literal(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def csharp_verbatim_literal(value: str) -> str:
    return '@"' + value.replace('"', '""') + '"'


def invocation_path(export_prefix: str, wire_name: str) -> str:
    if export_prefix.strip():
        return f"{export_prefix}.{wire_name}"
    return wire_name


def _indent(lines: list[str], level: int) -> list[str]:
    pad = _INDENT * level
    return [f"{pad}{line}" if line else "" for line in lines]


def _wrap_namespace(namespace: str, body: list[str]) -> list[str]:
    if not namespace:
        return body
    return [f"namespace {namespace}", "{", *_indent(body, 1), "}"]


def _file_preamble(usings: tuple[str, ...]) -> list[str]:
    lines = list(GENERATED_HEADER)
    lines.append("#nullable enable")
    lines.extend(f"using {u};" for u in usings)
    lines.append("")
    return lines


# ===--- Proxy compiler ---=== #


def render_member(binding: ModuleBinding, member: MemberBinding) -> list[str]:
    """Render one proxy method, unindented (class-body level is added later)."""
    signature_params = ", ".join(f"{p.type_name} {p.name}" for p in member.parameters)
    call_args = "".join(f", {p.name}" for p in member.parameters)
    path = csharp_string_literal(invocation_path(binding.export_prefix, member.wire_name))

    lines = [
        f"public async {member.return_type} {member.interface_member_name}({signature_params})",
        "{",
        f"{_INDENT}var module = await _module.Value;",
    ]
    if member.result_shape is not None:
        lines.append(
            f"{_INDENT}return await module.InvokeAsync<{member.result_shape}>({path}{call_args});"
        )
    else:
        lines.append(f"{_INDENT}await module.InvokeVoidAsync({path}{call_args});")
    lines.append("}")
    return lines


def render_proxy_class(binding: ModuleBinding) -> list[str]:
    name = binding.proxy_type_name
    module_path = csharp_verbatim_literal(binding.module_path)

    body: list[str] = [
        "private readonly IJSRuntime _jsRuntime;",
        "private readonly Lazy<Task<IJSObjectReference>> _module;",
        "",
        f"public {name}(IJSRuntime jsRuntime)",
        "{",
        f"{_INDENT}_jsRuntime = jsRuntime ?? throw new ArgumentNullException(nameof(jsRuntime));",
        f"{_INDENT}_module = new Lazy<Task<IJSObjectReference>>(",
        f"{_INDENT * 2}() => _jsRuntime.InvokeAsync<IJSObjectReference>(\"import\", {module_path}).AsTask(),",
        f"{_INDENT * 2}LazyThreadSafetyMode.ExecutionAndPublication);",
        "}",
        "",
    ]

    for member in binding.members:
        body.extend(render_member(binding, member))
        body.append("")

    body.extend(
        [
            "public async ValueTask DisposeAsync()",
            "{",
            f"{_INDENT}if (_module.IsValueCreated && _module.Value.IsCompletedSuccessfully)",
            f"{_INDENT}{{",
            f"{_INDENT * 2}try",
            f"{_INDENT * 2}{{",
            f"{_INDENT * 3}await _module.Value.Result.DisposeAsync();",
            f"{_INDENT * 2}}}",
            f"{_INDENT * 2}catch (JSDisconnectedException)",
            f"{_INDENT * 2}{{",
            f"{_INDENT * 3}// Circuit already gone; nothing left to release.",
            f"{_INDENT * 2}}}",
            f"{_INDENT}}}",
            "}",
        ]
    )

    return [
        f"internal sealed class {name} : {binding.qualified_interface_name}, IAsyncDisposable",
        "{",
        *_indent(body, 1),
        "}",
    ]


def render_proxy(binding: ModuleBinding) -> str:
    """Render the complete C# source of one proxy class.

    The proxy implements the source interface and IAsyncDisposable, lives in
    the interface's namespace, loads its module at most once per instance,
    and forwards every member to the module export at
    invocation_path(export_prefix, wire_name).

    Args:
        binding: Extracted binding with at least one member.

    Returns:
        Complete C# source string including trailing newline.

    Raises:
        ValueError: If binding has no members.
    """
    if not binding.members:
        raise ValueError(
            f"ModuleBinding for '{binding.source_interface_name}' has no members"
        )
    lines = _file_preamble(PROXY_USINGS)
    lines.extend(_wrap_namespace(binding.containing_namespace, render_proxy_class(binding)))
    return "\n".join(lines) + "\n"


# ===--- Registration compiler ---=== #


def collect_namespaces(bindings: list[ModuleBinding]) -> tuple[str, ...]:
    """Distinct interface namespaces in first-seen order, global omitted."""
    namespaces: list[str] = []
    for binding in bindings:
        ns = binding.containing_namespace
        if ns and ns not in namespaces:
            namespaces.append(ns)
    return tuple(namespaces)


def render_registration(bindings: list[ModuleBinding]) -> str:
    """Render the AddJsInterops() service-collection extension.

    One services.AddScoped<Interface, Proxy>() line per binding, in the
    order supplied, so each request scope gets a fresh proxy (and a fresh
    module load). The method returns the collection for chaining.

    Raises:
        ValueError: If bindings is empty. The registration artifact only
            exists alongside at least one proxy.
    """
    if not bindings:
        raise ValueError("Cannot render registration without any ModuleBinding")

    usings = REGISTRATION_USINGS + tuple(
        ns for ns in collect_namespaces(bindings) if ns not in REGISTRATION_USINGS
    )

    registrations = [
        f"services.AddScoped<{b.qualified_interface_name}, {b.qualified_proxy_name}>();"
        for b in bindings
    ]
    method = [
        f"public static IServiceCollection {REGISTRATION_METHOD}(this IServiceCollection services)",
        "{",
        *_indent(registrations, 1),
        f"{_INDENT}return services;",
        "}",
    ]
    klass = [
        f"public static class {REGISTRATION_CLASS}",
        "{",
        *_indent(method, 1),
        "}",
    ]

    lines = _file_preamble(usings)
    lines.extend(_wrap_namespace(REGISTRATION_NAMESPACE, klass))
    return "\n".join(lines) + "\n"


# ===--- Compile entry point ---=== #


@dataclass(frozen=True)
class GeneratedArtifact:
    """One named source text produced by compile_bindings.

    Attributes:
        name: Artifact file name, always ending in ".g.cs".
        source: Complete C# source including trailing newline.
    """

    name: str
    source: str


def proxy_artifact_name(binding: ModuleBinding) -> str:
    if binding.containing_namespace:
        return f"{binding.containing_namespace}.{binding.proxy_type_name}{ARTIFACT_SUFFIX}"
    return f"{binding.proxy_type_name}{ARTIFACT_SUFFIX}"


def compile_bindings(bindings: list[ModuleBinding]) -> tuple[GeneratedArtifact, ...]:
    """Compile ModuleBindings into proxy artifacts plus one registration artifact.

    Pure and deterministic: identical input yields byte-identical artifacts.
    Proxy artifacts come first in binding order; the registration artifact is
    last. No bindings means no artifacts at all.

    Raises:
        ValueError: If two bindings map to the same artifact name.
    """
    if not bindings:
        return ()

    artifacts: list[GeneratedArtifact] = []
    seen: set[str] = set()
    for binding in bindings:
        name = proxy_artifact_name(binding)
        if name in seen:
            raise ValueError(f"Duplicate proxy artifact name: {name}")
        seen.add(name)
        artifacts.append(GeneratedArtifact(name=name, source=render_proxy(binding)))

    artifacts.append(
        GeneratedArtifact(
            name=REGISTRATION_ARTIFACT, source=render_registration(list(bindings))
        )
    )
    return tuple(artifacts)


# ===--- Artifact writer ---=== #


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing a single generated file.

    Attributes:
        filename: Artifact name written, e.g. "Demo.UtilitiesInterop.g.cs".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


@dataclass(frozen=True)
class ArtifactWriteResult:
    output_dir: Path
    files: tuple[FileWriteResult, ...]

    @property
    def total_lines(self) -> int:
        return sum(f.line_count for f in self.files)


def write_artifact(output_dir: Path, artifact: GeneratedArtifact) -> FileWriteResult:
    """Write one artifact into output_dir, creating the directory if needed.

    Raises:
        ValueError: If the artifact name is empty, contains a path separator,
            or does not end with ".g.cs".
        OSError: Propagated directly if the filesystem write fails.
    """
    name = artifact.name
    if not name.endswith(ARTIFACT_SUFFIX) or "/" in name or "\\" in name:
        raise ValueError(
            f"artifact name must be a bare file name ending in "
            f"'{ARTIFACT_SUFFIX}', got {name!r}"
        )
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    file_path = output_dir / name
    file_path.write_text(artifact.source, encoding="utf-8")
    resolved = file_path.resolve()
    return FileWriteResult(
        filename=name,
        path=resolved,
        line_count=artifact.source.count("\n"),
        byte_count=len(resolved.read_bytes()),
    )


def write_artifacts(
    output_dir: Path, artifacts: tuple[GeneratedArtifact, ...]
) -> ArtifactWriteResult:
    """Write artifacts in order. Partial writes on failure are not rolled back."""
    files = tuple(write_artifact(output_dir, artifact) for artifact in artifacts)
    return ArtifactWriteResult(output_dir=Path(output_dir), files=files)


# ===--- Discovery commands ---=== #


@dataclass(frozen=True)
class InterfaceSummary:
    """One row of the --list-interfaces table."""

    qualified_name: str
    proxy_type_name: str
    module_path: str
    export_prefix: str
    member_count: int


@dataclass(frozen=True)
class InterfaceDetail:
    """Full --info output for one interface.

    binding is None when the interface was declared but not generated; the
    reasons are then in skipped.
    """

    interface_name: str
    binding: ModuleBinding | None
    skipped: tuple[SkipRecord, ...]


def _display_name(binding: ModuleBinding) -> str:
    if binding.containing_namespace:
        return f"{binding.containing_namespace}.{binding.source_interface_name}"
    return binding.source_interface_name


def gather_interface_summaries(result: ExtractionResult) -> list[InterfaceSummary]:
    return [
        InterfaceSummary(
            qualified_name=_display_name(b),
            proxy_type_name=b.proxy_type_name,
            module_path=b.module_path,
            export_prefix=b.export_prefix,
            member_count=len(b.members),
        )
        for b in result.bindings
    ]


def filter_interfaces_by_text(
    summaries: list[InterfaceSummary], text: str
) -> list[InterfaceSummary]:
    needle = text.lower()
    return [
        s
        for s in summaries
        if needle in s.qualified_name.lower() or needle in s.module_path.lower()
    ]


def gather_interface_detail(
    interfaces: list[InterfaceDecl], result: ExtractionResult, name: str
) -> InterfaceDetail | None:
    """Look up one interface by simple or namespace-qualified name.

    Returns None if no interface with that name is declared at all.
    """
    wanted = _normalize_type_ref(name)
    decl = next(
        (d for d in interfaces if wanted in (d.qualified_name, d.name)), None
    )
    if decl is None:
        return None
    binding = next(
        (
            b
            for b in result.bindings
            if b.source_interface_name == decl.name
            and b.containing_namespace == decl.namespace
        ),
        None,
    )
    skipped = tuple(r for r in result.skipped if r.interface_name == decl.qualified_name)
    return InterfaceDetail(
        interface_name=decl.qualified_name, binding=binding, skipped=skipped
    )


def format_interfaces_table(summaries: list[InterfaceSummary], source_label: str) -> str:
    """Return the complete --list-interfaces output as a single string.

    Output format:

        2 JS interop interfaces in interop.xml:

          Demo.Interop.IUtilitiesInterop  ./js/utilities.js  Utilities  2 methods
          Demo.IFocus                     ./js/focus.js      default    1 method
    """
    lines = [f"{len(summaries)} JS interop interfaces in {source_label}:", ""]

    if not summaries:
        lines.append("")
        return "\n".join(lines)

    name_width = max(len(s.qualified_name) for s in summaries)
    path_width = max(len(s.module_path) for s in summaries)
    prefix_width = max(len(s.export_prefix) for s in summaries)

    for s in summaries:
        noun = "method" if s.member_count == 1 else "methods"
        columns = [s.qualified_name.ljust(name_width), s.module_path.ljust(path_width)]
        if prefix_width:
            columns.append(s.export_prefix.ljust(prefix_width))
        columns.append(f"{s.member_count} {noun}")
        lines.append("  " + "  ".join(columns))

    lines.append("")
    return "\n".join(lines)


def format_interface_detail(detail: InterfaceDetail) -> str:
    lines: list[str] = []
    binding = detail.binding
    if binding is None:
        lines.append(f"{detail.interface_name} (not generated)")
    else:
        lines.append(f"{detail.interface_name} -> {binding.proxy_type_name}")
        lines.append(f"  Module:   {binding.module_path}")
        lines.append(f"  Export:   {binding.export_prefix or '(top level)'}")
        lines.append("")
        lines.append(f"  Methods ({len(binding.members)}):")
        name_width = max(len(m.interface_member_name) for m in binding.members)
        for member in binding.members:
            path = invocation_path(binding.export_prefix, member.wire_name)
            shape = member.result_shape if member.result_shape is not None else "void"
            lines.append(
                f"    {member.interface_member_name.ljust(name_width)}  {path} -> {shape}"
            )

    if detail.skipped:
        lines.append("")
        lines.append(f"  Skipped ({len(detail.skipped)}):")
        for record in detail.skipped:
            lines.append(f"    {record.subject}  {record.code}  {record.message}")

    lines.append("")
    return "\n".join(lines)


def run_discovery(config: DiscoveryConfig) -> None:
    """Execute the discovery command specified in config.

    Read-only: nothing is written to the output directory.

    Raises:
        SystemExit(1): When config.command == "info" and the interface is not
            declared in the document.
    """
    root = load_interop_document(config.interop_xml)
    interfaces = parse_interop_document(root)
    result = extract_bindings(interfaces)
    source_label = config.interop_xml.name

    if config.command == "list-interfaces":
        summaries = gather_interface_summaries(result)
        if config.filter_text is not None:
            summaries = filter_interfaces_by_text(summaries, config.filter_text)
        print(format_interfaces_table(summaries, source_label), end="")

    elif config.command == "info":
        assert config.info_interface is not None
        detail = gather_interface_detail(interfaces, result, config.info_interface)
        if detail is None:
            print(
                f"Error: interface '{config.info_interface}' not found in {source_label}",
                file=sys.stderr,
            )
            raise SystemExit(1)
        print(format_interface_detail(detail), end="")


# ===--- Pipeline ---=== #


def run_generate(config: GenerateConfig) -> tuple[ExtractionResult, ArtifactWriteResult]:
    """Execute parse -> extract -> compile -> write for a GenerateConfig.

    When no interface is eligible nothing is written and the output
    directory is left untouched.

    Raises:
        OSError: interop.xml not readable or filesystem write failure.
        ET.ParseError: Malformed XML.
        DocumentError: XML is not a valid interop document.
        ExtractionError: Strict mode and at least one member was rejected.
    """
    print(f"Parsing: {config.interop_xml}")
    root = load_interop_document(config.interop_xml)
    interfaces = parse_interop_document(root)
    print(f"  Declared: {len(interfaces)} interfaces")

    result = extract_bindings(interfaces)
    print(
        f"  Extracted: {len(result.bindings)} bindings, "
        f"{result.member_count} methods, {len(result.skipped)} skipped"
    )
    if config.strict:
        enforce_strict(result)

    artifacts = compile_bindings(list(result.bindings))
    if not artifacts:
        return result, ArtifactWriteResult(output_dir=config.output_dir, files=())

    written = write_artifacts(config.output_dir, artifacts)
    print(
        f"  Written: {len(written.files)} files, "
        f"{written.total_lines} lines to {written.output_dir}"
    )
    return result, written


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class GenerationSummary:
    """Data for the post-generation console report.

    Attributes:
        source_label: interop.xml file name.
        output_dir: Output directory path as string.
        interface_count: Number of proxies generated.
        member_count: Total proxy methods across all proxies.
        skipped: Every SkipRecord from extraction, in extraction order.
        files: Ordered write results; empty when nothing was generated.
    """

    source_label: str
    output_dir: str
    interface_count: int
    member_count: int
    skipped: tuple[SkipRecord, ...]
    files: tuple[FileWriteResult, ...]


def build_generation_summary(
    source_label: str, result: ExtractionResult, written: ArtifactWriteResult
) -> GenerationSummary:
    return GenerationSummary(
        source_label=source_label,
        output_dir=str(written.output_dir),
        interface_count=len(result.bindings),
        member_count=result.member_count,
        skipped=result.skipped,
        files=written.files,
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render a GenerationSummary as a multi-section console string.

    The Skipped section appears only when something was skipped; counts per
    skip code are listed before the individual records.
    """
    lines: list[str] = []
    if summary.interface_count == 0:
        lines.append(
            f"No JS interop interfaces found in {summary.source_label}; nothing written."
        )
    else:
        lines.append("JS interop proxies generated:")
        lines.append("")
        lines.append(f"  Source:     {summary.source_label}")
        lines.append(f"  Output:     {summary.output_dir}")
        lines.append("")
        lines.append(f"  Interfaces: {summary.interface_count:>6}")
        lines.append(f"  Methods:    {summary.member_count:>6}")

    if summary.skipped:
        counts = Counter(r.code for r in summary.skipped)
        lines.append("")
        lines.append(f"  Skipped ({len(summary.skipped)}):")
        for code in SKIP_CODES:
            if counts[code]:
                lines.append(f"    {code:<22}{counts[code]:>4}")
        subject_width = max(len(r.subject) for r in summary.skipped)
        for record in summary.skipped:
            lines.append(f"    {record.subject.ljust(subject_width)}  {record.message}")

    if summary.files:
        lines.append("")
        lines.append("  Files written:")
        for file_result in summary.files:
            line_str = f"{file_result.line_count:>6,} lines"
            lines.append(f"    {file_result.filename:<44} {line_str}")
        total_lines = sum(f.line_count for f in summary.files)
        lines.append("")
        lines.append(
            f"  Total: {total_lines:,} lines across {len(summary.files)} files"
        )

    lines.append("")
    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    print(format_generation_summary(summary), end="")


# ===--- Main generation ---=== #


def main(argv: list[str] | None = None):
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}")
        if err.suggestion:
            print(f"Hint: {err.suggestion}")
        raise SystemExit(1) from err

    try:
        if isinstance(config, DiscoveryConfig):
            run_discovery(config)
            return
        result, written = run_generate(config)
    except ExtractionError as err:
        print(f"Error: {err}")
        for record in err.records:
            print(f"  {record.subject}: {record.code} ({record.message})")
        raise SystemExit(1) from err
    except (OSError, ET.ParseError, DocumentError) as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except ValueError as err:
        print(f"Internal error: {err}")
        raise SystemExit(1) from err

    print_generation_summary(
        build_generation_summary(config.interop_xml.name, result, written)
    )


if __name__ == "__main__":
    main()
