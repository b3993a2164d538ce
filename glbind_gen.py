"""OpenGL header generator.

Generates a self-contained C header of feature/extension guards, enum defines
and function-pointer typedefs from the Khronos gl.xml, wgl.xml and glx.xml
registries. The generated code replaces the `/*<<opengl_main>>*/` marker in
the header template.

Usage:
    python glbind_gen.py --xml resources/gl.xml --xml resources/wgl.xml \
        --xml resources/glx.xml --output glbind.h
"""

import argparse
import enum
import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import NamedTuple

PROJECT_ROOT = Path(__file__).parent
DEFAULT_XML_PATHS = (
    PROJECT_ROOT / "resources" / "gl.xml",
    PROJECT_ROOT / "resources" / "wgl.xml",
    PROJECT_ROOT / "resources" / "glx.xml",
)
DEFAULT_TEMPLATE = PROJECT_ROOT / "templates" / "glbind_template.h"
DEFAULT_OUTPUT = PROJECT_ROOT / "glbind.h"

MAX_DOCUMENT_BYTES = 2**31 - 1


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    xml_paths: tuple[Path, ...]
    template: Path
    output: Path


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str
    xml_paths: tuple[Path, ...]
    filter_text: str | None
    api: str | None


VALID_ERROR_CODES = {
    "PATH_NOT_FOUND",
    "FILTER_WITHOUT_LIST",
    "API_WITHOUT_LIST",
}


class ConfigError(Exception):
    """Invalid command-line configuration.

    `stage` selects the exit code: "config" for bad flag combinations, or the
    pipeline stage whose input is missing ("load" for registries, "template"
    for the header template).
    """

    def __init__(
        self,
        code: str,
        message: str,
        suggestion: str | None = None,
        stage: str = "config",
    ):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.stage = stage


def validate_path_exists(
    path: Path | None,
    flag: str,
    suggestion: str | None = None,
    stage: str = "config",
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
            stage,
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this flag.",
        stage,
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate an OpenGL header from the Khronos registries"
    )

    parser.add_argument("--xml", type=Path, action="append", default=None)
    parser.add_argument("--template", type=Path, default=DEFAULT_TEMPLATE)
    parser.add_argument("--output", type=Path, default=DEFAULT_OUTPUT)

    discovery_group = parser.add_mutually_exclusive_group()
    discovery_group.add_argument("--list-features", action="store_true", default=False)
    discovery_group.add_argument(
        "--list-extensions", action="store_true", default=False
    )

    parser.add_argument("--filter", type=str, default=None)
    parser.add_argument("--api", type=str, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


_XML_SUGGESTION = (
    "Download the Khronos registries into resources/:\n"
    "  https://github.com/KhronosGroup/OpenGL-Registry/tree/main/xml\n"
    "Or pass custom paths: --xml /path/to/gl.xml --xml /path/to/wgl.xml"
)


def validate_config(args: argparse.Namespace) -> GenerateConfig | DiscoveryConfig:
    if args.filter is not None and not args.list_extensions:
        raise ConfigError(
            "FILTER_WITHOUT_LIST",
            "--filter requires --list-extensions.",
            "Add --list-extensions or remove --filter.",
        )
    if args.api is not None and not args.list_features:
        raise ConfigError(
            "API_WITHOUT_LIST",
            "--api requires --list-features.",
            "Add --list-features or remove --api.",
        )

    raw_paths = args.xml if args.xml else list(DEFAULT_XML_PATHS)
    xml_paths = tuple(
        validate_path_exists(path, "--xml", _XML_SUGGESTION, "load")
        for path in raw_paths
    )

    if args.list_features or args.list_extensions:
        command = "list-features" if args.list_features else "list-extensions"
        return DiscoveryConfig(
            command=command,
            xml_paths=xml_paths,
            filter_text=args.filter,
            api=args.api,
        )

    template = validate_path_exists(args.template, "--template", stage="template")
    return GenerateConfig(
        xml_paths=xml_paths,
        template=template,
        output=args.output,
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))


# ===--- Generator errors ---=== #

VALID_GENERATOR_ERROR_CODES = {
    "INVALID_ARGUMENTS",
    "PARSE_FAILURE",
    "IO_FAILURE",
    "OUT_OF_MEMORY",
    "REFERENCE_NOT_FOUND",
    "FILE_TOO_LARGE",
}

EXIT_CODES: dict[str, int] = {
    "config": 1,
    "load": 2,
    "parse": 3,
    "resolve": 4,
    "emit": 5,
    "template": 6,
    "write": 7,
}
"""Process exit code per pipeline stage. Zero is reserved for success."""


class GeneratorError(Exception):
    """A pipeline failure that aborts the whole run.

    Attributes:
        code: One of VALID_GENERATOR_ERROR_CODES.
        message: Human-readable diagnostic naming the document or reference.
        stage: Pipeline stage that failed; selects the exit code.
        suggestion: Optional hint printed after the message.
    """

    def __init__(
        self,
        code: str,
        message: str,
        stage: str,
        suggestion: str | None = None,
    ):
        if code not in VALID_GENERATOR_ERROR_CODES:
            raise ValueError(f"Unknown generator error code: {code}")
        if stage not in EXIT_CODES:
            raise ValueError(f"Unknown pipeline stage: {stage}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.stage = stage
        self.suggestion = suggestion

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.stage]


# ===--- Constants ---=== #

REGISTRY_ROOT_TAG = "registry"
APIENTRY_TOKEN = "APIENTRY"
FUNCPTR_MACRO = "APIENTRYP"
KHRPLATFORM_TYPE = "khrplatform"

WGL_GUARD = "GLBIND_WGL"
GLX_GUARD = "GLBIND_GLX"

MAIN_MARKER = "/*<<opengl_main>>*/"


# ===--- Document adapter ---=== #


def attr(element: ET.Element, name: str) -> str:
    """Return an attribute value, or "" when the attribute is absent."""
    return element.get(name) or ""


def child_elements(element: ET.Element) -> Iterator[ET.Element]:
    """Yield element children in document order, skipping comments."""
    for child in element:
        if not isinstance(child.tag, str):
            continue
        if child.tag == "comment":
            continue
        yield child


def element_text(element: ET.Element) -> str:
    return "".join(element.itertext())


# ===--- Registry model ---=== #


@dataclass(frozen=True)
class TypeDef:
    name: str
    native_code: str
    requires: str = ""


@dataclass(frozen=True)
class EnumDef:
    name: str
    value: str = ""
    type: str = ""


@dataclass(frozen=True)
class EnumGroup:
    name: str
    enums: tuple[EnumDef, ...] = ()


@dataclass(frozen=True)
class EnumsBlock:
    name: str = ""
    namespace: str = ""
    group: str = ""
    vendor: str = ""
    type: str = ""
    range_start: str = ""
    range_end: str = ""
    enums: tuple[EnumDef, ...] = ()


@dataclass(frozen=True)
class CommandParam:
    semantic_type: str
    full_type_text: str
    name: str
    group: str = ""


@dataclass(frozen=True)
class CommandDef:
    return_semantic_type: str
    return_full_type_text: str
    name: str
    params: tuple[CommandParam, ...] = ()
    alias: str = ""


@dataclass(frozen=True)
class CommandsBlock:
    namespace: str = ""
    commands: tuple[CommandDef, ...] = ()


@dataclass(frozen=True)
class Require:
    types: tuple[str, ...] = ()
    enums: tuple[str, ...] = ()
    commands: tuple[str, ...] = ()


@dataclass(frozen=True)
class Feature:
    api: str
    name: str
    version_number: str = ""
    requires: tuple[Require, ...] = ()


@dataclass(frozen=True)
class Extension:
    name: str
    supported_apis: str = ""
    requires: tuple[Require, ...] = ()


@dataclass(frozen=True)
class Registry:
    """All declarations from every loaded registry document, in load order.

    Built once per run by merging per-document registries. Later documents'
    declarations are appended, never merged by name; lookups see the first
    occurrence (see ReferenceResolver).
    """

    types: tuple[TypeDef, ...] = ()
    groups: tuple[EnumGroup, ...] = ()
    enums: tuple[EnumsBlock, ...] = ()
    commands: tuple[CommandsBlock, ...] = ()
    features: tuple[Feature, ...] = ()
    extensions: tuple[Extension, ...] = ()

    @classmethod
    def merged(cls, documents: "Iterable[Registry]") -> "Registry":
        """Fold per-document registries into one, preserving document order."""
        types: list[TypeDef] = []
        groups: list[EnumGroup] = []
        enums: list[EnumsBlock] = []
        commands: list[CommandsBlock] = []
        features: list[Feature] = []
        extensions: list[Extension] = []
        for doc in documents:
            types.extend(doc.types)
            groups.extend(doc.groups)
            enums.extend(doc.enums)
            commands.extend(doc.commands)
            features.extend(doc.features)
            extensions.extend(doc.extensions)
        return cls(
            types=tuple(types),
            groups=tuple(groups),
            enums=tuple(enums),
            commands=tuple(commands),
            features=tuple(features),
            extensions=tuple(extensions),
        )


# ===--- Registry loader ---=== #


class SectionKind(enum.Enum):
    TYPES = "types"
    GROUPS = "groups"
    ENUMS = "enums"
    COMMANDS = "commands"
    FEATURE = "feature"
    EXTENSIONS = "extensions"
    UNKNOWN = ""


def decode_section(element: ET.Element) -> SectionKind:
    try:
        return SectionKind(element.tag)
    except ValueError:
        return SectionKind.UNKNOWN


class TypeNamePair(NamedTuple):
    semantic_type: str
    full_type_text: str
    name: str


def parse_type_name_pair(element: ET.Element) -> TypeNamePair:
    """Split a `<proto>` or `<param>` element into its type and declared name.

    Everything before the `<name>` child is the C type text, taken verbatim
    (bare text plus the text of nested elements) and trimmed at both ends.
    The first `<type>`/`<ptype>` child names the semantic type. Comments add
    only the text that follows them.

    Example:
        <param>const <ptype>GLuint</ptype> *<name>ids</name></param>
        -> TypeNamePair("GLuint", "const GLuint *", "ids")
    """
    semantic_type = ""
    name = ""
    parts = [element.text or ""]
    for child in element:
        if not isinstance(child.tag, str) or child.tag == "comment":
            parts.append(child.tail or "")
            continue
        if child.tag == "name":
            name = element_text(child)
            break
        text = element_text(child)
        parts.append(text)
        if child.tag in ("type", "ptype") and not semantic_type:
            semantic_type = text
        parts.append(child.tail or "")
    return TypeNamePair(semantic_type, "".join(parts).strip(), name)


def parse_type(element: ET.Element) -> TypeDef:
    """Build a TypeDef from one `<types>` child.

    The native code is the element's inner text with `<name>` expanded to the
    type name and `<apientry/>` expanded to the calling-convention token.
    """
    name = attr(element, "name")
    parts = [element.text or ""]
    for child in element:
        if not isinstance(child.tag, str):
            parts.append(child.tail or "")
            continue
        if child.tag == "name":
            name = element_text(child)
            parts.append(name)
        elif child.tag == "apientry":
            parts.append(APIENTRY_TOKEN)
        else:
            parts.append(element_text(child))
        parts.append(child.tail or "")
    return TypeDef(
        name=name,
        native_code="".join(parts),
        requires=attr(element, "requires"),
    )


def parse_types(element: ET.Element) -> list[TypeDef]:
    return [parse_type(child) for child in child_elements(element)]


def parse_enum(element: ET.Element) -> EnumDef:
    return EnumDef(
        name=attr(element, "name"),
        value=attr(element, "value"),
        type=attr(element, "type"),
    )


def _parse_enum_children(element: ET.Element) -> tuple[EnumDef, ...]:
    return tuple(
        parse_enum(child) for child in child_elements(element) if child.tag == "enum"
    )


def parse_group(element: ET.Element) -> EnumGroup:
    return EnumGroup(name=attr(element, "name"), enums=_parse_enum_children(element))


def parse_groups(element: ET.Element) -> list[EnumGroup]:
    return [
        parse_group(child) for child in child_elements(element) if child.tag == "group"
    ]


def parse_enums_block(element: ET.Element) -> EnumsBlock:
    return EnumsBlock(
        name=attr(element, "name"),
        namespace=attr(element, "namespace"),
        group=attr(element, "group"),
        vendor=attr(element, "vendor"),
        type=attr(element, "type"),
        range_start=attr(element, "start"),
        range_end=attr(element, "end"),
        enums=_parse_enum_children(element),
    )


def parse_command(element: ET.Element) -> CommandDef:
    ret = TypeNamePair("", "", "")
    params: list[CommandParam] = []
    alias = ""
    for child in child_elements(element):
        if child.tag == "proto":
            ret = parse_type_name_pair(child)
        elif child.tag == "param":
            pair = parse_type_name_pair(child)
            params.append(
                CommandParam(
                    semantic_type=pair.semantic_type,
                    full_type_text=pair.full_type_text,
                    name=pair.name,
                    group=attr(child, "group"),
                )
            )
        elif child.tag == "alias":
            alias = attr(child, "name")
    return CommandDef(
        return_semantic_type=ret.semantic_type,
        return_full_type_text=ret.full_type_text,
        name=ret.name,
        params=tuple(params),
        alias=alias,
    )


def parse_commands_block(element: ET.Element) -> CommandsBlock:
    return CommandsBlock(
        namespace=attr(element, "namespace"),
        commands=tuple(
            parse_command(child)
            for child in child_elements(element)
            if child.tag == "command"
        ),
    )


def parse_require(element: ET.Element) -> Require:
    types: list[str] = []
    enums: list[str] = []
    commands: list[str] = []
    for child in child_elements(element):
        if child.tag == "type":
            types.append(attr(child, "name"))
        elif child.tag == "enum":
            enums.append(attr(child, "name"))
        elif child.tag == "command":
            commands.append(attr(child, "name"))
    return Require(types=tuple(types), enums=tuple(enums), commands=tuple(commands))


def _parse_requires(element: ET.Element) -> tuple[Require, ...]:
    return tuple(
        parse_require(child)
        for child in child_elements(element)
        if child.tag == "require"
    )


def parse_feature(element: ET.Element) -> Feature:
    return Feature(
        api=attr(element, "api"),
        name=attr(element, "name"),
        version_number=attr(element, "number"),
        requires=_parse_requires(element),
    )


def parse_extension(element: ET.Element) -> Extension:
    return Extension(
        name=attr(element, "name"),
        supported_apis=attr(element, "supported"),
        requires=_parse_requires(element),
    )


def parse_extensions(element: ET.Element) -> list[Extension]:
    return [
        parse_extension(child)
        for child in child_elements(element)
        if child.tag == "extension"
    ]


def load_registry_document(
    root: ET.Element | None, source: str = "<memory>"
) -> Registry:
    """Build a Registry from one parsed registry document.

    Top-level children are decoded into a SectionKind and dispatched; unknown
    sections are ignored. References between declarations are not resolved
    here, only at emission time.

    Args:
        root: Root element of the parsed document.
        source: Document name used in diagnostics.

    Returns:
        Registry holding only this document's declarations.

    Raises:
        GeneratorError: PARSE_FAILURE when the root is missing or is not
            `<registry>`.
    """
    if root is None:
        raise GeneratorError(
            "PARSE_FAILURE", f"Failed to retrieve root node of {source}.", "parse"
        )
    if root.tag != REGISTRY_ROOT_TAG:
        raise GeneratorError(
            "PARSE_FAILURE",
            f'Unexpected root node in {source}. Expecting "{REGISTRY_ROOT_TAG}", '
            f'but got "{root.tag}".',
            "parse",
        )

    types: list[TypeDef] = []
    groups: list[EnumGroup] = []
    enums: list[EnumsBlock] = []
    commands: list[CommandsBlock] = []
    features: list[Feature] = []
    extensions: list[Extension] = []

    for child in child_elements(root):
        kind = decode_section(child)
        if kind is SectionKind.TYPES:
            types.extend(parse_types(child))
        elif kind is SectionKind.GROUPS:
            groups.extend(parse_groups(child))
        elif kind is SectionKind.ENUMS:
            enums.append(parse_enums_block(child))
        elif kind is SectionKind.COMMANDS:
            commands.append(parse_commands_block(child))
        elif kind is SectionKind.FEATURE:
            features.append(parse_feature(child))
        elif kind is SectionKind.EXTENSIONS:
            extensions.extend(parse_extensions(child))

    return Registry(
        types=tuple(types),
        groups=tuple(groups),
        enums=tuple(enums),
        commands=tuple(commands),
        features=tuple(features),
        extensions=tuple(extensions),
    )


def read_document(path: Path) -> bytes:
    """Read a whole input file into memory.

    Raises:
        GeneratorError: FILE_TOO_LARGE, IO_FAILURE or OUT_OF_MEMORY, stage
            "load".
    """
    path = Path(path)
    try:
        size = path.stat().st_size
        if size > MAX_DOCUMENT_BYTES:
            raise GeneratorError(
                "FILE_TOO_LARGE",
                f"{path} is {size} bytes; the limit is {MAX_DOCUMENT_BYTES}.",
                "load",
            )
        data = path.read_bytes()
    except OSError as err:
        raise GeneratorError(
            "IO_FAILURE", f"Failed to read {path}: {err}", "load"
        ) from err
    except MemoryError as err:
        raise GeneratorError(
            "OUT_OF_MEMORY", f"Out of memory while reading {path}.", "load"
        ) from err
    if len(data) != size:
        raise GeneratorError(
            "IO_FAILURE",
            f"Short read on {path}: expected {size} bytes, got {len(data)}.",
            "load",
        )
    return data


def parse_document(data: bytes, source: str = "<memory>") -> ET.Element:
    """Parse raw document bytes into an element tree root.

    Raises:
        GeneratorError: PARSE_FAILURE, stage "parse".
    """
    if not data.strip():
        raise GeneratorError(
            "PARSE_FAILURE", f"Failed to parse {source}: document is empty.", "parse"
        )
    try:
        return ET.fromstring(data)
    except ET.ParseError as err:
        raise GeneratorError(
            "PARSE_FAILURE", f"Failed to parse {source}: {err}", "parse"
        ) from err


def load_registry(paths: list[Path] | tuple[Path, ...]) -> Registry:
    """Load every registry document in order and merge them into one Registry."""
    if not paths:
        raise GeneratorError(
            "INVALID_ARGUMENTS", "At least one registry document is required.", "load"
        )
    documents: list[Registry] = []
    for path in paths:
        print(f"Parsing: {path}")
        root = parse_document(read_document(path), str(path))
        doc = load_registry_document(root, str(path))
        print(
            f"  {len(doc.types)} types, {len(doc.enums)} enum blocks, "
            f"{sum(len(b.commands) for b in doc.commands)} commands, "
            f"{len(doc.features)} features, {len(doc.extensions)} extensions"
        )
        documents.append(doc)
    return Registry.merged(documents)


# ===--- Reference resolution ---=== #


class ReferenceResolver:
    """Name lookups over a merged Registry.

    Indexes are built once; when a name is declared more than once the first
    declaration in registry order wins.
    """

    def __init__(self, registry: Registry):
        self._types: dict[str, TypeDef] = {}
        for type_def in registry.types:
            self._types.setdefault(type_def.name, type_def)

        self._enums: dict[str, EnumDef] = {}
        for block in registry.enums:
            for enum_def in block.enums:
                self._enums.setdefault(enum_def.name, enum_def)

        self._commands: dict[str, CommandDef] = {}
        for block in registry.commands:
            for command in block.commands:
                self._commands.setdefault(command.name, command)

    def has_type(self, name: str) -> bool:
        return name in self._types

    def find_type(self, name: str) -> TypeDef:
        try:
            return self._types[name]
        except KeyError:
            raise _reference_not_found("type", name) from None

    def find_enum(self, name: str) -> EnumDef:
        try:
            return self._enums[name]
        except KeyError:
            raise _reference_not_found("enum", name) from None

    def find_command(self, name: str) -> CommandDef:
        try:
            return self._commands[name]
        except KeyError:
            raise _reference_not_found("command", name) from None


def _reference_not_found(kind: str, name: str) -> GeneratorError:
    return GeneratorError(
        "REFERENCE_NOT_FOUND",
        f"Required {kind} '{name}' is not declared in any loaded registry.",
        "resolve",
        "Check that every registry document (gl.xml, wgl.xml, glx.xml) is passed "
        "with --xml and that they come from the same registry revision.",
    )


# ===--- Code emission ---=== #


@dataclass
class EmissionLedger:
    """Run-scoped record of what has already been written.

    `types` is the deduplication set: a type name is written at most once, at
    its first reference. The counters only feed the generation summary.
    """

    types: list[str] = field(default_factory=list)
    enum_count: int = 0
    command_count: int = 0
    blocks: list[str] = field(default_factory=list)
    _seen: set[str] = field(default_factory=set, repr=False)

    def __contains__(self, name: object) -> bool:
        return name in self._seen

    def mark(self, name: str) -> None:
        if name not in self._seen:
            self._seen.add(name)
            self.types.append(name)


def upper_ascii(text: str) -> str:
    return "".join(chr(ord(c) - 32) if "a" <= c <= "z" else c for c in text)


def emit_type(
    name: str,
    resolver: ReferenceResolver,
    ledger: EmissionLedger,
    out: list[str],
) -> None:
    if name == KHRPLATFORM_TYPE:
        return
    if name in ledger:
        return
    type_def = resolver.find_type(name)
    if type_def.native_code:
        out.append(type_def.native_code)
    ledger.mark(name)


def emit_require_types(
    require: Require,
    resolver: ReferenceResolver,
    ledger: EmissionLedger,
    out: list[str],
) -> None:
    """Write the types a Require needs, directly or through its commands.

    Directly named types must resolve. Types reached through a command's
    return or parameter type are written only when declared; undeclared ones
    are spelled inline in the typedef (e.g. `struct _cl_context`).
    """
    for name in require.types:
        emit_type(name, resolver, ledger, out)

    for command_name in require.commands:
        command = resolver.find_command(command_name)
        dependencies = [command.return_semantic_type]
        dependencies.extend(param.semantic_type for param in command.params)
        for dep in dependencies:
            if dep and resolver.has_type(dep):
                emit_type(dep, resolver, ledger, out)


def emit_require_enums(
    require: Require,
    resolver: ReferenceResolver,
    ledger: EmissionLedger,
    out: list[str],
) -> None:
    for name in require.enums:
        enum_def = resolver.find_enum(name)
        out.append(f"#define {enum_def.name} {enum_def.value}")
        ledger.enum_count += 1


def format_command_typedef(command: CommandDef) -> str:
    """Return the function-pointer typedef line for one command.

    Example:
        typedef void (APIENTRYP PFNGLCLEARPROC)(GLbitfield mask);

    A command without parameters gets `(void)` so the typedef is a prototype
    in C as well as C++.
    """
    if command.params:
        params = ", ".join(
            f"{param.full_type_text} {param.name}" for param in command.params
        )
    else:
        params = "void"
    proc_name = f"PFN{upper_ascii(command.name)}PROC"
    return (
        f"typedef {command.return_full_type_text} "
        f"({FUNCPTR_MACRO} {proc_name})({params});"
    )


def emit_require_commands(
    require: Require,
    resolver: ReferenceResolver,
    ledger: EmissionLedger,
    out: list[str],
) -> None:
    for name in require.commands:
        out.append(format_command_typedef(resolver.find_command(name)))
        ledger.command_count += 1


def emit_block(
    name: str,
    requires: tuple[Require, ...],
    resolver: ReferenceResolver,
    ledger: EmissionLedger,
) -> list[str]:
    """Return the guarded declarations for one Feature or Extension.

    All Requires' types come first, then all enums, then all commands.
    """
    out = [f"#ifndef {name}", f"#define {name} 1"]
    for require in requires:
        emit_require_types(require, resolver, ledger, out)
    for require in requires:
        emit_require_enums(require, resolver, ledger, out)
    for require in requires:
        emit_require_commands(require, resolver, ledger, out)
    out.append(f"#endif /* {name} */")
    ledger.blocks.append(name)
    return out


def emit_features_by_api(
    registry: Registry,
    api: str,
    resolver: ReferenceResolver,
    ledger: EmissionLedger,
) -> list[str]:
    lines: list[str] = []
    for feature in registry.features:
        if feature.api != api:
            continue
        if lines:
            lines.append("")
        lines.extend(emit_block(feature.name, feature.requires, resolver, ledger))
    return lines


def is_gl_extension(supported_apis: str) -> bool:
    return (
        supported_apis == "gl"
        or "gl|" in supported_apis
        or "glcore" in supported_apis
    )


def is_wgl_extension(supported_apis: str) -> bool:
    return "wgl" in supported_apis


def is_glx_extension(supported_apis: str) -> bool:
    return "glx" in supported_apis


def emit_extensions(
    registry: Registry,
    predicate: Callable[[str], bool],
    resolver: ReferenceResolver,
    ledger: EmissionLedger,
) -> list[str]:
    lines: list[str] = []
    for extension in registry.extensions:
        if not predicate(extension.supported_apis):
            continue
        if lines:
            lines.append("")
        lines.extend(emit_block(extension.name, extension.requires, resolver, ledger))
    return lines


def _platform_block(guard: str, body: list[str]) -> list[str]:
    return ["", f"#if defined({guard})", *body, f"#endif /* {guard} */"]


def generate_main_code(registry: Registry, ledger: EmissionLedger | None = None) -> str:
    """Generate the declarations that replace the main template marker.

    Order: gl features, wgl features, glx features, gl/glcore extensions,
    wgl extensions, glx extensions. The wgl and glx groups are wrapped in
    their platform conditionals. The ledger is shared by all groups, so a
    type is written under the first feature or extension that needs it.

    Args:
        registry: Merged registry of all loaded documents.
        ledger: Emission ledger for this run. A fresh one is used when None.

    Returns:
        Generated C text ending in a newline.

    Raises:
        GeneratorError: REFERENCE_NOT_FOUND when a Require names an undeclared
            type, enum or command.
    """
    if ledger is None:
        ledger = EmissionLedger()
    resolver = ReferenceResolver(registry)

    lines: list[str] = []
    lines.extend(emit_features_by_api(registry, "gl", resolver, ledger))
    lines.extend(
        _platform_block(
            WGL_GUARD, emit_features_by_api(registry, "wgl", resolver, ledger)
        )
    )
    lines.extend(
        _platform_block(
            GLX_GUARD, emit_features_by_api(registry, "glx", resolver, ledger)
        )
    )
    lines.extend(emit_extensions(registry, is_gl_extension, resolver, ledger))
    lines.extend(
        _platform_block(
            WGL_GUARD, emit_extensions(registry, is_wgl_extension, resolver, ledger)
        )
    )
    lines.extend(
        _platform_block(
            GLX_GUARD, emit_extensions(registry, is_glx_extension, resolver, ledger)
        )
    )
    return "\n".join(lines) + "\n"


# ===--- Output assembly ---=== #

MARKER_GENERATORS: dict[str, Callable[[Registry, EmissionLedger], str]] = {
    MAIN_MARKER: generate_main_code,
}
"""Template markers and the generator producing each replacement.

Every generator runs on every build; a marker missing from the template is a
no-op substitution."""


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing the generated header.

    Attributes:
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    path: Path
    line_count: int
    byte_count: int


def read_template(path: Path) -> str:
    """Read the header template as text.

    Raises:
        GeneratorError: stage "template" on any read failure.
    """
    try:
        data = read_document(path)
    except GeneratorError as err:
        raise GeneratorError(
            err.code, f"Failed to read template: {err.message}", "template"
        ) from err
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as err:
        raise GeneratorError(
            "PARSE_FAILURE", f"Template {path} is not valid UTF-8: {err}", "template"
        ) from err


def assemble_output(
    template_text: str,
    registry: Registry,
    ledger: EmissionLedger | None = None,
    markers: dict[str, Callable[[Registry, EmissionLedger], str]] | None = None,
) -> str:
    """Replace every registered marker in the template with generated code.

    Raises:
        GeneratorError: INVALID_ARGUMENTS (stage "emit") for an empty marker;
            REFERENCE_NOT_FOUND propagated from generation.
    """
    if ledger is None:
        ledger = EmissionLedger()
    if markers is None:
        markers = MARKER_GENERATORS

    output = template_text
    for marker, generate in markers.items():
        if not marker:
            raise GeneratorError(
                "INVALID_ARGUMENTS", "Template marker must not be empty.", "emit"
            )
        output = output.replace(marker, generate(registry, ledger))
    return output


def write_output(path: Path, content: str) -> FileWriteResult:
    """Write the generated header, creating missing parent directories.

    Raises:
        GeneratorError: IO_FAILURE, stage "write".
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        resolved = path.resolve()
        byte_count = len(resolved.read_bytes())
    except OSError as err:
        raise GeneratorError(
            "IO_FAILURE", f"Failed to write {path}: {err}", "write"
        ) from err
    return FileWriteResult(
        path=resolved,
        line_count=content.count("\n"),
        byte_count=byte_count,
    )


# ===--- Discovery ---=== #


@dataclass(frozen=True)
class BlockSummary:
    """Counts for one Feature or Extension, for the discovery tables."""

    name: str
    api: str
    number: str
    type_count: int
    enum_count: int
    command_count: int


def _summarize(
    name: str, api: str, number: str, requires: tuple[Require, ...]
) -> BlockSummary:
    return BlockSummary(
        name=name,
        api=api,
        number=number,
        type_count=sum(len(r.types) for r in requires),
        enum_count=sum(len(r.enums) for r in requires),
        command_count=sum(len(r.commands) for r in requires),
    )


def gather_feature_summaries(
    registry: Registry, api: str | None = None
) -> list[BlockSummary]:
    return [
        _summarize(f.name, f.api, f.version_number, f.requires)
        for f in registry.features
        if api is None or f.api == api
    ]


def gather_extension_summaries(
    registry: Registry, filter_text: str | None = None
) -> list[BlockSummary]:
    summaries = [
        _summarize(e.name, e.supported_apis, "", e.requires)
        for e in registry.extensions
    ]
    if filter_text is None:
        return summaries
    needle = filter_text.lower()
    return [s for s in summaries if needle in s.name.lower()]


def format_features_table(summaries: list[BlockSummary]) -> str:
    """Return the --list-features output.

    Output format:

        3 features:

          gl   GL_VERSION_1_0  1.0    12 types   300 enums  306 commands
    """
    lines = [f"{len(summaries)} features:", ""]
    name_width = max((len(s.name) for s in summaries), default=0)
    api_width = max((len(s.api) for s in summaries), default=0)
    for s in summaries:
        lines.append(
            f"  {s.api.ljust(api_width)}  {s.name.ljust(name_width)}  {s.number:<5}"
            f"  {s.type_count:>4} types  {s.enum_count:>5} enums"
            f"  {s.command_count:>4} commands"
        )
    lines.append("")
    return "\n".join(lines)


def format_extensions_table(summaries: list[BlockSummary]) -> str:
    """Return the --list-extensions output.

    Output format:

        2 extensions:

          GL_ARB_sync      gl|glcore    1 types    7 enums    7 commands
    """
    lines = [f"{len(summaries)} extensions:", ""]
    name_width = max((len(s.name) for s in summaries), default=0)
    api_width = max((len(s.api) for s in summaries), default=0)
    for s in summaries:
        lines.append(
            f"  {s.name.ljust(name_width)}  {s.api.ljust(api_width)}"
            f"  {s.type_count:>4} types  {s.enum_count:>5} enums"
            f"  {s.command_count:>4} commands"
        )
    lines.append("")
    return "\n".join(lines)


def run_discovery(config: DiscoveryConfig) -> None:
    registry = load_registry(config.xml_paths)
    print()
    if config.command == "list-features":
        output = format_features_table(gather_feature_summaries(registry, config.api))
    else:
        output = format_extensions_table(
            gather_extension_summaries(registry, config.filter_text)
        )
    print(output, end="")


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class GenerationSummary:
    """Data for the post-generation console report."""

    sources: tuple[str, ...]
    output: str
    blocks: int
    types: int
    enums: int
    commands: int
    line_count: int
    byte_count: int


def build_generation_summary(
    config: GenerateConfig, ledger: EmissionLedger, result: FileWriteResult
) -> GenerationSummary:
    return GenerationSummary(
        sources=tuple(str(p) for p in config.xml_paths),
        output=str(result.path),
        blocks=len(ledger.blocks),
        types=len(ledger.types),
        enums=ledger.enum_count,
        commands=ledger.command_count,
        line_count=result.line_count,
        byte_count=result.byte_count,
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    lines = ["OpenGL header generated:", ""]
    for source in summary.sources:
        lines.append(f"  Source:     {source}")
    lines.append(f"  Output:     {summary.output}")
    lines.append("")
    lines.append("  Declarations written:")
    lines.append(f"    {'Guards:':<11}{summary.blocks:>6}")
    lines.append(f"    {'Types:':<11}{summary.types:>6}")
    lines.append(f"    {'Enums:':<11}{summary.enums:>6}")
    lines.append(f"    {'Commands:':<11}{summary.commands:>6}")
    lines.append("")
    lines.append(
        f"  Total: {summary.line_count:,} lines, {summary.byte_count:,} bytes"
    )
    lines.append("")
    return "\n".join(lines)


# ===--- Main generation ---=== #


def run_generate(config: GenerateConfig) -> FileWriteResult:
    """Run the whole pipeline: load, emit, assemble, write.

    Any failure aborts before the output file is written.

    Raises:
        GeneratorError: From any stage; `stage` selects the exit code.
    """
    registry = load_registry(config.xml_paths)

    template_text = read_template(config.template)
    ledger = EmissionLedger()
    output = assemble_output(template_text, registry, ledger)
    print(
        f"  Emitted: {len(ledger.blocks)} guards, {len(ledger.types)} types, "
        f"{ledger.enum_count} enums, {ledger.command_count} commands"
    )

    result = write_output(config.output, output)
    print(f"  Written: {result.line_count} lines to {result.path}")
    print()
    print(
        format_generation_summary(build_generation_summary(config, ledger, result)),
        end="",
    )
    return result


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        print(f"Config error [{err.code}]: {err.message}", file=sys.stderr)
        if err.suggestion:
            print(f"Hint: {err.suggestion}", file=sys.stderr)
        raise SystemExit(EXIT_CODES[err.stage]) from err

    try:
        if isinstance(config, DiscoveryConfig):
            run_discovery(config)
        else:
            run_generate(config)
    except GeneratorError as err:
        print(f"Error [{err.code}]: {err.message}", file=sys.stderr)
        if err.suggestion:
            print(f"Hint: {err.suggestion}", file=sys.stderr)
        raise SystemExit(err.exit_code) from err


if __name__ == "__main__":
    main()
