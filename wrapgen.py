"""Vulkan wrapper generator for Python.

Generates ergonomic Python wrappers over a low-level Vulkan binding from the
Khronos vk.xml registry and a symbol manifest describing the binding surface.
Produces one module per resolved type plus a `vulkan` module for global
commands.

Usage:
    python wrapgen.py --input thoughts/repos/Vulkan-Docs --output build/vk
"""

import argparse
import json
import keyword
import re
import shutil
import sys
import xml.etree.ElementTree as ET
from collections import defaultdict
from dataclasses import dataclass, replace
from enum import Enum
from functools import cached_property
from pathlib import Path
from collections.abc import Iterable

DEFAULT_TARGET_FEATURE = "VK_VERSION_1_3"
DEFAULT_TARGET_API = "vulkan"
REGISTRY_RELATIVE_PATH = Path("xml") / "vk.xml"
DEFAULT_SYMBOLS_NAME = "symbols.json"
GENERATOR_NAME = "vulkan-wrapper-gen"
DEFAULT_RUNTIME = "wrapgen_support"


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerateConfig:
    input_dir: Path
    vk_xml: Path
    symbols: Path
    output_dir: Path
    target_feature: str
    target_api: str
    clean: bool = False


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str
    filter_text: str | None
    vk_xml: Path
    symbols: Path | None
    target_api: str


VALID_ERROR_CODES = {
    "PATH_NOT_FOUND",
    "INPUT_NOT_DIRECTORY",
    "MISSING_REGISTRY",
    "MISSING_SYMBOLS",
    "MISSING_OUTPUT",
    "INVALID_FEATURE_NAME",
    "CONFLICT_GENERATE_DISCOVERY",
    "FILTER_WITHOUT_LIST",
    "UNSAFE_CLEAN",
}
_FEATURE_NAME_RE = re.compile(r"^[A-Z][A-Z0-9_]*?_VERSION_\d+_\d+$")


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def validate_feature_name(name: str) -> str:
    if _FEATURE_NAME_RE.match(name):
        return name
    raise ConfigError(
        "INVALID_FEATURE_NAME",
        f"Invalid feature name: {name}",
        "Feature names look like VK_VERSION_<major>_<minor> (for example VK_VERSION_1_3).",
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


def validate_input_dir(path: Path | None) -> tuple[Path, Path]:
    """Check the --input directory and return it with its vk.xml path.

    Args:
        path: Raw --input value.

    Returns:
        Tuple of (input directory, registry path).

    Raises:
        ConfigError: PATH_NOT_FOUND, INPUT_NOT_DIRECTORY or MISSING_REGISTRY.
    """
    input_dir = validate_path_exists(
        path,
        "--input",
        "Clone Vulkan-Docs:\n"
        "  git clone https://github.com/KhronosGroup/Vulkan-Docs.git\n"
        "Then pass it: --input /your/path/to/Vulkan-Docs",
    )
    if not input_dir.is_dir():
        raise ConfigError(
            "INPUT_NOT_DIRECTORY",
            f"--input must be a directory: {input_dir}",
            "Pass the Vulkan-Docs checkout, not the vk.xml file itself.",
        )
    vk_xml = input_dir / REGISTRY_RELATIVE_PATH
    if not vk_xml.is_file():
        raise ConfigError(
            "MISSING_REGISTRY",
            f"No registry found at {vk_xml}",
            f"The input directory must contain {REGISTRY_RELATIVE_PATH}.",
        )
    return input_dir, vk_xml


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate Python wrappers for a Vulkan binding"
    )

    parser.add_argument("--input", type=Path, default=None)
    parser.add_argument("--output", type=Path, default=None)
    parser.add_argument("--symbols", type=Path, default=None)
    parser.add_argument("--target-feature", type=str, default=DEFAULT_TARGET_FEATURE)
    parser.add_argument("--target-api", type=str, default=DEFAULT_TARGET_API)
    parser.add_argument("--clean", action="store_true", default=False)

    discovery_group = parser.add_mutually_exclusive_group()
    discovery_group.add_argument("--list-features", action="store_true", default=False)
    discovery_group.add_argument(
        "--list-extensions", action="store_true", default=False
    )

    parser.add_argument("--filter", type=str, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(args: argparse.Namespace) -> GenerateConfig | DiscoveryConfig:
    has_generate_input = bool(args.output is not None or args.clean)
    has_discovery_command = bool(args.list_features or args.list_extensions)

    if args.filter and not args.list_extensions:
        raise ConfigError(
            "FILTER_WITHOUT_LIST",
            "--filter requires --list-extensions.",
            "Add --list-extensions or remove --filter.",
        )

    if has_generate_input and has_discovery_command:
        raise ConfigError(
            "CONFLICT_GENERATE_DISCOVERY",
            "Generate flags cannot be combined with discovery flags.",
            "Choose either generate mode or one discovery command.",
        )

    input_dir, vk_xml = validate_input_dir(args.input)
    symbols = args.symbols if args.symbols is not None else input_dir / DEFAULT_SYMBOLS_NAME

    if has_discovery_command:
        command = "list-features" if args.list_features else "list-extensions"
        return DiscoveryConfig(
            command=command,
            filter_text=args.filter,
            vk_xml=vk_xml,
            symbols=symbols if symbols.is_file() else None,
            target_api=args.target_api,
        )

    if args.output is None:
        raise ConfigError(
            "MISSING_OUTPUT",
            "Generate mode requires --output.",
            "Pass the directory to generate into: --output build/vk",
        )

    if not symbols.is_file():
        raise ConfigError(
            "MISSING_SYMBOLS",
            f"No symbol manifest found at {symbols}",
            f"Pass --symbols or place {DEFAULT_SYMBOLS_NAME} in the input directory.",
        )

    if args.clean and args.output.resolve() == Path(args.output.resolve().anchor):
        raise ConfigError(
            "UNSAFE_CLEAN",
            f"Refusing to clean the filesystem root: {args.output}",
            "Point --output at a dedicated directory.",
        )

    return GenerateConfig(
        input_dir=input_dir,
        vk_xml=vk_xml,
        symbols=symbols,
        output_dir=args.output,
        target_feature=validate_feature_name(args.target_feature),
        target_api=args.target_api,
        clean=bool(args.clean),
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))


# ===--- Errors ---=== #


class RegistryError(ValueError):
    """vk.xml content that cannot be turned into registry records."""


class SymbolCatalogError(ValueError):
    """A symbol manifest that does not describe a usable binding surface."""


class GenerationError(RuntimeError):
    """Fatal inconsistency between the registry, the catalog and the request."""


def warn(message: str) -> None:
    print(f"WARNING: {message}", file=sys.stderr)


# ===--- Registry model ---=== #

ENUM_BASE_VALUE = 1_000_000_000
ENUM_RANGE_SIZE = 1000
MAX_ALIAS_HOPS = 8


class Category(Enum):
    BITMASK = "bitmask"
    DEFINE = "define"
    ENUM = "enum"
    FUNC_POINTER = "funcpointer"
    GROUP = "group"
    HANDLE = "handle"
    INCLUDE = "include"
    STRUCT = "struct"
    UNION = "union"
    BASETYPE = "basetype"
    NO_CATEGORY = ""


ENUM_CATEGORIES = frozenset({Category.ENUM, Category.BITMASK})
STRUCT_CATEGORIES = frozenset({Category.STRUCT, Category.UNION})
_CATEGORY_BY_ATTRIBUTE = {
    category.value: category
    for category in Category
    if category is not Category.NO_CATEGORY
}


def parse_category(raw: str | None) -> Category:
    if raw is None:
        return Category.NO_CATEGORY
    category = _CATEGORY_BY_ATTRIBUTE.get(raw)
    if category is None:
        raise RegistryError(f"Unknown category {raw}")
    return category


class EnumsKind(Enum):
    BITMASK = "bitmask"
    ENUM = "enum"
    CONSTANTS = "constants"


def supports_api(apis: tuple[str, ...], api: str) -> bool:
    """Return True when an api list is empty (all APIs) or names `api`."""
    return not apis or api in apis


class TypeShape:
    """Pointer, const and array shape read from a C type string."""

    type_string: str

    @property
    def is_const(self) -> bool:
        return self.type_string.lstrip().startswith("const")

    @property
    def is_array(self) -> bool:
        return "[" in self.type_string

    @property
    def num_pointers(self) -> int:
        return self.type_string.count("*")

    @property
    def is_output(self) -> bool:
        return not self.is_const and self.num_pointers > 0


@dataclass(frozen=True)
class Platform:
    name: str
    protect: str | None = None


@dataclass(frozen=True)
class Tag:
    name: str
    author: str | None = None
    contact: str | None = None


@dataclass(frozen=True)
class Member(TypeShape):
    name: str
    type: str
    type_string: str
    api: tuple[str, ...] = ()
    values: str | None = None
    len: tuple[str, ...] = ()
    alt_len: tuple[str, ...] = ()
    optional: tuple[bool, ...] = ()
    extern_sync: str | None = None
    selector: str | None = None
    selection: str | None = None
    object_type: str | None = None
    stride: str | None = None
    enum: str | None = None
    deprecated: str | None = None


@dataclass(frozen=True)
class HandleDetails:
    parent: str | None
    dispatchable: bool | None
    alias: str | None = None


@dataclass(frozen=True)
class StructDetails:
    members: tuple[Member, ...]
    returned_only: bool = False


@dataclass(frozen=True)
class BitmaskDetails:
    bit_values: str | None = None


@dataclass(frozen=True)
class NoTypeDetails:
    pass


NO_TYPE_DETAILS = NoTypeDetails()
TypeDetails = HandleDetails | StructDetails | BitmaskDetails | NoTypeDetails


@dataclass(frozen=True)
class Type:
    """One <type> entry. `typedef` is the text of its <type> child."""

    name: str
    category: Category
    details: TypeDetails = NO_TYPE_DETAILS
    alias: str | None = None
    api: tuple[str, ...] = ()
    requires: str | None = None
    typedef: str | None = None
    text: str = ""


def _constant_value(name: str, value: str | None, bitpos: int | None) -> int:
    if bitpos is not None:
        return 1 << bitpos
    if value is not None:
        try:
            if value.startswith("0x"):
                return int(value[2:], 16)
            if value.startswith("0"):
                return int(value, 8)
            return int(value)
        except ValueError as err:
            raise RegistryError(f"Unable to determine value for {name}") from err
    raise RegistryError(f"Unable to determine value for {name}")


@dataclass(frozen=True)
class EnumValue:
    name: str
    value: str | None = None
    bitpos: int | None = None
    api: tuple[str, ...] = ()
    type: str | None = None
    alias: str | None = None
    deprecated: str | None = None

    @property
    def long_value(self) -> int | None:
        """Numeric value, or None for an alias. Raises RegistryError if unknown."""
        if self.alias is not None:
            return None
        return _constant_value(self.name, self.value, self.bitpos)


@dataclass(frozen=True)
class InlineEnum:
    """A constant defined inside a <require> block, usually extending an enum."""

    name: str
    type: str | None = None
    value: str | None = None
    bitpos: int | None = None
    offset: int | None = None
    negative: bool = False
    extends: str | None = None
    extension_number: int | None = None
    alias: str | None = None
    protect: str | None = None
    api: tuple[str, ...] = ()

    @property
    def long_value(self) -> int | None:
        if self.alias is not None:
            return None
        if self.extension_number is not None and self.offset is not None:
            result = (
                ENUM_BASE_VALUE
                + (self.extension_number - 1) * ENUM_RANGE_SIZE
                + self.offset
            )
            return -result if self.negative else result
        return _constant_value(self.name, self.value, self.bitpos)


EnumConstant = EnumValue | InlineEnum


@dataclass(frozen=True)
class Enums:
    name: str
    kind: EnumsKind
    bit_width: int = 32
    values: tuple[EnumValue, ...] = ()


@dataclass(frozen=True)
class Proto(TypeShape):
    name: str
    type: str
    type_string: str


@dataclass(frozen=True)
class Param(TypeShape):
    name: str
    type: str
    type_string: str
    api: tuple[str, ...] = ()
    values: str | None = None
    optional: tuple[bool, ...] = ()
    len: tuple[str, ...] = ()
    alt_len: tuple[str, ...] = ()
    extern_sync: str | None = None
    selector: str | None = None
    object_type: str | None = None
    stride: str | None = None


@dataclass(frozen=True)
class CommandDeclaration:
    proto: Proto
    params: tuple[Param, ...]
    tasks: tuple[str, ...] = ()
    queues: tuple[str, ...] = ()
    success_codes: tuple[str, ...] = ()
    error_codes: tuple[str, ...] = ()
    render_pass: str | None = None
    video_coding: str | None = None
    cmd_buffer_level: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.proto.name

    def for_api(self, api: str) -> "CommandDeclaration":
        return replace(
            self, params=tuple(p for p in self.params if supports_api(p.api, api))
        )


@dataclass(frozen=True)
class CommandAlias:
    name: str
    alias: str


@dataclass(frozen=True)
class Command:
    details: CommandDeclaration | CommandAlias
    api: tuple[str, ...] = ()
    description: str | None = None

    @property
    def name(self) -> str:
        return self.details.name


@dataclass(frozen=True)
class TypeReference:
    name: str
    api: tuple[str, ...] = ()


@dataclass(frozen=True)
class EnumReference:
    name: str
    api: tuple[str, ...] = ()


@dataclass(frozen=True)
class CommandReference:
    name: str


@dataclass(frozen=True)
class Require:
    types: tuple[TypeReference, ...] = ()
    commands: tuple[CommandReference, ...] = ()
    enum_references: tuple[EnumReference, ...] = ()
    inline_enums: tuple[InlineEnum, ...] = ()
    profile: str | None = None
    api: tuple[str, ...] = ()
    depends: str | None = None


@dataclass(frozen=True)
class Remove:
    types: tuple[TypeReference, ...] = ()
    commands: tuple[CommandReference, ...] = ()
    enum_references: tuple[EnumReference, ...] = ()
    profile: str | None = None
    api: tuple[str, ...] = ()


@dataclass(frozen=True)
class Feature:
    name: str
    number: str
    api: tuple[str, ...] = ()
    depends: str | None = None
    sort_order: int | None = None
    protect: str | None = None
    requires: tuple[Require, ...] = ()
    removes: tuple[Remove, ...] = ()


@dataclass(frozen=True)
class Extension:
    name: str
    number: int
    sort_order: int | None = None
    author: str | None = None
    contact: str | None = None
    type: str | None = None
    depends: str | None = None
    protect: str | None = None
    platform: tuple[str, ...] = ()
    supported: tuple[str, ...] = ()
    ratified: tuple[str, ...] = ()
    promoted_to: str | None = None
    deprecated_by: str | None = None
    obsoleted_by: str | None = None
    provisional: bool = False
    special_use: tuple[str, ...] = ()
    requires: tuple[Require, ...] = ()
    removes: tuple[Remove, ...] = ()


@dataclass(frozen=True)
class Registry:
    """Immutable parse result of vk.xml with lazily built name indices."""

    platforms: tuple[Platform, ...] = ()
    tags: tuple[Tag, ...] = ()
    types: tuple[Type, ...] = ()
    enums: tuple[Enums, ...] = ()
    commands: tuple[Command, ...] = ()
    features: tuple[Feature, ...] = ()
    extensions: tuple[Extension, ...] = ()

    @cached_property
    def types_by_name(self) -> dict[str, tuple[Type, ...]]:
        grouped: dict[str, list[Type]] = defaultdict(list)
        for t in self.types:
            grouped[t.name].append(t)
        return {name: tuple(variants) for name, variants in grouped.items()}

    @cached_property
    def enums_by_name(self) -> dict[str, Enums]:
        return {e.name: e for e in self.enums}

    @cached_property
    def commands_by_name(self) -> dict[str, tuple[Command, ...]]:
        grouped: dict[str, list[Command]] = defaultdict(list)
        for command in self.commands:
            grouped[command.name].append(command)
        return {name: tuple(variants) for name, variants in grouped.items()}

    @cached_property
    def features_by_name(self) -> dict[str, Feature]:
        return {f.name: f for f in self.features}

    @cached_property
    def extensions_by_name(self) -> dict[str, Extension]:
        return {e.name: e for e in self.extensions}

    def type_variant(self, name: str, api: str) -> Type | None:
        """Return the single variant of `name` that supports `api`, if any.

        Raises:
            RegistryError: If more than one variant supports the api.
        """
        variants = [
            t for t in self.types_by_name.get(name, ()) if supports_api(t.api, api)
        ]
        if not variants:
            return None
        if len(variants) > 1:
            raise RegistryError(f"Type {name} has {len(variants)} variants for {api}")
        return variants[0]

    def resolve_alias(self, name: str, api: str) -> Type:
        """Follow a type's alias chain to the concrete type.

        Args:
            name: Type name to resolve.
            api: API used to pick between type variants.

        Returns:
            The first type in the chain that has no alias.

        Raises:
            RegistryError: If a name is unknown, the chain revisits a name, or
                the chain is longer than MAX_ALIAS_HOPS.
        """
        chain: list[str] = []
        current = name
        while True:
            resolved = self.type_variant(current, api)
            if resolved is None:
                raise RegistryError(f"Unknown type {current}")
            if resolved.alias is None:
                return resolved
            chain.append(current)
            if resolved.alias in chain or len(chain) > MAX_ALIAS_HOPS:
                trail = " -> ".join([*chain, resolved.alias])
                raise RegistryError(f"Alias cycle resolving {name}: {trail}")
            current = resolved.alias


# ===--- XML parsing ---=== #


def _split(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _optional_flags(raw: str | None) -> tuple[bool, ...]:
    return tuple(part == "true" for part in _split(raw))


def _optional_int(el: ET.Element, attribute: str) -> int | None:
    raw = el.get(attribute)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError as err:
        raise RegistryError(
            f"<{el.tag}> attribute {attribute}={raw!r} is not an integer"
        ) from err


def _child_text(el: ET.Element, tag: str) -> str | None:
    child = el.find(tag)
    if child is None:
        return None
    return child.text


def _required(value: str | None, what: str) -> str:
    if not value:
        raise RegistryError(f"{what} is missing")
    return value


def _text_excluding_name(el: ET.Element) -> str:
    parts = [el.text or ""]
    for child in el:
        if child.tag != "name":
            parts.append("".join(child.itertext()))
        parts.append(child.tail or "")
    return " ".join(part.strip() for part in parts if part.strip())


def _dispatchable(name: str, typedef: str | None, alias: str | None) -> bool | None:
    if typedef == "VK_DEFINE_HANDLE":
        return True
    if typedef == "VK_DEFINE_NON_DISPATCHABLE_HANDLE":
        return False
    if alias is not None:
        return None
    raise RegistryError(f"Handle {name} has unknown kind {typedef!r}")


def parse_member(m: ET.Element) -> Member:
    name = _required(_child_text(m, "name"), "Member name")
    return Member(
        name=name,
        type=_required(_child_text(m, "type"), f"Type of member {name}"),
        type_string=_text_excluding_name(m),
        api=_split(m.get("api")),
        values=m.get("values"),
        len=_split(m.get("len")),
        alt_len=_split(m.get("altlen")),
        optional=_optional_flags(m.get("optional")),
        extern_sync=m.get("externsync"),
        selector=m.get("selector"),
        selection=m.get("selection"),
        object_type=m.get("objecttype"),
        stride=m.get("stride"),
        enum=_child_text(m, "enum"),
        deprecated=m.get("deprecated"),
    )


def parse_type(t: ET.Element) -> Type:
    category = parse_category(t.get("category"))
    name = _required(t.get("name") or _child_text(t, "name"), "Type name")
    alias = t.get("alias")
    typedef = _child_text(t, "type")

    details: TypeDetails
    if category is Category.HANDLE:
        details = HandleDetails(
            parent=t.get("parent"),
            dispatchable=_dispatchable(name, typedef, alias),
            alias=alias,
        )
    elif category in STRUCT_CATEGORIES:
        details = StructDetails(
            members=tuple(parse_member(m) for m in t.findall("member")),
            returned_only=t.get("returnedonly") == "true",
        )
    elif category is Category.BITMASK:
        details = BitmaskDetails(bit_values=t.get("bitvalues"))
    else:
        details = NO_TYPE_DETAILS

    return Type(
        name=name,
        category=category,
        details=details,
        alias=alias,
        api=_split(t.get("api")),
        requires=t.get("requires"),
        typedef=typedef,
        text="".join(t.itertext()),
    )


def parse_enum_value(e: ET.Element) -> EnumValue:
    return EnumValue(
        name=_required(e.get("name"), "Enum constant name"),
        value=e.get("value"),
        bitpos=_optional_int(e, "bitpos"),
        api=_split(e.get("api")),
        type=e.get("type"),
        alias=e.get("alias"),
        deprecated=e.get("deprecated"),
    )


def parse_enums(block: ET.Element) -> Enums:
    name = _required(block.get("name"), "Enums block name")
    raw_kind = block.get("type")
    try:
        kind = EnumsKind(raw_kind)
    except ValueError as err:
        raise RegistryError(f"Unknown enum type {raw_kind} for {name}") from err
    return Enums(
        name=name,
        kind=kind,
        bit_width=_optional_int(block, "bitwidth") or 32,
        values=tuple(parse_enum_value(e) for e in block.findall("enum")),
    )


def parse_command(c: ET.Element) -> Command:
    api = _split(c.get("api"))
    proto_el = c.find("proto")
    details: CommandDeclaration | CommandAlias
    if proto_el is not None:
        name = _required(_child_text(proto_el, "name"), "Command name")
        proto = Proto(
            name=name,
            type=_required(_child_text(proto_el, "type"), f"Return type of {name}"),
            type_string=_text_excluding_name(proto_el),
        )
        details = CommandDeclaration(
            proto=proto,
            params=tuple(parse_command_param(p) for p in c.findall("param")),
            tasks=_split(c.get("tasks")),
            queues=_split(c.get("queues")),
            success_codes=_split(c.get("successcodes")),
            error_codes=_split(c.get("errorcodes")),
            render_pass=c.get("renderpass"),
            video_coding=c.get("videocoding"),
            cmd_buffer_level=_split(c.get("cmdbufferlevel")),
        )
    elif c.get("alias") is not None:
        details = CommandAlias(
            name=_required(c.get("name"), "Command alias name"),
            alias=c.get("alias", ""),
        )
    else:
        raise RegistryError(
            f"Command {c.get('name', '<unnamed>')} has neither a proto nor an alias"
        )
    return Command(details=details, api=api, description=c.get("comment"))


def parse_command_param(p: ET.Element) -> Param:
    name = _required(_child_text(p, "name"), "Parameter name")
    return Param(
        name=name,
        type=_required(_child_text(p, "type"), f"Type of parameter {name}"),
        type_string=_text_excluding_name(p),
        api=_split(p.get("api")),
        values=p.get("values"),
        optional=_optional_flags(p.get("optional")),
        len=_split(p.get("len")),
        alt_len=_split(p.get("altlen")),
        extern_sync=p.get("externsync"),
        selector=p.get("selector"),
        object_type=p.get("objecttype"),
        stride=p.get("stride"),
    )


def _is_inline_enum(e: ET.Element) -> bool:
    return any(e.get(attr) is not None for attr in ("value", "bitpos", "alias", "offset"))


def parse_inline_enum(e: ET.Element, extension_number: int | None) -> InlineEnum:
    number = _optional_int(e, "extnumber")
    return InlineEnum(
        name=_required(e.get("name"), "Inline enum name"),
        type=e.get("type"),
        value=e.get("value"),
        bitpos=_optional_int(e, "bitpos"),
        offset=_optional_int(e, "offset"),
        negative=e.get("dir") == "-",
        extends=e.get("extends"),
        extension_number=number if number is not None else extension_number,
        alias=e.get("alias"),
        protect=e.get("protect"),
        api=_split(e.get("api")),
    )


def parse_require(block: ET.Element, extension_number: int | None) -> Require:
    types: list[TypeReference] = []
    commands: list[CommandReference] = []
    enum_references: list[EnumReference] = []
    inline_enums: list[InlineEnum] = []
    for child in block:
        if child.tag == "type":
            types.append(
                TypeReference(
                    _required(child.get("name"), "Type reference name"),
                    _split(child.get("api")),
                )
            )
        elif child.tag == "command":
            commands.append(
                CommandReference(_required(child.get("name"), "Command reference name"))
            )
        elif child.tag == "enum":
            if _is_inline_enum(child):
                inline_enums.append(parse_inline_enum(child, extension_number))
            else:
                enum_references.append(
                    EnumReference(
                        _required(child.get("name"), "Enum reference name"),
                        _split(child.get("api")),
                    )
                )
    return Require(
        types=tuple(types),
        commands=tuple(commands),
        enum_references=tuple(enum_references),
        inline_enums=tuple(inline_enums),
        profile=block.get("profile"),
        api=_split(block.get("api")),
        depends=block.get("depends"),
    )


def parse_remove(block: ET.Element) -> Remove:
    return Remove(
        types=tuple(
            TypeReference(_required(t.get("name"), "Type reference name"))
            for t in block.findall("type")
        ),
        commands=tuple(
            CommandReference(_required(c.get("name"), "Command reference name"))
            for c in block.findall("command")
        ),
        enum_references=tuple(
            EnumReference(_required(e.get("name"), "Enum reference name"))
            for e in block.findall("enum")
        ),
        profile=block.get("profile"),
        api=_split(block.get("api")),
    )


def parse_feature(f: ET.Element) -> Feature:
    return Feature(
        name=_required(f.get("name"), "Feature name"),
        number=f.get("number", ""),
        api=_split(f.get("api")),
        depends=f.get("depends"),
        sort_order=_optional_int(f, "sortorder"),
        protect=f.get("protect"),
        requires=tuple(parse_require(r, None) for r in f.findall("require")),
        removes=tuple(parse_remove(r) for r in f.findall("remove")),
    )


def parse_extension(x: ET.Element) -> Extension:
    name = _required(x.get("name"), "Extension name")
    number = _optional_int(x, "number")
    if number is None:
        raise RegistryError(f"Extension {name} is missing its number")
    return Extension(
        name=name,
        number=number,
        sort_order=_optional_int(x, "sortorder"),
        author=x.get("author"),
        contact=x.get("contact"),
        type=x.get("type"),
        depends=x.get("depends"),
        protect=x.get("protect"),
        platform=_split(x.get("platform")),
        supported=_split(x.get("supported")),
        ratified=_split(x.get("ratified")),
        promoted_to=x.get("promotedto"),
        deprecated_by=x.get("deprecatedby"),
        obsoleted_by=x.get("obsoletedby"),
        provisional=x.get("provisional") == "true",
        special_use=_split(x.get("specialuse")),
        requires=tuple(parse_require(r, number) for r in x.findall("require")),
        removes=tuple(parse_remove(r) for r in x.findall("remove")),
    )


def parse_registry(root: ET.Element) -> Registry:
    return Registry(
        platforms=tuple(
            Platform(_required(p.get("name"), "Platform name"), p.get("protect"))
            for p in root.findall("platforms/platform")
        ),
        tags=tuple(
            Tag(_required(t.get("name"), "Tag name"), t.get("author"), t.get("contact"))
            for t in root.findall("tags/tag")
        ),
        types=tuple(parse_type(t) for t in root.findall("types/type")),
        enums=tuple(parse_enums(e) for e in root.findall("enums")),
        commands=tuple(parse_command(c) for c in root.findall("commands/command")),
        features=tuple(parse_feature(f) for f in root.findall("feature")),
        extensions=tuple(
            parse_extension(x) for x in root.findall("extensions/extension")
        ),
    )


def load_registry(path: Path) -> Registry:
    return parse_registry(ET.parse(path).getroot())


_HEADER_VERSION_RE = re.compile(r"VK_HEADER_VERSION\s+(\d+)")


def extract_registry_version(registry: Registry, api: str) -> str:
    """Return the vk.xml version string, e.g. "1.3.283".

    Major.minor is the highest feature number for `api`; the patch is the
    VK_HEADER_VERSION define. Returns "<major>.<minor>" without the define and
    "unknown" when the api has no numbered features.
    """
    best: tuple[int, int] | None = None
    for feature in registry.features:
        if not supports_api(feature.api, api) or not feature.number:
            continue
        major_s, _, minor_s = feature.number.partition(".")
        try:
            version = (int(major_s), int(minor_s or "0"))
        except ValueError:
            continue
        if best is None or version > best:
            best = version

    if best is None:
        return "unknown"

    for t in registry.types_by_name.get("VK_HEADER_VERSION", ()):
        match = _HEADER_VERSION_RE.search(t.text)
        if match:
            return f"{best[0]}.{best[1]}.{match.group(1)}"
    return f"{best[0]}.{best[1]}"


# ===--- Symbol catalog ---=== #

SYMBOL_KINDS = frozenset(
    {
        "void",
        "int8",
        "int16",
        "int32",
        "int64",
        "float",
        "double",
        "pointer",
        "string",
        "byte_buffer",
        "int_buffer",
        "long_buffer",
        "pointer_buffer",
        "float_buffer",
        "struct",
        "struct_buffer",
        "handle",
        "callable",
        "array",
    }
)
INTEGER_KINDS = frozenset({"int8", "int16", "int32", "int64"})
NUMERIC_KINDS = INTEGER_KINDS | {"pointer"}


@dataclass(frozen=True)
class SymbolParameter(TypeShape):
    """One parameter (or return value) of a binding callable.

    `kind` is the representation the binding uses, e.g. "int_buffer" for a
    uint32_t* the binding exposes as an IntBuffer.
    """

    name: str
    type: str
    type_string: str
    kind: str
    nullable: bool = False


@dataclass(frozen=True)
class SymbolMethod:
    name: str
    module: str
    returns: SymbolParameter
    params: tuple[SymbolParameter, ...]

    @property
    def qualified_name(self) -> str:
        return f"{self.module}.{self.name}"


@dataclass(frozen=True)
class SymbolModule:
    name: str
    methods: tuple[SymbolMethod, ...] = ()
    extends: str | None = None


@dataclass(frozen=True)
class HandleSymbol:
    """A handle class exposed by the binding.

    Attributes:
        name: Handle type name, e.g. "VkInstance".
        constructors: Parameter lists of the class constructors.
        parent: Parent handle type overriding the registry parent.
        parent_attribute: Attribute through which an instance exposes its
            parent object, e.g. "instance". None when it exposes none.
    """

    name: str
    constructors: tuple[tuple[SymbolParameter, ...], ...] = ()
    parent: str | None = None
    parent_attribute: str | None = None


@dataclass(frozen=True)
class SymbolCatalog:
    """Static description of the binding surface the wrappers call into."""

    binding: str
    runtime: str
    modules: tuple[SymbolModule, ...] = ()
    handles: tuple[HandleSymbol, ...] = ()
    structs: frozenset[str] = frozenset()

    @cached_property
    def modules_by_name(self) -> dict[str, SymbolModule]:
        return {m.name: m for m in self.modules}

    @cached_property
    def handles_by_name(self) -> dict[str, HandleSymbol]:
        return {h.name: h for h in self.handles}

    def module(self, name: str) -> SymbolModule | None:
        return self.modules_by_name.get(name)

    def methods(self, module_name: str) -> tuple[SymbolMethod, ...]:
        """Return a module's callables, inherited ones first.

        Raises:
            SymbolCatalogError: If the module is unknown or its extends chain
                loops back on itself.
        """
        chain: list[SymbolModule] = []
        current: str | None = module_name
        while current is not None:
            module = self.module(current)
            if module is None:
                raise SymbolCatalogError(f"Unknown binding module {current}")
            if module in chain:
                names = " -> ".join(m.name for m in chain)
                raise SymbolCatalogError(f"Module extends cycle: {names} -> {current}")
            chain.append(module)
            current = module.extends
        return tuple(method for module in reversed(chain) for method in module.methods)

    def handle(self, name: str) -> HandleSymbol | None:
        return self.handles_by_name.get(name)

    def constructors(self, type_name: str) -> tuple[tuple[SymbolParameter, ...], ...]:
        handle = self.handle(type_name)
        return handle.constructors if handle is not None else ()

    def has_struct(self, name: str) -> bool:
        return name in self.structs


def feature_module_name(feature_name: str) -> str:
    """VK_VERSION_1_3 -> VK13."""
    return feature_name.replace("_VERSION_", "").replace("_", "")


def extension_module_name(extension_name: str) -> str:
    """VK_KHR_surface -> KHRSurface."""
    parts = extension_name.removeprefix("VK_").split("_")
    return "".join(part[:1].upper() + part[1:] for part in parts)


def _catalog_key(raw: object, key: str, where: str) -> object:
    if not isinstance(raw, dict):
        raise SymbolCatalogError(f"{where} must be an object")
    if key not in raw:
        raise SymbolCatalogError(f"{where} is missing required key '{key}'")
    return raw[key]


def parse_symbol_parameter(raw: object, where: str) -> SymbolParameter:
    if not isinstance(raw, dict):
        raise SymbolCatalogError(f"{where} must be an object")
    type_name = str(_catalog_key(raw, "type", where))
    kind = str(_catalog_key(raw, "kind", where))
    if kind not in SYMBOL_KINDS:
        raise SymbolCatalogError(f"{where} has unknown kind {kind!r}")
    return SymbolParameter(
        name=str(raw.get("name", "")),
        type=type_name,
        type_string=str(raw.get("type_string", type_name)),
        kind=kind,
        nullable=bool(raw.get("nullable", False)),
    )


def parse_symbol_catalog(data: object) -> SymbolCatalog:
    """Build a SymbolCatalog from decoded manifest JSON.

    Args:
        data: Decoded manifest document.

    Returns:
        The catalog, with every module, handle and struct entry validated.

    Raises:
        SymbolCatalogError: On any structurally invalid entry.
    """
    if not isinstance(data, dict):
        raise SymbolCatalogError("Symbol manifest must be a JSON object")
    binding = str(_catalog_key(data, "binding", "Symbol manifest"))

    modules: list[SymbolModule] = []
    for module_name, raw_module in dict(data.get("modules", {})).items():
        where = f"Module {module_name}"
        if not isinstance(raw_module, dict):
            raise SymbolCatalogError(f"{where} must be an object")
        methods: list[SymbolMethod] = []
        for index, raw_method in enumerate(raw_module.get("methods", ())):
            method_where = f"{where} method #{index}"
            name = str(_catalog_key(raw_method, "name", method_where))
            returns_raw = raw_method.get("returns", {"type": "void", "kind": "void"})
            methods.append(
                SymbolMethod(
                    name=name,
                    module=module_name,
                    returns=parse_symbol_parameter(returns_raw, f"{name} return"),
                    params=tuple(
                        parse_symbol_parameter(p, f"{name} parameter #{i}")
                        for i, p in enumerate(raw_method.get("params", ()))
                    ),
                )
            )
        modules.append(
            SymbolModule(
                name=module_name,
                methods=tuple(methods),
                extends=raw_module.get("extends"),
            )
        )

    handles: list[HandleSymbol] = []
    for handle_name, raw_handle in dict(data.get("handles", {})).items():
        if not isinstance(raw_handle, dict):
            raise SymbolCatalogError(f"Handle {handle_name} must be an object")
        constructors = tuple(
            tuple(
                parse_symbol_parameter(p, f"{handle_name} constructor #{c} parameter #{i}")
                for i, p in enumerate(raw_constructor)
            )
            for c, raw_constructor in enumerate(raw_handle.get("constructors", ()))
        )
        handles.append(
            HandleSymbol(
                name=handle_name,
                constructors=constructors,
                parent=raw_handle.get("parent"),
                parent_attribute=raw_handle.get("parent_attribute"),
            )
        )

    return SymbolCatalog(
        binding=binding,
        runtime=str(data.get("runtime", DEFAULT_RUNTIME)),
        modules=tuple(modules),
        handles=tuple(handles),
        structs=frozenset(str(name) for name in data.get("structs", ())),
    )


def load_symbol_catalog(path: Path) -> SymbolCatalog:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as err:
        raise SymbolCatalogError(f"{path}: {err}") from err
    return parse_symbol_catalog(data)


# ===--- FeatureSet resolution ---=== #


def resolve_feature_chain(registry: Registry, feature: Feature) -> tuple[Feature, ...]:
    """The feature and its `depends` predecessors, root-most first.

    Raises:
        GenerationError: If the chain revisits a feature.
    """
    chain: list[Feature] = []
    current: Feature | None = feature
    while current is not None:
        if current in chain:
            raise GenerationError(f"Feature dependency cycle at {current.name}")
        chain.append(current)
        current = (
            registry.features_by_name.get(current.depends) if current.depends else None
        )
    return tuple(reversed(chain))


def _require_depends_satisfied(depends: str | None) -> bool:
    """Require-block depends expressions are not evaluated; every block applies."""
    return True


@dataclass(frozen=True)
class EnumType:
    """An ENUM or BITMASK type together with the constants that populate it.

    Attributes:
        type: The enum or bitmask type.
        values_type: The type whose enum group carries the constants; for a
            bitmask this is its FlagBits type. None for a bitmask without bits.
        bit_width: 32 or 64.
        constants: Registry and inline constants, removed names excluded.
    """

    type: Type
    values_type: Type | None
    bit_width: int
    constants: tuple[EnumConstant, ...]

    @property
    def name(self) -> str:
        return self.type.name

    @property
    def is_bitmask(self) -> bool:
        return self.type.category is Category.BITMASK


class FeatureSet:
    """Read-through view of a Registry for one (api, feature) pair.

    Every derived collection is computed on first access and cached for the
    lifetime of the view.
    """

    def __init__(
        self,
        registry: Registry,
        api: str,
        feature: Feature,
        catalog: SymbolCatalog,
        documentation: "Documentation | None" = None,
    ):
        self.registry = registry
        self.api = api
        self.feature = feature
        self.catalog = catalog
        self.documentation = documentation or Documentation()
        self._enum_types: dict[str, EnumType] = {}

    @cached_property
    def feature_chain(self) -> tuple[Feature, ...]:
        return resolve_feature_chain(self.registry, self.feature)

    @cached_property
    def feature_module(self) -> str:
        return feature_module_name(self.feature.name)

    @cached_property
    def extension_modules(self) -> dict[str, str]:
        """Active extension name -> binding module name."""
        active: dict[str, str] = {}
        for extension in self.registry.extensions:
            if not supports_api(extension.supported, self.api):
                continue
            module = extension_module_name(extension.name)
            if self.catalog.module(module) is not None:
                active[extension.name] = module
        return active

    @cached_property
    def active_extensions(self) -> tuple[Extension, ...]:
        return tuple(
            e for e in self.registry.extensions if e.name in self.extension_modules
        )

    @cached_property
    def removes(self) -> tuple[Remove, ...]:
        blocks = [
            *(r for f in self.feature_chain for r in f.removes),
            *(r for e in self.active_extensions for r in e.removes),
        ]
        return tuple(r for r in blocks if supports_api(r.api, self.api))

    @cached_property
    def removed_types(self) -> frozenset[str]:
        return frozenset(t.name for r in self.removes for t in r.types)

    @cached_property
    def removed_commands(self) -> frozenset[str]:
        return frozenset(c.name for r in self.removes for c in r.commands)

    @cached_property
    def removed_enums(self) -> frozenset[str]:
        return frozenset(e.name for r in self.removes for e in r.enum_references)

    @cached_property
    def requires(self) -> tuple[Require, ...]:
        blocks = [
            *(r for f in self.feature_chain for r in f.requires),
            *(r for e in self.active_extensions for r in e.requires),
        ]
        return tuple(
            r
            for r in blocks
            if supports_api(r.api, self.api) and _require_depends_satisfied(r.depends)
        )

    def type_or_none(self, name: str) -> Type | None:
        return self.registry.type_variant(name, self.api)

    def type(self, name: str) -> Type:
        resolved = self.type_or_none(name)
        if resolved is None:
            raise GenerationError(f"No {self.api} variant of type {name}")
        return resolved

    def type_exists(self, name: str) -> bool:
        return name in self.registry.types_by_name

    @cached_property
    def types(self) -> tuple[Type, ...]:
        """Required types in require order; an alias follows its target."""
        seen: dict[str, Type] = {}
        for require in self.requires:
            for ref in require.types:
                if not supports_api(ref.api, self.api) or ref.name in self.removed_types:
                    continue
                required = self.type(ref.name)
                if required.alias is not None:
                    seen.setdefault(required.alias, self.type(required.alias))
                seen.setdefault(required.name, required)
        return tuple(seen.values())

    @cached_property
    def category_by_type_name(self) -> dict[str, Category]:
        return {t.name: t.category for t in self.types}

    def category(self, name: str) -> Category | None:
        return self.category_by_type_name.get(name)

    @cached_property
    def handle_types(self) -> tuple[Type, ...]:
        return tuple(t for t in self.types if t.category is Category.HANDLE)

    @cached_property
    def inline_enums(self) -> tuple[InlineEnum, ...]:
        return tuple(
            e
            for r in self.requires
            for e in r.inline_enums
            if supports_api(e.api, self.api)
        )

    def enum_constants(self, values_type: Type) -> tuple[EnumConstant, ...]:
        """Registry constants of a type's enum group plus inline extensions."""
        group = self.registry.enums_by_name.get(values_type.name)
        candidates = [
            *(group.values if group is not None else ()),
            *(e for e in self.inline_enums if e.extends == values_type.name),
        ]
        constants: dict[str, EnumConstant] = {}
        for constant in candidates:
            if constant.name not in self.removed_enums:
                constants.setdefault(constant.name, constant)
        return tuple(constants.values())

    def enum_type(self, t: Type) -> EnumType:
        """Return the memoized EnumType for an ENUM or BITMASK type.

        Raises:
            GenerationError: If the type is not enum-bearing or its bit width
                cannot be determined.
        """
        cached = self._enum_types.get(t.name)
        if cached is not None:
            return cached

        if t.alias is not None:
            t = self.registry.resolve_alias(t.name, self.api)
        if t.category is Category.ENUM:
            values_type: Type | None = t
        elif t.category is Category.BITMASK:
            bit_values = (
                t.details.bit_values if isinstance(t.details, BitmaskDetails) else None
            ) or t.requires
            values_type = self.type(bit_values) if bit_values else None
        else:
            raise GenerationError(f"{t.name} is not an enum type")

        group = self.registry.enums_by_name.get(values_type.name) if values_type else None
        if group is not None:
            bit_width = group.bit_width
        elif t.typedef == "VkFlags64":
            bit_width = 64
        elif t.typedef == "VkFlags" or t.category is Category.ENUM:
            bit_width = 32
        else:
            raise GenerationError(f"Unable to determine bit width of {t.name}")

        constants = self.enum_constants(values_type) if values_type else ()
        enum_type = EnumType(t, values_type, bit_width, constants)
        self._enum_types[t.name] = enum_type
        return enum_type

    @cached_property
    def command_order(self) -> dict[str, int]:
        """Supported command name -> index of its first require appearance."""
        order: dict[str, int] = {}
        for require in self.requires:
            for ref in require.commands:
                if ref.name in self.removed_commands or ref.name in order:
                    continue
                self.command(ref.name)
                order[ref.name] = len(order)
        return order

    def command(self, name: str) -> Command:
        variants = self.registry.commands_by_name.get(name, ())
        supported = [c for c in variants if supports_api(c.api, self.api)]
        if not supported:
            raise GenerationError(f"Unknown {self.api} command {name}")
        return supported[-1]

    def declaration(self, name: str) -> CommandDeclaration:
        """Resolve a command through its alias chain to the declaration."""
        command = self.command(name)
        for _ in range(MAX_ALIAS_HOPS):
            if isinstance(command.details, CommandDeclaration):
                return command.details
            command = self.command(command.details.alias)
        raise GenerationError(f"Alias cycle resolving command {name}")

    def same_type(self, left: str, right: str) -> bool:
        if left == right:
            return True
        left_type = self.type_or_none(left)
        right_type = self.type_or_none(right)
        return (left_type is not None and left_type.alias == right) or (
            right_type is not None and right_type.alias == left
        )

    @cached_property
    def command_methods(self) -> tuple["CommandMethod", ...]:
        """Matched binding callables for every supported command, in require order."""
        modules = [self.feature_module, *self.extension_modules.values()]
        methods = dict.fromkeys(
            method
            for module in modules
            for method in self.catalog.methods(module)
            if method.name in self.command_order
        )
        ordered = sorted(methods, key=lambda m: self.command_order[m.name])
        return tuple(match_command_method(self, method) for method in ordered)


def resolve_feature_set(
    registry: Registry,
    api: str,
    feature_name: str,
    catalog: SymbolCatalog,
    documentation: "Documentation | None" = None,
) -> FeatureSet:
    """Create the FeatureSet view for one (api, feature) pair.

    Raises:
        GenerationError: If the feature is unknown for the api or the catalog
            has no module for it.
    """
    feature = registry.features_by_name.get(feature_name)
    if feature is None or not supports_api(feature.api, api):
        raise GenerationError(f"Unknown {api} feature {feature_name}")
    module = feature_module_name(feature_name)
    if catalog.module(module) is None:
        raise GenerationError(
            f"Missing binding module {module} for {feature_name} in symbol catalog"
        )
    return FeatureSet(registry, api, feature, catalog, documentation)


# ===--- Parameter matching ---=== #

_RESERVED_NAMES = frozenset({"self", "scope", "alloc", "fill", "result", "value"})


def python_identifier(name: str) -> str:
    if keyword.iskeyword(name) or name in _RESERVED_NAMES:
        return f"{name}_"
    return name


@dataclass(frozen=True)
class MatchedParameter(TypeShape):
    """A declared parameter paired with the binding parameter that carries it.

    Shape (pointers, const, arrays) comes from the declaration; type, kind
    and nullability come from the binding.
    """

    declared: Param
    symbol: SymbolParameter

    @property
    def name(self) -> str:
        return python_identifier(self.declared.name)

    @property
    def type_string(self) -> str:
        return self.declared.type_string

    @property
    def type(self) -> str:
        return self.symbol.type

    @property
    def kind(self) -> str:
        return self.symbol.kind

    @property
    def nullable(self) -> bool:
        return self.symbol.nullable

    @property
    def optional(self) -> tuple[bool, ...]:
        return self.declared.optional

    @property
    def len(self) -> tuple[str, ...]:
        return self.declared.len


@dataclass(frozen=True)
class CommandMethod:
    declaration: CommandDeclaration
    symbol: SymbolMethod
    parameters: tuple[MatchedParameter, ...]
    auto_sized: frozenset[str]

    @property
    def name(self) -> str:
        return self.symbol.name


def auto_sized_parameters(params: Iterable[Param]) -> frozenset[str]:
    """Names of scalar parameters that another parameter's len refers to."""
    params = tuple(params)
    return frozenset(
        p.name
        for p in params
        if p.num_pointers == 0 and any(p.name in other.len for other in params)
    )


def _describe_parameters(params: Iterable[object]) -> str:
    return ", ".join(f"{p.name}: {p.type_string}" for p in params) or "(none)"


def match_command_method(feature_set: FeatureSet, symbol: SymbolMethod) -> CommandMethod:
    """Pair a binding callable's parameters with its registry declaration.

    Auto-sized parameters are dropped from the declaration before pairing.

    Raises:
        GenerationError: On a parameter count mismatch or when a pair fails
            validation.
    """
    declaration = feature_set.declaration(symbol.name).for_api(feature_set.api)
    auto_sized = auto_sized_parameters(declaration.params)
    declared = [p for p in declaration.params if p.name not in auto_sized]
    if len(declared) != len(symbol.params):
        raise GenerationError(
            f"Parameter count mismatch for {symbol.name}: "
            f"{len(declared)} != {len(symbol.params)}\n"
            f"  Declared: {_describe_parameters(declared)}\n"
            f"  Method:   {_describe_parameters(symbol.params)}"
        )
    parameters = tuple(MatchedParameter(d, s) for d, s in zip(declared, symbol.params))
    for parameter in parameters:
        validate_matched_parameter(feature_set, symbol.name, parameter)
    return CommandMethod(declaration, symbol, parameters, auto_sized)


def validate_matched_parameter(
    feature_set: FeatureSet, command_name: str, parameter: MatchedParameter
) -> None:
    if not feature_set.same_type(parameter.declared.type, parameter.symbol.type):
        raise GenerationError(
            f"Parameter type mismatch for {command_name}.{parameter.declared.name}: "
            f"{parameter.declared.type} != {parameter.symbol.type}"
        )
    if parameter.declared.is_array and parameter.symbol.num_pointers == 0:
        raise GenerationError(
            f"Array parameter {command_name}.{parameter.declared.name} is not passed "
            f"by pointer ({parameter.symbol.type_string})"
        )


# ===--- Reachable objects ---=== #

SELF_PATH = "self"


@dataclass(frozen=True)
class ReachableObject:
    """An expression already in scope inside a generated method.

    Objects are matched against parameters by (type name, kind). A kind of
    None marks a generated wrapper object that no binding callable accepts
    directly. `requires` names the sibling types the expression constructs.
    """

    is_self: bool
    path: str
    type_name: str
    kind: str | None
    requires: frozenset[str] = frozenset()

    def rooted_at(self, root: str) -> "ReachableObject":
        if self.path == SELF_PATH:
            path = root
        elif self.path.startswith(f"{SELF_PATH}."):
            path = root + self.path[len(SELF_PATH) :]
        else:
            path = f"{root}.{self.path}"
        return replace(self, is_self=False, path=path)

    def optional(self, root: str) -> "ReachableObject":
        """Guard the path against `root` being None; numeric kinds fall back to 0."""
        if self.path == root:
            return self
        fallback = "0" if self.kind in NUMERIC_KINDS else "None"
        return replace(
            self, path=f"({self.path} if {root} is not None else {fallback})"
        )


def matching_object(
    objects: Iterable[ReachableObject], type_name: str, kind: str | None
) -> ReachableObject | None:
    for obj in objects:
        if obj.type_name == type_name and obj.kind == kind:
            return obj
    return None


# ===--- Method descriptors ---=== #


class OverloadKind(Enum):
    DEFAULT = "default"
    CLOSE = "close"
    SINGLE_HANDLE = "single-handle"
    SINGLE_HANDLE_LIST = "single-handle-list"
    SINGLE_ENUM = "single-enum"
    SINGLE_BOOLEAN = "single-boolean"
    SINGLE_PRIMITIVE = "single-primitive"
    STRUCT_SCOPED = "struct-scoped"
    STRUCT_HEAP = "struct-heap"
    STRUCT_ALLOCATOR = "struct-allocator"
    COUNT_QUERY = "count-query"
    ENUMERATE_SCOPED = "enumerate-scoped"
    ENUMERATE_HEAP = "enumerate-heap"
    ENUMERATE_ALLOCATOR = "enumerate-allocator"
    ENUMERABLE = "enumerable"
    ENUM_LIST = "enum-list"
    HANDLE_LIST = "handle-list"


BUFFER_SUPPLY_KINDS = frozenset(
    {
        OverloadKind.ENUMERATE_SCOPED,
        OverloadKind.ENUMERATE_HEAP,
        OverloadKind.ENUMERATE_ALLOCATOR,
    }
)
TWO_CALL_KINDS = BUFFER_SUPPLY_KINDS | {
    OverloadKind.ENUMERABLE,
    OverloadKind.ENUM_LIST,
    OverloadKind.HANDLE_LIST,
}


@dataclass(frozen=True)
class WrapperParameter:
    name: str
    annotation: str
    default: str | None = None


@dataclass(frozen=True)
class LocalBinding:
    name: str
    expression: str


@dataclass(frozen=True)
class Enumeration:
    """Two-call enumeration emitted around the wrapped call.

    Attributes:
        allocator: Allocator expression passed to CompleteEnumerable.
        count: Name of the count buffer argument.
        output: Name of the output buffer argument.
        supply: Buffer source handed to `alloc_on`, or None.
        item: Per-value expression of a decoded list, or None.
    """

    allocator: str
    count: str
    output: str
    supply: str | None = None
    item: str | None = None


@dataclass(frozen=True)
class MethodDescriptor:
    """Everything the renderer needs to emit one wrapper method.

    Sibling imports are (type name, imported name) pairs resolved against
    the unit of the named type; annotation imports are type names used only
    in annotations.
    """

    owner: str | None
    command: str
    call: str
    name: str
    overload: OverloadKind
    parameters: tuple[WrapperParameter, ...]
    arguments: tuple[str, ...]
    locals: tuple[LocalBinding, ...] = ()
    checks_result: bool = False
    captures_result: bool = False
    return_type: str | None = None
    return_expression: str | None = None
    needs_scope: bool = False
    enumeration: Enumeration | None = None
    external_imports: frozenset[tuple[str, str]] = frozenset()
    sibling_imports: frozenset[tuple[str, str]] = frozenset()
    annotation_imports: frozenset[str] = frozenset()


# ===--- Method builder ---=== #

_BUFFER_CLASSES = {
    "byte_buffer": "ByteBuffer",
    "int_buffer": "IntBuffer",
    "long_buffer": "LongBuffer",
    "pointer_buffer": "PointerBuffer",
    "float_buffer": "FloatBuffer",
}
_SCOPE_MALLOC = {
    "byte_buffer": "malloc_byte",
    "int_buffer": "malloc_int",
    "long_buffer": "malloc_long",
    "pointer_buffer": "malloc_pointer",
    "float_buffer": "malloc_float",
}


class MethodBuilder:
    """Accumulates parameters, call arguments and locals for one wrapper method."""

    def __init__(
        self,
        classifier: "OverloadClassifier",
        command_method: CommandMethod,
        owner: str | None,
        name: str,
        overload: OverloadKind,
        reachables: Iterable[ReachableObject],
    ):
        self.classifier = classifier
        self.feature_set = classifier.feature_set
        self.command_method = command_method
        self.owner = owner
        self.name = name
        self.overload = overload
        self.reachables = list(reachables)
        self.parameters: list[WrapperParameter] = []
        self.arguments: list[str] = []
        self.locals: list[LocalBinding] = []
        self.external_imports: set[tuple[str, str]] = set()
        self.sibling_imports: set[tuple[str, str]] = set()
        self.annotation_imports: set[str] = set()
        self.needs_scope = False
        self.ignore_return = False
        self.return_type: str | None = None
        self.return_expression: str | None = None
        self.enumeration: Enumeration | None = None
        self.external_imports.add(
            (self.feature_set.catalog.binding, command_method.symbol.module)
        )

    @property
    def command_name(self) -> str:
        return self.command_method.name

    def runtime(self, name: str) -> str:
        self.external_imports.add((self.feature_set.catalog.runtime, name))
        return name

    def binding_class(self, name: str) -> str:
        self.external_imports.add((self.feature_set.catalog.binding, name))
        return name

    def sibling(self, type_name: str, name: str | None = None) -> str:
        imported = name or type_name
        self.sibling_imports.add((type_name, imported))
        return imported

    def annotation(self, type_name: str) -> str:
        self.annotation_imports.add(type_name)
        return type_name

    def kind_annotation(self, kind: str, type_name: str) -> str:
        if kind in NUMERIC_KINDS:
            return "int"
        if kind in ("float", "double"):
            return "float"
        if kind == "string":
            return "str"
        if kind == "void":
            return "None"
        if kind in _BUFFER_CLASSES:
            return self.runtime(_BUFFER_CLASSES[kind])
        if kind in ("struct", "struct_buffer"):
            return self.binding_class(type_name)
        if kind == "handle":
            return self.annotation(type_name)
        if kind == "callable":
            self.external_imports.add(("collections.abc", "Callable"))
            return "Callable[..., object]"
        return "list[object]"

    def add_reachable(self, obj: ReachableObject) -> None:
        self.reachables.append(obj)

    def matching(self, type_name: str, kind: str | None) -> ReachableObject | None:
        return matching_object(self.reachables, type_name, kind)

    def use(self, obj: ReachableObject) -> str:
        for type_name in obj.requires:
            self.sibling(type_name)
        return obj.path

    def add(self, parameter: MatchedParameter) -> None:
        """Add one matched parameter, replacing it by a reachable object if possible."""
        if parameter.is_array:
            return self.pass_through(parameter)
        match = self.matching(parameter.type, parameter.kind)
        if match is not None:
            self.arguments.append(self.use(match))
            return None
        category = self.feature_set.category(parameter.type)
        if category is Category.HANDLE:
            return self.in_handle(parameter)
        if category in ENUM_CATEGORIES and parameter.num_pointers == 0:
            return self.in_enum(parameter)
        if category in STRUCT_CATEGORIES:
            return self.in_struct(parameter)
        return self.pass_through(parameter)

    def add_all(self, parameters: Iterable[MatchedParameter]) -> None:
        for parameter in parameters:
            self.add(parameter)

    def pass_through(self, parameter: MatchedParameter) -> None:
        annotation = self.kind_annotation(parameter.kind, parameter.type)
        default = None
        if parameter.nullable:
            annotation = f"{annotation} | None"
            if parameter.kind != "string":
                default = "None"
        self.parameters.append(WrapperParameter(parameter.name, annotation, default))
        self.arguments.append(parameter.name)

    def in_handle(self, parameter: MatchedParameter) -> None:
        rooted = [
            obj.rooted_at(parameter.name)
            for obj in self.classifier.reachable_objects(parameter.type)
        ]
        optional = parameter.optional == (True,)
        if optional:
            rooted = [obj.optional(parameter.name) for obj in rooted]
        match = matching_object(rooted, parameter.type, parameter.kind)
        if match is None:
            return self.pass_through(parameter)
        annotation = self.annotation(parameter.type)
        if optional:
            annotation = f"{annotation} | None"
        self.parameters.append(WrapperParameter(parameter.name, annotation))
        self.arguments.append(self.use(match))
        self.reachables.extend(rooted)
        return None

    def in_enum(self, parameter: MatchedParameter) -> None:
        if parameter.kind not in INTEGER_KINDS:
            raise GenerationError(
                f"Enum parameter {parameter.name} must be a primitive type in "
                f"{self.command_name}"
            )
        enum_class = self.sibling(parameter.type)
        self.external_imports.add(("collections.abc", "Callable"))
        builder_name = f"{parameter.name}_builder"
        annotation = f"Callable[[type[{enum_class}]], {enum_class}]"
        if parameter.optional == (True,):
            self.parameters.append(
                WrapperParameter(builder_name, f"{annotation} | None", "None")
            )
            expression = (
                f"{builder_name}({enum_class}) if {builder_name} is not None "
                f"else {enum_class}(0)"
            )
        else:
            self.parameters.append(WrapperParameter(builder_name, annotation))
            expression = f"{builder_name}({enum_class})"
        self.locals.append(LocalBinding(parameter.name, expression))
        value_path = f"{parameter.name}.value"
        self.add_reachable(ReachableObject(False, parameter.name, parameter.type, None))
        self.add_reachable(
            ReachableObject(False, value_path, parameter.type, parameter.kind)
        )
        self.arguments.append(value_path)

    def in_struct(self, parameter: MatchedParameter) -> None:
        self.pass_through(parameter)
        self.add_reachable(
            ReachableObject(False, parameter.name, parameter.type, parameter.kind)
        )
        self.reachables.extend(
            self.classifier.struct_member_objects(
                parameter.name, parameter.type, self.reachables
            )
        )

    def construct_handle(self, handle_type: str, value: str) -> str | None:
        """Return a constructor call wrapping `value`, or None if an argument is missing."""
        arguments = [value]
        if self.feature_set.catalog.handle(handle_type) is not None:
            constructor = self.classifier.supported_constructor(
                handle_type, self.command_method, self.reachables
            )
            if constructor is None:
                return None
            for param in constructor[1:]:
                obj = self.matching(param.type, param.kind)
                if obj is None:
                    return None
                arguments.append(self.use(obj))
        else:
            parent = self.classifier.handle_parent(handle_type)
            if parent is not None:
                obj = self.matching(parent, self.classifier.handle_class_kind(parent))
                if obj is None:
                    return None
                arguments.append(self.use(obj))
        return f"{self.sibling(handle_type)}({', '.join(arguments)})"

    def build(self) -> MethodDescriptor:
        symbol = self.command_method.symbol
        returns = symbol.returns
        checks_result = returns.type == "VkResult"
        if checks_result:
            self.sibling("VkResult")
        captures_result = checks_result
        if (
            self.return_expression is None
            and not self.ignore_return
            and returns.kind != "void"
        ):
            if self.feature_set.category(returns.type) in ENUM_CATEGORIES:
                enum_class = self.sibling(returns.type)
                self.return_type = enum_class
                self.return_expression = f"{enum_class}(result)"
            else:
                self.return_type = self.kind_annotation(returns.kind, returns.type)
                self.return_expression = "result"
            captures_result = True
        return MethodDescriptor(
            owner=self.owner,
            command=self.command_name,
            call=symbol.qualified_name,
            name=self.name,
            overload=self.overload,
            parameters=tuple(self.parameters),
            arguments=tuple(self.arguments),
            locals=tuple(self.locals),
            checks_result=checks_result,
            captures_result=captures_result,
            return_type=self.return_type,
            return_expression=self.return_expression,
            needs_scope=self.needs_scope,
            enumeration=self.enumeration,
            external_imports=frozenset(self.external_imports),
            sibling_imports=frozenset(self.sibling_imports),
            annotation_imports=frozenset(self.annotation_imports),
        )


# ===--- Naming ---=== #


def to_snake_case(name: str) -> str:
    name = re.sub(r"(\d)D\b", r"_\1d", name)
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", "_", name).lower()


def module_name_for_type(type_name: str) -> str:
    """VkPhysicalDevice -> vk_physical_device."""
    return to_snake_case(type_name)


def parent_attribute_name(parent_type: str) -> str:
    """VkPhysicalDevice -> physical_device."""
    return python_identifier(to_snake_case(parent_type.removeprefix("Vk")))


def method_name_for(owner: str | None, command_name: str) -> str:
    """Derive a wrapper method name from a command name.

    For an owner VkX, a leading `X` (after an optional `Get`) and a trailing
    `X` are dropped: vkGetDeviceQueue on VkDevice becomes `get_queue`.
    """
    name = command_name.removeprefix("vk")
    if owner is not None:
        prefix = owner.removeprefix("Vk")
        name = re.sub(rf"^(Get)?{re.escape(prefix)}", r"\1", name).removesuffix(prefix)
    return to_snake_case(name[:1].lower() + name[1:])


def count_method_name(base_name: str) -> str:
    return "num_" + base_name.removeprefix("enumerate_").removeprefix("get_")


# ===--- Overload classification ---=== #

CLOSE_COMMAND_RE = re.compile(r"^(?:vkDestroy|vkFree)")
_LENGTH_MEMBER_RE = re.compile(r"(\w+)->(\w+)")
_RUNTIME_ALLOCATORS = {
    "pointer_buffer": "PointerBufferAllocator",
    "int_buffer": "IntBufferAllocator",
    "long_buffer": "LongBufferAllocator",
}
_WORD_SIZED_BASETYPES = frozenset({"VkDeviceSize", "VkDeviceAddress", "VkRemoteAddressNV"})
_SILENT_OUTPUT_TYPES = frozenset({"void", "Display"})
_TWO_CALL_NOTE = (
    "The count and fill calls are separate; the result may be stale if the "
    "enumerated resource changes in between."
)


def is_supported_constructor(
    constructor: tuple[SymbolParameter, ...],
    command_method: CommandMethod,
    reachables: Iterable[ReachableObject],
) -> bool:
    """Return True when a binding handle constructor can be called from a command.

    The first parameter takes the raw handle value. An optional parent
    parameter must be reachable; at most one further parameter may follow
    and its type must appear among the command's parameters.
    """
    params = list(constructor)
    if not params or params.pop(0).kind != "int64":
        return False
    reachable_types = {obj.type_name for obj in reachables}
    if params and params[0].type in reachable_types:
        params.pop(0)
    if len(params) > 1:
        return False
    return not params or any(p.type == params[0].type for p in command_method.parameters)


def length_expression(
    lengths: tuple[str, ...],
    command_method: CommandMethod,
    output: MatchedParameter | None = None,
) -> str:
    """Resolve a declared `len` into an expression available in the wrapper.

    An auto-sized length is read from another parameter sharing that `len`;
    `output` is the buffer being allocated and never counts as one.

    Raises:
        GenerationError: If the length cannot be resolved.
    """
    if len(lengths) != 1:
        raise GenerationError(
            f"Unsupported length {','.join(lengths)} for {command_method.name}"
        )
    (length,) = lengths
    if length in command_method.auto_sized:
        for parameter in command_method.parameters:
            if parameter is not output and length in parameter.len:
                return f"{parameter.name}.remaining()"
        raise GenerationError(
            f"Auto-sized length {length} for {command_method.name} has no input "
            "parameter to size it from"
        )
    if any(p.name == length for p in command_method.declaration.params):
        return python_identifier(length)
    match = _LENGTH_MEMBER_RE.fullmatch(length)
    if match is not None and any(
        p.declared.name == match.group(1) for p in command_method.parameters
    ):
        return f"{python_identifier(match.group(1))}.{match.group(2)}()"
    raise GenerationError(f"Unknown length parameter {length} for {command_method.name}")


class OverloadClassifier:
    """Turns the matched commands of a FeatureSet into method descriptors.

    Recoverable problems are printed as warnings, collected in `warnings`,
    and skip only the affected overload.
    """

    def __init__(self, feature_set: FeatureSet):
        self.feature_set = feature_set
        self.catalog = feature_set.catalog
        self.warnings: list[str] = []
        self._reachable: dict[str, tuple[ReachableObject, ...]] = {}
        self._in_progress: set[str] = set()

    def _warn(self, message: str) -> list[MethodDescriptor]:
        self.warnings.append(message)
        warn(message)
        return []

    # Handles

    def handle_parent(self, handle_type: str) -> str | None:
        symbol = self.catalog.handle(handle_type)
        if symbol is not None and symbol.parent is not None:
            return symbol.parent
        t = self.feature_set.type_or_none(handle_type)
        if t is None or not isinstance(t.details, HandleDetails) or not t.details.parent:
            return None
        return t.details.parent.split(",")[0]

    def handle_class_kind(self, handle_type: str) -> str | None:
        return "handle" if self.catalog.handle(handle_type) is not None else None

    def parent_attribute(self, handle_type: str, parent: str) -> str | None:
        symbol = self.catalog.handle(handle_type)
        if symbol is not None:
            return symbol.parent_attribute
        return parent_attribute_name(parent)

    def reachable_objects(self, owner: str | None) -> tuple[ReachableObject, ...]:
        """Expressions in scope inside a method of `owner`, self first.

        Raises:
            GenerationError: If the handle parent chain contains a cycle.
        """
        if owner is None:
            return ()
        cached = self._reachable.get(owner)
        if cached is not None:
            return cached
        if owner in self._in_progress:
            raise GenerationError(f"Handle parent cycle through {owner}")
        self._in_progress.add(owner)

        kind = self.handle_class_kind(owner)
        handle_path = f"{SELF_PATH}.address()" if kind else f"{SELF_PATH}.handle"
        objects = [
            ReachableObject(True, SELF_PATH, owner, kind),
            ReachableObject(True, handle_path, owner, "int64"),
        ]
        parent = self.handle_parent(owner)
        attribute = self.parent_attribute(owner, parent) if parent else None
        if parent is not None and attribute is not None:
            objects.extend(
                obj.rooted_at(f"{SELF_PATH}.{attribute}")
                for obj in self.reachable_objects(parent)
            )

        self._in_progress.discard(owner)
        self._reachable[owner] = tuple(objects)
        return self._reachable[owner]

    def struct_member_objects(
        self, root: str, struct_type: str, in_scope: Iterable[ReachableObject]
    ) -> list[ReachableObject]:
        """Handle-typed members of a struct parameter, as reachable objects."""
        t = self.feature_set.type_or_none(struct_type)
        if t is not None and t.alias is not None:
            t = self.feature_set.registry.resolve_alias(t.name, self.feature_set.api)
        if t is None or not isinstance(t.details, StructDetails):
            return []
        in_scope = list(in_scope)
        objects: list[ReachableObject] = []
        for member in t.details.members:
            if (
                self.feature_set.category(member.type) is not Category.HANDLE
                or member.num_pointers
                or member.is_array
            ):
                continue
            accessor = f"{root}.{member.name}()"
            objects.append(ReachableObject(False, accessor, member.type, "int64"))
            if self.catalog.handle(member.type) is not None:
                continue
            parent = self.handle_parent(member.type)
            if parent is None:
                continue
            parent_obj = matching_object(
                [*in_scope, *objects], parent, self.handle_class_kind(parent)
            )
            if parent_obj is not None:
                objects.append(
                    ReachableObject(
                        False,
                        f"{member.type}({accessor}, {parent_obj.path})",
                        member.type,
                        None,
                        frozenset({member.type}) | parent_obj.requires,
                    )
                )
        return objects

    def supported_constructor(
        self,
        handle_type: str,
        command_method: CommandMethod,
        reachables: Iterable[ReachableObject],
    ) -> tuple[SymbolParameter, ...] | None:
        reachables = list(reachables)
        for constructor in self.catalog.constructors(handle_type):
            if is_supported_constructor(constructor, command_method, reachables):
                return constructor
        return None

    # Commands

    def belongs_to(self, command_method: CommandMethod, owner: str | None) -> bool:
        params = command_method.parameters
        first = params[0] if params else None
        if owner is None:
            return first is None or self.feature_set.category(first.type) is not Category.HANDLE
        if first is None:
            return False
        if first.type == owner:
            return True
        return (
            len(params) > 1
            and params[1].type == owner
            and self.handle_parent(owner) == first.type
        )

    def commands_for(self, owner: str | None) -> list[CommandMethod]:
        """Commands wrapped as methods of `owner` (None for the global unit).

        Raises:
            GenerationError: If a parameter type is missing from the registry.
        """
        selected: dict[tuple[str, tuple[str, ...]], CommandMethod] = {}
        for command_method in self.feature_set.command_methods:
            if any(p.kind == "array" for p in command_method.parameters):
                continue
            if not self.belongs_to(command_method, owner):
                continue
            key = (
                method_name_for(owner, command_method.name),
                tuple(p.kind for p in command_method.parameters),
            )
            selected.setdefault(key, command_method)
        for command_method in selected.values():
            for parameter in command_method.parameters:
                if not self.feature_set.type_exists(parameter.type):
                    raise GenerationError(
                        f"Unknown parameter type {parameter.type} in {command_method.name}"
                    )
        return list(selected.values())

    def close_method(self, owner: str) -> MethodDescriptor | None:
        """Build `close()` from a vkDestroy*/vkFree* command taking only the handle."""
        for command_method in self.feature_set.command_methods:
            if not CLOSE_COMMAND_RE.match(command_method.name):
                continue
            params = list(command_method.parameters)
            parent = self.handle_parent(owner)
            if parent is not None and (not params or params.pop(0).type != parent):
                continue
            if not params or params.pop(0).type != owner:
                continue
            if len(params) != 1 or params[0].type != "VkAllocationCallbacks":
                continue
            allocator = ReachableObject(False, "None", "VkAllocationCallbacks", params[0].kind)
            builder = MethodBuilder(
                self,
                command_method,
                owner,
                "close",
                OverloadKind.CLOSE,
                [*self.reachable_objects(owner), allocator],
            )
            builder.ignore_return = True
            builder.add_all(command_method.parameters)
            if builder.parameters:
                continue
            return builder.build()
        return None

    def methods_for(self, owner: str | None) -> list[MethodDescriptor]:
        """All method descriptors of one unit, close() first, names unique."""
        descriptors: list[MethodDescriptor] = []
        close = self.close_method(owner) if owner is not None else None
        if close is not None:
            descriptors.append(close)
        names = {d.name for d in descriptors}
        for command_method in self.commands_for(owner):
            for descriptor in self.overloads(command_method, owner):
                if descriptor.name in names:
                    self._warn(
                        f"Duplicate method {descriptor.name} on {owner or 'vulkan'} "
                        f"from {descriptor.command}; skipped"
                    )
                    continue
                names.add(descriptor.name)
                descriptors.append(descriptor)
        return descriptors

    def overloads(
        self, command_method: CommandMethod, owner: str | None
    ) -> list[MethodDescriptor]:
        """Default overload first, then single-output and enumerating overloads."""
        base_name = method_name_for(owner, command_method.name)
        extra = [
            *self.single_output_overloads(command_method, owner, base_name),
            *self.enumerating_overloads(command_method, owner, base_name),
        ]
        default_name = base_name
        if any(d.name == base_name for d in extra):
            default_name = f"{base_name}_raw"
        default = self._builder(command_method, owner, default_name, OverloadKind.DEFAULT)
        default.add_all(command_method.parameters)
        return [default.build(), *extra]

    def _builder(
        self,
        command_method: CommandMethod,
        owner: str | None,
        name: str,
        overload: OverloadKind,
    ) -> MethodBuilder:
        return MethodBuilder(
            self, command_method, owner, name, overload, self.reachable_objects(owner)
        )

    def _output_builder(
        self,
        command_method: CommandMethod,
        owner: str | None,
        name: str,
        overload: OverloadKind,
        output: MatchedParameter,
    ) -> MethodBuilder:
        builder = self._builder(command_method, owner, name, overload)
        builder.add_all(command_method.parameters[:-1])
        if not output.len or output.len == ("1",):
            length = "1"
        else:
            length = length_expression(output.len, command_method, output)
        builder.locals.append(
            LocalBinding(output.name, f"scope.{_SCOPE_MALLOC[output.kind]}({length})")
        )
        builder.arguments.append(output.name)
        builder.needs_scope = True
        builder.runtime("Scope")
        return builder

    # Single output

    def single_output_overloads(
        self, command_method: CommandMethod, owner: str | None, base_name: str
    ) -> list[MethodDescriptor]:
        params = command_method.parameters
        outputs = [p for p in params if p.is_output and p.num_pointers == 1]
        if len(outputs) != 1 or not params or outputs[0] is not params[-1]:
            return []
        output = params[-1]
        name = command_method.name
        category = self.feature_set.category(output.type)

        if category is Category.HANDLE:
            return self._single_handle(command_method, owner, base_name, output)
        if category in ENUM_CATEGORIES:
            return self._single_enum(command_method, owner, base_name, output)
        if category in STRUCT_CATEGORIES:
            return self._single_struct(command_method, owner, base_name, output)
        if category is Category.BASETYPE:
            if output.type == "VkBool32":
                return self._single_primitive(
                    command_method, owner, base_name, output, OverloadKind.SINGLE_BOOLEAN
                )
            if output.type in _WORD_SIZED_BASETYPES:
                return self._single_primitive(
                    command_method, owner, base_name, output, OverloadKind.SINGLE_PRIMITIVE
                )
            return self._warn(f"Unsupported base type {output.type} for {name}")
        if output.type in _SILENT_OUTPUT_TYPES:
            return []
        if output.kind in ("int_buffer", "long_buffer"):
            return self._single_primitive(
                command_method, owner, base_name, output, OverloadKind.SINGLE_PRIMITIVE
            )
        return self._warn(f"Unsupported output type {output.type} ({output.kind}) for {name}")

    def _single_handle(
        self,
        command_method: CommandMethod,
        owner: str | None,
        base_name: str,
        output: MatchedParameter,
    ) -> list[MethodDescriptor]:
        name = command_method.name
        if output.kind not in ("pointer_buffer", "long_buffer"):
            return self._warn(f"Invalid buffer kind {output.kind} for handle output of {name}")
        if self.catalog.handle(output.type) is not None and (
            self.supported_constructor(output.type, command_method, self.reachable_objects(owner))
            is None
        ):
            return self._warn(f"Failed to find a suitable constructor for {output.type} in {name}")
        is_list = bool(output.len) and output.len != ("1",)
        overload = OverloadKind.SINGLE_HANDLE_LIST if is_list else OverloadKind.SINGLE_HANDLE
        builder = self._output_builder(command_method, owner, base_name, overload, output)
        item = builder.construct_handle(
            output.type, "value" if is_list else f"{output.name}[0]"
        )
        if item is None:
            return self._warn(f"Constructor arguments for {output.type} not in scope in {name}")
        handle_class = builder.annotation(output.type)
        if is_list:
            builder.return_type = f"list[{handle_class}]"
            builder.return_expression = f"[{item} for value in {output.name}]"
        else:
            builder.return_type = handle_class
            builder.return_expression = item
        return [builder.build()]

    def _single_enum(
        self,
        command_method: CommandMethod,
        owner: str | None,
        base_name: str,
        output: MatchedParameter,
    ) -> list[MethodDescriptor]:
        name = command_method.name
        if output.len:
            return self._warn(f"Output {output.name} has a length {','.join(output.len)} in {name}")
        enum_type = self.feature_set.enum_type(self.feature_set.type(output.type))
        expected = "long_buffer" if enum_type.bit_width == 64 else "int_buffer"
        if output.kind != expected:
            return self._warn(
                f"Expected {expected} for {output.type} output, got {output.kind} in {name}"
            )
        builder = self._output_builder(
            command_method, owner, base_name, OverloadKind.SINGLE_ENUM, output
        )
        enum_class = builder.sibling(output.type)
        builder.return_type = enum_class
        builder.return_expression = f"{enum_class}({output.name}[0])"
        return [builder.build()]

    def _single_primitive(
        self,
        command_method: CommandMethod,
        owner: str | None,
        base_name: str,
        output: MatchedParameter,
        overload: OverloadKind,
    ) -> list[MethodDescriptor]:
        name = command_method.name
        if output.len:
            return self._warn(f"Output {output.name} has a length {','.join(output.len)} in {name}")
        if output.kind not in ("int_buffer", "long_buffer"):
            return self._warn(f"Unsupported buffer kind {output.kind} for {output.type} in {name}")
        builder = self._output_builder(command_method, owner, base_name, overload, output)
        if overload is OverloadKind.SINGLE_BOOLEAN:
            builder.return_type = "bool"
            builder.return_expression = f"{output.name}[0] != 0"
        else:
            builder.return_type = "int"
            builder.return_expression = f"{output.name}[0]"
        return [builder.build()]

    def _single_struct(
        self,
        command_method: CommandMethod,
        owner: str | None,
        base_name: str,
        output: MatchedParameter,
    ) -> list[MethodDescriptor]:
        name = command_method.name
        is_buffer = output.kind == "struct_buffer"
        if is_buffer and not output.len:
            length: str | None = "1"
        elif is_buffer:
            length = length_expression(output.len, command_method, output)
        elif not output.len or output.len == ("1",):
            length = None
        else:
            return self._warn(
                f"Output {output.name} is not a buffer but has a length "
                f"{','.join(output.len)} in {name}"
            )

        length_args = [length] if length is not None else []
        variants = (
            (OverloadKind.STRUCT_SCOPED, "_scoped"),
            (OverloadKind.STRUCT_HEAP, "_heap"),
            (OverloadKind.STRUCT_ALLOCATOR, "_alloc"),
        )
        descriptors = []
        for overload, suffix in variants:
            builder = self._builder(command_method, owner, base_name + suffix, overload)
            builder.add_all(command_method.parameters[:-1])
            struct_class = builder.binding_class(output.type)
            if overload is OverloadKind.STRUCT_SCOPED:
                builder.parameters.append(
                    WrapperParameter("scope", builder.runtime("Scope"))
                )
                allocation = f"{struct_class}.malloc({', '.join([*length_args, 'scope=scope'])})"
            elif overload is OverloadKind.STRUCT_HEAP:
                allocation = f"{struct_class}.malloc({', '.join(length_args)})"
            else:
                builder.external_imports.add(("collections.abc", "Callable"))
                signature = "[int]" if length_args else "[]"
                builder.parameters.append(
                    WrapperParameter("alloc", f"Callable[{signature}, {struct_class}]")
                )
                allocation = f"alloc({', '.join(length_args)})"
            builder.locals.append(LocalBinding(output.name, allocation))
            builder.arguments.append(output.name)
            builder.return_type = struct_class
            builder.return_expression = output.name
            descriptors.append(builder.build())
        return descriptors

    # Enumeration

    def enumerating_overloads(
        self, command_method: CommandMethod, owner: str | None, base_name: str
    ) -> list[MethodDescriptor]:
        params = command_method.parameters
        name = command_method.name
        if sum(1 for p in params if p.is_output and p.num_pointers == 1) != 2:
            return []
        count, output = params[-2:]
        if output.len != (count.declared.name,):
            return []
        if count.optional != (False, True):
            return []
        if count.declared.type == "size_t":
            return []
        if count.declared.type != "uint32_t":
            return self._warn(f"Count parameter {count.name} is not a uint32_t for {name}")
        if count.kind != "int_buffer":
            return self._warn(f"Count parameter {count.name} is not an int_buffer for {name}")

        category = self.feature_set.category(output.type)
        if output.kind in _RUNTIME_ALLOCATORS:
            allocator_type, allocator = None, _RUNTIME_ALLOCATORS[output.kind]
        elif category in STRUCT_CATEGORIES and self.catalog.has_struct(output.type):
            allocator_type, allocator = output.type, f"{output.type}Allocator"
        else:
            return self._warn(f"No allocator for {output.type} output of {name}")

        inputs = params[:-2]
        descriptors: list[MethodDescriptor] = []

        query = self._builder(
            command_method, owner, count_method_name(base_name), OverloadKind.COUNT_QUERY
        )
        query.add_all(inputs)
        query.runtime("Scope")
        query.needs_scope = True
        query.locals.append(LocalBinding(count.name, "scope.malloc_int(1)"))
        query.arguments.extend([count.name, "None"])
        query.return_type = "int"
        query.return_expression = f"{count.name}[0]"
        descriptors.append(query.build())

        def enumeration_builder(
            method_name: str, overload: OverloadKind, **enumeration: str
        ) -> MethodBuilder:
            builder = self._builder(command_method, owner, method_name, overload)
            builder.add_all(inputs)
            builder.runtime("CompleteEnumerable")
            if allocator_type is None:
                builder.runtime(allocator)
            else:
                builder.sibling(allocator_type, allocator)
            builder.arguments.extend([count.name, output.name])
            builder.ignore_return = True
            builder.enumeration = Enumeration(allocator, count.name, output.name, **enumeration)
            return builder

        for overload, suffix in (
            (OverloadKind.ENUMERATE_SCOPED, "_scoped"),
            (OverloadKind.ENUMERATE_HEAP, "_heap"),
            (OverloadKind.ENUMERATE_ALLOCATOR, "_alloc"),
        ):
            supply = {
                OverloadKind.ENUMERATE_SCOPED: "scope",
                OverloadKind.ENUMERATE_HEAP: "HEAP",
                OverloadKind.ENUMERATE_ALLOCATOR: "alloc",
            }[overload]
            builder = enumeration_builder(base_name + suffix, overload, supply=supply)
            buffer_class = builder.kind_annotation(output.kind, output.type)
            if overload is OverloadKind.ENUMERATE_SCOPED:
                builder.parameters.append(WrapperParameter("scope", builder.runtime("Scope")))
            elif overload is OverloadKind.ENUMERATE_HEAP:
                builder.runtime("HEAP")
            else:
                builder.external_imports.add(("collections.abc", "Callable"))
                builder.parameters.append(
                    WrapperParameter("alloc", f"Callable[[int], {buffer_class}]")
                )
            builder.return_type = buffer_class
            descriptors.append(builder.build())

        if category in STRUCT_CATEGORIES:
            builder = enumeration_builder(base_name, OverloadKind.ENUMERABLE)
            builder.return_type = "CompleteEnumerable"
            descriptors.append(builder.build())
        elif category in ENUM_CATEGORIES:
            builder = enumeration_builder(
                base_name, OverloadKind.ENUM_LIST, item=f"{output.type}(value)"
            )
            builder.sibling(output.type)
            builder.return_type = f"list[{output.type}]"
            descriptors.append(builder.build())
        elif category is Category.HANDLE:
            if self.catalog.handle(output.type) is not None and (
                self.supported_constructor(output.type, command_method, self.reachable_objects(owner))
                is None
            ):
                self._warn(f"Failed to find a suitable constructor for {output.type} in {name}")
            else:
                builder = enumeration_builder(base_name, OverloadKind.HANDLE_LIST)
                item = builder.construct_handle(output.type, "value")
                if item is None:
                    self._warn(f"Constructor arguments for {output.type} not in scope in {name}")
                else:
                    builder.enumeration = replace(builder.enumeration, item=item)
                    builder.return_type = f"list[{builder.annotation(output.type)}]"
                    descriptors.append(builder.build())
        else:
            self._warn(f"Unsupported category {category} of {output.type} for {name}")
        return descriptors


# ===--- Documentation ---=== #


class Documentation:
    """Docstring source for generated code.

    The default yields minimal docstrings. A subclass can pull text from the
    Vulkan reference pages instead.
    """

    def global_unit(self) -> str:
        return "Vulkan commands that do not belong to a handle."

    def handle_class(self, t: Type) -> str:
        return f"A {t.name} handle."

    def enum_class(self, enum_type: EnumType) -> str:
        kind = "bitmask" if enum_type.is_bitmask else "enum"
        return f"A strongly typed {kind} representing {enum_type.name}."

    def command(self, descriptor: MethodDescriptor) -> list[str]:
        return [f"Wraps {descriptor.command}."]


# ===--- Enum constant naming ---=== #

_FLAG_BITS_RE = re.compile(r"(?:FlagBits|Flags)(\d*)$")
_SNAKE_WORD_RE = re.compile(r"[A-Z]+[a-z]*|\d+")


def to_snake_upper(name: str) -> str:
    """FooBar2KHR -> FOO_BAR_2_KHR."""
    return "_".join(word.upper() for word in _SNAKE_WORD_RE.findall(name))


def class_tag(class_name: str, tags: Iterable[str]) -> str:
    """Return the longest author tag (KHR, EXT, ...) that ends the class name."""
    matches = [tag for tag in tags if tag and class_name.endswith(tag)]
    return max(matches, key=len, default="")


def removable_prefix(class_name: str, tag: str) -> str:
    """Prefix shared by the constants of an enum: VkImageUsageFlagBits -> VK_IMAGE_USAGE_."""
    if class_name == "VkResult":
        return "VK_"
    stem = _FLAG_BITS_RE.sub(r"\1", class_name.removesuffix(tag) if tag else class_name)
    return to_snake_upper(stem) + "_"


def constant_name(name: str, prefix: str, tag: str, tags: Iterable[str]) -> str:
    """Strip the group prefix, the class tag suffix and `_BIT` from a constant name.

    Names that would start with a digit are prefixed with an underscore.
    """
    alternatives = "|".join(re.escape(t) for t in tags if t)
    bit_suffix = rf"_BIT(_(?:{alternatives}))?$" if alternatives else r"_BIT()$"
    cleaned = name.removeprefix(prefix)
    if tag:
        cleaned = cleaned.removesuffix(f"_{tag}")
    cleaned = re.sub(bit_suffix, r"\1", cleaned) or name
    if cleaned[0].isdigit():
        return f"_{cleaned}"
    return cleaned


def constant_sort_key(constant: EnumConstant) -> tuple[int, int]:
    """Core values ascending, then negatives descending, then extension values.

    Aliases (no value) sort first.
    """
    value = constant.long_value
    if value is None:
        return (0, 0)
    if abs(value) > 1000:
        return (1, abs(value))
    return (1, -value if value < 0 else value - 1000)


def format_constant_value(value: int, hexadecimal: bool) -> str:
    if hexadecimal and value >= 0:
        return f"0x{value:08x}"
    return str(value)


@dataclass(frozen=True)
class EnumConstantEntry:
    name: str
    registry_name: str
    value: int | None
    target: str | None = None


def enum_constant_entries(enum_type: EnumType, tags: tuple[str, ...]) -> list[EnumConstantEntry]:
    """Class-level constants of an enum unit: valued ones first, then aliases.

    Raises:
        RegistryError: If a valued constant's value cannot be determined.
    """
    tag = class_tag(enum_type.name, tags)
    prefix = removable_prefix(enum_type.name, tag)
    valued = [c for c in enum_type.constants if c.alias is None]
    aliased = [c for c in enum_type.constants if c.alias is not None]
    valued_names = {c.name: constant_name(c.name, prefix, tag, tags) for c in valued}

    entries: list[EnumConstantEntry] = []
    for constant in sorted(valued, key=constant_sort_key):
        entries.append(
            EnumConstantEntry(valued_names[constant.name], constant.name, constant.long_value)
        )
    for constant in sorted(aliased, key=lambda c: c.name):
        if constant.alias not in valued_names:
            continue
        alias_name = constant_name(constant.name, prefix, tag, tags)
        target = valued_names[constant.alias]
        if alias_name != target:
            entries.append(EnumConstantEntry(alias_name, constant.name, None, target))

    unique: dict[str, EnumConstantEntry] = {}
    for entry in entries:
        unique.setdefault(entry.name, entry)
    return list(unique.values())


# ===--- Unit rendering ---=== #

GLOBAL_UNIT = "vulkan"
_MAX_LINE_LENGTH = 88
_INDENT = "    "


class ImportSet:
    """Collects the imports of one generated unit.

    Sibling handle units import each other, so handle types are imported
    inside method bodies and under TYPE_CHECKING for annotations.
    """

    def __init__(self, feature_set: FeatureSet, unit_type: str | None):
        self.feature_set = feature_set
        self.unit_type = unit_type
        self.external: dict[str, set[str]] = defaultdict(set)
        self.siblings: dict[str, set[str]] = defaultdict(set)
        self.type_checking: dict[str, set[str]] = defaultdict(set)

    def add_external(self, module: str, name: str) -> None:
        self.external[module].add(name)

    def add_sibling(self, type_name: str, name: str | None = None) -> None:
        self.siblings[module_name_for_type(type_name)].add(name or type_name)

    def add_annotation(self, type_name: str) -> None:
        if type_name != self.unit_type:
            self.type_checking[module_name_for_type(type_name)].add(type_name)

    def is_deferred(self, type_name: str) -> bool:
        return self.feature_set.category(type_name) is Category.HANDLE

    def add_descriptor(self, descriptor: MethodDescriptor) -> list[str]:
        """Register a descriptor's imports; return its function-local import lines."""
        for module, name in descriptor.external_imports:
            self.add_external(module, name)
        local: dict[str, set[str]] = defaultdict(set)
        for type_name, name in descriptor.sibling_imports:
            if type_name == self.unit_type:
                continue
            if self.is_deferred(type_name):
                local[module_name_for_type(type_name)].add(name)
            else:
                self.add_sibling(type_name, name)
        for type_name in descriptor.annotation_imports:
            self.add_annotation(type_name)
        return [
            f"from .{module} import {', '.join(sorted(names))}"
            for module, names in sorted(local.items())
        ]

    def module_spec(self, filename: str, content_lines: list[str]) -> "ModuleSpec":
        type_checking = {
            module: names - self.siblings.get(module, set())
            for module, names in self.type_checking.items()
        }
        type_checking = {m: n for m, n in type_checking.items() if n}
        if type_checking:
            self.add_external("typing", "TYPE_CHECKING")
        return ModuleSpec(
            filename=filename,
            external_imports=_import_specs(ExternalImport, self.external),
            sibling_imports=_import_specs(SiblingImport, self.siblings),
            type_checking_imports=_import_specs(SiblingImport, type_checking),
            content_lines=tuple(content_lines),
        )


def _import_specs(kind, grouped: dict[str, set[str]]) -> tuple:
    return tuple(kind(module, tuple(sorted(names))) for module, names in sorted(grouped.items()))


def render_docstring(lines: list[str], indent: str) -> list[str]:
    if len(lines) == 1:
        return [f'{indent}"""{lines[0]}"""']
    rendered = [f'{indent}"""{lines[0]}']
    rendered.extend(f"{indent}{line}" if line else "" for line in lines[1:])
    rendered.append(f'{indent}"""')
    return rendered


def render_parameters(parameters: Iterable[WrapperParameter]) -> list[str]:
    """Render parameters; defaults are kept only on the trailing defaulted run."""
    parameters = list(parameters)
    last_required = max(
        (i for i, p in enumerate(parameters) if p.default is None), default=-1
    )
    rendered = []
    for index, parameter in enumerate(parameters):
        text = f"{parameter.name}: {parameter.annotation}"
        if parameter.default is not None and index > last_required:
            text += f" = {parameter.default}"
        rendered.append(text)
    return rendered


def render_signature(
    name: str, parameters: list[str], return_type: str, indent: str
) -> list[str]:
    line = f"{indent}def {name}({', '.join(parameters)}) -> {return_type}:"
    if len(line) <= _MAX_LINE_LENGTH or not parameters:
        return [line]
    return [
        f"{indent}def {name}(",
        *(f"{indent}{_INDENT}{p}," for p in parameters),
        f"{indent}) -> {return_type}:",
    ]


def render_call(descriptor: MethodDescriptor) -> list[str]:
    call = f"{descriptor.call}({', '.join(descriptor.arguments)})"
    lines = [f"result = {call}" if descriptor.captures_result else call]
    if descriptor.checks_result:
        lines.append(f'VkResult(result).report_failure("{descriptor.command}")')
    return lines


def render_method(
    descriptor: MethodDescriptor,
    imports: ImportSet,
    documentation: Documentation,
    indent: str = "",
    receiver: bool = False,
) -> list[str]:
    """Render one descriptor as a function (or a method when `receiver` is set)."""
    local_imports = imports.add_descriptor(descriptor)
    parameters = (["self"] if receiver else []) + render_parameters(descriptor.parameters)
    lines = render_signature(
        descriptor.name, parameters, descriptor.return_type or "None", indent
    )

    body = indent + _INDENT
    doc = documentation.command(descriptor)
    if descriptor.overload in TWO_CALL_KINDS:
        doc = [*doc, "", _TWO_CALL_NOTE]
    lines.extend(render_docstring(doc, body))
    lines.extend(f"{body}{line}" for line in local_imports)
    if descriptor.needs_scope:
        lines.append(f"{body}with Scope() as scope:")
        body += _INDENT
    lines.extend(f"{body}{local.name} = {local.expression}" for local in descriptor.locals)

    enumeration = descriptor.enumeration
    if enumeration is None:
        lines.extend(f"{body}{line}" for line in render_call(descriptor))
        if descriptor.return_expression is not None:
            lines.append(f"{body}return {descriptor.return_expression}")
        return lines

    lines.append(f"{body}def fill({enumeration.count}, {enumeration.output}):")
    lines.extend(f"{body}{_INDENT}{line}" for line in render_call(descriptor))
    enumerable = f"CompleteEnumerable({enumeration.allocator}, fill)"
    if enumeration.supply is not None:
        lines.append(f"{body}return {enumerable}.alloc_on({enumeration.supply})")
    elif enumeration.item is not None:
        lines.append(f"{body}return [{enumeration.item} for value in {enumerable}]")
    else:
        lines.append(f"{body}return {enumerable}")
    return lines


def render_alias_unit(t: Type, imports: ImportSet, extra_suffixes: tuple[str, ...] = ()) -> list[str]:
    """A type redirect: `VkFooKHR = VkFoo`, plus suffixed companions."""
    target = t.alias or t.name
    lines = []
    for suffix in ("", *extra_suffixes):
        imports.add_sibling(target, target + suffix)
        lines.append(f"{t.name}{suffix} = {target}{suffix}")
    return lines


def render_global_unit(
    feature_set: FeatureSet, classifier: OverloadClassifier
) -> tuple["ModuleSpec", list[MethodDescriptor]]:
    imports = ImportSet(feature_set, None)
    descriptors = classifier.methods_for(None)
    lines = [f'"""{feature_set.documentation.global_unit()}"""']
    for descriptor in descriptors:
        lines.extend(["", ""])
        lines.extend(render_method(descriptor, imports, feature_set.documentation))
    return imports.module_spec(f"{GLOBAL_UNIT}.py", lines), descriptors


def render_handle_unit(
    feature_set: FeatureSet, classifier: OverloadClassifier, t: Type
) -> tuple["ModuleSpec", list[MethodDescriptor]]:
    """Render a handle class with its command methods.

    A handle the binding exposes becomes a subclass of the binding class;
    any other handle becomes a wrapper over its raw value and parent.
    """
    filename = f"{module_name_for_type(t.name)}.py"
    imports = ImportSet(feature_set, t.name)
    if t.alias is not None:
        return imports.module_spec(filename, render_alias_unit(t, imports)), []

    documentation = feature_set.documentation
    descriptors = classifier.methods_for(t.name)
    binding_class = feature_set.catalog.handle(t.name) is not None
    lines: list[str] = []
    if binding_class:
        imports.add_external(feature_set.catalog.binding, f"{t.name} as _{t.name}")
        lines.append(f"class {t.name}(_{t.name}):")
        lines.append(f'{_INDENT}"""{documentation.handle_class(t)}"""')
    else:
        parent = classifier.handle_parent(t.name)
        lines.append(f"class {t.name}:")
        lines.append(f'{_INDENT}"""{documentation.handle_class(t)}"""')
        lines.append("")
        if parent is not None:
            attribute = parent_attribute_name(parent)
            imports.add_annotation(parent)
            lines.append(f"{_INDENT}def __init__(self, handle: int, {attribute}: {parent}):")
            lines.append(f"{_INDENT * 2}self.handle = handle")
            lines.append(f"{_INDENT * 2}self.{attribute} = {attribute}")
        else:
            lines.append(f"{_INDENT}def __init__(self, handle: int):")
            lines.append(f"{_INDENT * 2}self.handle = handle")
        lines.extend(
            [
                "",
                f"{_INDENT}def __repr__(self) -> str:",
                f'{_INDENT * 2}return f"{t.name}(0x{{self.handle:x}})"',
                "",
                f"{_INDENT}def __eq__(self, other: object) -> bool:",
                f"{_INDENT * 2}return isinstance(other, {t.name}) and other.handle == self.handle",
                "",
                f"{_INDENT}def __hash__(self) -> int:",
                f"{_INDENT * 2}return hash(self.handle)",
            ]
        )

    for descriptor in descriptors:
        lines.append("")
        lines.extend(
            render_method(descriptor, imports, documentation, indent=_INDENT, receiver=True)
        )

    if any(d.overload is OverloadKind.CLOSE for d in descriptors):
        lines.extend(
            [
                "",
                f"{_INDENT}def __enter__(self) -> {t.name}:",
                f"{_INDENT * 2}return self",
                "",
                f"{_INDENT}def __exit__(self, *exc_info: object) -> None:",
                f"{_INDENT * 2}self.close()",
            ]
        )
    return imports.module_spec(filename, lines), descriptors


def _enum_value_members(name: str) -> list[str]:
    return [
        f'{_INDENT}__slots__ = ("value",)',
        "",
        f"{_INDENT}def __init__(self, value: int = 0):",
        f"{_INDENT * 2}self.value = value",
        "",
        f"{_INDENT}@classmethod",
        f"{_INDENT}def of(cls, value: int) -> {name}:",
        f"{_INDENT * 2}return cls(value)",
        "",
        f"{_INDENT}def __eq__(self, other: object) -> bool:",
        f"{_INDENT * 2}return isinstance(other, {name}) and other.value == self.value",
        "",
        f"{_INDENT}def __hash__(self) -> int:",
        f"{_INDENT * 2}return hash(self.value)",
        "",
        f"{_INDENT}def __int__(self) -> int:",
        f"{_INDENT * 2}return self.value",
        "",
        f"{_INDENT}def __repr__(self) -> str:",
        f'{_INDENT * 2}return f"{name}({{self.name}})"',
    ]


def _bitmask_members(name: str) -> list[str]:
    return [
        "",
        f"{_INDENT}@property",
        f"{_INDENT}def name(self) -> str:",
        f'{_INDENT * 2}"""Known bit names joined by |, plus any unknown bits in hex."""',
        f"{_INDENT * 2}names = []",
        f"{_INDENT * 2}remaining = self.value",
        f"{_INDENT * 2}for bit, bit_name in _BIT_NAMES:",
        f"{_INDENT * 3}if self.value & bit == bit:",
        f"{_INDENT * 4}names.append(bit_name)",
        f"{_INDENT * 4}remaining &= ~bit",
        f"{_INDENT * 2}if remaining:",
        f"{_INDENT * 3}names.append(hex(remaining))",
        f'{_INDENT * 2}return "|".join(names)',
        "",
        f"{_INDENT}def __or__(self, other: {name}) -> {name}:",
        f"{_INDENT * 2}return {name}(self.value | other.value)",
        "",
        f"{_INDENT}def __and__(self, other: {name}) -> {name}:",
        f"{_INDENT * 2}return {name}(self.value & other.value)",
        "",
        f"{_INDENT}def __sub__(self, other: {name}) -> {name}:",
        f"{_INDENT * 2}return {name}(self.value & ~other.value)",
        "",
        f"{_INDENT}def __contains__(self, other: {name}) -> bool:",
        f"{_INDENT * 2}return self.value & other.value == other.value",
    ]


def _plain_enum_members() -> list[str]:
    return [
        "",
        f"{_INDENT}@property",
        f"{_INDENT}def name(self) -> str:",
        f"{_INDENT * 2}return _NAMES.get(self.value, str(self.value))",
    ]


def _result_members() -> list[str]:
    return [
        "",
        f"{_INDENT}@property",
        f"{_INDENT}def is_success(self) -> bool:",
        f"{_INDENT * 2}return self.value >= 0",
        "",
        f"{_INDENT}@property",
        f"{_INDENT}def is_error(self) -> bool:",
        f"{_INDENT * 2}return self.value < 0",
        "",
        f"{_INDENT}@property",
        f"{_INDENT}def is_warning(self) -> bool:",
        f"{_INDENT * 2}return self.value > 0",
        "",
        f"{_INDENT}def report_failure(self, message: str | None = None) -> None:",
        f'{_INDENT * 2}"""Raise VulkanError if this result is an error."""',
        f"{_INDENT * 2}if not self.is_success:",
        f'{_INDENT * 3}prefix = f"{{message}}: " if message else ""',
        f'{_INDENT * 3}raise VulkanError(f"{{prefix}}Failed with {{self.name}}")',
    ]


def render_enum_unit(feature_set: FeatureSet, t: Type) -> "ModuleSpec":
    """Render an ENUM or BITMASK value class with its constants."""
    filename = f"{module_name_for_type(t.name)}.py"
    imports = ImportSet(feature_set, t.name)
    if t.alias is not None:
        return imports.module_spec(filename, render_alias_unit(t, imports))

    enum_type = feature_set.enum_type(t)
    tags = tuple(tag.name for tag in feature_set.registry.tags)
    entries = enum_constant_entries(enum_type, tags)
    hexadecimal = enum_type.is_bitmask or any(
        c.bitpos is not None for c in enum_type.constants
    )

    lines = [
        f"class {t.name}:",
        f'{_INDENT}"""{feature_set.documentation.enum_class(enum_type)}"""',
        "",
        *_enum_value_members(t.name),
    ]
    if t.name == "VkResult":
        imports.add_external(feature_set.catalog.runtime, "VulkanError")
        lines.extend(_result_members())

    if enum_type.is_bitmask:
        lines.extend(_bitmask_members(t.name))
        bits: dict[int, str] = {}
        for constant in sorted(
            (c for c in enum_type.constants if c.alias is None and c.bitpos is not None),
            key=lambda c: c.bitpos,
        ):
            bits.setdefault(1 << constant.bitpos, constant.name)
        lines.extend(["", ""])
        lines.append("_BIT_NAMES = (")
        lines.extend(
            f'{_INDENT}({format_constant_value(bit, True)}, "{name}"),'
            for bit, name in bits.items()
        )
        lines.append(")")
    else:
        lines.extend(_plain_enum_members())
        names: dict[int, str] = {}
        for entry in entries:
            if entry.value is not None:
                names.setdefault(entry.value, entry.registry_name)
        lines.extend(["", ""])
        lines.append("_NAMES = {")
        lines.extend(f'{_INDENT}{value}: "{name}",' for value, name in names.items())
        lines.append("}")

    if entries:
        lines.append("")
    for entry in entries:
        if entry.value is not None:
            value = format_constant_value(entry.value, hexadecimal)
            lines.append(f"{t.name}.{entry.name} = {t.name}({value})")
        else:
            lines.append(f"{t.name}.{entry.name} = {t.name}.{entry.target}")
    return imports.module_spec(filename, lines)


def render_struct_unit(feature_set: FeatureSet, t: Type) -> "ModuleSpec | None":
    """Re-export a binding struct with its CompleteAllocator; None if the binding lacks it."""
    filename = f"{module_name_for_type(t.name)}.py"
    imports = ImportSet(feature_set, t.name)
    catalog = feature_set.catalog
    if t.alias is not None:
        if not catalog.has_struct(t.alias):
            return None
        return imports.module_spec(filename, render_alias_unit(t, imports, ("Allocator",)))
    if not catalog.has_struct(t.name):
        return None
    imports.add_external(catalog.binding, t.name)
    imports.add_external(catalog.runtime, "CompleteAllocator")
    lines = [
        f'__all__ = ["{t.name}", "{t.name}Allocator"]',
        "",
        f"{t.name}Allocator = CompleteAllocator({t.name})",
    ]
    return imports.module_spec(filename, lines)


def unit_exports(t: Type) -> tuple[str, ...]:
    if t.category in STRUCT_CATEGORIES:
        return (t.name, f"{t.name}Allocator")
    return (t.name,)


# ===--- Package writer ---=== #


@dataclass(frozen=True)
class WriteConfig:
    """Shared generation metadata embedded in every file header.

    Attributes:
        vk_xml_version: Registry version string, e.g. "1.3.283".
        target_feature: Feature the package was generated for.
        target_api: API the package was generated for.
        extensions: Names of the active extensions.
    """

    vk_xml_version: str
    target_feature: str
    target_api: str
    extensions: frozenset[str] = frozenset()


@dataclass(frozen=True)
class ExternalImport:
    """`from <module> import <names>` for a module outside the package."""

    module: str
    names: tuple[str, ...]


@dataclass(frozen=True)
class SiblingImport:
    """`from .<module_stem> import <names>` for a unit of the same package."""

    module_stem: str
    names: tuple[str, ...]


@dataclass(frozen=True)
class ModuleSpec:
    """Complete input for one generated module file (not __init__.py).

    Attributes:
        filename: Output filename including the .py extension.
        external_imports: Imports from modules outside the package.
        sibling_imports: Top-level imports from sibling units.
        type_checking_imports: Sibling imports used only in annotations,
            emitted under `if TYPE_CHECKING:`.
        content_lines: Body source lines without trailing newlines.
    """

    filename: str
    external_imports: tuple[ExternalImport, ...]
    sibling_imports: tuple[SiblingImport, ...]
    type_checking_imports: tuple[SiblingImport, ...]
    content_lines: tuple[str, ...]


@dataclass(frozen=True)
class InitReExport:
    """One unit's entry in __init__.py; `wildcard` emits `import *`."""

    module_stem: str
    wildcard: bool
    names: tuple[str, ...]


@dataclass(frozen=True)
class InitModuleSpec:
    re_exports: tuple[InitReExport, ...]


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing a single generated file.

    Attributes:
        filename: Filename written, e.g. "vk_device.py".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written content.
        byte_count: Number of bytes written (UTF-8 encoded).
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


@dataclass(frozen=True)
class PackageWriteResult:
    output_dir: Path
    files: tuple[FileWriteResult, ...]

    @property
    def total_lines(self) -> int:
        """Sum of line_count across all written files."""
        return sum(f.line_count for f in self.files)


_HEADER_BORDER: str = "# x-------------------------------------------x #"


def format_file_header(config: WriteConfig) -> list[str]:
    """Return the boxed comment at the top of every generated module.

    Output format:
        # x-------------------------------------------x #
        # | Vulkan wrappers for Python
        # | Generated by vulkan-wrapper-gen
        # | Source: vk.xml 1.3.283
        # | Target: VK_VERSION_1_3 (vulkan)
        # | Extensions: 3 active
        # x-------------------------------------------x #

    The Extensions line is omitted when no extension is active.

    Raises:
        ValueError: If config.vk_xml_version is empty.
    """
    if not config.vk_xml_version:
        raise ValueError("vk_xml_version must not be empty")

    lines: list[str] = [
        _HEADER_BORDER,
        "# | Vulkan wrappers for Python",
        f"# | Generated by {GENERATOR_NAME}",
        f"# | Source: vk.xml {config.vk_xml_version}",
        f"# | Target: {config.target_feature} ({config.target_api})",
    ]
    if config.extensions:
        lines.append(f"# | Extensions: {len(config.extensions)} active")
    lines.append(_HEADER_BORDER)
    return lines


def format_import_block(
    external_imports: tuple[ExternalImport, ...],
    sibling_imports: tuple[SiblingImport, ...],
    type_checking_imports: tuple[SiblingImport, ...] = (),
) -> list[str]:
    """Return import lines for a module file.

    Groups are emitted in order (future import, external, sibling,
    TYPE_CHECKING block) separated by single blank lines.

    Raises:
        ValueError: If any import has an empty names tuple.
    """
    for imp in external_imports:
        if not imp.names:
            raise ValueError(
                f"ExternalImport for module '{imp.module}' has empty names tuple"
            )
    for imp in (*sibling_imports, *type_checking_imports):
        if not imp.names:
            raise ValueError(
                f"SiblingImport for module '{imp.module_stem}' has empty names tuple"
            )

    groups: list[list[str]] = [["from __future__ import annotations"]]
    if external_imports:
        groups.append(
            [f"from {imp.module} import {', '.join(imp.names)}" for imp in external_imports]
        )
    if sibling_imports:
        groups.append(
            [
                f"from .{imp.module_stem} import {', '.join(imp.names)}"
                for imp in sibling_imports
            ]
        )
    if type_checking_imports:
        groups.append(
            [
                "if TYPE_CHECKING:",
                *(
                    f"    from .{imp.module_stem} import {', '.join(imp.names)}"
                    for imp in type_checking_imports
                ),
            ]
        )

    lines: list[str] = []
    for group in groups:
        if lines:
            lines.append("")
        lines.extend(group)
    return lines


def assemble_module_source(config: WriteConfig, spec: ModuleSpec) -> str:
    """Assemble a complete module source string from a ModuleSpec.

    File structure:
        <header comment block>
        <blank line>
        <import block>
        <two blank lines>
        <content lines>
        <trailing newline>

    Raises:
        ValueError: If spec.filename is empty or does not end with ".py".
        ValueError: Propagated from format_import_block on empty names.
    """
    if not spec.filename or not spec.filename.endswith(".py"):
        raise ValueError(
            f"spec.filename must be non-empty and end with '.py', got {spec.filename!r}"
        )

    parts: list[str] = list(format_file_header(config))
    parts.append("")
    parts.extend(
        format_import_block(
            spec.external_imports, spec.sibling_imports, spec.type_checking_imports
        )
    )
    if spec.content_lines:
        parts.extend(["", ""])
        parts.extend(spec.content_lines)
    return "\n".join(parts) + "\n"


def assemble_init_source(config: WriteConfig, init_spec: InitModuleSpec) -> str:
    """Assemble __init__.py: a docstring, then one re-export per unit.

    Raises:
        ValueError: If a selective re-export has no names.
    """
    for re_export in init_spec.re_exports:
        if not re_export.wildcard and not re_export.names:
            raise ValueError(
                f"InitReExport for module '{re_export.module_stem}' has "
                f"wildcard=False but empty names tuple"
            )

    target = f"{config.target_feature} ({config.target_api})"
    parts: list[str] = [
        f'"""Vulkan wrappers for {target}. Generated by {GENERATOR_NAME}."""',
        "",
    ]
    for re_export in init_spec.re_exports:
        if re_export.wildcard:
            parts.append(f"from .{re_export.module_stem} import *  # noqa: F401,F403")
        else:
            parts.append(
                f"from .{re_export.module_stem} import {', '.join(re_export.names)}"
            )
    return "\n".join(parts) + "\n"


def _write_text(output_dir: Path, filename: str, content: str) -> FileWriteResult:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    file_path = output_dir / filename
    file_path.write_text(content, encoding="utf-8")
    resolved = file_path.resolve()
    return FileWriteResult(
        filename=filename,
        path=resolved,
        line_count=content.count("\n"),
        byte_count=len(resolved.read_bytes()),
    )


def write_module(
    output_dir: Path, config: WriteConfig, spec: ModuleSpec
) -> FileWriteResult:
    """Write a single generated module file, creating output_dir if absent.

    Raises:
        ValueError: Propagated from assemble_module_source on invalid spec.
        OSError: Propagated directly if the filesystem write fails.
    """
    return _write_text(output_dir, spec.filename, assemble_module_source(config, spec))


def write_init_module(
    output_dir: Path, config: WriteConfig, init_spec: InitModuleSpec
) -> FileWriteResult:
    return _write_text(output_dir, "__init__.py", assemble_init_source(config, init_spec))


def write_package(
    output_dir: Path,
    config: WriteConfig,
    module_specs: tuple[ModuleSpec, ...],
    init_spec: InitModuleSpec,
) -> PackageWriteResult:
    """Write all module files, then __init__.py last.

    Args:
        output_dir: Directory to write all files into. Created if absent.
        config: Shared generation metadata passed to every write call.
        module_specs: Module specs, written in the provided order.
        init_spec: __init__.py re-export manifest.

    Returns:
        PackageWriteResult with module results first and __init__.py last.

    Raises:
        ValueError: Propagated from any assemble_* call on invalid spec.
        OSError: Propagated directly from any write failure.
    """
    files: list[FileWriteResult] = []
    for spec in module_specs:
        files.append(write_module(output_dir, config, spec))
    files.append(write_init_module(output_dir, config, init_spec))
    return PackageWriteResult(output_dir=Path(output_dir), files=tuple(files))


def staging_dir_for(output_dir: Path) -> Path:
    return output_dir.with_name(output_dir.name + ".staging")


def swap_in_staged_output(staging_dir: Path, output_dir: Path) -> None:
    """Replace output_dir with a fully written staging directory.

    Raises:
        RuntimeError: If output_dir resolves to a filesystem root.
    """
    resolved = output_dir.resolve()
    if resolved == Path(resolved.anchor):
        raise RuntimeError(f"Refusing to replace filesystem root {output_dir}")
    if output_dir.exists():
        shutil.rmtree(output_dir)
    staging_dir.rename(output_dir)


# ===--- Discovery ---=== #


@dataclass(frozen=True)
class FeatureSummary:
    """One row of the --list-features table.

    Counts are cumulative over the feature's dependency chain, with removed
    types and commands subtracted.

    Attributes:
        name: Feature name, e.g. "VK_VERSION_1_3".
        number: Feature number, e.g. "1.3".
        depends: Raw depends= attribute value, or "" if absent.
        type_count: Distinct types required up to and including this feature.
        command_count: Distinct commands required up to and including this feature.
    """

    name: str
    number: str
    depends: str
    type_count: int
    command_count: int


@dataclass(frozen=True)
class ExtensionSummary:
    """One row of the --list-extensions table.

    Attributes:
        name: Extension name, e.g. "VK_KHR_swapchain".
        number: Registry extension number.
        ext_type: "device", "instance", or "" if unspecified in vk.xml.
        active: True when the symbol manifest has a module for the extension.
        type_count: Distinct type names in the extension's require blocks.
        command_count: Distinct command names in the extension's require blocks.
        depends_raw: Raw depends= attribute value, or "" if absent.
        promoted_to: Raw promotedto= value, or None if not promoted.
    """

    name: str
    number: int
    ext_type: str
    active: bool
    type_count: int
    command_count: int
    depends_raw: str
    promoted_to: str | None


def _required_names(
    blocks: Iterable[Require | Remove], api: str
) -> tuple[set[str], set[str]]:
    types: set[str] = set()
    commands: set[str] = set()
    for block in blocks:
        if not supports_api(block.api, api):
            continue
        types.update(t.name for t in block.types if supports_api(t.api, api))
        commands.update(c.name for c in block.commands)
    return types, commands


def gather_feature_summaries(registry: Registry, api: str) -> list[FeatureSummary]:
    """Return one FeatureSummary per feature of `api`, in registry order.

    Raises:
        GenerationError: If a feature's depends chain loops.
    """
    summaries: list[FeatureSummary] = []
    for feature in registry.features:
        if not supports_api(feature.api, api):
            continue
        chain = resolve_feature_chain(registry, feature)
        types, commands = _required_names(
            (r for f in chain for r in f.requires), api
        )
        removed_types, removed_commands = _required_names(
            (r for f in chain for r in f.removes), api
        )
        summaries.append(
            FeatureSummary(
                name=feature.name,
                number=feature.number,
                depends=feature.depends or "",
                type_count=len(types - removed_types),
                command_count=len(commands - removed_commands),
            )
        )
    return summaries


def gather_extension_summaries(
    registry: Registry, api: str, catalog: SymbolCatalog | None = None
) -> list[ExtensionSummary]:
    """Return one ExtensionSummary per extension supporting `api`, sorted by name.

    Counts reflect the extension's own require blocks, not its dependencies.
    Without a catalog no extension is marked active.
    """
    summaries: list[ExtensionSummary] = []
    for extension in registry.extensions:
        if not extension.supported or not supports_api(extension.supported, api):
            continue
        types, commands = _required_names(extension.requires, api)
        active = (
            catalog is not None
            and catalog.module(extension_module_name(extension.name)) is not None
        )
        summaries.append(
            ExtensionSummary(
                name=extension.name,
                number=extension.number,
                ext_type=extension.type or "",
                active=active,
                type_count=len(types),
                command_count=len(commands),
                depends_raw=extension.depends or "",
                promoted_to=extension.promoted_to,
            )
        )
    summaries.sort(key=lambda s: s.name)
    return summaries


def filter_extensions_by_text(
    summaries: list[ExtensionSummary],
    filter_text: str,
) -> list[ExtensionSummary]:
    """Return summaries whose name contains filter_text, case-insensitively.

    Preserves input order. An empty filter_text returns all summaries.
    """
    if not filter_text:
        return list(summaries)
    needle = filter_text.lower()
    return [s for s in summaries if needle in s.name.lower()]


def format_features_table(
    summaries: list[FeatureSummary], api: str, registry_version: str
) -> str:
    """Return the complete --list-features output as a string.

    Output format:

        Vulkan features in vk.xml 1.3.283:

          VK_VERSION_1_0  1.0   538 types   215 commands
          VK_VERSION_1_1  1.1   642 types   243 commands  depends: VK_VERSION_1_0

    Returns:
        Formatted multi-line string including trailing newline.
    """
    lines = [f"{api} features in vk.xml {registry_version}:", ""]
    name_width = max((len(s.name) for s in summaries), default=0)
    number_width = max((len(s.number) for s in summaries), default=0)
    for s in summaries:
        type_col = f"{s.type_count} types"
        cmd_col = f"{s.command_count} commands"
        row = (
            f"  {s.name.ljust(name_width)}  {s.number.ljust(number_width)}"
            f"  {type_col:>11} {cmd_col:>14}"
        )
        if s.depends:
            row += f"  depends: {s.depends}"
        lines.append(row.rstrip())
    lines.append("")
    return "\n".join(lines)


def format_extensions_table(
    summaries: list[ExtensionSummary],
    api: str,
    registry_version: str,
    show_active: bool = False,
) -> str:
    """Return the complete --list-extensions output as a single string.

    Output format:

        2 vulkan extensions in vk.xml 1.3.283:

          *    1  VK_KHR_surface    instance  5 types    5 cmds
               2  VK_KHR_swapchain  device    13 types   9 cmds   depends: VK_KHR_surface

    Column widths for name and type come from the widest value. Active
    extensions are marked with `*` when show_active is set. The trailing
    field shows promotedto= if present, else depends= truncated to 40
    characters. Callers pre-filter with filter_extensions_by_text.

    Returns:
        Formatted multi-line string including trailing newline.
    """
    lines = [f"{len(summaries)} {api} extensions in vk.xml {registry_version}:"]
    if show_active:
        lines.append("  (* = active: the symbol manifest has a module for it)")
    lines.append("")

    if not summaries:
        lines.append("")
        return "\n".join(lines)

    name_width = max((len(s.name) for s in summaries), default=0)
    type_width = max((len(s.ext_type) for s in summaries), default=0)
    number_width = max((len(str(s.number)) for s in summaries), default=0)

    for s in summaries:
        marker = "* " if show_active and s.active else "  "
        type_col = s.ext_type.ljust(type_width) if type_width else ""
        type_count_col = f"{s.type_count} types"
        cmd_count_col = f"{s.command_count} cmds"

        if s.promoted_to is not None:
            annotation = f"promoted: {s.promoted_to}"
        elif s.depends_raw:
            raw = s.depends_raw
            if len(raw) > 40:
                raw = raw[:37] + "..."
            annotation = f"depends: {raw}"
        else:
            annotation = ""

        row = (
            f"  {marker}{str(s.number).rjust(number_width)}  {s.name.ljust(name_width)}"
            f"  {type_col}  {type_count_col:<10} {cmd_count_col:<8}"
        )
        if annotation:
            row = row.rstrip() + f"  {annotation}"
        lines.append(row.rstrip())

    lines.append("")
    return "\n".join(lines)


def run_discovery(config: DiscoveryConfig) -> None:
    """Execute the discovery command specified in config and print its table.

    dispatch table:
      "list-features"   -> gather_feature_summaries -> format_features_table
      "list-extensions" -> gather_extension_summaries -> [filter] -> format_extensions_table

    Raises:
        OSError: vk.xml or the symbol manifest is not readable.
        ET.ParseError: Malformed vk.xml.
        RegistryError: vk.xml content cannot be turned into registry records.
        SymbolCatalogError: The symbol manifest is malformed.
    """
    registry = load_registry(config.vk_xml)
    registry_version = extract_registry_version(registry, config.target_api)

    if config.command == "list-features":
        summaries = gather_feature_summaries(registry, config.target_api)
        print(
            format_features_table(summaries, config.target_api, registry_version),
            end="",
        )
        return

    catalog = load_symbol_catalog(config.symbols) if config.symbols else None
    extensions = gather_extension_summaries(registry, config.target_api, catalog)
    if config.filter_text is not None:
        extensions = filter_extensions_by_text(extensions, config.filter_text)
    output = format_extensions_table(
        extensions, config.target_api, registry_version, show_active=catalog is not None
    )
    print(output, end="")


# ===--- Generation pipeline ---=== #

GENERATED_CATEGORIES = frozenset({Category.HANDLE}) | ENUM_CATEGORIES | STRUCT_CATEGORIES


@dataclass(frozen=True)
class RenderedPackage:
    """Everything rendered for one FeatureSet, ready to be written.

    Attributes:
        module_specs: One spec per generated unit, global unit last.
        init_spec: Re-exports of every unit, in module_specs order.
        types: Types that produced a unit, in generation order.
        descriptors: Method descriptors of all handle units and the global unit.
    """

    module_specs: tuple[ModuleSpec, ...]
    init_spec: InitModuleSpec
    types: tuple[Type, ...]
    descriptors: tuple[MethodDescriptor, ...]


def render_package(
    feature_set: FeatureSet, classifier: OverloadClassifier
) -> RenderedPackage:
    """Render every handle, enum and struct unit, then the global unit.

    Struct units the binding does not expose are skipped.

    Raises:
        GenerationError: Propagated from classification and rendering.
        RegistryError: Propagated from enum constant evaluation.
    """
    units = [t for t in feature_set.types if t.category in GENERATED_CATEGORIES]
    specs: list[ModuleSpec] = []
    re_exports: list[InitReExport] = []
    types: list[Type] = []
    descriptors: list[MethodDescriptor] = []

    for index, t in enumerate(units, start=1):
        print(f"  ({index}/{len(units)}): Processing type {t.category.name}: {t.name}")
        if t.category is Category.HANDLE:
            spec, methods = render_handle_unit(feature_set, classifier, t)
            descriptors.extend(methods)
        elif t.category in ENUM_CATEGORIES:
            spec = render_enum_unit(feature_set, t)
        else:
            struct_spec = render_struct_unit(feature_set, t)
            if struct_spec is None:
                continue
            spec = struct_spec
        specs.append(spec)
        types.append(t)
        re_exports.append(
            InitReExport(module_name_for_type(t.name), False, unit_exports(t))
        )

    global_spec, global_methods = render_global_unit(feature_set, classifier)
    specs.append(global_spec)
    descriptors.extend(global_methods)
    re_exports.append(InitReExport(GLOBAL_UNIT, True, ()))

    return RenderedPackage(
        module_specs=tuple(specs),
        init_spec=InitModuleSpec(re_exports=tuple(re_exports)),
        types=tuple(types),
        descriptors=tuple(descriptors),
    )


def build_write_config(feature_set: FeatureSet, vk_xml_version: str) -> WriteConfig:
    return WriteConfig(
        vk_xml_version=vk_xml_version,
        target_feature=feature_set.feature.name,
        target_api=feature_set.api,
        extensions=frozenset(feature_set.extension_modules),
    )


def write_output(
    config: GenerateConfig,
    write_config: WriteConfig,
    rendered: RenderedPackage,
) -> PackageWriteResult:
    """Write the rendered package to config.output_dir.

    With --clean the package is written to a staging sibling first and only
    swapped in once every file is written, so a failed run leaves the previous
    output untouched. Without --clean files are written in place.

    Raises:
        OSError: Propagated from any filesystem operation.
        ValueError: Propagated from assembling an invalid spec.
    """
    if not config.clean:
        return write_package(
            config.output_dir, write_config, rendered.module_specs, rendered.init_spec
        )

    staging_dir = staging_dir_for(config.output_dir)
    if staging_dir.exists():
        shutil.rmtree(staging_dir)
    staged = write_package(
        staging_dir, write_config, rendered.module_specs, rendered.init_spec
    )
    swap_in_staged_output(staging_dir, config.output_dir)
    output_dir = config.output_dir.resolve()
    return PackageWriteResult(
        output_dir=Path(config.output_dir),
        files=tuple(replace(f, path=output_dir / f.filename) for f in staged.files),
    )


def run_generate(config: GenerateConfig) -> PackageWriteResult:
    """Execute the complete generation pipeline for a GenerateConfig.

    Runs parse -> catalog load -> resolve -> classify and render -> write ->
    summary.

    Args:
        config: Validated GenerateConfig from build_config.

    Returns:
        PackageWriteResult describing every file written.

    Raises:
        OSError: Input not readable or filesystem write failure.
        ET.ParseError: Malformed vk.xml.
        RegistryError: vk.xml content cannot be turned into registry records.
        SymbolCatalogError: The symbol manifest is malformed.
        GenerationError: Registry, catalog and target are inconsistent.
    """
    print(f"Parsing: {config.vk_xml}")
    registry = load_registry(config.vk_xml)
    print(
        f"  Registry: {len(registry.types)} types, {len(registry.commands)} commands, "
        f"{len(registry.features)} features, {len(registry.extensions)} extensions"
    )

    catalog = load_symbol_catalog(config.symbols)
    print(
        f"  Symbols: {len(catalog.modules)} modules, "
        f"{len(catalog.handles)} handle classes, {len(catalog.structs)} structs"
    )

    feature_set = resolve_feature_set(
        registry, config.target_api, config.target_feature, catalog
    )
    chain = " -> ".join(f.name for f in feature_set.feature_chain)
    print(f"  Features: {chain}")
    print(f"  Extensions: {len(feature_set.active_extensions)} active")
    for extension in feature_set.active_extensions:
        print(f"    {extension.name}")
    print(
        f"  Target: {len(feature_set.types)} types, "
        f"{len(feature_set.command_methods)} commands"
    )

    classifier = OverloadClassifier(feature_set)
    rendered = render_package(feature_set, classifier)

    write_config = build_write_config(
        feature_set, extract_registry_version(registry, config.target_api)
    )
    result = write_output(config, write_config, rendered)
    print(
        f"  Written: {len(result.files)} files, "
        f"{result.total_lines} lines to {result.output_dir}"
    )

    summary = build_generation_summary(
        write_config, rendered, classifier.warnings, result
    )
    print_generation_summary(summary)
    return result


# ===--- Summary report ---=== #

SUMMARY_LARGEST_FILES = 10
"""Number of files listed individually under "Files written:"."""

_TYPE_ROWS: tuple[tuple[str, Category], ...] = (
    ("Handles:", Category.HANDLE),
    ("Enums:", Category.ENUM),
    ("Bitmasks:", Category.BITMASK),
    ("Structs:", Category.STRUCT),
    ("Unions:", Category.UNION),
)


@dataclass(frozen=True)
class CategoryCount:
    """A labelled count in one row of the summary.

    Attributes:
        label: Row label, e.g. "Handles:" or "single-handle".
        total: Number of items in the row.
        aliases: How many of total are alias units.
    """

    label: str
    total: int
    aliases: int = 0


@dataclass(frozen=True)
class GenerationSummary:
    """Complete, immutable data for the post-generation console report.

    Produced by build_generation_summary. Consumed by format_generation_summary
    and print_generation_summary.

    Attributes:
        target_label: e.g. "VK_VERSION_1_3 (vulkan) + 3 extensions".
        source_label: Registry source string, e.g. "vk.xml 1.3.283".
        output_dir: Output directory path as string.
        type_counts: One row per generated type category.
        command_count: Distinct commands wrapped by at least one method.
        overload_counts: Methods per OverloadKind, zero rows omitted.
        warning_count: Overloads skipped with a warning.
        files: Ordered write results.
    """

    target_label: str
    source_label: str
    output_dir: str
    type_counts: tuple[CategoryCount, ...]
    command_count: int
    overload_counts: tuple[CategoryCount, ...]
    warning_count: int
    files: tuple[FileWriteResult, ...]


def build_target_label(config: WriteConfig) -> str:
    label = f"{config.target_feature} ({config.target_api})"
    if config.extensions:
        count = len(config.extensions)
        label += f" + {count} extension{'s' if count != 1 else ''}"
    return label


def build_type_counts(types: Iterable[Type]) -> tuple[CategoryCount, ...]:
    types = list(types)
    rows = []
    for label, category in _TYPE_ROWS:
        selected = [t for t in types if t.category is category]
        aliases = sum(1 for t in selected if t.alias is not None)
        rows.append(CategoryCount(label, len(selected), aliases))
    return tuple(rows)


def build_overload_counts(
    descriptors: Iterable[MethodDescriptor],
) -> tuple[CategoryCount, ...]:
    counts: dict[OverloadKind, int] = defaultdict(int)
    for descriptor in descriptors:
        counts[descriptor.overload] += 1
    return tuple(
        CategoryCount(kind.value, counts[kind]) for kind in OverloadKind if counts[kind]
    )


def build_generation_summary(
    write_config: WriteConfig,
    rendered: RenderedPackage,
    warnings: Iterable[str],
    write_result: PackageWriteResult,
) -> GenerationSummary:
    return GenerationSummary(
        target_label=build_target_label(write_config),
        source_label=f"vk.xml {write_config.vk_xml_version}",
        output_dir=str(write_result.output_dir),
        type_counts=build_type_counts(rendered.types),
        command_count=len({d.command for d in rendered.descriptors}),
        overload_counts=build_overload_counts(rendered.descriptors),
        warning_count=len(list(warnings)),
        files=write_result.files,
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render a GenerationSummary to the multi-section console string.

    Alias annotations appear only when a row has aliases. Only the largest
    SUMMARY_LARGEST_FILES files are listed. Line counts use thousands
    separators. Returns a string with exactly one trailing newline.
    """
    lines: list[str] = []
    lines.append(f"{summary.target_label} wrappers generated:")
    lines.append("")
    lines.append(f"  Target:     {summary.target_label}")
    lines.append(f"  Source:     {summary.source_label}")
    lines.append(f"  Output:     {summary.output_dir}")
    lines.append("")
    lines.append("  Types generated:")
    for row in summary.type_counts:
        text = f"    {row.label:<11}{row.total:>6}"
        if row.aliases:
            text += f"  ({row.total - row.aliases} + {row.aliases} aliases)"
        lines.append(text)
    lines.append(f"    {'Commands:':<11}{summary.command_count:>6}")

    if summary.overload_counts:
        lines.append("")
        lines.append("  Methods by overload:")
        for row in summary.overload_counts:
            lines.append(f"    {row.label:<21}{row.total:>6}")

    lines.append("")
    lines.append(f"  Warnings:   {summary.warning_count}")

    largest = sorted(summary.files, key=lambda f: (-f.line_count, f.filename))
    lines.append("")
    lines.append("  Files written:")
    for file_result in largest[:SUMMARY_LARGEST_FILES]:
        line_str = f"{file_result.line_count:>6,} lines"
        lines.append(f"    {file_result.filename:<36} {line_str}")
    if len(largest) > SUMMARY_LARGEST_FILES:
        lines.append(f"    ... and {len(largest) - SUMMARY_LARGEST_FILES} more")

    total_lines = sum(f.line_count for f in summary.files)
    lines.append("")
    lines.append(f"  Total: {total_lines:,} lines across {len(summary.files)} files")
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
        else:
            run_generate(config)
    except (OSError, ET.ParseError) as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except (RuntimeError, ValueError) as err:
        print(f"Internal error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
