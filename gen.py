"""libvips FFI bindings generator for Python.

Generates typed libvips bindings from the operation introspection dump.
Produces `bindings.py`, `ops.py` and `error.py` under the output directory.

Usage:
    python gen.py --dump introspection.txt --output-dir libvips/
    python gen.py --introspect-source /path/to/introspect.c
"""

import os
import argparse
import keyword
import math
import re
import shutil
import subprocess
import sys
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from collections.abc import Callable, Iterable, Sequence
from typing import IO, NamedTuple

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_INTROSPECT_BIN = PROJECT_ROOT / "introspect"
DEFAULT_OUTPUT_DIR = PROJECT_ROOT / "generated"
OUTPUT_DIR_ENV_VAR = "BINDINGS_DIR"


# ===--- CLI config contracts ---=== #

INPUT_DUMP = "dump"
INPUT_BINARY = "introspect-bin"
INPUT_SOURCE = "introspect-source"


@dataclass(frozen=True)
class CatalogSource:
    kind: str
    path: Path

    @property
    def label(self) -> str:
        return f"{self.kind} {self.path.name}"


@dataclass(frozen=True)
class GenerateConfig:
    source: CatalogSource
    output_dir: Path
    formatter: str
    platform: str


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str
    filter_text: str | None
    info_operation: str | None
    source: CatalogSource | None
    platform: str


VALID_ERROR_CODES = {
    "INVALID_OPERATION_NAME",
    "CONFLICT_GENERATE_DISCOVERY",
    "FILTER_WITHOUT_LIST",
    "PATH_NOT_FOUND",
}
VALID_FORMATTERS = ("black", "ruff", "none")
_OPERATION_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


def validate_operation_name(name: str) -> str:
    if _OPERATION_NAME_RE.match(name):
        return name
    raise ConfigError(
        "INVALID_OPERATION_NAME",
        f"Invalid operation name: {name}",
        "Operation names are libvips nicknames (for example resize or jpegsave_buffer).",
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


def default_output_dir() -> Path:
    override = os.environ.get(OUTPUT_DIR_ENV_VAR)
    if override:
        return Path(override)
    return DEFAULT_OUTPUT_DIR


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate libvips bindings for Python")

    input_group = parser.add_mutually_exclusive_group()
    input_group.add_argument("--dump", type=Path, default=None)
    input_group.add_argument("--introspect-bin", type=Path, default=None)
    input_group.add_argument("--introspect-source", type=Path, default=None)

    parser.add_argument("--output-dir", type=Path, default=None)
    parser.add_argument("--formatter", choices=VALID_FORMATTERS, default=None)
    parser.add_argument("--platform", type=str, default=sys.platform)

    discovery_group = parser.add_mutually_exclusive_group()
    discovery_group.add_argument(
        "--list-operations", action="store_true", default=False
    )
    discovery_group.add_argument("--info", type=str, default=None)
    discovery_group.add_argument("--link-flags", action="store_true", default=False)

    parser.add_argument("--filter", type=str, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def resolve_catalog_source(args: argparse.Namespace) -> CatalogSource:
    if args.dump is not None:
        return CatalogSource(INPUT_DUMP, validate_path_exists(args.dump, "--dump"))
    if args.introspect_source is not None:
        return CatalogSource(
            INPUT_SOURCE,
            validate_path_exists(args.introspect_source, "--introspect-source"),
        )
    binary = args.introspect_bin
    if binary is None:
        binary = DEFAULT_INTROSPECT_BIN
    return CatalogSource(
        INPUT_BINARY,
        validate_path_exists(
            binary,
            "--introspect-bin",
            "Build the introspection tool:\n"
            "  python gen.py --introspect-source /path/to/introspect.c\n"
            "Or pass a saved dump: --dump /your/path/to/introspection.txt",
        ),
    )


def validate_config(args: argparse.Namespace) -> GenerateConfig | DiscoveryConfig:
    has_generate_input = bool(
        args.output_dir is not None or args.formatter is not None
    )
    has_discovery_command = bool(args.list_operations or args.info or args.link_flags)

    if args.filter and not args.list_operations:
        raise ConfigError(
            "FILTER_WITHOUT_LIST",
            "--filter requires --list-operations.",
            "Add --list-operations or remove --filter.",
        )

    if has_generate_input and has_discovery_command:
        raise ConfigError(
            "CONFLICT_GENERATE_DISCOVERY",
            "Generate flags cannot be combined with discovery flags.",
            "Choose either generate mode or one discovery command.",
        )

    if has_discovery_command:
        if args.link_flags:
            command = "link-flags"
        elif args.list_operations:
            command = "list-operations"
        else:
            command = "info"

        info_operation = (
            validate_operation_name(args.info) if args.info is not None else None
        )
        source = None if command == "link-flags" else resolve_catalog_source(args)
        return DiscoveryConfig(
            command=command,
            filter_text=args.filter,
            info_operation=info_operation,
            source=source,
            platform=args.platform,
        )

    output_dir = args.output_dir if args.output_dir is not None else default_output_dir()
    return GenerateConfig(
        source=resolve_catalog_source(args),
        output_dir=output_dir,
        formatter=args.formatter or "black",
        platform=args.platform,
    )


def build_config(argv: list[str] | None = None) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv))


# ===--- Constants ---=== #

OPERATION_RENAMES = {"match": "matches"}

# Parameter names that collide with call-site words get a filler suffix.
RESERVED_PARAM_NAMES = {"in", "ref"}
RESERVED_PARAM_FILLER = "p"

# Names the generated modules bind at module level.
GENERATED_RESERVED_NAMES = {
    "NULL",
    "bindings",
    "ctypes",
    "dataclass",
    "error",
    "field",
    "utils",
}

# Operations that need hand-written wrappers, matched against the native
# nickname or the native group.
OPERATION_BLOCKLIST = frozenset(
    {
        "VipsForeignSaveDzBuffer",
        "crop",
        "VipsLinear",
        "VipsGetpoint",
    }
)

OUTPUT_PREFIX = "OUTPUT:"
OPERATION_MARKER = "OPERATION:"
REQUIRED_MARKER = "REQUIRED:"
OPTIONAL_MARKER = "OPTIONAL:"
PARAM_MARKER = "PARAM:"
SECTION_MARKERS = {OPERATION_MARKER, REQUIRED_MARKER, OPTIONAL_MARKER}

ICC_PROFILE_MARKER = "ICC"
ICC_PROFILE_DEFAULT = "sRGB"

WINDOWS_LIBRARY_NAMES = ("libvips", "libglib-2.0", "libgobject-2.0")
UNIX_LIBRARY_NAMES = ("vips", "glib-2.0", "gobject-2.0")


# ===--- Type model ---=== #


@dataclass(frozen=True)
class EnumEntry:
    value: int
    nick: str
    name: str


@dataclass(frozen=True)
class IntType:
    min: int
    max: int
    default: int


@dataclass(frozen=True)
class UIntType:
    min: int
    max: int
    default: int


@dataclass(frozen=True)
class DoubleType:
    min: float
    max: float
    default: float


@dataclass(frozen=True)
class StrType:
    pass


@dataclass(frozen=True)
class BoolType:
    default: bool


@dataclass(frozen=True)
class ArrayIntType:
    pass


@dataclass(frozen=True)
class ArrayDoubleType:
    pass


@dataclass(frozen=True)
class ArrayImageType:
    pass


@dataclass(frozen=True)
class ArrayByteType:
    pass


@dataclass(frozen=True)
class ImageType:
    """Image handle.

    prev names the preceding required array-of-images parameter. When set,
    the native call passes that array's length right after this slot.
    """

    prev: str | None = None


@dataclass(frozen=True)
class InterpolateType:
    pass


@dataclass(frozen=True)
class BlobType:
    pass


@dataclass(frozen=True)
class EnumType:
    name: str
    entries: tuple[EnumEntry, ...]
    default: int
    is_flags: bool = False


ParamType = (
    IntType
    | UIntType
    | DoubleType
    | StrType
    | BoolType
    | ArrayIntType
    | ArrayDoubleType
    | ArrayImageType
    | ArrayByteType
    | ImageType
    | InterpolateType
    | BlobType
    | EnumType
)

PARAM_TYPE_VARIANTS: tuple[type, ...] = (
    IntType,
    UIntType,
    DoubleType,
    StrType,
    BoolType,
    ArrayIntType,
    ArrayDoubleType,
    ArrayImageType,
    ArrayByteType,
    ImageType,
    InterpolateType,
    BlobType,
    EnumType,
)

NUMERIC_TYPES = (IntType, UIntType, DoubleType)
NUMBER_ARRAY_TYPES = (ArrayIntType, ArrayDoubleType)
LIST_ARRAY_TYPES = (ArrayIntType, ArrayDoubleType, ArrayImageType)


_TARGET_TYPES: dict[type, str] = {
    IntType: "int",
    UIntType: "int",
    DoubleType: "float",
    StrType: "str",
    BoolType: "bool",
    ArrayIntType: "list[int]",
    ArrayDoubleType: "list[float]",
    ArrayImageType: "list[VipsImage]",
    ArrayByteType: "bytes",
    ImageType: "VipsImage",
    InterpolateType: "VipsInterpolate",
    BlobType: "bytes",
}

# Positional arrays are passed as a raw element array plus a length, so the
# positional entries for arrays name the element type.
_NATIVE_IN_TYPES: dict[type, str] = {
    IntType: "ctypes.c_int",
    UIntType: "ctypes.c_uint64",
    DoubleType: "ctypes.c_double",
    StrType: "ctypes.c_char_p",
    BoolType: "ctypes.c_int",
    ArrayIntType: "ctypes.c_int",
    ArrayDoubleType: "ctypes.c_double",
    ArrayImageType: "ctypes.c_void_p",
    ArrayByteType: "ctypes.c_char",
    ImageType: "ctypes.c_void_p",
    InterpolateType: "ctypes.c_void_p",
    BlobType: "ctypes.c_void_p",
    EnumType: "ctypes.c_int",
}

_NATIVE_OPTIONAL_IN_TYPES: dict[type, str] = {
    **_NATIVE_IN_TYPES,
    ArrayIntType: "utils.VipsArrayIntWrapper",
    ArrayDoubleType: "utils.VipsArrayDoubleWrapper",
    ArrayImageType: "utils.VipsArrayImageWrapper",
}

_NATIVE_OUT_TYPES: dict[type, str] = {
    IntType: "ctypes.c_int",
    UIntType: "ctypes.c_uint64",
    DoubleType: "ctypes.c_double",
    StrType: "ctypes.c_char_p",
    BoolType: "ctypes.c_int",
    ArrayIntType: "ctypes.POINTER(ctypes.c_int)",
    ArrayDoubleType: "ctypes.POINTER(ctypes.c_double)",
    ArrayImageType: "ctypes.POINTER(ctypes.c_void_p)",
    ArrayByteType: "ctypes.c_void_p",
    ImageType: "ctypes.c_void_p",
    InterpolateType: "ctypes.c_void_p",
    BlobType: "ctypes.c_void_p",
    EnumType: "ctypes.c_int",
}

_STATIC_DEFAULTS: dict[type, str] = {
    StrType: '""',
    ArrayIntType: "[]",
    ArrayDoubleType: "[]",
    ArrayImageType: "[]",
    ArrayByteType: 'b""',
    ImageType: "VipsImage()",
    InterpolateType: "VipsInterpolate()",
    BlobType: 'b""',
}

_DEFAULT_FACTORIES: dict[type, str | None] = {
    IntType: None,
    UIntType: None,
    DoubleType: None,
    StrType: None,
    BoolType: None,
    ArrayIntType: "list",
    ArrayDoubleType: "list",
    ArrayImageType: "list",
    ArrayByteType: None,
    ImageType: "VipsImage",
    InterpolateType: "VipsInterpolate",
    BlobType: None,
    EnumType: None,
}


def _lookup(table: dict[type, str], kind: ParamType) -> str:
    try:
        return table[type(kind)]
    except KeyError:
        raise TypeError(f"Unsupported parameter kind: {kind!r}") from None


def to_snake_case(name: str) -> str:
    name = name.replace("-", "_")
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])", "_", name).lower()


def to_class_case(name: str) -> str:
    parts = to_snake_case(name).split("_")
    return "".join(part[:1].upper() + part[1:] for part in parts if part)


def python_identifier(name: str) -> str:
    if keyword.iskeyword(name) or name in GENERATED_RESERVED_NAMES:
        return name + "_"
    return name


def enum_class_name(name: str) -> str:
    return name.removeprefix("Vips") or name


def enum_member_name(nick: str) -> str:
    member = re.sub(r"[^0-9A-Za-z]+", "_", nick).strip("_").upper()
    if not member or member[0].isdigit():
        member = "V" + member
    return member


def enum_default_entry(kind: EnumType) -> EnumEntry:
    matches = [e for e in kind.entries if e.value == kind.default]
    if len(matches) != 1:
        raise ValueError(
            f"Enumeration {kind.name} default {kind.default} matches "
            f"{len(matches)} entries, expected exactly one"
        )
    return matches[0]


def _float_literal(value: float) -> str:
    if math.isnan(value):
        return 'float("nan")'
    if math.isinf(value):
        return 'float("inf")' if value > 0 else 'float("-inf")'
    return repr(float(value))


def _format_number(value: int | float) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def target_type(kind: ParamType) -> str:
    if isinstance(kind, EnumType):
        return enum_class_name(kind.name)
    return _lookup(_TARGET_TYPES, kind)


def native_in_type(kind: ParamType, optional: bool = False) -> str:
    table = _NATIVE_OPTIONAL_IN_TYPES if optional else _NATIVE_IN_TYPES
    return _lookup(table, kind)


def native_out_type(kind: ParamType) -> str:
    return _lookup(_NATIVE_OUT_TYPES, kind)


def default_value(kind: ParamType) -> str:
    if isinstance(kind, (IntType, UIntType)):
        return str(kind.default)
    if isinstance(kind, DoubleType):
        return _float_literal(kind.default)
    if isinstance(kind, BoolType):
        return "True" if kind.default else "False"
    if isinstance(kind, EnumType):
        entry = enum_default_entry(kind)
        return f"{enum_class_name(kind.name)}.{enum_member_name(entry.nick)}"
    return _lookup(_STATIC_DEFAULTS, kind)


def default_factory(kind: ParamType) -> str | None:
    if type(kind) not in _DEFAULT_FACTORIES:
        raise TypeError(f"Unsupported parameter kind: {kind!r}")
    return _DEFAULT_FACTORIES[type(kind)]


def enum_entry_doc(entry: EnumEntry) -> str:
    return f"`{enum_member_name(entry.nick)}` -> {entry.name} = {entry.value}"


def type_doc(kind: ParamType) -> list[str]:
    """Documentation lines for a kind: numeric range, bool default or enum choices."""
    if isinstance(kind, NUMERIC_TYPES):
        return [
            f"min: {_format_number(kind.min)}, "
            f"max: {_format_number(kind.max)}, "
            f"default: {_format_number(kind.default)}"
        ]
    if isinstance(kind, BoolType):
        return [f"default: {kind.default}"]
    if isinstance(kind, EnumType):
        lines = []
        for entry in kind.entries:
            doc = enum_entry_doc(entry)
            if entry.value == kind.default:
                doc += " [DEFAULT]"
            lines.append(doc)
        return lines
    if type(kind) not in PARAM_TYPE_VARIANTS:
        raise TypeError(f"Unsupported parameter kind: {kind!r}")
    return []


# ===--- Data classes ---=== #


@dataclass(frozen=True, eq=False)
class Parameter:
    order: int
    name: str
    native_name: str
    nick: str
    description: str
    kind: ParamType

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Parameter):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)


@dataclass(frozen=True)
class Operation:
    name: str
    native_name: str
    native_group: str
    description: str
    required: tuple[Parameter, ...]
    optional: tuple[Parameter, ...]
    output: tuple[Parameter, ...]
    optional_output: tuple[Parameter, ...] = ()

    @property
    def class_name(self) -> str:
        return to_class_case(self.name)

    @property
    def options_class(self) -> str:
        return f"{self.class_name}Options"

    @property
    def options_param(self) -> str:
        return f"{self.name}_options"

    @property
    def error_class(self) -> str:
        return f"{self.class_name}Error"


@dataclass(frozen=True)
class CoefficientSubstitution:
    """Replacement for a required block the native catalog reports wrongly.

    The block at `position` (counted over the required section) is discarded
    and one unrestricted double per name is synthesized in its place.
    """

    native_group: str
    position: int
    names: tuple[str, ...]
    nick: str
    description: str

    def parameters(self, order: int) -> list[Parameter]:
        return [
            Parameter(
                order=order + offset,
                name=name,
                native_name=name,
                nick=self.nick,
                description=self.description,
                kind=DoubleType(-math.inf, math.inf, 0.0),
            )
            for offset, name in enumerate(self.names)
        ]


# VipsAffine reports the matrix as one array; the call takes four doubles.
REQUIRED_SUBSTITUTIONS: dict[str, CoefficientSubstitution] = {
    "VipsAffine": CoefficientSubstitution(
        native_group="VipsAffine",
        position=2,
        names=("a", "b", "c", "d"),
        nick="Transformation Matrix",
        description="Transformation Matrix coefficient",
    ),
}


# ===--- Catalog parsing ---=== #


class CatalogParseError(Exception):
    def __init__(self, message: str, line_number: int | None = None):
        text = message if line_number is None else f"line {line_number}: {message}"
        super().__init__(text)
        self.message = message
        self.line_number = line_number


class _Line(NamedTuple):
    number: int
    text: str


def _significant_lines(text: str) -> list[_Line]:
    return [
        _Line(number, line.strip())
        for number, line in enumerate(text.splitlines(), start=1)
        if line.strip()
    ]


def _split_operation_chunks(lines: list[_Line]) -> list[tuple[_Line, list[_Line]]]:
    chunks: list[tuple[_Line, list[_Line]]] = []
    for line in lines:
        if line.text == OPERATION_MARKER:
            chunks.append((line, []))
        elif not chunks:
            raise CatalogParseError(
                f"expected {OPERATION_MARKER} before {line.text!r}", line.number
            )
        else:
            chunks[-1][1].append(line)
    return chunks


def _find_marker(lines: list[_Line], marker: str, after: _Line) -> int:
    for index, line in enumerate(lines):
        if line.text == marker:
            return index
    raise CatalogParseError(f"missing {marker} section", after.number)


def _split_param_blocks(lines: list[_Line]) -> list[list[_Line]]:
    blocks: list[list[_Line]] = [[]]
    for line in lines:
        if line.text in SECTION_MARKERS:
            raise CatalogParseError(f"unexpected {line.text} marker", line.number)
        if line.text == PARAM_MARKER:
            blocks.append([])
        else:
            blocks[-1].append(line)
    return [block for block in blocks if block]


def _parse_number(raw: str, number_type: Callable[[str], int | float], line: _Line):
    try:
        return number_type(raw)
    except ValueError:
        raise CatalogParseError(f"cannot parse number {raw!r}", line.number) from None


def _parse_range(line: _Line, number_type: Callable[[str], int | float]):
    fields = line.text.split(":")
    if len(fields) != 4:
        raise CatalogParseError(
            f"expected <tag>:<min>:<max>:<default>, got {line.text!r}", line.number
        )
    return tuple(_parse_number(raw, number_type, line) for raw in fields[1:])


def _parse_bool(line: _Line) -> BoolType:
    fields = line.text.split(":")
    if len(fields) != 2 or fields[1] not in ("0", "1"):
        raise CatalogParseError(f"expected bool:<0|1>, got {line.text!r}", line.number)
    return BoolType(default=fields[1] == "1")


def _parse_uint(raw: str) -> int:
    value = int(raw)
    if value < 0:
        raise ValueError(raw)
    return value


def _parse_enum(line: _Line, extra: list[_Line]) -> EnumType:
    tag, _, name = line.text.partition("-")
    if not name:
        raise CatalogParseError(f"missing enumeration name in {line.text!r}", line.number)
    if not extra:
        raise CatalogParseError(f"enumeration {name} has no default line", line.number)

    entries = []
    for entry_line in extra[:-1]:
        fields = entry_line.text.split(":", 2)
        if len(fields) != 3:
            raise CatalogParseError(
                f"expected <value>:<nick>:<name>, got {entry_line.text!r}",
                entry_line.number,
            )
        value = _parse_number(fields[0], int, entry_line)
        entries.append(EnumEntry(value=value, nick=fields[1], name=fields[2]))

    default_line = extra[-1]
    kind = EnumType(
        name=name,
        entries=tuple(entries),
        default=_parse_number(default_line.text, int, default_line),
        is_flags=tag == "flags",
    )
    try:
        enum_default_entry(kind)
    except ValueError as err:
        raise CatalogParseError(str(err), default_line.number) from None
    return kind


# Prefix descriptors, checked in order. The dump appends "-<description>" to
# object types such as VipsInterpolate.
_PREFIX_DESCRIPTORS: tuple[tuple[str, Callable[[str | None], ParamType]], ...] = (
    ("string", lambda prev: StrType()),
    ("VipsImage", lambda prev: ImageType(prev=prev)),
    ("VipsBlob", lambda prev: BlobType()),
    ("VipsInterpolate", lambda prev: InterpolateType()),
)

_ARRAY_DESCRIPTORS: tuple[tuple[str, Callable[[], ParamType]], ...] = (
    ("byte-data", ArrayByteType),
    ("array of int", ArrayIntType),
    ("array of double", ArrayDoubleType),
    ("array of images", ArrayImageType),
)


def parse_type_descriptor(
    line: _Line, extra: list[_Line], prev: str | None = None
) -> ParamType:
    descriptor = line.text
    if descriptor.startswith("enum-") or descriptor.startswith("flags-"):
        return _parse_enum(line, extra)
    if extra:
        raise CatalogParseError(
            f"unexpected line after type descriptor {descriptor!r}", extra[0].number
        )

    for prefix, build in _PREFIX_DESCRIPTORS:
        if descriptor.startswith(prefix):
            return build(prev)

    tag = descriptor.split(":", 1)[0]
    if tag == "bool":
        return _parse_bool(line)
    if tag == "int":
        return IntType(*_parse_range(line, int))
    if tag == "double":
        return DoubleType(*_parse_range(line, float))
    if tag == "uint64":
        return UIntType(*_parse_range(line, _parse_uint))

    for prefix, build in _ARRAY_DESCRIPTORS:
        if descriptor.startswith(prefix):
            return build()

    raise CatalogParseError(f"unsupported type: {descriptor}", line.number)


def parameter_name(raw_name: str) -> str:
    if raw_name in RESERVED_PARAM_NAMES:
        raw_name += RESERVED_PARAM_FILLER
    return python_identifier(to_snake_case(raw_name))


def operation_name(native_name: str) -> str:
    if native_name in OPERATION_RENAMES:
        return OPERATION_RENAMES[native_name]
    return python_identifier(to_snake_case(native_name))


def parse_param_block(
    block: list[_Line], order: int, prev: str | None = None
) -> tuple[bool, Parameter]:
    if len(block) < 4:
        raise CatalogParseError(
            "parameter block needs name, nick, description and type lines",
            block[0].number,
        )
    raw_name = block[0].text
    is_output = raw_name.startswith(OUTPUT_PREFIX)
    if is_output:
        raw_name = raw_name[len(OUTPUT_PREFIX) :]
    if not raw_name:
        raise CatalogParseError("empty parameter name", block[0].number)

    kind = parse_type_descriptor(block[3], block[4:], prev)
    return is_output, Parameter(
        order=order,
        name=parameter_name(raw_name),
        native_name=raw_name,
        nick=block[1].text,
        description=block[2].text,
        kind=kind,
    )


def parse_operation(marker: _Line, body: list[_Line]) -> Operation:
    if not body:
        raise CatalogParseError("empty operation block", marker.number)

    header = body[0]
    native_name, _, native_group = header.text.partition(":")
    if not native_name or not native_group:
        raise CatalogParseError(
            f"expected <name>:<group> header, got {header.text!r}", header.number
        )

    required_at = _find_marker(body, REQUIRED_MARKER, header)
    description_lines = body[1:required_at]
    if len(description_lines) != 1:
        raise CatalogParseError(
            f"expected one description line for {native_name}, "
            f"got {len(description_lines)}",
            header.number,
        )

    optional_at = _find_marker(body, OPTIONAL_MARKER, body[required_at])
    if optional_at < required_at:
        raise CatalogParseError(
            f"{OPTIONAL_MARKER} before {REQUIRED_MARKER}", body[optional_at].number
        )

    required: list[Parameter] = []
    output: list[Parameter] = []
    substitution = REQUIRED_SUBSTITUTIONS.get(native_group)
    order = 0
    for block in _split_param_blocks(body[required_at + 1 : optional_at]):
        if substitution is not None and order == substitution.position:
            synthesized = substitution.parameters(order)
            required.extend(synthesized)
            order += len(synthesized)
            continue

        prev = None
        if order == 1 and required and isinstance(required[0].kind, ArrayImageType):
            prev = required[0].name
        is_output, param = parse_param_block(block, order, prev)
        if is_output:
            output.append(param)
        else:
            required.append(param)
        order += 1

    optional: list[Parameter] = []
    optional_output: list[Parameter] = []
    for block in _split_param_blocks(body[optional_at + 1 :]):
        is_output, param = parse_param_block(block, 0)
        if is_output:
            # Kept off the wrapper signature; by-name options have no out slot.
            optional_output.append(param)
        else:
            optional.append(param)

    return Operation(
        name=operation_name(native_name),
        native_name=native_name,
        native_group=native_group,
        description=description_lines[0].text,
        required=tuple(required),
        optional=tuple(optional),
        output=tuple(output),
        optional_output=tuple(optional_output),
    )


def parse_introspection(text: str) -> list[Operation]:
    """Parse a full introspection dump into operations, in dump order.

    Raises:
        CatalogParseError: On any deviation from the dump grammar. No partial
            result is returned.
    """
    chunks = _split_operation_chunks(_significant_lines(text))
    return [parse_operation(marker, body) for marker, body in chunks]


def is_blocklisted(
    operation: Operation, blocklist: frozenset[str] = OPERATION_BLOCKLIST
) -> bool:
    return operation.native_name in blocklist or operation.native_group in blocklist


def partition_blocklist(
    operations: Iterable[Operation], blocklist: frozenset[str] = OPERATION_BLOCKLIST
) -> tuple[list[Operation], list[Operation]]:
    emitted = []
    blocked = []
    for op in operations:
        if is_blocklisted(op, blocklist):
            blocked.append(op)
        else:
            emitted.append(op)
    return emitted, blocked


# ===--- Parameter code fragments ---=== #


def param_declaration(param: Parameter) -> str:
    return f"{param.name}: {target_type(param.kind)}"


def declare_in_variable(param: Parameter) -> list[str]:
    n = param.name
    kind = param.kind
    native = native_in_type(kind)
    if isinstance(kind, NUMERIC_TYPES):
        return [f"{n}_in = {native}({n})"]
    if isinstance(kind, StrType):
        return [f"{n}_in = {native}(utils.new_c_string({n}))"]
    if isinstance(kind, BoolType):
        return [f"{n}_in = {native}(1 if {n} else 0)"]
    if isinstance(kind, NUMBER_ARRAY_TYPES):
        return [f"{n}_in = ({native} * len({n}))(*{n})"]
    if isinstance(kind, ArrayImageType):
        return [f"{n}_in = ({native} * len({n}))(*[image.ctx for image in {n}])"]
    if isinstance(kind, ArrayByteType):
        return [f"{n}_in = ({native} * len({n})).from_buffer_copy({n})"]
    if isinstance(kind, (ImageType, InterpolateType)):
        return [f"{n}_in = {n}.ctx"]
    if isinstance(kind, BlobType):
        return [f"{n}_in = utils.new_blob({n})"]
    if isinstance(kind, EnumType):
        return [f"{n}_in = {native}(int({n}))"]
    raise TypeError(f"Unsupported parameter kind: {kind!r}")


def declare_in_variable_optional(param: Parameter, options_param: str) -> list[str]:
    n = param.name
    kind = param.kind
    native = native_in_type(kind, optional=True)
    source = f"{options_param}.{n}"
    if isinstance(kind, NUMERIC_TYPES):
        return [f"{n}_in = {native}({source})"]
    if isinstance(kind, StrType):
        return [f"{n}_in = {native}(utils.new_c_string({source}))"]
    if isinstance(kind, BoolType):
        return [f"{n}_in = {native}(1 if {source} else 0)"]
    if isinstance(kind, LIST_ARRAY_TYPES):
        return [f"{n}_wrapper = {native}({source})", f"{n}_in = {n}_wrapper.ctx"]
    if isinstance(kind, ArrayByteType):
        return [f"{n}_in = ({native} * len({source})).from_buffer_copy({source})"]
    if isinstance(kind, (ImageType, InterpolateType)):
        return [f"{n}_in = {source}.ctx"]
    if isinstance(kind, BlobType):
        return [f"{n}_in = utils.new_blob({source})"]
    if isinstance(kind, EnumType):
        return [f"{n}_in = {native}(int({source}))"]
    raise TypeError(f"Unsupported parameter kind: {kind!r}")


def declare_opt_name(param: Parameter) -> str:
    return f'{param.name}_in_name = utils.new_c_string("{param.native_name}")'


def declare_out_variable(param: Parameter) -> list[str]:
    n = param.name
    kind = param.kind
    native = native_out_type(kind)
    if isinstance(kind, NUMERIC_TYPES):
        return [f"{n}_out = {native}({default_value(kind)})"]
    if isinstance(kind, BoolType):
        return [f"{n}_out = {native}(0)"]
    if isinstance(kind, LIST_ARRAY_TYPES):
        return [f"{n}_array_size = ctypes.c_int(0)", f"{n}_out = {native}()"]
    if isinstance(kind, ArrayByteType):
        return [f"{n}_buf_size = ctypes.c_size_t(0)", f"{n}_out = {native}()"]
    return [f"{n}_out = {native}()"]


def call_argument(param: Parameter, is_output: bool) -> str:
    n = param.name
    kind = param.kind
    if is_output:
        if isinstance(kind, ArrayByteType):
            return f"ctypes.byref({n}_out), ctypes.byref({n}_buf_size)"
        if isinstance(kind, LIST_ARRAY_TYPES):
            return f"ctypes.byref({n}_out), ctypes.byref({n}_array_size)"
        if isinstance(kind, ImageType) and kind.prev is not None:
            return f"ctypes.byref({n}_out), ctypes.c_int(len({kind.prev}))"
        return f"ctypes.byref({n}_out)"
    if isinstance(kind, NUMBER_ARRAY_TYPES):
        return f"{n}_in, ctypes.c_int(len({n}))"
    if isinstance(kind, ArrayByteType):
        return f"{n}_in, ctypes.c_size_t(len({n}))"
    return f"{n}_in"


def opt_param_pair(param: Parameter) -> str:
    return f"{param.name}_in_name, {param.name}_in"


def as_out_param(param: Parameter) -> str:
    n = param.name
    kind = param.kind
    if isinstance(kind, ArrayByteType):
        return f"utils.new_byte_array({n}_out, {n}_buf_size.value)"
    if isinstance(kind, ArrayIntType):
        return f"utils.new_int_array({n}_out, {n}_array_size.value)"
    if isinstance(kind, ArrayDoubleType):
        return f"utils.new_double_array({n}_out, {n}_array_size.value)"
    if isinstance(kind, ArrayImageType):
        return f"utils.new_image_array({n}_out, {n}_array_size.value)"
    if isinstance(kind, ImageType):
        return f"VipsImage({n}_out)"
    if isinstance(kind, InterpolateType):
        return f"VipsInterpolate({n}_out)"
    if isinstance(kind, BlobType):
        return f"bytes(VipsBlob({n}_out))"
    if isinstance(kind, NUMERIC_TYPES):
        return f"{n}_out.value"
    if isinstance(kind, BoolType):
        return f"{n}_out.value != 0"
    if isinstance(kind, StrType):
        return f"utils.new_string({n}_out)"
    if isinstance(kind, EnumType):
        return f"{enum_class_name(kind.name)}({n}_out.value)"
    raise TypeError(f"Unsupported parameter kind: {kind!r}")


def options_field_default(param: Parameter) -> str:
    kind = param.kind
    if isinstance(kind, StrType) and ICC_PROFILE_MARKER in param.description:
        return f'"{ICC_PROFILE_DEFAULT}"'
    factory = default_factory(kind)
    if factory is not None:
        return f"field(default_factory={factory})"
    return default_value(kind)


# ===--- Operation generation ---=== #

_INDENT = "    "


def _doc_text(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')


def _comment_text(text: str) -> str:
    return text.replace("\n", " ")


def return_annotation(op: Operation) -> str:
    if not op.output:
        return "None"
    if len(op.output) == 1:
        return target_type(op.output[0].kind)
    return f"tuple[{', '.join(target_type(p.kind) for p in op.output)}]"


def param_doc(param: Parameter) -> list[str]:
    lines = [f"{param.name}: `{target_type(param.kind)}` -> {param.description}"]
    lines.extend(f"{_INDENT}{doc}" for doc in type_doc(param.kind))
    return lines


def returns_doc(op: Operation) -> list[str]:
    if len(op.output) == 1:
        out = op.output[0]
        return [f"returns `{target_type(out.kind)}` - {out.description}"]
    if len(op.output) > 1:
        lines = ["returns Tuple ("]
        for out in op.output:
            lines.append(f"{_INDENT}`{target_type(out.kind)}` - {out.description}")
        lines.append(")")
        return lines
    return []


def generate_docstring(op: Operation, with_optional: bool) -> list[str]:
    body: list[str] = []
    for param in op.required:
        body.extend(param_doc(param))
    if with_optional and op.optional:
        body.append(f"{op.options_param}: `{op.options_class}` -> optional arguments")
    body.extend(returns_doc(op))

    lines = [f'{_INDENT}"""{_doc_text(op.description)}']
    if body:
        lines.append("")
        lines.extend(f"{_INDENT}{_doc_text(line)}" for line in body)
    lines.append(f'{_INDENT}"""')
    return lines


def generate_signature(op: Operation, with_optional: bool) -> str:
    params = [param_declaration(p) for p in op.required]
    name = op.name
    if with_optional:
        name = f"{op.name}_with_opts"
        params.append(f"{op.options_param}: {op.options_class}")
    return f"def {name}({', '.join(params)}) -> {return_annotation(op)}:"


def call_arguments(op: Operation, with_optional: bool) -> list[str]:
    outputs = set(op.output)
    merged = sorted(op.required + op.output, key=lambda p: p.order)
    args = [call_argument(p, p in outputs) for p in merged]
    if with_optional:
        args.extend(opt_param_pair(p) for p in op.optional)
    args.append("NULL")
    return args


def generate_wrapper_fn(op: Operation, with_optional: bool) -> list[str]:
    lines = [generate_signature(op, with_optional)]
    lines.extend(generate_docstring(op, with_optional))

    body: list[str] = []
    for param in op.required:
        body.extend(declare_in_variable(param))
    for param in op.output:
        body.extend(declare_out_variable(param))
    if with_optional:
        for param in op.optional:
            body.extend(declare_in_variable_optional(param, op.options_param))
            body.append(declare_opt_name(param))
    if body:
        body.append("")

    args = ", ".join(call_arguments(op, with_optional))
    body.append(f"vips_op_response = bindings.vips_{op.native_name}({args})")
    body.append("if vips_op_response != 0:")
    body.append(f"{_INDENT}raise error.{op.error_class}()")

    results = [as_out_param(p) for p in op.output]
    if not results:
        body.append("return None")
    elif len(results) == 1:
        body.append(f"return {results[0]}")
    else:
        body.append(f"return ({', '.join(results)})")

    lines.extend(f"{_INDENT}{line}" if line else "" for line in body)
    return lines


def generate_options_class(op: Operation) -> list[str]:
    lines = [
        "@dataclass",
        f"class {op.options_class}:",
        f'{_INDENT}"""Options for {op.name} operation"""',
    ]
    for param in op.optional:
        lines.append("")
        lines.append(
            f"{_INDENT}# {param.name}: `{target_type(param.kind)}` -> "
            f"{_comment_text(param.description)}"
        )
        for doc in type_doc(param.kind):
            lines.append(f"{_INDENT}# {_INDENT}{doc}")
        lines.append(f"{_INDENT}{param_declaration(param)} = {options_field_default(param)}")
    return lines


def generate_operation(op: Operation) -> list[str]:
    """Wrapper source for one operation: the positional form, then the
    options record and the by-name form when optional parameters exist."""
    lines = generate_wrapper_fn(op, with_optional=False)
    lines.extend(["", ""])
    if op.optional:
        lines.extend(generate_options_class(op))
        lines.extend(["", ""])
        lines.extend(generate_wrapper_fn(op, with_optional=True))
        lines.extend(["", ""])
    return lines


# ===--- Enumerations ---=== #


def operation_enum_types(op: Operation) -> list[EnumType]:
    params = op.required + op.optional + op.output + op.optional_output
    return [p.kind for p in params if isinstance(p.kind, EnumType)]


def generate_enum_declaration(kind: EnumType) -> str:
    base = "IntFlag" if kind.is_flags else "IntEnum"
    lines = [f"class {enum_class_name(kind.name)}({base}):"]
    seen: set[str] = set()
    for entry in kind.entries:
        member = enum_member_name(entry.nick)
        if member in seen:
            raise ValueError(
                f"Enumeration {kind.name} maps two entries to member {member}"
            )
        seen.add(member)
        lines.append(f"{_INDENT}# {enum_entry_doc(entry)}")
        lines.append(f"{_INDENT}{member} = {entry.value}")
    return "\n".join(lines)


def collect_enum_declarations(operations: Iterable[Operation]) -> list[str]:
    """Return every referenced enumeration declaration once, sorted.

    Declarations are deduplicated by exact text, not by enumeration identity:
    two copies of one enumeration that render differently both survive.
    Such name clashes are reported so they do not go unnoticed.
    """
    declarations = {
        generate_enum_declaration(kind)
        for op in operations
        for kind in operation_enum_types(op)
    }
    ordered = sorted(declarations)

    by_name: dict[str, int] = {}
    for decl in ordered:
        class_name = decl.split("(", 1)[0].removeprefix("class ")
        by_name[class_name] = by_name.get(class_name, 0) + 1
    for class_name, count in sorted(by_name.items()):
        if count > 1:
            print(f"  Warning: {count} differing declarations of enumeration {class_name}")

    return ordered


# ===--- Error taxonomy ---=== #

ERROR_BASE_CLASS = "Error"
ERROR_DETAIL_SUFFIX = "Check error buffer for more details"


@dataclass(frozen=True)
class BuiltinError:
    name: str
    display: str
    takes_message: bool


BUILTIN_ERRORS: tuple[BuiltinError, ...] = (
    BuiltinError("InitializationError", "vips error: InitializationError - {}", True),
    BuiltinError("VipsIOError", "vips error: VipsIOError - {}", True),
    BuiltinError(
        "LinearError", f"vips error: LinearError. {ERROR_DETAIL_SUFFIX}", False
    ),
    BuiltinError(
        "GetpointError", f"vips error: GetpointError. {ERROR_DETAIL_SUFFIX}", False
    ),
)


def generate_error_class(name: str, takes_message: bool = False) -> list[str]:
    lines = [f"class {name}({ERROR_BASE_CLASS}):"]
    if takes_message:
        lines.append(f"{_INDENT}def __init__(self, message: str) -> None:")
        lines.append(f"{_INDENT}{_INDENT}super().__init__(message)")
    else:
        lines.append(f"{_INDENT}pass")
    lines.extend(["", ""])
    return lines


def generate_error_display(name: str, display: str) -> str:
    return f'{_INDENT}"{name}": "{display}",'


def operation_error_display(op: Operation) -> str:
    return f"vips error: {op.error_class}. {ERROR_DETAIL_SUFFIX}"


@dataclass
class EmitBuffers:
    """The three generated accumulations, filled by one pass over operations."""

    functions: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    error_display: list[str] = field(default_factory=list)


def fold_operations(operations: Iterable[Operation]) -> EmitBuffers:
    buffers = EmitBuffers()
    seen: set[str] = {err.name for err in BUILTIN_ERRORS}
    for op in operations:
        if op.error_class in seen:
            raise ValueError(f"Duplicate error variant {op.error_class} for {op.native_name}")
        seen.add(op.error_class)
        buffers.functions.extend(generate_operation(op))
        buffers.errors.extend(generate_error_class(op.error_class))
        buffers.error_display.append(
            generate_error_display(op.error_class, operation_error_display(op))
        )
    return buffers


def generate_error_module(buffers: EmitBuffers) -> list[str]:
    lines = [
        f"class {ERROR_BASE_CLASS}(Exception):",
        f'{_INDENT}"""Base class for every libvips binding failure.',
        "",
        f"{_INDENT}The failure detail lives in the libvips error buffer, not in the",
        f"{_INDENT}exception value.",
        f'{_INDENT}"""',
        "",
        f"{_INDENT}def __str__(self) -> str:",
        f"{_INDENT}{_INDENT}for cls in type(self).__mro__:",
        f"{_INDENT}{_INDENT}{_INDENT}template = ERROR_DISPLAY.get(cls.__name__)",
        f"{_INDENT}{_INDENT}{_INDENT}if template is not None:",
        f"{_INDENT}{_INDENT}{_INDENT}{_INDENT}return template.format(*self.args)",
        f"{_INDENT}{_INDENT}return super().__str__()",
        "",
        "",
    ]
    for builtin in BUILTIN_ERRORS:
        lines.extend(generate_error_class(builtin.name, builtin.takes_message))
    lines.extend(buffers.errors)

    lines.append("ERROR_DISPLAY: dict[str, str] = {")
    for builtin in BUILTIN_ERRORS:
        lines.append(generate_error_display(builtin.name, builtin.display))
    lines.extend(buffers.error_display)
    lines.append("}")
    return lines


# ===--- Native library loader ---=== #


def native_library_names(platform: str) -> tuple[str, ...]:
    if platform.startswith("win"):
        return WINDOWS_LIBRARY_NAMES
    return UNIX_LIBRARY_NAMES


def generate_bindings_module(platform: str) -> list[str]:
    names = ", ".join(f'"{name}"' for name in native_library_names(platform))
    return [
        f"LIBRARY_NAMES: tuple[str, ...] = ({names},)",
        "",
        "",
        "def _load_library(name: str) -> ctypes.CDLL:",
        f"{_INDENT}path = ctypes.util.find_library(name)",
        f"{_INDENT}if path is None:",
        f'{_INDENT}{_INDENT}raise OSError(f"native library not found: {{name}}")',
        f"{_INDENT}return ctypes.CDLL(path)",
        "",
        "",
        "_LIBRARIES = tuple(_load_library(name) for name in LIBRARY_NAMES)",
        "lib = _LIBRARIES[0]",
        "",
        "",
        "def __getattr__(name: str):",
        f"{_INDENT}for library in _LIBRARIES:",
        f"{_INDENT}{_INDENT}if hasattr(library, name):",
        f"{_INDENT}{_INDENT}{_INDENT}return getattr(library, name)",
        f'{_INDENT}raise AttributeError(f"module {{__name__!r}} has no attribute {{name!r}}")',
    ]


# ===--- Native tooling ---=== #


class ToolError(Exception):
    pass


PKG_CONFIG_ENV_VAR = "PKG_CONFIG"
COMPILER_ENV_VAR = "CC"
VIPS_PACKAGE = "vips"


def split_flags(output: bytes) -> list[str]:
    """Split pkg-config output into flags, honoring backslash escapes."""
    words: list[str] = []
    word = bytearray()
    escaped = False
    for b in output:
        if escaped:
            escaped = False
            word.append(b)
        elif b == ord("\\"):
            escaped = True
        elif b in b" \n\r":
            if word:
                words.append(word.decode("utf-8"))
                word = bytearray()
        else:
            word.append(b)
    if word:
        words.append(word.decode("utf-8"))
    return words


def query_pkg_config(args: Sequence[str]) -> list[str]:
    cmd = [os.environ.get(PKG_CONFIG_ENV_VAR) or "pkg-config", *args]
    try:
        result = subprocess.run(cmd, capture_output=True, check=False)
    except OSError as err:
        raise ToolError(f"Couldn't run {cmd[0]}: {err}") from err
    if result.returncode != 0:
        detail = result.stderr.decode("utf-8", errors="replace").strip()
        raise ToolError(f"{' '.join(cmd)} failed: {detail}")
    return split_flags(result.stdout)


def compile_introspect(source: Path, output: Path) -> Path:
    flags = query_pkg_config(["--cflags", "--libs", VIPS_PACKAGE])
    compiler = os.environ.get(COMPILER_ENV_VAR) or "cc"
    cmd = [compiler, "-g", "-o", str(output), str(source), *flags]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as err:
        raise ToolError(f"Couldn't run {compiler}: {err}") from err
    if result.returncode != 0:
        raise ToolError(f"Failed to compile {source}:\n{result.stderr.strip()}")
    return output


def run_introspection(binary: Path) -> str:
    try:
        result = subprocess.run([str(binary)], capture_output=True, check=False)
    except OSError as err:
        raise ToolError(f"Failed to run vips introspection {binary}: {err}") from err
    if result.returncode != 0:
        raise ToolError(
            f"Introspection {binary} exited with code {result.returncode}"
        )
    try:
        return result.stdout.decode("utf-8")
    except UnicodeDecodeError as err:
        raise ToolError(f"Could not decode introspection output: {err}") from err


def load_catalog_text(source: CatalogSource) -> str:
    if source.kind == INPUT_DUMP:
        return source.path.read_text(encoding="utf-8")
    if source.kind == INPUT_SOURCE:
        with tempfile.TemporaryDirectory() as tmp_dir:
            binary = compile_introspect(source.path, Path(tmp_dir) / "introspect")
            return run_introspection(binary)
    return run_introspection(source.path)


# ===--- Source formatting ---=== #

FORMAT_FORMATTED = "formatted"
FORMAT_PARTIAL = "partial"
FORMAT_UNFORMATTED = "unformatted"
FORMAT_SKIPPED = "skipped"


class FormatterError(Exception):
    pass


@dataclass(frozen=True)
class FormatterProfile:
    """How to invoke one external formatter and read its exit status.

    Attributes:
        name: Display name, e.g. "black".
        executable: Program looked up on PATH when env_var is unset.
        env_var: Environment variable holding an explicit executable path.
        args: Arguments making the tool read stdin and write stdout.
        partial_exit_codes: Codes meaning some lines were left unformatted;
            the output is still accepted.
        parse_error_exit_codes: Codes reported when the input does not parse.
        parse_error_marker: Text the tool prints to stderr on a parse error.
            Both code and marker must match for the outcome to be fatal.
    """

    name: str
    executable: str
    env_var: str
    args: tuple[str, ...]
    partial_exit_codes: frozenset[int] = frozenset()
    parse_error_exit_codes: frozenset[int] = frozenset()
    parse_error_marker: str = ""


FORMATTER_PROFILES: dict[str, FormatterProfile] = {
    "black": FormatterProfile(
        name="black",
        executable="black",
        env_var="BLACK",
        args=("--quiet", "-"),
        parse_error_exit_codes=frozenset({123}),
        parse_error_marker="Cannot parse",
    ),
    "ruff": FormatterProfile(
        name="ruff",
        executable="ruff",
        env_var="RUFF",
        args=("format", "-"),
        parse_error_exit_codes=frozenset({2}),
        parse_error_marker="Failed to parse",
    ),
}


@dataclass(frozen=True)
class FormatResult:
    text: str
    status: str


def resolve_formatter(name: str) -> FormatterProfile | None:
    if name == "none":
        return None
    return FORMATTER_PROFILES[name]


def formatter_path(profile: FormatterProfile) -> str | None:
    override = os.environ.get(profile.env_var)
    if override:
        return override
    return shutil.which(profile.executable)


def _write_formatter_input(
    stream: IO[bytes], payload: bytes, failures: list[OSError]
) -> None:
    try:
        with stream:
            stream.write(payload)
    except OSError as err:
        failures.append(err)


def run_formatter(
    cmd: Sequence[str], source: str
) -> tuple[int, bytes, str, list[OSError]]:
    """Pipe source through cmd and return (exit code, stdout, stderr, write errors).

    A writer thread feeds stdin while this thread drains stdout, so neither
    side blocks on a full pipe buffer. stderr is spooled to a temporary file.
    """
    payload = source.encode("utf-8")
    failures: list[OSError] = []
    with tempfile.TemporaryFile() as stderr_file:
        proc = subprocess.Popen(
            list(cmd),
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=stderr_file,
        )
        writer = threading.Thread(
            target=_write_formatter_input,
            args=(proc.stdin, payload, failures),
            daemon=True,
        )
        writer.start()
        with proc.stdout:
            output = proc.stdout.read()
        returncode = proc.wait()
        writer.join()
        stderr_file.seek(0)
        stderr_text = stderr_file.read().decode("utf-8", errors="replace")
    return returncode, output, stderr_text, failures


def format_source(source: str, profile: FormatterProfile | None) -> FormatResult:
    """Format generated source, falling back to the input text on tool failure.

    Raises:
        FormatterError: When the formatter reports that the generated source
            does not parse. Every other failure degrades to unformatted text.
    """
    if profile is None:
        return FormatResult(source, FORMAT_SKIPPED)
    unformatted = FormatResult(source, FORMAT_UNFORMATTED)

    executable = formatter_path(profile)
    if executable is None:
        print(f"  Formatter {profile.name} not found, writing unformatted source")
        return unformatted

    try:
        returncode, output, stderr_text, failures = run_formatter(
            [executable, *profile.args], source
        )
    except OSError as err:
        print(f"  Formatter {profile.name} failed to start: {err}")
        return unformatted

    if (
        returncode in profile.parse_error_exit_codes
        and profile.parse_error_marker in stderr_text
    ):
        raise FormatterError(
            f"{profile.name} could not parse generated source: {stderr_text.strip()}"
        )
    if failures:
        print(f"  Formatter {profile.name} stopped reading input: {failures[0]}")
        return unformatted

    try:
        text = output.decode("utf-8")
    except UnicodeDecodeError:
        print(f"  Formatter {profile.name} produced undecodable output")
        return unformatted

    if returncode == 0:
        return FormatResult(text, FORMAT_FORMATTED)
    if returncode in profile.partial_exit_codes:
        print(f"  {profile.name} could not format some lines.")
        return FormatResult(text, FORMAT_PARTIAL)
    print(f"  Formatter {profile.name} exited with code {returncode}, writing unformatted source")
    return unformatted


# ===--- S3 Discovery commands ---=== #


@dataclass(frozen=True)
class OperationSummary:
    """One row of the --list-operations table.

    Attributes:
        name: Generated function name, e.g. "resize".
        native_group: Native group name, e.g. "VipsResize".
        required_count: Required input parameters.
        optional_count: Optional (by-name) parameters.
        output_count: Output parameters returned by the wrapper.
        blocked: True when the operation is excluded by the blocklist.
    """

    name: str
    native_group: str
    required_count: int
    optional_count: int
    output_count: int
    blocked: bool


def gather_operation_summaries(operations: Iterable[Operation]) -> list[OperationSummary]:
    summaries = [
        OperationSummary(
            name=op.name,
            native_group=op.native_group,
            required_count=len(op.required),
            optional_count=len(op.optional),
            output_count=len(op.output),
            blocked=is_blocklisted(op),
        )
        for op in operations
    ]
    summaries.sort(key=lambda s: s.name)
    return summaries


def filter_operations_by_text(
    summaries: list[OperationSummary],
    filter_text: str,
) -> list[OperationSummary]:
    """Return summaries whose name or group contains filter_text, case-insensitive.

    Preserves input order. Empty filter_text returns all summaries unchanged.
    """
    if not filter_text:
        return list(summaries)
    needle = filter_text.lower()
    return [
        s
        for s in summaries
        if needle in s.name.lower() or needle in s.native_group.lower()
    ]


def find_operation(operations: Iterable[Operation], name: str) -> Operation | None:
    for op in operations:
        if op.name == name or op.native_name == name:
            return op
    return None


def format_operations_table(summaries: list[OperationSummary], source_label: str) -> str:
    """Return the complete --list-operations output as a string.

    Output format:

        {N} libvips operations in {source_label}:

          resize      VipsResize     2 req   3 opt   1 out
          linear      VipsLinear     3 req   1 opt   1 out   blocklisted

    Name and group column widths follow the widest value in summaries.
    """
    lines = [f"{len(summaries)} libvips operations in {source_label}:", ""]
    if not summaries:
        lines.append("")
        return "\n".join(lines)

    name_width = max(len(s.name) for s in summaries)
    group_width = max(len(s.native_group) for s in summaries)
    for s in summaries:
        row = (
            f"  {s.name.ljust(name_width)}  {s.native_group.ljust(group_width)}  "
            f"{s.required_count:>2} req  {s.optional_count:>2} opt  {s.output_count:>2} out"
        )
        if s.blocked:
            row += "  blocklisted"
        lines.append(row)
    lines.append("")
    return "\n".join(lines)


def _detail_rows(params: Sequence[Parameter]) -> list[str]:
    width = max((len(p.name) for p in params), default=0)
    rows = []
    for p in params:
        rows.append(f"    {p.name.ljust(width)}  {target_type(p.kind)}  {p.description}")
    return rows


def format_operation_detail(op: Operation) -> str:
    """Return the complete --info output for one operation as a string.

    Output format:

        resize (VipsResize)
          Resize an image
          Blocklisted: no

          Required (2):
            inp    VipsImage  Input image
            scale  float      Scale factor

          Optional (1):
            ...

          Output (1):
            out  VipsImage  Output image
    """
    lines = [f"{op.name} ({op.native_group})", f"  {op.description}"]
    lines.append(f"  Blocklisted: {'yes' if is_blocklisted(op) else 'no'}")
    for title, params in (
        ("Required", op.required),
        ("Optional", op.optional),
        ("Output", op.output),
    ):
        lines.append("")
        lines.append(f"  {title} ({len(params)}):")
        lines.extend(_detail_rows(params))
    lines.append("")
    return "\n".join(lines)


def format_link_flags(flags: list[str], library_names: tuple[str, ...]) -> str:
    lines = ["pkg-config flags:"]
    lines.extend(f"  {flag}" for flag in flags)
    lines.append("")
    lines.append("Native libraries:")
    lines.extend(f"  {name}" for name in library_names)
    lines.append("")
    return "\n".join(lines)


# ===--- S3 Dispatch ---=== #


def run_discovery(config: DiscoveryConfig) -> None:
    """Execute the discovery command specified in config.

    dispatch table:
      "link-flags"      -> query_pkg_config -> format_link_flags -> print
      "list-operations" -> parse -> gather summaries -> [filter] -> table -> print
      "info"            -> parse -> find_operation -> [None check] -> detail -> print

    Raises:
        SystemExit(1): When config.command == "info" and the operation is not
            in the catalog.
        CatalogParseError: Malformed introspection text propagates.
        ToolError: pkg-config or introspection executable failures propagate.
    """
    if config.command == "link-flags":
        flags = query_pkg_config(["--cflags", "--libs", VIPS_PACKAGE])
        print(format_link_flags(flags, native_library_names(config.platform)), end="")
        return

    assert config.source is not None  # every catalog command carries a source
    operations = parse_introspection(load_catalog_text(config.source))

    if config.command == "list-operations":
        summaries = gather_operation_summaries(operations)
        if config.filter_text is not None:
            summaries = filter_operations_by_text(summaries, config.filter_text)
        print(format_operations_table(summaries, config.source.label), end="")

    elif config.command == "info":
        assert config.info_operation is not None
        op = find_operation(operations, config.info_operation)
        if op is None:
            print(
                f"Error: operation '{config.info_operation}' not found in {config.source.label}",
                file=sys.stderr,
            )
            raise SystemExit(1)
        print(format_operation_detail(op), end="")


# ===--- S4 Package writer ---=== #

# ===--- Module stem constants ---=== #
# Single source of truth for all generated module filenames.

MODULE_BINDINGS: str = "bindings"
MODULE_OPS: str = "ops"
MODULE_ERROR: str = "error"
MODULE_IMAGE: str = "image"

MODULE_ORDER: tuple[str, ...] = (
    MODULE_BINDINGS,
    MODULE_OPS,
    MODULE_ERROR,
)
"""Write order of the generated modules.

image is not generated: it belongs to the hand-written runtime layer that
the generated ops module imports from."""


# ===--- Shared run metadata ---=== #


@dataclass(frozen=True)
class WriteConfig:
    """Shared generation metadata embedded in every file preamble.

    Attributes:
        source_label: Where the catalog came from, e.g. "dump vips.txt".
        operation_count: Operations emitted into the generated modules.
        blocked_count: Operations excluded by the blocklist.
        platform: Platform the native library names were chosen for.
    """

    source_label: str
    operation_count: int
    blocked_count: int = 0
    platform: str = "linux"


# ===--- Import spec types ---=== #


@dataclass(frozen=True)
class ExternalImport:
    """Import from a non-package module (ctypes, dataclasses, etc.).

    Renders as a single line:
        import <module>                              (names empty)
        from <module> import <name1>, <name2>, ...   (names non-empty)

    Attributes:
        module: Fully qualified module path, e.g. "ctypes.util".
        names: Tuple of names to import, or empty for a plain import.
    """

    module: str
    names: tuple[str, ...] = ()


@dataclass(frozen=True)
class SiblingImport:
    """Named import from a sibling module in the generated package.

    Renders as a single line:
        from .<module_stem> import <name1>, <name2>, ...

    An empty module_stem imports sibling modules themselves:
        from . import <name1>, <name2>, ...

    Attributes:
        module_stem: Module filename stem without .py extension, or "".
        names: Tuple of symbol names to import. Must be non-empty.
    """

    module_stem: str
    names: tuple[str, ...]


@dataclass(frozen=True)
class ModuleSpec:
    """Complete input for one generated .py module file.

    Attributes:
        filename: Output filename including .py extension, e.g. "ops.py".
        external_imports: Imports from non-package modules, in declaration
            order. Empty tuple for modules with no external imports.
        sibling_imports: Named imports from sibling package modules, in
            declaration order.
        content_lines: Generated Python source lines (the body, without header
            or imports). Each string is one line without a trailing newline.
    """

    filename: str
    external_imports: tuple[ExternalImport, ...]
    sibling_imports: tuple[SiblingImport, ...]
    content_lines: tuple[str, ...]


# ===--- Write result types ---=== #


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing a single generated file.

    Attributes:
        filename: Filename written, e.g. "ops.py".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the written UTF-8 content.
        byte_count: Number of bytes written (UTF-8 encoded).
        format_status: One of the FORMAT_* values from the formatting pass.
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int
    format_status: str = FORMAT_SKIPPED


@dataclass(frozen=True)
class PackageWriteResult:
    """Result of writing every generated module.

    files is ordered as the module specs were given.

    Attributes:
        output_dir: Directory all files were written to.
        files: One FileWriteResult per file written, in write order.
    """

    output_dir: Path
    files: tuple[FileWriteResult, ...]

    @property
    def total_lines(self) -> int:
        """Sum of line_count across all written files."""
        return sum(f.line_count for f in self.files)


# ===--- Pure formatting functions ---=== #

_HEADER_BORDER: str = "# x-------------------------------------------x #"


def format_file_header(config: WriteConfig) -> list[str]:
    """Return comment-block lines for a generated module file header.

    Output format:
        # x-------------------------------------------x #
        # | libvips bindings for Python
        # | Generated by vips-bindings-gen
        # | Source: dump vips.txt
        # | Operations: 312 (4 blocklisted)
        # | Platform: linux
        # x-------------------------------------------x #

    The blocklisted annotation is omitted when no operation was excluded.

    Args:
        config: Shared generation metadata.

    Returns:
        List of source lines without trailing newlines.

    Raises:
        ValueError: If config.source_label is empty (would produce a
            misleading header).
    """
    if not config.source_label:
        raise ValueError("source_label must not be empty")

    operations = f"{config.operation_count}"
    if config.blocked_count:
        operations += f" ({config.blocked_count} blocklisted)"
    return [
        _HEADER_BORDER,
        "# | libvips bindings for Python",
        "# | Generated by vips-bindings-gen",
        f"# | Source: {config.source_label}",
        f"# | Operations: {operations}",
        f"# | Platform: {config.platform}",
        _HEADER_BORDER,
    ]


def format_import_block(
    external_imports: tuple[ExternalImport, ...],
    sibling_imports: tuple[SiblingImport, ...],
) -> list[str]:
    """Return Python import statement lines for a module file.

    When both groups are non-empty, a single blank line separates external
    imports (first) from sibling imports (second).

    Raises:
        ValueError: If any SiblingImport has an empty names tuple.
    """
    for imp in sibling_imports:
        if not imp.names:
            raise ValueError(
                f"SiblingImport for module '{imp.module_stem}' has empty names tuple"
            )

    lines: list[str] = []
    for imp in external_imports:
        if imp.names:
            lines.append(f"from {imp.module} import {', '.join(imp.names)}")
        else:
            lines.append(f"import {imp.module}")

    if external_imports and sibling_imports:
        lines.append("")

    for imp in sibling_imports:
        lines.append(f"from .{imp.module_stem} import {', '.join(imp.names)}")

    return lines


def assemble_module_source(config: WriteConfig, spec: ModuleSpec) -> str:
    """Assemble a complete .py module source string from a ModuleSpec.

    File structure:
        <header_comment_block>      <- format_file_header output
                                    <- blank line
        <import_block>              <- omitted with its blank line when empty
                                    <- two blank lines
        <content_lines>
                                    <- trailing newline

    Raises:
        ValueError: If spec.filename is empty or does not end with ".py".
        ValueError: Propagated from format_import_block on empty names tuple.
    """
    if not spec.filename or not spec.filename.endswith(".py"):
        raise ValueError(
            f"spec.filename must be non-empty and end with '.py', "
            f"got {spec.filename!r}"
        )

    parts: list[str] = list(format_file_header(config))

    if spec.external_imports or spec.sibling_imports:
        parts.append("")
        parts.extend(format_import_block(spec.external_imports, spec.sibling_imports))

    if spec.content_lines:
        parts.extend(["", ""])
        parts.extend(spec.content_lines)

    while parts and not parts[-1]:
        parts.pop()
    return "\n".join(parts) + "\n"


# ===--- Writer I/O functions ---=== #


def write_module(
    output_dir: Path,
    config: WriteConfig,
    spec: ModuleSpec,
    profile: FormatterProfile | None = None,
) -> FileWriteResult:
    """Format and write a single generated module file to disk.

    Creates output_dir (and any missing parent directories) before writing.

    Args:
        output_dir: Directory to write the file into. Created if absent.
        config: Shared generation metadata passed to assemble_module_source.
        spec: Per-module spec with filename, imports, and content lines.
        profile: Formatter to pipe the assembled source through, or None to
            write it as assembled.

    Returns:
        FileWriteResult with filename, resolved path, line and byte counts,
        and the formatting status.

    Raises:
        ValueError: Propagated from assemble_module_source on invalid spec.
        FormatterError: Propagated when the formatter cannot parse the source.
        OSError: Propagated directly if the filesystem write fails.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    formatted = format_source(assemble_module_source(config, spec), profile)
    file_path = output_dir / spec.filename
    file_path.write_text(formatted.text, encoding="utf-8")
    resolved = file_path.resolve()
    file_bytes = resolved.read_bytes()
    return FileWriteResult(
        filename=spec.filename,
        path=resolved,
        line_count=formatted.text.count("\n"),
        byte_count=len(file_bytes),
        format_status=formatted.status,
    )


def write_package(
    output_dir: Path,
    config: WriteConfig,
    module_specs: tuple[ModuleSpec, ...],
    profile: FormatterProfile | None = None,
) -> PackageWriteResult:
    """Write all generated module files in the provided order.

    Propagates any OSError immediately without rollback; partial writes are
    possible.
    """
    files: list[FileWriteResult] = []
    for spec in module_specs:
        files.append(write_module(output_dir, config, spec, profile))
    return PackageWriteResult(output_dir=Path(output_dir), files=tuple(files))


# ===--- S5 Pipeline stage boundaries ---=== #


@dataclass(frozen=True)
class ParsedCatalog:
    """Parsed introspection catalog split by the blocklist.

    Attributes:
        operations: Every parsed operation, in dump order.
        emitted: Operations that get generated wrappers.
        blocked: Operations excluded by OPERATION_BLOCKLIST.
    """

    operations: tuple[Operation, ...]
    emitted: tuple[Operation, ...]
    blocked: tuple[Operation, ...]


@dataclass(frozen=True)
class GeneratedSources:
    """Generated source bodies, before header/import assembly.

    Attributes:
        enum_declarations: Sorted, textually deduplicated enum declarations.
        buffers: Functions, error classes and error display entries.
    """

    enum_declarations: tuple[str, ...]
    buffers: EmitBuffers


# ===--- S5 Stage functions ---=== #


def parse_catalog(text: str) -> ParsedCatalog:
    operations = parse_introspection(text)
    emitted, blocked = partition_blocklist(operations)
    return ParsedCatalog(
        operations=tuple(operations), emitted=tuple(emitted), blocked=tuple(blocked)
    )


def generate_sources(catalog: ParsedCatalog) -> GeneratedSources:
    """Emit enumerations for every parsed operation, wrappers for emitted ones.

    Hand-written wrappers for blocklisted operations use the same enumeration
    classes, so those are declared even when no generated wrapper needs them.
    """
    return GeneratedSources(
        enum_declarations=tuple(collect_enum_declarations(catalog.operations)),
        buffers=fold_operations(catalog.emitted),
    )


def build_write_config(
    config: GenerateConfig, catalog: ParsedCatalog
) -> WriteConfig:
    return WriteConfig(
        source_label=config.source.label,
        operation_count=len(catalog.emitted),
        blocked_count=len(catalog.blocked),
        platform=config.platform,
    )


def build_module_specs(
    sources: GeneratedSources, platform: str
) -> tuple[ModuleSpec, ...]:
    """Assemble one ModuleSpec per generated module, in MODULE_ORDER.

    ops content: NULL terminator constant, the enumeration declarations, then
    the operation wrappers. error content: base class, built-in variants,
    per-operation variants and the display table. bindings content: the
    native library loader for the target platform.
    """
    ops_lines: list[str] = ["NULL = None", "", ""]
    for decl in sources.enum_declarations:
        ops_lines.extend(decl.split("\n"))
        ops_lines.extend(["", ""])
    ops_lines.extend(sources.buffers.functions)

    bindings_spec = ModuleSpec(
        filename=f"{MODULE_BINDINGS}.py",
        external_imports=(ExternalImport("ctypes"), ExternalImport("ctypes.util")),
        sibling_imports=(),
        content_lines=tuple(generate_bindings_module(platform)),
    )
    ops_spec = ModuleSpec(
        filename=f"{MODULE_OPS}.py",
        external_imports=(
            ExternalImport("ctypes"),
            ExternalImport("dataclasses", ("dataclass", "field")),
            ExternalImport("enum", ("IntEnum", "IntFlag")),
        ),
        sibling_imports=(
            SiblingImport("", (MODULE_BINDINGS, MODULE_ERROR, "utils")),
            SiblingImport(MODULE_IMAGE, ("VipsBlob", "VipsImage", "VipsInterpolate")),
        ),
        content_lines=tuple(ops_lines),
    )
    error_spec = ModuleSpec(
        filename=f"{MODULE_ERROR}.py",
        external_imports=(),
        sibling_imports=(),
        content_lines=tuple(generate_error_module(sources.buffers)),
    )
    return (bindings_spec, ops_spec, error_spec)


def run_generate(config: GenerateConfig) -> PackageWriteResult:
    """Execute the complete generation pipeline for a GenerateConfig.

    Stages: load catalog text -> parse -> blocklist -> generate sources ->
    assemble module specs -> format and write -> summary.

    Returns:
        PackageWriteResult describing every file written.

    Raises:
        OSError: Dump not readable or filesystem write failure.
        ToolError: Introspection executable, compiler or pkg-config failure.
        CatalogParseError: Malformed introspection text.
        FormatterError: Formatter could not parse the generated source.
        ValueError: Inconsistent catalog data found during generation.
    """
    print(f"Reading: {config.source.label}")
    catalog = parse_catalog(load_catalog_text(config.source))
    print(
        f"  Catalog: {len(catalog.operations)} operations, "
        f"{len(catalog.blocked)} blocklisted"
    )

    sources = generate_sources(catalog)
    print(
        f"  Generated: {len(sources.enum_declarations)} enums, "
        f"{len(sources.buffers.error_display)} error variants"
    )

    write_config = build_write_config(config, catalog)
    module_specs = build_module_specs(sources, config.platform)
    profile = resolve_formatter(config.formatter)
    result = write_package(config.output_dir, write_config, module_specs, profile)
    print(
        f"  Written: {len(result.files)} files, "
        f"{result.total_lines} lines to {result.output_dir}"
    )

    summary = build_generation_summary(write_config, catalog, sources, result)
    print_generation_summary(summary)
    return result


# ===--- S6 Summary report ---=== #


@dataclass(frozen=True)
class GenerationCounts:
    """Item counts derived from the parsed catalog and generated sources.

    Attributes:
        operations: Every operation parsed from the catalog.
        blocked: Operations excluded by the blocklist.
        functions: Wrapper functions emitted (one or two per operation).
        option_records: Options dataclasses emitted.
        enumerations: Distinct enumeration declarations emitted.
        error_variants: Error classes, built-ins included.
    """

    operations: int
    blocked: int
    functions: int
    option_records: int
    enumerations: int
    error_variants: int


@dataclass(frozen=True)
class GenerationSummary:
    """Complete, immutable data for the post-generation console report.

    Attributes:
        source_label: Catalog source string, e.g. "dump vips.txt".
        output_dir: Output directory path as string.
        platform: Platform the native library names were chosen for.
        counts: Item counts from build_generation_counts.
        files: Ordered write results from PackageWriteResult.files.
    """

    source_label: str
    output_dir: str
    platform: str
    counts: GenerationCounts
    files: tuple[FileWriteResult, ...]


def build_generation_counts(
    catalog: ParsedCatalog, sources: GeneratedSources
) -> GenerationCounts:
    option_records = sum(1 for op in catalog.emitted if op.optional)
    return GenerationCounts(
        operations=len(catalog.operations),
        blocked=len(catalog.blocked),
        functions=len(catalog.emitted) + option_records,
        option_records=option_records,
        enumerations=len(sources.enum_declarations),
        error_variants=len(BUILTIN_ERRORS) + len(sources.buffers.error_display),
    )


def build_generation_summary(
    write_config: WriteConfig,
    catalog: ParsedCatalog,
    sources: GeneratedSources,
    write_result: PackageWriteResult,
) -> GenerationSummary:
    return GenerationSummary(
        source_label=write_config.source_label,
        output_dir=str(write_result.output_dir),
        platform=write_config.platform,
        counts=build_generation_counts(catalog, sources),
        files=write_result.files,
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render a GenerationSummary to the multi-section console string.

    The blocklisted annotation appears only when operations were excluded.
    Line counts use thousands separators. Returns a string with exactly one
    trailing newline.
    """
    counts = summary.counts
    lines: list[str] = []
    lines.append("libvips bindings generated:")
    lines.append("")
    lines.append(f"  Source:     {summary.source_label}")
    lines.append(f"  Output:     {summary.output_dir}")
    lines.append(f"  Platform:   {summary.platform}")
    lines.append("")
    lines.append("  Generated:")

    operations_row = f"    {'Operations:':<16}{counts.operations:>6}"
    if counts.blocked:
        operations_row += f"  ({counts.blocked} blocklisted)"
    lines.append(operations_row)
    lines.append(f"    {'Functions:':<16}{counts.functions:>6}")
    lines.append(f"    {'Option records:':<16}{counts.option_records:>6}")
    lines.append(f"    {'Enumerations:':<16}{counts.enumerations:>6}")
    lines.append(f"    {'Error variants:':<16}{counts.error_variants:>6}")

    lines.append("")
    lines.append("  Files written:")
    for file_result in summary.files:
        line_str = f"{file_result.line_count:>6,} lines"
        lines.append(
            f"    {file_result.filename:<14} {line_str}  ({file_result.format_status})"
        )

    total_lines = sum(f.line_count for f in summary.files)
    lines.append("")
    lines.append(f"  Total: {total_lines:,} lines across {len(summary.files)} files")
    lines.append("")

    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    print(format_generation_summary(summary), end="")


# ===--- Main generation ---=== #


def main():
    try:
        config = build_config()
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
    except CatalogParseError as err:
        print(f"Parse error: {err}")
        raise SystemExit(1) from err
    except (OSError, ToolError) as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err
    except (FormatterError, RuntimeError, ValueError) as err:
        print(f"Internal error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
