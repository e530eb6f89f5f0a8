import argparse
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import gen  # noqa: E402

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def fixture_dump_path() -> Path:
    return FIXTURES_DIR / "introspect_minimal.txt"


@pytest.fixture
def fixture_operations(fixture_dump_path: Path) -> list[gen.Operation]:
    return gen.parse_introspection(fixture_dump_path.read_text(encoding="utf-8"))


@pytest.fixture
def fixture_catalog(fixture_dump_path: Path) -> gen.ParsedCatalog:
    return gen.parse_catalog(fixture_dump_path.read_text(encoding="utf-8"))


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    dump = tmp_path / "introspection.txt"
    dump.write_text("", encoding="utf-8")

    introspect_bin = tmp_path / "introspect"
    introspect_bin.write_text("", encoding="utf-8")

    introspect_source = tmp_path / "introspect.c"
    introspect_source.write_text("int main(void) { return 0; }\n", encoding="utf-8")

    output_dir = tmp_path / "out"
    return {
        "dump": dump,
        "introspect_bin": introspect_bin,
        "introspect_source": introspect_source,
        "output_dir": output_dir,
    }


@pytest.fixture
def missing_path(tmp_path: Path) -> Path:
    return tmp_path / "missing"


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "dump": existing_paths["dump"],
            "introspect_bin": None,
            "introspect_source": None,
            "output_dir": None,
            "formatter": None,
            "platform": "linux",
            "list_operations": False,
            "info": None,
            "link_flags": False,
            "filter": None,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args


def param_block(
    name: str,
    descriptor: str,
    *,
    output: bool = False,
    nick: str | None = None,
    description: str | None = None,
    extra: tuple[str, ...] = (),
) -> str:
    lines = [
        "PARAM:",
        f"{gen.OUTPUT_PREFIX}{name}" if output else name,
        nick if nick is not None else name.title(),
        description if description is not None else f"{name} argument",
        descriptor,
        *extra,
    ]
    return "\n".join(lines)


def operation_dump(
    name: str,
    group: str,
    *,
    required: tuple[str, ...] = (),
    optional: tuple[str, ...] = (),
    description: str | None = None,
) -> str:
    lines = [
        "OPERATION:",
        f"{name}:{group}",
        description if description is not None else f"{name} ({group}), {name} operation",
        "REQUIRED:",
        *required,
        "OPTIONAL:",
        *optional,
    ]
    return "\n".join(lines) + "\n"


@pytest.fixture
def make_block() -> Callable[..., str]:
    return param_block


@pytest.fixture
def make_dump() -> Callable[..., str]:
    return operation_dump


@pytest.fixture
def make_operation() -> Callable[..., gen.Operation]:
    def _make_operation(
        *,
        name: str = "resize",
        native_group: str = "VipsResize",
        description: str = "resize an image",
        required: tuple[gen.Parameter, ...] = (),
        optional: tuple[gen.Parameter, ...] = (),
        output: tuple[gen.Parameter, ...] = (),
    ) -> gen.Operation:
        return gen.Operation(
            name=name,
            native_name=name,
            native_group=native_group,
            description=description,
            required=required,
            optional=optional,
            output=output,
        )

    return _make_operation


@pytest.fixture
def make_param() -> Callable[..., gen.Parameter]:
    def _make_param(
        name: str,
        kind: gen.ParamType,
        *,
        order: int = 0,
        native_name: str | None = None,
        description: str = "",
    ) -> gen.Parameter:
        return gen.Parameter(
            order=order,
            name=name,
            native_name=native_name if native_name is not None else name,
            nick=name,
            description=description or f"{name} argument",
            kind=kind,
        )

    return _make_param
