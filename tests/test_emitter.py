from collections.abc import Callable

import pytest

import gen


def _by_name(operations: list[gen.Operation], name: str) -> gen.Operation:
    op = gen.find_operation(operations, name)
    assert op is not None
    return op


def _source(lines: list[str]) -> str:
    return "\n".join(lines) + "\n"


@pytest.fixture
def emitted_operations(fixture_operations: list[gen.Operation]) -> list[gen.Operation]:
    emitted, _ = gen.partition_blocklist(fixture_operations)
    return emitted


@pytest.fixture
def module_sources(fixture_catalog: gen.ParsedCatalog) -> dict[str, str]:
    sources = gen.generate_sources(fixture_catalog)
    config = gen.WriteConfig(source_label="dump introspect_minimal.txt", operation_count=9)
    return {
        spec.filename: gen.assemble_module_source(config, spec)
        for spec in gen.build_module_specs(sources, "linux")
    }


def test_resize_positional_wrapper(fixture_operations: list[gen.Operation]) -> None:
    text = _source(gen.generate_wrapper_fn(_by_name(fixture_operations, "resize"), False))

    assert "def resize(inp: VipsImage, scale: float) -> VipsImage:" in text
    assert "    inp_in = inp.ctx\n" in text
    assert "    scale_in = ctypes.c_double(scale)\n" in text
    assert "    out_out = ctypes.c_void_p()\n" in text
    assert (
        "vips_op_response = bindings.vips_resize("
        "inp_in, ctypes.byref(out_out), scale_in, NULL)"
    ) in text
    assert "        raise error.ResizeError()\n" in text
    assert "    return VipsImage(out_out)\n" in text


def test_resize_options_record_and_by_name_wrapper(
    fixture_operations: list[gen.Operation],
) -> None:
    text = _source(gen.generate_operation(_by_name(fixture_operations, "resize")))

    assert "@dataclass\nclass ResizeOptions:" in text
    assert "    kernel: Kernel = Kernel.LANCZOS3\n" in text
    assert "    vscale: float = 0.0\n" in text
    assert "    # kernel: `Kernel` -> Resampling kernel\n" in text
    assert (
        "def resize_with_opts(inp: VipsImage, scale: float, "
        "resize_options: ResizeOptions) -> VipsImage:"
    ) in text
    assert "    kernel_in = ctypes.c_int(int(resize_options.kernel))\n" in text
    assert '    kernel_in_name = utils.new_c_string("kernel")\n' in text
    assert (
        "bindings.vips_resize(inp_in, ctypes.byref(out_out), scale_in, "
        "kernel_in_name, kernel_in, vscale_in_name, vscale_in, NULL)"
    ) in text


def test_resize_without_optionals_emits_one_function_and_no_record(
    make_block: Callable[..., str],
    make_dump: Callable[..., str],
) -> None:
    text = make_dump(
        "resize",
        "VipsResize",
        required=(
            make_block("in", "VipsImage"),
            make_block("out", "VipsImage", output=True),
            make_block("scale", "double:0:10:1"),
        ),
    )
    (op,) = gen.parse_introspection(text)

    source = _source(gen.generate_operation(op))

    assert source.count("def ") == 1
    assert "def resize(inp: VipsImage, scale: float) -> VipsImage:" in source
    assert "@dataclass" not in source
    assert "min: 0, max: 10, default: 1" in source


def test_strip_option_passes_native_key_and_integer_flag(
    make_block: Callable[..., str],
    make_dump: Callable[..., str],
) -> None:
    text = make_dump(
        "pngsave_buffer",
        "VipsForeignSavePngBuffer",
        required=(
            make_block("in", "VipsImage"),
            make_block("buffer", "byte-data", output=True),
        ),
        optional=(make_block("strip", "bool:0"),),
    )
    (op,) = gen.parse_introspection(text)

    source = _source(gen.generate_operation(op))

    assert "    strip: bool = False\n" in source
    assert (
        "    strip_in = ctypes.c_int(1 if pngsave_buffer_options.strip else 0)\n"
    ) in source
    assert '    strip_in_name = utils.new_c_string("strip")\n' in source
    assert "strip_in_name, strip_in, NULL)" in source


def test_options_record_has_one_field_per_optional_parameter(
    fixture_operations: list[gen.Operation],
) -> None:
    for op in fixture_operations:
        if not op.optional:
            continue
        lines = gen.generate_options_class(op)
        fields = [
            line
            for line in lines
            if line.startswith("    ")
            and ": " in line
            and not line.lstrip().startswith(("#", '"'))
        ]
        assert len(fields) == len(op.optional), op.name


def test_operation_without_optionals_has_single_function(
    fixture_operations: list[gen.Operation],
) -> None:
    text = _source(gen.generate_operation(_by_name(fixture_operations, "bandjoin")))

    assert text.count("def ") == 1
    assert "Options" not in text


def test_docstring_lists_parameters_ranges_and_return(
    fixture_operations: list[gen.Operation],
) -> None:
    text = _source(gen.generate_wrapper_fn(_by_name(fixture_operations, "resize"), True))

    assert '    """resize (VipsResize), resize an image\n' in text
    assert "    inp: `VipsImage` -> Input image argument\n" in text
    assert "    scale: `float` -> Scale image by this factor\n" in text
    assert "        min: 0, max: 1e+07, default: 0\n" in text
    assert "    resize_options: `ResizeOptions` -> optional arguments\n" in text
    assert "    returns `VipsImage` - Output image\n" in text


def test_docstring_escapes_backslashes_and_triple_quotes(
    make_operation: Callable[..., gen.Operation],
) -> None:
    op = make_operation(description='path C:\\temp and """quoted"""')

    text = _source(gen.generate_docstring(op, with_optional=False))

    assert "C:\\\\temp" in text
    assert '"""quoted"""' not in text
    compile(f"def f():\n{text}", "<docstring>", "exec")


def test_multiple_outputs_return_tuple(fixture_operations: list[gen.Operation]) -> None:
    text = _source(gen.generate_wrapper_fn(_by_name(fixture_operations, "find_trim"), False))

    assert "-> tuple[int, int, int, int]:" in text
    assert "    left_out = ctypes.c_int(1)\n" in text
    assert (
        "    return (left_out.value, top_out.value, width_out.value, height_out.value)\n"
    ) in text
    assert "returns Tuple (" in text


def test_operation_without_outputs_returns_none(
    make_operation: Callable[..., gen.Operation],
    make_param: Callable[..., gen.Parameter],
) -> None:
    op = make_operation(
        name="draw_flood",
        native_group="VipsDrawFlood",
        required=(make_param("image", gen.ImageType()),),
    )

    text = _source(gen.generate_wrapper_fn(op, False))

    assert "def draw_flood(image: VipsImage) -> None:" in text
    assert "    return None\n" in text


def test_image_array_threads_length_after_output(
    fixture_operations: list[gen.Operation],
) -> None:
    text = _source(gen.generate_wrapper_fn(_by_name(fixture_operations, "bandjoin"), False))

    assert "def bandjoin(inp: list[VipsImage]) -> VipsImage:" in text
    assert (
        "    inp_in = (ctypes.c_void_p * len(inp))(*[image.ctx for image in inp])\n"
    ) in text
    assert (
        "bindings.vips_bandjoin(inp_in, ctypes.byref(out_out), "
        "ctypes.c_int(len(inp)), NULL)"
    ) in text


def test_affine_coefficients_are_positional_doubles(
    fixture_operations: list[gen.Operation],
) -> None:
    text = _source(gen.generate_operation(_by_name(fixture_operations, "affine")))

    assert (
        "def affine(inp: VipsImage, a: float, b: float, c: float, d: float) -> VipsImage:"
    ) in text
    assert (
        "bindings.vips_affine(inp_in, ctypes.byref(out_out), a_in, b_in, c_in, d_in, NULL)"
    ) in text
    assert "    interpolate: VipsInterpolate = field(default_factory=VipsInterpolate)\n" in text
    assert "    oarea: list[int] = field(default_factory=list)\n" in text
    assert "    oarea_wrapper = utils.VipsArrayIntWrapper(affine_options.oarea)\n" in text
    assert "    oarea_in = oarea_wrapper.ctx\n" in text


def test_byte_output_and_options(fixture_operations: list[gen.Operation]) -> None:
    text = _source(gen.generate_operation(_by_name(fixture_operations, "jpegsave_buffer")))

    assert "-> bytes:" in text
    assert "    buffer_buf_size = ctypes.c_size_t(0)\n" in text
    assert (
        "ctypes.byref(buffer_out), ctypes.byref(buffer_buf_size)"
    ) in text
    assert "    return utils.new_byte_array(buffer_out, buffer_buf_size.value)\n" in text
    assert "    strip: bool = False\n" in text
    assert "    q: int = 75\n" in text
    assert '    q_in_name = utils.new_c_string("Q")\n' in text


def test_icc_profile_string_defaults_to_srgb(
    fixture_operations: list[gen.Operation],
) -> None:
    text = _source(gen.generate_options_class(_by_name(fixture_operations, "jpegsave_buffer")))

    assert '    profile: str = "sRGB"\n' in text


def test_plain_string_option_defaults_to_empty(
    make_operation: Callable[..., gen.Operation],
    make_param: Callable[..., gen.Parameter],
) -> None:
    op = make_operation(
        optional=(make_param("suffix", gen.StrType(), description="Filename suffix"),)
    )

    text = _source(gen.generate_options_class(op))

    assert '    suffix: str = ""\n' in text


def test_blob_output_is_copied_to_bytes(fixture_operations: list[gen.Operation]) -> None:
    text = _source(gen.generate_wrapper_fn(_by_name(fixture_operations, "profile_load"), False))

    assert "def profile_load(name: str) -> bytes:" in text
    assert "    name_in = ctypes.c_char_p(utils.new_c_string(name))\n" in text
    assert "    return bytes(VipsBlob(profile_out))\n" in text


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        (gen.BoolType(False), "flag_out.value != 0"),
        (gen.StrType(), "utils.new_string(flag_out)"),
        (gen.ArrayDoubleType(), "utils.new_double_array(flag_out, flag_array_size.value)"),
        (gen.InterpolateType(), "VipsInterpolate(flag_out)"),
    ],
)
def test_as_out_param_per_kind(
    make_param: Callable[..., gen.Parameter],
    kind: gen.ParamType,
    expected: str,
) -> None:
    assert gen.as_out_param(make_param("flag", kind)) == expected


def test_call_arguments_pass_number_array_length(
    make_operation: Callable[..., gen.Operation],
    make_param: Callable[..., gen.Parameter],
) -> None:
    op = make_operation(
        required=(
            make_param("inp", gen.ImageType(), order=0),
            make_param("ink", gen.ArrayDoubleType(), order=1),
        )
    )

    assert gen.call_arguments(op, with_optional=False) == [
        "inp_in",
        "ink_in, ctypes.c_int(len(ink))",
        "NULL",
    ]


def test_blocklisted_operation_is_not_emitted(module_sources: dict[str, str]) -> None:
    ops = module_sources["ops.py"]
    errors = module_sources["error.py"]

    assert "def linear(" not in ops
    assert "class LinearError(Error):" in errors
    assert errors.count("class LinearError(") == 1
    assert "def resize(" in ops
    assert "def matches(" in ops


def test_optional_outputs_are_not_emitted(module_sources: dict[str, str]) -> None:
    ops = module_sources["ops.py"]

    assert "class ForeignFlags(IntFlag):" in ops
    assert "ForeignFlags." not in ops
    assert "flags:" not in ops
    assert "access: Access = Access.RANDOM" in ops


def test_blocklisted_operation_enums_are_still_declared(
    make_block: Callable[..., str],
    make_dump: Callable[..., str],
) -> None:
    text = make_dump(
        "dzsave_buffer",
        "VipsForeignSaveDzBuffer",
        required=(
            make_block("in", "VipsImage"),
            make_block("buffer", "byte-data", output=True),
        ),
        optional=(
            make_block(
                "layout",
                "enum-VipsForeignDzLayout",
                extra=("0:dz:VIPS_FOREIGN_DZ_LAYOUT_DZ", "1:zoomify:Z", "0"),
            ),
        ),
    )
    catalog = gen.parse_catalog(text)
    assert [op.native_group for op in catalog.blocked] == ["VipsForeignSaveDzBuffer"]

    sources = gen.generate_sources(catalog)

    assert [d.split("(", 1)[0] for d in sources.enum_declarations] == [
        "class ForeignDzLayout"
    ]
    assert sources.buffers.functions == []
    assert sources.buffers.error_display == []


def test_enum_declarations_are_sorted_and_deduplicated(
    emitted_operations: list[gen.Operation],
) -> None:
    declarations = gen.collect_enum_declarations(emitted_operations)

    assert [d.split("(", 1)[0] for d in declarations] == [
        "class Access",
        "class ForeignFlags",
        "class Kernel",
    ]
    assert declarations == sorted(declarations)


def test_enum_declaration_members_and_base() -> None:
    flags = gen.EnumType(
        name="VipsForeignFlags",
        entries=(gen.EnumEntry(0, "none", "VIPS_FOREIGN_NONE"), gen.EnumEntry(1, "partial", "P")),
        default=0,
        is_flags=True,
    )

    text = gen.generate_enum_declaration(flags)

    assert text.startswith("class ForeignFlags(IntFlag):\n")
    assert "    # `NONE` -> VIPS_FOREIGN_NONE = 0\n    NONE = 0" in text
    assert "    PARTIAL = 1" in text


def test_enum_declaration_rejects_colliding_members() -> None:
    kind = gen.EnumType(
        name="VipsMode",
        entries=(gen.EnumEntry(0, "a-b", "A"), gen.EnumEntry(1, "a_b", "B")),
        default=0,
    )

    with pytest.raises(ValueError):
        gen.generate_enum_declaration(kind)


def test_conflicting_enum_declarations_warn(
    make_operation: Callable[..., gen.Operation],
    make_param: Callable[..., gen.Parameter],
    capsys: pytest.CaptureFixture[str],
) -> None:
    first = gen.EnumType("VipsMode", (gen.EnumEntry(0, "a", "A"),), 0)
    second = gen.EnumType("VipsMode", (gen.EnumEntry(0, "b", "B"),), 0)
    ops = [
        make_operation(name="one", optional=(make_param("mode", first),)),
        make_operation(name="two", optional=(make_param("mode", second),)),
    ]

    declarations = gen.collect_enum_declarations(ops)

    assert len(declarations) == 2
    assert "differing declarations of enumeration Mode" in capsys.readouterr().out


def test_generated_modules_are_valid_python(module_sources: dict[str, str]) -> None:
    assert set(module_sources) == {"bindings.py", "ops.py", "error.py"}
    for filename, text in module_sources.items():
        compile(text, filename, "exec")


def test_generated_error_module_executes(module_sources: dict[str, str]) -> None:
    namespace: dict[str, object] = {}
    exec(compile(module_sources["error.py"], "error.py", "exec"), namespace)

    base = namespace["Error"]
    resize_error = namespace["ResizeError"]
    assert issubclass(resize_error, base)
    assert str(resize_error()) == (
        "vips error: ResizeError. Check error buffer for more details"
    )
    assert str(namespace["InitializationError"]("no vips")) == (
        "vips error: InitializationError - no vips"
    )
    assert str(namespace["VipsIOError"]("bad file")) == (
        "vips error: VipsIOError - bad file"
    )
    assert "MatchesError" in namespace["ERROR_DISPLAY"]


def test_fold_operations_one_error_per_operation(
    emitted_operations: list[gen.Operation],
) -> None:
    buffers = gen.fold_operations(emitted_operations)

    assert len(buffers.error_display) == len(emitted_operations)
    assert sum(1 for line in buffers.errors if line.startswith("class ")) == len(
        emitted_operations
    )


def test_fold_operations_rejects_duplicate_error_variant(
    make_operation: Callable[..., gen.Operation],
) -> None:
    with pytest.raises(ValueError):
        gen.fold_operations([make_operation(name="resize"), make_operation(name="resize")])


def test_generation_is_deterministic(fixture_catalog: gen.ParsedCatalog) -> None:
    first = gen.build_module_specs(gen.generate_sources(fixture_catalog), "linux")
    second = gen.build_module_specs(gen.generate_sources(fixture_catalog), "linux")

    assert first == second


@pytest.mark.parametrize(
    ("platform", "expected"),
    [
        ("win32", '("libvips", "libglib-2.0", "libgobject-2.0",)'),
        ("linux", '("vips", "glib-2.0", "gobject-2.0",)'),
        ("darwin", '("vips", "glib-2.0", "gobject-2.0",)'),
    ],
)
def test_bindings_module_library_names(platform: str, expected: str) -> None:
    text = _source(gen.generate_bindings_module(platform))

    assert f"LIBRARY_NAMES: tuple[str, ...] = {expected}" in text
