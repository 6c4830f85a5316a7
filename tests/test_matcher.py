from collections.abc import Callable

import pytest

import wrapgen
from conftest import method, mini_catalog_data, mini_registry_xml, symbol

EXTRA_COMMANDS = """
<command>
    <proto><type>void</type> <name>vkSetExtents</name></proto>
    <param><type>VkDevice</type> <name>device</name></param>
    <param><type>uint32_t</type> <name>extentCount</name></param>
    <param len="extentCount">const <type>VkExtent2D</type>* <name>pExtents</name></param>
</command>
<command>
    <proto><type>void</type> <name>vkSetBlendConstants</name></proto>
    <param><type>VkDevice</type> <name>device</name></param>
    <param>const <type>float</type> <name>blendConstants</name>[4]</param>
</command>
<command>
    <proto><type>void</type> <name>vkSetLambda</name></proto>
    <param><type>uint32_t</type> <name>lambda</name></param>
</command>
"""


@pytest.fixture
def make_feature_set(
    make_registry: Callable[[str], wrapgen.Registry],
    make_catalog: Callable[..., wrapgen.SymbolCatalog],
) -> Callable[[list[dict]], wrapgen.FeatureSet]:
    def _make_feature_set(extra_methods: list[dict]) -> wrapgen.FeatureSet:
        registry = make_registry(mini_registry_xml(commands=EXTRA_COMMANDS))
        catalog = make_catalog(mini_catalog_data(extra_methods))
        return wrapgen.resolve_feature_set(registry, "vulkan", "VK_VERSION_1_0", catalog)

    return _make_feature_set


def _symbol_method(feature_set: wrapgen.FeatureSet, name: str) -> wrapgen.SymbolMethod:
    (found,) = [m for m in feature_set.catalog.methods("VK10") if m.name == name]
    return found


@pytest.mark.parametrize(
    ("name", "expected"),
    [("pCount", "pCount"), ("from", "from_"), ("self", "self_"), ("scope", "scope_")],
)
def test_python_identifier(name: str, expected: str) -> None:
    assert wrapgen.python_identifier(name) == expected


def test_auto_sized_parameters_finds_scalar_lengths(
    make_feature_set: Callable[[list[dict]], wrapgen.FeatureSet],
) -> None:
    feature_set = make_feature_set([])
    declaration = feature_set.declaration("vkSetExtents")

    assert wrapgen.auto_sized_parameters(declaration.params) == frozenset({"extentCount"})


def test_auto_sized_parameters_ignores_pointer_counts(feature_set: wrapgen.FeatureSet) -> None:
    declaration = feature_set.declaration("vkEnumeratePhysicalDevices")

    assert wrapgen.auto_sized_parameters(declaration.params) == frozenset()


def test_match_command_method_drops_auto_sized_parameters(
    make_feature_set: Callable[[list[dict]], wrapgen.FeatureSet],
) -> None:
    feature_set = make_feature_set(
        [
            method(
                "vkSetExtents",
                [
                    symbol("VkDevice", "handle", "device"),
                    symbol("VkExtent2D", "struct_buffer", "pExtents"),
                ],
            )
        ]
    )

    matched = wrapgen.match_command_method(
        feature_set, _symbol_method(feature_set, "vkSetExtents")
    )

    assert [p.name for p in matched.parameters] == ["device", "pExtents"]
    assert matched.auto_sized == frozenset({"extentCount"})
    extents = matched.parameters[1]
    assert extents.kind == "struct_buffer"
    assert extents.len == ("extentCount",)
    assert extents.is_const is True
    assert extents.num_pointers == 1


def test_matched_parameter_takes_shape_from_declaration(
    feature_set: wrapgen.FeatureSet,
) -> None:
    (enumerate_devices,) = [
        m for m in feature_set.command_methods if m.name == "vkEnumeratePhysicalDevices"
    ]

    count = enumerate_devices.parameters[1]
    assert count.type_string == "uint32_t *"
    assert count.is_output is True
    assert count.optional == (False, True)
    assert count.kind == "int_buffer"
    assert enumerate_devices.parameters[2].nullable is True


def test_match_command_method_renames_reserved_parameters(
    make_feature_set: Callable[[list[dict]], wrapgen.FeatureSet],
) -> None:
    feature_set = make_feature_set(
        [method("vkSetLambda", [symbol("uint32_t", "int32", "lambda")])]
    )

    matched = wrapgen.match_command_method(
        feature_set, _symbol_method(feature_set, "vkSetLambda")
    )

    assert [p.name for p in matched.parameters] == ["lambda_"]


def test_match_command_method_rejects_count_mismatch(
    make_feature_set: Callable[[list[dict]], wrapgen.FeatureSet],
) -> None:
    feature_set = make_feature_set(
        [
            method(
                "vkSetExtents",
                [
                    symbol("VkDevice", "handle", "device"),
                    symbol("uint32_t", "int32", "extentCount"),
                    symbol("VkExtent2D", "struct_buffer", "pExtents"),
                ],
            )
        ]
    )

    with pytest.raises(wrapgen.GenerationError) as exc_info:
        wrapgen.match_command_method(feature_set, _symbol_method(feature_set, "vkSetExtents"))

    message = str(exc_info.value)
    assert "Parameter count mismatch for vkSetExtents: 2 != 3" in message
    assert "Declared: device: VkDevice, pExtents: const VkExtent2D *" in message
    assert "Method:   device: VkDevice, extentCount: uint32_t" in message


def test_match_command_method_rejects_type_mismatch(
    make_feature_set: Callable[[list[dict]], wrapgen.FeatureSet],
) -> None:
    feature_set = make_feature_set(
        [
            method(
                "vkSetExtents",
                [
                    symbol("VkInstance", "handle", "device"),
                    symbol("VkExtent2D", "struct_buffer", "pExtents"),
                ],
            )
        ]
    )

    with pytest.raises(
        wrapgen.GenerationError,
        match="Parameter type mismatch for vkSetExtents.device: VkDevice != VkInstance",
    ):
        wrapgen.match_command_method(feature_set, _symbol_method(feature_set, "vkSetExtents"))


def test_match_command_method_rejects_array_passed_by_value(
    make_feature_set: Callable[[list[dict]], wrapgen.FeatureSet],
) -> None:
    feature_set = make_feature_set(
        [
            method(
                "vkSetBlendConstants",
                [
                    symbol("VkDevice", "handle", "device"),
                    symbol("float", "float", "blendConstants"),
                ],
            )
        ]
    )

    with pytest.raises(
        wrapgen.GenerationError,
        match="Array parameter vkSetBlendConstants.blendConstants is not passed by pointer",
    ):
        wrapgen.match_command_method(
            feature_set, _symbol_method(feature_set, "vkSetBlendConstants")
        )


def test_match_command_method_accepts_array_by_pointer(
    make_feature_set: Callable[[list[dict]], wrapgen.FeatureSet],
) -> None:
    blend = symbol("float", "float_buffer", "blendConstants")
    blend["type_string"] = "float *"
    feature_set = make_feature_set(
        [method("vkSetBlendConstants", [symbol("VkDevice", "handle", "device"), blend])]
    )

    matched = wrapgen.match_command_method(
        feature_set, _symbol_method(feature_set, "vkSetBlendConstants")
    )

    assert matched.parameters[1].is_array is True
    assert matched.parameters[1].type_string == "const float [4]"
