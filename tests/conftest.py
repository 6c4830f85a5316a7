import argparse
import copy
import json
import sys
import xml.etree.ElementTree as ET
from collections.abc import Callable
from pathlib import Path

import pytest

GENERATOR_DIR = Path(__file__).resolve().parent.parent
if str(GENERATOR_DIR) not in sys.path:
    sys.path.insert(0, str(GENERATOR_DIR))

import wrapgen  # noqa: E402


MINI_TYPES = """
<type category="define">#define <name>VK_HEADER_VERSION</name> 283</type>
<type requires="vk_platform" name="uint32_t"/>
<type requires="vk_platform" name="void"/>
<type category="basetype">typedef <type>uint32_t</type> <name>VkFlags</name>;</type>
<type category="handle"><type>VK_DEFINE_HANDLE</type>(<name>VkInstance</name>)</type>
<type category="handle" parent="VkInstance"><type>VK_DEFINE_HANDLE</type>(<name>VkPhysicalDevice</name>)</type>
<type category="handle" parent="VkPhysicalDevice"><type>VK_DEFINE_HANDLE</type>(<name>VkDevice</name>)</type>
<type category="handle" parent="VkDevice"><type>VK_DEFINE_HANDLE</type>(<name>VkQueue</name>)</type>
<type category="handle" parent="VkDevice"><type>VK_DEFINE_NON_DISPATCHABLE_HANDLE</type>(<name>VkFence</name>)</type>
<type category="handle" parent="VkInstance"><type>VK_DEFINE_NON_DISPATCHABLE_HANDLE</type>(<name>VkSurfaceKHR</name>)</type>
<type name="VkResult" category="enum"/>
<type name="VkFormat" category="enum"/>
<type name="VkQueueFlagBits" category="enum"/>
<type requires="VkQueueFlagBits" category="bitmask">typedef <type>VkFlags</type> <name>VkQueueFlags</name>;</type>
<type category="struct" name="VkAllocationCallbacks">
    <member><type>void</type>* <name>pUserData</name></member>
</type>
<type category="struct" name="VkInstanceCreateInfo">
    <member><type>VkFlags</type> <name>flags</name></member>
</type>
<type category="struct" name="VkDeviceCreateInfo">
    <member><type>VkFlags</type> <name>flags</name></member>
</type>
<type category="struct" name="VkFenceCreateInfo">
    <member><type>VkFlags</type> <name>flags</name></member>
</type>
<type category="struct" name="VkQueueFamilyProperties" returnedonly="true">
    <member><type>VkQueueFlags</type> <name>queueFlags</name></member>
    <member><type>uint32_t</type> <name>queueCount</name></member>
</type>
<type category="struct" name="VkPhysicalDeviceProperties" returnedonly="true">
    <member><type>uint32_t</type> <name>apiVersion</name></member>
</type>
<type category="struct" name="VkFormatProperties" returnedonly="true">
    <member><type>VkFlags</type> <name>linearTilingFeatures</name></member>
</type>
<type category="struct" name="VkExtent2D">
    <member><type>uint32_t</type> <name>width</name></member>
    <member><type>uint32_t</type> <name>height</name></member>
</type>
"""

MINI_ENUMS = """
<enums name="VkResult" type="enum">
    <enum value="0" name="VK_SUCCESS"/>
    <enum value="1" name="VK_NOT_READY"/>
    <enum value="5" name="VK_INCOMPLETE"/>
    <enum value="-1" name="VK_ERROR_OUT_OF_HOST_MEMORY"/>
</enums>
<enums name="VkFormat" type="enum">
    <enum value="0" name="VK_FORMAT_UNDEFINED"/>
    <enum value="9" name="VK_FORMAT_R8_UNORM"/>
</enums>
<enums name="VkQueueFlagBits" type="bitmask">
    <enum bitpos="0" name="VK_QUEUE_GRAPHICS_BIT"/>
    <enum bitpos="1" name="VK_QUEUE_COMPUTE_BIT"/>
</enums>
"""

MINI_COMMANDS = """
<command successcodes="VK_SUCCESS" errorcodes="VK_ERROR_OUT_OF_HOST_MEMORY">
    <proto><type>VkResult</type> <name>vkCreateInstance</name></proto>
    <param>const <type>VkInstanceCreateInfo</type>* <name>pCreateInfo</name></param>
    <param optional="true">const <type>VkAllocationCallbacks</type>* <name>pAllocator</name></param>
    <param><type>VkInstance</type>* <name>pInstance</name></param>
</command>
<command>
    <proto><type>void</type> <name>vkDestroyInstance</name></proto>
    <param optional="true"><type>VkInstance</type> <name>instance</name></param>
    <param optional="true">const <type>VkAllocationCallbacks</type>* <name>pAllocator</name></param>
</command>
<command successcodes="VK_SUCCESS,VK_INCOMPLETE" errorcodes="VK_ERROR_OUT_OF_HOST_MEMORY">
    <proto><type>VkResult</type> <name>vkEnumeratePhysicalDevices</name></proto>
    <param><type>VkInstance</type> <name>instance</name></param>
    <param optional="false,true"><type>uint32_t</type>* <name>pPhysicalDeviceCount</name></param>
    <param optional="true" len="pPhysicalDeviceCount"><type>VkPhysicalDevice</type>* <name>pPhysicalDevices</name></param>
</command>
<command>
    <proto><type>void</type> <name>vkGetPhysicalDeviceProperties</name></proto>
    <param><type>VkPhysicalDevice</type> <name>physicalDevice</name></param>
    <param><type>VkPhysicalDeviceProperties</type>* <name>pProperties</name></param>
</command>
<command>
    <proto><type>void</type> <name>vkGetPhysicalDeviceQueueFamilyProperties</name></proto>
    <param><type>VkPhysicalDevice</type> <name>physicalDevice</name></param>
    <param optional="false,true"><type>uint32_t</type>* <name>pQueueFamilyPropertyCount</name></param>
    <param optional="true" len="pQueueFamilyPropertyCount"><type>VkQueueFamilyProperties</type>* <name>pQueueFamilyProperties</name></param>
</command>
<command>
    <proto><type>void</type> <name>vkGetPhysicalDeviceFormatProperties</name></proto>
    <param><type>VkPhysicalDevice</type> <name>physicalDevice</name></param>
    <param><type>VkFormat</type> <name>format</name></param>
    <param><type>VkFormatProperties</type>* <name>pFormatProperties</name></param>
</command>
<command successcodes="VK_SUCCESS" errorcodes="VK_ERROR_OUT_OF_HOST_MEMORY">
    <proto><type>VkResult</type> <name>vkCreateDevice</name></proto>
    <param><type>VkPhysicalDevice</type> <name>physicalDevice</name></param>
    <param>const <type>VkDeviceCreateInfo</type>* <name>pCreateInfo</name></param>
    <param optional="true">const <type>VkAllocationCallbacks</type>* <name>pAllocator</name></param>
    <param><type>VkDevice</type>* <name>pDevice</name></param>
</command>
<command>
    <proto><type>void</type> <name>vkDestroyDevice</name></proto>
    <param optional="true"><type>VkDevice</type> <name>device</name></param>
    <param optional="true">const <type>VkAllocationCallbacks</type>* <name>pAllocator</name></param>
</command>
<command>
    <proto><type>void</type> <name>vkGetDeviceQueue</name></proto>
    <param><type>VkDevice</type> <name>device</name></param>
    <param><type>uint32_t</type> <name>queueFamilyIndex</name></param>
    <param><type>uint32_t</type> <name>queueIndex</name></param>
    <param><type>VkQueue</type>* <name>pQueue</name></param>
</command>
<command successcodes="VK_SUCCESS" errorcodes="VK_ERROR_OUT_OF_HOST_MEMORY">
    <proto><type>VkResult</type> <name>vkQueueWaitIdle</name></proto>
    <param><type>VkQueue</type> <name>queue</name></param>
</command>
<command successcodes="VK_SUCCESS" errorcodes="VK_ERROR_OUT_OF_HOST_MEMORY">
    <proto><type>VkResult</type> <name>vkCreateFence</name></proto>
    <param><type>VkDevice</type> <name>device</name></param>
    <param>const <type>VkFenceCreateInfo</type>* <name>pCreateInfo</name></param>
    <param optional="true">const <type>VkAllocationCallbacks</type>* <name>pAllocator</name></param>
    <param><type>VkFence</type>* <name>pFence</name></param>
</command>
<command>
    <proto><type>void</type> <name>vkDestroyFence</name></proto>
    <param><type>VkDevice</type> <name>device</name></param>
    <param optional="true"><type>VkFence</type> <name>fence</name></param>
    <param optional="true">const <type>VkAllocationCallbacks</type>* <name>pAllocator</name></param>
</command>
<command successcodes="VK_SUCCESS" errorcodes="VK_ERROR_OUT_OF_HOST_MEMORY">
    <proto><type>VkResult</type> <name>vkEnumerateInstanceVersion</name></proto>
    <param><type>uint32_t</type>* <name>pApiVersion</name></param>
</command>
<command>
    <proto><type>void</type> <name>vkDestroySurfaceKHR</name></proto>
    <param><type>VkInstance</type> <name>instance</name></param>
    <param optional="true"><type>VkSurfaceKHR</type> <name>surface</name></param>
    <param optional="true">const <type>VkAllocationCallbacks</type>* <name>pAllocator</name></param>
</command>
"""

MINI_FEATURE_1_0_TYPES = (
    "VkInstance",
    "VkPhysicalDevice",
    "VkDevice",
    "VkQueue",
    "VkFence",
    "VkResult",
    "VkFormat",
    "VkQueueFlagBits",
    "VkQueueFlags",
    "VkAllocationCallbacks",
    "VkInstanceCreateInfo",
    "VkDeviceCreateInfo",
    "VkFenceCreateInfo",
    "VkQueueFamilyProperties",
    "VkPhysicalDeviceProperties",
    "VkFormatProperties",
    "VkExtent2D",
)

MINI_FEATURE_1_0_COMMANDS = (
    "vkCreateInstance",
    "vkDestroyInstance",
    "vkEnumeratePhysicalDevices",
    "vkGetPhysicalDeviceProperties",
    "vkGetPhysicalDeviceQueueFamilyProperties",
    "vkGetPhysicalDeviceFormatProperties",
    "vkCreateDevice",
    "vkDestroyDevice",
    "vkGetDeviceQueue",
    "vkQueueWaitIdle",
    "vkCreateFence",
    "vkDestroyFence",
)

MINI_EXTENSIONS = """
<extensions>
    <extension name="VK_KHR_surface" number="1" type="instance" author="KHR" supported="vulkan" ratified="vulkan">
        <require>
            <enum value="25" name="VK_KHR_SURFACE_SPEC_VERSION"/>
            <enum offset="0" extends="VkResult" dir="-" name="VK_ERROR_SURFACE_LOST_KHR"/>
            <type name="VkSurfaceKHR"/>
            <command name="vkDestroySurfaceKHR"/>
        </require>
    </extension>
    <extension name="VK_KHR_swapchain" number="2" type="device" depends="VK_KHR_surface" author="KHR" supported="vulkan">
        <require>
            <type name="VkSwapchainKHR"/>
            <type name="VkSwapchainCreateInfoKHR"/>
            <command name="vkCreateSwapchainKHR"/>
            <command name="vkDestroySwapchainKHR"/>
        </require>
    </extension>
    <extension name="VK_EXT_placeholder" number="3" type="device" supported="disabled">
        <require>
            <command name="vkPlaceholderEXT"/>
        </require>
    </extension>
</extensions>
"""


def mini_registry_xml(*, types: str = "", commands: str = "", require: str = "") -> str:
    """Inner XML of the test registry; extra fragments land in VK_VERSION_1_0."""
    required = "".join(
        [
            *(f'<type name="{name}"/>' for name in MINI_FEATURE_1_0_TYPES),
            *(f'<command name="{name}"/>' for name in MINI_FEATURE_1_0_COMMANDS),
        ]
    )
    return f"""
<platforms><platform name="xlib" protect="VK_USE_PLATFORM_XLIB_KHR"/></platforms>
<tags>
    <tag name="KHR" author="Khronos" contact="Khronos"/>
    <tag name="EXT" author="Multivendor" contact="Khronos"/>
</tags>
<types>{MINI_TYPES}{types}</types>
{MINI_ENUMS}
<commands>{MINI_COMMANDS}{commands}</commands>
<feature api="vulkan" name="VK_VERSION_1_0" number="1.0">
    <require>{required}{require}</require>
</feature>
<feature api="vulkan" name="VK_VERSION_1_1" number="1.1" depends="VK_VERSION_1_0">
    <require><command name="vkEnumerateInstanceVersion"/></require>
</feature>
{MINI_EXTENSIONS}
"""


def symbol(type_name: str, kind: str, name: str = "", nullable: bool = False) -> dict:
    raw: dict[str, object] = {"name": name, "type": type_name, "kind": kind}
    if nullable:
        raw["nullable"] = True
    return raw


VK_RESULT = symbol("VkResult", "int32")
VOID = symbol("void", "void")
ALLOCATOR = symbol("VkAllocationCallbacks", "struct", "pAllocator", nullable=True)


def method(name: str, params: list[dict], returns: dict = VOID) -> dict:
    return {"name": name, "returns": returns, "params": params}


MINI_CATALOG: dict = {
    "binding": "vkbind",
    "runtime": "vkbind.support",
    "modules": {
        "VK10": {
            "methods": [
                method(
                    "vkCreateInstance",
                    [
                        symbol("VkInstanceCreateInfo", "struct", "pCreateInfo"),
                        ALLOCATOR,
                        symbol("VkInstance", "pointer_buffer", "pInstance"),
                    ],
                    VK_RESULT,
                ),
                method(
                    "vkDestroyInstance",
                    [symbol("VkInstance", "handle", "instance"), ALLOCATOR],
                ),
                method(
                    "vkEnumeratePhysicalDevices",
                    [
                        symbol("VkInstance", "handle", "instance"),
                        symbol("uint32_t", "int_buffer", "pPhysicalDeviceCount"),
                        symbol(
                            "VkPhysicalDevice",
                            "pointer_buffer",
                            "pPhysicalDevices",
                            nullable=True,
                        ),
                    ],
                    VK_RESULT,
                ),
                method(
                    "vkGetPhysicalDeviceProperties",
                    [
                        symbol("VkPhysicalDevice", "handle", "physicalDevice"),
                        symbol("VkPhysicalDeviceProperties", "struct", "pProperties"),
                    ],
                ),
                method(
                    "vkGetPhysicalDeviceQueueFamilyProperties",
                    [
                        symbol("VkPhysicalDevice", "handle", "physicalDevice"),
                        symbol("uint32_t", "int_buffer", "pQueueFamilyPropertyCount"),
                        symbol(
                            "VkQueueFamilyProperties",
                            "struct_buffer",
                            "pQueueFamilyProperties",
                            nullable=True,
                        ),
                    ],
                ),
                method(
                    "vkGetPhysicalDeviceFormatProperties",
                    [
                        symbol("VkPhysicalDevice", "handle", "physicalDevice"),
                        symbol("VkFormat", "int32", "format"),
                        symbol("VkFormatProperties", "struct", "pFormatProperties"),
                    ],
                ),
                method(
                    "vkCreateDevice",
                    [
                        symbol("VkPhysicalDevice", "handle", "physicalDevice"),
                        symbol("VkDeviceCreateInfo", "struct", "pCreateInfo"),
                        ALLOCATOR,
                        symbol("VkDevice", "pointer_buffer", "pDevice"),
                    ],
                    VK_RESULT,
                ),
                method(
                    "vkDestroyDevice",
                    [symbol("VkDevice", "handle", "device"), ALLOCATOR],
                ),
                method(
                    "vkGetDeviceQueue",
                    [
                        symbol("VkDevice", "handle", "device"),
                        symbol("uint32_t", "int32", "queueFamilyIndex"),
                        symbol("uint32_t", "int32", "queueIndex"),
                        symbol("VkQueue", "pointer_buffer", "pQueue"),
                    ],
                ),
                method(
                    "vkQueueWaitIdle", [symbol("VkQueue", "handle", "queue")], VK_RESULT
                ),
                method(
                    "vkCreateFence",
                    [
                        symbol("VkDevice", "handle", "device"),
                        symbol("VkFenceCreateInfo", "struct", "pCreateInfo"),
                        ALLOCATOR,
                        symbol("VkFence", "long_buffer", "pFence"),
                    ],
                    VK_RESULT,
                ),
                method(
                    "vkDestroyFence",
                    [
                        symbol("VkDevice", "handle", "device"),
                        symbol("VkFence", "int64", "fence"),
                        ALLOCATOR,
                    ],
                ),
            ]
        },
        "VK11": {
            "extends": "VK10",
            "methods": [
                method(
                    "vkEnumerateInstanceVersion",
                    [symbol("uint32_t", "int_buffer", "pApiVersion")],
                    VK_RESULT,
                )
            ],
        },
        "KHRSurface": {
            "methods": [
                method(
                    "vkDestroySurfaceKHR",
                    [
                        symbol("VkInstance", "handle", "instance"),
                        symbol("VkSurfaceKHR", "int64", "surface"),
                        ALLOCATOR,
                    ],
                )
            ]
        },
    },
    "handles": {
        "VkInstance": {
            "constructors": [
                [symbol("VkInstance", "int64"), symbol("VkInstanceCreateInfo", "struct")]
            ]
        },
        "VkPhysicalDevice": {
            "constructors": [
                [symbol("VkPhysicalDevice", "int64"), symbol("VkInstance", "handle")]
            ],
            "parent_attribute": "instance",
        },
        "VkDevice": {
            "constructors": [
                [
                    symbol("VkDevice", "int64"),
                    symbol("VkPhysicalDevice", "handle"),
                    symbol("VkDeviceCreateInfo", "struct"),
                ]
            ],
            "parent_attribute": "physical_device",
        },
        "VkQueue": {
            "constructors": [[symbol("VkQueue", "int64"), symbol("VkDevice", "handle")]],
            "parent_attribute": "device",
        },
    },
    "structs": [
        "VkAllocationCallbacks",
        "VkInstanceCreateInfo",
        "VkDeviceCreateInfo",
        "VkFenceCreateInfo",
        "VkQueueFamilyProperties",
        "VkPhysicalDeviceProperties",
        "VkFormatProperties",
    ],
}


def mini_catalog_data(extra_methods: list[dict] | None = None) -> dict:
    """Deep copy of MINI_CATALOG; extra methods are appended to VK10."""
    data = copy.deepcopy(MINI_CATALOG)
    data["modules"]["VK10"]["methods"].extend(copy.deepcopy(extra_methods or []))
    return data


@pytest.fixture
def make_registry_root() -> Callable[[str], ET.Element]:
    def _make_registry_root(inner_xml: str) -> ET.Element:
        return ET.fromstring(f"<registry>{inner_xml}</registry>")

    return _make_registry_root


@pytest.fixture
def make_registry(
    make_registry_root: Callable[[str], ET.Element],
) -> Callable[[str], wrapgen.Registry]:
    def _make_registry(inner_xml: str) -> wrapgen.Registry:
        return wrapgen.parse_registry(make_registry_root(inner_xml))

    return _make_registry


@pytest.fixture
def registry(make_registry: Callable[[str], wrapgen.Registry]) -> wrapgen.Registry:
    return make_registry(mini_registry_xml())


@pytest.fixture
def make_catalog() -> Callable[..., wrapgen.SymbolCatalog]:
    def _make_catalog(data: dict | None = None) -> wrapgen.SymbolCatalog:
        return wrapgen.parse_symbol_catalog(mini_catalog_data() if data is None else data)

    return _make_catalog


@pytest.fixture
def catalog(make_catalog: Callable[..., wrapgen.SymbolCatalog]) -> wrapgen.SymbolCatalog:
    return make_catalog()


@pytest.fixture
def feature_set(
    registry: wrapgen.Registry, catalog: wrapgen.SymbolCatalog
) -> wrapgen.FeatureSet:
    return wrapgen.resolve_feature_set(registry, "vulkan", "VK_VERSION_1_1", catalog)


@pytest.fixture
def classifier(feature_set: wrapgen.FeatureSet) -> wrapgen.OverloadClassifier:
    return wrapgen.OverloadClassifier(feature_set)


@pytest.fixture
def existing_paths(tmp_path: Path) -> dict[str, Path]:
    input_dir = tmp_path / "Vulkan-Docs"
    vk_xml = input_dir / "xml" / "vk.xml"
    vk_xml.parent.mkdir(parents=True)
    vk_xml.write_text(
        f"<registry>{mini_registry_xml()}</registry>\n", encoding="utf-8"
    )

    symbols = input_dir / "symbols.json"
    symbols.write_text(json.dumps(mini_catalog_data(), indent=2), encoding="utf-8")

    output_dir = tmp_path / "out"
    return {
        "input_dir": input_dir,
        "vk_xml": vk_xml,
        "symbols": symbols,
        "output_dir": output_dir,
    }


@pytest.fixture
def missing_path(tmp_path: Path) -> Path:
    return tmp_path / "missing"


@pytest.fixture
def make_args(existing_paths: dict[str, Path]) -> Callable[..., argparse.Namespace]:
    def _make_args(**overrides: object) -> argparse.Namespace:
        base_args: dict[str, object] = {
            "input": existing_paths["input_dir"],
            "output": existing_paths["output_dir"],
            "symbols": None,
            "target_feature": "VK_VERSION_1_1",
            "target_api": wrapgen.DEFAULT_TARGET_API,
            "clean": False,
            "list_features": False,
            "list_extensions": False,
            "filter": None,
        }
        base_args.update(overrides)
        return argparse.Namespace(**base_args)

    return _make_args
