import argparse
from collections.abc import Callable
from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

import wrapgen


def _assert_config_code(exc_info: pytest.ExceptionInfo[Exception], code: str) -> None:
    err = exc_info.value
    assert getattr(err, "code") == code
    assert getattr(err, "code") in wrapgen.VALID_ERROR_CODES


def test_import_wrapgen_module_smoke() -> None:
    assert callable(wrapgen.main)


def test_build_argument_parser_exposes_cli_surface_and_defaults() -> None:
    parser = wrapgen.build_argument_parser()
    option_actions = {
        option: action for action in parser._actions for option in action.option_strings
    }

    expected_options = {
        "--input",
        "--output",
        "--symbols",
        "--target-feature",
        "--target-api",
        "--clean",
        "--list-features",
        "--list-extensions",
        "--filter",
    }

    assert expected_options.issubset(option_actions.keys())
    assert option_actions["--target-feature"].default == "VK_VERSION_1_3"
    assert option_actions["--target-api"].default == "vulkan"
    assert option_actions["--clean"].default is False
    assert option_actions["--list-features"].default is False
    assert option_actions["--list-extensions"].default is False
    assert option_actions["--filter"].default is None


def test_parse_args_enforces_mutually_exclusive_discovery_commands() -> None:
    with pytest.raises(SystemExit) as exc_info:
        wrapgen.parse_args(["--list-features", "--list-extensions"])

    assert exc_info.value.code == 2


def test_parse_args_maps_paths_without_semantic_validation(tmp_path: Path) -> None:
    args = wrapgen.parse_args(
        ["--input", str(tmp_path / "docs"), "--output", str(tmp_path / "out")]
    )

    assert isinstance(args.input, Path)
    assert args.output == tmp_path / "out"
    assert args.symbols is None


def test_parse_args_unknown_flag_exits_with_code_2() -> None:
    with pytest.raises(SystemExit) as exc_info:
        wrapgen.parse_args(["--not-a-flag"])

    assert exc_info.value.code == 2


def test_validate_path_exists_rejects_none_with_path_not_found() -> None:
    with pytest.raises(wrapgen.ConfigError) as exc_info:
        wrapgen.validate_path_exists(None, "--input")

    _assert_config_code(exc_info, "PATH_NOT_FOUND")
    assert "--input" in getattr(exc_info.value, "message")


def test_validate_path_exists_raises_path_not_found(missing_path: Path) -> None:
    with pytest.raises(wrapgen.ConfigError) as exc_info:
        wrapgen.validate_path_exists(missing_path, "--input")

    _assert_config_code(exc_info, "PATH_NOT_FOUND")
    assert str(missing_path) in getattr(exc_info.value, "message")


def test_validate_input_dir_returns_registry_path(
    existing_paths: dict[str, Path],
) -> None:
    input_dir, vk_xml = wrapgen.validate_input_dir(existing_paths["input_dir"])

    assert input_dir == existing_paths["input_dir"]
    assert vk_xml == existing_paths["vk_xml"]


def test_validate_input_dir_rejects_file(existing_paths: dict[str, Path]) -> None:
    with pytest.raises(wrapgen.ConfigError) as exc_info:
        wrapgen.validate_input_dir(existing_paths["vk_xml"])

    _assert_config_code(exc_info, "INPUT_NOT_DIRECTORY")


def test_validate_input_dir_requires_xml_vk_xml(tmp_path: Path) -> None:
    with pytest.raises(wrapgen.ConfigError) as exc_info:
        wrapgen.validate_input_dir(tmp_path)

    _assert_config_code(exc_info, "MISSING_REGISTRY")
    assert "xml" in getattr(exc_info.value, "suggestion")


@pytest.mark.parametrize(
    "name", ["VK_VERSION_1_0", "VK_VERSION_1_3", "VKSC_VERSION_1_0", "VK_BASE_VERSION_1_0"]
)
def test_validate_feature_name_accepts_feature_names(name: str) -> None:
    assert wrapgen.validate_feature_name(name) == name


@pytest.mark.parametrize(
    "name", ["1.3", "VK_KHR_surface", "vk_version_1_3", "", "_VERSION_1_0", "VK_BASE_VERSION_1"]
)
def test_validate_feature_name_rejects_non_feature_names(name: str) -> None:
    with pytest.raises(wrapgen.ConfigError) as exc_info:
        wrapgen.validate_feature_name(name)

    _assert_config_code(exc_info, "INVALID_FEATURE_NAME")


def test_config_error_rejects_unknown_code() -> None:
    with pytest.raises(ValueError, match="Unknown config error code"):
        wrapgen.ConfigError("NOT_A_CODE", "message")


def test_validate_config_builds_generate_config(
    make_args: Callable[..., argparse.Namespace],
    existing_paths: dict[str, Path],
) -> None:
    config = wrapgen.validate_config(make_args())

    assert isinstance(config, wrapgen.GenerateConfig)
    assert config.input_dir == existing_paths["input_dir"]
    assert config.vk_xml == existing_paths["vk_xml"]
    assert config.symbols == existing_paths["symbols"]
    assert config.output_dir == existing_paths["output_dir"]
    assert config.target_feature == "VK_VERSION_1_1"
    assert config.target_api == "vulkan"
    assert config.clean is False


def test_generate_config_is_frozen(make_args: Callable[..., argparse.Namespace]) -> None:
    config = wrapgen.validate_config(make_args())

    with pytest.raises(FrozenInstanceError):
        config.clean = True  # type: ignore[misc]


def test_validate_config_uses_explicit_symbols_path(
    make_args: Callable[..., argparse.Namespace],
    existing_paths: dict[str, Path],
    tmp_path: Path,
) -> None:
    symbols = tmp_path / "elsewhere.json"
    symbols.write_text(existing_paths["symbols"].read_text(encoding="utf-8"))

    config = wrapgen.validate_config(make_args(symbols=symbols))

    assert isinstance(config, wrapgen.GenerateConfig)
    assert config.symbols == symbols


def test_validate_config_requires_output_in_generate_mode(
    make_args: Callable[..., argparse.Namespace],
) -> None:
    with pytest.raises(wrapgen.ConfigError) as exc_info:
        wrapgen.validate_config(make_args(output=None))

    _assert_config_code(exc_info, "MISSING_OUTPUT")


def test_validate_config_requires_symbol_manifest(
    make_args: Callable[..., argparse.Namespace],
    existing_paths: dict[str, Path],
) -> None:
    existing_paths["symbols"].unlink()

    with pytest.raises(wrapgen.ConfigError) as exc_info:
        wrapgen.validate_config(make_args())

    _assert_config_code(exc_info, "MISSING_SYMBOLS")


def test_validate_config_rejects_invalid_feature_name(
    make_args: Callable[..., argparse.Namespace],
) -> None:
    with pytest.raises(wrapgen.ConfigError) as exc_info:
        wrapgen.validate_config(make_args(target_feature="1.3"))

    _assert_config_code(exc_info, "INVALID_FEATURE_NAME")


def test_validate_config_rejects_filter_without_list_extensions(
    make_args: Callable[..., argparse.Namespace],
) -> None:
    with pytest.raises(wrapgen.ConfigError) as exc_info:
        wrapgen.validate_config(make_args(output=None, filter="khr"))

    _assert_config_code(exc_info, "FILTER_WITHOUT_LIST")


@pytest.mark.parametrize(
    "overrides",
    [
        {"list_features": True},
        {"list_extensions": True, "clean": True, "output": None},
    ],
)
def test_validate_config_rejects_generate_and_discovery_together(
    make_args: Callable[..., argparse.Namespace],
    overrides: dict[str, object],
) -> None:
    with pytest.raises(wrapgen.ConfigError) as exc_info:
        wrapgen.validate_config(make_args(**overrides))

    _assert_config_code(exc_info, "CONFLICT_GENERATE_DISCOVERY")


def test_validate_config_builds_list_features_discovery_config(
    make_args: Callable[..., argparse.Namespace],
    existing_paths: dict[str, Path],
) -> None:
    config = wrapgen.validate_config(make_args(output=None, list_features=True))

    assert config == wrapgen.DiscoveryConfig(
        command="list-features",
        filter_text=None,
        vk_xml=existing_paths["vk_xml"],
        symbols=existing_paths["symbols"],
        target_api="vulkan",
    )


def test_validate_config_discovery_tolerates_missing_symbols(
    make_args: Callable[..., argparse.Namespace],
    existing_paths: dict[str, Path],
) -> None:
    existing_paths["symbols"].unlink()

    config = wrapgen.validate_config(
        make_args(output=None, list_extensions=True, filter="surface")
    )

    assert isinstance(config, wrapgen.DiscoveryConfig)
    assert config.command == "list-extensions"
    assert config.filter_text == "surface"
    assert config.symbols is None


def test_validate_config_rejects_clean_of_filesystem_root(
    make_args: Callable[..., argparse.Namespace],
) -> None:
    with pytest.raises(wrapgen.ConfigError) as exc_info:
        wrapgen.validate_config(make_args(output=Path("/"), clean=True))

    _assert_config_code(exc_info, "UNSAFE_CLEAN")


def test_build_config_parses_and_validates_argv(existing_paths: dict[str, Path]) -> None:
    config = wrapgen.build_config(
        [
            "--input",
            str(existing_paths["input_dir"]),
            "--output",
            str(existing_paths["output_dir"]),
            "--target-feature",
            "VK_VERSION_1_0",
            "--clean",
        ]
    )

    assert isinstance(config, wrapgen.GenerateConfig)
    assert config.target_feature == "VK_VERSION_1_0"
    assert config.clean is True


def test_main_reports_config_error_with_hint(
    missing_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    with pytest.raises(SystemExit) as exc_info:
        wrapgen.main(["--input", str(missing_path), "--output", "out"])

    assert exc_info.value.code == 1
    out = capsys.readouterr().out
    assert "Config error [PATH_NOT_FOUND]" in out
    assert "Hint: " in out
