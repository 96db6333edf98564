import pytest

from parallel_planner.core.config.planner_config import (
    DEFAULT_CONFIG,
    ConfigError,
    load_and_merge,
    load_config_file,
)


def test_defaults_without_file():
    assert load_and_merge(None) is DEFAULT_CONFIG
    assert DEFAULT_CONFIG.split_gated_layers is True
    assert DEFAULT_CONFIG.savings_precision == 1


def test_overrides_apply(tmp_path):
    p = tmp_path / "planner.yaml"
    p.write_text("split_gated_layers: false\nduration_unit: d\n", encoding="utf-8")
    config = load_and_merge(str(p))
    assert config.split_gated_layers is False
    assert config.duration_unit == "d"
    assert config.flag_shared_inputs is True


def test_empty_file_means_defaults(tmp_path):
    p = tmp_path / "planner.yaml"
    p.write_text("", encoding="utf-8")
    assert load_config_file(p) == {}


@pytest.mark.parametrize(
    "text, needle",
    [
        ("max_parallel: 4\n", "unknown setting"),
        ("savings_precision: true\n", "must be of type int"),
        ("split_gated_layers: 1\n", "must be of type bool"),
        ("savings_precision: -1\n", ">= 0"),
        ("- a\n- b\n", "mapping"),
        ("split_gated_layers: [\n", "invalid YAML"),
    ],
)
def test_invalid_config(tmp_path, text, needle):
    p = tmp_path / "planner.yaml"
    p.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as exc:
        load_config_file(p)
    assert needle in str(exc.value)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config_file(tmp_path / "nope.yaml")


def test_non_utf8_file(tmp_path):
    p = tmp_path / "planner.yaml"
    p.write_bytes(b"duration_unit: \xff\xfe\n")
    with pytest.raises(ConfigError):
        load_config_file(p)
