"""Tests for dsprune.config."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from dsprune.config import (
    DEFAULTS,
    ConfigError,
    _deep_merge,
    _validate,
    load_config,
)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create a minimal .dsprune/config.yaml in tmp_path."""
    config_dir = tmp_path / ".dsprune"
    config_dir.mkdir()
    config = {
        "repository": {
            "url": "https://fedora.example.edu/fedora",
            "username": "admin",
        },
        "datastream": "OBJ",
    }
    (config_dir / "config.yaml").write_text(yaml.dump(config))
    return tmp_path


class TestDeepMerge:
    def test_flat_merge(self) -> None:
        base = {"a": 1, "b": 2}
        override = {"b": 3, "c": 4}
        assert _deep_merge(base, override) == {"a": 1, "b": 3, "c": 4}

    def test_nested_merge(self) -> None:
        base = {"x": {"a": 1, "b": 2}}
        override = {"x": {"b": 3}}
        assert _deep_merge(base, override) == {"x": {"a": 1, "b": 3}}

    def test_does_not_mutate_base(self) -> None:
        base = {"a": {"b": 1}}
        _deep_merge(base, {"a": {"b": 2}})
        assert base["a"]["b"] == 1


class TestValidate:
    def test_defaults_valid(self) -> None:
        _validate(_deep_merge(DEFAULTS, {}))  # Should not raise

    def test_repository_not_dict(self) -> None:
        config = _deep_merge(DEFAULTS, {"repository": "bad"})
        with pytest.raises(ConfigError, match="repository.*mapping"):
            _validate(config)

    @pytest.mark.parametrize("url", [None, "", "localhost:8080/fedora", 42])
    def test_bad_url(self, url: object) -> None:
        config = _deep_merge(DEFAULTS, {"repository": {"url": url}})
        with pytest.raises(ConfigError, match="repository.url"):
            _validate(config)

    @pytest.mark.parametrize("timeout", [0, -1, "30", True])
    def test_bad_timeout(self, timeout: object) -> None:
        config = _deep_merge(DEFAULTS, {"repository": {"timeout": timeout}})
        with pytest.raises(ConfigError, match="timeout"):
            _validate(config)

    def test_float_timeout_accepted(self) -> None:
        _validate(_deep_merge(DEFAULTS, {"repository": {"timeout": 2.5}}))

    @pytest.mark.parametrize("datastream", ["", "   ", None])
    def test_bad_datastream(self, datastream: object) -> None:
        config = _deep_merge(DEFAULTS, {"datastream": datastream})
        with pytest.raises(ConfigError, match="datastream"):
            _validate(config)

    def test_bad_log_message(self) -> None:
        config = _deep_merge(DEFAULTS, {"log_message": None})
        with pytest.raises(ConfigError, match="log_message"):
            _validate(config)

    @pytest.mark.parametrize("precision", [-1, 1.5, "2"])
    def test_bad_precision(self, precision: object) -> None:
        config = _deep_merge(DEFAULTS, {"report": {"precision": precision}})
        with pytest.raises(ConfigError, match="precision"):
            _validate(config)


class TestLoadConfig:
    def test_loads_and_merges_defaults(self, project_dir: Path) -> None:
        config = load_config(project_dir)
        assert config["repository"]["url"] == "https://fedora.example.edu/fedora"
        assert config["repository"]["username"] == "admin"
        assert config["datastream"] == "OBJ"
        # Defaults filled in
        assert config["repository"]["password"] == "fedoraAdmin"
        assert config["repository"]["timeout"] == 30
        assert config["log_message"] == ""
        assert config["report"]["precision"] == 2

    def test_missing_config_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Config not found"):
            load_config(tmp_path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        config_dir = tmp_path / ".dsprune"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text("just a string")
        with pytest.raises(ConfigError, match="YAML mapping"):
            load_config(tmp_path)

    def test_invalid_value(self, tmp_path: Path) -> None:
        config_dir = tmp_path / ".dsprune"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text("datastream: ''\n")
        with pytest.raises(ConfigError, match="datastream"):
            load_config(tmp_path)
