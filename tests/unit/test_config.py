"""Unit tests for config (default_config, load_config merging, BuildConfig)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from structgraph.config import (
    STRUCTGRAPH_DIR,
    BuildConfig,
    default_config,
    load_config,
    project_config_path,
    resolve_path,
)
from structgraph.errors import InvalidConfigError


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point ~ at an empty directory so no real global config is read."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


def test_default_config() -> None:
    cfg = default_config()
    assert cfg["analysis"]["extensions"] == [".py"]
    assert cfg["analysis"]["error_mode"] == "strict"
    assert "builtin_patterns" in cfg["ignore"]
    assert any(STRUCTGRAPH_DIR in p for p in cfg["ignore"]["builtin_patterns"])
    assert cfg["logging"]["level"] == "INFO"


def test_resolve_path(tmp_path: Path) -> None:
    p = tmp_path / "sub" / ".." / "sub"
    assert resolve_path(p) == (tmp_path / "sub").resolve()


def test_project_config_path(tmp_path: Path) -> None:
    assert project_config_path(tmp_path) == tmp_path / STRUCTGRAPH_DIR / "config.json"


def test_load_config_without_files_is_default(tmp_path: Path) -> None:
    assert load_config(tmp_path) == default_config()


def test_load_config_project_overrides_global(tmp_path: Path, isolated_home: Path) -> None:
    global_dir = isolated_home / STRUCTGRAPH_DIR
    global_dir.mkdir()
    (global_dir / "config.json").write_text(
        json.dumps({"analysis": {"parallel": True, "workers": 2}, "logging": {"level": "DEBUG"}})
    )
    project = tmp_path / "project"
    (project / STRUCTGRAPH_DIR).mkdir(parents=True)
    project_config_path(project).write_text(json.dumps({"analysis": {"workers": 8}}))

    cfg = load_config(project)
    assert cfg["analysis"]["parallel"] is True
    assert cfg["analysis"]["workers"] == 8
    assert cfg["logging"]["level"] == "DEBUG"
    # Untouched keys keep their defaults
    assert cfg["analysis"]["extensions"] == [".py"]


def test_load_config_invalid_json_is_ignored(tmp_path: Path) -> None:
    (tmp_path / STRUCTGRAPH_DIR).mkdir()
    project_config_path(tmp_path).write_text("{not json")
    assert load_config(tmp_path) == default_config()


def test_build_config_from_dict_defaults() -> None:
    config = BuildConfig.from_dict(default_config())
    assert config.extensions == (".py",)
    assert config.error_mode == "strict"
    assert config.parallel is False
    assert ".git/" in config.ignore_patterns


def test_build_config_from_dict_additional_patterns() -> None:
    cfg = default_config()
    cfg["ignore"]["additional_patterns"] = ["generated/"]
    config = BuildConfig.from_dict(cfg)
    assert config.ignore_patterns[-1] == "generated/"


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"extensions": ()}, "extensions"),
        ({"max_file_size": 0}, "max_file_size"),
        ({"workers": 0}, "workers"),
        ({"parse_timeout": -1.0}, "parse_timeout"),
        ({"error_mode": "lenient"}, "error_mode"),
    ],
)
def test_build_config_validate_rejects(overrides: dict, message: str) -> None:
    with pytest.raises(InvalidConfigError, match=message):
        BuildConfig(**overrides).validate()


def test_build_config_from_dict_validates() -> None:
    cfg = default_config()
    cfg["analysis"]["error_mode"] = "bogus"
    with pytest.raises(InvalidConfigError):
        BuildConfig.from_dict(cfg)


def test_invalid_config_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        BuildConfig(workers=-2).validate()


def test_should_parse_extension() -> None:
    config = BuildConfig()
    assert config.should_parse_extension(".py")
    assert config.should_parse_extension("py")
    assert not config.should_parse_extension(".pyc")


def test_should_exclude_dir() -> None:
    config = BuildConfig()
    assert config.should_exclude_dir("__pycache__")
    assert config.should_exclude_dir("structgraph.egg-info")
    assert not config.should_exclude_dir("src")
