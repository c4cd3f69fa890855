"""Tests for configuration loading."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from codeskel.config.loader import load_config
from codeskel.core.errors import ConfigError, ErrorCode

pytestmark = pytest.mark.usefixtures("no_global_config")


@pytest.fixture
def no_global_config(tmp_path: Path):
    with patch("codeskel.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "missing.yaml"):
        yield


def _write_repo_config(root: Path, data: dict) -> None:
    config_dir = root / ".codeskel"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "config.yaml").write_text(yaml.safe_dump(data))


class TestLoadConfig:
    """Precedence: defaults < global < repo < env < kwargs."""

    def test_given_no_files_when_load_then_defaults(self, tmp_path: Path) -> None:
        """No config files yields built-in defaults."""
        # Given
        repo = tmp_path / "repo"
        repo.mkdir()

        # When
        with patch.dict(os.environ, {}, clear=True):
            config = load_config(repo)

        # Then
        assert config.logging.level == "INFO"
        assert config.index.languages == ["javascript", "python"]
        assert config.index.fail_on_syntax_error is True
        assert config.indexer.max_workers == 4
        assert config.watcher.debounce_ms == 500

    def test_given_repo_yaml_when_load_then_overrides_defaults(self, tmp_path: Path) -> None:
        """Repo YAML values replace defaults, siblings keep theirs."""
        # Given
        _write_repo_config(tmp_path, {"indexer": {"max_workers": 2}})

        # When
        with patch.dict(os.environ, {}, clear=True):
            config = load_config(tmp_path)

        # Then
        assert config.indexer.max_workers == 2
        assert config.indexer.rebuild_timeout_sec == 120.0

    def test_given_global_and_repo_yaml_when_load_then_repo_wins(self, tmp_path: Path) -> None:
        """Repo config deep-merges over the global config."""
        # Given
        global_file = tmp_path / "global.yaml"
        global_file.write_text(
            yaml.safe_dump({"logging": {"level": "WARNING"}, "watcher": {"debounce_ms": 100}})
        )
        repo = tmp_path / "repo"
        _write_repo_config(repo, {"logging": {"level": "DEBUG"}})

        # When
        with (
            patch("codeskel.config.loader.GLOBAL_CONFIG_PATH", global_file),
            patch.dict(os.environ, {}, clear=True),
        ):
            config = load_config(repo)

        # Then
        assert config.logging.level == "DEBUG"
        assert config.watcher.debounce_ms == 100

    def test_given_env_var_when_load_then_env_beats_yaml(self, tmp_path: Path) -> None:
        """CODESKEL__ env vars override YAML."""
        # Given
        _write_repo_config(tmp_path, {"logging": {"level": "DEBUG"}})

        # When
        with patch.dict(os.environ, {"CODESKEL__LOGGING__LEVEL": "ERROR"}, clear=True):
            config = load_config(tmp_path)

        # Then
        assert config.logging.level == "ERROR"

    def test_given_kwargs_when_load_then_kwargs_beat_env(self, tmp_path: Path) -> None:
        # When
        with patch.dict(os.environ, {"CODESKEL__LOGGING__LEVEL": "ERROR"}, clear=True):
            config = load_config(tmp_path, logging={"level": "CRITICAL"})

        # Then
        assert config.logging.level == "CRITICAL"

    def test_given_invalid_yaml_when_load_then_config_parse_error(self, tmp_path: Path) -> None:
        """Malformed YAML raises ConfigError with parse code."""
        # Given
        config_dir = tmp_path / ".codeskel"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text("logging: [unclosed")

        # When / Then
        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.code is ErrorCode.CONFIG_PARSE_ERROR

    def test_given_non_mapping_yaml_when_load_then_parse_error(self, tmp_path: Path) -> None:
        # Given
        config_dir = tmp_path / ".codeskel"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text("- just\n- a list\n")

        # When / Then
        with pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.code is ErrorCode.CONFIG_PARSE_ERROR

    def test_given_invalid_value_when_load_then_invalid_value_error(self, tmp_path: Path) -> None:
        """Validator failures surface as ConfigError with the dotted field."""
        # Given
        _write_repo_config(tmp_path, {"indexer": {"max_workers": 0}})

        # When / Then
        with patch.dict(os.environ, {}, clear=True), pytest.raises(ConfigError) as exc_info:
            load_config(tmp_path)
        assert exc_info.value.code is ErrorCode.CONFIG_INVALID_VALUE
        assert "indexer" in exc_info.value.details["field"]
