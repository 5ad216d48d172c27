"""Unit tests for the configuration loader."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from src.config.loader import ConfigLoader, load_config
from src.config.state_machine import (
    ConfigState,
    ConfigStateError,
    ConfigStateMachine,
)


FIXTURES_DIR = Path(__file__).parent.parent.parent / "fixtures" / "config"


class TestConfigLoader:
    """Tests for ConfigLoader."""

    @pytest.mark.unit
    def test_load_fixture(self) -> None:
        """A valid file loads and reaches READY."""
        loader = ConfigLoader(run_id="test")

        config = loader.load(FIXTURES_DIR / "recommender.yaml")

        assert loader.state == ConfigState.READY
        assert config.strategy.personalized_min_actions == 40
        assert config.pagination.page_size == 12
        assert config.pagination.enable_popularity_fallback
        assert loader.checksum is not None
        assert len(loader.checksum) == 64
        assert loader.validation_duration_ms >= 0

    @pytest.mark.unit
    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        """An empty file is a valid, all-defaults configuration."""
        path = tmp_path / "recommender.yaml"
        path.write_text("", encoding="utf-8")

        config = ConfigLoader(run_id="test").load(path)

        assert config.pagination.page_size == 9

    @pytest.mark.unit
    def test_validation_errors_collected(self, tmp_path: Path) -> None:
        """Schema errors are recorded with dotted locations."""
        path = tmp_path / "recommender.yaml"
        path.write_text("pagination:\n  page_size: 0\n", encoding="utf-8")
        loader = ConfigLoader(run_id="test")

        with pytest.raises(ValidationError):
            loader.load(path)

        assert loader.state == ConfigState.FAILED
        assert loader.validation_errors[0]["loc"] == "pagination.page_size"
        assert loader.validation_errors[0]["type"] == "greater_than_equal"

    @pytest.mark.unit
    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file fails with a file_not_found error."""
        loader = ConfigLoader(run_id="test")

        with pytest.raises(FileNotFoundError):
            loader.load(tmp_path / "missing.yaml")

        assert loader.validation_errors[0]["type"] == "file_not_found"

    @pytest.mark.unit
    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Unparseable YAML fails with a yaml_parse_error."""
        path = tmp_path / "recommender.yaml"
        path.write_text("strategy: [unclosed\n", encoding="utf-8")
        loader = ConfigLoader(run_id="test")

        with pytest.raises(yaml.YAMLError):
            loader.load(path)

        assert loader.validation_errors[0]["type"] == "yaml_parse_error"

    @pytest.mark.unit
    def test_loader_is_single_use(self) -> None:
        """A loader that reached READY cannot load again."""
        loader = ConfigLoader(run_id="test")
        loader.load(FIXTURES_DIR / "recommender.yaml")

        with pytest.raises(ConfigStateError):
            loader.load(FIXTURES_DIR / "recommender.yaml")

    @pytest.mark.unit
    def test_load_config_without_path(self) -> None:
        """No path means defaults."""
        assert load_config(None).version == "1.0"


class TestConfigStateMachine:
    """Tests for ConfigStateMachine."""

    @pytest.mark.unit
    def test_happy_path(self) -> None:
        """UNLOADED -> LOADING -> VALIDATED -> READY."""
        machine = ConfigStateMachine()

        machine.transition(ConfigState.LOADING)
        machine.transition(ConfigState.VALIDATED)
        machine.transition(ConfigState.READY)

        assert machine.is_ready()
        assert machine.is_terminal()

    @pytest.mark.unit
    def test_invalid_transition(self) -> None:
        """States cannot be skipped."""
        machine = ConfigStateMachine()

        with pytest.raises(ConfigStateError, match="UNLOADED -> READY"):
            machine.transition(ConfigState.READY)

    @pytest.mark.unit
    def test_failed_is_terminal(self) -> None:
        """Nothing leaves FAILED."""
        machine = ConfigStateMachine()
        machine.transition(ConfigState.FAILED)

        assert machine.is_terminal()
        assert not machine.can_transition(ConfigState.LOADING)
