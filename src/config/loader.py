"""Configuration loader with validation and state machine."""

import hashlib
import time
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from src.config.constants import COMPONENT_CONFIG
from src.config.schemas.recommender import RecommenderConfig
from src.config.state_machine import ConfigState, ConfigStateMachine


logger = structlog.get_logger()


class ConfigLoader:
    """Loads and validates the recommender configuration file.

    Implements a state machine for configuration loading:
    UNLOADED -> LOADING -> VALIDATED -> READY

    Configuration is immutable once VALIDATED.
    """

    def __init__(self, run_id: str) -> None:
        """Initialize the loader.

        Args:
            run_id: Unique identifier for the current run.
        """
        self._run_id = run_id
        self._state_machine = ConfigStateMachine(run_id)
        self._config: RecommenderConfig | None = None
        self._checksum: str | None = None
        self._validation_errors: list[dict[str, str]] = []
        self._validation_duration_ms: float = 0

    @property
    def state(self) -> ConfigState:
        """Get the current loader state."""
        return self._state_machine.state

    @property
    def checksum(self) -> str | None:
        """Get SHA-256 checksum of the loaded file."""
        return self._checksum

    @property
    def validation_errors(self) -> list[dict[str, str]]:
        """Get validation errors if any."""
        return self._validation_errors.copy()

    @property
    def validation_duration_ms(self) -> float:
        """Get validation duration in milliseconds."""
        return self._validation_duration_ms

    def _load_yaml_file(self, file_path: Path) -> tuple[dict[str, object], str]:
        """Load a YAML file and compute its checksum.

        Args:
            file_path: Path to the YAML file.

        Returns:
            Tuple of (parsed content, checksum).

        Raises:
            FileNotFoundError: If file does not exist.
            yaml.YAMLError: If YAML parsing fails.
        """
        content_bytes = file_path.read_bytes()
        checksum = hashlib.sha256(content_bytes).hexdigest()
        parsed: dict[str, object] = yaml.safe_load(content_bytes.decode("utf-8")) or {}
        return parsed, checksum

    def load(self, config_path: Path) -> RecommenderConfig:
        """Load and validate the recommender configuration.

        Args:
            config_path: Path to recommender.yaml.

        Returns:
            Validated RecommenderConfig.

        Raises:
            ValidationError: If the file content fails schema validation.
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If the file is not valid YAML.
            ConfigStateError: If called in invalid state.
        """
        start_time = time.perf_counter()
        self._state_machine.transition(ConfigState.LOADING)

        log = logger.bind(
            run_id=self._run_id,
            component=COMPONENT_CONFIG,
            file_path=str(config_path),
        )

        try:
            log.info("loading_config_file")
            data, checksum = self._load_yaml_file(config_path)
            self._checksum = checksum
            self._config = RecommenderConfig.model_validate(data)

            self._state_machine.transition(ConfigState.VALIDATED)
            self._validation_duration_ms = (time.perf_counter() - start_time) * 1000
            log.info(
                "config_validation_complete",
                file_sha256=checksum,
                config_validation_duration_ms=self._validation_duration_ms,
            )

            self._state_machine.transition(ConfigState.READY)
            return self._config

        except ValidationError as e:
            self._state_machine.transition(ConfigState.FAILED)
            for err in e.errors():
                self._validation_errors.append(
                    {
                        "loc": ".".join(str(loc) for loc in err["loc"]),
                        "msg": err["msg"],
                        "type": err["type"],
                    }
                )
            log.error(
                "config_validation_failed",
                validation_error_count=len(self._validation_errors),
                errors=self._validation_errors,
            )
            raise

        except FileNotFoundError as e:
            self._state_machine.transition(ConfigState.FAILED)
            self._validation_errors.append(
                {"loc": str(config_path), "msg": str(e), "type": "file_not_found"}
            )
            log.error("config_file_not_found")
            raise

        except yaml.YAMLError as e:
            self._state_machine.transition(ConfigState.FAILED)
            self._validation_errors.append(
                {"loc": str(config_path), "msg": str(e), "type": "yaml_parse_error"}
            )
            log.error("config_yaml_parse_error", error=str(e))
            raise


def load_config(config_path: Path | None, run_id: str = "config") -> RecommenderConfig:
    """Load configuration from a file, or return defaults when no path is given.

    Args:
        config_path: Optional path to recommender.yaml.
        run_id: Run identifier for logging.

    Returns:
        RecommenderConfig instance.
    """
    if config_path is None:
        return RecommenderConfig()
    return ConfigLoader(run_id=run_id).load(config_path)
