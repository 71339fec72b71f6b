"""
Configuration management for bosh-micro.

Two kinds of state live here:
- UserConfig: operator settings in <home>/config.yaml (deployment manifest,
  logging, timeouts)
- DeploymentConfigService: the deployment.json state file kept next to the
  deployment manifest (deployment UUID + last deployed fingerprints)
"""

import json
import logging
import os
import uuid
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"
DEPLOYMENT_STATE_FILENAME = "deployment.json"


class ConfigError(Exception):
    """Configuration validation error."""
    pass


def get_bosh_micro_home() -> Path:
    """Return $BOSH_MICRO_HOME, defaulting to ~/.bosh_micro."""
    home = os.environ.get("BOSH_MICRO_HOME")
    if home:
        return Path(home)
    return Path("~/.bosh_micro").expanduser()


@dataclass
class UserConfig:
    """Operator settings persisted between invocations."""

    deployment: Optional[str] = None
    log_level: str = "INFO"
    log_format: str = "structured"
    cpi_timeout_seconds: float = 600
    agent_timeout_seconds: float = 30
    agent_ping_timeout_seconds: float = 300
    agent_ping_delay_seconds: float = 1

    @property
    def deployment_manifest_path(self) -> Optional[str]:
        return self.deployment

    def get_log_file_path(self) -> Path:
        return get_bosh_micro_home() / "logs" / "bosh-micro.log"

    def validate(self) -> None:
        if self.log_format not in ("structured", "pretty"):
            raise ConfigError(f"Unknown log_format: {self.log_format}")
        for name in (
            "cpi_timeout_seconds",
            "agent_timeout_seconds",
            "agent_ping_timeout_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")


def load_config(config_path: Optional[Path] = None) -> UserConfig:
    """
    Load user configuration from YAML.

    Args:
        config_path: Path to config file. Defaults to <home>/config.yaml

    Returns:
        UserConfig instance (defaults if the file does not exist yet)

    Raises:
        ConfigError: If the file is not valid YAML or has unknown keys
    """
    if config_path is None:
        config_path = get_bosh_micro_home() / CONFIG_FILENAME

    if not config_path.exists():
        return UserConfig()

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}")

    known = {f.name for f in fields(UserConfig)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown config keys in {config_path}: {sorted(unknown)}")

    config = UserConfig(**data)
    config.validate()
    return config


def save_config(config: UserConfig, config_path: Optional[Path] = None) -> Path:
    """Write user configuration back to YAML."""
    if config_path is None:
        config_path = get_bosh_micro_home() / CONFIG_FILENAME

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.safe_dump(asdict(config), f, default_flow_style=False, sort_keys=False)
    return config_path


@dataclass
class DeploymentFile:
    """Contents of deployment.json."""

    deployment_id: str = ""
    records: Dict[str, Dict[str, Any]] = field(default_factory=dict)


class DeploymentConfigService:
    """
    Reads and writes the deployment.json state file.

    The file lives in the same directory as the deployment manifest, so
    /path/to/manifest.yml is paired with /path/to/deployment.json.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    @classmethod
    def for_manifest(cls, manifest_path: str) -> "DeploymentConfigService":
        return cls(Path(manifest_path).parent / DEPLOYMENT_STATE_FILENAME)

    def load(self) -> DeploymentFile:
        """
        Load the state file, generating a deployment UUID on first use.

        Raises:
            ConfigError: If the file exists but cannot be parsed
        """
        if not self.path.exists():
            state = DeploymentFile(deployment_id=str(uuid.uuid4()))
            self.save(state)
            return state

        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Reading deployment state file '{self.path}': {e}") from e

        state = DeploymentFile(
            deployment_id=data.get("deployment_id", ""),
            records=data.get("records", {}),
        )
        if not state.deployment_id:
            state.deployment_id = str(uuid.uuid4())
            self.save(state)
        return state

    def save(self, state: DeploymentFile) -> None:
        """
        Persist the state file.

        Raises:
            ConfigError: If the file cannot be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(".json.tmp")
            tmp_path.write_text(json.dumps(asdict(state), indent=2, sort_keys=True))
            tmp_path.replace(self.path)
        except OSError as e:
            raise ConfigError(f"Writing deployment state file '{self.path}': {e}") from e
        logger.debug(f"Saved deployment state to {self.path}")
