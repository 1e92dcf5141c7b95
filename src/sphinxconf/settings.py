"""Typed settings and settings-file loading."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConfigurationLoadError

logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT = "development"
DEFAULT_ADDRESS = "127.0.0.1"
DEFAULT_PORT = 9312
DEFAULT_MAX_MATCHES = 1000
DEFAULT_MEM_LIMIT = "64M"


class DatabaseSettings(BaseModel):
    """Connection details written into every SQL source."""
    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    adapter: Literal["mysql", "postgresql"] = "mysql"
    host: str = "localhost"
    username: str = "root"
    password: str = ""
    database: str = ""
    port: Optional[int] = None
    socket: Optional[str] = None


class Settings(BaseModel):
    """Top-level settings for one environment.

    Option overrides (index, source, indexer, searchd) are not fields here;
    the configuration keeps them in plain mutable maps.
    """
    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    config_file: str = ""
    searchd_log_file: str = ""
    query_log_file: str = ""
    pid_file: str = ""
    searchd_file_path: str = ""
    address: Union[str, List[str]] = DEFAULT_ADDRESS
    port: int = DEFAULT_PORT
    bin_path: str = ""
    searchd_binary_name: str = "searchd"
    indexer_binary_name: str = "indexer"
    mem_limit: str = DEFAULT_MEM_LIMIT
    max_matches: int = DEFAULT_MAX_MATCHES
    version: Optional[str] = None
    shuffle: bool = False
    timeout: float = 0
    key: Optional[str] = None
    indexed_models: List[str] = Field(default_factory=list)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    @field_validator("bin_path")
    @classmethod
    def _trailing_separator(cls, value: str) -> str:
        if value and not value.endswith("/"):
            value += "/"
        return value

    @field_validator("address")
    @classmethod
    def _at_least_one_address(cls, value: Union[str, List[str]]) -> Union[str, List[str]]:
        if not value:
            raise ValueError("address must name at least one searchd server")
        return value

    @field_validator("version", "mem_limit", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        # YAML reads 2.0 or 128 as numbers
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def defaults(cls, app_root: str, environment: str) -> "Settings":
        """Compiled defaults for an application root and environment."""
        root = Path(app_root)
        return cls(
            config_file=str(root / "config" / f"{environment}.sphinx.conf"),
            searchd_log_file=str(root / "log" / "searchd.log"),
            query_log_file=str(root / "log" / "searchd.query.log"),
            pid_file=str(root / "log" / f"searchd.{environment}.pid"),
            searchd_file_path=str(root / "db" / "sphinx" / environment),
        )

    @property
    def addresses(self) -> List[str]:
        """Address setting as a list, whatever shape it was given in."""
        if isinstance(self.address, str):
            return [self.address]
        return list(self.address)


SETTINGS_FIELDS = frozenset(Settings.model_fields)


def load_settings_file(config_path: Path, environment: str) -> Dict[str, Any]:
    """Read the settings for one environment from a YAML file.

    Args:
        config_path: Path to YAML settings file (keyed by environment name)
        environment: Environment whose section should be returned

    Returns:
        Settings mapping for the environment (empty if the file or the
        section is missing)

    Raises:
        ConfigurationLoadError: If the file is not valid YAML or not a mapping
    """
    if not config_path.exists():
        logger.debug(f"No settings file at {config_path}")
        return {}

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationLoadError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationLoadError(f"Settings file must contain a mapping: {config_path}")

    section = data.get(environment) or {}
    if not isinstance(section, dict):
        raise ConfigurationLoadError(
            f"Settings for environment '{environment}' must be a mapping: {config_path}"
        )

    logger.info(f"Loaded {len(section)} settings for '{environment}' from {config_path}")
    return section
