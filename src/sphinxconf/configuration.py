"""Process configuration: settings, option overrides and daemon version.

A ``Configuration`` owns the merged settings for one environment plus the
option override maps the builder reads. Hosts normally keep one per process;
``get_configuration()`` returns a lazily created shared instance for code that
has no other way to reach it.

Callers are expected to serialize reset/load/build sequences. A re-entrant
lock still guards ``reset`` and ``load`` so a multi-threaded host never sees
half-applied settings.
"""

import logging
import os
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from .builder import ConfigBuilder, as_list
from .client import SearchClient, build_client
from .crc import CrcIndex
from .errors import ConfigurationLoadError
from .grammar import SphinxConfiguration
from .models import ModelDescriptor
from .options import LIST_OPTIONS, OPTION_GROUPS, option_group
from .settings import DEFAULT_ENVIRONMENT, SETTINGS_FIELDS, Settings, load_settings_file
from .version import VersionProbe

logger = logging.getLogger(__name__)

ENVIRONMENT_VARIABLE = "SPHINX_ENV"
SETTINGS_FILE = Path("config") / "sphinx.yml"

SCALAR_TYPES = (str, int, float, bool)


def _check_option_value(group: str, name: str, value: Any) -> None:
    if value is None or isinstance(value, SCALAR_TYPES):
        return
    if isinstance(value, (list, tuple)) and all(isinstance(v, SCALAR_TYPES) for v in value):
        return
    raise ConfigurationLoadError(
        f"Invalid value for {group}.{name}: expected a scalar or a list of scalars, "
        f"got {type(value).__name__}"
    )


class Configuration:
    """Settings and option overrides for generating and querying indices."""

    def __init__(
        self,
        app_root: Optional[str] = None,
        app_environment: Optional[Callable[[], Optional[str]]] = None,
        models: Optional[Iterable[ModelDescriptor]] = None,
        version_probe: Optional[VersionProbe] = None
    ):
        """
        Initialize configuration with compiled defaults.

        Args:
            app_root: Host application root (default: current directory)
            app_environment: Callable returning the host's environment name
            models: Indexable model descriptors
            version_probe: Probe used when no version is configured
                (default: runs the configured indexer binary)
        """
        self._lock = threading.RLock()
        self.app_root = str(app_root or os.getcwd())
        self.app_environment = app_environment
        self.models: List[ModelDescriptor] = list(models or [])
        self.index_options: Dict[str, Any] = {}
        self.source_options: Dict[str, Any] = {}
        self.indexer_options: Dict[str, Any] = {}
        self.searchd_options: Dict[str, Any] = {}
        self._injected_probe = version_probe
        self._probe: Optional[VersionProbe] = None
        self._environment: Optional[str] = None
        self.reset()

    def environment(self) -> str:
        """Host environment, then $SPHINX_ENV, then 'development' (memoized)."""
        if self._environment is None:
            environment = self.app_environment() if self.app_environment else None
            self._environment = (
                environment or os.environ.get(ENVIRONMENT_VARIABLE) or DEFAULT_ENVIRONMENT
            )
        return self._environment

    def reset_environment(self) -> None:
        self._environment = None

    def reset(self) -> None:
        """Restore compiled defaults and drop every override.

        The override maps are cleared in place, so references handed out
        earlier stay live.
        """
        with self._lock:
            self.reset_environment()
            self.settings = Settings.defaults(self.app_root, self.environment())
            for options in self._option_maps().values():
                options.clear()
            if self._injected_probe is not None:
                self._injected_probe.reset()
            self._probe = self._injected_probe

    def load(self, settings: Mapping, strict: bool = False) -> None:
        """
        Merge settings for the current environment.

        Typed settings overwrite their field; option names (flat, or nested
        under ``index_options``/``source_options``/``indexer_options``/
        ``searchd_options``) merge into the override maps, with list options
        such as ``sql_query_pre`` appended. Everything is validated before
        anything is applied.

        Args:
            settings: Mapping of setting name -> value
            strict: Reject unknown top-level keys instead of ignoring them

        Raises:
            ConfigurationLoadError: If the input is malformed; state is unchanged
        """
        if not isinstance(settings, Mapping):
            raise ConfigurationLoadError(
                f"Settings must be a mapping, got {type(settings).__name__}"
            )

        with self._lock:
            typed: Dict[str, Any] = {}
            grouped: Dict[str, Dict[str, Any]] = {group: {} for group in OPTION_GROUPS}
            unknown = []

            for key, value in settings.items():
                if key in SETTINGS_FIELDS:
                    typed[key] = value
                elif key in OPTION_GROUPS:
                    if not isinstance(value, Mapping):
                        raise ConfigurationLoadError(f"'{key}' must be a mapping")
                    for name, option_value in value.items():
                        if name not in OPTION_GROUPS[key]:
                            raise ConfigurationLoadError(f"Unknown option '{name}' in '{key}'")
                        _check_option_value(key, name, option_value)
                        grouped[key][name] = option_value
                else:
                    group = option_group(key)
                    if group is None:
                        unknown.append(key)
                        continue
                    _check_option_value(group, key, value)
                    grouped[group][key] = value

            # searchd and the client must agree on max_matches
            if "max_matches" in grouped["searchd_options"]:
                typed.setdefault("max_matches", grouped["searchd_options"].pop("max_matches"))

            if unknown:
                if strict:
                    raise ConfigurationLoadError(f"Unknown settings: {', '.join(sorted(unknown))}")
                logger.warning(f"Ignoring unknown settings: {', '.join(sorted(unknown))}")

            merged = self.settings.model_dump()
            for key, value in typed.items():
                if key == "database" and isinstance(value, Mapping):
                    merged["database"] = {**merged["database"], **value}
                else:
                    merged[key] = value
            try:
                new_settings = Settings.model_validate(merged)
            except ValidationError as e:
                raise ConfigurationLoadError(f"Invalid settings: {e}") from e

            maps = self._option_maps()
            new_maps = {}
            for group, values in grouped.items():
                current = dict(maps[group])
                for name, value in values.items():
                    if name in LIST_OPTIONS:
                        current[name] = as_list(current.get(name)) + as_list(value)
                    else:
                        current[name] = value
                new_maps[group] = current

            self.settings = new_settings
            for group, values in new_maps.items():
                maps[group].clear()
                maps[group].update(values)

    def load_file(self, path: Optional[Path] = None, strict: bool = False) -> None:
        """Load the current environment's section of a YAML settings file.

        Args:
            path: Settings file (default: <app_root>/config/sphinx.yml)
            strict: Reject unknown top-level keys
        """
        path = Path(path) if path else Path(self.app_root) / SETTINGS_FILE
        self.load(load_settings_file(path, self.environment()), strict=strict)

    def version(self) -> str:
        """Configured daemon version, or the (memoized) detected one.

        Raises:
            VersionProbeError: If detection fails
        """
        if self.settings.version:
            return self.settings.version
        with self._lock:
            if self._probe is None:
                self._probe = VersionProbe([self.controller_commands()["indexer"]])
            probe = self._probe
        return probe.get()

    def controller_commands(self) -> Dict[str, str]:
        """Binary paths and config file for whatever manages the daemon."""
        return {
            "indexer": f"{self.settings.bin_path}{self.settings.indexer_binary_name}",
            "searchd": f"{self.settings.bin_path}{self.settings.searchd_binary_name}",
            "config_file": self.settings.config_file,
        }

    def register_models(self, descriptors: Iterable[ModelDescriptor]) -> None:
        self.models = list(descriptors)

    def indexed_models(self) -> List[ModelDescriptor]:
        """Registered models, restricted to ``indexed_models`` when that is set."""
        names = self.settings.indexed_models
        if not names:
            return list(self.models)
        return [descriptor for descriptor in self.models if descriptor.name in names]

    def builder(self) -> ConfigBuilder:
        return ConfigBuilder(self, self.indexed_models())

    def generate(self) -> SphinxConfiguration:
        return self.builder().generate()

    def build(self, path: Optional[Path] = None, generated: Optional[SphinxConfiguration] = None) -> Path:
        return self.builder().build(path, generated)

    def models_by_crc(self) -> Dict[int, str]:
        return CrcIndex(self.indexed_models()).models_by_crc()

    def client(self) -> SearchClient:
        settings = self.settings
        return build_client(
            settings.address,
            settings.port,
            timeout=settings.timeout,
            max_matches=settings.max_matches,
            shuffle=settings.shuffle,
            key=settings.key,
        )

    def _option_maps(self) -> Dict[str, Dict[str, Any]]:
        return {
            "index_options": self.index_options,
            "source_options": self.source_options,
            "indexer_options": self.indexer_options,
            "searchd_options": self.searchd_options,
        }


_configuration: Optional[Configuration] = None
_configuration_lock = threading.Lock()


def get_configuration() -> Configuration:
    """Shared configuration for the process, created on first use."""
    global _configuration
    with _configuration_lock:
        if _configuration is None:
            _configuration = Configuration()
        return _configuration


def reset_configuration() -> None:
    """Discard the shared configuration; the next access builds a fresh one."""
    global _configuration
    with _configuration_lock:
        _configuration = None
