"""Unit tests for the configuration store."""

import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml

from sphinxconf.client import SearchClient
from sphinxconf.configuration import (
    Configuration,
    get_configuration,
    reset_configuration,
)
from sphinxconf.crc import crc32
from sphinxconf.errors import ConfigurationLoadError, VersionProbeError


PARSE_SETTINGS = {
    "config_file": "tmp/config/development.sphinx.conf",
    "searchd_log_file": "searchd_log_file.log",
    "query_log_file": "query_log_file.log",
    "pid_file": "pid_file.pid",
    "searchd_file_path": "searchd/file/path",
    "address": "127.0.0.1",
    "port": 3333,
    "min_prefix_len": 2,
    "min_infix_len": 3,
    "mem_limit": "128M",
    "max_matches": 1001,
    "morphology": "stem_ru",
    "charset_type": "latin1",
    "charset_table": "table",
    "ignore_chars": "e",
    "searchd_binary_name": "sphinx-searchd",
    "indexer_binary_name": "sphinx-indexer",
    "index_exact_words": True,
    "indexed_models": ["Alpha", "Beta"],
}


class TestEnvironment:
    """Tests for environment resolution."""

    def test_uses_app_environment(self, temp_dir, monkeypatch):
        monkeypatch.setenv("SPHINX_ENV", "staging")
        config = Configuration(app_root=str(temp_dir), app_environment=lambda: "global_rails")
        assert config.environment() == "global_rails"

    def test_uses_environment_variable(self, temp_dir, monkeypatch):
        monkeypatch.setenv("SPHINX_ENV", "staging")
        config = Configuration(app_root=str(temp_dir), app_environment=lambda: None)
        assert config.environment() == "staging"

    def test_defaults_to_development(self, configuration):
        assert configuration.environment() == "development"

    def test_memoized_until_reset(self, configuration, monkeypatch):
        configuration.environment()
        monkeypatch.setenv("SPHINX_ENV", "production")
        assert configuration.environment() == "development"

        configuration.reset_environment()
        assert configuration.environment() == "production"

    def test_environment_names_default_paths(self, temp_dir, monkeypatch):
        monkeypatch.setenv("SPHINX_ENV", "production")
        config = Configuration(app_root=str(temp_dir))
        assert config.settings.config_file == str(temp_dir / "config" / "production.sphinx.conf")
        assert config.settings.pid_file == str(temp_dir / "log" / "searchd.production.pid")


class TestLoad:
    """Tests for merging settings."""

    def test_sets_typed_settings(self, configuration):
        configuration.load(PARSE_SETTINGS)

        for key in ("config_file", "searchd_log_file", "query_log_file", "pid_file",
                    "searchd_file_path", "address", "port", "searchd_binary_name",
                    "indexer_binary_name", "mem_limit", "max_matches", "indexed_models"):
            assert getattr(configuration.settings, key) == PARSE_SETTINGS[key]

    def test_collects_index_options(self, configuration):
        configuration.load(PARSE_SETTINGS)

        assert configuration.index_options == {
            "min_prefix_len": 2,
            "min_infix_len": 3,
            "morphology": "stem_ru",
            "charset_type": "latin1",
            "charset_table": "table",
            "ignore_chars": "e",
            "index_exact_words": True,
        }

    def test_collects_disable_range(self, configuration):
        configuration.load({"disable_range": True})
        assert configuration.index_options["disable_range"] is True

    def test_collects_source_searchd_and_indexer_options(self, configuration):
        configuration.load({"sql_range_step": 5000, "read_timeout": 5, "max_iops": 40})

        assert configuration.source_options == {"sql_range_step": 5000}
        assert configuration.searchd_options == {"read_timeout": 5}
        assert configuration.indexer_options == {"max_iops": 40}

    def test_nested_option_groups(self, configuration):
        configuration.load({
            "index_options": {"morphology": "stem_en"},
            "source_options": {"sql_query_post": "SELECT 1"},
        })

        assert configuration.index_options["morphology"] == "stem_en"
        assert configuration.source_options["sql_query_post"] == "SELECT 1"

    def test_later_load_replaces_option(self, configuration):
        configuration.load({"morphology": "stem_en"})
        configuration.load({"morphology": "stem_ru"})
        assert configuration.index_options["morphology"] == "stem_ru"

    def test_pre_query_is_appended(self, configuration):
        configuration.load({"sql_query_pre": ["SET a = 1"]})
        configuration.load({"source_options": {"sql_query_pre": "SET b = 2"}})
        assert configuration.source_options["sql_query_pre"] == ["SET a = 1", "SET b = 2"]

    def test_database_settings_merge(self, configuration):
        configuration.load({"database": {"adapter": "postgresql"}})
        configuration.load({"database": {"host": "db.internal"}})

        assert configuration.settings.database.adapter == "postgresql"
        assert configuration.settings.database.host == "db.internal"

    def test_unknown_keys_ignored_with_warning(self, configuration, caplog):
        with caplog.at_level(logging.WARNING, logger="sphinxconf"):
            configuration.load({"port": 3333, "no_such_setting": 1})

        assert configuration.settings.port == 3333
        assert "no_such_setting" in caplog.text

    def test_unknown_keys_rejected_when_strict(self, configuration):
        with pytest.raises(ConfigurationLoadError, match="no_such_setting"):
            configuration.load({"port": 3333, "no_such_setting": 1}, strict=True)
        assert configuration.settings.port == 9312

    def test_unknown_option_in_group_rejected(self, configuration):
        with pytest.raises(ConfigurationLoadError, match="bogus"):
            configuration.load({"source_options": {"bogus": 1}})

    def test_non_mapping_rejected(self, configuration):
        with pytest.raises(ConfigurationLoadError):
            configuration.load(["port", 3333])

    def test_type_mismatch_leaves_state_unchanged(self, configuration):
        with pytest.raises(ConfigurationLoadError):
            configuration.load({"morphology": "stem_en", "port": "not a port"})

        assert configuration.settings.port == 9312
        assert configuration.index_options == {}

    def test_invalid_option_value_rejected(self, configuration):
        with pytest.raises(ConfigurationLoadError):
            configuration.load({"morphology": {"nested": "mapping"}})

    @pytest.mark.parametrize("group", ["index_options", "source_options", "searchd_options"])
    def test_option_group_must_be_mapping(self, configuration, group):
        with pytest.raises(ConfigurationLoadError, match=f"'{group}' must be a mapping"):
            configuration.load({"port": 3333, group: ["morphology", "stem_en"]})

        assert configuration.settings.port == 9312

    @pytest.mark.parametrize("address", [[], ""])
    def test_empty_address_rejected(self, configuration, address):
        with pytest.raises(ConfigurationLoadError, match="at least one"):
            configuration.load({"address": address})

        assert configuration.settings.address == "127.0.0.1"

    def test_searchd_max_matches_becomes_setting(self, configuration):
        configuration.load({"searchd_options": {"max_matches": 500, "read_timeout": 5}})

        assert configuration.settings.max_matches == 500
        assert configuration.searchd_options == {"read_timeout": 5}
        assert configuration.client().max_matches == 500

    def test_top_level_max_matches_wins(self, configuration):
        configuration.load({"max_matches": 300, "searchd_options": {"max_matches": 500}})
        assert configuration.settings.max_matches == 300

    def test_app_root_key_is_not_a_setting(self, configuration, caplog):
        config_file = configuration.settings.config_file

        with caplog.at_level(logging.WARNING, logger="sphinxconf"):
            configuration.load({"app_root": "/srv/other"})

        assert "app_root" in caplog.text
        assert configuration.settings.config_file == config_file

    def test_load_file(self, configuration, temp_dir):
        config_dir = temp_dir / "config"
        config_dir.mkdir()
        with open(config_dir / "sphinx.yml", "w") as f:
            yaml.dump({"development": {"port": 4444}, "production": {"port": 5555}}, f)

        configuration.load_file()
        assert configuration.settings.port == 4444


class TestBinPath:
    """Tests for bin_path normalization."""

    def test_default_bin_path_is_empty(self, configuration):
        assert configuration.settings.bin_path == ""

    def test_appends_separator(self, configuration):
        configuration.load({"bin_path": "path/to/somewhere"})
        assert configuration.settings.bin_path == "path/to/somewhere/"

    def test_normalization_is_idempotent(self, configuration):
        configuration.load({"bin_path": "path/to/somewhere/"})
        configuration.load({"bin_path": configuration.settings.bin_path})
        assert configuration.settings.bin_path == "path/to/somewhere/"

    def test_controller_commands(self, configuration):
        configuration.load({"bin_path": "/opt/sphinx/bin", "searchd_binary_name": "sphinx-searchd"})
        commands = configuration.controller_commands()

        assert commands["indexer"] == "/opt/sphinx/bin/indexer"
        assert commands["searchd"] == "/opt/sphinx/bin/sphinx-searchd"
        assert commands["config_file"] == configuration.settings.config_file


class TestReset:
    """Tests for restoring defaults."""

    def test_reset_restores_defaults(self, configuration):
        configuration.load(PARSE_SETTINGS)
        configuration.load({"sql_query_pre": ["x"], "read_timeout": 5})

        configuration.reset()

        assert configuration.settings.port == 9312
        assert configuration.settings.address == "127.0.0.1"
        assert configuration.settings.config_file.endswith("development.sphinx.conf")
        assert configuration.index_options == {}
        assert configuration.source_options == {}
        assert configuration.searchd_options == {}

    def test_reset_is_idempotent(self, configuration):
        configuration.reset()
        first = configuration.settings.model_dump()
        configuration.reset()
        assert configuration.settings.model_dump() == first

    def test_option_maps_stay_live(self, configuration):
        options = configuration.index_options
        options["morphology"] = "stem_en"
        assert configuration.index_options["morphology"] == "stem_en"

        configuration.reset()
        assert options is configuration.index_options
        assert options == {}

    def test_reset_resets_version_probe(self, configuration, mock_version_probe):
        configuration.reset()
        mock_version_probe.reset.assert_called()


class TestVersion:
    """Tests for version resolution."""

    def test_uses_configured_version(self, configuration, mock_version_probe):
        configuration.load({"version": "0.9.7"})

        assert configuration.version() == "0.9.7"
        mock_version_probe.get.assert_not_called()

    def test_numeric_version_from_yaml(self, configuration):
        configuration.load({"version": 2.0})
        assert configuration.version() == "2.0"

    def test_detects_version_otherwise(self, configuration):
        assert configuration.version() == "2.0.4-release"

    def test_probes_configured_indexer(self, temp_dir):
        config = Configuration(app_root=str(temp_dir))
        config.load({"bin_path": "/usr/local/bin"})
        result = MagicMock(stdout="Sphinx 0.9.9-release (r2117)\n", stderr="")

        with patch("sphinxconf.version.subprocess.run", return_value=result) as mock_run:
            assert config.version() == "0.9.9-release"
            assert config.version() == "0.9.9-release"

        mock_run.assert_called_once()
        assert mock_run.call_args[0][0] == ["/usr/local/bin/indexer"]

    def test_probe_failure_propagates(self, temp_dir):
        config = Configuration(app_root=str(temp_dir))

        with patch("sphinxconf.version.subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(VersionProbeError):
                config.version()


class TestModels:
    """Tests for registered models and the CRC map."""

    def test_models_by_crc_is_a_dict(self, configuration):
        assert isinstance(configuration.models_by_crc(), dict)

    def test_pairs_class_names_to_crcs(self, configuration):
        models_by_crc = configuration.models_by_crc()
        assert models_by_crc[crc32("Person")] == "Person"
        assert models_by_crc[crc32("Alpha")] == "Alpha"

    def test_indexed_models_filter(self, configuration):
        configuration.load({"indexed_models": ["Alpha"]})

        assert [m.name for m in configuration.indexed_models()] == ["Alpha"]
        assert [i.name for i in configuration.generate().indices] == ["alpha_core", "alpha"]

    def test_register_models(self, configuration, alpha):
        configuration.register_models([alpha])
        assert list(configuration.models_by_crc().values()) == ["Alpha"]


class TestClient:
    """Tests for client construction from settings."""

    @pytest.fixture(autouse=True)
    def client_settings(self, configuration):
        configuration.settings.address = "domain.url"
        configuration.settings.port = 3333
        configuration.settings.max_matches = 100
        configuration.settings.timeout = 1

    def test_returns_search_client(self, configuration):
        assert isinstance(configuration.client(), SearchClient)

    def test_uses_configuration_address(self, configuration):
        assert configuration.client().server == "domain.url"

    def test_uses_configuration_port(self, configuration):
        assert configuration.client().port == 3333

    def test_uses_configuration_max_matches(self, configuration):
        assert configuration.client().max_matches == 100

    def test_uses_configuration_timeout(self, configuration):
        assert configuration.client().timeout == 1

    def test_passes_key(self, configuration):
        configuration.settings.key = "secret"
        assert configuration.client().key == "secret"

    def test_shuffles_servers_when_enabled(self, configuration):
        configuration.settings.shuffle = True
        configuration.settings.address = ["1.1.1.1", "2.2.2.2"]

        with patch("sphinxconf.client.random.shuffle", side_effect=lambda seq: seq.reverse()) as mock_shuffle:
            with patch("sphinxconf.client.SearchClient") as mock_client:
                configuration.client()

        mock_shuffle.assert_called_once()
        mock_client.assert_called_once_with(["2.2.2.2", "1.1.1.1"], 3333, None)
        assert configuration.settings.address == ["1.1.1.1", "2.2.2.2"]

    def test_keeps_order_when_disabled(self, configuration):
        addresses = ["1.1.1.1", "2.2.2.2.", "3.3.3.3", "4.4.4.4", "5.5.5.5"]
        configuration.settings.shuffle = False
        configuration.settings.address = addresses

        with patch("sphinxconf.client.random.shuffle") as mock_shuffle:
            with patch("sphinxconf.client.SearchClient") as mock_client:
                configuration.client()

        mock_shuffle.assert_not_called()
        mock_client.assert_called_once_with(addresses, 3333, None)


class TestSharedConfiguration:
    """Tests for the module-level accessor."""

    def test_returns_same_instance(self):
        reset_configuration()
        try:
            assert get_configuration() is get_configuration()
        finally:
            reset_configuration()

    def test_reset_configuration_builds_fresh_instance(self):
        reset_configuration()
        try:
            first = get_configuration()
            reset_configuration()
            assert get_configuration() is not first
        finally:
            reset_configuration()
