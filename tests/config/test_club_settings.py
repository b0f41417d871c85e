"""
Tests for club_config: defaults, overrides, validation and checksum.
"""

import logging

import pytest
import yaml

from club_config import get_active_settings
from club_config.loader import compute_checksum, load_yaml_file
from club_config.settings import parse_settings
from club_ledger.db.engine import Store
from club_ledger.logging_config import configure_logging, reset_logging


def _write(tmp_path, data, name="settings.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:

    def test_defaults_load(self):
        settings = get_active_settings()

        assert settings.database_url == "sqlite:///club_ledger.db"
        assert (settings.dues_min_year, settings.dues_max_year) == (2000, 2100)
        assert settings.max_batch_size == 500
        assert settings.echo is False
        assert len(settings.checksum) == 64

    def test_checksum_is_deterministic(self):
        assert get_active_settings().checksum == get_active_settings().checksum

    def test_config_trace_logged(self, caplog):
        logger = logging.getLogger("club_ledger.config")
        logger.addHandler(caplog.handler)
        try:
            with caplog.at_level(logging.INFO, logger="club_ledger.config"):
                settings = get_active_settings()
        finally:
            logger.removeHandler(caplog.handler)

        traces = [r for r in caplog.records if r.getMessage() == "CLUB_CONFIG_TRACE"]
        assert traces
        assert traces[-1].checksum == settings.checksum
        assert traces[-1].dialect == "sqlite"


class TestOverrides:

    def test_override_subset(self, tmp_path):
        path = _write(tmp_path, {"max_batch_size": 50, "dues_max_year": 2040})

        settings = get_active_settings(path)

        assert settings.max_batch_size == 50
        assert settings.dues_max_year == 2040
        assert settings.pool_size == 10
        assert settings.checksum != get_active_settings().checksum

    def test_empty_file_means_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert get_active_settings(path).checksum == get_active_settings().checksum

    def test_unknown_key_rejected(self, tmp_path):
        path = _write(tmp_path, {"max_bach_size": 50})
        with pytest.raises(ValueError, match="max_bach_size"):
            get_active_settings(path)

    def test_wrong_type_rejected(self, tmp_path):
        path = _write(tmp_path, {"pool_size": "ten"})
        with pytest.raises(ValueError, match="pool_size"):
            get_active_settings(path)

    def test_bool_is_not_an_int(self, tmp_path):
        path = _write(tmp_path, {"max_batch_size": True})
        with pytest.raises(ValueError, match="max_batch_size"):
            get_active_settings(path)

    def test_inverted_year_window_rejected(self, tmp_path):
        path = _write(tmp_path, {"dues_min_year": 2050, "dues_max_year": 2040})
        with pytest.raises(ValueError, match="dues_min_year"):
            get_active_settings(path)

    def test_unknown_log_level_rejected(self, tmp_path):
        path = _write(tmp_path, {"log_level": "LOUD"})
        with pytest.raises(ValueError, match="log_level"):
            get_active_settings(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_settings(tmp_path / "absent.yaml")


class TestLoader:

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError, match="mapping"):
            load_yaml_file(path)

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_missing_keys_rejected(self):
        with pytest.raises(ValueError, match="Missing settings keys"):
            parse_settings({"database_url": "sqlite://"})


class TestStoreFromSettings:

    def test_sqlite_store_built_from_settings(self, tmp_path):
        path = _write(tmp_path, {"database_url": "sqlite://"})
        store = Store.from_settings(get_active_settings(path))
        try:
            store.create_tables()
            assert not store.is_postgres()
        finally:
            store.dispose()


class TestLogLevelFromSettings:

    @pytest.fixture
    def unconfigured_logging(self):
        reset_logging()
        yield logging.getLogger("club_ledger")
        reset_logging()
        configure_logging(level=logging.DEBUG)

    @pytest.mark.parametrize("name, level", [
        ("WARNING", logging.WARNING),
        ("debug", logging.DEBUG),
        ("ERROR", logging.ERROR),
    ])
    def test_level_applied_when_store_built(self, tmp_path, unconfigured_logging, name, level):
        path = _write(tmp_path, {"database_url": "sqlite://", "log_level": name})

        store = Store.from_settings(get_active_settings(path))
        store.dispose()

        assert unconfigured_logging.level == level

    def test_host_configuration_wins(self, tmp_path, unconfigured_logging):
        configure_logging(level=logging.ERROR)
        path = _write(tmp_path, {"database_url": "sqlite://", "log_level": "DEBUG"})

        Store.from_settings(get_active_settings(path)).dispose()

        assert unconfigured_logging.level == logging.ERROR
