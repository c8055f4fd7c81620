"""Tests for utility functions."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import timedelta, timezone
from pathlib import Path

import pytest

from taskmaster.models.task import TaskStatus
from taskmaster.util.config import ConfigError, Settings, load_settings
from taskmaster.util.log import LOGGER_NAME, setup_logging
from taskmaster.util.paths import (
    CONTEXT_FILE,
    GLOBAL_DIR,
    TASKS_DIR,
    TASKS_FILE,
    StoreLocation,
    StoreMode,
    find_tasks_root,
    global_tasks_dir,
    resolve_location,
)
from taskmaster.util.time import (
    format_age,
    format_timestamp,
    now_iso,
    parse_duration,
    parse_timestamp,
)


class TestTimeParsing:
    """Test duration and timestamp parsing."""

    def test_parse_minutes(self):
        assert parse_duration("15m") == timedelta(minutes=15)

    def test_parse_hours(self):
        assert parse_duration("1h") == timedelta(hours=1)

    def test_parse_days_and_hours(self):
        assert parse_duration("1d12h") == timedelta(days=1, hours=12)

    def test_parse_case_insensitive(self):
        assert parse_duration("15M") == timedelta(minutes=15)

    def test_parse_empty_fails(self):
        with pytest.raises(ValueError):
            parse_duration("")

    def test_parse_invalid_format_fails(self):
        with pytest.raises(ValueError):
            parse_duration("an hour")

    def test_parse_zero_fails(self):
        with pytest.raises(ValueError):
            parse_duration("0m")

    def test_now_iso_uses_z_suffix(self):
        stamp = now_iso()
        assert stamp.endswith("Z")
        assert parse_timestamp(stamp).tzinfo is not None

    def test_parse_timestamp_accepts_js_style(self):
        parsed = parse_timestamp("2024-03-01T10:15:30.123Z")
        assert parsed.year == 2024
        assert parsed.utcoffset() == timedelta(0)

    def test_parse_timestamp_assumes_utc_for_naive(self):
        parsed = parse_timestamp("2024-03-01T10:15:30")
        assert parsed.tzinfo == timezone.utc

    def test_parse_timestamp_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_timestamp("yesterday")

    def test_format_timestamp_falls_back_to_raw_value(self):
        assert format_timestamp("not a date") == "not a date"


class TestAgeFormatting:
    """Test compact age formatting."""

    def test_format_minutes(self):
        assert format_age(timedelta(minutes=15)) == "15m"

    def test_format_combined(self):
        assert format_age(timedelta(hours=2, minutes=5)) == "2h5m"

    def test_format_seconds_only(self):
        assert format_age(timedelta(seconds=40)) == "40s"

    def test_format_negative(self):
        assert format_age(timedelta(seconds=-10)) == "in the future"


class TestPaths:
    """Test store location resolution."""

    def test_for_directory_defaults(self, tmp_path):
        location = StoreLocation.for_directory(tmp_path / TASKS_DIR)
        assert location.tasks_file == tmp_path / TASKS_DIR / TASKS_FILE
        assert location.context_file == tmp_path / TASKS_DIR / CONTEXT_FILE
        assert location.tasks_lock.name == "tasks.lock"
        assert location.context_lock.name == "context.lock"

    def test_explicit_tasks_file(self, tmp_path):
        tasks_file = tmp_path / "elsewhere" / "mine.json"
        location = StoreLocation.for_directory(tmp_path / TASKS_DIR, tasks_file)
        assert location.tasks_file == tasks_file
        assert location.context_file.parent == tmp_path / TASKS_DIR

    def test_find_tasks_root_searches_upward(self, tmp_path):
        (tmp_path / TASKS_DIR).mkdir()
        (tmp_path / TASKS_DIR / TASKS_FILE).write_text("{}")
        nested = tmp_path / "src" / "pkg"
        nested.mkdir(parents=True)

        assert find_tasks_root(nested) == tmp_path.resolve()

    def test_find_tasks_root_returns_none(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            assert find_tasks_root(Path(tmpdir)) is None

    def test_init_falls_back_to_start(self, tmp_path):
        location = resolve_location(start=tmp_path, home=tmp_path / "home", for_init=True)
        assert location.tasks_dir == tmp_path.resolve() / TASKS_DIR
        assert location.mode == StoreMode.LOCAL
        assert not location.is_initialized()

    def test_other_commands_fall_back_to_global(self, tmp_path):
        location = resolve_location(start=tmp_path, home=tmp_path / "home")
        assert location.tasks_dir == tmp_path / "home" / GLOBAL_DIR
        assert location.mode == StoreMode.GLOBAL

    def test_project_store_wins_over_global(self, tmp_path):
        (tmp_path / TASKS_DIR).mkdir()
        (tmp_path / TASKS_DIR / TASKS_FILE).write_text("{}")
        location = resolve_location(start=tmp_path, home=tmp_path / "home")
        assert location.tasks_dir == tmp_path.resolve() / TASKS_DIR
        assert location.mode == StoreMode.LOCAL

    def test_global_mode_skips_project_store(self, tmp_path):
        (tmp_path / TASKS_DIR).mkdir()
        (tmp_path / TASKS_DIR / TASKS_FILE).write_text("{}")
        location = resolve_location(start=tmp_path, mode=StoreMode.GLOBAL, home=tmp_path / "home")
        assert location.tasks_dir == global_tasks_dir(tmp_path / "home")

    def test_local_mode_never_uses_global(self, tmp_path):
        location = resolve_location(start=tmp_path, mode=StoreMode.LOCAL, home=tmp_path / "home")
        assert location.tasks_dir == tmp_path.resolve() / TASKS_DIR

    def test_global_mode_with_explicit_directory(self, tmp_path):
        location = resolve_location(tasks_dir=tmp_path / "shared", mode=StoreMode.GLOBAL)
        assert location.tasks_dir == tmp_path / "shared"
        assert location.mode == StoreMode.GLOBAL

    def test_resolve_location_uses_tasks_file_directory(self, tmp_path):
        tasks_file = tmp_path / "data" / TASKS_FILE
        location = resolve_location(tasks_file=tasks_file)
        assert location.tasks_dir == tmp_path / "data"
        assert location.tasks_file == tasks_file

    def test_explicit_directory_wins(self, tmp_path):
        location = resolve_location(tasks_dir=tmp_path / "custom", start=Path(os.getcwd()))
        assert location.tasks_dir == tmp_path / "custom"


class TestConfig:
    """Test config.yaml loading."""

    @pytest.fixture
    def location(self, tmp_path):
        (tmp_path / TASKS_DIR).mkdir()
        return StoreLocation.for_directory(tmp_path / TASKS_DIR)

    def test_defaults_without_file(self, location):
        settings = load_settings(location)
        assert settings == Settings()
        assert settings.defer_from == [TaskStatus.PENDING, TaskStatus.IN_PROGRESS]

    def test_loads_values(self, location):
        location.config_file.write_text(
            "project_name: Demo\ndefault_priority: 1\nlock_timeout: 2.5\n"
            "defer_from: [pending]\nstale_after: 30m\n"
        )
        settings = load_settings(location)
        assert settings.project_name == "Demo"
        assert settings.default_priority == 1
        assert settings.lock_timeout == 2.5
        assert settings.defer_from == [TaskStatus.PENDING]
        assert settings.stale_after == "30m"

    def test_empty_file_gives_defaults(self, location):
        location.config_file.write_text("")
        assert load_settings(location) == Settings()

    def test_invalid_yaml(self, location):
        location.config_file.write_text("key: [unclosed\n")
        with pytest.raises(ConfigError):
            load_settings(location)

    def test_non_mapping(self, location):
        location.config_file.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError):
            load_settings(location)

    def test_unknown_key(self, location):
        location.config_file.write_text("colour: blue\n")
        with pytest.raises(ConfigError):
            load_settings(location)

    def test_priority_out_of_range(self, location):
        location.config_file.write_text("default_priority: 7\n")
        with pytest.raises(ConfigError):
            load_settings(location)

    def test_deferred_cannot_be_defer_source(self, location):
        location.config_file.write_text("defer_from: [deferred]\n")
        with pytest.raises(ConfigError):
            load_settings(location)

    def test_invalid_stale_after(self, location):
        location.config_file.write_text("stale_after: soon\n")
        with pytest.raises(ConfigError):
            load_settings(location)

    def test_config_error_is_environment_failure(self, location):
        location.config_file.write_text("colour: blue\n")
        with pytest.raises(ConfigError) as exc_info:
            load_settings(location)
        assert exc_info.value.exit_code == 2


class TestLogging:
    """Test logger setup."""

    def test_setup_does_not_stack_handlers(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger(LOGGER_NAME).handlers) == 1

    def test_log_file_receives_debug(self, tmp_path):
        log_file = tmp_path / "logs" / "task-master.log"
        logger = setup_logging(log_file=log_file)
        logging.getLogger(f"{LOGGER_NAME}.test").debug("hello from test")
        for handler in logger.handlers:
            handler.flush()
        assert "hello from test" in log_file.read_text(encoding="utf-8")
        setup_logging()

    def test_json_format(self, tmp_path):
        log_file = tmp_path / "task-master.jsonl"
        logger = setup_logging(log_file=log_file, json_logs=True)
        logging.getLogger(LOGGER_NAME).info("json line")
        for handler in logger.handlers:
            handler.flush()
        assert '"message": "json line"' in log_file.read_text(encoding="utf-8")
        setup_logging()
