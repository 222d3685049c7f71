"""
Tests for environment configuration.
"""

import os
from unittest.mock import patch

import pytest

from userhub.core.config import EnvironmentConfig, check_startup_requirements, default_worker_count
from userhub.core.exceptions import ConfigurationError


class TestDefaults:

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        config = EnvironmentConfig()

        assert config.get_port() == 4000
        assert config.get_host() == "0.0.0.0"
        assert config.get_worker_count() == default_worker_count()
        assert config.get_dispatch_timeout() == 10.0
        assert config.get_load_balancer() == "round_robin"
        assert config.restart_workers() is True
        assert config.get_max_restarts() == 5

    def test_default_worker_count_keeps_a_core(self):
        with patch("userhub.core.config.os.cpu_count", return_value=8):
            assert default_worker_count() == 7
        with patch("userhub.core.config.os.cpu_count", return_value=1):
            assert default_worker_count() == 0
        with patch("userhub.core.config.os.cpu_count", return_value=None):
            assert default_worker_count() == 0


class TestNumericSettings:

    @patch.dict(os.environ, {"PORT": "8080", "WORKER_COUNT": "3", "DISPATCH_TIMEOUT": "2.5"}, clear=True)
    def test_explicit_values(self):
        config = EnvironmentConfig()

        assert config.get_port() == 8080
        assert config.get_worker_count() == 3
        assert config.get_dispatch_timeout() == 2.5

    @patch.dict(os.environ, {"WORKER_COUNT": "0"}, clear=True)
    def test_zero_workers_allowed(self):
        assert EnvironmentConfig().get_worker_count() == 0

    @pytest.mark.parametrize("key, raw, getter, expected", [
        ("PORT", "70000", "get_port", 65535),
        ("PORT", "0", "get_port", 1),
        ("WORKER_COUNT", "-2", "get_worker_count", 0),
        ("DISPATCH_TIMEOUT", "0", "get_dispatch_timeout", 0.1),
        ("DISPATCH_TIMEOUT", "9999", "get_dispatch_timeout", 300.0),
    ])
    def test_out_of_range_values_clamped(self, key, raw, getter, expected):
        with patch.dict(os.environ, {key: raw}, clear=True):
            assert getattr(EnvironmentConfig(), getter)() == expected

    @pytest.mark.parametrize("key, raw, getter, expected", [
        ("PORT", "http", "get_port", 4000),
        ("MAX_RESTARTS", "many", "get_max_restarts", 5),
        ("DISPATCH_TIMEOUT", "nan", "get_dispatch_timeout", 10.0),
        ("RESTART_DELAY", "soon", "get_restart_delay", 1.0),
    ])
    def test_invalid_values_use_default(self, key, raw, getter, expected):
        with patch.dict(os.environ, {key: raw}, clear=True):
            assert getattr(EnvironmentConfig(), getter)() == expected


class TestPolicies:

    @patch.dict(os.environ, {"LOAD_BALANCER": " Sticky "}, clear=True)
    def test_balancer_name_normalized(self):
        assert EnvironmentConfig().get_load_balancer() == "sticky"

    @patch.dict(os.environ, {"LOAD_BALANCER": "random"}, clear=True)
    def test_unknown_balancer(self):
        config = EnvironmentConfig()

        with pytest.raises(ConfigurationError):
            config.get_load_balancer()
        with pytest.raises(ConfigurationError):
            config.validate()

    @pytest.mark.parametrize("raw, expected", [
        ("true", True), ("1", True), ("YES", True), ("false", False), ("0", False), ("off", False),
    ])
    def test_restart_workers(self, raw, expected):
        with patch.dict(os.environ, {"RESTART_WORKERS": raw}, clear=True):
            assert EnvironmentConfig().restart_workers() is expected


class TestEnvFile:

    def test_env_file_loaded(self, tmp_path):
        env_file = tmp_path / "test.env"
        env_file.write_text("PORT=5055\nLOAD_BALANCER=sticky\n")

        with patch.dict(os.environ, {}, clear=True):
            config = EnvironmentConfig(str(env_file))

            assert config.get_port() == 5055
            assert config.get_load_balancer() == "sticky"

    @patch.dict(os.environ, {"PORT": "6000"}, clear=True)
    def test_environment_wins_over_env_file(self, tmp_path):
        env_file = tmp_path / "test.env"
        env_file.write_text("PORT=5055\n")

        assert EnvironmentConfig(str(env_file)).get_port() == 6000


class TestStartupChecks:

    @patch.dict(os.environ, {"LOAD_BALANCER": "random"}, clear=True)
    def test_bad_configuration_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            check_startup_requirements(EnvironmentConfig())

        assert exc_info.value.code == 1

    @patch.dict(os.environ, {"WORKER_COUNT": "2"}, clear=True)
    def test_good_configuration_passes(self):
        check_startup_requirements(EnvironmentConfig())
