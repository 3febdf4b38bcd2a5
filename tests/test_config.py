"""Unit tests for Config and related Pydantic models (stackforge.config).

Tests cover:
- TypeCheckConfig defaults and validation
- RateLimitConfig defaults
- Config defaults, api_prefix normalisation, derived paths
- save/load round trip, from_env, ensure_directories
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from stackforge.config import Config, RateLimitConfig, TypeCheckConfig


# ---------------------------------------------------------------------------
# TypeCheckConfig
# ---------------------------------------------------------------------------


class TestTypeCheckConfig:
    @pytest.mark.unit
    def test_defaults(self):
        cfg = TypeCheckConfig()
        assert cfg.enabled is True
        assert cfg.command == ["npx", "tsc", "--noEmit"]
        assert cfg.marker == "tsconfig.json"
        assert cfg.timeout == 120

    @pytest.mark.unit
    def test_empty_command_rejected(self):
        with pytest.raises(ValidationError, match="must not be empty"):
            TypeCheckConfig(command=[])

    @pytest.mark.unit
    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            TypeCheckConfig(timeout=0)


class TestRateLimitConfig:
    @pytest.mark.unit
    def test_defaults(self):
        cfg = RateLimitConfig()
        assert cfg.window_ms == 60_000
        assert cfg.max_requests == 100


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class TestConfigDefaults:
    @pytest.mark.unit
    def test_defaults(self):
        cfg = Config()
        assert cfg.project_root == Path(".")
        assert cfg.api_prefix == "/api"
        assert cfg.port == 3000
        assert cfg.database_provider == "postgresql"
        assert cfg.catalog_file is None

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw, expected",
        [("api", "/api"), ("/v1/", "/v1"), ("  ", "/"), ("/", "/"), ("/api/v2", "/api/v2")],
    )
    def test_api_prefix_normalised(self, raw: str, expected: str):
        assert Config(api_prefix=raw).api_prefix == expected

    @pytest.mark.unit
    def test_port_range(self):
        with pytest.raises(ValidationError):
            Config(port=70000)

    @pytest.mark.unit
    def test_derived_paths(self, tmp_path: Path):
        cfg = Config(project_root=tmp_path)
        assert cfg.state_path == tmp_path / ".stackforge"
        assert cfg.index_path == tmp_path / ".stackforge" / "index.json"
        assert cfg.config_path == tmp_path / ".stackforge" / "config.json"
        assert cfg.marker_path == tmp_path / "tsconfig.json"


class TestConfigPersistence:
    @pytest.mark.unit
    def test_save_and_load(self, tmp_path: Path):
        cfg = Config(project_root=tmp_path, port=4000, type_check=TypeCheckConfig(enabled=False))
        path = cfg.save()
        assert path == cfg.config_path
        loaded = Config.load(path)
        assert loaded.port == 4000
        assert loaded.type_check.enabled is False
        assert loaded.project_root == tmp_path

    @pytest.mark.unit
    def test_save_custom_path(self, tmp_path: Path):
        target = tmp_path / "nested" / "cfg.json"
        assert Config().save(target) == target
        assert target.exists()

    @pytest.mark.unit
    def test_ensure_directories(self, tmp_path: Path):
        cfg = Config(project_root=tmp_path / "proj")
        cfg.ensure_directories()
        assert cfg.project_root.is_dir()
        assert cfg.state_path.is_dir()


class TestConfigFromEnv:
    @pytest.mark.unit
    def test_no_env(self):
        with patch.dict("os.environ", {}, clear=True):
            cfg = Config.from_env()
        assert cfg == Config()

    @pytest.mark.unit
    def test_all_variables(self, tmp_path: Path):
        env = {
            "STACKFORGE_PROJECT_ROOT": str(tmp_path),
            "STACKFORGE_API_PREFIX": "v2",
            "STACKFORGE_PORT": "8080",
            "STACKFORGE_DATABASE_PROVIDER": "sqlite",
            "STACKFORGE_DATABASE_URL": "file:./dev.db",
            "STACKFORGE_CATALOG": str(tmp_path / "catalog.json"),
            "STACKFORGE_TYPECHECK": "0",
            "STACKFORGE_TYPECHECK_COMMAND": "pnpm exec tsc --noEmit",
            "STACKFORGE_TYPECHECK_TIMEOUT": "30",
        }
        with patch.dict("os.environ", env, clear=True):
            cfg = Config.from_env()
        assert cfg.project_root == tmp_path
        assert cfg.api_prefix == "/v2"
        assert cfg.port == 8080
        assert cfg.database_provider == "sqlite"
        assert cfg.database_url == "file:./dev.db"
        assert cfg.catalog_file == tmp_path / "catalog.json"
        assert cfg.type_check.enabled is False
        assert cfg.type_check.command == ["pnpm", "exec", "tsc", "--noEmit"]
        assert cfg.type_check.timeout == 30

    @pytest.mark.unit
    @pytest.mark.parametrize("value, enabled", [("1", True), ("true", True), ("false", False), ("no", False)])
    def test_typecheck_flag(self, value: str, enabled: bool):
        with patch.dict("os.environ", {"STACKFORGE_TYPECHECK": value}, clear=True):
            assert Config.from_env().type_check.enabled is enabled
