"""Tests for RepoGate configuration loading and saving."""

import json

import pytest

from repogate.config import (
    CONFIG_PATH_ENV,
    DEFAULT_CONFIG_PATH,
    create_default_config,
    load_config,
    resolve_config_path,
    save_config,
    validate_config,
)
from repogate.core.models import RiskLevel, SafetyConfig, SafetyMode
from repogate.exceptions import ConfigError


def _write(path, data) -> None:
    path.write_text(json.dumps(data), encoding="utf-8")


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(tmp_path / "absent.json") == SafetyConfig()

    def test_full_file(self, tmp_path):
        path = tmp_path / "config.json"
        _write(path, {
            "version": "3.0",
            "safetyMode": "strict",
            "globalSettings": {
                "enableAuditLog": False,
                "auditLogPath": "/var/log/audit.log",
                "requireConfirmationAbove": "MEDIUM",
                "enableAutoBackup": False,
                "backupPath": "/tmp/backups",
            },
        })
        config = load_config(path)
        assert config.mode == SafetyMode.STRICT
        assert config.enable_audit_log is False
        assert config.audit_log_path == "/var/log/audit.log"
        assert config.require_confirmation_above == RiskLevel.MEDIUM
        assert config.enable_auto_backup is False
        assert config.backup_path == "/tmp/backups"

    def test_case_insensitive_values(self, tmp_path):
        path = tmp_path / "config.json"
        _write(path, {"safetyMode": "PERMISSIVE", "globalSettings": {"requireConfirmationAbove": "critical"}})
        config = load_config(path)
        assert config.mode == SafetyMode.PERMISSIVE
        assert config.require_confirmation_above == RiskLevel.CRITICAL

    def test_empty_fields_fall_back(self, tmp_path):
        path = tmp_path / "config.json"
        _write(path, {"safetyMode": "", "globalSettings": {"auditLogPath": "", "backupPath": ""}})
        assert load_config(path) == SafetyConfig()

    def test_missing_booleans_default_true(self, tmp_path):
        path = tmp_path / "config.json"
        _write(path, {"safetyMode": "moderate", "globalSettings": {}})
        config = load_config(path)
        assert config.enable_audit_log is True
        assert config.enable_auto_backup is True

    def test_invalid_mode(self, tmp_path):
        path = tmp_path / "config.json"
        _write(path, {"safetyMode": "yolo"})
        with pytest.raises(ConfigError, match="invalid safety mode: yolo"):
            load_config(path)

    def test_invalid_level(self, tmp_path):
        path = tmp_path / "config.json"
        _write(path, {"globalSettings": {"requireConfirmationAbove": "SEVERE"}})
        with pytest.raises(ConfigError, match="invalid risk level: SEVERE"):
            load_config(path)

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError) as exc_info:
            load_config(path)
        assert exc_info.value.path == str(path)

    def test_unknown_keys_ignored(self, tmp_path):
        path = tmp_path / "config.json"
        _write(path, {"safetyMode": "strict", "operations": {"delete_repository": {"enabled": False}}})
        assert load_config(path).mode == SafetyMode.STRICT


class TestSaveConfig:
    def test_round_trip(self, tmp_path):
        config = SafetyConfig(
            mode=SafetyMode.PERMISSIVE,
            enable_audit_log=False,
            audit_log_path="audit/x.log",
            require_confirmation_above=RiskLevel.CRITICAL,
            require_dry_run_above=RiskLevel.LOW,
            enable_auto_backup=False,
            backup_path="bk",
        )
        path = save_config(config, tmp_path / "nested" / "config.json")
        assert load_config(path) == config

    def test_on_disk_shape(self, tmp_path):
        path = save_config(SafetyConfig(), tmp_path / "config.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["version"] == "3.0"
        assert data["safetyMode"] == "moderate"
        assert data["globalSettings"] == {
            "enableAuditLog": True,
            "auditLogPath": "./mcp-admin-audit.log",
            "requireConfirmationAbove": "HIGH",
            "requireDryRunAbove": "MEDIUM",
            "enableAutoBackup": True,
            "backupPath": "./.mcp-backups",
        }
        assert path.read_text(encoding="utf-8").startswith("{\n  ")

    def test_create_default_config(self, tmp_path):
        path = create_default_config(tmp_path / "config.json")
        assert load_config(path) == SafetyConfig()


class TestResolveConfigPath:
    def test_explicit_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_PATH_ENV, str(tmp_path / "env.json"))
        assert resolve_config_path(tmp_path / "x.json") == tmp_path / "x.json"

    def test_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_PATH_ENV, str(tmp_path / "env.json"))
        assert resolve_config_path() == tmp_path / "env.json"

    def test_default(self, monkeypatch):
        monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
        assert str(resolve_config_path()) == DEFAULT_CONFIG_PATH


class TestValidateConfig:
    def test_defaults_valid(self):
        assert validate_config(SafetyConfig()) == []

    def test_empty_paths(self):
        problems = validate_config(SafetyConfig(audit_log_path="", backup_path=""))
        assert len(problems) == 2

    def test_disabled_mode_warned(self):
        problems = validate_config(SafetyConfig(mode=SafetyMode.DISABLED))
        assert any("disabled" in p for p in problems)
