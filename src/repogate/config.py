"""
RepoGate Configuration

Loads and saves the safety configuration file:

    {
      "version": "3.0",
      "safetyMode": "moderate",
      "globalSettings": {
        "enableAuditLog": true,
        "auditLogPath": "./mcp-admin-audit.log",
        "requireConfirmationAbove": "HIGH",
        "requireDryRunAbove": "MEDIUM",
        "enableAutoBackup": true,
        "backupPath": "./.mcp-backups"
      }
    }

A missing file yields the defaults. Missing or empty fields fall back
to their defaults; present-but-invalid values raise ConfigError.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from repogate.core.models import RiskLevel, SafetyConfig, SafetyMode
from repogate.exceptions import ConfigError
from repogate.logging import get_logger

logger = get_logger("repogate.config")

CONFIG_VERSION = "3.0"
DEFAULT_CONFIG_PATH = "mcp-admin-config.json"
CONFIG_PATH_ENV = "REPOGATE_CONFIG"


class _GlobalSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    enable_audit_log: bool | None = Field(default=None, alias="enableAuditLog")
    audit_log_path: str | None = Field(default=None, alias="auditLogPath")
    require_confirmation_above: str | None = Field(default=None, alias="requireConfirmationAbove")
    require_dry_run_above: str | None = Field(default=None, alias="requireDryRunAbove")
    enable_auto_backup: bool | None = Field(default=None, alias="enableAutoBackup")
    backup_path: str | None = Field(default=None, alias="backupPath")


class _ConfigFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str = CONFIG_VERSION
    safety_mode: str | None = Field(default=None, alias="safetyMode")
    global_settings: _GlobalSettings = Field(default_factory=_GlobalSettings, alias="globalSettings")


def resolve_config_path(path: str | os.PathLike[str] | None = None) -> Path:
    """Explicit path, then $REPOGATE_CONFIG, then the default file name."""
    if path is not None:
        return Path(path)
    return Path(os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))


def _parse_level(value: str | None, default: RiskLevel, path: Path) -> RiskLevel:
    if not value:
        return default
    try:
        return RiskLevel.parse(value)
    except ValueError as e:
        raise ConfigError(str(e), path=str(path)) from e


def load_config(path: str | os.PathLike[str] | None = None) -> SafetyConfig:
    """Read a configuration file.

    Raises:
        ConfigError: The file is unreadable, not valid JSON, or holds invalid values.
    """
    config_path = resolve_config_path(path)
    defaults = SafetyConfig()
    if not config_path.exists():
        logger.debug("No config file, using defaults", extra={"_extra": {"path": str(config_path)}})
        return defaults

    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to read config file: {e}", path=str(config_path)) from e

    try:
        parsed = _ConfigFile.model_validate_json(raw)
    except ValidationError as e:
        raise ConfigError(f"failed to parse config file: {e}", path=str(config_path)) from e

    mode = defaults.mode
    if parsed.safety_mode:
        try:
            mode = SafetyMode.parse(parsed.safety_mode)
        except ValueError as e:
            raise ConfigError(str(e), path=str(config_path)) from e

    settings = parsed.global_settings
    return SafetyConfig(
        mode=mode,
        enable_audit_log=(
            defaults.enable_audit_log if settings.enable_audit_log is None else settings.enable_audit_log
        ),
        audit_log_path=settings.audit_log_path or defaults.audit_log_path,
        require_confirmation_above=_parse_level(
            settings.require_confirmation_above, defaults.require_confirmation_above, config_path
        ),
        require_dry_run_above=_parse_level(
            settings.require_dry_run_above, defaults.require_dry_run_above, config_path
        ),
        enable_auto_backup=(
            defaults.enable_auto_backup if settings.enable_auto_backup is None else settings.enable_auto_backup
        ),
        backup_path=settings.backup_path or defaults.backup_path,
    )


def config_to_dict(config: SafetyConfig) -> dict:
    """The on-disk representation of a configuration."""
    return {
        "version": CONFIG_VERSION,
        "safetyMode": config.mode.value,
        "globalSettings": {
            "enableAuditLog": config.enable_audit_log,
            "auditLogPath": config.audit_log_path,
            "requireConfirmationAbove": config.require_confirmation_above.value,
            "requireDryRunAbove": config.require_dry_run_above.value,
            "enableAutoBackup": config.enable_auto_backup,
            "backupPath": config.backup_path,
        },
    }


def save_config(config: SafetyConfig, path: str | os.PathLike[str] | None = None) -> Path:
    """Write ``config`` as indented JSON. Returns the path written."""
    config_path = resolve_config_path(path)
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(json.dumps(config_to_dict(config), indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to write config file: {e}", path=str(config_path)) from e
    return config_path


def create_default_config(path: str | os.PathLike[str] | None = None) -> Path:
    """Write a configuration file holding the defaults."""
    return save_config(SafetyConfig(), path)


def validate_config(config: SafetyConfig) -> list[str]:
    """Return a list of problems with ``config``; empty when it is usable."""
    problems: list[str] = []
    if config.enable_audit_log and not config.audit_log_path:
        problems.append("audit log is enabled but auditLogPath is empty")
    if config.enable_auto_backup and not config.backup_path:
        problems.append("auto-backup is enabled but backupPath is empty")
    if config.mode == SafetyMode.DISABLED:
        problems.append("safety mode is 'disabled': administrative operations run unchecked")
    return problems
