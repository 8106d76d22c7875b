"""Shared test fixtures for the RepoGate test suite."""

from datetime import UTC, datetime, timedelta

import pytest

from repogate.core.models import SafetyConfig, SafetyMode
from repogate.safety.audit import AuditLogger
from repogate.safety.confirmation import ConfirmationTokenStore
from repogate.safety.engine import SafetyEngine


class FakeClock:
    """Manually advanced clock for token expiry tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def token_store(clock):
    store = ConfirmationTokenStore(clock=clock, schedule_cleanup=False)
    yield store
    store.clear_all()


@pytest.fixture
def audit_path(tmp_path):
    return tmp_path / "audit" / "mcp-admin-audit.log"


@pytest.fixture
def audit_logger(audit_path):
    return AuditLogger(path=audit_path)


@pytest.fixture
def safety_config(tmp_path, audit_path):
    return SafetyConfig(
        mode=SafetyMode.MODERATE,
        audit_log_path=str(audit_path),
        backup_path=str(tmp_path / "backups"),
    )


@pytest.fixture
def engine(safety_config, token_store, audit_logger):
    return SafetyEngine(config=safety_config, token_store=token_store, audit_logger=audit_logger)


@pytest.fixture
def make_engine(tmp_path, token_store, audit_logger):
    """Build an engine for a given safety mode sharing the test store and logger."""

    def _make(mode: SafetyMode = SafetyMode.MODERATE, **overrides) -> SafetyEngine:
        settings = {"backup_path": str(tmp_path / "backups"), **overrides}
        config = SafetyConfig(mode=mode, audit_log_path=str(audit_logger.path), **settings)
        return SafetyEngine(config=config, token_store=token_store, audit_logger=audit_logger)

    return _make


@pytest.fixture
def repo_params():
    return {"owner": "acme", "repo": "demo"}
