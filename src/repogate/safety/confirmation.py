"""
RepoGate Confirmation Tokens

Short-lived, single-use capabilities that gate risky operations behind
a two-call handshake. Each token:
- Has the form ``CONF:`` + 12 lowercase hex characters
- Expires five minutes after issue
- Is bound to its operation and to the critical parameters
  (owner, repo, username, hook_id, branch)
- Is consumed by a successful validation

All state lives in memory behind one lock. A timer per token reclaims
expired entries; expiry itself is enforced by ``validate``.
"""

from __future__ import annotations

import hashlib
import secrets
import threading
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from repogate.core.models import ConfirmationToken, RiskLevel
from repogate.exceptions import (
    ConfirmationExpiredError,
    ConfirmationInvalidError,
    ConfirmationMismatchError,
    ConfirmationUsedError,
)
from repogate.logging import get_logger
from repogate.safety.redaction import sanitize_parameters

logger = get_logger("repogate.safety.confirmation")

TOKEN_PREFIX = "CONF:"
TOKEN_HEX_LENGTH = 12
TOKEN_TTL = timedelta(minutes=5)
CLEANUP_GRACE = timedelta(minutes=1)

CRITICAL_KEYS = ("owner", "repo", "username", "hook_id", "branch")

_RISK_EMOJI = {
    RiskLevel.HIGH: "⚠️",
    RiskLevel.CRITICAL: "💣",
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ConfirmationTokenStore:
    """Issues and validates confirmation tokens.

    Args:
        ttl: Token lifetime.
        clock: Returns the current aware datetime. Injected by tests.
        schedule_cleanup: Start a reclamation timer per token.
    """

    def __init__(
        self,
        ttl: timedelta = TOKEN_TTL,
        clock: Callable[[], datetime] | None = None,
        schedule_cleanup: bool = True,
    ):
        self._ttl = ttl
        self._clock = clock or _utcnow
        self._schedule = schedule_cleanup
        self._lock = threading.Lock()
        self._tokens: dict[str, ConfirmationToken] = {}
        self._timers: dict[str, threading.Timer] = {}

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def generate(
        self,
        operation: str,
        params: Mapping[str, Any] | None,
        risk_level: RiskLevel,
    ) -> ConfirmationToken:
        """Issue a token for ``operation`` bound to a redacted copy of ``params``."""
        snapshot = sanitize_parameters(params)
        with self._lock:
            now = self._clock()
            token_str = self._new_token_string(operation, params, now)
            while token_str in self._tokens:
                token_str = self._new_token_string(operation, params, now)

            record = ConfirmationToken(
                token=token_str,
                operation=operation,
                parameters=snapshot,
                risk_level=risk_level,
                created_at=now,
                expires_at=now + self._ttl,
            )
            self._tokens[token_str] = record
            if self._schedule:
                self._start_timer(token_str)

        logger.debug(
            "Confirmation token issued",
            extra={"operation": operation, "risk_level": risk_level.value},
        )
        return record.model_copy()

    def validate(
        self,
        token: str,
        operation: str,
        params: Mapping[str, Any] | None,
    ) -> ConfirmationToken:
        """Validate and consume a token.

        Returns the consumed record. Raises a ConfirmationError subclass
        describing why the token was rejected.
        """
        params = params or {}
        with self._lock:
            record = self._tokens.get(token) if isinstance(token, str) else None
            if record is None:
                raise ConfirmationInvalidError(token if isinstance(token, str) else "")

            if record.is_expired(self._clock()):
                self._discard(token)
                raise ConfirmationExpiredError(token)

            if record.used:
                raise ConfirmationUsedError(token)

            if record.operation != operation:
                raise ConfirmationMismatchError.for_operation(token, record.operation, operation)

            mismatched = [
                key for key in CRITICAL_KEYS
                if key in record.parameters and key in params
                and record.parameters[key] != params[key]
            ]
            if mismatched:
                raise ConfirmationMismatchError.for_parameters(token, mismatched)

            record.used = True
            self._discard(token)

        logger.debug("Confirmation token consumed", extra={"operation": operation})
        return record

    def get(self, token: str) -> ConfirmationToken | None:
        """Return a copy of a stored token without consuming it."""
        with self._lock:
            record = self._tokens.get(token)
            return record.model_copy() if record else None

    def cleanup_all_expired(self) -> int:
        """Remove every token past its expiry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [t for t, record in self._tokens.items() if now > record.expires_at]
            for token in expired:
                self._discard(token)
        if expired:
            logger.debug("Expired confirmation tokens removed", extra={"_extra": {"count": len(expired)}})
        return len(expired)

    def active_count(self) -> int:
        with self._lock:
            return len(self._tokens)

    def clear_all(self) -> None:
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            self._tokens.clear()

    # ─── internals ───

    def _new_token_string(self, operation: str, params: Mapping[str, Any] | None, now: datetime) -> str:
        nonce = secrets.token_hex(16)
        payload = f"{operation}|{params!r}|{int(now.timestamp())}|{nonce}"
        digest = hashlib.sha256(payload.encode()).hexdigest()
        return TOKEN_PREFIX + digest[:TOKEN_HEX_LENGTH]

    def _start_timer(self, token: str) -> None:
        delay = (self._ttl + CLEANUP_GRACE).total_seconds()
        timer = threading.Timer(delay, self._expire, args=(token,))
        timer.daemon = True
        self._timers[token] = timer
        timer.start()

    def _expire(self, token: str) -> None:
        with self._lock:
            self._timers.pop(token, None)
            record = self._tokens.get(token)
            if record is not None and self._clock() > record.expires_at:
                del self._tokens[token]

    def _discard(self, token: str) -> None:
        """Drop a token and its timer. Caller holds the lock."""
        self._tokens.pop(token, None)
        timer = self._timers.pop(token, None)
        if timer is not None:
            timer.cancel()


def confirmation_message(token: ConfirmationToken, description: str) -> str:
    """Human-readable instructions handed back to the agent with a fresh token."""
    emoji = _RISK_EMOJI.get(token.risk_level, "ℹ️")
    minutes = int((token.expires_at - token.created_at).total_seconds() // 60)
    return (
        f"{emoji} {token.risk_level.value} RISK OPERATION: {token.operation}\n\n"
        f"{description}\n\n"
        f"To proceed, call again with:\n"
        f"  confirmation_token={token.token}\n\n"
        f"Token expires in {minutes} minutes\n"
    )


# ─── Default store ───────────────────────────────────────────

_default_store: ConfirmationTokenStore | None = None
_default_lock = threading.Lock()


def get_default_store() -> ConfirmationTokenStore:
    """Process-wide store used when no store is injected."""
    global _default_store
    with _default_lock:
        if _default_store is None:
            _default_store = ConfirmationTokenStore()
        return _default_store
