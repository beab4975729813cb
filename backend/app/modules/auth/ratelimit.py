import logging
import math
import os
import threading
import time
from dataclasses import dataclass

from limits import RateLimitItemPerMinute
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

logger = logging.getLogger("auth.ratelimit")

DEFAULT_LIMIT_PER_MINUTE = 100
_NAMESPACE = "shopping-api"


@dataclass(frozen=True)
class RateLimitResult:
    Allowed: bool
    Limit: int
    Remaining: int
    ResetAt: int  # epoch milliseconds

    def Headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.Limit),
            "X-RateLimit-Remaining": str(self.Remaining),
            "X-RateLimit-Reset": str(self.ResetAt),
        }

    def RetryAfterSeconds(self) -> int:
        return max(math.ceil(self.ResetAt / 1000 - time.time()), 0)


def _env_truthy(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer for env var: {name}") from exc


class RateLimitGate:
    """Sliding-window limit per caller identity.

    When the backend cannot be built or errors out, every call is allowed:
    an unavailable limiter must not take the API down with it.
    """

    def __init__(self, storage_uri: str | None, limit_per_minute: int = DEFAULT_LIMIT_PER_MINUTE) -> None:
        self.Item = RateLimitItemPerMinute(limit_per_minute)
        self.Limit = limit_per_minute
        self._limiter = None
        if not storage_uri:
            logger.info("rate limiting disabled (no storage configured)")
            return
        try:
            self._limiter = MovingWindowRateLimiter(storage_from_string(storage_uri))
        except Exception:  # noqa: BLE001
            logger.exception("rate limit storage unavailable, failing open uri_scheme=%s", storage_uri.split(":", 1)[0])

    def _Open(self) -> RateLimitResult:
        reset_at = int((time.time() + self.Item.get_expiry()) * 1000)
        return RateLimitResult(Allowed=True, Limit=self.Limit, Remaining=self.Limit - 1, ResetAt=reset_at)

    def Check(self, identity: str) -> RateLimitResult:
        if self._limiter is None:
            return self._Open()
        try:
            allowed = self._limiter.hit(self.Item, _NAMESPACE, identity)
            stats = self._limiter.get_window_stats(self.Item, _NAMESPACE, identity)
        except Exception:  # noqa: BLE001
            logger.exception("rate limit check failed, failing open identity=%s", identity)
            return self._Open()
        if not allowed:
            logger.warning("rate limit exceeded identity=%s", identity)
        return RateLimitResult(
            Allowed=allowed,
            Limit=self.Limit,
            Remaining=max(int(stats.remaining), 0),
            ResetAt=int(stats.reset_time * 1000),
        )


_gate: RateLimitGate | None = None
_gate_lock = threading.Lock()


def GetRateLimitGate() -> RateLimitGate:
    global _gate
    with _gate_lock:
        if _gate is None:
            storage_uri = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://").strip()
            if not _env_truthy("RATE_LIMIT_ENABLED", True):
                storage_uri = ""
            _gate = RateLimitGate(
                storage_uri,
                limit_per_minute=_env_int("RATE_LIMIT_PER_MINUTE", DEFAULT_LIMIT_PER_MINUTE),
            )
        return _gate


def ResetRateLimitGate() -> None:
    global _gate
    with _gate_lock:
        _gate = None
