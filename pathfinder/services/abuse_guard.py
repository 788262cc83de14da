"""Per-IP rate limiting and per-email login lockout.

Counters live behind ``CounterStore``. The in-memory store is correct for a
single process only; multi-instance deployments must point ``REDIS_URL`` at a
shared Redis so every instance sees the same counts.
"""

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, Protocol

from redis import Redis

from pathfinder.core import config
from pathfinder.core.clock import utcnow
from pathfinder.core.errors import AccountLocked, RateLimited

logger = logging.getLogger(__name__)


class CounterStore(Protocol):
    def increment(self, key: str, ttl_seconds: int, refresh_ttl: bool = False) -> tuple[int, int]: ...

    def get(self, key: str) -> int: ...

    def delete(self, key: str) -> None: ...


class InMemoryCounterStore:
    """Process-local counters guarded by one lock; expired entries read as zero.

    Expired entries are swept every ``sweep_interval`` increments so keys that
    are never read again do not accumulate.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow, sweep_interval: int = 1000) -> None:
        self._clock = clock
        self._lock = Lock()
        self._counters: dict[str, tuple[int, datetime]] = {}
        self.sweep_interval = sweep_interval
        self._since_sweep = 0

    def __len__(self) -> int:
        return len(self._counters)

    def _sweep(self, now: datetime) -> None:
        expired = [key for key, (_, expires_at) in self._counters.items() if expires_at <= now]
        for key in expired:
            del self._counters[key]
        self._since_sweep = 0

    def increment(self, key: str, ttl_seconds: int, refresh_ttl: bool = False) -> tuple[int, int]:
        with self._lock:
            now = self._clock()
            self._since_sweep += 1
            if self._since_sweep >= self.sweep_interval:
                self._sweep(now)
            ttl = timedelta(seconds=ttl_seconds)
            count, expires_at = self._counters.get(key, (0, now))
            if expires_at <= now:
                count, expires_at = 0, now + ttl
            elif refresh_ttl:
                expires_at = now + ttl
            count += 1
            self._counters[key] = (count, expires_at)
            return count, max(1, int((expires_at - now).total_seconds()))

    def get(self, key: str) -> int:
        with self._lock:
            count, expires_at = self._counters.get(key, (0, None))
            if expires_at is None or expires_at <= self._clock():
                self._counters.pop(key, None)
                return 0
            return count

    def delete(self, key: str) -> None:
        with self._lock:
            self._counters.pop(key, None)


class RedisCounterStore:
    """Shared counters using INCR plus EXPIRE inside a MULTI/EXEC pipeline."""

    def __init__(self, client: Redis, prefix: str = 'pathfinder') -> None:
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, redis_url: str, *, socket_timeout: float = 5.0) -> 'RedisCounterStore':
        client = Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    def _key(self, key: str) -> str:
        digest = hashlib.sha256(key.encode()).hexdigest()
        return f'{self.prefix}:counter:{digest}'

    def increment(self, key: str, ttl_seconds: int, refresh_ttl: bool = False) -> tuple[int, int]:
        redis_key = self._key(key)
        pipe = self.client.pipeline(transaction=True)
        pipe.incr(redis_key)
        if refresh_ttl:
            pipe.expire(redis_key, ttl_seconds)
        else:
            pipe.expire(redis_key, ttl_seconds, nx=True)
        pipe.ttl(redis_key)
        count, _, ttl = pipe.execute()
        return int(count), max(1, int(ttl))

    def get(self, key: str) -> int:
        value = self.client.get(self._key(key))
        return int(value) if value is not None else 0

    def delete(self, key: str) -> None:
        self.client.delete(self._key(key))


def build_counter_store(redis_url: str | None = None) -> CounterStore:
    redis_url = config.REDIS_URL if redis_url is None else redis_url
    if redis_url:
        store = RedisCounterStore.from_url(redis_url)
        store.client.ping()
        logger.info('Using Redis for rate limit and lockout counters')
        return store
    logger.info('Using in-process rate limit and lockout counters')
    return InMemoryCounterStore()


@dataclass(frozen=True)
class RateLimitRule:
    name: str
    limit: int
    window_seconds: int
    message: str


LOGIN_RULE = RateLimitRule(
    'login',
    config.LOGIN_RATE_LIMIT,
    config.LOGIN_RATE_WINDOW_SECONDS,
    'Too many login attempts, please try again later.',
)
REGISTER_RULE = RateLimitRule(
    'register',
    config.REGISTER_RATE_LIMIT,
    config.REGISTER_RATE_WINDOW_SECONDS,
    'Too many registration attempts, please try again later.',
)
VERIFICATION_RULE = RateLimitRule(
    'verification',
    config.VERIFICATION_RATE_LIMIT,
    config.VERIFICATION_RATE_WINDOW_SECONDS,
    'Too many email verification requests, please wait before trying again.',
)


class FixedWindowRateLimiter:
    def __init__(self, store: CounterStore, rule: RateLimitRule) -> None:
        self.store = store
        self.rule = rule

    def hit(self, client_ip: str) -> None:
        count, retry_after = self.store.increment(
            f'rate:{self.rule.name}:{client_ip}',
            self.rule.window_seconds,
        )
        if count > self.rule.limit:
            logger.info('Rate limit %s exceeded for %s', self.rule.name, client_ip)
            raise RateLimited(self.rule.message, retry_after=retry_after)


class LockoutTracker:
    """Failed-login counter per email.

    The counter's expiry is pushed out on every failure, so it resets once the
    lockout duration has passed since the most recent failed attempt.
    """

    def __init__(self, store: CounterStore, threshold: int | None = None, duration_seconds: int | None = None) -> None:
        self.store = store
        self.threshold = threshold or config.LOCKOUT_THRESHOLD
        self.duration_seconds = duration_seconds or config.LOCKOUT_DURATION_MINUTES * 60

    @staticmethod
    def _key(email: str) -> str:
        return f'lockout:{email}'

    def is_locked(self, email: str) -> bool:
        return self.store.get(self._key(email)) >= self.threshold

    def record_failure(self, email: str) -> bool:
        count, _ = self.store.increment(self._key(email), self.duration_seconds, refresh_ttl=True)
        if count == self.threshold:
            logger.warning('Account %s locked after %s failed login attempts', email, count)
        return count >= self.threshold

    def record_success(self, email: str) -> None:
        self.store.delete(self._key(email))


class AbuseGuard:
    def __init__(self, store: CounterStore) -> None:
        self.store = store
        self.limiters = {
            rule.name: FixedWindowRateLimiter(store, rule)
            for rule in (LOGIN_RULE, REGISTER_RULE, VERIFICATION_RULE)
        }
        self.lockout = LockoutTracker(store)

    def check_rate(self, bucket: str, client_ip: str) -> None:
        self.limiters[bucket].hit(client_ip)

    def ensure_not_locked(self, email: str) -> None:
        if self.lockout.is_locked(email):
            raise AccountLocked(
                'Account temporarily locked due to too many failed attempts. '
                f'Please try again in {self.lockout.duration_seconds // 60} minutes.'
            )
