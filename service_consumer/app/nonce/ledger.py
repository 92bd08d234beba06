"""
Single-use nonce ledger.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional

import redis.asyncio as redis

from shared.logging import get_logger
from shared.config import BaseConfig
from ..errors import NonceLedgerError
from ..models import NonceInsertResult


class NonceLedgerBase(ABC):
    """Records nonces and rejects their reuse."""

    @abstractmethod
    async def insert_if_absent(self, nonce: str) -> NonceInsertResult:
        """Atomically record ``nonce`` unless it is already present."""
        pass

    async def accept_once(self, nonce: str) -> bool:
        """True the first time ``nonce`` is seen, False ever after."""
        return await self.insert_if_absent(nonce) == NonceInsertResult.INSERTED

    async def start(self):
        pass

    async def stop(self):
        pass

    async def ping(self) -> bool:
        return True


class InMemoryNonceLedger(NonceLedgerBase):
    """Process-local ledger.

    Only suitable for a single worker; with several workers each would
    accept the same nonce once.
    """

    def __init__(self, retention_seconds: Optional[int] = None):
        self.retention_seconds = retention_seconds
        self._seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    async def insert_if_absent(self, nonce: str) -> NonceInsertResult:
        now = time.time()
        with self._lock:
            if self.retention_seconds:
                self._purge(now)
            if nonce in self._seen:
                return NonceInsertResult.ALREADY_PRESENT
            self._seen[nonce] = now
            return NonceInsertResult.INSERTED

    def _purge(self, now: float):
        cutoff = now - self.retention_seconds
        for nonce in [n for n, seen_at in self._seen.items() if seen_at < cutoff]:
            del self._seen[nonce]

    def __len__(self) -> int:
        return len(self._seen)


class RedisNonceLedger(NonceLedgerBase):
    """Ledger shared by all workers through Redis ``SET NX``."""

    KEY_PREFIX = "lti:nonce:"

    def __init__(self, redis_url: str, retention_seconds: Optional[int] = None,
                 client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        # Redis rejects EX 0
        self.retention_seconds = retention_seconds or None
        self.logger = get_logger("consumer.nonce.redis")
        self.redis: Optional[redis.Redis] = client

    async def start(self):
        """Connect to Redis."""
        if self.redis is not None:
            return
        try:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                health_check_interval=30
            )
            await self.redis.ping()
            self.logger.info("Redis nonce ledger started")
        except redis.RedisError as e:
            self.logger.error("Failed to start Redis nonce ledger", error=str(e))
            raise NonceLedgerError(str(e))

    async def stop(self):
        """Close the Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis nonce ledger stopped")

    async def insert_if_absent(self, nonce: str) -> NonceInsertResult:
        if self.redis is None:
            raise NonceLedgerError("Nonce ledger is not started")

        try:
            inserted = await self.redis.set(
                f"{self.KEY_PREFIX}{nonce}",
                str(time.time()),
                nx=True,
                ex=self.retention_seconds
            )
        except redis.RedisError as e:
            self.logger.error("Nonce insert failed", error=str(e))
            raise NonceLedgerError(str(e))

        return NonceInsertResult.INSERTED if inserted else NonceInsertResult.ALREADY_PRESENT

    async def ping(self) -> bool:
        if self.redis is None:
            return False
        try:
            return bool(await self.redis.ping())
        except redis.RedisError:
            return False


def create_nonce_ledger(config: BaseConfig) -> NonceLedgerBase:
    """Build the ledger selected by ``nonce_backend``."""
    if config.nonce_backend == "redis":
        return RedisNonceLedger(config.redis_url, config.nonce_retention_seconds)
    return InMemoryNonceLedger(config.nonce_retention_seconds)
