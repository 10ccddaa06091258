"""
Branch lock — serialize commit + publish per target branch.

Two deployments to the same branch must not interleave their
COMMITTING and PUBLISHING phases. Each ``(owner, repo, branch)`` key
gets its own lock, created on first use.

This only serializes within one process. Across processes the
source-control client's non-forced ref update rejects a head that
moved underneath it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


class BranchBusyError(Exception):
    """Raised when another deployment holds the branch lock."""

    def __init__(self, key: str, timeout: float):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Branch {key} is busy: another deployment is in progress")


@dataclass
class BranchLockRegistry:
    """Per-branch locks, keyed by ``owner/repo@branch``."""

    default_timeout: float = 30.0
    _locks: dict[str, threading.Lock] = field(default_factory=dict, repr=False)
    _guard: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @staticmethod
    def key(owner: str, repo: str, branch: str) -> str:
        return f"{owner}/{repo}@{branch}"

    def get_or_create(self, key: str) -> threading.Lock:
        """Get or create the lock for a branch key."""
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str, timeout: float | None = None) -> Iterator[None]:
        """Hold the branch lock for the duration of the block.

        Raises:
            BranchBusyError: If the lock is not acquired within ``timeout``.
        """
        wait = self.default_timeout if timeout is None else timeout
        lock = self.get_or_create(key)
        if not lock.acquire(timeout=wait):
            logger.warning("Branch lock %s not acquired within %.1fs", key, wait)
            raise BranchBusyError(key, wait)
        logger.debug("Branch lock %s acquired", key)
        try:
            yield
        finally:
            lock.release()
            logger.debug("Branch lock %s released", key)

    def is_locked(self, key: str) -> bool:
        with self._guard:
            lock = self._locks.get(key)
        return bool(lock and lock.locked())

    def get_status(self) -> dict[str, Any]:
        """Lock state of every known branch."""
        with self._guard:
            return {key: {"locked": lock.locked()} for key, lock in self._locks.items()}
