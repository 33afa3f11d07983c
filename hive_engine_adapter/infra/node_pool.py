"""
Node health tracking and round-robin selection

One NodePool is owned by each client and shared by reference with its
RpcClient, so health is remembered across calls without a process-wide
singleton.
"""

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence

from ..errors import ConfigurationError
from ..config import config as global_config

logger = logging.getLogger(__name__)


@dataclass
class NodeHealth:
    """
    Health record for one node URL

    Attributes:
        url: Node base URL
        healthy: False after failure_threshold consecutive failures
        latency_ms: Latency of the last successful call
        last_check: Unix time (seconds) of the last report
        failure_count: Consecutive failures since the last success
    """
    url: str
    healthy: bool = True
    latency_ms: float = 0.0
    last_check: float = 0.0
    failure_count: int = 0


class NodePool:
    """
    Thread-safe node pool with round-robin selection

    Usage:
        pool = NodePool(["https://api.hive-engine.com/rpc", "https://herpc.dtools.dev"])
        url = pool.select_node()
        pool.report_success(url, latency_ms=120)
    """

    def __init__(
        self,
        nodes: Optional[Sequence[str]] = None,
        failure_threshold: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._nodes: List[str] = list(nodes) if nodes is not None else list(global_config.rpc.nodes)
        if not self._nodes:
            raise ConfigurationError.missing("Hive Engine nodes")
        self._failure_threshold = (
            failure_threshold if failure_threshold is not None
            else global_config.rpc.failure_threshold
        )
        if self._failure_threshold < 1:
            raise ConfigurationError.invalid("failure_threshold", "must be >= 1")
        self._clock = clock
        self._health: Dict[str, NodeHealth] = {}
        self._cursor = 0
        self._lock = threading.Lock()

    @property
    def nodes(self) -> List[str]:
        return list(self._nodes)

    @property
    def failure_threshold(self) -> int:
        return self._failure_threshold

    def _ensure(self, url: str) -> NodeHealth:
        # Caller holds the lock
        health = self._health.get(url)
        if health is None:
            health = NodeHealth(url=url)
            self._health[url] = health
        return health

    def select_node(self, pool: Optional[Sequence[str]] = None) -> str:
        """
        Pick the next healthy node, round-robin from the shared cursor

        If every node in the pool is unhealthy, all of them are reset to
        healthy and the first one is returned.

        Args:
            pool: Candidate URLs (defaults to the configured nodes)

        Returns:
            A URL from pool

        Raises:
            ConfigurationError: If pool is empty
        """
        candidates = list(pool) if pool is not None else self._nodes
        if not candidates:
            raise ConfigurationError.missing("Hive Engine nodes")

        with self._lock:
            for url in candidates:
                self._ensure(url)

            count = len(candidates)
            for i in range(count):
                index = (self._cursor + i) % count
                url = candidates[index]
                if self._health[url].healthy:
                    self._cursor = (index + 1) % count
                    return url

            logger.warning(f"All {count} Hive Engine nodes unhealthy, resetting health")
            for url in candidates:
                health = self._health[url]
                health.healthy = True
                health.failure_count = 0
            self._cursor = 1 % count
            return candidates[0]

    def report_success(self, url: str, latency_ms: float) -> None:
        with self._lock:
            health = self._ensure(url)
            if not health.healthy:
                logger.info(f"Node recovered: {url}")
            health.healthy = True
            health.failure_count = 0
            health.latency_ms = latency_ms
            health.last_check = self._clock()

    def report_failure(self, url: str) -> None:
        with self._lock:
            health = self._ensure(url)
            health.failure_count += 1
            health.last_check = self._clock()
            was_healthy = health.healthy
            health.healthy = health.failure_count < self._failure_threshold
            if was_healthy and not health.healthy:
                logger.warning(
                    f"Node marked unhealthy after {health.failure_count} failures: {url}"
                )

    def get_health(self, url: str) -> Optional[NodeHealth]:
        """Snapshot of one node's health, None if never used"""
        with self._lock:
            health = self._health.get(url)
            return replace(health) if health else None

    def list_health(self) -> List[NodeHealth]:
        """Snapshots of every tracked node (copies, safe to inspect)"""
        with self._lock:
            return [replace(health) for health in self._health.values()]

    def reset(self) -> None:
        """Forget all health records and rewind the cursor"""
        with self._lock:
            self._health.clear()
            self._cursor = 0
