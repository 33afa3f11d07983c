"""
JSON-RPC client for Hive Engine sidechain nodes

Provides a unified query interface with:
- Round-robin node selection through a shared NodePool
- Exponential backoff retry
- Per-request hard timeouts
- Cooperative cancellation
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait as wait_futures
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from ..errors import RpcError, RequestCancelled
from ..config import config as global_config
from ..types import RpcRequest, RpcResponse, FindResult, FindOneResult, BlockInfo
from .node_pool import NodePool, NodeHealth
from .retry import RetryPolicy, CancellationToken, _log_with_correlation

logger = logging.getLogger(__name__)

# How often an in-flight request checks its cancellation token
CANCEL_POLL_SECONDS = 0.05


@dataclass
class RpcClientConfig:
    """
    RPC client runtime configuration

    This is a runtime configuration class that allows per-client overrides
    while pulling defaults from the global config (hive_engine_adapter.config.RpcConfig).

    Usage:
        # Use all defaults from environment
        client = RpcClient()

        # Override specific settings
        config = RpcClientConfig(timeout_seconds=3, max_retries=5)
        client = RpcClient(config=config)
    """
    timeout_seconds: float = None
    max_retries: int = None
    retry_delay_seconds: float = None
    retry_jitter: float = None
    contracts_path: str = None
    blockchain_path: str = None

    def __post_init__(self):
        """Apply defaults from global config for any unset values"""
        rpc = global_config.rpc
        if self.timeout_seconds is None:
            self.timeout_seconds = rpc.timeout_seconds
        if self.max_retries is None:
            self.max_retries = rpc.max_retries
        if self.retry_delay_seconds is None:
            self.retry_delay_seconds = rpc.retry_delay_seconds
        if self.retry_jitter is None:
            self.retry_jitter = rpc.retry_jitter
        if self.contracts_path is None:
            self.contracts_path = rpc.contracts_path
        if self.blockchain_path is None:
            self.blockchain_path = rpc.blockchain_path

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=max(1, self.max_retries),
            base_delay=self.retry_delay_seconds,
            jitter=self.retry_jitter,
        )


class RpcClient:
    """
    Hive Engine JSON-RPC client

    Each logical request runs up to max_retries sequential attempts. Every
    attempt asks the NodePool for a node, so a failing node is rotated
    away from naturally. Broadcasting is never done here; writes go through
    an external signer.

    Usage:
        pool = NodePool(["https://api.hive-engine.com/rpc", "https://herpc.dtools.dev"])
        rpc = RpcClient(pool)

        rows = rpc.find("tokens", "balances", {"account": "alice"})
        token = rpc.find_one("tokens", "tokens", {"symbol": "MEDALS"})
        block = rpc.get_latest_block_info()
    """

    def __init__(
        self,
        pool: Optional[NodePool] = None,
        config: Optional[RpcClientConfig] = None,
        http_client: Optional[httpx.Client] = None,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize RPC client

        Args:
            pool: Node pool to select from (defaults to configured nodes)
            config: RPC configuration options
            http_client: Pre-built httpx client (not closed by close())
            sleep: Backoff sleeper, injectable for deterministic tests
            clock: Monotonic clock used for latency measurement
        """
        self._pool = pool or NodePool()
        self._config = config or RpcClientConfig()
        self._client = http_client
        self._owns_client = http_client is None
        self._client_lock = threading.Lock()
        self._sleep = sleep or time.sleep
        self._clock = clock or time.monotonic
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def pool(self) -> NodePool:
        return self._pool

    @property
    def config(self) -> RpcClientConfig:
        return self._config

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client (thread-safe)"""
        if self._client is None:
            with self._client_lock:
                # Double-check after acquiring lock
                if self._client is None:
                    self._client = httpx.Client(
                        timeout=self._config.timeout_seconds,
                        headers={"Content-Type": "application/json"},
                    )
        return self._client

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            with self._client_lock:
                if self._executor is None:
                    self._executor = ThreadPoolExecutor(
                        max_workers=8, thread_name_prefix="hive-rpc"
                    )
        return self._executor

    def _post(
        self,
        url: str,
        body: Dict[str, Any],
        timeout: float,
        cancel_token: Optional[CancellationToken],
    ) -> httpx.Response:
        """
        POST one attempt

        Without a token the call runs inline. With a token it runs on a
        worker thread and the caller stops waiting as soon as the token is
        cancelled; the abandoned worker finishes within its own timeout.
        """
        client = self._get_client()
        if cancel_token is None:
            return client.post(url, json=body, timeout=timeout)

        future = self._get_executor().submit(client.post, url, json=body, timeout=timeout)
        while True:
            done, _ = wait_futures([future], timeout=CANCEL_POLL_SECONDS)
            if done:
                return future.result()
            if cancel_token.cancelled:
                future.cancel()
                raise RequestCancelled(endpoint=url)

    def _backoff(self, delay: float, cancel_token: Optional[CancellationToken]) -> None:
        if cancel_token is None:
            self._sleep(delay)
        elif cancel_token.wait(delay):
            raise RequestCancelled()

    def execute(
        self,
        request: RpcRequest,
        nodes: Optional[Sequence[str]] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
        path: Optional[str] = None,
    ) -> Any:
        """
        Execute a JSON-RPC request with failover and retry

        Args:
            request: Request envelope (its id is reused across attempts)
            nodes: Candidate node URLs (defaults to the pool's nodes)
            timeout: Per-attempt timeout override
            max_retries: Total attempts override
            retry_delay: Base backoff override
            cancel_token: Optional cancellation token
            path: Endpoint path appended to the node URL (defaults to /contracts)

        Returns:
            The JSON-RPC result; None is a valid "no rows" answer

        Raises:
            RpcError: The last observed error after every attempt failed
            RequestCancelled: If cancel_token was cancelled
        """
        policy = self._config.retry_policy
        if max_retries is not None or retry_delay is not None:
            policy = RetryPolicy(
                max_attempts=max(1, max_retries if max_retries is not None else policy.max_attempts),
                base_delay=retry_delay if retry_delay is not None else policy.base_delay,
                jitter=policy.jitter,
            )
        timeout_val = timeout if timeout is not None else self._config.timeout_seconds
        path = path if path is not None else self._config.contracts_path
        operation_name = f"rpc.{request.method.value}"
        body = request.to_json()

        last_error: Optional[RpcError] = None

        for attempt in range(policy.max_attempts):
            if cancel_token is not None and cancel_token.cancelled:
                raise RequestCancelled()

            node = self._pool.select_node(nodes)
            url = f"{node.rstrip('/')}{path}"
            start = self._clock()

            try:
                response = self._post(url, body, timeout_val, cancel_token)
            except RequestCancelled:
                _log_with_correlation(
                    logging.INFO, f"Cancelled while waiting on {node}",
                    operation_name, attempt + 1, policy.max_attempts,
                )
                raise
            except httpx.TimeoutException:
                last_error = RpcError.timeout(node, timeout_val)
            except httpx.RequestError as e:
                last_error = RpcError.connection_failed(node, e)
            else:
                last_error = self._check_response(node, response)
                if last_error is None:
                    parsed = self._decode(node, response)
                    if isinstance(parsed, RpcError):
                        last_error = parsed
                    else:
                        latency_ms = (self._clock() - start) * 1000
                        self._pool.report_success(node, latency_ms)
                        if attempt > 0:
                            _log_with_correlation(
                                logging.INFO, f"Succeeded on {node}",
                                operation_name, attempt + 1, policy.max_attempts,
                            )
                        return parsed.result

            self._pool.report_failure(node)
            _log_with_correlation(
                logging.WARNING,
                f"Attempt failed on {node}: {last_error.message}",
                operation_name,
                attempt + 1,
                policy.max_attempts,
                error_code=last_error.code.value,
                node=node,
            )

            if policy.has_next(attempt):
                self._backoff(policy.delay_for(attempt), cancel_token)

        _log_with_correlation(
            logging.ERROR,
            f"Max attempts ({policy.max_attempts}) exceeded",
            operation_name,
            policy.max_attempts,
            policy.max_attempts,
        )
        raise last_error or RpcError.exhausted()

    @staticmethod
    def _check_response(node: str, response: httpx.Response) -> Optional[RpcError]:
        if not response.is_success:
            return RpcError.http_status(node, response.status_code)
        return None

    @staticmethod
    def _decode(node: str, response: httpx.Response):
        """Decode the body; bad-node signals come back as RpcError"""
        try:
            parsed = RpcResponse.from_json(response.json())
        except ValueError as e:
            logger.warning(f"Malformed JSON-RPC response from {node}: {e}")
            return RpcError.invalid_response(node, e)
        if parsed.is_error:
            logger.warning(f"JSON-RPC error from {node}: {parsed.error.message}")
            return RpcError.protocol(node, parsed.error.message, parsed.error.code)
        return parsed

    def find(
        self,
        contract: str,
        table: str,
        query: Dict[str, Any],
        limit: int = 1000,
        offset: int = 0,
        index: Optional[str] = None,
        descending: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[Dict[str, Any]]:
        """
        Find rows in a contract table

        Returns:
            Matching rows, empty list when none
        """
        request = RpcRequest.find(contract, table, query, limit, offset, index, descending)
        result = self.execute(request, cancel_token=cancel_token)
        try:
            return FindResult.from_result(result).rows
        except ValueError as e:
            raise RpcError.invalid_response(f"{contract}.{table}", e)

    def find_one(
        self,
        contract: str,
        table: str,
        query: Dict[str, Any],
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Find a single row in a contract table

        Returns:
            The row, or None when nothing matches
        """
        request = RpcRequest.find_one(contract, table, query)
        result = self.execute(request, cancel_token=cancel_token)
        try:
            return FindOneResult.from_result(result).row
        except ValueError as e:
            raise RpcError.invalid_response(f"{contract}.{table}", e)

    def get_latest_block_info(
        self,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[BlockInfo]:
        """
        Latest sidechain block from the /blockchain endpoint

        Returns:
            BlockInfo, or None when every node failed
        """
        try:
            result = self.execute(
                RpcRequest.latest_block_info(),
                cancel_token=cancel_token,
                path=self._config.blockchain_path,
            )
        except RpcError as e:
            logger.warning(f"Failed to get latest block info: {e}")
            return None
        return BlockInfo.from_result(result)

    def is_available(self) -> bool:
        """True if at least one node answers getLatestBlockInfo"""
        return self.get_latest_block_info() is not None

    def node_health(self) -> List[NodeHealth]:
        return self._pool.list_health()

    def close(self):
        """Close HTTP client and worker threads"""
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
