"""
Infrastructure layer: node pool, retry policy and RPC client
"""

from .node_pool import NodePool, NodeHealth
from .retry import (
    RetryPolicy,
    CancellationToken,
    CorrelationContext,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from .rpc import RpcClient, RpcClientConfig

__all__ = [
    "NodePool",
    "NodeHealth",
    "RetryPolicy",
    "CancellationToken",
    "CorrelationContext",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
    "RpcClient",
    "RpcClientConfig",
]
