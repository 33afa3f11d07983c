"""
JSON-RPC envelope and typed result definitions
"""

import itertools
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class RpcMethod(Enum):
    """Sidechain RPC methods"""
    FIND = "find"
    FIND_ONE = "findOne"
    GET_LATEST_BLOCK_INFO = "getLatestBlockInfo"
    GET_BLOCK_INFO = "getBlockInfo"


_request_ids = itertools.count(1)
_request_id_lock = threading.Lock()


def next_request_id() -> int:
    """Process-global monotonic request id"""
    with _request_id_lock:
        return next(_request_ids)


@dataclass(frozen=True)
class RpcRequest:
    """
    JSON-RPC 2.0 request

    The id is assigned at construction so every attempt of the same logical
    request carries the same id.
    """
    method: RpcMethod
    params: Dict[str, Any] = field(default_factory=dict)
    id: int = field(default_factory=next_request_id)

    @classmethod
    def find(
        cls,
        contract: str,
        table: str,
        query: Dict[str, Any],
        limit: int = 1000,
        offset: int = 0,
        index: Optional[str] = None,
        descending: bool = False,
    ) -> "RpcRequest":
        params: Dict[str, Any] = {
            "contract": contract,
            "table": table,
            "query": query,
            "limit": limit,
            "offset": offset,
        }
        if index:
            params["indexes"] = [{"index": index, "descending": descending}]
        return cls(RpcMethod.FIND, params)

    @classmethod
    def find_one(cls, contract: str, table: str, query: Dict[str, Any]) -> "RpcRequest":
        return cls(RpcMethod.FIND_ONE, {"contract": contract, "table": table, "query": query})

    @classmethod
    def latest_block_info(cls) -> "RpcRequest":
        return cls(RpcMethod.GET_LATEST_BLOCK_INFO, {})

    def to_json(self) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": self.id,
            "method": self.method.value,
            "params": self.params,
        }


@dataclass(frozen=True)
class RpcErrorBody:
    """JSON-RPC error object"""
    message: str
    code: Optional[int] = None
    data: Any = None


@dataclass(frozen=True)
class RpcResponse:
    """
    JSON-RPC 2.0 response

    Exactly one of result/error is meaningful; a None result without an
    error is a valid empty answer.
    """
    id: Optional[int]
    result: Any = None
    error: Optional[RpcErrorBody] = None

    @classmethod
    def from_json(cls, body: Any) -> "RpcResponse":
        """
        Decode a response body

        Raises:
            ValueError: If the body is not a JSON-RPC object
        """
        if not isinstance(body, dict):
            raise ValueError(f"Expected JSON object, got {type(body).__name__}")
        if "result" not in body and "error" not in body:
            raise ValueError("Response has neither result nor error")

        error = body.get("error")
        parsed_error = None
        if error is not None:
            if isinstance(error, dict):
                parsed_error = RpcErrorBody(
                    message=str(error.get("message") or "Unknown RPC error"),
                    code=error.get("code"),
                    data=error.get("data"),
                )
            else:
                parsed_error = RpcErrorBody(message=str(error))
        return cls(id=body.get("id"), result=body.get("result"), error=parsed_error)

    @property
    def is_error(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class FindResult:
    """Rows returned by `find`; absent results decode to an empty list"""
    rows: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_result(cls, result: Any) -> "FindResult":
        if not result:
            return cls([])
        if isinstance(result, list):
            return cls([row for row in result if isinstance(row, dict)])
        raise ValueError(f"find returned {type(result).__name__}, expected list")

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)


@dataclass(frozen=True)
class FindOneResult:
    """Row returned by `findOne`; None means no matching row"""
    row: Optional[Dict[str, Any]] = None

    @classmethod
    def from_result(cls, result: Any) -> "FindOneResult":
        if not result:
            return cls(None)
        if isinstance(result, dict):
            return cls(result)
        raise ValueError(f"findOne returned {type(result).__name__}, expected object")

    @property
    def found(self) -> bool:
        return self.row is not None


@dataclass(frozen=True)
class BlockInfo:
    """Latest sidechain block; fields missing from the node are None"""
    block_number: Optional[int] = None
    timestamp: Optional[str] = None
    transactions: Optional[int] = None
    ref_hive_block_number: Optional[int] = None
    hash: Optional[str] = None

    @classmethod
    def from_result(cls, result: Any) -> Optional["BlockInfo"]:
        if not isinstance(result, dict):
            return None
        transactions = result.get("transactions")
        if isinstance(transactions, list):
            transactions = len(transactions)
        return cls(
            block_number=result.get("blockNumber"),
            timestamp=result.get("timestamp"),
            transactions=transactions,
            ref_hive_block_number=result.get("refHiveBlockNumber"),
            hash=result.get("hash"),
        )
