"""
Shared fixtures for unit tests.

No network access: HTTP clients are Mocks returning real httpx.Response
objects, and module tests run against a mocked RpcClient.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock, Mock

import httpx
import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


NODES = [
    "https://node-a.example.com",
    "https://node-b.example.com",
    "https://node-c.example.com",
]


def rpc_response(result=None, error=None, status_code=200, request_id=1):
    """Build a JSON-RPC httpx.Response"""
    body = {"jsonrpc": "2.0", "id": request_id}
    if error is not None:
        body["error"] = error
    else:
        body["result"] = result
    return httpx.Response(status_code, json=body)


def json_response(body, status_code=200, url="https://api.example.com"):
    """Plain JSON response with a request attached (raise_for_status needs one)"""
    return httpx.Response(status_code, json=body, request=httpx.Request("GET", url))


@pytest.fixture
def http_client():
    """Mock httpx.Client; set .post / .get side effects per test"""
    return Mock(spec=httpx.Client)


@pytest.fixture
def fake_client():
    """Stand-in HiveEngineClient exposing a mocked RpcClient"""
    client = MagicMock()
    client.rpc = MagicMock()
    return client
