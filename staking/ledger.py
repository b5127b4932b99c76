"""
Ledger Query client for the staking contract.

The contract is read through the node's JSON-RPC ``eth_call``; nothing is
ever sent as a transaction.
"""
import asyncio
import itertools
from typing import Any, Dict, List, Optional, Protocol

import aiohttp
import structlog

from error_handling.circuit_breaker import CircuitBreaker

from .abi import AbiDecodingError, decode_payments, decode_uint256, encode_call
from .models import PaymentRecord, normalize_address

logger = structlog.get_logger()

STAKE_HISTORY_SIGNATURE = "userStakeHistory(address)"
USER_TOTAL_SIGNATURE = "userTotal(address)"


class LedgerError(Exception):
    """Raised when the node cannot answer a query."""
    pass


class LedgerQuery(Protocol):
    """Read access to per-address stake data on the ledger."""

    async def fetch_history(self, address: str) -> List[PaymentRecord]:
        ...

    async def fetch_total(self, address: str) -> int:
        ...


class ContractLedgerClient:
    """
    Reads stake history and totals from the staking contract over JSON-RPC.

    Every call goes through a circuit breaker so a struggling node is not
    flooded with requests while it recovers.
    """

    def __init__(
        self,
        node_url: str,
        contract_address: str,
        timeout: float = 10.0,
        breaker: Optional[CircuitBreaker] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the client.

        Args:
            node_url: JSON-RPC endpoint of the node
            contract_address: Address of the staking contract
            timeout: Total seconds allowed for one RPC round trip
            breaker: Circuit breaker guarding the node, or None for a default one
            session: Optional shared HTTP session; one is created lazily otherwise
        """
        self.node_url = node_url
        self.contract_address = normalize_address(contract_address)
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.breaker = breaker or CircuitBreaker()
        self._session = session
        self._owns_session = session is None
        self._ids = itertools.count(1)

    async def fetch_history(self, address: str) -> List[PaymentRecord]:
        """Fetch every stake payment the address made, in ledger order."""
        data = await self._call_contract(STAKE_HISTORY_SIGNATURE, address)
        try:
            return decode_payments(data)
        except AbiDecodingError as e:
            raise LedgerError(f"Malformed stake history response: {e}") from e

    async def fetch_total(self, address: str) -> int:
        """Fetch the total amount the address has staked."""
        data = await self._call_contract(USER_TOTAL_SIGNATURE, address)
        try:
            return decode_uint256(data)
        except AbiDecodingError as e:
            raise LedgerError(f"Malformed total response: {e}") from e

    def circuit_state(self) -> Dict[str, Any]:
        """State of the circuit breaker guarding the node."""
        return self.breaker.get_state()

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def _call_contract(self, signature: str, address: str) -> str:
        call = {
            "to": self.contract_address,
            "data": encode_call(signature, normalize_address(address)),
        }
        try:
            return await self.breaker.call(self._rpc, "eth_call", [call, "latest"])
        except CircuitBreaker.CircuitBreakerError as e:
            raise LedgerError(str(e)) from e

    async def _rpc(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        session = self._get_session()
        try:
            async with session.post(self.node_url, json=payload, timeout=self.timeout) as response:
                if response.status != 200:
                    logger.error("ledger_rpc_http_error", method=method, status=response.status)
                    raise LedgerError(f"Node answered HTTP {response.status}")
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("ledger_rpc_failed", method=method, error=str(e) or type(e).__name__)
            raise LedgerError(f"Node request failed: {e!r}") from e
        except ValueError as e:
            raise LedgerError(f"Node returned invalid JSON: {e}") from e

        return self._unwrap(method, body)

    @staticmethod
    def _unwrap(method: str, body: Any) -> Any:
        if not isinstance(body, dict):
            raise LedgerError("Node returned a non-object JSON-RPC response")
        error: Optional[Dict[str, Any]] = body.get("error")
        if error:
            message = error.get("message", "unknown error") if isinstance(error, dict) else str(error)
            logger.error("ledger_rpc_error", method=method, error=message)
            raise LedgerError(f"{method} failed: {message}")
        if "result" not in body:
            raise LedgerError("Node response has neither result nor error")
        return body["result"]

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session
