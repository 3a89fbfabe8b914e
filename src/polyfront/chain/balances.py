"""USDC / POL balances over Polygon JSON-RPC."""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from polyfront.errors import BalanceSourceError

if TYPE_CHECKING:
    from polyfront.config.settings import Settings

log = structlog.get_logger(__name__)

# keccak("balanceOf(address)")[:4]
BALANCE_OF_SELECTOR = "0x70a08231"
WEI_PER_POL = 10**18


def encode_balance_of(address: str) -> str:
    """ABI-encode balanceOf(address) call data."""
    return BALANCE_OF_SELECTOR + address.lower().removeprefix("0x").rjust(64, "0")


def _hex_to_int(value: Any) -> int:
    if not isinstance(value, str) or not value.startswith("0x"):
        raise BalanceSourceError(f"Unexpected RPC result: {value!r}")
    return int(value, 16) if value != "0x" else 0


class RpcBalanceSource:
    """BalanceSource reading the funder's USDC and the signer's POL."""

    def __init__(
        self,
        rpc_url: str,
        quote_address: str,
        gas_address: str,
        usdc_contract_address: str,
        usdc_decimals: int = 6,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.quote_address = quote_address
        self.gas_address = gas_address
        self.usdc_contract_address = usdc_contract_address
        self.usdc_decimals = usdc_decimals
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    @classmethod
    def from_settings(cls, settings: Settings) -> RpcBalanceSource:
        from eth_account import Account

        signer = Account.from_key(settings.private_key).address
        return cls(
            rpc_url=settings.rpc_url,
            quote_address=settings.proxy_wallet or signer,
            gas_address=signer,
            usdc_contract_address=settings.usdc_contract_address,
            usdc_decimals=settings.usdc_decimals,
            timeout=settings.request_timeout_sec,
        )

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = await self._client.post(self.rpc_url, json=body)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning("rpc_call_failed", method=method, error=str(e))
            raise BalanceSourceError(f"{method} failed: {e}") from e
        if data.get("error"):
            log.warning("rpc_call_failed", method=method, error=data["error"])
            raise BalanceSourceError(f"{method} failed: {data['error']}")
        return data.get("result")

    async def get_quote_balance(self) -> float:
        """USDC balance of the funder wallet, in whole USDC."""
        call = {"to": self.usdc_contract_address, "data": encode_balance_of(self.quote_address)}
        raw = _hex_to_int(await self._rpc("eth_call", [call, "latest"]))
        return raw / 10**self.usdc_decimals

    async def get_gas_balance(self) -> float:
        """POL balance of the signer, in whole POL."""
        raw = _hex_to_int(await self._rpc("eth_getBalance", [self.gas_address, "latest"]))
        return raw / WEI_PER_POL

    async def aclose(self) -> None:
        await self._client.aclose()
