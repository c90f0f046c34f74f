from __future__ import annotations

import asyncio
import logging
from typing import Any

from aiohttp import ClientError
from web3 import AsyncWeb3
from web3.contract.async_contract import AsyncContract
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, Web3Exception

from shop_indexer.app.domain.errors import MetadataResolutionFailure
from shop_indexer.app.domain.models import ZERO_ADDRESS
from shop_indexer.app.domain.ports.out import AssetMetadataFetcher, ShopStateFetcher


logger = logging.getLogger(__name__)

# Minimal ERC-20 ABI fragments
_ERC20_ABI_STD = [
    {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "string"}]},
    {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint8"}]},
    {"name": "totalSupply", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "balanceOf", "type": "function", "stateMutability": "view", "inputs": [{"name": "account", "type": "address"}], "outputs": [{"name": "", "type": "uint256"}]},
]

_ERC20_ABI_LEGACY = [
    {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "bytes32"}]},
    {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
]

_SHOP_ABI = [
    {"name": "assetDecimals", "type": "function", "stateMutability": "view", "inputs": [{"name": "asset", "type": "address"}], "outputs": [{"name": "", "type": "uint8"}]},
    {"name": "token", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "address"}]},
    {"name": "feeBps", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "buyRate", "type": "function", "stateMutability": "view", "inputs": [{"name": "asset", "type": "address"}], "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "sellRate", "type": "function", "stateMutability": "view", "inputs": [{"name": "asset", "type": "address"}], "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "getQuoteBuyETH", "type": "function", "stateMutability": "view", "inputs": [{"name": "ethIn", "type": "uint256"}], "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "getQuoteSellToETH", "type": "function", "stateMutability": "view", "inputs": [{"name": "genIn", "type": "uint256"}], "outputs": [{"name": "", "type": "uint256"}]},
]


class Web3AssetMetadataFetcher(AssetMetadataFetcher, ShopStateFetcher):
    """
    Asset metadata fetcher using AsyncWeb3.

    Fetches:
      - symbol() -> str         (string ABI, then legacy bytes32 ABI)
      - shop.assetDecimals(a)   (the shop's own decimals registry)
      - decimals() -> int       (uint8 ABI, then legacy uint256 ABI)

    and, for reports, the shop state: feeBps, ETH + ERC-20 balances held by
    the shop, ETH buy/sell rates and quotes, the sold token total supply.

    Every method raises MetadataResolutionFailure when no value could be read.
    asset is expected as a lowercase 0x-prefixed address.
    """

    def __init__(self, *, w3: AsyncWeb3, shop_address: str, timeout_seconds: float = 30.0) -> None:
        self._w3 = w3
        self._timeout = timeout_seconds
        self._shop: AsyncContract = w3.eth.contract(
            address=w3.to_checksum_address(shop_address), abi=_SHOP_ABI
        )

    def _contracts(self, asset: str) -> tuple[AsyncContract, AsyncContract]:
        # web3 expects checksum hex string
        addr = self._w3.to_checksum_address(asset)
        return (
            self._w3.eth.contract(address=addr, abi=_ERC20_ABI_STD),
            self._w3.eth.contract(address=addr, abi=_ERC20_ABI_LEGACY),
        )

    async def fetch_symbol(self, *, asset: str) -> str:
        contract_std, contract_legacy = self._contracts(asset)

        symbol = self._normalize_symbol(await self._safe_call(contract_std, "symbol"))
        if symbol is None:
            symbol = self._normalize_symbol(await self._safe_call(contract_legacy, "symbol"))
        if symbol is None:
            raise MetadataResolutionFailure(asset, "symbol")
        return symbol

    async def fetch_shop_decimals(self, *, asset: str) -> int:
        raw = await self._safe_call(self._shop, "assetDecimals", self._w3.to_checksum_address(asset))
        decimals = self._normalize_decimals(raw)
        if decimals is None:
            raise MetadataResolutionFailure(asset, "shop decimals")
        return decimals

    async def fetch_erc20_decimals(self, *, asset: str) -> int:
        contract_std, contract_legacy = self._contracts(asset)

        decimals = self._normalize_decimals(await self._safe_call(contract_std, "decimals"))
        if decimals is None:
            decimals = self._normalize_decimals(await self._safe_call(contract_legacy, "decimals"))
        if decimals is None:
            raise MetadataResolutionFailure(asset, "decimals")
        return decimals

    async def fetch_token_total_supply(self) -> int:
        """Total supply of the token sold by the shop (shop.token().totalSupply())."""
        token_address = await self._safe_call(self._shop, "token")
        if not token_address:
            raise MetadataResolutionFailure(self._shop.address.lower(), "token")
        contract_std, _ = self._contracts(str(token_address))
        supply = await self._safe_call(contract_std, "totalSupply")
        if not isinstance(supply, int):
            raise MetadataResolutionFailure(str(token_address).lower(), "totalSupply")
        return supply

    async def _shop_uint(self, fn_name: str, *args: Any) -> int:
        value = await self._safe_call(self._shop, fn_name, *args)
        if not isinstance(value, int) or isinstance(value, bool):
            raise MetadataResolutionFailure(self._shop.address.lower(), fn_name)
        return value

    async def fetch_fee_bps(self) -> int:
        return await self._shop_uint("feeBps")

    async def fetch_eth_rates(self) -> tuple[int, int]:
        """(buyRate, sellRate) for native ETH, token units per 1 ETH."""
        return (
            await self._shop_uint("buyRate", ZERO_ADDRESS),
            await self._shop_uint("sellRate", ZERO_ADDRESS),
        )

    async def fetch_eth_quotes(self, *, eth_in: int, token_in: int) -> tuple[int, int]:
        """(tokens out for `eth_in` wei, wei out for `token_in` token units)."""
        return (
            await self._shop_uint("getQuoteBuyETH", eth_in),
            await self._shop_uint("getQuoteSellToETH", token_in),
        )

    async def fetch_eth_balance(self) -> int:
        try:
            balance = await asyncio.wait_for(
                self._w3.eth.get_balance(self._shop.address), timeout=self._timeout
            )
        except (asyncio.TimeoutError, Web3Exception, ClientError, OSError, ValueError) as exc:
            logger.debug("eth_getBalance on %s failed: %s", self._shop.address, exc)
            raise MetadataResolutionFailure(ZERO_ADDRESS, "shop balance") from exc
        return int(balance)

    async def fetch_asset_balance(self, *, asset: str) -> int:
        """ERC-20 balanceOf(shop) for `asset`, in raw units."""
        contract_std, _ = self._contracts(asset)
        balance = await self._safe_call(contract_std, "balanceOf", self._shop.address)
        if not isinstance(balance, int) or isinstance(balance, bool):
            raise MetadataResolutionFailure(asset, "shop balance")
        return balance

    @staticmethod
    def _normalize_symbol(val: Any) -> str | None:
        if val is None:
            return None

        if isinstance(val, str):
            return val.replace("\x00", "").strip() or None

        if isinstance(val, (bytes, bytearray, memoryview)):
            try:
                b = bytes(val)
                return b.replace(b"\x00", b"").decode("utf-8").strip() or None
            except UnicodeDecodeError:
                return None

        return None

    @staticmethod
    def _normalize_decimals(val: Any) -> int | None:
        if isinstance(val, int) and not isinstance(val, bool) and 0 <= val <= 255:
            return int(val)
        return None

    async def _safe_call(self, contract: AsyncContract, fn_name: str, *args: Any) -> Any | None:
        try:
            fn = getattr(contract.functions, fn_name)
            return await asyncio.wait_for(fn(*args).call(), timeout=self._timeout)
        except (BadFunctionCallOutput, ContractLogicError, ValueError):
            # Non-ERC20, proxy weirdness, revert, or empty response
            return None
        except (asyncio.TimeoutError, Web3Exception, ClientError, OSError) as exc:
            logger.debug("eth_call %s on %s failed: %s", fn_name, contract.address, exc)
            return None
