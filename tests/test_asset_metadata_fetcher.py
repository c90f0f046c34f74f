from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import ClientConnectionError
from web3.exceptions import ContractLogicError

from shop_indexer.app.domain.errors import MetadataResolutionFailure
from shop_indexer.app.infrastructure.fetchers import asset_metadata_fetcher as module
from shop_indexer.app.infrastructure.fetchers.asset_metadata_fetcher import (
    Web3AssetMetadataFetcher,
)
from shop_fixtures import USDC

SHOP = "0x" + "11" * 20
GEN = "0x" + "22" * 20


def contract(**results) -> MagicMock:
    c = MagicMock()
    c.address = "0xContract"
    for name, value in results.items():
        if isinstance(value, Exception):
            call = AsyncMock(side_effect=value)
        else:
            call = AsyncMock(return_value=value)
        getattr(c.functions, name).return_value.call = call
    return c


def make_fetcher(
    *,
    shop: MagicMock,
    std: MagicMock,
    legacy: MagicMock,
    get_balance: AsyncMock | None = None,
) -> Web3AssetMetadataFetcher:
    by_abi = {
        id(module._SHOP_ABI): shop,
        id(module._ERC20_ABI_STD): std,
        id(module._ERC20_ABI_LEGACY): legacy,
    }
    w3 = MagicMock()
    w3.to_checksum_address.side_effect = lambda a: a
    w3.eth.contract.side_effect = lambda address, abi: by_abi[id(abi)]
    if get_balance is not None:
        w3.eth.get_balance = get_balance
    return Web3AssetMetadataFetcher(w3=w3, shop_address=SHOP)


@pytest.mark.asyncio
async def test_symbol_falls_back_to_bytes32():
    fetcher = make_fetcher(
        shop=contract(),
        std=contract(symbol=ContractLogicError("revert")),
        legacy=contract(symbol=b"MKR".ljust(32, b"\x00")),
    )
    assert await fetcher.fetch_symbol(asset=USDC) == "MKR"


@pytest.mark.asyncio
async def test_symbol_unreadable():
    fetcher = make_fetcher(
        shop=contract(),
        std=contract(symbol=""),
        legacy=contract(symbol=ValueError("empty")),
    )
    with pytest.raises(MetadataResolutionFailure):
        await fetcher.fetch_symbol(asset=USDC)


@pytest.mark.asyncio
async def test_shop_registry_decimals():
    fetcher = make_fetcher(shop=contract(assetDecimals=6), std=contract(), legacy=contract())
    assert await fetcher.fetch_shop_decimals(asset=USDC) == 6


@pytest.mark.asyncio
async def test_erc20_decimals_out_of_range_then_legacy():
    fetcher = make_fetcher(
        shop=contract(),
        std=contract(decimals=300),
        legacy=contract(decimals=8),
    )
    assert await fetcher.fetch_erc20_decimals(asset=USDC) == 8


@pytest.mark.asyncio
async def test_erc20_decimals_unreadable():
    fetcher = make_fetcher(
        shop=contract(assetDecimals=ContractLogicError("unknown asset")),
        std=contract(decimals=ContractLogicError("revert")),
        legacy=contract(decimals=ContractLogicError("revert")),
    )
    with pytest.raises(MetadataResolutionFailure):
        await fetcher.fetch_shop_decimals(asset=USDC)
    with pytest.raises(MetadataResolutionFailure):
        await fetcher.fetch_erc20_decimals(asset=USDC)


@pytest.mark.asyncio
async def test_token_total_supply():
    fetcher = make_fetcher(
        shop=contract(token=GEN),
        std=contract(totalSupply=21 * 10**24),
        legacy=contract(),
    )
    assert await fetcher.fetch_token_total_supply() == 21 * 10**24


@pytest.mark.asyncio
async def test_string_symbol_with_embedded_nul_bytes():
    fetcher = make_fetcher(
        shop=contract(),
        std=contract(symbol="US\x00DC\x00"),
        legacy=contract(),
    )
    assert await fetcher.fetch_symbol(asset=USDC) == "USDC"


@pytest.mark.asyncio
async def test_fee_rates_and_quotes():
    shop = contract(
        feeBps=250,
        buyRate=3000 * 10**18,
        sellRate=2900 * 10**18,
        getQuoteBuyETH=30 * 10**18,
        getQuoteSellToETH=34 * 10**14,
    )
    fetcher = make_fetcher(shop=shop, std=contract(), legacy=contract())

    assert await fetcher.fetch_fee_bps() == 250
    assert await fetcher.fetch_eth_rates() == (3000 * 10**18, 2900 * 10**18)
    assert await fetcher.fetch_eth_quotes(eth_in=10**16, token_in=10 * 10**18) == (
        30 * 10**18,
        34 * 10**14,
    )
    shop.functions.buyRate.assert_called_with(module.ZERO_ADDRESS)
    shop.functions.getQuoteSellToETH.assert_called_with(10 * 10**18)


@pytest.mark.asyncio
async def test_missing_rate_function_is_a_resolution_failure():
    fetcher = make_fetcher(
        shop=contract(buyRate=ContractLogicError("revert"), sellRate=0),
        std=contract(),
        legacy=contract(),
    )
    with pytest.raises(MetadataResolutionFailure):
        await fetcher.fetch_eth_rates()


@pytest.mark.asyncio
async def test_shop_balances():
    get_balance = AsyncMock(return_value=5 * 10**18)
    std = contract(balanceOf=1_250_000)
    fetcher = make_fetcher(shop=contract(), std=std, legacy=contract(), get_balance=get_balance)

    assert await fetcher.fetch_eth_balance() == 5 * 10**18
    assert await fetcher.fetch_asset_balance(asset=USDC) == 1_250_000
    get_balance.assert_awaited_once_with("0xContract")
    std.functions.balanceOf.assert_called_with("0xContract")


@pytest.mark.asyncio
async def test_shop_eth_balance_unreachable():
    fetcher = make_fetcher(
        shop=contract(),
        std=contract(),
        legacy=contract(),
        get_balance=AsyncMock(side_effect=ClientConnectionError("refused")),
    )
    with pytest.raises(MetadataResolutionFailure):
        await fetcher.fetch_eth_balance()
