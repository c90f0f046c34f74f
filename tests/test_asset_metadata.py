import pytest

from shop_indexer.app.application.services.asset_metadata import DEFAULT_DECIMALS
from shop_indexer.app.domain.models import ETH_ASSET
from shop_fixtures import USDC

UNKNOWN = "0x" + "99" * 20


@pytest.mark.asyncio
async def test_eth_is_seeded(resolver, mock_fetcher):
    assert await resolver.symbol_of(ETH_ASSET) == "ETH"
    assert await resolver.symbol_of(None) == "ETH"
    assert await resolver.decimals_of(ETH_ASSET) == 18
    mock_fetcher.fetch_symbol.assert_not_awaited()
    mock_fetcher.fetch_shop_decimals.assert_not_awaited()


@pytest.mark.asyncio
async def test_known_token(resolver):
    assert await resolver.symbol_of(USDC.upper().replace("0X", "0x")) == "USDC"
    assert await resolver.decimals_of(USDC) == 6


@pytest.mark.asyncio
async def test_unknown_token_falls_back_and_is_cached(resolver, mock_fetcher):
    assert await resolver.symbol_of(UNKNOWN) == UNKNOWN
    assert await resolver.symbol_of(UNKNOWN) == UNKNOWN
    assert mock_fetcher.fetch_symbol.await_count == 1

    assert await resolver.decimals_of(UNKNOWN) == DEFAULT_DECIMALS
    assert await resolver.decimals_of(UNKNOWN) == DEFAULT_DECIMALS
    assert mock_fetcher.fetch_shop_decimals.await_count == 1
    assert mock_fetcher.fetch_erc20_decimals.await_count == 1


@pytest.mark.asyncio
async def test_erc20_decimals_used_when_registry_fails(resolver, mock_fetcher):
    async def erc20_decimals(*, asset):
        return 8

    mock_fetcher.fetch_erc20_decimals.side_effect = erc20_decimals
    assert await resolver.decimals_of(UNKNOWN) == 8


@pytest.mark.asyncio
async def test_unexpected_fetcher_error_never_escapes(resolver, mock_fetcher):
    mock_fetcher.fetch_symbol.side_effect = RuntimeError("boom")
    assert await resolver.symbol_of(UNKNOWN) == UNKNOWN


@pytest.mark.asyncio
async def test_reset_drops_cache_but_keeps_eth(resolver, mock_fetcher):
    await resolver.symbol_of(USDC)
    resolver.reset()
    await resolver.symbol_of(USDC)

    assert mock_fetcher.fetch_symbol.await_count == 2
    assert await resolver.symbol_of(ETH_ASSET) == "ETH"


@pytest.mark.asyncio
async def test_symbol_is_made_storable(resolver, mock_fetcher):
    async def fetch_symbol(*, asset):
        return "AB\x00C\x00\x00"

    mock_fetcher.fetch_symbol.side_effect = fetch_symbol
    assert await resolver.symbol_of(UNKNOWN) == "ABC"


@pytest.mark.asyncio
async def test_symbol_of_only_nul_bytes_falls_back_to_address(resolver, mock_fetcher):
    async def fetch_symbol(*, asset):
        return "\x00\x00"

    mock_fetcher.fetch_symbol.side_effect = fetch_symbol
    assert await resolver.symbol_of(UNKNOWN) == UNKNOWN
