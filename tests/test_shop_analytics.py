import pytest
import pytest_asyncio

from shop_indexer.app.application.services.shop_analytics import (
    MAX_ACTIVITY_LIMIT,
    clamp_activity_limit,
)
from shop_indexer.app.domain.models import ETH_ASSET
from shop_fixtures import ALICE, BOB, ONE_GEN, USDC, buy_log, sell_log, tx


@pytest_asyncio.fixture
async def seeded(synchronizer, log_source):
    log_source.add(
        buy_log(10, tx(1), user=ALICE, asset=USDC, amount_in=10_000_000, gen_out=ONE_GEN),
        buy_log(20, tx(2), user=ALICE, amount_in=10**16, gen_out=ONE_GEN),
        buy_log(25, tx(3), user=BOB, asset=USDC, amount_in=5_000_000, gen_out=ONE_GEN // 2),
        sell_log(30, tx(4), user=ALICE, gen_in=ONE_GEN // 2, amount_out=4 * 10**15),
    )
    await synchronizer.run_sync()


@pytest.mark.asyncio
async def test_empty_summary(analytics):
    summary = await analytics.summary()

    assert summary.total_buys == 0
    assert summary.total_gen_minted == "0"
    assert summary.unique_users == 0
    assert summary.gen_total_supply is None


@pytest.mark.asyncio
async def test_summary(analytics, seeded):
    summary = await analytics.summary(gen_total_supply="2")

    assert (summary.total_buys, summary.total_sells) == (3, 1)
    assert summary.total_gen_minted == "2.5"
    assert summary.total_gen_burned == "0.5"
    assert (summary.unique_buyers, summary.unique_sellers, summary.unique_users) == (2, 1, 2)
    assert summary.model_dump(by_alias=True)["genTotalSupply"] == "2"


@pytest.mark.asyncio
async def test_per_asset(analytics, seeded):
    eth, usdc = await analytics.per_asset()

    assert (eth.asset, eth.symbol, eth.decimals) == (ETH_ASSET, "ETH", 18)
    assert (eth.buys, eth.sells) == (1, 1)
    assert eth.total_paid_in_formatted == "0.01"
    assert eth.total_paid_out_formatted == "0.004"
    assert (eth.total_gen_out, eth.total_gen_in) == ("1", "0.5")

    assert (usdc.symbol, usdc.decimals) == ("USDC", 6)
    assert (usdc.buys, usdc.unique_buyers, usdc.sells) == (2, 2, 0)
    assert usdc.total_paid_in == "15000000"
    assert usdc.total_paid_in_formatted == "15.0"
    assert usdc.total_paid_out_formatted == "0.0"
    assert usdc.total_gen_out == "1.5"


@pytest.mark.asyncio
async def test_user_history(analytics, seeded):
    history = await analytics.user_history(ALICE.upper().replace("0X", "0x"))

    assert history.user == ALICE
    assert [e.block for e in history.events] == [30, 20, 10]

    eth, usdc = history.positions
    assert eth.net_asset == str(4 * 10**15 - 10**16)
    assert eth.net_asset_formatted == "-0.006"
    assert eth.net_gen == "0.5"
    assert usdc.net_asset_formatted == "-10.0"
    assert usdc.net_gen == "1"


@pytest.mark.asyncio
async def test_net_gen_after_buy_then_partial_sell(synchronizer, log_source, analytics):
    log_source.add(
        buy_log(1, tx(1), user=BOB, amount_in=10**16, gen_out=2 * ONE_GEN),
        sell_log(2, tx(2), user=BOB, gen_in=ONE_GEN // 2, amount_out=2 * 10**15),
    )
    await synchronizer.run_sync()

    [eth] = (await analytics.user_history(BOB)).positions

    assert eth.total_gen_out == "2"
    assert eth.total_gen_in == "0.5"
    assert eth.net_gen == "1.5"


@pytest.mark.asyncio
async def test_user_history_of_stranger_is_empty(analytics, seeded):
    history = await analytics.user_history("0x" + "ee" * 20)
    assert history.positions == []
    assert history.events == []


@pytest.mark.asyncio
async def test_user_positions_sorted_by_user(analytics, seeded):
    positions = await analytics.user_positions()

    assert list(positions) == [ALICE, BOB]
    [bob_usdc] = positions[BOB]
    assert (bob_usdc.symbol, bob_usdc.buys, bob_usdc.net_gen) == ("USDC", 1, "0.5")


@pytest.mark.asyncio
async def test_recent_activity(analytics, seeded):
    items = await analytics.recent_activity(2)

    assert [(i.block, i.type) for i in items] == [(30, "SELL"), (25, "BUY")]
    dumped = items[0].model_dump(by_alias=True)
    assert dumped["txHash"] == tx(4)
    assert dumped["assetSymbol"] == "ETH"
    assert dumped["amountIn"] == str(ONE_GEN // 2)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, 15), ("abc", 15), (0, 15), (-5, 1), ("20", 20), (500, MAX_ACTIVITY_LIMIT)],
)
def test_clamp_activity_limit(raw, expected):
    assert clamp_activity_limit(raw) == expected
