import pytest

from shop_indexer.app.application.services.normalize_shop_logs import (
    as_lower_address,
    normalize_raw_log,
)
from shop_indexer.app.domain.errors import MalformedLog
from shop_indexer.app.domain.models import ETH_ASSET, EventKind, RawLog
from shop_fixtures import ALICE, USDC, buy_log, sell_log, tx


def test_buy_with_pay_asset():
    n = normalize_raw_log(buy_log(7, tx(1), 3, asset=USDC, amount_in=10_000_000, gen_out=10**18))

    assert n.kind == EventKind.BUY
    assert (n.block_number, n.log_index) == (7, 3)
    assert n.user == ALICE
    assert n.asset == USDC
    assert (n.amount_in, n.amount_out) == (10_000_000, 10**18)


def test_sell_without_pay_asset_is_eth():
    n = normalize_raw_log(sell_log(8, tx(2), gen_in=5, amount_out=9))

    assert n.asset == ETH_ASSET
    assert (n.amount_in, n.amount_out) == (5, 9)


def test_legacy_buy_field_names():
    raw = RawLog(
        kind=EventKind.BUY,
        block_number=1,
        transaction_hash=tx(3).upper().replace("0X", "0x"),
        log_index=0,
        variant="Bought(address,uint256,uint256)",
        args={"buyer": ALICE.upper().replace("0X", "0x"), "paidWei": 42, "genOut": 7},
    )
    n = normalize_raw_log(raw)

    assert n.user == ALICE
    assert n.asset == ETH_ASSET
    assert n.transaction_hash == tx(3)
    assert (n.amount_in, n.amount_out) == (42, 7)


def test_legacy_sell_field_names():
    raw = RawLog(
        kind=EventKind.SELL,
        block_number=1,
        transaction_hash=tx(4),
        log_index=1,
        variant="Sold(address,uint256,uint256)",
        args={"seller": ALICE, "genIn": 3, "paidWei": 11},
    )
    n = normalize_raw_log(raw)

    assert n.user == ALICE
    assert (n.amount_in, n.amount_out) == (3, 11)


def test_missing_amounts_default_to_zero():
    raw = RawLog(EventKind.BUY, 1, tx(5), 0, "Bought", {"user": ALICE})
    n = normalize_raw_log(raw)
    assert (n.amount_in, n.amount_out) == (0, 0)


def test_missing_user_is_malformed():
    with pytest.raises(MalformedLog) as exc:
        normalize_raw_log(buy_log(1, tx(6), user=None))
    assert exc.value.log_index == 0


def test_empty_payload_is_malformed():
    raw = RawLog(EventKind.SELL, 1, tx(7), 0, "undecodable", {})
    with pytest.raises(MalformedLog):
        normalize_raw_log(raw)


def test_negative_amount_is_malformed():
    with pytest.raises(MalformedLog):
        normalize_raw_log(buy_log(1, tx(8), amount_in=-1))


def test_unparseable_asset_falls_back_to_eth():
    n = normalize_raw_log(buy_log(1, tx(9), asset="not-an-address"))
    assert n.asset == ETH_ASSET


def test_to_event_carries_symbol():
    event = normalize_raw_log(buy_log(1, tx(10), asset=USDC)).to_event(asset_symbol="USDC")
    assert event.asset_symbol == "USDC"
    assert event.key == (tx(10), 0)


def test_as_lower_address_accepts_raw_bytes():
    assert as_lower_address(bytes.fromhex("a1" * 20)) == ALICE
    assert as_lower_address(b"\x01\x02") is None
    assert as_lower_address(None) is None
