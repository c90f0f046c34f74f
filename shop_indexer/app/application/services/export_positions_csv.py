from __future__ import annotations

import csv
from collections.abc import Mapping, Sequence
from pathlib import Path

from shop_indexer.app.application.services.shop_analytics import UserPosition

CSV_HEADER = (
    "user",
    "asset",
    "buys",
    "sells",
    "asset_in",
    "asset_out",
    "net_asset",
    "gen_out",
    "gen_in",
    "net_gen",
)


def write_positions_csv(
    path: Path,
    positions_by_user: Mapping[str, Sequence[UserPosition]],
) -> int:
    """
    Write one row per (user, asset) net position, amounts in human units.

    Returns the number of data rows written.
    """
    rows = 0
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for user, positions in positions_by_user.items():
            for p in positions:
                writer.writerow(
                    (
                        user,
                        p.symbol,
                        p.buys,
                        p.sells,
                        p.total_paid_in_formatted,
                        p.total_paid_out_formatted,
                        p.net_asset_formatted,
                        p.total_gen_out,
                        p.total_gen_in,
                        p.net_gen,
                    )
                )
                rows += 1
    return rows
