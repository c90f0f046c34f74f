from __future__ import annotations

from typing import Protocol, Any

from shop_indexer.app.domain.models import Event, EventKind, RawLog, SyncCursor


class ShopLogSource(Protocol):
    """
    Port for reading shop activity from the chain.

    Implementations wrap a JSON-RPC endpoint. Any transport failure or
    timeout must surface as RpcUnavailable so the caller can abort the pass.
    """

    async def current_height(self) -> int:
        ...

    async def fetch_logs(
        self,
        *,
        kind: EventKind,
        from_block: int,
        to_block: int,
    ) -> list[RawLog]:
        """
        Return logs of the given kind in [from_block, to_block], ascending by
        (block_number, log_index).

        Raises RpcRangeError when from_block > to_block.
        """
        ...


class ShopEventStore(Protocol):
    """
    Port for durable shop event storage.

    Owns the deduplicated event log and the single-row sync cursor. Rows are
    insert-only; the cursor only moves forward.
    """

    async def get_cursor(self) -> SyncCursor:
        ...

    async def insert_if_absent(self, event: Event) -> bool:
        """
        Insert the event unless (transaction_hash, log_index) already exists.

        Return True when a new row was written, False for a no-op.
        """
        ...

    async def advance_cursor(self, new_height: int) -> None:
        """Raises CursorRegressionError if new_height is below the stored value."""
        ...

    async def query_by_user(self, user: str) -> list[Event]:
        ...

    async def query_by_asset(self, asset: str) -> list[Event]:
        ...

    async def query_recent(self, limit: int) -> list[Event]:
        ...

    async def list_events(self, *, kind: EventKind | None = None) -> list[Event]:
        ...


class ShopEventDecoder(Protocol):
    def decode(
        self,
        *,
        topics: list[bytes],
        data: bytes,
    ) -> tuple[str, dict[str, Any]] | None:
        """
        Decode a shop log (topics + data) into (variant signature, args dict).

        Return None if the log does not match any accepted event shape.
        """
        ...


class AssetMetadataFetcher(Protocol):
    """
    Low-level dependency used by the asset metadata resolver.

    Every method performs eth_call and raises MetadataResolutionFailure when
    the value cannot be read. asset is a lowercase 0x-prefixed address.
    """

    async def fetch_symbol(self, *, asset: str) -> str:
        ...

    async def fetch_shop_decimals(self, *, asset: str) -> int:
        """Decimals as registered in the shop contract's own asset registry."""
        ...

    async def fetch_erc20_decimals(self, *, asset: str) -> int:
        ...


class ShopStateFetcher(Protocol):
    """
    Read-only view of the shop contract's current state, used by reports.

    Every method raises MetadataResolutionFailure when the value cannot be read.
    """

    async def fetch_token_total_supply(self) -> int:
        ...

    async def fetch_fee_bps(self) -> int:
        ...

    async def fetch_eth_balance(self) -> int:
        ...

    async def fetch_asset_balance(self, *, asset: str) -> int:
        ...

    async def fetch_eth_rates(self) -> tuple[int, int]:
        """(buy rate, sell rate) in token units per 1 ETH."""
        ...

    async def fetch_eth_quotes(self, *, eth_in: int, token_in: int) -> tuple[int, int]:
        ...
