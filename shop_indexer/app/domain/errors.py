from __future__ import annotations


class ShopIndexerError(Exception):
    """Base class for every error raised by the shop indexer."""


class RpcUnavailable(ShopIndexerError):
    """
    The chain endpoint could not be reached, returned an error or timed out.

    Transient: the current sync pass is aborted with the cursor untouched and
    the same block range is retried wholesale by the next pass.
    """


class RpcRangeError(ShopIndexerError):
    """A log query was issued for an empty or inverted block window."""

    def __init__(self, from_block: int, to_block: int) -> None:
        super().__init__(f"Invalid block range: from_block={from_block} > to_block={to_block}")
        self.from_block = from_block
        self.to_block = to_block


class MetadataResolutionFailure(ShopIndexerError):
    """Token metadata (symbol / decimals) or a shop view value could not be read on-chain."""

    def __init__(self, asset: str, field: str) -> None:
        super().__init__(f"Could not resolve {field} for asset {asset}")
        self.asset = asset
        self.field = field


class MalformedLog(ShopIndexerError):
    """A fetched log cannot be mapped onto a canonical event (no actor, bad payload)."""

    def __init__(self, transaction_hash: str, log_index: int, reason: str) -> None:
        super().__init__(f"Malformed log {transaction_hash}:{log_index}: {reason}")
        self.transaction_hash = transaction_hash
        self.log_index = log_index
        self.reason = reason


class CursorRegressionError(ShopIndexerError):
    """Attempted to move the sync cursor backwards. Indicates a sequencing bug."""

    def __init__(self, current: int, requested: int) -> None:
        super().__init__(
            f"Refusing to move sync cursor backwards: current={current}, requested={requested}"
        )
        self.current = current
        self.requested = requested
