from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Mapping
from typing import Any, Final, TypeVar

from aiohttp import ClientError
from web3 import AsyncWeb3
from web3.exceptions import Web3Exception

from shop_indexer.app.domain.errors import RpcRangeError, RpcUnavailable
from shop_indexer.app.domain.models import BlockRange, EventKind, RawLog
from shop_indexer.app.infrastructure.decoders.shop.shop_event_decoder import (
    AbiShopEventDecoder,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT_BLOCK_BATCH_SIZE: Final[int] = 10_000
_DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0
_UNDECODABLE_VARIANT: Final[str] = "undecodable"


def _hex(value: Any) -> str:
    if isinstance(value, str):
        return value.lower() if value.startswith("0x") else "0x" + value.lower()
    return "0x" + bytes(value).hex()


class Web3ShopLogSource:
    """
    ShopLogSource implementation over AsyncWeb3.

    - current_height(): eth_blockNumber
    - fetch_logs(): eth_getLogs filtered by shop address + the topic0 of every
      accepted shape of the event, in windows of `block_batch_size` blocks.

    Every RPC round-trip is bounded by `timeout_seconds`. Timeouts, HTTP
    error statuses and transport/provider errors surface as RpcUnavailable.
    """

    def __init__(
        self,
        *,
        w3: AsyncWeb3,
        shop_address: str,
        decoders: Mapping[EventKind, AbiShopEventDecoder],
        block_batch_size: int = _DEFAULT_BLOCK_BATCH_SIZE,
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if block_batch_size <= 0:
            raise ValueError("block_batch_size must be positive")
        missing = set(EventKind) - set(decoders)
        if missing:
            raise ValueError(f"Missing decoders for event kinds: {sorted(k.value for k in missing)}")
        self._w3 = w3
        self._shop_address = w3.to_checksum_address(shop_address)
        self._decoders = dict(decoders)
        self._block_batch_size = block_batch_size
        self._timeout = timeout_seconds

    async def _call(self, what: str, aw: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(aw, timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise RpcUnavailable(f"{what} timed out after {self._timeout}s") from exc
        except (Web3Exception, ClientError, OSError, ValueError) as exc:
            # ClientError covers HTTP error statuses (e.g. 503) from the node
            raise RpcUnavailable(f"{what} failed: {exc}") from exc

    async def current_height(self) -> int:
        height = await self._call("eth_blockNumber", self._w3.eth.block_number)
        return int(height)

    async def fetch_logs(
        self,
        *,
        kind: EventKind,
        from_block: int,
        to_block: int,
    ) -> list[RawLog]:
        if from_block > to_block:
            raise RpcRangeError(from_block, to_block)

        decoder = self._decoders[kind]
        topic0s = ["0x" + t.hex() for t in decoder.topic0s]

        out: list[RawLog] = []
        for window in BlockRange(from_block=from_block, to_block=to_block).windows(
            self._block_batch_size
        ):
            logger.debug(
                "Fetching %s logs: blocks=[%s, %s]",
                decoder.event_name,
                window.from_block,
                window.to_block,
            )
            entries = await self._call(
                "eth_getLogs",
                self._w3.eth.get_logs(
                    {
                        "address": self._shop_address,
                        "fromBlock": window.from_block,
                        "toBlock": window.to_block,
                        "topics": [topic0s],
                    }
                ),
            )
            out.extend(self._to_raw_log(kind, decoder, entry) for entry in entries)

        out.sort(key=lambda r: (r.block_number, r.log_index))

        logger.debug(
            "Fetched %s %s logs in blocks [%s, %s]",
            len(out),
            decoder.event_name,
            from_block,
            to_block,
        )
        return out

    @staticmethod
    def _to_raw_log(kind: EventKind, decoder: AbiShopEventDecoder, entry: Mapping[str, Any]) -> RawLog:
        tx_hash = _hex(entry["transactionHash"])
        log_index = int(entry["logIndex"])

        decoded = decoder.decode(
            topics=[bytes(t) for t in entry.get("topics", [])],
            data=bytes(entry.get("data") or b""),
        )
        if decoded is None:
            # Kept as an empty payload; normalization rejects it as malformed.
            logger.warning(
                "Undecodable %s log %s:%s",
                decoder.event_name,
                tx_hash,
                log_index,
            )
            variant, args = _UNDECODABLE_VARIANT, {}
        else:
            variant, args = decoded

        return RawLog(
            kind=kind,
            block_number=int(entry["blockNumber"]),
            transaction_hash=tx_hash,
            log_index=log_index,
            variant=variant,
            args=args,
        )
