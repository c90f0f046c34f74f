from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from shop_indexer.app.domain.ports.out import ShopEventDecoder


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _EventVariant:
    signature: str
    topic0: bytes
    indexed_inputs: list[dict[str, Any]]
    non_indexed_names: list[str]
    non_indexed_types: list[str]


class AbiShopEventDecoder(ShopEventDecoder):
    """
    ABI-based decoder for one shop event name (Bought or Sold).

    The shop was redeployed with different event shapes over time, so the
    ABI may carry several overloads of the same event name. Every overload
    is accepted: each gets its own topic0, and decode() reports which one
    matched as the variant signature.

    It:
    - loads ABI from a JSON file (plain list or forge artifact),
    - finds all event ABIs with the given name,
    - computes topic0 = keccak("EventName(type1,type2,...)") per overload,
    - decodes indexed args from topics (address/uint/bytes32),
    - decodes non-indexed args from `data` with eth_abi.
    """

    def __init__(self, *, abi_path: Path, event_name: str) -> None:
        self._event_name = event_name
        abi = self._load_abi(abi_path)
        self._variants = {
            v.topic0: v for v in (self._build_variant(e) for e in self._find_events(abi, event_name))
        }

    @property
    def event_name(self) -> str:
        return self._event_name

    @property
    def topic0s(self) -> list[bytes]:
        return list(self._variants)

    @property
    def signatures(self) -> list[str]:
        return [v.signature for v in self._variants.values()]

    def decode(
        self,
        *,
        topics: list[bytes],
        data: bytes,
    ) -> tuple[str, dict[str, Any]] | None:
        # 1) must match one of the accepted shapes
        if not topics:
            return None
        variant = self._variants.get(bytes(topics[0]))
        if variant is None:
            return None

        # 2) indexed args, one topic each
        indexed_topics = [bytes(t) for t in topics[1:]]
        if len(indexed_topics) != len(variant.indexed_inputs):
            logger.debug(
                "Topic count mismatch for %s: expected=%s got=%s",
                variant.signature,
                len(variant.indexed_inputs),
                len(indexed_topics),
            )
            return None

        args: dict[str, Any] = {}
        try:
            for inp, topic in zip(variant.indexed_inputs, indexed_topics, strict=True):
                args[inp["name"]] = self._decode_topic(inp["type"], topic)
        except ValueError as exc:
            logger.debug("Cannot decode %s topics: %s", variant.signature, exc)
            return None

        # 3) non-indexed args from data
        if variant.non_indexed_types:
            try:
                values = abi_decode(variant.non_indexed_types, bytes(data))
            except (DecodingError, ValueError, TypeError) as exc:
                logger.debug("Cannot decode %s data: %s", variant.signature, exc)
                return None
            for name, typ, val in zip(
                variant.non_indexed_names, variant.non_indexed_types, values, strict=True
            ):
                args[name] = self._normalize_abi_value(typ, val)

        return variant.signature, args

    # ---------------------------------------------------------------------
    # ABI helpers
    # ---------------------------------------------------------------------

    @staticmethod
    def _load_abi(abi_path: Path) -> list[dict[str, Any]]:
        if not abi_path.exists():
            raise FileNotFoundError(f"ABI file not found: {abi_path}")
        data = json.loads(abi_path.read_text(encoding="utf-8"))

        # Common formats:
        # - [ ... ] (ABI list)
        # - { "abi": [ ... ] } (forge / hardhat artifact)
        if isinstance(data, list):
            abi = data
        elif isinstance(data, dict) and isinstance(data.get("abi"), list):
            abi = data["abi"]
        else:
            raise ValueError(
                f"Unsupported ABI JSON format in {abi_path}. Expected list or dict with 'abi' list."
            )
        return [x for x in abi if isinstance(x, dict)]

    @staticmethod
    def _find_events(abi: list[dict[str, Any]], event_name: str) -> list[dict[str, Any]]:
        events = [x for x in abi if x.get("type") == "event" and x.get("name") == event_name]
        if not events:
            names = sorted({x.get("name") for x in abi if x.get("type") == "event"})
            raise ValueError(f"Event {event_name!r} not found in ABI. Available events: {names}")
        return events

    @staticmethod
    def _event_signature(event_abi: Mapping[str, Any]) -> str:
        name = event_abi.get("name")
        inputs = event_abi.get("inputs", [])
        if not isinstance(name, str) or not isinstance(inputs, list):
            raise ValueError("Invalid event ABI: missing name/inputs")
        types = []
        for inp in inputs:
            if not isinstance(inp, dict) or "type" not in inp:
                raise ValueError("Invalid event ABI inputs")
            types.append(inp["type"])
        return f"{name}({','.join(types)})"

    def _build_variant(self, event_abi: Mapping[str, Any]) -> _EventVariant:
        signature = self._event_signature(event_abi)
        inputs: list[dict[str, Any]] = list(event_abi.get("inputs", []))
        non_indexed = [i for i in inputs if not i.get("indexed")]
        return _EventVariant(
            signature=signature,
            topic0=keccak(text=signature),
            indexed_inputs=[i for i in inputs if i.get("indexed") is True],
            non_indexed_names=[i["name"] for i in non_indexed],
            non_indexed_types=[i["type"] for i in non_indexed],
        )

    # ---------------------------------------------------------------------
    # Topic / ABI value normalization
    # ---------------------------------------------------------------------

    @staticmethod
    def _decode_topic(typ: str, topic: bytes) -> Any:
        if len(topic) != 32:
            raise ValueError(f"Expected 32 bytes (topic), got len={len(topic)}")
        if typ == "address":
            # left-zero padded to 32 bytes
            return "0x" + topic[-20:].hex()
        if typ.startswith("uint"):
            return int.from_bytes(topic, byteorder="big", signed=False)
        if typ.startswith("int"):
            return int.from_bytes(topic, byteorder="big", signed=True)
        # bytes32 / hashed dynamic types stay raw
        return topic

    @staticmethod
    def _normalize_abi_value(typ: str, val: Any) -> Any:
        if typ == "address":
            if isinstance(val, str):
                return val.lower()
            if isinstance(val, (bytes, bytearray)) and len(val) == 20:
                return "0x" + bytes(val).hex()
            return val

        if typ.startswith("uint") or typ.startswith("int"):
            return val if isinstance(val, int) else int(val)

        if typ.startswith("bytes") and isinstance(val, (bytes, bytearray, memoryview)):
            return bytes(val)

        return val
