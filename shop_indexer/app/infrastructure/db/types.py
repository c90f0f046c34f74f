from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import Numeric, String
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator, TypeEngine


class UInt256(TypeDecorator):
    """
    Exact storage for raw uint256 amounts.

    PostgreSQL gets NUMERIC(78, 0); other dialects (SQLite in tests) store the
    decimal string, since their numeric affinity would round above 2**63.
    Values are always returned as Python ints.
    """

    impl = String
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(Numeric(78, 0))
        return dialect.type_descriptor(String(80))

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        as_int = int(value)
        if as_int < 0:
            raise ValueError(f"UInt256 cannot store negative value {as_int}")
        if dialect.name == "postgresql":
            return Decimal(as_int)
        return str(as_int)

    def process_result_value(self, value: Any, dialect: Dialect) -> int | None:
        if value is None:
            return None
        return int(value)
