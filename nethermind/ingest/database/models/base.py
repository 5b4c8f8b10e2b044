from decimal import Decimal
from typing import Annotated, Any

from sqlalchemy import BigInteger, Dialect, Numeric, Text
from sqlalchemy.orm import DeclarativeBase, mapped_column
from sqlalchemy.types import TypeDecorator, TypeEngine

# Binary Data is Represented as a String of Hex Digits
# -- Addresses are stored lowercase with a 0x prefix.  Native (SS58) addresses are stored as-is.


class UInt256(TypeDecorator):
    """
    Unsigned integer column wide enough for uint256 values.  Stored as NUMERIC(78, 0) on databases with arbitrary
    precision numerics, and as decimal text on SQLite, where NUMERIC values are coerced into 64 bit ints or floats.
    Values are always returned as python ints.
    """

    impl = Numeric(78, 0)
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "sqlite":
            return dialect.type_descriptor(Text())
        return dialect.type_descriptor(Numeric(78, 0))

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        if dialect.name == "sqlite":
            return str(int(value))
        return Decimal(int(value))

    def process_result_value(self, value: Any, dialect: Dialect) -> int | None:
        if value is None:
            return None
        return int(value)


AddressPK = Annotated[str, mapped_column(Text, primary_key=True)]
BlockNumberPK = Annotated[int, mapped_column(BigInteger, primary_key=True, autoincrement=False)]
TextPK = Annotated[str, mapped_column(Text, primary_key=True)]

IndexedAddress = Annotated[str, mapped_column(Text, index=True, nullable=False)]
IndexedNullableAddress = Annotated[str | None, mapped_column(Text, index=True, nullable=True)]
IndexedBlockNumber = Annotated[int, mapped_column(BigInteger, nullable=False, index=True)]

Hash32 = Annotated[str, mapped_column(Text)]
NullableHash32 = Annotated[str | None, mapped_column(Text, nullable=True)]
Address = Annotated[str, mapped_column(Text)]

# Raw token amounts are stored as decimal strings to preserve full uint256 width
TokenAmount = Annotated[str, mapped_column(Text, nullable=False)]
Balance = Annotated[int, mapped_column(UInt256, nullable=False)]

# Unix timestamps in seconds
Timestamp = Annotated[int, mapped_column(BigInteger, nullable=False)]


class Base(DeclarativeBase):
    """Base class for ledger tables"""
