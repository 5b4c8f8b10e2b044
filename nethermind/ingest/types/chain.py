from dataclasses import dataclass, field
from typing import Any


@dataclass
class BlockHeader:
    """Subset of a block header required by the decoder"""

    number: int
    parent_hash: str | None = None


@dataclass
class EvmLog:
    """EVM log as emitted inside an ``evm.Log`` runtime event"""

    address: str
    topics: list[str]
    data: str = "0x"


@dataclass
class ChainEvent:
    """
    Runtime event record.  ``extrinsic_index`` is the position of the extrinsic that emitted the event, and is
    None for events emitted during block initialization or finalization.
    """

    section: str
    method: str
    data: tuple[Any, ...] = ()
    extrinsic_index: int | None = None


@dataclass
class ChainExtrinsic:
    """Decoded extrinsic from a block body"""

    section: str
    method: str
    hash: str
    signer: str | None = None
    nonce: int | None = None
    tip: str = "0"
    signature: str | None = None
    args: tuple[Any, ...] = ()

    @property
    def is_signed(self) -> bool:
        return self.signer is not None


@dataclass
class BlockBody:
    extrinsics: list[ChainExtrinsic] = field(default_factory=list)


@dataclass
class Exposure:
    """Stake backing a validator for one era"""

    total: int
    own: int
    nominator_count: int


@dataclass
class ValidatorPrefs:
    """Validator preferences for one era.  Commission is denominated in Perbill"""

    commission: int
    blocked: bool = False
