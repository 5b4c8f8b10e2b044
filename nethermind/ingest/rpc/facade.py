from typing import Protocol

from eth_typing import HexStr

from nethermind.ingest.types.chain import (
    BlockBody,
    BlockHeader,
    ChainEvent,
    Exposure,
    ValidatorPrefs,
)


class BlockState(Protocol):
    """Runtime storage queries evaluated at a fixed block"""

    async def query_events(self) -> list[ChainEvent]:
        """Decoded ``system.events`` for the block"""
        ...

    async def query_timestamp(self) -> int:
        """``timestamp.now`` in milliseconds"""
        ...

    async def query_current_era(self) -> int | None:
        """``staking.currentEra``, or None if the runtime does not expose staking"""
        ...

    async def query_validators(self) -> list[str]:
        """Active validator set (``session.validators``)"""
        ...

    async def query_exposure(self, era: int, validator: str) -> Exposure:
        ...

    async def query_commission(self, era: int, validator: str) -> ValidatorPrefs:
        ...


class EvmCaller(Protocol):
    """Read-only EVM call surface"""

    async def call(self, to: str, data: HexStr) -> HexStr:
        """Executes ``eth_call`` against the latest state, returning the 0x prefixed result"""
        ...


class ChainRPC(EvmCaller, Protocol):
    """
    Chain facade consumed by the block decoder.  Runtime specific decoding of storage and block bodies is the
    responsibility of the implementation.
    """

    async def get_header(self, block_hash: str) -> BlockHeader:
        ...

    async def state_at(self, block_hash: str) -> BlockState:
        ...

    async def get_block_body(self, block_hash: str) -> BlockBody:
        ...
