from dataclasses import dataclass, field

from eth_abi import encode

from nethermind.ingest.constants import TRANSFER_SINGLE_TOPIC, TRANSFER_TOPIC
from nethermind.ingest.exceptions import RPCError
from nethermind.ingest.types.chain import (
    BlockBody,
    BlockHeader,
    ChainEvent,
    ChainExtrinsic,
    EvmLog,
    Exposure,
    ValidatorPrefs,
)


def address_topic(address: str) -> str:
    return "0x" + address[2:].rjust(64, "0")


def uint_word(value: int) -> str:
    return hex(value)[2:].rjust(64, "0")


def erc20_log(token: str, from_address: str, to_address: str, amount: int) -> EvmLog:
    return EvmLog(
        address=token,
        topics=[TRANSFER_TOPIC, address_topic(from_address), address_topic(to_address)],
        data="0x" + uint_word(amount),
    )


def erc721_log(token: str, from_address: str, to_address: str, token_id: int) -> EvmLog:
    return EvmLog(
        address=token,
        topics=[TRANSFER_TOPIC, address_topic(from_address), address_topic(to_address), "0x" + uint_word(token_id)],
    )


def erc1155_log(token: str, operator: str, from_address: str, to_address: str, token_id: int, amount: int) -> EvmLog:
    return EvmLog(
        address=token,
        topics=[
            TRANSFER_SINGLE_TOPIC,
            address_topic(operator),
            address_topic(from_address),
            address_topic(to_address),
        ],
        data="0x" + uint_word(token_id) + uint_word(amount),
    )


def evm_log_event(log: EvmLog, extrinsic_index: int | None = 1) -> ChainEvent:
    return ChainEvent(section="evm", method="Log", data=(log,), extrinsic_index=extrinsic_index)


def native_transfer_event(from_address: str, to_address: str, amount: int, extrinsic_index: int | None = 1):
    return ChainEvent(
        section="balances",
        method="Transfer",
        data=(from_address, to_address, amount),
        extrinsic_index=extrinsic_index,
    )


def encode_name(name: str) -> str:
    return "0x" + encode(["string"], [name]).hex()


@dataclass
class FakeBlockState:
    events: list[ChainEvent] = field(default_factory=list)
    timestamp_ms: int = 1_700_000_000_000
    era: int | None = None
    validators: list[str] = field(default_factory=list)
    exposures: dict[str, Exposure] = field(default_factory=dict)
    commissions: dict[str, ValidatorPrefs] = field(default_factory=dict)
    events_error: Exception | None = None
    era_error: Exception | None = None

    async def query_events(self) -> list[ChainEvent]:
        if self.events_error:
            raise self.events_error
        return self.events

    async def query_timestamp(self) -> int:
        return self.timestamp_ms

    async def query_current_era(self) -> int | None:
        if self.era_error:
            raise self.era_error
        return self.era

    async def query_validators(self) -> list[str]:
        return self.validators

    async def query_exposure(self, era: int, validator: str) -> Exposure:
        if validator not in self.exposures:
            raise RPCError(f"No exposure for {validator} in era {era}")
        return self.exposures[validator]

    async def query_commission(self, era: int, validator: str) -> ValidatorPrefs:
        return self.commissions.get(validator, ValidatorPrefs(commission=0))


@dataclass
class FakeBlock:
    height: int
    state: FakeBlockState
    extrinsics: list[ChainExtrinsic] = field(default_factory=list)
    body_error: Exception | None = None


class FakeChain:
    """In-memory chain facade.  Token names are served from ``names``; unknown contracts revert"""

    def __init__(self):
        self.blocks: dict[str, FakeBlock] = {}
        self.names: dict[str, str] = {}
        self.name_calls: list[str] = []
        self.body_requests: list[str] = []

    def add_block(
        self,
        block_hash: str,
        height: int,
        events: list[ChainEvent] | None = None,
        extrinsics: list[ChainExtrinsic] | None = None,
        **state_kwargs,
    ) -> FakeBlock:
        block = FakeBlock(
            height=height,
            state=FakeBlockState(events=events or [], **state_kwargs),
            extrinsics=extrinsics or [],
        )
        self.blocks[block_hash] = block
        return block

    async def get_header(self, block_hash: str) -> BlockHeader:
        return BlockHeader(number=self.blocks[block_hash].height)

    async def state_at(self, block_hash: str) -> FakeBlockState:
        return self.blocks[block_hash].state

    async def get_block_body(self, block_hash: str) -> BlockBody:
        self.body_requests.append(block_hash)
        block = self.blocks[block_hash]
        if block.body_error:
            raise block.body_error
        return BlockBody(extrinsics=block.extrinsics)

    async def call(self, to: str, data: str) -> str:
        self.name_calls.append(to)
        if to not in self.names:
            raise RPCError("execution reverted")
        return encode_name(self.names[to])
