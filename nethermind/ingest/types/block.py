from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

# Disabling naming check that wants enums to use UPPER_CASE
# pylint: disable=invalid-name


class TransferType(Enum):
    """Token standard of a transfer leg"""

    native = "Native"
    erc20 = "ERC20"
    erc721 = "ERC721"
    erc1155 = "ERC1155"

    @property
    def is_nft(self) -> bool:
        return self in (TransferType.erc721, TransferType.erc1155)


class ContractType(Enum):
    """
    Stored contract classification.  Types are ranked, and stored types can only move up in rank as evidence is
    found on-chain:

        ``Contract`` (0)  -->  ``ERC20`` (1)  -->  ``ERC721`` | ``ERC1155`` (2)
    """

    contract = "Contract"
    erc20 = "ERC20"
    erc721 = "ERC721"
    erc1155 = "ERC1155"

    @property
    def rank(self) -> int:
        return CONTRACT_TYPE_RANKS[self.value]

    @property
    def is_token(self) -> bool:
        return self != ContractType.contract


CONTRACT_TYPE_RANKS: dict[str, int] = {
    "Contract": 0,
    "ERC20": 1,
    "ERC721": 2,
    "ERC1155": 2,
}


class CursorKey(Enum):
    """Independent traversal directions, each with its own persisted checkpoint"""

    main = "main"
    backfill = "backfill"


class DecodeStatus(Enum):
    ok = "ok"
    degraded = "degraded"


@dataclass
class ContractInfo:
    name: str
    type: ContractType
    data: dict[str, Any] | None = None


@dataclass
class TransferRow:
    id: str
    block_height: int
    block_hash: str
    extrinsic_id: str | None
    extrinsic_hash: str | None
    extrinsic_index: int | None
    event_index: int
    from_address: str
    to_address: str
    token_address: str
    from_evm_address: str | None
    to_evm_address: str | None
    type: TransferType
    amount: str
    timestamp: int
    nft_id: str | None = None
    swap_action: str | None = None
    success: bool = True
    finalized: bool = True

    @property
    def sub_position(self) -> str:
        """Token holder sub-position.  NFT instances are tracked individually, fungible balances use '0'"""
        if self.type.is_nft and self.nft_id:
            return self.nft_id.rsplit("-", 1)[-1]
        return "0"


@dataclass
class StakingRow:
    id: str
    signer: str
    type: str
    amount: str
    timestamp: int
    era: int | None = None
    validator: str | None = None


@dataclass
class EraValidatorRow:
    era: int
    address: str
    total: str
    own: str
    nominators_count: int
    commission: float | None
    timestamp: int
    blocked: bool = False


@dataclass
class NftRow:
    contract_address: str
    token_id: str
    owner: str
    timestamp: int

    @property
    def id(self) -> str:
        return f"{self.contract_address}-{self.token_id}"


@dataclass
class ContractCallRow:
    id: str
    block_height: int
    extrinsic_id: str | None
    from_address: str
    to_address: str
    value: str
    gas_limit: str | None
    input: str | None
    success: bool
    error_message: str | None
    timestamp: int
    gas_used: str | None = None


@dataclass
class ExtrinsicRow:
    id: str
    block_height: int
    block_hash: str
    extrinsic_index: int
    hash: str
    signer: str | None
    section: str
    method: str
    signature: str | None
    nonce: int | None
    tip: str
    success: bool
    error_message: str | None
    timestamp: int
    fee: str = "0"
    args: dict[str, Any] | None = None


@dataclass
class ParsedBlock:
    """
    Normalized intermediate record for a single block.  Produced by the block decoder, consumed by the
    ledger writer.

    ``accounts`` maps native addresses to their linked EVM address (or None if unknown), and ``contracts`` maps
    lowercase contract addresses to their inferred classification.
    """

    height: int
    hash: str
    timestamp: int
    accounts: dict[str, str | None] = field(default_factory=dict)
    contracts: dict[str, ContractInfo] = field(default_factory=dict)
    transfers: list[TransferRow] = field(default_factory=list)
    staking_events: list[StakingRow] = field(default_factory=list)
    era_validators: list[EraValidatorRow] = field(default_factory=list)
    nfts: list[NftRow] = field(default_factory=list)
    contract_calls: list[ContractCallRow] = field(default_factory=list)
    extrinsics: list[ExtrinsicRow] = field(default_factory=list)

    def is_empty(self) -> bool:
        """True if the block touched no accounts, contracts or transfers"""
        return not (self.accounts or self.contracts or self.transfers)

    def add_account(self, address: str, evm_address: str | None = None):
        """Registers an account, never replacing a known EVM address with None"""
        if evm_address is None and self.accounts.get(address) is not None:
            return
        self.accounts[address] = evm_address

    def stats(self) -> dict[str, int]:
        return {
            "transfers": len(self.transfers),
            "accounts": len(self.accounts),
            "contracts": len(self.contracts),
            "staking": len(self.staking_events),
            "validators": len(self.era_validators),
            "nfts": len(self.nfts),
            "calls": len(self.contract_calls),
            "extrinsics": len(self.extrinsics),
        }

    def format_stats(self) -> str:
        """
        Compact single line summary of the block, omitting empty optional categories

        >>> ParsedBlock(height=1, hash="0x00", timestamp=0).format_stats()
        '0 tx, 0 acc'
        """
        stats = self.stats()
        out = f"{stats['transfers']} tx, {stats['accounts']} acc"
        for key, label in (("contracts", "tokens"), ("staking", "stk"), ("validators", "val"), ("nfts", "nft")):
            if stats[key] > 0:
                out += f", {stats[key]} {label}"
        return out


@dataclass
class DecodeResult:
    """
    Tagged result of decoding a block.  Degraded results contain a block with height, hash and best-effort
    timestamp, but no decoded entities.  They are still written, so cursors can move past undecodable blocks.
    """

    status: DecodeStatus
    block: ParsedBlock
    reason: str | None = None
    new_era: int | None = None

    @classmethod
    def ok(cls, block: ParsedBlock, new_era: int | None = None) -> "DecodeResult":
        return cls(status=DecodeStatus.ok, block=block, new_era=new_era)

    @classmethod
    def degraded(cls, block: ParsedBlock, reason: str) -> "DecodeResult":
        return cls(status=DecodeStatus.degraded, block=block, reason=reason)

    @property
    def is_degraded(self) -> bool:
        return self.status == DecodeStatus.degraded


@dataclass
class CursorCheckpoint:
    key: CursorKey
    height: int
    block_hash: str | None
    updated_at: int


def row_to_dict(row: Any) -> dict[str, Any]:
    """Converts a row dataclass to a dict, replacing enum members with their values"""
    return {k: v.value if isinstance(v, Enum) else v for k, v in asdict(row).items()}
