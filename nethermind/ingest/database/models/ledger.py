from typing import Any

from sqlalchemy import JSON, BigInteger, Boolean, Float, Integer, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import (
    Address,
    AddressPK,
    Balance,
    Base,
    BlockNumberPK,
    Hash32,
    IndexedAddress,
    IndexedBlockNumber,
    IndexedNullableAddress,
    NullableHash32,
    TextPK,
    Timestamp,
    TokenAmount,
)

# pylint: disable=missing-class-docstring


class Block(Base):
    __tablename__ = "blocks"

    height: Mapped[BlockNumberPK]
    hash: Mapped[Hash32]
    timestamp: Mapped[Timestamp]
    # Refreshed on every write, including empty blocks.  Used as an indexer liveness heartbeat
    processor_timestamp: Mapped[Timestamp]


class Account(Base):
    __tablename__ = "accounts"

    address: Mapped[AddressPK]
    evm_address: Mapped[IndexedNullableAddress]
    timestamp: Mapped[Timestamp]


class Contract(Base):
    """
    Contracts observed on-chain.  ``type`` is one of Contract, ERC20, ERC721, ERC1155, and is only ever upgraded.
    """

    __tablename__ = "contracts"

    address: Mapped[AddressPK]
    name: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    contract_data: Mapped[dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    timestamp: Mapped[Timestamp]


class Transfer(Base):
    __tablename__ = "transfers"

    id: Mapped[TextPK]
    block_height: Mapped[IndexedBlockNumber]
    block_hash: Mapped[Hash32]
    finalized: Mapped[bool] = mapped_column(Boolean, nullable=False)

    extrinsic_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    extrinsic_hash: Mapped[NullableHash32]
    extrinsic_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    event_index: Mapped[int] = mapped_column(Integer, nullable=False)

    from_address: Mapped[IndexedAddress]
    to_address: Mapped[IndexedAddress]
    token_address: Mapped[IndexedAddress]
    from_evm_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    to_evm_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    type: Mapped[str] = mapped_column(Text, nullable=False)
    swap_action: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[TokenAmount]
    nft_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    timestamp: Mapped[Timestamp]


class TokenHolder(Base):
    """
    Running token balances.  ``sub_position`` is the NFT token id for ERC721 & ERC1155 holdings, and '0' for
    fungible tokens.
    """

    __tablename__ = "token_holders"

    token_address: Mapped[Address]
    holder: Mapped[Address]
    sub_position: Mapped[str] = mapped_column(Text)
    evm_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    nft_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    balance: Mapped[Balance]
    timestamp: Mapped[Timestamp]

    __table_args__ = (PrimaryKeyConstraint("token_address", "holder", "sub_position"),)


class StakingEvent(Base):
    __tablename__ = "staking_events"

    id: Mapped[TextPK]
    signer: Mapped[IndexedAddress]
    type: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[TokenAmount]
    era: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    validator: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[Timestamp]


class EraValidatorInfo(Base):
    __tablename__ = "era_validator_info"

    era: Mapped[int] = mapped_column(Integer)
    address: Mapped[Address]
    total: Mapped[TokenAmount]
    own: Mapped[TokenAmount]
    nominators_count: Mapped[int] = mapped_column(Integer, nullable=False)
    commission: Mapped[float | None] = mapped_column(Float, nullable=True)
    blocked: Mapped[bool] = mapped_column(Boolean, nullable=False)
    timestamp: Mapped[Timestamp]

    __table_args__ = (PrimaryKeyConstraint("era", "address"),)


class NftRecord(Base):
    __tablename__ = "nft_records"

    contract_address: Mapped[Address]
    token_id: Mapped[str] = mapped_column(Text)
    owner: Mapped[IndexedAddress]
    last_transfer: Mapped[Timestamp]

    __table_args__ = (PrimaryKeyConstraint("contract_address", "token_id"),)


class ContractCall(Base):
    __tablename__ = "contract_calls"

    id: Mapped[TextPK]
    block_height: Mapped[IndexedBlockNumber]
    extrinsic_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    from_address: Mapped[IndexedAddress]
    to_address: Mapped[IndexedAddress]
    value: Mapped[TokenAmount]
    gas_limit: Mapped[str | None] = mapped_column(Text, nullable=True)
    gas_used: Mapped[str | None] = mapped_column(Text, nullable=True)
    input: Mapped[str | None] = mapped_column(Text, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[Timestamp]


class Extrinsic(Base):
    __tablename__ = "extrinsics"

    id: Mapped[TextPK]
    block_height: Mapped[IndexedBlockNumber]
    block_hash: Mapped[Hash32]
    extrinsic_index: Mapped[int] = mapped_column(Integer, nullable=False)
    hash: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    signer: Mapped[IndexedNullableAddress]
    section: Mapped[str] = mapped_column(Text, nullable=False)
    method: Mapped[str] = mapped_column(Text, nullable=False)
    args: Mapped[dict[str, Any] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    signature: Mapped[str | None] = mapped_column(Text, nullable=True)
    nonce: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    tip: Mapped[TokenAmount]
    fee: Mapped[TokenAmount]
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[Timestamp]
