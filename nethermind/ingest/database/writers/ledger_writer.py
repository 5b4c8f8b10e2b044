import logging
import time
from typing import Callable, Sequence

from sqlalchemy import Engine, case, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from nethermind.ingest.constants import ZERO_ADDRESS
from nethermind.ingest.exceptions import DatabaseError
from nethermind.ingest.types.block import (
    CONTRACT_TYPE_RANKS,
    ContractCallRow,
    ContractInfo,
    ContractType,
    CursorKey,
    EraValidatorRow,
    ExtrinsicRow,
    NftRow,
    ParsedBlock,
    StakingRow,
    TransferRow,
    row_to_dict,
)

from ..cursor_store import upsert_cursor
from ..models.ledger import (
    Account,
    Block,
    Contract,
    ContractCall,
    EraValidatorInfo,
    Extrinsic,
    NftRecord,
    StakingEvent,
    TokenHolder,
    Transfer,
)
from ..utils import dialect_insert, insert_ignore

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("ingest").getChild("db").getChild("ledger_writer")

HolderKey = tuple[str, str, str]


class LedgerWriter:
    """
    Applies decoded blocks to the ledger.  Every block is written in a single transaction, so a failure at any
    step leaves no trace of the block in the database.

    Replaying a block is safe.  Entity rows are inserted with conflict-ignore semantics, and balance deltas are only
    applied for transfers that did not exist before the write.

    Each write step is also exposed as a method taking an open session, so callers can compose their own
    transactions.  These methods never commit.
    """

    def __init__(self, db_engine: Engine, clock: Callable[[], float] = time.time):
        self.db_engine = db_engine
        self.session_factory = sessionmaker(db_engine)
        self.clock = clock

    def write_block(self, block: ParsedBlock, advance_cursor: CursorKey | None = None):
        """
        Writes a parsed block to the database in a single transaction.

        :param block: decoded block
        :param advance_cursor: if provided, the cursor is moved to this block within the same transaction
        :raises DatabaseError: if any write fails.  The transaction is rolled back before raising
        """
        try:
            with self.session_factory() as db_session, db_session.begin():
                self._write_block(db_session, block)
                if advance_cursor is not None:
                    upsert_cursor(db_session, advance_cursor, block.height, block.hash, int(self.clock()))
        except SQLAlchemyError as exc:
            logger.error(f"Rolled back write of block #{block.height}: {exc}")
            raise DatabaseError(f"Failed to write block #{block.height}") from exc

    def _write_block(self, db_session: Session, block: ParsedBlock):
        self.upsert_block(db_session, block)

        if block.is_empty():
            logger.debug(f"Block #{block.height} is empty.  Only updating heartbeat")
            return

        self.upsert_accounts(db_session, block.accounts, block.timestamp)
        self.upsert_contracts(db_session, block.contracts, block.timestamp)

        new_transfers = self.insert_transfers(db_session, block.transfers)
        self.apply_balance_deltas(db_session, new_transfers)

        self.insert_staking_events(db_session, block.staking_events)
        self.upsert_nfts(db_session, block.nfts)
        self.upsert_era_validators(db_session, block.era_validators)
        self.insert_contract_calls(db_session, block.contract_calls)
        self.insert_extrinsics(db_session, block.extrinsics)

    def register_native_token(self, address: str, name: str, decimals: int = 18):
        """Seeds the contract row for the chain's native currency, so native transfers have a token to reference"""
        native = ContractInfo(
            name=name,
            type=ContractType.erc20,
            data={"name": name, "symbol": name, "decimals": decimals},
        )
        try:
            with self.session_factory() as db_session, db_session.begin():
                self.upsert_contracts(db_session, {address.lower(): native}, int(self.clock()))
        except SQLAlchemyError as exc:
            raise DatabaseError(f"Failed to register native token {address}") from exc

    # -------------------------------------------------------
    #    Per-entity write steps
    # -------------------------------------------------------

    def upsert_block(self, db_session: Session, block: ParsedBlock):
        """Upserts the block row.  The processor timestamp is refreshed on every write as a liveness heartbeat"""
        statement = dialect_insert(db_session, Block).values(
            height=block.height,
            hash=block.hash,
            timestamp=block.timestamp,
            processor_timestamp=int(self.clock()),
        )
        db_session.execute(
            statement.on_conflict_do_update(
                index_elements=["height"],
                set_={
                    "hash": statement.excluded.hash,
                    "timestamp": statement.excluded.timestamp,
                    "processor_timestamp": statement.excluded.processor_timestamp,
                },
            )
        )

    @staticmethod
    def upsert_accounts(db_session: Session, accounts: dict[str, str | None], timestamp: int):
        """Inserts accounts.  Existing accounts only gain an EVM address, never lose one"""
        if not accounts:
            return

        statement = dialect_insert(db_session, Account).values(
            [
                {"address": address, "evm_address": evm_address, "timestamp": timestamp}
                for address, evm_address in accounts.items()
            ]
        )
        db_session.execute(
            statement.on_conflict_do_update(
                index_elements=["address"],
                set_={"evm_address": func.coalesce(statement.excluded.evm_address, Account.evm_address)},
            )
        )

    @staticmethod
    def upsert_contracts(db_session: Session, contracts: dict[str, ContractInfo], timestamp: int):
        """
        Upserts contracts.  A stored contract type is only replaced by a higher ranked type, and the display name is
        replaced along with it.  Metadata is only replaced by non-null metadata.
        """
        if not contracts:
            return

        statement = dialect_insert(db_session, Contract).values(
            [
                {
                    "address": address,
                    "name": info.name,
                    "type": info.type.value,
                    "contract_data": info.data,
                    "timestamp": timestamp,
                }
                for address, info in contracts.items()
            ]
        )
        is_upgrade = case(CONTRACT_TYPE_RANKS, value=statement.excluded.type, else_=0) > case(
            CONTRACT_TYPE_RANKS, value=Contract.type, else_=0
        )
        db_session.execute(
            statement.on_conflict_do_update(
                index_elements=["address"],
                set_={
                    "type": case((is_upgrade, statement.excluded.type), else_=Contract.type),
                    "name": case((is_upgrade, statement.excluded.name), else_=Contract.name),
                    "contract_data": func.coalesce(statement.excluded.contract_data, Contract.contract_data),
                },
            )
        )

    @staticmethod
    def insert_transfers(db_session: Session, transfers: Sequence[TransferRow]) -> list[TransferRow]:
        """
        Inserts transfers, ignoring transfers that already exist.

        :return: transfers that were not present before the insert
        """
        if not transfers:
            return []

        existing_ids = set(
            db_session.scalars(select(Transfer.id).where(Transfer.id.in_([t.id for t in transfers]))).all()
        )
        new_transfers = [t for t in transfers if t.id not in existing_ids]
        if len(new_transfers) < len(transfers):
            logger.info(f"Skipping {len(transfers) - len(new_transfers)} transfers that were already indexed")

        insert_ignore(db_session, Transfer, [row_to_dict(t) for t in new_transfers])
        return new_transfers

    @staticmethod
    def apply_balance_deltas(db_session: Session, transfers: Sequence[TransferRow]):
        """
        Applies signed balance changes for successful transfers.  Receivers are credited the full amount.  Senders
        are debited, with balances floored at zero.  Transfers from the zero address are mints, and have no debit.
        """
        holders: dict[HolderKey, TokenHolder] = {}

        def load_holder(transfer: TransferRow, address: str, evm_address: str | None) -> TokenHolder:
            key = (transfer.token_address, address, transfer.sub_position)
            if key in holders:
                holder = holders[key]
            else:
                holder = db_session.get(TokenHolder, key, with_for_update=True)
                if holder is None:
                    holder = TokenHolder(
                        token_address=transfer.token_address,
                        holder=address,
                        sub_position=transfer.sub_position,
                        evm_address=evm_address,
                        nft_id=transfer.nft_id,
                        balance=0,
                        timestamp=transfer.timestamp,
                    )
                    db_session.add(holder)
                holders[key] = holder

            if holder.evm_address is None and evm_address is not None:
                holder.evm_address = evm_address
            holder.timestamp = max(holder.timestamp, transfer.timestamp)
            return holder

        for transfer in transfers:
            if not transfer.success:
                continue

            amount = int(transfer.amount)

            receiver = load_holder(transfer, transfer.to_address, transfer.to_evm_address)
            receiver.balance = receiver.balance + amount

            if transfer.from_address.lower() == ZERO_ADDRESS:
                continue

            sender = load_holder(transfer, transfer.from_address, transfer.from_evm_address)
            if sender.balance < amount:
                logger.debug(
                    f"Transfer {transfer.id} debits {amount} from {transfer.from_address} with balance "
                    f"{sender.balance}.  Flooring balance at 0"
                )
            sender.balance = max(sender.balance - amount, 0)

        db_session.flush()

    @staticmethod
    def insert_staking_events(db_session: Session, staking_events: Sequence[StakingRow]):
        insert_ignore(db_session, StakingEvent, [row_to_dict(e) for e in staking_events])

    @staticmethod
    def upsert_nfts(db_session: Session, nfts: Sequence[NftRow]):
        """Upserts NFT ownership.  The most recent write wins, so ownership reflects the last block written"""
        # Last transfer of each instance within the block wins
        latest: dict[tuple[str, str], NftRow] = {}
        for nft in nfts:
            latest[(nft.contract_address, nft.token_id)] = nft

        if not latest:
            return

        statement = dialect_insert(db_session, NftRecord).values(
            [
                {
                    "contract_address": nft.contract_address,
                    "token_id": nft.token_id,
                    "owner": nft.owner,
                    "last_transfer": nft.timestamp,
                }
                for nft in latest.values()
            ]
        )
        db_session.execute(
            statement.on_conflict_do_update(
                index_elements=["contract_address", "token_id"],
                set_={
                    "owner": statement.excluded.owner,
                    "last_transfer": statement.excluded.last_transfer,
                },
            )
        )

    @staticmethod
    def upsert_era_validators(db_session: Session, validators: Sequence[EraValidatorRow]):
        unique = {(v.era, v.address): v for v in validators}
        if not unique:
            return

        statement = dialect_insert(db_session, EraValidatorInfo).values([row_to_dict(v) for v in unique.values()])
        db_session.execute(
            statement.on_conflict_do_update(
                index_elements=["era", "address"],
                set_={
                    col: getattr(statement.excluded, col)
                    for col in ("total", "own", "nominators_count", "commission", "blocked", "timestamp")
                },
            )
        )

    @staticmethod
    def insert_contract_calls(db_session: Session, calls: Sequence[ContractCallRow]):
        insert_ignore(db_session, ContractCall, [row_to_dict(c) for c in calls])

    @staticmethod
    def insert_extrinsics(db_session: Session, extrinsics: Sequence[ExtrinsicRow]):
        insert_ignore(db_session, Extrinsic, [row_to_dict(e) for e in extrinsics])
