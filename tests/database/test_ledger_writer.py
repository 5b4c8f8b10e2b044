import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from nethermind.ingest.constants import ZERO_ADDRESS
from nethermind.ingest.database.cursor_store import CursorStore
from nethermind.ingest.database.models import (
    Account,
    Block,
    Contract,
    EraValidatorInfo,
    Extrinsic,
    NftRecord,
    StakingEvent,
    TokenHolder,
    Transfer,
)
from nethermind.ingest.database.writers import LedgerWriter
from nethermind.ingest.exceptions import DatabaseError
from nethermind.ingest.types.block import (
    ContractInfo,
    ContractType,
    CursorKey,
    EraValidatorRow,
    ExtrinsicRow,
    NftRow,
    ParsedBlock,
    StakingRow,
    TransferType,
)
from tests.resources.blocks import make_block, make_transfer

TOKEN = "0x5555555555555555555555555555555555555555"
NFT = "0x6666666666666666666666666666666666666666"


@pytest.fixture(name="writer")
def fixture_writer(db_engine, clock):
    return LedgerWriter(db_engine, clock=clock)


def _balances(db_engine, token: str = TOKEN) -> dict[tuple[str, str], int]:
    with Session(db_engine) as session:
        holders = session.scalars(select(TokenHolder).where(TokenHolder.token_address == token)).all()
        return {(h.holder, h.sub_position): h.balance for h in holders}


def _count(db_engine, model) -> int:
    with Session(db_engine) as session:
        return session.scalar(select(func.count()).select_from(model))


def test_write_block_applies_balance_deltas(writer, db_engine, random_address):
    alice, bob = random_address(), random_address()
    block = make_block(
        [
            make_transfer(TOKEN, ZERO_ADDRESS, alice, 1_000, index=0),
            make_transfer(TOKEN, alice, bob, 400, index=1),
        ]
    )

    writer.write_block(block)

    assert _balances(db_engine) == {(alice, "0"): 600, (bob, "0"): 400}
    assert _count(db_engine, Transfer) == 2
    assert _count(db_engine, Account) == 3


def test_replaying_block_is_idempotent(writer, db_engine, random_address):
    alice, bob = random_address(), random_address()
    block = make_block(
        [
            make_transfer(TOKEN, ZERO_ADDRESS, alice, 1_000, index=0),
            make_transfer(TOKEN, alice, bob, 250, index=1),
        ]
    )
    block.staking_events.append(StakingRow(id="0000000100-stk-000", signer=alice, type="Reward", amount="5", timestamp=0))

    writer.write_block(block)
    first_balances = _balances(db_engine)

    writer.write_block(block)
    writer.write_block(block)

    assert _balances(db_engine) == first_balances == {(alice, "0"): 750, (bob, "0"): 250}
    assert _count(db_engine, Transfer) == 2
    assert _count(db_engine, StakingEvent) == 1


def test_partially_indexed_block_only_applies_new_transfers(writer, db_engine, random_address):
    alice, bob = random_address(), random_address()
    mint = make_transfer(TOKEN, ZERO_ADDRESS, alice, 1_000, index=0)
    spend = make_transfer(TOKEN, alice, bob, 300, index=1)

    writer.write_block(make_block([mint]))
    writer.write_block(make_block([mint, spend]))

    assert _balances(db_engine) == {(alice, "0"): 700, (bob, "0"): 300}


def test_debits_are_floored_at_zero(writer, db_engine, random_address):
    alice, bob = random_address(), random_address()

    writer.write_block(make_block([make_transfer(TOKEN, alice, bob, 500)]))

    assert _balances(db_engine) == {(alice, "0"): 0, (bob, "0"): 500}


def test_out_of_order_legs_never_go_negative(writer, db_engine, random_address):
    alice, bob = random_address(), random_address()

    # Backfill delivers the spend before the mint that funded it
    writer.write_block(make_block([make_transfer(TOKEN, alice, bob, 300, height=200)], height=200))
    writer.write_block(make_block([make_transfer(TOKEN, ZERO_ADDRESS, alice, 1_000, height=150)], height=150))

    balances = _balances(db_engine)
    assert balances[(bob, "0")] == 300
    assert balances[(alice, "0")] == 1_000
    assert all(balance >= 0 for balance in balances.values())


def test_mints_have_no_debit_leg(writer, db_engine, random_address):
    alice = random_address()

    writer.write_block(make_block([make_transfer(TOKEN, ZERO_ADDRESS, alice, 10)]))

    assert (ZERO_ADDRESS, "0") not in _balances(db_engine)


def test_failed_transfers_do_not_move_balances(writer, db_engine, random_address):
    alice, bob = random_address(), random_address()

    writer.write_block(make_block([make_transfer(TOKEN, alice, bob, 500, success=False)]))

    assert _count(db_engine, Transfer) == 1
    assert _balances(db_engine) == {}


def test_uint256_balances_are_exact(writer, db_engine, random_address):
    alice, bob = random_address(), random_address()
    supply = 2**255 + 12345

    writer.write_block(
        make_block(
            [
                make_transfer(TOKEN, ZERO_ADDRESS, alice, supply, index=0),
                make_transfer(TOKEN, alice, bob, 1, index=1),
            ]
        )
    )

    assert _balances(db_engine) == {(alice, "0"): supply - 1, (bob, "0"): 1}


def test_nft_holdings_use_sub_positions(writer, db_engine, random_address):
    alice, bob = random_address(), random_address()
    transfers = [
        make_transfer(NFT, ZERO_ADDRESS, alice, 1, index=0, transfer_type=TransferType.erc721, nft_id=f"{NFT}-1"),
        make_transfer(NFT, ZERO_ADDRESS, alice, 1, index=1, transfer_type=TransferType.erc721, nft_id=f"{NFT}-2"),
        make_transfer(NFT, alice, bob, 1, index=2, transfer_type=TransferType.erc721, nft_id=f"{NFT}-2"),
    ]
    block = make_block(transfers)
    block.nfts.extend(
        [
            NftRow(contract_address=NFT, token_id="1", owner=alice, timestamp=block.timestamp),
            NftRow(contract_address=NFT, token_id="2", owner=alice, timestamp=block.timestamp),
            NftRow(contract_address=NFT, token_id="2", owner=bob, timestamp=block.timestamp),
        ]
    )

    writer.write_block(block)

    assert _balances(db_engine, NFT) == {(alice, "1"): 1, (alice, "2"): 0, (bob, "2"): 1}
    with Session(db_engine) as session:
        assert session.get(NftRecord, (NFT, "2")).owner == bob
        assert session.get(TokenHolder, (NFT, bob, "2")).nft_id == f"{NFT}-2"


def test_nft_ownership_is_last_write_wins(writer, db_engine, random_address):
    alice, bob = random_address(), random_address()

    first = make_block(height=200, timestamp=2_000)
    first.add_account(alice)
    first.nfts.append(NftRow(contract_address=NFT, token_id="5", owner=alice, timestamp=2_000))

    second = make_block(height=300, timestamp=3_000)
    second.add_account(bob)
    second.nfts.append(NftRow(contract_address=NFT, token_id="5", owner=bob, timestamp=3_000))

    writer.write_block(first)
    writer.write_block(second)

    with Session(db_engine) as session:
        record = session.get(NftRecord, (NFT, "5"))
        assert record.owner == bob
        assert record.last_transfer == 3_000
    assert _count(db_engine, NftRecord) == 1


def _contract_block(contract_type: ContractType, name: str, data=None) -> ParsedBlock:
    block = make_block()
    block.contracts[NFT] = ContractInfo(name=name, type=contract_type, data=data)
    return block


def test_contract_type_is_never_downgraded(writer, db_engine):
    writer.write_block(_contract_block(ContractType.erc721, "Reef Punks"))
    writer.write_block(_contract_block(ContractType.erc20, "ERC20-0x666666"))
    writer.write_block(_contract_block(ContractType.erc1155, "ERC1155-0x666666"))
    writer.write_block(_contract_block(ContractType.contract, "Contract-0x666666"))

    with Session(db_engine) as session:
        contract = session.get(Contract, NFT)
        assert contract.type == "ERC721"
        assert contract.name == "Reef Punks"


def test_contract_type_upgrade_replaces_name(writer, db_engine):
    writer.write_block(_contract_block(ContractType.contract, "Contract-0x666666", data={"verified": True}))
    writer.write_block(_contract_block(ContractType.erc20, "Reef Punks Fungible"))
    writer.write_block(_contract_block(ContractType.erc721, "Reef Punks"))

    with Session(db_engine) as session:
        contract = session.get(Contract, NFT)
        assert contract.type == "ERC721"
        assert contract.name == "Reef Punks"
        assert contract.contract_data == {"verified": True}


def test_account_evm_address_is_not_cleared(writer, db_engine):
    native = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
    evm = "0x1111111111111111111111111111111111111111"

    linked = make_block(height=1)
    linked.add_account(native, evm)
    unlinked = make_block(height=2)
    unlinked.add_account(native)

    writer.write_block(linked)
    writer.write_block(unlinked)

    with Session(db_engine) as session:
        assert session.get(Account, native).evm_address == evm


def test_empty_block_updates_heartbeat(writer, db_engine):
    block = make_block(height=42)
    assert block.is_empty()

    writer.write_block(block)
    with Session(db_engine) as session:
        first_heartbeat = session.get(Block, 42).processor_timestamp

    writer.write_block(block)
    with Session(db_engine) as session:
        stored = session.get(Block, 42)
        assert stored.processor_timestamp > first_heartbeat
        assert stored.hash == block.hash
        assert stored.timestamp == block.timestamp

    assert _count(db_engine, Account) == 0
    assert _count(db_engine, Transfer) == 0


def test_era_validators_are_upserted(writer, db_engine):
    validator = "5GNJqTPyNqANBkUVMN1LPPrxXnFouWXoe2wNSmmEoLctxiZY"

    def _block(total: str) -> ParsedBlock:
        block = make_block()
        block.add_account(validator)
        block.era_validators.append(
            EraValidatorRow(
                era=9, address=validator, total=total, own="1", nominators_count=2, commission=5.0, timestamp=1
            )
        )
        return block

    writer.write_block(_block("100"))
    writer.write_block(_block("250"))

    with Session(db_engine) as session:
        assert session.get(EraValidatorInfo, (9, validator)).total == "250"
    assert _count(db_engine, EraValidatorInfo) == 1


def test_write_block_advances_cursor(writer, db_engine):
    writer.write_block(make_block(height=812), advance_cursor=CursorKey.main)

    assert CursorStore(db_engine).get_cursor(CursorKey.main) == 812
    assert CursorStore(db_engine).get_cursor(CursorKey.backfill) is None


def test_failed_write_rolls_back_block(writer, db_engine, random_address):
    alice, bob = random_address(), random_address()
    block = make_block(
        [make_transfer(TOKEN, ZERO_ADDRESS, alice, 1_000, index=0), make_transfer(TOKEN, alice, bob, 1, index=1)],
        height=900,
    )
    block.extrinsics.append(
        ExtrinsicRow(
            id="0000000900-001",
            block_height=900,
            block_hash=block.hash,
            extrinsic_index=1,
            hash=None,  # violates NOT NULL
            signer=alice,
            section="balances",
            method="transfer",
            signature=None,
            nonce=None,
            tip="0",
            success=True,
            error_message=None,
            timestamp=block.timestamp,
        )
    )

    with pytest.raises(DatabaseError):
        writer.write_block(block, advance_cursor=CursorKey.main)

    with Session(db_engine) as session:
        assert session.get(Block, 900) is None
    assert _count(db_engine, Transfer) == 0
    assert _count(db_engine, Extrinsic) == 0
    assert _balances(db_engine) == {}
    assert CursorStore(db_engine).get_checkpoint(CursorKey.main) is None


def test_register_native_token(writer, db_engine):
    native = "0x0000000000000000000000000000000001000000"

    writer.register_native_token(native, "REEF")
    writer.register_native_token(native, "REEF")

    with Session(db_engine) as session:
        contract = session.get(Contract, native)
        assert contract.type == "ERC20"
        assert contract.contract_data == {"name": "REEF", "symbol": "REEF", "decimals": 18}
