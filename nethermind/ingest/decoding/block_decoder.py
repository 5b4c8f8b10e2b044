import asyncio
import logging
import time
from typing import Any

from nethermind.ingest.constants import INHERENT_SECTIONS, STAKING_EVENT_TYPES
from nethermind.ingest.context import PipelineContext
from nethermind.ingest.rpc.facade import ChainRPC
from nethermind.ingest.staking.era_snapshot import snapshot_era
from nethermind.ingest.tokens.metadata import resolve_contract_names
from nethermind.ingest.types.block import (
    ContractCallRow,
    ContractInfo,
    ContractType,
    DecodeResult,
    ExtrinsicRow,
    NftRow,
    ParsedBlock,
    StakingRow,
    TransferRow,
    TransferType,
)
from nethermind.ingest.types.chain import ChainEvent, ChainExtrinsic, EvmLog
from nethermind.ingest.utils import (
    extrinsic_id,
    is_valid_evm_address,
    placeholder_name,
    staking_event_id,
    transfer_id,
)

from .swaps import detect_swaps
from .transfers import ClassifiedLog, classify_log, upgrade_contract_type

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("ingest").getChild("decoding").getChild("block")

# pylint: disable=too-many-arguments,too-many-locals


def _first_line(exc: Exception) -> str:
    return str(exc).split("\n", maxsplit=1)[0]


def _extrinsic_results(events: list[ChainEvent]) -> dict[int, tuple[bool, str | None]]:
    """Maps extrinsic index --> (success, error message) from system.ExtrinsicSuccess & system.ExtrinsicFailed"""
    results: dict[int, tuple[bool, str | None]] = {}
    for event in events:
        if event.extrinsic_index is None or event.section != "system":
            continue
        if event.method == "ExtrinsicSuccess":
            results[event.extrinsic_index] = (True, None)
        elif event.method == "ExtrinsicFailed":
            error = str(event.data[0]) if event.data else "Unknown error"
            results[event.extrinsic_index] = (False, error)
    return results


class BlockDecoder:
    """
    Decodes the events and extrinsics of a single block into a :class:`ParsedBlock`.  One decoder is created per
    block; the pipeline context carries state between blocks.
    """

    def __init__(
        self,
        block: ParsedBlock,
        context: PipelineContext,
        extrinsic_results: dict[int, tuple[bool, str | None]],
    ):
        self.block = block
        self.context = context
        self.extrinsic_results = extrinsic_results
        self.extrinsic_hashes: dict[int, str] = {}

        self.transfer_index = 0
        self.staking_index = 0

    def _register_contract(self, address: str, contract_type: ContractType):
        existing = self.block.contracts.get(address)
        new_type = upgrade_contract_type(existing.type if existing else None, contract_type)
        if existing is None or new_type != existing.type:
            self.block.contracts[address] = ContractInfo(name=placeholder_name(new_type.value, address), type=new_type)

    def _next_transfer_id(self) -> tuple[str, int]:
        index = self.transfer_index
        self.transfer_index += 1
        return transfer_id(self.block.height, self.block.hash, index), index

    def _owning_extrinsic(self, event: ChainEvent) -> tuple[str | None, str | None]:
        if event.extrinsic_index is None:
            return None, None
        return (
            extrinsic_id(self.block.height, event.extrinsic_index),
            self.extrinsic_hashes.get(event.extrinsic_index),
        )

    def add_extrinsics(self, extrinsics: list[ChainExtrinsic]):
        for index, extrinsic in enumerate(extrinsics):
            if extrinsic.section in INHERENT_SECTIONS:
                continue

            self.extrinsic_hashes[index] = extrinsic.hash
            success, error_message = self.extrinsic_results.get(index, (True, None))
            ext_id = extrinsic_id(self.block.height, index)

            self.block.extrinsics.append(
                ExtrinsicRow(
                    id=ext_id,
                    block_height=self.block.height,
                    block_hash=self.block.hash,
                    extrinsic_index=index,
                    hash=extrinsic.hash,
                    signer=extrinsic.signer,
                    section=extrinsic.section,
                    method=extrinsic.method,
                    signature=extrinsic.signature,
                    nonce=extrinsic.nonce,
                    tip=str(extrinsic.tip),
                    success=success,
                    error_message=error_message,
                    timestamp=self.block.timestamp,
                )
            )
            if extrinsic.signer:
                self.block.add_account(extrinsic.signer)

            if extrinsic.section == "evm" and extrinsic.method == "call" and extrinsic.signer:
                try:
                    self._add_contract_call(extrinsic, ext_id, success, error_message)
                except (IndexError, TypeError, AttributeError) as exc:
                    logger.debug(f"Skipping malformed evm.call {ext_id}: {exc}")

    def _add_contract_call(self, extrinsic: ChainExtrinsic, ext_id: str, success: bool, error_message: str | None):
        # evm.call(target, input, value, gas_limit, ...)
        args = extrinsic.args
        target = str(args[0]).lower() if args else ""
        if not is_valid_evm_address(target):
            return

        call_data = str(args[1]) if len(args) > 1 and args[1] is not None else None

        if target not in self.block.contracts:
            self.block.contracts[target] = ContractInfo(
                name=placeholder_name(ContractType.contract.value, target),
                type=ContractType.contract,
            )

        self.block.contract_calls.append(
            ContractCallRow(
                id=f"{ext_id}-call",
                block_height=self.block.height,
                extrinsic_id=ext_id,
                from_address=str(extrinsic.signer),
                to_address=target,
                value=str(args[2]) if len(args) > 2 else "0",
                gas_limit=str(args[3]) if len(args) > 3 else None,
                input=call_data[:10] if call_data else None,  # 4 byte selector
                success=success,
                error_message=error_message,
                timestamp=self.block.timestamp,
            )
        )

    def add_native_transfer(self, event: ChainEvent):
        from_address, to_address, amount = (str(v) for v in event.data[:3])
        int(amount)  # amounts must be integral

        self.block.add_account(from_address)
        self.block.add_account(to_address)

        ext_id, ext_hash = self._owning_extrinsic(event)
        row_id, index = self._next_transfer_id()
        self.block.transfers.append(
            TransferRow(
                id=row_id,
                block_height=self.block.height,
                block_hash=self.block.hash,
                extrinsic_id=ext_id,
                extrinsic_hash=ext_hash,
                extrinsic_index=event.extrinsic_index,
                event_index=index,
                from_address=from_address,
                to_address=to_address,
                token_address=self.context.native_token_address,
                from_evm_address=None,
                to_evm_address=None,
                type=TransferType.native,
                amount=amount,
                timestamp=self.block.timestamp,
            )
        )

    def add_evm_log(self, event: ChainEvent):
        log = _coerce_log(event.data[0]) if event.data else None
        if log is None:
            return

        classified = classify_log(log)
        if classified is None:
            return

        self.block.add_account(classified.from_address, classified.from_address)
        self.block.add_account(classified.to_address, classified.to_address)
        if classified.contract_address:
            self._register_contract(classified.contract_address, classified.contract_type)

        self._add_token_transfer(event, classified)

    def _add_token_transfer(self, event: ChainEvent, classified: ClassifiedLog):
        nft_id = None
        if classified.token_id is not None:
            nft = NftRow(
                contract_address=classified.contract_address,
                token_id=str(classified.token_id),
                owner=classified.to_address,
                timestamp=self.block.timestamp,
            )
            nft_id = nft.id
            self.block.nfts.append(nft)

        ext_id, ext_hash = self._owning_extrinsic(event)
        row_id, index = self._next_transfer_id()
        self.block.transfers.append(
            TransferRow(
                id=row_id,
                block_height=self.block.height,
                block_hash=self.block.hash,
                extrinsic_id=ext_id,
                extrinsic_hash=ext_hash,
                extrinsic_index=event.extrinsic_index,
                event_index=index,
                from_address=classified.from_address,
                to_address=classified.to_address,
                token_address=classified.contract_address,
                from_evm_address=classified.from_address,
                to_evm_address=classified.to_address,
                type=classified.standard,
                amount=str(classified.amount),
                nft_id=nft_id,
                timestamp=self.block.timestamp,
            )
        )

    def add_staking_event(self, event: ChainEvent):
        staking_type = STAKING_EVENT_TYPES.get(event.method)
        if staking_type is None or not event.data:
            return

        staker = str(event.data[0] or "")
        if not staker:
            return

        self.block.add_account(staker)
        self.block.staking_events.append(
            StakingRow(
                id=staking_event_id(self.block.height, self.staking_index),
                signer=staker,
                type=staking_type,
                amount=str(event.data[1]) if len(event.data) > 1 else "0",
                timestamp=self.block.timestamp,
            )
        )
        self.staking_index += 1

    def add_events(self, events: list[ChainEvent], skip_staking: bool):
        for event in events:
            try:
                if event.section == "balances" and event.method == "Transfer":
                    self.add_native_transfer(event)
                elif event.section == "evm" and event.method == "Log":
                    self.add_evm_log(event)
                elif event.section == "staking" and not skip_staking:
                    self.add_staking_event(event)
            except (ValueError, TypeError, IndexError, AttributeError) as exc:
                logger.debug(
                    f"Skipping malformed {event.section}.{event.method} event in block #{self.block.height}: {exc}"
                )


def _coerce_log(value: Any) -> EvmLog | None:
    """Accepts an :class:`EvmLog`, or a mapping with address, topics & data keys"""
    if isinstance(value, EvmLog):
        return value
    if isinstance(value, dict) and value.get("topics"):
        return EvmLog(
            address=str(value.get("address") or ""),
            topics=[str(t) for t in value["topics"]],
            data=str(value.get("data") or "0x"),
        )
    return None


async def decode_block(
    rpc: ChainRPC,
    block_hash: str,
    context: PipelineContext,
    skip_extrinsics: bool = False,
    skip_staking: bool = False,
) -> DecodeResult:
    """
    Fetches and decodes a block into a normalized :class:`ParsedBlock`.

    Failing to decode events or the block timestamp does not raise.  Instead, a degraded result is returned that
    contains only the block height, hash, and a best-effort timestamp, so the block can still be checkpointed.
    Failing to fetch the block body only drops extrinsics and contract calls.

    :param rpc: chain facade
    :param block_hash: hash of the block to decode
    :param context: process wide pipeline state (era tracking, token name cache)
    :param skip_extrinsics: skip fetching the block body.  Used when backfilling
    :param skip_staking: skip staking events and era snapshots
    :return: :class:`DecodeResult`.  ``new_era`` is set when the block starts an era not yet seen by the context
    """
    header, state = await asyncio.gather(rpc.get_header(block_hash), rpc.state_at(block_hash))
    block = ParsedBlock(height=header.number, hash=block_hash, timestamp=int(time.time()))

    try:
        events, timestamp_ms = await asyncio.gather(state.query_events(), state.query_timestamp())
        block.timestamp = int(timestamp_ms) // 1000
    except Exception as exc:  # pylint: disable=broad-exception-caught
        reason = f"failed to decode events/timestamp: {_first_line(exc)}"
        logger.warning(f"Skip block #{block.height}: {reason}")
        return DecodeResult.degraded(block, reason)

    extrinsics: list[ChainExtrinsic] = []
    if not skip_extrinsics:
        try:
            extrinsics = (await rpc.get_block_body(block_hash)).extrinsics
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning(f"Block #{block.height}: block body fetch failed, extrinsics will be empty: {exc}")

    decoder = BlockDecoder(block, context, _extrinsic_results(events))
    decoder.add_extrinsics(extrinsics)
    decoder.add_events(events, skip_staking=skip_staking)

    new_era = None
    if not skip_staking:
        new_era = await snapshot_era(state, block, context)

    swap_legs = detect_swaps(block.transfers)
    if swap_legs:
        logger.debug(f"Block #{block.height}: marked {swap_legs} swap legs")

    await resolve_contract_names(rpc, block.contracts, context.token_names, context.native_token_address)

    return DecodeResult.ok(block, new_era=new_era)
