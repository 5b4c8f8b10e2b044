import asyncio
import logging

from sqlalchemy import Engine

from nethermind.ingest.database.writers import LedgerWriter
from nethermind.ingest.decoding import decode_block
from nethermind.ingest.rpc.facade import ChainRPC
from nethermind.ingest.types.block import CursorKey, DecodeResult

from .config import IngestConfig
from .context import PipelineContext

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("ingest").getChild("pipeline")


class IngestionPipeline:
    """
    Decodes blocks and writes them to the ledger, advancing the cursor of the traversal direction in the same
    transaction as the block data.

    Blocks processed on the ``main`` cursor are fully decoded.  Blocks processed on the ``backfill`` cursor skip
    extrinsics and staking, since era snapshots are only meaningful while following the chain tip.

    .. warning::
        Process at most one block at a time per pipeline.  Balance deltas are applied in processing order, and era
        transitions are detected against the previously processed block.
    """

    def __init__(
        self,
        rpc: ChainRPC,
        db_engine: Engine,
        context: PipelineContext | None = None,
        config: IngestConfig | None = None,
    ):
        self.rpc = rpc
        self.context = context or PipelineContext.from_config(config or IngestConfig())
        self.writer = LedgerWriter(db_engine)

    async def process_block(self, block_hash: str, direction: CursorKey = CursorKey.main) -> DecodeResult:
        """
        Decodes, writes and checkpoints a single block.

        The database write is blocking, and runs in a worker thread so the event loop keeps serving other tasks.
        The context's era is only advanced once the write has committed, so a failed block is re-snapshotted when
        it is retried.

        :param block_hash: hash of the block to process
        :param direction: cursor to advance once the block is written
        :return: the decode result.  Degraded blocks are written and checkpointed, but carry no entities
        :raises DatabaseError: if the block could not be written.  The cursor and context are not advanced
        """
        is_backfill = direction == CursorKey.backfill
        result = await decode_block(
            self.rpc,
            block_hash,
            self.context,
            skip_extrinsics=is_backfill,
            skip_staking=is_backfill,
        )

        await asyncio.to_thread(self.writer.write_block, result.block, direction)

        if result.new_era is not None:
            self.context.last_known_era = result.new_era

        if result.is_degraded:
            logger.warning(f"[{direction.value}] #{result.block.height}: degraded ({result.reason})")
        else:
            logger.info(f"[{direction.value}] #{result.block.height}: {result.block.format_stats()}")

        return result
