import asyncio

import aiohttp
import click
from rich.table import Table

from nethermind.ingest.cli.utils import (
    cli_logger_config,
    create_cli_engine,
    db_url_option,
    group_options,
    json_rpc_option,
    native_token_address_option,
    native_token_name_option,
)
from nethermind.ingest.config import IngestConfig
from nethermind.ingest.database.cursor_store import CursorStore
from nethermind.ingest.database.migrations import migrate_up
from nethermind.ingest.database.writers import LedgerWriter
from nethermind.ingest.exceptions import RPCError
from nethermind.ingest.rpc.json_rpc import JsonRpcClient
from nethermind.ingest.types.block import CursorKey

from .utils import logger, root_logger


@click.group()
def ingest_cli():
    """Command Line Interface for the Nethermind block ingestion pipeline"""


@ingest_cli.command(name="migrate-up")
@group_options(db_url_option, native_token_address_option, native_token_name_option)
def cli_migrate_up(db_url, native_token_address, native_token_name):
    """
    Create ledger tables and register the native token
    """
    config = IngestConfig.from_env()
    db_engine = create_cli_engine(db_url or config.db_url)
    click.echo("Starting Database Migrations")

    migrate_up(db_engine)

    token_address = (native_token_address or config.native_token_address).lower()
    token_name = native_token_name or config.native_token_name
    LedgerWriter(db_engine).register_native_token(token_address, token_name)

    click.echo(f"Registered native token {token_name} at {token_address}")
    click.echo("Database Migration Complete")


async def _finalized_height(json_rpc: str) -> int:
    async with JsonRpcClient(json_rpc) as rpc:
        finalized_hash = await rpc.get_finalized_head()
        return (await rpc.get_header(finalized_hash)).number


@ingest_cli.command(name="cursors")
@group_options(db_url_option, json_rpc_option)
def cli_cursors(db_url, json_rpc):
    """
    Print indexing progress of the main and backfill cursors.  If a JSON RPC endpoint is configured, the lag of
    the main cursor behind the finalized head is also shown
    """
    console = cli_logger_config(root_logger)
    config = IngestConfig.from_env()
    cursor_store = CursorStore(create_cli_engine(db_url or config.db_url))

    finalized_height = None
    json_rpc = json_rpc or config.json_rpc
    if json_rpc:
        try:
            finalized_height = asyncio.run(_finalized_height(json_rpc))
        except (RPCError, aiohttp.ClientError) as exc:
            logger.warning(f"Could not fetch finalized head from {json_rpc}: {exc}")

    table = Table(title="Indexer Cursors")
    table.add_column("Cursor")
    table.add_column("Block", justify="right")
    table.add_column("Block Hash")
    table.add_column("Updated At", justify="right")

    for key in CursorKey:
        checkpoint = cursor_store.get_checkpoint(key)
        if checkpoint is None:
            table.add_row(key.value, "-", "-", "-")
        else:
            table.add_row(
                key.value,
                str(checkpoint.height),
                checkpoint.block_hash or "-",
                str(checkpoint.updated_at),
            )

    console.print(table)

    if finalized_height is not None:
        main_height = cursor_store.get_cursor(CursorKey.main)
        console.print(f"Finalized head: {finalized_height}  Main cursor lag: {max(finalized_height - main_height, 0)}")
