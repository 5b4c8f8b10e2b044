import logging
import os
from logging import Logger

import click
from rich.console import Console
from rich.logging import RichHandler
from sqlalchemy import Engine, create_engine

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("ingest").getChild("cli")


def cli_logger_config(instrument_logger: Logger) -> Console:
    rich_console = Console()
    instrument_logger.handlers.clear()

    instrument_logger.addHandler(RichHandler(show_path=False, console=rich_console))
    instrument_logger.setLevel(logging.INFO)
    return rich_console


def group_options(*options):
    """Decorator to group multiple click options together"""

    def wrapper(function):
        for option in reversed(options):
            function = option(function)
        return function

    return wrapper


# -------------------------------------------------------
#    CLI Secrets, Connections, and Configurations
# -------------------------------------------------------
db_url_option = click.option(
    "--db-url",
    "-db",
    "db_url",
    default=lambda: os.environ.get("DB_URL"),
    help="SQLAlchemy DB URL of the ledger database.  If not provided, will use the DB_URL environment variable",
)
json_rpc_option = click.option(
    "--json-rpc",
    "-j",
    "json_rpc",
    default=lambda: os.environ.get("JSON_RPC"),
    help="JSON RPC endpoint of the chain.  If not provided, will use the JSON_RPC environment variable",
)
native_token_address_option = click.option(
    "--native-token-address",
    "native_token_address",
    default=None,
    help="Contract address used for native currency transfers.  Defaults to the NATIVE_TOKEN_ADDRESS environment "
    "variable, or the chain's native token precompile",
)
native_token_name_option = click.option(
    "--native-token-name",
    "native_token_name",
    default=None,
    help="Display name of the native currency.  Defaults to the NATIVE_TOKEN_NAME environment variable, or REEF",
)


def create_cli_engine(db_url: str | None) -> Engine:
    """Creates a database engine, exiting if no database url was configured"""

    if db_url is None:
        logger.error("Database URL not specified... Set with '--db-url' option or 'DB_URL' environment variable")
        raise SystemExit(1)

    return create_engine(db_url)
