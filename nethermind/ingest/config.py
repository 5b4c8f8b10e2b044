import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

from .constants import NATIVE_TOKEN_ADDRESS, NATIVE_TOKEN_NAME


@dataclass
class IngestConfig:
    """
    Runtime configuration for the ingestion pipeline.  Values are read from the environment, after loading a
    ``.env`` file from the working directory if one exists.
    """

    db_url: str | None = None
    json_rpc: str | None = None
    token_name_cache_size: int = 4096
    native_token_address: str = NATIVE_TOKEN_ADDRESS
    native_token_name: str = NATIVE_TOKEN_NAME

    @classmethod
    def from_env(cls) -> "IngestConfig":
        """
        Builds a config from environment variables:

            * ``DB_URL`` -- SQLAlchemy database url
            * ``JSON_RPC`` -- chain JSON RPC endpoint
            * ``TOKEN_NAME_CACHE_SIZE`` -- max cached token names.  Default: 4096
            * ``NATIVE_TOKEN_ADDRESS`` -- contract address used for native currency transfers
            * ``NATIVE_TOKEN_NAME`` -- display name of the native currency
        """
        load_dotenv(find_dotenv(usecwd=True))

        cache_size = os.environ.get("TOKEN_NAME_CACHE_SIZE")
        if cache_size is not None and (not cache_size.isdigit() or int(cache_size) < 1):
            raise ValueError(f"TOKEN_NAME_CACHE_SIZE must be a positive integer, got '{cache_size}'")

        return cls(
            db_url=os.environ.get("DB_URL"),
            json_rpc=os.environ.get("JSON_RPC"),
            token_name_cache_size=int(cache_size) if cache_size else 4096,
            native_token_address=os.environ.get("NATIVE_TOKEN_ADDRESS", NATIVE_TOKEN_ADDRESS).lower(),
            native_token_name=os.environ.get("NATIVE_TOKEN_NAME", NATIVE_TOKEN_NAME),
        )
