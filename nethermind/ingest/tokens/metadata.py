import asyncio
import logging

from eth_abi import decode as eth_abi_decode
from eth_typing import HexStr

from nethermind.ingest.constants import NAME_SELECTOR
from nethermind.ingest.context import TokenNameCache
from nethermind.ingest.exceptions import DecodingError
from nethermind.ingest.rpc.facade import EvmCaller
from nethermind.ingest.types.block import ContractInfo
from nethermind.ingest.utils import placeholder_name

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("ingest").getChild("tokens").getChild("metadata")

MAX_NAME_LENGTH = 100


def decode_name_response(response: HexStr) -> str:
    """
    Decodes the return value of a ``name()`` call.  Supports ABI encoded strings, as well as the bytes32 names
    returned by some early tokens.  Names must be printable ASCII and shorter than 100 characters.

    >>> decode_name_response(
    ...     "0x0000000000000000000000000000000000000000000000000000000000000020"
    ...     "0000000000000000000000000000000000000000000000000000000000000004"
    ...     "5265656600000000000000000000000000000000000000000000000000000000"
    ... )
    'Reef'

    :raises DecodingError: if the response is empty, malformed, or decodes to an unusable name
    """
    if not response or len(response) <= 2:
        raise DecodingError("Empty name() response")

    try:
        raw = bytes.fromhex(response[2:] if response[:2] == "0x" else response)
    except ValueError as exc:
        raise DecodingError(f"name() response is not valid hex: {response[:20]}...") from exc

    if len(raw) == 32:
        name = raw.rstrip(b"\x00").decode("ascii", errors="replace").strip()
    else:
        try:
            name = eth_abi_decode(["string"], raw)[0].strip()
        except Exception as exc:  # eth_abi raises a variety of decoding errors
            raise DecodingError(f"Could not ABI decode name() response: {exc}") from exc

    if not name or len(name) >= MAX_NAME_LENGTH or not name.isascii() or not name.isprintable():
        raise DecodingError(f"Invalid token name decoded: {name!r}")

    return name


async def fetch_token_name(rpc: EvmCaller, address: str, fallback: str, cache: TokenNameCache) -> str:
    """
    Returns the on-chain name of a token contract, or ``fallback`` if the name cannot be retrieved.  Never raises.

    :param rpc: facade used for read-only EVM calls
    :param address: token contract address
    :param fallback: deterministic name to use if the lookup fails
    :param cache: process wide name cache
    """
    cached = cache.get(address)
    if cached is not None:
        return cached

    try:
        name = decode_name_response(await rpc.call(address, HexStr(NAME_SELECTOR)))
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.debug(f"name() lookup failed for {address}, using '{fallback}': {exc}")
        name = fallback

    cache.set(address, name)
    return name


async def resolve_contract_names(
    rpc: EvmCaller,
    contracts: dict[str, ContractInfo],
    cache: TokenNameCache,
    native_token_address: str,
) -> int:
    """
    Replaces placeholder names of token contracts with on-chain names.  Lookups for all contracts are executed
    concurrently.  Generic contracts and the native token are skipped.

    :return: number of contracts whose names were looked up
    """
    pending = [
        (address, info)
        for address, info in contracts.items()
        if info.type.is_token
        and address != native_token_address.lower()
        and info.name == placeholder_name(info.type.value, address)
    ]
    if not pending:
        return 0

    names = await asyncio.gather(
        *[fetch_token_name(rpc, address, info.name, cache) for address, info in pending]
    )
    for (_, info), name in zip(pending, names):
        info.name = name

    return len(pending)
