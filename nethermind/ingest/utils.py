from typing import Any

from eth_utils import is_hex_address


def is_valid_evm_address(value: Any) -> bool:
    """
    Returns True if value is a 0x prefixed, 20 byte hex address.

    >>> is_valid_evm_address("0x0000000000000000000000000000000001000000")
    True
    >>> is_valid_evm_address("0x1234")
    False
    """
    return isinstance(value, str) and value[:2] == "0x" and is_hex_address(value)


def topic_to_address(topic: str) -> str:
    """
    Converts a 32 byte left-padded topic into a lowercase 20 byte address.  Topics that are too short produce an
    invalid address, which can be detected with :func:`is_valid_evm_address`
    """
    return ("0x" + str(topic)[-40:]).lower()


def hex_to_int(value: str | int) -> int:
    """Converts a hex string (or int) to an int.  Raises ValueError on empty or non-hex input"""
    if isinstance(value, int):
        return value
    if value in ("", "0x"):
        raise ValueError("Cannot convert empty hex string to int")
    return int(value, 16)


def pad_block_number(height: int) -> str:
    """Zero pads block heights so entity ids sort lexicographically by height"""
    return str(height).zfill(10)


def short_hash(block_hash: str) -> str:
    """First 5 hex characters of a block hash, used to disambiguate ids across forks"""
    return block_hash[2:7]


def transfer_id(height: int, block_hash: str, index: int) -> str:
    """
    Unique transfer identifier encoding height, short block hash, and the per-block transfer sequence

    >>> transfer_id(1234, "0xabcdef0123", 7)
    '0000001234-abcde-007'
    """
    return f"{pad_block_number(height)}-{short_hash(block_hash)}-{str(index).zfill(3)}"


def extrinsic_id(height: int, index: int) -> str:
    """
    >>> extrinsic_id(1234, 2)
    '0000001234-002'
    """
    return f"{pad_block_number(height)}-{str(index).zfill(3)}"


def staking_event_id(height: int, index: int) -> str:
    return f"{pad_block_number(height)}-stk-{str(index).zfill(3)}"


def placeholder_name(contract_type: str, address: str) -> str:
    """
    Deterministic display name used until (or instead of) an on-chain name lookup

    >>> placeholder_name("ERC20", "0xabcdef0123456789abcdef0123456789abcdef01")
    'ERC20-0xabcdef'
    """
    return f"{contract_type}-{address[:8]}"
