import logging
from collections import defaultdict

from nethermind.ingest.types.block import TransferRow, TransferType

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("ingest").getChild("decoding").getChild("swaps")

SWAP_ACTION = "Swap"


def _group_key(transfer: TransferRow) -> str | None:
    # Extrinsic hashes are only known when the block body is fetched.  Without the body, the extrinsic id
    # identifies the same extrinsic within the block
    return transfer.extrinsic_hash or transfer.extrinsic_id


def _find_user(group: list[TransferRow]) -> str | None:
    senders = {t.from_address.lower() for t in group}
    receivers = {t.to_address.lower() for t in group}

    for transfer in group:
        for address in (transfer.from_address.lower(), transfer.to_address.lower()):
            if address in senders and address in receivers:
                return address
    return None


def _is_swap(group: list[TransferRow]) -> bool:
    if len(group) < 2:
        return False

    if len({t.token_address.lower() for t in group}) < 2:
        return False

    user = _find_user(group)
    if user is None:
        return False

    outgoing = [t for t in group if t.from_address.lower() == user]
    incoming = [t for t in group if t.to_address.lower() == user]

    largest_out = max(outgoing, key=lambda t: int(t.amount))
    largest_in = max(incoming, key=lambda t: int(t.amount))

    return largest_out.token_address.lower() != largest_in.token_address.lower()


def detect_swaps(transfers: list[TransferRow]) -> int:
    """
    Marks ERC20 transfers that are legs of a swap.  Transfers are grouped by the extrinsic that emitted them, and a
    group is considered a swap if a single address both sends and receives within the group, and the largest token
    it sent differs from the largest token it received.  Every leg in a swap group is marked, including legs that
    don't involve the swapping address (router hops, fees).

    .. note::
        This is a heuristic.  Unrelated transfers of different tokens batched into one extrinsic can be tagged.

    :param transfers: all transfers decoded from a block.  Modified in place
    :return: number of transfers marked as swap legs
    """
    groups: dict[str, list[TransferRow]] = defaultdict(list)
    for transfer in transfers:
        key = _group_key(transfer)
        if key is None or transfer.type != TransferType.erc20:
            continue
        groups[key].append(transfer)

    marked = 0
    for key, group in groups.items():
        if not _is_swap(group):
            continue

        logger.debug(f"Marking {len(group)} transfers in extrinsic {key} as swap legs")
        for transfer in group:
            transfer.swap_action = SWAP_ACTION
        marked += len(group)

    return marked
