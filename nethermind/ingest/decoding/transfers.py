import logging
from dataclasses import dataclass

from nethermind.ingest.constants import (
    ERC1155_MIN_DATA_LENGTH,
    TRANSFER_SINGLE_TOPIC,
    TRANSFER_TOPIC,
)
from nethermind.ingest.types.block import ContractType, TransferType
from nethermind.ingest.types.chain import EvmLog
from nethermind.ingest.utils import hex_to_int, is_valid_evm_address, topic_to_address

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("ingest").getChild("decoding").getChild("transfers")


@dataclass
class ClassifiedLog:
    """Token transfer extracted from an EVM log"""

    standard: TransferType
    contract_address: str
    from_address: str
    to_address: str
    amount: int
    token_id: int | None = None

    @property
    def contract_type(self) -> ContractType:
        return ContractType(self.standard.value)


def classify_log(log: EvmLog) -> ClassifiedLog | None:
    """
    Classifies a token transfer log from its topic signature and topic count.  No ABI is required, since
    ERC20 & ERC721 share the Transfer signature, and are distinguished by the number of indexed params.

        * ``Transfer`` with 3 topics  -->  ERC20, value in data
        * ``Transfer`` with 4 topics  -->  ERC721, tokenId is topic 3
        * ``TransferSingle`` with 4+ topics  -->  ERC1155, (id, value) packed as two words in data

    Returns None for logs that are not transfers, or are malformed.

    :param log: EVM log emitted by a contract
    :return: :class:`ClassifiedLog` or None
    """
    if not log.topics:
        return None

    topic_0 = str(log.topics[0]).lower()
    contract_address = str(log.address or "").lower()

    try:
        if topic_0 == TRANSFER_TOPIC and len(log.topics) == 4:
            return _classify_erc721(log, contract_address)

        if topic_0 == TRANSFER_TOPIC and len(log.topics) == 3:
            return _classify_erc20(log, contract_address)

        if topic_0 == TRANSFER_SINGLE_TOPIC and len(log.topics) >= 4:
            return _classify_erc1155(log, contract_address)

    except (ValueError, TypeError) as exc:
        logger.debug(f"Skipping malformed transfer log from {contract_address}: {exc}")

    return None


def _classify_erc721(log: EvmLog, contract_address: str) -> ClassifiedLog | None:
    from_address, to_address = topic_to_address(log.topics[1]), topic_to_address(log.topics[2])
    if not is_valid_evm_address(from_address) or not is_valid_evm_address(to_address):
        return None

    return ClassifiedLog(
        standard=TransferType.erc721,
        contract_address=contract_address,
        from_address=from_address,
        to_address=to_address,
        amount=1,
        token_id=hex_to_int(str(log.topics[3])),
    )


def _classify_erc20(log: EvmLog, contract_address: str) -> ClassifiedLog | None:
    from_address, to_address = topic_to_address(log.topics[1]), topic_to_address(log.topics[2])
    if not is_valid_evm_address(from_address) or not is_valid_evm_address(to_address):
        return None

    return ClassifiedLog(
        standard=TransferType.erc20,
        contract_address=contract_address,
        from_address=from_address,
        to_address=to_address,
        amount=hex_to_int(str(log.data)),
    )


def _classify_erc1155(log: EvmLog, contract_address: str) -> ClassifiedLog | None:
    # topics: [signature, operator, from, to]
    from_address, to_address = topic_to_address(log.topics[2]), topic_to_address(log.topics[3])
    if not is_valid_evm_address(from_address) or not is_valid_evm_address(to_address):
        return None

    data = str(log.data or "0x")
    if len(data) < ERC1155_MIN_DATA_LENGTH:
        return None

    return ClassifiedLog(
        standard=TransferType.erc1155,
        contract_address=contract_address,
        from_address=from_address,
        to_address=to_address,
        amount=int(data[66:130], 16),
        token_id=int(data[2:66], 16),
    )


def upgrade_contract_type(existing: ContractType | None, candidate: ContractType) -> ContractType:
    """
    Returns the contract type to store when ``candidate`` evidence is found for a contract currently classified as
    ``existing``.  Types only move up in rank, so ERC721 & ERC1155 contracts are never reverted to ERC20 by a
    3-topic Transfer log, and never switch between each other.

    >>> upgrade_contract_type(ContractType.erc20, ContractType.erc721)
    <ContractType.erc721: 'ERC721'>
    >>> upgrade_contract_type(ContractType.erc721, ContractType.erc20)
    <ContractType.erc721: 'ERC721'>
    """
    if existing is None or candidate.rank > existing.rank:
        return candidate
    return existing
