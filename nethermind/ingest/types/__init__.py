from .block import (
    ContractInfo,
    ContractType,
    CursorCheckpoint,
    CursorKey,
    DecodeResult,
    DecodeStatus,
    ParsedBlock,
    TransferType,
)
from .chain import (
    BlockBody,
    BlockHeader,
    ChainEvent,
    ChainExtrinsic,
    EvmLog,
    Exposure,
    ValidatorPrefs,
)
