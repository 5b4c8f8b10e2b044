from .base import Base, UInt256
from .internal import IndexerCursor
from .ledger import (
    Account,
    Block,
    Contract,
    ContractCall,
    EraValidatorInfo,
    Extrinsic,
    NftRecord,
    StakingEvent,
    TokenHolder,
    Transfer,
)
