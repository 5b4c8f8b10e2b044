from .block_decoder import decode_block
from .swaps import detect_swaps
from .transfers import ClassifiedLog, classify_log, upgrade_contract_type
