# Transfer(address indexed from, address indexed to, uint256 value)
# -- ERC20 emits 3 topics (value in data), ERC721 emits 4 topics (tokenId indexed)
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

# TransferSingle(address indexed operator, address indexed from, address indexed to, uint256 id, uint256 value)
TRANSFER_SINGLE_TOPIC = "0xc3d58168c5ae7397731d063d5bbf3d657854427343f4c083240f7aacaa2d0f62"

# name() selector
NAME_SELECTOR = "0x06fdde03"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000001000000"
NATIVE_TOKEN_NAME = "REEF"

# Extrinsic sections that are produced by block authors rather than users
INHERENT_SECTIONS = frozenset({"timestamp", "parachainSystem", "authorship"})

# Staking event method -> canonical staking type.  Runtime upgrades renamed Reward/Slash
STAKING_EVENT_TYPES = {
    "Rewarded": "Reward",
    "Reward": "Reward",
    "Slashed": "Slash",
    "Slash": "Slash",
    "Bonded": "Bonded",
    "Unbonded": "Unbonded",
    "Withdrawn": "Withdrawn",
}

# Commission is reported as Perbill (parts per billion)
PERBILL_PER_PERCENT = 10_000_000

# Two abi encoded uint256 words, including the 0x prefix
ERC1155_MIN_DATA_LENGTH = 2 + 64 * 2
