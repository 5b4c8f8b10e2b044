from collections import OrderedDict
from dataclasses import dataclass, field

from nethermind.ingest.config import IngestConfig
from nethermind.ingest.constants import NATIVE_TOKEN_ADDRESS


class TokenNameCache:
    """
    Bounded LRU cache of contract address --> display name.  Fallback names are cached as well, so contracts
    without a name() method are only queried once per process, until evicted.
    """

    def __init__(self, max_size: int = 4096):
        if max_size < 1:
            raise ValueError("TokenNameCache max_size must be at least 1")
        self.max_size = max_size
        self._names: OrderedDict[str, str] = OrderedDict()

    def __contains__(self, address: str) -> bool:
        return address.lower() in self._names

    def __len__(self) -> int:
        return len(self._names)

    def get(self, address: str) -> str | None:
        key = address.lower()
        if key not in self._names:
            return None
        self._names.move_to_end(key)
        return self._names[key]

    def set(self, address: str, name: str):
        key = address.lower()
        self._names[key] = name
        self._names.move_to_end(key)
        while len(self._names) > self.max_size:
            self._names.popitem(last=False)


@dataclass
class PipelineContext:
    """
    Long lived state shared by every block processed in a process.

    .. warning::
        This state is not synchronized.  At most one block should be in flight per context, since era transitions
        are detected by comparing against the previously processed block.
    """

    last_known_era: int | None = None
    token_names: TokenNameCache = field(default_factory=TokenNameCache)
    native_token_address: str = NATIVE_TOKEN_ADDRESS

    @classmethod
    def from_config(cls, config: IngestConfig) -> "PipelineContext":
        """Creates a fresh context, sizing the token name cache and native token address from ``config``"""
        return cls(
            token_names=TokenNameCache(config.token_name_cache_size),
            native_token_address=config.native_token_address.lower(),
        )
