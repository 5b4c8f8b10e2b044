from .facade import BlockState, ChainRPC, EvmCaller
from .json_rpc import JsonRpcClient
