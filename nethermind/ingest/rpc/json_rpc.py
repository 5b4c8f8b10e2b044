import asyncio
import itertools
import logging
from typing import Any

import aiohttp
from aiohttp.client_exceptions import ContentTypeError
from eth_typing import HexStr

from nethermind.ingest.exceptions import RPCError, RPCHostError, RPCRateLimitError
from nethermind.ingest.types.chain import BlockHeader
from nethermind.ingest.utils import hex_to_int

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("ingest").getChild("rpc")

DEFAULT_HEADERS = {"Content-Type": "application/json"}

# pylint: disable=raise-missing-from


def _handle_rpc_error(response_json: dict[str, Any]) -> None:
    if "error" in response_json.keys():
        logger.debug(f"Error in RPC response: {response_json}")
        raise RPCError("Error in RPC response: " + str(response_json["error"].get("message")))


class JsonRpcClient:
    """
    Async JSON RPC transport.  Implements the chain agnostic portion of the chain facade (headers, block hashes,
    and read-only EVM calls).  Storage queries and block bodies require runtime metadata to decode, and are
    provided by runtime specific adapters that wrap this client.

    >>> async def latest_height(url):
    ...     async with JsonRpcClient(url) as rpc:
    ...         head = await rpc.get_finalized_head()
    ...         return (await rpc.get_header(head)).number
    """

    def __init__(
        self,
        host_address: str,
        request_headers: dict[str, str] | None = None,
        max_concurrency: int = 20,
        timeout: float = 120,
    ):
        self.host_address = host_address
        self.request_headers = request_headers or DEFAULT_HEADERS
        self.max_concurrency = max_concurrency
        self.timeout = aiohttp.ClientTimeout(total=timeout)

        self._session: aiohttp.ClientSession | None = None
        self._request_ids = itertools.count(1)

    async def __aenter__(self) -> "JsonRpcClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self.request_headers,
                connector=aiohttp.TCPConnector(limit=self.max_concurrency),
                timeout=self.timeout,
            )
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        """
        Sends a single JSON RPC request, returning the ``result`` field of the response.

        :param method: JSON RPC method name
        :param params: positional params for the method
        :raises RPCRateLimitError: host responded with 429 or 1015
        :raises RPCHostError: host responded with a 5xx status, or the request timed out
        :raises RPCError: response contains a JSON RPC error object, or cannot be parsed
        """
        request = {"jsonrpc": "2.0", "id": next(self._request_ids), "method": method, "params": params or []}
        session = self._get_session()

        try:
            async with session.post(self.host_address, json=request) as response:
                try:
                    response_json = await response.json()
                except ContentTypeError:
                    match response.status:
                        case 1015 | 429:
                            raise RPCRateLimitError("JSON RPC Server Initializing Rate Limits")
                        case 500 | 502 | 503 | 504:
                            raise RPCHostError("Internal Server Error")
                        case _:
                            logger.error(f"Unexpected response for request {request}: status {response.status}")
                            logger.error(await response.text())
                            raise RPCError(f"Unexpected Content Type in response with status {response.status}")
        except asyncio.TimeoutError:
            raise RPCHostError(f"Timeout Error for RPC Host {self.host_address}")

        _handle_rpc_error(response_json)
        return response_json["result"]

    async def get_header(self, block_hash: str) -> BlockHeader:
        header = await self.request("chain_getHeader", [block_hash])
        if header is None:
            raise RPCError(f"Header not found for block {block_hash}")
        return BlockHeader(number=hex_to_int(header["number"]), parent_hash=header.get("parentHash"))

    async def get_block_hash(self, height: int) -> str:
        block_hash = await self.request("chain_getBlockHash", [height])
        if block_hash is None:
            raise RPCError(f"Block hash not found for height {height}")
        return block_hash

    async def get_finalized_head(self) -> str:
        return await self.request("chain_getFinalizedHead")

    async def call(self, to: str, data: HexStr) -> HexStr:
        return await self.request("eth_call", [{"to": to, "data": data}, "latest"])
