class RPCError(Exception):
    """

    Raised when the chain RPC returns an error response, or returns data that cannot be interpreted

    """


class RPCRateLimitError(RPCError):
    """Raised when gateway rate limits are implemented by the remote host"""


class RPCHostError(RPCError):
    """Raised when the remote host returns a server error, or when a request times out"""


class DecodingError(Exception):
    """

    Raised when block data, event logs, or ABI encoded return values cannot be decoded

    """


class DatabaseError(Exception):
    """

    Raised when issues occur with database operations.  When raised from the ledger writer, the
    block transaction has already been rolled back and no rows from the block were persisted.

    """
