"""Protocol and chain constants shared across the gateway."""

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2025-03-26"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")

# Streamable HTTP transport carries session identity in this header.
SESSION_HEADER = "mcp-session-id"

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SESSION_ERROR = -32000

OCTAS_PER_APT = 100_000_000
SHARE_PRICE_SCALE = 10**18
APT_COIN_TYPE = "0x1::aptos_coin::AptosCoin"
