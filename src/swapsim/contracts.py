"""Ethereum mainnet contract addresses and ABI call helpers.

Selectors are derived from the canonical signature with keccak, arguments
and return data are handled by eth_abi.
"""

from dataclasses import dataclass
from typing import Any

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from web3 import Web3

# ======================
# Uniswap V2
# ======================
UNISWAP_V2_ROUTER = "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D"
UNISWAP_V2_FACTORY = "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f"

# ======================
# Uniswap V3
# ======================
UNISWAP_V3_ROUTER = "0xE592427A0AEce92De3Edee1F18E0157C05861564"
UNISWAP_V3_FACTORY = "0x1F98431c8aD98523631AE4a59f267346ea31F984"
UNISWAP_V3_QUOTER_V2 = "0x61fFE014bA17989E743c5F6cB21bF9697530B21e"

WETH_ADDRESS = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
USDC_ADDRESS = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WBTC_ADDRESS = "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# ======================
# Chainlink USD feeds
# ======================
ETH_USD_FEED = "0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419"
BTC_USD_FEED = "0xF4030086522a5bEEa4988F8cA5B36dbC97BeE88c"
USDC_USD_FEED = "0x8fFfFfd4AfB6115b954Bd326cbe7B4BA576818f6"

# Token address -> aggregator quoting it in USD
CHAINLINK_USD_FEEDS = {
    WETH_ADDRESS: ETH_USD_FEED,
    WBTC_ADDRESS: BTC_USD_FEED,
    USDC_ADDRESS: USDC_USD_FEED,
}

V2_FEE_NUMERATOR = 997
V2_FEE_DENOMINATOR = 1000
V3_FEE_TIERS = (100, 500, 3000, 10000)

# Revert payload prefixes
ERROR_STRING_SELECTOR = bytes.fromhex("08c379a0")  # Error(string)
PANIC_SELECTOR = bytes.fromhex("4e487b71")  # Panic(uint256)


@dataclass(frozen=True)
class AbiFunction:
    """A contract function described by its name and ABI types."""

    name: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return bytes(Web3.keccak(text=self.signature)[:4])

    def encode_call(self, *args: Any) -> bytes:
        """Encode calldata: selector followed by ABI-encoded arguments."""
        return self.selector + encode(list(self.inputs), list(args))

    def decode_call(self, calldata: bytes) -> tuple:
        """Decode arguments from calldata produced by ``encode_call``."""
        if calldata[:4] != self.selector:
            raise ValueError(f"Calldata is not a {self.signature} call")
        return decode(list(self.inputs), calldata[4:])

    def decode_output(self, data: bytes) -> tuple:
        return decode(list(self.outputs), data)

    def encode_output(self, *values: Any) -> bytes:
        return encode(list(self.outputs), list(values))


# ERC20
ERC20_DECIMALS = AbiFunction("decimals", (), ("uint8",))
ERC20_SYMBOL = AbiFunction("symbol", (), ("string",))
ERC20_BALANCE_OF = AbiFunction("balanceOf", ("address",), ("uint256",))

# Uniswap V2 factory / pair
V2_GET_PAIR = AbiFunction("getPair", ("address", "address"), ("address",))
V2_GET_RESERVES = AbiFunction("getReserves", (), ("uint112", "uint112", "uint32"))
V2_TOKEN0 = AbiFunction("token0", (), ("address",))

# Uniswap V2 Router02
V2_SWAP_EXACT_TOKENS_FOR_TOKENS = AbiFunction(
    "swapExactTokensForTokens",
    ("uint256", "uint256", "address[]", "address", "uint256"),
    ("uint256[]",),
)
V2_SWAP_EXACT_ETH_FOR_TOKENS = AbiFunction(
    "swapExactETHForTokens",
    ("uint256", "address[]", "address", "uint256"),
    ("uint256[]",),
)
V2_SWAP_EXACT_TOKENS_FOR_ETH = AbiFunction(
    "swapExactTokensForETH",
    ("uint256", "uint256", "address[]", "address", "uint256"),
    ("uint256[]",),
)

# Uniswap V3 factory / pool / quoter
V3_GET_POOL = AbiFunction("getPool", ("address", "address", "uint24"), ("address",))
V3_SLOT0 = AbiFunction(
    "slot0", (), ("uint160", "int24", "uint16", "uint16", "uint16", "uint8", "bool")
)
V3_QUOTE_EXACT_INPUT_SINGLE = AbiFunction(
    "quoteExactInputSingle",
    ("(address,address,uint256,uint24,uint160)",),
    ("uint256", "uint160", "uint32", "uint256"),
)

# Uniswap V3 SwapRouter
V3_EXACT_INPUT_SINGLE = AbiFunction(
    "exactInputSingle",
    ("(address,address,uint24,address,uint256,uint256,uint256,uint160)",),
    ("uint256",),
)
V3_EXACT_INPUT = AbiFunction(
    "exactInput",
    ("(bytes,address,uint256,uint256,uint256)",),
    ("uint256",),
)
V3_MULTICALL = AbiFunction("multicall", ("bytes[]",), ("bytes[]",))
V3_UNWRAP_WETH9 = AbiFunction("unwrapWETH9", ("uint256", "address"), ())

# Chainlink AggregatorV3
CHAINLINK_DECIMALS = AbiFunction("decimals", (), ("uint8",))
CHAINLINK_LATEST_ROUND_DATA = AbiFunction(
    "latestRoundData", (), ("uint80", "int256", "uint256", "uint256", "uint80")
)


def encode_v3_path(tokens: tuple[str, ...], fees: tuple[int, ...]) -> bytes:
    """Pack a V3 multi-hop path as ``token | fee(3 bytes) | token | ...``."""
    if len(tokens) != len(fees) + 1:
        raise ValueError(f"Path of {len(tokens)} tokens needs {len(tokens) - 1} fees")
    packed = bytes.fromhex(tokens[0][2:])
    for fee, token in zip(fees, tokens[1:]):
        packed += fee.to_bytes(3, "big") + bytes.fromhex(token[2:])
    return packed


def decode_revert_reason(data: bytes) -> str:
    """Turn raw revert data into a readable reason."""
    if data[:4] == ERROR_STRING_SELECTOR:
        try:
            return str(decode(["string"], data[4:])[0])
        except DecodingError:
            return "execution reverted"
    if data[:4] == PANIC_SELECTOR:
        try:
            code = decode(["uint256"], data[4:])[0]
        except DecodingError:
            return "execution reverted"
        return f"Panic({code:#x})"
    if data:
        return f"execution reverted (0x{data.hex()})"
    return "execution reverted"


def sort_tokens(a: str, b: str) -> tuple[str, str]:
    """Return the pair in Uniswap's token0/token1 order."""
    return (a, b) if int(a, 16) < int(b, 16) else (b, a)
