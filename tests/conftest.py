"""Pytest configuration and fixtures."""

import asyncio
import math
import os
import time
from fractions import Fraction
from typing import Optional

import pytest
from web3 import Web3

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["ETHEREUM_RPC_URL"] = "http://localhost:8545"
os.environ["WALLET_ADDRESS"] = "0x1111111111111111111111111111111111111111"
os.environ["QUOTE_TIMEOUT_SECONDS"] = "5"

from swapsim.chain.base import ChainGateway
from swapsim.contracts import (
    CHAINLINK_DECIMALS,
    CHAINLINK_LATEST_ROUND_DATA,
    ERC20_BALANCE_OF,
    ERC20_DECIMALS,
    ERC20_SYMBOL,
    UNISWAP_V2_FACTORY,
    UNISWAP_V3_FACTORY,
    UNISWAP_V3_QUOTER_V2,
    V2_GET_PAIR,
    V2_GET_RESERVES,
    V2_SWAP_EXACT_ETH_FOR_TOKENS,
    V2_SWAP_EXACT_TOKENS_FOR_ETH,
    V2_SWAP_EXACT_TOKENS_FOR_TOKENS,
    V2_TOKEN0,
    V3_EXACT_INPUT,
    V3_EXACT_INPUT_SINGLE,
    V3_GET_POOL,
    V3_MULTICALL,
    V3_QUOTE_EXACT_INPUT_SINGLE,
    V3_SLOT0,
    ZERO_ADDRESS,
    sort_tokens,
)
from swapsim.errors import RevertError, RpcError

WALLET = "0x1111111111111111111111111111111111111111"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
DAI = "0x6B175474E89094C44Da98b954EedcdeCB5BE3830"
# Not in the well-known directory; metadata must come from chain
PEPE = "0x6982508145454Ce325dDbE47a25d4ec3d2311933"

V2_SWAPS = (
    V2_SWAP_EXACT_TOKENS_FOR_TOKENS,
    V2_SWAP_EXACT_ETH_FOR_TOKENS,
    V2_SWAP_EXACT_TOKENS_FOR_ETH,
)
V3_SWAPS = (V3_EXACT_INPUT_SINGLE, V3_EXACT_INPUT)


class FakeGateway(ChainGateway):
    """In-memory chain: serves scripted tokens, V2 pairs and V3 pools.

    Calls are dispatched on the target and the 4-byte selector, the same
    way a node would route them to contract code. Anything not scripted
    reverts.
    """

    def __init__(self):
        self.tokens: dict[str, dict] = {}
        self.pairs: dict[frozenset, str] = {}
        self.reserves: dict[str, tuple[str, int, int]] = {}
        self.pools: dict[tuple[frozenset, int], str] = {}
        self.pool_prices: dict[tuple[str, str, int], Fraction] = {}
        self.slot0: dict[str, int] = {}
        self.native_balances: dict[str, int] = {}
        self.token_balances: dict[tuple[str, str], int] = {}

        self.router_revert: Optional[str] = None
        self.router_amount_out = 1
        self.gas = 150_000
        self.gas_price_wei = 20 * 10**9
        self.gas_price_error: Optional[RpcError] = None
        self.estimate_error: Optional[RpcError] = None
        self.chain = 1
        self.delay = 0.0
        self.feeds: dict[str, dict] = {}

        # Per-selector overrides, applied to eth_call before contract code
        self.raw_outputs: dict[bytes, bytes] = {}
        self.call_errors: dict[bytes, Exception] = {}

        self.calls: list[tuple[str, str, bytes]] = []
        self._next_address = 0x1000

    # ======================
    # Scripting
    # ======================

    def _new_address(self) -> str:
        self._next_address += 1
        return Web3.to_checksum_address(f"0x{self._next_address:040x}")

    def add_token(
        self,
        address: str,
        symbol: Optional[str],
        decimals: Optional[int],
        bytes32_symbol: bool = False,
    ) -> None:
        self.tokens[address.lower()] = {
            "symbol": symbol,
            "decimals": decimals,
            "bytes32": bytes32_symbol,
        }

    def add_v2_pair(self, token_a: str, token_b: str, reserve_a: int, reserve_b: int) -> str:
        pair = self._new_address()
        self.pairs[frozenset((token_a.lower(), token_b.lower()))] = pair
        token0, _ = sort_tokens(token_a, token_b)
        if token0 == token_a:
            self.reserves[pair.lower()] = (token_a, reserve_a, reserve_b)
        else:
            self.reserves[pair.lower()] = (token_b, reserve_b, reserve_a)
        return pair

    def add_v3_pool(self, token_a: str, token_b: str, fee: int, price: Fraction) -> str:
        """Pool quoting ``price`` raw token_b per raw token_a, before fee."""
        pool = self._new_address()
        self.pools[(frozenset((token_a.lower(), token_b.lower())), fee)] = pool
        self.pool_prices[(token_a.lower(), token_b.lower(), fee)] = price
        self.pool_prices[(token_b.lower(), token_a.lower(), fee)] = 1 / price

        token0, _ = sort_tokens(token_a, token_b)
        price_1_per_0 = price if token0 == token_a else 1 / price
        self.slot0[pool.lower()] = math.isqrt(
            price_1_per_0.numerator * 2**192 // price_1_per_0.denominator
        )
        return pool

    def add_price_feed(
        self,
        feed: str,
        answer: int,
        decimals: int = 8,
        updated_at: Optional[int] = None,
        round_id: int = 100,
        answered_in_round: Optional[int] = None,
    ) -> None:
        """Chainlink aggregator answering ``latestRoundData()``."""
        self.feeds[feed.lower()] = {
            "answer": answer,
            "decimals": decimals,
            "updated_at": int(time.time()) if updated_at is None else updated_at,
            "round_id": round_id,
            "answered_in_round": round_id if answered_in_round is None else answered_in_round,
        }

    def count(self, method: str, selector: Optional[bytes] = None) -> int:
        return sum(
            1
            for m, _, s in self.calls
            if m == method and (selector is None or s == selector)
        )

    # ======================
    # ChainGateway
    # ======================

    async def call(self, to, data, value=0, from_address=None) -> bytes:
        self.calls.append(("eth_call", to, data[:4]))
        if self.delay:
            await asyncio.sleep(self.delay)
        selector = data[:4]
        if selector in self.call_errors:
            raise self.call_errors[selector]
        if selector in self.raw_outputs:
            return self.raw_outputs[selector]
        return self._dispatch(to.lower(), data)

    async def estimate_gas(self, to, data, value=0, from_address=None) -> int:
        self.calls.append(("eth_estimateGas", to, data[:4]))
        if self.estimate_error is not None:
            raise self.estimate_error
        if self.router_revert is not None:
            raise RevertError(self.router_revert)
        return self.gas

    async def gas_price(self) -> int:
        self.calls.append(("eth_gasPrice", "", b""))
        if self.gas_price_error is not None:
            raise self.gas_price_error
        return self.gas_price_wei

    async def get_balance(self, address) -> int:
        self.calls.append(("eth_getBalance", address, b""))
        return self.native_balances.get(address.lower(), 0)

    async def chain_id(self) -> int:
        self.calls.append(("eth_chainId", "", b""))
        return self.chain

    # ======================
    # Contract code
    # ======================

    def _dispatch(self, target: str, data: bytes) -> bytes:
        selector = data[:4]

        if target == UNISWAP_V2_FACTORY.lower() and selector == V2_GET_PAIR.selector:
            token_a, token_b = V2_GET_PAIR.decode_call(data)
            pair = self.pairs.get(frozenset((token_a.lower(), token_b.lower())), ZERO_ADDRESS)
            return V2_GET_PAIR.encode_output(pair)

        if target in self.reserves:
            token0, reserve0, reserve1 = self.reserves[target]
            if selector == V2_GET_RESERVES.selector:
                return V2_GET_RESERVES.encode_output(reserve0, reserve1, 0)
            if selector == V2_TOKEN0.selector:
                return V2_TOKEN0.encode_output(token0)

        if target == UNISWAP_V3_QUOTER_V2.lower() and selector == V3_QUOTE_EXACT_INPUT_SINGLE.selector:
            token_in, token_out, amount_in, fee, _ = V3_QUOTE_EXACT_INPUT_SINGLE.decode_call(data)[0]
            price = self.pool_prices.get((token_in.lower(), token_out.lower(), fee))
            if price is None:
                raise RevertError("execution reverted")
            amount_out = math.floor(amount_in * price * Fraction(1_000_000 - fee, 1_000_000))
            return V3_QUOTE_EXACT_INPUT_SINGLE.encode_output(amount_out, 0, 1, 90_000)

        if target == UNISWAP_V3_FACTORY.lower() and selector == V3_GET_POOL.selector:
            token_a, token_b, fee = V3_GET_POOL.decode_call(data)
            pool = self.pools.get((frozenset((token_a.lower(), token_b.lower())), fee), ZERO_ADDRESS)
            return V3_GET_POOL.encode_output(pool)

        if target in self.slot0 and selector == V3_SLOT0.selector:
            return V3_SLOT0.encode_output(self.slot0[target], 0, 0, 1, 1, 0, True)

        if target in self.feeds:
            feed = self.feeds[target]
            if selector == CHAINLINK_LATEST_ROUND_DATA.selector:
                return CHAINLINK_LATEST_ROUND_DATA.encode_output(
                    feed["round_id"],
                    feed["answer"],
                    feed["updated_at"],
                    feed["updated_at"],
                    feed["answered_in_round"],
                )
            if selector == CHAINLINK_DECIMALS.selector:
                return CHAINLINK_DECIMALS.encode_output(feed["decimals"])

        if target in self.tokens:
            return self._erc20(target, data)

        for fn in V2_SWAPS + V3_SWAPS + (V3_MULTICALL,):
            if selector == fn.selector:
                return self._swap(data)

        raise RevertError("execution reverted")

    def _erc20(self, target: str, data: bytes) -> bytes:
        token = self.tokens[target]
        selector = data[:4]
        if selector == ERC20_DECIMALS.selector and token["decimals"] is not None:
            return ERC20_DECIMALS.encode_output(token["decimals"])
        if selector == ERC20_SYMBOL.selector and token["symbol"] is not None:
            if token["bytes32"]:
                return token["symbol"].encode().ljust(32, b"\x00")
            return ERC20_SYMBOL.encode_output(token["symbol"])
        if selector == ERC20_BALANCE_OF.selector:
            (holder,) = ERC20_BALANCE_OF.decode_call(data)
            return ERC20_BALANCE_OF.encode_output(
                self.token_balances.get((target, holder.lower()), 0)
            )
        raise RevertError("execution reverted")

    def _swap(self, data: bytes) -> bytes:
        if self.router_revert is not None:
            raise RevertError(self.router_revert)
        selector = data[:4]
        if selector == V3_MULTICALL.selector:
            inner = V3_MULTICALL.decode_call(data)[0]
            return V3_MULTICALL.encode_output([self._swap(inner[0]), b""])
        for fn in V2_SWAPS:
            if selector == fn.selector:
                return fn.encode_output([1, self.router_amount_out])
        for fn in V3_SWAPS:
            if selector == fn.selector:
                return fn.encode_output(self.router_amount_out)
        raise RevertError("execution reverted")


@pytest.fixture
def gateway() -> FakeGateway:
    """Empty fake chain."""
    return FakeGateway()
