"""Best-route selection across quote sources and paths.

Every (source, path) combination is quoted as its own task. Attempts that
fail become ``QuoteFailure`` values; only when nothing succeeded does
selection fail.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from swapsim.contracts import WETH_ADDRESS
from swapsim.errors import InternalError, QuoteUnavailable, RpcTimeout, SwapSimError
from swapsim.routing.base import Quote, QuoteFailure, QuoteResult, QuoteSource

logger = logging.getLogger(__name__)


@dataclass
class SelectionResult:
    """All outcomes of one selection round."""

    quotes: list[Quote] = field(default_factory=list)
    failures: list[QuoteFailure] = field(default_factory=list)

    @property
    def best(self) -> Optional[Quote]:
        """Greatest output; V3 before V2, lower fee, then direct on ties."""
        if not self.quotes:
            return None
        return min(self.quotes, key=lambda q: q.selection_key())


class RouteSelector:
    """Runs all quote sources concurrently and picks the best route."""

    def __init__(
        self,
        sources: Optional[list[QuoteSource]] = None,
        timeout: float = 10.0,
        intermediate: str = WETH_ADDRESS,
    ):
        self.sources: list[QuoteSource] = sources or []
        self.timeout = timeout
        self.intermediate = intermediate

    def add_source(self, source: QuoteSource) -> None:
        """Add a quote source."""
        self.sources.append(source)

    def candidate_paths(self, token_in: str, token_out: str) -> list[tuple[str, ...]]:
        """Direct path, plus a hop through WETH when neither side is WETH."""
        paths: list[tuple[str, ...]] = [(token_in, token_out)]
        hub = self.intermediate.lower()
        if token_in.lower() != hub and token_out.lower() != hub:
            paths.append((token_in, self.intermediate, token_out))
        return paths

    async def _quote_route(self, source: QuoteSource, path: Sequence[str], amount_in: int) -> QuoteResult:
        try:
            quote = await source.quote(path, amount_in)
        except SwapSimError as e:
            logger.debug(f"{source.name} via {len(path) - 1} hop(s) failed: {e}")
            return QuoteFailure(protocol=source.protocol, path=tuple(path), error=e)
        except Exception as e:
            logger.warning(
                f"{source.name} via {len(path) - 1} hop(s) failed unexpectedly: "
                f"{type(e).__name__}: {e}"
            )
            return QuoteFailure(
                protocol=source.protocol,
                path=tuple(path),
                error=InternalError(f"{type(e).__name__}: {e}", {"source": source.name}),
            )

        logger.debug(
            f"Quote from {source.name} ({len(path) - 1} hop(s)): "
            f"{quote.amount_in} -> {quote.amount_out}"
        )
        return quote

    async def select_all(self, token_in: str, token_out: str, amount_in: int) -> SelectionResult:
        """Quote every source on every candidate path until the deadline.

        Attempts still running at the deadline are cancelled and reported as
        ``RpcTimeout`` failures.
        """
        paths = self.candidate_paths(token_in, token_out)
        attempts = {
            asyncio.ensure_future(self._quote_route(source, path, amount_in)): (source, path)
            for source in self.sources
            for path in paths
        }
        logger.debug(f"Quoting {len(attempts)} route(s) for {token_in}->{token_out}")
        if not attempts:
            return SelectionResult()

        try:
            done, pending = await asyncio.wait(attempts, timeout=self.timeout)
        finally:
            for task in attempts:
                if not task.done():
                    task.cancel()

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        result = SelectionResult()
        for task, (source, path) in attempts.items():
            if task in pending:
                result.failures.append(
                    QuoteFailure(
                        protocol=source.protocol,
                        path=tuple(path),
                        error=RpcTimeout(f"{source.name} quote exceeded {self.timeout}s deadline"),
                    )
                )
                continue
            outcome = task.result()
            if isinstance(outcome, QuoteFailure):
                result.failures.append(outcome)
            else:
                result.quotes.append(outcome)

        for failure in result.failures:
            if result.quotes:
                logger.warning(
                    f"{failure.protocol.value} route {'->'.join(failure.path)} dropped: "
                    f"{failure.error}"
                )
        return result

    async def select(self, token_in: str, token_out: str, amount_in: int) -> Quote:
        """
        Get the best quote across all sources and paths.

        Raises:
            RpcTimeout: nothing succeeded and at least one attempt timed out
            QuoteUnavailable: every attempt failed
        """
        result = await self.select_all(token_in, token_out, amount_in)
        return self.choose(result, token_in, token_out)

    def choose(self, result: SelectionResult, token_in: str, token_out: str) -> Quote:
        """Pick the best quote of a finished round, or raise why there is none."""
        best = result.best

        if best is None:
            details = {"failures": [f.to_dict() for f in result.failures]}
            logger.error(
                f"No quotes available for {token_in}->{token_out}. "
                f"Errors: {'; '.join(str(f.error) for f in result.failures)}"
            )
            if any(isinstance(f.error, RpcTimeout) for f in result.failures):
                raise RpcTimeout(
                    f"Quoting {token_in}->{token_out} timed out", details
                )
            raise QuoteUnavailable(
                f"No route found for {token_in}->{token_out}", details
            )

        logger.info(
            f"Selected {best.route.protocol.value} route {'->'.join(best.route.path)} "
            f"fees={list(best.route.fee_tiers)}: {best.amount_in} -> {best.amount_out} "
            f"({len(result.quotes)} of {len(result.quotes) + len(result.failures)} routes quoted)"
        )
        return best
