"""Read-only services built on the chain gateway."""

from swapsim.services.balance import BalanceInfo, BalanceService

__all__ = ["BalanceInfo", "BalanceService"]
