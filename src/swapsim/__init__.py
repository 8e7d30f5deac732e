"""swapsim: Uniswap swap quoting and non-committing simulation."""

__version__ = "0.1.0"
