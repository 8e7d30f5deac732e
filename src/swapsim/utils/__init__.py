"""Utility modules for swapsim."""

from swapsim.utils.singleflight import SingleFlight

__all__ = ["SingleFlight"]
