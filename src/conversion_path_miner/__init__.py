"""Pre-conversion path miner package."""
from . import analytics, data, mining

__all__ = ["analytics", "data", "mining"]
