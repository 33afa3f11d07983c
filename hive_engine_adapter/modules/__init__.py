"""
Hive Engine adapter modules
"""

from . import operations
from .tokens import TokenModule
from .market import MarketModule
from .swap import SwapModule
from .history import HistoryModule

__all__ = [
    "operations",
    "TokenModule",
    "MarketModule",
    "SwapModule",
    "HistoryModule",
]
