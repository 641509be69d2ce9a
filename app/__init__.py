"""Loft reseller bookkeeping backend"""

__version__ = "1.0.0"
