"""
Quote Aggregator Service
Serves price quotes for stocks, bonds, commodities, cryptocurrencies,
currency pairs and mutual funds from multiple upstream providers.
"""

__version__ = "1.0.0"
__author__ = "Quote Aggregator Team"
__description__ = "Batched, cached price quotes routed across multiple market data providers"
