"""Continuous multi-query subgraph matching with shared matching trees."""

__version__ = "0.1.0"