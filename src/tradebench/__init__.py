"""TradeBench: exam preparation for pipe-trade apprentices."""

__version__ = "0.1.0"
