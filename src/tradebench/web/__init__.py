"""Web API for TradeBench."""
