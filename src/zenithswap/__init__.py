"""Zenith swap - client-side orchestrator for BTC <-> EVM atomic swaps."""

__version__ = "0.1.0"
