"""Polyfront - frontrun execution engine for Polymarket."""

__version__ = "0.1.0"
