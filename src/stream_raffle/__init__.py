"""Weighted raffle engine for livestream creators."""

__version__ = "0.1.0"
