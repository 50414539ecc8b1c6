"""Sample bots."""

from .poker import PokerBot

__all__ = ["PokerBot"]
