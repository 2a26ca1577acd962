"""
hz_errors.py

Recoverable errors raised by the round state machine and the initial deal.
Every error derives from ValueError so a host can catch them in one place.
"""


class GameError(ValueError):
    """Base class for player-facing failures of a single action."""


class InvalidCardReference(GameError):
    """A card id or index does not exist in the current pool."""


class EmptySelection(GameError):
    """combine() was invoked with no cards selected."""


class LeafDecomposition(GameError):
    """decompose() was invoked on a card whose symbol has no decomposition."""


class NoWordsAtLevel(GameError):
    """The word list for a requested level is empty or missing."""
