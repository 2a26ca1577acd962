"""
hz_game.py

This module provides the CharacterGame class, which serves as the main
controller for the application. It owns the game data loaded at start-up,
deals rounds (target choice, decoys, gloss) and creates the sessions in which
rounds are played.
"""

import logging
import random
from typing import List, Optional

from hz_config import GameConfig
from hz_engine import CompositionEngine
from hz_errors import NoWordsAtLevel
from hz_graph import GameData, is_single_symbol
from hz_session import Deal, Round, RoundSession

logger = logging.getLogger(__name__)


class CharacterGame:
    """
    Deals rounds from a shared, read-only GameData and hands out sessions.
    Any number of sessions may share one game.
    """
    def __init__(self, data: GameData, config: Optional[GameConfig] = None,
                 rng: Optional[random.Random] = None):
        """
        Initializes the game controller.

        Args:
            data (GameData): The loaded graph, index, word lists and glosses.
            config (Optional[GameConfig]): Game settings. If None, defaults.
            rng (Optional[random.Random]): Source of randomness for target,
                decoy and shuffle choices. If None, one is seeded from
                `config.seed`.
        """
        self.data = data
        self.config = config or GameConfig()
        self.rng = rng or random.Random(self.config.seed)
        self.engine = CompositionEngine(data.graph, data.reverse_index)

    def _is_composite_character(self, word: str) -> bool:
        """A single symbol with a decomposition, i.e. worth building."""
        return is_single_symbol(word) and not self.data.graph.is_leaf(word)

    def select_target(self, level: int) -> str:
        """
        Picks a target word for a level.

        Single composite characters are preferred; if a level has none, any
        of its words may be chosen.

        Raises:
            NoWordsAtLevel: If the level has no words at all.
        """
        words = self.data.words_at_level(level)
        if not words:
            raise NoWordsAtLevel(f"No words found for level {level}")
        candidates = [word for word in words if self._is_composite_character(word)]
        return self.rng.choice(candidates or words)

    def select_decoys(self, target: str, level: int) -> List[str]:
        """Picks up to `decoy_count` composite characters other than the target."""
        pool = [word for word in self.data.words_at_level(level)
                if word != target and self._is_composite_character(word)]
        self.rng.shuffle(pool)
        return pool[:self.config.decoy_count]

    def gloss_for(self, target: str) -> str:
        definitions = self.data.lookup_gloss(target, is_single_symbol(target))
        if definitions:
            return "; ".join(definitions)
        return f"Word: {target}"

    def deal(self, level: int) -> Deal:
        """
        Chooses a target and deals the leaves of the target and its decoys.

        Duplicate leaves are kept (哥 deals both halves of each 可). A leaf
        equal to the whole target is removed so the answer is never dealt
        outright.

        Args:
            level (int): The level to deal from.

        Returns:
            Deal: The target, its gloss, the shuffled symbols and the decoys.
        """
        target = self.select_target(level)
        decoys = self.select_decoys(target, level)
        symbols = self.engine.reduce_word(target)
        for decoy in decoys:
            symbols.extend(self.engine.reduce_word(decoy))
        symbols = [symbol for symbol in symbols if symbol != target]
        self.rng.shuffle(symbols)
        logger.debug("Deal for %r (decoys %s): %s", target, decoys, symbols)
        return Deal(target, self.gloss_for(target), symbols, decoys)

    def new_session(self) -> RoundSession:
        """Starts a session at level 1."""
        return RoundSession(self.engine, self.deal, self.config)

    def resume_session(self, snapshot: Round) -> RoundSession:
        """Continues a session from a saved snapshot."""
        return RoundSession(self.engine, self.deal, self.config, initial_round=snapshot)
