"""
hz_engine.py

This module provides the decomposition / combination engine. Every function
here is pure: it reads the decomposition graph and reverse index it is given
and returns new values, never touching either structure.

The engine answers three questions:
1.  **Leaf reduction**: what atomic parts, with multiplicity, make up a symbol?
2.  **Combination**: which symbols can a group of held cards legally produce,
    counting duplicate parts exactly?
3.  **Hints**: which small groups of the cards in play make progress toward
    a target?
"""

import logging
from collections import Counter
from itertools import combinations
from typing import Dict, FrozenSet, Iterable, List, Sequence, Set, Tuple

from hz_graph import (Card, DecompositionGraph, Hint, ReverseIndex, Symbol,
                      canonical_key, split_word)

logger = logging.getLogger(__name__)

MAX_HINTS = 3
# Hint search only looks at pairs and triples of cards.
HINT_GROUP_SIZES = (2, 3)


def reduce_to_leaves(symbol: Symbol, graph: DecompositionGraph, path: Sequence[Symbol] = ()) -> List[Symbol]:
    """
    Expands a symbol into its leaves, preserving duplicates and order.

    Args:
        symbol (Symbol): The symbol to expand.
        graph (DecompositionGraph): The decomposition graph.
        path (Sequence[Symbol]): The ancestors on the current expansion. A
            symbol already on the path is returned as a leaf, which breaks
            cycles in the graph.

    Returns:
        List[Symbol]: The leaves, in component order.
    """
    if symbol in path:
        return [symbol]
    entry = graph.lookup(symbol)
    if entry is None:
        return [symbol]

    leaves: List[Symbol] = []
    child_path = tuple(path) + (symbol,)
    for component in entry.components:
        leaves.extend(reduce_to_leaves(component, graph, child_path))
    return leaves


def reduce_word(word: str, graph: DecompositionGraph) -> List[Symbol]:
    """
    Expands every symbol of a word independently and concatenates the leaves.
    Each symbol starts from an empty path.
    """
    leaves: List[Symbol] = []
    for symbol in split_word(word):
        leaves.extend(reduce_to_leaves(symbol, graph))
    return leaves


def is_path_member(symbol: Symbol, target: Symbol, graph: DecompositionGraph,
                   path: Sequence[Symbol] = ()) -> bool:
    """
    Tells whether `symbol` lies on the decomposition of `target`, that is,
    whether it is an immediate component of the target or of one of the
    target's components, recursively. Walks graph edges, not leaves.
    """
    if target in path:
        return False
    components = graph.components(target)
    if symbol in components:
        return True
    child_path = tuple(path) + (target,)
    return any(is_path_member(symbol, component, graph, child_path) for component in components)


def leaf_counts(symbols: Iterable[Symbol], graph: DecompositionGraph) -> Counter:
    counts: Counter = Counter()
    for symbol in symbols:
        counts.update(reduce_to_leaves(symbol, graph))
    return counts


def contains_enough(held_symbols: Iterable[Symbol], required_leaves: Iterable[Symbol],
                    graph: DecompositionGraph) -> bool:
    """
    Checks that the held symbols, once reduced to leaves, cover the required
    leaf multiset. Surplus leaves are ignored.

    Args:
        held_symbols (Iterable[Symbol]): The symbols on the held cards. An
            already-built composite counts through its own leaves.
        required_leaves (Iterable[Symbol]): The leaf multiset to cover.
        graph (DecompositionGraph): The decomposition graph.

    Returns:
        bool: True if every required leaf is held at least as many times.
    """
    held = leaf_counts(held_symbols, graph)
    required = Counter(required_leaves)
    for leaf, count in required.items():
        if held[leaf] < count:
            logger.debug("Need %d of %r, only have %d", count, leaf, held[leaf])
            return False
    return True


class CompositionEngine:
    """
    Binds the engine functions to one decomposition graph and reverse index.
    The engine holds no state of its own and can be shared by any number of
    rounds.
    """
    def __init__(self, graph: DecompositionGraph, reverse_index: ReverseIndex):
        self.graph = graph
        self.reverse_index = reverse_index

    def reduce_to_leaves(self, symbol: Symbol, path: Sequence[Symbol] = ()) -> List[Symbol]:
        return reduce_to_leaves(symbol, self.graph, path)

    def reduce_word(self, word: str) -> List[Symbol]:
        return reduce_word(word, self.graph)

    def required_leaves_of(self, symbol: Symbol) -> List[Symbol]:
        """The leaf multiset a candidate needs before it can be built."""
        return reduce_word(symbol, self.graph)

    def contains_enough(self, held_symbols: Iterable[Symbol], required_leaves: Iterable[Symbol]) -> bool:
        return contains_enough(held_symbols, required_leaves, self.graph)

    def is_path_member(self, symbol: Symbol, target: str) -> bool:
        """
        Path membership for a target word. The characters of a multi-symbol
        word are its immediate components.
        """
        parts = split_word(target)
        if len(parts) == 1:
            return is_path_member(symbol, target, self.graph)
        return symbol in parts or any(is_path_member(symbol, part, self.graph) for part in parts)

    def _valid_candidates(self, group: Sequence[Symbol],
                          required_cache: Dict[Symbol, List[Symbol]]) -> List[Symbol]:
        """
        Looks a group up in the reverse index and keeps the candidates the
        group really covers. The index alone can over-report when a candidate
        needs a duplicate part the group holds only once.
        """
        accepted = []
        for candidate in self.reverse_index.lookup(canonical_key(group)):
            if candidate not in required_cache:
                required_cache[candidate] = self.required_leaves_of(candidate)
            if self.contains_enough(group, required_cache[candidate]):
                accepted.append(candidate)
            else:
                logger.debug("Rejected %r for %s: not enough components", candidate, list(group))
        return accepted

    def find_combinations(self, selected_symbols: Sequence[Symbol]) -> List[Symbol]:
        """
        Lists the symbols buildable from some non-empty subset of the
        selection.

        All 2^n - 1 subsets are tried, so a player may select three cards and
        use only two of them.

        Args:
            selected_symbols (Sequence[Symbol]): Symbols of the selected cards.

        Returns:
            List[Symbol]: Deduplicated candidates in discovery order.
        """
        found: List[Symbol] = []
        required_cache: Dict[Symbol, List[Symbol]] = {}
        for size in range(1, len(selected_symbols) + 1):
            for subset in combinations(selected_symbols, size):
                for candidate in self._valid_candidates(subset, required_cache):
                    if candidate not in found:
                        found.append(candidate)
        logger.debug("Combinations for %s: %s", list(selected_symbols), found)
        return found

    def find_hints(self, target: str, cards: Sequence[Card]) -> List[Hint]:
        """
        Proposes up to MAX_HINTS combination steps that lead toward `target`.

        If a card already holds the target, the only hint is that card,
        flagged as the answer. Otherwise every pair and triple of cards is
        tried; a step is kept when it produces the target itself or a symbol
        on the target's decomposition path. Steps producing the target rank
        first, and no two hints reference the same set of cards.

        Args:
            target (str): The target character or word.
            cards (Sequence[Card]): The cards currently in play.

        Returns:
            List[Hint]: At most MAX_HINTS unused hints.
        """
        for card in cards:
            if card.symbol == target:
                logger.debug("Target %r is already on the table", target)
                return [Hint((card.id,), is_answer=True)]

        steps: List[Tuple[Tuple[str, ...], Symbol]] = []
        required_cache: Dict[Symbol, List[Symbol]] = {}
        for size in HINT_GROUP_SIZES:
            for group in combinations(cards, size):
                symbols = [card.symbol for card in group]
                for candidate in self._valid_candidates(symbols, required_cache):
                    if candidate == target or self.is_path_member(candidate, target):
                        logger.debug("Valid step: %s -> %r", " + ".join(symbols), candidate)
                        steps.append((tuple(card.id for card in group), candidate))

        # list.sort is stable, so discovery order holds within each rank.
        steps.sort(key=lambda step: 0 if step[1] == target else 1)

        hints: List[Hint] = []
        seen: Set[FrozenSet[str]] = set()
        for card_ids, result in steps:
            if len(hints) >= MAX_HINTS:
                break
            id_set = frozenset(card_ids)
            if id_set in seen:
                continue
            seen.add(id_set)
            hints.append(Hint(card_ids, result=result))
        logger.debug("Generated %d hints for %r from %d valid steps", len(hints), target, len(steps))
        return hints

    def __repr__(self) -> str:
        return f"CompositionEngine(graph={self.graph!r}, index={self.reverse_index!r})"
