"""
hz_session.py

This module provides the RoundSession class, which runs the round state
machine of the composition game. Each player action produces a new, immutable
Round snapshot; the session keeps the sequence of snapshots it produced and
exposes the latest one as the current round. Only the most recent snapshots
are kept.
"""

import logging
from collections import deque
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from hz_config import GameConfig
from hz_engine import CompositionEngine
from hz_errors import EmptySelection, InvalidCardReference, LeafDecomposition
from hz_graph import Card, Hint, Symbol, split_word

logger = logging.getLogger(__name__)


class RoundStatus(Enum):
    """Represents the current status of a round."""
    IN_PROGRESS = "in_progress"
    WON = "won"      # waiting for advance()
    OVER = "over"    # out of attempts; only reset() continues


class Deal(NamedTuple):
    """A freshly chosen target with the symbols dealt for it."""
    target: str
    gloss: str
    symbols: List[Symbol]
    decoys: List[str]


# A dealer picks a target for a level and deals its pool.
Dealer = Callable[[int], Deal]


@dataclass(frozen=True)
class Round:
    """
    A snapshot of one round. Transitions never modify a snapshot; they build
    a new one.
    """
    target: str
    gloss: str
    cards: Tuple[Card, ...]
    selected_ids: Tuple[str, ...] = ()
    combinations: Tuple[Symbol, ...] = ()
    hints: Tuple[Hint, ...] = ()
    attempts_left: int = 3
    max_attempts: int = 3
    status: RoundStatus = RoundStatus.IN_PROGRESS
    level: int = 1
    round_in_level: int = 1
    rounds_per_level: int = 2
    total_rounds_completed: int = 0
    hints_used: int = 0
    total_hints_used: int = 0
    decoys: Tuple[str, ...] = ()

    @property
    def won(self) -> bool:
        return self.status == RoundStatus.WON

    @property
    def game_over(self) -> bool:
        return self.status == RoundStatus.OVER

    @property
    def selected_cards(self) -> List[Card]:
        return [self.card(card_id) for card_id in self.selected_ids]

    @property
    def symbols(self) -> List[Symbol]:
        return [card.symbol for card in self.cards]

    def card(self, card_id: str) -> Card:
        """Returns the card with the given id, or raises InvalidCardReference."""
        for card in self.cards:
            if card.id == card_id:
                return card
        raise InvalidCardReference(f"No card with id '{card_id}' in the current pool.")

    def card_at(self, index: int) -> Card:
        """Returns the card at a position in the pool (as shown to the player)."""
        if not 0 <= index < len(self.cards):
            raise InvalidCardReference(f"Invalid card index: {index}")
        return self.cards[index]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'target': self.target,
            'gloss': self.gloss,
            'cards': [card.to_dict() for card in self.cards],
            'selected_ids': list(self.selected_ids),
            'combinations': list(self.combinations),
            'hints': [hint.to_dict() for hint in self.hints],
            'attempts_left': self.attempts_left,
            'max_attempts': self.max_attempts,
            'status': self.status.value,
            'level': self.level,
            'round_in_level': self.round_in_level,
            'rounds_per_level': self.rounds_per_level,
            'total_rounds_completed': self.total_rounds_completed,
            'hints_used': self.hints_used,
            'total_hints_used': self.total_hints_used,
            'decoys': list(self.decoys),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Round":
        return cls(
            target=data['target'],
            gloss=data.get('gloss', ''),
            cards=tuple(Card.from_dict(card) for card in data['cards']),
            selected_ids=tuple(data.get('selected_ids', ())),
            combinations=tuple(data.get('combinations', ())),
            hints=tuple(Hint.from_dict(hint) for hint in data.get('hints', ())),
            attempts_left=data.get('attempts_left', 3),
            max_attempts=data.get('max_attempts', 3),
            status=RoundStatus(data.get('status', RoundStatus.IN_PROGRESS.value)),
            level=data.get('level', 1),
            round_in_level=data.get('round_in_level', 1),
            rounds_per_level=data.get('rounds_per_level', 2),
            total_rounds_completed=data.get('total_rounds_completed', 0),
            hints_used=data.get('hints_used', 0),
            total_hints_used=data.get('total_hints_used', 0),
            decoys=tuple(data.get('decoys', ())),
        )


def target_met(target: str, cards: Iterable[Card]) -> bool:
    """
    Checks that every symbol of the target word is on its own card. Matching
    is direct (no leaf reduction) and each card is used at most once.
    """
    remaining = [card.symbol for card in cards]
    for symbol in split_word(target):
        if symbol not in remaining:
            return False
        remaining.remove(symbol)
    return True


def level_for(total_rounds_completed: int, config: GameConfig,
              rounds_per_level: Optional[int] = None) -> int:
    """
    The level reached after a number of completed rounds. `rounds_per_level`
    overrides the configured pacing, for games that carry their own.
    """
    rounds_per_level = rounds_per_level or config.rounds_per_level
    return min(total_rounds_completed // rounds_per_level + 1, config.max_level)


class RoundSession:
    """
    Runs the round state machine for one player, keeping the most recent
    snapshots it produced.
    """
    HISTORY_LIMIT = 50
    MOVES = ('select', 'combine', 'decompose', 'submit', 'advance', 'use_hint', 'reset')

    def __init__(self, engine: CompositionEngine, dealer: Dealer,
                 config: Optional[GameConfig] = None, initial_round: Optional[Round] = None,
                 history_limit: Optional[int] = None):
        """
        Initializes a new session.

        Args:
            engine (CompositionEngine): The shared, read-only engine.
            dealer (Dealer): Picks a target and deals its pool for a level.
            config (Optional[GameConfig]): Pacing and attempt settings. If
                None, the defaults are used.
            initial_round (Optional[Round]): A snapshot to resume from. If
                None, a level 1 round is dealt.
            history_limit (Optional[int]): How many snapshots to keep. If
                None, HISTORY_LIMIT is used.
        """
        self.engine = engine
        self.dealer = dealer
        self.config = config or GameConfig()
        first = initial_round or self._deal_round(level=1, round_in_level=1,
                                                  total_rounds_completed=0, total_hints_used=0)
        self._history: Deque[Round] = deque([first], maxlen=history_limit or self.HISTORY_LIMIT)

    @property
    def current_round(self) -> Round:
        """Returns the latest snapshot."""
        return self._history[-1]

    @property
    def history(self) -> Tuple[Round, ...]:
        return tuple(self._history)

    def _push(self, new_round: Round) -> Round:
        self._history.append(new_round)
        return new_round

    def _make_cards(self, symbols: Iterable[Symbol]) -> Tuple[Card, ...]:
        return tuple(Card.for_symbol(symbol, self.engine.graph) for symbol in symbols)

    def _deal_round(self, level: int, round_in_level: int, total_rounds_completed: int,
                    total_hints_used: int, rounds_per_level: Optional[int] = None) -> Round:
        deal = self.dealer(level)
        cards = self._make_cards(deal.symbols)
        logger.info("Dealt %r at level %d: %d cards, decoys %s",
                    deal.target, level, len(cards), deal.decoys)
        return Round(
            target=deal.target,
            gloss=deal.gloss,
            cards=cards,
            hints=tuple(self.engine.find_hints(deal.target, cards)),
            attempts_left=self.config.max_attempts,
            max_attempts=self.config.max_attempts,
            level=level,
            round_in_level=round_in_level,
            rounds_per_level=rounds_per_level or self.config.rounds_per_level,
            total_rounds_completed=total_rounds_completed,
            total_hints_used=total_hints_used,
            decoys=tuple(deal.decoys),
        )

    def _with_pool(self, current: Round, cards: Sequence[Card]) -> Round:
        """A snapshot with a new pool: selection cleared, hints regenerated."""
        cards = tuple(cards)
        return replace(current, cards=cards, selected_ids=(), combinations=(),
                       hints=tuple(self.engine.find_hints(current.target, cards)),
                       hints_used=0)

    def _is_active(self, move: str) -> bool:
        if self.current_round.status != RoundStatus.IN_PROGRESS:
            logger.warning("Ignoring %s(): the round has already concluded (%s).",
                           move, self.current_round.status.value)
            return False
        return True

    def select(self, card_ids: Sequence[str]) -> Round:
        """
        Replaces the selection and recomputes the possible combinations.

        Args:
            card_ids (Sequence[str]): Ids of the cards to select, in order.
                Repeated ids are selected once.

        Returns:
            Round: The new snapshot.
        """
        current = self.current_round
        if not self._is_active('select'):
            return current
        selected: List[str] = []
        for card_id in card_ids:
            current.card(card_id)
            if card_id not in selected:
                selected.append(card_id)
        symbols = [current.card(card_id).symbol for card_id in selected]
        return self._push(replace(current, selected_ids=tuple(selected),
                                  combinations=tuple(self.engine.find_combinations(symbols))))

    def combine(self, symbol: Symbol) -> Round:
        """
        Replaces the selected cards with one new card holding `symbol`.
        """
        current = self.current_round
        if not self._is_active('combine'):
            return current
        if not current.selected_ids:
            raise EmptySelection("No cards selected!")
        if symbol not in current.combinations:
            logger.warning("Combining into %r, which the selection %s does not produce",
                           symbol, [card.symbol for card in current.selected_cards])
        remaining = [card for card in current.cards if card.id not in current.selected_ids]
        logger.debug("Combined %s into %r", [card.symbol for card in current.selected_cards], symbol)
        return self._push(self._with_pool(current, remaining + list(self._make_cards([symbol]))))

    def decompose(self, card_id: str) -> Round:
        """
        Replaces a composite card with one card per immediate component.
        """
        current = self.current_round
        if not self._is_active('decompose'):
            return current
        card = current.card(card_id)
        entry = self.engine.graph.lookup(card.symbol)
        if entry is None:
            raise LeafDecomposition(f"Cannot decompose leaf component: {card.symbol}")
        remaining = [other for other in current.cards if other.id != card.id]
        logger.debug("Decomposed %r into %s", card.symbol, list(entry.components))
        return self._push(self._with_pool(current, remaining + list(self._make_cards(entry.components))))

    def submit(self) -> Round:
        """
        Checks the pool against the target. A miss costs one attempt; running
        out of attempts ends the game.
        """
        current = self.current_round
        if not self._is_active('submit'):
            return current
        if target_met(current.target, current.cards):
            logger.info("Round won: %r", current.target)
            return self._push(replace(current, status=RoundStatus.WON))
        attempts_left = current.attempts_left - 1
        status = RoundStatus.OVER if attempts_left <= 0 else RoundStatus.IN_PROGRESS
        logger.info("Incorrect answer for %r, %d attempts left", current.target, attempts_left)
        return self._push(replace(current, attempts_left=max(attempts_left, 0), status=status))

    def advance(self) -> Round:
        """
        Moves from a won round to a freshly dealt one, updating the level.
        """
        current = self.current_round
        if current.status != RoundStatus.WON:
            logger.warning("Ignoring advance(): the round has not been won.")
            return current
        # An ongoing game keeps the pacing it was dealt with.
        rounds_per_level = current.rounds_per_level
        total = current.total_rounds_completed + 1
        return self._push(self._deal_round(
            level=level_for(total, self.config, rounds_per_level),
            round_in_level=total % rounds_per_level + 1,
            total_rounds_completed=total,
            total_hints_used=current.total_hints_used,
            rounds_per_level=rounds_per_level,
        ))

    def use_hint(self) -> Tuple[Round, Optional[Hint]]:
        """
        Marks the first unused hint as used and returns it for highlighting.

        Returns:
            Tuple[Round, Optional[Hint]]: The new snapshot and the hint, or
            the unchanged snapshot and None when no unused hint is left.
        """
        current = self.current_round
        for index, hint in enumerate(current.hints):
            if not hint.used:
                used = hint.mark_used()
                hints = current.hints[:index] + (used,) + current.hints[index + 1:]
                new_round = self._push(replace(current, hints=hints,
                                               hints_used=current.hints_used + 1,
                                               total_hints_used=current.total_hints_used + 1))
                return new_round, used
        return current, None

    def reset(self) -> Round:
        """Starts over at level 1 with fresh counters, from any state."""
        return self._push(self._deal_round(level=1, round_in_level=1,
                                           total_rounds_completed=0, total_hints_used=0))

    def take_turn(self, move: str, **kwargs: Any) -> Round:
        """
        Dispatches one player action by name and returns the resulting
        snapshot.
        """
        if move not in self.MOVES:
            raise AttributeError(f"'{move}' is not a valid move.")
        result = getattr(self, move)(**kwargs)
        if move == 'use_hint':
            return result[0]
        return result
