#!/usr/bin/env python3
"""
hz_cli.py

Command line surface for playing the composition game one action at a time.
Each game is saved as a JSON file between commands.

Usage:
    hanzi-forge new [game-id]              Start a new game
    hanzi-forge show <game-id>             Show the current round
    hanzi-forge select <game-id> <idx>     Select cards by index (comma-separated)
    hanzi-forge combine <game-id> <char>   Combine the selection into a character
    hanzi-forge decompose <game-id> <idx>  Decompose a card by index
    hanzi-forge submit <game-id>           Submit the current pool
    hanzi-forge hint <game-id>             Reveal the next hint
    hanzi-forge next <game-id>             Move on after a won round
    hanzi-forge reset <game-id>            Start over at level 1
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from hz_config import GameConfig, load_config
from hz_errors import GameError
from hz_game import CharacterGame
from hz_graph import GameData
from hz_session import Round, RoundSession

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Saves sessions as `<games_dir>/<game_id>.json`: the round snapshot plus
    the game id and creation / modification timestamps.
    """
    def __init__(self, games_dir):
        self.games_dir = Path(games_dir)

    def path_for(self, game_id: str) -> Path:
        return self.games_dir / f"{game_id}.json"

    def save(self, game_id: str, snapshot: Round, created_at: Optional[str] = None) -> Dict[str, Any]:
        self.games_dir.mkdir(parents=True, exist_ok=True)
        now = datetime.now().isoformat()
        record = {
            'game_id': game_id,
            'created_at': created_at or now,
            'last_modified': now,
            'round': snapshot.to_dict(),
        }
        path = self.path_for(game_id)
        path.write_text(json.dumps(record, ensure_ascii=False, indent=2), encoding='utf-8')
        logger.debug("Game saved: %s", path)
        return record

    def load(self, game_id: str) -> Dict[str, Any]:
        path = self.path_for(game_id)
        if not path.exists():
            raise GameError(f"Game not found: {game_id}")
        try:
            record = json.loads(path.read_text(encoding='utf-8'))
        except ValueError as e:
            raise GameError(f"Corrupted game record: {game_id}") from e
        if not isinstance(record, dict):
            raise GameError(f"Corrupted game record: {game_id}")
        return record

    def load_round(self, game_id: str) -> Tuple[Round, Optional[str]]:
        """Returns the saved snapshot and the game's creation time."""
        record = self.load(game_id)
        try:
            return Round.from_dict(record['round']), record.get('created_at')
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise GameError(f"Corrupted game record: {game_id}") from e


def format_round(game_id: str, snapshot: Round) -> str:
    """Renders a round as plain text for the terminal."""
    rule = "=" * 60
    lines = [rule, f"GAME: {game_id}", rule,
             f"Level: {snapshot.level} | Round: {snapshot.round_in_level}/{snapshot.rounds_per_level}",
             f"Target: {snapshot.gloss}",
             f"Attempts left: {snapshot.attempts_left}/{snapshot.max_attempts}"]
    if snapshot.game_over:
        lines.append(f"\nGAME OVER! The answer was: {snapshot.target}")
    elif snapshot.won:
        lines.append("\nYOU WON! Run 'next' to continue.")

    lines.append("\nCARDS:")
    for index, card in enumerate(snapshot.cards):
        marker = "leaf" if card.is_leaf else "composite"
        selected = " *" if card.id in snapshot.selected_ids else ""
        lines.append(f"  [{index}] {card.symbol} ({marker}){selected}")

    if snapshot.selected_ids and snapshot.combinations:
        lines.append("\nPOSSIBLE COMBINATIONS:")
        lines.extend(f"  [{index}] {symbol}" for index, symbol in enumerate(snapshot.combinations))

    remaining = sum(1 for hint in snapshot.hints if not hint.used)
    lines.append(f"\nHints: {remaining} available, {snapshot.total_hints_used} used in total")
    lines.append(rule)
    return "\n".join(lines)


def format_hint(snapshot: Round, hint) -> str:
    if hint is None:
        return "No hints left."
    positions = [str(index) for index, card in enumerate(snapshot.cards) if card.id in hint.card_ids]
    if hint.is_answer:
        return f"The answer is already on the table: card [{positions[0]}]"
    return f"Try combining cards [{', '.join(positions)}]"


def parse_indices(text: str) -> List[int]:
    try:
        return [int(part.strip()) for part in text.split(',') if part.strip()]
    except ValueError:
        raise GameError(f"Invalid card indices: {text}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='hanzi-forge', description="Build Chinese characters from their parts.")
    parser.add_argument('--config', type=Path, help="YAML config file (default: ./hanzi_forge.yaml if present)")
    parser.add_argument('--data-dir', help="Directory with the game data JSON files")
    parser.add_argument('--games-dir', help="Directory where games are saved")
    parser.add_argument('--seed', type=int, help="Random seed for dealing")
    parser.add_argument('-v', '--verbose', action='store_true', help="Debug logging")

    commands = parser.add_subparsers(dest='command', required=True)
    new = commands.add_parser('new', help="Start a new game")
    new.add_argument('game_id', nargs='?')
    for name, help_text in (('show', "Show the current round"), ('submit', "Submit the current pool"),
                            ('hint', "Reveal the next hint"), ('next', "Move on after a won round"),
                            ('reset', "Start over at level 1")):
        commands.add_parser(name, help=help_text).add_argument('game_id')
    select = commands.add_parser('select', help="Select cards by index")
    select.add_argument('game_id')
    select.add_argument('indices', help="Comma-separated card indices, e.g. 0,2")
    combine = commands.add_parser('combine', help="Combine the selection")
    combine.add_argument('game_id')
    combine.add_argument('symbol')
    decompose = commands.add_parser('decompose', help="Decompose a card")
    decompose.add_argument('game_id')
    decompose.add_argument('index', type=int)
    return parser


def run(args: argparse.Namespace, config: GameConfig, game: CharacterGame) -> str:
    """Executes one command and returns the text to print."""
    store = SessionStore(config.games_dir)

    if args.command == 'new':
        game_id = args.game_id or f"game-{datetime.now():%Y%m%d%H%M%S}"
        session = game.new_session()
        store.save(game_id, session.current_round)
        return format_round(game_id, session.current_round)

    snapshot, created_at = store.load_round(args.game_id)
    session: RoundSession = game.resume_session(snapshot)
    current = session.current_round
    message = ""

    if args.command == 'show':
        return format_round(args.game_id, current)
    if args.command == 'select':
        card_ids = [current.card_at(index).id for index in parse_indices(args.indices)]
        session.select(card_ids)
    elif args.command == 'combine':
        if session.combine(args.symbol) is not current:
            message = f"Combined into: {args.symbol}"
    elif args.command == 'decompose':
        card = current.card_at(args.index)
        if session.decompose(card.id) is not current:
            message = f"Decomposed: {card.symbol}"
    elif args.command == 'submit':
        result = session.submit()
        if result.won:
            message = "CORRECT! Moving to next round..."
            session.advance()
        elif result.game_over:
            message = f"GAME OVER! The answer was: {result.target}"
        else:
            message = f"Incorrect! {result.attempts_left} attempts left"
    elif args.command == 'hint':
        snapshot, hint = session.use_hint()
        message = format_hint(snapshot, hint)
    elif args.command == 'next':
        session.advance()
    elif args.command == 'reset':
        session.reset()
        message = "Game reset!"

    store.save(args.game_id, session.current_round, created_at)
    output = format_round(args.game_id, session.current_round)
    return f"{message}\n{output}" if message else output


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    try:
        config = load_config(args.config).with_overrides(
            data_dir=args.data_dir, games_dir=args.games_dir, seed=args.seed)
        game = CharacterGame(GameData.load(config.data_dir), config)
        print(run(args, config, game))
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
