"""
test_game.py

This script tests the CharacterGame controller: target and decoy choice,
the initial deal, glosses and session creation.
"""

import random
from collections import Counter

import pytest
from hz_config import GameConfig
from hz_errors import NoWordsAtLevel
from hz_game import CharacterGame
from hz_graph import GameData, ReverseIndex
from hz_session import RoundSession, RoundStatus
from tests.hanzi_corpus import build_graph

WORDS = {
    1: ['明', '大', '好'],
    2: ['學', '森', '哥'],
    3: ['大', '口'],
}


def _game(words=None, seed=0, **config):
    graph = build_graph()
    data = GameData(graph, ReverseIndex.from_graph(graph), words or WORDS,
                    word_glosses={'大學': ['university']},
                    char_glosses={'明': ['bright', 'clear']})
    return CharacterGame(data, GameConfig(seed=seed, **config))


def test_target_is_a_composite_character():
    for seed in range(20):
        assert _game(seed=seed).select_target(1) in {'明', '好'}


def test_target_falls_back_to_any_word():
    assert _game().select_target(3) in {'大', '口'}


def test_empty_level_fails():
    with pytest.raises(NoWordsAtLevel, match="level 9"):
        _game().select_target(9)


def test_decoys_exclude_target_and_leaves():
    game = _game()
    decoys = game.select_decoys('學', 2)
    assert len(decoys) == 2
    assert set(decoys) <= {'森', '哥'}
    assert game.select_decoys('明', 3) == []


def test_decoy_count_is_configurable():
    assert _game(decoy_count=1).select_decoys('學', 2) in (['森'], ['哥'])
    assert _game(decoy_count=0).select_decoys('學', 2) == []


def test_deal_contains_target_and_decoy_leaves():
    game = _game(words={1: ['明', '好']})
    deal = game.deal(1)
    expected = {'明': ['日', '月'], '好': ['女', '子']}
    assert deal.decoys == [word for word in expected if word != deal.target]
    assert Counter(deal.symbols) == Counter(['日', '月', '女', '子'])


def test_deal_keeps_duplicate_leaves():
    deal = _game(words={1: ['哥']}).deal(1)
    assert deal.target == '哥'
    assert Counter(deal.symbols) == Counter({'&CDP-8BBF;': 2, '口': 2})


def test_deal_never_contains_the_target():
    """A cycle can reduce a symbol to itself; that leaf is dropped."""
    deal = _game(words={1: ['A']}).deal(1)
    assert deal.target == 'A'
    assert 'A' not in deal.symbols


def test_gloss_lookup():
    game = _game()
    assert game.gloss_for('明') == 'bright; clear'
    assert game.gloss_for('大學') == 'university'
    assert game.gloss_for('好') == 'Word: 好'


def test_same_seed_same_deal():
    first = _game(seed=42).deal(2)
    second = _game(seed=42).deal(2)
    assert first == second


def test_injected_rng_is_used():
    graph = build_graph()
    data = GameData(graph, ReverseIndex.from_graph(graph), WORDS)
    first = CharacterGame(data, rng=random.Random(7)).deal(1)
    second = CharacterGame(data, rng=random.Random(7)).deal(1)
    assert first == second


def test_new_session():
    game = _game()
    session = game.new_session()
    assert isinstance(session, RoundSession)
    current = session.current_round
    assert current.target in {'明', '好'}
    assert current.status == RoundStatus.IN_PROGRESS
    assert current.level == 1
    assert current.attempts_left == game.config.max_attempts
    assert all(card.is_leaf for card in current.cards)
    assert 1 <= len(current.hints) <= 3


def test_sessions_share_read_only_data():
    game = _game()
    first, second = game.new_session(), game.new_session()
    assert first.engine is second.engine
    first.select([card.id for card in first.current_round.cards])
    assert second.current_round.selected_ids == ()


def test_resume_session():
    game = _game()
    snapshot = game.new_session().current_round
    resumed = game.resume_session(snapshot)
    assert resumed.current_round is snapshot


def test_play_through_to_next_level():
    game = _game(rounds_per_level=1)
    session = game.new_session()
    current = session.current_round
    parts = {'明': ('日', '月'), '好': ('女', '子')}[current.target]
    ids = []
    for symbol in parts:
        ids.append(next(c.id for c in current.cards if c.symbol == symbol and c.id not in ids))
    session.select(ids)
    session.combine(current.target)
    assert session.submit().won
    following = session.advance()
    assert following.level == 2
    assert following.target in {'學', '森', '哥'}
