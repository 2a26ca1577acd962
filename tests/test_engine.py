"""
test_engine.py

This script tests the composition engine: leaf reduction, the multiset
containment check, the combination finder and the hint search.
"""

from collections import Counter

import pytest
from hz_engine import (MAX_HINTS, CompositionEngine, contains_enough, is_path_member,
                       reduce_to_leaves, reduce_word)
from hz_graph import Card, DecompositionGraph, ReverseIndex, canonical_key
from tests.hanzi_corpus import PLACEHOLDER, build_engine, build_graph


@pytest.fixture
def graph():
    return build_graph()


@pytest.fixture
def engine():
    return build_engine()


def _cards(*symbols):
    graph = build_graph()
    return [Card.for_symbol(symbol, graph) for symbol in symbols]


# --- Leaf reduction ---

@pytest.mark.parametrize("symbol", ['大', '日', PLACEHOLDER, '𦥯'])
def test_leaf_reduces_to_itself(graph, symbol):
    """A symbol without a graph entry is its own single leaf."""
    assert reduce_to_leaves(symbol, graph) == [symbol]


def test_reduction_follows_component_order(graph):
    assert reduce_to_leaves('明', graph) == ['日', '月']
    assert reduce_to_leaves('氣', graph) == ['𠂉', '一', '⺄', '米']


def test_duplicate_parts_are_preserved(graph):
    """哥 is two 可, and each 可 is a placeholder plus 口."""
    leaves = reduce_to_leaves('哥', graph)
    counts = Counter(leaves)
    assert counts[PLACEHOLDER] == 2
    assert counts['口'] == 2
    assert len(leaves) == 4


def test_cycle_terminates_with_repeated_symbol_as_leaf(graph):
    """A -> B -> A stops at the second A."""
    assert reduce_to_leaves('A', graph) == ['A']
    assert reduce_to_leaves('B', graph) == ['B']


def test_symbol_on_path_is_treated_as_leaf(graph):
    assert reduce_to_leaves('明', graph, path=['明']) == ['明']


def test_reduce_word_reduces_each_character(graph):
    assert reduce_word('大學', graph) == ['大', '𦥯', '子']
    assert reduce_word(PLACEHOLDER, graph) == [PLACEHOLDER]


def test_empty_component_list_is_a_leaf():
    graph = DecompositionGraph.from_components({'丨': []})
    assert reduce_to_leaves('丨', graph) == ['丨']
    assert graph.is_leaf('丨')


# --- Multiset containment ---

def test_contains_enough_counts_duplicates(graph):
    required = reduce_to_leaves('哥', graph)
    assert not contains_enough(['可'], required, graph)
    assert contains_enough(['可', '可'], required, graph)


def test_contains_enough_ignores_surplus(graph):
    required = reduce_to_leaves('明', graph)
    assert contains_enough(['日', '月', '女', '子'], required, graph)


def test_built_composite_counts_through_its_leaves(graph):
    """An intermediate card satisfies a requirement for its own parts."""
    assert contains_enough(['可', PLACEHOLDER, '口'], reduce_to_leaves('哥', graph), graph)
    assert contains_enough(['林', '木'], reduce_to_leaves('森', graph), graph)


# --- Combination finder ---

def test_find_combinations_simple_pair(engine):
    assert '明' in engine.find_combinations(['日', '月'])


def test_find_combinations_uses_subsets(engine):
    """Three cards selected, two of them used."""
    assert engine.find_combinations(['日', '子', '月']) == ['明']


def test_find_combinations_astral_component(engine):
    assert '學' in engine.find_combinations(['𦥯', '子'])


def test_find_combinations_with_intermediate(engine):
    assert '森' in engine.find_combinations(['木', '林'])
    assert '森' in engine.find_combinations(['木', '木', '木'])


def test_find_combinations_no_match(engine):
    assert engine.find_combinations(['日', '女']) == []
    assert engine.find_combinations([]) == []


def test_find_combinations_rejects_missing_duplicate(graph):
    """
    The index claims a single 可 makes 哥; the containment check knows 哥
    needs two 口 and rejects it.
    """
    index = ReverseIndex({'可': ['哥'], canonical_key(['可', '可']): ['哥']})
    engine = CompositionEngine(graph, index)
    assert engine.find_combinations(['可']) == []
    assert engine.find_combinations(['可', '可']) == ['哥']


def test_find_combinations_results_are_deduplicated(engine):
    result = engine.find_combinations(['木', '木', '木'])
    assert len(result) == len(set(result))
    assert set(result) == {'林', '森'}


# --- Path membership ---

def test_path_membership(graph):
    assert is_path_member('气', '氣', graph)
    assert is_path_member('一', '氣', graph)
    assert is_path_member('林', '森', graph)
    assert not is_path_member('明', '氣', graph)
    assert not is_path_member('日', '大', graph)


def test_path_membership_terminates_on_cycle(graph):
    assert is_path_member('B', 'A', graph)
    assert not is_path_member('C', 'A', graph)


def test_path_membership_for_word_target(engine):
    assert engine.is_path_member('學', '大學')
    assert engine.is_path_member('𦥯', '大學')
    assert not engine.is_path_member('明', '大學')


# --- Hint search ---

def test_answer_hint_when_target_is_on_the_table(engine):
    cards = _cards('日', '明', '月')
    hints = engine.find_hints('明', cards)
    assert len(hints) == 1
    assert hints[0].is_answer
    assert hints[0].card_ids == (cards[1].id,)
    assert not hints[0].used


def test_hints_skip_steps_off_the_target_path(engine):
    cards = _cards('日', '女', '月', '子')
    hints = engine.find_hints('明', cards)
    assert len(hints) == 1
    assert set(hints[0].card_ids) == {cards[0].id, cards[2].id}
    assert hints[0].result == '明'
    assert not hints[0].is_answer


def test_hints_propose_intermediate_from_triple(engine):
    cards = _cards('𠂉', '一', '⺄', '米')
    hints = engine.find_hints('氣', cards)
    assert [hint.result for hint in hints] == ['气']
    assert set(hints[0].card_ids) == {cards[0].id, cards[1].id, cards[2].id}


def test_hints_are_bounded_and_rank_target_first(engine):
    cards = _cards('木', '木', '木', '木', '木')
    hints = engine.find_hints('森', cards)
    assert len(hints) == MAX_HINTS
    assert all(hint.result == '森' for hint in hints)
    assert len({frozenset(hint.card_ids) for hint in hints}) == MAX_HINTS


def test_hints_do_not_repeat_a_card_set():
    """Two candidates from the same pair produce a single hint."""
    graph = DecompositionGraph.from_components({'T': ['X', 'Y'], 'X': ['a', 'b'], 'Y': ['a', 'b']})
    engine = CompositionEngine(graph, ReverseIndex({'ab': ['X', 'Y']}))
    cards = [Card.for_symbol('a', graph), Card.for_symbol('b', graph)]
    hints = engine.find_hints('T', cards)
    assert len(hints) == 1
    assert hints[0].result == 'X'


def test_hints_for_word_target(engine):
    cards = _cards('大', '𦥯', '子')
    hints = engine.find_hints('大學', cards)
    assert [hint.result for hint in hints] == ['學']


def test_no_cards_no_hints(engine):
    assert engine.find_hints('明', []) == []


def test_engine_does_not_mutate_graph_or_index(engine):
    graph_before = engine.graph.to_dict()
    index_before = engine.reverse_index.to_dict()
    engine.find_combinations(['木', '木', '木'])
    engine.find_hints('森', _cards('木', '木', '木'))
    assert engine.graph.to_dict() == graph_before
    assert engine.reverse_index.to_dict() == index_before
