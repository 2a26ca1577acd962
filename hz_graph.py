"""
hz_graph.py

This module defines the read-only data the composition engine works on:

1.  **DecompositionGraph**: maps a symbol to its ordered list of immediate
    components. A symbol that is not a key (or whose component list is empty)
    is a leaf. The graph may contain cycles and may reference entity
    placeholders such as `&CDP-8B7A;` that have no entry of their own.

2.  **ReverseIndex**: maps a canonical key (the sorted, concatenated symbols
    of a group) to the symbols that can be produced from exactly that group.
    It is a coarse index; callers confirm its answers with a multiset check.

3.  **GameData**: the bundle loaded once per process from the JSON files the
    offline builder writes, together with the per-level word lists and the
    gloss tables used for display text.

4.  **Card** and **Hint**: the small immutable values a round is made of. A
    card wraps one symbol in play; a hint names the cards of one useful
    combination step.
"""

import json
import logging
import re
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

# --- Type Aliases for Clarity ---
Symbol = str
CanonicalKey = str

# An entity placeholder is one symbol; every other code point is one symbol.
_SYMBOL_RE = re.compile(r"&[^&;\s]+;|.", re.DOTALL)


def split_word(word: str) -> List[Symbol]:
    """
    Splits a word into its symbols.

    Entity placeholders like `&CDP-89FA;` stay whole, so a word made of one
    placeholder yields a single symbol.
    """
    return _SYMBOL_RE.findall(word)


def is_single_symbol(word: str) -> bool:
    return len(split_word(word)) == 1


def canonical_key(symbols: Iterable[Symbol]) -> CanonicalKey:
    """Returns the sorted, concatenated form of a group of symbols."""
    return "".join(sorted(symbols))


class DecompositionEntry:
    """One decomposition of a symbol into its immediate components."""
    def __init__(self, symbol: Symbol, components: Iterable[Symbol], ids: str = ""):
        """
        Initializes an entry.

        Args:
            symbol (Symbol): The composite symbol.
            components (Iterable[Symbol]): The ORDERED immediate components.
                Duplicates are meaningful (哥 is two 可).
            ids (str): The raw ideographic description sequence the entry was
                built from, kept for display only.
        """
        self.symbol: Symbol = symbol
        self.components: Tuple[Symbol, ...] = tuple(components)
        self.ids: str = ids

    def to_dict(self) -> Dict[str, object]:
        return {'character': self.symbol, 'ids': self.ids, 'components': list(self.components)}

    def __repr__(self) -> str:
        return f"DecompositionEntry({self.symbol!r} -> {list(self.components)})"


class DecompositionGraph:
    """
    The symbol -> immediate components mapping. Built once, then only read.
    """
    def __init__(self, entries: Optional[Iterable[DecompositionEntry]] = None):
        self._entries: Dict[Symbol, DecompositionEntry] = {}
        for entry in entries or ():
            self.add_entry(entry)

    def add_entry(self, entry: DecompositionEntry, replace: bool = False) -> DecompositionEntry:
        """
        Adds an entry to the graph. Only loaders call this; the engine never
        does.

        Args:
            entry (DecompositionEntry): The entry to add.
            replace (bool): Overwrite an existing entry for the same symbol
                instead of failing. Used when merging several source files.

        Returns:
            DecompositionEntry: The entry that was added.
        """
        if entry.symbol in self._entries and not replace:
            raise ValueError(f"Symbol '{entry.symbol}' already has a decomposition.")
        self._entries[entry.symbol] = entry
        return entry

    def lookup(self, symbol: Symbol) -> Optional[DecompositionEntry]:
        """Returns the entry for a symbol, or None when the symbol is a leaf."""
        entry = self._entries.get(symbol)
        if entry is None or not entry.components:
            return None
        return entry

    def components(self, symbol: Symbol) -> Tuple[Symbol, ...]:
        """Returns the immediate components of a symbol (empty for a leaf)."""
        entry = self.lookup(symbol)
        return entry.components if entry else ()

    def is_leaf(self, symbol: Symbol) -> bool:
        return self.lookup(symbol) is None

    def symbols(self) -> List[Symbol]:
        return list(self._entries)

    def entries(self) -> List[DecompositionEntry]:
        return list(self._entries.values())

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and self.lookup(symbol) is not None

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def from_components(cls, mapping: Dict[Symbol, Iterable[Symbol]]) -> "DecompositionGraph":
        """Builds a graph from a plain {symbol: [components]} mapping."""
        return cls(DecompositionEntry(symbol, components) for symbol, components in mapping.items())

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, object]]) -> "DecompositionGraph":
        """
        Builds a graph from the `char_to_decomposition.json` layout:
        {symbol: {"character": ..., "ids": ..., "components": [...]}}.
        """
        graph = cls()
        for symbol, record in data.items():
            components = record.get('components') or []
            graph.add_entry(DecompositionEntry(symbol, components, str(record.get('ids', ''))))
        return graph

    def to_dict(self) -> Dict[str, Dict[str, object]]:
        return {symbol: entry.to_dict() for symbol, entry in self._entries.items()}

    def __repr__(self) -> str:
        return f"DecompositionGraph(entries={len(self._entries)})"


class ReverseIndex:
    """
    The canonical key -> candidate symbols mapping.
    """
    def __init__(self, mapping: Optional[Dict[CanonicalKey, Iterable[Symbol]]] = None):
        self._candidates: Dict[CanonicalKey, Tuple[Symbol, ...]] = {}
        for key, candidates in (mapping or {}).items():
            self._candidates[key] = tuple(candidates)

    def lookup(self, key: CanonicalKey) -> Tuple[Symbol, ...]:
        """Returns the candidates for a key; a miss yields an empty tuple."""
        return self._candidates.get(key, ())

    def candidates_for(self, symbols: Iterable[Symbol]) -> Tuple[Symbol, ...]:
        return self.lookup(canonical_key(symbols))

    def __len__(self) -> int:
        return len(self._candidates)

    @classmethod
    def from_dict(cls, data: Dict[CanonicalKey, List[Symbol]]) -> "ReverseIndex":
        return cls(data)

    def to_dict(self) -> Dict[CanonicalKey, List[Symbol]]:
        return {key: list(candidates) for key, candidates in self._candidates.items()}

    @classmethod
    def from_graph(cls, graph: DecompositionGraph, include_leaf_keys: bool = True) -> "ReverseIndex":
        """
        Derives an index from a graph.

        Every composite symbol is registered under the key of its immediate
        components. With `include_leaf_keys`, it is also registered under the
        key of its full leaf multiset so it can be built straight from leaves.
        """
        # Imported here; the engine module depends on this one.
        from hz_engine import reduce_to_leaves

        mapping: Dict[CanonicalKey, List[Symbol]] = {}

        def register(key: CanonicalKey, symbol: Symbol):
            bucket = mapping.setdefault(key, [])
            if symbol not in bucket:
                bucket.append(symbol)

        for entry in graph.entries():
            if not entry.components:
                continue
            direct_key = canonical_key(entry.components)
            register(direct_key, entry.symbol)
            if include_leaf_keys:
                leaf_key = canonical_key(reduce_to_leaves(entry.symbol, graph))
                if leaf_key != direct_key:
                    register(leaf_key, entry.symbol)
        return cls(mapping)

    def __repr__(self) -> str:
        return f"ReverseIndex(keys={len(self._candidates)})"


class GameData:
    """
    Everything loaded from the game data directory: the graph, the reverse
    index, the words available at each level and the gloss tables.
    """
    def __init__(self, graph: DecompositionGraph, reverse_index: ReverseIndex,
                 words_by_level: Optional[Dict[int, List[str]]] = None,
                 word_glosses: Optional[Dict[str, List[str]]] = None,
                 char_glosses: Optional[Dict[str, List[str]]] = None):
        self.graph = graph
        self.reverse_index = reverse_index
        self.words_by_level: Dict[int, List[str]] = words_by_level or {}
        self.word_glosses: Dict[str, List[str]] = word_glosses or {}
        self.char_glosses: Dict[str, List[str]] = char_glosses or {}

    def words_at_level(self, level: int) -> List[str]:
        return list(self.words_by_level.get(level, []))

    def lookup_gloss(self, symbol: str, is_single_character: bool) -> Optional[List[str]]:
        """
        Returns the definitions for a character or word, or None.

        Single characters use the character table (which also lists top words
        built on the character); longer words use the word table.
        """
        table = self.char_glosses if is_single_character else self.word_glosses
        definitions = table.get(symbol)
        return list(definitions) if definitions else None

    @classmethod
    def load(cls, directory) -> "GameData":
        """
        Loads game data from a directory written by the offline builder.

        Args:
            directory: Path to the directory holding `char_to_decomposition.json`,
                `components_to_chars.json` and `hsk_words.json`, and optionally
                `word_glosses.json` and `char_glosses.json`.

        Returns:
            GameData: The loaded bundle.
        """
        root = Path(directory)
        graph = DecompositionGraph.from_dict(_read_json(root / 'char_to_decomposition.json'))
        reverse_index = ReverseIndex.from_dict(_read_json(root / 'components_to_chars.json'))
        words_by_level = {int(level): list(words) for level, words in _read_json(root / 'hsk_words.json').items()}
        word_glosses = _read_optional_json(root / 'word_glosses.json')
        char_glosses = _read_optional_json(root / 'char_glosses.json')
        logger.info("Loaded game data from %s: %d decompositions, %d combination keys, %d levels",
                    root, len(graph), len(reverse_index), len(words_by_level))
        return cls(graph, reverse_index, words_by_level, word_glosses, char_glosses)

    def __repr__(self) -> str:
        return f"GameData(graph={self.graph!r}, index={self.reverse_index!r}, levels={sorted(self.words_by_level)})"


def _read_json(path: Path):
    with path.open(encoding='utf-8') as handle:
        return json.load(handle)


def _read_optional_json(path: Path) -> Dict[str, List[str]]:
    """Glosses are display-only, so a missing or broken file loads as empty."""
    try:
        return _read_json(path)
    except (OSError, ValueError) as e:
        logger.warning("Failed to load %s: %s", path.name, e)
        return {}


# --- Round-scoped values ---

@dataclass(frozen=True)
class Card:
    """
    One symbol in play. Cards have no identity beyond their id; two cards may
    hold the same symbol.
    """
    symbol: Symbol
    is_leaf: bool
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @classmethod
    def for_symbol(cls, symbol: Symbol, graph: DecompositionGraph) -> "Card":
        """Creates a fresh card, deriving its leaf flag from the graph."""
        return cls(symbol, graph.is_leaf(symbol))

    def to_dict(self) -> Dict[str, object]:
        return {'id': self.id, 'symbol': self.symbol, 'is_leaf': self.is_leaf}

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Card":
        return cls(str(data['symbol']), bool(data['is_leaf']), str(data['id']))


@dataclass(frozen=True)
class Hint:
    """
    One suggested combination step.

    `card_ids` are the cards to combine, `used` records whether the hint has
    been shown, and `is_answer` means the single referenced card already is
    the target. `result` names the symbol the step produces.
    """
    card_ids: Tuple[str, ...]
    used: bool = False
    is_answer: bool = False
    result: Optional[Symbol] = None

    def mark_used(self) -> "Hint":
        return replace(self, used=True)

    def to_dict(self) -> Dict[str, object]:
        return {'card_ids': list(self.card_ids), 'used': self.used,
                'is_answer': self.is_answer, 'result': self.result}

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "Hint":
        return cls(tuple(data['card_ids']), bool(data.get('used', False)),
                   bool(data.get('is_answer', False)), data.get('result'))
