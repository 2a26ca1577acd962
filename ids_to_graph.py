"""
ids_to_graph.py

This module provides the translator for converting ideographic description
records (IDS, as published in the CHISE IDS files) into a DecompositionGraph.

Each record is one tab-separated line:

    U+660E<TAB>明<TAB>⿰日月
    CDP-8B7A<TAB>&CDP-8B7A;<TAB>⿱...

The translation process involves three steps:
1.  **Record splitting**: comment lines (`#`, `;;`) and blank lines are
    skipped, and a record whose description is the symbol itself (an atomic
    character) contributes no entry.
2.  **Parsing**: a Lark grammar turns the description into a flat sequence of
    operator, entity and character tokens.
3.  **Component extraction**: operators describe the spatial layout only and
    are dropped, including extended operators spelled as entities like
    `&U-i001+2FF1;`. Entity placeholders stay whole, so `&CDP-8B7A;` is one
    component.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from lark import Lark, Token, Tree
from lark.exceptions import LarkError

from hz_graph import DecompositionEntry, DecompositionGraph, Symbol

logger = logging.getLogger(__name__)

ids_grammar = r"""
    start: part+
    ?part: OPERATOR | ENTITY | CHAR
    OPERATOR: /[⿰-⿿]/
    ENTITY: /&[^&;\s]+;/
    CHAR: /[^\s&;\[\]⿰-⿿]/
    SOURCE_TAG: /\[[^\]]*\]/
    %ignore SOURCE_TAG
    %ignore /[ ]+/
"""


def is_extended_operator(entity: str) -> bool:
    """
    Tells whether an entity reference spells an IDS operator, e.g.
    `&U-i002+2FF1;`. A variant such as `&U-i001+20541;` is a real component.
    """
    if not entity.startswith('&U-i') or '+' not in entity:
        return False
    code = entity[entity.index('+') + 1:].rstrip(';')
    return code.upper().startswith('2FF')


class IdsToGraph:
    """
    Translates IDS records into an instance of DecompositionGraph.
    """
    def __init__(self, graph: Optional[DecompositionGraph] = None):
        """
        Initializes the translator with a parser and a target graph.

        Args:
            graph (Optional[DecompositionGraph]): Graph to add entries to. If
                None, a new empty graph is used. Later records for a symbol
                replace earlier ones.
        """
        self.parser = Lark(ids_grammar, start='start', parser='lalr')
        self.graph = graph or DecompositionGraph()

    def parse_ids(self, ids: str) -> List[Symbol]:
        """
        Extracts the ordered components of one description.

        Args:
            ids (str): The description, e.g. `⿰日月` or `⿱&CDP-855B;米`.

        Returns:
            List[Symbol]: The components with operators removed.
        """
        tree = self.parser.parse(ids.strip())
        return [token.value for token in self._tokens(tree) if self._is_component(token)]

    def _tokens(self, tree: Tree) -> Iterable[Token]:
        for child in tree.children:
            if isinstance(child, Token):
                yield child
            else:
                yield from self._tokens(child)

    @staticmethod
    def _is_component(token: Token) -> bool:
        if token.type == 'OPERATOR':
            return False
        if token.type == 'ENTITY':
            return not is_extended_operator(token.value)
        return True

    def translate_line(self, line: str) -> Optional[DecompositionEntry]:
        """
        Translates a single record and adds it to the graph.

        Returns:
            Optional[DecompositionEntry]: The new entry, or None if the line
            is a comment, is malformed, or describes an atomic symbol.
        """
        if not line.strip() or line.startswith('#') or line.startswith(';;'):
            return None
        fields = line.rstrip('\r\n').split('\t')
        if len(fields) < 3:
            logger.debug("Skipping record with %d fields: %r", len(fields), line)
            return None
        symbol, ids = fields[1], fields[2].strip()
        if not ids or ids == symbol:
            return None
        try:
            components = self.parse_ids(ids)
        except LarkError as e:
            logger.warning("Could not parse description %r for %r: %s", ids, symbol, e)
            return None
        if not components:
            return None
        return self.graph.add_entry(DecompositionEntry(symbol, components, ids), replace=True)

    def translate(self, text: str) -> DecompositionGraph:
        """
        The main public method to perform the translation.

        Args:
            text (str): The contents of one or more IDS files.

        Returns:
            DecompositionGraph: The graph with every decomposable record added.
        """
        for line in text.splitlines():
            self.translate_line(line)
        return self.graph

    def load(self, paths: Iterable) -> DecompositionGraph:
        """
        Translates several IDS files into the graph, in order. A file that
        cannot be read is reported and skipped.
        """
        for path in paths:
            path = Path(path)
            before = len(self.graph)
            try:
                text = path.read_text(encoding='utf-8')
            except OSError as e:
                logger.warning("Could not load %s: %s", path, e)
                continue
            self.translate(text)
            logger.info("Loaded %d entries from %s", len(self.graph) - before, path)
        return self.graph
