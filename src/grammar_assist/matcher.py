"""Match a token stream against the rule graph.

Completion input is a prefix of a sentence, so the interesting outcome of a
match is rarely "matched" or "failed" but *where* the tokens ran out. The
matcher explores every alternative and every multiplicity branch without
committing to one, and reports each place where the final token was
consumed as an :class:`ElementNode` leaf. Parent links on the leaf describe
the path that led there, which is what suggestion synthesis walks to find
out what may come next.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from grammar_assist.common import UNKNOWN_TOKEN_TYPE
from grammar_assist.grammar import (
    AnyToken,
    EndOfInput,
    Literal,
    NegatedTokenSet,
    RuleReference,
    TokenReference,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from grammar_assist.cancellation import CancelToken
    from grammar_assist.grammar import Alternative, Element, Grammar, Rule, Terminal
    from grammar_assist.tokens import Token, TokenStream

    type _Outcome = tuple[list[int], list[ElementNode]]

logger = logging.getLogger(__name__)


@dataclass(slots=True, eq=False)
class RuleNode:
    rule: Rule
    parent: ElementNode | None


@dataclass(slots=True, eq=False)
class AlternativeNode:
    """
    One alternative being matched.

    Attributes:
        alternative: The grammar alternative.
        parent: The rule the alternative belongs to.
        start: Stream position the alternative started matching at, or
            ``None`` for alternatives entered by suggestion synthesis that
            have not consumed any input.
    """

    alternative: Alternative
    parent: RuleNode
    start: int | None = None


@dataclass(slots=True, eq=False)
class ElementNode:
    element: Element
    index: int
    parent: AlternativeNode

    @property
    def caller(self) -> ElementNode | None:
        """The rule reference whose rule this element's alternative belongs to."""
        return self.parent.parent.parent

    @property
    def is_last(self) -> bool:
        return self.index == len(self.parent.alternative.elements) - 1

    def sibling(self, index: int, /) -> ElementNode:
        return ElementNode(self.parent.alternative.elements[index], index, self.parent)

    def following(self) -> Iterator[ElementNode]:
        for index in range(self.index + 1, len(self.parent.alternative.elements)):
            yield self.sibling(index)

    @property
    def rule_name(self) -> str:
        return self.parent.parent.rule.name

    def path(self) -> list[str]:
        """Rule names from the start rule down to this element."""
        names: list[str] = []
        node: ElementNode | None = self
        while node is not None:
            names.append(node.rule_name)
            node = node.caller
        return names[::-1]


class Matcher:
    """
    Structural matcher for one token stream.

    In partial mode (the default) exploration stops as soon as the stream is
    exhausted, and :meth:`partial_matches` collects the leaves. With
    ``partial=False`` the matcher keeps going through the remaining elements,
    which :meth:`matches` needs to decide whether the whole stream is a
    sentence of a rule.
    """

    def __init__(
        self,
        grammar: Grammar,
        stream: TokenStream,
        /,
        *,
        partial: bool = True,
        cancel_token: CancelToken | None = None,
    ) -> None:
        self.grammar = grammar
        self.tokens = stream.tokens
        self.end = len(stream.tokens) - 1
        self.partial = partial
        self.cancel_token = cancel_token

    def partial_matches(self, rule: Rule, /) -> list[ElementNode]:
        if self.end == 0:
            return []

        _, leaves = self._match_rule(rule, 0, None, frozenset())
        logger.debug(
            'Rule %r: %d partial matches over %d tokens', rule.name, len(leaves), self.end
        )
        return leaves

    def matches(self, rule: Rule, /) -> bool:
        ends, _ = self._match_rule(rule, 0, None, frozenset())
        return self.end in ends

    def match_once(self, node: ElementNode, /) -> list[int]:
        """Positions reached by one instance of ``node``'s element from the stream start."""
        ends, _ = self._match_element(node, 0, frozenset())
        return ends

    def _match_rule(
        self,
        rule: Rule,
        position: int,
        caller: ElementNode | None,
        visiting: frozenset[tuple[str, int]],
    ) -> _Outcome:
        if self.cancel_token is not None:
            self.cancel_token.check()

        key = (rule.name, position)
        if key in visiting:
            # left recursion: this path cannot make progress
            return [], []
        visiting = visiting | {key}

        rule_node = RuleNode(rule, caller)
        ends: dict[int, None] = {}
        leaves: list[ElementNode] = []
        for alternative in rule.alternatives:
            alt_ends, alt_leaves = self._match_elements(
                AlternativeNode(alternative, rule_node, position),
                0,
                position,
                visiting,
            )
            ends.update(dict.fromkeys(alt_ends))
            leaves.extend(alt_leaves)

        return list(ends), leaves

    def _match_elements(
        self,
        alt_node: AlternativeNode,
        index: int,
        position: int,
        visiting: frozenset[tuple[str, int]],
    ) -> _Outcome:
        elements = alt_node.alternative.elements
        if index == len(elements) or (self.partial and position == self.end):
            return [position], []

        node = ElementNode(elements[index], index, alt_node)
        multiplicity = node.element.multiplicity
        ends: dict[int, None] = {}
        leaves: list[ElementNode] = []

        reached: list[int] = []
        if multiplicity.optional:
            reached.append(position)
        seen = set(reached)

        frontier = [position]
        while frontier:
            grown: list[int] = []
            for at in frontier:
                if self.partial and at == self.end:
                    continue
                once_ends, once_leaves = self._match_element(node, at, visiting)
                leaves.extend(once_leaves)
                for end in once_ends:
                    if end not in seen:
                        seen.add(end)
                        grown.append(end)
            reached.extend(grown)
            if not multiplicity.repeatable:
                break
            frontier = grown

        for at in reached:
            rest_ends, rest_leaves = self._match_elements(
                alt_node, index + 1, at, visiting
            )
            ends.update(dict.fromkeys(rest_ends))
            leaves.extend(rest_leaves)

        return list(ends), leaves

    def _match_element(
        self, node: ElementNode, position: int, visiting: frozenset[tuple[str, int]]
    ) -> _Outcome:
        token = self.tokens[position]

        match node.element:
            case RuleReference(rule=name):
                return self._match_rule(
                    self.grammar.rule(name), position, node, visiting
                )
            case EndOfInput():
                return ([position], []) if token.is_eof else ([], [])
            case terminal:
                if not _accepts(terminal, token):
                    return [], []
                end = position + 1
                return [end], [node] if end == self.end else []


def _accepts(element: Terminal, token: Token, /) -> bool:
    if token.is_eof:
        return False

    match element:
        case Literal(literal=literal, token_type=token_type):
            if token_type == UNKNOWN_TOKEN_TYPE:
                return token.text == literal
            return token.type == token_type
        case TokenReference(token_type=token_type):
            return token.type == token_type
        case NegatedTokenSet(token_types=token_types):
            return token.type not in token_types
        case AnyToken():
            return True
        case EndOfInput():
            return False
