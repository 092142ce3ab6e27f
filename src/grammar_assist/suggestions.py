"""Turn match positions into insertion candidates.

Given a place in the rule graph (a partial-match leaf, or the start of a
rule), the synthesizer works out which elements may come next and what text
each of them can be typed as. It also knows which literals the grammar
forces after an element, which the assembler uses to append mandatory
continuations and to move the caret over punctuation that is already there.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple, Protocol

from grammar_assist.grammar import Literal, Multiplicity, RuleReference, TokenReference
from grammar_assist.matcher import AlternativeNode, ElementNode, RuleNode

if TYPE_CHECKING:
    from collections.abc import Sequence

    from grammar_assist.cancellation import CancelToken
    from grammar_assist.grammar import Element, Grammar, Rule

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class InputCandidate:
    """
    Text that can be typed for one element.

    Attributes:
        text: Text to insert.
        caret: Caret offset within ``text`` after insertion.
        description: Label shown next to the suggestion.
    """

    text: str
    caret: int
    description: str | None = None


@dataclass(slots=True)
class ElementSuggestion:
    node: ElementNode
    candidates: list[InputCandidate]


class ElementSuggester(Protocol):
    """
    Host hook that supplies candidates for an element.

    Returning ``None`` falls back to the candidates derived from the grammar;
    returning a sequence (even an empty one) replaces them. Rule references
    are offered to the hook before they are expanded.
    """

    def __call__(
        self, node: ElementNode, fragment: str, /
    ) -> Sequence[InputCandidate] | None: ...


class CaretMove(NamedTuple):
    offset: int
    stop: bool


class SuggestionSynthesizer:
    def __init__(
        self,
        grammar: Grammar,
        /,
        *,
        suggester: ElementSuggester | None = None,
        cancel_token: CancelToken | None = None,
    ) -> None:
        self.grammar = grammar
        self.suggester = suggester
        self.cancel_token = cancel_token

    def suggest_first(self, rule: Rule, fragment: str, /) -> list[ElementSuggestion]:
        """Suggestions for the start of ``rule``, as when nothing was typed yet."""
        return self._first_of_rule(RuleNode(rule, None), fragment, set())

    def suggest_next(self, leaf: ElementNode, fragment: str, /) -> list[ElementSuggestion]:
        """
        Suggestions for what may follow ``leaf``.

        A repeatable element may come again. Then each following sibling
        contributes its first set, moving on while siblings can be empty,
        and an exhausted alternative hands over to the rule reference that
        called it.
        """
        suggestions: list[ElementSuggestion] = []
        node: ElementNode | None = leaf
        while node is not None:
            if node.element.multiplicity.repeatable:
                suggestions.extend(self._first_of_element(node, fragment, set()))

            for sibling in node.following():
                suggestions.extend(self._first_of_element(sibling, fragment, set()))
                if not self.grammar.is_nullable(sibling.element):
                    return suggestions

            node = node.caller

        return suggestions

    def _first_of_rule(
        self, rule_node: RuleNode, fragment: str, visited: set[str]
    ) -> list[ElementSuggestion]:
        if self.cancel_token is not None:
            self.cancel_token.check()

        name = rule_node.rule.name
        if name in visited:
            logger.debug('Cycle through rule %r cut off', name)
            return []

        visited.add(name)
        suggestions: list[ElementSuggestion] = []
        for alternative in rule_node.rule.alternatives:
            alt_node = AlternativeNode(alternative, rule_node)
            for index, element in enumerate(alternative.elements):
                suggestions.extend(
                    self._first_of_element(
                        ElementNode(element, index, alt_node), fragment, visited
                    )
                )
                if not self.grammar.is_nullable(element):
                    break
        visited.discard(name)

        return suggestions

    def _first_of_element(
        self, node: ElementNode, fragment: str, visited: set[str]
    ) -> list[ElementSuggestion]:
        custom = self.suggester(node, fragment) if self.suggester is not None else None

        if custom is None:
            match node.element:
                case RuleReference(rule=name):
                    return self._first_of_rule(
                        RuleNode(self.grammar.rule(name), node), fragment, visited
                    )
                case Literal(literal=literal):
                    custom = [InputCandidate(literal, len(literal), literal)]
                case TokenReference() as token:
                    custom = self._token_candidates(token)
                case _:
                    custom = []

        candidates = [
            candidate
            for candidate in custom
            if candidate.text and candidate.text.startswith(fragment)
        ]
        return [ElementSuggestion(node, candidates)] if candidates else []

    def _token_candidates(self, token: TokenReference, /) -> list[InputCandidate]:
        """
        Spell out a token from its lexer rule.

        Each alternative contributes the concatenation of its required
        literal parts. The caret lands at the first part that cannot be
        spelled out, so a quoted-string rule gives ``""`` with the caret
        between the quotes.
        """
        rule = self.grammar.lexer_rule(token)
        if rule is None:
            literal = self.grammar.literal_for(token.token_type)
            if literal is None:
                return []
            return [InputCandidate(literal, len(literal), token.rule)]

        candidates: list[InputCandidate] = []
        for alternative in rule.alternatives:
            text = ''
            caret: int | None = None
            for element in alternative.elements:
                forced = (
                    self._forced_text(element, {rule.name})
                    if element.multiplicity.required
                    else None
                )
                if forced is None:
                    if caret is None:
                        caret = len(text)
                    continue
                text += forced
                if element.multiplicity.repeatable and caret is None:
                    caret = len(text)
            if text:
                candidates.append(
                    InputCandidate(text, len(text) if caret is None else caret, token.rule)
                )

        return candidates

    def _forced_text(self, element: Element, visited: set[str]) -> str | None:
        """The only spelling of one instance of a lexical element, if any."""
        match element:
            case Literal(literal=literal):
                return literal
            case TokenReference(token_type=token_type):
                rule = self.grammar.lexer_rule(element)
                if rule is None:
                    return self.grammar.literal_for(token_type)
                return self._rule_text(rule, visited)
            case RuleReference(rule=name):
                return self._rule_text(self.grammar.rule(name), visited)
            case _:
                return None

    def _rule_text(self, rule: Rule, visited: set[str]) -> str | None:
        if rule.name in visited or len(rule.alternatives) != 1:
            return None

        visited.add(rule.name)
        parts: list[str] = []
        for element in rule.alternatives[0].elements:
            text = (
                self._forced_text(element, visited)
                if element.multiplicity is Multiplicity.ONE
                else None
            )
            if text is None:
                break
            parts.append(text)
        else:
            visited.discard(rule.name)
            return ''.join(parts)

        visited.discard(rule.name)
        return None

    def _mandatory_chain(
        self, element: Element, visited: set[str]
    ) -> tuple[list[str], bool]:
        """
        Token texts every instance of ``element`` starts with.

        The flag tells whether the chain spells out the whole element.
        """
        match element:
            case Literal(literal=literal):
                return [literal], True
            case TokenReference():
                text = self._forced_text(element, set())
                return ([text], True) if text else ([], False)
            case RuleReference(rule=name):
                rule = self.grammar.rule(name)
                if rule.lexical:
                    text = self._rule_text(rule, set())
                    return ([text], True) if text else ([], False)
                if name in visited or len(rule.alternatives) != 1:
                    return [], False

                visited.add(name)
                chain: list[str] = []
                for child in rule.alternatives[0].elements:
                    if child.multiplicity.optional:
                        return chain, False
                    texts, complete = self._mandatory_chain(child, visited)
                    chain.extend(texts)
                    if not complete or child.multiplicity.repeatable:
                        return chain, False
                return chain, True
            case _:
                return [], False

    def mandatories(self, element: Element, /) -> list[str]:
        return self._mandatory_chain(element, set())[0]

    def mandatories_after(self, node: ElementNode, /) -> list[str]:
        """
        Literals the grammar forces after ``node``.

        Only alternatives that this suggestion starts are considered: once an
        alternative has consumed typed input, whatever closes it may already
        be in the text after the caret.
        """
        texts: list[str] = []
        current: ElementNode | None = node
        while current is not None and current.parent.start is None:
            for sibling in current.following():
                if sibling.element.multiplicity.optional:
                    continue
                chain, complete = self._mandatory_chain(sibling.element, set())
                texts.extend(chain)
                if not complete:
                    return texts
            current = current.caller

        return texts

    def skip_mandatories(self, element: Element, content: str, offset: int, /) -> CaretMove:
        chain, complete = self._mandatory_chain(element, set())
        if not chain:
            return CaretMove(offset, True)

        for text in chain:
            if not content.startswith(text, offset):
                return CaretMove(offset, True)
            offset += len(text)

        return CaretMove(offset, not complete or element.multiplicity.repeatable)

    def skip_mandatories_after(self, node: ElementNode, content: str, offset: int, /) -> int:
        """Move ``offset`` over forced literals after ``node`` found in ``content``."""
        current: ElementNode | None = node
        while current is not None:
            if current.element.multiplicity.repeatable:
                break
            if current.is_last:
                current = current.caller
                continue

            following = current.sibling(current.index + 1)
            if following.element.multiplicity.optional:
                break
            offset, stop = self.skip_mandatories(following.element, content, offset)
            if stop:
                break
            current = following

        return offset
