"""Public completion API.

:class:`CodeAssist` ties the pieces together for one grammar and one lexer:
the text before the caret is tokenized, the matcher finds every place the
tokens ran out, the synthesizer turns those places into candidates, and the
request assembles them into replacements over the full input text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from grammar_assist.cancellation import CancelToken
from grammar_assist.grammar import TokenReference
from grammar_assist.matcher import Matcher
from grammar_assist.suggestions import SuggestionSynthesizer
from grammar_assist.tokens import tokenize

if TYPE_CHECKING:
    from grammar_assist.grammar import Grammar, Rule
    from grammar_assist.matcher import ElementNode
    from grammar_assist.suggestions import ElementSuggester, ElementSuggestion
    from grammar_assist.tokens import Lexer, TokenStream

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Suggestion:
    """
    One completion for an input text.

    Attributes:
        begin: Start of the replaced span in the input text.
        end: End (exclusive) of the replaced span.
        text: Text that replaces ``text[begin:end]``.
        caret: Caret offset in the resulting content.
        description: Label for display, usually the literal or token name.
    """

    begin: int
    end: int
    text: str
    caret: int
    description: str | None = None

    def apply(self, content: str, /) -> str:
        return content[: self.begin] + self.text + content[self.end :]


@dataclass(slots=True)
class _Replacement:
    node: ElementNode
    begin: int
    end: int
    text: str
    caret: int
    description: str | None


class CodeAssist:
    """
    Grammar-driven completion for one grammar and one lexer.

    Instances hold no per-request state; :meth:`suggest` may be called from
    several threads at once.
    """

    def __init__(
        self,
        grammar: Grammar,
        lexer: Lexer,
        /,
        *,
        suggester: ElementSuggester | None = None,
        timeout: float | None = None,
    ) -> None:
        self.grammar = grammar
        self.lexer = lexer
        self.suggester = suggester
        self.timeout = timeout

    def tokenize(self, text: str, /) -> TokenStream:
        return tokenize(self.lexer, text)

    def matches(self, text: str, rule_name: str, /) -> bool:
        """Whether all of ``text`` is a sentence of ``rule_name``."""
        rule = self.grammar.rule(rule_name)
        return Matcher(self.grammar, self.tokenize(text), partial=False).matches(rule)

    def suggest(
        self,
        text: str,
        caret: int,
        rule_name: str,
        /,
        *,
        cancel_token: CancelToken | None = None,
    ) -> list[Suggestion]:
        """
        Compute the completions for ``text`` with the caret at ``caret``.

        Raises:
            UnknownRuleError: ``rule_name`` is not a rule of the grammar.
            ValueError: ``caret`` is outside ``[0, len(text)]``.
            CompletionCancelledError: The request timed out or ``cancel_token``
                was cancelled.
        """
        rule = self.grammar.rule(rule_name)
        if not 0 <= caret <= len(text):
            raise ValueError(f'Caret {caret} is outside the input (length {len(text)})')

        if cancel_token is None:
            cancel_token = CancelToken.with_timeout(self.timeout)

        suggestions = _CompletionRequest(self, text, caret, cancel_token).run(rule)
        logger.debug(
            'Rule %r at %d of %r: %d suggestions', rule_name, caret, text, len(suggestions)
        )
        return suggestions


class _CompletionRequest:
    def __init__(
        self, assist: CodeAssist, text: str, caret: int, cancel_token: CancelToken
    ) -> None:
        self.assist = assist
        self.grammar = assist.grammar
        self.text = text
        self.caret = caret
        self.cancel_token = cancel_token
        self.synthesizer = SuggestionSynthesizer(
            assist.grammar, suggester=assist.suggester, cancel_token=cancel_token
        )

    def run(self, rule: Rule, /) -> list[Suggestion]:
        before = self.text[: self.caret]
        stream = self.assist.tokenize(before)
        last = stream.last_token

        replacements: list[_Replacement] = []
        if last is None or self.caret > last.stop:
            # text the lexer could not turn into a token is still being typed
            boundary = last.stop if last is not None else 0
            fragment = before[boundary:].lstrip()
            replacements.extend(self._replacements(rule, stream, fragment))
        else:
            replacements.extend(self._replacements(rule, stream, ''))
            replacements.extend(
                self._replacements(rule, stream.without_last(), last.text)
            )

        return self._finish(replacements)

    def _replacements(
        self, rule: Rule, stream: TokenStream, fragment: str
    ) -> list[_Replacement]:
        suggestions: list[ElementSuggestion] = []
        if stream.is_empty:
            suggestions.extend(self.synthesizer.suggest_first(rule, fragment))
        else:
            matcher = Matcher(self.grammar, stream, cancel_token=self.cancel_token)
            for leaf in matcher.partial_matches(rule):
                suggestions.extend(self.synthesizer.suggest_next(leaf, fragment))

        begin = self.caret - len(fragment)
        prefix = self.text[:begin]
        remainder = self.text[begin:]
        remainder_stream = self.assist.tokenize(remainder)

        replacements: list[_Replacement] = []
        for suggestion in suggestions:
            end = self._replacement_end(suggestion.node, begin, remainder, remainder_stream)
            for candidate in suggestion.candidates:
                text, caret = candidate.text, candidate.caret
                if not stream.is_empty and self._merges(stream, prefix + text):
                    text, caret = f' {text}', caret + 1
                replacements.append(
                    _Replacement(
                        suggestion.node, begin, end, text, caret, candidate.description
                    )
                )

        return replacements

    def _replacement_end(
        self, node: ElementNode, begin: int, remainder: str, stream: TokenStream
    ) -> int:
        """Extend the span over tokens after the caret that the element covers."""
        if stream.is_empty or stream.token_at(0).start != 0:
            return self.caret

        matcher = Matcher(
            self.grammar, stream, partial=False, cancel_token=self.cancel_token
        )
        reached = max(matcher.match_once(node), default=0)
        if reached > 0:
            return max(self.caret, begin + stream.token_at(reached - 1).stop)

        if isinstance(node.element, TokenReference):
            mandatories = self.synthesizer.mandatories(node.element)
            if mandatories and remainder.startswith(mandatories[0]):
                return max(self.caret, begin + len(mandatories[0]))

        return self.caret

    def _merges(self, stream: TokenStream, content: str, /) -> bool:
        """Whether lexing ``content`` moves the boundaries of the stream's last token."""
        last = stream.last_token
        if last is None:
            return False

        index = stream.size - 2
        relexed = self.assist.tokenize(content)
        if relexed.size < stream.size:
            return True
        token = relexed.token_at(index)
        return token.start != last.start or token.stop != last.stop

    def _with_mandatories(self, replacement: _Replacement, /) -> str:
        prefix = self.text[: replacement.begin]
        inserted = replacement.text
        for mandatory in self.synthesizer.mandatories_after(replacement.node):
            content = prefix + inserted + mandatory
            if mandatory in self.grammar.token_types_by_literal:
                last = self.assist.tokenize(content).last_token
                if (
                    last is None
                    or last.start != len(content) - len(mandatory)
                    or last.stop != len(content)
                ):
                    mandatory = f' {mandatory}'  # noqa: PLW2901
            inserted += mandatory

        return inserted

    def _finish(self, replacements: list[_Replacement], /) -> list[Suggestion]:
        grouped: dict[str, list[_Replacement]] = {}
        for replacement in replacements:
            key = (
                self.text[: replacement.begin]
                + replacement.text
                + self.text[replacement.end :]
            )
            grouped.setdefault(key, []).append(replacement)

        at_gap = self.caret == len(self.text) or self.text[self.caret].isspace()
        suggestions: dict[str, Suggestion] = {}
        for group in grouped.values():
            first = group[0]
            inserted = (
                self._with_mandatories(first)
                if len(group) == 1 and at_gap
                else first.text
            )
            content = self.text[: first.begin] + inserted + self.text[first.end :]

            caret = first.begin + first.caret
            if (
                first.caret == len(first.text)
                and caret < len(content)
                and not content[caret].isspace()
            ):
                caret = self.synthesizer.skip_mandatories_after(first.node, content, caret)

            if content == self.text and caret == self.caret:
                continue
            if content in suggestions:
                continue
            suggestions[content] = Suggestion(
                first.begin, first.end, inserted, caret, first.description
            )

        return list(suggestions.values())
