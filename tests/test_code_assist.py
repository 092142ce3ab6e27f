"""End-to-end tests for CodeAssist.suggest()."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from grammar_assist.cancellation import CancelToken
from grammar_assist.code_assist import CodeAssist, Suggestion
from grammar_assist.errors import CompletionCancelledError, UnknownRuleError
from grammar_assist.grammar import TokenReference
from grammar_assist.grammar_utils import create_grammar, create_literal, create_rule, create_rule_ref
from grammar_assist.suggestions import InputCandidate

if TYPE_CHECKING:
    from collections.abc import Sequence

    from conftest import AssistFactory

    from grammar_assist._types import GrammarDict
    from grammar_assist.matcher import ElementNode


def _variables(node: ElementNode, fragment: str, /) -> Sequence[InputCandidate] | None:
    if isinstance(node.element, TokenReference) and node.element.rule == 'ID':
        return [InputCandidate('foo', 3, 'variable'), InputCandidate('bar', 3)]
    return None


# ============================================================================
# Scenarios
# ============================================================================


class TestScenarios:
    """The reference completion scenarios."""

    def test_completes_partial_keyword(self, greeting_assist: CodeAssist) -> None:
        suggestions = greeting_assist.suggest('hel', 3, 'greeting')

        assert len(suggestions) == 1
        (suggestion,) = suggestions
        assert suggestion.text.startswith('hello')
        assert (suggestion.begin, suggestion.end, suggestion.caret) == (0, 3, 5)
        assert suggestion == Suggestion(0, 3, 'hello ', 5, 'hello')

    def test_suggests_next_rule(self, greeting_assist: CodeAssist) -> None:
        suggestions = greeting_assist.suggest('hello ', 6, 'greeting')

        assert suggestions == [
            Suggestion(6, 6, 'world', 11, 'world'),
            Suggestion(6, 6, 'there', 11, 'there'),
        ]

    def test_mandatory_continuation(self, pair_assist: CodeAssist) -> None:
        suggestions = pair_assist.suggest('(', 1, 'pair')

        assert suggestions == [Suggestion(1, 1, ')', 2, ')')]
        assert suggestions[0].apply('(') == '()'


class TestFragments:
    """How the text before the caret narrows and places suggestions."""

    def test_fragment_filters_suggestions(self, greeting_assist: CodeAssist) -> None:
        suggestions = greeting_assist.suggest('hello t', 7, 'greeting')

        assert suggestions == [Suggestion(6, 7, 'there', 11, 'there')]

    def test_every_text_starts_with_the_fragment(
        self, greeting_assist: CodeAssist
    ) -> None:
        for text in ('w', 'wo', 'wor', 'worl', 'world', 't', 'x'):
            for suggestion in greeting_assist.suggest(f'hello {text}', 6 + len(text), 'greeting'):
                assert suggestion.text.startswith(text)

    def test_span_covers_token_after_caret(self, greeting_assist: CodeAssist) -> None:
        """A token that straddles the caret is replaced as a whole."""
        suggestions = greeting_assist.suggest('hello world', 8, 'greeting')

        assert suggestions == [Suggestion(6, 11, 'world', 11, 'world')]

    def test_replaces_matching_token_after_caret(self, pair_assist: CodeAssist) -> None:
        suggestions = pair_assist.suggest('()', 1, 'pair')

        assert suggestions == [Suggestion(1, 2, ')', 2, ')')]

    def test_empty_input(self, greeting_assist: CodeAssist) -> None:
        suggestions = greeting_assist.suggest('', 0, 'greeting')

        assert suggestions == [Suggestion(0, 0, 'hello ', 5, 'hello')]

    def test_complete_input_has_no_suggestions(self, greeting_assist: CodeAssist) -> None:
        assert greeting_assist.suggest('hello world', 11, 'greeting') == []

    def test_unmatched_input_has_no_suggestions(
        self, greeting_assist: CodeAssist
    ) -> None:
        assert greeting_assist.suggest('world ', 6, 'greeting') == []


class TestAssembly:
    """Spaces, mandatory literals and caret placement."""

    def test_space_keeps_tokens_apart(self, block_assist: CodeAssist) -> None:
        suggestions = block_assist.suggest('begin', 5, 'block')

        assert suggestions == [Suggestion(5, 5, ' end', 9, 'end')]

    def test_mandatory_literal_gets_a_space(self, block_assist: CodeAssist) -> None:
        suggestions = block_assist.suggest('', 0, 'block')

        assert suggestions == [Suggestion(0, 0, 'begin end', 5, 'begin')]

    def test_caret_skips_inserted_mandatories(self, pair_assist: CodeAssist) -> None:
        assert pair_assist.suggest('', 0, 'pair') == [Suggestion(0, 0, '()', 2, '(')]

    def test_caret_skips_existing_mandatories(self, pair_assist: CodeAssist) -> None:
        """Nothing is appended before existing text, but the caret moves past it."""
        assert pair_assist.suggest(')', 0, 'pair') == [Suggestion(0, 0, '(', 2, '(')]

    def test_caret_inside_inserted_token(self, call_assist: CodeAssist) -> None:
        suggestions = call_assist.suggest('f(', 2, 'call')

        assert suggestions == [
            Suggestion(2, 2, '""', 3, 'STRING'),
            Suggestion(2, 2, ')', 3, ')'),
        ]

    def test_mandatories_from_the_calling_rule(
        self, make_assist: AssistFactory, nested_document: GrammarDict
    ) -> None:
        assist = make_assist(nested_document)

        assert assist.suggest('', 0, 'stmt') == [Suggestion(0, 0, '();', 3, '(')]

    def test_caret_skips_mandatories_of_the_calling_rule(
        self, make_assist: AssistFactory, nested_document: GrammarDict
    ) -> None:
        assist = make_assist(nested_document)

        assert assist.suggest(');', 0, 'stmt') == [Suggestion(0, 0, '(', 3, '(')]

    def test_parenthesis_after_identifier(self, call_assist: CodeAssist) -> None:
        assert call_assist.suggest('f', 1, 'call') == [Suggestion(1, 1, '(', 2, '(')]

    def test_deduplicates_identical_results(self, make_assist: AssistFactory) -> None:
        assist = make_assist(
            create_grammar(
                {
                    's': create_rule([[create_rule_ref('a')], [create_rule_ref('b')]]),
                    'a': create_rule([[create_literal('go')]]),
                    'b': create_rule([[create_literal('go')]]),
                }
            )
        )

        assert assist.suggest('', 0, 's') == [Suggestion(0, 0, 'go', 2, 'go')]

    def test_self_referential_rule_terminates(
        self, make_assist: AssistFactory, recursive_document: GrammarDict
    ) -> None:
        assist = make_assist(recursive_document)

        assert assist.suggest('', 0, 'A') == [Suggestion(0, 0, 'y', 1, 'y')]
        assert isinstance(assist.suggest('yx', 2, 'A'), list)


class TestSuggester:
    """Host-supplied candidates flow through assembly."""

    def test_custom_candidates(
        self, make_assist: AssistFactory, block_document: GrammarDict
    ) -> None:
        assist = make_assist(block_document, suggester=_variables)

        suggestions = assist.suggest('begin ', 6, 'block')

        assert suggestions == [
            Suggestion(6, 6, 'foo;', 10, 'variable'),
            Suggestion(6, 6, 'bar;', 10, None),
            Suggestion(6, 6, 'end', 9, 'end'),
        ]

    def test_custom_candidates_are_filtered(
        self, make_assist: AssistFactory, block_document: GrammarDict
    ) -> None:
        assist = make_assist(block_document, suggester=_variables)

        texts = [suggestion.text for suggestion in assist.suggest('begin f', 7, 'block')]

        assert 'foo;' in texts
        assert 'bar;' not in texts


# ============================================================================
# Properties
# ============================================================================


@pytest.mark.parametrize(
    ('assist_name', 'text', 'caret', 'rule'),
    [
        ('greeting_assist', '', 0, 'greeting'),
        ('greeting_assist', 'hel', 3, 'greeting'),
        ('greeting_assist', 'hello ', 6, 'greeting'),
        ('greeting_assist', 'hello wor', 9, 'greeting'),
        ('greeting_assist', 'hello world', 8, 'greeting'),
        ('pair_assist', '(', 1, 'pair'),
        ('pair_assist', ')', 0, 'pair'),
        ('block_assist', 'begin', 5, 'block'),
        ('block_assist', 'begin x; ', 9, 'block'),
        ('call_assist', 'f(', 2, 'call'),
        ('call_assist', 'f(a, ', 5, 'call'),
    ],
)
def test_replacement_round_trip(
    request: pytest.FixtureRequest, assist_name: str, text: str, caret: int, rule: str
) -> None:
    """Tokens outside the replaced span keep their boundaries."""
    assist: CodeAssist = request.getfixturevalue(assist_name)
    original = assist.tokenize(text).tokens[:-1]

    for suggestion in assist.suggest(text, caret, rule):
        result = suggestion.apply(text)
        spans = {(token.start, token.stop) for token in assist.tokenize(result).tokens}
        shift = len(suggestion.text) - (suggestion.end - suggestion.begin)
        for token in original:
            if token.stop <= suggestion.begin:
                assert (token.start, token.stop) in spans
            elif token.start >= suggestion.end:
                assert (token.start + shift, token.stop + shift) in spans


# ============================================================================
# API contract
# ============================================================================


class TestContract:
    def test_unknown_rule(self, greeting_assist: CodeAssist) -> None:
        with pytest.raises(UnknownRuleError, match='farewell'):
            greeting_assist.suggest('hello', 5, 'farewell')

    @pytest.mark.parametrize('caret', [-1, 4])
    def test_caret_out_of_range(self, greeting_assist: CodeAssist, caret: int) -> None:
        with pytest.raises(ValueError, match='outside the input'):
            greeting_assist.suggest('hel', caret, 'greeting')

    def test_timeout(
        self, make_assist: AssistFactory, greeting_document: GrammarDict
    ) -> None:
        assist = make_assist(greeting_document, timeout=0)

        with pytest.raises(CompletionCancelledError, match='timed out'):
            assist.suggest('hello ', 6, 'greeting')

    def test_cancel_token(self, greeting_assist: CodeAssist) -> None:
        cancel_token = CancelToken()
        cancel_token.cancel()

        with pytest.raises(CompletionCancelledError, match='cancelled'):
            greeting_assist.suggest('', 0, 'greeting', cancel_token=cancel_token)

    def test_matches(self, greeting_assist: CodeAssist) -> None:
        assert greeting_assist.matches('hello there', 'greeting')
        assert not greeting_assist.matches('hello', 'greeting')
