"""Pytest configuration and fixtures for grammar_assist tests.

Grammar documents are assembled with the ``grammar_utils`` factories so each
test states its grammar the way a grammar compiler would emit it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import pytest

from grammar_assist.builder import build_grammar
from grammar_assist.code_assist import CodeAssist
from grammar_assist.grammar_utils import (
    create_any,
    create_grammar,
    create_lexer_token,
    create_literal,
    create_not,
    create_rule,
    create_rule_ref,
    create_token_ref,
)
from grammar_assist.lexer import RegexLexer

if TYPE_CHECKING:
    from grammar_assist._types import GrammarDict
    from grammar_assist.grammar import Grammar
    from grammar_assist.suggestions import ElementSuggester


class AssistFactory(Protocol):
    def __call__(
        self,
        document: GrammarDict,
        /,
        *,
        suggester: ElementSuggester | None = None,
        timeout: float | None = None,
    ) -> CodeAssist: ...


# ============================================================================
# Grammar documents
# ============================================================================


@pytest.fixture
def greeting_document() -> GrammarDict:
    """greeting: 'hello' ' ' name ; name: 'world' | 'there' ;"""
    return create_grammar(
        {
            'greeting': create_rule(
                [
                    [
                        create_literal('hello'),
                        create_literal(' '),
                        create_rule_ref('name'),
                    ]
                ]
            ),
            'name': create_rule(
                [[create_literal('world')], [create_literal('there')]]
            ),
        },
        name='greeting',
    )


@pytest.fixture
def pair_document() -> GrammarDict:
    """pair: '(' ')' ;"""
    return create_grammar(
        {'pair': create_rule([[create_literal('('), create_literal(')')]])}
    )


@pytest.fixture
def nested_document() -> GrammarDict:
    """stmt: open ')' ';' ; open: '(' ;"""
    return create_grammar(
        {
            'stmt': create_rule(
                [[create_rule_ref('open'), create_literal(')'), create_literal(';')]]
            ),
            'open': create_rule([[create_literal('(')]]),
        }
    )


@pytest.fixture
def block_document() -> GrammarDict:
    """
    block: 'begin' stmt* 'end' ;
    stmt: ID ';' ;

    ``ID`` is ``[a-z]+`` and whitespace is hidden, so keywords typed next to
    each other lex as one identifier.
    """
    return create_grammar(
        {
            'block': create_rule(
                [
                    [
                        create_literal('begin'),
                        create_rule_ref('stmt', multiplicity='*'),
                        create_literal('end'),
                    ]
                ]
            ),
            'stmt': create_rule([[create_token_ref('ID'), create_literal(';')]]),
        },
        lexer=[
            create_lexer_token('ID', '[a-z]+'),
            create_lexer_token('WS', r'\s+', channel='hidden'),
        ],
    )


@pytest.fixture
def call_document() -> GrammarDict:
    """
    call: ID '(' args? ')' ;
    args: expr (',' expr)* ;
    expr: ID | STRING | call ;
    STRING: '"' ~'"'* '"' ;
    """
    return create_grammar(
        {
            'call': create_rule(
                [
                    [
                        create_token_ref('ID'),
                        create_literal('('),
                        create_rule_ref('args', multiplicity='?'),
                        create_literal(')'),
                    ]
                ]
            ),
            'args': create_rule(
                [
                    [
                        create_rule_ref('expr'),
                        {
                            'block': [
                                {
                                    'elements': [
                                        create_literal(','),
                                        create_rule_ref('expr'),
                                    ]
                                }
                            ],
                            'multiplicity': '*',
                        },
                    ]
                ]
            ),
            'expr': create_rule(
                [
                    [create_token_ref('ID')],
                    [create_token_ref('STRING')],
                    [create_rule_ref('call')],
                ]
            ),
            'STRING': create_rule(
                [
                    [
                        create_literal('"'),
                        create_not(literals=['"'], multiplicity='*'),
                        create_literal('"'),
                    ]
                ],
                lexical=True,
            ),
        },
        lexer=[
            create_lexer_token('ID', '[A-Za-z_][A-Za-z0-9_]*'),
            create_lexer_token('STRING', '"[^"]*"'),
            create_lexer_token('WS', r'\s+', channel='hidden'),
        ],
        name='call',
    )


@pytest.fixture
def recursive_document() -> GrammarDict:
    """A: A 'x' | 'y' ;"""
    return create_grammar(
        {
            'A': create_rule(
                [
                    [create_rule_ref('A'), create_literal('x')],
                    [create_literal('y')],
                ]
            )
        }
    )


@pytest.fixture
def wildcard_document() -> GrammarDict:
    """group: '(' ~(')')* ')' ; anything: . ;"""
    return create_grammar(
        {
            'group': create_rule(
                [
                    [
                        create_literal('('),
                        create_not(literals=[')'], multiplicity='*'),
                        create_literal(')'),
                    ]
                ]
            ),
            'anything': create_rule([[create_any()]]),
        },
        lexer=[
            create_lexer_token('ID', '[a-z]+'),
            create_lexer_token('WS', r'\s+', channel='hidden'),
        ],
    )


# ============================================================================
# Built objects
# ============================================================================


@pytest.fixture
def make_assist() -> AssistFactory:
    """Build a CodeAssist with the reference lexer for a document."""

    def factory(
        document: GrammarDict,
        /,
        *,
        suggester: ElementSuggester | None = None,
        timeout: float | None = None,
    ) -> CodeAssist:
        return CodeAssist(
            build_grammar(document),
            RegexLexer.from_document(document),
            suggester=suggester,
            timeout=timeout,
        )

    return factory


@pytest.fixture
def greeting_grammar(greeting_document: GrammarDict) -> Grammar:
    return build_grammar(greeting_document)


@pytest.fixture
def greeting_assist(
    make_assist: AssistFactory, greeting_document: GrammarDict
) -> CodeAssist:
    return make_assist(greeting_document)


@pytest.fixture
def pair_assist(make_assist: AssistFactory, pair_document: GrammarDict) -> CodeAssist:
    return make_assist(pair_document)


@pytest.fixture
def block_assist(make_assist: AssistFactory, block_document: GrammarDict) -> CodeAssist:
    return make_assist(block_document)


@pytest.fixture
def call_assist(make_assist: AssistFactory, call_document: GrammarDict) -> CodeAssist:
    return make_assist(call_document)
