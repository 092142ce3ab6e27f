"""Regular-expression tokenizer built from a grammar document.

Real hosts plug in the lexer of their target language. This one covers the
common case where tokens are the grammar's literals plus a handful of regular
expressions, and is what the command line tools use.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Self

from grammar_assist.common import DEFAULT_CHANNEL, HIDDEN_CHANNEL
from grammar_assist.errors import GrammarError, LexerError
from grammar_assist.tokens import Token

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from grammar_assist._types import GrammarDict


@dataclass(slots=True, frozen=True)
class TokenDefinition:
    name: str
    type: int
    pattern: re.Pattern[str]
    channel: int = DEFAULT_CHANNEL

    @classmethod
    def for_literal(cls, literal: str, token_type: int, /) -> Self:
        return cls(repr(literal), token_type, re.compile(re.escape(literal)))


class RegexLexer:
    """
    Longest-match lexer over a list of token definitions.

    When several definitions match the same longest text, the one listed
    first wins. :meth:`from_document` lists literals before the document's
    ``lexer`` entries, so keywords beat identifier patterns.
    """

    def __init__(self, definitions: Iterable[TokenDefinition], /) -> None:
        self.definitions = tuple(definitions)

    @classmethod
    def from_document(cls, document: GrammarDict, /) -> Self:
        tokens = document['tokens']
        definitions = [
            TokenDefinition.for_literal(literal, token_type)
            for literal, token_type in tokens['literals'].items()
        ]

        for entry in document.get('lexer', []):
            name = entry['name']
            token_type = tokens['rules'].get(name)
            if token_type is None:
                raise GrammarError(f'Lexer token {name!r} has no token type')
            try:
                pattern = re.compile(entry['pattern'])
            except re.error as e:
                raise GrammarError(f'Invalid pattern for lexer token {name!r}: {e}') from e

            definitions.append(
                TokenDefinition(
                    name,
                    token_type,
                    pattern,
                    HIDDEN_CHANNEL
                    if entry.get('channel') == 'hidden'
                    else DEFAULT_CHANNEL,
                )
            )

        return cls(definitions)

    def tokenize(self, text: str, /) -> Iterator[Token]:
        offset = 0
        while offset < len(text):
            best_end = offset
            best: TokenDefinition | None = None
            for definition in self.definitions:
                match = definition.pattern.match(text, offset)
                if match is not None and match.end() > best_end:
                    best_end = match.end()
                    best = definition

            if best is None:
                raise LexerError(offset, text)

            yield Token(best.type, text[offset:best_end], offset, best_end, best.channel)
            offset = best_end

        yield Token.eof(len(text))
