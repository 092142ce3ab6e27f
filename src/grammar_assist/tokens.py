from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Self

from grammar_assist.common import DEFAULT_CHANNEL, EOF_TOKEN_TYPE
from grammar_assist.errors import LexerError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Token:
    """
    A lexed token.

    Attributes:
        type: Token type id, ``EOF_TOKEN_TYPE`` for the end of input.
        text: Matched source text.
        start: Offset of the first character.
        stop: Offset just past the last character.
        channel: ``DEFAULT_CHANNEL`` for tokens the parser sees.
    """

    type: int
    text: str
    start: int
    stop: int
    channel: int = DEFAULT_CHANNEL

    @property
    def is_eof(self) -> bool:
        return self.type == EOF_TOKEN_TYPE

    @classmethod
    def eof(cls, offset: int, /) -> Self:
        return cls(EOF_TOKEN_TYPE, '', offset, offset)


class Lexer(Protocol):
    """
    Tokenizer for a target language.

    Implementations yield tokens in source order, may end with an EOF token
    and raise :class:`~grammar_assist.errors.LexerError` when they cannot
    continue.
    """

    def tokenize(self, text: str, /) -> Iterable[Token]: ...


@dataclass(slots=True)
class TokenStream:
    """
    Default-channel tokens terminated by an EOF token, plus a cursor.

    The token sequence never changes; :meth:`copy` gives an independent
    cursor over the same tokens.
    """

    tokens: tuple[Token, ...]
    index: int = 0

    def __post_init__(self) -> None:
        if not self.tokens or not self.tokens[-1].is_eof:
            raise ValueError('Token stream must end with an EOF token')

    @classmethod
    def of(cls, tokens: Sequence[Token], /) -> Self:
        return cls(tuple(tokens))

    @property
    def size(self) -> int:
        """Number of tokens including the EOF token."""
        return len(self.tokens)

    def __len__(self) -> int:
        return len(self.tokens)

    @property
    def is_empty(self) -> bool:
        return len(self.tokens) == 1

    def is_at_end(self) -> bool:
        return self.tokens[self.index].is_eof

    def peek(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        token = self.tokens[self.index]
        if not token.is_eof:
            self.index += 1
        return token

    def token_at(self, index: int, /) -> Token:
        return self.tokens[index]

    def previous_token(self) -> Token | None:
        return self.tokens[self.index - 1] if self.index > 0 else None

    @property
    def last_token(self) -> Token | None:
        """The last real token, ``None`` when the stream is only EOF."""
        return self.tokens[-2] if len(self.tokens) > 1 else None

    def without_last(self) -> TokenStream:
        """A fresh stream with the last real token removed."""
        if self.is_empty:
            return TokenStream(self.tokens)
        return TokenStream((*self.tokens[:-2], self.tokens[-1]))

    def copy(self) -> TokenStream:
        return TokenStream(self.tokens, self.index)

    def texts(self) -> list[str]:
        return [token.text for token in self.tokens if not token.is_eof]


def tokenize(lexer: Lexer, text: str, /) -> TokenStream:
    """
    Lex ``text`` into a :class:`TokenStream`.

    Tokens outside the default channel are dropped. A lexer error ends the
    stream at the last recognized token instead of propagating, so broken
    or half-typed input still yields a usable stream.
    """
    tokens: list[Token] = []
    eof: Token | None = None

    try:
        for token in lexer.tokenize(text):
            if token.is_eof:
                eof = token
                break
            if token.channel == DEFAULT_CHANNEL:
                tokens.append(token)
    except LexerError as e:
        logger.debug('Lexing stopped at offset %d of %r: %s', e.offset, text, e)
        eof = Token.eof(e.offset)

    if eof is None:
        eof = Token.eof(len(text))

    return TokenStream((*tokens, eof))
