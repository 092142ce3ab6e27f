from __future__ import annotations

from typing import Literal, NotRequired
from typing_extensions import TypedDict

type MultiplicitySymbol = Literal['1', '?', '*', '+']

type Channel = Literal['default', 'hidden']


class _ElementBaseDict(TypedDict):
    multiplicity: NotRequired[MultiplicitySymbol]
    label: NotRequired[str]


class LiteralDict(_ElementBaseDict):
    literal: str


_RuleRefBase = TypedDict('_RuleRefBase', {'$rule': str})
_TokenRefBase = TypedDict('_TokenRefBase', {'$token': str})


class RuleRefDict(_ElementBaseDict, _RuleRefBase): ...


class TokenRefDict(_ElementBaseDict, _TokenRefBase): ...


class _SetLiteralDict(TypedDict):
    literal: str


type SetMemberDict = _SetLiteralDict | _TokenRefBase


NotSetDict = TypedDict(
    'NotSetDict',
    {
        'not': 'list[SetMemberDict]',
        'multiplicity': NotRequired[MultiplicitySymbol],
        'label': NotRequired[str],
    },
)


class AnyDict(_ElementBaseDict):
    any: Literal[True]


class CharSetDict(_ElementBaseDict):
    charset: str


class RangeDict(_ElementBaseDict):
    range: list[str]


class BlockDict(_ElementBaseDict):
    block: list[AlternativeDict]


type ElementDict = (
    LiteralDict
    | RuleRefDict
    | TokenRefDict
    | NotSetDict
    | AnyDict
    | CharSetDict
    | RangeDict
    | BlockDict
)


class AlternativeDict(TypedDict):
    elements: list[ElementDict]
    label: NotRequired[str]


class RuleDict(TypedDict):
    alternatives: list[AlternativeDict]
    lexical: NotRequired[bool]
    fragment: NotRequired[bool]


class TokenTablesDict(TypedDict):
    literals: dict[str, int]
    rules: dict[str, int]


class LexerTokenDict(TypedDict):
    name: str
    pattern: str
    channel: NotRequired[Channel]


class GrammarDict(TypedDict, extra_items=str):
    tokens: TokenTablesDict
    rules: dict[str, RuleDict]
    lexer: NotRequired[list[LexerTokenDict]]
    name: NotRequired[str]
