from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, override

from grammar_assist.common import SYNTHETIC_RULE_SEPARATOR
from grammar_assist.errors import UnknownRuleError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class Multiplicity(StrEnum):
    ONE = '1'
    ZERO_OR_ONE = '?'
    ZERO_OR_MORE = '*'
    ONE_OR_MORE = '+'

    @property
    def optional(self) -> bool:
        return self in (Multiplicity.ZERO_OR_ONE, Multiplicity.ZERO_OR_MORE)

    @property
    def required(self) -> bool:
        return not self.optional

    @property
    def repeatable(self) -> bool:
        return self in (Multiplicity.ZERO_OR_MORE, Multiplicity.ONE_OR_MORE)

    @property
    def suffix(self) -> str:
        return '' if self is Multiplicity.ONE else self.value


@dataclass(slots=True, frozen=True, kw_only=True)
class _Element:
    multiplicity: Multiplicity = Multiplicity.ONE
    label: str | None = None

    def _format(self, atom: str, /) -> str:
        prefix = f'{self.label}=' if self.label is not None else ''
        return f'{prefix}{atom}{self.multiplicity.suffix}'


@dataclass(slots=True, frozen=True)
class Literal(_Element):
    literal: str
    token_type: int

    def format(self) -> str:
        return self._format(repr(self.literal))


@dataclass(slots=True, frozen=True)
class RuleReference(_Element):
    rule: str

    def format(self) -> str:
        return self._format(self.rule)


@dataclass(slots=True, frozen=True)
class TokenReference(_Element):
    rule: str
    token_type: int

    def format(self) -> str:
        return self._format(self.rule)


@dataclass(slots=True, frozen=True)
class NegatedTokenSet(_Element):
    token_types: frozenset[int]

    def format(self) -> str:
        types = ' | '.join(str(token_type) for token_type in sorted(self.token_types))
        return self._format(f'~({types})')


@dataclass(slots=True, frozen=True)
class AnyToken(_Element):
    def format(self) -> str:
        return self._format('.')


@dataclass(slots=True, frozen=True)
class EndOfInput(_Element):
    def format(self) -> str:
        return self._format('EOF')


type Terminal = Literal | TokenReference | NegatedTokenSet | AnyToken | EndOfInput

type Element = Terminal | RuleReference


@dataclass(slots=True, frozen=True)
class Alternative:
    elements: tuple[Element, ...]
    label: str | None = None

    def format(self) -> str:
        body = ' '.join(element.format() for element in self.elements)
        return f'{body}  # {self.label}' if self.label is not None else body


@dataclass(slots=True, frozen=True)
class Rule:
    name: str
    alternatives: tuple[Alternative, ...]
    lexical: bool = False
    fragment: bool = False

    @property
    def synthetic(self) -> bool:
        return SYNTHETIC_RULE_SEPARATOR in self.name

    def format(self) -> str:
        prefix = 'fragment ' if self.fragment else ''
        body = '\n    | '.join(alt.format() for alt in self.alternatives)
        return f'{prefix}{self.name}\n    : {body}\n    ;'


def compute_nullable_rules(rules: Mapping[str, Rule], /) -> frozenset[str]:
    """
    Find every rule that can match without consuming a token.

    Iterates to a fixed point instead of recursing, so mutually recursive
    rules need no visited set.
    """
    nullable: set[str] = set()
    changed = True
    while changed:
        changed = False
        for name, rule in rules.items():
            if name in nullable:
                continue
            if any(
                all(_element_nullable(element, nullable) for element in alt.elements)
                for alt in rule.alternatives
            ):
                nullable.add(name)
                changed = True

    return frozenset(nullable)


def _element_nullable(element: Element, nullable: set[str] | frozenset[str]) -> bool:
    if element.multiplicity.optional:
        return True

    match element:
        case RuleReference(rule=rule):
            return rule in nullable
        case _:
            return False


@dataclass(slots=True, frozen=True, eq=False)
class Grammar:
    """
    Immutable rule graph compiled from a grammar document.

    Rules reference each other by name through ``rules``, so recursive and
    mutually recursive rules are plain data. Instances are never mutated
    after :func:`grammar_assist.builder.build_grammar` returns them and can
    be shared between threads.
    """

    rules: Mapping[str, Rule]
    token_types_by_literal: Mapping[str, int]
    token_types_by_rule: Mapping[str, int]
    name: str | None = None
    nullable_rules: frozenset[str] = field(init=False)
    _literals_by_type: dict[int, str | None] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'nullable_rules', compute_nullable_rules(self.rules))

        literals: dict[int, str | None] = {}
        for literal, token_type in self.token_types_by_literal.items():
            # a token type shared by several literals has no single spelling
            literals[token_type] = None if token_type in literals else literal
        object.__setattr__(self, '_literals_by_type', literals)

    def rule(self, name: str, /) -> Rule:
        try:
            return self.rules[name]
        except KeyError:
            raise UnknownRuleError(name) from None

    def __contains__(self, name: object, /) -> bool:
        return name in self.rules

    @property
    def declared_rules(self) -> Iterable[Rule]:
        return (rule for rule in self.rules.values() if not rule.synthetic)

    def is_nullable(self, element: Element, /) -> bool:
        return _element_nullable(element, self.nullable_rules)

    def literal_for(self, token_type: int, /) -> str | None:
        return self._literals_by_type.get(token_type)

    def lexer_rule(self, element: TokenReference, /) -> Rule | None:
        rule = self.rules.get(element.rule)
        return rule if rule is not None and rule.lexical else None

    def format(self) -> str:
        return '\n\n'.join(rule.format() for rule in self.rules.values())

    @override
    def __repr__(self) -> str:
        return f'Grammar(name={self.name!r}, rules={len(self.rules)})'
