"""Build a :class:`~grammar_assist.grammar.Grammar` from a grammar document.

A grammar document is the output of an external grammar compiler: named
rules made of alternatives of elements, plus the token tables that map
literals and lexer rule names to token types. See ``grammar.schema.json``
for the exact shape.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, cast

from jsonschema import validate
from jsonschema.exceptions import ValidationError

from grammar_assist.common import (
    EOF_TOKEN_TYPE,
    GRAMMAR_SCHEMA_PATH,
    SYNTHETIC_RULE_SEPARATOR,
    UNKNOWN_TOKEN_TYPE,
)
from grammar_assist.errors import GrammarError
from grammar_assist.grammar import (
    Alternative,
    AnyToken,
    Element,
    EndOfInput,
    Grammar,
    Literal,
    Multiplicity,
    NegatedTokenSet,
    Rule,
    RuleReference,
    TokenReference,
)

if TYPE_CHECKING:
    from _typeshed import StrPath

    from grammar_assist._types import (
        AlternativeDict,
        ElementDict,
        GrammarDict,
        RuleDict,
        SetMemberDict,
    )

logger = logging.getLogger(__name__)


@cache
def _schema() -> dict[str, Any]:
    return json.loads(GRAMMAR_SCHEMA_PATH.read_text(encoding='utf-8'))


def validate_document(document: object, /) -> GrammarDict:
    """Check a decoded JSON document against the bundled grammar schema."""
    try:
        validate(document, _schema())
    except ValidationError as e:
        location = '/'.join(str(part) for part in e.absolute_path) or '<root>'
        raise GrammarError(f'Invalid grammar document at {location}: {e.message}') from e

    return cast('GrammarDict', document)


def load_document(path: StrPath, /) -> GrammarDict:
    path = Path(path)
    try:
        document = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        raise GrammarError(f'{path}: {e}') from e

    return validate_document(document)


def load_grammar(path: StrPath, /) -> Grammar:
    return build_grammar(load_document(path))


def build_grammar(document: GrammarDict, /) -> Grammar:
    """
    Compile a grammar document into a rule graph.

    Anonymous blocks become synthetic rules named after their position
    (``rule$alternative.element``), so building the same document twice
    yields identical rule graphs.

    Raises:
        GrammarError: The document is malformed, a parser rule uses a literal
            or token that is missing from the token tables, or a rule
            reference does not resolve.
    """
    return _GrammarBuilder(document).build()


@dataclass(slots=True)
class _GrammarBuilder:
    document: GrammarDict
    rules: dict[str, Rule] = field(default_factory=dict)
    token_types_by_literal: dict[str, int] = field(init=False)
    token_types_by_rule: dict[str, int] = field(init=False)

    def __post_init__(self) -> None:
        tokens = self.document.get('tokens', {'literals': {}, 'rules': {}})
        self.token_types_by_literal = dict(tokens.get('literals', {}))
        self.token_types_by_rule = {'EOF': EOF_TOKEN_TYPE, **tokens.get('rules', {})}

    def build(self) -> Grammar:
        rules = self.document.get('rules')
        if not isinstance(rules, dict):
            raise GrammarError('Grammar document has no rules')

        for name, data in rules.items():
            if SYNTHETIC_RULE_SEPARATOR in name:
                raise GrammarError(
                    f'Rule names cannot contain {SYNTHETIC_RULE_SEPARATOR!r}', rule=name
                )
            self._add_rule(name, data)

        self._check_references()

        grammar = Grammar(
            rules=self.rules,
            token_types_by_literal=self.token_types_by_literal,
            token_types_by_rule=self.token_types_by_rule,
            name=self.document.get('name'),
        )
        logger.debug(
            'Built grammar %r: %d rules (%d synthetic)',
            grammar.name,
            len(self.rules),
            sum(1 for rule in self.rules.values() if rule.synthetic),
        )
        return grammar

    def _add_rule(self, name: str, data: RuleDict, /) -> None:
        lexical = bool(data.get('lexical', False))
        alternatives = data.get('alternatives')
        if not isinstance(alternatives, list) or not alternatives:
            raise GrammarError('Rule has no alternatives', rule=name)

        self.rules[name] = Rule(
            name,
            tuple(
                self._alternative(name, index, alt, lexical=lexical)
                for index, alt in enumerate(alternatives)
            ),
            lexical=lexical,
            fragment=bool(data.get('fragment', False)),
        )

    def _alternative(
        self, owner: str, index: int, data: AlternativeDict, /, *, lexical: bool
    ) -> Alternative:
        elements = data.get('elements')
        if not isinstance(elements, list):
            raise GrammarError(f'Alternative {index} has no element list', rule=owner)

        return Alternative(
            tuple(
                self._element(
                    owner, element, lexical=lexical, path=f'{index}.{position}'
                )
                for position, element in enumerate(elements)
            ),
            label=data.get('label'),
        )

    def _element(  # noqa: C901, PLR0911
        self, owner: str, data: ElementDict, /, *, lexical: bool, path: str
    ) -> Element:
        try:
            multiplicity = Multiplicity(data.get('multiplicity', '1'))
        except ValueError:
            raise GrammarError(
                f'Invalid multiplicity {data.get("multiplicity")!r}', rule=owner
            ) from None
        label = data.get('label')

        match data:
            case {'literal': str() as literal}:
                return Literal(
                    literal,
                    self._literal_type(owner, literal, lexical=lexical),
                    multiplicity=multiplicity,
                    label=label,
                )
            case {'$rule': str() as ref}:
                return RuleReference(ref, multiplicity=multiplicity, label=label)
            case {'$token': 'EOF'}:
                return EndOfInput(multiplicity=multiplicity, label=label)
            case {'$token': str() as ref}:
                return TokenReference(
                    ref,
                    self._rule_type(owner, ref, lexical=lexical),
                    multiplicity=multiplicity,
                    label=label,
                )
            case {'not': list() as members}:
                if lexical:
                    return AnyToken(multiplicity=multiplicity, label=label)
                return NegatedTokenSet(
                    frozenset(self._member_type(owner, member) for member in members),
                    multiplicity=multiplicity,
                    label=label,
                )
            case {'any': True}:
                return AnyToken(multiplicity=multiplicity, label=label)
            case {'charset': str()} | {'range': list()}:
                if not lexical:
                    raise GrammarError(
                        'Character sets and ranges are only valid in lexer rules',
                        rule=owner,
                    )
                return AnyToken(multiplicity=multiplicity, label=label)
            case {'block': list() as alternatives}:
                name = f'{owner}{SYNTHETIC_RULE_SEPARATOR}{path}'
                self._add_rule(
                    name,
                    {'alternatives': alternatives, 'lexical': lexical},
                )
                return RuleReference(name, multiplicity=multiplicity, label=label)
            case _:
                raise GrammarError(f'Invalid element: {data!r}', rule=owner)

    def _literal_type(self, owner: str, literal: str, /, *, lexical: bool) -> int:
        token_type = self.token_types_by_literal.get(literal)
        if token_type is not None:
            return token_type
        if lexical:
            return UNKNOWN_TOKEN_TYPE
        raise GrammarError(f'No token type for literal {literal!r}', rule=owner)

    def _rule_type(self, owner: str, ref: str, /, *, lexical: bool) -> int:
        token_type = self.token_types_by_rule.get(ref)
        if token_type is not None:
            return token_type
        if lexical:
            # fragment rules have no token type of their own
            return UNKNOWN_TOKEN_TYPE
        raise GrammarError(f'No token type for token {ref!r}', rule=owner)

    def _member_type(self, owner: str, member: SetMemberDict, /) -> int:
        match member:
            case {'literal': str() as literal}:
                return self._literal_type(owner, literal, lexical=False)
            case {'$token': str() as ref}:
                return self._rule_type(owner, ref, lexical=False)
            case _:
                raise GrammarError(f'Invalid set member: {member!r}', rule=owner)

    def _check_references(self) -> None:
        for rule in self.rules.values():
            for alternative in rule.alternatives:
                for element in alternative.elements:
                    if (
                        isinstance(element, RuleReference)
                        and element.rule not in self.rules
                    ):
                        raise GrammarError(
                            f'Reference to undefined rule {element.rule!r}',
                            rule=rule.name,
                        )
