from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Unpack

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Sequence

    from grammar_assist._types import (
        AlternativeDict,
        AnyDict,
        BlockDict,
        Channel,
        CharSetDict,
        ElementDict,
        GrammarDict,
        LexerTokenDict,
        LiteralDict,
        NotSetDict,
        RangeDict,
        RuleDict,
        RuleRefDict,
        SetMemberDict,
        TokenRefDict,
        _ElementBaseDict,
    )

    type AlternativeLike = AlternativeDict | Sequence[ElementDict]


def _annotate_element[E: _ElementBaseDict](
    element: E, /, **kwargs: Unpack[_ElementBaseDict]
) -> E:
    if 'multiplicity' in kwargs and kwargs['multiplicity'] != '1':
        element['multiplicity'] = kwargs['multiplicity']
    if 'label' in kwargs:
        element['label'] = kwargs['label']

    return element


def create_literal(literal: str, /, **kwargs: Unpack[_ElementBaseDict]) -> LiteralDict:
    return _annotate_element({'literal': literal}, **kwargs)


def create_rule_ref(ref: str, /, **kwargs: Unpack[_ElementBaseDict]) -> RuleRefDict:
    return _annotate_element({'$rule': ref}, **kwargs)


def create_token_ref(ref: str, /, **kwargs: Unpack[_ElementBaseDict]) -> TokenRefDict:
    return _annotate_element({'$token': ref}, **kwargs)


def create_eof(**kwargs: Unpack[_ElementBaseDict]) -> TokenRefDict:
    return create_token_ref('EOF', **kwargs)


def create_not(
    *,
    literals: Iterable[str] = (),
    tokens: Iterable[str] = (),
    **kwargs: Unpack[_ElementBaseDict],
) -> NotSetDict:
    members: list[SetMemberDict] = [{'literal': literal} for literal in literals]
    members.extend({'$token': token} for token in tokens)
    if not members:
        raise ValueError('A negated set needs at least one member')

    return _annotate_element({'not': members}, **kwargs)


def create_any(**kwargs: Unpack[_ElementBaseDict]) -> AnyDict:
    return _annotate_element({'any': True}, **kwargs)


def create_charset(charset: str, /, **kwargs: Unpack[_ElementBaseDict]) -> CharSetDict:
    return _annotate_element({'charset': charset}, **kwargs)


def create_range(
    first: str, last: str, /, **kwargs: Unpack[_ElementBaseDict]
) -> RangeDict:
    if len(first) != 1 or len(last) != 1:
        raise ValueError('Range bounds must be single characters')
    if first > last:
        raise ValueError(f'Empty range {first!r}..{last!r}')

    return _annotate_element({'range': [first, last]}, **kwargs)


def create_alternative(
    elements: Iterable[ElementDict], /, *, label: str | None = None
) -> AlternativeDict:
    alternative: AlternativeDict = {'elements': list(elements)}

    if label is not None:
        alternative['label'] = label

    return alternative


def _to_alternative(alternative: AlternativeLike, /) -> AlternativeDict:
    if isinstance(alternative, Mapping):
        return alternative
    return create_alternative(alternative)


def create_block(
    alternatives: Iterable[AlternativeLike], /, **kwargs: Unpack[_ElementBaseDict]
) -> BlockDict:
    return _annotate_element(
        {'block': [_to_alternative(alt) for alt in alternatives]}, **kwargs
    )


def create_rule(
    alternatives: Iterable[AlternativeLike],
    /,
    *,
    lexical: bool = False,
    fragment: bool = False,
) -> RuleDict:
    rule: RuleDict = {'alternatives': [_to_alternative(alt) for alt in alternatives]}

    if lexical or fragment:
        rule['lexical'] = True
    if fragment:
        rule['fragment'] = True

    return rule


def create_lexer_token(
    name: str, pattern: str, /, *, channel: Channel = 'default'
) -> LexerTokenDict:
    token: LexerTokenDict = {'name': name, 'pattern': pattern}

    if channel != 'default':
        token['channel'] = channel

    return token


def _walk_elements(alternatives: Iterable[AlternativeDict]) -> Iterator[ElementDict]:
    for alternative in alternatives:
        for element in alternative['elements']:
            yield element
            if 'block' in element:
                yield from _walk_elements(element['block'])


def _sole_literal(rule: RuleDict, /) -> str | None:
    match rule['alternatives']:
        case [{'elements': [{'literal': str() as literal, **rest}]}] if rest.get(
            'multiplicity', '1'
        ) == '1':
            return literal
        case _:
            return None


def create_grammar(
    rules: Mapping[str, RuleDict],
    /,
    *,
    lexer: Iterable[LexerTokenDict] = (),
    literals: Mapping[str, int] | None = None,
    token_rules: Mapping[str, int] | None = None,
    name: str | None = None,
) -> GrammarDict:
    """
    Assemble a grammar document, assigning token types the way a grammar
    compiler would when the tables are not given.

    Token rules (lexer definitions, non-fragment lexer rules and tokens
    referenced from parser rules) are numbered first, starting at 1. A lexer
    rule that is exactly one literal makes that literal an alias of its token
    type. Remaining parser-rule literals are numbered after the token rules,
    in order of appearance.
    """
    lexer = list(lexer)
    parser_rules = [rule for rule in rules.values() if not rule.get('lexical')]

    if token_rules is None:
        names: dict[str, None] = dict.fromkeys(token['name'] for token in lexer)
        names.update(
            dict.fromkeys(
                rule_name
                for rule_name, rule in rules.items()
                if rule.get('lexical') and not rule.get('fragment')
            )
        )
        for rule in parser_rules:
            for element in _walk_elements(rule['alternatives']):
                if '$token' in element and element['$token'] != 'EOF':
                    names[element['$token']] = None
                for member in element.get('not', []):
                    if member.get('$token', 'EOF') != 'EOF':
                        names[member['$token']] = None
        token_rules = {token: index for index, token in enumerate(names, 1)}

    if literals is None:
        table: dict[str, int] = {}
        for rule_name, rule in rules.items():
            if rule_name in token_rules and (literal := _sole_literal(rule)):
                table.setdefault(literal, token_rules[rule_name])

        next_type = max([0, *token_rules.values(), *table.values()]) + 1
        for rule in parser_rules:
            for element in _walk_elements(rule['alternatives']):
                found = [element['literal']] if 'literal' in element else []
                found.extend(
                    member['literal']
                    for member in element.get('not', [])
                    if 'literal' in member
                )
                for literal in found:
                    if literal not in table:
                        table[literal] = next_type
                        next_type += 1
        literals = table

    grammar: GrammarDict = {
        'tokens': {'literals': dict(literals), 'rules': dict(token_rules)},
        'rules': dict(rules),
    }

    if lexer:
        grammar['lexer'] = lexer

    if name is not None:
        grammar['name'] = name

    return grammar
