from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path  # noqa: TC003
from typing import TYPE_CHECKING, Annotated

import typer
from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from grammar_assist.builder import build_grammar, load_document
from grammar_assist.code_assist import CodeAssist
from grammar_assist.errors import GrammarAssistError
from grammar_assist.lexer import RegexLexer

if TYPE_CHECKING:
    from grammar_assist.code_assist import Suggestion


def _suggestion_table(text: str, suggestions: list[Suggestion]) -> Table:
    table = Table('Span', 'Insert', 'Caret', 'Result', 'Description')
    for suggestion in suggestions:
        result = suggestion.apply(text)
        table.add_row(
            f'{suggestion.begin}:{suggestion.end}',
            escape(repr(suggestion.text)),
            str(suggestion.caret),
            escape(f'{result[: suggestion.caret]}|{result[suggestion.caret :]}'),
            escape(suggestion.description or ''),
        )
    return table


def _complete(
    grammar_path: Annotated[
        Path,
        typer.Argument(
            file_okay=True,
            dir_okay=False,
            exists=True,
            readable=True,
            resolve_path=True,
            help='Grammar document (JSON).',
        ),
    ],
    text: Annotated[str, typer.Argument(help='Input text to complete.')],
    *,
    caret: Annotated[
        int | None,
        typer.Option(help='Caret offset in TEXT. Defaults to the end of TEXT.'),
    ] = None,
    rule: Annotated[
        str | None,
        typer.Option(
            envvar='GRAMMAR_ASSIST_RULE',
            help='Start rule. Defaults to the first rule of the grammar.',
        ),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option(envvar='GRAMMAR_ASSIST_TIMEOUT', help='Timeout in seconds.'),
    ] = None,
    as_json: Annotated[
        bool, typer.Option('--json', help='Print suggestions as JSON.')
    ] = False,
    verbose: Annotated[bool, typer.Option('--verbose', '-v')] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(message)s',
        handlers=[RichHandler(console=Console(stderr=True))],
    )

    try:
        document = load_document(grammar_path)
        grammar = build_grammar(document)
        assist = CodeAssist(
            grammar, RegexLexer.from_document(document), timeout=timeout
        )
        if rule is None:
            first = next(iter(grammar.declared_rules), None)
            if first is None:
                raise GrammarAssistError(f'{grammar_path}: grammar has no rules')
            rule = first.name
        suggestions = assist.suggest(
            text, len(text) if caret is None else caret, rule
        )
    except (GrammarAssistError, ValueError) as e:
        print(f'[red]{escape(str(e))}[/red]')
        raise typer.Exit(code=1) from e

    if as_json:
        typer.echo(
            json.dumps([asdict(suggestion) for suggestion in suggestions], indent=2)
        )
    elif suggestions:
        print(_suggestion_table(text, suggestions))
    else:
        print('[yellow]No suggestions[/yellow]')


def main() -> None:
    typer.run(_complete)


if __name__ == '__main__':
    main()
