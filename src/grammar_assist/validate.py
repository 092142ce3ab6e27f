from __future__ import annotations

from pathlib import Path  # noqa: TC003
from typing import Annotated

import typer
from rich import print
from rich.markup import escape

from grammar_assist.builder import build_grammar, load_document
from grammar_assist.errors import GrammarError
from grammar_assist.lexer import RegexLexer


def validate(
    files: list[Path],
    *,
    show: Annotated[
        bool, typer.Option(help='Print the rules of each grammar after building it.')
    ] = False,
) -> None:
    for file in files:
        try:
            document = load_document(file)
            grammar = build_grammar(document)
            RegexLexer.from_document(document)
        except (OSError, GrammarError) as e:
            print(f'[red]{file}[/red]: {escape(str(e))}')
            raise typer.Exit(code=1) from e

        print(f'[green]{file}[/green]: {len(grammar.rules)} rules')
        if show:
            print(escape(grammar.format()))


def main() -> None:
    typer.run(validate)


if __name__ == '__main__':
    main()
