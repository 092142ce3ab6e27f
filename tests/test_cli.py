"""Tests for the command line entry points."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
import typer

from grammar_assist.complete import _complete
from grammar_assist.validate import validate

if TYPE_CHECKING:
    from pathlib import Path

    from grammar_assist._types import GrammarDict


@pytest.fixture
def greeting_path(tmp_path: Path, greeting_document: GrammarDict) -> Path:
    path = tmp_path / 'greeting.json'
    path.write_text(json.dumps(greeting_document), encoding='utf-8')
    return path


def _output(capsys: pytest.CaptureFixture[str]) -> str:
    # rich wraps long lines at the console width
    return ' '.join(capsys.readouterr().out.split())


class TestValidate:
    def test_valid_grammar(
        self, greeting_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        validate([greeting_path])

        assert '2 rules' in _output(capsys)

    def test_show(self, greeting_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        validate([greeting_path], show=True)

        output = _output(capsys)
        assert "'hello' ' ' name" in output
        assert "'world'" in output

    def test_invalid_grammar(self, tmp_path: Path) -> None:
        path = tmp_path / 'broken.json'
        path.write_text('[]', encoding='utf-8')

        with pytest.raises(typer.Exit) as exc_info:
            validate([path])

        assert exc_info.value.exit_code == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(typer.Exit):
            validate([tmp_path / 'missing.json'])


class TestComplete:
    def test_json_output(
        self, greeting_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _complete(greeting_path, 'hello ', as_json=True)

        assert json.loads(capsys.readouterr().out) == [
            {'begin': 6, 'end': 6, 'text': 'world', 'caret': 11, 'description': 'world'},
            {'begin': 6, 'end': 6, 'text': 'there', 'caret': 11, 'description': 'there'},
        ]

    def test_caret_and_rule(
        self, greeting_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _complete(greeting_path, 'hello wor', caret=9, rule='greeting', as_json=True)

        (suggestion,) = json.loads(capsys.readouterr().out)
        assert suggestion['text'] == 'world'
        assert (suggestion['begin'], suggestion['end']) == (6, 9)

    def test_table_output(
        self, greeting_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _complete(greeting_path, 'hel')

        output = _output(capsys)
        assert 'hello|' in output
        assert '0:3' in output

    def test_no_suggestions(
        self, greeting_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _complete(greeting_path, 'hello world')

        assert 'No suggestions' in _output(capsys)

    def test_unknown_rule(self, greeting_path: Path) -> None:
        with pytest.raises(typer.Exit) as exc_info:
            _complete(greeting_path, 'hello', rule='farewell')

        assert exc_info.value.exit_code == 1

    def test_caret_out_of_range(self, greeting_path: Path) -> None:
        with pytest.raises(typer.Exit):
            _complete(greeting_path, 'hello', caret=10)
