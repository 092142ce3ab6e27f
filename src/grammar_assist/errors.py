from __future__ import annotations


class GrammarAssistError(Exception):
    """Base class for all errors raised by grammar_assist."""


class GrammarError(GrammarAssistError):
    """A grammar document cannot be turned into a grammar model."""

    def __init__(self, message: str, /, *, rule: str | None = None) -> None:
        self.rule = rule
        super().__init__(f'{rule}: {message}' if rule is not None else message)


class UnknownRuleError(GrammarAssistError, KeyError):
    def __init__(self, rule: str, /) -> None:
        self.rule = rule
        super().__init__(rule)

    def __str__(self) -> str:
        return f'Unknown rule: {self.rule!r}'


class LexerError(GrammarAssistError):
    """Raised by a lexer when no token can be recognized at ``offset``."""

    def __init__(self, offset: int, /, text: str = '') -> None:
        self.offset = offset
        self.text = text
        snippet = text[offset : offset + 10]
        super().__init__(f'No token matches at offset {offset}: {snippet!r}')


class CompletionCancelledError(GrammarAssistError):
    """A completion request ran past its deadline or was cancelled."""
