from __future__ import annotations

import time
from dataclasses import dataclass, field

from grammar_assist.errors import CompletionCancelledError


@dataclass(slots=True)
class CancelToken:
    """Cooperative cancellation for a single completion request.

    The matcher and synthesizer call :meth:`check` on every recursive step,
    so an expired deadline or an explicit :meth:`cancel` stops a request that
    is stuck expanding a highly ambiguous grammar.
    """

    deadline: float | None = None
    cancelled: bool = field(default=False, init=False)

    @classmethod
    def with_timeout(cls, timeout: float | None, /) -> CancelToken:
        if timeout is None:
            return cls()
        return cls(time.monotonic() + timeout)

    def cancel(self) -> None:
        self.cancelled = True

    def check(self) -> None:
        if self.cancelled:
            raise CompletionCancelledError('Completion request was cancelled')
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise CompletionCancelledError('Completion request timed out')
