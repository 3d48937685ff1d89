"""Confirmation and prompt dialogs injected into mutation workflows."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol

from .i18n import _


@dataclass(frozen=True)
class DialogResult:
    """Outcome of a dialog: whether the user accepted and the text entered."""

    confirmed: bool
    value: str | None = None

    @classmethod
    def cancelled(cls) -> DialogResult:
        return cls(False, None)


class Dialogs(Protocol):
    """Blocking user questions that suspend a workflow, not the event loop."""

    async def confirm(self, message: str) -> DialogResult:
        """Ask a yes/no question."""
        raise NotImplementedError

    async def prompt(self, message: str, default: str = "") -> DialogResult:
        """Ask for free text, pre-filled with ``default``."""
        raise NotImplementedError


class AutoConfirmDialogs:
    """Accept every question, answering prompts with their default.

    Used by non-interactive CLI invocations where the answers were already
    given as command-line options.
    """

    async def confirm(self, message: str) -> DialogResult:
        return DialogResult(True)

    async def prompt(self, message: str, default: str = "") -> DialogResult:
        return DialogResult(True, default)


class ScriptedDialogs:
    """Answer questions from a queue prepared in advance.

    Each queued answer is either a :class:`DialogResult`, a ``bool`` for
    confirmations, a ``str`` for accepted prompts or ``None`` for a cancelled
    prompt. Asked messages are recorded in :attr:`asked`.
    """

    def __init__(self, answers: Iterable[DialogResult | bool | str | None] = ()) -> None:
        self._answers: deque[DialogResult | bool | str | None] = deque(answers)
        self.asked: list[tuple[str, str]] = []

    def queue(self, *answers: DialogResult | bool | str | None) -> None:
        self._answers.extend(answers)

    def _next(self) -> DialogResult:
        if not self._answers:
            raise RuntimeError("No scripted dialog answer left")
        answer = self._answers.popleft()
        if isinstance(answer, DialogResult):
            return answer
        if answer is None:
            return DialogResult.cancelled()
        if isinstance(answer, bool):
            return DialogResult(answer)
        return DialogResult(True, answer)

    async def confirm(self, message: str) -> DialogResult:
        self.asked.append(("confirm", message))
        return self._next()

    async def prompt(self, message: str, default: str = "") -> DialogResult:
        self.asked.append(("prompt", message))
        return self._next()


InputFunc = Callable[[str], str]


class ConsoleDialogs:
    """Ask questions on the terminal without blocking the event loop."""

    def __init__(self, input_func: InputFunc = input) -> None:
        self._input = input_func

    async def _ask(self, text: str) -> str | None:
        try:
            return await asyncio.to_thread(self._input, text)
        except EOFError:
            return None

    async def confirm(self, message: str) -> DialogResult:
        answer = await self._ask(f"{message} [y/N]: ")
        if answer is None:
            return DialogResult.cancelled()
        accepted = answer.strip().lower() in {"y", "yes", _("y"), _("yes")}
        return DialogResult(accepted)

    async def prompt(self, message: str, default: str = "") -> DialogResult:
        suffix = f" [{default}]" if default else ""
        answer = await self._ask(f"{message}{suffix}: ")
        if answer is None:
            return DialogResult.cancelled()
        return DialogResult(True, answer if answer else default)


__all__ = [
    "DialogResult",
    "Dialogs",
    "AutoConfirmDialogs",
    "ScriptedDialogs",
    "ConsoleDialogs",
]
