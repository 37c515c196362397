# ABOUTME: User-facing output sink for command results and per-item errors
# ABOUTME: UI protocol plus the console implementation used by the CLI

"""Output sink for messages meant for the user (as opposed to the log)."""

from __future__ import annotations

import sys
from typing import Protocol, TextIO


class UI(Protocol):
    """Where informational and error lines for the user go."""

    def info(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class ConsoleUI:
    """
    Writes info lines to stdout and error lines to stderr.

    confirm() is only used by interactive commands; with assume_yes set it
    never prompts.
    """

    def __init__(
        self,
        out: TextIO | None = None,
        err: TextIO | None = None,
        assume_yes: bool = False,
    ) -> None:
        self._out = out or sys.stdout
        self._err = err or sys.stderr
        self._assume_yes = assume_yes

    def info(self, message: str) -> None:
        print(message, file=self._out, flush=True)

    def error(self, message: str) -> None:
        print(message, file=self._err, flush=True)

    def confirm(self, question: str) -> bool:
        if self._assume_yes:
            return True
        try:
            answer = input(f"{question} [y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in ("y", "yes")
