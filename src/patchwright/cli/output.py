"""
CLI Output Utilities

Machine-aware output that adapts to CLIConfig.is_machine_mode().
"""

import json
import re
from typing import Any

import typer
from rich.console import Console as RichConsole
from rich.table import Table

from .config import CLIConfig


_MARKUP = re.compile(r"\[/?[a-z ]+\]")


class MachineAwareConsole:
    """
    Drop-in for rich.console.Console that prints plain text in machine
    mode and drops tables there (use --json for structured output).
    """

    def __init__(self):
        self._rich_console = RichConsole()

    def print(self, *args, **kwargs):
        if not CLIConfig.is_machine_mode():
            self._rich_console.print(*args, **kwargs)
            return
        for arg in args:
            if isinstance(arg, Table):
                continue
            if isinstance(arg, str):
                plain = _MARKUP.sub("", arg).strip()
                if plain:
                    typer.echo(plain)
            elif arg:
                typer.echo(arg)

    def __getattr__(self, name):
        return getattr(self._rich_console, name)


_console = MachineAwareConsole()


def get_console() -> MachineAwareConsole:
    return _console


def echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))
