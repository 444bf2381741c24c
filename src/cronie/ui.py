from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Protocol, TypeVar

import click

from .common import CronieError, logger

T = TypeVar('T')


class Console(Protocol):
    """
    Everything interactive goes through this, so the workflows can be driven from tests.
    """

    def ask(self, message: str, *, completions: Sequence[str] = ()) -> str: ...

    def show(self, text: str = '') -> None: ...

    def pause(self) -> None: ...

    def clear(self) -> None: ...

    def edit(self, path: Path) -> None: ...

    def page(self, path: Path) -> None: ...


class TerminalConsole:
    def __init__(self) -> None:
        from prompt_toolkit import PromptSession

        self.session: PromptSession[str] = PromptSession()

    def ask(self, message: str, *, completions: Sequence[str] = ()) -> str:
        from prompt_toolkit.completion import WordCompleter
        from prompt_toolkit.formatted_text import FormattedText

        completer = WordCompleter(list(completions), ignore_case=True) if completions else None
        answer = self.session.prompt(FormattedText([('ansiyellow', message)]), completer=completer)
        return answer.strip()

    def show(self, text: str = '') -> None:
        click.echo(text)

    def pause(self) -> None:
        click.echo()
        click.pause('Press any key to continue...')

    def clear(self) -> None:
        click.clear()

    def edit(self, path: Path) -> None:
        # picks $VISUAL/$EDITOR, falls back on whatever is installed
        click.edit(filename=str(path))

    def page(self, path: Path) -> None:
        # honours $PAGER, otherwise less/more
        click.echo_via_pager(path.read_text(errors='replace'))


def heading(text: str, colour: str = 'cyan') -> str:
    import termcolor

    return termcolor.colored(f'--- {text} ---', colour, attrs=['bold'])


def choose(console: Console, title: str, options: Sequence[tuple[str, T]]) -> T:
    """
    Numbered menu, keeps asking until a valid number (or the full label) is entered.
    """
    assert len(options) > 0
    labels = [label for label, _ in options]
    console.show(title)
    for i, label in enumerate(labels, start=1):
        console.show(f'{i}. {label}')
    while True:
        answer = console.ask(f'Select an option [1-{len(options)}]: ', completions=labels)
        if re.fullmatch(r'[0-9]+', answer) and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1][1]
        for label, value in options:
            if answer.lower() == label.lower():
                return value
        logger.error('Invalid option.')


def confirm(console: Console, message: str) -> bool:
    answer = console.ask(f'{message} [y/N]: ')
    return answer.lower() in {'y', 'yes'}


Action = Callable[[], None]


def menu_loop(console: Console, title: str, options: Sequence[tuple[str, Action | None]]) -> None:
    """
    Runs chosen actions until the entry without one (i.e. 'Back') is picked.
    """
    while True:
        console.show()
        action = choose(console, title, options)
        if action is None:
            return
        try:
            action()
        except CronieError as e:
            logger.error(str(e))
            console.pause()
