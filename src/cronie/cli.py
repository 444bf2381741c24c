from __future__ import annotations

import os
import re
import sys
import traceback
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import click

from . import backup as backup_
from . import cronie
from .common import (
    CronieError,
    TimerName,
    format_listing,
    logger,
)
from .context import Context, missing_commands, resolve_context
from .repository import (
    TimerPaths,
    check_name,
    log_files,
    prune_logs,
    random_name,
    sanitize_name,
    timer_names,
)
from .schedule import ask_schedule
from .scripts import ask_script
from .systemd import ServiceControl, Systemctl
from .ui import Console, TerminalConsole, choose, confirm, heading, menu_loop

VERSION = '1.0.0'


@dataclass(frozen=True)
class App:
    ctx: Context
    sc: ServiceControl
    console: Console


def select_timer(app: App) -> TimerName | None:
    names = timer_names(app.ctx)
    if len(names) == 0:
        logger.warning("No 'cronie' timers found.")
        app.console.pause()
        return None
    options: list[tuple[str, TimerName | None]] = [(n, n) for n in names]
    options.append(('Cancel', None))
    return choose(app.console, 'Please select a timer:', options)


def cmd_create(app: App) -> None:
    console = app.console
    console.show(heading('Create a New Timer'))

    raw = console.ask("Enter a short name for the timer (alphanumeric, hyphens ok) [leave blank for random]: ")
    if raw == '':
        name = random_name()
        logger.info(f'Generated random name: {name}')
    else:
        name = check_name(sanitize_name(raw))
    if TimerPaths.of(app.ctx, name).dir.exists():
        logger.error(f"A timer with the name '{name}' already exists.")
        console.pause()
        return

    description = ''
    while description == '':
        description = console.ask("Enter a one-line description for the timer's purpose: ")

    schedule = ask_schedule(console)
    if schedule is None:
        logger.info('Timer creation cancelled.')
        return
    script = ask_script(console, name)
    if script is None:
        logger.info('Timer creation cancelled.')
        return

    paths = cronie.create_timer(
        app.ctx,
        app.sc,
        name=name,
        description=description,
        schedule=schedule,
        script=script,
    )
    logger.success(f"Timer '{name}' created and activated successfully!")
    logger.info(f'You can edit the executable script at: {paths.script}')
    console.pause()


def cmd_list(app: App) -> None:
    app.console.show(heading('List All Timers'))
    entries = cronie.list_entries(app.ctx, app.sc)
    if len(entries) == 0:
        logger.info("No 'cronie' timers found.")
    else:
        app.console.show(format_listing(entries))
    app.console.pause()


def _edit_menu(app: App, name: TimerName) -> None:
    console = app.console

    def edit_description() -> None:
        description = console.ask('Enter new description: ')
        if description == '':
            logger.error('Description cannot be empty.')
            return
        cronie.edit_description(app.ctx, app.sc, name, description)
        console.pause()

    def edit_schedule() -> None:
        schedule = ask_schedule(console)
        if schedule is None:
            logger.info('Schedule edit cancelled.')
            return
        cronie.edit_schedule(app.ctx, app.sc, name, schedule)
        console.pause()

    def edit_script() -> None:
        console.edit(TimerPaths.of(app.ctx, name).script)
        logger.success('Script updated. The changes will apply on the next run.')
        console.pause()

    options: list[tuple[str, Callable[[], None] | None]] = [
        ('Edit Description', edit_description),
        ('Edit Schedule', edit_schedule),
        ('Edit Executable Script', edit_script),
        ('Back to Manage Menu', None),
    ]
    menu_loop(console, heading(f"Edit Timer '{name}'", 'yellow'), options)


def _logs_menu(app: App, name: TimerName) -> None:
    console = app.console
    paths = TimerPaths.of(app.ctx, name)

    def view() -> None:
        logs = log_files(paths)
        if len(logs) == 0:
            logger.info('No log files found for this timer.')
            console.pause()
            return
        log_options: list[tuple[str, Path | None]] = [(log.name, log) for log in logs]
        log_options.append(('Cancel', None))
        log = choose(console, 'Select a log file to view:', log_options)
        if log is not None:
            console.page(log)

    def prune() -> None:
        days = console.ask('Delete logs older than how many days? ')
        # ascii digits only
        if re.fullmatch(r'[0-9]+', days) is None:
            logger.error('Invalid number of days.')
            return
        logger.info(f'Finding and deleting logs older than {days} days...')
        removed = prune_logs(paths, days=int(days))
        logger.success(f'Log pruning complete, removed {len(removed)} file(s).')
        console.pause()

    options: list[tuple[str, Callable[[], None] | None]] = [
        ('View Logs', view),
        ('Prune Old Logs', prune),
        ('Back to Manage Menu', None),
    ]
    menu_loop(console, heading(f"Log Management for '{name}'", 'yellow'), options)


def cmd_manage(app: App) -> None:
    console = app.console
    console.show(heading('Manage an Existing Timer'))
    name = select_timer(app)
    if name is None:
        return
    ctx, sc = app.ctx, app.sc

    def show_info() -> None:
        console.show(heading(f'Information for {name}', 'white'))
        info_log = TimerPaths.of(ctx, name).info_log
        if not info_log.is_file():
            logger.error(f"Information log for '{name}' is missing.")
        else:
            console.show(info_log.read_text().rstrip('\n'))
        console.pause()

    def with_pause(action: Callable[[Context, ServiceControl, TimerName], None]) -> Callable[[], None]:
        def run() -> None:
            action(ctx, sc, name)
            console.pause()

        return run

    options: list[tuple[str, Callable[[], None] | None]] = [
        ('Show Information', show_info),
        ('Edit Timer (Description, Schedule, Script)', lambda: _edit_menu(app, name)),
        ('Pause Timer (disable)', with_pause(cronie.pause_timer)),
        ('Resume Timer (enable)', with_pause(cronie.resume_timer)),
        ('Trigger Manually (Run Now)', with_pause(cronie.trigger_timer)),
        ('Log Management (View/Prune)', lambda: _logs_menu(app, name)),
        ('Return to Main Menu', None),
    ]
    menu_loop(console, heading(f'Managing Timer: {name}', 'yellow'), options)


def cmd_delete(app: App) -> None:
    console = app.console
    console.show(heading('Delete a Timer', 'red'))
    name = select_timer(app)
    if name is None:
        return

    logger.warning(f"You are about to permanently delete the timer '{name}'.")
    logger.warning('This will stop the timer, remove its systemd files, and delete its data directory.')
    if not confirm(console, 'Are you absolutely sure?'):
        logger.info('Deletion aborted.')
        console.pause()
        return

    cronie.remove_timer(app.ctx, app.sc, name)
    logger.success(f"Timer '{name}' has been completely deleted.")
    console.pause()


def cmd_backup(app: App) -> None:
    console = app.console
    console.show(heading('Backup All Timers'))
    default = backup_.default_backup_path()
    answer = console.ask(f'Enter path and filename for backup [{default}]: ')
    dest = Path(answer).expanduser() if answer else default
    backup_.backup(app.ctx, dest)
    console.pause()


def _ask_collision(console: Console) -> backup_.OnCollision:
    def ask(name: TimerName) -> backup_.Collision:
        while True:
            answer = console.ask(f"'{name}': choose an action: [O]verwrite, [S]kip, [A]bort restore? ")
            try:
                return backup_.Collision(answer[:1].lower())
            except ValueError:
                logger.error('Invalid option.')

    return ask


def cmd_restore(app: App) -> None:
    console = app.console
    console.show(heading('Restore Timers from Backup'))
    answer = console.ask('Enter the full path to the backup file (.tar.gz): ')
    backup_.restore(app.ctx, app.sc, Path(answer).expanduser(), on_collision=_ask_collision(console))
    console.pause()


def cmd_backup_restore(app: App) -> None:
    options: list[tuple[str, Callable[[], None] | None]] = [
        ('Backup All Timers', lambda: cmd_backup(app)),
        ('Restore Timers from Backup', lambda: cmd_restore(app)),
        ('Return to Main Menu', None),
    ]
    menu_loop(app.console, heading('Backup / Restore'), options)


class MainChoice(Enum):
    CREATE = 'Create a new timer'
    LIST = 'List all timers'
    MANAGE = 'Manage an existing timer'
    DELETE = 'Delete a timer'
    BACKUP_RESTORE = 'Backup / Restore'
    EXIT = 'Exit'


HANDLERS: dict[MainChoice, Callable[[App], None]] = {
    MainChoice.CREATE: cmd_create,
    MainChoice.LIST: cmd_list,
    MainChoice.MANAGE: cmd_manage,
    MainChoice.DELETE: cmd_delete,
    MainChoice.BACKUP_RESTORE: cmd_backup_restore,
}


def main_menu(app: App) -> None:
    console = app.console
    while True:
        console.clear()
        console.show(heading(f'Cronie: The Friendly Timer Manager (v{VERSION})'))
        console.show(f'Operating in: {app.ctx.mode}')
        choice = choose(console, '-' * 52, [(c.value, c) for c in MainChoice])
        if choice is MainChoice.EXIT:
            console.show('Exiting.')
            return
        try:
            HANDLERS[choice](app)
        except CronieError as e:
            logger.error(str(e))
            console.pause()


def setup_logging() -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        format='<level>{level}: {message}</level>',
        level=os.environ.get('CRONIE_LOG_LEVEL', 'INFO').upper(),
    )


def _where(e: BaseException) -> str:
    frames = traceback.extract_tb(e.__traceback__)
    if len(frames) == 0:
        return '<unknown>'
    last = frames[-1]
    return f'{last.filename}:{last.lineno}'


@click.command(
    context_settings={'help_option_names': ['-h', '--help']},
    help="""
cronie -- a friendly, interactive manager for systemd timers.

\b
Each timer is a script under ~/cronie/<name>/ together with a pair of
systemd .service/.timer units. Run as root to manage system-wide timers.
""".strip(),
)
def cli() -> None:
    setup_logging()

    for command in missing_commands():
        logger.error(f"Required command '{command}' is not installed. Please install it and try again.")
        sys.exit(1)

    try:
        ctx = resolve_context()
    except CronieError as e:
        logger.error(str(e))
        sys.exit(1)
    ctx.ensure_dirs()

    app = App(ctx=ctx, sc=Systemctl(ctx), console=TerminalConsole())
    try:
        main_menu(app)
    except (KeyboardInterrupt, EOFError):
        click.echo()
        sys.exit(0)
    except Exception as e:
        logger.opt(exception=e).error(f'An unexpected error occurred at {_where(e)}. Exiting.')
        sys.exit(1)


def main() -> None:
    cli()
