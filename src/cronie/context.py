from __future__ import annotations

import getpass
import os
import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from .common import MissingRuntimeDir, logger

BASE_DIR_NAME = 'cronie'

SYSTEM_UNIT_DIR = Path('/etc/systemd/system')
USER_UNIT_DIR = Path('.config/systemd/user')  # relative to $HOME

# rsync and curl are used by the generated job scripts
REQUIRED_COMMANDS = ('systemctl', 'rsync', 'curl')


@dataclass(frozen=True)
class Context:
    """
    Where timers live and how to talk to systemd, resolved once on startup.
    """

    system_wide: bool
    user: str
    base_dir: Path
    unit_dir: Path

    @property
    def mode(self) -> str:
        if self.system_wide:
            return 'System-wide (root)'
        return f'User-level ({self.user})'

    @property
    def systemctl_args(self) -> list[str]:
        return [] if self.system_wide else ['--user']

    def ensure_dirs(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.unit_dir.mkdir(parents=True, exist_ok=True)


def _user_name(env: Mapping[str, str]) -> str:
    for var in ('USER', 'LOGNAME'):
        name = env.get(var)
        if name:
            return name
    return getpass.getuser()


def resolve_context(*, euid: int | None = None, env: Mapping[str, str] | None = None) -> Context:
    if euid is None:
        euid = os.geteuid()
    if env is None:
        env = os.environ

    if euid == 0:
        home = Path(env.get('HOME') or '/root')
        return Context(
            system_wide=True,
            user='root',
            base_dir=home / BASE_DIR_NAME,
            unit_dir=SYSTEM_UNIT_DIR,
        )

    if not env.get('XDG_RUNTIME_DIR'):
        # typically happens after 'su' or 'sudo' without '-l'
        raise MissingRuntimeDir(
            "XDG_RUNTIME_DIR is not set. Cannot connect to the systemd user instance. "
            "This can happen if you are using 'su' or 'sudo' without the '-l' flag; "
            "try logging in directly as the user."
        )

    home = Path(env['HOME']) if env.get('HOME') else Path.home()
    return Context(
        system_wide=False,
        user=_user_name(env),
        base_dir=home / BASE_DIR_NAME,
        unit_dir=home / USER_UNIT_DIR,
    )


def missing_commands(commands: Sequence[str] = REQUIRED_COMMANDS) -> list[str]:
    missing = [c for c in commands if shutil.which(c) is None]
    for c in missing:
        logger.debug(f'{c} not found on PATH')
    return missing
