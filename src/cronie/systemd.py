from __future__ import annotations

import shutil
from collections.abc import Sequence
from pathlib import Path
from subprocess import CalledProcessError, run
from tempfile import TemporaryDirectory
from typing import Protocol

from .common import (
    MANAGED_MARKER,
    Body,
    OnCalendar,
    ServiceManagerError,
    Unit,
    logger,
)
from .context import Context


def managed_header() -> str:
    return f'''
# {MANAGED_MARKER}
# If you do any manual changes, they will be overridden when the timer is edited or restored
'''.lstrip()


def escape_specifiers(s: str) -> str:
    # systemd expands %-specifiers in most settings, Description= included
    return s.replace('%', '%%')


# NOTE: everything below is rendered purely from the arguments
# restore relies on that to reproduce exactly the same units
def service(*, description: str, script: Path, logs_dir: Path) -> str:
    # the shell sees a single %
    log_file = f'{logs_dir}/$(date +%%Y-%%m-%%d).log'
    return f'''
{managed_header()}
[Unit]
Description={escape_specifiers(description)}

[Service]
Type=oneshot
ExecStart=/bin/bash -c '{script} &>> "{log_file}"'
'''.lstrip()


def timer(*, description: str, on_calendar: OnCalendar) -> str:
    return f'''
{managed_header()}
[Unit]
Description={escape_specifiers(description)}

[Timer]
OnCalendar={on_calendar}
Persistent=false
AccuracySec=1s

[Install]
WantedBy=timers.target
'''.lstrip()


class ServiceControl(Protocol):
    """
    The bits of the service manager cronie relies on.
    """

    def daemon_reload(self) -> None: ...

    def enable(self, unit: Unit, *, now: bool = True) -> None: ...

    def disable(self, unit: Unit, *, now: bool = True) -> None: ...

    def start(self, unit: Unit) -> None: ...

    def restart(self, unit: Unit) -> None: ...

    def is_enabled(self, unit: Unit) -> bool: ...

    def is_active(self, unit: Unit) -> bool: ...

    def next_elapse(self, unit: Unit) -> str | None: ...

    def verify(self, units: Sequence[tuple[Unit, Body]]) -> None: ...


class Systemctl:
    def __init__(self, ctx: Context) -> None:
        self.ctx = ctx

    def _systemctl(self, *args: Path | str) -> list[Path | str]:
        return ['systemctl', *self.ctx.systemctl_args, *args]

    def _call(self, *args: Path | str) -> None:
        cmd = self._systemctl(*args)
        logger.debug(f'running: {" ".join(map(str, cmd))}')
        try:
            run(cmd, check=True, capture_output=True, text=True)
        except CalledProcessError as e:
            err = (e.stderr or '').strip()
            raise ServiceManagerError(f"'{' '.join(map(str, cmd))}' failed with exit code {e.returncode}: {err}") from e

    def _check(self, *args: Path | str) -> bool:
        res = run(self._systemctl(*args), capture_output=True, check=False)
        return res.returncode == 0

    def daemon_reload(self) -> None:
        self._call('daemon-reload')

    def enable(self, unit: Unit, *, now: bool = True) -> None:
        self._call('enable', *(['--now'] if now else []), unit)

    def disable(self, unit: Unit, *, now: bool = True) -> None:
        self._call('disable', *(['--now'] if now else []), unit)

    def start(self, unit: Unit) -> None:
        self._call('start', unit)

    def restart(self, unit: Unit) -> None:
        self._call('restart', unit)

    def is_enabled(self, unit: Unit) -> bool:
        return self._check('is-enabled', '--quiet', unit)

    def is_active(self, unit: Unit) -> bool:
        return self._check('is-active', '--quiet', unit)

    def next_elapse(self, unit: Unit) -> str | None:
        res = run(
            self._systemctl('show', unit, '-p', 'NextElapseUSecRealtime', '--value'),
            capture_output=True,
            text=True,
            check=False,
        )
        if res.returncode != 0:
            return None
        value = res.stdout.strip()
        if value in {'', '0', 'n/a'}:
            return None
        return value

    def verify(self, units: Sequence[tuple[Unit, Body]]) -> None:
        if len(units) == 0:
            return
        if shutil.which('systemd-analyze') is None:
            logger.debug('systemd-analyze is not available, skipping unit verification')
            return

        with TemporaryDirectory() as tdir:
            files = []
            for unit, body in units:
                f = Path(tdir) / unit
                f.write_text(body)
                files.append(f)
            res = run(['systemd-analyze', *self.ctx.systemctl_args, 'verify', *files], capture_output=True, text=True, check=False)

        # complaints about the units don't always affect the exit code
        problems = list(dict.fromkeys(line.strip() for line in res.stderr.splitlines() if line.strip()))
        if res.returncode == 0 and len(problems) == 0:
            return
        for p in problems:
            logger.error(p)
        names = ', '.join(unit for unit, _ in units)
        raise ServiceManagerError(f'systemd-analyze rejected {names} (exit code {res.returncode})')
