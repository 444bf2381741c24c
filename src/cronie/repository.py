from __future__ import annotations

import re
import secrets
import string
from collections.abc import Iterator
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from pathlib import Path

from .common import InvalidTimerName, MetadataError, OnCalendar, TimerName, logger
from .context import Context

SCRIPT_SUFFIX = '_EXECUTABLE_SCRIPT.sh'
INFO_LOG_SUFFIX = '_INFORMATION_LOG.log'
LOGS_DIR = 'logs'

_NAME_RGX = re.compile(r'[a-z0-9-]+')
_RANDOM_ALPHABET = string.ascii_lowercase + string.digits
RANDOM_NAME_LENGTH = 4


def sanitize_name(raw: str) -> TimerName:
    name = raw.lower()
    name = re.sub(r'[ _]', '-', name)
    return re.sub(r'[^a-z0-9-]', '', name)


def random_name() -> TimerName:
    return ''.join(secrets.choice(_RANDOM_ALPHABET) for _ in range(RANDOM_NAME_LENGTH))


def is_valid_name(name: str) -> bool:
    return _NAME_RGX.fullmatch(name) is not None


def check_name(name: str) -> TimerName:
    if not is_valid_name(name):
        raise InvalidTimerName(f"'{name}' is not a valid timer name (lowercase letters, digits and hyphens only)")
    return name


@dataclass(frozen=True)
class TimerPaths:
    name: TimerName
    dir: Path
    unit_dir: Path

    @classmethod
    def of(cls, ctx: Context, name: TimerName) -> TimerPaths:
        return cls(name=name, dir=ctx.base_dir / name, unit_dir=ctx.unit_dir)

    @property
    def script(self) -> Path:
        return self.dir / f'{self.name}{SCRIPT_SUFFIX}'

    @property
    def info_log(self) -> Path:
        return self.dir / f'{self.name}{INFO_LOG_SUFFIX}'

    @property
    def logs_dir(self) -> Path:
        return self.dir / LOGS_DIR

    @property
    def service_unit(self) -> Path:
        return self.unit_dir / f'{self.name}.service'

    @property
    def timer_unit(self) -> Path:
        return self.unit_dir / f'{self.name}.timer'


# order matters, this is how the keys appear in the information log
_KEYS = {
    'name': 'Name',
    'description': 'Description',
    'interval': 'Interval',
    'on_calendar': 'OnCalendar Value',
    'created': 'Creation Timestamp',
}


def timestamp(dt: datetime | None = None) -> str:
    """
    Same format as date(1), e.g. 'Sun Oct 18 12:00:00 UTC 2026'
    """
    if dt is None:
        dt = datetime.now()
    dt = dt.astimezone()
    return dt.strftime('%a %b %d %H:%M:%S %Z %Y')


@dataclass(frozen=True)
class TimerInfo:
    """
    Contents of the information log.

    Unit files are always rendered from this, so it's the canonical record of a timer.
    """

    name: TimerName
    description: str
    interval: str
    on_calendar: OnCalendar
    created: str

    def render(self) -> str:
        return ''.join(f'{key}: {getattr(self, attr)}\n' for attr, key in _KEYS.items())

    @classmethod
    def parse(cls, text: str, *, name: TimerName) -> TimerInfo:
        by_key: dict[str, str] = {}
        for line in text.splitlines():
            key, sep, value = line.partition(':')
            if not sep:
                continue
            by_key.setdefault(key.strip(), value.strip())

        fields = {attr: by_key.get(key) for attr, key in _KEYS.items()}
        for required in ('description', 'on_calendar'):
            if not fields[required]:
                raise MetadataError(f"information log for '{name}' has no '{_KEYS[required]}' entry")
        # directory name wins, that's what units are named after
        fields['name'] = name
        return cls(**{k: v or '' for k, v in fields.items()})

    def with_description(self, description: str) -> TimerInfo:
        return replace(self, description=description)

    def with_schedule(self, *, on_calendar: OnCalendar, interval: str) -> TimerInfo:
        return replace(self, on_calendar=on_calendar, interval=interval)


def read_info(paths: TimerPaths) -> TimerInfo:
    try:
        text = paths.info_log.read_text()
    except OSError as e:
        raise MetadataError(f"can't read information log for '{paths.name}': {e}") from e
    return TimerInfo.parse(text, name=paths.name)


def write_info(paths: TimerPaths, info: TimerInfo) -> None:
    paths.info_log.write_text(info.render())


def timer_names(ctx: Context) -> list[TimerName]:
    if not ctx.base_dir.is_dir():
        return []
    return sorted(p.name for p in ctx.base_dir.iterdir() if p.is_dir())


def log_files(paths: TimerPaths) -> list[Path]:
    """
    Newest first (file names are dates).
    """
    if not paths.logs_dir.is_dir():
        return []
    return sorted((p for p in paths.logs_dir.glob('*.log') if p.is_file()), reverse=True)


def _older_than(logs: list[Path], *, days: int, now: datetime) -> Iterator[Path]:
    cutoff = now - timedelta(days=days)
    for log in logs:
        mtime = datetime.fromtimestamp(log.stat().st_mtime)
        if mtime < cutoff:
            yield log


def prune_logs(paths: TimerPaths, *, days: int, now: datetime | None = None) -> list[Path]:
    if days < 0:
        raise ValueError(f'number of days must not be negative: {days}')
    if now is None:
        now = datetime.now()
    removed = []
    for log in list(_older_than(log_files(paths), days=days, now=now)):
        logger.info(f'removing {log}')
        log.unlink()
        removed.append(log)
    return removed
