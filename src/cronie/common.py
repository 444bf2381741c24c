from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger  # noqa: F401

TimerName = str
Unit = str
Body = str
OnCalendar = str


MANAGED_MARKER = '(MANAGED BY CRONIE)'


def is_managed(body: str) -> bool:
    return MANAGED_MARKER in body


class CronieError(RuntimeError):
    """
    Errors which are expected to happen during normal use.

    The menu loop reports them and carries on, anything else is treated as a bug.
    """


class MissingRuntimeDir(CronieError):
    pass


class InvalidTimerName(CronieError):
    pass


class TimerExists(CronieError):
    pass


class MetadataError(CronieError):
    pass


class ServiceManagerError(CronieError):
    pass


class EmptyRepository(CronieError):
    pass


class BackupNotFound(CronieError):
    pass


class BackupError(CronieError):
    pass


class RestoreError(CronieError):
    pass


class TimerStatus(Enum):
    ACTIVE = 'active'
    ENABLED = 'enabled'  # enabled, but not running
    PAUSED = 'paused'
    INVALID = 'INVALID'

    @property
    def colour(self) -> str:
        return {
            TimerStatus.ACTIVE: 'green',
            TimerStatus.ENABLED: 'yellow',
            TimerStatus.PAUSED: 'red',
            TimerStatus.INVALID: 'red',
        }[self]


@dataclass
class ListEntry:
    name: TimerName
    status: TimerStatus
    interval: str
    next: str


def format_listing(entries: Iterable[ListEntry], *, colour: bool = True) -> str:
    import termcolor  # noqa: I001
    import tabulate

    headers = [
        'TIMER NAME',
        'STATUS',
        'INTERVAL',
        'NEXT RUN',
    ]
    items: list[list[Any]] = []
    for e in sorted(entries, key=lambda e: e.name):
        status = e.status.value
        if colour:
            status = termcolor.colored(status, e.status.colour)
        items.append([e.name, status, e.interval, e.next])
    return tabulate.tabulate(items, headers=headers)

