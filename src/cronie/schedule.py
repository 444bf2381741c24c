"""
Turns human answers into systemd calendar expressions.

See systemd.time(7) for the OnCalendar syntax.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from enum import Enum
from typing import NamedTuple

from .common import OnCalendar, logger
from .ui import Console, choose

_MINUTES = re.compile(r'^[1-9]$|^[1-5][0-9]$')
_HOURS = re.compile(r'^[1-9]$|^1[0-9]$|^2[0-3]$')
_TIME = re.compile(r'^([01][0-9]|2[0-3]):[0-5][0-9]$')
_MONTH_DAY = re.compile(r'^[1-9]$|^[12][0-9]$|^3[01]$')
_DATE = re.compile(r'^(0[1-9]|1[0-2])-(0[1-9]|[12][0-9]|3[01])$')

WEEKDAYS = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')

DEFAULT_YEARLY_TIME = '00:00'


class Schedule(NamedTuple):
    on_calendar: OnCalendar
    interval: str  # human readable


def is_minutes(s: str) -> bool:
    return _MINUTES.search(s) is not None


def is_hours(s: str) -> bool:
    return _HOURS.search(s) is not None


def is_time(s: str) -> bool:
    return _TIME.search(s) is not None


def is_weekday(s: str) -> bool:
    return s in WEEKDAYS


def is_month_day(s: str) -> bool:
    return _MONTH_DAY.search(s) is not None


def is_date(s: str) -> bool:
    return _DATE.search(s) is not None


def _require(ok: bool, what: str, value: object) -> None:
    if not ok:
        raise ValueError(f'invalid {what}: {value!r}')


def every_minutes(n: int) -> Schedule:
    _require(1 <= n <= 59, 'number of minutes', n)
    return Schedule(f'*:0/{n}:00', f'Every {n} minutes')


def every_hours(n: int) -> Schedule:
    _require(1 <= n <= 23, 'number of hours', n)
    return Schedule(f'0 */{n}:00:00', f'Every {n} hours')


def daily(time: str) -> Schedule:
    _require(is_time(time), 'time', time)
    return Schedule(f'*-*-* {time}:00', f'Daily at {time}')


def weekly(day: str, time: str) -> Schedule:
    _require(is_weekday(day), 'day of week', day)
    _require(is_time(time), 'time', time)
    return Schedule(f'{day} *-*-* {time}:00', f'Weekly on {day} at {time}')


def monthly(day: str, time: str) -> Schedule:
    _require(is_month_day(day), 'day of month', day)
    _require(is_time(time), 'time', time)
    return Schedule(f'*-*-{day} {time}:00', f'Monthly on day {day} at {time}')


def yearly(date: str, time: str = DEFAULT_YEARLY_TIME) -> Schedule:
    _require(is_date(date), 'date', date)
    _require(is_time(time), 'time', time)
    return Schedule(f'*-{date} {time}:00', f'Yearly on {date} at {time}')


def custom(on_calendar: OnCalendar) -> Schedule:
    # not validated, systemd will complain if it's garbage
    return Schedule(on_calendar, f'Custom: {on_calendar}')


def _ask_valid(console: Console, message: str, check: Callable[[str], bool], error: str, *, default: str | None = None) -> str:
    while True:
        answer = console.ask(message)
        if answer == '' and default is not None:
            answer = default
        if check(answer):
            return answer
        logger.error(error)


def _ask_time(console: Console, *, optional: bool = False) -> str:
    if optional:
        return _ask_valid(console, 'Enter time (HH:MM, optional): ', is_time, 'Invalid time format.', default=DEFAULT_YEARLY_TIME)
    return _ask_valid(console, 'Enter time (HH:MM): ', is_time, 'Invalid time format.')


class Kind(Enum):
    MINUTES = 'Every N Minutes'
    HOURS = 'Every N Hours'
    DAILY = 'Daily (at a specific time)'
    WEEKLY = 'Weekly (on a specific day and time)'
    MONTHLY = 'Monthly (on a specific day and time)'
    YEARLY = 'Yearly (on a specific date and time)'
    CUSTOM = 'Custom OnCalendar Value'
    CANCEL = 'Cancel'


def ask_schedule(console: Console) -> Schedule | None:
    """
    Returns None if the user cancelled.
    """
    kind = choose(console, 'Select the timer interval:', [(k.value, k) for k in Kind])
    match kind:
        case Kind.MINUTES:
            n = _ask_valid(console, 'Enter minutes (1-59): ', is_minutes, 'Invalid input.')
            return every_minutes(int(n))
        case Kind.HOURS:
            n = _ask_valid(console, 'Enter hours (1-23): ', is_hours, 'Invalid input.')
            return every_hours(int(n))
        case Kind.DAILY:
            return daily(_ask_time(console))
        case Kind.WEEKLY:
            day = _ask_valid(console, f'Enter day ({", ".join(WEEKDAYS)}): ', is_weekday, 'Invalid day.')
            return weekly(day, _ask_time(console))
        case Kind.MONTHLY:
            day = _ask_valid(console, 'Enter day of month (1-31): ', is_month_day, 'Invalid day.')
            return monthly(day, _ask_time(console))
        case Kind.YEARLY:
            date = _ask_valid(console, 'Enter date (MM-DD): ', is_date, 'Invalid date format.')
            return yearly(date, _ask_time(console, optional=True))
        case Kind.CUSTOM:
            value = _ask_valid(console, 'Enter valid systemd OnCalendar value: ', lambda s: s != '', 'OnCalendar value cannot be empty.')
            return custom(value)
        case Kind.CANCEL:
            return None
