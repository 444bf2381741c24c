from __future__ import annotations

import shutil
from collections.abc import Callable

from . import systemd
from .common import (
    CronieError,
    ListEntry,
    MetadataError,
    ServiceManagerError,
    TimerExists,
    TimerName,
    TimerStatus,
    logger,
)
from .context import Context
from .repository import (
    TimerInfo,
    TimerPaths,
    check_name,
    read_info,
    timer_names,
    timestamp,
    write_info,
)
from .schedule import Schedule
from .systemd import ServiceControl

SCRIPT_MODE = 0o755


def render_units(paths: TimerPaths, info: TimerInfo) -> list[tuple[str, str]]:
    service = systemd.service(
        description=info.description,
        script=paths.script,
        logs_dir=paths.logs_dir,
    )
    timer = systemd.timer(
        description=info.description,
        on_calendar=info.on_calendar,
    )
    return [
        (paths.service_unit.name, service),
        (paths.timer_unit.name, timer),
    ]


def write_units(paths: TimerPaths, info: TimerInfo) -> None:
    for unit, body in render_units(paths, info):
        unit_file = paths.unit_dir / unit
        logger.debug(f'writing unit file: {unit_file}')
        unit_file.write_text(body)


def create_timer(
    ctx: Context,
    sc: ServiceControl,
    *,
    name: TimerName,
    description: str,
    schedule: Schedule,
    script: str,
) -> TimerPaths:
    check_name(name)
    paths = TimerPaths.of(ctx, name)
    if paths.dir.exists():
        raise TimerExists(f"A timer with the name '{name}' already exists.")

    info = TimerInfo(
        name=name,
        description=description,
        interval=schedule.interval,
        on_calendar=schedule.on_calendar,
        created=timestamp(),
    )
    # before touching the disk, so a bad schedule doesn't leave anything behind
    sc.verify(render_units(paths, info))

    logger.info(f"Creating timer directory and files for '{name}'...")
    paths.logs_dir.mkdir(parents=True)
    paths.script.write_text(script)
    paths.script.chmod(SCRIPT_MODE)
    write_info(paths, info)

    write_units(paths, info)
    logger.info(f'Created {paths.service_unit.name} and {paths.timer_unit.name} in {ctx.unit_dir}')

    logger.info('Reloading systemd daemon...')
    sc.daemon_reload()
    logger.info(f"Enabling and starting timer '{paths.timer_unit.name}'...")
    sc.enable(paths.timer_unit.name)
    return paths


def install_from_dir(ctx: Context, sc: ServiceControl, name: TimerName) -> TimerInfo:
    """
    (Re)creates units for a timer directory, purely from its information log.
    """
    paths = TimerPaths.of(ctx, name)
    if not paths.info_log.is_file():
        raise MetadataError(f"Cannot install '{name}', information log is missing.")
    info = read_info(paths)

    logger.info(f"Installing timer '{name}' from its directory...")
    write_units(paths, info)
    sc.daemon_reload()
    sc.enable(paths.timer_unit.name)
    return info


def timer_status(sc: ServiceControl, paths: TimerPaths) -> TimerStatus:
    if not paths.info_log.is_file():
        return TimerStatus.INVALID
    unit = paths.timer_unit.name
    if not sc.is_enabled(unit):
        return TimerStatus.PAUSED
    if sc.is_active(unit):
        return TimerStatus.ACTIVE
    return TimerStatus.ENABLED


def list_entries(ctx: Context, sc: ServiceControl) -> list[ListEntry]:
    entries = []
    for name in timer_names(ctx):
        paths = TimerPaths.of(ctx, name)
        try:
            info = read_info(paths)
        except MetadataError as e:
            logger.debug(str(e))
            entries.append(ListEntry(name=name, status=TimerStatus.INVALID, interval='Info log missing', next='n/a'))
            continue
        entries.append(
            ListEntry(
                name=name,
                status=timer_status(sc, paths),
                interval=info.interval,
                next=sc.next_elapse(paths.timer_unit.name) or 'n/a',
            )
        )
    return entries


def _update(ctx: Context, sc: ServiceControl, name: TimerName, change: Callable[[TimerInfo], TimerInfo]) -> TimerPaths:
    paths = TimerPaths.of(ctx, name)
    info = change(read_info(paths))
    write_info(paths, info)
    # units are never patched in place, always regenerated from the information log
    write_units(paths, info)
    sc.daemon_reload()
    return paths


def edit_description(ctx: Context, sc: ServiceControl, name: TimerName, description: str) -> None:
    if description == '':
        raise CronieError('Description cannot be empty.')
    _update(ctx, sc, name, lambda info: info.with_description(description))
    logger.success('Description updated.')


def edit_schedule(ctx: Context, sc: ServiceControl, name: TimerName, schedule: Schedule) -> None:
    paths = _update(
        ctx,
        sc,
        name,
        lambda info: info.with_schedule(on_calendar=schedule.on_calendar, interval=schedule.interval),
    )
    # otherwise the old schedule stays in effect
    sc.restart(paths.timer_unit.name)
    logger.success('Schedule updated and timer restarted.')


def pause_timer(ctx: Context, sc: ServiceControl, name: TimerName) -> None:
    logger.info('Pausing (disabling) timer...')
    sc.disable(TimerPaths.of(ctx, name).timer_unit.name)
    logger.success('Timer paused.')


def resume_timer(ctx: Context, sc: ServiceControl, name: TimerName) -> None:
    logger.info('Resuming (enabling) timer...')
    sc.enable(TimerPaths.of(ctx, name).timer_unit.name)
    logger.success('Timer resumed.')


def trigger_timer(ctx: Context, sc: ServiceControl, name: TimerName) -> None:
    logger.info('Triggering service manually...')
    unit = TimerPaths.of(ctx, name).service_unit.name
    sc.start(unit)
    logger.success(f"Service '{unit}' started. Check logs for output.")


def remove_timer(ctx: Context, sc: ServiceControl, name: TimerName) -> None:
    """
    Best effort: failures are logged and the rest of the cleanup still happens.
    """
    paths = TimerPaths.of(ctx, name)

    logger.info('Stopping and disabling timer...')
    try:
        sc.disable(paths.timer_unit.name)
    except ServiceManagerError as e:
        logger.warning(f'could not disable {paths.timer_unit.name}: {e}')

    logger.info('Removing systemd unit files...')
    for unit_file in (paths.service_unit, paths.timer_unit):
        try:
            unit_file.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f'could not remove {unit_file}: {e}')

    logger.info('Reloading systemd daemon...')
    try:
        sc.daemon_reload()
    except ServiceManagerError as e:
        logger.warning(f'daemon-reload failed: {e}')

    logger.info('Deleting timer data directory...')
    shutil.rmtree(paths.dir, ignore_errors=True)
